# neigh/blueprints/payments/routes.py
from flask import abort
from flask_login import current_user, login_required

from ...errors import ok
from ...security import roles_required
from ...services import payment_service
from ..utils import page_arg, payload, paypal_gateway, respond
from . import payments_bp


# -----------------
# Helpers
# -----------------

def _can_view(payment) -> bool:
    """Payer, an invoiced contractor or an admin."""
    if current_user.is_admin or payment.user_id == current_user.id:
        return True
    return any(inv.contractor_id == current_user.id for inv in payment.invoices)


# -----------------
# Checkout
# -----------------

@payments_bp.route("/", methods=["POST"])
@login_required
def create_payment():
    result = payment_service.create_payment(payload().get("payment_method"))
    return respond(result, 201 if result["success"] else None)


@payments_bp.route("/", methods=["GET"])
@login_required
def my_payments():
    return respond(ok("Payments", payment_service.get_my_payments(page_arg())))


@payments_bp.route("/summary", methods=["GET"])
@login_required
def summary():
    if current_user.is_admin:
        data = payment_service.get_payment_summary()
    elif current_user.role == "contractor":
        data = payment_service.get_payment_summary_for_contractor(current_user.id)
    else:
        data = payment_service.get_payment_summary_for_client(current_user.id)
    return respond(ok("Payment summary", data))


@payments_bp.route("/<int:payment_id>", methods=["GET"])
@login_required
def payment_detail(payment_id):
    payment = payment_service.get_payment_by_id(payment_id)
    if payment is None:
        abort(404)
    if not _can_view(payment):
        abort(403)
    return respond(ok("Payment found", payment))


# -----------------
# PayPal
# -----------------

@payments_bp.route("/<int:payment_id>/paypal", methods=["POST"])
@login_required
def paypal_create(payment_id):
    return respond(payment_service.create_paypal_payment(payment_id, gateway=paypal_gateway()))


@payments_bp.route("/<int:payment_id>/paypal/capture", methods=["POST"])
@login_required
def paypal_capture(payment_id):
    return respond(payment_service.approve_paypal_payment(
        payment_id, payload(), gateway=paypal_gateway()
    ))


# -----------------
# Cash on delivery
# -----------------

@payments_bp.route("/<int:payment_id>/cod-paid", methods=["POST"])
@roles_required("admin")
def cod_paid(payment_id):
    return respond(payment_service.update_cod_payment_to_paid(payment_id))
