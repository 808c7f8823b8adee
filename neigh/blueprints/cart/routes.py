# neigh/blueprints/cart/routes.py
from flask_login import login_required

from ...errors import ok
from ...services import cart_service
from ..utils import respond
from . import cart_bp


@cart_bp.route("/", methods=["GET"])
@login_required
def my_cart():
    cart = cart_service.get_my_cart()
    if cart is None:
        return respond(ok("Cart is empty", {"invoices": [], "total_price": "0.00"}))
    return respond(ok("Cart", cart))


@cart_bp.route("/invoices/<int:invoice_id>", methods=["POST"])
@login_required
def add_invoice(invoice_id):
    return respond(cart_service.add_invoice_to_cart(invoice_id))


@cart_bp.route("/invoices/<int:invoice_id>", methods=["DELETE"])
@login_required
def remove_invoice(invoice_id):
    return respond(cart_service.remove_invoice_from_cart(invoice_id))
