# neigh/services/payment_service.py
"""
Payment lifecycle: cart -> pending Payment -> (PayPal order -> capture | COD) -> paid.

``create_payment`` is the only multi-statement transaction in the app: the
Payment row, the re-parenting of every cart invoice and the cart deletion
commit together or not at all.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal

from flask import current_app, session
from sqlalchemy.orm import joinedload

from ..errors import (
    ActionError,
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    fail,
    first_form_error,
    format_error,
    ok,
)
from ..extensions import db
from ..forms import PaymentMethodForm
from ..models.invoice import Invoice
from ..models.payment import Payment, pending_result
from ..models.task import Task
from ..models.user import User
from ..security import require_user
from .billing_notifications import send_purchase_receipt
from .cart_service import SESSION_KEY, current_cart
from .paypal_service import PayPalClient, captured_amount
from .totals import round2

log = logging.getLogger(__name__)


def _own_payment(payment_id: int) -> Payment:
    user = require_user()
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError("Payment not found")
    if payment.user_id != user.id and not user.is_admin:
        raise UnauthorizedError("You cannot access this payment")
    return payment


# -----------------
# Create
# -----------------

def create_payment(payment_method: str | None = None) -> dict:
    try:
        user = require_user()
        cart = current_cart()
        if cart is None or not cart.invoices:
            raise ValidationError("Cart is empty")

        method = payment_method or user.payment_method
        if not method:
            raise ValidationError("Payment method not selected")
        form = PaymentMethodForm(data={"payment_method": method})
        if not form.validate():
            raise ValidationError(first_form_error(form.errors))

        invoices = list(cart.invoices)
        payment = Payment(
            user_id=user.id,
            payment_method=form.payment_method.data,
            amount=round2(sum((inv.total_price for inv in invoices), Decimal("0"))),
            payment_result=pending_result(),
            is_paid=False,
        )
        db.session.add(payment)
        for invoice in invoices:
            invoice.payment = payment
            invoice.cart = None
        db.session.delete(cart)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return fail(format_error(e))

    session.pop(SESSION_KEY, None)
    log.info("Payment %s created by user %s for %s invoice(s), amount %s",
             payment.id, user.id, len(invoices), payment.amount)
    return ok("Payment created successfully", payment.id)


# -----------------
# PayPal
# -----------------

def create_paypal_payment(payment_id: int, gateway=None) -> dict:
    try:
        payment = _own_payment(payment_id)
        if payment.is_paid:
            raise ConflictError("Payment is already paid")

        gateway = gateway or PayPalClient.from_app()
        order = gateway.create_payment(payment.amount)
        payment.payment_result = {
            "id": order["id"],
            "status": order.get("status", ""),
            "email_address": "",
            "amount": 0,
        }
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return fail(format_error(e))
    return ok("Item order created successfully", order["id"])


def approve_paypal_payment(payment_id: int, data: dict, gateway=None) -> dict:
    """Capture the buyer-approved order and mark the payment paid.

    ``data["payment_id"]`` is the PayPal order id; it must match the one
    stored by ``create_paypal_payment``.
    """
    try:
        payment = _own_payment(payment_id)
        order_id = (data or {}).get("payment_id") or (data or {}).get("order_id")
        if not order_id:
            raise ValidationError("Error in PayPal payment")

        gateway = gateway or PayPalClient.from_app()
        capture = gateway.capture_payment(order_id)
        stored_id = (payment.payment_result or {}).get("id")
        if not capture or capture.get("id") != stored_id or capture.get("status") != "COMPLETED":
            log.warning("PayPal capture mismatch for payment %s (order %s)", payment.id, order_id)
            raise ActionError("Error in PayPal payment")

        amount = captured_amount(capture)
        update_payment_to_paid(payment.id, {
            "id": capture["id"],
            "status": capture["status"],
            "email_address": (capture.get("payer") or {}).get("email_address", ""),
            "price_paid": amount,
            "amount": amount,
            "created_at": datetime.utcnow().isoformat(),
        })
    except Exception as e:
        db.session.rollback()
        return fail(format_error(e))
    return ok("Your payment has been approved")


# -----------------
# Mark paid
# -----------------

def update_payment_to_paid(payment_id: int, payment_result: dict | None = None) -> Payment:
    """Mark a payment paid and send the receipt.

    Raises NotFoundError / ConflictError; the receipt email is sent after the
    commit and its failure never propagates.
    """
    payment = (Payment.query
               .options(joinedload(Payment.user))
               .filter(Payment.id == payment_id)
               .first())
    if payment is None:
        raise NotFoundError("Payment not found")
    if payment.is_paid:
        raise ConflictError("Payment is already paid")

    try:
        payment.is_paid = True
        payment.paid_at = datetime.utcnow()
        if payment_result is not None:
            payment.payment_result = payment_result
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    log.info("Payment %s marked as paid", payment.id)
    try:
        send_purchase_receipt(payment)
    except Exception as e:
        log.error("Purchase receipt for payment %s failed: %s", payment.id, e)
    return payment


def update_cod_payment_to_paid(payment_id: int, payment_result: dict | None = None) -> dict:
    try:
        user = require_user()
        if not user.is_admin:
            raise UnauthorizedError("Only admins can confirm cash payments")
        update_payment_to_paid(payment_id, payment_result or {
            "id": f"COD-{payment_id}",
            "status": "COMPLETED",
            "email_address": "",
            "amount": 0,
            "created_at": datetime.utcnow().isoformat(),
        })
    except Exception as e:
        db.session.rollback()
        return fail(format_error(e))
    return ok("Payment marked as paid")


# -----------------
# Reads
# -----------------

def get_payment_by_id(payment_id: int) -> Payment | None:
    return (Payment.query
            .options(joinedload(Payment.user))
            .filter(Payment.id == payment_id)
            .first())


def get_my_payments(page: int = 1, per_page: int | None = None):
    user = require_user()
    per_page = per_page or current_app.config.get("PAGE_SIZE", 10)
    return (Payment.query
            .filter(Payment.user_id == user.id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .paginate(page=page, per_page=per_page, error_out=False))


def _summarize(payments) -> dict:
    monthly: "OrderedDict[str, Decimal]" = OrderedDict()
    total = Decimal("0")
    for p in payments:
        month = p.created_at.strftime("%Y-%m")
        monthly[month] = monthly.get(month, Decimal("0")) + p.amount
        total += p.amount
    return {
        "total_amount": round2(total),
        "count": len(payments),
        "monthly": [{"month": m, "amount": round2(a)} for m, a in monthly.items()],
    }


def get_payment_summary_for_client(client_id: int) -> dict:
    payments = (Payment.query
                .filter(Payment.invoices.any(Invoice.client_id == client_id))
                .order_by(Payment.created_at.asc())
                .all())
    return _summarize(payments)


def get_payment_summary_for_contractor(contractor_id: int) -> dict:
    payments = (Payment.query
                .filter(Payment.invoices.any(Invoice.contractor_id == contractor_id))
                .order_by(Payment.created_at.asc())
                .all())
    return _summarize(payments)


def get_payment_summary() -> dict:
    """Admin overview: counts, overall sales and the latest payments."""
    payments = Payment.query.order_by(Payment.created_at.asc()).all()
    summary = _summarize(payments)
    summary.update({
        "payments_count": len(payments),
        "tasks_count": Task.query.count(),
        "users_count": User.query.count(),
        "latest": list(reversed(payments[-6:])),
    })
    return summary
