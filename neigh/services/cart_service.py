# neigh/services/cart_service.py
"""
Session-scoped cart of unpaid invoices. The Flask session only holds an
opaque ``session_cart_id``; the Cart row is looked up by it.
"""
from __future__ import annotations

import logging
import secrets
from decimal import Decimal

from flask import session

from ..errors import ConflictError, NotFoundError, UnauthorizedError, fail, format_error, ok
from ..extensions import db
from ..models.cart import Cart
from ..models.invoice import Invoice
from ..security import require_user, session_user
from .totals import round2

log = logging.getLogger(__name__)

SESSION_KEY = "session_cart_id"


def current_cart(create: bool = False) -> Cart | None:
    sid = session.get(SESSION_KEY)
    if not sid:
        if not create:
            return None
        sid = secrets.token_hex(16)
        session[SESSION_KEY] = sid

    cart = Cart.query.filter_by(session_cart_id=sid).first()
    if cart is None and create:
        user = session_user()
        cart = Cart(session_cart_id=sid, user_id=user.id if user else None, total_price=Decimal("0"))
        db.session.add(cart)
        db.session.flush()
    return cart


def recompute_cart_total(cart: Cart) -> Decimal:
    cart.total_price = round2(sum((inv.total_price for inv in cart.invoices), Decimal("0")))
    return cart.total_price


def get_my_cart() -> Cart | None:
    return current_cart()


def add_invoice_to_cart(invoice_id: int) -> dict:
    try:
        user = require_user()
        invoice = db.session.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice not found")
        if invoice.client_id != user.id:
            raise UnauthorizedError("Only the invoiced client can pay this invoice")
        if invoice.payment_id is not None:
            raise ConflictError("Invoice has already been submitted for payment")

        cart = current_cart(create=True)
        if invoice.cart_id == cart.id:
            raise ConflictError("Invoice is already in the cart")

        previous = invoice.cart
        invoice.cart = cart
        recompute_cart_total(cart)
        if previous is not None:
            # moved from another session's cart
            recompute_cart_total(previous)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return fail(format_error(e))

    log.info("Invoice %s added to cart %s", invoice.invoice_number, cart.id)
    return ok("Invoice added to cart", cart)


def remove_invoice_from_cart(invoice_id: int) -> dict:
    try:
        require_user()
        cart = current_cart()
        invoice = db.session.get(Invoice, invoice_id)
        if cart is None or invoice is None or invoice.cart_id != cart.id:
            raise NotFoundError("Invoice is not in the cart")

        invoice.cart = None
        recompute_cart_total(cart)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return fail(format_error(e))
    return ok("Invoice removed from cart", cart)


def clear_session_cart() -> None:
    """Drop the session's cart (sign-out). Invoices in it are released, not deleted."""
    sid = session.pop(SESSION_KEY, None)
    if not sid:
        return
    cart = Cart.query.filter_by(session_cart_id=sid).first()
    if cart is not None:
        db.session.delete(cart)
        db.session.commit()
        log.info("Cart %s cleared", sid)
