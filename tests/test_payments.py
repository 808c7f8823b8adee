from decimal import Decimal

import pytest
from flask import session
from sqlalchemy import event

from neigh.errors import ConflictError, NotFoundError
from neigh.extensions import db
from neigh.models import Cart, Invoice, Payment
from neigh.services import cart_service, payment_service
from neigh.services.billing_notifications import send_purchase_receipt

from conftest import FakePayPal, make_invoice


@pytest.fixture
def invoice(assignment, client_user, contractor):
    return make_invoice(client_user, contractor, assignment)


@pytest.fixture
def receipts(monkeypatch):
    sent = []
    monkeypatch.setattr(payment_service, "send_purchase_receipt", lambda payment: sent.append(payment.id))
    return sent


@pytest.fixture
def pending_payment(login, invoice, client_user):
    login(client_user)
    cart_service.add_invoice_to_cart(invoice.id)
    result = payment_service.create_payment("PAYPAL")
    assert result["success"], result["message"]
    return db.session.get(Payment, result["data"])


# -----------------
# Cart
# -----------------

def test_add_invoice_to_cart(login, invoice, client_user):
    login(client_user)
    result = cart_service.add_invoice_to_cart(invoice.id)
    assert result["success"], result["message"]
    cart = cart_service.get_my_cart()
    assert cart.total_price == Decimal("121.00")
    assert [i.id for i in cart.invoices] == [invoice.id]
    assert session[cart_service.SESSION_KEY] == cart.session_cart_id


def test_add_twice_is_rejected(login, invoice, client_user):
    login(client_user)
    cart_service.add_invoice_to_cart(invoice.id)
    result = cart_service.add_invoice_to_cart(invoice.id)
    assert result == {"success": False, "message": "Invoice is already in the cart"}


def test_only_invoiced_client_can_add(login, invoice, contractor):
    login(contractor)
    result = cart_service.add_invoice_to_cart(invoice.id)
    assert not result["success"]
    assert cart_service.get_my_cart() is None


def test_remove_invoice_from_cart(login, invoice, client_user):
    login(client_user)
    cart_service.add_invoice_to_cart(invoice.id)
    result = cart_service.remove_invoice_from_cart(invoice.id)
    assert result["success"]
    assert cart_service.get_my_cart().total_price == Decimal("0.00")
    assert db.session.get(Invoice, invoice.id).cart_id is None


def test_invoice_moved_from_another_cart(login, invoice, client_user):
    login(client_user)
    first = cart_service.add_invoice_to_cart(invoice.id)["data"]
    first_id = first.id

    # a second browser session of the same client
    session.pop(cart_service.SESSION_KEY)
    second = cart_service.add_invoice_to_cart(invoice.id)
    assert second["success"], second["message"]

    assert db.session.get(Cart, first_id).total_price == Decimal("0.00")
    assert second["data"].total_price == Decimal("121.00")
    assert db.session.get(Invoice, invoice.id).cart_id == second["data"].id


def test_clear_session_cart_releases_invoices(login, invoice, client_user):
    login(client_user)
    cart_service.add_invoice_to_cart(invoice.id)
    cart_service.clear_session_cart()
    assert Cart.query.count() == 0
    assert cart_service.SESSION_KEY not in session
    assert db.session.get(Invoice, invoice.id) is not None
    assert db.session.get(Invoice, invoice.id).cart_id is None


# -----------------
# create_payment
# -----------------

def test_empty_cart(login, client_user):
    login(client_user)
    result = payment_service.create_payment("PAYPAL")
    assert result == {"success": False, "message": "Cart is empty"}
    assert Payment.query.count() == 0


def test_payment_method_not_selected(login, invoice, client_user):
    login(client_user)
    cart_service.add_invoice_to_cart(invoice.id)
    result = payment_service.create_payment()
    assert result == {"success": False, "message": "Payment method not selected"}
    assert Payment.query.count() == 0
    assert Cart.query.count() == 1


def test_unknown_payment_method(login, invoice, client_user):
    login(client_user)
    cart_service.add_invoice_to_cart(invoice.id)
    result = payment_service.create_payment("bitcoin")
    assert result == {"success": False, "message": "Payment method must be one of: PAYPAL, COD"}


def test_saved_payment_method_is_used(login, invoice, client_user):
    client_user.payment_method = "COD"
    db.session.commit()
    login(client_user)
    cart_service.add_invoice_to_cart(invoice.id)
    result = payment_service.create_payment()
    assert result["success"], result["message"]
    assert db.session.get(Payment, result["data"]).payment_method == "COD"


def test_create_payment_moves_cart_invoices(login, invoice, client_user):
    login(client_user)
    cart_service.add_invoice_to_cart(invoice.id)
    result = payment_service.create_payment("paypal")
    assert result["success"], result["message"]

    payment = db.session.get(Payment, result["data"])
    assert payment.amount == Decimal("121.00")
    assert payment.payment_method == "PAYPAL"
    assert payment.is_paid is False
    assert payment.payment_result["status"] == "PENDING"
    assert [i.id for i in payment.invoices] == [invoice.id]
    assert Cart.query.count() == 0
    assert cart_service.SESSION_KEY not in session


def test_create_payment_rolls_back_as_a_unit(login, invoice, client_user):
    login(client_user)
    cart_service.add_invoice_to_cart(invoice.id)

    def boom(session, flush_context, instances):
        raise RuntimeError("disk full")

    event.listen(db.session, "before_flush", boom)
    try:
        result = payment_service.create_payment("PAYPAL")
    finally:
        event.remove(db.session, "before_flush", boom)

    assert result == {"success": False, "message": "Something went wrong"}
    assert Payment.query.count() == 0
    assert Cart.query.count() == 1
    assert db.session.get(Invoice, invoice.id).payment_id is None


# -----------------
# Mark paid
# -----------------

def test_paid_twice_raises_and_sends_one_receipt(pending_payment, receipts):
    payment_service.update_payment_to_paid(pending_payment.id, {"id": "X", "status": "COMPLETED"})
    with pytest.raises(ConflictError, match="Payment is already paid"):
        payment_service.update_payment_to_paid(pending_payment.id)

    payment = db.session.get(Payment, pending_payment.id)
    assert payment.is_paid is True
    assert payment.paid_at is not None
    assert payment.payment_result["id"] == "X"
    assert receipts == [payment.id]


def test_paid_missing_payment(ctx):
    with pytest.raises(NotFoundError):
        payment_service.update_payment_to_paid(404)


def test_receipt_failure_does_not_propagate(pending_payment, monkeypatch):
    def broken(payment):
        raise RuntimeError("smtp down")

    monkeypatch.setattr(payment_service, "send_purchase_receipt", broken)
    payment = payment_service.update_payment_to_paid(pending_payment.id)
    assert payment.is_paid


def test_receipt_email_renders(pending_payment):
    assert send_purchase_receipt(pending_payment) is True


def test_cod_requires_admin(pending_payment, receipts):
    result = payment_service.update_cod_payment_to_paid(pending_payment.id)
    assert not result["success"]
    assert db.session.get(Payment, pending_payment.id).is_paid is False


def test_admin_confirms_cod_once(pending_payment, receipts, login, admin):
    login(admin)
    assert payment_service.update_cod_payment_to_paid(pending_payment.id) == {
        "success": True, "message": "Payment marked as paid",
    }
    assert payment_service.update_cod_payment_to_paid(pending_payment.id) == {
        "success": False, "message": "Payment is already paid",
    }
    assert receipts == [pending_payment.id]


# -----------------
# PayPal
# -----------------

def test_paypal_order_and_capture(pending_payment, paypal, receipts):
    created = payment_service.create_paypal_payment(pending_payment.id, gateway=paypal)
    assert created == {"success": True, "message": "Item order created successfully", "data": "ORDER-1"}
    assert paypal.created == [Decimal("121.00")]

    approved = payment_service.approve_paypal_payment(
        pending_payment.id, {"payment_id": "ORDER-1"}, gateway=paypal
    )
    assert approved == {"success": True, "message": "Your payment has been approved"}

    payment = db.session.get(Payment, pending_payment.id)
    assert payment.is_paid
    assert payment.payment_result["status"] == "COMPLETED"
    assert payment.payment_result["email_address"] == "buyer@example.com"
    assert payment.payment_result["amount"] == "121.00"
    assert receipts == [payment.id]


def test_paypal_capture_id_mismatch(pending_payment, receipts):
    gateway = FakePayPal(order_id="ORDER-1", capture_id="SOMETHING-ELSE")
    payment_service.create_paypal_payment(pending_payment.id, gateway=gateway)
    result = payment_service.approve_paypal_payment(
        pending_payment.id, {"payment_id": "ORDER-1"}, gateway=gateway
    )
    assert result == {"success": False, "message": "Error in PayPal payment"}
    assert db.session.get(Payment, pending_payment.id).is_paid is False
    assert receipts == []


def test_paypal_capture_not_completed(pending_payment, receipts):
    gateway = FakePayPal(capture_status="PENDING")
    payment_service.create_paypal_payment(pending_payment.id, gateway=gateway)
    result = payment_service.approve_paypal_payment(
        pending_payment.id, {"payment_id": "ORDER-1"}, gateway=gateway
    )
    assert result == {"success": False, "message": "Error in PayPal payment"}
    assert db.session.get(Payment, pending_payment.id).is_paid is False


# -----------------
# Reads
# -----------------

def test_my_payments_and_summaries(pending_payment, client_user, contractor):
    page = payment_service.get_my_payments(page=1)
    assert [p.id for p in page.items] == [pending_payment.id]

    summary = payment_service.get_payment_summary_for_client(client_user.id)
    assert summary["count"] == 1
    assert summary["total_amount"] == Decimal("121.00")
    assert len(summary["monthly"]) == 1

    assert payment_service.get_payment_summary_for_contractor(contractor.id)["count"] == 1
    assert payment_service.get_payment_summary_for_contractor(client_user.id)["count"] == 0
