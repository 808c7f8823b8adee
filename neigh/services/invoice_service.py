# neigh/services/invoice_service.py
"""
Invoice creation and maintenance.

An invoice is written in two steps: the Invoice row (with its computed
total) is committed first, then each line item is added. Every item must
resolve to a TaskAssignment between the invoice's client and contractor;
nothing is persisted when one does not.
"""
from __future__ import annotations

import logging
import secrets
import time
from decimal import Decimal

from sqlalchemy.orm import joinedload

from ..errors import (
    NotFoundError,
    ConflictError,
    UnauthorizedError,
    ValidationError,
    fail,
    first_form_error,
    format_error,
    ok,
)
from ..extensions import db
from ..forms import InvoiceForm, InvoiceUpdateForm
from ..models.assignment import TaskAssignment
from ..models.invoice import Invoice, InvoiceItem
from ..security import require_user
from .cart_service import recompute_cart_total
from .totals import calc_total, configured_tax_rate

log = logging.getLogger(__name__)

DEFAULT_ITEM_NAME = "Service"
ADDITIONAL_ITEM_NAME = "Service (Additional Invoice)"


def generate_invoice_number() -> str:
    return f"INV-{int(time.time() * 1000)}-{secrets.token_hex(3).upper()}"


def _normalize_items(items) -> list[dict]:
    """Accept the legacy ``qty`` key as an alias of ``quantity``."""
    out = []
    for item in items or []:
        item = dict(item)
        if item.get("quantity") is None and item.get("qty") is not None:
            item["quantity"] = item.pop("qty")
        out.append(item)
    return out


def _resolve_assignment(task_id, client_id: int, contractor_id: int) -> TaskAssignment | None:
    qry = TaskAssignment.query.filter_by(client_id=client_id, contractor_id=contractor_id)
    if task_id:
        qry = qry.filter_by(task_id=task_id)
    return qry.order_by(TaskAssignment.id).first()


def _notify_created(invoice: Invoice, notifier, sender_id: int) -> None:
    assignment_ids = sorted({item.assignment_id for item in invoice.items if item.assignment_id})
    for aid in assignment_ids:
        try:
            notifier.notify(
                aid,
                f"Invoice {invoice.invoice_number} for {invoice.total_price:.2f} has been created.",
                "invoice-created",
                sender_id=sender_id,
                metadata={"invoice_id": invoice.id, "invoice_number": invoice.invoice_number},
            )
        except Exception as e:
            db.session.rollback()
            log.warning("invoice-created notification failed for assignment %s: %s", aid, e)


def create_invoice(data: dict, notifier=None) -> dict:
    try:
        user = require_user()
        data = dict(data or {})
        data["items"] = _normalize_items(data.get("items"))
        form = InvoiceForm(data=data)
        if not form.validate():
            raise ValidationError(first_form_error(form.errors))
        if not form.items.entries:
            raise ValidationError("Invoice must have at least one item")

        client_id = form.client_id.data
        contractor_id = form.contractor_id.data
        if user.id != contractor_id and not user.is_admin:
            raise UnauthorizedError("Only the contractor can issue this invoice")
        if client_id == contractor_id:
            raise ValidationError("Client and contractor must be different users")

        lines = []
        for entry in form.items.entries:
            item = entry.data
            assignment = _resolve_assignment(item.get("task_id"), client_id, contractor_id)
            if assignment is None:
                if item.get("task_id"):
                    raise NotFoundError(
                        f"No task assignment found for task {item['task_id']} "
                        f"between this client and contractor"
                    )
                raise NotFoundError("No task assignment found between this client and contractor")
            lines.append((item, assignment))

        totals = calc_total([item for item, _ in lines], configured_tax_rate())
        invoice = Invoice(
            invoice_number=generate_invoice_number(),
            client_id=client_id,
            contractor_id=contractor_id,
            total_price=Decimal(totals["total"]),
        )
        db.session.add(invoice)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return fail(format_error(e))

    try:
        for item, assignment in lines:
            name = DEFAULT_ITEM_NAME
            previous = (InvoiceItem.query
                        .filter(InvoiceItem.assignment_id == assignment.id,
                                InvoiceItem.invoice_id != invoice.id)
                        .first())
            if previous is not None:
                log.warning(
                    "Creating additional invoice for task assignment %s already invoiced in %s",
                    assignment.id, previous.invoice.invoice_number,
                )
                name = ADDITIONAL_ITEM_NAME
            db.session.add(InvoiceItem(
                invoice_id=invoice.id,
                task_id=assignment.task_id,
                assignment_id=assignment.id,
                name=name,
                quantity=item.get("quantity") or 1,
                price=item["price"],
                hours=1,
            ))
            db.session.flush()
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return fail(format_error(e))

    db.session.refresh(invoice)
    log.info("Invoice %s created by user %s (total %s)", invoice.invoice_number, user.id, invoice.total_price)
    if notifier is not None:
        _notify_created(invoice, notifier, user.id)
    return ok("Invoice created successfully", invoice)


def update_invoice(data: dict) -> dict:
    """Recompute ``total_price`` from the submitted items. Item rows are left as they are."""
    try:
        user = require_user()
        data = dict(data or {})
        data["items"] = _normalize_items(data.get("items"))
        form = InvoiceUpdateForm(data=data)
        if not form.validate():
            raise ValidationError(first_form_error(form.errors))

        invoice = db.session.get(Invoice, form.id.data)
        if invoice is None:
            raise NotFoundError("Invoice not found")
        if invoice.contractor_id != user.id and not user.is_admin:
            raise UnauthorizedError("Only the contractor can update this invoice")
        if invoice.is_paid:
            raise ConflictError("Paid invoices cannot be changed")
        if invoice.payment_id is not None:
            raise ConflictError("Invoices submitted for payment cannot be changed")

        totals = calc_total([entry.data for entry in form.items.entries], configured_tax_rate())
        invoice.total_price = Decimal(totals["total"])
        if invoice.cart is not None:
            recompute_cart_total(invoice.cart)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return fail(format_error(e))
    return ok("Invoice updated successfully", invoice)


def get_invoice_by_number(invoice_number: str) -> Invoice | None:
    return (Invoice.query
            .options(joinedload(Invoice.client), joinedload(Invoice.contractor))
            .filter(Invoice.invoice_number == invoice_number)
            .first())


def get_incoming_invoices(user_id: int) -> list[Invoice]:
    """Invoices addressed to ``user_id`` as client, newest first."""
    return (Invoice.query
            .options(joinedload(Invoice.contractor))
            .filter(Invoice.client_id == user_id)
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .all())


def get_outgoing_invoices(user_id: int) -> list[Invoice]:
    """Invoices issued by ``user_id`` as contractor, newest first."""
    return (Invoice.query
            .options(joinedload(Invoice.client))
            .filter(Invoice.contractor_id == user_id)
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .all())


def can_view_invoice(user, invoice: Invoice) -> bool:
    return user.is_admin or user.id in (invoice.client_id, invoice.contractor_id)
