# neigh/services/pdf_service.py
from __future__ import annotations

import logging
from io import BytesIO
from typing import Optional

from flask import current_app
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from .totals import calc_total, configured_tax_rate, item_quantity

log = logging.getLogger(__name__)


def render_invoice_pdf(invoice) -> bytes:
    """
    Single-page A4 invoice: header, parties, one row per item and the
    subtotal / tax / total block computed the same way as the stored total.
    """
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    W, H = A4
    left = 20 * mm
    right = W - 20 * mm

    y = H - 20 * mm
    c.setFont("Helvetica-Bold", 16)
    c.drawString(left, y, current_app.config.get("APP_NAME", "Neigh"))
    c.setFont("Helvetica", 11)
    c.drawString(left, y - 8 * mm, f"Invoice {invoice.invoice_number}")
    if invoice.created_at:
        c.drawRightString(right, y - 8 * mm, invoice.created_at.strftime("%Y-%m-%d"))

    y -= 20 * mm
    c.setFont("Helvetica", 10)

    def line(txt: str, x=left):
        nonlocal y
        c.drawString(x, y, txt)
        y -= 6 * mm

    if invoice.contractor:
        line(f"From: {invoice.contractor.name} ({invoice.contractor.email})")
    if invoice.client:
        line(f"Bill to: {invoice.client.name} ({invoice.client.email})")

    y -= 4 * mm
    c.setFont("Helvetica-Bold", 10)
    c.drawString(left, y, "Item")
    c.drawRightString(right - 50 * mm, y, "Qty")
    c.drawRightString(right - 25 * mm, y, "Price")
    c.drawRightString(right, y, "Amount")
    y -= 7 * mm
    c.setFont("Helvetica", 10)

    for item in invoice.items:
        if y < 40 * mm:
            c.showPage()
            c.setFont("Helvetica", 10)
            y = H - 20 * mm
        qty = item_quantity(item)
        label = item.name
        if item.task is not None:
            label = f"{item.name}: {item.task.name}"
        c.drawString(left, y, label[:70])
        c.drawRightString(right - 50 * mm, y, str(qty))
        c.drawRightString(right - 25 * mm, y, f"{item.price:.2f}")
        c.drawRightString(right, y, f"{item.price * qty:.2f}")
        y -= 6 * mm

    rate = configured_tax_rate()
    totals = calc_total(invoice.items, rate)
    y -= 4 * mm
    c.line(right - 70 * mm, y + 3 * mm, right, y + 3 * mm)
    for label, key in (("Subtotal", "subtotal"), (f"Tax ({rate * 100:.0f}%)", "tax"), ("Total", "total")):
        if key == "total":
            c.setFont("Helvetica-Bold", 10)
        c.drawRightString(right - 25 * mm, y, label)
        c.drawRightString(right, y, totals[key])
        y -= 6 * mm

    status = "PAID" if invoice.is_paid else "UNPAID"
    c.setFont("Helvetica-Bold", 12)
    c.drawString(left, y - 6 * mm, status)

    c.showPage()
    c.save()
    return buf.getvalue()


def try_render_invoice_pdf(invoice) -> Optional[bytes]:
    """Email attachments are optional; a broken PDF must not block the mail."""
    try:
        return render_invoice_pdf(invoice)
    except Exception as e:
        log.error("PDF: invoice %s render failed: %s", getattr(invoice, "invoice_number", "?"), e)
        return None
