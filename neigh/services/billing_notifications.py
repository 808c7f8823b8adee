# neigh/services/billing_notifications.py
from flask import current_app

from .email_service import send_email
from .pdf_service import try_render_invoice_pdf


def send_purchase_receipt(payment) -> bool:
    user = payment.user
    if user is None or not user.email:
        return False

    attachments = []
    for invoice in payment.invoices:
        pdf_bytes = try_render_invoice_pdf(invoice)
        if pdf_bytes:
            # (filename, bytes, mimetype)
            attachments.append((f"{invoice.invoice_number}.pdf", pdf_bytes, "application/pdf"))

    result = payment.payment_result or {}
    return bool(send_email(
        to=user.email,
        subject=f"Payment received - Order #{payment.id}",
        template="purchase_receipt.html",
        payment=payment,
        user=user,
        invoices=payment.invoices,
        reference=result.get("id") or "",
        currency=current_app.config.get("CURRENCY", "USD"),
        attachments=attachments or None,
    ))
