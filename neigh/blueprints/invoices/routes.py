# neigh/blueprints/invoices/routes.py
from io import BytesIO

from flask import abort, send_file
from flask_login import current_user, login_required

from ...errors import ok
from ...services import invoice_service
from ...services.pdf_service import render_invoice_pdf
from ..utils import notifier, payload, respond
from . import invoices_bp


def _visible_invoice(invoice_number: str):
    invoice = invoice_service.get_invoice_by_number(invoice_number)
    if invoice is None:
        abort(404)
    if not invoice_service.can_view_invoice(current_user, invoice):
        abort(403)
    return invoice


@invoices_bp.route("/", methods=["POST"])
@login_required
def create_invoice():
    result = invoice_service.create_invoice(payload(), notifier=notifier())
    return respond(result, 201 if result["success"] else None)


@invoices_bp.route("/<int:invoice_id>", methods=["PUT", "PATCH"])
@login_required
def update_invoice(invoice_id):
    data = payload()
    data["id"] = invoice_id
    return respond(invoice_service.update_invoice(data))


@invoices_bp.route("/incoming", methods=["GET"])
@login_required
def incoming():
    return respond(ok("Incoming invoices", invoice_service.get_incoming_invoices(current_user.id)))


@invoices_bp.route("/outgoing", methods=["GET"])
@login_required
def outgoing():
    return respond(ok("Outgoing invoices", invoice_service.get_outgoing_invoices(current_user.id)))


@invoices_bp.route("/<invoice_number>", methods=["GET"])
@login_required
def invoice_detail(invoice_number):
    return respond(ok("Invoice found", _visible_invoice(invoice_number)))


@invoices_bp.route("/<invoice_number>/download", methods=["GET"])
@login_required
def download(invoice_number):
    invoice = _visible_invoice(invoice_number)
    pdf_bytes = render_invoice_pdf(invoice)
    return send_file(
        BytesIO(pdf_bytes),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"{invoice.invoice_number}.pdf",
    )
