from flask import Blueprint, current_app

from ..services.invoice_service import InvoiceGenerator, InvoiceService
from ..utils.constants import InvoiceStatus, Role
from ..utils.context import business_today, business_tz, current_store, default_tax_rate
from ..utils.decorators import current_actor, login_required, role_required
from ..utils.payload import Payload, list_args, status_arg
from ..utils.responses import ok, paged

bp = Blueprint("invoices", __name__, url_prefix="/Invoices")

BILLING = (Role.ADMIN, Role.ACCOUNTANT)


def issue_invoice(order_id, p: Payload):
    """Shared by POST /Invoices/from-rental and POST /RentalOrders/<id>/create-invoice."""
    invoice_date = p.get_date("invoiceDate")
    due_date = p.get_date("dueDate")
    tax_rate = p.get_decimal("taxRate")
    notes = p.get_str("notes")
    p.validate()

    with current_store().transaction() as uow:
        invoice = InvoiceGenerator.generate(
            uow,
            order_id,
            invoice_date=invoice_date,
            due_date=due_date,
            tax_rate=default_tax_rate() if tax_rate is None else tax_rate,
            notes=notes,
            actor=current_actor(),
            due_days=current_app.config["DEFAULT_DUE_DAYS"],
            tz_name=business_tz(),
        )
        uow.commit()
        details = InvoiceService.details(uow, invoice.invoice_id)
        return ok(invoice.to_dict(business_today(), details), 201)


@bp.get("")
@login_required
def list_invoices():
    """Paged list: ?status= (Overdue included) plus the common list args."""
    status = status_arg(InvoiceStatus.ALL)
    paging = list_args()
    today = business_today()

    with current_store().reading() as uow:
        rows, total = InvoiceService.list_invoices(uow, today, status=status, **paging)
        return ok(paged(rows, total, paging, lambda i: i.to_dict(today)))


@bp.post("/from-rental")
@role_required(*BILLING)
def from_rental():
    p = Payload.from_request()
    order_id = p.get_int("rentalOrderId", required=True)
    return issue_invoice(order_id, p)


@bp.get("/<int:invoice_id>")
@login_required
def get_invoice(invoice_id):
    with current_store().reading() as uow:
        invoice = InvoiceService.get(uow, invoice_id)
        details = InvoiceService.details(uow, invoice.invoice_id)
        return ok(invoice.to_dict(business_today(), details))


@bp.put("/<int:invoice_id>")
@role_required(*BILLING)
def update_invoice(invoice_id):
    """Edit taxRate / discountAmount / notes (and dates) while Unpaid or Partial."""
    p = Payload.from_request()
    fields = {
        "tax_rate": p.get_decimal("taxRate"),
        "discount_amount": p.get_decimal("discountAmount"),
        "notes": p.get_str("notes"),
        "invoice_date": p.get_date("invoiceDate"),
        "due_date": p.get_date("dueDate"),
    }
    p.validate()

    with current_store().transaction() as uow:
        invoice = InvoiceService.update(uow, invoice_id, actor=current_actor(), **fields)
        uow.commit()
        return ok(invoice.to_dict(business_today()))


@bp.post("/<int:invoice_id>/cancel")
@role_required(*BILLING)
def cancel_invoice(invoice_id):
    p = Payload.from_request()
    reason = p.get_str("reason")
    p.validate()

    with current_store().transaction() as uow:
        invoice = InvoiceService.cancel(uow, invoice_id, reason=reason, actor=current_actor())
        uow.commit()
        return ok(invoice.to_dict(business_today()))


@bp.get("/<int:invoice_id>/payments")
@login_required
def invoice_payments(invoice_id):
    with current_store().reading() as uow:
        rows = InvoiceService.payments(uow, invoice_id)
        return ok([pmt.to_dict() for pmt in rows])
