from flask import Blueprint, request

from ..exceptions import ValidationError
from ..services.invoice_service import InvoiceService
from ..services.payment_service import PaymentLedger
from ..utils.constants import PaymentMethod, Role
from ..utils.context import business_today, business_tz, current_store
from ..utils.decorators import current_actor, login_required, role_required
from ..utils.payload import Payload, list_args
from ..utils.responses import ok, paged

bp = Blueprint("payments", __name__, url_prefix="/Payments")


@bp.post("")
@role_required(Role.ADMIN, Role.ACCOUNTANT)
def create_payment():
    p = Payload.from_request()
    invoice_id = p.get_int("invoiceId", required=True)
    amount = p.get_decimal("amount", required=True)
    method = p.get_str("paymentMethod", required=True)
    fields = {
        "payment_date": p.get_date("paymentDate"),
        "bank_account": p.get_str("bankAccount"),
        "transaction_code": p.get_str("transactionCode"),
        "notes": p.get_str("notes"),
    }
    p.validate()

    with current_store().transaction() as uow:
        payment = PaymentLedger.apply(
            uow,
            invoice_id,
            amount=amount,
            payment_method=method,
            actor=current_actor(),
            tz_name=business_tz(),
            **fields,
        )
        uow.commit()
        invoice = InvoiceService.get(uow, payment.invoice_id)
        return ok({
            "payment": payment.to_dict(),
            "invoice": invoice.to_dict(business_today()),
        }, 201)


@bp.get("/<int:payment_id>")
@login_required
def get_payment(payment_id):
    with current_store().reading() as uow:
        return ok(PaymentLedger.get(uow, payment_id).to_dict())


@bp.get("")
@login_required
def list_payments():
    """Paged list: ?invoiceId=&paymentMethod= plus the common list args."""
    invoice_id = request.args.get("invoiceId", type=int)
    method = (request.args.get("paymentMethod") or "").strip() or None
    if method and method not in PaymentMethod.ALL:
        raise ValidationError(
            errors={"paymentMethod": f"Payment method must be one of {', '.join(PaymentMethod.ALL)}"})
    paging = list_args()

    with current_store().reading() as uow:
        rows, total = PaymentLedger.list_payments(
            uow, invoice_id=invoice_id, payment_method=method, **paging)
        return ok(paged(rows, total, paging, lambda p: p.to_dict()))
