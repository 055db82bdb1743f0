"""Payment application against invoices."""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from drivenow.exceptions import (
    InvoiceClosedError,
    OverpaymentNotAllowedError,
    PaymentNotFoundError,
    ValidationError,
)
from drivenow.models.invoice import Payment
from drivenow.models.store import UnitOfWork
from drivenow.services.common import as_date, next_document_number, paginate
from drivenow.services.invoice_service import InvoiceService, settlement_status
from drivenow.utils.constants import PAYMENT_NUMBER_PREFIX, InvoiceStatus, PaymentMethod
from drivenow.utils.filters import local_today, utc_now
from drivenow.utils.money import ZERO, has_cents_precision, in_money_range

logger = logging.getLogger(__name__)

PAYMENT_SORT_KEYS = {
    "paymentnumber": lambda p: p.payment_number,
    "paymentdate": lambda p: p.payment_date,
    "amount": lambda p: p.amount,
}


class PaymentLedger:
    """
    Append-only ledger of payments. Applying a payment and updating the
    invoice's paid/remaining/status happen in one unit of work, so two
    payments on the same invoice are serialised and the balance never goes
    negative. Payments are never edited or deleted.
    """

    @staticmethod
    def get(uow: UnitOfWork, payment_id) -> Payment:
        p = uow.get("payments", payment_id)
        if p is None:
            raise PaymentNotFoundError(f"Error: payment with ID '{payment_id}' not found")
        return p

    @staticmethod
    def list_payments(uow: UnitOfWork, *, invoice_id: Optional[int] = None,
                      payment_method: Optional[str] = None, search: Optional[str] = None,
                      sort_by: Optional[str] = None, descending: bool = False,
                      page: int = 1, page_size: int = 20) -> tuple[list[Payment], int]:
        """Paged payment list; `search` matches payment number, invoice number or customer name."""
        rows = uow.query("payments")
        if invoice_id is not None:
            rows = [p for p in rows if p.invoice_id == invoice_id]
        if payment_method:
            rows = [p for p in rows if p.payment_method == payment_method]

        kw = (search or "").strip().lower()
        if kw:
            def match(p):
                invoice = uow.get("invoices", p.invoice_id)
                if kw in p.payment_number.lower():
                    return True
                if invoice is None:
                    return False
                customer = uow.get("customers", invoice.customer_id)
                return (kw in invoice.invoice_number.lower()
                        or (customer is not None and kw in customer.full_name.lower()))

            rows = [p for p in rows if match(p)]

        key = PAYMENT_SORT_KEYS.get((sort_by or "").lower())
        if key is None:
            rows.sort(key=lambda p: (p.created_date, p.payment_id), reverse=True)
        else:
            rows.sort(key=key, reverse=descending)
        return paginate(rows, page, page_size)

    @staticmethod
    def apply(
            uow: UnitOfWork,
            invoice_id,
            *,
            amount: Decimal,
            payment_method: str,
            payment_date: Optional[date] = None,
            bank_account: Optional[str] = None,
            transaction_code: Optional[str] = None,
            notes: Optional[str] = None,
            actor: Optional[str] = None,
            tz_name: Optional[str] = None,
    ) -> Payment:
        # Validation first: nothing is touched until every check passed
        errors = {}
        if amount is None or amount <= ZERO:
            errors["amount"] = "Amount must be greater than 0"
        elif not in_money_range(amount):
            errors["amount"] = "Amount is too large"
        elif not has_cents_precision(amount):
            errors["amount"] = "Amount must have at most two decimal places"
        if payment_method not in PaymentMethod.ALL:
            errors["paymentMethod"] = f"Payment method must be one of {', '.join(PaymentMethod.ALL)}"
        if errors:
            raise ValidationError(errors=errors)

        invoice = InvoiceService.get(uow, invoice_id)
        if invoice.status == InvoiceStatus.CANCELLED:
            raise InvoiceClosedError(f"Error: invoice {invoice.invoice_number} is cancelled")
        if amount > invoice.remaining_amount:
            raise OverpaymentNotAllowedError(
                f"Error: payment {amount:,.2f} exceeds the remaining amount "
                f"{invoice.remaining_amount:,.2f} of invoice {invoice.invoice_number}")

        payment_date = as_date(payment_date) if payment_date else local_today(tz_name)
        payment = Payment(
            payment_id=uow.next_id("payments"),
            payment_number=next_document_number(
                uow, "payments", "payment_number", PAYMENT_NUMBER_PREFIX, local_today(tz_name)),
            invoice_id=invoice.invoice_id,
            payment_date=payment_date,
            amount=amount,
            payment_method=payment_method,
            bank_account=bank_account,
            transaction_code=transaction_code,
            notes=notes,
            created_by=actor,
        )
        uow.add("payments", payment)

        invoice.paid_amount += amount
        invoice.remaining_amount = invoice.total_amount - invoice.paid_amount
        invoice.status = settlement_status(invoice)
        invoice.modified_date = utc_now()
        invoice.modified_by = actor

        logger.info("Payment %s of %s on %s: paid %s, remaining %s, %s",
                    payment.payment_number, amount, invoice.invoice_number,
                    invoice.paid_amount, invoice.remaining_amount, invoice.status)
        return payment
