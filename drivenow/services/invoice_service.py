"""Invoice generation from completed rentals, and invoice maintenance."""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from drivenow.exceptions import (
    DuplicateInvoiceError,
    InvoiceClosedError,
    InvoiceNotFoundError,
    ValidationError,
)
from drivenow.models.invoice import Invoice, InvoiceDetail, Payment
from drivenow.models.store import IntegrityError, UnitOfWork
from drivenow.services.common import as_date, next_document_number, paginate
from drivenow.services.rental_service import RentalOrderService
from drivenow.services.vehicle_service import VehicleAvailabilityGuard
from drivenow.utils.constants import INVOICE_NUMBER_PREFIX, InvoiceStatus
from drivenow.utils.filters import fmt_local_date, local_today, utc_now
from drivenow.utils.money import HUNDRED, ZERO, has_cents_precision, round_money

logger = logging.getLogger(__name__)

DEFAULT_TAX_RATE = Decimal("10")
DEFAULT_DUE_DAYS = 7

INVOICE_SORT_KEYS = {
    "invoicenumber": lambda i: i.invoice_number,
    "invoicedate": lambda i: i.invoice_date,
    "totalamount": lambda i: i.total_amount,
}


def compute_amounts(sub_total: Decimal, discount: Decimal, tax_rate: Decimal) -> tuple[Decimal, Decimal]:
    """
    Return (tax_amount, total_amount) for an invoice.
    Tax applies to the post-discount subtotal; only the total is rounded and
    the tax is derived from it, so total = sub_total - discount + tax exactly.
    """
    net = sub_total - discount
    total = round_money(net + net * tax_rate / HUNDRED)
    return total - net, total


def settlement_status(invoice: Invoice) -> str:
    """Unpaid / Partial / Paid from the paid and remaining amounts."""
    if invoice.remaining_amount <= ZERO:
        return InvoiceStatus.PAID
    if invoice.paid_amount > ZERO:
        return InvoiceStatus.PARTIAL
    return InvoiceStatus.UNPAID


def _check_tax_rate(tax_rate: Decimal):
    if tax_rate < ZERO or tax_rate > HUNDRED:
        raise ValidationError(errors={"taxRate": "Tax rate must be between 0 and 100"})


def _check_dates(invoice_date: date, due_date: date):
    if due_date < invoice_date:
        raise ValidationError(errors={"dueDate": "Due date must not be before the invoice date"})


class InvoiceGenerator:
    """Materialises the one invoice of a Completed rental order."""

    @staticmethod
    def generate(
            uow: UnitOfWork,
            rental_order_id,
            *,
            invoice_date: Optional[date] = None,
            due_date: Optional[date] = None,
            tax_rate: Optional[Decimal] = None,
            notes: Optional[str] = None,
            actor: Optional[str] = None,
            due_days: int = DEFAULT_DUE_DAYS,
            tz_name: Optional[str] = None,
    ) -> Invoice:
        """
        Completed -> Invoiced. Writes the invoice, one summary detail line
        and moves the order on. A second call for the same order raises
        DuplicateInvoiceError.
        """
        order = RentalOrderService.get(uow, rental_order_id)
        if InvoiceService.for_order(uow, order.order_id) is not None:
            raise DuplicateInvoiceError(
                f"Error: an invoice already exists for rental order {order.order_number}")
        RentalOrderService.ensure_can_invoice(order)

        invoice_date = as_date(invoice_date) if invoice_date else local_today(tz_name)
        due_date = as_date(due_date) if due_date else invoice_date + timedelta(days=due_days)
        tax_rate = DEFAULT_TAX_RATE if tax_rate is None else tax_rate
        _check_tax_rate(tax_rate)
        _check_dates(invoice_date, due_date)

        tax_amount, total = compute_amounts(order.sub_total, order.discount_amount, tax_rate)
        invoice = Invoice(
            invoice_id=uow.next_id("invoices"),
            invoice_number=next_document_number(
                uow, "invoices", "invoice_number", INVOICE_NUMBER_PREFIX, invoice_date),
            rental_order_id=order.order_id,
            customer_id=order.customer_id,
            invoice_date=invoice_date,
            due_date=due_date,
            sub_total=order.sub_total,
            tax_rate=tax_rate,
            tax_amount=tax_amount,
            discount_amount=order.discount_amount,
            total_amount=total,
            paid_amount=ZERO,
            remaining_amount=total,
            status=InvoiceStatus.UNPAID,
            notes=notes,
            created_by=actor,
        )
        try:
            uow.add("invoices", invoice)
        except IntegrityError as e:
            if e.column == "rental_order_id":
                raise DuplicateInvoiceError(
                    f"Error: an invoice already exists for rental order {order.order_number}") from e
            raise

        vehicle = VehicleAvailabilityGuard.get_vehicle(uow, order.vehicle_id)
        uow.add("invoice_details", InvoiceDetail(
            detail_id=uow.next_id("invoice_details"),
            invoice_id=invoice.invoice_id,
            description=(
                f"Rental of vehicle {vehicle.code} from {fmt_local_date(order.start_date, tz_name)} "
                f"to {fmt_local_date(order.end_date, tz_name)}"
            ),
            quantity=order.total_days,
            unit_price=order.daily_rental_price,
            amount=order.sub_total,
            sort_order=0,
        ))

        RentalOrderService.mark_invoiced(
            uow, order, actor=actor, notes=f"Invoice {invoice.invoice_number} issued")
        logger.info("Invoice %s issued for %s (total %s)",
                    invoice.invoice_number, order.order_number, invoice.total_amount)
        return invoice


class InvoiceService:
    """Invoice reads, edits while open, and voiding."""

    @staticmethod
    def get(uow: UnitOfWork, invoice_id) -> Invoice:
        inv = uow.get("invoices", invoice_id)
        if inv is None:
            raise InvoiceNotFoundError(f"Error: invoice with ID '{invoice_id}' not found")
        return inv

    @staticmethod
    def list_invoices(uow: UnitOfWork, today: date, *, status: Optional[str] = None,
                      search: Optional[str] = None, sort_by: Optional[str] = None,
                      descending: bool = False, page: int = 1,
                      page_size: int = 20) -> tuple[list[Invoice], int]:
        """
        Paged invoice list. `status` is compared with the status as of
        `today`, so Overdue filters work although Overdue is never stored.
        `search` matches invoice number, order number or customer name.
        """
        rows = uow.query("invoices")
        if status:
            rows = [i for i in rows if i.effective_status(today) == status.strip()]

        kw = (search or "").strip().lower()
        if kw:
            def match(i):
                order = uow.get("rental_orders", i.rental_order_id)
                customer = uow.get("customers", i.customer_id)
                return (
                    kw in i.invoice_number.lower()
                    or (order is not None and kw in order.order_number.lower())
                    or (customer is not None and kw in customer.full_name.lower())
                )

            rows = [i for i in rows if match(i)]

        key = INVOICE_SORT_KEYS.get((sort_by or "").lower())
        if key is None:
            rows.sort(key=lambda i: (i.created_date, i.invoice_id), reverse=True)
        else:
            rows.sort(key=key, reverse=descending)
        return paginate(rows, page, page_size)

    @staticmethod
    def for_order(uow: UnitOfWork, rental_order_id: int) -> Optional[Invoice]:
        return uow.find_one("invoices", lambda i: i.rental_order_id == rental_order_id)

    @staticmethod
    def details(uow: UnitOfWork, invoice_id: int) -> list[InvoiceDetail]:
        rows = uow.query("invoice_details", lambda d: d.invoice_id == invoice_id)
        rows.sort(key=lambda d: (d.sort_order, d.detail_id))
        return rows

    @staticmethod
    def payments(uow: UnitOfWork, invoice_id) -> list[Payment]:
        """Payments of an invoice, newest first."""
        inv = InvoiceService.get(uow, invoice_id)
        rows = uow.query("payments", lambda p: p.invoice_id == inv.invoice_id)
        rows.sort(key=lambda p: (p.payment_date, p.payment_id), reverse=True)
        return rows

    @staticmethod
    def update(
            uow: UnitOfWork,
            invoice_id,
            *,
            tax_rate: Optional[Decimal] = None,
            discount_amount: Optional[Decimal] = None,
            notes: Optional[str] = None,
            invoice_date: Optional[date] = None,
            due_date: Optional[date] = None,
            actor: Optional[str] = None,
    ) -> Invoice:
        """
        Edit tax rate, discount, dates or notes while Unpaid/Partial, then
        recompute tax, total, remaining amount and status. The total may not
        drop below what has already been paid.
        """
        inv = InvoiceService.get(uow, invoice_id)
        if inv.status not in InvoiceStatus.EDITABLE:
            raise InvoiceClosedError(f"Error: invoice {inv.invoice_number} is {inv.status}")

        tax_rate = inv.tax_rate if tax_rate is None else tax_rate
        discount = inv.discount_amount if discount_amount is None else discount_amount
        new_invoice_date = as_date(invoice_date) if invoice_date else inv.invoice_date
        new_due_date = as_date(due_date) if due_date else inv.due_date

        _check_tax_rate(tax_rate)
        _check_dates(new_invoice_date, new_due_date)
        if discount < ZERO or discount > inv.sub_total:
            raise ValidationError(errors={"discountAmount": "Discount must be between 0 and the subtotal"})
        if not has_cents_precision(discount):
            raise ValidationError(errors={"discountAmount": "At most two decimal places"})

        tax_amount, total = compute_amounts(inv.sub_total, discount, tax_rate)
        if total < inv.paid_amount:
            raise ValidationError(
                f"Error: invoice total {total} would drop below the paid amount {inv.paid_amount}",
                errors={"discountAmount": "Invoice total cannot drop below the amount already paid"},
            )

        inv.tax_rate = tax_rate
        inv.discount_amount = discount
        inv.tax_amount = tax_amount
        inv.total_amount = total
        inv.remaining_amount = total - inv.paid_amount
        inv.status = settlement_status(inv)
        inv.invoice_date = new_invoice_date
        inv.due_date = new_due_date
        if notes is not None:
            inv.notes = notes
        inv.modified_date = utc_now()
        inv.modified_by = actor
        return inv

    @staticmethod
    def cancel(uow: UnitOfWork, invoice_id, *, reason: Optional[str] = None,
               actor: Optional[str] = None) -> Invoice:
        """Void an invoice that has received no payment. The order stays Invoiced."""
        inv = InvoiceService.get(uow, invoice_id)
        if inv.status != InvoiceStatus.UNPAID or inv.paid_amount > ZERO:
            raise InvoiceClosedError(
                f"Error: only unpaid invoices can be cancelled ({inv.invoice_number} is {inv.status})")
        inv.status = InvoiceStatus.CANCELLED
        if reason:
            inv.notes = reason
        inv.modified_date = utc_now()
        inv.modified_by = actor
        logger.info("Invoice %s cancelled", inv.invoice_number)
        return inv

    @staticmethod
    def overdue(uow: UnitOfWork, today: date) -> list[Invoice]:
        """Open invoices past their due date with money still owed."""
        rows = uow.query(
            "invoices", lambda i: i.effective_status(today) == InvoiceStatus.OVERDUE)
        rows.sort(key=lambda i: (i.due_date, i.invoice_id))
        return rows
