from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..utils.constants import InvoiceStatus
from ..utils.filters import fmt_iso, utc_now
from ..utils.money import ZERO, money_str


@dataclass
class Invoice:
    """
    Bill for exactly one completed rental order.

    Amount invariants (kept by InvoiceGenerator / PaymentLedger):
      tax_amount       = (sub_total - discount_amount) * tax_rate / 100
      total_amount     = sub_total - discount_amount + tax_amount
      remaining_amount = total_amount - paid_amount, 0 <= paid_amount <= total_amount
    """
    invoice_id: int
    invoice_number: str
    rental_order_id: int
    customer_id: int
    invoice_date: date
    due_date: date
    sub_total: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal = ZERO
    remaining_amount: Decimal = ZERO
    status: str = InvoiceStatus.UNPAID
    notes: Optional[str] = None
    created_date: datetime = field(default_factory=utc_now)
    created_by: Optional[str] = None
    modified_date: Optional[datetime] = None
    modified_by: Optional[str] = None

    def effective_status(self, today: date) -> str:
        """Stored status, or Overdue when past due with a balance left."""
        if (
            self.status in InvoiceStatus.EDITABLE
            and self.remaining_amount > ZERO
            and self.due_date < today
        ):
            return InvoiceStatus.OVERDUE
        return self.status

    def to_dict(self, today: Optional[date] = None, details=None) -> dict:
        data = {
            "id": self.invoice_id,
            "invoiceNumber": self.invoice_number,
            "rentalOrderId": self.rental_order_id,
            "customerId": self.customer_id,
            "invoiceDate": fmt_iso(self.invoice_date),
            "dueDate": fmt_iso(self.due_date),
            "subTotal": money_str(self.sub_total),
            "taxRate": str(self.tax_rate),
            "taxAmount": money_str(self.tax_amount),
            "discountAmount": money_str(self.discount_amount),
            "totalAmount": money_str(self.total_amount),
            "paidAmount": money_str(self.paid_amount),
            "remainingAmount": money_str(self.remaining_amount),
            "status": self.effective_status(today) if today else self.status,
            "notes": self.notes,
            "createdDate": fmt_iso(self.created_date),
            "createdBy": self.created_by,
            "modifiedDate": fmt_iso(self.modified_date),
            "modifiedBy": self.modified_by,
        }
        if details is not None:
            data["invoiceDetails"] = [d.to_dict() for d in details]
        return data


@dataclass(frozen=True)
class InvoiceDetail:
    """Line item written at generation time; immutable afterwards."""
    detail_id: int
    invoice_id: int
    description: str
    quantity: int
    unit_price: Decimal
    amount: Decimal
    sort_order: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.detail_id,
            "invoiceId": self.invoice_id,
            "description": self.description,
            "quantity": self.quantity,
            "unitPrice": money_str(self.unit_price),
            "amount": money_str(self.amount),
            "sortOrder": self.sort_order,
        }


@dataclass(frozen=True)
class Payment:
    """Append-only money received against an invoice."""
    payment_id: int
    payment_number: str
    invoice_id: int
    payment_date: date
    amount: Decimal
    payment_method: str  # "Cash" | "BankTransfer" | "CreditCard"
    bank_account: Optional[str] = None
    transaction_code: Optional[str] = None
    notes: Optional[str] = None
    created_date: datetime = field(default_factory=utc_now)
    created_by: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.payment_id,
            "paymentNumber": self.payment_number,
            "invoiceId": self.invoice_id,
            "paymentDate": fmt_iso(self.payment_date),
            "amount": money_str(self.amount),
            "paymentMethod": self.payment_method,
            "bankAccount": self.bank_account,
            "transactionCode": self.transaction_code,
            "notes": self.notes,
            "createdDate": fmt_iso(self.created_date),
            "createdBy": self.created_by,
        }
