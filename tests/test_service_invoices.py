"""
Invoice generation from completed rentals, edits while open, voiding, and
the derived Overdue status.
"""

from datetime import date
from decimal import Decimal

import pytest

from drivenow.exceptions import (
    DuplicateInvoiceError,
    InvalidTransitionError,
    InvoiceClosedError,
    ValidationError,
)
from drivenow.services.invoice_service import InvoiceService, compute_amounts
from drivenow.utils.constants import InvoiceStatus


def test_tax_applies_after_discount(flow, store):
    """SubTotal 1,500,000 - discount 150,000 at 10% tax -> 135,000 tax, 1,485,000 total."""
    invoice_id = flow.invoice(flow.completed("SAVE10"), tax_rate=Decimal("10"))
    inv = flow.read("invoices", invoice_id)

    assert inv.sub_total == Decimal("1500000")
    assert inv.discount_amount == Decimal("150000")
    assert inv.tax_amount == Decimal("135000")
    assert inv.total_amount == Decimal("1485000")
    assert inv.remaining_amount == inv.total_amount
    assert inv.status == InvoiceStatus.UNPAID
    assert inv.invoice_number == "HD20300605001"


def test_detail_line_describes_rental(flow, store):
    invoice_id = flow.invoice(flow.completed())
    with store.transaction() as uow:
        (line,) = InvoiceService.details(uow, invoice_id)
    assert line.quantity == 3
    assert line.unit_price == Decimal("500000")
    assert line.amount == Decimal("1500000")
    assert line.description == "Rental of vehicle 51A-123.45 from 01/06/2030 to 04/06/2030"


def test_only_completed_orders_can_be_invoiced(flow):
    order_id = flow.create()
    flow.step("confirm", order_id)
    with pytest.raises(InvalidTransitionError):
        flow.invoice(order_id)


def test_second_invoice_for_same_order_is_rejected(flow, store):
    order_id = flow.completed()
    flow.invoice(order_id)
    with pytest.raises(DuplicateInvoiceError):
        flow.invoice(order_id)
    with store.transaction() as uow:
        assert len(uow.query("invoices")) == 1


def test_due_date_before_invoice_date_is_rejected(flow):
    order_id = flow.completed()
    with pytest.raises(ValidationError):
        flow.invoice(order_id, invoice_date=date(2030, 6, 10), due_date=date(2030, 6, 9))
    # nothing was written; the order can still be invoiced
    flow.invoice(order_id)


def test_rounding_keeps_components_consistent():
    tax, total = compute_amounts(Decimal("100.005"), Decimal("0"), Decimal("10"))
    assert total == Decimal("110.01")
    assert Decimal("100.005") + tax == total


def test_update_recomputes_amounts(flow, store):
    invoice_id = flow.invoice(flow.completed())
    flow.pay(invoice_id, "500000")

    with store.transaction() as uow:
        InvoiceService.update(uow, invoice_id, tax_rate=Decimal("8"), notes="VAT 8%")
        uow.commit()
    inv = flow.read("invoices", invoice_id)
    assert inv.total_amount == Decimal("1620000")
    assert inv.remaining_amount == Decimal("1120000")
    assert inv.status == InvoiceStatus.PARTIAL
    assert inv.notes == "VAT 8%"


def test_update_cannot_drop_total_below_paid(flow, store):
    invoice_id = flow.invoice(flow.completed())
    flow.pay(invoice_id, "1600000")
    with store.transaction() as uow:
        with pytest.raises(ValidationError):
            InvoiceService.update(uow, invoice_id, discount_amount=Decimal("500000"))


def test_paid_invoice_is_closed_for_edits(flow, store):
    invoice_id = flow.invoice(flow.completed())
    flow.pay(invoice_id, "1650000")
    with store.transaction() as uow:
        with pytest.raises(InvoiceClosedError):
            InvoiceService.update(uow, invoice_id, notes="late edit")


def test_cancel_only_unpaid(flow, store):
    paid_one = flow.invoice(flow.completed())
    flow.pay(paid_one, "100000")
    with store.transaction() as uow:
        with pytest.raises(InvoiceClosedError):
            InvoiceService.cancel(uow, paid_one)

    vehicle_id = store.create_vehicle({"code": "51G-678.90", "model": "Honda City",
                                       "daily_rental_price": "550000"}).vehicle_id
    order_id = flow.create(vehicle_id=vehicle_id)
    for name in ("confirm", "start", "complete"):
        flow.step(name, order_id)
    unpaid = flow.invoice(order_id)
    with store.transaction() as uow:
        InvoiceService.cancel(uow, unpaid, reason="Issued to wrong customer")
        uow.commit()
    assert flow.read("invoices", unpaid).status == InvoiceStatus.CANCELLED


def test_overdue_is_derived_not_stored(flow, store):
    invoice_id = flow.invoice(flow.completed(), due_date=date(2030, 6, 12))
    inv = flow.read("invoices", invoice_id)

    assert inv.effective_status(date(2030, 6, 12)) == InvoiceStatus.UNPAID
    assert inv.effective_status(date(2030, 6, 13)) == InvoiceStatus.OVERDUE
    assert inv.status == InvoiceStatus.UNPAID
    with store.transaction() as uow:
        assert [i.invoice_id for i in InvoiceService.overdue(uow, date(2030, 6, 13))] == [invoice_id]
        assert InvoiceService.overdue(uow, date(2030, 6, 12)) == []
