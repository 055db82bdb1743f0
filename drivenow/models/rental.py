from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..utils.constants import RentalStatus
from ..utils.filters import fmt_iso, utc_now
from ..utils.money import ZERO, money_str


@dataclass
class RentalOrder:
    """
    A rental from draft to invoiced/cancelled.

    Pricing fields are frozen once the order leaves Draft; afterwards only
    the status, the actual start/end dates, the return location and notes
    change. Related rows (customer, vehicle, invoice) are referenced by id.
    """
    order_id: int
    order_number: str
    customer_id: int
    vehicle_id: int
    employee_id: int
    start_date: date
    end_date: date
    pickup_location: str = ""
    return_location: str = ""
    daily_rental_price: Decimal = ZERO
    total_days: int = 1
    sub_total: Decimal = ZERO
    discount_amount: Decimal = ZERO
    promotion_code: Optional[str] = None
    total_amount: Decimal = ZERO
    deposit_amount: Decimal = ZERO
    status: str = RentalStatus.DRAFT
    notes: Optional[str] = None
    actual_start_date: Optional[datetime] = None
    actual_end_date: Optional[datetime] = None
    promotion_consumed: bool = False
    is_deleted: bool = False
    created_date: datetime = field(default_factory=utc_now)
    created_by: Optional[str] = None
    modified_date: Optional[datetime] = None
    modified_by: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.order_id,
            "orderNumber": self.order_number,
            "customerId": self.customer_id,
            "vehicleId": self.vehicle_id,
            "employeeId": self.employee_id,
            "startDate": fmt_iso(self.start_date),
            "endDate": fmt_iso(self.end_date),
            "actualStartDate": fmt_iso(self.actual_start_date),
            "actualEndDate": fmt_iso(self.actual_end_date),
            "pickupLocation": self.pickup_location,
            "returnLocation": self.return_location,
            "dailyRentalPrice": money_str(self.daily_rental_price),
            "totalDays": self.total_days,
            "subTotal": money_str(self.sub_total),
            "discountAmount": money_str(self.discount_amount),
            "promotionCode": self.promotion_code,
            "totalAmount": money_str(self.total_amount),
            "depositAmount": money_str(self.deposit_amount),
            "status": self.status,
            "notes": self.notes,
            "createdDate": fmt_iso(self.created_date),
            "createdBy": self.created_by,
            "modifiedDate": fmt_iso(self.modified_date),
            "modifiedBy": self.modified_by,
        }


@dataclass(frozen=True)
class RentalStatusHistory:
    """One row per transition. Never mutated or deleted."""
    history_id: int
    rental_order_id: int
    old_status: Optional[str]
    new_status: str
    changed_date: datetime
    changed_by: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.history_id,
            "rentalOrderId": self.rental_order_id,
            "oldStatus": self.old_status,
            "newStatus": self.new_status,
            "changedDate": fmt_iso(self.changed_date),
            "changedBy": self.changed_by,
            "notes": self.notes,
        }


# ---- domain events published by the state machine ----
@dataclass(frozen=True)
class PromotionConsumed:
    rental_order_id: int
    promotion_code: str


@dataclass(frozen=True)
class PromotionReleased:
    rental_order_id: int
    promotion_code: str
