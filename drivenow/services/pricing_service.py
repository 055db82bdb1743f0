"""Rental price computation."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from drivenow.exceptions import ValidationError, VehicleNotFoundError
from drivenow.models.promotion import Promotion
from drivenow.models.store import UnitOfWork
from drivenow.services.common import as_date
from drivenow.services.promotion_service import PromotionCheck, PromotionValidator
from drivenow.utils.money import ZERO, money_str, round_money


@dataclass
class PriceQuote:
    daily_rental_price: Decimal
    total_days: int
    sub_total: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    promotion_message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "dailyRentalPrice": money_str(self.daily_rental_price),
            "totalDays": self.total_days,
            "subTotal": money_str(self.sub_total),
            "discountAmount": money_str(self.discount_amount),
            "totalAmount": money_str(self.total_amount),
            "promotionMessage": self.promotion_message,
        }


class PricingEngine:
    """
    Duration x daily rate, minus the promotion discount.

    Only the total is rounded (half-up to cents). The stored discount is
    derived as subtotal - total so the two always reconcile exactly.
    """

    @staticmethod
    def total_days(start, end) -> int:
        """Whole calendar days between the two dates, at least 1."""
        d1 = as_date(start)
        d2 = as_date(end)
        return max(1, (d2 - d1).days)

    @staticmethod
    def quote(daily_rate: Decimal, start, end,
              promotion: Optional[Promotion] = None, message: Optional[str] = None) -> PriceQuote:
        days = PricingEngine.total_days(start, end)
        sub_total = daily_rate * days
        raw_discount = promotion.discount_for(sub_total) if promotion is not None else ZERO
        total = round_money(sub_total - raw_discount)
        return PriceQuote(
            daily_rental_price=daily_rate,
            total_days=days,
            sub_total=sub_total,
            discount_amount=sub_total - total,
            total_amount=total,
            promotion_message=message,
        )

    @staticmethod
    def quote_with_code(daily_rate: Decimal, start: date, end: date, uow: UnitOfWork,
                        code: Optional[str]) -> tuple[PriceQuote, Optional[PromotionCheck]]:
        """
        Price with an optional promotion code. An invalid code gives a
        no-discount quote plus the failed check; callers decide if that is fatal.
        The code is checked as of the rental start date.
        """
        if not (code or "").strip():
            return PricingEngine.quote(daily_rate, start, end), None
        days = PricingEngine.total_days(start, end)
        check = PromotionValidator.validate(uow, code, daily_rate * days, as_date(start))
        promo = check.promotion if check.is_valid else None
        return PricingEngine.quote(daily_rate, start, end, promo, check.message), check

    @staticmethod
    def preview(uow: UnitOfWork, vehicle_id: int, start, end,
                code: Optional[str] = None) -> PriceQuote:
        """Pure pricing preview for a vehicle; promotion failures are non-fatal."""
        vehicle = uow.get("vehicles", vehicle_id)
        if vehicle is None or vehicle.is_deleted:
            raise VehicleNotFoundError(f"Error: vehicle with ID '{vehicle_id}' not found")
        if as_date(end) < as_date(start):
            raise ValidationError(errors={"endDate": "End date must not be before start date"})
        quote, _ = PricingEngine.quote_with_code(
            vehicle.daily_rental_price, as_date(start), as_date(end), uow, code)
        return quote
