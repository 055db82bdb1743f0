from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from ..utils.constants import PromotionType, RecordStatus
from ..utils.filters import fmt_iso
from ..utils.money import HUNDRED, ZERO, money_str


@dataclass
class Promotion:
    """
    Base promotion. The stored row carries the qualification rules
    (window, minimum amount, usage cap); subclasses decide how big the
    discount is for a given subtotal.
    """
    promotion_id: int
    code: str
    name: str
    value: Decimal
    start_date: date
    end_date: date
    min_amount: Optional[Decimal] = None
    max_discount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    used_count: int = 0
    status: str = RecordStatus.ACTIVE
    is_deleted: bool = False

    type = ""

    def discount_for(self, subtotal: Decimal) -> Decimal:
        """
        Unrounded discount for `subtotal`, clamped to [0, subtotal].
        Subclasses override `_raw_discount`.
        """
        raw = self._raw_discount(subtotal)
        if raw < ZERO:
            return ZERO
        return min(raw, subtotal)

    def _raw_discount(self, subtotal: Decimal) -> Decimal:
        return ZERO

    def is_within_window(self, as_of: date) -> bool:
        return self.start_date <= as_of <= self.end_date

    @property
    def usage_exhausted(self) -> bool:
        return self.usage_limit is not None and self.used_count >= self.usage_limit

    def to_dict(self) -> dict:
        return {
            "id": self.promotion_id,
            "code": self.code,
            "name": self.name,
            "promotionType": self.type,
            "value": str(self.value),
            "minAmount": money_str(self.min_amount),
            "maxDiscount": money_str(self.max_discount),
            "startDate": fmt_iso(self.start_date),
            "endDate": fmt_iso(self.end_date),
            "usageLimit": self.usage_limit,
            "usedCount": self.used_count,
            "status": self.status,
        }


class PercentagePromotion(Promotion):
    """`value` percent of the subtotal, capped by `max_discount` when set."""

    type = PromotionType.PERCENTAGE

    def _raw_discount(self, subtotal: Decimal) -> Decimal:
        amount = subtotal * self.value / HUNDRED
        if self.max_discount is not None:
            amount = min(amount, self.max_discount)
        return amount


class FixedAmountPromotion(Promotion):
    """A flat amount off, never more than the subtotal."""

    type = PromotionType.FIXED_AMOUNT

    def _raw_discount(self, subtotal: Decimal) -> Decimal:
        return self.value


def promotion_class_for(ptype: str):
    """Map a stored promotion type to its class."""
    if ptype == PromotionType.PERCENTAGE:
        return PercentagePromotion
    if ptype == PromotionType.FIXED_AMOUNT:
        return FixedAmountPromotion
    raise ValueError(f"Unknown promotion type: {ptype!r}")
