"""Promotion code validation and usage accounting."""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from drivenow.exceptions import PromotionNotFoundError, UsageLimitReachedError
from drivenow.models.promotion import Promotion
from drivenow.models.rental import PromotionConsumed, PromotionReleased
from drivenow.models.store import UnitOfWork, subscribe
from drivenow.utils.constants import PromotionFailure, RecordStatus
from drivenow.utils.money import ZERO, money_str

logger = logging.getLogger(__name__)


@dataclass
class PromotionCheck:
    """Outcome of validating a code against an order context."""
    is_valid: bool
    message: str
    reason: Optional[str] = None
    discount_amount: Decimal = ZERO  # unrounded; PricingEngine rounds the total
    promotion: Optional[Promotion] = None

    def to_dict(self) -> dict:
        return {
            "isValid": self.is_valid,
            "message": self.message,
            "reason": self.reason,
            "discountAmount": money_str(self.discount_amount),
            "promotion": self.promotion.to_dict() if self.promotion else None,
        }


class PromotionValidator:
    """
    Validates a promotion code for a candidate subtotal and as-of date.
    Validation never touches `used_count`; consumption happens through the
    PromotionConsumed / PromotionReleased events.
    """

    @staticmethod
    def find(uow: UnitOfWork, code: str) -> Optional[Promotion]:
        """Live (not soft-deleted) promotion by exact code."""
        code = (code or "").strip()
        if not code:
            return None
        return uow.find_one("promotions", lambda p: p.code == code and not p.is_deleted)

    @staticmethod
    def validate(uow: UnitOfWork, code: str, subtotal: Decimal, as_of: date) -> PromotionCheck:
        promo = PromotionValidator.find(uow, code)
        if promo is None or promo.status != RecordStatus.ACTIVE:
            return PromotionCheck(False, "Promotion code does not exist", PromotionFailure.NOT_FOUND)

        if not promo.is_within_window(as_of):
            return PromotionCheck(
                False,
                f"Promotion code is only valid from {promo.start_date:%d/%m/%Y} "
                f"to {promo.end_date:%d/%m/%Y}",
                PromotionFailure.EXPIRED,
                promotion=promo,
            )

        if promo.min_amount is not None and subtotal < promo.min_amount:
            return PromotionCheck(
                False,
                f"Order subtotal must be at least {promo.min_amount:,.0f}",
                PromotionFailure.BELOW_MINIMUM_AMOUNT,
                promotion=promo,
            )

        if promo.usage_exhausted:
            return PromotionCheck(
                False,
                "Promotion code has reached its usage limit",
                PromotionFailure.USAGE_LIMIT_REACHED,
                promotion=promo,
            )

        return PromotionCheck(
            True,
            "Promotion code applied",
            discount_amount=promo.discount_for(subtotal),
            promotion=promo,
        )

    @staticmethod
    def consume(uow: UnitOfWork, code: str) -> Promotion:
        """
        Conditional increment: used_count + 1 only while below usage_limit.
        Runs under the unit-of-work lock, so check and write are one step.
        """
        promo = PromotionValidator.find(uow, code)
        if promo is None:
            raise PromotionNotFoundError(f"Error: promotion '{code}' not found")
        if promo.usage_exhausted:
            raise UsageLimitReachedError(
                f"Error: promotion '{promo.code}' has reached its usage limit ({promo.usage_limit})")
        promo.used_count += 1
        logger.info("Promotion %s used %s/%s", promo.code, promo.used_count,
                    promo.usage_limit if promo.usage_limit is not None else "-")
        return promo

    @staticmethod
    def release(uow: UnitOfWork, code: str) -> Optional[Promotion]:
        """Give one use back. A promotion deleted meanwhile is left alone."""
        promo = PromotionValidator.find(uow, code)
        if promo is None:
            logger.warning("Promotion %s no longer exists; usage not released", code)
            return None
        promo.used_count = max(0, promo.used_count - 1)
        return promo


@subscribe(PromotionConsumed)
def _on_promotion_consumed(uow: UnitOfWork, event: PromotionConsumed):
    PromotionValidator.consume(uow, event.promotion_code)


@subscribe(PromotionReleased)
def _on_promotion_released(uow: UnitOfWork, event: PromotionReleased):
    PromotionValidator.release(uow, event.promotion_code)
