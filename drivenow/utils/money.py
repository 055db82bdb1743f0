"""Fixed-point money helpers (two decimal places, half-up rounding)."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Largest power of ten an amount may reach; keeps quantize(CENT) inside the
# default 28-digit context.
MAX_EXPONENT = 15


def in_money_range(amount: Decimal) -> bool:
    return amount.is_finite() and (amount.is_zero() or amount.adjusted() <= MAX_EXPONENT)


def to_decimal(value) -> Decimal:
    """Convert int/str/float/Decimal to Decimal; raise ValueError on bad or out-of-range input."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a number: {value!r}")
    try:
        # str() first so floats keep their printed value (0.1 -> "0.1")
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Not a number: {value!r}") from None
    if not d.is_finite():
        raise ValueError(f"Not a number: {value!r}")
    if not in_money_range(d):
        raise ValueError(f"Out of range: {value!r}")
    return d


def round_money(amount: Decimal) -> Decimal:
    """Round half-up to cents. Apply to final totals only."""
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def has_cents_precision(amount: Decimal) -> bool:
    """True if the amount is in range and needs no more than two decimal places."""
    if not in_money_range(amount):
        return False
    try:
        return amount == amount.quantize(CENT)
    except InvalidOperation:
        return False


def money_str(amount: Optional[Decimal]) -> Optional[str]:
    """Render an amount for JSON, e.g. Decimal('1350000') -> '1350000.00'."""
    if amount is None:
        return None
    return str(to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP))
