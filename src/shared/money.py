"""Money arithmetic.

Every monetary amount is a ``Decimal``. ``round_money`` is the single rounding
point: two decimal places, halves rounded away from zero.
"""

from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
_CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Coerce ints, strings and floats to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def percentage_of(amount, rate) -> Decimal:
    """Return ``amount * rate / 100`` rounded to cents."""
    return round_money(to_decimal(amount) * to_decimal(rate) / HUNDRED)
