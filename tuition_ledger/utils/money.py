"""Money helpers - every amount in the engine is a Decimal with two places"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterable

ZERO = Decimal("0.00")
_CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce int/float/str/Decimal/None to a 2-place Decimal"""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation as e:
            raise ValueError(f"Not a monetary amount: {value!r}") from e
    if not value.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def sum_money(values: Iterable) -> Decimal:
    """Sum amounts, treating None as zero"""
    total = ZERO
    for value in values:
        total += to_money(value)
    return total
