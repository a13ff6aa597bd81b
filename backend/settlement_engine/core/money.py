"""Fixed-point money helpers.

All amounts are ``Decimal`` and rounded to the minor currency unit with
ROUND_HALF_UP. Rounding happens per line item, before any summation.
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

MINOR_UNIT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Any) -> Decimal:
    """Convert a database or user value to Decimal without float drift."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value: Any) -> Decimal:
    """Round to the minor unit."""
    return to_decimal(value).quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


def sum_money(values: Iterable[Decimal]) -> Decimal:
    total = ZERO
    for value in values:
        total += value
    return quantize_money(total)
