"""Commission calculation for a single order.

Pure functions: the profile and the point in time are explicit inputs, so the
same order always yields the same commission for the same ``at``.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from settlement_engine.core.exceptions import InvalidInputError
from settlement_engine.core.money import ZERO, quantize_money, to_decimal
from settlement_engine.models.provider import CommissionStatus
from settlement_engine.models.shared import as_utc
from settlement_engine.schemas.ledger import CommissionProfile

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class CommissionBreakdown:
    theoretical: Decimal
    actual: Decimal
    grace_discount: Decimal


def is_in_grace_period(profile: CommissionProfile, at: datetime) -> bool:
    """Grace applies while ``at`` is before grace_period_end, whatever the stored status says.

    Exempt providers are never "in grace"; they pay nothing for a different reason.
    """
    if profile.commission_status == CommissionStatus.EXEMPT.value:
        return False
    if profile.grace_period_end is None:
        return False
    return as_utc(at) < as_utc(profile.grace_period_end)  # type: ignore[operator]


def grace_period_days_remaining(profile: CommissionProfile, at: datetime) -> int:
    if not is_in_grace_period(profile, at):
        return 0
    remaining = as_utc(profile.grace_period_end) - as_utc(at)  # type: ignore[operator]
    return max(0, math.ceil(remaining.total_seconds() / SECONDS_PER_DAY))


def compute_commission(
    profile: CommissionProfile, order_amount: Decimal, at: datetime
) -> CommissionBreakdown:
    """Theoretical commission is always computed; actual is zero when exempt or in grace."""
    amount = to_decimal(order_amount)
    rate = to_decimal(profile.commission_rate)
    if amount < ZERO:
        raise InvalidInputError(f"Order amount must not be negative, got {amount}")
    if rate < ZERO or rate > Decimal("1"):
        raise InvalidInputError(f"Commission rate must be within [0, 1], got {rate}")

    theoretical = quantize_money(amount * rate)
    if profile.commission_status == CommissionStatus.EXEMPT.value:
        actual = ZERO
    elif is_in_grace_period(profile, at):
        actual = ZERO
    else:
        actual = theoretical

    return CommissionBreakdown(
        theoretical=theoretical,
        actual=actual,
        grace_discount=theoretical - actual,
    )


def commission_base(subtotal: Decimal, discount: Decimal) -> Decimal:
    """Commission is charged on the discounted item subtotal; delivery fees never carry it."""
    return max(to_decimal(subtotal) - to_decimal(discount), ZERO)
