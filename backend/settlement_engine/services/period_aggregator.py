"""Fold one provider's eligible orders over one period into a FinancialSummary.

The fold itself (``compute_order_lines`` / ``summarize``) is pure and works on
plain OrderFinancials; ``PeriodAggregator`` only adds the database reads.
"""

import logging
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from settlement_engine.core.exceptions import InvalidInputError
from settlement_engine.core.money import ZERO, quantize_money, sum_money
from settlement_engine.models.order import OrderSettlementStatus, PaymentMethod
from settlement_engine.models.provider import DeliveryResponsibility
from settlement_engine.models.settlement import SettlementDirection
from settlement_engine.models.shared import as_utc, utc_now
from settlement_engine.repositories.order_repository import OrderLedgerReader
from settlement_engine.repositories.provider_repository import ProviderRepository
from settlement_engine.schemas.financial_summary import (
    CommissionTotals,
    DeliveryFeeTotals,
    FinancialSummary,
    GracePeriodInfo,
    OrderCounts,
    RefundTotals,
    RevenueTotals,
)
from settlement_engine.schemas.ledger import CommissionProfile, OrderFinancials
from settlement_engine.services.commission_calculator import (
    CommissionBreakdown,
    commission_base,
    compute_commission,
    grace_period_days_remaining,
    is_in_grace_period,
)

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class OrderLine:
    """Commission and refund figures of one order, each already rounded."""

    order_id: UUID
    payment_method: str
    gross: Decimal
    delivery_fee: Decimal
    refund_amount: Decimal
    commission: CommissionBreakdown
    refund_percentage: Decimal
    refund_reduction: Decimal

    @property
    def net_commission(self) -> Decimal:
        return self.commission.actual - self.refund_reduction

    @property
    def is_cod(self) -> bool:
        return self.payment_method == PaymentMethod.CASH_ON_DELIVERY.value


def settlement_direction_for(net_balance: Decimal) -> SettlementDirection:
    if net_balance > ZERO:
        return SettlementDirection.PLATFORM_PAYS_PROVIDER
    if net_balance < ZERO:
        return SettlementDirection.PROVIDER_PAYS_PLATFORM
    return SettlementDirection.BALANCED


def refund_percentage(refund_amount: Decimal, total: Decimal) -> Decimal:
    """Share of the order refunded, capped at 1. Zero-total orders have nothing to refund."""
    if total <= ZERO or refund_amount <= ZERO:
        return ZERO
    return min(refund_amount / total, Decimal("1"))


def compute_order_lines(
    profile: CommissionProfile, orders: Sequence[OrderFinancials], at: datetime
) -> list[OrderLine]:
    lines = []
    for order in orders:
        if order.payment_method not in (
            PaymentMethod.CASH_ON_DELIVERY.value,
            PaymentMethod.ONLINE.value,
        ):
            raise InvalidInputError(
                f"Order {order.id} has unknown payment method '{order.payment_method}'"
            )
        if order.total < ZERO or order.delivery_fee < ZERO or order.refund_amount < ZERO:
            raise InvalidInputError(f"Order {order.id} has negative amounts")

        commission = compute_commission(
            profile, commission_base(order.subtotal, order.discount), at
        )
        percentage = refund_percentage(order.refund_amount, order.total)
        lines.append(
            OrderLine(
                order_id=order.id,
                payment_method=order.payment_method,
                gross=quantize_money(order.total),
                delivery_fee=quantize_money(order.delivery_fee),
                refund_amount=quantize_money(order.refund_amount),
                commission=commission,
                refund_percentage=percentage,
                refund_reduction=quantize_money(commission.actual * percentage),
            )
        )
    return lines


def summarize(
    profile: CommissionProfile,
    orders: Sequence[OrderFinancials],
    period_start: datetime,
    period_end: datetime,
    at: datetime,
    status_counts: Mapping[str, int] | None = None,
) -> FinancialSummary:
    """Pure fold of ``orders`` into a FinancialSummary. Empty input gives a zero summary."""
    lines = compute_order_lines(profile, orders, at)
    cod = [line for line in lines if line.is_cod]
    online = [line for line in lines if not line.is_cod]

    gross = sum_money(line.gross for line in lines)
    online_gross = sum_money(line.gross for line in online)
    online_delivery_fees = sum_money(line.delivery_fee for line in online)
    total_refunds = sum_money(line.refund_amount for line in lines)

    cod_commission_owed = sum_money(line.net_commission for line in cod)
    online_net_commission = sum_money(line.net_commission for line in online)

    # Delivery performed by the platform is not the provider's revenue
    withheld_delivery_fees = (
        online_delivery_fees
        if profile.delivery_responsibility == DeliveryResponsibility.PLATFORM_DELIVERY.value
        else ZERO
    )
    online_payout_owed = online_gross - online_net_commission - withheld_delivery_fees
    net_balance = online_payout_owed - cod_commission_owed

    counts = status_counts or {}
    refund_share = (
        quantize_money(total_refunds / gross * HUNDRED) if gross > ZERO else ZERO
    )
    grace_active = is_in_grace_period(profile, at)

    return FinancialSummary(
        provider_id=profile.provider_id,
        governorate_id=profile.governorate_id,
        period_start=as_utc(period_start),
        period_end=as_utc(period_end),
        commission_rate=profile.commission_rate,
        orders=OrderCounts(
            total=len(lines),
            cod=len(cod),
            online=len(online),
            eligible=counts.get(OrderSettlementStatus.ELIGIBLE.value, len(lines)),
            on_hold=counts.get(OrderSettlementStatus.ON_HOLD.value, 0),
            settled=counts.get(OrderSettlementStatus.SETTLED.value, 0),
        ),
        revenue=RevenueTotals(
            gross=gross,
            cod=sum_money(line.gross for line in cod),
            online=online_gross,
        ),
        commission=CommissionTotals(
            theoretical=sum_money(line.commission.theoretical for line in lines),
            actual=sum_money(line.commission.actual for line in lines),
            grace_discount=sum_money(line.commission.grace_discount for line in lines),
        ),
        delivery_fees=DeliveryFeeTotals(
            total=sum_money(line.delivery_fee for line in lines),
            cod=sum_money(line.delivery_fee for line in cod),
            online=online_delivery_fees,
        ),
        refunds=RefundTotals(
            total=total_refunds,
            commission_reduction=sum_money(line.refund_reduction for line in lines),
            percentage=refund_share,
        ),
        net_commission=sum_money(line.net_commission for line in lines),
        cod_commission_owed=cod_commission_owed,
        online_payout_owed=online_payout_owed,
        net_balance=net_balance,
        settlement_direction=settlement_direction_for(net_balance),
        grace_period=GracePeriodInfo(
            is_active=grace_active,
            days_remaining=grace_period_days_remaining(profile, at),
            end_date=profile.grace_period_end,
        ),
        order_ids=[line.order_id for line in lines],
    )


class PeriodAggregator:
    """Reads a provider's eligible orders and folds them with ``summarize``."""

    def __init__(self, db: Session):
        self.db = db
        self.order_reader = OrderLedgerReader(db)
        self.provider_repo = ProviderRepository(db)

    def aggregate(
        self,
        provider_id: UUID,
        period_start: datetime,
        period_end: datetime,
        at: datetime | None = None,
        payment_methods: Collection[str] | None = None,
        profile: CommissionProfile | None = None,
    ) -> FinancialSummary:
        if as_utc(period_end) <= as_utc(period_start):  # type: ignore[operator]
            raise InvalidInputError(
                f"Period end {period_end.isoformat()} must be after start "
                f"{period_start.isoformat()}"
            )
        if profile is None:
            profile = self.provider_repo.get_commission_profile(provider_id)

        orders = self.order_reader.list_eligible_orders(
            provider_id, period_start, period_end, payment_methods=payment_methods
        )
        status_counts = self.order_reader.count_by_status(
            provider_id, period_start, period_end, payment_methods=payment_methods
        )
        summary = summarize(
            profile,
            orders,
            period_start,
            period_end,
            at or utc_now(),
            status_counts=status_counts,
        )
        logger.debug(
            "Aggregated %d orders for provider %s over [%s, %s): net balance %s",
            summary.orders.total,
            provider_id,
            period_start.isoformat(),
            period_end.isoformat(),
            summary.net_balance,
        )
        return summary
