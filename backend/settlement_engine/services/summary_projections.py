"""Platform-wide and regional roll-ups of per-provider FinancialSummaries.

Always a full recomputation from the summaries passed in.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal
from uuid import UUID

from settlement_engine.core.money import ZERO, quantize_money
from settlement_engine.models.settlement import SettlementDirection
from settlement_engine.schemas.financial_summary import (
    AdminFinancialSummary,
    CodBreakdown,
    FinancialSummary,
    OnlineBreakdown,
    RegionalFinancialSummary,
)


def _total(values: Iterable[Decimal]) -> Decimal:
    return quantize_money(sum(values, ZERO))


def _count_direction(summaries: list[FinancialSummary], direction: SettlementDirection) -> int:
    return sum(1 for summary in summaries if summary.settlement_direction == direction)


def build_admin_summary(summaries: Iterable[FinancialSummary]) -> AdminFinancialSummary:
    items = list(summaries)
    return AdminFinancialSummary(
        total_providers=len(items),
        total_orders=sum(s.orders.total for s in items),
        total_revenue=_total(s.revenue.gross for s in items),
        total_delivery_fees=_total(s.delivery_fees.total for s in items),
        total_theoretical_commission=_total(s.commission.theoretical for s in items),
        total_actual_commission=_total(s.commission.actual for s in items),
        total_grace_period_discount=_total(s.commission.grace_discount for s in items),
        total_refunds=_total(s.refunds.total for s in items),
        cod=CodBreakdown(
            orders=sum(s.orders.cod for s in items),
            revenue=_total(s.revenue.cod for s in items),
            commission_owed=_total(s.cod_commission_owed for s in items),
        ),
        online=OnlineBreakdown(
            orders=sum(s.orders.online for s in items),
            revenue=_total(s.revenue.online for s in items),
            payout_owed=_total(s.online_payout_owed for s in items),
        ),
        total_net_balance=_total(s.net_balance for s in items),
        providers_to_pay=_count_direction(items, SettlementDirection.PLATFORM_PAYS_PROVIDER),
        providers_to_collect=_count_direction(items, SettlementDirection.PROVIDER_PAYS_PLATFORM),
        providers_balanced=_count_direction(items, SettlementDirection.BALANCED),
        eligible_orders=sum(s.orders.eligible for s in items),
        held_orders=sum(s.orders.on_hold for s in items),
        settled_orders=sum(s.orders.settled for s in items),
    )


def build_regional_summaries(
    summaries: Iterable[FinancialSummary],
    governorate_names: Mapping[UUID, str] | None = None,
) -> list[RegionalFinancialSummary]:
    """Group by governorate; providers without one form their own group."""
    names = governorate_names or {}
    groups: dict[UUID | None, list[FinancialSummary]] = {}
    for summary in summaries:
        groups.setdefault(summary.governorate_id, []).append(summary)

    regions = [
        RegionalFinancialSummary(
            governorate_id=governorate_id,
            governorate_name=names.get(governorate_id) if governorate_id else None,
            providers_count=len(items),
            total_orders=sum(s.orders.total for s in items),
            cod_orders=sum(s.orders.cod for s in items),
            online_orders=sum(s.orders.online for s in items),
            gross_revenue=_total(s.revenue.gross for s in items),
            total_commission=_total(s.net_commission for s in items),
            net_balance=_total(s.net_balance for s in items),
            providers_to_pay=_count_direction(items, SettlementDirection.PLATFORM_PAYS_PROVIDER),
            providers_to_collect=_count_direction(
                items, SettlementDirection.PROVIDER_PAYS_PLATFORM
            ),
        )
        for governorate_id, items in groups.items()
    ]
    return sorted(
        regions,
        key=lambda region: (
            region.governorate_id is None,
            region.governorate_name or "",
            str(region.governorate_id),
        ),
    )
