from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from settlement_engine.models.order import PaymentMethod
from settlement_engine.models.settlement import SettlementDirection, SettlementStatus


class OrderCounts(BaseModel):
    total: int = 0
    cod: int = 0
    online: int = 0
    eligible: int = 0
    on_hold: int = 0
    settled: int = 0


class RevenueTotals(BaseModel):
    gross: Decimal = Decimal("0.00")
    cod: Decimal = Decimal("0.00")
    online: Decimal = Decimal("0.00")


class CommissionTotals(BaseModel):
    theoretical: Decimal = Decimal("0.00")
    actual: Decimal = Decimal("0.00")
    grace_discount: Decimal = Decimal("0.00")


class DeliveryFeeTotals(BaseModel):
    total: Decimal = Decimal("0.00")
    cod: Decimal = Decimal("0.00")
    online: Decimal = Decimal("0.00")


class RefundTotals(BaseModel):
    total: Decimal = Decimal("0.00")
    commission_reduction: Decimal = Decimal("0.00")
    percentage: Decimal = Decimal("0.00")  # total refunds as a share of gross revenue


class GracePeriodInfo(BaseModel):
    is_active: bool = False
    days_remaining: int = 0
    end_date: datetime | None = None


class FinancialSummary(BaseModel):
    """Financial picture of one provider over one period. Derived, never stored."""

    provider_id: UUID
    governorate_id: UUID | None = None
    period_start: datetime
    period_end: datetime
    commission_rate: Decimal = Decimal("0")

    orders: OrderCounts = Field(default_factory=OrderCounts)
    revenue: RevenueTotals = Field(default_factory=RevenueTotals)
    commission: CommissionTotals = Field(default_factory=CommissionTotals)
    delivery_fees: DeliveryFeeTotals = Field(default_factory=DeliveryFeeTotals)
    refunds: RefundTotals = Field(default_factory=RefundTotals)

    net_commission: Decimal = Decimal("0.00")
    cod_commission_owed: Decimal = Decimal("0.00")
    online_payout_owed: Decimal = Decimal("0.00")
    net_balance: Decimal = Decimal("0.00")
    settlement_direction: SettlementDirection = SettlementDirection.BALANCED

    grace_period: GracePeriodInfo = Field(default_factory=GracePeriodInfo)
    order_ids: list[UUID] = Field(default_factory=list, exclude=True)


class CodBreakdown(BaseModel):
    orders: int = 0
    revenue: Decimal = Decimal("0.00")
    commission_owed: Decimal = Decimal("0.00")


class OnlineBreakdown(BaseModel):
    orders: int = 0
    revenue: Decimal = Decimal("0.00")
    payout_owed: Decimal = Decimal("0.00")


class AdminFinancialSummary(BaseModel):
    total_providers: int = 0
    total_orders: int = 0
    total_revenue: Decimal = Decimal("0.00")
    total_delivery_fees: Decimal = Decimal("0.00")

    total_theoretical_commission: Decimal = Decimal("0.00")
    total_actual_commission: Decimal = Decimal("0.00")
    total_grace_period_discount: Decimal = Decimal("0.00")
    total_refunds: Decimal = Decimal("0.00")

    cod: CodBreakdown = Field(default_factory=CodBreakdown)
    online: OnlineBreakdown = Field(default_factory=OnlineBreakdown)

    total_net_balance: Decimal = Decimal("0.00")
    providers_to_pay: int = 0
    providers_to_collect: int = 0
    providers_balanced: int = 0

    eligible_orders: int = 0
    held_orders: int = 0
    settled_orders: int = 0


class RegionalFinancialSummary(BaseModel):
    governorate_id: UUID | None
    governorate_name: str | None = None

    providers_count: int = 0
    total_orders: int = 0
    cod_orders: int = 0
    online_orders: int = 0
    gross_revenue: Decimal = Decimal("0.00")
    total_commission: Decimal = Decimal("0.00")
    net_balance: Decimal = Decimal("0.00")
    providers_to_pay: int = 0
    providers_to_collect: int = 0


class FinancialFilters(BaseModel):
    """Optional, combinable read filters. ``None`` means "do not filter"."""

    date_from: datetime | None = None
    date_to: datetime | None = None
    governorate_id: UUID | None = None
    provider_id: UUID | None = None
    statuses: list[SettlementStatus] | None = None
    directions: list[SettlementDirection] | None = None
    payment_methods: list[PaymentMethod] | None = None

    def cache_key(self) -> str:
        return self.model_dump_json()
