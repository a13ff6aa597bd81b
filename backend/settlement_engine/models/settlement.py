"""Settlement model - a periodic obligation between the platform and one provider."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func

from settlement_engine.core.database import Base
from settlement_engine.models.shared import UUIDType, as_utc, generate_uuid, utc_now


class SettlementStatus(str, Enum):
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"  # derived from due_date, never stored
    DISPUTED = "disputed"
    WAIVED = "waived"


class SettlementDirection(str, Enum):
    PLATFORM_PAYS_PROVIDER = "platform_pays_provider"
    PROVIDER_PAYS_PLATFORM = "provider_pays_platform"
    BALANCED = "balanced"


TERMINAL_STATUSES = frozenset({SettlementStatus.PAID.value, SettlementStatus.WAIVED.value})
OVERDUE_ELIGIBLE_STATUSES = frozenset(
    {SettlementStatus.PENDING.value, SettlementStatus.PARTIALLY_PAID.value}
)


class Settlement(Base):
    """Settlement model - snapshot of a FinancialSummary plus its payment lifecycle.

    The money fields are frozen at creation; only status, amount_paid and the
    lifecycle metadata change afterwards.
    """

    __tablename__ = "settlements"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    provider_id = Column(
        UUIDType, ForeignKey("providers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    period_start = Column(DateTime(timezone=True), nullable=False)
    period_end = Column(DateTime(timezone=True), nullable=False)
    commission_rate = Column(Numeric(5, 4), nullable=False, default=0)

    # Order counts
    total_orders = Column(Integer, nullable=False, default=0)
    cod_orders_count = Column(Integer, nullable=False, default=0)
    online_orders_count = Column(Integer, nullable=False, default=0)

    # Revenue
    gross_revenue = Column(Numeric(12, 4), nullable=False, default=0)
    cod_gross_revenue = Column(Numeric(12, 4), nullable=False, default=0)
    online_gross_revenue = Column(Numeric(12, 4), nullable=False, default=0)

    # Commission
    theoretical_commission = Column(Numeric(12, 4), nullable=False, default=0)
    actual_commission = Column(Numeric(12, 4), nullable=False, default=0)
    grace_period_discount = Column(Numeric(12, 4), nullable=False, default=0)

    # Delivery fees
    total_delivery_fees = Column(Numeric(12, 4), nullable=False, default=0)
    cod_delivery_fees = Column(Numeric(12, 4), nullable=False, default=0)
    online_delivery_fees = Column(Numeric(12, 4), nullable=False, default=0)

    # Refunds
    total_refunds = Column(Numeric(12, 4), nullable=False, default=0)
    refund_commission_reduction = Column(Numeric(12, 4), nullable=False, default=0)

    # Netting
    net_commission = Column(Numeric(12, 4), nullable=False, default=0)
    cod_commission_owed = Column(Numeric(12, 4), nullable=False, default=0)
    online_payout_owed = Column(Numeric(12, 4), nullable=False, default=0)
    net_balance = Column(Numeric(12, 4), nullable=False, default=0)
    settlement_direction = Column(
        String(30), nullable=False, default=SettlementDirection.BALANCED.value
    )

    # Lifecycle
    status = Column(String(20), nullable=False, default=SettlementStatus.PENDING.value)
    amount_paid = Column(Numeric(12, 4), nullable=False, default=0)
    due_date = Column(DateTime(timezone=True), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    notes = Column(Text, nullable=True)
    dispute_reason = Column(Text, nullable=True)
    resolution_notes = Column(Text, nullable=True)
    waive_reason = Column(Text, nullable=True)

    created_by = Column(String(255), nullable=True)
    processed_by = Column(String(255), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_settlements_provider_period", "provider_id", "period_start", "period_end"),
    )

    @property
    def obligation(self) -> Decimal:
        """Total amount that has to change hands, regardless of direction."""
        return abs(Decimal(self.net_balance or 0))

    @property
    def outstanding_amount(self) -> Decimal:
        return self.obligation - Decimal(self.amount_paid or 0)

    def is_overdue(self, at: datetime | None = None) -> bool:
        if self.status in TERMINAL_STATUSES:
            return False
        due = as_utc(self.due_date)
        return due is not None and (at or utc_now()) > due

    def effective_status(self, at: datetime | None = None) -> str:
        """Stored status, reported as overdue once an open settlement passes its due date."""
        if self.status in OVERDUE_ELIGIBLE_STATUSES and self.is_overdue(at):
            return SettlementStatus.OVERDUE.value
        return str(self.status)
