"""Settlement schemas."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from settlement_engine.models.settlement import Settlement
from settlement_engine.models.settlement_payment import SettlementPaymentMethod
from settlement_engine.models.shared import as_utc


class SettlementCreate(BaseModel):
    provider_id: UUID
    period_start: datetime
    period_end: datetime
    notes: str | None = None


class SettlementPaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    method: SettlementPaymentMethod
    reference: str | None = Field(default=None, max_length=255)


class SettlementPaymentVoid(BaseModel):
    reason: str = Field(..., min_length=1)


class DisputeOpen(BaseModel):
    reason: str = Field(..., min_length=1)


class DisputeResolution(str, Enum):
    REINSTATE = "reinstate"
    WAIVE = "waive"


class DisputeResolve(BaseModel):
    resolution: DisputeResolution
    notes: str | None = None


class SettlementWaive(BaseModel):
    reason: str = Field(..., min_length=1)


class OrderHold(BaseModel):
    reason: str = Field(..., min_length=1)


class SettlementPaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    settlement_id: UUID
    amount: Decimal
    method: str
    reference: str | None = None
    recorded_by: str | None = None
    recorded_at: datetime | None = None
    voided_at: datetime | None = None
    void_reason: str | None = None


class SettlementResponse(BaseModel):
    """Settlement as reported to dashboards.

    ``status`` is the effective status (``overdue`` included); the persisted
    value is in ``stored_status``.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    provider_id: UUID
    period_start: datetime
    period_end: datetime
    commission_rate: Decimal

    total_orders: int
    cod_orders_count: int
    online_orders_count: int

    gross_revenue: Decimal
    cod_gross_revenue: Decimal
    online_gross_revenue: Decimal

    theoretical_commission: Decimal
    actual_commission: Decimal
    grace_period_discount: Decimal

    total_delivery_fees: Decimal
    cod_delivery_fees: Decimal
    online_delivery_fees: Decimal

    total_refunds: Decimal
    refund_commission_reduction: Decimal

    net_commission: Decimal
    cod_commission_owed: Decimal
    online_payout_owed: Decimal
    net_balance: Decimal
    settlement_direction: str

    status: str
    stored_status: str
    is_overdue: bool
    amount_paid: Decimal
    outstanding_amount: Decimal
    due_date: datetime
    paid_at: datetime | None = None

    notes: str | None = None
    dispute_reason: str | None = None
    resolution_notes: str | None = None
    waive_reason: str | None = None
    created_by: str | None = None
    processed_by: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator(
        "period_start", "period_end", "due_date", "paid_at", "created_at", "updated_at"
    )
    @classmethod
    def _ensure_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    @classmethod
    def from_settlement(
        cls, settlement: Settlement, at: datetime | None = None
    ) -> "SettlementResponse":
        data = {
            column.name: getattr(settlement, column.name)
            for column in Settlement.__table__.columns
            if column.name in cls.model_fields
        }
        data.update(
            status=settlement.effective_status(at),
            stored_status=settlement.status,
            is_overdue=settlement.is_overdue(at),
            outstanding_amount=settlement.outstanding_amount,
        )
        return cls.model_validate(data)


class SettlementDetailResponse(SettlementResponse):
    payments: list[SettlementPaymentResponse] = Field(default_factory=list)
    order_ids: list[UUID] = Field(default_factory=list)


class OrderSettlementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    provider_id: UUID
    payment_method: str
    total: Decimal
    refund_amount: Decimal
    settlement_status: str
    settlement_id: UUID | None = None
    hold_reason: str | None = None
