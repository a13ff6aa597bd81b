"""Validated shapes handed out by the ledger and provider repositories."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class CommissionProfile:
    provider_id: UUID
    commission_rate: Decimal
    commission_status: str
    grace_period_end: datetime | None
    delivery_responsibility: str
    governorate_id: UUID | None = None


@dataclass(frozen=True)
class OrderFinancials:
    """The financial facts of one order needed for reconciliation."""

    id: UUID
    provider_id: UUID
    payment_method: str
    subtotal: Decimal
    delivery_fee: Decimal
    discount: Decimal
    total: Decimal
    refund_amount: Decimal
    settlement_status: str
    created_at: datetime
