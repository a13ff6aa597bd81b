"""Pydantic schemas for SettlementAuditLog."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class SettlementAuditLogResponse(BaseModel):
    id: UUID
    sequence: int
    settlement_id: UUID | None
    order_id: UUID | None
    action: str
    actor_type: str
    actor_id: str | None
    actor_role: str | None
    old_value: dict[str, Any] | None
    new_value: dict[str, Any] | None
    amount: Decimal | None
    payment_method: str | None
    payment_reference: str | None
    reason: str | None
    notes: str | None
    prev_hash: str | None
    hash: str
    performed_at: datetime

    model_config = {"from_attributes": True}


class AuditChainVerification(BaseModel):
    valid: bool
    entries_checked: int
    last_hash: str | None = None
