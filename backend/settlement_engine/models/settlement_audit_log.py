"""Append-only, hash-chained audit trail for settlements and order eligibility."""

from enum import Enum
from typing import Any

from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String, Text, event, func
from sqlalchemy.orm import Mapper

from settlement_engine.core.database import Base
from settlement_engine.core.exceptions import AuditLogImmutableError
from settlement_engine.models.shared import UUIDType, generate_uuid


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE_STATUS = "update_status"
    RECORD_PAYMENT = "record_payment"
    RECORD_PARTIAL_PAYMENT = "record_partial_payment"
    VOID_PAYMENT = "void_payment"
    DISPUTE_OPENED = "dispute_opened"
    DISPUTE_RESOLVED = "dispute_resolved"
    ADD_ORDER = "add_order"
    REMOVE_ORDER = "remove_order"
    HOLD_ORDER = "hold_order"
    RELEASE_ORDER = "release_order"
    ADJUST_COMMISSION = "adjust_commission"
    WAIVE = "waive"
    DELETE = "delete"


class SettlementAuditLog(Base):
    """One immutable entry per state-changing operation.

    No foreign keys: entries must outlive the rows they describe.
    """

    __tablename__ = "settlement_audit_logs"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    sequence = Column(Integer, nullable=False, unique=True, index=True)
    settlement_id = Column(UUIDType, nullable=True, index=True)
    order_id = Column(UUIDType, nullable=True, index=True)
    action = Column(String(30), nullable=False, index=True)

    # Who
    actor_type = Column(String(50), nullable=False)
    actor_id = Column(String(255), nullable=True)
    actor_role = Column(String(50), nullable=True)
    ip_address = Column(String(64), nullable=True)

    # What changed
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)

    # Payment details
    amount = Column(Numeric(12, 4), nullable=True)
    payment_method = Column(String(20), nullable=True)
    payment_reference = Column(String(255), nullable=True)

    # Context
    reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Chain
    payload_hash = Column(String(64), nullable=False)
    prev_hash = Column(String(64), nullable=True)
    hash = Column(String(64), nullable=False)

    performed_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


@event.listens_for(SettlementAuditLog, "before_update")
def _reject_audit_update(mapper: Mapper[Any], connection: Any, target: SettlementAuditLog) -> None:
    raise AuditLogImmutableError(target.id, "updated")  # type: ignore[arg-type]


@event.listens_for(SettlementAuditLog, "before_delete")
def _reject_audit_delete(mapper: Mapper[Any], connection: Any, target: SettlementAuditLog) -> None:
    raise AuditLogImmutableError(target.id, "deleted")  # type: ignore[arg-type]
