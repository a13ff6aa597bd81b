"""Repository for the settlement audit trail. Append and read only."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from settlement_engine.core.sorting import apply_order_by
from settlement_engine.models.settlement_audit_log import SettlementAuditLog
from settlement_engine.models.shared import as_utc


class SettlementAuditLogRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_last(self) -> SettlementAuditLog | None:
        return (
            self.db.query(SettlementAuditLog)
            .order_by(SettlementAuditLog.sequence.desc())
            .first()
        )

    def create(
        self,
        *,
        sequence: int,
        action: str,
        actor_type: str,
        payload_hash: str,
        prev_hash: str | None,
        hash: str,
        performed_at: datetime,
        settlement_id: UUID | None = None,
        order_id: UUID | None = None,
        actor_id: str | None = None,
        actor_role: str | None = None,
        ip_address: str | None = None,
        old_value: dict[str, Any] | None = None,
        new_value: dict[str, Any] | None = None,
        amount: Decimal | None = None,
        payment_method: str | None = None,
        payment_reference: str | None = None,
        reason: str | None = None,
        notes: str | None = None,
    ) -> SettlementAuditLog:
        entry = SettlementAuditLog(
            sequence=sequence,
            settlement_id=settlement_id,
            order_id=order_id,
            action=action,
            actor_type=actor_type,
            actor_id=actor_id,
            actor_role=actor_role,
            ip_address=ip_address,
            old_value=old_value,
            new_value=new_value,
            amount=amount,
            payment_method=payment_method,
            payment_reference=payment_reference,
            reason=reason,
            notes=notes,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=hash,
            performed_at=performed_at,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def get_by_settlement(self, settlement_id: UUID) -> list[SettlementAuditLog]:
        return (
            self.db.query(SettlementAuditLog)
            .filter(SettlementAuditLog.settlement_id == settlement_id)
            .order_by(SettlementAuditLog.sequence.asc())
            .all()
        )

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        settlement_id: UUID | None = None,
        order_id: UUID | None = None,
        action: str | None = None,
        actor_type: str | None = None,
        actor_id: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        order_by: str | None = None,
    ) -> list[SettlementAuditLog]:
        query = self.db.query(SettlementAuditLog)
        if settlement_id is not None:
            query = query.filter(SettlementAuditLog.settlement_id == settlement_id)
        if order_id is not None:
            query = query.filter(SettlementAuditLog.order_id == order_id)
        if action is not None:
            query = query.filter(SettlementAuditLog.action == action)
        if actor_type is not None:
            query = query.filter(SettlementAuditLog.actor_type == actor_type)
        if actor_id is not None:
            query = query.filter(SettlementAuditLog.actor_id == actor_id)
        if start_date is not None:
            query = query.filter(SettlementAuditLog.performed_at >= as_utc(start_date))
        if end_date is not None:
            query = query.filter(SettlementAuditLog.performed_at <= as_utc(end_date))
        query = apply_order_by(
            query,
            SettlementAuditLog,
            order_by,
            {"sequence", "performed_at", "action"},
            default_field="sequence",
            default_direction="desc",
        )
        return query.offset(skip).limit(limit).all()

    def iter_chain(self, batch_size: int = 500) -> Iterator[SettlementAuditLog]:
        """Yield every entry in sequence order."""
        last_sequence: int | None = None
        while True:
            query = self.db.query(SettlementAuditLog)
            if last_sequence is not None:
                query = query.filter(SettlementAuditLog.sequence > last_sequence)
            batch = query.order_by(SettlementAuditLog.sequence.asc()).limit(batch_size).all()
            if not batch:
                return
            yield from batch
            last_sequence = batch[-1].sequence
