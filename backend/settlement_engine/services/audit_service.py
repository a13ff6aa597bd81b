"""Audit trail recorder for settlements and order eligibility changes."""

import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from settlement_engine.core.auth import Actor
from settlement_engine.core.exceptions import AuditChainBrokenError, AuditChainConflictError
from settlement_engine.core.hashing import canonicalize_json, hash_audit_entry, hash_payload
from settlement_engine.models.order import Order
from settlement_engine.models.settlement import Settlement
from settlement_engine.models.settlement_audit_log import AuditAction, SettlementAuditLog
from settlement_engine.models.shared import as_utc, utc_now
from settlement_engine.repositories.audit_log_repository import SettlementAuditLogRepository
from settlement_engine.schemas.audit_log import AuditChainVerification

logger = logging.getLogger(__name__)


def settlement_snapshot(settlement: Settlement) -> dict[str, Any]:
    """The mutable part of a settlement, as recorded in old/new values."""
    return {
        "status": settlement.status,
        "amount_paid": settlement.amount_paid,
        "net_balance": settlement.net_balance,
        "paid_at": as_utc(settlement.paid_at),
        "deleted_at": as_utc(settlement.deleted_at),
    }


def order_snapshot(order: Order) -> dict[str, Any]:
    return {
        "settlement_status": order.settlement_status,
        "settlement_id": order.settlement_id,
        "hold_reason": order.hold_reason,
    }


def _to_json(value: dict[str, Any] | None) -> dict[str, Any] | None:
    """Render Decimal/UUID/datetime values the way they will be hashed and stored."""
    if value is None:
        return None
    return json.loads(canonicalize_json(value))


def entry_payload(
    *,
    action: str,
    settlement_id: UUID | None,
    order_id: UUID | None,
    actor_type: str,
    actor_id: str | None,
    actor_role: str | None,
    ip_address: str | None,
    old_value: dict[str, Any] | None,
    new_value: dict[str, Any] | None,
    amount: Decimal | None,
    payment_method: str | None,
    payment_reference: str | None,
    reason: str | None,
    notes: str | None,
    performed_at: datetime,
) -> dict[str, Any]:
    return {
        "action": action,
        "settlement_id": settlement_id,
        "order_id": order_id,
        "actor_type": actor_type,
        "actor_id": actor_id,
        "actor_role": actor_role,
        "ip_address": ip_address,
        "old_value": old_value,
        "new_value": new_value,
        "amount": amount,
        "payment_method": payment_method,
        "payment_reference": payment_reference,
        "reason": reason,
        "notes": notes,
        "performed_at": as_utc(performed_at),
    }


def _payload_of(entry: SettlementAuditLog) -> dict[str, Any]:
    return entry_payload(
        action=entry.action,
        settlement_id=entry.settlement_id,
        order_id=entry.order_id,
        actor_type=entry.actor_type,
        actor_id=entry.actor_id,
        actor_role=entry.actor_role,
        ip_address=entry.ip_address,
        old_value=entry.old_value,
        new_value=entry.new_value,
        amount=entry.amount,
        payment_method=entry.payment_method,
        payment_reference=entry.payment_reference,
        reason=entry.reason,
        notes=entry.notes,
        performed_at=entry.performed_at,
    )


class SettlementAuditService:
    """Appends hash-chained audit entries inside the caller's transaction.

    Nothing here commits: an entry becomes visible together with the state
    change it documents, or not at all.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = SettlementAuditLogRepository(db)

    def record(
        self,
        action: AuditAction,
        actor: Actor,
        *,
        settlement_id: UUID | None = None,
        order_id: UUID | None = None,
        old_value: dict[str, Any] | None = None,
        new_value: dict[str, Any] | None = None,
        amount: Decimal | None = None,
        payment_method: str | None = None,
        payment_reference: str | None = None,
        reason: str | None = None,
        notes: str | None = None,
    ) -> SettlementAuditLog:
        previous = self.repo.get_last()
        sequence = previous.sequence + 1 if previous else 1
        prev_hash = previous.hash if previous else None
        performed_at = utc_now()

        old_json = _to_json(old_value)
        new_json = _to_json(new_value)
        payload_hash = hash_payload(
            entry_payload(
                action=action.value,
                settlement_id=settlement_id,
                order_id=order_id,
                actor_type=actor.actor_type,
                actor_id=actor.actor_id,
                actor_role=actor.role,
                ip_address=actor.ip_address,
                old_value=old_json,
                new_value=new_json,
                amount=amount,
                payment_method=payment_method,
                payment_reference=payment_reference,
                reason=reason,
                notes=notes,
                performed_at=performed_at,
            )
        )
        entry_hash = hash_audit_entry(
            sequence, settlement_id, order_id, action.value, payload_hash, prev_hash
        )

        try:
            return self.repo.create(
                sequence=sequence,
                action=action.value,
                settlement_id=settlement_id,
                order_id=order_id,
                actor_type=actor.actor_type,
                actor_id=actor.actor_id,
                actor_role=actor.role,
                ip_address=actor.ip_address,
                old_value=old_json,
                new_value=new_json,
                amount=amount,
                payment_method=payment_method,
                payment_reference=payment_reference,
                reason=reason,
                notes=notes,
                payload_hash=payload_hash,
                prev_hash=prev_hash,
                hash=entry_hash,
                performed_at=performed_at,
            )
        except IntegrityError as exc:
            # Another transaction appended this sequence number first
            raise AuditChainConflictError(sequence) from exc

    def verify_chain(self) -> AuditChainVerification:
        """Recompute every hash in sequence order.

        Raises AuditChainBrokenError at the first entry whose content, hash
        or link to its predecessor does not match.
        """
        prev_hash: str | None = None
        checked = 0
        for entry in self.repo.iter_chain():
            if entry.prev_hash != prev_hash:
                raise AuditChainBrokenError(entry.id, prev_hash, entry.prev_hash)

            payload_hash = hash_payload(_payload_of(entry))
            if payload_hash != entry.payload_hash:
                raise AuditChainBrokenError(entry.id, payload_hash, entry.payload_hash)

            expected = hash_audit_entry(
                entry.sequence,
                entry.settlement_id,
                entry.order_id,
                entry.action,
                payload_hash,
                prev_hash,
            )
            if expected != entry.hash:
                raise AuditChainBrokenError(entry.id, expected, entry.hash)

            prev_hash = entry.hash
            checked += 1

        logger.info("Verified audit chain: %d entries", checked)
        return AuditChainVerification(valid=True, entries_checked=checked, last_hash=prev_hash)
