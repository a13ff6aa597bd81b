"""Settlement lifecycle: creation from a period aggregate, payments, disputes, holds.

Every public operation runs in one database transaction that it commits
exactly once; any failure rolls the whole operation back, including its
audit entry.
"""

import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import ExitStack, contextmanager
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from settlement_engine.core.auth import Actor
from settlement_engine.core.config import settings
from settlement_engine.core.exceptions import (
    InvalidInputError,
    InvalidStateTransitionError,
    OrderAlreadySettledError,
    OrderNotFoundError,
    OverpaymentError,
    PaymentNotFoundError,
    SettlementEngineError,
    SettlementNotFoundError,
)
from settlement_engine.core.locks import (
    AUDIT_CHAIN_LOCK_KEY,
    KeyedLockRegistry,
    lock_registry,
    provider_lock_key,
    settlement_lock_key,
)
from settlement_engine.core.money import ZERO, quantize_money, to_decimal
from settlement_engine.models.order import Order, OrderSettlementStatus
from settlement_engine.models.settlement import Settlement, SettlementStatus
from settlement_engine.models.settlement_audit_log import AuditAction
from settlement_engine.models.settlement_payment import SettlementPayment, SettlementPaymentMethod
from settlement_engine.models.shared import utc_now
from settlement_engine.repositories.settlement_payment_repository import (
    SettlementPaymentRepository,
)
from settlement_engine.repositories.settlement_repository import SettlementRepository
from settlement_engine.schemas.settlement import DisputeResolution
from settlement_engine.services.audit_service import (
    SettlementAuditService,
    order_snapshot,
    settlement_snapshot,
)
from settlement_engine.services.period_aggregator import PeriodAggregator

logger = logging.getLogger(__name__)

_PAYMENT_METHODS = {method.value for method in SettlementPaymentMethod}
_OPEN_STATUSES = {SettlementStatus.PENDING.value, SettlementStatus.PARTIALLY_PAID.value}


class SettlementService:
    def __init__(
        self,
        db: Session,
        locks: KeyedLockRegistry = lock_registry,
        lock_timeout: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.locks = locks
        self.lock_timeout = lock_timeout
        self.clock = clock
        self.aggregator = PeriodAggregator(db)
        self.order_reader = self.aggregator.order_reader
        self.settlement_repo = SettlementRepository(db)
        self.payment_repo = SettlementPaymentRepository(db)
        self.audit = SettlementAuditService(db)

    @contextmanager
    def _transaction(
        self,
        operation: str,
        actor: Actor,
        lock_keys: Sequence[str] = (),
        **context: Any,
    ) -> Iterator[ExitStack]:
        """Hold ``lock_keys`` (in order) for the whole operation and commit before releasing them.

        Locks entered on the yielded stack later on are also held until the commit.
        """
        try:
            with ExitStack() as stack:
                for key in lock_keys:
                    stack.enter_context(self.locks.hold(key, self.lock_timeout))
                yield stack
                self.db.commit()
        except SettlementEngineError as exc:
            self.db.rollback()
            logger.warning(
                "%s rejected (%s): %s [actor=%s:%s %s]",
                operation,
                exc.code,
                exc.message,
                actor.actor_type,
                actor.actor_id,
                context,
            )
            raise
        except Exception:
            self.db.rollback()
            logger.exception(
                "%s failed [actor=%s:%s %s]", operation, actor.actor_type, actor.actor_id, context
            )
            raise

    def _record_audit(
        self, held: ExitStack, action: AuditAction, actor: Actor, **entry: Any
    ) -> None:
        """Append to the audit chain, keeping its tail locked until the commit.

        The chain lock is always the last one taken, so it cannot deadlock
        with provider or settlement locks.
        """
        held.enter_context(self.locks.hold(AUDIT_CHAIN_LOCK_KEY, self.lock_timeout))
        self.audit.record(action, actor, **entry)

    def _get_settlement_for_update(self, settlement_id: UUID) -> Settlement:
        settlement = self.settlement_repo.get_for_update(settlement_id)
        if settlement is None:
            raise SettlementNotFoundError(settlement_id)
        return settlement

    def _get_order(self, order_id: UUID) -> Order:
        order = self.order_reader.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def create_settlement(
        self,
        provider_id: UUID,
        period_start: datetime,
        period_end: datetime,
        actor: Actor,
        notes: str | None = None,
    ) -> Settlement:
        """Settle a provider's eligible orders in [period_start, period_end).

        The period is aggregated first, then the provider lock is taken and
        the aggregated orders are re-read under it. Raises InvalidInputError
        when the period holds no orders to settle, and OrderAlreadySettledError
        when its orders were settled before this call got the lock. Neither
        leaves a trace.
        """
        context = {
            "provider_id": str(provider_id),
            "period_start": period_start.isoformat(),
            "period_end": period_end.isoformat(),
        }
        with self._transaction("create_settlement", actor, **context) as held:
            now = self.clock()
            summary = self.aggregator.aggregate(provider_id, period_start, period_end, at=now)
            if not summary.order_ids:
                settled = self.order_reader.list_settled_order_ids(
                    provider_id, period_start, period_end
                )
                if settled:
                    raise OrderAlreadySettledError(settled)
                raise InvalidInputError(
                    f"No eligible orders for provider {provider_id} in "
                    f"[{period_start.isoformat()}, {period_end.isoformat()})"
                )

            held.enter_context(
                self.locks.hold(provider_lock_key(provider_id), self.lock_timeout)
            )
            # The aggregate may be stale; re-read the exact rows under lock
            locked = {
                order.id: order for order in self.order_reader.lock_orders(summary.order_ids)
            }
            conflicts = [
                order_id
                for order_id in summary.order_ids
                if order_id not in locked
                or locked[order_id].settlement_status != OrderSettlementStatus.ELIGIBLE.value
                or locked[order_id].settlement_id is not None
                or locked[order_id].provider_id != provider_id
            ]
            if conflicts:
                raise OrderAlreadySettledError(conflicts)

            balanced = summary.net_balance == ZERO
            settlement = self.settlement_repo.create(
                summary,
                status=SettlementStatus.PAID.value if balanced else SettlementStatus.PENDING.value,
                due_date=now + timedelta(days=settings.SETTLEMENT_DUE_DAYS),
                paid_at=now if balanced else None,
                created_by=actor.actor_id,
                notes=notes,
            )
            self.order_reader.mark_settled(summary.order_ids, settlement.id)
            self._record_audit(
                held,
                AuditAction.CREATE,
                actor,
                settlement_id=settlement.id,
                new_value={
                    **settlement_snapshot(settlement),
                    "provider_id": provider_id,
                    "period_start": summary.period_start,
                    "period_end": summary.period_end,
                    "settlement_direction": summary.settlement_direction.value,
                    "order_ids": sorted(str(order_id) for order_id in summary.order_ids),
                },
                notes=notes,
            )

        self.db.refresh(settlement)
        logger.info(
            "Created settlement %s for provider %s: %d orders, net balance %s (%s)",
            settlement.id,
            provider_id,
            settlement.total_orders,
            settlement.net_balance,
            settlement.settlement_direction,
        )
        return settlement

    def record_payment(
        self,
        settlement_id: UUID,
        amount: Decimal,
        method: str,
        reference: str | None,
        actor: Actor,
    ) -> Settlement:
        amount = to_decimal(amount)
        if amount <= ZERO:
            raise InvalidInputError(f"Payment amount must be positive, got {amount}")
        if quantize_money(amount) != amount:
            raise InvalidInputError(f"Payment amount {amount} has more than two decimal places")
        method = getattr(method, "value", method)
        if method not in _PAYMENT_METHODS:
            raise InvalidInputError(f"Unknown payment method '{method}'")

        with self._transaction(
            "record_payment",
            actor,
            lock_keys=[settlement_lock_key(settlement_id)],
            settlement_id=str(settlement_id),
        ) as held:
            settlement = self._get_settlement_for_update(settlement_id)
            outstanding = settlement.outstanding_amount
            if settlement.status == SettlementStatus.PAID.value:
                raise OverpaymentError(settlement.id, amount, outstanding)
            if settlement.status not in _OPEN_STATUSES:
                raise InvalidStateTransitionError(settlement.status, "record a payment")
            if amount > outstanding:
                raise OverpaymentError(settlement.id, amount, outstanding)

            before = settlement_snapshot(settlement)
            payment = self.payment_repo.create(
                settlement.id, amount, method, reference, recorded_by=actor.actor_id
            )
            settlement.amount_paid = to_decimal(settlement.amount_paid) + amount
            settlement.processed_by = actor.actor_id
            if settlement.amount_paid == settlement.obligation:
                settlement.status = SettlementStatus.PAID.value
                settlement.paid_at = self.clock()
                action = AuditAction.RECORD_PAYMENT
            else:
                settlement.status = SettlementStatus.PARTIALLY_PAID.value
                action = AuditAction.RECORD_PARTIAL_PAYMENT
            self.db.flush()

            self._record_audit(
                held,
                action,
                actor,
                settlement_id=settlement.id,
                old_value=before,
                new_value={**settlement_snapshot(settlement), "payment_id": payment.id},
                amount=amount,
                payment_method=method,
                payment_reference=reference,
            )

        self.db.refresh(settlement)
        logger.info(
            "Recorded %s payment of %s on settlement %s (now %s)",
            method,
            amount,
            settlement.id,
            settlement.status,
        )
        return settlement

    def void_payment(
        self, settlement_id: UUID, payment_id: UUID, reason: str, actor: Actor
    ) -> Settlement:
        if not reason or not reason.strip():
            raise InvalidInputError("A reason is required to void a payment")

        with self._transaction(
            "void_payment",
            actor,
            lock_keys=[settlement_lock_key(settlement_id)],
            settlement_id=str(settlement_id),
            payment_id=str(payment_id),
        ) as held:
            settlement = self._get_settlement_for_update(settlement_id)
            if settlement.status == SettlementStatus.WAIVED.value:
                raise InvalidStateTransitionError(settlement.status, "void a payment")

            payment: SettlementPayment | None = self.payment_repo.get_by_id(
                settlement.id, payment_id
            )
            if payment is None:
                raise PaymentNotFoundError(payment_id)
            if payment.voided_at is not None:
                raise InvalidStateTransitionError(
                    "voided", "void a payment", f"Payment {payment_id} is already voided"
                )

            before = settlement_snapshot(settlement)
            self.payment_repo.void(payment, reason)
            settlement.amount_paid = to_decimal(settlement.amount_paid) - to_decimal(payment.amount)
            settlement.paid_at = None
            settlement.processed_by = actor.actor_id
            if settlement.status != SettlementStatus.DISPUTED.value:
                settlement.status = (
                    SettlementStatus.PARTIALLY_PAID.value
                    if settlement.amount_paid > ZERO
                    else SettlementStatus.PENDING.value
                )
            self.db.flush()

            self._record_audit(
                held,
                AuditAction.VOID_PAYMENT,
                actor,
                settlement_id=settlement.id,
                old_value=before,
                new_value={**settlement_snapshot(settlement), "payment_id": payment.id},
                amount=to_decimal(payment.amount),
                payment_method=payment.method,
                payment_reference=payment.reference,
                reason=reason,
            )

        self.db.refresh(settlement)
        logger.info("Voided payment %s on settlement %s", payment_id, settlement_id)
        return settlement

    def open_dispute(self, settlement_id: UUID, reason: str, actor: Actor) -> Settlement:
        if not reason or not reason.strip():
            raise InvalidInputError("A reason is required to open a dispute")

        with self._transaction(
            "open_dispute",
            actor,
            lock_keys=[settlement_lock_key(settlement_id)],
            settlement_id=str(settlement_id),
        ) as held:
            settlement = self._get_settlement_for_update(settlement_id)
            if settlement.status not in _OPEN_STATUSES:
                raise InvalidStateTransitionError(settlement.status, "open a dispute")

            before = settlement_snapshot(settlement)
            settlement.status = SettlementStatus.DISPUTED.value
            settlement.dispute_reason = reason
            settlement.processed_by = actor.actor_id
            self.db.flush()

            self._record_audit(
                held,
                AuditAction.DISPUTE_OPENED,
                actor,
                settlement_id=settlement.id,
                old_value=before,
                new_value=settlement_snapshot(settlement),
                reason=reason,
            )

        self.db.refresh(settlement)
        logger.info("Opened dispute on settlement %s", settlement_id)
        return settlement

    def resolve_dispute(
        self,
        settlement_id: UUID,
        resolution: DisputeResolution | str,
        notes: str | None,
        actor: Actor,
    ) -> Settlement:
        """Reinstate a disputed settlement to its payable state, or waive it."""
        try:
            resolution = DisputeResolution(resolution)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown dispute resolution '{resolution}'") from exc

        with self._transaction(
            "resolve_dispute",
            actor,
            lock_keys=[settlement_lock_key(settlement_id)],
            settlement_id=str(settlement_id),
        ) as held:
            settlement = self._get_settlement_for_update(settlement_id)
            if settlement.status != SettlementStatus.DISPUTED.value:
                raise InvalidStateTransitionError(settlement.status, "resolve a dispute")

            before = settlement_snapshot(settlement)
            if resolution == DisputeResolution.WAIVE:
                settlement.status = SettlementStatus.WAIVED.value
                settlement.waive_reason = notes or settlement.dispute_reason
            elif to_decimal(settlement.amount_paid) > ZERO:
                settlement.status = SettlementStatus.PARTIALLY_PAID.value
            else:
                settlement.status = SettlementStatus.PENDING.value
            settlement.resolution_notes = notes
            settlement.processed_by = actor.actor_id
            self.db.flush()

            self._record_audit(
                held,
                AuditAction.DISPUTE_RESOLVED,
                actor,
                settlement_id=settlement.id,
                old_value=before,
                new_value={**settlement_snapshot(settlement), "resolution": resolution.value},
                notes=notes,
            )

        self.db.refresh(settlement)
        logger.info(
            "Resolved dispute on settlement %s with %s", settlement_id, resolution.value
        )
        return settlement

    def waive(self, settlement_id: UUID, reason: str, actor: Actor) -> Settlement:
        """Administrative override. Authorization is checked by the caller."""
        if not reason or not reason.strip():
            raise InvalidInputError("A reason is required to waive a settlement")

        with self._transaction(
            "waive",
            actor,
            lock_keys=[settlement_lock_key(settlement_id)],
            settlement_id=str(settlement_id),
        ) as held:
            settlement = self._get_settlement_for_update(settlement_id)
            if settlement.status in (SettlementStatus.PAID.value, SettlementStatus.WAIVED.value):
                raise InvalidStateTransitionError(settlement.status, "waive")

            before = settlement_snapshot(settlement)
            settlement.status = SettlementStatus.WAIVED.value
            settlement.waive_reason = reason
            settlement.processed_by = actor.actor_id
            self.db.flush()

            self._record_audit(
                held,
                AuditAction.WAIVE,
                actor,
                settlement_id=settlement.id,
                old_value=before,
                new_value=settlement_snapshot(settlement),
                reason=reason,
            )

        self.db.refresh(settlement)
        logger.info("Waived settlement %s", settlement_id)
        return settlement

    def delete_settlement(self, settlement_id: UUID, reason: str, actor: Actor) -> Settlement:
        """Tombstone an erroneously created settlement.

        Only pending settlements that never received money can be deleted. The
        orders stay settled and bound to the deleted settlement; an order is
        never settled twice.
        """
        if not reason or not reason.strip():
            raise InvalidInputError("A reason is required to delete a settlement")

        with self._transaction(
            "delete_settlement",
            actor,
            lock_keys=[settlement_lock_key(settlement_id)],
            settlement_id=str(settlement_id),
        ) as held:
            settlement = self._get_settlement_for_update(settlement_id)
            if settlement.status != SettlementStatus.PENDING.value:
                raise InvalidStateTransitionError(settlement.status, "delete")
            if self.payment_repo.count_active(settlement.id) or to_decimal(
                settlement.amount_paid
            ) != ZERO:
                raise InvalidStateTransitionError(
                    settlement.status,
                    "delete",
                    f"Settlement {settlement_id} has recorded payments",
                )

            order_ids = sorted(
                str(order_id)
                for order_id in self.order_reader.list_order_ids_for_settlement(settlement.id)
            )
            before = {**settlement_snapshot(settlement), "order_ids": order_ids}
            settlement.deleted_at = self.clock()
            settlement.processed_by = actor.actor_id
            self.db.flush()

            self._record_audit(
                held,
                AuditAction.DELETE,
                actor,
                settlement_id=settlement.id,
                old_value=before,
                new_value={**settlement_snapshot(settlement), "order_ids": order_ids},
                reason=reason,
            )

        logger.info("Deleted settlement %s (%d orders stay settled)", settlement_id, len(order_ids))
        return settlement

    def hold_order(self, order_id: UUID, reason: str, actor: Actor) -> Order:
        if not reason or not reason.strip():
            raise InvalidInputError("A reason is required to hold an order")

        order = self._get_order(order_id)
        with self._transaction(
            "hold_order",
            actor,
            lock_keys=[provider_lock_key(order.provider_id)],
            order_id=str(order_id),
        ) as held:
            order = self.order_reader.get_for_update(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            self._check_order_transition(order, OrderSettlementStatus.ELIGIBLE, "hold")

            before = order_snapshot(order)
            if not self.order_reader.mark_on_hold(order_id, reason):
                raise OrderAlreadySettledError([order_id])
            self.db.refresh(order)

            self._record_audit(
                held,
                AuditAction.HOLD_ORDER,
                actor,
                order_id=order_id,
                old_value=before,
                new_value=order_snapshot(order),
                reason=reason,
            )

        logger.info("Put order %s on hold", order_id)
        return order

    def release_order(self, order_id: UUID, actor: Actor) -> Order:
        order = self._get_order(order_id)
        with self._transaction(
            "release_order",
            actor,
            lock_keys=[provider_lock_key(order.provider_id)],
            order_id=str(order_id),
        ) as held:
            order = self.order_reader.get_for_update(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            self._check_order_transition(order, OrderSettlementStatus.ON_HOLD, "release")

            before = order_snapshot(order)
            if not self.order_reader.mark_released(order_id):
                raise InvalidStateTransitionError(order.settlement_status, "release")
            self.db.refresh(order)

            self._record_audit(
                held,
                AuditAction.RELEASE_ORDER,
                actor,
                order_id=order_id,
                old_value=before,
                new_value=order_snapshot(order),
            )

        logger.info("Released order %s from hold", order_id)
        return order

    def _check_order_transition(
        self, order: Order, expected: OrderSettlementStatus, action: str
    ) -> None:
        if order.settlement_status == OrderSettlementStatus.SETTLED.value:
            raise OrderAlreadySettledError([order.id])
        if order.settlement_status != expected.value:
            raise InvalidStateTransitionError(order.settlement_status, f"{action} order")
