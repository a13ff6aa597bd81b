"""Order ledger access for the settlement engine."""

from collections.abc import Collection, Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy import func as sa_func
from sqlalchemy.orm import Session

from settlement_engine.core.exceptions import OrderAlreadySettledError
from settlement_engine.core.money import to_decimal
from settlement_engine.models.order import Order, OrderSettlementStatus
from settlement_engine.models.shared import as_utc
from settlement_engine.schemas.ledger import OrderFinancials


def to_order_financials(order: Order) -> OrderFinancials:
    return OrderFinancials(
        id=order.id,
        provider_id=order.provider_id,
        payment_method=order.payment_method,
        subtotal=to_decimal(order.subtotal),
        delivery_fee=to_decimal(order.delivery_fee),
        discount=to_decimal(order.discount),
        total=to_decimal(order.total),
        refund_amount=to_decimal(order.refund_amount),
        settlement_status=order.settlement_status,
        created_at=as_utc(order.created_at),  # type: ignore[arg-type]
    )


class OrderLedgerReader:
    """Reads order financials and owns the only writes to settlement eligibility.

    Every status change is a conditional UPDATE on the expected current state
    so a concurrent writer can never be silently overwritten. Nothing here
    commits; the calling service owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def _window(self, query, period_start: datetime, period_end: datetime):  # type: ignore[no-untyped-def]
        return query.filter(
            Order.created_at >= as_utc(period_start),
            Order.created_at < as_utc(period_end),
        )

    def list_eligible_orders(
        self,
        provider_id: UUID,
        period_start: datetime,
        period_end: datetime,
        payment_methods: Collection[str] | None = None,
    ) -> list[OrderFinancials]:
        """Eligible, unassigned orders with created_at in [period_start, period_end)."""
        query = self.db.query(Order).filter(
            Order.provider_id == provider_id,
            Order.settlement_status == OrderSettlementStatus.ELIGIBLE.value,
            Order.settlement_id.is_(None),
        )
        query = self._window(query, period_start, period_end)
        if payment_methods:
            query = query.filter(Order.payment_method.in_(list(payment_methods)))
        orders = query.order_by(Order.created_at.asc(), Order.id.asc()).all()
        return [to_order_financials(order) for order in orders]

    def get_by_id(self, order_id: UUID) -> Order | None:
        return self.db.query(Order).filter(Order.id == order_id).first()

    def get_for_update(self, order_id: UUID) -> Order | None:
        return (
            self.db.query(Order)
            .filter(Order.id == order_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def lock_orders(self, order_ids: Sequence[UUID]) -> list[Order]:
        """Re-read orders with a row lock (ignored by SQLite)."""
        if not order_ids:
            return []
        return (
            self.db.query(Order)
            .filter(Order.id.in_(list(order_ids)))
            .order_by(Order.id.asc())
            .with_for_update()
            .populate_existing()
            .all()
        )

    def mark_settled(self, order_ids: Sequence[UUID], settlement_id: UUID) -> int:
        """Assign eligible orders to a settlement.

        Raises OrderAlreadySettledError when any order was not eligible and
        unassigned at write time.
        """
        if not order_ids:
            return 0
        updated = (
            self.db.query(Order)
            .filter(
                Order.id.in_(list(order_ids)),
                Order.settlement_status == OrderSettlementStatus.ELIGIBLE.value,
                Order.settlement_id.is_(None),
            )
            .update(
                {
                    Order.settlement_status: OrderSettlementStatus.SETTLED.value,
                    Order.settlement_id: settlement_id,
                },
                synchronize_session=False,
            )
        )
        if updated != len(set(order_ids)):
            conflicting = [
                row.id
                for row in self.db.query(Order.id)
                .filter(
                    Order.id.in_(list(order_ids)),
                    (Order.settlement_id.is_(None)) | (Order.settlement_id != settlement_id),
                )
                .all()
            ]
            raise OrderAlreadySettledError(conflicting or order_ids)
        return updated

    def mark_on_hold(self, order_id: UUID, reason: str) -> bool:
        updated = (
            self.db.query(Order)
            .filter(
                Order.id == order_id,
                Order.settlement_status == OrderSettlementStatus.ELIGIBLE.value,
            )
            .update(
                {
                    Order.settlement_status: OrderSettlementStatus.ON_HOLD.value,
                    Order.hold_reason: reason,
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    def mark_released(self, order_id: UUID) -> bool:
        updated = (
            self.db.query(Order)
            .filter(
                Order.id == order_id,
                Order.settlement_status == OrderSettlementStatus.ON_HOLD.value,
            )
            .update(
                {
                    Order.settlement_status: OrderSettlementStatus.ELIGIBLE.value,
                    Order.hold_reason: None,
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    def list_settled_order_ids(
        self, provider_id: UUID, period_start: datetime, period_end: datetime
    ) -> list[UUID]:
        query = self.db.query(Order.id).filter(
            Order.provider_id == provider_id,
            Order.settlement_status == OrderSettlementStatus.SETTLED.value,
        )
        rows = self._window(query, period_start, period_end).order_by(Order.id.asc()).all()
        return [row.id for row in rows]

    def list_order_ids_for_settlement(self, settlement_id: UUID) -> list[UUID]:
        rows = (
            self.db.query(Order.id)
            .filter(Order.settlement_id == settlement_id)
            .order_by(Order.id.asc())
            .all()
        )
        return [row.id for row in rows]

    def count_by_status(
        self,
        provider_id: UUID | None,
        period_start: datetime,
        period_end: datetime,
        payment_methods: Collection[str] | None = None,
    ) -> dict[str, int]:
        """Order counts per settlement_status within [period_start, period_end)."""
        query = self.db.query(Order.settlement_status, sa_func.count(Order.id))
        if provider_id is not None:
            query = query.filter(Order.provider_id == provider_id)
        if payment_methods:
            query = query.filter(Order.payment_method.in_(list(payment_methods)))
        query = self._window(query, period_start, period_end)
        rows = query.group_by(Order.settlement_status).all()
        counts = {status.value: 0 for status in OrderSettlementStatus}
        for status, count in rows:
            counts[status] = count
        return counts

    def list_provider_ids_with_eligible_orders(
        self, period_start: datetime, period_end: datetime
    ) -> list[UUID]:
        query = self.db.query(Order.provider_id).filter(
            Order.settlement_status == OrderSettlementStatus.ELIGIBLE.value,
            Order.settlement_id.is_(None),
        )
        query = self._window(query, period_start, period_end)
        rows = query.distinct().all()
        return sorted((row.provider_id for row in rows), key=str)
