"""Settlement repository for data access."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy import func as sa_func
from sqlalchemy.orm import Query, Session

from settlement_engine.core.sorting import apply_order_by
from settlement_engine.models.order import PaymentMethod
from settlement_engine.models.provider import Provider
from settlement_engine.models.settlement import (
    OVERDUE_ELIGIBLE_STATUSES,
    Settlement,
    SettlementStatus,
)
from settlement_engine.models.shared import as_utc, utc_now
from settlement_engine.schemas.financial_summary import FinancialFilters, FinancialSummary

SORTABLE_FIELDS = {
    "created_at",
    "period_start",
    "period_end",
    "due_date",
    "net_balance",
    "gross_revenue",
    "status",
}


class SettlementRepository:
    """Repository for Settlement model. Soft-deleted settlements are hidden by default."""

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self, include_deleted: bool = False) -> Query:  # type: ignore[type-arg]
        query = self.db.query(Settlement)
        if not include_deleted:
            query = query.filter(Settlement.deleted_at.is_(None))
        return query

    def get_by_id(self, settlement_id: UUID, include_deleted: bool = False) -> Settlement | None:
        return (
            self._base_query(include_deleted).filter(Settlement.id == settlement_id).first()
        )

    def get_for_update(self, settlement_id: UUID) -> Settlement | None:
        return (
            self._base_query()
            .filter(Settlement.id == settlement_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def create(
        self,
        summary: FinancialSummary,
        *,
        status: str,
        due_date: datetime,
        created_by: str | None = None,
        notes: str | None = None,
        paid_at: datetime | None = None,
    ) -> Settlement:
        """Persist a snapshot of ``summary``."""
        settlement = Settlement(
            provider_id=summary.provider_id,
            period_start=summary.period_start,
            period_end=summary.period_end,
            commission_rate=summary.commission_rate,
            total_orders=summary.orders.total,
            cod_orders_count=summary.orders.cod,
            online_orders_count=summary.orders.online,
            gross_revenue=summary.revenue.gross,
            cod_gross_revenue=summary.revenue.cod,
            online_gross_revenue=summary.revenue.online,
            theoretical_commission=summary.commission.theoretical,
            actual_commission=summary.commission.actual,
            grace_period_discount=summary.commission.grace_discount,
            total_delivery_fees=summary.delivery_fees.total,
            cod_delivery_fees=summary.delivery_fees.cod,
            online_delivery_fees=summary.delivery_fees.online,
            total_refunds=summary.refunds.total,
            refund_commission_reduction=summary.refunds.commission_reduction,
            net_commission=summary.net_commission,
            cod_commission_owed=summary.cod_commission_owed,
            online_payout_owed=summary.online_payout_owed,
            net_balance=summary.net_balance,
            settlement_direction=summary.settlement_direction.value,
            status=status,
            amount_paid=0,
            due_date=due_date,
            paid_at=paid_at,
            notes=notes,
            created_by=created_by,
        )
        self.db.add(settlement)
        self.db.flush()
        return settlement

    def _apply_filters(
        self,
        query: Query,  # type: ignore[type-arg]
        filters: FinancialFilters,
        now: datetime,
    ) -> Query:  # type: ignore[type-arg]
        if filters.provider_id is not None:
            query = query.filter(Settlement.provider_id == filters.provider_id)
        if filters.governorate_id is not None:
            query = query.join(Provider, Provider.id == Settlement.provider_id).filter(
                Provider.governorate_id == filters.governorate_id
            )
        # Date range selects settlements whose period overlaps [date_from, date_to)
        if filters.date_from is not None:
            query = query.filter(Settlement.period_end > as_utc(filters.date_from))
        if filters.date_to is not None:
            query = query.filter(Settlement.period_start < as_utc(filters.date_to))
        if filters.directions:
            query = query.filter(
                Settlement.settlement_direction.in_([d.value for d in filters.directions])
            )
        if filters.payment_methods:
            method_conditions = []
            if PaymentMethod.CASH_ON_DELIVERY in filters.payment_methods:
                method_conditions.append(Settlement.cod_orders_count > 0)
            if PaymentMethod.ONLINE in filters.payment_methods:
                method_conditions.append(Settlement.online_orders_count > 0)
            query = query.filter(or_(*method_conditions))
        if filters.statuses:
            query = query.filter(
                or_(*[self._status_condition(status, now) for status in filters.statuses])
            )
        return query

    def _status_condition(self, status: SettlementStatus, now: datetime):  # type: ignore[no-untyped-def]
        """SQL condition for one effective status."""
        now = as_utc(now)  # type: ignore[assignment]
        if status == SettlementStatus.OVERDUE:
            return and_(
                Settlement.status.in_(list(OVERDUE_ELIGIBLE_STATUSES)),
                Settlement.due_date < now,
            )
        if status.value in OVERDUE_ELIGIBLE_STATUSES:
            return and_(Settlement.status == status.value, Settlement.due_date >= now)
        return Settlement.status == status.value

    def get_all(
        self,
        filters: FinancialFilters | None = None,
        skip: int = 0,
        limit: int | None = 100,
        order_by: str | None = None,
        now: datetime | None = None,
    ) -> list[Settlement]:
        query = self._apply_filters(
            self._base_query(), filters or FinancialFilters(), now or utc_now()
        )
        query = apply_order_by(query, Settlement, order_by, SORTABLE_FIELDS)
        query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count_overdue(self, now: datetime | None = None) -> int:
        condition = self._status_condition(SettlementStatus.OVERDUE, now or utc_now())
        return (
            self.db.query(sa_func.count(Settlement.id))
            .filter(Settlement.deleted_at.is_(None), condition)
            .scalar()
            or 0
        )

    def count(self, filters: FinancialFilters | None = None, now: datetime | None = None) -> int:
        query = self._apply_filters(
            self._base_query(), filters or FinancialFilters(), now or utc_now()
        )
        return query.count()
