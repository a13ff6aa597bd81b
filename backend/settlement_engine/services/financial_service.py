"""Read side for finance dashboards: summaries, settlements, audit trail, export."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.orm import Session

from settlement_engine.core.exceptions import SettlementNotFoundError
from settlement_engine.models.settlement import Settlement
from settlement_engine.models.settlement_audit_log import SettlementAuditLog
from settlement_engine.models.settlement_payment import SettlementPayment
from settlement_engine.models.shared import utc_now
from settlement_engine.repositories.audit_log_repository import SettlementAuditLogRepository
from settlement_engine.repositories.order_repository import OrderLedgerReader
from settlement_engine.repositories.provider_repository import (
    ProviderRepository,
    to_commission_profile,
)
from settlement_engine.repositories.settlement_payment_repository import (
    SettlementPaymentRepository,
)
from settlement_engine.repositories.settlement_repository import SettlementRepository
from settlement_engine.schemas.audit_log import AuditChainVerification
from settlement_engine.schemas.financial_summary import (
    AdminFinancialSummary,
    FinancialFilters,
    FinancialSummary,
    RegionalFinancialSummary,
)
from settlement_engine.services.audit_service import SettlementAuditService
from settlement_engine.services.period_aggregator import PeriodAggregator
from settlement_engine.services.settlement_export import render_settlements_csv
from settlement_engine.services.summary_projections import (
    build_admin_summary,
    build_regional_summaries,
)

logger = logging.getLogger(__name__)

# Lower bound of the summary window when no date_from is given
LEDGER_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _has_activity(summary: FinancialSummary) -> bool:
    return bool(summary.orders.total or summary.orders.on_hold or summary.orders.settled)


class FinancialService:
    """Dashboard reads. Never mutates financial state."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock
        self.aggregator = PeriodAggregator(db)
        self.provider_repo = ProviderRepository(db)
        self.order_reader = OrderLedgerReader(db)
        self.settlement_repo = SettlementRepository(db)
        self.payment_repo = SettlementPaymentRepository(db)
        self.audit_repo = SettlementAuditLogRepository(db)

    def _window(self, filters: FinancialFilters, now: datetime) -> tuple[datetime, datetime]:
        return filters.date_from or LEDGER_EPOCH, filters.date_to or now

    def _payment_methods(self, filters: FinancialFilters) -> list[str] | None:
        if not filters.payment_methods:
            return None
        return [method.value for method in filters.payment_methods]

    def get_provider_summary(
        self, provider_id: UUID, filters: FinancialFilters | None = None
    ) -> FinancialSummary:
        filters = filters or FinancialFilters()
        now = self.clock()
        period_start, period_end = self._window(filters, now)
        return self.aggregator.aggregate(
            provider_id,
            period_start,
            period_end,
            at=now,
            payment_methods=self._payment_methods(filters),
        )

    def _provider_summaries(self, filters: FinancialFilters) -> list[FinancialSummary]:
        now = self.clock()
        period_start, period_end = self._window(filters, now)
        payment_methods = self._payment_methods(filters)
        directions = set(filters.directions or [])

        summaries = []
        for provider in self.provider_repo.get_all(
            provider_id=filters.provider_id, governorate_id=filters.governorate_id
        ):
            summary = self.aggregator.aggregate(
                provider.id,
                period_start,
                period_end,
                at=now,
                payment_methods=payment_methods,
                profile=to_commission_profile(provider),
            )
            if not _has_activity(summary):
                continue
            if directions and summary.settlement_direction not in directions:
                continue
            summaries.append(summary)
        return summaries

    def get_admin_summary(self, filters: FinancialFilters | None = None) -> AdminFinancialSummary:
        summaries = self._provider_summaries(filters or FinancialFilters())
        return build_admin_summary(summaries)

    def get_regional_summary(
        self, filters: FinancialFilters | None = None
    ) -> list[RegionalFinancialSummary]:
        summaries = self._provider_summaries(filters or FinancialFilters())
        governorate_ids = {s.governorate_id for s in summaries if s.governorate_id is not None}
        names = self.provider_repo.get_governorate_names(governorate_ids)
        return build_regional_summaries(summaries, names)

    def list_settlements(
        self,
        filters: FinancialFilters | None = None,
        skip: int = 0,
        limit: int | None = 100,
        order_by: str | None = None,
    ) -> list[Settlement]:
        return self.settlement_repo.get_all(
            filters, skip=skip, limit=limit, order_by=order_by, now=self.clock()
        )

    def get_settlement_by_id(self, settlement_id: UUID) -> Settlement:
        settlement = self.settlement_repo.get_by_id(settlement_id)
        if settlement is None:
            raise SettlementNotFoundError(settlement_id)
        return settlement

    def get_settlement_payments(self, settlement_id: UUID) -> list[SettlementPayment]:
        return self.payment_repo.get_by_settlement_id(settlement_id)

    def get_settlement_order_ids(self, settlement_id: UUID) -> list[UUID]:
        return self.order_reader.list_order_ids_for_settlement(settlement_id)

    def get_audit_log(self, settlement_id: UUID) -> list[SettlementAuditLog]:
        """Full history of a settlement, including one that was deleted."""
        if self.settlement_repo.get_by_id(settlement_id, include_deleted=True) is None:
            raise SettlementNotFoundError(settlement_id)
        return self.audit_repo.get_by_settlement(settlement_id)

    def export_settlements_csv(self, filters: FinancialFilters | None = None) -> str:
        settlements = self.list_settlements(filters, limit=None)
        names = self.provider_repo.get_names({s.provider_id for s in settlements})
        logger.info("Exporting %d settlements to CSV", len(settlements))
        return render_settlements_csv(settlements, names, at=self.clock())

    def verify_audit_chain(self) -> AuditChainVerification:
        return SettlementAuditService(self.db).verify_chain()

    def count_overdue_settlements(self) -> int:
        return self.settlement_repo.count_overdue(self.clock())
