import logging
from collections import defaultdict
from collections.abc import Collection
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

from arq import cron
from sqlalchemy.orm import Session

from settlement_engine.core import database
from settlement_engine.core.auth import SYSTEM_ACTOR
from settlement_engine.core.config import settings
from settlement_engine.core.exceptions import SettlementEngineError
from settlement_engine.models.settlement_group import PERIOD_DAYS, SettlementFrequency
from settlement_engine.models.shared import utc_now
from settlement_engine.repositories.order_repository import OrderLedgerReader
from settlement_engine.repositories.settlement_group_repository import SettlementGroupRepository
from settlement_engine.services.financial_service import FinancialService
from settlement_engine.services.settlement_service import SettlementService
from settlement_engine.tasks import redis_settings

logger = logging.getLogger(__name__)

# A Monday; weekly periods run Monday to Sunday and 3-day periods count from here.
CADENCE_ANCHOR = date(2024, 1, 1)

RUN_NOTES = {
    SettlementFrequency.DAILY.value: "Automatic daily settlement",
    SettlementFrequency.THREE_DAYS.value: "Automatic 3-day settlement",
    SettlementFrequency.WEEKLY.value: "Automatic weekly settlement",
}


@dataclass
class SettlementRunResult:
    created: int = 0
    failed: int = 0


def _local_days_before(today: date, days: int, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC bounds of the ``days`` local calendar days before ``today``."""
    start = datetime.combine(today - timedelta(days=days), time.min, tzinfo=tz)
    end = datetime.combine(today, time.min, tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)


def due_period(
    frequency: str, now: datetime, timezone: str
) -> tuple[datetime, datetime] | None:
    """UTC bounds of the period a ``frequency`` run closes at ``now``.

    Returns None when the local day is not a settlement day for the cadence.
    Periods end at local midnight and never overlap, so consecutive runs of
    one cadence cover every day exactly once.
    """
    tz = ZoneInfo(timezone)
    today = now.astimezone(tz).date()
    days = PERIOD_DAYS[frequency]
    if (today - CADENCE_ANCHOR).days % days:
        return None
    return _local_days_before(today, days, tz)


def settle_period(
    db: Session,
    period_start: datetime,
    period_end: datetime,
    provider_ids: Collection[UUID] | None = None,
    notes: str = RUN_NOTES[SettlementFrequency.DAILY.value],
) -> SettlementRunResult:
    """Create one settlement per provider with eligible orders in the period.

    ``provider_ids`` restricts the run to those providers. A failing provider
    is logged and counted; the run carries on with the rest.
    """
    result = SettlementRunResult()
    candidates = OrderLedgerReader(db).list_provider_ids_with_eligible_orders(
        period_start, period_end
    )
    if provider_ids is not None:
        allowed = set(provider_ids)
        candidates = [provider_id for provider_id in candidates if provider_id in allowed]
    service = SettlementService(db)
    for provider_id in candidates:
        try:
            service.create_settlement(
                provider_id,
                period_start,
                period_end,
                SYSTEM_ACTOR,
                notes=notes,
            )
            result.created += 1
        except SettlementEngineError as e:
            result.failed += 1
            logger.warning(
                "Scheduled settlement for provider %s failed: %s (%s)",
                provider_id,
                e.message,
                e.code,
            )
        except Exception:
            result.failed += 1
            logger.exception("Scheduled settlement for provider %s failed", provider_id)
    return result


def settle_due_periods(db: Session, now: datetime, timezone: str) -> SettlementRunResult:
    """Settle every provider whose settlement group cadence is due at ``now``."""
    by_frequency: dict[str, list[UUID]] = defaultdict(list)
    for provider_id, frequency in SettlementGroupRepository(db).provider_frequencies().items():
        by_frequency[frequency].append(provider_id)

    total = SettlementRunResult()
    for frequency in SettlementFrequency:
        provider_ids = by_frequency.get(frequency.value)
        if not provider_ids:
            continue
        period = due_period(frequency.value, now, timezone)
        if period is None:
            continue
        period_start, period_end = period
        result = settle_period(
            db, period_start, period_end, provider_ids, notes=RUN_NOTES[frequency.value]
        )
        logger.info(
            "Settled %s providers for [%s, %s): %d created, %d failed",
            frequency.value,
            period_start.isoformat(),
            period_end.isoformat(),
            result.created,
            result.failed,
        )
        total.created += result.created
        total.failed += result.failed
    return total


async def create_daily_settlements_task(ctx: dict[str, Any]) -> int:
    """Background task: settle every provider whose cadence closes today.

    Runs daily at 00:05.
    """
    db = database.SessionLocal()
    try:
        now = utc_now()
        result = settle_due_periods(db, now, settings.SETTLEMENT_TIMEZONE)
        logger.info(
            "Settlement run at %s: %d created, %d failed",
            now.isoformat(),
            result.created,
            result.failed,
        )
        return result.created
    finally:
        db.close()


async def report_overdue_settlements_task(ctx: dict[str, Any]) -> int:
    """Background task: report settlements past their due date.

    Runs hourly.
    """
    db = database.SessionLocal()
    try:
        count = FinancialService(db).count_overdue_settlements()
        if count > 0:
            logger.warning("%d settlements are overdue", count)
        return count
    finally:
        db.close()


class WorkerSettings:
    functions = [
        create_daily_settlements_task,
        report_overdue_settlements_task,
    ]
    cron_jobs = [
        cron(create_daily_settlements_task, hour=0, minute=5),  # daily at 00:05
        cron(report_overdue_settlements_task, minute={0}),  # hourly
    ]
    redis_settings = redis_settings
