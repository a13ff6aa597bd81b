"""Finance dashboard API endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from settlement_engine.core.cache import TTLCache
from settlement_engine.core.config import settings
from settlement_engine.core.database import get_db
from settlement_engine.core.exceptions import SettlementEngineError
from settlement_engine.core.http_errors import to_http_exception
from settlement_engine.models.order import PaymentMethod
from settlement_engine.models.settlement import SettlementDirection, SettlementStatus
from settlement_engine.schemas.financial_summary import (
    AdminFinancialSummary,
    FinancialFilters,
    FinancialSummary,
    RegionalFinancialSummary,
)
from settlement_engine.services.financial_service import FinancialService

router = APIRouter()

summary_cache = TTLCache(ttl_seconds=settings.SUMMARY_CACHE_TTL_SECONDS)


def get_financial_filters(
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    governorate_id: UUID | None = None,
    provider_id: UUID | None = None,
    status: list[SettlementStatus] | None = Query(default=None),
    direction: list[SettlementDirection] | None = Query(default=None),
    payment_method: list[PaymentMethod] | None = Query(default=None),
) -> FinancialFilters:
    """Read filters from the query string; list filters may be repeated."""
    return FinancialFilters(
        date_from=date_from,
        date_to=date_to,
        governorate_id=governorate_id,
        provider_id=provider_id,
        statuses=status or None,
        directions=direction or None,
        payment_methods=payment_method or None,
    )


@router.get(
    "/providers/{provider_id}/summary",
    response_model=FinancialSummary,
    summary="Provider financial summary",
    responses={404: {"description": "Provider not found"}},
)
def get_provider_summary(
    provider_id: UUID,
    filters: FinancialFilters = Depends(get_financial_filters),
    db: Session = Depends(get_db),
) -> FinancialSummary:
    """Unsettled position of one provider over the requested window."""
    key = ("provider", provider_id, filters.cache_key())
    try:
        return summary_cache.get_or_compute(
            key, lambda: FinancialService(db).get_provider_summary(provider_id, filters)
        )
    except SettlementEngineError as e:
        raise to_http_exception(e) from None


@router.get(
    "/admin_summary",
    response_model=AdminFinancialSummary,
    summary="Platform-wide financial summary",
)
def get_admin_summary(
    filters: FinancialFilters = Depends(get_financial_filters),
    db: Session = Depends(get_db),
) -> AdminFinancialSummary:
    key = ("admin", filters.cache_key())
    try:
        return summary_cache.get_or_compute(
            key, lambda: FinancialService(db).get_admin_summary(filters)
        )
    except SettlementEngineError as e:
        raise to_http_exception(e) from None


@router.get(
    "/regional_summary",
    response_model=list[RegionalFinancialSummary],
    summary="Financial summary per governorate",
)
def get_regional_summary(
    filters: FinancialFilters = Depends(get_financial_filters),
    db: Session = Depends(get_db),
) -> list[RegionalFinancialSummary]:
    key = ("regional", filters.cache_key())
    try:
        return summary_cache.get_or_compute(
            key, lambda: FinancialService(db).get_regional_summary(filters)
        )
    except SettlementEngineError as e:
        raise to_http_exception(e) from None


def invalidate_summaries() -> None:
    summary_cache.clear()
