"""Settlement API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from settlement_engine.core.auth import Actor, get_current_actor, require_admin
from settlement_engine.core.database import get_db
from settlement_engine.core.exceptions import SettlementEngineError
from settlement_engine.core.http_errors import to_http_exception
from settlement_engine.repositories.settlement_repository import SettlementRepository
from settlement_engine.routers.finance import get_financial_filters, invalidate_summaries
from settlement_engine.schemas.audit_log import SettlementAuditLogResponse
from settlement_engine.schemas.financial_summary import FinancialFilters
from settlement_engine.schemas.settlement import (
    DisputeOpen,
    DisputeResolution,
    DisputeResolve,
    SettlementCreate,
    SettlementDetailResponse,
    SettlementPaymentCreate,
    SettlementPaymentResponse,
    SettlementPaymentVoid,
    SettlementResponse,
    SettlementWaive,
)
from settlement_engine.services.financial_service import FinancialService
from settlement_engine.services.settlement_service import SettlementService

router = APIRouter()


@router.get(
    "/",
    response_model=list[SettlementResponse],
    summary="List settlements",
)
def list_settlements(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    order_by: str | None = Query(default=None),
    filters: FinancialFilters = Depends(get_financial_filters),
    db: Session = Depends(get_db),
) -> list[SettlementResponse]:
    """List settlements. ``status`` filters on the effective status, overdue included."""
    service = FinancialService(db)
    now = service.clock()
    response.headers["X-Total-Count"] = str(SettlementRepository(db).count(filters, now))
    settlements = service.list_settlements(filters, skip=skip, limit=limit, order_by=order_by)
    return [SettlementResponse.from_settlement(s, now) for s in settlements]


@router.post(
    "/",
    response_model=SettlementResponse,
    status_code=201,
    summary="Create a settlement",
    responses={
        400: {"description": "Invalid period or nothing to settle"},
        404: {"description": "Provider not found"},
        409: {"description": "Orders were settled concurrently"},
        503: {"description": "Provider is locked by another settlement run"},
    },
)
def create_settlement(
    data: SettlementCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> SettlementResponse:
    """Settle the provider's eligible orders in [period_start, period_end)."""
    try:
        settlement = SettlementService(db).create_settlement(
            data.provider_id, data.period_start, data.period_end, actor, notes=data.notes
        )
    except SettlementEngineError as e:
        raise to_http_exception(e) from None
    invalidate_summaries()
    return SettlementResponse.from_settlement(settlement)


@router.get(
    "/export",
    summary="Export settlements as CSV",
    response_class=Response,
    responses={200: {"content": {"text/csv": {}}}},
)
def export_settlements(
    filters: FinancialFilters = Depends(get_financial_filters),
    db: Session = Depends(get_db),
) -> Response:
    csv_content = FinancialService(db).export_settlements_csv(filters)
    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="settlements.csv"'},
    )


@router.get(
    "/{settlement_id}",
    response_model=SettlementDetailResponse,
    summary="Get settlement",
    responses={404: {"description": "Settlement not found"}},
)
def get_settlement(
    settlement_id: UUID,
    db: Session = Depends(get_db),
) -> SettlementDetailResponse:
    service = FinancialService(db)
    try:
        settlement = service.get_settlement_by_id(settlement_id)
    except SettlementEngineError as e:
        raise to_http_exception(e) from None

    base = SettlementResponse.from_settlement(settlement)
    return SettlementDetailResponse(
        **base.model_dump(),
        payments=[
            SettlementPaymentResponse.model_validate(p)
            for p in service.get_settlement_payments(settlement_id)
        ],
        order_ids=service.get_settlement_order_ids(settlement_id),
    )


@router.delete(
    "/{settlement_id}",
    response_model=SettlementResponse,
    summary="Delete an erroneously created settlement",
    responses={
        403: {"description": "Elevated authorization required"},
        404: {"description": "Settlement not found"},
        422: {"description": "Settlement is not pending or has payments"},
    },
)
def delete_settlement(
    settlement_id: UUID,
    reason: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
) -> SettlementResponse:
    """Soft-delete a pending settlement; its orders stay settled and bound to it."""
    try:
        settlement = SettlementService(db).delete_settlement(settlement_id, reason, actor)
    except SettlementEngineError as e:
        raise to_http_exception(e) from None
    invalidate_summaries()
    return SettlementResponse.from_settlement(settlement)


@router.get(
    "/{settlement_id}/audit_log",
    response_model=list[SettlementAuditLogResponse],
    summary="Get the audit trail of a settlement",
    responses={404: {"description": "Settlement not found"}},
)
def get_settlement_audit_log(
    settlement_id: UUID,
    db: Session = Depends(get_db),
) -> list[SettlementAuditLogResponse]:
    try:
        entries = FinancialService(db).get_audit_log(settlement_id)
    except SettlementEngineError as e:
        raise to_http_exception(e) from None
    return [SettlementAuditLogResponse.model_validate(entry) for entry in entries]


@router.post(
    "/{settlement_id}/payments",
    response_model=SettlementResponse,
    summary="Record a payment against a settlement",
    responses={
        404: {"description": "Settlement not found"},
        422: {"description": "Overpayment or settlement not payable"},
    },
)
def record_payment(
    settlement_id: UUID,
    data: SettlementPaymentCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> SettlementResponse:
    try:
        settlement = SettlementService(db).record_payment(
            settlement_id, data.amount, data.method.value, data.reference, actor
        )
    except SettlementEngineError as e:
        raise to_http_exception(e) from None
    return SettlementResponse.from_settlement(settlement)


@router.post(
    "/{settlement_id}/payments/{payment_id}/void",
    response_model=SettlementResponse,
    summary="Void a recorded payment",
    responses={404: {"description": "Settlement or payment not found"}},
)
def void_payment(
    settlement_id: UUID,
    payment_id: UUID,
    data: SettlementPaymentVoid,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> SettlementResponse:
    try:
        settlement = SettlementService(db).void_payment(
            settlement_id, payment_id, data.reason, actor
        )
    except SettlementEngineError as e:
        raise to_http_exception(e) from None
    return SettlementResponse.from_settlement(settlement)


@router.post(
    "/{settlement_id}/dispute",
    response_model=SettlementResponse,
    summary="Open a dispute",
)
def open_dispute(
    settlement_id: UUID,
    data: DisputeOpen,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> SettlementResponse:
    try:
        settlement = SettlementService(db).open_dispute(settlement_id, data.reason, actor)
    except SettlementEngineError as e:
        raise to_http_exception(e) from None
    return SettlementResponse.from_settlement(settlement)


@router.post(
    "/{settlement_id}/dispute/resolve",
    response_model=SettlementResponse,
    summary="Resolve a dispute",
    responses={403: {"description": "Waiving requires elevated authorization"}},
)
def resolve_dispute(
    settlement_id: UUID,
    data: DisputeResolve,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> SettlementResponse:
    if data.resolution == DisputeResolution.WAIVE and not actor.is_admin:
        raise HTTPException(status_code=403, detail="Elevated authorization required")
    try:
        settlement = SettlementService(db).resolve_dispute(
            settlement_id, data.resolution, data.notes, actor
        )
    except SettlementEngineError as e:
        raise to_http_exception(e) from None
    return SettlementResponse.from_settlement(settlement)


@router.post(
    "/{settlement_id}/waive",
    response_model=SettlementResponse,
    summary="Waive a settlement",
    responses={403: {"description": "Elevated authorization required"}},
)
def waive_settlement(
    settlement_id: UUID,
    data: SettlementWaive,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
) -> SettlementResponse:
    try:
        settlement = SettlementService(db).waive(settlement_id, data.reason, actor)
    except SettlementEngineError as e:
        raise to_http_exception(e) from None
    return SettlementResponse.from_settlement(settlement)
