"""Settlement audit log API endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from settlement_engine.core.database import get_db
from settlement_engine.core.exceptions import SettlementEngineError
from settlement_engine.core.http_errors import to_http_exception
from settlement_engine.models.settlement_audit_log import AuditAction
from settlement_engine.repositories.audit_log_repository import SettlementAuditLogRepository
from settlement_engine.schemas.audit_log import AuditChainVerification, SettlementAuditLogResponse
from settlement_engine.services.financial_service import FinancialService

router = APIRouter()


@router.get(
    "/",
    response_model=list[SettlementAuditLogResponse],
    summary="List audit log entries",
)
def list_audit_logs(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    settlement_id: UUID | None = None,
    order_id: UUID | None = None,
    action: AuditAction | None = None,
    actor_type: str | None = None,
    actor_id: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    order_by: str | None = None,
    db: Session = Depends(get_db),
) -> list[SettlementAuditLogResponse]:
    """List audit log entries, newest first unless ``order_by`` says otherwise."""
    repo = SettlementAuditLogRepository(db)
    return [
        SettlementAuditLogResponse.model_validate(entry)
        for entry in repo.get_all(
            skip=skip,
            limit=limit,
            settlement_id=settlement_id,
            order_id=order_id,
            action=action.value if action else None,
            actor_type=actor_type,
            actor_id=actor_id,
            start_date=start_date,
            end_date=end_date,
            order_by=order_by,
        )
    ]


@router.get(
    "/verify",
    response_model=AuditChainVerification,
    summary="Verify the audit hash chain",
    responses={500: {"description": "Audit chain is broken"}},
)
def verify_audit_chain(db: Session = Depends(get_db)) -> AuditChainVerification:
    try:
        return FinancialService(db).verify_audit_chain()
    except SettlementEngineError as e:
        raise to_http_exception(e) from None
