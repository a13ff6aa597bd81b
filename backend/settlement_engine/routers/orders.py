"""Order eligibility API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from settlement_engine.core.auth import Actor, get_current_actor
from settlement_engine.core.database import get_db
from settlement_engine.core.exceptions import SettlementEngineError
from settlement_engine.core.http_errors import to_http_exception
from settlement_engine.routers.finance import invalidate_summaries
from settlement_engine.schemas.settlement import OrderHold, OrderSettlementResponse
from settlement_engine.services.settlement_service import SettlementService

router = APIRouter()


@router.post(
    "/{order_id}/hold",
    response_model=OrderSettlementResponse,
    summary="Hold an order out of settlement",
    responses={
        404: {"description": "Order not found"},
        409: {"description": "Order is already settled"},
    },
)
def hold_order(
    order_id: UUID,
    data: OrderHold,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> OrderSettlementResponse:
    try:
        order = SettlementService(db).hold_order(order_id, data.reason, actor)
    except SettlementEngineError as e:
        raise to_http_exception(e) from None
    invalidate_summaries()
    return OrderSettlementResponse.model_validate(order)


@router.post(
    "/{order_id}/release",
    response_model=OrderSettlementResponse,
    summary="Release a held order",
    responses={
        404: {"description": "Order not found"},
        409: {"description": "Order is already settled"},
    },
)
def release_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> OrderSettlementResponse:
    try:
        order = SettlementService(db).release_order(order_id, actor)
    except SettlementEngineError as e:
        raise to_http_exception(e) from None
    invalidate_summaries()
    return OrderSettlementResponse.model_validate(order)
