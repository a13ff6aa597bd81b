"""Settlement group API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from settlement_engine.core.auth import Actor, get_current_actor, require_admin
from settlement_engine.core.database import get_db
from settlement_engine.models.settlement_group import SettlementGroup
from settlement_engine.repositories.provider_repository import ProviderRepository
from settlement_engine.repositories.settlement_group_repository import SettlementGroupRepository
from settlement_engine.schemas.settlement_group import (
    SettlementGroupCreate,
    SettlementGroupProviderAssign,
    SettlementGroupResponse,
    SettlementGroupUpdate,
)

router = APIRouter()


def _to_response(group: SettlementGroup, provider_count: int) -> SettlementGroupResponse:
    response = SettlementGroupResponse.model_validate(group)
    response.provider_count = provider_count
    return response


def _get_group(group_id: UUID, repo: SettlementGroupRepository) -> SettlementGroup:
    group = repo.get_by_id(group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Settlement group not found")
    return group


@router.get(
    "/",
    response_model=list[SettlementGroupResponse],
    summary="List settlement groups",
)
def list_settlement_groups(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[SettlementGroupResponse]:
    repo = SettlementGroupRepository(db)
    counts = repo.provider_counts()
    return [_to_response(group, counts.get(group.id, 0)) for group in repo.get_all()]


@router.post(
    "/",
    response_model=SettlementGroupResponse,
    status_code=201,
    summary="Create a settlement group",
    responses={403: {"description": "Elevated authorization required"}},
)
def create_settlement_group(
    data: SettlementGroupCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
) -> SettlementGroupResponse:
    group = SettlementGroupRepository(db).create(data)
    return _to_response(group, 0)


@router.patch(
    "/{group_id}",
    response_model=SettlementGroupResponse,
    summary="Update a settlement group",
    responses={
        403: {"description": "Elevated authorization required"},
        404: {"description": "Settlement group not found"},
    },
)
def update_settlement_group(
    group_id: UUID,
    data: SettlementGroupUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
) -> SettlementGroupResponse:
    repo = SettlementGroupRepository(db)
    group = repo.update(group_id, data)
    if not group:
        raise HTTPException(status_code=404, detail="Settlement group not found")
    return _to_response(group, repo.provider_counts().get(group.id, 0))


@router.delete(
    "/{group_id}",
    status_code=204,
    summary="Delete a settlement group",
    responses={
        403: {"description": "Elevated authorization required"},
        404: {"description": "Settlement group not found"},
    },
)
def delete_settlement_group(
    group_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
) -> None:
    """Delete a group; its providers fall back to the default cadence."""
    if not SettlementGroupRepository(db).delete(group_id):
        raise HTTPException(status_code=404, detail="Settlement group not found")


@router.post(
    "/{group_id}/providers",
    response_model=SettlementGroupResponse,
    summary="Move a provider into a settlement group",
    responses={
        403: {"description": "Elevated authorization required"},
        404: {"description": "Settlement group or provider not found"},
    },
)
def assign_provider(
    group_id: UUID,
    data: SettlementGroupProviderAssign,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
) -> SettlementGroupResponse:
    repo = SettlementGroupRepository(db)
    group = _get_group(group_id, repo)
    provider = ProviderRepository(db).get_by_id(data.provider_id)
    if not provider:
        raise HTTPException(status_code=404, detail="Provider not found")
    repo.assign_provider(provider, group.id)
    return _to_response(group, repo.provider_counts().get(group.id, 0))


@router.delete(
    "/{group_id}/providers/{provider_id}",
    response_model=SettlementGroupResponse,
    summary="Remove a provider from a settlement group",
    responses={
        403: {"description": "Elevated authorization required"},
        404: {"description": "Provider is not in this settlement group"},
    },
)
def unassign_provider(
    group_id: UUID,
    provider_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
) -> SettlementGroupResponse:
    repo = SettlementGroupRepository(db)
    group = _get_group(group_id, repo)
    provider = ProviderRepository(db).get_by_id(provider_id)
    if not provider or provider.settlement_group_id != group.id:
        raise HTTPException(status_code=404, detail="Provider is not in this settlement group")
    repo.assign_provider(provider, None)
    return _to_response(group, repo.provider_counts().get(group.id, 0))
