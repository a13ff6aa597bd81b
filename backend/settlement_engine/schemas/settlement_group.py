from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from settlement_engine.models.settlement_group import SettlementFrequency


class SettlementGroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    frequency: SettlementFrequency = SettlementFrequency.THREE_DAYS
    is_default: bool = False
    is_active: bool = True


class SettlementGroupUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    frequency: SettlementFrequency | None = None
    is_default: bool | None = None
    is_active: bool | None = None


class SettlementGroupProviderAssign(BaseModel):
    provider_id: UUID


class SettlementGroupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    frequency: str
    is_default: bool
    is_active: bool
    provider_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
