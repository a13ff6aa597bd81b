"""Settlement group model - the settlement cadence shared by a set of providers."""

from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, String, Text, func

from settlement_engine.core.database import Base
from settlement_engine.models.shared import UUIDType, generate_uuid


class SettlementFrequency(str, Enum):
    DAILY = "daily"
    THREE_DAYS = "3_days"
    WEEKLY = "weekly"


PERIOD_DAYS = {
    SettlementFrequency.DAILY.value: 1,
    SettlementFrequency.THREE_DAYS.value: 3,
    SettlementFrequency.WEEKLY.value: 7,
}


class SettlementGroup(Base):
    """Providers in a group are settled automatically on the group's cadence.

    Providers without a group follow the default group, or settle daily when
    there is none. Providers in an inactive group are only settled manually.
    """

    __tablename__ = "settlement_groups"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    frequency = Column(String(20), nullable=False, default=SettlementFrequency.THREE_DAYS.value)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
