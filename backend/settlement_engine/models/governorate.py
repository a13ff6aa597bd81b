from sqlalchemy import Column, DateTime, String, func

from settlement_engine.core.database import Base
from settlement_engine.models.shared import UUIDType, generate_uuid


class Governorate(Base):
    """Geographic region used to group provider financials."""

    __tablename__ = "governorates"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
