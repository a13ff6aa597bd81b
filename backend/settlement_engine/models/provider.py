"""Provider model holding the commission profile of a merchant."""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, func

from settlement_engine.core.database import Base
from settlement_engine.models.shared import UUIDType, generate_uuid


class CommissionStatus(str, Enum):
    IN_GRACE_PERIOD = "in_grace_period"
    ACTIVE = "active"
    EXEMPT = "exempt"


class DeliveryResponsibility(str, Enum):
    MERCHANT_DELIVERY = "merchant_delivery"
    PLATFORM_DELIVERY = "platform_delivery"


class Provider(Base):
    """Provider model - a merchant selling through the marketplace."""

    __tablename__ = "providers"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    governorate_id = Column(
        UUIDType, ForeignKey("governorates.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    settlement_group_id = Column(
        UUIDType, ForeignKey("settlement_groups.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Commission profile
    commission_rate = Column(Numeric(5, 4), nullable=False, default=0)
    commission_status = Column(
        String(20), nullable=False, default=CommissionStatus.ACTIVE.value
    )
    grace_period_end = Column(DateTime(timezone=True), nullable=True)
    delivery_responsibility = Column(
        String(30), nullable=False, default=DeliveryResponsibility.MERCHANT_DELIVERY.value
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
