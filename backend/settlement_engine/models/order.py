"""Order model - the order ledger rows consumed by the settlement engine.

Orders are owned by the order subsystem. The settlement engine only ever
writes ``settlement_status``, ``settlement_id`` and ``hold_reason``.
"""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String, Text, func

from settlement_engine.core.database import Base
from settlement_engine.models.shared import UUIDType, generate_uuid


class PaymentMethod(str, Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    ONLINE = "online"


class OrderSettlementStatus(str, Enum):
    ELIGIBLE = "eligible"
    ON_HOLD = "on_hold"
    SETTLED = "settled"
    EXCLUDED = "excluded"


class Order(Base):
    __tablename__ = "orders"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    provider_id = Column(
        UUIDType, ForeignKey("providers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    payment_method = Column(String(20), nullable=False)

    # Amounts
    subtotal = Column(Numeric(12, 4), nullable=False, default=0)
    delivery_fee = Column(Numeric(12, 4), nullable=False, default=0)
    discount = Column(Numeric(12, 4), nullable=False, default=0)
    total = Column(Numeric(12, 4), nullable=False, default=0)
    refund_amount = Column(Numeric(12, 4), nullable=False, default=0)

    # Settlement eligibility
    settlement_status = Column(
        String(20), nullable=False, default=OrderSettlementStatus.ELIGIBLE.value
    )
    settlement_id = Column(
        UUIDType, ForeignKey("settlements.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    hold_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_orders_provider_status_created", "provider_id", "settlement_status", "created_at"),
    )
