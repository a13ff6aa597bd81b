"""SettlementPayment model - money received or paid out against a settlement."""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text, func

from settlement_engine.core.database import Base
from settlement_engine.models.shared import UUIDType, generate_uuid


class SettlementPaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    MOBILE_WALLET = "mobile_wallet"
    CARD = "card"


class SettlementPayment(Base):
    __tablename__ = "settlement_payments"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    settlement_id = Column(
        UUIDType, ForeignKey("settlements.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    amount = Column(Numeric(12, 4), nullable=False)
    method = Column(String(20), nullable=False)
    reference = Column(String(255), nullable=True)
    recorded_by = Column(String(255), nullable=True)
    recorded_at = Column(DateTime(timezone=True), server_default=func.now())

    voided_at = Column(DateTime(timezone=True), nullable=True)
    void_reason = Column(Text, nullable=True)
