"""Settlement payment repository for data access."""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func as sa_func
from sqlalchemy.orm import Session

from settlement_engine.models.settlement_payment import SettlementPayment
from settlement_engine.models.shared import utc_now


class SettlementPaymentRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        settlement_id: UUID,
        amount: Decimal,
        method: str,
        reference: str | None = None,
        recorded_by: str | None = None,
    ) -> SettlementPayment:
        payment = SettlementPayment(
            settlement_id=settlement_id,
            amount=amount,
            method=method,
            reference=reference,
            recorded_by=recorded_by,
            recorded_at=utc_now(),
        )
        self.db.add(payment)
        self.db.flush()
        return payment

    def get_by_id(self, settlement_id: UUID, payment_id: UUID) -> SettlementPayment | None:
        return (
            self.db.query(SettlementPayment)
            .filter(
                SettlementPayment.id == payment_id,
                SettlementPayment.settlement_id == settlement_id,
            )
            .first()
        )

    def get_by_settlement_id(self, settlement_id: UUID) -> list[SettlementPayment]:
        return (
            self.db.query(SettlementPayment)
            .filter(SettlementPayment.settlement_id == settlement_id)
            .order_by(SettlementPayment.recorded_at.asc(), SettlementPayment.id.asc())
            .all()
        )

    def count_active(self, settlement_id: UUID) -> int:
        return (
            self.db.query(sa_func.count(SettlementPayment.id))
            .filter(
                SettlementPayment.settlement_id == settlement_id,
                SettlementPayment.voided_at.is_(None),
            )
            .scalar()
            or 0
        )

    def void(self, payment: SettlementPayment, reason: str) -> SettlementPayment:
        payment.voided_at = utc_now()
        payment.void_reason = reason
        self.db.flush()
        return payment
