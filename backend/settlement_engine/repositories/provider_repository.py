"""Provider registry access."""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from settlement_engine.core.exceptions import InvalidInputError, ProviderNotFoundError
from settlement_engine.core.money import to_decimal
from settlement_engine.models.governorate import Governorate
from settlement_engine.models.provider import CommissionStatus, DeliveryResponsibility, Provider
from settlement_engine.models.shared import as_utc
from settlement_engine.schemas.ledger import CommissionProfile

_COMMISSION_STATUSES = {status.value for status in CommissionStatus}
_DELIVERY_RESPONSIBILITIES = {value.value for value in DeliveryResponsibility}


def to_commission_profile(provider: Provider) -> CommissionProfile:
    """Validate a provider row and map it to a CommissionProfile."""
    rate = to_decimal(provider.commission_rate)
    if rate < Decimal("0") or rate > Decimal("1"):
        raise InvalidInputError(
            f"Provider {provider.id} has commission rate {rate} outside [0, 1]"
        )
    if provider.commission_status not in _COMMISSION_STATUSES:
        raise InvalidInputError(
            f"Provider {provider.id} has unknown commission status "
            f"'{provider.commission_status}'"
        )
    if (
        provider.commission_status == CommissionStatus.IN_GRACE_PERIOD.value
        and provider.grace_period_end is None
    ):
        raise InvalidInputError(
            f"Provider {provider.id} is in grace period but has no grace_period_end"
        )
    if provider.delivery_responsibility not in _DELIVERY_RESPONSIBILITIES:
        raise InvalidInputError(
            f"Provider {provider.id} has unknown delivery responsibility "
            f"'{provider.delivery_responsibility}'"
        )

    return CommissionProfile(
        provider_id=provider.id,
        commission_rate=rate,
        commission_status=provider.commission_status,
        grace_period_end=as_utc(provider.grace_period_end),
        delivery_responsibility=provider.delivery_responsibility,
        governorate_id=provider.governorate_id,
    )


class ProviderRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, provider_id: UUID) -> Provider | None:
        return self.db.query(Provider).filter(Provider.id == provider_id).first()

    def get_commission_profile(self, provider_id: UUID) -> CommissionProfile:
        provider = self.get_by_id(provider_id)
        if provider is None:
            raise ProviderNotFoundError(provider_id)
        return to_commission_profile(provider)

    def get_all(
        self,
        provider_id: UUID | None = None,
        governorate_id: UUID | None = None,
    ) -> list[Provider]:
        query = self.db.query(Provider)
        if provider_id is not None:
            query = query.filter(Provider.id == provider_id)
        if governorate_id is not None:
            query = query.filter(Provider.governorate_id == governorate_id)
        return query.order_by(Provider.name.asc(), Provider.id.asc()).all()

    def get_governorate_names(self, governorate_ids: set[UUID]) -> dict[UUID, str]:
        if not governorate_ids:
            return {}
        rows = (
            self.db.query(Governorate.id, Governorate.name)
            .filter(Governorate.id.in_(list(governorate_ids)))
            .all()
        )
        return {row.id: row.name for row in rows}

    def get_names(self, provider_ids: set[UUID]) -> dict[UUID, str]:
        if not provider_ids:
            return {}
        rows = (
            self.db.query(Provider.id, Provider.name)
            .filter(Provider.id.in_(list(provider_ids)))
            .all()
        )
        return {row.id: row.name for row in rows}
