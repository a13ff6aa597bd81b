from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from settlement_engine.models.provider import Provider
from settlement_engine.models.settlement_group import SettlementFrequency, SettlementGroup
from settlement_engine.schemas.settlement_group import SettlementGroupCreate, SettlementGroupUpdate


class SettlementGroupRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(self) -> list[SettlementGroup]:
        return (
            self.db.query(SettlementGroup)
            .order_by(SettlementGroup.name.asc(), SettlementGroup.id.asc())
            .all()
        )

    def get_by_id(self, group_id: UUID) -> SettlementGroup | None:
        return self.db.query(SettlementGroup).filter(SettlementGroup.id == group_id).first()

    def get_default(self) -> SettlementGroup | None:
        return (
            self.db.query(SettlementGroup)
            .filter(SettlementGroup.is_default.is_(True), SettlementGroup.is_active.is_(True))
            .first()
        )

    def provider_counts(self) -> dict[UUID, int]:
        rows = (
            self.db.query(Provider.settlement_group_id, func.count(Provider.id))
            .filter(Provider.settlement_group_id.isnot(None))
            .group_by(Provider.settlement_group_id)
            .all()
        )
        return {group_id: count for group_id, count in rows}

    def _clear_other_defaults(self, group_id: UUID) -> None:
        """Only one group can be the default."""
        self.db.query(SettlementGroup).filter(
            SettlementGroup.id != group_id, SettlementGroup.is_default.is_(True)
        ).update({SettlementGroup.is_default: False}, synchronize_session=False)

    def create(self, data: SettlementGroupCreate) -> SettlementGroup:
        group = SettlementGroup(**data.model_dump(mode="json"))
        self.db.add(group)
        self.db.flush()
        if group.is_default:
            self._clear_other_defaults(group.id)
        self.db.commit()
        self.db.refresh(group)
        return group

    def update(self, group_id: UUID, data: SettlementGroupUpdate) -> SettlementGroup | None:
        group = self.get_by_id(group_id)
        if not group:
            return None
        for key, value in data.model_dump(mode="json", exclude_unset=True).items():
            setattr(group, key, value)
        if group.is_default:
            self._clear_other_defaults(group.id)
        self.db.commit()
        self.db.refresh(group)
        return group

    def delete(self, group_id: UUID) -> bool:
        group = self.get_by_id(group_id)
        if not group:
            return False
        self.db.query(Provider).filter(Provider.settlement_group_id == group_id).update(
            {Provider.settlement_group_id: None}, synchronize_session=False
        )
        self.db.delete(group)
        self.db.commit()
        return True

    def assign_provider(self, provider: Provider, group_id: UUID | None) -> Provider:
        provider.settlement_group_id = group_id
        self.db.commit()
        self.db.refresh(provider)
        return provider

    def provider_frequencies(self) -> dict[UUID, str]:
        """Settlement frequency of every provider that is settled automatically.

        Ungrouped providers follow the default group, or settle daily when no
        active default exists. Providers in an inactive group are left out.
        """
        default = self.get_default()
        fallback = default.frequency if default else SettlementFrequency.DAILY.value
        rows = (
            self.db.query(Provider.id, SettlementGroup.frequency, SettlementGroup.is_active)
            .outerjoin(SettlementGroup, Provider.settlement_group_id == SettlementGroup.id)
            .all()
        )
        frequencies: dict[UUID, str] = {}
        for provider_id, frequency, is_active in rows:
            if frequency is None:
                frequencies[provider_id] = fallback
            elif is_active:
                frequencies[provider_id] = frequency
        return frequencies
