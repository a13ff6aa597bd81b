"""Tests for the settlement groups API."""

import uuid

from fastapi.testclient import TestClient

from settlement_engine.main import app
from settlement_engine.models.provider import Provider
from settlement_engine.models.settlement_group import SettlementGroup
from settlement_engine.repositories.settlement_group_repository import SettlementGroupRepository

client = TestClient(app)

ADMIN_HEADERS = {"X-Actor-Type": "admin", "X-Actor-Id": "admin-1", "X-Actor-Role": "admin"}
OPS_HEADERS = {"X-Actor-Type": "admin", "X-Actor-Id": "ops-1", "X-Actor-Role": "finance"}


class TestSettlementGroupsAPI:
    def test_create_defaults_to_three_days(self):
        response = client.post(
            "/v1/settlement_groups/", json={"name": "Standard"}, headers=ADMIN_HEADERS
        )
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Standard"
        assert data["frequency"] == "3_days"
        assert data["is_default"] is False
        assert data["is_active"] is True
        assert data["provider_count"] == 0

    def test_create_requires_admin(self):
        response = client.post(
            "/v1/settlement_groups/", json={"name": "Standard"}, headers=OPS_HEADERS
        )
        assert response.status_code == 403

    def test_create_rejects_unknown_frequency(self):
        response = client.post(
            "/v1/settlement_groups/",
            json={"name": "Monthly", "frequency": "monthly"},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 422

    def test_list_counts_providers(self, make_provider, make_settlement_group):
        weekly = make_settlement_group(name="Weekly")
        make_settlement_group(name="Daily", frequency="daily")
        make_provider(name="A", settlement_group_id=weekly.id)
        make_provider(name="B", settlement_group_id=weekly.id)
        make_provider(name="Ungrouped")

        response = client.get("/v1/settlement_groups/")

        assert response.status_code == 200
        counts = {group["name"]: group["provider_count"] for group in response.json()}
        assert counts == {"Daily": 0, "Weekly": 2}

    def test_only_one_default(self, db_session, make_settlement_group):
        first = make_settlement_group(name="First", is_default=True)

        response = client.post(
            "/v1/settlement_groups/",
            json={"name": "Second", "frequency": "daily", "is_default": True},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 201
        db_session.expire_all()
        assert db_session.get(SettlementGroup, first.id).is_default is False
        default = SettlementGroupRepository(db_session).get_default()
        assert str(default.id) == response.json()["id"]

    def test_update(self, make_settlement_group):
        group = make_settlement_group()
        response = client.patch(
            f"/v1/settlement_groups/{group.id}",
            json={"frequency": "daily", "is_active": False},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["frequency"] == "daily"
        assert response.json()["is_active"] is False

    def test_update_not_found(self):
        response = client.patch(
            f"/v1/settlement_groups/{uuid.uuid4()}", json={"name": "X"}, headers=ADMIN_HEADERS
        )
        assert response.status_code == 404

    def test_delete_ungroups_providers(self, db_session, make_provider, make_settlement_group):
        group = make_settlement_group()
        provider = make_provider(settlement_group_id=group.id)

        response = client.delete(f"/v1/settlement_groups/{group.id}", headers=ADMIN_HEADERS)

        assert response.status_code == 204
        db_session.expire_all()
        assert db_session.get(SettlementGroup, group.id) is None
        assert db_session.get(Provider, provider.id).settlement_group_id is None

    def test_delete_not_found(self):
        response = client.delete(f"/v1/settlement_groups/{uuid.uuid4()}", headers=ADMIN_HEADERS)
        assert response.status_code == 404

    def test_assign_and_unassign_provider(self, db_session, make_provider, make_settlement_group):
        group = make_settlement_group()
        provider = make_provider()
        url = f"/v1/settlement_groups/{group.id}/providers"

        response = client.post(url, json={"provider_id": str(provider.id)}, headers=ADMIN_HEADERS)
        assert response.status_code == 200
        assert response.json()["provider_count"] == 1
        db_session.expire_all()
        assert db_session.get(Provider, provider.id).settlement_group_id == group.id

        response = client.delete(f"{url}/{provider.id}", headers=ADMIN_HEADERS)
        assert response.status_code == 200
        assert response.json()["provider_count"] == 0
        db_session.expire_all()
        assert db_session.get(Provider, provider.id).settlement_group_id is None

    def test_assign_unknown_provider(self, make_settlement_group):
        group = make_settlement_group()
        response = client.post(
            f"/v1/settlement_groups/{group.id}/providers",
            json={"provider_id": str(uuid.uuid4())},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Provider not found"

    def test_unassign_provider_from_another_group(self, make_provider, make_settlement_group):
        group = make_settlement_group(name="Weekly")
        other = make_settlement_group(name="Daily", frequency="daily")
        provider = make_provider(settlement_group_id=other.id)

        response = client.delete(
            f"/v1/settlement_groups/{group.id}/providers/{provider.id}", headers=ADMIN_HEADERS
        )
        assert response.status_code == 404


class TestProviderFrequencies:
    def test_resolves_groups_and_defaults(self, db_session, make_provider, make_settlement_group):
        weekly = make_settlement_group(name="Weekly", frequency="weekly", is_default=True)
        paused = make_settlement_group(name="Paused", frequency="daily", is_active=False)
        in_weekly = make_provider(name="Weekly", settlement_group_id=weekly.id)
        in_paused = make_provider(name="Paused", settlement_group_id=paused.id)
        ungrouped = make_provider(name="Ungrouped")

        frequencies = SettlementGroupRepository(db_session).provider_frequencies()

        assert frequencies == {in_weekly.id: "weekly", ungrouped.id: "weekly"}
        assert in_paused.id not in frequencies

    def test_daily_without_a_default(self, db_session, make_provider):
        provider = make_provider()
        frequencies = SettlementGroupRepository(db_session).provider_frequencies()
        assert frequencies == {provider.id: "daily"}
