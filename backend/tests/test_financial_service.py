"""Tests for the dashboard read service."""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from settlement_engine.core.auth import Actor
from settlement_engine.core.exceptions import InvalidInputError, SettlementNotFoundError
from settlement_engine.models.order import PaymentMethod
from settlement_engine.models.settlement import SettlementDirection, SettlementStatus
from settlement_engine.schemas.financial_summary import FinancialFilters
from settlement_engine.services.financial_service import FinancialService
from settlement_engine.services.settlement_export import CSV_HEADERS
from settlement_engine.services.settlement_service import SettlementService
from tests.conftest import NOW, PERIOD_END, PERIOD_START

ADMIN = Actor(actor_type="admin", actor_id="admin-1", role="admin")


def _financial(db_session, at=NOW) -> FinancialService:
    return FinancialService(db_session, clock=lambda: at)


def _settle(db_session, provider):
    return SettlementService(db_session, clock=lambda: NOW).create_settlement(
        provider.id, PERIOD_START, PERIOD_END, ADMIN
    )


@pytest.fixture
def marketplace(make_governorate, make_provider, make_order):
    """Cairo: one COD provider and one online provider. Alexandria: one online provider."""
    cairo = make_governorate("Cairo")
    alex = make_governorate("Alexandria")

    cod_provider = make_provider(name="Cairo Grill", governorate_id=cairo.id)
    make_order(cod_provider, "100")
    make_order(cod_provider, "200")

    online_provider = make_provider(name="Nile Bakery", governorate_id=cairo.id)
    make_order(
        online_provider, "500", payment_method=PaymentMethod.ONLINE.value, refund_amount="250"
    )

    alex_provider = make_provider(name="Corniche Fish", governorate_id=alex.id)
    make_order(alex_provider, "1000", payment_method=PaymentMethod.ONLINE.value)

    make_provider(name="Dormant Cafe", governorate_id=alex.id)
    return {
        "cairo": cairo,
        "alex": alex,
        "cod": cod_provider,
        "online": online_provider,
        "alex_provider": alex_provider,
    }


class TestProviderSummary:
    def test_whole_history_by_default(self, db_session, marketplace):
        summary = _financial(db_session).get_provider_summary(marketplace["cod"].id)
        assert summary.orders.total == 2
        assert summary.cod_commission_owed == Decimal("30.00")
        assert summary.settlement_direction == SettlementDirection.PROVIDER_PAYS_PLATFORM

    def test_date_window(self, db_session, marketplace):
        filters = FinancialFilters(date_from=PERIOD_END, date_to=PERIOD_END + timedelta(days=1))
        summary = _financial(db_session).get_provider_summary(marketplace["cod"].id, filters)
        assert summary.orders.total == 0
        assert summary.net_balance == Decimal("0.00")

    def test_settled_orders_leave_the_summary(self, db_session, marketplace):
        _settle(db_session, marketplace["cod"])
        summary = _financial(db_session).get_provider_summary(marketplace["cod"].id)
        assert summary.orders.total == 0
        assert summary.orders.settled == 2


class TestAdminAndRegional:
    def test_admin_summary(self, db_session, marketplace):
        admin = _financial(db_session).get_admin_summary()

        # Dormant provider has no activity and is not counted
        assert admin.total_providers == 3
        assert admin.total_orders == 4
        assert admin.cod.commission_owed == Decimal("30.00")
        # 475 + (1000 - 100)
        assert admin.online.payout_owed == Decimal("1375.00")
        assert admin.total_net_balance == Decimal("1345.00")
        assert admin.providers_to_pay == 2
        assert admin.providers_to_collect == 1

    def test_admin_summary_filters(self, db_session, marketplace):
        service = _financial(db_session)

        cairo_only = service.get_admin_summary(
            FinancialFilters(governorate_id=marketplace["cairo"].id)
        )
        assert cairo_only.total_providers == 2

        collect_only = service.get_admin_summary(
            FinancialFilters(directions=[SettlementDirection.PROVIDER_PAYS_PLATFORM])
        )
        assert collect_only.total_providers == 1
        assert collect_only.total_net_balance == Decimal("-30.00")

        online_only = service.get_admin_summary(
            FinancialFilters(payment_methods=[PaymentMethod.ONLINE])
        )
        assert online_only.total_providers == 2
        assert online_only.cod.orders == 0

    def test_regional_summary(self, db_session, marketplace):
        regions = _financial(db_session).get_regional_summary()

        assert [r.governorate_name for r in regions] == ["Alexandria", "Cairo"]
        alexandria, cairo = regions
        assert alexandria.providers_count == 1
        assert alexandria.net_balance == Decimal("900.00")
        assert cairo.providers_count == 2
        assert cairo.net_balance == Decimal("445.00")
        assert cairo.total_commission == Decimal("55.00")

    def test_misconfigured_provider_fails_loudly(self, db_session, marketplace, make_provider):
        make_provider(name="Broken", commission_status="in_grace_period")
        with pytest.raises(InvalidInputError):
            _financial(db_session).get_admin_summary()


class TestSettlementReads:
    def test_list_and_filter_settlements(self, db_session, marketplace):
        cod_settlement = _settle(db_session, marketplace["cod"])
        _settle(db_session, marketplace["online"])
        service = _financial(db_session)

        assert len(service.list_settlements()) == 2
        collect = service.list_settlements(
            FinancialFilters(directions=[SettlementDirection.PROVIDER_PAYS_PLATFORM])
        )
        assert [s.id for s in collect] == [cod_settlement.id]
        alex = service.list_settlements(FinancialFilters(governorate_id=marketplace["alex"].id))
        assert alex == []

    def test_overdue_is_derived_from_due_date(self, db_session, marketplace):
        settlement = _settle(db_session, marketplace["cod"])
        later = _financial(db_session, at=NOW + timedelta(days=8))

        overdue = later.list_settlements(FinancialFilters(statuses=[SettlementStatus.OVERDUE]))
        assert [s.id for s in overdue] == [settlement.id]
        assert settlement.effective_status(NOW + timedelta(days=8)) == "overdue"
        assert later.count_overdue_settlements() == 1

        pending = later.list_settlements(FinancialFilters(statuses=[SettlementStatus.PENDING]))
        assert pending == []
        assert _financial(db_session).count_overdue_settlements() == 0

    def test_paid_settlement_is_never_overdue(self, db_session, marketplace):
        settlement = _settle(db_session, marketplace["cod"])
        SettlementService(db_session, clock=lambda: NOW).record_payment(
            settlement.id, Decimal("30"), "cash", None, ADMIN
        )
        later = _financial(db_session, at=NOW + timedelta(days=30))
        assert later.count_overdue_settlements() == 0

    def test_detail_reads(self, db_session, marketplace):
        settlement = _settle(db_session, marketplace["cod"])
        SettlementService(db_session, clock=lambda: NOW).record_payment(
            settlement.id, Decimal("10"), "cash", "R-1", ADMIN
        )
        service = _financial(db_session)

        assert service.get_settlement_by_id(settlement.id).id == settlement.id
        assert len(service.get_settlement_payments(settlement.id)) == 1
        assert len(service.get_settlement_order_ids(settlement.id)) == 2
        assert [e.action for e in service.get_audit_log(settlement.id)] == [
            "create",
            "record_partial_payment",
        ]

    def test_missing_settlement(self, db_session):
        with pytest.raises(SettlementNotFoundError):
            _financial(db_session).get_settlement_by_id(uuid.uuid4())
        with pytest.raises(SettlementNotFoundError):
            _financial(db_session).get_audit_log(uuid.uuid4())

    def test_audit_log_survives_deletion(self, db_session, marketplace):
        settlement = _settle(db_session, marketplace["cod"])
        SettlementService(db_session, clock=lambda: NOW).delete_settlement(
            settlement.id, "Wrong period", ADMIN
        )
        service = _financial(db_session)

        with pytest.raises(SettlementNotFoundError):
            service.get_settlement_by_id(settlement.id)
        assert [e.action for e in service.get_audit_log(settlement.id)] == ["create", "delete"]

        # The orders stay bound to the deleted settlement
        summary = service.get_provider_summary(marketplace["cod"].id)
        assert summary.orders.eligible == 0
        assert summary.orders.settled == 2
        assert summary.orders.on_hold == 0

    def test_csv_export(self, db_session, marketplace):
        _settle(db_session, marketplace["cod"])
        content = _financial(db_session).export_settlements_csv()

        lines = content.strip().splitlines()
        assert lines[0] == ",".join(CSV_HEADERS)
        assert len(lines) == 2
        assert "Cairo Grill" in lines[1]
        assert "-30.00" in lines[1]
        assert "pending" in lines[1]
