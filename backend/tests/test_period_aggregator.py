"""Tests for folding orders into a FinancialSummary."""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from settlement_engine.core.exceptions import InvalidInputError, ProviderNotFoundError
from settlement_engine.models.order import OrderSettlementStatus, PaymentMethod
from settlement_engine.models.provider import CommissionStatus, DeliveryResponsibility
from settlement_engine.models.settlement import SettlementDirection
from settlement_engine.schemas.ledger import CommissionProfile, OrderFinancials
from settlement_engine.services.period_aggregator import (
    PeriodAggregator,
    refund_percentage,
    settlement_direction_for,
    summarize,
)
from tests.conftest import IN_PERIOD, NOW, PERIOD_END, PERIOD_START

COD = PaymentMethod.CASH_ON_DELIVERY.value
ONLINE = PaymentMethod.ONLINE.value


def _profile(
    status: str = CommissionStatus.ACTIVE.value,
    grace_period_end=None,
    delivery: str = DeliveryResponsibility.MERCHANT_DELIVERY.value,
    rate: str = "0.10",
) -> CommissionProfile:
    return CommissionProfile(
        provider_id=uuid.uuid4(),
        commission_rate=Decimal(rate),
        commission_status=status,
        grace_period_end=grace_period_end,
        delivery_responsibility=delivery,
    )


def _order(
    profile: CommissionProfile,
    amount: str,
    method: str = COD,
    delivery_fee: str = "0",
    discount: str = "0",
    refund: str = "0",
) -> OrderFinancials:
    subtotal = Decimal(amount)
    return OrderFinancials(
        id=uuid.uuid4(),
        provider_id=profile.provider_id,
        payment_method=method,
        subtotal=subtotal,
        delivery_fee=Decimal(delivery_fee),
        discount=Decimal(discount),
        total=subtotal - Decimal(discount) + Decimal(delivery_fee),
        refund_amount=Decimal(refund),
        settlement_status=OrderSettlementStatus.ELIGIBLE.value,
        created_at=IN_PERIOD,
    )


def _summarize(profile, orders):
    return summarize(profile, orders, PERIOD_START, PERIOD_END, NOW)


class TestSummarize:
    def test_cod_orders_after_grace(self):
        profile = _profile(grace_period_end=NOW - timedelta(days=30))
        summary = _summarize(profile, [_order(profile, "100"), _order(profile, "200")])

        assert summary.commission.theoretical == Decimal("30.00")
        assert summary.commission.actual == Decimal("30.00")
        assert summary.cod_commission_owed == Decimal("30.00")
        assert summary.online_payout_owed == Decimal("0.00")
        assert summary.net_balance == Decimal("-30.00")
        assert summary.settlement_direction == SettlementDirection.PROVIDER_PAYS_PLATFORM
        assert summary.grace_period.is_active is False

    def test_cod_orders_during_grace(self):
        profile = _profile(
            status=CommissionStatus.IN_GRACE_PERIOD.value,
            grace_period_end=NOW + timedelta(days=30),
        )
        summary = _summarize(profile, [_order(profile, "100"), _order(profile, "200")])

        assert summary.commission.actual == Decimal("0.00")
        assert summary.commission.grace_discount == Decimal("30.00")
        assert summary.cod_commission_owed == Decimal("0.00")
        assert summary.settlement_direction == SettlementDirection.BALANCED
        assert summary.grace_period.is_active is True
        assert summary.grace_period.days_remaining == 30

    def test_online_refund_reduces_commission(self):
        profile = _profile()
        summary = _summarize(profile, [_order(profile, "500", ONLINE, refund="250")])

        assert summary.commission.theoretical == Decimal("50.00")
        assert summary.refunds.commission_reduction == Decimal("25.00")
        assert summary.refunds.percentage == Decimal("50.00")
        assert summary.net_commission == Decimal("25.00")
        assert summary.online_payout_owed == Decimal("475.00")

    def test_mixed_provider_nets_both_flows(self):
        profile = _profile()
        orders = [
            _order(profile, "100"),
            _order(profile, "200"),
            _order(profile, "500", ONLINE, refund="250"),
        ]
        summary = _summarize(profile, orders)

        assert summary.cod_commission_owed == Decimal("30.00")
        assert summary.online_payout_owed == Decimal("475.00")
        assert summary.net_balance == Decimal("445.00")
        assert summary.settlement_direction == SettlementDirection.PLATFORM_PAYS_PROVIDER
        assert summary.orders.total == 3
        assert summary.orders.cod == 2
        assert summary.orders.online == 1

    def test_empty_period_is_all_zero(self):
        summary = _summarize(_profile(), [])

        assert summary.orders.total == 0
        assert summary.revenue.gross == Decimal("0.00")
        assert summary.net_balance == Decimal("0.00")
        assert summary.settlement_direction == SettlementDirection.BALANCED
        assert summary.refunds.percentage == Decimal("0.00")
        assert summary.order_ids == []

    def test_conservation_identities(self):
        profile = _profile(rate="0.13")
        orders = [
            _order(profile, "99.99", delivery_fee="10"),
            _order(profile, "45.55", ONLINE, delivery_fee="7.5", refund="5"),
            _order(profile, "12.34", ONLINE, discount="2"),
            _order(profile, "0"),
        ]
        summary = _summarize(profile, orders)

        assert summary.revenue.gross == summary.revenue.cod + summary.revenue.online
        assert summary.orders.total == summary.orders.cod + summary.orders.online
        assert summary.delivery_fees.total == summary.delivery_fees.cod + summary.delivery_fees.online
        assert (
            summary.commission.actual + summary.commission.grace_discount
            == summary.commission.theoretical
        )
        assert (
            summary.net_commission
            == summary.commission.actual - summary.refunds.commission_reduction
        )
        assert summary.net_balance == summary.online_payout_owed - summary.cod_commission_owed

    def test_delivery_fee_does_not_carry_commission(self):
        profile = _profile()
        summary = _summarize(profile, [_order(profile, "100", delivery_fee="20")])

        assert summary.revenue.gross == Decimal("120.00")
        assert summary.commission.theoretical == Decimal("10.00")
        assert summary.delivery_fees.cod == Decimal("20.00")

    def test_discount_reduces_commission_base(self):
        profile = _profile()
        summary = _summarize(profile, [_order(profile, "100", discount="20")])
        assert summary.commission.theoretical == Decimal("8.00")

    def test_platform_delivery_withholds_online_fees(self):
        profile = _profile(delivery=DeliveryResponsibility.PLATFORM_DELIVERY.value)
        summary = _summarize(profile, [_order(profile, "100", ONLINE, delivery_fee="15")])

        # 115 collected online - 10 commission - 15 delivery fee
        assert summary.online_payout_owed == Decimal("90.00")

    def test_merchant_delivery_keeps_online_fees(self):
        profile = _profile()
        summary = _summarize(profile, [_order(profile, "100", ONLINE, delivery_fee="15")])
        assert summary.online_payout_owed == Decimal("105.00")

    def test_refund_larger_than_total_is_capped(self):
        profile = _profile()
        summary = _summarize(profile, [_order(profile, "100", ONLINE, refund="150")])

        assert summary.refunds.commission_reduction == Decimal("10.00")
        assert summary.net_commission == Decimal("0.00")

    def test_zero_total_order_has_no_refund_effect(self):
        profile = _profile()
        summary = _summarize(profile, [_order(profile, "0", refund="5")])
        assert summary.refunds.commission_reduction == Decimal("0.00")

    def test_unknown_payment_method_rejected(self):
        profile = _profile()
        with pytest.raises(InvalidInputError):
            _summarize(profile, [_order(profile, "100", method="crypto")])

    def test_negative_amounts_rejected(self):
        profile = _profile()
        with pytest.raises(InvalidInputError):
            _summarize(profile, [_order(profile, "100", refund="-1")])

    def test_is_deterministic(self):
        profile = _profile()
        orders = [_order(profile, "100"), _order(profile, "500", ONLINE, refund="250")]
        assert _summarize(profile, orders) == _summarize(profile, orders)


class TestHelpers:
    @pytest.mark.parametrize(
        ("balance", "direction"),
        [
            ("0.01", SettlementDirection.PLATFORM_PAYS_PROVIDER),
            ("-0.01", SettlementDirection.PROVIDER_PAYS_PLATFORM),
            ("0.00", SettlementDirection.BALANCED),
        ],
    )
    def test_settlement_direction_for(self, balance, direction):
        assert settlement_direction_for(Decimal(balance)) == direction

    def test_refund_percentage(self):
        assert refund_percentage(Decimal("25"), Decimal("100")) == Decimal("0.25")
        assert refund_percentage(Decimal("0"), Decimal("100")) == Decimal("0")
        assert refund_percentage(Decimal("200"), Decimal("100")) == Decimal("1")


class TestPeriodAggregator:
    def test_reads_only_eligible_orders_in_window(self, db_session, make_provider, make_order):
        provider = make_provider()
        make_order(provider, "100")
        make_order(provider, "200")
        make_order(provider, "50", settlement_status=OrderSettlementStatus.ON_HOLD.value)
        make_order(provider, "70", created_at=PERIOD_END)
        make_order(provider, "80", created_at=PERIOD_START - timedelta(seconds=1))
        other = make_provider(name="Other")
        make_order(other, "999")

        summary = PeriodAggregator(db_session).aggregate(
            provider.id, PERIOD_START, PERIOD_END, at=NOW
        )

        assert summary.orders.total == 2
        assert summary.revenue.gross == Decimal("300.00")
        assert summary.orders.eligible == 2
        assert summary.orders.on_hold == 1
        assert summary.cod_commission_owed == Decimal("30.00")

    def test_period_start_is_inclusive(self, db_session, make_provider, make_order):
        provider = make_provider()
        make_order(provider, "100", created_at=PERIOD_START)

        summary = PeriodAggregator(db_session).aggregate(
            provider.id, PERIOD_START, PERIOD_END, at=NOW
        )
        assert summary.orders.total == 1

    def test_payment_method_filter(self, db_session, make_provider, make_order):
        provider = make_provider()
        make_order(provider, "100")
        make_order(provider, "500", payment_method=ONLINE)

        summary = PeriodAggregator(db_session).aggregate(
            provider.id, PERIOD_START, PERIOD_END, at=NOW, payment_methods=[ONLINE]
        )
        assert summary.orders.total == 1
        assert summary.orders.online == 1

    def test_inverted_period_rejected(self, db_session, make_provider):
        provider = make_provider()
        with pytest.raises(InvalidInputError):
            PeriodAggregator(db_session).aggregate(provider.id, PERIOD_END, PERIOD_START)

    def test_unknown_provider(self, db_session):
        with pytest.raises(ProviderNotFoundError):
            PeriodAggregator(db_session).aggregate(uuid.uuid4(), PERIOD_START, PERIOD_END)

    def test_misconfigured_provider_rejected(self, db_session, make_provider):
        provider = make_provider(commission_rate="1.5")
        with pytest.raises(InvalidInputError):
            PeriodAggregator(db_session).aggregate(provider.id, PERIOD_START, PERIOD_END)
