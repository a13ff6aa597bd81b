"""Shared test fixtures for all test modules."""

import contextlib
from datetime import UTC, datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import settlement_engine.models  # noqa: F401
from settlement_engine.core import database as db_module
from settlement_engine.core.database import Base, get_db
from settlement_engine.core.locks import lock_registry
from settlement_engine.models.governorate import Governorate
from settlement_engine.models.order import Order, OrderSettlementStatus, PaymentMethod
from settlement_engine.models.provider import CommissionStatus, DeliveryResponsibility, Provider
from settlement_engine.models.settlement_group import SettlementGroup
from settlement_engine.routers.finance import summary_cache

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

PERIOD_START = datetime(2026, 9, 1, tzinfo=UTC)
PERIOD_END = datetime(2026, 9, 2, tzinfo=UTC)
IN_PERIOD = datetime(2026, 9, 1, 12, 0, tzinfo=UTC)
NOW = datetime(2026, 9, 3, 10, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data after each test.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)
    summary_cache.clear()
    lock_registry.reset()

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    summary_cache.clear()
    lock_registry.reset()
    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def db_session():
    """Create a database session for direct testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def make_governorate(db_session):
    def _make(name: str = "Cairo") -> Governorate:
        governorate = Governorate(name=name)
        db_session.add(governorate)
        db_session.commit()
        db_session.refresh(governorate)
        return governorate

    return _make


@pytest.fixture
def make_provider(db_session):
    def _make(
        name: str = "Koshary El Tahrir",
        commission_rate: str = "0.10",
        commission_status: str = CommissionStatus.ACTIVE.value,
        grace_period_end: datetime | None = None,
        delivery_responsibility: str = DeliveryResponsibility.MERCHANT_DELIVERY.value,
        governorate_id=None,
        settlement_group_id=None,
    ) -> Provider:
        provider = Provider(
            name=name,
            commission_rate=Decimal(commission_rate),
            commission_status=commission_status,
            grace_period_end=grace_period_end,
            delivery_responsibility=delivery_responsibility,
            governorate_id=governorate_id,
            settlement_group_id=settlement_group_id,
        )
        db_session.add(provider)
        db_session.commit()
        db_session.refresh(provider)
        return provider

    return _make


@pytest.fixture
def make_order(db_session):
    def _make(
        provider: Provider,
        amount: str = "100",
        payment_method: str = PaymentMethod.CASH_ON_DELIVERY.value,
        delivery_fee: str = "0",
        discount: str = "0",
        refund_amount: str = "0",
        settlement_status: str = OrderSettlementStatus.ELIGIBLE.value,
        created_at: datetime = IN_PERIOD,
    ) -> Order:
        """Order whose item subtotal is ``amount``; total adds the delivery fee."""
        subtotal = Decimal(amount)
        order = Order(
            provider_id=provider.id,
            payment_method=payment_method,
            subtotal=subtotal,
            delivery_fee=Decimal(delivery_fee),
            discount=Decimal(discount),
            total=subtotal - Decimal(discount) + Decimal(delivery_fee),
            refund_amount=Decimal(refund_amount),
            settlement_status=settlement_status,
            created_at=created_at,
        )
        db_session.add(order)
        db_session.commit()
        db_session.refresh(order)
        return order

    return _make


@pytest.fixture
def make_settlement_group(db_session):
    def _make(
        name: str = "Weekly partners",
        frequency: str = "weekly",
        is_default: bool = False,
        is_active: bool = True,
    ) -> SettlementGroup:
        group = SettlementGroup(
            name=name, frequency=frequency, is_default=is_default, is_active=is_active
        )
        db_session.add(group)
        db_session.commit()
        db_session.refresh(group)
        return group

    return _make
