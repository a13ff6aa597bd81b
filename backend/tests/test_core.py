"""Tests for core helpers: money, cache, locks, sorting, actors and error mapping."""

import importlib.util
import os
import threading
import time
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException

from settlement_engine.core.auth import Actor, get_current_actor, require_admin
from settlement_engine.core.cache import TTLCache
from settlement_engine.core.exceptions import (
    AuditChainBrokenError,
    AuditChainConflictError,
    InvalidInputError,
    InvalidStateTransitionError,
    OrderAlreadySettledError,
    OverpaymentError,
    SettlementLockTimeoutError,
    SettlementNotFoundError,
)
from settlement_engine.core.http_errors import to_http_exception
from settlement_engine.core.locks import KeyedLockRegistry
from settlement_engine.core.money import quantize_money, sum_money, to_decimal
from settlement_engine.core.sorting import apply_order_by
from settlement_engine.models.settlement import Settlement

MIGRATIONS_DIR = os.path.join(
    os.path.dirname(__file__), "..", "settlement_engine", "alembic", "versions"
)


class TestMoney:
    def test_to_decimal_avoids_float_drift(self):
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(None) == Decimal("0")

    def test_quantize_rounds_half_up(self):
        assert quantize_money(Decimal("2.675")) == Decimal("2.68")
        assert quantize_money(Decimal("2.665")) == Decimal("2.67")

    def test_sum_money(self):
        assert sum_money([Decimal("0.10"), Decimal("0.20")]) == Decimal("0.30")
        assert sum_money([]) == Decimal("0.00")


class TestTTLCache:
    def test_get_or_compute_caches(self):
        cache = TTLCache(ttl_seconds=60)
        compute = MagicMock(return_value={"total": 1})

        assert cache.get_or_compute("k", compute) == {"total": 1}
        assert cache.get_or_compute("k", compute) == {"total": 1}
        compute.assert_called_once()

    def test_entries_expire(self):
        cache = TTLCache(ttl_seconds=10)
        with patch("settlement_engine.core.cache.time.monotonic", return_value=100.0):
            cache.set("k", "v")
        with patch("settlement_engine.core.cache.time.monotonic", return_value=109.0):
            assert cache.get("k") == "v"
        with patch("settlement_engine.core.cache.time.monotonic", return_value=110.0):
            assert cache.get("k") is None

    def test_zero_ttl_disables_caching(self):
        cache = TTLCache(ttl_seconds=0)
        cache.set("k", "v")
        assert cache.get("k") is None

    def test_clear(self):
        cache = TTLCache(ttl_seconds=60)
        cache.set("k", "v")
        cache.clear()
        assert cache.get("k") is None


class TestKeyedLockRegistry:
    def test_different_keys_do_not_block(self):
        locks = KeyedLockRegistry(default_timeout=0.01)
        with locks.hold("provider:a"), locks.hold("provider:b"):
            pass

    def test_same_key_times_out(self):
        locks = KeyedLockRegistry(default_timeout=0.01)
        with locks.hold("provider:a"):
            with pytest.raises(SettlementLockTimeoutError) as exc_info:
                with locks.hold("provider:a"):
                    pass
        assert exc_info.value.lock_key == "provider:a"

    def test_lock_is_released_on_error(self):
        locks = KeyedLockRegistry(default_timeout=0.01)
        with pytest.raises(ValueError):
            with locks.hold("settlement:x"):
                raise ValueError("boom")
        with locks.hold("settlement:x"):
            pass

    def test_waiter_gets_lock_after_release(self):
        locks = KeyedLockRegistry(default_timeout=2)
        acquired = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold("provider:a"):
                acquired.set()
                release.wait(1)

        thread = threading.Thread(target=holder)
        thread.start()
        acquired.wait(1)
        release.set()
        started = time.monotonic()
        with locks.hold("provider:a"):
            assert time.monotonic() - started < 2
        thread.join()

    def test_idle_keys_are_dropped(self):
        locks = KeyedLockRegistry(default_timeout=0.01)
        with locks.hold("settlement:a"):
            with locks.hold("settlement:b"):
                assert len(locks) == 2
            assert len(locks) == 1
        assert len(locks) == 0

    def test_timed_out_waiter_is_not_tracked(self):
        locks = KeyedLockRegistry(default_timeout=0.01)
        with locks.hold("provider:a"):
            with pytest.raises(SettlementLockTimeoutError):
                with locks.hold("provider:a"):
                    pass
            assert len(locks) == 1
        assert len(locks) == 0

    def test_key_reused_after_eviction(self):
        locks = KeyedLockRegistry(default_timeout=0.01)
        for _ in range(3):
            with locks.hold("settlement:x"):
                assert len(locks) == 1
        assert len(locks) == 0


class TestSorting:
    def test_unknown_field_falls_back_to_default(self):
        query = MagicMock()
        apply_order_by(query, Settlement, "hash", {"net_balance"})
        (primary, tie_breaker), _ = query.order_by.call_args
        assert "created_at" in str(primary)
        assert "DESC" in str(primary)
        assert "id" in str(tie_breaker)

    def test_field_and_direction(self):
        query = MagicMock()
        apply_order_by(query, Settlement, "net_balance:desc", {"net_balance"})
        (primary, _), _ = query.order_by.call_args
        assert "net_balance DESC" in str(primary)

    def test_direction_defaults_to_ascending(self):
        query = MagicMock()
        apply_order_by(query, Settlement, "net_balance", {"net_balance"})
        (primary, _), _ = query.order_by.call_args
        assert "net_balance ASC" in str(primary)


class TestActors:
    def _request(self, headers):
        request = MagicMock()
        request.headers = headers
        request.client.host = "10.1.2.3"
        return request

    def test_reads_identity_headers(self):
        actor = get_current_actor(
            self._request({"X-Actor-Type": "provider", "X-Actor-Id": "p-1", "X-Actor-Role": "owner"})
        )
        assert actor == Actor(
            actor_type="provider", actor_id="p-1", role="owner", ip_address="10.1.2.3"
        )
        assert actor.is_admin is False

    def test_defaults_to_api_caller(self):
        assert get_current_actor(self._request({})).actor_type == "api"

    def test_rejects_unknown_type(self):
        with pytest.raises(HTTPException) as exc_info:
            get_current_actor(self._request({"X-Actor-Type": "robot"}))
        assert exc_info.value.status_code == 400

    def test_require_admin(self):
        admin = Actor(actor_type="admin", role="super_admin")
        assert require_admin(admin) is admin
        with pytest.raises(HTTPException) as exc_info:
            require_admin(Actor(actor_type="admin", role="finance"))
        assert exc_info.value.status_code == 403


class TestHttpErrors:
    @pytest.mark.parametrize(
        ("exc", "status_code"),
        [
            (SettlementNotFoundError("abc"), 404),
            (InvalidInputError("bad"), 400),
            (OverpaymentError("abc", Decimal("10"), Decimal("5")), 422),
            (InvalidStateTransitionError("paid", "waive"), 422),
            (OrderAlreadySettledError(["o-1"]), 409),
            (AuditChainConflictError(7), 409),
            (SettlementLockTimeoutError("provider:a", 2.5), 503),
            (AuditChainBrokenError("abc", "x", "y"), 500),
        ],
    )
    def test_status_codes(self, exc, status_code):
        http_exc = to_http_exception(exc)
        assert http_exc.status_code == status_code
        assert http_exc.detail["code"] == exc.code
        assert http_exc.detail["retryable"] is exc.retryable

    def test_lock_timeout_sets_retry_after(self):
        http_exc = to_http_exception(SettlementLockTimeoutError("provider:a", 2.5))
        assert http_exc.headers == {"Retry-After": "3"}


class TestMigrations:
    def _load(self, filename):
        path = os.path.join(MIGRATIONS_DIR, filename)
        assert os.path.exists(path)
        spec = importlib.util.spec_from_file_location(filename[:-3], path)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module

    def test_revision_chain(self):
        first = self._load("20261001_a7c1e2d3f4b5_create_ledger_and_settlement_tables.py")
        second = self._load("20261001_b8d2f3e4a5c6_create_settlement_payments_and_audit_logs.py")
        third = self._load("20261018_c9e3f4a5b6d7_create_settlement_groups.py")

        assert first.down_revision is None
        assert second.down_revision == first.revision
        assert callable(second.upgrade)
        assert callable(second.downgrade)
        assert third.down_revision == second.revision
        assert callable(third.upgrade)
        assert callable(third.downgrade)
