"""In-process exclusive locks keyed by provider, settlement or the audit chain."""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from uuid import UUID

from settlement_engine.core.config import settings
from settlement_engine.core.exceptions import SettlementLockTimeoutError

AUDIT_CHAIN_LOCK_KEY = "audit:chain"


@dataclass
class _KeyedLock:
    lock: Lock = field(default_factory=Lock)
    users: int = 0


class KeyedLockRegistry:
    """Hands out one lock per key and acquires it with a bounded wait.

    Callers that cannot get the lock within ``timeout`` seconds receive a
    retryable ``SettlementLockTimeoutError`` instead of blocking forever.
    A key is tracked only while someone holds or waits for it, so the
    registry stays as small as the number of in-flight operations.
    """

    def __init__(self, default_timeout: float):
        self.default_timeout = default_timeout
        self._locks: dict[str, _KeyedLock] = {}
        self._guard = Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _check_out(self, key: str) -> _KeyedLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _KeyedLock()
                self._locks[key] = entry
            entry.users += 1
            return entry

    def _check_in(self, key: str, entry: _KeyedLock) -> None:
        with self._guard:
            entry.users -= 1
            # Prune idle keys
            if entry.users == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str, timeout: float | None = None) -> Iterator[None]:
        wait = self.default_timeout if timeout is None else timeout
        entry = self._check_out(key)
        try:
            if not entry.lock.acquire(timeout=wait):
                raise SettlementLockTimeoutError(key, wait)
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._check_in(key, entry)

    def reset(self) -> None:
        """Drop all tracked locks (useful for testing)."""
        with self._guard:
            self._locks.clear()


def provider_lock_key(provider_id: UUID) -> str:
    return f"provider:{provider_id}"


def settlement_lock_key(settlement_id: UUID) -> str:
    return f"settlement:{settlement_id}"


lock_registry = KeyedLockRegistry(default_timeout=settings.SETTLEMENT_LOCK_TIMEOUT_SECONDS)
