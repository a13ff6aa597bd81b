"""Typed exceptions raised by the settlement engine.

Every error carries a machine-readable ``code`` and a ``retryable`` flag so
callers can decide between "fix the request" and "try again" without parsing
messages.

    SettlementEngineError (base)
    |
    +-- InvalidInputError
    +-- OrderAlreadySettledError          (retryable)
    +-- OverpaymentError
    +-- SettlementLockTimeoutError        (retryable)
    +-- InvalidStateTransitionError
    +-- NotFoundError
    |   +-- SettlementNotFoundError
    |   +-- OrderNotFoundError
    |   +-- ProviderNotFoundError
    |   +-- PaymentNotFoundError
    +-- AuditError
        +-- AuditLogImmutableError
        +-- AuditChainBrokenError
        +-- AuditChainConflictError       (retryable)
"""

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID


class SettlementEngineError(Exception):
    """Base exception for the settlement engine."""

    code: str = "SETTLEMENT_ENGINE_ERROR"
    retryable: bool = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidInputError(SettlementEngineError):
    """Malformed amounts, rates or periods. A caller bug."""

    code = "INVALID_INPUT"


class OrderAlreadySettledError(SettlementEngineError):
    """An order is already part of a settlement (or was settled concurrently)."""

    code = "ORDER_ALREADY_SETTLED"
    retryable = True

    def __init__(self, order_ids: Iterable[UUID], message: str | None = None):
        self.order_ids = sorted(order_ids, key=str)
        ids = ", ".join(str(oid) for oid in self.order_ids)
        super().__init__(message or f"Orders already settled: {ids}")


class OverpaymentError(SettlementEngineError):
    """A payment would push amount_paid beyond the settlement obligation."""

    code = "OVERPAYMENT"

    def __init__(self, settlement_id: UUID, amount: Decimal, outstanding: Decimal):
        self.settlement_id = settlement_id
        self.amount = amount
        self.outstanding = outstanding
        super().__init__(
            f"Payment of {amount} exceeds outstanding balance {outstanding} "
            f"on settlement {settlement_id}"
        )


class SettlementLockTimeoutError(SettlementEngineError):
    """Could not acquire a settlement lock within the configured wait."""

    code = "SETTLEMENT_LOCK_TIMEOUT"
    retryable = True

    def __init__(self, lock_key: str, timeout: float):
        self.lock_key = lock_key
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for lock {lock_key}")


class InvalidStateTransitionError(SettlementEngineError):
    """The requested operation is not allowed in the current state."""

    code = "INVALID_STATE_TRANSITION"

    def __init__(self, current_state: str, action: str, message: str | None = None):
        self.current_state = current_state
        self.action = action
        super().__init__(message or f"Cannot {action} when status is '{current_state}'")


class NotFoundError(SettlementEngineError):
    """Base for missing records."""

    code = "NOT_FOUND"
    resource: str = "Resource"

    def __init__(self, resource_id: UUID):
        self.resource_id = resource_id
        super().__init__(f"{self.resource} {resource_id} not found")


class SettlementNotFoundError(NotFoundError):
    code = "SETTLEMENT_NOT_FOUND"
    resource = "Settlement"


class OrderNotFoundError(NotFoundError):
    code = "ORDER_NOT_FOUND"
    resource = "Order"


class ProviderNotFoundError(NotFoundError):
    code = "PROVIDER_NOT_FOUND"
    resource = "Provider"


class PaymentNotFoundError(NotFoundError):
    code = "PAYMENT_NOT_FOUND"
    resource = "Settlement payment"


class AuditError(SettlementEngineError):
    """Base for audit trail failures."""

    code = "AUDIT_ERROR"


class AuditLogImmutableError(AuditError):
    """Attempted to update or delete an audit log entry."""

    code = "AUDIT_LOG_IMMUTABLE"

    def __init__(self, entry_id: UUID | None, operation: str):
        self.entry_id = entry_id
        self.operation = operation
        super().__init__(f"Audit log entry {entry_id} cannot be {operation}")


class AuditChainBrokenError(AuditError):
    """Recomputed audit hash does not match the stored chain."""

    code = "AUDIT_CHAIN_BROKEN"

    def __init__(self, entry_id: UUID, expected_hash: str | None, actual_hash: str | None):
        self.entry_id = entry_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {entry_id}: expected {expected_hash}, found {actual_hash}"
        )


class AuditChainConflictError(AuditError):
    """Another transaction appended the same audit sequence number first."""

    code = "AUDIT_CHAIN_CONFLICT"
    retryable = True

    def __init__(self, sequence: int):
        self.sequence = sequence
        super().__init__(f"Audit sequence {sequence} was taken by a concurrent write")
