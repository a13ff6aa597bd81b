"""Translate engine exceptions into HTTP errors."""

import math

from fastapi import HTTPException

from settlement_engine.core.exceptions import (
    AuditChainConflictError,
    InvalidInputError,
    InvalidStateTransitionError,
    NotFoundError,
    OrderAlreadySettledError,
    OverpaymentError,
    SettlementEngineError,
    SettlementLockTimeoutError,
)

_STATUS_CODES: list[tuple[type[SettlementEngineError], int]] = [
    (NotFoundError, 404),
    (InvalidInputError, 400),
    (OverpaymentError, 422),
    (InvalidStateTransitionError, 422),
    (OrderAlreadySettledError, 409),
    (AuditChainConflictError, 409),
    (SettlementLockTimeoutError, 503),
]


def to_http_exception(exc: SettlementEngineError) -> HTTPException:
    status_code = 500
    for exc_type, code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            status_code = code
            break

    headers = None
    if isinstance(exc, SettlementLockTimeoutError):
        headers = {"Retry-After": str(max(1, math.ceil(exc.timeout)))}

    return HTTPException(
        status_code=status_code,
        detail={"detail": exc.message, "code": exc.code, "retryable": exc.retryable},
        headers=headers,
    )
