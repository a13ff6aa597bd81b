"""Deterministic hashing for the audit chain."""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return format(obj.normalize(), "f")
    if isinstance(obj, datetime | date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """Sorted keys, no whitespace, stable rendering of Decimal/datetime/UUID."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_json_serializer)


def hash_payload(payload: dict[str, Any]) -> str:
    return hashlib.sha256(canonicalize_json(payload).encode("utf-8")).hexdigest()


def hash_audit_entry(
    sequence: int,
    settlement_id: UUID | None,
    order_id: UUID | None,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """Hash one audit entry together with its predecessor's hash."""
    components = [
        str(sequence),
        str(settlement_id) if settlement_id else "-",
        str(order_id) if order_id else "-",
        action,
        payload_hash,
        prev_hash or "GENESIS",
    ]
    return hashlib.sha256("|".join(components).encode("utf-8")).hexdigest()
