"""Ordering helper for list queries."""

from __future__ import annotations

from collections.abc import Collection

from sqlalchemy import asc, desc
from sqlalchemy.orm import Query

from settlement_engine.core.database import Base


def apply_order_by(
    query: Query,  # type: ignore[type-arg]
    model: type[Base],
    order_by: str | None,
    allowed_fields: Collection[str],
    default_field: str = "created_at",
    default_direction: str = "desc",
) -> Query:  # type: ignore[type-arg]
    """Order ``query`` by a "field:direction" string.

    Only columns listed in ``allowed_fields`` may be used; anything else falls
    back to the default ordering. The primary key is always appended as a
    tie-breaker so pages are stable.
    """
    field = default_field
    direction = default_direction

    if order_by:
        candidate_field, _, candidate_direction = order_by.partition(":")
        if candidate_field in allowed_fields:
            field = candidate_field
            direction = candidate_direction if candidate_direction in ("asc", "desc") else "asc"

    order_func = asc if direction == "asc" else desc
    return query.order_by(order_func(getattr(model, field)), order_func(model.id))
