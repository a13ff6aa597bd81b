"""CSV rendering of settlements for finance exports."""

import csv
import io
from collections.abc import Iterable, Mapping
from datetime import datetime
from uuid import UUID

from settlement_engine.models.settlement import Settlement
from settlement_engine.models.shared import as_utc

CSV_HEADERS = [
    "settlement_id",
    "provider_id",
    "provider_name",
    "period_start",
    "period_end",
    "total_orders",
    "cod_orders",
    "online_orders",
    "gross_revenue",
    "net_commission",
    "cod_commission_owed",
    "online_payout_owed",
    "net_balance",
    "settlement_direction",
    "status",
    "amount_paid",
    "due_date",
    "paid_at",
]


def _iso(value: datetime | None) -> str:
    value = as_utc(value)
    return value.isoformat() if value else ""


def render_settlements_csv(
    settlements: Iterable[Settlement],
    provider_names: Mapping[UUID, str] | None = None,
    at: datetime | None = None,
) -> str:
    names = provider_names or {}
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADERS)
    for s in settlements:
        writer.writerow(
            [
                str(s.id),
                str(s.provider_id),
                names.get(s.provider_id, ""),
                _iso(s.period_start),
                _iso(s.period_end),
                s.total_orders,
                s.cod_orders_count,
                s.online_orders_count,
                f"{s.gross_revenue:.2f}",
                f"{s.net_commission:.2f}",
                f"{s.cod_commission_owed:.2f}",
                f"{s.online_payout_owed:.2f}",
                f"{s.net_balance:.2f}",
                s.settlement_direction,
                s.effective_status(at),
                f"{s.amount_paid:.2f}",
                _iso(s.due_date),
                _iso(s.paid_at),
            ]
        )
    return output.getvalue()
