"""create governorates, providers, settlements and orders tables

Revision ID: a7c1e2d3f4b5
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "a7c1e2d3f4b5"
down_revision = None
branch_labels = None
depends_on = None


def _money(name: str) -> sa.Column:  # type: ignore[type-arg]
    return sa.Column(name, sa.Numeric(precision=12, scale=4), nullable=False, server_default="0")


def upgrade() -> None:
    op.create_table(
        "governorates",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "providers",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("governorate_id", sa.String(length=36), nullable=True),
        sa.Column(
            "commission_rate",
            sa.Numeric(precision=5, scale=4),
            nullable=False,
            server_default="0",
        ),
        sa.Column("commission_status", sa.String(length=20), nullable=False),
        sa.Column("grace_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivery_responsibility", sa.String(length=30), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["governorate_id"], ["governorates.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_providers_governorate_id", "providers", ["governorate_id"])

    op.create_table(
        "settlements",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("provider_id", sa.String(length=36), nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "commission_rate",
            sa.Numeric(precision=5, scale=4),
            nullable=False,
            server_default="0",
        ),
        sa.Column("total_orders", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cod_orders_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("online_orders_count", sa.Integer(), nullable=False, server_default="0"),
        _money("gross_revenue"),
        _money("cod_gross_revenue"),
        _money("online_gross_revenue"),
        _money("theoretical_commission"),
        _money("actual_commission"),
        _money("grace_period_discount"),
        _money("total_delivery_fees"),
        _money("cod_delivery_fees"),
        _money("online_delivery_fees"),
        _money("total_refunds"),
        _money("refund_commission_reduction"),
        _money("net_commission"),
        _money("cod_commission_owed"),
        _money("online_payout_owed"),
        _money("net_balance"),
        sa.Column("settlement_direction", sa.String(length=30), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        _money("amount_paid"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("dispute_reason", sa.Text(), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("waive_reason", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("processed_by", sa.String(length=255), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["provider_id"], ["providers.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_settlements_provider_id", "settlements", ["provider_id"])
    op.create_index(
        "ix_settlements_provider_period",
        "settlements",
        ["provider_id", "period_start", "period_end"],
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("provider_id", sa.String(length=36), nullable=False),
        sa.Column("payment_method", sa.String(length=20), nullable=False),
        _money("subtotal"),
        _money("delivery_fee"),
        _money("discount"),
        _money("total"),
        _money("refund_amount"),
        sa.Column("settlement_status", sa.String(length=20), nullable=False),
        sa.Column("settlement_id", sa.String(length=36), nullable=True),
        sa.Column("hold_reason", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["provider_id"], ["providers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["settlement_id"], ["settlements.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_orders_provider_id", "orders", ["provider_id"])
    op.create_index("ix_orders_settlement_id", "orders", ["settlement_id"])
    op.create_index(
        "ix_orders_provider_status_created",
        "orders",
        ["provider_id", "settlement_status", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_orders_provider_status_created", table_name="orders")
    op.drop_index("ix_orders_settlement_id", table_name="orders")
    op.drop_index("ix_orders_provider_id", table_name="orders")
    op.drop_table("orders")
    op.drop_index("ix_settlements_provider_period", table_name="settlements")
    op.drop_index("ix_settlements_provider_id", table_name="settlements")
    op.drop_table("settlements")
    op.drop_index("ix_providers_governorate_id", table_name="providers")
    op.drop_table("providers")
    op.drop_table("governorates")
