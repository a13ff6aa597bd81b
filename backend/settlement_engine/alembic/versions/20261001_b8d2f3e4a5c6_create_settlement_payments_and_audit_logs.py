"""create settlement_payments and settlement_audit_logs tables

Revision ID: b8d2f3e4a5c6
Revises: a7c1e2d3f4b5
Create Date: 2026-10-01 09:30:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "b8d2f3e4a5c6"
down_revision = "a7c1e2d3f4b5"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "settlement_payments",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("settlement_id", sa.String(length=36), nullable=False),
        sa.Column("amount", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("method", sa.String(length=20), nullable=False),
        sa.Column("reference", sa.String(length=255), nullable=True),
        sa.Column("recorded_by", sa.String(length=255), nullable=True),
        sa.Column(
            "recorded_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("void_reason", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["settlement_id"], ["settlements.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_settlement_payments_settlement_id", "settlement_payments", ["settlement_id"]
    )

    # No foreign keys: audit entries outlive the rows they describe
    op.create_table(
        "settlement_audit_logs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("settlement_id", sa.String(length=36), nullable=True),
        sa.Column("order_id", sa.String(length=36), nullable=True),
        sa.Column("action", sa.String(length=30), nullable=False),
        sa.Column("actor_type", sa.String(length=50), nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=True),
        sa.Column("actor_role", sa.String(length=50), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("amount", sa.Numeric(precision=12, scale=4), nullable=True),
        sa.Column("payment_method", sa.String(length=20), nullable=True),
        sa.Column("payment_reference", sa.String(length=255), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("payload_hash", sa.String(length=64), nullable=False),
        sa.Column("prev_hash", sa.String(length=64), nullable=True),
        sa.Column("hash", sa.String(length=64), nullable=False),
        sa.Column(
            "performed_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_settlement_audit_logs_sequence", "settlement_audit_logs", ["sequence"], unique=True
    )
    op.create_index(
        "ix_settlement_audit_logs_settlement_id", "settlement_audit_logs", ["settlement_id"]
    )
    op.create_index("ix_settlement_audit_logs_order_id", "settlement_audit_logs", ["order_id"])
    op.create_index("ix_settlement_audit_logs_action", "settlement_audit_logs", ["action"])


def downgrade() -> None:
    op.drop_index("ix_settlement_audit_logs_action", table_name="settlement_audit_logs")
    op.drop_index("ix_settlement_audit_logs_order_id", table_name="settlement_audit_logs")
    op.drop_index("ix_settlement_audit_logs_settlement_id", table_name="settlement_audit_logs")
    op.drop_index("ix_settlement_audit_logs_sequence", table_name="settlement_audit_logs")
    op.drop_table("settlement_audit_logs")
    op.drop_index("ix_settlement_payments_settlement_id", table_name="settlement_payments")
    op.drop_table("settlement_payments")
