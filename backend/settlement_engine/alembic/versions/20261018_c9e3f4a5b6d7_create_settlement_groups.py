"""create settlement_groups table and add settlement_group_id to providers

Revision ID: c9e3f4a5b6d7
Revises: b8d2f3e4a5c6
Create Date: 2026-10-18 10:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "c9e3f4a5b6d7"
down_revision = "b8d2f3e4a5c6"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "settlement_groups",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("frequency", sa.String(length=20), nullable=False, server_default="3_days"),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
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
        sa.PrimaryKeyConstraint("id"),
    )

    with op.batch_alter_table("providers") as batch_op:
        batch_op.add_column(sa.Column("settlement_group_id", sa.String(length=36), nullable=True))
        batch_op.create_index("ix_providers_settlement_group_id", ["settlement_group_id"])
        batch_op.create_foreign_key(
            "fk_providers_settlement_group_id",
            "settlement_groups",
            ["settlement_group_id"],
            ["id"],
            ondelete="SET NULL",
        )


def downgrade() -> None:
    with op.batch_alter_table("providers") as batch_op:
        batch_op.drop_constraint("fk_providers_settlement_group_id", type_="foreignkey")
        batch_op.drop_index("ix_providers_settlement_group_id")
        batch_op.drop_column("settlement_group_id")
    op.drop_table("settlement_groups")
