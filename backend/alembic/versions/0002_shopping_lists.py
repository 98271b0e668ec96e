"""create shopping lists table

Revision ID: 0002_shopping_lists
Revises: 0001_profiles
Create Date: 2026-10-17 09:10:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_shopping_lists"
down_revision = "0001_profiles"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "shopping_lists",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column(
            "CreatedAt",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
        sa.Column("Item", sa.String(length=200), nullable=False),
        sa.Column("Quantity", sa.String(length=60), nullable=False, server_default=sa.text("''")),
        sa.Column("UserId", sa.Integer(), sa.ForeignKey("profiles.Id"), nullable=False),
        sa.Column("Completed", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_shopping_lists_user_id", "shopping_lists", ["UserId"])
    op.create_index("ix_shopping_lists_created_at", "shopping_lists", ["CreatedAt", "Id"])


def downgrade() -> None:
    op.drop_index("ix_shopping_lists_created_at", table_name="shopping_lists")
    op.drop_index("ix_shopping_lists_user_id", table_name="shopping_lists")
    op.drop_table("shopping_lists")
