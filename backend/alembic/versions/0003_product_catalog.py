"""create product catalog table

Revision ID: 0003_product_catalog
Revises: 0002_shopping_lists
Create Date: 2026-10-17 09:20:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0003_product_catalog"
down_revision = "0002_shopping_lists"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "product_catalog",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column(
            "CreatedAt",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
        sa.Column("Name", sa.String(length=200), nullable=False),
        sa.Column("Price", sa.Numeric(10, 2)),
        sa.Column("Category", sa.String(length=80)),
        sa.Column("Description", sa.Text()),
        sa.Column("UserId", sa.Integer(), sa.ForeignKey("profiles.Id"), nullable=False),
    )
    op.create_index("ix_product_catalog_name", "product_catalog", ["Name"])
    op.create_index("ix_product_catalog_category", "product_catalog", ["Category"])
    op.create_index("ix_product_catalog_user_id", "product_catalog", ["UserId"])


def downgrade() -> None:
    op.drop_index("ix_product_catalog_user_id", table_name="product_catalog")
    op.drop_index("ix_product_catalog_category", table_name="product_catalog")
    op.drop_index("ix_product_catalog_name", table_name="product_catalog")
    op.drop_table("product_catalog")
