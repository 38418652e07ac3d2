"""create materials table

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "materials",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "owner_id",
            sa.String(length=255),
            nullable=False,
            comment="Identity supplied by the authentication layer",
        ),
        sa.Column("sku", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("supplier", sa.String(length=100), nullable=False),
        sa.Column(
            "unit",
            sa.String(length=16),
            nullable=False,
            comment="EA, LM, SQM, KG, L, PACK, BOX, ROLL, SHEET, BAG, HR, DAY",
        ),
        sa.Column("price_per_unit", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("gst_inclusive", sa.Boolean(), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("in_stock", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_id", "sku", name="uq_materials_owner_sku"),
    )
    op.create_index("ix_materials_owner_id", "materials", ["owner_id"], unique=False)
    op.create_index("ix_materials_supplier", "materials", ["supplier"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_materials_supplier", table_name="materials")
    op.drop_index("ix_materials_owner_id", table_name="materials")
    op.drop_table("materials")
