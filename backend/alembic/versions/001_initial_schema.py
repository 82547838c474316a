"""Initial schema — addresses (one active default per owner) and carts.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "addresses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("house_flat_number", sa.String(50), nullable=False),
        sa.Column("street_area_name", sa.String(100), nullable=False),
        sa.Column("complete_address", sa.String(200), nullable=False),
        sa.Column("landmark", sa.String(100), nullable=True),
        sa.Column("pincode", sa.String(6), nullable=False),
        sa.Column("city", sa.String(50), nullable=True),
        sa.Column("state", sa.String(50), nullable=False, server_default="Bihar"),
        sa.Column("country", sa.String(50), nullable=False, server_default="India"),
        sa.Column("phone", sa.String(10), nullable=False),
        sa.Column("address_type", sa.String(10), nullable=False, server_default="home"),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_addresses_pincode", "addresses", ["pincode"])
    op.create_index("ix_addresses_owner_active", "addresses", ["owner_id", "is_active"])
    op.create_index("ix_addresses_owner_default", "addresses", ["owner_id", "is_default"])
    # At most one active default per owner
    op.create_index(
        "uq_addresses_owner_active_default", "addresses", ["owner_id"],
        unique=True,
        postgresql_where=sa.text("is_active AND is_default"),
    )

    op.create_table(
        "carts",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("items", sa.JSON, nullable=False),
        sa.Column("total_services", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_items", sa.Integer, nullable=False, server_default="0"),
        sa.Column("subtotal", sa.Float, nullable=False, server_default="0"),
        sa.Column("tax_amount", sa.Float, nullable=False, server_default="0"),
        sa.Column("total", sa.Float, nullable=False, server_default="0"),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_carts_owner_id", "carts", ["owner_id"], unique=True)
    op.create_index("ix_carts_expires_at", "carts", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_carts_expires_at", table_name="carts")
    op.drop_index("ix_carts_owner_id", table_name="carts")
    op.drop_table("carts")
    op.drop_index("uq_addresses_owner_active_default", table_name="addresses")
    op.drop_index("ix_addresses_owner_default", table_name="addresses")
    op.drop_index("ix_addresses_owner_active", table_name="addresses")
    op.drop_index("ix_addresses_pincode", table_name="addresses")
    op.drop_table("addresses")
