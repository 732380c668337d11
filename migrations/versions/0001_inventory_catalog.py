"""inventory catalog and stock balances

Revision ID: 0001_inventory_catalog
Revises:
Create Date: 2026-09-01 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_inventory_catalog"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "businesses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "business_locations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False, index=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "units",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False, index=True),
        sa.Column("actual_name", sa.String(length=100), nullable=False),
        sa.Column("short_name", sa.String(length=50), nullable=False),
        sa.Column("allow_decimal", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("base_unit_id", sa.Integer(), sa.ForeignKey("units.id"), nullable=True),
        sa.Column("base_unit_multiplier", sa.Numeric(20, 4), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_units_business_base", "units", ["business_id", "base_unit_id"])
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False, index=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("sku", sa.String(length=100), nullable=True),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "variations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False, index=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("sub_sku", sa.String(length=100), nullable=True),
        sa.Column("retail_price", sa.Numeric(22, 4), nullable=False, server_default="0"),
        sa.Column("wholesale_price", sa.Numeric(22, 4), nullable=False, server_default="0"),
        sa.Column("default_purchase_price", sa.Numeric(22, 4), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "contacts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False, index=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False, server_default="customer"),
        sa.Column("customer_type", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "variation_location_details",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("variation_id", sa.Integer(), sa.ForeignKey("variations.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=True),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("business_locations.id"), nullable=False),
        sa.Column("qty_available", sa.Numeric(20, 4), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("variation_id", "location_id", name="uq_stock_balance_variation_location"),
    )


def downgrade() -> None:
    op.drop_table("variation_location_details")
    op.drop_table("contacts")
    op.drop_table("variations")
    op.drop_table("products")
    op.drop_index("ix_units_business_base", table_name="units")
    op.drop_table("units")
    op.drop_table("business_locations")
    op.drop_table("businesses")
