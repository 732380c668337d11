"""inventory transactions and per-kind lines

Revision ID: 0002_inventory_transactions
Revises: 0001_inventory_catalog
Create Date: 2026-09-02 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_inventory_transactions"
down_revision = "0001_inventory_catalog"
branch_labels = None
depends_on = None


def _line_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("transactions.id"), nullable=False, index=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("variation_id", sa.Integer(), sa.ForeignKey("variations.id"), nullable=False),
        sa.Column("quantity", sa.Numeric(20, 4), nullable=False),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id"), nullable=False),
    ]


def _money(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(22, 4), nullable=False, server_default="0")


def upgrade() -> None:
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False, index=True),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("business_locations.id"), nullable=False),
        sa.Column("transfer_location_id", sa.Integer(), sa.ForeignKey("business_locations.id"), nullable=True),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("payment_status", sa.String(length=20), nullable=True),
        sa.Column("contact_id", sa.Integer(), sa.ForeignKey("contacts.id"), nullable=True),
        sa.Column("customer_type", sa.String(length=20), nullable=True),
        sa.Column("ref_no", sa.String(length=50), nullable=False),
        sa.Column("transaction_date", sa.DateTime(), nullable=False),
        _money("total_before_tax"),
        _money("tax_amount"),
        sa.Column("discount_type", sa.String(length=20), nullable=True),
        _money("discount_amount"),
        _money("final_total"),
        sa.Column("additional_notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("business_id", "type", "ref_no", name="uq_transactions_business_type_ref"),
    )
    op.create_index(
        "ix_transactions_business_type_date",
        "transactions",
        ["business_id", "type", "transaction_date"],
    )
    op.create_table(
        "transaction_sell_lines",
        *_line_columns(),
        _money("unit_price"),
        _money("unit_price_inc_tax"),
        _money("line_total"),
        _money("item_tax"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "purchase_lines",
        *_line_columns(),
        _money("purchase_price"),
        _money("purchase_price_inc_tax"),
        _money("line_total"),
        _money("item_tax"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "stock_adjustment_lines",
        *_line_columns(),
        sa.Column("adjustment_type", sa.String(length=20), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "stock_transfer_lines",
        *_line_columns(),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("stock_transfer_lines")
    op.drop_table("stock_adjustment_lines")
    op.drop_table("purchase_lines")
    op.drop_table("transaction_sell_lines")
    op.drop_index("ix_transactions_business_type_date", table_name="transactions")
    op.drop_table("transactions")
