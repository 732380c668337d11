"""reference number counters

Revision ID: 0003_reference_sequences
Revises: 0002_inventory_transactions
Create Date: 2026-09-03 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0003_reference_sequences"
down_revision = "0002_inventory_transactions"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "reference_sequences",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("period", sa.String(length=6), nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("business_id", "kind", "period", name="uq_reference_sequence"),
    )


def downgrade() -> None:
    op.drop_table("reference_sequences")
