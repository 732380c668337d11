from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from app.inventory.db.models import StockBalance, Variation


@dataclass(frozen=True)
class BalanceState:
    id: int
    qty_available: Decimal
    version: int


class StockRepository:
    """Balance rows keyed by (variation, location).

    Quantities only move through single conditional UPDATE statements; reads
    select columns rather than entities so a long-lived session never hands
    back a stale identity-map value.
    """

    def __init__(self, db):
        self.db = db

    def get_state(self, variation_id: int, location_id: int, *, for_update: bool = False) -> BalanceState | None:
        query = select(StockBalance.id, StockBalance.qty_available, StockBalance.version).where(
            StockBalance.variation_id == variation_id,
            StockBalance.location_id == location_id,
        )
        if for_update:
            query = query.with_for_update()
        row = self.db.execute(query).first()
        if row is None:
            return None
        return BalanceState(id=row.id, qty_available=Decimal(row.qty_available), version=row.version)

    def qty_for(self, balance_id: int) -> Decimal:
        value = self.db.execute(
            select(StockBalance.qty_available).where(StockBalance.id == balance_id)
        ).scalar_one()
        return Decimal(value)

    def balances_for(self, variation_ids, location_id: int) -> dict[int, Decimal]:
        ids = {int(variation_id) for variation_id in variation_ids}
        if not ids:
            return {}
        rows = self.db.execute(
            select(StockBalance.variation_id, StockBalance.qty_available).where(
                StockBalance.location_id == location_id,
                StockBalance.variation_id.in_(ids),
            )
        ).all()
        return {row.variation_id: Decimal(row.qty_available) for row in rows}

    def product_id_for(self, variation_id: int) -> int | None:
        return self.db.execute(
            select(Variation.product_id).where(Variation.id == variation_id)
        ).scalar_one_or_none()

    def ensure_row(self, variation_id: int, location_id: int, product_id: int | None) -> int:
        """Return the balance row id, creating a zero row when absent.

        A concurrent creator losing the unique-key race re-reads the winner's row.
        """
        existing = self.get_state(variation_id, location_id)
        if existing is not None:
            return existing.id
        row = StockBalance(
            variation_id=variation_id,
            location_id=location_id,
            product_id=product_id,
            qty_available=Decimal("0"),
            version=0,
            updated_at=datetime.utcnow(),
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_state(variation_id, location_id)
            if existing is None:
                raise
            return existing.id
        return row.id

    def increment(self, balance_id: int, qty: Decimal) -> int:
        result = self.db.execute(
            update(StockBalance)
            .where(StockBalance.id == balance_id)
            .values(
                qty_available=StockBalance.qty_available + qty,
                version=StockBalance.version + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def decrement_if_available(self, balance_id: int, qty: Decimal) -> int:
        """Subtract ``qty`` only while the row still covers it; 0 rows means it did not."""
        result = self.db.execute(
            update(StockBalance)
            .where(StockBalance.id == balance_id, StockBalance.qty_available >= qty)
            .values(
                qty_available=StockBalance.qty_available - qty,
                version=StockBalance.version + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
