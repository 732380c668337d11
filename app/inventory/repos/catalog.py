from __future__ import annotations

from sqlalchemy import select

from app.inventory.db.models import Contact, Location, Product, Unit, Variation


class CatalogRepository:
    """Read access to the unit, item and location catalog of one business."""

    def __init__(self, db):
        self.db = db

    def get_units(self, business_id: int, unit_ids) -> dict[int, Unit]:
        ids = {int(unit_id) for unit_id in unit_ids}
        if not ids:
            return {}
        rows = (
            self.db.execute(select(Unit).where(Unit.business_id == business_id, Unit.id.in_(ids)))
            .scalars()
            .all()
        )
        return {row.id: row for row in rows}

    def get_unit(self, business_id: int, unit_id: int) -> Unit | None:
        return (
            self.db.execute(select(Unit).where(Unit.business_id == business_id, Unit.id == unit_id))
            .scalars()
            .first()
        )

    def get_default_base_unit(self, business_id: int) -> Unit | None:
        return (
            self.db.execute(
                select(Unit)
                .where(Unit.business_id == business_id, Unit.base_unit_id.is_(None))
                .order_by(Unit.id)
                .limit(1)
            )
            .scalars()
            .first()
        )

    def list_units(self, business_id: int) -> list[Unit]:
        return (
            self.db.execute(select(Unit).where(Unit.business_id == business_id).order_by(Unit.id))
            .scalars()
            .all()
        )

    def add_unit(self, unit: Unit) -> Unit:
        self.db.add(unit)
        self.db.commit()
        self.db.refresh(unit)
        return unit

    def get_variations(self, business_id: int, variation_ids) -> dict[int, tuple[Variation, Product]]:
        ids = {int(variation_id) for variation_id in variation_ids}
        if not ids:
            return {}
        rows = self.db.execute(
            select(Variation, Product)
            .join(Product, Product.id == Variation.product_id)
            .where(Product.business_id == business_id, Variation.id.in_(ids))
        ).all()
        return {variation.id: (variation, product) for variation, product in rows}

    def get_contact(self, business_id: int, contact_id: int) -> Contact | None:
        return (
            self.db.execute(select(Contact).where(Contact.business_id == business_id, Contact.id == contact_id))
            .scalars()
            .first()
        )

    def existing_location_ids(self, business_id: int, location_ids) -> set[int]:
        ids = {int(location_id) for location_id in location_ids if location_id is not None}
        if not ids:
            return set()
        rows = self.db.execute(
            select(Location.id).where(Location.business_id == business_id, Location.id.in_(ids))
        ).scalars()
        return set(rows)
