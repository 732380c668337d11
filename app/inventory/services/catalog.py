from __future__ import annotations

from decimal import Decimal

from app.inventory.core.error_catalog import ValidationError
from app.inventory.db.models import Unit
from app.inventory.repos.catalog import CatalogRepository
from app.inventory.services.units import UnitRef, to_decimal, validate_unit_definition


class UnitCatalogService:
    def __init__(self, db):
        self.db = db
        self.repo = CatalogRepository(db)

    def create_unit(
        self,
        business_id: int,
        *,
        actual_name: str,
        short_name: str | None = None,
        allow_decimal: bool = False,
        base_unit_id: int | None = None,
        base_unit_multiplier=None,
    ) -> Unit:
        """Create a base unit, or a sub-unit of an existing base unit."""
        if not actual_name:
            raise ValidationError(details={"message": "actual_name is required"})
        multiplier: Decimal | None = None
        if base_unit_multiplier is not None:
            multiplier = to_decimal(base_unit_multiplier, field="base_unit_multiplier")
        base_unit = None
        if base_unit_id is not None:
            base_unit = self.repo.get_unit(business_id, base_unit_id)
        # id 0 stands in for the not-yet-inserted row
        validate_unit_definition(
            UnitRef(id=0, base_unit_id=base_unit_id, base_unit_multiplier=multiplier, actual_name=actual_name),
            base_unit,
        )
        unit = Unit(
            business_id=business_id,
            actual_name=actual_name,
            short_name=short_name or actual_name,
            allow_decimal=allow_decimal,
            base_unit_id=base_unit_id,
            base_unit_multiplier=multiplier if base_unit_id is not None else None,
        )
        return self.repo.add_unit(unit)

    def list_units(self, business_id: int) -> list[Unit]:
        return self.repo.list_units(business_id)
