from decimal import Decimal

import pytest

from app.inventory.core.error_catalog import IncompatibleUnits, ValidationError
from app.inventory.services.catalog import UnitCatalogService
from app.inventory.services.units import (
    UnitRef,
    are_compatible,
    convert_quantity,
    from_base,
    multiplier,
    to_base,
    to_decimal,
    validate_unit_definition,
)
from tests.inventory_helpers import create_business


PIECE = UnitRef(id=1, actual_name="Piece")
BOX = UnitRef(id=2, base_unit_id=1, base_unit_multiplier=Decimal("12"), actual_name="Box")
PACK = UnitRef(id=3, base_unit_id=1, base_unit_multiplier=Decimal("6"), actual_name="Pack")
KG = UnitRef(id=4, actual_name="Kg")
GRAM = UnitRef(id=5, base_unit_id=4, base_unit_multiplier=Decimal("0.001"), actual_name="Gram")


def test_box_to_pieces():
    assert to_base(2, BOX, PIECE) == Decimal("24")


def test_base_unit_passes_through():
    assert to_base(Decimal("3.5"), PIECE, PIECE) == Decimal("3.5")
    assert to_base(7, KG, PIECE) == Decimal("7")


def test_to_base_rejects_foreign_sub_unit():
    with pytest.raises(IncompatibleUnits):
        to_base(1, GRAM, PIECE)


def test_multiplier_directions():
    assert multiplier(BOX, BOX) == Decimal("1")
    assert multiplier(BOX, PIECE) == Decimal("12")
    assert multiplier(PIECE, BOX) == Decimal("1") / Decimal("12")


def test_sibling_sub_units_are_not_chained():
    with pytest.raises(IncompatibleUnits):
        multiplier(BOX, PACK)
    assert are_compatible(BOX, PACK) is False
    assert are_compatible(BOX, PIECE) is True


def test_unrelated_base_units_incompatible():
    with pytest.raises(IncompatibleUnits):
        multiplier(PIECE, KG)


def test_round_trip_through_base():
    for quantity in (Decimal("1"), Decimal("2.5"), Decimal("0.3333"), Decimal("1000")):
        for unit, base in ((BOX, PIECE), (PACK, PIECE), (GRAM, KG)):
            assert from_base(to_base(quantity, unit, base), base, unit) == quantity
            assert to_base(quantity, unit, base) == quantity * unit.base_unit_multiplier


def test_convert_quantity_between_sub_and_base():
    assert convert_quantity(36, PIECE, BOX) == Decimal("3")
    assert convert_quantity(Decimal("1500"), GRAM, KG) == Decimal("1.5")


def test_sub_unit_without_multiplier_is_incompatible():
    broken = UnitRef(id=9, base_unit_id=1, base_unit_multiplier=None, actual_name="Crate")
    with pytest.raises(IncompatibleUnits):
        to_base(1, broken, PIECE)
    zero = UnitRef(id=10, base_unit_id=1, base_unit_multiplier=Decimal("0"), actual_name="Empty")
    with pytest.raises(IncompatibleUnits):
        multiplier(PIECE, zero)


def test_float_input_keeps_decimal_repr():
    assert to_decimal(0.1) == Decimal("0.1")
    with pytest.raises(ValidationError):
        to_decimal("abc")


@pytest.mark.parametrize("value", [Decimal("NaN"), Decimal("sNaN"), "Infinity", "-inf", float("nan")])
def test_non_finite_numbers_rejected(value):
    with pytest.raises(ValidationError):
        to_decimal(value)


def test_validate_unit_definition_rejects_sub_of_sub():
    carton = UnitRef(id=11, base_unit_id=BOX.id, base_unit_multiplier=Decimal("4"), actual_name="Carton")
    with pytest.raises(ValidationError):
        validate_unit_definition(carton, BOX)
    validate_unit_definition(BOX, PIECE)
    validate_unit_definition(PIECE, None)


def test_create_unit_rejects_chained_sub_unit(db_session):
    business, _location, _other = create_business(db_session, suffix="units")
    catalog = UnitCatalogService(db_session)
    piece = catalog.create_unit(business.id, actual_name="Piece")
    box = catalog.create_unit(business.id, actual_name="Box", base_unit_id=piece.id, base_unit_multiplier="12")
    assert box.base_unit_multiplier == Decimal("12")

    with pytest.raises(ValidationError):
        catalog.create_unit(business.id, actual_name="Pallet", base_unit_id=box.id, base_unit_multiplier="40")
    with pytest.raises(IncompatibleUnits):
        catalog.create_unit(business.id, actual_name="Crate", base_unit_id=piece.id)
    assert [unit.actual_name for unit in catalog.list_units(business.id)] == ["Piece", "Box"]
