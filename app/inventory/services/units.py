"""Unit-of-measure conversion.

Stock is always stored in an item's base unit. A sub-unit is a fixed multiple
of exactly one base unit (``1 Box = 12 Pieces`` is a Box with
``base_unit_id = Pieces.id`` and ``base_unit_multiplier = 12``). Base units form
a forest of depth one: a sub-unit of a sub-unit is not a valid definition, and
conversions never chain through a common ancestor.

All functions accept any object exposing ``id``, ``base_unit_id`` and
``base_unit_multiplier`` (ORM ``Unit`` rows or ``UnitRef``).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Protocol

from app.inventory.core.error_catalog import IncompatibleUnits, ValidationError


class UnitLike(Protocol):
    id: int
    base_unit_id: int | None
    base_unit_multiplier: Decimal | None


@dataclass(frozen=True)
class UnitRef:
    id: int
    base_unit_id: int | None = None
    base_unit_multiplier: Decimal | None = None
    actual_name: str = ""


def to_decimal(value: object, *, field: str = "quantity") -> Decimal:
    if isinstance(value, float):
        # str() keeps the shortest repr, so 0.1 becomes Decimal("0.1")
        value = str(value)
    try:
        number = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(details={"message": f"{field} must be numeric", field: str(value)}) from exc
    if not number.is_finite():
        raise ValidationError(details={"message": f"{field} must be a finite number", field: str(value)})
    return number


def unit_name(unit: UnitLike) -> str:
    return getattr(unit, "actual_name", None) or f"unit {unit.id}"


def _sub_unit_multiplier(unit: UnitLike) -> Decimal:
    raw = unit.base_unit_multiplier
    multiplier = to_decimal(raw, field="base_unit_multiplier") if raw is not None else None
    if multiplier is None or multiplier <= 0:
        raise IncompatibleUnits(
            details={
                "message": f"{unit_name(unit)} has no positive base unit multiplier",
                "unit_id": unit.id,
            }
        )
    return multiplier


def is_base_unit(unit: UnitLike) -> bool:
    return unit.base_unit_id is None


def multiplier(source: UnitLike, target: UnitLike) -> Decimal:
    """Factor such that ``target_qty = source_qty * multiplier``."""
    if source.id == target.id:
        return Decimal(1)
    if source.base_unit_id is not None and source.base_unit_id == target.id:
        return _sub_unit_multiplier(source)
    if target.base_unit_id is not None and target.base_unit_id == source.id:
        return Decimal(1) / _sub_unit_multiplier(target)
    raise IncompatibleUnits(
        details={
            "message": f"Units {unit_name(source)} and {unit_name(target)} are not directly compatible",
            "source_unit_id": source.id,
            "target_unit_id": target.id,
        }
    )


def are_compatible(first: UnitLike, second: UnitLike) -> bool:
    try:
        multiplier(first, second)
    except IncompatibleUnits:
        return False
    return True


def convert_quantity(quantity: object, source: UnitLike, target: UnitLike) -> Decimal:
    qty = to_decimal(quantity)
    if target.base_unit_id is not None and target.base_unit_id == source.id:
        # exact whenever the multiplier divides the quantity
        return qty / _sub_unit_multiplier(target)
    return qty * multiplier(source, target)


def to_base(quantity: object, unit: UnitLike, base_unit: UnitLike) -> Decimal:
    qty = to_decimal(quantity)
    if unit.id == base_unit.id or unit.base_unit_id is None:
        return qty
    if unit.base_unit_id != base_unit.id:
        raise IncompatibleUnits(
            details={
                "message": f"Cannot convert {unit_name(unit)} to base unit {unit_name(base_unit)}",
                "unit_id": unit.id,
                "base_unit_id": base_unit.id,
            }
        )
    return qty * _sub_unit_multiplier(unit)


def from_base(quantity: object, base_unit: UnitLike, unit: UnitLike) -> Decimal:
    """Inverse of :func:`to_base`: express a base-unit quantity in ``unit``."""
    qty = to_decimal(quantity)
    if unit.id == base_unit.id or unit.base_unit_id is None:
        return qty
    if unit.base_unit_id != base_unit.id:
        raise IncompatibleUnits(
            details={
                "message": f"Cannot express base unit {unit_name(base_unit)} in {unit_name(unit)}",
                "unit_id": unit.id,
                "base_unit_id": base_unit.id,
            }
        )
    return qty / _sub_unit_multiplier(unit)


def validate_unit_definition(unit: UnitLike, base_unit: UnitLike | None) -> None:
    """Reject unit definitions that would break the depth-one forest."""
    if unit.base_unit_id is None:
        return
    if base_unit is None or base_unit.id != unit.base_unit_id:
        raise ValidationError(details={"message": "base unit not found", "base_unit_id": unit.base_unit_id})
    if base_unit.id == unit.id:
        raise ValidationError(details={"message": "a unit cannot be its own base unit", "unit_id": unit.id})
    if base_unit.base_unit_id is not None:
        raise ValidationError(
            details={
                "message": "sub-units of sub-units are not supported",
                "unit_id": unit.id,
                "base_unit_id": base_unit.id,
            }
        )
    _sub_unit_multiplier(unit)
