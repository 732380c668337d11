from decimal import Decimal
from typing import Annotated

from pydantic import PlainSerializer, WithJsonSchema


def _plain_qty(value: Decimal) -> str:
    # 6.0000 -> "6", 2.5000 -> "2.5"; normalize() alone would give "1E+2" for 100
    return format(value.normalize(), "f")


def _plain_money(value: Decimal) -> str:
    return format(value.quantize(Decimal("0.01")), "f")


QtyValue = Annotated[
    Decimal,
    PlainSerializer(_plain_qty, return_type=str, when_used="json"),
    WithJsonSchema({"type": "string", "pattern": r"^-?\d+(?:\.\d+)?$"}, mode="serialization"),
]

MoneyValue = Annotated[
    Decimal,
    PlainSerializer(_plain_money, return_type=str, when_used="json"),
    WithJsonSchema({"type": "string", "pattern": r"^-?\d+(?:\.\d{2})?$"}, mode="serialization"),
]
