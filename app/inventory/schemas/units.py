from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.inventory.schemas.common import QtyValue


class UnitCreateRequest(BaseModel):
    actual_name: str = Field(min_length=1, max_length=100)
    short_name: str | None = Field(default=None, max_length=50)
    allow_decimal: bool = False
    base_unit_id: int | None = None
    base_unit_multiplier: Decimal | None = Field(default=None, gt=0)

    model_config = {
        "json_schema_extra": {
            "example": {"actual_name": "Box", "short_name": "bx", "base_unit_id": 1, "base_unit_multiplier": "12"}
        }
    }


class UnitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    business_id: int
    actual_name: str
    short_name: str
    allow_decimal: bool
    base_unit_id: int | None = None
    base_unit_multiplier: QtyValue | None = None
    created_at: datetime


class UnitListResponse(BaseModel):
    rows: list[UnitResponse]
