from pydantic import BaseModel

from app.inventory.schemas.common import QtyValue


class StockBalanceResponse(BaseModel):
    variation_id: int
    location_id: int
    qty_available: QtyValue


class StockBalancesResponse(BaseModel):
    location_id: int
    rows: list[StockBalanceResponse]


class StockAvailabilityResponse(BaseModel):
    variation_id: int
    location_id: int
    is_available: bool
    current: QtyValue
    requested: QtyValue
    remaining: QtyValue
    shortfall: QtyValue
