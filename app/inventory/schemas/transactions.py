from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.inventory.schemas.common import MoneyValue, QtyValue


_SALE_EXAMPLE = {
    "location_id": 1,
    "status": "final",
    "customer_type": "retail",
    "discount_type": "percentage",
    "discount_amount": "10",
    "lines": [
        {"variation_id": 5, "quantity": "2", "unit_id": 2},
        {"variation_id": 6, "quantity": "3", "unit_id": 1},
    ],
}


class TransactionLineCreate(BaseModel):
    variation_id: int
    quantity: Decimal = Field(gt=0)
    unit_id: int
    unit_price: Decimal | None = Field(default=None, ge=0)
    purchase_price: Decimal | None = Field(default=None, ge=0)
    adjustment_type: Literal["increase", "decrease"] | None = None
    reason: str | None = None


class TransactionCreateRequest(BaseModel):
    location_id: int
    transfer_location_id: int | None = None
    status: Literal["draft", "final"] = "draft"
    contact_id: int | None = None
    customer_type: Literal["retail", "wholesale"] | None = None
    discount_type: Literal["fixed", "percentage"] | None = None
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0)
    additional_notes: str | None = None
    transaction_date: datetime | None = None
    lines: list[TransactionLineCreate] = Field(min_length=1)

    model_config = {"json_schema_extra": {"example": _SALE_EXAMPLE}}


class TransactionLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    transaction_id: int
    product_id: int
    variation_id: int
    quantity: QtyValue
    unit_id: int
    unit_price: MoneyValue | None = None
    purchase_price: MoneyValue | None = None
    line_total: MoneyValue | None = None
    adjustment_type: str | None = None
    reason: str | None = None


class TransactionHeaderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    business_id: int
    type: str
    status: str
    ref_no: str
    location_id: int
    transfer_location_id: int | None
    payment_status: str | None
    contact_id: int | None
    customer_type: str | None
    transaction_date: datetime
    total_before_tax: MoneyValue
    tax_amount: MoneyValue
    discount_type: str | None
    discount_amount: MoneyValue
    final_total: MoneyValue
    additional_notes: str | None
    created_by: int | None
    created_at: datetime
    updated_at: datetime | None


class StockUpdateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    line_id: int
    variation_id: int
    quantity: QtyValue
    unit: str
    base_quantity: QtyValue
    balance: QtyValue | None = None
    source_balance: QtyValue | None = None
    destination_balance: QtyValue | None = None


class TransactionResponse(BaseModel):
    header: TransactionHeaderResponse
    lines: list[TransactionLineResponse]
    stock_updates: list[StockUpdateResponse]


class TransactionListMeta(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int


class TransactionListResponse(BaseModel):
    meta: TransactionListMeta
    rows: list[TransactionHeaderResponse]
