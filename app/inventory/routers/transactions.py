from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query, Request

from app.inventory.core.context import require_business_context
from app.inventory.db.session import get_db
from app.inventory.schemas.transactions import (
    StockUpdateResponse,
    TransactionCreateRequest,
    TransactionHeaderResponse,
    TransactionLineResponse,
    TransactionListMeta,
    TransactionListResponse,
    TransactionResponse,
)
from app.inventory.services.transactions import (
    LineInput,
    TransactionInput,
    TransactionResult,
    TransactionService,
)

router = APIRouter()

KindPath = Literal["sales", "purchases", "adjustments", "transfers"]

_KINDS = {
    "sales": "sale",
    "purchases": "purchase",
    "adjustments": "adjustment",
    "transfers": "transfer",
}


def _to_input(payload: TransactionCreateRequest) -> TransactionInput:
    return TransactionInput(
        location_id=payload.location_id,
        transfer_location_id=payload.transfer_location_id,
        status=payload.status,
        contact_id=payload.contact_id,
        customer_type=payload.customer_type,
        discount_type=payload.discount_type,
        discount_amount=payload.discount_amount,
        additional_notes=payload.additional_notes,
        transaction_date=payload.transaction_date,
        lines=[
            LineInput(
                variation_id=line.variation_id,
                quantity=line.quantity,
                unit_id=line.unit_id,
                unit_price=line.unit_price,
                purchase_price=line.purchase_price,
                adjustment_type=line.adjustment_type,
                reason=line.reason,
            )
            for line in payload.lines
        ],
    )


def _transaction_response(result: TransactionResult) -> TransactionResponse:
    return TransactionResponse(
        header=TransactionHeaderResponse.model_validate(result.header),
        lines=[TransactionLineResponse.model_validate(line) for line in result.lines],
        stock_updates=[StockUpdateResponse.model_validate(update) for update in result.stock_updates],
    )


@router.post("/inventory/{kind}", response_model=TransactionResponse, status_code=201)
def create_transaction(
    kind: KindPath,
    payload: TransactionCreateRequest,
    request: Request,
    db=Depends(get_db),
):
    context = require_business_context(request)
    result = TransactionService(db).create(
        _KINDS[kind],
        context.business_id,
        _to_input(payload),
        user_id=context.user_id,
    )
    return _transaction_response(result)


@router.get("/inventory/{kind}", response_model=TransactionListResponse)
def list_transactions(
    kind: KindPath,
    request: Request,
    page: int = Query(1, ge=1),
    per_page: int | None = Query(None, ge=1),
    location_id: int | None = None,
    status: Literal["draft", "final"] | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    db=Depends(get_db),
):
    context = require_business_context(request)
    result = TransactionService(db).list_transactions(
        _KINDS[kind],
        context.business_id,
        page=page,
        per_page=per_page,
        location_id=location_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
    )
    return TransactionListResponse(
        meta=TransactionListMeta(
            page=result.page,
            per_page=result.per_page,
            total=result.total,
            total_pages=result.total_pages,
        ),
        rows=[TransactionHeaderResponse.model_validate(row) for row in result.rows],
    )


@router.get("/inventory/{kind}/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    kind: KindPath,
    transaction_id: int,
    request: Request,
    db=Depends(get_db),
):
    context = require_business_context(request)
    result = TransactionService(db).get_transaction(_KINDS[kind], context.business_id, transaction_id)
    return _transaction_response(result)


@router.post("/inventory/{kind}/{transaction_id}/complete", response_model=TransactionResponse)
def complete_transaction(
    kind: KindPath,
    transaction_id: int,
    request: Request,
    db=Depends(get_db),
):
    context = require_business_context(request)
    result = TransactionService(db).complete(_KINDS[kind], context.business_id, transaction_id)
    return _transaction_response(result)
