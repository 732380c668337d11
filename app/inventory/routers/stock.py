from decimal import Decimal

from fastapi import APIRouter, Depends, Query, Request

from app.inventory.core.context import require_business_context
from app.inventory.core.error_catalog import ValidationError
from app.inventory.db.session import get_db
from app.inventory.repos.catalog import CatalogRepository
from app.inventory.schemas.stock import StockAvailabilityResponse, StockBalanceResponse, StockBalancesResponse
from app.inventory.services.stock_ledger import StockLedger

router = APIRouter()


def _parse_variation_ids(raw: str) -> list[int]:
    try:
        ids = [int(item) for item in raw.split(",") if item.strip()]
    except ValueError as exc:
        raise ValidationError(
            details={"message": "variation_ids must be a comma separated list of integers", "variation_ids": raw}
        ) from exc
    if not ids:
        raise ValidationError(details={"message": "variation_ids is required"})
    return ids


def _require_location(db, business_id: int, location_id: int) -> None:
    if location_id not in CatalogRepository(db).existing_location_ids(business_id, [location_id]):
        raise ValidationError(details={"message": "location not found", "location_id": location_id})


@router.get("/inventory/stock/{variation_id}", response_model=StockBalanceResponse)
def get_stock_balance(
    variation_id: int,
    request: Request,
    location_id: int = Query(...),
    db=Depends(get_db),
):
    context = require_business_context(request)
    _require_location(db, context.business_id, location_id)
    qty = StockLedger(db).get_balance(variation_id, location_id)
    return StockBalanceResponse(variation_id=variation_id, location_id=location_id, qty_available=qty)


@router.get("/inventory/stock/{variation_id}/availability", response_model=StockAvailabilityResponse)
def check_stock_availability(
    variation_id: int,
    request: Request,
    location_id: int = Query(...),
    quantity: Decimal = Query(..., gt=0),
    db=Depends(get_db),
):
    context = require_business_context(request)
    _require_location(db, context.business_id, location_id)
    availability = StockLedger(db).check_availability(variation_id, location_id, quantity)
    return StockAvailabilityResponse(
        variation_id=variation_id,
        location_id=location_id,
        is_available=availability.is_available,
        current=availability.current,
        requested=availability.requested,
        remaining=availability.remaining,
        shortfall=availability.shortfall,
    )


@router.get("/inventory/stock", response_model=StockBalancesResponse)
def list_stock_balances(
    request: Request,
    location_id: int = Query(...),
    variation_ids: str = Query(...),
    db=Depends(get_db),
):
    context = require_business_context(request)
    _require_location(db, context.business_id, location_id)
    balances = StockLedger(db).get_balances(_parse_variation_ids(variation_ids), location_id)
    rows = [
        StockBalanceResponse(variation_id=variation_id, location_id=location_id, qty_available=qty)
        for variation_id, qty in balances.items()
    ]
    return StockBalancesResponse(location_id=location_id, rows=rows)
