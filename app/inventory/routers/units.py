from fastapi import APIRouter, Depends, Request

from app.inventory.core.context import require_business_context
from app.inventory.db.session import get_db
from app.inventory.schemas.units import UnitCreateRequest, UnitListResponse, UnitResponse
from app.inventory.services.catalog import UnitCatalogService

router = APIRouter()


@router.get("/inventory/units", response_model=UnitListResponse)
def list_units(request: Request, db=Depends(get_db)):
    context = require_business_context(request)
    units = UnitCatalogService(db).list_units(context.business_id)
    return UnitListResponse(rows=[UnitResponse.model_validate(unit) for unit in units])


@router.post("/inventory/units", response_model=UnitResponse, status_code=201)
def create_unit(payload: UnitCreateRequest, request: Request, db=Depends(get_db)):
    context = require_business_context(request)
    unit = UnitCatalogService(db).create_unit(
        context.business_id,
        actual_name=payload.actual_name,
        short_name=payload.short_name,
        allow_decimal=payload.allow_decimal,
        base_unit_id=payload.base_unit_id,
        base_unit_multiplier=payload.base_unit_multiplier,
    )
    return UnitResponse.model_validate(unit)
