from fastapi import APIRouter

from app.inventory.core.config import settings
from app.inventory.routers.health import router as health_router
from app.inventory.routers.metrics import router as metrics_router
from app.inventory.routers.stock import router as stock_router
from app.inventory.routers.transactions import router as transactions_router
from app.inventory.routers.units import router as units_router

api_router = APIRouter()
api_router.include_router(health_router)
# stock and unit routes first so their paths are not read as a transaction kind
api_router.include_router(stock_router, tags=["stock"])
api_router.include_router(units_router, tags=["units"])
api_router.include_router(transactions_router, tags=["transactions"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
