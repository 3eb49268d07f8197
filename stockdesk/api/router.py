"""
API Router - JSON Endpoints
"""
from fastapi import APIRouter, Depends
from datetime import datetime

from stockdesk.core.config import settings
from stockdesk.services.exchange_rate_service import get_exchange_rate_service

from stockdesk.api.auth import router as auth_router, get_current_user
from stockdesk.api.customers import router as customers_router
from stockdesk.api.products import router as products_router
from stockdesk.api.orders import router as orders_router
from stockdesk.api.deliveries import router as deliveries_router
from stockdesk.api.stock import router as stock_router
from stockdesk.api.reports import router as reports_router

api_router = APIRouter(tags=["API"])

# Public
api_router.include_router(auth_router)

# Everything else needs a live session
protected = [Depends(get_current_user)]
api_router.include_router(customers_router, dependencies=protected)
api_router.include_router(products_router, dependencies=protected)
api_router.include_router(orders_router, dependencies=protected)
api_router.include_router(deliveries_router, dependencies=protected)
api_router.include_router(stock_router, dependencies=protected)
api_router.include_router(reports_router, dependencies=protected)

# ===================== HEALTH & STATUS =====================

@api_router.get("/status")
async def api_status():
    return {"status": "ok", "app": settings.APP_NAME, "timestamp": datetime.now().isoformat()}

# ===================== EXCHANGE RATES =====================

@api_router.get("/exchange-rates", dependencies=protected)
def exchange_rates():
    """Rates keyed "FROM/TO"; served from the static table when the live source fails"""
    rates = get_exchange_rate_service().get_rates()
    return {f"{source}/{target}": rate for (source, target), rate in sorted(rates.items())}
