"""
Reports API
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from stockdesk.core import get_db
from stockdesk.core.timeutils import as_utc
from stockdesk.schemas.common import ListParams, page_response
from stockdesk.services import DemandService, MetricsService
from stockdesk.services.exchange_rate_service import get_exchange_rate_service
from stockdesk.services.demand_service import DEMAND_SORT_FIELDS
from .params import parse_uuid_list, parse_date_filters

router = APIRouter(prefix="/reports", tags=["reports"])

@router.get("/product-demand")
async def product_demand(
    page_index: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None),
    sort_dir: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    customer_id: Optional[str] = Query(None),
    date_range: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """Per customer and product: order count, pieces and average pieces per order"""
    params = ListParams.build(
        DEMAND_SORT_FIELDS, "avg_pieces_per_order", "desc",
        page_index, page_size, sort_by, sort_dir, q
    )
    start, end = parse_date_filters(date_range, start_date, end_date)
    rows, total = DemandService.get_product_demand(
        db, params,
        customer_ids=parse_uuid_list(customer_id, "customer_id"),
        start_date=start,
        end_date=end
    )
    for row in rows:
        last = as_utc(row["last_order_date"])
        row["last_order_date"] = last.isoformat() if last else None
    return page_response(rows, total, params)

# ===================== DASHBOARD =====================

@router.get("/key-metrics")
def key_metrics(
    customer_id: Optional[UUID] = Query(None),
    year: Optional[int] = Query(None),
    currency: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """Order counts and revenue converted to one currency"""
    rates = get_exchange_rate_service().get_rates()
    return MetricsService.get_key_metrics(db, rates, customer_id=customer_id, year=year, currency=currency)

@router.get("/monthly-overview")
def monthly_overview(
    customer_id: Optional[UUID] = Query(None),
    year: Optional[int] = Query(None),
    month_count: int = Query(12),
    currency: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    rates = get_exchange_rate_service().get_rates()
    return MetricsService.get_monthly_overview(
        db, rates,
        customer_id=customer_id,
        year=year,
        month_count=month_count,
        currency=currency
    )
