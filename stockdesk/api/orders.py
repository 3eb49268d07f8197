"""
Orders API
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from stockdesk.core import get_db
from stockdesk.core.timeutils import as_utc
from stockdesk.schemas.common import ListParams, page_response
from stockdesk.schemas.order import OrderCreate, OrderUpdate, OrderResponse
from stockdesk.services import OrderService, MetricsService
from stockdesk.services.order_service import ORDER_SORT_FIELDS
from stockdesk.services.delivery_service import delivery_total_amount
from stockdesk.lib.filters import split_multi
from .params import parse_uuid_list, parse_date_filters

router = APIRouter(prefix="/orders", tags=["orders"])

@router.get("")
async def list_orders(
    page_index: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None),
    sort_dir: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    customer_id: Optional[str] = Query(None),
    date_range: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    params = ListParams.build(ORDER_SORT_FIELDS, "order_date", "desc", page_index, page_size, sort_by, sort_dir, q)
    start, end = parse_date_filters(date_range, start_date, end_date)
    orders, total = OrderService.get_orders(
        db, params,
        statuses=split_multi(status),
        customer_ids=parse_uuid_list(customer_id, "customer_id"),
        start_date=start,
        end_date=end
    )
    return page_response(
        [
            {
                **OrderResponse.model_validate(o).model_dump(mode="json"),
                "customer": {"id": str(o.customer.id), "code": o.customer.code, "name": o.customer.name},
            }
            for o in orders
        ],
        total, params
    )

@router.get("/filter-options")
async def order_filter_options(db: Session = Depends(get_db)):
    return OrderService.get_filter_options(db)

@router.get("/last-number")
async def last_order_number(customer_id: Optional[UUID] = Query(None), db: Session = Depends(get_db)):
    return {"order_number": OrderService.get_last_order_number(db, customer_id)}

@router.get("/year-range")
async def order_year_range(db: Session = Depends(get_db)):
    return MetricsService.get_year_range(db)

@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: UUID, db: Session = Depends(get_db)):
    return OrderService.require_order(db, order_id)

@router.get("/{order_id}/deliveries")
async def order_deliveries(order_id: UUID, db: Session = Depends(get_db)):
    deliveries = OrderService.get_order_deliveries(db, order_id)
    return [
        {
            "id": str(d.id),
            "delivery_number": d.delivery_number,
            "delivery_date": as_utc(d.delivery_date).isoformat(),
            "kind": d.kind,
            "total_amount": delivery_total_amount(d),
        }
        for d in deliveries
    ]

@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(data: OrderCreate, db: Session = Depends(get_db)):
    return OrderService.create_order(db, data)

@router.put("/{order_id}", response_model=OrderResponse)
async def update_order(order_id: UUID, data: OrderUpdate, db: Session = Depends(get_db)):
    return OrderService.update_order(db, order_id, data)

@router.delete("/{order_id}")
async def remove_order(order_id: UUID, db: Session = Depends(get_db)):
    OrderService.remove_order(db, order_id)
    return {"ok": True}
