"""
Deliveries API - Deliveries, returns and their priced rows
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from stockdesk.core import get_db
from stockdesk.core.errors import AppError
from stockdesk.core.timeutils import as_utc
from stockdesk.models import Delivery, DeliveryKind, User
from stockdesk.schemas.common import ListParams, page_response
from stockdesk.schemas.delivery import DeliveryCreate, DeliveryRowResponse, DeliveryFooterResponse
from stockdesk.services import DeliveryService
from stockdesk.services.delivery_service import (
    DELIVERY_SORT_FIELDS, build_delivery_rows, summarize_rows
)
from .auth import get_current_user
from .params import parse_uuid_list, parse_date_filters

router = APIRouter(prefix="/deliveries", tags=["deliveries"])


def _delivery_dict(delivery: Delivery, with_rows: bool = False) -> dict:
    rows = build_delivery_rows(delivery)
    footer = summarize_rows(rows)
    data = {
        "id": str(delivery.id),
        "delivery_number": delivery.delivery_number,
        "delivery_date": as_utc(delivery.delivery_date).isoformat(),
        "kind": delivery.kind,
        "notes": delivery.notes,
        "customer": {
            "id": str(delivery.customer.id),
            "code": delivery.customer.code,
            "name": delivery.customer.name,
        },
        "total_amount": footer.total_price,
        "currency": footer.currency,
    }
    if with_rows:
        data["rows"] = [DeliveryRowResponse(**row.as_dict()) for row in rows]
        data["footer"] = DeliveryFooterResponse(**footer.as_dict())
    return data


@router.get("")
async def list_deliveries(
    page_index: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None),
    sort_dir: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    customer_id: Optional[str] = Query(None),
    kind: Optional[DeliveryKind] = Query(None),
    date_range: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    params = ListParams.build(DELIVERY_SORT_FIELDS, "delivery_date", "desc", page_index, page_size, sort_by, sort_dir, q)
    start, end = parse_date_filters(date_range, start_date, end_date)
    deliveries, total = DeliveryService.get_deliveries(
        db, params,
        customer_ids=parse_uuid_list(customer_id, "customer_id"),
        start_date=start,
        end_date=end,
        kind=kind.value if kind else None
    )
    return page_response([_delivery_dict(d) for d in deliveries], total, params)


@router.get("/filter-options")
async def delivery_filter_options(db: Session = Depends(get_db)):
    return DeliveryService.get_filter_options(db)


@router.get("/last-number")
async def last_delivery_number(customer_id: Optional[UUID] = Query(None), db: Session = Depends(get_db)):
    return {"delivery_number": DeliveryService.get_last_delivery_number(db, customer_id)}


@router.get("/{delivery_id}")
async def get_delivery(delivery_id: UUID, db: Session = Depends(get_db)):
    """Delivery header with signed rows and footer"""
    delivery = DeliveryService.get_delivery_by_id(db, delivery_id)
    if not delivery:
        raise AppError("DELIVERY_NOT_FOUND")
    return _delivery_dict(delivery, with_rows=True)


@router.get("/{delivery_id}/rows")
async def get_delivery_rows(delivery_id: UUID, db: Session = Depends(get_db)):
    delivery = DeliveryService.require_delivery(db, delivery_id)
    rows = build_delivery_rows(delivery)
    return {
        "rows": [DeliveryRowResponse(**row.as_dict()) for row in rows],
        "footer": DeliveryFooterResponse(**summarize_rows(rows).as_dict()),
    }


@router.post("", status_code=201)
async def create_delivery(
    data: DeliveryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    delivery = DeliveryService.create_delivery(db, data, created_by=current_user.id)
    return _delivery_dict(delivery, with_rows=True)


@router.delete("/{delivery_id}")
async def remove_delivery(
    delivery_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    DeliveryService.remove_delivery(db, delivery_id, created_by=current_user.id)
    return {"ok": True}
