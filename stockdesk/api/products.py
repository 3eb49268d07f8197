"""
Products API
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from stockdesk.core import get_db
from stockdesk.models import User
from stockdesk.schemas.common import ListParams, page_response
from stockdesk.schemas.product import ProductCreate, ProductUpdate, ProductResponse
from stockdesk.schemas.stock import StockAdjust, StockMovementResponse
from stockdesk.services import ProductService, StockService
from stockdesk.services.product_service import PRODUCT_SORT_FIELDS
from stockdesk.lib.filters import split_multi
from .auth import get_current_user
from .params import parse_uuid_list

router = APIRouter(prefix="/products", tags=["products"])

@router.get("")
async def list_products(
    page_index: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None),
    sort_dir: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    material: Optional[str] = Query(None),
    customer: Optional[str] = Query(None),
    low_stock: bool = Query(False),
    db: Session = Depends(get_db)
):
    params = ListParams.build(PRODUCT_SORT_FIELDS, "code", "asc", page_index, page_size, sort_by, sort_dir, q)
    customer_ids = parse_uuid_list(customer, "customer")
    products, total = ProductService.get_products(
        db, params,
        materials=split_multi(material),
        customer_id=customer_ids[0] if customer_ids else None,
        low_stock_only=low_stock
    )
    return page_response([ProductResponse.model_validate(p) for p in products], total, params)

@router.get("/filter-options")
async def product_filter_options(db: Session = Depends(get_db)):
    return ProductService.get_filter_options(db)

@router.get("/{product_id}")
async def get_product(product_id: UUID, db: Session = Depends(get_db)):
    product = ProductService.require_product(db, product_id)
    movements = StockService.get_product_movements(db, product_id, limit=100)
    return {
        **ProductResponse.model_validate(product).model_dump(mode="json"),
        "movements": [StockMovementResponse.model_validate(m) for m in movements],
    }

@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    data: ProductCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return ProductService.create_product(db, data, created_by=current_user.id)

@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: UUID,
    data: ProductUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return ProductService.update_product(db, product_id, data, created_by=current_user.id)

@router.delete("/{product_id}")
async def remove_product(product_id: UUID, db: Session = Depends(get_db)):
    ProductService.remove_product(db, product_id)
    return {"ok": True}

@router.post("/{product_id}/adjust-stock", response_model=StockMovementResponse)
async def adjust_product_stock(
    product_id: UUID,
    data: StockAdjust,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return StockService.adjust_product_stock(db, product_id, data.delta, data.notes, created_by=current_user.id)
