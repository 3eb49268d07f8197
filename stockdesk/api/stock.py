"""
Stock API - Ledger movements, transfers and integrity checks
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from stockdesk.core import get_db
from stockdesk.models import StockMovement, User
from stockdesk.schemas.common import ListParams, page_response
from stockdesk.schemas.product import ProductResponse
from stockdesk.schemas.stock import (
    StockMovementCreate, StockTransferCreate, StockMovementUpdate,
    StockMovementResponse, StockIntegrityRow
)
from stockdesk.services import StockService
from stockdesk.services.stock_service import MOVEMENT_SORT_FIELDS
from stockdesk.lib.filters import split_multi
from .auth import get_current_user

router = APIRouter(prefix="/stock", tags=["stock"])


def _movement_dict(movement: StockMovement) -> dict:
    data = StockMovementResponse.model_validate(movement).model_dump(mode="json")
    data["product"] = {
        "id": str(movement.product.id),
        "code": movement.product.code,
        "name": movement.product.name,
    }
    data["created_by_username"] = movement.creator.username if movement.creator else None
    return data


# ============== Movements ==============

@router.get("/movements")
async def list_stock_movements(
    page_index: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None),
    sort_dir: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    movement_type: Optional[str] = Query(None),
    product_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db)
):
    params = ListParams.build(MOVEMENT_SORT_FIELDS, "created_at", "desc", page_index, page_size, sort_by, sort_dir, q)
    movements, total, stats = StockService.list_stock_movements(
        db, params,
        movement_types=split_multi(movement_type),
        product_id=product_id
    )
    response = page_response([_movement_dict(m) for m in movements], total, params)
    response.update(stats)
    return response


@router.post("/movements", response_model=StockMovementResponse, status_code=201)
async def create_stock_movement(
    data: StockMovementCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return StockService.create_stock_movement(
        db,
        data.product_id,
        data.quantity,
        data.movement_type,
        reference_type=data.reference_type,
        reference_id=data.reference_id,
        notes=data.notes,
        direction=data.direction,
        created_by=current_user.id
    )


@router.put("/movements/{movement_id}", response_model=StockMovementResponse)
async def update_stock_movement(movement_id: UUID, data: StockMovementUpdate, db: Session = Depends(get_db)):
    return StockService.update_stock_movement(db, movement_id, data.quantity, data.notes)


@router.post("/transfers", status_code=201)
async def create_stock_transfer(
    data: StockTransferCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return StockService.create_stock_transfer(
        db,
        data.from_product_id,
        data.to_product_id,
        data.quantity,
        notes=data.notes,
        created_by=current_user.id
    )


# ============== Integrity ==============

@router.get("/integrity", response_model=List[StockIntegrityRow])
async def stock_integrity(db: Session = Depends(get_db)):
    """Products whose cached stock disagrees with the ledger"""
    return StockService.stock_integrity_report(db)


@router.post("/reconcile")
async def reconcile_all_stock(db: Session = Depends(get_db)):
    return {"reconciled": StockService.reconcile_all_stock(db)}


@router.post("/reconcile/{product_id}", response_model=ProductResponse)
async def reconcile_product_stock(product_id: UUID, db: Session = Depends(get_db)):
    return StockService.reconcile_product_stock(db, product_id)
