"""
Stock Schemas

Quantities arrive as positive magnitudes; the service decides the sign.
"""
from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from stockdesk.models.enums import MovementType, ReferenceType

class StockMovementCreate(BaseModel):
    product_id: UUID
    movement_type: MovementType  # IN, OUT, ADJUSTMENT, RESERVE, RELEASE
    quantity: int = Field(..., gt=0)
    direction: Optional[str] = None  # increase, decrease (ADJUSTMENT only)
    reference_type: Optional[ReferenceType] = None
    reference_id: Optional[UUID] = None
    notes: Optional[str] = None

class StockTransferCreate(BaseModel):
    from_product_id: UUID
    to_product_id: Optional[UUID] = None
    quantity: int = Field(..., gt=0)
    notes: Optional[str] = None

class StockMovementUpdate(BaseModel):
    quantity: int = Field(..., gt=0)
    notes: Optional[str] = None

class StockAdjust(BaseModel):
    delta: int  # Signed, non-zero
    notes: Optional[str] = None

class StockMovementResponse(BaseModel):
    id: UUID
    product_id: UUID
    movement_type: str
    quantity: int
    reference_type: Optional[str] = None
    reference_id: Optional[UUID] = None
    notes: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class StockIntegrityRow(BaseModel):
    product_id: UUID
    code: str
    name: str
    stock_quantity: int
    ledger_quantity: int
    difference: int
