"""
Product Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from stockdesk.models.enums import Currency, Unit

class ProductCreate(BaseModel):
    code: str
    name: str
    other_codes: Optional[str] = None
    unit: Unit = Unit.ADET
    price: int = Field(0, ge=0)  # Minor units
    currency: Currency = Currency.TRY
    stock_quantity: int = Field(0, ge=0)  # Initial stock, booked as an IN movement
    min_stock_level: int = Field(0, ge=0)
    material: Optional[str] = None
    post_process: Optional[str] = None
    coating: Optional[str] = None
    specs: Optional[str] = None
    specs_net: Optional[str] = None
    notes: Optional[str] = None
    customer_id: Optional[UUID] = None

class ProductUpdate(BaseModel):
    code: Optional[str] = None
    name: Optional[str] = None
    other_codes: Optional[str] = None
    unit: Optional[Unit] = None
    price: Optional[int] = Field(None, ge=0)
    currency: Optional[Currency] = None
    min_stock_level: Optional[int] = Field(None, ge=0)
    material: Optional[str] = None
    post_process: Optional[str] = None
    coating: Optional[str] = None
    specs: Optional[str] = None
    specs_net: Optional[str] = None
    notes: Optional[str] = None
    customer_id: Optional[UUID] = None
    # Optional stock action applied through the ledger
    stock_action: Optional[str] = None  # IN, OUT
    stock_action_quantity: Optional[int] = None
    stock_action_notes: Optional[str] = None

class ProductResponse(BaseModel):
    id: UUID
    code: str
    name: str
    other_codes: Optional[str] = None
    unit: str
    price: int
    currency: str
    stock_quantity: int
    min_stock_level: int
    is_low_stock: bool
    material: Optional[str] = None
    post_process: Optional[str] = None
    coating: Optional[str] = None
    specs: Optional[str] = None
    specs_net: Optional[str] = None
    notes: Optional[str] = None
    customer_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
