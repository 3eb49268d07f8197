"""
Order Schemas
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from stockdesk.models.enums import Currency, OrderStatus, Unit

class OrderItemCreate(BaseModel):
    product_id: UUID
    quantity: int = Field(1, ge=1)
    unit_price: int = Field(0, ge=0)  # Minor units
    currency: Currency = Currency.TRY

class CustomOrderItemCreate(BaseModel):
    name: str
    unit: Unit = Unit.ADET
    quantity: int = Field(1, ge=1)
    unit_price: int = Field(0, ge=0)
    currency: Currency = Currency.TRY
    notes: Optional[str] = None

class OrderCreate(BaseModel):
    order_number: str
    order_date: datetime
    customer_id: UUID
    currency: Currency = Currency.TRY
    status: Optional[OrderStatus] = None  # Derived from stock when omitted
    delivery_address: Optional[str] = None
    notes: Optional[str] = None
    items: List[OrderItemCreate] = []
    custom_items: List[CustomOrderItemCreate] = []

class OrderUpdate(OrderCreate):
    pass

class OrderItemResponse(BaseModel):
    id: UUID
    product_id: UUID
    quantity: int
    unit_price: int
    currency: str

    class Config:
        from_attributes = True

class CustomOrderItemResponse(BaseModel):
    id: UUID
    name: str
    unit: str
    quantity: int
    unit_price: int
    currency: str
    notes: Optional[str] = None

    class Config:
        from_attributes = True

class OrderResponse(BaseModel):
    id: UUID
    order_number: str
    order_date: datetime
    customer_id: UUID
    status: str
    currency: str
    delivery_address: Optional[str] = None
    notes: Optional[str] = None
    is_custom_order: bool
    total_amount: int
    items: List[OrderItemResponse] = []
    custom_items: List[CustomOrderItemResponse] = []

    class Config:
        from_attributes = True
