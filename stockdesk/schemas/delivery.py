"""
Delivery Schemas
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from stockdesk.models.enums import DeliveryKind

class DeliveryItemCreate(BaseModel):
    order_item_id: Optional[UUID] = None
    custom_order_item_id: Optional[UUID] = None
    delivered_quantity: int = Field(..., gt=0)

class DeliveryCreate(BaseModel):
    customer_id: UUID
    delivery_number: str
    delivery_date: datetime
    kind: DeliveryKind = DeliveryKind.DELIVERY
    notes: Optional[str] = None
    items: List[DeliveryItemCreate]

class DeliveryRowResponse(BaseModel):
    delivery_item_id: UUID
    line_kind: str
    product_code: str
    product_name: str
    unit: str
    currency: str
    unit_price: int
    delivered_quantity: int
    total_price: int

class DeliveryFooterResponse(BaseModel):
    delivered_quantity: int
    total_price: int
    currency: str
    mixed_currency: bool
