# Pydantic Schemas Package
from .common import ListParams, page_response
from .customer import CustomerCreate, CustomerUpdate, CustomerResponse
from .product import ProductCreate, ProductUpdate, ProductResponse
from .order import OrderCreate, OrderUpdate, OrderResponse, OrderItemCreate, CustomOrderItemCreate
from .delivery import DeliveryCreate, DeliveryItemCreate
from .stock import (
    StockMovementCreate, StockTransferCreate, StockMovementUpdate, StockAdjust,
    StockMovementResponse, StockIntegrityRow,
)
from .auth import LoginRequest, RegisterRequest, Token, UserInfo

__all__ = [
    "ListParams", "page_response",
    "CustomerCreate", "CustomerUpdate", "CustomerResponse",
    "ProductCreate", "ProductUpdate", "ProductResponse",
    "OrderCreate", "OrderUpdate", "OrderResponse", "OrderItemCreate", "CustomOrderItemCreate",
    "DeliveryCreate", "DeliveryItemCreate",
    "StockMovementCreate", "StockTransferCreate", "StockMovementUpdate", "StockAdjust",
    "StockMovementResponse", "StockIntegrityRow",
    "LoginRequest", "RegisterRequest", "Token", "UserInfo",
]
