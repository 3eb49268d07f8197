from .base import TimestampMixin, UUIDMixin, SoftDeleteMixin
from .enums import (
    MovementType, ReferenceType, DeliveryKind, OrderStatus, Unit, Currency, UserRole,
    DEFAULT_CURRENCY, DEFAULT_UNIT,
)
from .customer import Customer
from .product import Product
from .order import Order, OrderItem, CustomOrderItem
from .delivery import Delivery, DeliveryItem
from .stock import StockMovement
from .user import User, UserSession, LoginAttempt, RateLimit

__all__ = [
    # Base
    "TimestampMixin", "UUIDMixin", "SoftDeleteMixin",
    # Enums
    "MovementType", "ReferenceType", "DeliveryKind", "OrderStatus", "Unit", "Currency", "UserRole",
    "DEFAULT_CURRENCY", "DEFAULT_UNIT",
    # Customer
    "Customer",
    # Product
    "Product",
    # Order
    "Order", "OrderItem", "CustomOrderItem",
    # Delivery
    "Delivery", "DeliveryItem",
    # Stock
    "StockMovement",
    # Auth
    "User", "UserSession", "LoginAttempt", "RateLimit",
]
