# Services Package
from .stock_service import StockService
from .customer_service import CustomerService
from .order_service import OrderService
from .product_service import ProductService
from .delivery_service import DeliveryService
from .demand_service import DemandService
from .auth_service import AuthService
from .exchange_rate_service import ExchangeRateService
from .metrics_service import MetricsService

__all__ = [
    "StockService",
    "CustomerService",
    "OrderService",
    "ProductService",
    "DeliveryService",
    "DemandService",
    "AuthService",
    "ExchangeRateService",
    "MetricsService",
]
