"""
Product Model
"""
from sqlalchemy import Column, String, Integer, ForeignKey, Text, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from stockdesk.core import Base
from .base import UUIDMixin, TimestampMixin, SoftDeleteMixin
from .enums import DEFAULT_CURRENCY, DEFAULT_UNIT

class Product(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """Product Master"""
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("min_stock_level >= 0", name="ck_products_min_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
    )
    
    code = Column(String(100), nullable=False, index=True)
    name = Column(String(300), nullable=False)
    other_codes = Column(String(300))
    unit = Column(String(10), default=DEFAULT_UNIT, nullable=False)  # adet, saat, kg, metre
    price = Column(Integer, default=0, nullable=False)  # Minor units (kuruş/cent)
    currency = Column(String(3), default=DEFAULT_CURRENCY, nullable=False)  # TRY, EUR, USD
    
    # Stock (cached sum of the ledger)
    stock_quantity = Column(Integer, default=0, nullable=False)
    min_stock_level = Column(Integer, default=0, nullable=False)
    
    # Technical info
    material = Column(String(100))
    post_process = Column(String(100))
    coating = Column(String(100))
    specs = Column(Text)
    specs_net = Column(Text)
    notes = Column(Text)
    
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), index=True)
    
    # Relationships
    customer = relationship("Customer", back_populates="products")
    stock_movements = relationship("StockMovement", back_populates="product")
    order_items = relationship("OrderItem", back_populates="product")

    @property
    def is_low_stock(self) -> bool:
        return (self.stock_quantity or 0) < (self.min_stock_level or 0)
