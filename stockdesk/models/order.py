"""
Order Models

An order line is either a catalog line (OrderItem, points at a Product) or a
custom line (CustomOrderItem, carries its own name/unit/price). The two live
in separate tables so each variant keeps its own required columns.
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Text, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from stockdesk.core import Base
from .base import UUIDMixin, TimestampMixin, SoftDeleteMixin
from .enums import DEFAULT_CURRENCY, DEFAULT_UNIT, OrderStatus

class Order(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """Order Header"""
    __tablename__ = "orders"
    
    order_number = Column(String(50), nullable=False, index=True)  # Unique per customer among non-deleted
    order_date = Column(DateTime(timezone=True), nullable=False, index=True)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    status = Column(String(20), default=OrderStatus.KAYIT.value, nullable=False)  # KAYIT, ÜRETİM, KISMEN HAZIR, HAZIR, BİTTİ, İPTAL
    currency = Column(String(3), default=DEFAULT_CURRENCY, nullable=False)
    delivery_address = Column(Text)
    notes = Column(Text)
    is_custom_order = Column(Boolean, default=False, nullable=False)
    
    # Relationships
    customer = relationship("Customer", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    custom_items = relationship("CustomOrderItem", back_populates="order", cascade="all, delete-orphan")

    @property
    def lines(self):
        return list(self.items) + list(self.custom_items)

    @property
    def total_amount(self) -> int:
        """Sum of unit_price * quantity over all lines, in minor units"""
        return sum((line.unit_price or 0) * (line.quantity or 0) for line in self.lines)

class OrderItem(Base, UUIDMixin):
    """Catalog order line"""
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_order_items_price_non_negative"),
    )
    
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Integer, default=0, nullable=False)  # Minor units
    currency = Column(String(3), default=DEFAULT_CURRENCY, nullable=False)
    
    # Relationships
    order = relationship("Order", back_populates="items")
    product = relationship("Product", back_populates="order_items")
    delivery_items = relationship("DeliveryItem", back_populates="order_item")

    line_kind = "catalog"

class CustomOrderItem(Base, UUIDMixin):
    """Ad-hoc order line without a catalog product"""
    __tablename__ = "custom_order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_custom_order_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_custom_order_items_price_non_negative"),
    )
    
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(300), nullable=False)
    unit = Column(String(10), default=DEFAULT_UNIT, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Integer, default=0, nullable=False)  # Minor units
    currency = Column(String(3), default=DEFAULT_CURRENCY, nullable=False)
    notes = Column(Text)
    
    # Relationships
    order = relationship("Order", back_populates="custom_items")
    delivery_items = relationship("DeliveryItem", back_populates="custom_order_item")

    line_kind = "custom"
