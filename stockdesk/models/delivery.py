"""
Delivery Models
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from stockdesk.core import Base
from .base import UUIDMixin, TimestampMixin, SoftDeleteMixin
from .enums import DeliveryKind

class Delivery(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """Delivery or return header"""
    __tablename__ = "deliveries"
    
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    delivery_number = Column(String(50), nullable=False, index=True)  # Unique per customer among non-deleted
    delivery_date = Column(DateTime(timezone=True), nullable=False, index=True)
    kind = Column(String(10), default=DeliveryKind.DELIVERY.value, nullable=False)  # DELIVERY, RETURN
    notes = Column(Text)
    
    # Relationships
    customer = relationship("Customer", back_populates="deliveries")
    items = relationship("DeliveryItem", back_populates="delivery", cascade="all, delete-orphan")

    @property
    def sign(self) -> int:
        return -1 if self.kind == DeliveryKind.RETURN.value else 1

class DeliveryItem(Base, UUIDMixin):
    """Delivered quantity of exactly one order line"""
    __tablename__ = "delivery_items"
    __table_args__ = (
        CheckConstraint("delivered_quantity > 0", name="ck_delivery_items_quantity_positive"),
        CheckConstraint(
            "(order_item_id IS NULL AND custom_order_item_id IS NOT NULL) OR "
            "(order_item_id IS NOT NULL AND custom_order_item_id IS NULL)",
            name="ck_delivery_items_one_line",
        ),
    )
    
    delivery_id = Column(UUID(as_uuid=True), ForeignKey("deliveries.id", ondelete="CASCADE"), nullable=False, index=True)
    order_item_id = Column(UUID(as_uuid=True), ForeignKey("order_items.id"), index=True)
    custom_order_item_id = Column(UUID(as_uuid=True), ForeignKey("custom_order_items.id"), index=True)
    delivered_quantity = Column(Integer, nullable=False)  # Always positive; sign comes from Delivery.kind
    
    # Relationships
    delivery = relationship("Delivery", back_populates="items")
    order_item = relationship("OrderItem", back_populates="delivery_items")
    custom_order_item = relationship("CustomOrderItem", back_populates="delivery_items")
