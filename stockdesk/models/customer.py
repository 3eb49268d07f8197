"""
Customer Model
"""
from sqlalchemy import Column, String, Text
from sqlalchemy.orm import relationship
from stockdesk.core import Base
from .base import UUIDMixin, TimestampMixin, SoftDeleteMixin

class Customer(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """Customer Master"""
    __tablename__ = "customers"
    
    code = Column(String(50), nullable=False, index=True)  # Unique among non-deleted rows
    name = Column(String(300), nullable=False)
    email = Column(String(255))
    phone = Column(String(50))
    address = Column(Text)
    
    # Relationships
    products = relationship("Product", back_populates="customer")
    orders = relationship("Order", back_populates="customer")
    deliveries = relationship("Delivery", back_populates="customer")
