"""
Stock Movement Ledger
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from stockdesk.core import Base
from .base import UUIDMixin

class StockMovement(Base, UUIDMixin):
    """Signed stock delta against one product. Rows are never deleted."""
    __tablename__ = "stock_movements"
    __table_args__ = (
        CheckConstraint("quantity <> 0", name="ck_stock_movements_quantity_non_zero"),
        CheckConstraint(
            "(reference_type IS NULL AND reference_id IS NULL) OR "
            "(reference_type IS NOT NULL AND reference_id IS NOT NULL)",
            name="ck_stock_movements_reference_pair",
        ),
    )
    
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False, index=True)
    
    # Movement info
    movement_type = Column(String(20), nullable=False)  # IN, OUT, TRANSFER, ADJUSTMENT, RESERVE, RELEASE
    quantity = Column(Integer, nullable=False)  # Positive or negative
    
    # Reference
    reference_type = Column(String(20))  # order, delivery, adjustment, purchase, transfer
    reference_id = Column(UUID(as_uuid=True), index=True)  # ID of related record
    
    # Metadata
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    
    # Relationships
    product = relationship("Product", back_populates="stock_movements")
    creator = relationship("User")
