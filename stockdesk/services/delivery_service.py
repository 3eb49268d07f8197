"""
Delivery Service - Deliveries, returns and their priced rows

A delivery of kind RETURN reverses everything a DELIVERY does: its rows carry
negative quantities and totals, and its catalog lines put stock back.
"""
import logging
from dataclasses import dataclass, asdict
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import or_
from typing import Iterable, List, Optional, Tuple
from uuid import UUID
from datetime import date

from stockdesk.core.errors import AppError
from stockdesk.core.timeutils import utcnow
from stockdesk.lib.text import normalize_text
from stockdesk.models import (
    Delivery, DeliveryItem, Order, OrderItem, CustomOrderItem, Customer,
    DeliveryKind, MovementType, ReferenceType, DEFAULT_CURRENCY, DEFAULT_UNIT
)
from stockdesk.schemas.common import ListParams
from stockdesk.schemas.delivery import DeliveryCreate
from .order_service import OrderService, day_start, day_after
from .stock_service import StockService

logger = logging.getLogger(__name__)

DELIVERY_SORT_FIELDS = ("delivery_number", "delivery_date", "customer")

PLACEHOLDER = "—"

# ===================== ROW AGGREGATION =====================

@dataclass
class DeliveryRow:
    """One priced, signed line of a delivery"""
    delivery_item_id: Optional[UUID]
    line_kind: str  # catalog, custom
    product_code: str
    product_name: str
    unit: str
    currency: str
    unit_price: int  # Minor units
    delivered_quantity: int  # Negative for returns
    total_price: int  # unit_price * delivered_quantity

    def as_dict(self) -> dict:
        return asdict(self)

@dataclass
class RowsFooter:
    delivered_quantity: int
    total_price: int
    currency: str
    mixed_currency: bool

    def as_dict(self) -> dict:
        return asdict(self)

def delivery_sign(kind: Optional[str]) -> int:
    kind = getattr(kind, "value", kind)
    return -1 if kind == DeliveryKind.RETURN.value else 1

def resolve_line(item) -> dict:
    """Product/price/unit/currency from whichever order line the item points at"""
    order_item = getattr(item, "order_item", None)
    custom_item = getattr(item, "custom_order_item", None)

    if order_item is not None:
        product = getattr(order_item, "product", None)
        return {
            "line_kind": "catalog",
            "product_code": getattr(product, "code", None) or PLACEHOLDER,
            "product_name": getattr(product, "name", None) or PLACEHOLDER,
            "unit": getattr(product, "unit", None) or DEFAULT_UNIT,
            "currency": order_item.currency or DEFAULT_CURRENCY,
            "unit_price": order_item.unit_price or 0,
        }

    if custom_item is not None:
        return {
            "line_kind": "custom",
            "product_code": PLACEHOLDER,
            "product_name": custom_item.name or PLACEHOLDER,
            "unit": custom_item.unit or DEFAULT_UNIT,
            "currency": custom_item.currency or DEFAULT_CURRENCY,
            "unit_price": custom_item.unit_price or 0,
        }

    return {
        "line_kind": "unknown",
        "product_code": PLACEHOLDER,
        "product_name": PLACEHOLDER,
        "unit": DEFAULT_UNIT,
        "currency": DEFAULT_CURRENCY,
        "unit_price": 0,
    }

def build_delivery_rows(delivery) -> List[DeliveryRow]:
    """Flatten a delivery into rows; RETURN flips quantity and total"""
    sign = delivery_sign(delivery.kind)
    rows = []
    for item in delivery.items:
        line = resolve_line(item)
        quantity = sign * (item.delivered_quantity or 0)
        rows.append(DeliveryRow(
            delivery_item_id=getattr(item, "id", None),
            delivered_quantity=quantity,
            total_price=line["unit_price"] * quantity,
            **line
        ))
    return rows

def summarize_rows(rows: Iterable[DeliveryRow]) -> RowsFooter:
    """
    Footer over the visible rows. The first row's currency labels the total;
    rows in other currencies are summed as-is and flagged with mixed_currency.
    """
    rows = list(rows)
    currency = rows[0].currency if rows else DEFAULT_CURRENCY
    return RowsFooter(
        delivered_quantity=sum(r.delivered_quantity for r in rows),
        total_price=sum(r.total_price for r in rows),
        currency=currency,
        mixed_currency=any(r.currency != currency for r in rows),
    )

def delivery_total_amount(delivery) -> int:
    """Signed total of a delivery in minor units"""
    return sum(row.total_price for row in build_delivery_rows(delivery))

# ===================== SERVICE =====================

class DeliveryService:
    """Delivery business logic"""

    @staticmethod
    def _with_lines(query):
        return query.options(
            selectinload(Delivery.customer),
            selectinload(Delivery.items).selectinload(DeliveryItem.order_item).selectinload(OrderItem.product),
            selectinload(Delivery.items).selectinload(DeliveryItem.custom_order_item)
        )

    @staticmethod
    def get_deliveries(
        db: Session,
        params: ListParams,
        customer_ids: Optional[List[UUID]] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        kind: Optional[str] = None
    ) -> Tuple[List[Delivery], int]:
        """Get deliveries with filters and pagination"""
        query = db.query(Delivery).join(Customer, Delivery.customer_id == Customer.id)\
            .filter(Delivery.deleted_at.is_(None))

        if params.q:
            search_term = f"%{params.q}%"
            query = query.filter(
                or_(
                    Delivery.delivery_number.ilike(search_term),
                    Delivery.notes.ilike(search_term),
                    Customer.code.ilike(search_term),
                    Customer.name.ilike(search_term)
                )
            )

        if customer_ids:
            query = query.filter(Delivery.customer_id.in_(customer_ids))

        if start_date:
            query = query.filter(Delivery.delivery_date >= day_start(start_date))

        if end_date:
            query = query.filter(Delivery.delivery_date < day_after(end_date))

        if kind:
            query = query.filter(Delivery.kind == kind)

        total = query.count()

        sort_column = {
            "delivery_number": Delivery.delivery_number,
            "delivery_date": Delivery.delivery_date,
            "customer": Customer.name,
        }[params.sort_by]
        order = sort_column.desc() if params.descending else sort_column.asc()

        deliveries = DeliveryService._with_lines(query)\
            .order_by(order, Delivery.delivery_number.desc(), Delivery.id)\
            .offset(params.offset)\
            .limit(params.page_size)\
            .all()

        return deliveries, total

    @staticmethod
    def get_delivery_by_id(db: Session, delivery_id: UUID) -> Optional[Delivery]:
        return DeliveryService._with_lines(db.query(Delivery)).filter(
            Delivery.id == delivery_id,
            Delivery.deleted_at.is_(None)
        ).first()

    @staticmethod
    def require_delivery(db: Session, delivery_id: UUID) -> Delivery:
        delivery = DeliveryService.get_delivery_by_id(db, delivery_id)
        if not delivery:
            raise AppError("DELIVERY_NOT_FOUND", details={"delivery_id": str(delivery_id)})
        return delivery

    @staticmethod
    def _validate(db: Session, data: DeliveryCreate) -> Tuple[str, List[OrderItem], List[CustomOrderItem]]:
        delivery_number = normalize_text(data.delivery_number)
        if not delivery_number:
            raise AppError.validation(delivery_number="required")

        customer = db.query(Customer.id).filter(
            Customer.id == data.customer_id,
            Customer.deleted_at.is_(None)
        ).first()
        if not customer:
            raise AppError("CUSTOMER_NOT_FOUND", details={"customer_id": str(data.customer_id)})

        if not data.items:
            raise AppError.validation(items="add at least one line")

        for item in data.items:
            if (item.order_item_id is None) == (item.custom_order_item_id is None):
                raise AppError.validation(items="each line needs exactly one order item")
            if item.delivered_quantity <= 0:
                raise AppError("INVALID_DELIVERY_QUANTITY")

        item_ids = [i.order_item_id for i in data.items if i.order_item_id]
        custom_ids = [i.custom_order_item_id for i in data.items if i.custom_order_item_id]
        if len(set(item_ids)) != len(item_ids) or len(set(custom_ids)) != len(custom_ids):
            raise AppError("DUPLICATE_ORDER_ITEM")

        order_items = []
        if item_ids:
            order_items = db.query(OrderItem).join(Order, OrderItem.order_id == Order.id).filter(
                OrderItem.id.in_(item_ids),
                Order.deleted_at.is_(None)
            ).all()
        custom_items = []
        if custom_ids:
            custom_items = db.query(CustomOrderItem).join(Order, CustomOrderItem.order_id == Order.id).filter(
                CustomOrderItem.id.in_(custom_ids),
                Order.deleted_at.is_(None)
            ).all()
        if len(order_items) != len(item_ids) or len(custom_items) != len(custom_ids):
            raise AppError("ORDER_ITEM_NOT_FOUND")

        for line in list(order_items) + list(custom_items):
            if line.order.customer_id != data.customer_id:
                raise AppError.validation(items="order line belongs to another customer")

        duplicate = db.query(Delivery.id).filter(
            Delivery.customer_id == data.customer_id,
            Delivery.delivery_number == delivery_number,
            Delivery.deleted_at.is_(None)
        ).first()
        if duplicate:
            raise AppError("ALREADY_EXISTS", details={"delivery_number": "already used for this customer"})

        return delivery_number, order_items, custom_items

    @staticmethod
    def create_delivery(db: Session, data: DeliveryCreate, created_by: Optional[UUID] = None) -> Delivery:
        """
        Insert header and lines, book one stock movement per catalog line
        (OUT for a delivery, IN for a return) and update order statuses.
        """
        delivery_number, order_items, custom_items = DeliveryService._validate(db, data)
        kind = data.kind.value
        is_return = kind == DeliveryKind.RETURN.value
        order_items_by_id = {oi.id: oi for oi in order_items}

        try:
            delivery = Delivery(
                customer_id=data.customer_id,
                delivery_number=delivery_number,
                delivery_date=data.delivery_date,
                kind=kind,
                notes=normalize_text(data.notes),
            )
            delivery.items = [
                DeliveryItem(
                    order_item_id=item.order_item_id,
                    custom_order_item_id=item.custom_order_item_id,
                    delivered_quantity=item.delivered_quantity,
                )
                for item in data.items
            ]
            db.add(delivery)
            db.flush()

            locked = StockService.lock_products(db, [oi.product_id for oi in order_items])
            notes = f"{'Return' if is_return else 'Delivery'} #{delivery_number}"
            for item in data.items:
                if not item.order_item_id:
                    continue
                order_item = order_items_by_id[item.order_item_id]
                StockService.book_movement(
                    db, locked[order_item.product_id],
                    item.delivered_quantity if is_return else -item.delivered_quantity,
                    MovementType.IN.value if is_return else MovementType.OUT.value,
                    reference_type=ReferenceType.DELIVERY.value,
                    reference_id=delivery.id,
                    notes=notes,
                    created_by=created_by,
                )

            order_ids = [line.order_id for line in list(order_items) + list(custom_items)]
            OrderService.update_status_after_delivery(db, order_ids)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Created {kind} {delivery_number} with {len(data.items)} lines")
        return DeliveryService.require_delivery(db, delivery.id)

    @staticmethod
    def remove_delivery(db: Session, delivery_id: UUID, created_by: Optional[UUID] = None) -> Delivery:
        """Soft delete and put back the stock it moved"""
        delivery = DeliveryService.require_delivery(db, delivery_id)
        order_ids = [
            (item.order_item or item.custom_order_item).order_id
            for item in delivery.items
            if item.order_item or item.custom_order_item
        ]

        try:
            delivery.deleted_at = utcnow()
            StockService.reverse_reference_movements(
                db, ReferenceType.DELIVERY, delivery.id,
                notes=f"Removed delivery #{delivery.delivery_number}",
                created_by=created_by,
            )
            db.flush()
            OrderService.update_status_after_delivery(db, order_ids)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Removed delivery {delivery.delivery_number}")
        return delivery

    @staticmethod
    def get_last_delivery_number(db: Session, customer_id: Optional[UUID] = None) -> Optional[str]:
        query = db.query(Delivery.delivery_number).filter(Delivery.deleted_at.is_(None))
        if customer_id:
            query = query.filter(Delivery.customer_id == customer_id)
        row = query.order_by(Delivery.created_at.desc(), Delivery.delivery_number.desc()).first()
        return row[0] if row else None

    @staticmethod
    def get_filter_options(db: Session) -> dict:
        customers = db.query(Customer).join(Delivery, Delivery.customer_id == Customer.id).filter(
            Delivery.deleted_at.is_(None),
            Customer.deleted_at.is_(None)
        ).distinct().order_by(Customer.code).all()
        return {"customers": [{"id": str(c.id), "code": c.code, "name": c.name} for c in customers]}
