"""
Order Service - Business Logic for Orders
"""
import logging
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import or_, func, case
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID
from datetime import date, datetime, time, timedelta, timezone

from stockdesk.core.errors import AppError
from stockdesk.core.timeutils import utcnow
from stockdesk.lib.text import normalize_text
from stockdesk.models import (
    Order, OrderItem, CustomOrderItem, Customer, Product, Delivery, DeliveryItem,
    OrderStatus, DeliveryKind
)
from stockdesk.schemas.common import ListParams
from stockdesk.schemas.order import OrderCreate, OrderUpdate

logger = logging.getLogger(__name__)

ORDER_SORT_FIELDS = ("order_number", "order_date", "status", "currency", "customer")

# Statuses the system moves automatically; anything else was set by hand
AUTO_STATUSES = (OrderStatus.KAYIT.value, OrderStatus.HAZIR.value, OrderStatus.BITTI.value)

def day_start(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)

def day_after(value: date) -> datetime:
    return day_start(value) + timedelta(days=1)

class OrderService:
    """Order business logic"""

    @staticmethod
    def get_orders(
        db: Session,
        params: ListParams,
        statuses: Optional[List[str]] = None,
        customer_ids: Optional[List[UUID]] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> Tuple[List[Order], int]:
        """Get orders with filters and pagination"""
        query = db.query(Order).join(Customer, Order.customer_id == Customer.id)\
            .filter(Order.deleted_at.is_(None))

        if params.q:
            search_term = f"%{params.q}%"
            query = query.filter(
                or_(
                    Order.order_number.ilike(search_term),
                    Order.notes.ilike(search_term),
                    Order.delivery_address.ilike(search_term),
                    Customer.code.ilike(search_term),
                    Customer.name.ilike(search_term)
                )
            )

        if statuses:
            query = query.filter(Order.status.in_(statuses))

        if customer_ids:
            query = query.filter(Order.customer_id.in_(customer_ids))

        if start_date:
            query = query.filter(Order.order_date >= day_start(start_date))

        if end_date:
            query = query.filter(Order.order_date < day_after(end_date))

        total = query.count()

        sort_column = {
            "order_number": Order.order_number,
            "order_date": Order.order_date,
            "status": Order.status,
            "currency": Order.currency,
            "customer": Customer.name,
        }[params.sort_by]
        order = sort_column.desc() if params.descending else sort_column.asc()

        orders = query.options(
            selectinload(Order.customer),
            selectinload(Order.items),
            selectinload(Order.custom_items)
        ).order_by(order, Order.order_date.desc(), Order.id)\
            .offset(params.offset)\
            .limit(params.page_size)\
            .all()

        return orders, total

    @staticmethod
    def get_order_by_id(db: Session, order_id: UUID) -> Optional[Order]:
        """Get non-deleted order with its lines"""
        return db.query(Order).options(
            selectinload(Order.items).selectinload(OrderItem.product),
            selectinload(Order.custom_items)
        ).filter(
            Order.id == order_id,
            Order.deleted_at.is_(None)
        ).first()

    @staticmethod
    def require_order(db: Session, order_id: UUID) -> Order:
        order = OrderService.get_order_by_id(db, order_id)
        if not order:
            raise AppError("ORDER_NOT_FOUND", details={"order_id": str(order_id)})
        return order

    # ===================== VALIDATION =====================

    @staticmethod
    def _validate_header(db: Session, data: OrderCreate, exclude_id: Optional[UUID] = None) -> str:
        order_number = normalize_text(data.order_number)
        if not order_number:
            raise AppError.validation(order_number="required")

        customer = db.query(Customer).filter(
            Customer.id == data.customer_id,
            Customer.deleted_at.is_(None)
        ).first()
        if not customer:
            raise AppError("CUSTOMER_NOT_FOUND", details={"customer_id": str(data.customer_id)})

        duplicate = db.query(Order.id).filter(
            Order.customer_id == data.customer_id,
            Order.order_number == order_number,
            Order.deleted_at.is_(None)
        )
        if exclude_id:
            duplicate = duplicate.filter(Order.id != exclude_id)
        if duplicate.first():
            raise AppError("ALREADY_EXISTS", details={"order_number": "already used for this customer"})

        if not data.items and not data.custom_items:
            raise AppError.validation(items="add at least one line")

        return order_number

    @staticmethod
    def _load_products(db: Session, product_ids: Iterable[UUID]) -> Dict[UUID, Product]:
        wanted = set(product_ids)
        if not wanted:
            return {}
        products = db.query(Product).filter(
            Product.id.in_(wanted),
            Product.deleted_at.is_(None)
        ).all()
        if len(products) != len(wanted):
            raise AppError("PRODUCT_NOT_FOUND", message="One or more products not found")
        return {p.id: p for p in products}

    @staticmethod
    def _all_in_stock(lines: Iterable[Tuple[UUID, int]], products: Dict[UUID, Product]) -> bool:
        lines = list(lines)
        if not lines:
            return False
        return all((products[pid].stock_quantity or 0) >= qty for pid, qty in lines)

    @staticmethod
    def _build_lines(order: Order, data: OrderCreate) -> None:
        order.items = [
            OrderItem(
                product_id=item.product_id,
                quantity=max(1, item.quantity),
                unit_price=max(0, item.unit_price),
                currency=item.currency.value,
            )
            for item in data.items
        ]
        order.custom_items = [
            CustomOrderItem(
                name=normalize_text(item.name) or "-",
                unit=item.unit.value,
                quantity=max(1, item.quantity),
                unit_price=max(0, item.unit_price),
                currency=item.currency.value,
                notes=normalize_text(item.notes),
            )
            for item in data.custom_items
        ]
        order.is_custom_order = not data.items and bool(data.custom_items)

    # ===================== MUTATIONS =====================

    @staticmethod
    def create_order(db: Session, data: OrderCreate) -> Order:
        """
        Create order with catalog and custom lines. Status starts as HAZIR
        when every catalog line is covered by stock, otherwise KAYIT.
        """
        order_number = OrderService._validate_header(db, data)
        products = OrderService._load_products(db, [i.product_id for i in data.items])
        in_stock = OrderService._all_in_stock(((i.product_id, i.quantity) for i in data.items), products)

        try:
            order = Order(
                order_number=order_number,
                order_date=data.order_date,
                customer_id=data.customer_id,
                status=OrderStatus.HAZIR.value if in_stock else OrderStatus.KAYIT.value,
                currency=data.currency.value,
                delivery_address=normalize_text(data.delivery_address),
                notes=normalize_text(data.notes),
            )
            OrderService._build_lines(order, data)
            db.add(order)
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(order)
        logger.info(f"Created order {order.order_number} ({order.status})")
        return order

    @staticmethod
    def update_order(db: Session, order_id: UUID, data: OrderUpdate) -> Order:
        """Update header and replace lines; lines already delivered are locked"""
        order = OrderService.require_order(db, order_id)
        order_number = OrderService._validate_header(db, data, exclude_id=order.id)
        OrderService._load_products(db, [i.product_id for i in data.items])

        delivered = db.query(DeliveryItem.id).outerjoin(OrderItem, DeliveryItem.order_item_id == OrderItem.id)\
            .outerjoin(CustomOrderItem, DeliveryItem.custom_order_item_id == CustomOrderItem.id)\
            .filter(or_(OrderItem.order_id == order.id, CustomOrderItem.order_id == order.id))\
            .first()
        if delivered:
            raise AppError("ORDER_LOCKED", details={"order_id": str(order.id)})

        try:
            order.order_number = order_number
            order.order_date = data.order_date
            order.customer_id = data.customer_id
            order.currency = data.currency.value
            order.delivery_address = normalize_text(data.delivery_address)
            order.notes = normalize_text(data.notes)
            if data.status is not None:
                order.status = data.status.value
            OrderService._build_lines(order, data)
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(order)
        return order

    @staticmethod
    def remove_order(db: Session, order_id: UUID) -> Order:
        """Soft delete"""
        order = OrderService.require_order(db, order_id)
        order.deleted_at = utcnow()
        db.commit()
        logger.info(f"Removed order {order.order_number}")
        return order

    # ===================== STATUS =====================

    @staticmethod
    def net_delivered(db: Session, order: Order) -> Dict[UUID, int]:
        """Delivered minus returned quantity per line id (catalog and custom)"""
        signed = case((Delivery.kind == DeliveryKind.RETURN.value, -DeliveryItem.delivered_quantity),
                      else_=DeliveryItem.delivered_quantity)
        line_id = func.coalesce(DeliveryItem.order_item_id, DeliveryItem.custom_order_item_id)
        line_ids = [line.id for line in order.lines]
        if not line_ids:
            return {}
        rows = db.query(line_id.label("line_id"), func.sum(signed).label("net"))\
            .join(Delivery, DeliveryItem.delivery_id == Delivery.id)\
            .filter(Delivery.deleted_at.is_(None))\
            .filter(or_(DeliveryItem.order_item_id.in_(line_ids), DeliveryItem.custom_order_item_id.in_(line_ids)))\
            .group_by(line_id)\
            .all()
        return {row.line_id: int(row.net or 0) for row in rows}

    @staticmethod
    def update_status_after_delivery(db: Session, order_ids: Iterable[UUID]) -> None:
        """BİTTİ when every line is fully delivered net of returns. Caller commits."""
        for order_id in set(order_ids):
            order = db.query(Order).filter(Order.id == order_id).first()
            if not order or order.status not in AUTO_STATUSES:
                continue
            net = OrderService.net_delivered(db, order)
            complete = all(net.get(line.id, 0) >= line.quantity for line in order.lines)
            if complete:
                order.status = OrderStatus.BITTI.value
            elif order.status == OrderStatus.BITTI.value:
                order.status = OrderService._readiness_status(db, order)

    @staticmethod
    def _readiness_status(db: Session, order: Order) -> str:
        products = {item.product_id: item.product for item in order.items}
        in_stock = not order.is_custom_order and OrderService._all_in_stock(
            ((i.product_id, i.quantity) for i in order.items), products
        )
        return OrderStatus.HAZIR.value if in_stock else OrderStatus.KAYIT.value

    @staticmethod
    def refresh_ready_status(db: Session, product_id: UUID) -> int:
        """Promote KAYIT orders containing the product once all their lines are in stock. Caller commits."""
        orders = db.query(Order).join(OrderItem, OrderItem.order_id == Order.id).filter(
            OrderItem.product_id == product_id,
            Order.status == OrderStatus.KAYIT.value,
            Order.deleted_at.is_(None)
        ).distinct().all()
        promoted = 0
        for order in orders:
            if OrderService._readiness_status(db, order) == OrderStatus.HAZIR.value:
                order.status = OrderStatus.HAZIR.value
                promoted += 1
        return promoted

    # ===================== LOOKUPS =====================

    @staticmethod
    def get_order_deliveries(db: Session, order_id: UUID) -> List[Delivery]:
        """Non-deleted deliveries touching any line of the order"""
        order = OrderService.require_order(db, order_id)
        line_ids = [line.id for line in order.lines]
        if not line_ids:
            return []
        return db.query(Delivery).join(DeliveryItem, DeliveryItem.delivery_id == Delivery.id)\
            .filter(Delivery.deleted_at.is_(None))\
            .filter(or_(DeliveryItem.order_item_id.in_(line_ids), DeliveryItem.custom_order_item_id.in_(line_ids)))\
            .distinct()\
            .order_by(Delivery.delivery_date.desc())\
            .all()

    @staticmethod
    def get_last_order_number(db: Session, customer_id: Optional[UUID] = None) -> Optional[str]:
        query = db.query(Order.order_number).filter(Order.deleted_at.is_(None))
        if customer_id:
            query = query.filter(Order.customer_id == customer_id)
        row = query.order_by(Order.created_at.desc(), Order.order_number.desc()).first()
        return row[0] if row else None

    @staticmethod
    def get_filter_options(db: Session) -> dict:
        statuses = db.query(Order.status).filter(Order.deleted_at.is_(None)).distinct().all()
        customers = db.query(Customer).join(Order, Order.customer_id == Customer.id).filter(
            Order.deleted_at.is_(None),
            Customer.deleted_at.is_(None)
        ).distinct().order_by(Customer.code).all()
        return {
            "statuses": sorted(s[0] for s in statuses if s[0]),
            "customers": [{"id": str(c.id), "code": c.code, "name": c.name} for c in customers],
        }
