"""
Product Demand Service - Order line statistics per (customer, product)
"""
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy.orm import Session
from sqlalchemy import func, or_, cast, Float
from typing import Dict, List, Optional, Tuple
from uuid import UUID
from datetime import date

from stockdesk.models import Order, OrderItem, Product, Customer, OrderStatus
from stockdesk.schemas.common import ListParams
from .order_service import day_start, day_after

DEMAND_SORT_FIELDS = (
    "avg_pieces_per_order", "total_pieces", "ordered_times",
    "last_order_date", "customer_code", "product_code",
)

def average_pieces(total_pieces: int, ordered_times: int) -> float:
    """total / times rounded to two decimals; zero when nothing was ordered"""
    if not ordered_times:
        return 0.0
    value = Decimal(int(total_pieces)) / Decimal(int(ordered_times))
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))

class DemandService:
    """Demand aggregation over catalog order lines"""

    @staticmethod
    def _grouped(
        db: Session,
        q: Optional[str],
        customer_ids: Optional[List[UUID]],
        start_date: Optional[date],
        end_date: Optional[date]
    ):
        ordered_times = func.count(func.distinct(OrderItem.order_id))
        total_pieces = func.coalesce(func.sum(OrderItem.quantity), 0)

        query = db.query(
            Customer.id.label("customer_id"),
            Customer.code.label("customer_code"),
            Customer.name.label("customer_name"),
            Product.id.label("product_id"),
            Product.code.label("product_code"),
            Product.name.label("product_name"),
            ordered_times.label("ordered_times"),
            total_pieces.label("total_pieces"),
            (cast(total_pieces, Float) / ordered_times).label("avg_pieces_per_order"),
            func.max(Order.order_date).label("last_order_date"),
        ).select_from(OrderItem)\
            .join(Order, OrderItem.order_id == Order.id)\
            .join(Product, OrderItem.product_id == Product.id)\
            .join(Customer, Order.customer_id == Customer.id)\
            .filter(
                Order.deleted_at.is_(None),
                Product.deleted_at.is_(None),
                Customer.deleted_at.is_(None),
                Order.status != OrderStatus.IPTAL.value
            )

        if q:
            search_term = f"%{q}%"
            query = query.filter(
                or_(
                    Product.code.ilike(search_term),
                    Product.name.ilike(search_term),
                    Customer.code.ilike(search_term),
                    Customer.name.ilike(search_term)
                )
            )

        if customer_ids:
            query = query.filter(Order.customer_id.in_(customer_ids))

        if start_date:
            query = query.filter(Order.order_date >= day_start(start_date))

        if end_date:
            query = query.filter(Order.order_date < day_after(end_date))

        return query.group_by(
            Customer.id, Customer.code, Customer.name,
            Product.id, Product.code, Product.name
        ).subquery("product_demand")

    @staticmethod
    def get_product_demand(
        db: Session,
        params: ListParams,
        customer_ids: Optional[List[UUID]] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> Tuple[List[Dict], int]:
        """
        One row per (customer, product): distinct orders, pieces, average
        pieces per order and last order date. Sorting and paging apply to
        the grouped rows.
        """
        demand = DemandService._grouped(db, params.q, customer_ids, start_date, end_date)

        total = db.query(func.count()).select_from(demand).scalar() or 0

        sort_column = demand.c[params.sort_by]
        order = sort_column.desc() if params.descending else sort_column.asc()

        rows = db.query(demand).order_by(
            order,
            demand.c.avg_pieces_per_order.desc(),
            demand.c.total_pieces.desc(),
            demand.c.ordered_times.desc(),
            demand.c.customer_code.asc(),
            demand.c.product_code.asc()
        ).offset(params.offset).limit(params.page_size).all()

        return [
            {
                "customer_id": str(row.customer_id),
                "customer_code": row.customer_code,
                "customer_name": row.customer_name,
                "product_id": str(row.product_id),
                "product_code": row.product_code,
                "product_name": row.product_name,
                "ordered_times": int(row.ordered_times),
                "total_pieces": int(row.total_pieces),
                "avg_pieces_per_order": average_pieces(row.total_pieces, row.ordered_times),
                "last_order_date": row.last_order_date,
            }
            for row in rows
        ], int(total)
