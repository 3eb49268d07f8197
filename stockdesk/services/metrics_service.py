"""
Metrics Service - Dashboard figures

Revenue is unit_price * quantity over every line of an order; delivered
revenue is the signed delivery rows (returns count negative). Amounts are
converted to the requested currency line by line. Cancelled and deleted
orders never count.
"""
import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload, joinedload

from stockdesk.core.errors import AppError
from stockdesk.core.timeutils import as_utc, utcnow
from stockdesk.lib.money import format_money, sum_in_currency
from stockdesk.models import (
    Order, OrderItem, CustomOrderItem, Delivery, DeliveryItem,
    OrderStatus, Currency, DEFAULT_CURRENCY
)
from .delivery_service import resolve_line, delivery_sign
from .order_service import day_start

logger = logging.getLogger(__name__)

Rates = Dict[Tuple[str, str], float]
Amounts = List[Tuple[int, str]]

MAX_MONTH_COUNT = 36

CLOSED_STATUSES = (OrderStatus.BITTI.value, OrderStatus.IPTAL.value)


def shift_month(year: int, month: int, offset: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def month_key(value: datetime) -> str:
    value = as_utc(value)
    return f"{value.year}-{value.month:02d}"


def _check_currency(currency: Optional[str]) -> str:
    currency = currency or DEFAULT_CURRENCY
    if currency not in {c.value for c in Currency}:
        raise AppError.validation(currency="unknown currency")
    return currency


def _line_amounts(order: Order) -> Amounts:
    return [((line.unit_price or 0) * (line.quantity or 0), line.currency or DEFAULT_CURRENCY) for line in order.lines]


def _counts_for_order(item: DeliveryItem) -> bool:
    """Delivery rows of cancelled or deleted orders are left out"""
    line = item.order_item or item.custom_order_item
    order = getattr(line, "order", None)
    return order is not None and order.deleted_at is None and order.status != OrderStatus.IPTAL.value


def _year_bounds(year: int) -> Tuple[datetime, datetime]:
    if not 1900 <= year <= 2999:
        raise AppError.validation(year="invalid year")
    return day_start(date(year, 1, 1)), day_start(date(year + 1, 1, 1))


def _delivered_amount(item: DeliveryItem) -> Tuple[int, str]:
    line = resolve_line(item)
    quantity = delivery_sign(item.delivery.kind) * (item.delivered_quantity or 0)
    return line["unit_price"] * quantity, line["currency"]


class MetricsService:
    """Key metrics, monthly overview and order year bounds"""

    @staticmethod
    def _orders(
        db: Session,
        customer_id: Optional[UUID],
        start: Optional[datetime],
        end: Optional[datetime]
    ) -> List[Order]:
        query = db.query(Order).options(
            selectinload(Order.items),
            selectinload(Order.custom_items)
        ).filter(
            Order.deleted_at.is_(None),
            Order.status != OrderStatus.IPTAL.value
        )
        if customer_id:
            query = query.filter(Order.customer_id == customer_id)
        if start:
            query = query.filter(Order.order_date >= start)
        if end:
            query = query.filter(Order.order_date < end)
        return query.all()

    @staticmethod
    def _delivery_items(db: Session):
        return db.query(DeliveryItem)\
            .join(Delivery, DeliveryItem.delivery_id == Delivery.id)\
            .options(
                joinedload(DeliveryItem.delivery),
                joinedload(DeliveryItem.order_item).joinedload(OrderItem.product),
                joinedload(DeliveryItem.order_item).joinedload(OrderItem.order),
                joinedload(DeliveryItem.custom_order_item).joinedload(CustomOrderItem.order)
            ).filter(Delivery.deleted_at.is_(None))

    # ===================== KEY METRICS =====================

    @staticmethod
    def get_key_metrics(
        db: Session,
        rates: Optional[Rates] = None,
        customer_id: Optional[UUID] = None,
        year: Optional[int] = None,
        currency: Optional[str] = None
    ) -> dict:
        """
        Order count, open orders, ordered and delivered revenue in one
        currency, optionally for one customer and one calendar year.
        """
        currency = _check_currency(currency)
        start = end = None
        if year is not None:
            start, end = _year_bounds(year)

        orders = MetricsService._orders(db, customer_id, start, end)
        order_ids = [o.id for o in orders]

        revenue = sum_in_currency(
            (amount for order in orders for amount in _line_amounts(order)), currency, rates
        )

        delivered = 0
        if order_ids:
            items = MetricsService._delivery_items(db)\
                .outerjoin(OrderItem, DeliveryItem.order_item_id == OrderItem.id)\
                .outerjoin(CustomOrderItem, DeliveryItem.custom_order_item_id == CustomOrderItem.id)\
                .filter(or_(OrderItem.order_id.in_(order_ids), CustomOrderItem.order_id.in_(order_ids)))\
                .all()
            delivered = sum_in_currency((_delivered_amount(item) for item in items), currency, rates)

        total_orders = len(orders)
        return {
            "currency": currency,
            "total_orders": total_orders,
            "pending_orders": sum(1 for o in orders if o.status not in CLOSED_STATUSES),
            "total_revenue": revenue,
            "delivered_revenue": delivered,
            "avg_order_value": round(revenue / total_orders) if total_orders else 0,
            "formatted": {
                "total_revenue": format_money(revenue, currency),
                "delivered_revenue": format_money(delivered, currency),
            },
        }

    # ===================== MONTHLY OVERVIEW =====================

    @staticmethod
    def get_monthly_overview(
        db: Session,
        rates: Optional[Rates] = None,
        customer_id: Optional[UUID] = None,
        year: Optional[int] = None,
        month_count: int = 12,
        currency: Optional[str] = None,
        today: Optional[date] = None
    ) -> List[dict]:
        """
        One row per month: orders and revenue by order date, deliveries and
        delivered revenue by delivery date. A year gives its twelve months;
        otherwise the last `month_count` months up to today.
        """
        currency = _check_currency(currency)
        if year is not None:
            _year_bounds(year)
            months = [(year, m) for m in range(1, 13)]
        else:
            today = today or utcnow().date()
            count = min(max(1, month_count), MAX_MONTH_COUNT)
            months = [shift_month(today.year, today.month, i - (count - 1)) for i in range(count)]

        first_year, first_month = months[0]
        end_year, end_month = shift_month(*months[-1], 1)
        start = day_start(date(first_year, first_month, 1))
        end = day_start(date(end_year, end_month, 1))

        order_ids = defaultdict(set)
        revenue: Dict[str, Amounts] = defaultdict(list)
        for order in MetricsService._orders(db, customer_id, start, end):
            key = month_key(order.order_date)
            order_ids[key].add(order.id)
            revenue[key].extend(_line_amounts(order))

        delivery_ids = defaultdict(set)
        delivered: Dict[str, Amounts] = defaultdict(list)
        query = MetricsService._delivery_items(db).filter(
            Delivery.delivery_date >= start,
            Delivery.delivery_date < end
        )
        if customer_id:
            query = query.filter(Delivery.customer_id == customer_id)
        for item in query.all():
            if not _counts_for_order(item):
                continue
            key = month_key(item.delivery.delivery_date)
            delivery_ids[key].add(item.delivery_id)
            delivered[key].append(_delivered_amount(item))

        rows = []
        for y, m in months:
            key = f"{y}-{m:02d}"
            rows.append({
                "year_month": key,
                "month_index": m - 1,
                "orders": len(order_ids[key]),
                "deliveries": len(delivery_ids[key]),
                "revenue": sum_in_currency(revenue[key], currency, rates),
                "delivered_revenue": sum_in_currency(delivered[key], currency, rates),
            })
        return rows

    # ===================== YEAR RANGE =====================

    @staticmethod
    def get_year_range(db: Session, today: Optional[date] = None) -> dict:
        """First and last order year; the current year when there are no orders"""
        first, last = db.query(
            func.min(Order.order_date),
            func.max(Order.order_date)
        ).filter(Order.deleted_at.is_(None)).one()
        current = (today or utcnow().date()).year
        return {
            "min_year": as_utc(first).year if first else current,
            "max_year": as_utc(last).year if last else current,
        }
