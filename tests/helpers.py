"""Builders for test data, going through the services like the API does."""

from datetime import datetime, timezone

from stockdesk.schemas.customer import CustomerCreate
from stockdesk.schemas.delivery import DeliveryCreate, DeliveryItemCreate
from stockdesk.schemas.order import CustomOrderItemCreate, OrderCreate, OrderItemCreate
from stockdesk.schemas.product import ProductCreate
from stockdesk.services import CustomerService, DeliveryService, OrderService, ProductService

USERNAME = "depo"
PASSWORD = "depo-sifre-123"

ORDER_DATE = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def make_customer(db, code="C001", name="Acme Makina"):
    return CustomerService.create_customer(db, CustomerCreate(code=code, name=name))


def make_product(db, code="P-100", stock=0, price=1500, customer=None, **extra):
    data = ProductCreate(
        code=code,
        name=extra.pop("name", f"Product {code}"),
        price=price,
        stock_quantity=stock,
        customer_id=customer.id if customer else None,
        **extra,
    )
    return ProductService.create_product(db, data)


def make_order(db, customer, lines=(), custom_lines=(), number="S-1", order_date=ORDER_DATE, **extra):
    """lines: (product, quantity, unit_price); custom_lines: (name, quantity, unit_price)"""
    data = OrderCreate(
        order_number=number,
        order_date=order_date,
        customer_id=customer.id,
        items=[
            OrderItemCreate(product_id=product.id, quantity=quantity, unit_price=price)
            for product, quantity, price in lines
        ],
        custom_items=[
            CustomOrderItemCreate(name=name, quantity=quantity, unit_price=price)
            for name, quantity, price in custom_lines
        ],
        **extra,
    )
    return OrderService.create_order(db, data)


def make_delivery(db, customer, items, number="D-1", kind="DELIVERY", delivery_date=ORDER_DATE):
    """items: (order_item, delivered_quantity); custom lines are detected by type"""
    rows = []
    for line, quantity in items:
        if line.line_kind == "custom":
            rows.append(DeliveryItemCreate(custom_order_item_id=line.id, delivered_quantity=quantity))
        else:
            rows.append(DeliveryItemCreate(order_item_id=line.id, delivered_quantity=quantity))
    data = DeliveryCreate(
        customer_id=customer.id,
        delivery_number=number,
        delivery_date=delivery_date,
        kind=kind,
        items=rows,
    )
    return DeliveryService.create_delivery(db, data)
