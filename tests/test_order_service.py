"""Order lifecycle: readiness, locking and soft delete."""

import pytest

from stockdesk.core.errors import AppError
from stockdesk.models import OrderStatus
from stockdesk.schemas.order import OrderItemCreate, OrderUpdate
from stockdesk.schemas.product import ProductUpdate
from stockdesk.services import OrderService, ProductService
from tests.helpers import ORDER_DATE, make_customer, make_delivery, make_order, make_product


class TestOrderStatus:

    def test_stock_in_promotes_waiting_orders(self, db):
        customer = make_customer(db)
        product = make_product(db, stock=2)
        order = make_order(db, customer, lines=[(product, 5, 100)])
        assert order.status == OrderStatus.KAYIT.value

        ProductService.update_product(
            db, product.id, ProductUpdate(stock_action="IN", stock_action_quantity=3)
        )

        db.refresh(order)
        assert order.status == OrderStatus.HAZIR.value

    def test_custom_only_order(self, db):
        customer = make_customer(db)
        order = make_order(db, customer, custom_lines=[("Torna işçiliği", 3, 2500)])
        assert order.is_custom_order is True
        assert order.status == OrderStatus.KAYIT.value
        assert order.total_amount == 7500

    def test_duplicate_number_per_customer(self, db):
        customer = make_customer(db)
        other = make_customer(db, code="C002", name="Diğer")
        product = make_product(db)
        make_order(db, customer, lines=[(product, 1, 100)])
        make_order(db, other, lines=[(product, 1, 100)])

        with pytest.raises(AppError) as exc:
            make_order(db, customer, lines=[(product, 1, 100)])
        assert exc.value.code == "ALREADY_EXISTS"


class TestUpdateOrder:

    def _update(self, order, customer, product, quantity):
        return OrderUpdate(
            order_number=order.order_number,
            order_date=ORDER_DATE,
            customer_id=customer.id,
            items=[OrderItemCreate(product_id=product.id, quantity=quantity, unit_price=100)],
        )

    def test_replaces_lines(self, db):
        customer = make_customer(db)
        product = make_product(db)
        order = make_order(db, customer, lines=[(product, 1, 100)])

        updated = OrderService.update_order(db, order.id, self._update(order, customer, product, 7))

        assert [item.quantity for item in updated.items] == [7]

    def test_locked_once_delivered(self, db):
        customer = make_customer(db)
        product = make_product(db, stock=5)
        order = make_order(db, customer, lines=[(product, 2, 100)])
        make_delivery(db, customer, [(order.items[0], 1)])

        with pytest.raises(AppError) as exc:
            OrderService.update_order(db, order.id, self._update(order, customer, product, 3))
        assert exc.value.code == "ORDER_LOCKED"

    def test_removed_order_is_not_found(self, db):
        customer = make_customer(db)
        order = make_order(db, customer, custom_lines=[("Montaj", 1, 100)])
        OrderService.remove_order(db, order.id)

        with pytest.raises(AppError) as exc:
            OrderService.require_order(db, order.id)
        assert exc.value.code == "ORDER_NOT_FOUND"
