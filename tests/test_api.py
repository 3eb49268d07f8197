"""CRUD, stock and report endpoints through the FastAPI app."""

import uuid
from types import SimpleNamespace

import httpx
import pytest

from stockdesk.api import reports as reports_module
from stockdesk.api import router as router_module
from stockdesk.lib.money import FALLBACK_RATES
from stockdesk.services import ExchangeRateService

ORDER_DATE = "2025-03-10T09:00:00+00:00"


def _customer(client, code="C001", name="Acme Makina"):
    response = client.post("/api/customers", json={"code": code, "name": name})
    assert response.status_code == 201, response.text
    return response.json()


def _product(client, code="P-100", stock=0, **extra):
    payload = {"code": code, "name": f"Product {code}", "price": 1500, "stock_quantity": stock}
    payload.update(extra)
    response = client.post("/api/products", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def _order(client, customer, product, quantity=10, number="S-1"):
    response = client.post("/api/orders", json={
        "order_number": number,
        "order_date": ORDER_DATE,
        "customer_id": customer["id"],
        "items": [{"product_id": product["id"], "quantity": quantity, "unit_price": 1500}],
    })
    assert response.status_code == 201, response.text
    return response.json()


def _stock(client, product_id):
    return client.get(f"/api/products/{product_id}").json()["stock_quantity"]


class TestCustomers:

    def test_crud(self, auth_client):
        customer = _customer(auth_client)

        updated = auth_client.put(
            f"/api/customers/{customer['id']}", json={"code": "C001", "name": "Acme Makina A.Ş."}
        )
        assert updated.json()["name"] == "Acme Makina A.Ş."

        assert auth_client.delete(f"/api/customers/{customer['id']}").json() == {"ok": True}
        missing = auth_client.get(f"/api/customers/{customer['id']}")
        assert missing.status_code == 404
        assert missing.json()["error"]["code"] == "CUSTOMER_NOT_FOUND"

    def test_blank_name_is_a_field_error(self, auth_client):
        response = auth_client.post("/api/customers", json={"code": "C9", "name": "  "})
        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"name": "required"}

    def test_duplicate_code(self, auth_client):
        _customer(auth_client)
        response = auth_client.post("/api/customers", json={"code": "C001", "name": "Other"})
        assert response.status_code == 409

    @pytest.mark.parametrize("raw, expected", [("3", 10), ("1000", 100), ("abc", 100), ("25", 25)])
    def test_page_size_is_clamped(self, auth_client, raw, expected):
        body = auth_client.get("/api/customers", params={"page_size": raw}).json()
        assert body["page_size"] == expected

    def test_search_and_paging_envelope(self, auth_client):
        for i in range(12):
            _customer(auth_client, code=f"C{i:03d}", name=f"Firma {i}")

        body = auth_client.get("/api/customers", params={"page_size": 10, "page_index": 1}).json()
        assert body["total"] == 12
        assert body["page_count"] == 2
        assert [c["code"] for c in body["data"]] == ["C010", "C011"]

        body = auth_client.get("/api/customers", params={"q": "firma 11"}).json()
        assert [c["code"] for c in body["data"]] == ["C011"]


class TestProducts:

    def test_initial_stock_goes_through_ledger(self, auth_client):
        product = _product(auth_client, stock=12)

        detail = auth_client.get(f"/api/products/{product['id']}").json()
        assert detail["stock_quantity"] == 12
        assert [m["quantity"] for m in detail["movements"]] == [12]
        assert detail["movements"][0]["notes"] == "Initial stock"

    def test_negative_price_rejected(self, auth_client):
        response = auth_client.post("/api/products", json={"code": "X", "name": "X", "price": -1})
        assert response.status_code == 400
        assert "price" in response.json()["error"]["details"]

    def test_cannot_remove_product_with_stock(self, auth_client):
        product = _product(auth_client, stock=1)
        response = auth_client.delete(f"/api/products/{product['id']}")
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "PRODUCT_HAS_STOCK"

    def test_stock_action_on_update(self, auth_client):
        product = _product(auth_client, stock=5)
        response = auth_client.put(f"/api/products/{product['id']}", json={
            "notes": "raf B3", "stock_action": "OUT", "stock_action_quantity": 2
        })
        assert response.status_code == 200
        assert response.json()["stock_quantity"] == 3
        assert response.json()["notes"] == "raf B3"

    def test_material_and_low_stock_filters(self, auth_client):
        _product(auth_client, code="A", material="çelik", min_stock_level=5, stock=1)
        _product(auth_client, code="B", material="pirinç", min_stock_level=0, stock=1)

        body = auth_client.get("/api/products", params={"material": "ÇELİK"}).json()
        assert [p["code"] for p in body["data"]] == ["A"]

        body = auth_client.get("/api/products", params={"low_stock": "true"}).json()
        assert [p["code"] for p in body["data"]] == ["A"]
        assert body["data"][0]["is_low_stock"] is True

    def test_adjust_stock(self, auth_client):
        product = _product(auth_client, stock=10)
        response = auth_client.post(f"/api/products/{product['id']}/adjust-stock", json={"delta": -3})
        assert response.status_code == 200
        assert response.json()["quantity"] == -3
        assert _stock(auth_client, product["id"]) == 7

    def test_unknown_product(self, auth_client):
        response = auth_client.get("/api/products/00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "PRODUCT_NOT_FOUND"


class TestStockEndpoints:

    def test_movement_lifecycle(self, auth_client):
        product = _product(auth_client)

        for payload in (
            {"movement_type": "IN", "quantity": 100},
            {"movement_type": "OUT", "quantity": 30},
            {"movement_type": "ADJUSTMENT", "quantity": 5, "direction": "decrease"},
        ):
            response = auth_client.post("/api/stock/movements", json={"product_id": product["id"], **payload})
            assert response.status_code == 201, response.text

        assert _stock(auth_client, product["id"]) == 65
        body = auth_client.get("/api/stock/movements", params={"product_id": product["id"]}).json()
        assert body["total"] == 3
        assert (body["in_count"], body["out_count"]) == (1, 2)
        assert sum(m["quantity"] for m in body["data"]) == 65
        assert {m["created_by_username"] for m in body["data"]} == {"depo"}

    @pytest.mark.parametrize("quantity", [0, -1, "abc", 1.5])
    def test_invalid_quantity(self, auth_client, quantity):
        product = _product(auth_client, stock=5)
        response = auth_client.post("/api/stock/movements", json={
            "product_id": product["id"], "movement_type": "OUT", "quantity": quantity
        })
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert "quantity" in error["details"]
        assert _stock(auth_client, product["id"]) == 5

    def test_edit_preserves_sign(self, auth_client):
        product = _product(auth_client, stock=20)
        created = auth_client.post("/api/stock/movements", json={
            "product_id": product["id"], "movement_type": "OUT", "quantity": 5
        }).json()

        response = auth_client.put(f"/api/stock/movements/{created['id']}", json={"quantity": 8})

        assert response.json()["quantity"] == -8
        assert _stock(auth_client, product["id"]) == 12

    def test_transfer(self, auth_client):
        source = _product(auth_client, code="A", stock=10)
        target = _product(auth_client, code="B")

        response = auth_client.post("/api/stock/transfers", json={
            "from_product_id": source["id"], "to_product_id": target["id"], "quantity": 4
        })

        assert response.status_code == 201
        assert response.json() == {"ok": True}
        assert (_stock(auth_client, source["id"]), _stock(auth_client, target["id"])) == (6, 4)

    def test_transfer_without_target(self, auth_client):
        source = _product(auth_client, stock=10)
        response = auth_client.post("/api/stock/transfers", json={"from_product_id": source["id"], "quantity": 4})
        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"to_product_id": "select target product"}

    def test_transfer_to_unknown_product(self, auth_client):
        source = _product(auth_client, stock=10)
        response = auth_client.post("/api/stock/transfers", json={
            "from_product_id": source["id"], "to_product_id": str(uuid.uuid4()), "quantity": 4
        })
        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"to_product_id": "select target product"}
        assert _stock(auth_client, source["id"]) == 10

    @pytest.mark.parametrize("quantity", [0, -1, "abc", 1.5])
    def test_transfer_and_edit_reject_invalid_quantity(self, auth_client, quantity):
        source = _product(auth_client, code="A", stock=10)
        target = _product(auth_client, code="B")
        created = auth_client.post("/api/stock/movements", json={
            "product_id": source["id"], "movement_type": "OUT", "quantity": 2
        }).json()

        transfer = auth_client.post("/api/stock/transfers", json={
            "from_product_id": source["id"], "to_product_id": target["id"], "quantity": quantity
        })
        edit = auth_client.put(f"/api/stock/movements/{created['id']}", json={"quantity": quantity})

        for response in (transfer, edit):
            assert response.status_code == 400
            assert "quantity" in response.json()["error"]["details"]
        assert (_stock(auth_client, source["id"]), _stock(auth_client, target["id"])) == (8, 0)
        body = auth_client.get("/api/stock/movements", params={"product_id": source["id"]}).json()
        assert body["total"] == 2

    def test_insufficient_stock_details(self, auth_client):
        product = _product(auth_client, stock=2)
        response = auth_client.post("/api/stock/movements", json={
            "product_id": product["id"], "movement_type": "OUT", "quantity": 3
        })
        assert response.status_code == 409
        assert response.json()["error"]["details"]["available"] == 2

    def test_integrity_report_is_empty_for_consistent_ledger(self, auth_client):
        _product(auth_client, stock=3)
        assert auth_client.get("/api/stock/integrity").json() == []
        assert auth_client.post("/api/stock/reconcile").json() == {"reconciled": 0}


class TestOrdersAndDeliveries:

    def test_order_status_follows_stock(self, auth_client):
        customer = _customer(auth_client)
        stocked = _product(auth_client, code="A", stock=10)
        empty = _product(auth_client, code="B")

        assert _order(auth_client, customer, stocked, number="S-1")["status"] == "HAZIR"
        assert _order(auth_client, customer, empty, number="S-2")["status"] == "KAYIT"

        body = auth_client.get("/api/orders", params={"status": "HAZIR|KAYIT"}).json()
        assert body["total"] == 2
        body = auth_client.get("/api/orders", params={"status": "HAZIR"}).json()
        assert [o["order_number"] for o in body["data"]] == ["S-1"]

    def test_order_without_lines(self, auth_client):
        customer = _customer(auth_client)
        response = auth_client.post("/api/orders", json={
            "order_number": "S-1", "order_date": ORDER_DATE, "customer_id": customer["id"]
        })
        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"items": "add at least one line"}

    def test_delivery_and_return_rows(self, auth_client):
        customer = _customer(auth_client)
        product = _product(auth_client, stock=20)
        order = _order(auth_client, customer, product)
        item_id = order["items"][0]["id"]

        delivery = auth_client.post("/api/deliveries", json={
            "customer_id": customer["id"], "delivery_number": "D-1", "delivery_date": ORDER_DATE,
            "items": [{"order_item_id": item_id, "delivered_quantity": 10}],
        })
        assert delivery.status_code == 201, delivery.text
        assert delivery.json()["footer"]["total_price"] == 15000
        assert auth_client.get(f"/api/orders/{order['id']}").json()["status"] == "BİTTİ"

        returned = auth_client.post("/api/deliveries", json={
            "customer_id": customer["id"], "delivery_number": "R-1", "delivery_date": ORDER_DATE,
            "kind": "RETURN", "items": [{"order_item_id": item_id, "delivered_quantity": 10}],
        }).json()
        rows = auth_client.get(f"/api/deliveries/{returned['id']}/rows").json()
        assert rows["rows"][0]["delivered_quantity"] == -10
        assert rows["rows"][0]["total_price"] == -15000
        assert rows["footer"] == {
            "delivered_quantity": -10, "total_price": -15000, "currency": "TRY", "mixed_currency": False
        }
        assert _stock(auth_client, product["id"]) == 20

        history = auth_client.get(f"/api/orders/{order['id']}/deliveries").json()
        assert sorted(d["total_amount"] for d in history) == [-15000, 15000]

    def test_delivery_line_needs_exactly_one_item(self, auth_client):
        customer = _customer(auth_client)
        response = auth_client.post("/api/deliveries", json={
            "customer_id": customer["id"], "delivery_number": "D-1", "delivery_date": ORDER_DATE,
            "items": [{"delivered_quantity": 1}],
        })
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_removing_delivery_restores_stock(self, auth_client):
        customer = _customer(auth_client)
        product = _product(auth_client, stock=20)
        order = _order(auth_client, customer, product)
        delivery = auth_client.post("/api/deliveries", json={
            "customer_id": customer["id"], "delivery_number": "D-1", "delivery_date": ORDER_DATE,
            "items": [{"order_item_id": order["items"][0]["id"], "delivered_quantity": 4}],
        }).json()
        assert _stock(auth_client, product["id"]) == 16

        assert auth_client.delete(f"/api/deliveries/{delivery['id']}").json() == {"ok": True}
        assert _stock(auth_client, product["id"]) == 20
        assert auth_client.get(f"/api/deliveries/{delivery['id']}").status_code == 404

    def test_last_numbers(self, auth_client):
        customer = _customer(auth_client)
        product = _product(auth_client, stock=5)
        _order(auth_client, customer, product, quantity=1, number="S-41")
        body = auth_client.get("/api/orders/last-number", params={"customer_id": customer["id"]}).json()
        assert body == {"order_number": "S-41"}


class TestReports:

    def test_product_demand(self, auth_client):
        customer = _customer(auth_client)
        product = _product(auth_client)
        _order(auth_client, customer, product, quantity=10, number="S-1")
        _order(auth_client, customer, product, quantity=50, number="S-2")

        body = auth_client.get("/api/reports/product-demand").json()

        assert body["total"] == 1
        row = body["data"][0]
        assert (row["ordered_times"], row["total_pieces"], row["avg_pieces_per_order"]) == (2, 60, 30.0)
        assert row["last_order_date"].startswith("2025-03-10")

    def test_inverted_date_range_rejected(self, auth_client):
        response = auth_client.get(
            "/api/reports/product-demand", params={"date_range": "2025-03-10|2025-03-01"}
        )
        assert response.status_code == 400
        assert "end_date" in response.json()["error"]["details"]

    def test_dashboard_metrics(self, auth_client, monkeypatch):
        rates = SimpleNamespace(get_rates=lambda: dict(FALLBACK_RATES))
        monkeypatch.setattr(reports_module, "get_exchange_rate_service", lambda: rates)
        customer = _customer(auth_client)
        product = _product(auth_client)
        _order(auth_client, customer, product, quantity=10, number="S-1")

        metrics = auth_client.get("/api/reports/key-metrics", params={"year": 2025}).json()
        assert (metrics["total_orders"], metrics["total_revenue"]) == (1, 15000)
        assert metrics["formatted"]["total_revenue"] == "₺150,00"

        months = auth_client.get("/api/reports/monthly-overview", params={"year": 2025}).json()
        assert len(months) == 12
        assert (months[2]["year_month"], months[2]["orders"]) == ("2025-03", 1)

        assert auth_client.get("/api/orders/year-range").json() == {"min_year": 2025, "max_year": 2025}

    def test_key_metrics_unknown_currency(self, auth_client, monkeypatch):
        rates = SimpleNamespace(get_rates=lambda: dict(FALLBACK_RATES))
        monkeypatch.setattr(reports_module, "get_exchange_rate_service", lambda: rates)

        response = auth_client.get("/api/reports/key-metrics", params={"currency": "GBP"})
        assert response.status_code == 400
        assert "currency" in response.json()["error"]["details"]


class TestMisc:

    def test_health_and_status(self, client):
        assert client.get("/health").json()["status"] == "healthy"
        assert client.get("/api/status").json()["status"] == "ok"

    def test_exchange_rates_endpoint(self, auth_client, monkeypatch):
        def handler(request):
            return httpx.Response(503)

        service = ExchangeRateService(client=httpx.Client(transport=httpx.MockTransport(handler)))
        monkeypatch.setattr(router_module, "get_exchange_rate_service", lambda: service)

        body = auth_client.get("/api/exchange-rates").json()
        assert body["USD/TRY"] == 41.724
