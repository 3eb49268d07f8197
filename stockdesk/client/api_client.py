"""
StockDesk API client

Thin httpx wrapper: every non-2xx response is raised as the AppError the
server described, so callers handle the same codes on both sides.
"""
import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

import httpx

from stockdesk.core.errors import AppError
from stockdesk.lib.filters import encode_filters_to_params

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


class StockDeskClient:
    """Client for the /api endpoints"""

    def __init__(
        self,
        base_url: str = "http://localhost:9202/api",
        client: Optional[httpx.Client] = None,
        token: Optional[str] = None,
    ):
        self.http = client or httpx.Client(base_url=base_url, timeout=DEFAULT_TIMEOUT)
        self.token = token

    # ============== Transport ==============

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(self, method: str, path: str, json: Any = None, params: Optional[dict] = None) -> Any:
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        try:
            response = self.http.request(method, path, json=json, params=params, headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise AppError("NETWORK_ERROR", details=str(e))

        if response.is_success:
            return response.json() if response.content else None

        try:
            payload = response.json()
        except ValueError:
            payload = None
        raise AppError.from_payload(payload, status=response.status_code)

    def _list(self, path: str, filters: Optional[List[dict]] = None, **params) -> dict:
        query = dict(params)
        if filters:
            query.update(encode_filters_to_params(filters))
        return self.request("GET", path, params=query)

    # ============== Auth ==============

    def login(self, username: str, password: str) -> dict:
        data = self.request("POST", "/auth/login", json={"username": username, "password": password})
        self.token = data["access_token"]
        return data

    def logout(self) -> None:
        try:
            if self.token:
                self.request("POST", "/auth/logout")
        finally:
            self.token = None

    def me(self) -> dict:
        return self.request("GET", "/auth/me")

    # ============== Catalog ==============

    def list_customers(self, filters: Optional[List[dict]] = None, **params) -> dict:
        return self._list("/customers", filters, **params)

    def create_customer(self, data: dict) -> dict:
        return self.request("POST", "/customers", json=data)

    def delete_customer(self, customer_id: UUID) -> dict:
        return self.request("DELETE", f"/customers/{customer_id}")

    def list_products(self, filters: Optional[List[dict]] = None, **params) -> dict:
        return self._list("/products", filters, **params)

    def get_product(self, product_id: UUID) -> dict:
        return self.request("GET", f"/products/{product_id}")

    def create_product(self, data: dict) -> dict:
        return self.request("POST", "/products", json=data)

    def delete_product(self, product_id: UUID) -> dict:
        return self.request("DELETE", f"/products/{product_id}")

    # ============== Stock ==============

    def create_stock_movement(self, data: dict) -> dict:
        return self.request("POST", "/stock/movements", json=data)

    def update_stock_movement(self, movement_id: UUID, quantity: int, notes: Optional[str] = None) -> dict:
        return self.request("PUT", f"/stock/movements/{movement_id}", json={"quantity": quantity, "notes": notes})

    def create_stock_transfer(self, data: dict) -> dict:
        return self.request("POST", "/stock/transfers", json=data)

    def list_stock_movements(self, filters: Optional[List[dict]] = None, **params) -> dict:
        return self._list("/stock/movements", filters, **params)

    # ============== Orders & deliveries ==============

    def list_orders(self, filters: Optional[List[dict]] = None, **params) -> dict:
        return self._list("/orders", filters, **params)

    def create_order(self, data: dict) -> dict:
        return self.request("POST", "/orders", json=data)

    def list_deliveries(self, filters: Optional[List[dict]] = None, **params) -> dict:
        return self._list("/deliveries", filters, **params)

    def create_delivery(self, data: dict) -> dict:
        return self.request("POST", "/deliveries", json=data)

    def delete_delivery(self, delivery_id: UUID) -> dict:
        return self.request("DELETE", f"/deliveries/{delivery_id}")

    def product_demand(self, filters: Optional[List[dict]] = None, **params) -> dict:
        return self._list("/reports/product-demand", filters, **params)

    def key_metrics(self, **params) -> dict:
        return self.request("GET", "/reports/key-metrics", params=params)

    def monthly_overview(self, **params) -> List[dict]:
        return self.request("GET", "/reports/monthly-overview", params=params)

    def order_year_range(self) -> dict:
        return self.request("GET", "/orders/year-range")

    def exchange_rates(self) -> Dict[str, float]:
        return self.request("GET", "/exchange-rates")
