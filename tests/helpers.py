"""Shared test helpers: fake API server, failing storage backend, sample data."""

import asyncio
import json
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from ECommerceStorefront.models import Product

VALID_CHECKOUT = {
    "fullName": "Juan Dela Cruz",
    "email": "juan@example.com",
    "phone": "09171234567",
    "address": "12 Rizal Street",
    "city": "Manila",
    "zipCode": "1000",
    "cardNumber": "4111 1111 1111 1111",
    "expiryDate": "12/29",
    "cvv": "123",
}


class FailingBackend:
    """Storage backend that fails every read and write."""

    def get_item(self, key: str) -> Optional[str]:
        raise OSError("storage unavailable")

    def set_item(self, key: str, value: str) -> None:
        raise OSError("quota exceeded")


class FakeStorefrontServer:
    """In-memory stand-in for the storefront REST API, served through httpx.MockTransport.

    Set `down` to simulate an unreachable server, `fail_status` to answer every request
    with that status, `gate` to hold order submissions until the event is set, and
    `crash` to make the next request raise that exception from the transport.
    """

    def __init__(self):
        self.products: Dict[int, Dict[str, Any]] = {}
        self.suppliers: Dict[int, Dict[str, Any]] = {}
        self.customers: Dict[int, Dict[str, Any]] = {}
        self.orders: Dict[int, Dict[str, Any]] = {}
        self.requests: List[httpx.Request] = []
        self.down = False
        self.fail_status: Optional[int] = None
        self.fail_body: Dict[str, Any] = {"error": "Database error"}
        self.gate: Optional[asyncio.Event] = None
        self.crash: Optional[Exception] = None

    def add_product(self, **fields) -> Dict[str, Any]:
        product_id = fields.pop("id", max(self.products, default=0) + 1)
        product = {
            "id": product_id,
            "name": fields.get("name", f"Product {product_id}"),
            "category": fields.get("category", "CCTV"),
            "price": fields.get("price", 1000),
            "description": fields.get("description", ""),
            "fullDescription": fields.get("fullDescription", ""),
            "image": fields.get("image", ""),
            "specs": fields.get("specs", {}),
            "inclusions": fields.get("inclusions", []),
            "installationPrice": fields.get("installationPrice", 0),
            "supplierId": fields.get("supplierId"),
            "supplierName": None,
        }
        self.products[product_id] = product
        return product

    def add_supplier(self, supplier_id: int, name: str) -> None:
        self.suppliers[supplier_id] = {"id": supplier_id, "name": name, "contactPerson": "",
                                       "email": "", "phone": "", "address": "", "image": ""}

    @property
    def order_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == "POST" and r.url.path == "/api/orders"]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.crash is not None:
            error, self.crash = self.crash, None
            raise error
        if self.down:
            raise httpx.ConnectError("connection refused", request=request)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json=self.fail_body)

        path, method = request.url.path, request.method
        body = json.loads(request.content) if request.content else {}

        if match := re.fullmatch(r"/api/(suppliers|customers)(?:/(\d+))?", path):
            records = self.suppliers if match.group(1) == "suppliers" else self.customers
            record_id = int(match.group(2)) if match.group(2) else None
            return self._reference_entity(records, record_id, method, body)
        if path == "/api/products/unassigned":
            return httpx.Response(200, json=[p for p in self.products.values() if p["supplierId"] is None])
        if match := re.fullmatch(r"/api/suppliers/(\d+)/products", path):
            supplier_id = int(match.group(1))
            return httpx.Response(200, json=[p for p in self.products.values() if p["supplierId"] == supplier_id])
        if path == "/api/products" and method == "POST":
            if not body.get("name") or not body.get("category"):
                return httpx.Response(400, json={"error": "name and category are required"})
            created = self.add_product(**body)
            return httpx.Response(201, json=created)
        if match := re.fullmatch(r"/api/products/(\d+)", path):
            product = self.products.get(int(match.group(1)))
            if product is None:
                return httpx.Response(404, json={"error": "Product not found"})
            if method == "GET":
                return httpx.Response(200, json=product)
            if method == "PUT":
                product.update(body)
                return httpx.Response(200, json=product)
            if method == "DELETE":
                del self.products[product["id"]]
                return httpx.Response(204)
        if path == "/api/orders" and method == "POST":
            return await self._create_order(body)
        if path == "/api/orders":
            return httpx.Response(200, json=list(self.orders.values()))
        if match := re.fullmatch(r"/api/orders/(\d+)", path):
            order = self.orders.get(int(match.group(1)))
            if order is None:
                return httpx.Response(404, json={"error": "Order not found"})
            return httpx.Response(200, json=order)
        if path == "/api/auth/login":
            if body.get("username") == "admin" and body.get("password") == "secret":
                return httpx.Response(200, json={"ok": True, "username": "admin"})
            return httpx.Response(401, json={"error": "Invalid username or password"})
        return httpx.Response(404, json={"error": "Not found"})

    @staticmethod
    def _reference_entity(records: Dict[int, Dict[str, Any]], record_id: Optional[int],
                          method: str, body: Dict[str, Any]) -> httpx.Response:
        if record_id is None:
            if method == "POST":
                record_id = max(records, default=0) + 1
                records[record_id] = {"id": record_id, **body}
                return httpx.Response(201, json=records[record_id])
            return httpx.Response(200, json=list(records.values()))
        record = records.get(record_id)
        if record is None:
            return httpx.Response(404, json={"error": "Not found"})
        if method == "PUT":
            record.update(body)
        elif method == "DELETE":
            del records[record_id]
            return httpx.Response(204)
        return httpx.Response(200, json=record)

    async def _create_order(self, body: Dict[str, Any]) -> httpx.Response:
        if self.gate is not None:
            await self.gate.wait()
        if not body.get("items"):
            return httpx.Response(400, json={"error": "Order must have at least one item"})
        order_id = len(self.orders) + 1
        order = {
            "id": order_id,
            **{k: body[k] for k in ("fullName", "email", "phone", "address", "city", "zipCode",
                                    "subtotal", "discountAmount", "total")},
            "discountCode": body.get("discountCode", ""),
            "status": "pending",
            "createdAt": "2026-10-19T08:00:00",
        }
        self.orders[order_id] = order
        return httpx.Response(201, json=order)


def make_product(product_id: int = 1, name: str = "Camera", price: Any = 1000, **fields) -> Product:
    return Product(id=product_id, name=name, category=fields.pop("category", "CCTV"),
                   price=Decimal(str(price)), **fields)


