"""
Storefront REST client: wraps the catalog/order/back-office HTTP API.

Every call is a plain request/response. Non-success responses raise ApiError with
the server's message; a 404 on a single-entity read returns None, and on a write
raises the matching not-found exception.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Type

import httpx

from ECommerceStorefront.exceptions import (
    ApiError,
    ApiUnavailable,
    CustomerNotFound,
    EntityNotFound,
    InvalidCredentials,
    ProductNotFound,
    SupplierNotFound,
)
from ECommerceStorefront.models import (
    AdminSession,
    Customer,
    CustomerDraft,
    Order,
    OrderPayload,
    Product,
    ProductDraft,
    ProductUpdate,
    Supplier,
    SupplierDraft,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        return body.get("error") or body.get("message") or default
    return default


def _as_list(data: Any) -> List[Any]:
    return data if isinstance(data, list) else []


class StorefrontApiClient:
    """Async client for the storefront API.

    Args:
        base_url: API root, e.g. "http://localhost:3001". Empty means same origin.
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport, used to fake the server in tests
    """

    def __init__(self, base_url: str = "", timeout: float = DEFAULT_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "StorefrontApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.debug(f"{method} {path} failed: {e}")
            raise ApiUnavailable(f"Could not reach the storefront API: {e}") from e

    async def _get_list(self, path: str, failure: str, params: Optional[Dict[str, str]] = None) -> List[Any]:
        response = await self._request("GET", path, params=params)
        if not response.is_success:
            raise ApiError(failure, response.status_code)
        return _as_list(response.json())

    async def _get_one(self, path: str, failure: str) -> Optional[Any]:
        response = await self._request("GET", path)
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise ApiError(failure, response.status_code)
        return response.json()

    async def _send(self, method: str, path: str, body: Dict[str, Any], failure: str,
                    not_found: Optional[Type[EntityNotFound]] = None) -> Any:
        response = await self._request(method, path, json=body)
        if response.status_code == 404 and not_found is not None:
            raise not_found(_error_message(response, failure))
        if not response.is_success:
            raise ApiError(_error_message(response, failure), response.status_code)
        return response.json()

    async def _delete(self, path: str, failure: str, not_found: Type[EntityNotFound]) -> None:
        response = await self._request("DELETE", path)
        if response.status_code == 404:
            raise not_found(_error_message(response, failure))
        if response.status_code != 204 and not response.is_success:
            raise ApiError(_error_message(response, failure), response.status_code)

    # Products

    async def fetch_unassigned_products(self) -> List[Product]:
        data = await self._get_list("/api/products/unassigned", "Failed to fetch unassigned products")
        return [Product.model_validate(p) for p in data]

    async def fetch_products_by_supplier(self, supplier_id: int, search: Optional[str] = None) -> List[Product]:
        params = {"search": search} if search else None
        data = await self._get_list(f"/api/suppliers/{supplier_id}/products", "Failed to fetch products", params)
        return [Product.model_validate(p) for p in data]

    async def fetch_products(self) -> List[Product]:
        """Fetch every product: each supplier's products plus the unassigned ones.

        Products listed under a supplier always carry that supplier's id and name.
        The combined list is ordered by id. Any failed listing fails the whole fetch.
        """
        suppliers, unassigned = await asyncio.gather(
            self.fetch_suppliers(),
            self.fetch_unassigned_products(),
        )
        per_supplier = await asyncio.gather(
            *(self.fetch_products_by_supplier(s.id) for s in suppliers)
        )
        combined = list(unassigned)
        for supplier, products in zip(suppliers, per_supplier):
            combined.extend(
                p.model_copy(update={"supplier_id": supplier.id, "supplier_name": supplier.name})
                for p in products
            )
        combined.sort(key=lambda p: p.id)
        return combined

    async def fetch_product(self, product_id: int) -> Optional[Product]:
        data = await self._get_one(f"/api/products/{product_id}", "Failed to fetch product")
        return Product.model_validate(data) if data is not None else None

    async def create_product(self, draft: ProductDraft) -> Product:
        data = await self._send("POST", "/api/products", draft.to_wire(exclude_none=True),
                                "Failed to create product")
        return Product.model_validate(data)

    async def update_product(self, product_id: int, changes: ProductUpdate) -> Product:
        data = await self._send("PUT", f"/api/products/{product_id}", changes.to_wire(exclude_unset=True),
                                "Failed to update product", ProductNotFound)
        return Product.model_validate(data)

    async def delete_product(self, product_id: int) -> None:
        await self._delete(f"/api/products/{product_id}", "Failed to delete product", ProductNotFound)

    # Orders

    async def submit_order(self, payload: OrderPayload) -> Order:
        data = await self._send("POST", "/api/orders", payload.to_wire(exclude_none=True),
                                "Failed to submit order")
        return Order.model_validate(data)

    async def fetch_orders(self) -> List[Order]:
        data = await self._get_list("/api/orders", "Failed to fetch orders")
        return [Order.model_validate(o) for o in data]

    async def fetch_order(self, order_id: int) -> Optional[Order]:
        data = await self._get_one(f"/api/orders/{order_id}", "Failed to fetch order")
        return Order.model_validate(data) if data is not None else None

    # Suppliers

    async def fetch_suppliers(self) -> List[Supplier]:
        data = await self._get_list("/api/suppliers", "Failed to fetch suppliers")
        return [Supplier.model_validate(s) for s in data]

    async def fetch_supplier(self, supplier_id: int) -> Optional[Supplier]:
        data = await self._get_one(f"/api/suppliers/{supplier_id}", "Failed to fetch supplier")
        return Supplier.model_validate(data) if data is not None else None

    async def create_supplier(self, draft: SupplierDraft) -> Supplier:
        data = await self._send("POST", "/api/suppliers", draft.to_wire(),
                                "Failed to create supplier")
        return Supplier.model_validate(data)

    async def update_supplier(self, supplier_id: int, draft: SupplierDraft) -> Supplier:
        data = await self._send("PUT", f"/api/suppliers/{supplier_id}", draft.to_wire(exclude_unset=True),
                                "Failed to update supplier", SupplierNotFound)
        return Supplier.model_validate(data)

    async def delete_supplier(self, supplier_id: int) -> None:
        await self._delete(f"/api/suppliers/{supplier_id}", "Failed to delete supplier", SupplierNotFound)

    # Customers

    async def fetch_customers(self) -> List[Customer]:
        data = await self._get_list("/api/customers", "Failed to fetch customers")
        return [Customer.model_validate(c) for c in data]

    async def create_customer(self, draft: CustomerDraft) -> Customer:
        data = await self._send("POST", "/api/customers", draft.to_wire(),
                                "Failed to create customer")
        return Customer.model_validate(data)

    async def update_customer(self, customer_id: int, draft: CustomerDraft) -> Customer:
        data = await self._send("PUT", f"/api/customers/{customer_id}", draft.to_wire(exclude_unset=True),
                                "Failed to update customer", CustomerNotFound)
        return Customer.model_validate(data)

    async def delete_customer(self, customer_id: int) -> None:
        await self._delete(f"/api/customers/{customer_id}", "Failed to delete customer", CustomerNotFound)

    # Back office

    async def login(self, username: str, password: str) -> AdminSession:
        """Check admin credentials.

        Raises:
            InvalidCredentials: If the username or password is wrong
            ApiError: For any other rejection, e.g. missing fields
        """
        response = await self._request("POST", "/api/auth/login",
                                       json={"username": username, "password": password})
        if response.status_code == 401:
            raise InvalidCredentials(_error_message(response, "Invalid username or password"), 401)
        if not response.is_success:
            raise ApiError(_error_message(response, "Login failed"), response.status_code)
        return AdminSession.model_validate(response.json())
