"""Data models for the storefront core.

This module defines the core data structures used throughout the storefront,
including products, cart lines, discount state, orders and the reference entities
managed from the back office. Wire and storage representations use camelCase keys;
attributes are snake_case. Money is held as Decimal and written as a JSON number.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

from ECommerceStorefront.enums import OrderStatus


def _float_to_str(value: Any) -> Any:
    # 0.2 must become Decimal("0.2"), not its binary expansion
    if isinstance(value, float):
        return str(value)
    return value


Amount = Annotated[
    Decimal,
    BeforeValidator(_float_to_str),
    PlainSerializer(float, return_type=float, when_used="json"),
]


class StorefrontModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self, **kwargs) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys, as sent to the API and durable storage."""
        return self.model_dump(mode="json", by_alias=True, **kwargs)


class Product(StorefrontModel):
    """Represents a catalog entry.

    Attributes:
        id: Unique identifier assigned by the backing store
        name: Display name
        category: Product category (e.g. 'CCTV')
        price: Unit price, never negative
        description: Short description shown on listings
        full_description: Long description shown on the details page
        image: Image URL, may be empty
        specs: Specification label -> value
        inclusions: Ordered list of what is in the box
        installation_price: Price of professional installation, 0 when not offered
        supplier_id: Owning supplier, None when unassigned
        supplier_name: Denormalized supplier display name
    """
    id: int
    name: str = ""
    category: str = ""
    price: Amount = Field(default=Decimal(0), ge=0)
    description: str = ""
    full_description: str = ""
    image: str = ""
    specs: Dict[str, str] = Field(default_factory=dict)
    inclusions: List[str] = Field(default_factory=list)
    installation_price: Amount = Field(default=Decimal(0), ge=0)
    supplier_id: Optional[int] = None
    supplier_name: Optional[str] = None

    @field_validator("specs", mode="before")
    @classmethod
    def coerce_specs(cls, v):
        if not isinstance(v, dict):
            return {}
        return {str(key): str(value) for key, value in v.items()}

    @field_validator("inclusions", mode="before")
    @classmethod
    def coerce_inclusions(cls, v):
        if not isinstance(v, list):
            return []
        return [str(item) for item in v]

    @field_validator("name", "category", "description", "full_description", "image", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return "" if v is None else str(v)

    @field_validator("price", "installation_price", mode="before")
    @classmethod
    def coerce_missing_amount(cls, v):
        return 0 if v is None else v


class ProductDraft(StorefrontModel):
    """A product that has not been assigned an identifier yet.

    specs and inclusions stay None when the admin form omits them; the catalog
    fills in empty defaults when it stores the product locally.
    """
    name: str
    category: str
    price: Amount = Field(default=Decimal(0), ge=0)
    description: str = ""
    full_description: str = ""
    image: str = ""
    specs: Optional[Dict[str, str]] = None
    inclusions: Optional[List[str]] = None
    installation_price: Amount = Field(default=Decimal(0), ge=0)
    supplier_id: Optional[int] = None
    supplier_name: Optional[str] = None


class ProductUpdate(StorefrontModel):
    """Partial product changes. Only fields that were explicitly set are applied."""
    name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[Amount] = Field(default=None, ge=0)
    description: Optional[str] = None
    full_description: Optional[str] = None
    image: Optional[str] = None
    specs: Optional[Dict[str, str]] = None
    inclusions: Optional[List[str]] = None
    installation_price: Optional[Amount] = Field(default=None, ge=0)
    supplier_id: Optional[int] = None
    supplier_name: Optional[str] = None

    @field_validator("name", "category", "price", "description", "full_description", "image",
                     "specs", "inclusions", "installation_price")
    @classmethod
    def reject_null(cls, v):
        # Only the supplier reference can be cleared.
        if v is None:
            raise ValueError("must not be null")
        return v

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class CartItem(StorefrontModel):
    """Represents a line in the shopping cart.

    Attributes:
        product: Snapshot of the product as displayed when it was added
        quantity: Number of units, at least 1
    """
    product: Product
    quantity: int = Field(default=1, ge=1)

    @property
    def line_total(self) -> Decimal:
        return self.product.price * self.quantity


class DiscountState(StorefrontModel):
    rate: Amount = Decimal(0)
    code: str = ""

    @field_validator("code", mode="before")
    @classmethod
    def coerce_code(cls, v):
        return "" if v is None else str(v)


class DiscountResult(StorefrontModel):
    accepted: bool
    message: str


class OrderItemPayload(StorefrontModel):
    id: int
    name: str
    price: Amount
    quantity: int = Field(ge=1)


class OrderPayload(StorefrontModel):
    """Order as submitted at checkout.

    discount_code is None when no code is applied and is left out of the request.
    """
    full_name: str
    email: str
    phone: str
    address: str
    city: str
    zip_code: str
    subtotal: Amount
    discount_amount: Amount
    discount_code: Optional[str] = None
    total: Amount
    items: List[OrderItemPayload]


class OrderItem(StorefrontModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    product_id: int
    product_name: str
    price: Amount
    quantity: int


class Order(StorefrontModel):
    """Immutable record of a completed checkout, as echoed by the order API."""
    model_config = ConfigDict(frozen=True)

    id: int
    full_name: str
    email: str
    phone: str
    address: str
    city: str
    zip_code: str
    subtotal: Amount
    discount_amount: Amount = Decimal(0)
    discount_code: str = ""
    total: Amount
    status: str = OrderStatus.PENDING.value
    created_at: Optional[datetime] = None
    items: Optional[List[OrderItem]] = None

    @field_validator("discount_code", mode="before")
    @classmethod
    def coerce_discount_code(cls, v):
        return "" if v is None else v


class SupplierDraft(StorefrontModel):
    name: str
    contact_person: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    image: str = ""


class Supplier(SupplierDraft):
    id: int
    created_at: Optional[datetime] = None


class CustomerDraft(StorefrontModel):
    name: str
    email: str = ""
    phone: str = ""
    address: str = ""


class Customer(CustomerDraft):
    id: int
    created_at: Optional[datetime] = None


class AdminSession(StorefrontModel):
    ok: bool
    username: str


@dataclass
class CatalogStats:
    """Summary figures for the admin dashboard.

    Attributes:
        product_count: Number of products in the catalog
        by_category: Category -> number of products in it
        category_count: Number of distinct categories
        total_value: Sum of all list prices
        average_price: total_value / product_count, 0 for an empty catalog
        top_by_price: Most expensive products, highest first
    """
    product_count: int
    by_category: Dict[str, int]
    category_count: int
    total_value: Decimal
    average_price: Decimal
    top_by_price: List[Product] = field(default_factory=list)
