"""Repository module for the durable-storage mirrors of session state.

This module contains repository classes that read and write the product snapshot,
the cart lines and the discount state through the PersistentStore. Every load
degrades gracefully: unusable entries are skipped and the rest kept; nothing here
raises on bad stored data.
"""
import logging
from typing import Any, List, Type, TypeVar

from pydantic import ValidationError

from ECommerceStorefront.models import CartItem, DiscountState, Product, StorefrontModel
from ECommerceStorefront.storage import PersistentStore

logger = logging.getLogger(__name__)

PRODUCTS_STORAGE_KEY = "aa2000-products"
CART_STORAGE_KEY = "aa2000-cart"
DISCOUNT_STORAGE_KEY = f"{CART_STORAGE_KEY}-discount"

ModelT = TypeVar("ModelT", bound=StorefrontModel)


def _validate_entries(model: Type[ModelT], raw: List[Any], what: str) -> List[ModelT]:
    """Validate each stored entry on its own; unusable entries are dropped, the rest kept."""
    entries: List[ModelT] = []
    for index, entry in enumerate(raw):
        try:
            entries.append(model.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"Skipping stored {what} #{index}: {e.error_count()} errors")
    return entries


class LocalProductRepository:
    """Repository for the locally cached product list.

    Used as the catalog's source of truth while the remote API is unreachable.
    """

    def __init__(self, store: PersistentStore, key: str = PRODUCTS_STORAGE_KEY):
        self._store = store
        self._key = key

    def load_products(self) -> List[Product]:
        raw = self._store.load(self._key, default=[], expected_type=list)
        return _validate_entries(Product, raw, "product")

    def save_products(self, products: List[Product]) -> None:
        self._store.save(self._key, [product.to_wire() for product in products])


class CartRepository:
    """Repository for cart lines and discount state.

    The two records live under separate keys and load independently, so a corrupt
    discount record never costs the customer their cart.
    """

    def __init__(self, store: PersistentStore,
                 items_key: str = CART_STORAGE_KEY,
                 discount_key: str = DISCOUNT_STORAGE_KEY):
        self._store = store
        self._items_key = items_key
        self._discount_key = discount_key

    def load_items(self) -> List[CartItem]:
        raw = self._store.load(self._items_key, default=[], expected_type=list)
        return _validate_entries(CartItem, raw, "cart line")

    def save_items(self, items: List[CartItem]) -> None:
        self._store.save(self._items_key, [item.to_wire() for item in items])

    def load_discount(self) -> DiscountState:
        raw = self._store.load(self._discount_key, default={}, expected_type=dict)
        try:
            return DiscountState.model_validate(raw)
        except ValidationError:
            logger.warning("Stored discount state is unusable, resetting discount")
            return DiscountState()

    def save_discount(self, state: DiscountState) -> None:
        self._store.save(self._discount_key, state.to_wire())
