"""Service layer for the storefront session state.

This module contains the services that own the in-memory session state: the product
catalog cache with its remote/local fallback, the cart ledger with its derived totals,
and the discount engine that is the only writer of the ledger's discount state.
Durable storage is reached only through the repository layer.
"""
import asyncio
import contextlib
import logging
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ECommerceStorefront.api import StorefrontApiClient
from ECommerceStorefront.enums import CatalogMode
from ECommerceStorefront.exceptions import ApiError, InvalidDiscountCode
from ECommerceStorefront.models import (
    CartItem,
    CatalogStats,
    DiscountResult,
    DiscountState,
    Product,
    ProductDraft,
    ProductUpdate,
)
from ECommerceStorefront.repository import CartRepository, LocalProductRepository
from ECommerceStorefront.strategy import DiscountStrategy, PromoCodeStrategy

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "All"
INVALID_CODE_MESSAGE = "Invalid promo code."
INSTALLATION_SUFFIX = " (with Installation)"

PROMO_RULES: Tuple[DiscountStrategy, ...] = (
    PromoCodeStrategy(code="aa2000", rate=Decimal("0.20")),
)


def installation_variant(product: Product) -> Product:
    """Snapshot of product with professional installation included.

    The variant keeps the product's id, so adding it to a cart that already holds
    the plain product increments that line instead of adding a second one.
    """
    return product.model_copy(update={
        "price": product.price + product.installation_price,
        "name": f"{product.name}{INSTALLATION_SUFFIX}",
    })


class DiscountEngine:
    """Evaluates promo codes against a closed rule set and updates the cart ledger.

    A rejected code always clears whatever discount was applied before.
    """

    def __init__(self, strategies: Tuple[DiscountStrategy, ...] = PROMO_RULES):
        self._strategies = strategies

    def match(self, code: Optional[str]) -> DiscountStrategy:
        """Find the rule that accepts code.

        Raises:
            InvalidDiscountCode: If no rule accepts it
        """
        for strategy in self._strategies:
            if strategy.validate_discount_code(code):
                return strategy
        raise InvalidDiscountCode(f"Discount code {code!r} is not valid")

    def evaluate(self, code: Optional[str]) -> Tuple[DiscountState, DiscountResult]:
        try:
            strategy = self.match(code)
        except InvalidDiscountCode:
            return DiscountState(), DiscountResult(accepted=False, message=INVALID_CODE_MESSAGE)
        return (
            strategy.discount_state(code),
            DiscountResult(accepted=True, message=strategy.success_message()),
        )

    def apply(self, ledger: "CartLedger", code: Optional[str]) -> DiscountResult:
        state, result = self.evaluate(code)
        ledger._set_discount(state)
        if result.accepted:
            logger.info(f"Discount code {state.code} applied at rate {state.rate}")
        else:
            logger.info("Rejected promo code, discount cleared")
        return result

    def is_valid_state(self, state: DiscountState) -> bool:
        """True when state is one this engine could have produced."""
        if state.rate == 0 and state.code == "":
            return True
        state_from_code, _ = self.evaluate(state.code)
        return state_from_code == state


class CartLedger:
    """Session cart: ordered lines, discount state and derived totals.

    Every mutation is mirrored to durable storage. Totals are recomputed on each
    read and never stored.

    Args:
        repository: Durable mirror for the lines and the discount state
        engine: Discount engine; the only way the discount state changes
    """

    def __init__(self, repository: CartRepository, engine: Optional[DiscountEngine] = None):
        self._repository = repository
        self._engine = engine or DiscountEngine()
        self._items: List[CartItem] = self._merge_duplicates(repository.load_items())

        discount = repository.load_discount()
        if not self._engine.is_valid_state(discount):
            logger.warning("Stored discount state was not produced by the discount engine, resetting it")
            discount = DiscountState()
        self._discount = discount

    @staticmethod
    def _merge_duplicates(items: List[CartItem]) -> List[CartItem]:
        merged: Dict[int, CartItem] = {}
        for item in items:
            existing = merged.get(item.product.id)
            if existing is None:
                merged[item.product.id] = item
            else:
                existing.quantity += item.quantity
        return list(merged.values())

    def _persist(self) -> None:
        self._repository.save_items(self._items)
        self._repository.save_discount(self._discount)

    def _find(self, product_id: int) -> Optional[CartItem]:
        return next((item for item in self._items if item.product.id == product_id), None)

    def _set_discount(self, state: DiscountState) -> None:
        self._discount = state
        self._persist()

    @property
    def items(self) -> List[CartItem]:
        return [item.model_copy(deep=True) for item in self._items]

    @property
    def is_empty(self) -> bool:
        return not self._items

    @property
    def discount_rate(self) -> Decimal:
        return self._discount.rate

    @property
    def applied_code(self) -> str:
        return self._discount.code

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self._items)

    @property
    def subtotal(self) -> Decimal:
        return sum((item.line_total for item in self._items), Decimal(0))

    @property
    def discount_amount(self) -> Decimal:
        return self.subtotal * self._discount.rate

    @property
    def total(self) -> Decimal:
        return self.subtotal - self.discount_amount

    def add_item(self, product: Product) -> None:
        """Add one unit of product.

        An existing line with the same product id gets quantity + 1, even when the
        snapshot passed in differs (e.g. its installation variant).
        """
        existing = self._find(product.id)
        if existing is not None:
            existing.quantity += 1
        else:
            self._items.append(CartItem(product=product.model_copy(deep=True), quantity=1))
        self._persist()

    def remove_item(self, product_id: int) -> None:
        remaining = [item for item in self._items if item.product.id != product_id]
        if len(remaining) == len(self._items):
            return
        self._items = remaining
        self._persist()

    def set_quantity(self, product_id: int, quantity: int) -> None:
        """Replace a line's quantity. Quantities below 1 are ignored; use remove_item."""
        if quantity < 1:
            return
        item = self._find(product_id)
        if item is None:
            return
        item.quantity = quantity
        self._persist()

    def clear(self) -> None:
        self._items = []
        self._discount = DiscountState()
        self._persist()

    def apply_discount(self, code: Optional[str]) -> DiscountResult:
        return self._engine.apply(self, code)


ProductChanges = Union[ProductUpdate, Mapping[str, Any]]


class ProductCatalog:
    """In-memory product list backed by the remote API or by local storage.

    The catalog is in exactly one CatalogMode. A successful fetch moves it to REMOTE;
    any failed fetch moves it to LOCAL, where the last saved snapshot becomes the
    source of truth and every change is written through to storage. Nothing is
    reconciled when the API comes back: the next successful fetch simply replaces
    the list, and concurrent writers race on a last-write-wins basis.

    Args:
        api: Remote collaborator
        local_repository: Durable snapshot used in LOCAL mode
    """

    def __init__(self, api: StorefrontApiClient, local_repository: LocalProductRepository):
        self._api = api
        self._local = local_repository
        self._products: List[Product] = []
        self._mode = CatalogMode.LOCAL
        self._closed = False
        self._poll_task: Optional[asyncio.Task] = None
        self.loading = True
        self.error: Optional[str] = None

    @property
    def mode(self) -> CatalogMode:
        return self._mode

    @property
    def is_remote(self) -> bool:
        return self._mode is CatalogMode.REMOTE

    @property
    def products(self) -> List[Product]:
        return list(self._products)

    def _transition(self, mode: CatalogMode, products: List[Product]) -> None:
        if mode is not self._mode:
            logger.info(f"Product catalog switching from {self._mode.value} to {mode.value} mode")
        self._mode = mode
        self._commit(products)

    def _commit(self, products: List[Product]) -> None:
        self._products = products
        if self._mode is CatalogMode.LOCAL:
            self._local.save_products(products)

    async def _fetch(self) -> bool:
        try:
            products = await self._api.fetch_products()
        except (ApiError, ValueError) as e:
            if self._closed:
                return False
            logger.warning(f"Product API unavailable, using locally saved products: {e}")
            self.error = str(e)
            self._transition(CatalogMode.LOCAL, self._local.load_products())
            return False

        if self._closed:
            return False
        self.error = None
        self._transition(CatalogMode.REMOTE, products)
        return True

    async def initialize(self) -> None:
        await self.refresh()

    async def refresh(self) -> None:
        self.loading = True
        try:
            await self._fetch()
        finally:
            if not self._closed:
                self.loading = False

    async def refresh_silently(self) -> None:
        """Same as refresh, without touching the loading flag (background polling)."""
        await self._fetch()

    async def add(self, draft: Union[ProductDraft, Mapping[str, Any]]) -> Product:
        if not isinstance(draft, ProductDraft):
            draft = ProductDraft.model_validate(draft)

        if self.is_remote:
            created = await self._api.create_product(draft)
            self._products = self._products + [created]
            return created

        next_id = max((p.id for p in self._products), default=0) + 1
        fields = draft.model_dump()
        fields["specs"] = draft.specs if draft.specs is not None else {}
        fields["inclusions"] = draft.inclusions if draft.inclusions is not None else []
        product = Product(id=next_id, **fields)
        self._commit(self._products + [product])
        return product

    async def update(self, product_id: int, changes: ProductChanges) -> Optional[Product]:
        """Apply a partial update.

        In LOCAL mode an unknown id is ignored and None is returned.

        Raises:
            ProductNotFound: In REMOTE mode, when the API no longer has the product
            ApiError: In REMOTE mode, when the API rejects the change
        """
        if not isinstance(changes, ProductUpdate):
            changes = ProductUpdate.model_validate(changes)

        if self.is_remote:
            updated = await self._api.update_product(product_id, changes)
            self._products = [updated if p.id == product_id else p for p in self._products]
            return updated

        index = next((i for i, p in enumerate(self._products) if p.id == product_id), None)
        if index is None:
            logger.debug(f"Ignoring update for unknown product {product_id}")
            return None
        merged = self._products[index].model_copy(update=changes.changes())
        products = list(self._products)
        products[index] = merged
        self._commit(products)
        return merged

    async def assign_supplier(self, product_id: int, supplier_id: Optional[int],
                              supplier_name: Optional[str] = None) -> Optional[Product]:
        return await self.update(
            product_id, ProductUpdate(supplier_id=supplier_id, supplier_name=supplier_name)
        )

    async def remove(self, product_id: int) -> None:
        if self.is_remote:
            await self._api.delete_product(product_id)
            self._products = [p for p in self._products if p.id != product_id]
            return
        self._commit([p for p in self._products if p.id != product_id])

    def find_by_id(self, product_id: int) -> Optional[Product]:
        return next((p for p in self._products if p.id == product_id), None)

    def filter_by_category(self, category: str) -> List[Product]:
        if category == ALL_CATEGORIES:
            return self.products
        return [p for p in self._products if p.category == category]

    def search(self, term: str) -> List[Product]:
        needle = term.strip().lower()
        if not needle:
            return self.products
        return [p for p in self._products if needle in p.name.lower() or needle in p.category.lower()]

    def stats(self, top_n: int = 5) -> CatalogStats:
        by_category: Dict[str, int] = {}
        for product in self._products:
            by_category[product.category] = by_category.get(product.category, 0) + 1

        count = len(self._products)
        total_value = sum((p.price for p in self._products), Decimal(0))
        average = (total_value / count).quantize(Decimal("0.01")) if count else Decimal(0)
        top = sorted(self._products, key=lambda p: p.price, reverse=True)[:top_n]
        return CatalogStats(
            product_count=count,
            by_category=by_category,
            category_count=len(by_category),
            total_value=total_value,
            average_price=average,
            top_by_price=top,
        )

    def start_polling(self, interval: float) -> None:
        """Refresh silently every interval seconds until stopped or closed."""
        if self._poll_task is not None and not self._poll_task.done():
            return
        self._poll_task = asyncio.create_task(self._poll(interval))

    async def _poll(self, interval: float) -> None:
        while not self._closed:
            await asyncio.sleep(interval)
            try:
                await self.refresh_silently()
            except Exception:
                logger.exception("Background catalog refresh failed, will retry")

    async def stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def close(self) -> None:
        """End of session: stop polling and ignore fetches that complete afterwards."""
        self._closed = True
        await self.stop_polling()
