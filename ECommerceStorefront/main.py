import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Optional

from ECommerceStorefront.api import StorefrontApiClient
from ECommerceStorefront.checkout import CheckoutFlow
from ECommerceStorefront.config import StorefrontConfig, load_config
from ECommerceStorefront.exceptions import ConfigurationError
from ECommerceStorefront.logger import setup_logger
from ECommerceStorefront.repository import CartRepository, LocalProductRepository
from ECommerceStorefront.service import CartLedger, ProductCatalog
from ECommerceStorefront.storage import FileBackend, MemoryBackend, PersistentStore, StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class StorefrontSession:
    """Everything one storefront session owns. Nothing here is global."""
    config: StorefrontConfig
    api: StorefrontApiClient
    store: PersistentStore
    catalog: ProductCatalog
    cart: CartLedger

    def checkout(self, on_complete=None) -> CheckoutFlow:
        return CheckoutFlow(
            ledger=self.cart,
            api=self.api,
            confirmation_delay=self.config.checkout.confirmation_delay_seconds,
            on_complete=on_complete,
        )

    async def __aenter__(self) -> "StorefrontSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self.catalog.close()
        await self.api.aclose()


class StorefrontFactory:

    def __init__(self, config: StorefrontConfig, backend: Optional[StorageBackend] = None,
                 api: Optional[StorefrontApiClient] = None):
        self.config = config
        self._backend = backend
        self._api = api

    def _make_backend(self) -> StorageBackend:
        if self._backend is not None:
            return self._backend
        if self.config.storage.directory:
            return FileBackend(self.config.storage.directory)
        return MemoryBackend()

    async def setup(self, poll: bool = False) -> StorefrontSession:
        storage_config = self.config.storage
        store = PersistentStore(self._make_backend())
        api = self._api or StorefrontApiClient(
            base_url=self.config.api.base_url, timeout=self.config.api.timeout
        )

        catalog = ProductCatalog(
            api=api,
            local_repository=LocalProductRepository(store, key=storage_config.products_key),
        )
        cart = CartLedger(
            CartRepository(store, items_key=storage_config.cart_key, discount_key=storage_config.discount_key)
        )

        await catalog.initialize()
        logger.info(f"Catalog ready with {len(catalog.products)} products ({catalog.mode.value} mode)")
        if poll:
            catalog.start_polling(self.config.catalog.poll_interval_seconds)

        return StorefrontSession(config=self.config, api=api, store=store, catalog=catalog, cart=cart)


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(description="Security storefront core")
    parser.add_argument("--config", help="Path to a TOML configuration file", default=None)
    parser.add_argument("--debug", help="Enable debug logging", action="store_true")
    parser.add_argument("command", nargs="?", choices=["list", "stats"], default="list")
    return parser.parse_args(argv)


async def run(config: StorefrontConfig, command: str) -> None:
    async with await StorefrontFactory(config).setup() as session:
        catalog = session.catalog
        if command == "stats":
            stats = catalog.stats()
            print(f"Products: {stats.product_count} in {stats.category_count} categories")
            for category, count in sorted(stats.by_category.items()):
                print(f"  {category}: {count}")
            print(f"Total value: {stats.total_value}  Average price: {stats.average_price}")
            return

        source = "API" if catalog.is_remote else "local storage"
        print(f"{len(catalog.products)} products from {source}")
        for product in catalog.products:
            supplier = product.supplier_name or "unassigned"
            print(f"{product.id:>4}  {product.name:<40} {product.category:<16} {product.price:>10}  {supplier}")


def main(argv=None) -> int:
    args = parse_arguments(argv)
    try:
        config = load_config(args.config, overrides={"logging": {"level": "DEBUG"}} if args.debug else None)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logger(config.logging)
    asyncio.run(run(config, args.command))
    return 0


if __name__ == "__main__":
    sys.exit(main())
