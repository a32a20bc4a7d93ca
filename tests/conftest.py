"""Pytest configuration and shared fixtures for storefront tests."""

import pytest

from ECommerceStorefront.api import StorefrontApiClient
from ECommerceStorefront.repository import CartRepository, LocalProductRepository
from ECommerceStorefront.service import CartLedger, ProductCatalog
from ECommerceStorefront.storage import MemoryBackend, PersistentStore
from tests.helpers import FakeStorefrontServer


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def store(backend):
    return PersistentStore(backend)


@pytest.fixture
def cart_repository(store):
    return CartRepository(store)


@pytest.fixture
def ledger(cart_repository):
    return CartLedger(cart_repository)


@pytest.fixture
def server():
    return FakeStorefrontServer()


@pytest.fixture
def api(server):
    return StorefrontApiClient(base_url="http://storefront.test", transport=server.transport())


@pytest.fixture
def local_products(store):
    return LocalProductRepository(store)


@pytest.fixture
def catalog(api, local_products):
    return ProductCatalog(api=api, local_repository=local_products)
