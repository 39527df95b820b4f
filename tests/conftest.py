"""Shared fixtures for all tests."""

import pytest

from shopcore.application.cart_service import reset_cart_repository
from shopcore.infrastructure.memory_store import InMemoryInventoryStore
from shopcore.infrastructure.rate_client import reset_rate_lookups
from shopcore.infrastructure.store import reset_inventory_store


@pytest.fixture(autouse=True)
def reset_singletons():
    """Give every test a fresh store, cart repository and rate lookups."""
    reset_inventory_store()
    reset_cart_repository()
    reset_rate_lookups()
    yield
    reset_inventory_store()
    reset_cart_repository()
    reset_rate_lookups()


@pytest.fixture
def store() -> InMemoryInventoryStore:
    """Create an empty in-memory inventory store."""
    return InMemoryInventoryStore()
