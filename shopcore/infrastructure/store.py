"""Selects the inventory store for the configured storage backend."""

from shopcore.infrastructure.config import settings
from shopcore.infrastructure.database import get_session_factory
from shopcore.infrastructure.memory_store import (
    InMemoryInventoryStore,
    get_memory_store,
    reset_memory_store,
)
from shopcore.infrastructure.sql_store import SqlInventoryStore

_sql_store: SqlInventoryStore | None = None


def get_inventory_store() -> InMemoryInventoryStore | SqlInventoryStore:
    """Get the inventory store singleton for ``settings.storage_backend``."""
    global _sql_store
    if settings.storage_backend == "sql":
        if _sql_store is None:
            _sql_store = SqlInventoryStore(get_session_factory())
        return _sql_store
    return get_memory_store()


def reset_inventory_store() -> None:
    global _sql_store
    _sql_store = None
    reset_memory_store()
