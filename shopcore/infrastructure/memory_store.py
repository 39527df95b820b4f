"""In-memory inventory store.

Keeps stock, the adjustment ledger, orders, customers and the catalog in
dictionaries. Every stock mutation runs under one asyncio.Lock, which
makes the check-and-apply of a batch atomic within the process. Used by
the default ``memory`` backend and by the tests.
"""

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import replace

from shopcore.domain.bundles import Bundle
from shopcore.domain.entities import CatalogProduct, CustomerProfile, Order
from shopcore.domain.exceptions import (
    DuplicateAdjustmentError,
    DuplicateOrderError,
    InsufficientStockError,
)
from shopcore.domain.stock import AdjustmentReason, StockAdjustment, StockLevel


class InMemoryInventoryStore:
    """InventoryStore backed by process memory."""

    def __init__(self) -> None:
        self._levels: dict[tuple[str, str], int] = {}
        self._adjustments: list[StockAdjustment] = []
        self._order_keys: set[tuple[str, str, str, str]] = set()
        self._orders: dict[str, Order] = {}
        self._by_payment: dict[str, str] = {}
        self._customers: dict[str, CustomerProfile] = {}
        self._products: dict[str, CatalogProduct] = {}
        self._bundles: dict[str, Bundle] = {}
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------------

    async def get_level(self, item_id: str, location_id: str) -> StockLevel | None:
        quantity = self._levels.get((item_id, location_id))
        if quantity is None:
            return None
        return StockLevel(item_id=item_id, location_id=location_id, quantity=quantity)

    async def get_levels(
        self, item_ids: Iterable[str], location_ids: Iterable[str]
    ) -> dict[tuple[str, str], int]:
        locations = list(location_ids)
        return {
            (item_id, loc): self._levels[(item_id, loc)]
            for item_id in item_ids
            for loc in locations
            if (item_id, loc) in self._levels
        }

    async def apply_adjustments(
        self, adjustments: Sequence[StockAdjustment]
    ) -> list[StockAdjustment]:
        async with self._lock:
            # Validate the whole batch before touching anything.
            projected: dict[tuple[str, str], int] = {}
            batch_keys: set[tuple[str, str, str, str]] = set()
            for adj in adjustments:
                key = adj.order_key
                if key is not None and (key in self._order_keys or key in batch_keys):
                    raise DuplicateAdjustmentError(key[0], key[1])
                if key is not None:
                    batch_keys.add(key)

                level_key = (adj.item_id, adj.location_id)
                current = projected.get(level_key, self._levels.get(level_key, 0))
                if not adj.correction and current + adj.delta < 0:
                    raise InsufficientStockError(
                        item_id=adj.item_id,
                        location_id=adj.location_id,
                        requested=-adj.delta,
                        available=current,
                        limiting_components=(adj.item_id,),
                    )
                projected[level_key] = current + adj.delta

            recorded = []
            for adj in adjustments:
                level_key = (adj.item_id, adj.location_id)
                self._levels[level_key] = self._levels.get(level_key, 0) + adj.delta
                row = replace(adj, resulting_level=self._levels[level_key])
                self._adjustments.append(row)
                if adj.order_key is not None:
                    self._order_keys.add(adj.order_key)
                recorded.append(row)
            return recorded

    async def list_adjustments(
        self,
        item_id: str | None = None,
        location_id: str | None = None,
        related_order_id: str | None = None,
    ) -> list[StockAdjustment]:
        return [
            adj
            for adj in self._adjustments
            if (item_id is None or adj.item_id == item_id)
            and (location_id is None or adj.location_id == location_id)
            and (related_order_id is None or adj.related_order_id == related_order_id)
        ]

    async def list_locations(self) -> list[str]:
        return sorted({loc for _, loc in self._levels})

    # -------------------------------------------------------------------------
    # Orders and Customers
    # -------------------------------------------------------------------------

    async def create_order(self, order: Order) -> None:
        async with self._lock:
            if order.payment_id in self._by_payment:
                raise DuplicateOrderError(order.payment_id, self._by_payment[order.payment_id])
            self._orders[str(order.id)] = order
            self._by_payment[order.payment_id] = str(order.id)

    async def get_order(self, order_id: str) -> Order | None:
        return self._orders.get(order_id)

    async def get_order_by_payment(self, payment_id: str) -> Order | None:
        order_id = self._by_payment.get(payment_id)
        return self._orders.get(order_id) if order_id else None

    async def upsert_customer(self, profile: CustomerProfile) -> CustomerProfile:
        self._customers[profile.customer_id] = profile
        return profile

    async def get_customer(self, customer_id: str) -> CustomerProfile | None:
        return self._customers.get(customer_id)

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    async def get_product(self, item_id: str) -> CatalogProduct | None:
        return self._products.get(item_id)

    async def get_bundle(self, bundle_id: str) -> Bundle | None:
        return self._bundles.get(bundle_id)

    async def add_product(self, product: CatalogProduct) -> None:
        self._products[product.item_id] = product

    async def add_bundle(self, bundle: Bundle) -> None:
        self._bundles[bundle.bundle_id] = bundle

    async def seed_stock(self, item_id: str, location_id: str, quantity: int) -> None:
        """Book opening stock as a RECEIVING adjustment so replay stays exact."""
        if quantity == 0:
            self._levels.setdefault((item_id, location_id), 0)
            return
        await self.apply_adjustments(
            [
                StockAdjustment(
                    item_id=item_id,
                    location_id=location_id,
                    delta=quantity,
                    reason=AdjustmentReason.RECEIVING,
                    note="Opening stock",
                )
            ]
        )


# Global store instance
_memory_store: InMemoryInventoryStore | None = None


def get_memory_store() -> InMemoryInventoryStore:
    """Get the in-memory store singleton."""
    global _memory_store
    if _memory_store is None:
        _memory_store = InMemoryInventoryStore()
    return _memory_store


def reset_memory_store() -> None:
    """Drop all in-memory state. Used by tests."""
    global _memory_store
    _memory_store = None
