"""Interfaces the checkout core needs from its collaborators.

Concrete implementations live in ``shopcore.infrastructure``: an
in-memory store and an SQL store for InventoryStore, and HTTP or static
table clients for the rate lookups.
"""

from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Protocol

from shopcore.domain.bundles import Bundle
from shopcore.domain.entities import CatalogProduct, CustomerProfile, Order
from shopcore.domain.stock import StockAdjustment, StockLevel


class InventoryStore(Protocol):
    """Persistence and transaction interface of the checkout core.

    ``apply_adjustments`` is the only way stock changes. It must apply the
    whole batch atomically, re-checking non-negativity at the storage
    layer rather than trusting a level read earlier.
    """

    async def get_level(self, item_id: str, location_id: str) -> StockLevel | None:
        ...

    async def get_levels(
        self, item_ids: Iterable[str], location_ids: Iterable[str]
    ) -> dict[tuple[str, str], int]:
        """Stock snapshot keyed by (item_id, location_id); missing rows are absent."""
        ...

    async def apply_adjustments(
        self, adjustments: Sequence[StockAdjustment]
    ) -> list[StockAdjustment]:
        """Apply all adjustments or none.

        Returns:
            The adjustments as recorded, with ``resulting_level`` set.

        Raises:
            InsufficientStockError: A non-correction adjustment would make
                a level negative.
            StockConflictError: A concurrent writer won the row.
            DuplicateAdjustmentError: An adjustment for the same order
                line, item and location already exists.
        """
        ...

    async def list_adjustments(
        self,
        item_id: str | None = None,
        location_id: str | None = None,
        related_order_id: str | None = None,
    ) -> list[StockAdjustment]:
        """Ledger rows matching the filters, oldest first."""
        ...

    async def create_order(self, order: Order) -> None:
        """Persist the order header and its lines in one transaction."""
        ...

    async def get_order(self, order_id: str) -> Order | None:
        ...

    async def get_order_by_payment(self, payment_id: str) -> Order | None:
        ...

    async def upsert_customer(self, profile: CustomerProfile) -> CustomerProfile:
        ...

    async def get_product(self, item_id: str) -> CatalogProduct | None:
        ...

    async def get_bundle(self, bundle_id: str) -> Bundle | None:
        ...

    async def add_product(self, product: CatalogProduct) -> None:
        """Create or replace a catalog product."""
        ...

    async def add_bundle(self, bundle: Bundle) -> None:
        ...

    async def list_locations(self) -> list[str]:
        """Locations that hold any stock row."""
        ...


class TaxRateLookup(Protocol):
    """Tax percentage by product category."""

    async def rate_for_category(self, category: str) -> Decimal:
        ...


class ShippingRateLookup(Protocol):
    """Shipping charge, in major currency units, by destination state."""

    async def rate_for_state(self, state_code: str) -> Decimal:
        ...
