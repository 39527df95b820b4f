"""Inventory application service.

Read side for bundle and product availability, and the staff-facing
write side of the stock ledger: receiving, transfers, returns,
exchanges and audit corrections.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import structlog

from shopcore.application.ports import InventoryStore
from shopcore.application.stock_ledger import StockAudit, StockLedger
from shopcore.domain.bundles import (
    Bundle,
    BundleAvailability,
    BundleAvailabilityReport,
    StockAvailability,
)
from shopcore.domain.entities import CatalogProduct
from shopcore.domain.exceptions import CatalogItemNotFoundError, DomainError, ValidationError
from shopcore.domain.pricing import PricedKind, quote_price
from shopcore.domain.stock import AdjustmentReason, StockAdjustment

logger = structlog.get_logger()

# Reasons staff may record directly; the sale reasons belong to checkout.
MANUAL_REASONS = {
    AdjustmentReason.RECEIVING,
    AdjustmentReason.CORRECTION,
    AdjustmentReason.RETURN,
}


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class BundleAvailabilityResult:
    """Bundle availability at one or more locations, with pricing."""

    bundle_id: str | None = None
    reports: list[BundleAvailabilityReport] = field(default_factory=list)
    aggregate_component_cost: Decimal = Decimal("0")
    savings: Decimal = Decimal("0")
    price: Decimal = Decimal("0")
    success: bool = True
    error: str | None = None
    error_code: str | None = None


@dataclass
class AdjustmentResult:
    """Result of recording one or more stock adjustments."""

    adjustments: list[StockAdjustment] = field(default_factory=list)
    success: bool = True
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failed(cls, error: DomainError) -> "AdjustmentResult":
        return cls(
            success=False,
            error=error.message,
            error_code=error.error_code,
            details=error.details,
        )


# ============================================================================
# Inventory Service
# ============================================================================


class InventoryService:
    """Application service for stock queries and staff adjustments."""

    def __init__(
        self,
        store: InventoryStore,
        ledger: StockLedger | None = None,
        request_id: str | None = None,
    ) -> None:
        self.store = store
        self.ledger = ledger or StockLedger(store, request_id=request_id)
        self.request_id = request_id

    # -------------------------------------------------------------------------
    # Availability
    # -------------------------------------------------------------------------

    async def bundle_availability(
        self, bundle_id: str, location_ids: list[str] | None = None
    ) -> BundleAvailabilityResult:
        """Sellable bundles per location and what limits them.

        Args:
            bundle_id: Bundle to evaluate.
            location_ids: Locations to report; all stocked locations when
                omitted.
        """
        bundle = await self.store.get_bundle(bundle_id)
        if bundle is None:
            error = CatalogItemNotFoundError(bundle_id, kind="bundle")
            return BundleAvailabilityResult(
                success=False, error=error.message, error_code=error.error_code
            )

        locations = location_ids or await self.store.list_locations()
        snapshot = await self.store.get_levels(
            [c.component_item_id for c in bundle.components], locations
        )
        availability = BundleAvailability(bundle)
        reports = availability.sellable_by_location(locations, snapshot)
        return BundleAvailabilityResult(
            bundle_id=bundle_id,
            reports=[reports[loc] for loc in locations],
            aggregate_component_cost=availability.aggregate_component_cost,
            savings=availability.savings(),
            price=Decimal(bundle.price),
        )

    async def product_availability(self, item_id: str, location_id: str) -> StockAvailability:
        level = await self.store.get_level(item_id, location_id)
        return StockAvailability(
            item_id=item_id,
            location_id=location_id,
            sellable_quantity=max(level.quantity, 0) if level else 0,
            limiting_components=(item_id,),
        )

    # -------------------------------------------------------------------------
    # Adjustments
    # -------------------------------------------------------------------------

    async def adjust(
        self,
        item_id: str,
        location_id: str,
        delta: int,
        reason: AdjustmentReason,
        note: str | None = None,
    ) -> AdjustmentResult:
        """Record a staff adjustment (receiving, correction or walk-in return)."""
        try:
            if reason not in MANUAL_REASONS:
                raise ValidationError(
                    f"Adjustments with reason '{reason.value}' are recorded by checkout, "
                    "transfers or exchanges",
                    details={"reason": reason.value},
                )
            if reason is AdjustmentReason.CORRECTION:
                adjustment = await self.ledger.correct(item_id, location_id, delta, note=note)
            else:
                adjustment = await self.ledger.adjust(item_id, location_id, delta, reason, note=note)
        except DomainError as e:
            logger.info(
                "Stock adjustment rejected",
                item_id=item_id,
                location_id=location_id,
                delta=delta,
                error_code=e.error_code,
                request_id=self.request_id,
            )
            return AdjustmentResult.failed(e)
        return AdjustmentResult(adjustments=[adjustment])

    async def transfer(
        self,
        item_id: str,
        from_location_id: str,
        to_location_id: str,
        quantity: int,
        note: str | None = None,
    ) -> AdjustmentResult:
        try:
            out_adj, in_adj = await self.ledger.transfer(
                item_id, from_location_id, to_location_id, quantity, note=note
            )
        except DomainError as e:
            return AdjustmentResult.failed(e)
        logger.info(
            "Stock transferred",
            item_id=item_id,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            quantity=quantity,
            request_id=self.request_id,
        )
        return AdjustmentResult(adjustments=[out_adj, in_adj])

    async def record_return(
        self,
        item_id: str,
        location_id: str,
        quantity: int,
        related_order_id: str | None = None,
        note: str | None = None,
    ) -> AdjustmentResult:
        try:
            adjustment = await self.ledger.record_return(
                item_id, location_id, quantity, related_order_id=related_order_id, note=note
            )
        except DomainError as e:
            return AdjustmentResult.failed(e)
        return AdjustmentResult(adjustments=[adjustment])

    async def exchange(
        self,
        returned_item_id: str,
        replacement_item_id: str,
        location_id: str,
        quantity: int = 1,
        related_order_id: str | None = None,
        note: str | None = None,
    ) -> AdjustmentResult:
        try:
            in_adj, out_adj = await self.ledger.exchange(
                returned_item_id,
                replacement_item_id,
                location_id,
                quantity,
                related_order_id=related_order_id,
                note=note,
            )
        except DomainError as e:
            return AdjustmentResult.failed(e)
        return AdjustmentResult(adjustments=[in_adj, out_adj])

    # -------------------------------------------------------------------------
    # Ledger Queries
    # -------------------------------------------------------------------------

    async def level(self, item_id: str, location_id: str) -> int:
        return await self.ledger.level(item_id, location_id)

    async def history(
        self,
        item_id: str | None = None,
        location_id: str | None = None,
        related_order_id: str | None = None,
    ) -> list[StockAdjustment]:
        return await self.ledger.history(
            item_id=item_id, location_id=location_id, related_order_id=related_order_id
        )

    async def audit(self, item_id: str, location_id: str) -> StockAudit:
        return await self.ledger.audit(item_id, location_id)

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    async def register_product(self, product: CatalogProduct) -> CatalogProduct:
        await self.store.add_product(product)
        logger.info("Catalog product saved", item_id=product.item_id, request_id=self.request_id)
        return product

    async def register_bundle(self, bundle: Bundle) -> BundleAvailabilityResult:
        """Save a bundle; an existing bundle id is rejected.

        Bundle components must already be catalog products.
        """
        if await self.store.get_bundle(bundle.bundle_id) is not None:
            error = ValidationError(
                f"Bundle already exists: {bundle.bundle_id}",
                details={"bundle_id": bundle.bundle_id},
            )
            return BundleAvailabilityResult(
                success=False, error=error.message, error_code=error.error_code
            )
        for component in bundle.components:
            if await self.store.get_product(component.component_item_id) is None:
                error = CatalogItemNotFoundError(component.component_item_id)
                return BundleAvailabilityResult(
                    success=False, error=error.message, error_code=error.error_code
                )
        await self.store.add_bundle(bundle)
        logger.info(
            "Catalog bundle saved",
            bundle_id=bundle.bundle_id,
            component_count=len(bundle.components),
            request_id=self.request_id,
        )
        availability = BundleAvailability(bundle)
        return BundleAvailabilityResult(
            bundle_id=bundle.bundle_id,
            aggregate_component_cost=availability.aggregate_component_cost,
            savings=availability.savings(),
            price=Decimal(bundle.price),
        )

    async def get_product(self, item_id: str) -> CatalogProduct | None:
        return await self.store.get_product(item_id)

    async def get_bundle(self, bundle_id: str) -> Bundle | None:
        return await self.store.get_bundle(bundle_id)

    # -------------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------------

    def quote(
        self,
        kind: PricedKind,
        raw: Decimal,
        tax_percent: Decimal = Decimal("0"),
        shipping: Decimal = Decimal("0"),
        labour: Decimal = Decimal("0"),
        markup: Decimal = Decimal("0"),
        fee: Decimal = Decimal("0"),
    ) -> Decimal:
        """Selling price estimate for a product, repair or service.

        Raises:
            InvalidPriceInputError: If any input is negative.
        """
        return quote_price(
            kind,
            raw,
            tax_percent=tax_percent,
            shipping=shipping,
            labour=labour,
            markup=markup,
            fee=fee,
        )


def get_inventory_service(request_id: str | None = None) -> InventoryService:
    """Get inventory service wired to the configured store."""
    from shopcore.infrastructure.config import settings
    from shopcore.infrastructure.store import get_inventory_store

    store = get_inventory_store()
    return InventoryService(
        store=store,
        ledger=StockLedger(
            store,
            conflict_retries=settings.stock_conflict_retries,
            request_id=request_id,
        ),
        request_id=request_id,
    )
