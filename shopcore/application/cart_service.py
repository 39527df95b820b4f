"""Cart application service.

Keeps session carts keyed by id and wires the Cart aggregate to the
catalog, the stock snapshot and the rate lookups:
- Opening carts for a location
- Adding products and bundles after an availability check
- Changing quantities and removing lines
- Applying and clearing the single cart discount
- Quoting shipping for a destination state
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import structlog

from shopcore.application.ports import InventoryStore, ShippingRateLookup, TaxRateLookup
from shopcore.domain.bundles import BundleAvailability, StockAvailability
from shopcore.domain.discounts import DiscountSource
from shopcore.domain.entities import Cart, ItemKind, LineItem
from shopcore.domain.exceptions import (
    CartItemNotFoundError,
    CatalogItemNotFoundError,
    DomainError,
    RateLookupError,
    ValidationError,
)
from shopcore.domain.value_objects import LineId, Money

logger = structlog.get_logger()


# ============================================================================
# In-Memory Repository
# ============================================================================


class CartRepository:
    """In-memory repository for session carts."""

    def __init__(self) -> None:
        self._carts: dict[str, Cart] = {}

    def save(self, cart: Cart) -> None:
        """Save a cart."""
        self._carts[str(cart.id)] = cart

    def get(self, cart_id: str) -> Cart | None:
        """Get cart by ID."""
        return self._carts.get(cart_id)

    def delete(self, cart_id: str) -> None:
        self._carts.pop(cart_id, None)


# Global repository instance
_cart_repo: CartRepository | None = None


def get_cart_repository() -> CartRepository:
    """Get cart repository singleton."""
    global _cart_repo
    if _cart_repo is None:
        _cart_repo = CartRepository()
    return _cart_repo


def reset_cart_repository() -> None:
    global _cart_repo
    _cart_repo = None


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class CartResult:
    """Result of a cart operation."""

    cart: Cart | None = None
    line: LineItem | None = None
    success: bool = True
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failed(cls, error: DomainError, cart: Cart | None = None) -> "CartResult":
        return cls(
            cart=cart,
            success=False,
            error=error.message,
            error_code=error.error_code,
            details=error.details,
        )


# ============================================================================
# Cart Service
# ============================================================================


class CartService:
    """Application service for session carts."""

    def __init__(
        self,
        store: InventoryStore,
        cart_repo: CartRepository | None = None,
        tax_lookup: TaxRateLookup | None = None,
        shipping_lookup: ShippingRateLookup | None = None,
        default_tax_percent: Decimal = Decimal("0"),
        request_id: str | None = None,
    ) -> None:
        """Initialize service.

        Args:
            store: Inventory store for catalog and stock reads.
            cart_repo: Cart repository.
            tax_lookup: Tax rates by category, applied when a line is added.
            shipping_lookup: Shipping charge by destination state.
            default_tax_percent: Rate used when the tax lookup is down.
            request_id: Request ID for correlation.
        """
        self.store = store
        self.cart_repo = cart_repo or get_cart_repository()
        self.tax_lookup = tax_lookup
        self.shipping_lookup = shipping_lookup
        self.default_tax_percent = Decimal(default_tax_percent)
        self.request_id = request_id

    def _not_found(self, cart_id: str) -> CartResult:
        return CartResult(
            success=False,
            error=f"Cart not found: {cart_id}",
            error_code="CART_NOT_FOUND",
            details={"cart_id": cart_id},
        )

    async def create_cart(
        self, location_id: str, customer_id: str | None = None, currency: str = "USD"
    ) -> CartResult:
        """Open a new cart for a fulfilment location."""
        try:
            cart = Cart.create(location_id=location_id, customer_id=customer_id, currency=currency)
        except DomainError as e:
            return CartResult.failed(e)
        self.cart_repo.save(cart)
        self._log_events(cart)
        logger.info(
            "Cart created",
            cart_id=str(cart.id),
            location_id=location_id,
            request_id=self.request_id,
        )
        return CartResult(cart=cart)

    async def get_cart(self, cart_id: str) -> Cart | None:
        return self.cart_repo.get(cart_id)

    async def add_product(
        self,
        cart_id: str,
        item_id: str,
        quantity: int = 1,
        options: dict[str, str] | None = None,
    ) -> CartResult:
        """Add a catalog product, checked against the location's stock."""
        cart = self.cart_repo.get(cart_id)
        if cart is None:
            return self._not_found(cart_id)
        try:
            product = await self.store.get_product(item_id)
            if product is None:
                raise CatalogItemNotFoundError(item_id)

            level = await self.store.get_level(item_id, cart.location_id)
            availability = StockAvailability(
                item_id=item_id,
                location_id=cart.location_id,
                sellable_quantity=max(level.quantity, 0) if level else 0,
                limiting_components=(item_id,),
            )
            line = LineItem.create(
                kind=ItemKind.PRODUCT,
                item_id=item_id,
                name=product.name,
                unit_price=Money.from_decimal(product.price, cart.currency),
                quantity=quantity,
                tax_rate=await self._tax_rate(product.category),
                shipping_cost=Money.from_decimal(product.shipping_cost, cart.currency),
                category=product.category,
                options=options,
            )
            added = cart.add_item(line, availability)
        except DomainError as e:
            logger.info(
                "Add to cart rejected",
                cart_id=cart_id,
                item_id=item_id,
                error_code=e.error_code,
                request_id=self.request_id,
            )
            return CartResult.failed(e, cart)

        self._log_events(cart)
        return CartResult(cart=cart, line=added)

    async def add_bundle(self, cart_id: str, bundle_id: str, quantity: int = 1) -> CartResult:
        """Add a bundle if the location can sell that many.

        A bundle with an implied discount applies it unless another
        discount source is already active.
        """
        cart = self.cart_repo.get(cart_id)
        if cart is None:
            return self._not_found(cart_id)
        try:
            bundle = await self.store.get_bundle(bundle_id)
            if bundle is None:
                raise CatalogItemNotFoundError(bundle_id, kind="bundle")

            availability = await self._bundle_availability(bundle_id, cart.location_id)
            line = LineItem.create(
                kind=ItemKind.BUNDLE,
                item_id=bundle_id,
                name=bundle.name,
                unit_price=Money.from_decimal(bundle.price, cart.currency),
                quantity=quantity,
                tax_rate=await self._tax_rate(bundle.category),
                category=bundle.category,
                components=bundle.components,
            )
            added = cart.add_item(line, availability)
            if bundle.percent_off is not None:
                cart.apply_bundle_discount(bundle_id, bundle.percent_off)
        except DomainError as e:
            logger.info(
                "Add bundle to cart rejected",
                cart_id=cart_id,
                bundle_id=bundle_id,
                error_code=e.error_code,
                details=e.details,
                request_id=self.request_id,
            )
            return CartResult.failed(e, cart)

        self._log_events(cart)
        return CartResult(cart=cart, line=added)

    async def update_quantity(self, cart_id: str, line_id: str, quantity: int) -> CartResult:
        """Set a line's quantity; zero removes it."""
        cart = self.cart_repo.get(cart_id)
        if cart is None:
            return self._not_found(cart_id)
        try:
            lid = self._line_id(cart, line_id)
            line = cart.get_line(lid)
            availability = None
            if line is not None and quantity > line.quantity:
                availability = await self._line_availability(cart, line)
            updated = cart.update_quantity(lid, quantity, availability)
        except DomainError as e:
            return CartResult.failed(e, cart)
        self._log_events(cart)
        return CartResult(cart=cart, line=updated)

    async def remove_item(self, cart_id: str, line_id: str) -> CartResult:
        cart = self.cart_repo.get(cart_id)
        if cart is None:
            return self._not_found(cart_id)
        try:
            removed = cart.remove_item(self._line_id(cart, line_id))
        except DomainError as e:
            return CartResult.failed(e, cart)
        self._log_events(cart)
        return CartResult(cart=cart, line=removed)

    async def apply_discount(
        self,
        cart_id: str,
        source: DiscountSource,
        percent_off: Decimal,
        rule: str | None = None,
        bundle_id: str | None = None,
    ) -> CartResult:
        """Apply a discount; a different active source keeps priority."""
        cart = self.cart_repo.get(cart_id)
        if cart is None:
            return self._not_found(cart_id)
        try:
            if source is DiscountSource.MANUAL:
                cart.apply_manual_discount(percent_off)
            elif source is DiscountSource.AUTOMATIC:
                if not rule:
                    raise ValidationError("Automatic discounts need a rule name")
                cart.apply_automatic_discount(rule, percent_off)
            elif source is DiscountSource.BUNDLE:
                if not bundle_id:
                    raise ValidationError("Bundle discounts need a bundle id")
                cart.apply_bundle_discount(bundle_id, percent_off)
            else:
                raise ValidationError(f"Cannot apply discount source {source.value}")
        except DomainError as e:
            return CartResult.failed(e, cart)
        self._log_events(cart)
        return CartResult(cart=cart)

    async def clear_discount(self, cart_id: str) -> CartResult:
        cart = self.cart_repo.get(cart_id)
        if cart is None:
            return self._not_found(cart_id)
        cart.clear_discount()
        self._log_events(cart)
        return CartResult(cart=cart)

    async def set_shipping_destination(self, cart_id: str, state_code: str | None) -> CartResult:
        """Record the destination state and quote its shipping charge."""
        cart = self.cart_repo.get(cart_id)
        if cart is None:
            return self._not_found(cart_id)
        charge = None
        if state_code and self.shipping_lookup is not None:
            try:
                amount = await self.shipping_lookup.rate_for_state(state_code)
            except RateLookupError as e:
                return CartResult.failed(e, cart)
            charge = Money.from_decimal(Decimal(amount), cart.currency)
        cart.set_shipping_destination(state_code, charge)
        return CartResult(cart=cart)

    async def assign_customer(self, cart_id: str, customer_id: str) -> CartResult:
        cart = self.cart_repo.get(cart_id)
        if cart is None:
            return self._not_found(cart_id)
        cart.assign_customer(customer_id)
        return CartResult(cart=cart)

    async def clear_cart(self, cart_id: str) -> CartResult:
        cart = self.cart_repo.get(cart_id)
        if cart is None:
            return self._not_found(cart_id)
        cart.clear()
        self._log_events(cart)
        return CartResult(cart=cart)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _line_id(self, cart: Cart, line_id: str) -> LineId:
        try:
            return LineId.from_string(line_id)
        except ValueError as e:
            raise CartItemNotFoundError(str(cart.id), line_id) from e

    async def _tax_rate(self, category: str | None) -> Decimal:
        """Current tax rate for a category; checkout refreshes it again."""
        if category is None or self.tax_lookup is None:
            return self.default_tax_percent
        try:
            return Decimal(await self.tax_lookup.rate_for_category(category))
        except RateLookupError as e:
            logger.warning(
                "Tax lookup unavailable, using default rate",
                category=category,
                error=e.message,
                request_id=self.request_id,
            )
            return self.default_tax_percent

    async def _bundle_availability(self, bundle_id: str, location_id: str) -> StockAvailability:
        bundle = await self.store.get_bundle(bundle_id)
        if bundle is None:
            raise CatalogItemNotFoundError(bundle_id, kind="bundle")
        snapshot = await self.store.get_levels(
            [c.component_item_id for c in bundle.components], [location_id]
        )
        return BundleAvailability(bundle).sellable_quantity(location_id, snapshot)

    async def _line_availability(self, cart: Cart, line: LineItem) -> StockAvailability:
        if line.kind is ItemKind.BUNDLE:
            return await self._bundle_availability(line.item_id, cart.location_id)
        level = await self.store.get_level(line.item_id, cart.location_id)
        return StockAvailability(
            item_id=line.item_id,
            location_id=cart.location_id,
            sellable_quantity=max(level.quantity, 0) if level else 0,
            limiting_components=(line.item_id,),
        )

    def _log_events(self, cart: Cart) -> None:
        for event in cart.collect_events():
            logger.info("Domain event", request_id=self.request_id, **event.to_dict())


def get_cart_service(request_id: str | None = None) -> CartService:
    """Get cart service wired to the configured store and rate lookups."""
    from shopcore.infrastructure.config import settings
    from shopcore.infrastructure.rate_client import get_shipping_lookup, get_tax_lookup
    from shopcore.infrastructure.store import get_inventory_store

    return CartService(
        store=get_inventory_store(),
        tax_lookup=get_tax_lookup(),
        shipping_lookup=get_shipping_lookup(),
        default_tax_percent=settings.default_tax_percent,
        request_id=request_id,
    )
