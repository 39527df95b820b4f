"""Domain entities: cart lines, the Cart aggregate, orders and catalog rows.

The Cart is the only mutable aggregate in the checkout core. It owns its
lines and its single discount, recomputes totals on every read and
rejects any mutation that would break an invariant before touching its
state.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from shopcore.domain.base import AggregateRoot, Entity
from shopcore.domain.bundles import BundleComponent, StockAvailability
from shopcore.domain.discounts import (
    BundleDiscount,
    Discount,
    DiscountLedger,
)
from shopcore.domain.events import (
    CartCleared,
    CartCreated,
    CartDiscountApplied,
    CartDiscountCleared,
    CartItemAdded,
    CartItemQuantityUpdated,
    CartItemRemoved,
)
from shopcore.domain.exceptions import (
    CartItemNotFoundError,
    InsufficientStockError,
    InvalidPriceInputError,
    InvalidQuantityError,
    ValidationError,
)
from shopcore.domain.state_machines import OrderStatus
from shopcore.domain.value_objects import CartId, LineId, Money, OrderId


class ItemKind(str, Enum):
    """What a cart or order line sells."""

    PRODUCT = "product"
    BUNDLE = "bundle"


def _normalize_options(options: Mapping[str, str] | tuple[tuple[str, str], ...] | None) -> tuple[tuple[str, str], ...]:
    if not options:
        return ()
    pairs = options.items() if isinstance(options, Mapping) else options
    return tuple(sorted((str(k), str(v)) for k, v in pairs))


def _stock_requirements(
    kind: ItemKind,
    item_id: str,
    quantity: int,
    components: tuple[BundleComponent, ...],
) -> list[tuple[str, int]]:
    if kind is ItemKind.BUNDLE:
        return [(c.component_item_id, c.required_quantity * quantity) for c in components]
    return [(item_id, quantity)]


# ============================================================================
# Catalog and Customer Rows
# ============================================================================


@dataclass(frozen=True)
class CatalogProduct:
    """A sellable product variation as the catalog describes it."""

    item_id: str
    name: str
    price: Decimal
    category: str | None = None
    shipping_cost: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if Decimal(self.price) < 0:
            raise InvalidPriceInputError("price", self.price)
        if Decimal(self.shipping_cost) < 0:
            raise InvalidPriceInputError("shipping_cost", self.shipping_cost)


@dataclass(frozen=True)
class CustomerProfile:
    """Customer preferences the checkout keeps up to date."""

    customer_id: str
    last_location_id: str | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ============================================================================
# Line Item Entity
# ============================================================================


@dataclass
class LineItem(Entity[LineId]):
    """One sellable line in a cart.

    Attributes:
        id: Line identifier, kept on the order line after checkout.
        kind: Product or bundle.
        item_id: Catalog id of the product variation or bundle.
        name: Display name.
        unit_price: Price of one unit.
        quantity: Units on the line, always positive.
        tax_rate: Tax percentage applied to the line total.
        shipping_cost: Flat shipping charged for the line.
        category: Catalog category, used for the tax lookup.
        options: Sorted option pairs (variation, colour, ...).
        components: Bundle components; empty for products.
    """

    id: LineId
    kind: ItemKind
    item_id: str
    name: str
    unit_price: Money
    quantity: int
    tax_rate: Decimal = Decimal("0")
    shipping_cost: Money = field(default_factory=Money.zero)
    category: str | None = None
    options: tuple[tuple[str, str], ...] = ()
    components: tuple[BundleComponent, ...] = ()

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise InvalidQuantityError(self.quantity)
        self.tax_rate = Decimal(self.tax_rate)
        if self.tax_rate < 0:
            raise InvalidPriceInputError("tax_rate", self.tax_rate)
        self.options = _normalize_options(self.options)
        if self.kind is ItemKind.BUNDLE and not self.components:
            raise ValidationError(
                f"Bundle line {self.item_id} has no components",
                details={"item_id": self.item_id},
            )

    @classmethod
    def create(
        cls,
        kind: ItemKind,
        item_id: str,
        name: str,
        unit_price: Money,
        quantity: int = 1,
        tax_rate: Decimal | int = 0,
        shipping_cost: Money | None = None,
        category: str | None = None,
        options: Mapping[str, str] | None = None,
        components: tuple[BundleComponent, ...] = (),
    ) -> "LineItem":
        """Build a new line with a fresh id."""
        return cls(
            id=LineId.generate(),
            kind=kind,
            item_id=item_id,
            name=name,
            unit_price=unit_price,
            quantity=quantity,
            tax_rate=Decimal(tax_rate),
            shipping_cost=shipping_cost or Money.zero(unit_price.currency),
            category=category,
            options=_normalize_options(options),
            components=components,
        )

    @property
    def merge_key(self) -> tuple[ItemKind, str, tuple[tuple[str, str], ...]]:
        """Lines with equal keys are merged instead of duplicated."""
        return (self.kind, self.item_id, self.options)

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity

    @property
    def tax_amount(self) -> Money:
        return self.line_total.percent(self.tax_rate)

    def stock_requirements(self) -> list[tuple[str, int]]:
        """Stock this line consumes as (item_id, units) pairs."""
        return _stock_requirements(self.kind, self.item_id, self.quantity, self.components)


# ============================================================================
# Cart Totals
# ============================================================================


@dataclass(frozen=True)
class CartTotals:
    """Snapshot of cart totals; recomputed from lines on every read."""

    subtotal: Money
    discount_amount: Money
    tax_amount: Money
    shipping_amount: Money
    total: Money
    discount: Discount
    item_count: int


# ============================================================================
# Cart Aggregate Root
# ============================================================================


@dataclass(kw_only=True)
class Cart(AggregateRoot[CartId]):
    """Shopping cart aggregate root.

    A cart belongs to one customer session; nothing outside the session
    mutates it, so it needs no locking.

    Attributes:
        id: Unique cart identifier.
        location_id: Fulfilment location whose stock the cart sells from.
        customer_id: Acting customer, required by checkout.
        lines: Ordered cart lines.
        shipping_state: Destination state for the shipping quote.
        shipping_charge: Order-level shipping quoted for the destination.
        currency: Currency every line must be priced in.
    """

    id: CartId
    location_id: str
    customer_id: str | None = None
    lines: list[LineItem] = field(default_factory=list)
    shipping_state: str | None = None
    shipping_charge: Money = field(default_factory=Money.zero)
    currency: str = "USD"
    _ledger: DiscountLedger = field(default_factory=DiscountLedger, repr=False, compare=False)

    @classmethod
    def create(
        cls,
        location_id: str,
        customer_id: str | None = None,
        cart_id: CartId | None = None,
        currency: str = "USD",
    ) -> "Cart":
        """Open a new cart for a location and record CartCreated."""
        if not location_id or not str(location_id).strip():
            raise ValidationError("A cart needs a location", details={"location_id": location_id})
        cart = cls(
            id=cart_id or CartId.generate(),
            location_id=str(location_id),
            customer_id=customer_id,
            shipping_charge=Money.zero(currency),
            currency=currency.upper(),
        )
        cart._record_event(
            CartCreated(
                aggregate_id=str(cart.id),
                aggregate_type="Cart",
                cart_id=str(cart.id),
                location_id=cart.location_id,
                customer_id=customer_id,
            )
        )
        return cart

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    @property
    def discount(self) -> Discount:
        return self._ledger.active

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return len(self.lines) == 0

    def get_line(self, line_id: LineId) -> LineItem | None:
        for line in self.lines:
            if line.id == line_id:
                return line
        return None

    def _require_line(self, line_id: LineId) -> LineItem:
        line = self.get_line(line_id)
        if line is None:
            raise CartItemNotFoundError(str(self.id), str(line_id))
        return line

    def find_line(self, item: LineItem) -> LineItem | None:
        """Existing line that ``item`` would merge into."""
        for line in self.lines:
            if line.merge_key == item.merge_key:
                return line
        return None

    def totals(self) -> CartTotals:
        """Recompute subtotal, discount, tax, shipping and total."""
        zero = Money.zero(self.currency)
        subtotal = sum((line.line_total for line in self.lines), zero)
        discount_amount = subtotal.percent(self.discount.percent_off)
        tax_amount = sum((line.tax_amount for line in self.lines), zero)
        shipping_amount = sum((line.shipping_cost for line in self.lines), zero) + self.shipping_charge
        total = subtotal - discount_amount + tax_amount + shipping_amount
        return CartTotals(
            subtotal=subtotal,
            discount_amount=discount_amount,
            tax_amount=tax_amount,
            shipping_amount=shipping_amount,
            total=total,
            discount=self.discount,
            item_count=self.item_count,
        )

    # -------------------------------------------------------------------------
    # Line Operations
    # -------------------------------------------------------------------------

    def _check_availability(
        self,
        line: LineItem,
        quantity: int,
        availability: StockAvailability | None,
    ) -> None:
        if availability is None:
            if line.kind is ItemKind.BUNDLE:
                raise ValidationError(
                    f"Bundle {line.item_id} cannot be added without an availability check",
                    details={"item_id": line.item_id},
                )
            return
        if availability.item_id != line.item_id or availability.location_id != self.location_id:
            raise ValidationError(
                "Availability report does not match the cart line",
                details={
                    "item_id": line.item_id,
                    "location_id": self.location_id,
                    "report_item_id": availability.item_id,
                    "report_location_id": availability.location_id,
                },
            )
        if quantity > availability.sellable_quantity:
            raise InsufficientStockError(
                item_id=line.item_id,
                location_id=self.location_id,
                requested=quantity,
                available=availability.sellable_quantity,
                limiting_components=availability.limiting_components,
            )

    def add_item(self, item: LineItem, availability: StockAvailability | None = None) -> LineItem:
        """Add a line, merging into an existing line for the same item.

        Args:
            item: Line to add; its quantity is added to a matching line.
            availability: Current sellable quantity at the cart's
                location. Required for bundles.

        Returns:
            The new or merged line.

        Raises:
            InvalidQuantityError: If quantity is not positive.
            InsufficientStockError: If the resulting quantity exceeds
                what the location can sell.
            ValidationError: On currency or availability mismatches.
        """
        if item.quantity <= 0:
            raise InvalidQuantityError(item.quantity)
        if item.unit_price.currency != self.currency:
            raise ValidationError(
                f"Cart is priced in {self.currency}, line in {item.unit_price.currency}",
                details={"item_id": item.item_id},
            )

        existing = self.find_line(item)
        requested = item.quantity + (existing.quantity if existing else 0)
        self._check_availability(item, requested, availability)

        if existing:
            old_quantity = existing.quantity
            existing.quantity = requested
            self._touch()
            self._record_event(
                CartItemQuantityUpdated(
                    aggregate_id=str(self.id),
                    aggregate_type="Cart",
                    cart_id=str(self.id),
                    line_id=str(existing.id),
                    old_quantity=old_quantity,
                    new_quantity=requested,
                )
            )
            return existing

        self.lines.append(item)
        self._touch()
        self._record_event(
            CartItemAdded(
                aggregate_id=str(self.id),
                aggregate_type="Cart",
                cart_id=str(self.id),
                line_id=str(item.id),
                kind=item.kind.value,
                item_id=item.item_id,
                quantity=item.quantity,
                unit_price_cents=item.unit_price.amount_cents,
            )
        )
        return item

    def update_quantity(
        self,
        line_id: LineId,
        quantity: int,
        availability: StockAvailability | None = None,
    ) -> LineItem | None:
        """Set a line's quantity; zero or less removes the line.

        Increasing a bundle line needs a fresh availability report.

        Returns:
            The updated line, or None when it was removed.
        """
        line = self._require_line(line_id)
        if quantity <= 0:
            self.remove_item(line_id)
            return None
        if quantity > line.quantity:
            self._check_availability(line, quantity, availability)

        old_quantity = line.quantity
        line.quantity = quantity
        self._touch()
        self._record_event(
            CartItemQuantityUpdated(
                aggregate_id=str(self.id),
                aggregate_type="Cart",
                cart_id=str(self.id),
                line_id=str(line_id),
                old_quantity=old_quantity,
                new_quantity=quantity,
            )
        )
        return line

    def remove_item(self, line_id: LineId) -> LineItem:
        """Remove a line.

        Removing the last line of a bundle also drops the discount that
        bundle implied.

        Raises:
            CartItemNotFoundError: If the line is not in the cart.
        """
        line = self._require_line(line_id)
        self.lines.remove(line)
        self._touch()
        self._record_event(
            CartItemRemoved(
                aggregate_id=str(self.id),
                aggregate_type="Cart",
                cart_id=str(self.id),
                line_id=str(line_id),
                item_id=line.item_id,
            )
        )

        active = self.discount
        if (
            isinstance(active, BundleDiscount)
            and active.bundle_id == line.item_id
            and not any(
                other.kind is ItemKind.BUNDLE and other.item_id == line.item_id
                for other in self.lines
            )
        ):
            self.clear_discount()
        return line

    def clear(self) -> int:
        """Drop every line and the active discount.

        Returns:
            Number of lines removed.
        """
        count = len(self.lines)
        self.lines.clear()
        self._ledger.clear()
        self.shipping_charge = Money.zero(self.currency)
        self._touch()
        self._record_event(
            CartCleared(
                aggregate_id=str(self.id),
                aggregate_type="Cart",
                cart_id=str(self.id),
                line_count=count,
            )
        )
        return count

    # -------------------------------------------------------------------------
    # Discounts
    # -------------------------------------------------------------------------

    def _after_discount_change(self, previous: Discount, current: Discount) -> Discount:
        if current != previous:
            self._touch()
            self._record_event(
                CartDiscountApplied(
                    aggregate_id=str(self.id),
                    aggregate_type="Cart",
                    cart_id=str(self.id),
                    source=current.source.value,
                    percent_off=str(current.percent_off),
                    label=current.describe(),
                )
            )
        return current

    def apply_bundle_discount(self, bundle_id: str, percent_off: Decimal | int | str) -> Discount:
        previous = self.discount
        return self._after_discount_change(previous, self._ledger.apply_bundle(bundle_id, percent_off))

    def apply_manual_discount(self, percent_off: Decimal | int | str) -> Discount:
        previous = self.discount
        return self._after_discount_change(previous, self._ledger.apply_manual(percent_off))

    def apply_automatic_discount(self, rule: str, percent_off: Decimal | int | str) -> Discount:
        previous = self.discount
        return self._after_discount_change(
            previous, self._ledger.apply_automatic(rule, percent_off)
        )

    def clear_discount(self) -> Discount:
        """Remove the active discount; returns the removed one."""
        removed = self._ledger.clear()
        if self._ledger.active != removed:
            self._touch()
            self._record_event(
                CartDiscountCleared(
                    aggregate_id=str(self.id),
                    aggregate_type="Cart",
                    cart_id=str(self.id),
                    source=removed.source.value,
                )
            )
        return removed

    # -------------------------------------------------------------------------
    # Checkout Preparation
    # -------------------------------------------------------------------------

    def assign_customer(self, customer_id: str) -> None:
        self.customer_id = customer_id
        self._touch()

    def set_shipping_destination(self, state_code: str | None, charge: Money | None = None) -> None:
        """Record the destination state and the shipping quoted for it."""
        self.shipping_state = state_code.upper() if state_code else None
        self.shipping_charge = charge or Money.zero(self.currency)
        self._touch()

    def set_shipping_charge(self, charge: Money) -> None:
        if charge.currency != self.currency:
            raise ValidationError(
                f"Cart is priced in {self.currency}, shipping in {charge.currency}",
                details={"cart_id": str(self.id)},
            )
        self.shipping_charge = charge
        self._touch()

    def apply_tax_rates(self, rates_by_category: Mapping[str, Decimal]) -> None:
        """Reprice tax on lines whose category has a looked-up rate.

        Every rate is checked before any line changes.
        """
        rates = {category: Decimal(rate) for category, rate in rates_by_category.items()}
        for category, rate in rates.items():
            if rate < 0:
                raise InvalidPriceInputError(f"tax_rate[{category}]", rate)
        for line in self.lines:
            if line.category is not None and line.category in rates:
                line.tax_rate = rates[line.category]
        self._touch()


# ============================================================================
# Order
# ============================================================================


@dataclass(frozen=True)
class OrderLine:
    """Price-frozen snapshot of a cart line."""

    line_id: str
    kind: ItemKind
    item_id: str
    name: str
    unit_price: Money
    quantity: int
    tax_rate: Decimal
    shipping_cost: Money
    components: tuple[BundleComponent, ...] = ()

    @classmethod
    def from_line_item(cls, line: LineItem) -> "OrderLine":
        return cls(
            line_id=str(line.id),
            kind=line.kind,
            item_id=line.item_id,
            name=line.name,
            unit_price=line.unit_price,
            quantity=line.quantity,
            tax_rate=line.tax_rate,
            shipping_cost=line.shipping_cost,
            components=line.components,
        )

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity

    def stock_requirements(self) -> list[tuple[str, int]]:
        """Stock this line consumes as (item_id, units) pairs."""
        return _stock_requirements(self.kind, self.item_id, self.quantity, self.components)


@dataclass(frozen=True)
class Order:
    """A placed order. Never mutated by the checkout core."""

    id: OrderId
    customer_id: str
    location_id: str
    payment_id: str
    lines: tuple[OrderLine, ...]
    subtotal: Money
    discount_amount: Money
    tax_amount: Money
    shipping_amount: Money
    total: Money
    discount_label: str = "none"
    status: OrderStatus = OrderStatus.PLACED
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def place(
        cls,
        cart: Cart,
        customer_id: str,
        payment_id: str,
        order_id: OrderId | None = None,
    ) -> "Order":
        """Freeze a cart's lines and totals into an order."""
        totals = cart.totals()
        return cls(
            id=order_id or OrderId.generate(),
            customer_id=customer_id,
            location_id=cart.location_id,
            payment_id=payment_id,
            lines=tuple(OrderLine.from_line_item(line) for line in cart.lines),
            subtotal=totals.subtotal,
            discount_amount=totals.discount_amount,
            tax_amount=totals.tax_amount,
            shipping_amount=totals.shipping_amount,
            total=totals.total,
            discount_label=totals.discount.describe(),
        )

    def get_line(self, line_id: str) -> OrderLine | None:
        for line in self.lines:
            if line.line_id == line_id:
                return line
        return None
