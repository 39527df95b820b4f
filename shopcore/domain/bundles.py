"""Bundle availability and pricing.

A bundle is sold as one unit but consumes a fixed quantity of each of its
components. How many bundles a location can sell is bounded by the
component with the least stock relative to what one bundle needs.
Availability computed here is a point-in-time read for display and cart
validation; it is not a reservation.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from shopcore.domain.discounts import validate_percent_off
from shopcore.domain.exceptions import (
    InvalidPriceInputError,
    InvalidQuantityError,
    ValidationError,
)

# Stock snapshot keyed by (item_id, location_id).
StockSnapshot = Mapping[tuple[str, str], int]


@dataclass(frozen=True)
class BundleComponent:
    """A catalog item consumed by a bundle.

    Attributes:
        component_item_id: Item (variation) consumed by the bundle.
        required_quantity: Units consumed per bundle sold.
        unit_cost: Cost of one unit of the component.
    """

    component_item_id: str
    required_quantity: int
    unit_cost: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if self.required_quantity <= 0:
            raise InvalidQuantityError(
                self.required_quantity, "Component quantity must be at least 1"
            )
        if Decimal(self.unit_cost) < 0:
            raise InvalidPriceInputError("unit_cost", self.unit_cost)


@dataclass(frozen=True)
class Bundle:
    """A composite sellable item.

    Attributes:
        bundle_id: Catalog id of the bundle.
        name: Display name.
        price: Selling price of one bundle.
        components: Items consumed by one bundle.
        percent_off: Discount the bundle implies on the cart, if any.
        category: Catalog category, used for the tax lookup.
    """

    bundle_id: str
    name: str
    price: Decimal
    components: tuple[BundleComponent, ...] = ()
    percent_off: Decimal | None = None
    category: str | None = None

    def __post_init__(self) -> None:
        if Decimal(self.price) < 0:
            raise InvalidPriceInputError("price", self.price)
        seen: set[str] = set()
        for component in self.components:
            if component.component_item_id in seen:
                raise ValidationError(
                    f"Bundle {self.bundle_id} lists component "
                    f"{component.component_item_id} more than once",
                    details={
                        "bundle_id": self.bundle_id,
                        "component_item_id": component.component_item_id,
                    },
                )
            seen.add(component.component_item_id)
        if self.percent_off is not None:
            object.__setattr__(self, "percent_off", validate_percent_off(self.percent_off))


@dataclass(frozen=True)
class ComponentCapacity:
    """How many bundles one component's stock can supply."""

    component_item_id: str
    required_quantity: int
    stock: int
    capacity: int


@dataclass(frozen=True)
class StockAvailability:
    """Sellable quantity of an item at a location and what limits it.

    For a plain product the limiting component is the product itself.
    """

    item_id: str
    location_id: str
    sellable_quantity: int
    limiting_components: tuple[str, ...] = ()

    @property
    def is_sellable(self) -> bool:
        return self.sellable_quantity > 0


@dataclass(frozen=True)
class BundleAvailabilityReport(StockAvailability):
    """Bundle availability with the per-component breakdown."""

    components: tuple[ComponentCapacity, ...] = field(default=())


class BundleAvailability:
    """Derives sellable quantity, cost and savings of a bundle."""

    def __init__(self, bundle: Bundle) -> None:
        self.bundle = bundle

    def sellable_quantity(self, location_id: str, stock: StockSnapshot) -> BundleAvailabilityReport:
        """Compute how many bundles ``location_id`` can sell right now.

        Zero is a normal answer. Components missing from the snapshot
        count as out of stock.
        """
        capacities = tuple(
            ComponentCapacity(
                component_item_id=c.component_item_id,
                required_quantity=c.required_quantity,
                stock=max(stock.get((c.component_item_id, location_id), 0), 0),
                capacity=max(stock.get((c.component_item_id, location_id), 0), 0)
                // c.required_quantity,
            )
            for c in self.bundle.components
        )

        if not capacities:
            return BundleAvailabilityReport(
                item_id=self.bundle.bundle_id,
                location_id=location_id,
                sellable_quantity=0,
            )

        sellable = min(c.capacity for c in capacities)
        limiting = tuple(c.component_item_id for c in capacities if c.capacity == sellable)
        return BundleAvailabilityReport(
            item_id=self.bundle.bundle_id,
            location_id=location_id,
            sellable_quantity=sellable,
            limiting_components=limiting,
            components=capacities,
        )

    def sellable_by_location(
        self, location_ids: Iterable[str], stock: StockSnapshot
    ) -> dict[str, BundleAvailabilityReport]:
        """Availability of the bundle at each of ``location_ids``."""
        return {loc: self.sellable_quantity(loc, stock) for loc in location_ids}

    @property
    def aggregate_component_cost(self) -> Decimal:
        """Sum of component unit cost times required quantity."""
        return sum(
            (Decimal(c.unit_cost) * c.required_quantity for c in self.bundle.components),
            Decimal("0"),
        )

    def savings(self, bundle_price: Decimal | None = None) -> Decimal:
        """Advertised savings of the bundle versus buying components.

        Clamped at zero for display; the bundle price itself is never
        adjusted.
        """
        price = Decimal(self.bundle.price if bundle_price is None else bundle_price)
        if price < 0:
            raise InvalidPriceInputError("bundle_price", price)
        return max(self.aggregate_component_cost - price, Decimal("0"))

    def stock_requirements(self, quantity: int) -> list[tuple[str, int]]:
        """Component units consumed by selling ``quantity`` bundles."""
        if quantity <= 0:
            raise InvalidQuantityError(quantity)
        return [
            (c.component_item_id, c.required_quantity * quantity)
            for c in self.bundle.components
        ]
