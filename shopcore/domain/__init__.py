"""Domain layer - pricing, discounts, bundles, the cart and the stock ledger rows.

This module exports the core building blocks of the checkout engine:

- **Pricing**: Pure cost/price functions (compute_cost, compute_price)
- **Discounts**: Tagged-union Discount values and the DiscountLedger
- **Bundles**: Sellable quantity and savings of composite products
- **Entities**: Cart aggregate, line items and immutable orders
- **Stock**: Stock levels and append-only adjustments
- **State Machines**: Checkout attempt lifecycle
- **Exceptions**: Domain-specific errors and invariant violations

Example usage:
    from shopcore.domain import Cart, ItemKind, LineItem, Money

    cart = Cart.create(location_id="store-1")
    cart.add_item(
        LineItem.create(
            kind=ItemKind.PRODUCT,
            item_id="SKU-001",
            name="Screen protector",
            unit_price=Money.from_decimal(Decimal("20.00")),
            quantity=2,
            tax_rate=8,
        )
    )
    cart.apply_manual_discount(10)
    print(cart.totals().total)  # $39.20 USD
"""

# Base classes
from shopcore.domain.base import AggregateRoot, DomainEvent, Entity, ValueObject

# Bundles
from shopcore.domain.bundles import (
    Bundle,
    BundleAvailability,
    BundleAvailabilityReport,
    BundleComponent,
    ComponentCapacity,
    StockAvailability,
    StockSnapshot,
)

# Discounts
from shopcore.domain.discounts import (
    NO_DISCOUNT,
    AutomaticDiscount,
    BundleDiscount,
    Discount,
    DiscountLedger,
    DiscountSource,
    ManualDiscount,
    NoDiscount,
    validate_percent_off,
)

# Entities
from shopcore.domain.entities import (
    Cart,
    CartTotals,
    CatalogProduct,
    CustomerProfile,
    ItemKind,
    LineItem,
    Order,
    OrderLine,
)

# Domain Events
from shopcore.domain.events import (
    CartCleared,
    CartCreated,
    CartDiscountApplied,
    CartDiscountCleared,
    CartItemAdded,
    CartItemQuantityUpdated,
    CartItemRemoved,
    OrderPlaced,
    OrderStockReconciliationFailed,
)

# Exceptions
from shopcore.domain.exceptions import (
    CartEmptyError,
    CartError,
    CartItemNotFoundError,
    CatalogItemNotFoundError,
    CurrencyMismatchError,
    DomainError,
    DuplicateAdjustmentError,
    InsufficientStockError,
    InvalidDiscountError,
    InvalidPriceInputError,
    InvalidQuantityError,
    InvalidStateTransitionError,
    MoneyError,
    NegativeMoneyError,
    OrderError,
    OrderNotFoundError,
    PartialCommitError,
    PaymentNotConfirmedError,
    RateLookupError,
    StockConflictError,
    StockLevelNotFoundError,
    ValidationError,
)

# Pricing
from shopcore.domain.pricing import (
    PricedKind,
    compute_cost,
    compute_price,
    line_tax,
    quote_price,
)

# State Machines
from shopcore.domain.state_machines import (
    CheckoutState,
    OrderStatus,
    ReconciliationStatus,
    validate_checkout_transition,
)

# Stock
from shopcore.domain.stock import AdjustmentReason, StockAdjustment, StockLevel

# Value Objects
from shopcore.domain.value_objects import (
    AdjustmentId,
    CartId,
    LineId,
    Money,
    OrderId,
    PaymentConfirmation,
)

__all__ = [
    # Base
    "AggregateRoot",
    "DomainEvent",
    "Entity",
    "ValueObject",
    # Bundles
    "Bundle",
    "BundleAvailability",
    "BundleAvailabilityReport",
    "BundleComponent",
    "ComponentCapacity",
    "StockAvailability",
    "StockSnapshot",
    # Discounts
    "NO_DISCOUNT",
    "AutomaticDiscount",
    "BundleDiscount",
    "Discount",
    "DiscountLedger",
    "DiscountSource",
    "ManualDiscount",
    "NoDiscount",
    "validate_percent_off",
    # Entities
    "Cart",
    "CartTotals",
    "CatalogProduct",
    "CustomerProfile",
    "ItemKind",
    "LineItem",
    "Order",
    "OrderLine",
    # Events
    "CartCleared",
    "CartCreated",
    "CartDiscountApplied",
    "CartDiscountCleared",
    "CartItemAdded",
    "CartItemQuantityUpdated",
    "CartItemRemoved",
    "OrderPlaced",
    "OrderStockReconciliationFailed",
    # Exceptions
    "CartEmptyError",
    "CartError",
    "CartItemNotFoundError",
    "CatalogItemNotFoundError",
    "CurrencyMismatchError",
    "DomainError",
    "DuplicateAdjustmentError",
    "InsufficientStockError",
    "InvalidDiscountError",
    "InvalidPriceInputError",
    "InvalidQuantityError",
    "InvalidStateTransitionError",
    "MoneyError",
    "NegativeMoneyError",
    "OrderError",
    "OrderNotFoundError",
    "PartialCommitError",
    "PaymentNotConfirmedError",
    "RateLookupError",
    "StockConflictError",
    "StockLevelNotFoundError",
    "ValidationError",
    # Pricing
    "PricedKind",
    "compute_cost",
    "compute_price",
    "line_tax",
    "quote_price",
    # State Machines
    "CheckoutState",
    "OrderStatus",
    "ReconciliationStatus",
    "validate_checkout_transition",
    # Stock
    "AdjustmentReason",
    "StockAdjustment",
    "StockLevel",
    # Value Objects
    "AdjustmentId",
    "CartId",
    "LineId",
    "Money",
    "OrderId",
    "PaymentConfirmation",
]
