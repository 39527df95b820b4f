"""API schemas for the shopcore API.

Pydantic models for request/response validation and serialization.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from shopcore.domain.value_objects import Money


# ============================================================================
# Common Schemas
# ============================================================================


class PriceSchema(BaseModel):
    """Price representation."""

    amount: int = Field(..., description="Amount in smallest currency unit (cents)")
    currency: str = Field(default="USD", description="Currency code")

    @classmethod
    def from_money(cls, money: Money) -> "PriceSchema":
        return cls(amount=money.amount_cents, currency=money.currency)


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | list[Any] = Field(
        default_factory=dict, description="Additional error details"
    )
    request_id: str | None = Field(default=None, description="Request ID for correlation")


# ============================================================================
# Cart Schemas
# ============================================================================


class ItemKindEnum(str, Enum):
    """Kinds of cart line."""

    PRODUCT = "product"
    BUNDLE = "bundle"


class DiscountSourceEnum(str, Enum):
    """Discount sources a client may apply."""

    BUNDLE = "bundle"
    MANUAL = "manual"
    AUTOMATIC = "automatic"


class CartCreateRequest(BaseModel):
    """Request to open a cart."""

    location_id: str = Field(..., min_length=1, description="Fulfilment location")
    customer_id: str | None = Field(default=None, description="Acting customer, if known")
    currency: str = Field(default="USD", min_length=3, max_length=3)


class CartItemAddRequest(BaseModel):
    """Request to add a product or bundle to a cart."""

    kind: ItemKindEnum = Field(default=ItemKindEnum.PRODUCT)
    item_id: str = Field(..., min_length=1, description="Product variation or bundle id")
    quantity: int = Field(default=1, description="Units to add")
    options: dict[str, str] | None = Field(
        default=None, description="Selected options (variation, colour, ...)"
    )


class CartItemUpdateRequest(BaseModel):
    """Request to change a line's quantity; zero removes the line."""

    quantity: int = Field(..., ge=0)


class DiscountRequest(BaseModel):
    """Request to apply the cart discount."""

    source: DiscountSourceEnum
    percent_off: Decimal = Field(..., description="Percentage in [0, 100]")
    rule: str | None = Field(default=None, description="Promotion rule (automatic only)")
    bundle_id: str | None = Field(default=None, description="Bundle (bundle only)")


class ShippingDestinationRequest(BaseModel):
    """Request to set the shipping destination state."""

    state_code: str | None = Field(default=None, max_length=10)


class BundleComponentSchema(BaseModel):
    """Component consumed by a bundle line."""

    component_item_id: str
    required_quantity: int
    unit_cost: Decimal


class LineItemSchema(BaseModel):
    """Cart line."""

    id: str
    kind: ItemKindEnum
    item_id: str
    name: str
    unit_price: PriceSchema
    quantity: int
    tax_rate: Decimal
    shipping_cost: PriceSchema
    line_total: PriceSchema
    category: str | None = None
    options: dict[str, str] = Field(default_factory=dict)
    components: list[BundleComponentSchema] = Field(default_factory=list)


class DiscountSchema(BaseModel):
    """Active cart discount."""

    source: str
    percent_off: Decimal
    label: str


class CartTotalsSchema(BaseModel):
    """Totals recomputed from the cart lines."""

    subtotal: PriceSchema
    discount: PriceSchema
    tax: PriceSchema
    shipping: PriceSchema
    total: PriceSchema
    item_count: int
    active_discount: DiscountSchema


class CartResponse(BaseModel):
    """Cart with lines and totals."""

    id: str
    location_id: str
    customer_id: str | None = None
    shipping_state: str | None = None
    lines: list[LineItemSchema]
    totals: CartTotalsSchema
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Checkout / Order Schemas
# ============================================================================


class CheckoutOutcomeEnum(str, Enum):
    """How a checkout ended when an order was placed."""

    ORDER_CREATED = "order_created"
    ORDER_CREATED_WITH_STOCK_ISSUES = "order_created_with_stock_issues"


class CheckoutRequest(BaseModel):
    """Request to commit a cart."""

    cart_id: str = Field(..., description="Cart to commit")
    customer_id: str = Field(..., min_length=1)
    location_id: str = Field(..., min_length=1)
    payment_id: str = Field(..., min_length=1, description="Captured payment identifier")
    payment_captured: bool = Field(default=True)
    payment_method: str | None = None


class OrderLineSchema(BaseModel):
    """Price-frozen order line."""

    line_id: str
    kind: ItemKindEnum
    item_id: str
    name: str
    unit_price: PriceSchema
    quantity: int
    tax_rate: Decimal
    shipping_cost: PriceSchema
    line_total: PriceSchema
    components: list[BundleComponentSchema] = Field(default_factory=list)


class OrderResponse(BaseModel):
    """Placed order."""

    id: str
    customer_id: str
    location_id: str
    payment_id: str
    status: str
    lines: list[OrderLineSchema]
    subtotal: PriceSchema
    discount: PriceSchema
    discount_label: str
    tax: PriceSchema
    shipping: PriceSchema
    total: PriceSchema
    created_at: datetime


class FailedLineSchema(BaseModel):
    """Order line whose stock is not reconciled."""

    line_id: str
    item_id: str
    error_code: str
    reason: str


class CheckoutResponse(BaseModel):
    """Result of a checkout commit or resume."""

    outcome: CheckoutOutcomeEnum
    order_id: str
    order: OrderResponse | None = None
    failed_lines: list[FailedLineSchema] = Field(default_factory=list)


class ReconciliationResponse(BaseModel):
    """Stock reconciliation state of an order."""

    order_id: str
    status: str
    reconciled_line_ids: list[str]
    pending_line_ids: list[str]


# ============================================================================
# Inventory Schemas
# ============================================================================


class ComponentCapacitySchema(BaseModel):
    """How many bundles one component can supply."""

    component_item_id: str
    required_quantity: int
    stock: int
    capacity: int


class LocationAvailabilitySchema(BaseModel):
    """Sellable bundle quantity at one location."""

    location_id: str
    sellable_quantity: int
    limiting_components: list[str]
    components: list[ComponentCapacitySchema] = Field(default_factory=list)


class BundleAvailabilityResponse(BaseModel):
    """Bundle availability and pricing."""

    bundle_id: str
    price: Decimal
    aggregate_component_cost: Decimal
    savings: Decimal
    locations: list[LocationAvailabilitySchema]


class StockLevelResponse(BaseModel):
    """Stock of an item at a location."""

    item_id: str
    location_id: str
    quantity: int


class ManualReasonEnum(str, Enum):
    """Reasons staff may record directly."""

    RECEIVING = "receiving"
    CORRECTION = "correction"
    RETURN = "return"


class StockAdjustmentCreateRequest(BaseModel):
    """Request to record a staff stock adjustment."""

    item_id: str = Field(..., min_length=1)
    location_id: str = Field(..., min_length=1)
    delta: int
    reason: ManualReasonEnum
    note: str | None = Field(default=None, max_length=1000)


class StockTransferRequest(BaseModel):
    """Request to move stock between locations."""

    item_id: str = Field(..., min_length=1)
    from_location_id: str = Field(..., min_length=1)
    to_location_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    note: str | None = Field(default=None, max_length=1000)


class StockReturnRequest(BaseModel):
    """Request to put returned units back in stock."""

    item_id: str = Field(..., min_length=1)
    location_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    related_order_id: str | None = None
    note: str | None = Field(default=None, max_length=1000)


class StockExchangeRequest(BaseModel):
    """Request to swap a returned item for a replacement."""

    returned_item_id: str = Field(..., min_length=1)
    replacement_item_id: str = Field(..., min_length=1)
    location_id: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1)
    related_order_id: str | None = None
    note: str | None = Field(default=None, max_length=1000)


class StockAdjustmentSchema(BaseModel):
    """Ledger row."""

    id: str
    item_id: str
    location_id: str
    delta: int
    reason: str
    related_order_id: str | None = None
    related_line_id: str | None = None
    correction: bool
    note: str | None = None
    resulting_level: int | None = None
    created_at: datetime


class StockAdjustmentListResponse(BaseModel):
    """Ledger rows."""

    items: list[StockAdjustmentSchema]
    total: int


class StockAuditResponse(BaseModel):
    """Materialized level compared with the ledger."""

    item_id: str
    location_id: str
    materialized: int
    ledger_sum: int
    adjustment_count: int
    consistent: bool


class PricedKindEnum(str, Enum):
    """Kinds of priced work."""

    PRODUCTS = "products"
    REPAIR = "repair"
    SERVICES = "services"


class PriceQuoteRequest(BaseModel):
    """Inputs of a price estimate."""

    kind: PricedKindEnum
    raw: Decimal
    tax_percent: Decimal = Decimal("0")
    shipping: Decimal = Decimal("0")
    labour: Decimal = Decimal("0")
    markup: Decimal = Decimal("0")
    fee: Decimal = Decimal("0")


class PriceQuoteResponse(BaseModel):
    """Estimated selling price."""

    kind: PricedKindEnum
    price: Decimal


# ============================================================================
# Catalog Schemas
# ============================================================================


class ProductCreateRequest(BaseModel):
    """Catalog product (a sellable variation)."""

    item_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    price: Decimal = Field(..., ge=0, description="Unit price in major units")
    category: str | None = None
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0)


class ProductResponse(BaseModel):
    """Catalog product."""

    item_id: str
    name: str
    price: Decimal
    category: str | None = None
    shipping_cost: Decimal


class BundleCreateRequest(BaseModel):
    """Bundle definition."""

    bundle_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    price: Decimal = Field(..., ge=0)
    components: list[BundleComponentSchema] = Field(..., min_length=1)
    percent_off: Decimal | None = Field(
        default=None, description="Cart discount implied by the bundle"
    )
    category: str | None = None


class BundleResponse(BaseModel):
    """Bundle with its derived cost and savings."""

    bundle_id: str
    name: str
    price: Decimal
    components: list[BundleComponentSchema]
    percent_off: Decimal | None = None
    category: str | None = None
    aggregate_component_cost: Decimal
    savings: Decimal
