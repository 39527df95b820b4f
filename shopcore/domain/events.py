"""Domain events recorded by the cart and the checkout orchestrator.

Events are collected from aggregates by the application layer and
published through the structured log; downstream tooling (email
confirmation, stock reconciliation dashboards) subscribes there.
"""

from dataclasses import dataclass
from typing import Any, ClassVar

from shopcore.domain.base import DomainEvent


# ============================================================================
# Cart Events
# ============================================================================


@dataclass(frozen=True)
class CartCreated(DomainEvent):
    """A cart was opened for a location."""

    event_type: ClassVar[str] = "cart.created"

    cart_id: str = ""
    location_id: str = ""
    customer_id: str | None = None

    def _payload(self) -> dict[str, Any]:
        return {
            "cart_id": self.cart_id,
            "location_id": self.location_id,
            "customer_id": self.customer_id,
        }


@dataclass(frozen=True)
class CartItemAdded(DomainEvent):
    """A new line was appended to a cart."""

    event_type: ClassVar[str] = "cart.item_added"

    cart_id: str = ""
    line_id: str = ""
    kind: str = ""
    item_id: str = ""
    quantity: int = 0
    unit_price_cents: int = 0

    def _payload(self) -> dict[str, Any]:
        return {
            "cart_id": self.cart_id,
            "line_id": self.line_id,
            "kind": self.kind,
            "item_id": self.item_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
        }


@dataclass(frozen=True)
class CartItemQuantityUpdated(DomainEvent):
    """The quantity of an existing line changed."""

    event_type: ClassVar[str] = "cart.item_quantity_updated"

    cart_id: str = ""
    line_id: str = ""
    old_quantity: int = 0
    new_quantity: int = 0

    def _payload(self) -> dict[str, Any]:
        return {
            "cart_id": self.cart_id,
            "line_id": self.line_id,
            "old_quantity": self.old_quantity,
            "new_quantity": self.new_quantity,
        }


@dataclass(frozen=True)
class CartItemRemoved(DomainEvent):
    """A line was removed from a cart."""

    event_type: ClassVar[str] = "cart.item_removed"

    cart_id: str = ""
    line_id: str = ""
    item_id: str = ""

    def _payload(self) -> dict[str, Any]:
        return {
            "cart_id": self.cart_id,
            "line_id": self.line_id,
            "item_id": self.item_id,
        }


@dataclass(frozen=True)
class CartDiscountApplied(DomainEvent):
    """A discount became the cart's active discount."""

    event_type: ClassVar[str] = "cart.discount_applied"

    cart_id: str = ""
    source: str = ""
    percent_off: str = "0"
    label: str = ""

    def _payload(self) -> dict[str, Any]:
        return {
            "cart_id": self.cart_id,
            "source": self.source,
            "percent_off": self.percent_off,
            "label": self.label,
        }


@dataclass(frozen=True)
class CartDiscountCleared(DomainEvent):
    """The cart's active discount was removed."""

    event_type: ClassVar[str] = "cart.discount_cleared"

    cart_id: str = ""
    source: str = ""

    def _payload(self) -> dict[str, Any]:
        return {"cart_id": self.cart_id, "source": self.source}


@dataclass(frozen=True)
class CartCleared(DomainEvent):
    """All lines and the discount were dropped."""

    event_type: ClassVar[str] = "cart.cleared"

    cart_id: str = ""
    line_count: int = 0

    def _payload(self) -> dict[str, Any]:
        return {"cart_id": self.cart_id, "line_count": self.line_count}


# ============================================================================
# Order Events
# ============================================================================


@dataclass(frozen=True)
class OrderPlaced(DomainEvent):
    """An order header and its lines were committed."""

    event_type: ClassVar[str] = "order.placed"

    order_id: str = ""
    customer_id: str = ""
    location_id: str = ""
    total_cents: int = 0

    def _payload(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "location_id": self.location_id,
            "total_cents": self.total_cents,
        }


@dataclass(frozen=True)
class OrderStockReconciliationFailed(DomainEvent):
    """Some lines of a placed order could not be decremented from stock."""

    event_type: ClassVar[str] = "order.stock_reconciliation_failed"

    order_id: str = ""
    failed_line_ids: tuple[str, ...] = ()

    def _payload(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "failed_line_ids": list(self.failed_line_ids),
        }
