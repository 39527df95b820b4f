"""Domain exceptions.

Every business rule violation raised by the domain and the stock ledger
derives from DomainError. The application layer catches these and turns
them into result objects with stable error codes.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions."""

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Validation Errors
# ============================================================================


class ValidationError(DomainError):
    """Raised for bad input detected before anything is persisted."""

    error_code = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Raised when an invalid quantity is provided."""

    error_code = "INVALID_QUANTITY"

    def __init__(self, quantity: int, reason: str = "Quantity must be positive") -> None:
        super().__init__(
            f"Invalid quantity {quantity}: {reason}",
            details={"quantity": quantity, "reason": reason},
        )


class InvalidDiscountError(ValidationError):
    """Raised when a discount percentage falls outside [0, 100]."""

    error_code = "INVALID_DISCOUNT"

    def __init__(self, percent_off: object) -> None:
        super().__init__(
            f"Discount percent must be between 0 and 100, got {percent_off}",
            details={"percent_off": str(percent_off)},
        )


class InvalidPriceInputError(ValidationError):
    """Raised when a pricing input is negative."""

    error_code = "INVALID_PRICE_INPUT"

    def __init__(self, field_name: str, value: object) -> None:
        super().__init__(
            f"Pricing input '{field_name}' cannot be negative: {value}",
            details={"field": field_name, "value": str(value)},
        )


class PaymentNotConfirmedError(ValidationError):
    """Raised when checkout is attempted without captured funds."""

    error_code = "PAYMENT_NOT_CONFIRMED"

    def __init__(self, payment_id: str | None) -> None:
        super().__init__(
            "Payment has not been captured",
            details={"payment_id": payment_id},
        )


# ============================================================================
# State Machine Errors
# ============================================================================


class InvalidStateTransitionError(DomainError):
    """Raised when an invalid state transition is attempted."""

    error_code = "INVALID_STATE"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "CheckoutAttempt").
            entity_id: ID of the entity.
            current_state: Current state of the entity.
            target_state: Attempted target state.
            allowed_transitions: Allowed target states from current state.
        """
        allowed = allowed_transitions or []
        message = (
            f"Cannot transition {entity_type}({entity_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )


# ============================================================================
# Cart Errors
# ============================================================================


class CartError(DomainError):
    """Base class for cart-related errors."""

    error_code = "CART_ERROR"


class CartItemNotFoundError(CartError):
    """Raised when a cart line is not found."""

    error_code = "LINE_NOT_FOUND"

    def __init__(self, cart_id: str, line_id: str) -> None:
        super().__init__(
            f"Line {line_id} not found in cart {cart_id}",
            details={"cart_id": cart_id, "line_id": line_id},
        )


class CartEmptyError(CartError):
    """Raised when trying to check out an empty cart."""

    error_code = "CART_EMPTY"

    def __init__(self, cart_id: str) -> None:
        super().__init__(
            f"Cannot checkout empty cart {cart_id}",
            details={"cart_id": cart_id},
        )


# ============================================================================
# Stock Errors
# ============================================================================


class InsufficientStockError(DomainError):
    """Raised when a request exceeds the stock that can be sold or removed.

    The limiting components are attached so callers can explain the
    shortage; for a plain product this is the product itself.
    """

    error_code = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        item_id: str,
        location_id: str,
        requested: int,
        available: int,
        limiting_components: tuple[str, ...] = (),
    ) -> None:
        super().__init__(
            f"Insufficient stock for {item_id} at location {location_id}: "
            f"requested {requested}, available {available}",
            details={
                "item_id": item_id,
                "location_id": location_id,
                "requested": requested,
                "available": available,
                "limiting_components": list(limiting_components),
            },
        )
        self.item_id = item_id
        self.location_id = location_id
        self.requested = requested
        self.available = available
        self.limiting_components = limiting_components


class StockConflictError(DomainError):
    """Raised when a concurrent writer changed a stock row mid-update."""

    error_code = "STOCK_CONFLICT"

    def __init__(self, item_id: str, location_id: str) -> None:
        super().__init__(
            f"Concurrent update on stock for {item_id} at location {location_id}",
            details={"item_id": item_id, "location_id": location_id},
        )
        self.item_id = item_id
        self.location_id = location_id


class DuplicateAdjustmentError(DomainError):
    """Raised when an order line's stock decrement was already recorded."""

    error_code = "DUPLICATE_ADJUSTMENT"

    def __init__(self, related_order_id: str, related_line_id: str) -> None:
        super().__init__(
            f"Stock for line {related_line_id} of order {related_order_id} "
            "was already adjusted",
            details={
                "related_order_id": related_order_id,
                "related_line_id": related_line_id,
            },
        )
        self.related_order_id = related_order_id
        self.related_line_id = related_line_id


class StockLevelNotFoundError(DomainError):
    """Raised when no stock row exists for an item at a location."""

    error_code = "STOCK_LEVEL_NOT_FOUND"

    def __init__(self, item_id: str, location_id: str) -> None:
        super().__init__(
            f"No stock level for {item_id} at location {location_id}",
            details={"item_id": item_id, "location_id": location_id},
        )


# ============================================================================
# Order Errors
# ============================================================================


class OrderError(DomainError):
    """Base class for order-related errors."""

    error_code = "ORDER_ERROR"


class OrderNotFoundError(OrderError):
    """Raised when an order does not exist."""

    error_code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str) -> None:
        super().__init__(
            f"Order not found: {order_id}",
            details={"order_id": order_id},
        )


class DuplicateOrderError(OrderError):
    """Raised when a payment already has an order."""

    error_code = "DUPLICATE_ORDER"

    def __init__(self, payment_id: str, order_id: str | None = None) -> None:
        details: dict[str, Any] = {"payment_id": payment_id}
        if order_id is not None:
            details["order_id"] = order_id
        super().__init__(f"Payment {payment_id} already has an order", details=details)
        self.payment_id = payment_id


class PartialCommitError(OrderError):
    """An order was persisted but some of its stock decrements failed.

    Never raised out of the checkout orchestrator; it is carried inside
    the OrderCreatedWithStockIssues result so the order is not lost.
    """

    error_code = "PARTIAL_COMMIT"

    def __init__(self, order_id: str, failed_line_ids: list[str]) -> None:
        super().__init__(
            f"Order {order_id} placed but stock not reconciled for "
            f"{len(failed_line_ids)} line(s)",
            details={"order_id": order_id, "failed_line_ids": failed_line_ids},
        )
        self.order_id = order_id
        self.failed_line_ids = failed_line_ids


# ============================================================================
# Catalog / Collaborator Errors
# ============================================================================


class CatalogItemNotFoundError(DomainError):
    """Raised when a product or bundle is missing from the catalog."""

    error_code = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str, kind: str = "product") -> None:
        super().__init__(
            f"Unknown {kind}: {item_id}",
            details={"item_id": item_id, "kind": kind},
        )


class RateLookupError(DomainError):
    """Raised when the tax or shipping lookup collaborator is unavailable."""

    error_code = "RATE_LOOKUP_FAILED"


# ============================================================================
# Money Errors
# ============================================================================


class MoneyError(DomainError):
    """Base class for money-related errors."""

    error_code = "MONEY_ERROR"


class CurrencyMismatchError(MoneyError):
    """Raised when combining money in different currencies."""

    def __init__(self, currency1: str, currency2: str) -> None:
        super().__init__(
            f"Cannot combine money with different currencies: {currency1} and {currency2}",
            details={"currency1": currency1, "currency2": currency2},
        )


class NegativeMoneyError(MoneyError):
    """Raised when attempting to create money with negative amount."""

    def __init__(self, amount: int) -> None:
        super().__init__(
            f"Money amount cannot be negative: {amount}",
            details={"amount": amount},
        )
