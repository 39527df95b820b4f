"""Checkout orchestration.

Turns a finalized cart into a placed order and reconciles stock:

1. Finalize: validate the cart, customer, location and payment, refresh
   tax and shipping rates, and re-check stock. Nothing is persisted, so
   any failure here is a clean rejection.
2. Upsert the customer profile.
3. Persist the order header and lines in one transaction. Past this
   point the order exists and is never rolled back, because the payment
   has already been captured.
4. Decrement stock per line through the StockLedger, tagged with the
   order and line ids. Lines that fail are reported, not hidden.

A retry with the same payment, or an explicit resume, only reconciles
lines that have no ledger entry for the order yet.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Union
from uuid import uuid4

import structlog

from shopcore.application.ports import InventoryStore, ShippingRateLookup, TaxRateLookup
from shopcore.application.stock_ledger import AdjustmentRequest, StockLedger
from shopcore.domain.base import DomainEvent
from shopcore.domain.entities import Cart, CustomerProfile, ItemKind, Order, OrderLine
from shopcore.domain.events import OrderPlaced, OrderStockReconciliationFailed
from shopcore.domain.exceptions import (
    CartEmptyError,
    DomainError,
    DuplicateAdjustmentError,
    DuplicateOrderError,
    InsufficientStockError,
    OrderNotFoundError,
    PartialCommitError,
    PaymentNotConfirmedError,
    RateLookupError,
    ValidationError,
)
from shopcore.domain.state_machines import (
    CheckoutState,
    ReconciliationStatus,
    validate_checkout_transition,
)
from shopcore.domain.stock import AdjustmentReason
from shopcore.domain.value_objects import Money, PaymentConfirmation

logger = structlog.get_logger()


# ============================================================================
# Checkout Results
# ============================================================================


@dataclass(frozen=True)
class FailedLine:
    """An order line whose stock decrement could not be recorded."""

    line_id: str
    item_id: str
    error_code: str
    reason: str


@dataclass(frozen=True)
class OrderCreated:
    """Order placed and every line's stock decremented."""

    order_id: str
    order: Order | None = None


@dataclass(frozen=True)
class OrderCreatedWithStockIssues:
    """Order placed, but some lines still need stock reconciliation.

    The customer sees a confirmed order; the failed lines are flagged for
    manual inventory correction.
    """

    order_id: str
    failed_lines: tuple[FailedLine, ...]
    order: Order | None = None

    @property
    def error(self) -> PartialCommitError:
        return PartialCommitError(self.order_id, [f.line_id for f in self.failed_lines])


@dataclass(frozen=True)
class Rejected:
    """Checkout aborted before anything was persisted."""

    reason: str
    error_code: str
    details: dict[str, Any] = field(default_factory=dict)


CheckoutResult = Union[OrderCreated, OrderCreatedWithStockIssues, Rejected]


@dataclass(frozen=True)
class OrderReconciliation:
    """Which lines of an order have their stock decrement recorded."""

    order_id: str
    status: ReconciliationStatus
    reconciled_line_ids: tuple[str, ...]
    pending_line_ids: tuple[str, ...]


# ============================================================================
# Checkout Attempt
# ============================================================================


@dataclass
class CheckoutAttempt:
    """Tracks one pass through the checkout state machine."""

    id: str = field(default_factory=lambda: str(uuid4()))
    state: CheckoutState = CheckoutState.BUILDING
    order_id: str | None = None
    history: list[tuple[CheckoutState, datetime]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append((self.state, datetime.now(timezone.utc)))

    def advance(self, target: CheckoutState) -> None:
        validate_checkout_transition(self.id, self.state, target)
        self.state = target
        self.history.append((target, datetime.now(timezone.utc)))

    @classmethod
    def resuming(cls, order_id: str) -> "CheckoutAttempt":
        """Attempt that picks up an already committed order."""
        return cls(state=CheckoutState.ORDER_COMMITTED, order_id=order_id)


# ============================================================================
# Checkout Orchestrator
# ============================================================================


class CheckoutOrchestrator:
    """Commits carts into orders and reconciles their stock."""

    def __init__(
        self,
        store: InventoryStore,
        ledger: StockLedger | None = None,
        tax_lookup: TaxRateLookup | None = None,
        shipping_lookup: ShippingRateLookup | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            store: Inventory store for orders, customers and stock reads.
            ledger: Stock ledger; built on ``store`` when omitted.
            tax_lookup: Tax rates by category; line rates are kept as
                they are when omitted.
            shipping_lookup: Shipping charge by destination state.
            request_id: Request ID for correlation.
        """
        self.store = store
        self.ledger = ledger or StockLedger(store, request_id=request_id)
        self.tax_lookup = tax_lookup
        self.shipping_lookup = shipping_lookup
        self.request_id = request_id

    async def commit(
        self,
        cart: Cart,
        customer_id: str | None,
        location_id: str | None,
        payment: PaymentConfirmation | None,
    ) -> CheckoutResult:
        """Place an order for ``cart`` and decrement its stock.

        Expected business outcomes are returned, never raised.

        Returns:
            OrderCreated, OrderCreatedWithStockIssues or Rejected.
        """
        attempt = CheckoutAttempt()
        log = logger.bind(
            attempt_id=attempt.id,
            cart_id=str(cart.id),
            request_id=self.request_id,
        )

        if payment is not None and payment.payment_id:
            existing = await self.store.get_order_by_payment(payment.payment_id)
            if existing is not None:
                return await self._resume_for_payment(cart, existing, log)

        attempt.advance(CheckoutState.FINALIZING)
        try:
            customer_id, payment = await self._finalize(cart, customer_id, location_id, payment)
        except DomainError as e:
            attempt.advance(CheckoutState.REJECTED)
            log.info("Checkout rejected", error_code=e.error_code, reason=e.message)
            return Rejected(reason=e.message, error_code=e.error_code, details=e.details)

        try:
            await self.store.upsert_customer(
                CustomerProfile(customer_id=customer_id, last_location_id=cart.location_id)
            )
            order = Order.place(cart, customer_id=customer_id, payment_id=payment.payment_id)
            await self.store.create_order(order)
        except DuplicateOrderError as e:
            # A concurrent commit with the same payment saved its order first.
            existing = await self.store.get_order_by_payment(e.payment_id)
            if existing is None:
                attempt.advance(CheckoutState.REJECTED)
                log.warning("Order could not be persisted", error_code=e.error_code, reason=e.message)
                return Rejected(reason=e.message, error_code=e.error_code, details=e.details)
            return await self._resume_for_payment(cart, existing, log)
        except DomainError as e:
            attempt.advance(CheckoutState.REJECTED)
            log.warning("Order could not be persisted", error_code=e.error_code, reason=e.message)
            return Rejected(reason=e.message, error_code=e.error_code, details=e.details)
        except Exception as e:
            attempt.advance(CheckoutState.REJECTED)
            log.exception("Order could not be persisted", error=str(e))
            return Rejected(
                reason="Order could not be persisted",
                error_code="ORDER_PERSIST_FAILED",
            )

        attempt.order_id = str(order.id)
        attempt.advance(CheckoutState.ORDER_COMMITTED)
        self._publish(
            [
                OrderPlaced(
                    aggregate_id=str(order.id),
                    aggregate_type="Order",
                    order_id=str(order.id),
                    customer_id=order.customer_id,
                    location_id=order.location_id,
                    total_cents=order.total.amount_cents,
                )
            ]
        )
        log.info(
            "Order committed",
            order_id=str(order.id),
            total=str(order.total),
            line_count=len(order.lines),
        )

        cart.clear()
        self._publish(cart.collect_events())

        return await self._reconcile(order, attempt)

    async def _resume_for_payment(self, cart: Cart, existing: Order, log: Any) -> CheckoutResult:
        """Reconcile the order a payment already has; the retried cart is emptied."""
        log.info(
            "Payment already has an order, resuming reconciliation",
            order_id=str(existing.id),
            payment_id=existing.payment_id,
        )
        cart.clear()
        self._publish(cart.collect_events())
        return await self._reconcile(existing, CheckoutAttempt.resuming(str(existing.id)))

    async def resume(self, order_id: str) -> CheckoutResult:
        """Reconcile the lines of a committed order that have no stock entry yet."""
        order = await self.store.get_order(order_id)
        if order is None:
            error = OrderNotFoundError(order_id)
            return Rejected(reason=error.message, error_code=error.error_code, details=error.details)
        logger.info("Resuming stock reconciliation", order_id=order_id, request_id=self.request_id)
        return await self._reconcile(order, CheckoutAttempt.resuming(order_id))

    async def reconciliation_status(self, order_id: str) -> OrderReconciliation:
        """Report reconciled and pending lines of an order.

        Raises:
            OrderNotFoundError: If the order does not exist.
        """
        order = await self.store.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        applied = await self.ledger.applied_line_ids(order_id)
        reconciled = tuple(line.line_id for line in order.lines if line.line_id in applied)
        pending = tuple(line.line_id for line in order.lines if line.line_id not in applied)
        return OrderReconciliation(
            order_id=order_id,
            status=ReconciliationStatus.PENDING if pending else ReconciliationStatus.RECONCILED,
            reconciled_line_ids=reconciled,
            pending_line_ids=pending,
        )

    async def get_order(self, order_id: str) -> Order | None:
        return await self.store.get_order(order_id)

    # -------------------------------------------------------------------------
    # Finalizing
    # -------------------------------------------------------------------------

    async def _finalize(
        self,
        cart: Cart,
        customer_id: str | None,
        location_id: str | None,
        payment: PaymentConfirmation | None,
    ) -> tuple[str, PaymentConfirmation]:
        """Validate and reprice the cart without persisting anything.

        Rates are looked up and stock re-checked before the cart is
        touched, so a rejection leaves the cart as it was.
        """
        if cart.is_empty:
            raise CartEmptyError(str(cart.id))
        if not customer_id or not customer_id.strip():
            raise ValidationError("A customer is required to check out")
        if not location_id or not location_id.strip():
            raise ValidationError("A fulfilment location is required to check out")
        if location_id != cart.location_id:
            raise ValidationError(
                f"Checkout location {location_id} does not match cart location {cart.location_id}",
                details={"location_id": location_id, "cart_location_id": cart.location_id},
            )
        if payment is None or not payment.is_valid:
            raise PaymentNotConfirmedError(payment.payment_id if payment else None)

        tax_rates = await self._lookup_tax_rates(cart)
        shipping_charge = await self._lookup_shipping(cart)
        await self._revalidate_stock(cart)

        if tax_rates:
            cart.apply_tax_rates(tax_rates)
        if shipping_charge is not None:
            cart.set_shipping_charge(shipping_charge)
        return customer_id, payment

    async def _lookup_tax_rates(self, cart: Cart) -> dict[str, Decimal]:
        if self.tax_lookup is None:
            return {}
        categories = sorted({line.category for line in cart.lines if line.category})
        rates: dict[str, Decimal] = {}
        for category in categories:
            try:
                rates[category] = Decimal(await self.tax_lookup.rate_for_category(category))
            except RateLookupError:
                raise
            except Exception as e:
                raise RateLookupError(
                    "Tax rate lookup failed", details={"category": category}
                ) from e
        return rates

    async def _lookup_shipping(self, cart: Cart) -> Money | None:
        if self.shipping_lookup is None or not cart.shipping_state:
            return None
        try:
            amount = await self.shipping_lookup.rate_for_state(cart.shipping_state)
        except RateLookupError:
            raise
        except Exception as e:
            raise RateLookupError(
                "Shipping rate lookup failed", details={"state": cart.shipping_state}
            ) from e
        return Money.from_decimal(Decimal(amount), cart.currency)

    async def _revalidate_stock(self, cart: Cart) -> None:
        """Re-read stock for every line; earlier availability reads are not reservations."""
        required: dict[str, int] = {}
        for line in cart.lines:
            for item_id, quantity in line.stock_requirements():
                required[item_id] = required.get(item_id, 0) + quantity

        levels = await self.store.get_levels(required.keys(), [cart.location_id])
        for item_id, quantity in required.items():
            available = levels.get((item_id, cart.location_id), 0)
            if available < quantity:
                raise InsufficientStockError(
                    item_id=item_id,
                    location_id=cart.location_id,
                    requested=quantity,
                    available=available,
                    limiting_components=(item_id,),
                )

    # -------------------------------------------------------------------------
    # Stock Reconciliation
    # -------------------------------------------------------------------------

    async def _reconcile(self, order: Order, attempt: CheckoutAttempt) -> CheckoutResult:
        order_id = str(order.id)
        applied = await self.ledger.applied_line_ids(order_id)
        pending = [line for line in order.lines if line.line_id not in applied]

        outcomes = await asyncio.gather(
            *(self._decrement_line(order, line) for line in pending)
        )
        failed = tuple(outcome for outcome in outcomes if outcome is not None)

        if failed:
            attempt.advance(CheckoutState.STOCK_PARTIALLY_RECONCILED)
            self._publish(
                [
                    OrderStockReconciliationFailed(
                        aggregate_id=order_id,
                        aggregate_type="Order",
                        order_id=order_id,
                        failed_line_ids=tuple(f.line_id for f in failed),
                    )
                ]
            )
            logger.warning(
                "Order placed with unreconciled stock",
                order_id=order_id,
                failed_lines=[f.line_id for f in failed],
                request_id=self.request_id,
            )
            result: CheckoutResult = OrderCreatedWithStockIssues(
                order_id=order_id, failed_lines=failed, order=order
            )
        else:
            attempt.advance(CheckoutState.STOCK_RECONCILED)
            logger.info(
                "Order stock reconciled",
                order_id=order_id,
                reconciled_now=len(pending),
                already_reconciled=len(applied),
                request_id=self.request_id,
            )
            result = OrderCreated(order_id=order_id, order=order)

        attempt.advance(CheckoutState.DONE)
        return result

    async def _decrement_line(self, order: Order, line: OrderLine) -> FailedLine | None:
        """Decrement one line's stock; a bundle line's components go as one batch."""
        reason = AdjustmentReason.BUNDLE_SALE if line.kind is ItemKind.BUNDLE else AdjustmentReason.SALE
        requests = [
            AdjustmentRequest(
                item_id=item_id,
                location_id=order.location_id,
                delta=-quantity,
                reason=reason,
                related_order_id=str(order.id),
                related_line_id=line.line_id,
                note=f"Order {order.id}",
            )
            for item_id, quantity in line.stock_requirements()
        ]
        try:
            await self.ledger.adjust_many(requests)
        except DuplicateAdjustmentError:
            logger.info(
                "Line stock already reconciled",
                order_id=str(order.id),
                line_id=line.line_id,
                request_id=self.request_id,
            )
            return None
        except DomainError as e:
            logger.warning(
                "Stock decrement failed for order line",
                order_id=str(order.id),
                line_id=line.line_id,
                item_id=line.item_id,
                error_code=e.error_code,
                error=e.message,
                request_id=self.request_id,
            )
            return FailedLine(
                line_id=line.line_id,
                item_id=line.item_id,
                error_code=e.error_code,
                reason=e.message,
            )
        except Exception as e:
            logger.exception(
                "Unexpected error decrementing order line",
                order_id=str(order.id),
                line_id=line.line_id,
                error=str(e),
                request_id=self.request_id,
            )
            return FailedLine(
                line_id=line.line_id,
                item_id=line.item_id,
                error_code="INTERNAL_ERROR",
                reason=str(e),
            )
        return None

    def _publish(self, events: list[DomainEvent]) -> None:
        for event in events:
            logger.info("Domain event", request_id=self.request_id, **event.to_dict())


def get_checkout_orchestrator(request_id: str | None = None) -> CheckoutOrchestrator:
    """Build an orchestrator wired to the configured store and rate lookups."""
    from shopcore.infrastructure.config import settings
    from shopcore.infrastructure.rate_client import get_shipping_lookup, get_tax_lookup
    from shopcore.infrastructure.store import get_inventory_store

    store = get_inventory_store()
    return CheckoutOrchestrator(
        store=store,
        ledger=StockLedger(
            store,
            conflict_retries=settings.stock_conflict_retries,
            request_id=request_id,
        ),
        tax_lookup=get_tax_lookup(),
        shipping_lookup=get_shipping_lookup(),
        request_id=request_id,
    )
