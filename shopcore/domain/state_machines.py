"""State machines for checkout attempts and orders.

A checkout attempt moves forward only. Nothing is persisted before
ORDER_COMMITTED, so every abort happens from BUILDING or FINALIZING and
leaves no side effects behind.
"""

from enum import Enum

from shopcore.domain.exceptions import InvalidStateTransitionError


# ============================================================================
# Checkout Attempt State Machine
# ============================================================================


class CheckoutState(str, Enum):
    """Lifecycle of one checkout attempt.

    State diagram:
        BUILDING
          │ finalize
          ▼
        FINALIZING ─────────────────────────────► REJECTED
          │ order persisted
          ▼
        ORDER_COMMITTED
          │                     │
          │ all lines           │ some lines failed
          ▼                     ▼
        STOCK_RECONCILED    STOCK_PARTIALLY_RECONCILED
          │                     │
          └──────────► DONE ◄───┘
    """

    BUILDING = "building"
    FINALIZING = "finalizing"
    REJECTED = "rejected"
    ORDER_COMMITTED = "order_committed"
    STOCK_RECONCILED = "stock_reconciled"
    STOCK_PARTIALLY_RECONCILED = "stock_partially_reconciled"
    DONE = "done"

    def can_transition_to(self, target: "CheckoutState") -> bool:
        return target in _CHECKOUT_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["CheckoutState"]:
        return sorted(_CHECKOUT_TRANSITIONS.get(self, set()), key=lambda s: s.value)

    def is_terminal(self) -> bool:
        return len(_CHECKOUT_TRANSITIONS.get(self, set())) == 0

    def has_order(self) -> bool:
        """Whether an order exists once this state is reached."""
        return self in {
            CheckoutState.ORDER_COMMITTED,
            CheckoutState.STOCK_RECONCILED,
            CheckoutState.STOCK_PARTIALLY_RECONCILED,
            CheckoutState.DONE,
        }


_CHECKOUT_TRANSITIONS: dict[CheckoutState, set[CheckoutState]] = {
    CheckoutState.BUILDING: {CheckoutState.FINALIZING, CheckoutState.REJECTED},
    CheckoutState.FINALIZING: {CheckoutState.ORDER_COMMITTED, CheckoutState.REJECTED},
    CheckoutState.REJECTED: set(),
    CheckoutState.ORDER_COMMITTED: {
        CheckoutState.STOCK_RECONCILED,
        CheckoutState.STOCK_PARTIALLY_RECONCILED,
    },
    CheckoutState.STOCK_RECONCILED: {CheckoutState.DONE},
    CheckoutState.STOCK_PARTIALLY_RECONCILED: {CheckoutState.DONE},
    CheckoutState.DONE: set(),
}


def validate_checkout_transition(
    attempt_id: str,
    current: CheckoutState,
    target: CheckoutState,
) -> None:
    """Raise if a checkout attempt cannot move from ``current`` to ``target``.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current.can_transition_to(target):
        raise InvalidStateTransitionError(
            entity_type="CheckoutAttempt",
            entity_id=attempt_id,
            current_state=current.value,
            target_state=target.value,
            allowed_transitions=[s.value for s in current.allowed_transitions()],
        )


# ============================================================================
# Order Status
# ============================================================================


class OrderStatus(str, Enum):
    """Status recorded on an order when it is placed.

    Checkout only ever writes PLACED; later states belong to fulfilment,
    refund and return tooling outside this package.
    """

    PLACED = "placed"
    FULFILLED = "fulfilled"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class ReconciliationStatus(str, Enum):
    """Whether an order's stock decrements have all been recorded."""

    RECONCILED = "reconciled"
    PENDING = "pending"
