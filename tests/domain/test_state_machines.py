"""Tests for the checkout attempt state machine."""

import pytest

from shopcore.domain.exceptions import InvalidStateTransitionError
from shopcore.domain.state_machines import CheckoutState, validate_checkout_transition


class TestCheckoutState:
    """Tests for CheckoutState transitions."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (CheckoutState.BUILDING, CheckoutState.FINALIZING),
            (CheckoutState.FINALIZING, CheckoutState.REJECTED),
            (CheckoutState.FINALIZING, CheckoutState.ORDER_COMMITTED),
            (CheckoutState.ORDER_COMMITTED, CheckoutState.STOCK_RECONCILED),
            (CheckoutState.ORDER_COMMITTED, CheckoutState.STOCK_PARTIALLY_RECONCILED),
            (CheckoutState.STOCK_RECONCILED, CheckoutState.DONE),
            (CheckoutState.STOCK_PARTIALLY_RECONCILED, CheckoutState.DONE),
        ],
    )
    def test_valid_transitions(self, current, target):
        assert current.can_transition_to(target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (CheckoutState.BUILDING, CheckoutState.ORDER_COMMITTED),
            (CheckoutState.ORDER_COMMITTED, CheckoutState.REJECTED),
            (CheckoutState.REJECTED, CheckoutState.FINALIZING),
            (CheckoutState.DONE, CheckoutState.BUILDING),
        ],
    )
    def test_invalid_transitions(self, current, target):
        assert not current.can_transition_to(target)

    def test_no_rejection_after_order_exists(self):
        """Once an order is committed the attempt can no longer be rejected."""
        for state in CheckoutState:
            if state.has_order():
                assert not state.can_transition_to(CheckoutState.REJECTED)

    def test_terminal_states(self):
        assert CheckoutState.DONE.is_terminal()
        assert CheckoutState.REJECTED.is_terminal()
        assert not CheckoutState.FINALIZING.is_terminal()

    def test_validate_raises_with_allowed_list(self):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            validate_checkout_transition("att-1", CheckoutState.BUILDING, CheckoutState.DONE)

        details = exc_info.value.details
        assert details["current_state"] == "building"
        assert details["allowed_transitions"] == ["finalizing", "rejected"]
