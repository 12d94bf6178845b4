"""Tests for the order status and payment status state machines."""

import pytest
from ordering.errors import InvalidStateTransitionError
from ordering.order.lifecycle import (
    OrderStatus,
    assert_payment_transition,
    assert_transition,
    can_transition,
    is_cancellable,
    is_terminal,
    parse_status,
)
from protean.exceptions import ValidationError

ALLOWED = [
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("confirmed", "preparing"),
    ("confirmed", "cancelled"),
    ("preparing", "ready"),
    ("ready", "delivered"),
]


class TestStatusTransitions:
    @pytest.mark.parametrize("current,target", ALLOWED)
    def test_allowed(self, current, target):
        assert can_transition(current, target)
        assert_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            ("pending", "preparing"),
            ("confirmed", "pending"),
            ("preparing", "cancelled"),
            ("ready", "cancelled"),
            ("delivered", "cancelled"),
            ("cancelled", "pending"),
            ("delivered", "ready"),
        ],
    )
    def test_rejected(self, current, target):
        assert not can_transition(current, target)
        with pytest.raises(InvalidStateTransitionError) as exc:
            assert_transition(current, target)
        assert exc.value.current == current
        assert exc.value.target == target
        assert exc.value.messages == {"status": [f"Cannot transition from {current} to {target}"]}

    def test_terminal_states_have_no_exits(self):
        for status in OrderStatus:
            assert not can_transition("delivered", status)
            assert not can_transition("cancelled", status)

    def test_cancellable_states(self):
        assert {s for s in OrderStatus if is_cancellable(s)} == {OrderStatus.PENDING, OrderStatus.CONFIRMED}

    def test_terminal_states(self):
        assert {s for s in OrderStatus if is_terminal(s)} == {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


class TestParsing:
    def test_case_insensitive(self):
        assert parse_status(" Confirmed ") is OrderStatus.CONFIRMED

    def test_unknown_status(self):
        with pytest.raises(ValidationError) as exc:
            parse_status("shipped")
        assert "status" in exc.value.messages


class TestPaymentTransitions:
    def test_pending_paid_refunded(self):
        assert_payment_transition("pending", "paid")
        assert_payment_transition("paid", "refunded")

    @pytest.mark.parametrize("current,target", [("pending", "refunded"), ("refunded", "paid"), ("paid", "pending")])
    def test_rejected(self, current, target):
        with pytest.raises(InvalidStateTransitionError) as exc:
            assert_payment_transition(current, target)
        assert exc.value.field == "payment_status"
