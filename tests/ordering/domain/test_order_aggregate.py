"""Tests for the Order aggregate — placement snapshot, lifecycle and delivery details."""

from decimal import Decimal

import pytest
from ordering.errors import InvalidStateTransitionError
from ordering.order.order import Order, OrderItem
from ordering.order.pricing import price_cart
from protean.exceptions import ValidationError


def _place(prices=None, cart=None):
    priced = price_cart(prices or {"p1": "10.00", "p2": "0.125"}, cart or {"p1": 3, "p2": 1})
    return Order.place(
        customer_id="cust-001",
        priced_cart=priced,
        delivery_address="12 Harbour Street",
        payment_method="card",
        notes="Leave at the door",
    )


def _advance(order, *statuses):
    for status in statuses:
        order.transition_to(status)
    return order


class TestPlacement:
    def test_new_order_is_pending_on_both_axes(self):
        order = _place()
        assert order.status == "pending"
        assert order.payment_status == "pending"
        assert order.created_at is not None

    def test_items_snapshot_price_and_subtotal(self):
        order = _place()
        items = {str(item.product_id): item for item in order.items}

        assert items["p1"].unit_price_amount == Decimal("10.00")
        assert items["p1"].subtotal_amount == Decimal("30.00")
        assert items["p2"].subtotal_amount == Decimal("0.13")

    def test_total_is_sum_of_item_subtotals(self):
        order = _place()
        assert order.total == Decimal("30.13")
        assert order.total == sum(item.subtotal_amount for item in order.items)

    def test_reserved_quantities(self):
        assert _place().reserved_quantities() == {"p1": 3, "p2": 1}

    def test_mismatched_total_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            Order(
                customer_id="cust-001",
                total_amount="99.00",
                delivery_address="12 Harbour Street",
                payment_method="cash",
                items=[OrderItem(product_id="p1", quantity=1, unit_price="10.00", subtotal="10.00")],
            )
        assert "total_amount" in exc.value.messages

    def test_order_without_items_is_rejected(self):
        with pytest.raises(ValidationError):
            Order(
                customer_id="cust-001",
                total_amount="0.00",
                delivery_address="12 Harbour Street",
                payment_method="cash",
            )


class TestLifecycle:
    def test_happy_path_to_delivered(self):
        order = _advance(_place(), "confirmed", "preparing", "ready", "delivered")
        assert order.status == "delivered"

    def test_cancel_from_pending(self):
        order = _place()
        assert order.cancel() is True
        assert order.is_cancelled

    def test_second_cancel_is_a_no_op(self):
        order = _place()
        order.cancel()
        assert order.cancel() is False
        assert order.status == "cancelled"

    def test_cannot_cancel_while_preparing(self):
        order = _advance(_place(), "confirmed", "preparing")
        with pytest.raises(InvalidStateTransitionError):
            order.cancel()
        assert order.status == "preparing"

    def test_transition_to_cancelled_uses_cancel(self):
        order = _advance(_place(), "confirmed")
        order.transition_to("cancelled")
        assert order.is_cancelled

    def test_refund_does_not_touch_status(self):
        order = _advance(_place(), "confirmed")
        order.record_payment_status("paid")
        order.record_payment_status("refunded")
        assert order.payment_status == "refunded"
        assert order.status == "confirmed"


class TestDeliveryDetails:
    def test_change_address_and_notes(self):
        order = _place()
        order.update_delivery_details(delivery_address="  99 Quay Road ", notes="Back door")
        assert order.delivery_address == "99 Quay Road"
        assert order.notes == "Back door"

    def test_invalid_address_changes_nothing(self):
        order = _place()
        with pytest.raises(ValidationError):
            order.update_delivery_details(delivery_address="ab", notes="Back door")
        assert order.delivery_address == "12 Harbour Street"
        assert order.notes == "Leave at the door"

    @pytest.mark.parametrize("path", [("cancelled",), ("confirmed", "preparing", "ready", "delivered")])
    def test_not_allowed_once_finished(self, path):
        order = _advance(_place(), *path)
        with pytest.raises(ValidationError) as exc:
            order.update_delivery_details(notes="Too late")
        assert "status" in exc.value.messages
