"""Application tests for order lookups, listings and statistics."""

from decimal import Decimal

import pytest
from ordering.errors import OrderNotFoundError
from ordering.order.queries import (
    get_order,
    list_orders,
    order_statistics,
    orders_for_customer,
    orders_with_status,
)
from protean.exceptions import ValidationError


@pytest.fixture
def orders(catalogue, coordinator):
    catalogue.register_product(name="Apple", price="10.00", stock=50, product_id="A")
    catalogue.register_product(name="Banana", price="2.50", stock=50, product_id="B")

    first = coordinator.place_order("cust-001", {"A": 1}, "12 Harbour Street", "cash")
    second = coordinator.place_order("cust-001", {"B": 2}, "12 Harbour Street", "card")
    third = coordinator.place_order("cust-002", {"A": 2, "B": 1}, "3 Mill Lane", "online")
    coordinator.cancel_order(second, "cust-001")
    coordinator.update_order_status(third, "confirmed")
    return {"first": first, "second": second, "third": third}


class TestGetOrder:
    def test_returns_order_with_items(self, orders):
        order = get_order(orders["third"])

        assert order.customer_id == "cust-002"
        assert sorted(item.product_id for item in order.items) == ["A", "B"]

    def test_unknown_order(self):
        with pytest.raises(OrderNotFoundError):
            get_order("missing")


class TestListOrders:
    def test_newest_first(self, orders):
        listed = list_orders()

        assert len(listed) == 3
        created = [order.created_at for order in listed]
        assert created == sorted(created, reverse=True)

    def test_by_customer(self, orders):
        listed = orders_for_customer("cust-001")
        assert {str(order.id) for order in listed} == {orders["first"], orders["second"]}

    def test_by_status(self, orders):
        assert [str(o.id) for o in orders_with_status("cancelled")] == [orders["second"]]
        assert [str(o.id) for o in orders_with_status("Confirmed")] == [orders["third"]]

    def test_limit(self, orders):
        assert len(list_orders(limit=2)) == 2

    def test_unknown_status_filter(self, orders):
        with pytest.raises(ValidationError):
            list_orders(status="lost")


class TestOrderStatistics:
    def test_revenue_excludes_cancelled_orders(self, orders):
        stats = order_statistics()

        assert stats.order_count == 3
        assert stats.revenue == Decimal("32.50")
        assert stats.by_status["pending"] == 1
        assert stats.by_status["cancelled"] == 1
        assert stats.by_status["confirmed"] == 1
        assert stats.by_status["delivered"] == 0

    def test_for_one_customer(self, orders):
        stats = order_statistics(customer_id="cust-001")

        assert stats.order_count == 2
        assert stats.revenue == Decimal("10.00")

    def test_no_orders(self):
        stats = order_statistics()

        assert stats.order_count == 0
        assert stats.revenue == Decimal("0.00")
