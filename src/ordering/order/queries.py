"""Order read side — lookups, listings and statistics served straight from the store."""

from dataclasses import dataclass, field
from decimal import Decimal

from ordering.errors import OrderNotFoundError
from ordering.order.lifecycle import OrderStatus, parse_status
from ordering.order.pricing import ZERO, order_total
from ordering.persistence import get_store


@dataclass(frozen=True)
class OrderStatistics:
    order_count: int = 0
    revenue: Decimal = ZERO  # Sum of totals of orders that were not cancelled
    by_status: dict = field(default_factory=dict)


def get_order(order_id, store=None):
    """Return the order with its items, or raise ``OrderNotFoundError``."""
    order = (store or get_store()).get_order(order_id)
    if order is None:
        raise OrderNotFoundError(str(order_id))
    return order


def list_orders(customer_id=None, status=None, limit=None, store=None):
    """Orders filtered by customer and/or status, newest first."""
    return (store or get_store()).find_orders(
        customer_id=None if customer_id is None else str(customer_id),
        status=None if status is None else parse_status(status).value,
        limit=limit,
    )


def orders_for_customer(customer_id, limit=None, store=None):
    return list_orders(customer_id=customer_id, limit=limit, store=store)


def orders_with_status(status, limit=None, store=None):
    return list_orders(status=status, limit=limit, store=store)


def order_statistics(customer_id=None, store=None):
    """Order counts and revenue, for one customer or across all orders."""
    orders = (store or get_store()).find_orders(customer_id=None if customer_id is None else str(customer_id))

    by_status = {status.value: 0 for status in OrderStatus}
    for order in orders:
        by_status[order.status] += 1

    return OrderStatistics(
        order_count=len(orders),
        revenue=order_total(order.total for order in orders if not order.is_cancelled),
        by_status=by_status,
    )
