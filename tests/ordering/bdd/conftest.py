"""Shared BDD fixtures and step definitions for order placement and cancellation."""

from decimal import Decimal

import pytest
from pytest_bdd import given, parsers, then


@pytest.fixture()
def outcome():
    """Container for the result of the last When step (order id or captured error)."""
    return {"order_id": None, "error": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{product_id}" priced {price} with {stock:d} units in stock'))
def _(catalogue, product_id, price, stock):
    catalogue.register_product(name=f"Product {product_id}", price=price, stock=stock, product_id=product_id)


@given(parsers.cfparse('product "{product_id}" is "{status}"'))
def _(catalogue, product_id, status):
    catalogue.change_status(product_id, status)


@given(parsers.cfparse('customer "{customer_id}" has ordered {quantity:d} of "{product_id}"'))
def _(coordinator, outcome, customer_id, quantity, product_id):
    outcome["order_id"] = coordinator.place_order(customer_id, {product_id: quantity}, "12 Harbour Street", "cash")


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the stock of "{product_id}" is {stock:d}'))
def _(stock_of, product_id, stock):
    assert stock_of(product_id) == stock


@then(parsers.cfparse("the order total is {amount}"))
def _(store, outcome, amount):
    assert store.get_order(outcome["order_id"]).total == Decimal(amount)


@then(parsers.cfparse('the order status is "{status}"'))
def _(store, outcome, status):
    assert store.get_order(outcome["order_id"]).status == status
