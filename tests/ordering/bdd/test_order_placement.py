"""BDD tests for order placement."""

import threading
from decimal import Decimal

from ordering.domain import ordering
from ordering.errors import InsufficientStockError, OrderingError, ProductNotAvailableError
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/order_placement.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('customer "{customer_id}" orders {qty_a:d} of "{first}" and {qty_b:d} of "{second}"'))
def _(coordinator, outcome, customer_id, qty_a, first, qty_b, second):
    try:
        outcome["order_id"] = coordinator.place_order(
            customer_id, {first: qty_a, second: qty_b}, "12 Harbour Street", "cash"
        )
    except OrderingError as exc:
        outcome["error"] = exc


@when(parsers.cfparse('two customers concurrently order {quantity:d} of "{product_id}"'), target_fixture="results")
def _(coordinator, quantity, product_id):
    barrier = threading.Barrier(2)
    results = [None, None]

    def _place(index):
        with ordering.domain_context():
            barrier.wait()
            try:
                results[index] = coordinator.place_order(
                    f"cust-{index}", {product_id: quantity}, "1 Quay Road", "cash"
                )
            except OrderingError as exc:
                results[index] = exc

    threads = [threading.Thread(target=_place, args=(i,)) for i in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results


@when(parsers.cfparse('the price of "{product_id}" changes to {price}'))
def _(catalogue, product_id, price):
    catalogue.change_price(product_id, price)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then("the order is placed")
def _(store, outcome):
    assert outcome["error"] is None
    assert store.get_order(outcome["order_id"]).status == "pending"


@then("the order is rejected for insufficient stock")
def _(outcome):
    assert isinstance(outcome["error"], InsufficientStockError)


@then("the order is rejected because a product is unavailable")
def _(outcome):
    assert isinstance(outcome["error"], ProductNotAvailableError)


@then("no orders exist")
def _(store):
    assert store.find_orders() == []


@then("exactly one order is placed")
def _(results):
    assert sum(isinstance(result, str) for result in results) == 1


@then("the other order is rejected for insufficient stock")
def _(results):
    assert sum(isinstance(result, InsufficientStockError) for result in results) == 1


@then(parsers.cfparse('a new order for {quantity:d} of "{product_id}" totals {amount}'))
def _(coordinator, store, quantity, product_id, amount):
    order_id = coordinator.place_order("cust-002", {product_id: quantity}, "3 Mill Lane", "cash")
    assert store.get_order(order_id).total == Decimal(amount)
