"""Integration tests for the SQL order store on a SQLite database file."""

import threading
from decimal import Decimal

import pytest
from ordering.checkout.coordinator import OrderTransactionCoordinator
from ordering.domain import ordering
from ordering.errors import (
    ConcurrencyConflictError,
    InsufficientStockError,
    PersistenceError,
    ProductNotAvailableError,
)
from ordering.inventory.catalogue import Catalogue
from ordering.order.order import OrderItem
from ordering.persistence import set_store
from ordering.persistence.sql import SqlOrderStore
from protean.exceptions import ValidationError


@pytest.fixture()
def sql_store(tmp_path):
    store = SqlOrderStore.from_uri(f"sqlite:///{tmp_path / 'ordering.db'}", lock_timeout=5.0)
    store.create_schema()
    set_store(store)
    yield store
    store.dispose()


@pytest.fixture()
def sql_coordinator(sql_store, test_settings):
    return OrderTransactionCoordinator(sql_store, test_settings)


@pytest.fixture()
def sql_catalogue(sql_store):
    catalogue = Catalogue(sql_store)
    catalogue.register_product(name="Apple", price="10.00", stock=5, product_id="A")
    catalogue.register_product(name="Banana", price="2.50", stock=5, product_id="B")
    catalogue.register_product(name="Cherry", price="4.00", stock=5, status="unavailable", product_id="C")
    return catalogue


@pytest.mark.usefixtures("sql_catalogue")
class TestPlacementOnSql:
    def test_place_order_persists_order_items_and_stock(self, sql_coordinator, sql_store):
        order_id = sql_coordinator.place_order("cust-001", {"A": 2, "B": 1}, "12 Harbour Street", "card")

        order = sql_store.get_order(order_id)
        assert order.status == "pending"
        assert order.total == Decimal("22.50")
        assert [(item.product_id, item.quantity) for item in order.items] == [("A", 2), ("B", 1)]
        assert sql_store.get_product("A").stock == 3
        assert sql_store.get_product("B").stock == 4

    def test_rejection_leaves_no_trace(self, sql_coordinator, sql_store):
        with pytest.raises(InsufficientStockError):
            sql_coordinator.place_order("cust-001", {"A": 2, "B": 6}, "12 Harbour Street", "cash")

        assert sql_store.get_product("A").stock == 5
        assert sql_store.get_product("B").stock == 5
        assert sql_store.find_orders() == []

    def test_unavailable_product(self, sql_coordinator, sql_store):
        with pytest.raises(ProductNotAvailableError):
            sql_coordinator.place_order("cust-001", {"C": 1}, "12 Harbour Street", "cash")
        assert sql_store.get_product("C").stock == 5

    def test_cancel_restores_stock_once(self, sql_coordinator, sql_store):
        order_id = sql_coordinator.place_order("cust-001", {"B": 2}, "12 Harbour Street", "cash")

        sql_coordinator.cancel_order(order_id, "cust-001")
        sql_coordinator.cancel_order(order_id, "cust-001")

        assert sql_store.get_order(order_id).status == "cancelled"
        assert sql_store.get_product("B").stock == 5

    def test_find_orders_filters(self, sql_coordinator, sql_store):
        first = sql_coordinator.place_order("cust-001", {"A": 1}, "12 Harbour Street", "cash")
        sql_coordinator.place_order("cust-002", {"B": 1}, "3 Mill Lane", "cash")
        sql_coordinator.update_order_status(first, "confirmed")

        assert [str(o.id) for o in sql_store.find_orders(customer_id="cust-001")] == [first]
        assert [str(o.id) for o in sql_store.find_orders(status="confirmed")] == [first]
        assert len(sql_store.find_orders(limit=1)) == 1

    def test_payment_and_delivery_updates(self, sql_coordinator, sql_store):
        order_id = sql_coordinator.place_order("cust-001", {"A": 1}, "12 Harbour Street", "cash")

        sql_coordinator.update_payment_status(order_id, "paid")
        sql_coordinator.update_delivery_details(order_id, "cust-001", notes="Ring twice")

        order = sql_store.get_order(order_id)
        assert order.payment_status == "paid"
        assert order.notes == "Ring twice"

    def test_low_stock_and_restock(self, sql_catalogue, sql_store):
        sql_catalogue.restock("A", 20)

        assert [p.id for p in sql_store.low_stock_products(10)] == ["B", "C"]


@pytest.mark.usefixtures("sql_catalogue")
class TestConditionalUpdates:
    def test_adjustment_never_goes_negative(self, sql_store):
        with sql_store.transaction() as tx:
            outcome = tx.adjust_stock("A", -6)

        assert not outcome.applied
        assert outcome.stock == 5

    def test_require_available(self, sql_store):
        with sql_store.transaction() as tx:
            outcome = tx.adjust_stock("C", -1, require_available=True)

        assert not outcome.applied
        assert outcome.status == "unavailable"

    def test_out_of_range_adjustment_is_a_persistence_error(self, sql_store):
        with pytest.raises(PersistenceError) as exc:
            with sql_store.transaction() as tx:
                tx.adjust_stock("A", -(10**20))

        assert "out of range" in str(exc.value) or "Database failure" in str(exc.value)
        assert sql_store.get_product("A").stock == 5

    def test_oversized_cart_quantity_never_reaches_the_database(self, sql_coordinator, sql_store):
        with pytest.raises(ValidationError):
            sql_coordinator.place_order("cust-001", {"A": 10**20}, "12 Harbour Street", "cash")

        assert sql_store.get_product("A").stock == 5
        assert sql_store.find_orders() == []

    def test_items_must_reference_known_products(self, sql_store):
        with pytest.raises(PersistenceError):
            with sql_store.transaction() as tx:
                tx.insert_order_items("no-such-order", [OrderItem(product_id="Z", quantity=1, unit_price="1.00", subtotal="1.00")])


@pytest.mark.usefixtures("sql_catalogue")
class TestConcurrencyOnSql:
    def test_two_orders_for_scarce_stock(self, sql_coordinator, sql_store):
        barrier = threading.Barrier(2)
        results = [None, None]

        def _place(index):
            with ordering.domain_context():
                barrier.wait()
                try:
                    results[index] = sql_coordinator.place_order(f"cust-{index}", {"A": 3}, "1 Quay Road", "cash")
                except InsufficientStockError as exc:
                    results[index] = exc

        threads = [threading.Thread(target=_place, args=(i,)) for i in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert sum(isinstance(r, str) for r in results) == 1
        assert sum(isinstance(r, InsufficientStockError) for r in results) == 1
        assert sql_store.get_product("A").stock == 2

    def test_write_lock_wait_is_bounded(self, sql_store):
        holder = sql_store.begin()
        try:
            with pytest.raises(ConcurrencyConflictError):
                sql_store.begin(lock_timeout=0.05)
        finally:
            holder.rollback()
            holder.close()


class TestInMemorySqlite:
    @pytest.fixture()
    def memory_store(self):
        store = SqlOrderStore.from_uri("sqlite://", lock_timeout=5.0)
        store.create_schema()
        Catalogue(store).register_product(name="Apple", price="10.00", stock=100, product_id="A")
        yield store
        store.dispose()

    def test_concurrent_placements_share_one_connection(self, memory_store, test_settings):
        coordinator = OrderTransactionCoordinator(memory_store, test_settings)
        barrier = threading.Barrier(8)
        results = [None] * 8

        def _place(index):
            with ordering.domain_context():
                barrier.wait()
                try:
                    results[index] = coordinator.place_order(f"cust-{index}", {"A": 1}, "1 Quay Road", "cash")
                except Exception as exc:  # collected for the assertion below
                    results[index] = exc

        threads = [threading.Thread(target=_place, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert all(isinstance(r, str) for r in results), results
        assert memory_store.get_product("A").stock == 92
        assert len(memory_store.find_orders()) == 8

    def test_wait_for_the_shared_connection_is_bounded(self, memory_store):
        holder = memory_store.begin()
        try:
            with pytest.raises(ConcurrencyConflictError) as exc:
                memory_store.begin(lock_timeout=0.05)
            assert exc.value.retryable
        finally:
            holder.rollback()
            holder.close()

        with memory_store.transaction() as tx:
            assert tx.get_product("A").stock == 100


def test_invalid_price_never_reaches_the_database(sql_store):
    with pytest.raises(ValidationError):
        Catalogue(sql_store).register_product(name="Apple", price="abc", product_id="A")
    assert sql_store.get_product("A") is None
