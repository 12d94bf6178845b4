"""In-process order store.

Committed state lives in plain dicts guarded by a mutex. Each transaction
buffers its writes privately and publishes them on commit, so other
transactions never observe uncommitted stock or order changes.

Isolation is strict two-phase locking: every product or order a transaction
writes, or reads ``for_update``, is exclusively locked until the transaction
ends. A lock that cannot be acquired within the transaction's lock timeout
fails with ``ConcurrencyConflictError``.
"""

import copy
import itertools
import threading
import time

import structlog

from ordering.errors import ConcurrencyConflictError, PersistenceError
from ordering.inventory.product import ProductStatus
from ordering.persistence.mapping import (
    item_to_row,
    order_from_rows,
    order_to_row,
    product_from_row,
    product_to_row,
)
from ordering.persistence.store import (
    DEFAULT_LOCK_TIMEOUT_SECONDS,
    OrderStore,
    StockAdjustment,
    StoreTransaction,
)

logger = structlog.get_logger(__name__)


class LockManager:
    """Exclusive, re-entrant row locks keyed by ``(kind, id)``."""

    def __init__(self):
        self._condition = threading.Condition()
        self._owners = {}

    def acquire(self, resource, owner, timeout):
        deadline = time.monotonic() + timeout
        with self._condition:
            while True:
                holder = self._owners.get(resource)
                if holder is None or holder == owner:
                    self._owners[resource] = owner
                    return
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    kind, key = resource
                    raise ConcurrencyConflictError(
                        f"Timed out after {timeout}s waiting for a lock on {kind} {key}",
                        resource=f"{kind}:{key}",
                    )
                self._condition.wait(remaining)

    def release_all(self, owner):
        with self._condition:
            for resource in [r for r, o in self._owners.items() if o == owner]:
                del self._owners[resource]
            self._condition.notify_all()

    def held_by(self, owner):
        with self._condition:
            return {r for r, o in self._owners.items() if o == owner}


class InMemoryTransaction(StoreTransaction):
    def __init__(self, store, owner, lock_timeout):
        self._store = store
        self._owner = owner
        self._lock_timeout = lock_timeout
        self._products = {}
        self._orders = {}
        self._items = {}
        self._active = True

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _ensure_active(self):
        if not self._active:
            raise PersistenceError("Transaction is no longer active")

    def _lock(self, kind, key):
        self._store.locks.acquire((kind, str(key)), self._owner, self._lock_timeout)

    def _product_row(self, product_id):
        if product_id in self._products:
            return self._products[product_id]
        return self._store.read_product(product_id)

    def _order_row(self, order_id):
        if order_id in self._orders:
            return self._orders[order_id]
        return self._store.read_order(order_id)

    def _item_rows(self, order_id):
        if order_id in self._items:
            return self._items[order_id]
        return self._store.read_items(order_id)

    # -------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------
    def get_product(self, product_id, for_update=False):
        self._ensure_active()
        product_id = str(product_id)
        if for_update:
            self._lock("product", product_id)
        row = self._product_row(product_id)
        return None if row is None else product_from_row(row)

    def adjust_stock(self, product_id, delta, *, require_available=False):
        self._ensure_active()
        product_id = str(product_id)
        self._lock("product", product_id)

        row = self._product_row(product_id)
        if row is None:
            return StockAdjustment(product_id=product_id, applied=False)
        if require_available and row["status"] != ProductStatus.AVAILABLE.value:
            return StockAdjustment(product_id=product_id, applied=False, stock=row["stock"], status=row["status"])

        new_stock = row["stock"] + delta
        if new_stock < 0:
            return StockAdjustment(product_id=product_id, applied=False, stock=row["stock"], status=row["status"])

        self._products[product_id] = {**row, "stock": new_stock}
        return StockAdjustment(product_id=product_id, applied=True, stock=new_stock, status=row["status"])

    def insert_product(self, product):
        self._ensure_active()
        row = product_to_row(product)
        self._lock("product", row["id"])
        if self._product_row(row["id"]) is not None:
            raise PersistenceError(f"Product {row['id']} already exists")
        self._products[row["id"]] = row
        return row["id"]

    def update_product(self, product):
        self._ensure_active()
        product_id = str(product.id)
        self._lock("product", product_id)
        row = self._product_row(product_id)
        if row is None:
            raise PersistenceError(f"Product {product_id} does not exist")
        changes = product_to_row(product)
        self._products[product_id] = {
            **row,
            "name": changes["name"],
            "price": changes["price"],
            "status": changes["status"],
            "updated_at": changes["updated_at"],
        }

    def low_stock_products(self, threshold):
        self._ensure_active()
        rows = {row["id"]: row for row in self._store.read_all_products()}
        rows.update(self._products)
        matching = [row for row in rows.values() if 0 < row["stock"] < threshold]
        return [product_from_row(row) for row in sorted(matching, key=lambda r: (r["stock"], r["id"]))]

    # -------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------
    def insert_order(self, order):
        self._ensure_active()
        row = order_to_row(order)
        self._lock("order", row["id"])
        if self._order_row(row["id"]) is not None:
            raise PersistenceError(f"Order {row['id']} already exists")
        self._orders[row["id"]] = row
        return row["id"]

    def insert_order_items(self, order_id, items):
        self._ensure_active()
        order_id = str(order_id)
        if self._order_row(order_id) is None:
            raise PersistenceError(f"Order {order_id} does not exist")
        for item in items:
            if self._product_row(str(item.product_id)) is None:
                raise PersistenceError(f"Product {item.product_id} does not exist")
        rows = list(self._item_rows(order_id))
        rows.extend(item_to_row(order_id, item) for item in items)
        self._items[order_id] = rows

    def get_order(self, order_id, for_update=False):
        self._ensure_active()
        order_id = str(order_id)
        if for_update:
            self._lock("order", order_id)
        row = self._order_row(order_id)
        if row is None:
            return None
        return order_from_rows(row, self._item_rows(order_id))

    def update_order_status(self, order_id, status, updated_at=None):
        self._ensure_active()
        order_id = str(order_id)
        self._lock("order", order_id)
        row = self._order_row(order_id)
        if row is None:
            raise PersistenceError(f"Order {order_id} does not exist")
        self._orders[order_id] = {**row, "status": status, "updated_at": updated_at or row["updated_at"]}

    def update_order(self, order):
        self._ensure_active()
        order_id = str(order.id)
        self._lock("order", order_id)
        row = self._order_row(order_id)
        if row is None:
            raise PersistenceError(f"Order {order_id} does not exist")
        changes = order_to_row(order)
        self._orders[order_id] = {
            **row,
            "status": changes["status"],
            "payment_status": changes["payment_status"],
            "delivery_address": changes["delivery_address"],
            "notes": changes["notes"],
            "updated_at": changes["updated_at"],
        }

    def find_orders(self, customer_id=None, status=None, limit=None):
        self._ensure_active()
        rows = {row["id"]: row for row in self._store.read_all_orders()}
        rows.update(self._orders)
        matching = [
            row
            for row in rows.values()
            if (customer_id is None or row["customer_id"] == str(customer_id))
            and (status is None or row["status"] == status)
        ]
        matching.sort(key=lambda r: (r["created_at"], r["id"]), reverse=True)
        if limit is not None:
            matching = matching[:limit]
        return [order_from_rows(row, self._item_rows(row["id"])) for row in matching]

    # -------------------------------------------------------------------
    # Demarcation
    # -------------------------------------------------------------------
    def commit(self):
        self._ensure_active()
        try:
            self._store.publish(self._products, self._orders, self._items)
        finally:
            self._finish()

    def rollback(self):
        if self._active:
            self._finish()

    def close(self):
        self.rollback()

    def _finish(self):
        self._active = False
        self._products, self._orders, self._items = {}, {}, {}
        self._store.locks.release_all(self._owner)


class InMemoryOrderStore(OrderStore):
    """Thread-safe store keeping committed rows in process memory."""

    def __init__(self, lock_timeout=DEFAULT_LOCK_TIMEOUT_SECONDS):
        super().__init__(lock_timeout=lock_timeout)
        self.locks = LockManager()
        self._mutex = threading.RLock()
        self._tokens = itertools.count(1)
        self._products = {}
        self._orders = {}
        self._items = {}

    def begin(self, lock_timeout=None):
        timeout = self.lock_timeout if lock_timeout is None else lock_timeout
        return InMemoryTransaction(self, owner=next(self._tokens), lock_timeout=timeout)

    # -------------------------------------------------------------------
    # Committed state
    # -------------------------------------------------------------------
    def read_product(self, product_id):
        with self._mutex:
            row = self._products.get(product_id)
            return None if row is None else dict(row)

    def read_all_products(self):
        with self._mutex:
            return [dict(row) for row in self._products.values()]

    def read_order(self, order_id):
        with self._mutex:
            row = self._orders.get(order_id)
            return None if row is None else dict(row)

    def read_all_orders(self):
        with self._mutex:
            return [dict(row) for row in self._orders.values()]

    def read_items(self, order_id):
        with self._mutex:
            return copy.deepcopy(self._items.get(order_id, []))

    def publish(self, products, orders, items):
        with self._mutex:
            self._products.update(products)
            self._orders.update(orders)
            self._items.update(items)
        logger.debug(
            "In-memory transaction committed",
            products=len(products),
            orders=len(orders),
        )

    def clear(self):
        with self._mutex:
            self._products.clear()
            self._orders.clear()
            self._items.clear()
