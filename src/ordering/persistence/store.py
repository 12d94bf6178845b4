"""Order store contract — the persistence boundary of the ordering core.

Every read and write the core performs goes through a ``StoreTransaction``
obtained from an ``OrderStore``. A transaction is explicitly demarcated: it is
committed or rolled back exactly once and is always closed, releasing every
lock it acquired.

Stock never changes through read-then-write. ``adjust_stock`` is the single
atomic conditional adjustment: it applies ``delta`` only if the resulting
stock stays non-negative (and, when asked, only if the product is available)
and reports whether it did.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_LOCK_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class StockAdjustment:
    """Outcome of one conditional stock adjustment."""

    product_id: str
    applied: bool
    stock: int | None = None  # Stock after the adjustment, or as found when refused
    status: str | None = None

    @property
    def found(self):
        return self.stock is not None


class StoreTransaction(ABC):
    """A unit of work against the store.

    Row locks acquired through ``for_update`` reads and stock adjustments are
    held until the transaction ends.
    """

    # -------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------
    @abstractmethod
    def get_product(self, product_id, for_update=False):
        """Return the ``Product`` with this id, or ``None``."""

    def get_products(self, product_ids, for_update=False):
        """Products by id, visited in ascending id order. Missing ids are omitted."""
        products = {}
        for product_id in sorted({str(pid) for pid in product_ids}):
            product = self.get_product(product_id, for_update=for_update)
            if product is not None:
                products[product_id] = product
        return products

    @abstractmethod
    def adjust_stock(self, product_id, delta, *, require_available=False):
        """Atomically add ``delta`` to a product's stock if the result stays >= 0.

        Returns a ``StockAdjustment``; ``applied`` is ``False`` when the
        product is missing, not available (with ``require_available``) or
        the stock would go negative.
        """

    @abstractmethod
    def insert_product(self, product):
        pass

    @abstractmethod
    def update_product(self, product):
        """Persist name, price and status of an existing product. Stock is never written here."""

    @abstractmethod
    def low_stock_products(self, threshold):
        """Products with ``0 < stock < threshold``, ordered by stock then id."""

    # -------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------
    @abstractmethod
    def insert_order(self, order):
        """Insert the order row and return its id. Items are inserted separately."""

    @abstractmethod
    def insert_order_items(self, order_id, items):
        pass

    @abstractmethod
    def get_order(self, order_id, for_update=False):
        """Return the ``Order`` with its items, or ``None``.

        With ``for_update`` the order row stays exclusively locked until the
        transaction ends.
        """

    @abstractmethod
    def update_order_status(self, order_id, status, updated_at=None):
        pass

    @abstractmethod
    def update_order(self, order):
        """Persist the mutable attributes of an order: statuses, delivery address and notes."""

    @abstractmethod
    def find_orders(self, customer_id=None, status=None, limit=None):
        """Orders matching the filters, newest first."""

    # -------------------------------------------------------------------
    # Demarcation
    # -------------------------------------------------------------------
    @abstractmethod
    def commit(self):
        pass

    @abstractmethod
    def rollback(self):
        pass

    @abstractmethod
    def close(self):
        """Release the transaction's resources, rolling back if it is still open."""


class OrderStore(ABC):
    def __init__(self, lock_timeout=DEFAULT_LOCK_TIMEOUT_SECONDS):
        self.lock_timeout = lock_timeout

    @abstractmethod
    def begin(self, lock_timeout=None):
        """Open and return a new ``StoreTransaction``."""

    @contextmanager
    def transaction(self, lock_timeout=None):
        """Run a block in one transaction: commit on success, roll back on any error."""
        tx = self.begin(lock_timeout=lock_timeout)
        try:
            yield tx
            tx.commit()
        except Exception:
            tx.rollback()
            raise
        finally:
            tx.close()

    # -------------------------------------------------------------------
    # Single-read conveniences, each in its own short transaction
    # -------------------------------------------------------------------
    def get_product(self, product_id):
        with self.transaction() as tx:
            return tx.get_product(product_id)

    def get_products(self, product_ids):
        with self.transaction() as tx:
            return tx.get_products(product_ids)

    def get_order(self, order_id):
        with self.transaction() as tx:
            return tx.get_order(order_id)

    def find_orders(self, customer_id=None, status=None, limit=None):
        with self.transaction() as tx:
            return tx.find_orders(customer_id=customer_id, status=status, limit=limit)

    def low_stock_products(self, threshold):
        with self.transaction() as tx:
            return tx.low_stock_products(threshold)

    def dispose(self):
        """Release pooled resources held by the store."""
