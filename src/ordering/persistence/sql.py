"""SQL order store built on SQLAlchemy Core.

Stock adjustments are a single conditional ``UPDATE``::

    UPDATE products SET stock = stock + :delta
     WHERE id = :id AND stock + :delta >= 0 [AND status = 'available']

and success is read from the affected row count, so the check and the write
can never be separated by another transaction. Order rows are locked with
``SELECT ... FOR UPDATE`` where the backend supports it.

PostgreSQL bounds lock waits per transaction with ``SET LOCAL lock_timeout``.
SQLite has no row locks: every transaction starts with ``BEGIN IMMEDIATE``,
taking the database write lock up front, and waits at most the busy timeout.
Lock-wait, deadlock and serialization failures surface as
``ConcurrencyConflictError``; every other database failure as
``PersistenceError``.
"""

import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import UTC, datetime

import structlog
from sqlalchemy import create_engine, event, insert, select, text, update
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ordering.errors import ConcurrencyConflictError, OrderingError, PersistenceError
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
from ordering.persistence.tables import metadata, order_items, orders, products

logger = structlog.get_logger(__name__)

# lock_not_available, deadlock_detected, serialization_failure
_CONFLICT_SQLSTATES = {"55P03", "40P01", "40001"}


def _is_conflict(exc):
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in _CONFLICT_SQLSTATES:
        return True
    return "database is locked" in str(orig if orig is not None else exc).lower()


@contextmanager
def _translated(action):
    """Re-raise database failures as ordering infrastructure errors."""
    try:
        yield
    except OrderingError:
        raise
    except DBAPIError as exc:
        if _is_conflict(exc):
            raise ConcurrencyConflictError(f"Lock not acquired while trying to {action}", resource=action) from exc
        raise PersistenceError(f"Database failure while trying to {action}: {exc.orig}") from exc
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Database failure while trying to {action}: {exc}") from exc
    except OverflowError as exc:
        # pysqlite refuses integers beyond 64 bits before the statement runs
        raise PersistenceError(f"Value out of range while trying to {action}: {exc}") from exc


def create_store_engine(database_uri, lock_timeout=DEFAULT_LOCK_TIMEOUT_SECONDS, echo=False):
    """Create an engine configured for the store's locking discipline."""
    url = make_url(database_uri)
    if url.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True, echo=echo)

    options = {"connect_args": {"check_same_thread": False, "timeout": lock_timeout}}
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    engine = create_engine(url, echo=echo, **options)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself instead of pysqlite's deferred BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


class SqlTransaction(StoreTransaction):
    def __init__(self, connection, transaction, on_close=None):
        self._connection = connection
        self._transaction = transaction
        self._on_close = on_close

    def _execute(self, statement, action, parameters=None):
        with _translated(action):
            if parameters is None:
                return self._connection.execute(statement)
            return self._connection.execute(statement, parameters)

    # -------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------
    def get_product(self, product_id, for_update=False):
        stmt = select(products).where(products.c.id == str(product_id))
        if for_update:
            stmt = stmt.with_for_update()
        row = self._execute(stmt, f"read product {product_id}").mappings().first()
        return None if row is None else product_from_row(row)

    def adjust_stock(self, product_id, delta, *, require_available=False):
        product_id = str(product_id)
        conditions = [products.c.id == product_id, products.c.stock + delta >= 0]
        if require_available:
            conditions.append(products.c.status == ProductStatus.AVAILABLE.value)

        stmt = (
            update(products)
            .where(*conditions)
            .values(stock=products.c.stock + delta, updated_at=datetime.now(UTC))
        )
        result = self._execute(stmt, f"adjust stock of product {product_id}")
        applied = result.rowcount == 1

        current = self._execute(
            select(products.c.stock, products.c.status).where(products.c.id == product_id),
            f"read stock of product {product_id}",
        ).mappings().first()
        if current is None:
            return StockAdjustment(product_id=product_id, applied=False)
        return StockAdjustment(
            product_id=product_id,
            applied=applied,
            stock=current["stock"],
            status=current["status"],
        )

    def insert_product(self, product):
        row = product_to_row(product)
        self._execute(insert(products).values(**row), f"insert product {row['id']}")
        return row["id"]

    def update_product(self, product):
        row = product_to_row(product)
        stmt = (
            update(products)
            .where(products.c.id == row["id"])
            .values(name=row["name"], price=row["price"], status=row["status"], updated_at=row["updated_at"])
        )
        result = self._execute(stmt, f"update product {row['id']}")
        if result.rowcount != 1:
            raise PersistenceError(f"Product {row['id']} does not exist")

    def low_stock_products(self, threshold):
        stmt = (
            select(products)
            .where(products.c.stock > 0, products.c.stock < threshold)
            .order_by(products.c.stock, products.c.id)
        )
        rows = self._execute(stmt, "list low-stock products").mappings().all()
        return [product_from_row(row) for row in rows]

    # -------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------
    def insert_order(self, order):
        row = order_to_row(order)
        self._execute(insert(orders).values(**row), f"insert order {row['id']}")
        return row["id"]

    def insert_order_items(self, order_id, items):
        rows = [item_to_row(order_id, item) for item in items]
        if rows:
            self._execute(insert(order_items), f"insert items of order {order_id}", rows)

    def _items_for(self, order_ids):
        grouped = defaultdict(list)
        if not order_ids:
            return grouped
        stmt = select(order_items).where(order_items.c.order_id.in_(order_ids)).order_by(order_items.c.product_id)
        for row in self._execute(stmt, "read order items").mappings().all():
            grouped[row["order_id"]].append(row)
        return grouped

    def get_order(self, order_id, for_update=False):
        order_id = str(order_id)
        stmt = select(orders).where(orders.c.id == order_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = self._execute(stmt, f"read order {order_id}").mappings().first()
        if row is None:
            return None
        return order_from_rows(row, self._items_for([order_id])[order_id])

    def update_order_status(self, order_id, status, updated_at=None):
        stmt = (
            update(orders)
            .where(orders.c.id == str(order_id))
            .values(status=status, updated_at=updated_at or datetime.now(UTC))
        )
        result = self._execute(stmt, f"update status of order {order_id}")
        if result.rowcount != 1:
            raise PersistenceError(f"Order {order_id} does not exist")

    def update_order(self, order):
        row = order_to_row(order)
        stmt = (
            update(orders)
            .where(orders.c.id == row["id"])
            .values(
                status=row["status"],
                payment_status=row["payment_status"],
                delivery_address=row["delivery_address"],
                notes=row["notes"],
                updated_at=row["updated_at"],
            )
        )
        result = self._execute(stmt, f"update order {row['id']}")
        if result.rowcount != 1:
            raise PersistenceError(f"Order {row['id']} does not exist")

    def find_orders(self, customer_id=None, status=None, limit=None):
        stmt = select(orders).order_by(orders.c.created_at.desc(), orders.c.id.desc())
        if customer_id is not None:
            stmt = stmt.where(orders.c.customer_id == str(customer_id))
        if status is not None:
            stmt = stmt.where(orders.c.status == status)
        if limit is not None:
            stmt = stmt.limit(limit)

        rows = self._execute(stmt, "list orders").mappings().all()
        items = self._items_for([row["id"] for row in rows])
        return [order_from_rows(row, items[row["id"]]) for row in rows]

    # -------------------------------------------------------------------
    # Demarcation
    # -------------------------------------------------------------------
    def commit(self):
        with _translated("commit"):
            self._transaction.commit()

    def rollback(self):
        if self._transaction.is_active:
            with _translated("roll back"):
                self._transaction.rollback()

    def close(self):
        try:
            self._connection.close()
        finally:
            if self._on_close is not None:
                on_close, self._on_close = self._on_close, None
                on_close()


class SqlOrderStore(OrderStore):
    """Order store on any SQLAlchemy database.

    An in-memory SQLite database lives on one connection shared by every
    thread, so transactions on it are serialized by a store-wide lock held
    from ``begin()`` until the transaction is closed.
    """

    def __init__(self, engine, lock_timeout=DEFAULT_LOCK_TIMEOUT_SECONDS):
        super().__init__(lock_timeout=lock_timeout)
        self.engine = engine
        self._serial_lock = threading.Lock() if isinstance(engine.pool, StaticPool) else None

    @classmethod
    def from_uri(cls, database_uri, lock_timeout=DEFAULT_LOCK_TIMEOUT_SECONDS, echo=False):
        return cls(create_store_engine(database_uri, lock_timeout=lock_timeout, echo=echo), lock_timeout=lock_timeout)

    def _acquire_serial_lock(self, timeout):
        if self._serial_lock is None:
            return None
        if not self._serial_lock.acquire(timeout=timeout):
            raise ConcurrencyConflictError(
                f"Timed out after {timeout}s waiting for the shared database connection",
                resource="connection",
            )
        return self._serial_lock.release

    def begin(self, lock_timeout=None):
        timeout = self.lock_timeout if lock_timeout is None else lock_timeout
        release = self._acquire_serial_lock(timeout)
        try:
            connection = self.engine.connect()
        except Exception:
            if release is not None:
                release()
            raise
        try:
            if connection.dialect.name == "sqlite":
                connection.connection.driver_connection.execute(f"PRAGMA busy_timeout = {int(timeout * 1000)}")
            with _translated("begin a transaction"):
                transaction = connection.begin()
                if connection.dialect.name == "postgresql":
                    connection.execute(text(f"SET LOCAL lock_timeout = '{int(timeout * 1000)}ms'"))
        except Exception:
            connection.close()
            if release is not None:
                release()
            raise
        return SqlTransaction(connection, transaction, on_close=release)

    def create_schema(self):
        release = self._acquire_serial_lock(self.lock_timeout)
        try:
            with _translated("create the schema"):
                metadata.create_all(self.engine)
        finally:
            if release is not None:
                release()
        logger.info("Order store schema created", url=self.engine.url.render_as_string(hide_password=True))

    def drop_schema(self):
        release = self._acquire_serial_lock(self.lock_timeout)
        try:
            with _translated("drop the schema"):
                metadata.drop_all(self.engine)
        finally:
            if release is not None:
                release()
        logger.info("Order store schema dropped", url=self.engine.url.render_as_string(hide_password=True))

    def dispose(self):
        self.engine.dispose()
