"""Order transaction coordinator — the all-or-nothing placement and its reversal.

Placement:
    1. Validate the cart and checkout metadata (no side effects)
    2. Price the cart against current catalogue prices
    3. In ONE store transaction: reserve stock for every line, insert the
       order, insert its items, commit

Cancellation:
    1. Lock the order row
    2. Check ownership and the lifecycle (pending/confirmed only)
    3. In the same transaction: restore stock for every item, mark cancelled

Any failure inside the transaction rolls everything back and is re-raised as
a typed error; nothing is ever recovered silently.
"""

import time

import structlog
from protean.exceptions import ValidationError

from ordering.cart.validation import validate_checkout
from ordering.config import settings
from ordering.errors import (
    BusinessRuleViolation,
    ConcurrencyConflictError,
    DataIntegrityError,
    OrderAccessDeniedError,
    OrderNotFoundError,
    ProductNotAvailableError,
)
from ordering.inventory.reservation import InventoryReservation
from ordering.order.lifecycle import OrderStatus, parse_status
from ordering.order.order import Order
from ordering.order.pricing import ZERO, price_cart
from ordering.persistence import get_store

logger = structlog.get_logger(__name__)


class OrderTransactionCoordinator:
    def __init__(self, store, config=settings):
        self._store = store
        self._config = config

    # -------------------------------------------------------------------
    # Placement
    # -------------------------------------------------------------------
    def _price(self, request):
        products = self._store.get_products(request.product_ids)
        for product_id in request.product_ids:
            if product_id not in products:
                raise ProductNotAvailableError(product_id)

        priced = price_cart({pid: product.price for pid, product in products.items()}, request.cart)
        if priced.missing_prices:
            raise DataIntegrityError(
                f"Products without a price: {', '.join(priced.missing_prices)}",
                product_ids=priced.missing_prices,
            )
        if priced.total <= ZERO:
            raise ValidationError({"total_amount": ["Order total must be greater than 0"]})
        return priced

    def place_order(self, user_id, cart, delivery_address, payment_method, notes=None):
        """Place an order and return its id.

        Raises:
            ValidationError: malformed cart or checkout metadata.
            ProductNotAvailableError: a product is missing or not available.
            InsufficientStockError: a product has less stock than requested.
            DataIntegrityError: a product in the cart has no price.
            ConcurrencyConflictError: a lock could not be acquired in time (retryable).
            PersistenceError: the store failed; nothing was committed.
        """
        try:
            request = validate_checkout(user_id, cart, delivery_address, payment_method, notes)
            priced = self._price(request)
            order = Order.place(
                customer_id=request.customer_id,
                priced_cart=priced,
                delivery_address=request.delivery_address,
                payment_method=request.payment_method,
                notes=request.notes,
            )

            with self._store.transaction() as tx:
                InventoryReservation(tx).reserve(request.cart)
                order_id = tx.insert_order(order)
                tx.insert_order_items(order_id, order.items)
        except (ValidationError, BusinessRuleViolation) as exc:
            logger.info("Order placement rejected", customer_id=str(user_id), reason=_reason(exc))
            raise

        logger.info(
            "Order placed",
            order_id=order_id,
            customer_id=request.customer_id,
            total=str(priced.total),
            items=len(priced.lines),
        )
        return order_id

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel_order(self, order_id, requester_id, *, as_admin=False):
        """Cancel an order and restore the stock it reserved.

        Cancelling an already cancelled order succeeds without touching stock.
        Returns the order as persisted.
        """
        try:
            with self._store.transaction() as tx:
                order = self._locked_order(tx, order_id)
                if not as_admin and not order.is_owned_by(requester_id):
                    raise OrderAccessDeniedError(str(order_id), str(requester_id))

                if not order.cancel():
                    logger.info("Order already cancelled", order_id=str(order_id))
                    return order

                InventoryReservation(tx).release(order.reserved_quantities())
                tx.update_order_status(order.id, order.status, order.updated_at)
        except BusinessRuleViolation as exc:
            logger.info("Order cancellation rejected", order_id=str(order_id), reason=exc.message)
            raise

        logger.info("Order cancelled", order_id=str(order_id), by=str(requester_id), as_admin=as_admin)
        return order

    # -------------------------------------------------------------------
    # Status, payment and delivery updates
    # -------------------------------------------------------------------
    def update_order_status(self, order_id, new_status):
        """Apply an administrative status change. Cancelling restores stock."""
        target = parse_status(new_status)
        if target == OrderStatus.CANCELLED:
            return self.cancel_order(order_id, requester_id=None, as_admin=True)

        with self._store.transaction() as tx:
            order = self._locked_order(tx, order_id)
            previous = order.status
            order.transition_to(target)
            tx.update_order_status(order.id, order.status, order.updated_at)

        logger.info("Order status changed", order_id=str(order_id), previous=previous, status=order.status)
        return order

    def update_payment_status(self, order_id, new_payment_status):
        with self._store.transaction() as tx:
            order = self._locked_order(tx, order_id)
            previous = order.payment_status
            order.record_payment_status(new_payment_status)
            tx.update_order(order)

        logger.info(
            "Order payment status changed",
            order_id=str(order_id),
            previous=previous,
            payment_status=order.payment_status,
        )
        return order

    def update_delivery_details(self, order_id, requester_id, delivery_address=None, notes=None, *, as_admin=False):
        with self._store.transaction() as tx:
            order = self._locked_order(tx, order_id)
            if not as_admin and not order.is_owned_by(requester_id):
                raise OrderAccessDeniedError(str(order_id), str(requester_id))
            order.update_delivery_details(delivery_address=delivery_address, notes=notes)
            tx.update_order(order)

        logger.info("Order delivery details changed", order_id=str(order_id))
        return order

    # -------------------------------------------------------------------
    # Retries
    # -------------------------------------------------------------------
    def with_retries(self, operation, *args, **kwargs):
        """Run ``operation``, re-running it on ``ConcurrencyConflictError``.

        Makes at most ``1 + max_retries`` attempts, sleeping a linearly
        growing backoff between them. Every other error propagates at once.
        """
        attempt = 0
        while True:
            try:
                return operation(*args, **kwargs)
            except ConcurrencyConflictError as exc:
                if attempt >= self._config.max_retries:
                    logger.warning("Giving up after concurrency conflicts", attempts=attempt + 1, resource=exc.resource)
                    raise
                attempt += 1
                logger.info("Retrying after concurrency conflict", attempt=attempt, resource=exc.resource)
                time.sleep(self._config.retry_backoff_seconds * attempt)

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _locked_order(self, tx, order_id):
        order = tx.get_order(order_id, for_update=True)
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order


def _reason(exc):
    return exc.messages if isinstance(exc, ValidationError) else exc.message


def current_coordinator():
    """Coordinator bound to the process-wide order store."""
    return OrderTransactionCoordinator(get_store())
