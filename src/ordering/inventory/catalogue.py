"""Catalogue maintenance — product registration, pricing, status and restocking.

These operations feed the order core: they never decrement stock, and price
changes never touch orders already placed (items keep their price snapshot).
"""

import structlog
from protean.exceptions import ValidationError

from ordering.cart.validation import MAX_QUANTITY
from ordering.config import settings
from ordering.errors import ProductNotAvailableError
from ordering.inventory.product import Product

logger = structlog.get_logger(__name__)


class Catalogue:
    def __init__(self, store):
        self._store = store

    def register_product(self, name, price, stock=0, status=None, product_id=None):
        """Add a product to the catalogue and return its id."""
        kwargs = {"product_id": product_id}
        if status is not None:
            kwargs["status"] = status
        product = Product.register(name=name, price=price, stock=stock, **kwargs)
        with self._store.transaction() as tx:
            product_id = tx.insert_product(product)
        logger.info("Product registered", product_id=product_id, price=product.price, stock=product.stock)
        return product_id

    def _change(self, product_id, mutate):
        with self._store.transaction() as tx:
            product = tx.get_product(product_id, for_update=True)
            if product is None:
                raise ProductNotAvailableError(product_id)
            mutate(product)
            tx.update_product(product)
        return product

    def change_price(self, product_id, new_price):
        product = self._change(product_id, lambda p: p.change_price(new_price))
        logger.info("Product price changed", product_id=str(product_id), price=product.price)
        return product

    def change_status(self, product_id, new_status):
        product = self._change(product_id, lambda p: p.change_status(new_status))
        logger.info("Product status changed", product_id=str(product_id), status=product.status)
        return product

    def restock(self, product_id, quantity):
        """Add ``quantity`` units to a product's stock and return the new stock level."""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError({"quantity": ["Restock quantity must be a positive whole number"]})
        if quantity > MAX_QUANTITY:
            raise ValidationError({"quantity": [f"Restock quantity must be at most {MAX_QUANTITY}"]})

        with self._store.transaction() as tx:
            outcome = tx.adjust_stock(product_id, quantity)
            if not outcome.applied:
                raise ProductNotAvailableError(product_id)
        logger.info("Product restocked", product_id=str(product_id), added=quantity, stock=outcome.stock)
        return outcome.stock

    def low_stock_products(self, threshold=None):
        """Products running low (``0 < stock < threshold``), lowest stock first."""
        return self._store.low_stock_products(settings.low_stock_threshold if threshold is None else threshold)
