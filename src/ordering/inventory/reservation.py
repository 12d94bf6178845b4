"""Inventory reservation — all-or-nothing stock decrement for a cart, and its reversal.

Reservation runs inside the caller's transaction. Each line is one atomic
conditional adjustment (exists, available, enough stock, decrement), applied
in ascending product id order so every caller locks products in the same
sequence. The first failing line raises; the decrements already applied for
earlier lines are discarded when the caller rolls its transaction back.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ValidationError

from ordering.errors import DataIntegrityError, InsufficientStockError, ProductNotAvailableError
from ordering.inventory.product import ProductStatus

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockLine:
    product_id: str
    quantity: int


def ordered_lines(quantities):
    """Merge ``product id → quantity`` pairs into ``StockLine``s in ascending product id order.

    Accepts a mapping or an iterable of ``(product_id, quantity)`` pairs.
    """
    pairs = quantities.items() if hasattr(quantities, "items") else quantities
    merged = {}
    for product_id, quantity in pairs:
        key = str(product_id)
        merged[key] = merged.get(key, 0) + quantity
    return tuple(StockLine(product_id=key, quantity=merged[key]) for key in sorted(merged))


class InventoryReservation:
    def __init__(self, transaction):
        self._transaction = transaction

    def reserve(self, quantities):
        """Decrement stock for every line, or raise naming the first product that cannot be served.

        Raises:
            ProductNotAvailableError: the product is missing or not available.
            InsufficientStockError: the product has less stock than requested.
        """
        lines = ordered_lines(quantities)
        for line in lines:
            if line.quantity <= 0:
                raise ValidationError({"cart": [f"Quantity for product {line.product_id} must be greater than 0"]})

            outcome = self._transaction.adjust_stock(line.product_id, -line.quantity, require_available=True)
            if outcome.applied:
                continue

            if not outcome.found:
                raise ProductNotAvailableError(line.product_id)
            if outcome.status != ProductStatus.AVAILABLE.value:
                raise ProductNotAvailableError(line.product_id, status=outcome.status)
            raise InsufficientStockError(line.product_id, requested=line.quantity, available=outcome.stock)

        logger.debug("Stock reserved", lines={line.product_id: line.quantity for line in lines})
        return lines

    def release(self, quantities):
        """Give back previously reserved quantities, regardless of the product's current status."""
        lines = ordered_lines(quantities)
        for line in lines:
            outcome = self._transaction.adjust_stock(line.product_id, line.quantity)
            if not outcome.applied:
                raise DataIntegrityError(
                    f"Cannot restore {line.quantity} units of product {line.product_id}: product no longer exists",
                    product_ids=[line.product_id],
                )

        logger.debug("Stock released", lines={line.product_id: line.quantity for line in lines})
        return lines
