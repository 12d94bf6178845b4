"""Product aggregate — the purchasable catalogue item as seen by order placement.

Stock is owned by the persistence layer and only ever changes through the
store's atomic conditional adjustment (reservation and reversal). The aggregate
carries stock as read, never writes it back: price, name and status are the
only catalogue attributes that maintenance updates persist.

Prices are kept as canonical decimal strings, rounded to cents, so no binary
float ever touches a monetary amount.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Integer, String

from ordering.cart.validation import MAX_QUANTITY
from ordering.domain import ordering
from ordering.order.pricing import round_money, to_decimal

DEFAULT_LOW_STOCK_THRESHOLD = 10


def _parse_price(value):
    try:
        amount = to_decimal(value)
    except ValueError:
        raise ValidationError({"price": [f"Not a decimal amount: {value}"]}) from None
    if amount is not None and amount < 0:
        raise ValidationError({"price": ["Price cannot be negative"]})
    return amount


def _serialize_price(value):
    amount = _parse_price(value)
    return None if amount is None else str(round_money(amount))


class ProductStatus(Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    DISCONTINUED = "discontinued"


@ordering.aggregate
class Product:
    name = String(required=True, max_length=255)
    price = String(max_length=32)  # Decimal as text; empty when the catalogue has no price
    stock = Integer(default=0, min_value=0, max_value=MAX_QUANTITY)
    status = String(choices=ProductStatus, default=ProductStatus.AVAILABLE.value)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def price_must_be_a_non_negative_amount(self):
        _parse_price(self.price)

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def register(cls, name, price, stock=0, status=ProductStatus.AVAILABLE.value, product_id=None):
        now = datetime.now(UTC)
        values = dict(
            name=name,
            price=_serialize_price(price),
            stock=stock,
            status=status,
            created_at=now,
            updated_at=now,
        )
        if product_id is not None:
            values["id"] = str(product_id)
        return cls(**values)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def unit_price(self):
        return to_decimal(self.price)

    def is_purchasable(self):
        return self.status == ProductStatus.AVAILABLE.value and self.stock > 0

    def is_low_stock(self, threshold=DEFAULT_LOW_STOCK_THRESHOLD):
        return 0 < self.stock < threshold

    # -------------------------------------------------------------------
    # Catalogue maintenance
    # -------------------------------------------------------------------
    def change_price(self, new_price):
        amount = _parse_price(new_price)
        if amount is None:
            raise ValidationError({"price": ["Price is required"]})
        self.price = str(round_money(amount))
        self.updated_at = datetime.now(UTC)

    def change_status(self, new_status):
        try:
            status = ProductStatus(str(new_status).strip().lower())
        except ValueError:
            raise ValidationError({"status": [f"Unknown product status: {new_status}"]}) from None
        self.status = status.value
        self.updated_at = datetime.now(UTC)
