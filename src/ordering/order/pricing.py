"""Pricing engine — fixed-point line subtotals and order totals.

Every line subtotal is ``unit_price × quantity`` rounded half-up to 2 decimal
places. The order total is the sum of those rounded subtotals, rounded again
to 2 places; it is never derived from unrounded products.

Lines whose product has no price contribute zero and are reported through
``PricedCart.missing_prices`` so the caller can reject the cart instead of
silently under-charging.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value):
    """Convert a price-like value to ``Decimal`` without going through binary floats.

    ``None`` and empty strings stay ``None`` (a missing price).
    """
    if value is None or value == "":
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a decimal amount: {value!r}") from None


def round_money(amount):
    return to_decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def line_subtotal(unit_price, quantity):
    """Subtotal for one line. Missing prices and non-positive quantities contribute zero."""
    price = to_decimal(unit_price)
    if price is None or quantity <= 0:
        return ZERO
    return round_money(price * quantity)


def order_total(subtotals):
    return round_money(sum(subtotals, ZERO))


@dataclass(frozen=True)
class PricedLine:
    product_id: str
    quantity: int
    unit_price: Decimal | None
    subtotal: Decimal


@dataclass(frozen=True)
class PricedCart:
    lines: tuple
    total: Decimal

    @property
    def missing_prices(self):
        """Product ids whose price was absent although they were ordered."""
        return tuple(line.product_id for line in self.lines if line.unit_price is None and line.quantity > 0)


def price_cart(prices, cart):
    """Price every line of ``cart`` (product id → quantity) against ``prices``.

    ``prices`` maps product id → unit price (``None`` or absent for a product
    without a price). Lines are returned in ascending product id order.
    """
    lines = []
    for product_id in sorted(cart):
        quantity = cart[product_id]
        unit_price = to_decimal(prices.get(product_id))
        lines.append(
            PricedLine(
                product_id=product_id,
                quantity=quantity,
                unit_price=unit_price,
                subtotal=line_subtotal(unit_price, quantity),
            )
        )

    return PricedCart(
        lines=tuple(lines),
        total=order_total(line.subtotal for line in lines),
    )
