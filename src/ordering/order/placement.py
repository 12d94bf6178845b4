"""Order placement — command and handler."""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text

from ordering.checkout.coordinator import current_coordinator
from ordering.domain import ordering
from ordering.order.order import Order


@ordering.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    cart = Text(required=True)  # JSON: {product_id: quantity}
    delivery_address = Text()
    payment_method = String(max_length=20)
    notes = Text()


def _decode_cart(raw):
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError({"cart": ["Cart is not valid JSON"]}) from None


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        cart = _decode_cart(command.cart)
        if not isinstance(cart, dict):
            raise ValidationError({"cart": ["Cart must map product ids to quantities"]})

        coordinator = current_coordinator()
        return coordinator.with_retries(
            coordinator.place_order,
            command.customer_id,
            cart,
            command.delivery_address,
            command.payment_method,
            command.notes,
        )
