"""Order cancellation — command and handler."""

from protean import handle
from protean.fields import Boolean, Identifier

from ordering.checkout.coordinator import current_coordinator
from ordering.domain import ordering
from ordering.order.order import Order


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    requester_id = Identifier(required=True)
    as_admin = Boolean(default=False)


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        # Not retried: a lock timeout surfaces as 503 and the caller decides
        order = current_coordinator().cancel_order(
            command.order_id,
            command.requester_id,
            as_admin=bool(command.as_admin),
        )
        return order.status
