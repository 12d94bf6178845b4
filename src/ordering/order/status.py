"""Administrative order status and payment status changes — commands and handler.

Moving an order to ``cancelled`` goes through the cancellation path, so the
reserved stock is restored in the same transaction.
"""

from protean import handle
from protean.fields import Identifier, String

from ordering.checkout.coordinator import current_coordinator
from ordering.domain import ordering
from ordering.order.order import Order


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)


@ordering.command(part_of="Order")
class UpdatePaymentStatus:
    order_id = Identifier(required=True)
    payment_status = String(required=True, max_length=20)


@ordering.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        coordinator = current_coordinator()
        order = coordinator.with_retries(coordinator.update_order_status, command.order_id, command.status)
        return order.status

    @handle(UpdatePaymentStatus)
    def update_payment_status(self, command):
        coordinator = current_coordinator()
        order = coordinator.with_retries(
            coordinator.update_payment_status,
            command.order_id,
            command.payment_status,
        )
        return order.payment_status
