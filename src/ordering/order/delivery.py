"""Delivery detail changes — command and handler."""

from protean import handle
from protean.fields import Boolean, Identifier, Text

from ordering.checkout.coordinator import current_coordinator
from ordering.domain import ordering
from ordering.order.order import Order


@ordering.command(part_of="Order")
class UpdateDeliveryDetails:
    order_id = Identifier(required=True)
    requester_id = Identifier(required=True)
    delivery_address = Text()
    notes = Text()
    as_admin = Boolean(default=False)


@ordering.command_handler(part_of=Order)
class UpdateDeliveryDetailsHandler:
    @handle(UpdateDeliveryDetails)
    def update_delivery_details(self, command):
        coordinator = current_coordinator()
        coordinator.with_retries(
            coordinator.update_delivery_details,
            command.order_id,
            command.requester_id,
            delivery_address=command.delivery_address,
            notes=command.notes,
            as_admin=bool(command.as_admin),
        )
