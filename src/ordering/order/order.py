"""Order aggregate — a placed order with its priced line items.

The Order is a standard (non event sourced) aggregate. It is created once,
together with all of its items, from a priced cart; the amounts captured on
creation are snapshots and are never recomputed from current catalogue prices.

After creation only ``status``, ``payment_status``, ``delivery_address`` and
``notes`` change. Orders are never deleted: cancellation is a status
transition, and restoring the reserved stock is the coordinator's job.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String, Text

from ordering.cart.validation import normalize_delivery_address, normalize_notes
from ordering.domain import ordering
from ordering.order.lifecycle import (
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    assert_payment_transition,
    assert_transition,
    is_terminal,
    parse_payment_status,
    parse_status,
)
from ordering.order.pricing import order_total, to_decimal


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """One product line of an order, priced at the moment the order was placed."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price = String(required=True, max_length=32)  # Decimal as text
    subtotal = String(required=True, max_length=32)  # Decimal as text

    @property
    def unit_price_amount(self):
        return to_decimal(self.unit_price)

    @property
    def subtotal_amount(self):
        return to_decimal(self.subtotal)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    customer_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.CASH.value)
    total_amount = String(required=True, max_length=32)  # Decimal as text
    delivery_address = Text(required=True)
    notes = Text()
    items = HasMany(OrderItem)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def order_must_have_items(self):
        if not self.items:
            raise ValidationError({"items": ["An order must contain at least one item"]})

    @invariant.post
    def total_must_match_item_subtotals(self):
        if not self.items:
            return
        expected = order_total(item.subtotal_amount for item in self.items)
        if to_decimal(self.total_amount) != expected:
            raise ValidationError(
                {"total_amount": [f"Total {self.total_amount} does not match the sum of item subtotals {expected}"]}
            )

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(cls, customer_id, priced_cart, delivery_address, payment_method, notes=None):
        """Create a pending order from a priced cart.

        Args:
            customer_id: The customer placing the order.
            priced_cart: A ``PricedCart`` whose lines become the order items.
            delivery_address: Already validated delivery address.
            payment_method: One of ``PaymentMethod`` values.
            notes: Optional free-text notes.
        """
        now = datetime.now(UTC)
        items = [
            OrderItem(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=str(line.unit_price),
                subtotal=str(line.subtotal),
            )
            for line in priced_cart.lines
        ]
        return cls(
            customer_id=str(customer_id),
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=payment_method,
            total_amount=str(priced_cart.total),
            delivery_address=delivery_address,
            notes=notes,
            items=items,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def total(self):
        return to_decimal(self.total_amount)

    @property
    def is_cancelled(self):
        return self.status == OrderStatus.CANCELLED.value

    def is_owned_by(self, customer_id):
        return str(self.customer_id) == str(customer_id)

    def reserved_quantities(self):
        """Quantity per product id, as decremented when the order was placed."""
        quantities = {}
        for item in self.items:
            key = str(item.product_id)
            quantities[key] = quantities.get(key, 0) + item.quantity
        return dict(sorted(quantities.items()))

    # -------------------------------------------------------------------
    # Lifecycle transitions
    # -------------------------------------------------------------------
    def transition_to(self, target):
        """Move the order to ``target`` status if the lifecycle allows it."""
        target = parse_status(target)
        if target == OrderStatus.CANCELLED:
            return self.cancel()

        assert_transition(self.status, target)
        self.status = target.value
        self.updated_at = datetime.now(UTC)
        return True

    def cancel(self):
        """Mark the order cancelled.

        Returns ``False`` when the order was already cancelled, so callers
        know there is nothing to reverse.
        """
        if self.is_cancelled:
            return False

        assert_transition(self.status, OrderStatus.CANCELLED)
        self.status = OrderStatus.CANCELLED.value
        self.updated_at = datetime.now(UTC)
        return True

    def record_payment_status(self, target):
        target = parse_payment_status(target)
        assert_payment_transition(self.payment_status, target)
        self.payment_status = target.value
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Delivery details
    # -------------------------------------------------------------------
    def update_delivery_details(self, delivery_address=None, notes=None):
        """Change the delivery address and/or notes of an order still in progress."""
        if is_terminal(self.status):
            raise ValidationError({"status": [f"Delivery details cannot be changed on a {self.status} order"]})
        if delivery_address is None and notes is None:
            raise ValidationError({"delivery_address": ["Nothing to update"]})

        errors = {}
        if delivery_address is not None:
            address, address_errors = normalize_delivery_address(delivery_address)
            if address_errors:
                errors["delivery_address"] = address_errors
        if notes is not None:
            clean_notes, notes_errors = normalize_notes(notes)
            if notes_errors:
                errors["notes"] = notes_errors
        if errors:
            raise ValidationError(errors)

        if delivery_address is not None:
            self.delivery_address = address
        if notes is not None:
            self.notes = clean_notes
        self.updated_at = datetime.now(UTC)
