"""Cart validation — structural checks on a requested cart and its checkout metadata.

Pure function: no I/O, no side effects. Stock is deliberately not checked here;
availability is decided atomically by the inventory reservation so there is no
separate check that could go stale before the decrement.
"""

from dataclasses import dataclass, field

from protean.exceptions import ValidationError

from ordering.order.lifecycle import PaymentMethod

MIN_ADDRESS_LENGTH = 5
MAX_ADDRESS_LENGTH = 500
MAX_NOTES_LENGTH = 1000
# Largest quantity a 32-bit INTEGER stock column can hold
MAX_QUANTITY = 2**31 - 1


@dataclass(frozen=True)
class CheckoutRequest:
    """A validated, normalized placement request."""

    customer_id: str
    cart: dict = field(default_factory=dict)
    delivery_address: str = ""
    payment_method: str = PaymentMethod.CASH.value
    notes: str | None = None

    @property
    def product_ids(self):
        return sorted(self.cart)


def normalize_delivery_address(delivery_address):
    """Trim and check a delivery address, returning the messages for any violation."""
    if delivery_address is not None and not isinstance(delivery_address, str):
        return None, ["Delivery address must be text"]
    address = (delivery_address or "").strip()
    if not address:
        return None, ["Delivery address is required"]
    if len(address) < MIN_ADDRESS_LENGTH:
        return None, [f"Delivery address must be at least {MIN_ADDRESS_LENGTH} characters"]
    if len(address) > MAX_ADDRESS_LENGTH:
        return None, [f"Delivery address must be at most {MAX_ADDRESS_LENGTH} characters"]
    return address, []


def normalize_notes(notes):
    if notes is None:
        return None, []
    notes = str(notes).strip()
    if len(notes) > MAX_NOTES_LENGTH:
        return None, [f"Notes must be at most {MAX_NOTES_LENGTH} characters"]
    return notes or None, []


def _normalize_payment_method(payment_method):
    canonical = str(payment_method).strip().lower() if payment_method is not None else ""
    allowed = [method.value for method in PaymentMethod]
    if canonical not in allowed:
        return None, [f"Payment method must be one of: {', '.join(allowed)}"]
    return canonical, []


def _normalize_cart(cart):
    if not cart:
        return {}, ["Cart must contain at least one item"]

    errors = []
    normalized = {}
    for product_id, quantity in dict(cart).items():
        key = str(product_id).strip() if product_id is not None else ""
        if not key:
            errors.append("Product id is required for every cart line")
            continue
        if key in normalized:
            errors.append(f"Product {key} appears more than once")
            continue
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            errors.append(f"Quantity for product {key} must be a whole number")
            continue
        if quantity <= 0:
            errors.append(f"Quantity for product {key} must be greater than 0")
            continue
        if quantity > MAX_QUANTITY:
            errors.append(f"Quantity for product {key} must be at most {MAX_QUANTITY}")
            continue
        normalized[key] = quantity

    return dict(sorted(normalized.items())), errors


def validate_checkout(customer_id, cart, delivery_address, payment_method, notes=None):
    """Validate and normalize a placement request.

    Collects every violation before raising, so the caller sees all problems at
    once in the usual ``{field: [messages]}`` shape.

    Raises:
        ValidationError: if any part of the request is malformed.
    """
    errors = {}

    customer = str(customer_id).strip() if customer_id is not None else ""
    if not customer:
        errors["customer_id"] = ["Customer id is required"]

    normalized_cart, cart_errors = _normalize_cart(cart)
    if cart_errors:
        errors["cart"] = cart_errors

    address, address_errors = normalize_delivery_address(delivery_address)
    if address_errors:
        errors["delivery_address"] = address_errors

    method, method_errors = _normalize_payment_method(payment_method)
    if method_errors:
        errors["payment_method"] = method_errors

    clean_notes, notes_errors = normalize_notes(notes)
    if notes_errors:
        errors["notes"] = notes_errors

    if errors:
        raise ValidationError(errors)

    return CheckoutRequest(
        customer_id=customer,
        cart=normalized_cart,
        delivery_address=address,
        payment_method=method,
        notes=clean_notes,
    )
