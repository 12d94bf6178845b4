"""Order lifecycle — status and payment state machines.

Status axis:
    PENDING → CONFIRMED → PREPARING → READY → DELIVERED
    PENDING / CONFIRMED → CANCELLED (restores reserved stock)

DELIVERED and CANCELLED are terminal. Once an order is PREPARING it can no
longer be cancelled.

Payment axis (independent of status):
    PENDING → PAID → REFUNDED

A refund is recorded on the payment axis only; it never moves the order status.
"""

from enum import Enum

from protean.exceptions import ValidationError

from ordering.errors import InvalidStateTransitionError


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class PaymentMethod(Enum):
    CASH = "cash"
    CARD = "card"
    ONLINE = "online"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY},
    OrderStatus.READY: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

_PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PAID},
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),  # Terminal
}

CANCELLABLE_STATES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})

TERMINAL_STATES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


def parse_status(value):
    """Coerce a status name (or enum member) into an ``OrderStatus``."""
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().lower())
    except ValueError:
        raise ValidationError({"status": [f"Unknown order status: {value}"]}) from None


def parse_payment_status(value):
    if isinstance(value, PaymentStatus):
        return value
    try:
        return PaymentStatus(str(value).strip().lower())
    except ValueError:
        raise ValidationError({"payment_status": [f"Unknown payment status: {value}"]}) from None


def can_transition(current, target):
    return parse_status(target) in _VALID_TRANSITIONS[parse_status(current)]


def is_cancellable(status):
    return parse_status(status) in CANCELLABLE_STATES


def is_terminal(status):
    return parse_status(status) in TERMINAL_STATES


def assert_transition(current, target):
    """Raise ``InvalidStateTransitionError`` unless ``current → target`` is allowed."""
    current, target = parse_status(current), parse_status(target)
    if target not in _VALID_TRANSITIONS[current]:
        raise InvalidStateTransitionError(current.value, target.value)


def assert_payment_transition(current, target):
    current, target = parse_payment_status(current), parse_payment_status(target)
    if target not in _PAYMENT_TRANSITIONS[current]:
        raise InvalidStateTransitionError(current.value, target.value, field="payment_status")
