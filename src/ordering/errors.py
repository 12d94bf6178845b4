"""Error taxonomy for the ordering core.

Two families hang off ``OrderingError``:

- ``BusinessRuleViolation``: terminal rejections caused by the request or the
  current state of the catalogue/order. Retrying the same call will fail again.
- ``InfrastructureError``: failures at the persistence boundary. Only
  ``ConcurrencyConflictError`` is retryable.

Cart and metadata problems are reported with ``protean.exceptions.ValidationError``
like everywhere else in the platform. Every error here carries a ``messages``
dict in the same ``{field: [message, ...]}`` shape so callers can render all
failures uniformly.
"""


class OrderingError(Exception):
    retryable = False
    field = "order"

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def messages(self):
        return {self.field: [self.message]}


# ---------------------------------------------------------------------------
# Business rejections
# ---------------------------------------------------------------------------
class BusinessRuleViolation(OrderingError):
    pass


class ProductNotAvailableError(BusinessRuleViolation):
    field = "cart"

    def __init__(self, product_id, status=None):
        if status is None:
            message = f"Product {product_id} does not exist"
        else:
            message = f"Product {product_id} is not available (status: {status})"
        super().__init__(message, product_id=product_id, status=status)
        self.product_id = product_id
        self.status = status


class InsufficientStockError(BusinessRuleViolation):
    field = "cart"

    def __init__(self, product_id, requested, available):
        super().__init__(
            f"Insufficient stock for product {product_id}: requested {requested}, available {available}",
            product_id=product_id,
            requested=requested,
            available=available,
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InvalidStateTransitionError(BusinessRuleViolation):
    def __init__(self, current, target, field="status"):
        super().__init__(f"Cannot transition from {current} to {target}", current=current, target=target)
        self.field = field
        self.current = current
        self.target = target


class OrderNotFoundError(BusinessRuleViolation):
    field = "order_id"

    def __init__(self, order_id):
        super().__init__(f"Order {order_id} not found", order_id=order_id)
        self.order_id = order_id


class OrderAccessDeniedError(BusinessRuleViolation):
    field = "requester_id"

    def __init__(self, order_id, requester_id):
        super().__init__(
            f"Requester {requester_id} may not modify order {order_id}",
            order_id=order_id,
            requester_id=requester_id,
        )
        self.order_id = order_id
        self.requester_id = requester_id


class DataIntegrityError(BusinessRuleViolation):
    """The catalogue holds data the core cannot price or restore against."""

    field = "catalogue"

    def __init__(self, message, product_ids=()):
        super().__init__(message, product_ids=tuple(product_ids))
        self.product_ids = tuple(product_ids)


# ---------------------------------------------------------------------------
# Infrastructure failures
# ---------------------------------------------------------------------------
class InfrastructureError(OrderingError):
    field = "store"


class ConcurrencyConflictError(InfrastructureError):
    """A row lock could not be acquired within the configured wait."""

    retryable = True

    def __init__(self, message, resource=None):
        super().__init__(message, resource=resource)
        self.resource = resource


class PersistenceError(InfrastructureError):
    pass
