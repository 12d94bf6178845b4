"""Ordering bounded context — order placement, stock reservation and order lifecycle.

Places orders as single all-or-nothing transactions (validate, price, reserve
stock, persist), reverses reservations on cancellation, and governs order and
payment status through a state machine.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
