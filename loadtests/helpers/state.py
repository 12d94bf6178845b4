"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance keeps its own state; nothing is shared between users.
"""

from dataclasses import dataclass, field


@dataclass
class OrderState:
    """Tracks a single simulated customer and the order they placed."""

    customer_id: str
    order_id: str | None = None
    cart: dict[str, int] = field(default_factory=dict)
    current_status: str = "pending"
