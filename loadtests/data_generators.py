"""Faker-based data generators for Locust load test scenarios.

Each generator produces payloads that pass the ordering validation rules and
match the field names expected by the API's Pydantic request schemas.
"""

import random
import uuid

import requests
from faker import Faker

fake = Faker()

# Products registered by ``seed_catalogue``. The scarce one starts with little
# stock so concurrent users compete for it.
CATALOGUE = {
    "LT-APPLE": ("Apple", "0.45", 100_000),
    "LT-BREAD": ("Sourdough loaf", "3.80", 100_000),
    "LT-COFFEE": ("Coffee beans 1kg", "18.50", 100_000),
    "LT-TEA": ("Green tea", "4.25", 100_000),
}
SCARCE_PRODUCT_ID = "LT-SCARCE"
SCARCE_STOCK = 50


def seed_catalogue(host: str) -> int:
    """Register the load test products; products that already exist are left alone."""
    products = dict(CATALOGUE)
    products[SCARCE_PRODUCT_ID] = ("Limited edition mug", "12.00", SCARCE_STOCK)

    seeded = 0
    for product_id, (name, price, stock) in products.items():
        response = requests.post(
            f"{host}/products",
            json={"product_id": product_id, "name": name, "price": price, "stock": stock},
            timeout=10,
        )
        if response.status_code == 201:
            seeded += 1
    return seeded


def customer_id() -> str:
    """Generate unique customer IDs like 'cust-lt-a1b2c3d4'."""
    return f"cust-lt-{uuid.uuid4().hex[:8]}"


def delivery_address() -> str:
    """A single-line postal address within the 500-char limit."""
    return fake.address().replace("\n", ", ")[:500]


def cart_data(max_lines: int = 3) -> dict[str, int]:
    """A cart of 1..max_lines distinct catalogue products."""
    product_ids = random.sample(sorted(CATALOGUE), k=random.randint(1, max_lines))
    return {product_id: random.randint(1, 4) for product_id in product_ids}


def place_order_data(customer: str, cart: dict[str, int] | None = None) -> dict:
    """Generate a PlaceOrderRequest payload."""
    payload = {
        "customer_id": customer,
        "cart": cart or cart_data(),
        "delivery_address": delivery_address(),
        "payment_method": random.choice(["cash", "card", "online"]),
    }
    if random.random() < 0.3:
        payload["notes"] = fake.sentence(nb_words=8)
    return payload
