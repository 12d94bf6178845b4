"""Ordering load test scenarios.

A customer journey that places, inspects and sometimes cancels an order, a
contention user that hammers one scarce product, and a catalogue admin that
restocks and reprices while orders are being placed.
"""

import random

from locust import HttpUser, SequentialTaskSet, between, constant_pacing, task

from loadtests.data_generators import CATALOGUE, SCARCE_PRODUCT_ID, customer_id, place_order_data
from loadtests.helpers.response import extract_error_detail, is_retryable
from loadtests.helpers.state import OrderState


class PlaceAndManageOrderJourney(SequentialTaskSet):
    """Place Order -> View Order -> Pay or Cancel -> View Statistics."""

    def on_start(self):
        self.state = OrderState(customer_id=customer_id())

    @task
    def place_order(self):
        payload = place_order_data(self.state.customer_id)
        with self.client.post("/orders", json=payload, catch_response=True, name="POST /orders") as resp:
            if resp.status_code == 201:
                self.state.order_id = resp.json()["order_id"]
                self.state.cart = payload["cart"]
            elif resp.status_code == 409 or is_retryable(resp):
                resp.success()
                self.interrupt()
            else:
                resp.failure(f"Place order failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def view_order(self):
        with self.client.get(
            f"/orders/{self.state.order_id}",
            catch_response=True,
            name="GET /orders/{id}",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"View order failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def pay_or_cancel(self):
        if random.random() < 0.25:
            with self.client.post(
                f"/orders/{self.state.order_id}/cancel",
                json={"requester_id": self.state.customer_id},
                catch_response=True,
                name="POST /orders/{id}/cancel",
            ) as resp:
                if resp.status_code == 200:
                    self.state.current_status = "cancelled"
                else:
                    resp.failure(f"Cancel order failed: {resp.status_code} - {extract_error_detail(resp)}")
            return

        with self.client.put(
            f"/orders/{self.state.order_id}/payment-status",
            json={"payment_status": "paid"},
            catch_response=True,
            name="PUT /orders/{id}/payment-status",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Record payment failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def view_statistics(self):
        self.client.get("/orders/stats", params={"customer_id": self.state.customer_id}, name="GET /orders/stats")

    @task
    def done(self):
        self.interrupt()


class OrderingUser(HttpUser):
    """Customers placing ordinary orders across the catalogue."""

    wait_time = between(0.5, 2)
    tasks = [PlaceAndManageOrderJourney]


class ScarceStockUser(HttpUser):
    """Many customers racing for the last units of one product.

    The scarce product must never be oversold: once its stock is gone every
    order for it is rejected with 409.
    """

    wait_time = constant_pacing(0.2)

    @task
    def grab_scarce_product(self):
        payload = place_order_data(customer_id(), cart={SCARCE_PRODUCT_ID: random.randint(1, 3)})
        with self.client.post("/orders", json=payload, catch_response=True, name="[CONTENTION] POST /orders") as resp:
            if resp.status_code in (201, 409) or is_retryable(resp):
                resp.success()
            else:
                resp.failure(f"Unexpected response: {resp.status_code} - {extract_error_detail(resp)}")


class CatalogueAdminUser(HttpUser):
    """Back-office staff restocking and repricing during the run."""

    wait_time = between(2, 5)

    @task(3)
    def restock(self):
        product_id = random.choice(sorted(CATALOGUE))
        self.client.post(
            f"/products/{product_id}/restock",
            json={"quantity": random.randint(10, 100)},
            name="POST /products/{id}/restock",
        )

    @task(1)
    def reprice(self):
        product_id = random.choice(sorted(CATALOGUE))
        _, price, _ = CATALOGUE[product_id]
        self.client.put(
            f"/products/{product_id}/price",
            json={"price": price},
            name="PUT /products/{id}/price",
        )

    @task(1)
    def low_stock_report(self):
        self.client.get("/products/low-stock", name="GET /products/low-stock")
