"""Ordering Load Testing — Locust entry point.

Seeds a small catalogue on start and prints the order statistics on stop, so
a run can be checked for overselling at a glance.

Usage:
    # All scenarios (web UI):
    locust -f loadtests/locustfile.py --host http://localhost:8000

    # Contention on scarce stock only:
    locust -f loadtests/locustfile.py ScarceStockUser

    # Headless (CI mode):
    locust -f loadtests/locustfile.py --headless \
           -u 50 -r 5 -t 300s --csv=results/loadtest
"""

import logging
import time

import requests
from locust import events

# Import all user classes so Locust discovers them
from loadtests.data_generators import SCARCE_PRODUCT_ID, seed_catalogue
from loadtests.helpers.response import extract_error_detail
from loadtests.scenarios.ordering import CatalogueAdminUser, OrderingUser, ScarceStockUser  # noqa: F401

logger = logging.getLogger("loadtest")


@events.request.add_listener
def on_request(request_type, name, response, exception, **_kw):
    """Log error details for every failed request.

    Rejections caused by exhausted stock (409) are expected under contention
    and only logged at debug level.
    """
    if exception:
        logger.error("[EXCEPTION] %s %s: %s", request_type, name, exception)
    elif response is not None and response.status_code == 409:
        logger.debug("[409] %s %s: %s", request_type, name, extract_error_detail(response))
    elif response is not None and response.status_code >= 400:
        logger.error("[%s] %s %s: %s", response.status_code, request_type, name, extract_error_detail(response))


@events.test_start.add_listener
def on_test_start(environment, **_kwargs):
    """Register the load test catalogue before any user starts."""
    print(f"\n[LOADTEST] Started at {time.strftime('%H:%M:%S')}")
    print(f"[LOADTEST] Target host: {environment.host}")
    seeded = seed_catalogue(environment.host)
    print(f"[LOADTEST] Seeded {seeded} products")
    print()


@events.test_stop.add_listener
def on_test_stop(environment, **_kwargs):
    """Print order statistics and the remaining scarce stock."""
    print(f"\n[LOADTEST] Stopped at {time.strftime('%H:%M:%S')}")
    try:
        stats = requests.get(f"{environment.host}/orders/stats", timeout=5).json()
        scarce = requests.get(f"{environment.host}/products/{SCARCE_PRODUCT_ID}", timeout=5).json()
    except requests.RequestException as e:
        print(f"[LOADTEST] Could not fetch order statistics: {e}\n")
        return

    print(f"[LOADTEST] Orders: {stats['order_count']} (revenue {stats['revenue']})")
    for status, count in stats["by_status"].items():
        print(f"  {status}: {count}")
    print(f"[LOADTEST] Scarce product stock left: {scarce['stock']}")
    print()
