import pytest
from ordering.checkout.coordinator import OrderTransactionCoordinator
from ordering.config import Settings
from ordering.inventory.catalogue import Catalogue
from ordering.persistence import reset_store, set_store
from ordering.persistence.memory import InMemoryOrderStore
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


@pytest.fixture()
def test_settings():
    return Settings(
        database_uri="memory://",
        lock_timeout_seconds=1.0,
        max_retries=2,
        retry_backoff_seconds=0.0,
        low_stock_threshold=10,
    )


@pytest.fixture(autouse=True)
def store(test_settings):
    """A fresh in-memory store, installed as the process-wide store."""
    store = InMemoryOrderStore(lock_timeout=test_settings.lock_timeout_seconds)
    set_store(store)
    yield store
    reset_store()


@pytest.fixture()
def coordinator(store, test_settings):
    return OrderTransactionCoordinator(store, test_settings)


@pytest.fixture()
def catalogue(store):
    return Catalogue(store)


@pytest.fixture()
def stock_of(store):
    def _stock_of(product_id):
        return store.get_product(product_id).stock

    return _stock_of
