"""Order store factory.

Provides get_store() / set_store() to swap implementations:
- InMemoryOrderStore for development and testing (``memory://``)
- SqlOrderStore for any SQLAlchemy database URL
"""

import threading

from ordering.config import Settings, settings
from ordering.persistence.memory import InMemoryOrderStore
from ordering.persistence.sql import SqlOrderStore
from ordering.persistence.store import OrderStore

_current_store: OrderStore | None = None
_lock = threading.Lock()


def build_store(config: Settings = settings) -> OrderStore:
    """Build the store described by ``config.database_uri``."""
    if config.uses_memory_store:
        return InMemoryOrderStore(lock_timeout=config.lock_timeout_seconds)
    return SqlOrderStore.from_uri(config.database_uri, lock_timeout=config.lock_timeout_seconds)


def get_store() -> OrderStore:
    """Return the process-wide order store, building it from settings on first use."""
    global _current_store
    with _lock:
        if _current_store is None:
            _current_store = build_store()
        return _current_store


def set_store(store: OrderStore) -> None:
    """Override the active order store (useful for tests)."""
    global _current_store
    with _lock:
        _current_store = store


def reset_store() -> None:
    """Dispose of the active store and fall back to the default on next use."""
    global _current_store
    with _lock:
        if _current_store is not None:
            _current_store.dispose()
        _current_store = None
