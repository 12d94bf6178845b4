import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path.cwd() / ".env")

MEMORY_URI = "memory://"


def _get_float(name: str, fallback: str) -> float:
    return float(os.getenv(name, fallback))


def _get_int(name: str, fallback: str) -> int:
    return int(os.getenv(name, fallback))


@dataclass(frozen=True)
class Settings:
    database_uri: str = os.getenv("ORDERING_DATABASE_URI", MEMORY_URI)
    lock_timeout_seconds: float = _get_float("ORDERING_LOCK_TIMEOUT_SECONDS", "5")
    max_retries: int = _get_int("ORDERING_MAX_RETRIES", "3")
    retry_backoff_seconds: float = _get_float("ORDERING_RETRY_BACKOFF_SECONDS", "0.05")
    low_stock_threshold: int = _get_int("ORDERING_LOW_STOCK_THRESHOLD", "10")

    @property
    def uses_memory_store(self) -> bool:
        return self.database_uri.startswith(MEMORY_URI)


settings = Settings()
