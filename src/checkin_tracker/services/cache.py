"""Local cache abstractions for offline copies of collections."""

import copy
from dataclasses import dataclass
from typing import Protocol

SESSIONS_KEY = "sessions"
CUSTOMER_RECORDS_KEY = "customer_records"


class LocalCache(Protocol):
    """Key-value store holding JSON-compatible values."""

    def get(self, key: str) -> object | None:
        """Return the cached value for ``key`` if present."""

    def set(self, key: str, value: object) -> None:
        """Store a JSON-compatible value under ``key``."""


@dataclass
class InMemoryLocalCache(LocalCache):
    """In-memory local cache, used when no cache directory is configured."""

    _entries: dict[str, object]

    def __init__(self) -> None:
        self._entries = {}

    def get(self, key: str) -> object | None:
        """Return a copy of the cached value."""
        if key not in self._entries:
            return None
        return copy.deepcopy(self._entries[key])

    def set(self, key: str, value: object) -> None:
        """Store a copy of the value."""
        self._entries[key] = copy.deepcopy(value)
