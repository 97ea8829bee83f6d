# itinerary_workflow/models/memory_store.py
"""
In-memory key-value store with TTL expiry.

Used for tests and single-process deployments. Data does not survive restarts.
"""

import logging
import math
import time
from collections.abc import Callable
from fnmatch import fnmatchcase

from itinerary_workflow.models.store import TTL_MISSING, TTL_PERSISTENT, KeyValueStore

logger = logging.getLogger(__name__)


class InMemoryKeyValueStore(KeyValueStore):
    """
    Simple in-memory key-value storage.

    Safe for concurrent asyncio tasks in one process: no method awaits between
    reading and writing an entry, so compare_and_set is atomic.

    Expired entries are dropped lazily on access.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """
        Initialize empty store.

        Args:
            clock: Monotonic seconds source (injectable for expiry tests)
        """
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}
        logger.info("Initialized InMemoryKeyValueStore")

    def _live_entry(self, key: str) -> tuple[str, float | None] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    async def get(self, key: str) -> str | None:
        entry = self._live_entry(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = (value, self._clock() + ttl_seconds)

    async def compare_and_set(
        self, key: str, expected: str, value: str, ttl_seconds: int
    ) -> bool:
        entry = self._live_entry(key)
        if entry is None or entry[0] != expected:
            return False
        self._data[key] = (value, self._clock() + ttl_seconds)
        return True

    async def delete(self, key: str) -> bool:
        existed = self._live_entry(key) is not None
        self._data.pop(key, None)
        return existed

    async def ttl(self, key: str) -> int:
        entry = self._live_entry(key)
        if entry is None:
            return TTL_MISSING
        _, expires_at = entry
        if expires_at is None:
            return TTL_PERSISTENT
        return math.ceil(expires_at - self._clock())

    async def scan_keys(self, pattern: str) -> list[str]:
        return [
            key
            for key in list(self._data)
            if fnmatchcase(key, pattern) and self._live_entry(key) is not None
        ]

    def set_persistent(self, key: str, value: str) -> None:
        """Store a value with no expiry (mirrors a Redis SET without EX)."""
        self._data[key] = (value, None)
