# itinerary_workflow/models/store.py
"""
Key-value store protocol definition.

Defines the abstract interface that both InMemoryKeyValueStore and
RedisKeyValueStore implement. Values are opaque strings; every write carries a
TTL so abandoned records expire on their own.
"""

from abc import ABC, abstractmethod

# Redis TTL sentinels, mirrored by every implementation
TTL_MISSING = -2
TTL_PERSISTENT = -1


class KeyValueStore(ABC):
    """
    Abstract base class for TTL-capable key-value stores.

    Implementations raise StoreUnavailable when the backend cannot be reached.
    A missing or expired key is never an error: reads return None.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """
        Get the value stored at key.

        Args:
            key: Store key

        Returns:
            Stored string, or None if the key is missing or expired

        Raises:
            StoreUnavailable: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """
        Store value at key, replacing any previous value and expiry.

        Args:
            key: Store key
            value: Serialized value
            ttl_seconds: Seconds until the key expires

        Raises:
            StoreUnavailable: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def compare_and_set(
        self, key: str, expected: str, value: str, ttl_seconds: int
    ) -> bool:
        """
        Replace the value at key only if it still equals expected.

        Args:
            key: Store key
            expected: Value previously read from the key
            value: New serialized value
            ttl_seconds: Seconds until the key expires

        Returns:
            True if the write happened, False if the key changed or vanished

        Raises:
            StoreUnavailable: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if a key was removed
        """
        pass

    @abstractmethod
    async def ttl(self, key: str) -> int:
        """
        Remaining lifetime of a key in whole seconds.

        Returns:
            Seconds left, TTL_PERSISTENT if the key never expires,
            TTL_MISSING if it does not exist
        """
        pass

    @abstractmethod
    async def scan_keys(self, pattern: str) -> list[str]:
        """
        List keys matching a glob-style pattern (e.g. "workflow:session:*").
        """
        pass

    async def ping(self) -> bool:
        """Check backend connectivity. Raises StoreUnavailable on failure."""
        return True

    async def close(self) -> None:
        """Release backend resources."""
        pass
