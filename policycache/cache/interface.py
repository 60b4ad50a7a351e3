"""
policycache — Cache Interface

Defines the abstract interface that all cache backends must implement.

Contract shared by every backend:
- Methods never raise on backend failure; they log and return a neutral
  result (None, False, 0, -2)
- `*` in patterns matches any run of characters, identically on all backends
"""

from abc import ABC, abstractmethod
from typing import Any

# TTL sentinels (Redis convention)
TTL_NO_EXPIRY = -1
TTL_MISSING = -2


class CacheInterface(ABC):
    """
    Abstract base class for cache backends.

    All cache implementations must implement this interface to ensure
    consistent behavior across the memory and Redis backends.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """
        Retrieve a value from the cache.

        Args:
            key: Cache key

        Returns:
            Cached value if found and not expired, None otherwise
        """

    @abstractmethod
    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
    ) -> bool:
        """
        Store a value in the cache, wholly replacing any previous entry.

        Args:
            key: Cache key
            value: Value to cache (must be serializable)
            ttl: Time-to-live in seconds (None = use default, 0 = no expiry)

        Returns:
            True if stored successfully, False otherwise
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete a key from the cache.

        Args:
            key: Cache key to delete

        Returns:
            True if key was deleted, False if key didn't exist
        """

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern.

        Args:
            pattern: Glob pattern (e.g. "cache:task:*")

        Returns:
            Number of keys deleted
        """

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """
        Check if a key exists in the cache.

        Args:
            key: Cache key to check

        Returns:
            True if key exists and is not expired, False otherwise
        """

    @abstractmethod
    async def ttl(self, key: str) -> int:
        """
        Remaining time-to-live of a key.

        Args:
            key: Cache key

        Returns:
            Remaining whole seconds, TTL_NO_EXPIRY (-1) for keys without
            expiry, TTL_MISSING (-2) for absent or expired keys
        """

    @abstractmethod
    async def clear(self) -> bool:
        """
        Clear all entries from the cache.

        Returns:
            True if cache was cleared successfully
        """

    @abstractmethod
    async def get_stats(self) -> dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache statistics (hits, misses, size, etc.)
        """

    @abstractmethod
    async def close(self) -> None:
        """
        Close the cache backend and release resources.

        Should be called during graceful shutdown.
        """

    async def get_many(self, keys: list[str]) -> dict[str, Any]:
        """
        Retrieve multiple values from the cache.

        Default implementation calls get() for each key.
        Backends can override for better performance.

        Args:
            keys: List of cache keys

        Returns:
            Dictionary mapping keys to values (missing keys are omitted)
        """
        result = {}
        for key in keys:
            value = await self.get(key)
            if value is not None:
                result[key] = value
        return result

    async def set_many(
        self,
        items: dict[str, Any],
        ttl: int | None = None,
    ) -> int:
        """
        Store multiple values in the cache.

        Default implementation calls set() for each item.

        Args:
            items: Dictionary mapping keys to values
            ttl: Time-to-live in seconds (applies to all items)

        Returns:
            Number of items successfully stored
        """
        count = 0
        for key, value in items.items():
            if await self.set(key, value, ttl):
                count += 1
        return count

    async def delete_many(self, keys: list[str]) -> int:
        """
        Delete multiple keys from the cache.

        Default implementation calls delete() for each key.

        Args:
            keys: List of cache keys to delete

        Returns:
            Number of keys successfully deleted
        """
        count = 0
        for key in keys:
            if await self.delete(key):
                count += 1
        return count
