"""
policycache — Memory Cache Backend

In-process cache with per-entry expiry, used when no Redis backend is
available. Intended to stay small: pattern deletion scans the whole keyspace.

Expiry is pull-based: get/exists/ttl remove an expired entry when they find
one. An optional periodic sweep purges expired entries proactively, taking
the lock for one entry at a time.
"""

import asyncio
import fnmatch
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ...errors import CacheSerializationError
from .. import serialization
from ..interface import TTL_MISSING, TTL_NO_EXPIRY, CacheInterface

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A stored value and its absolute expiry on the backend clock."""

    value: str
    expires_at: float | None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class MemoryCacheBackend(CacheInterface):
    """
    In-memory cache backend.

    Features:
    - Per-key TTL with lazy expiry on lookup
    - Glob pattern deletion (full keyspace scan)
    - Optional background sweep of expired entries
    - Lock-free reads; mutations serialized by an asyncio.Lock
    """

    def __init__(
        self,
        default_ttl: int = 3600,
        namespace: str = "",
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize memory cache backend.

        Args:
            default_ttl: Default TTL in seconds (0 = no expiry)
            namespace: Optional key prefix
            sweep_interval: Seconds between background sweeps (0 = no sweeper)
            clock: Monotonic time source in seconds
        """
        self.default_ttl = max(0, int(default_ttl))
        self.namespace = namespace.strip().rstrip(":")
        self.sweep_interval = sweep_interval
        self._clock = clock

        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()
        self._sweeper: asyncio.Task[None] | None = None

        # Stats
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0
        self._expirations = 0

    def _make_key(self, key: str) -> str:
        """Create namespaced cache key."""
        return f"{self.namespace}:{key}" if self.namespace else key

    def _strip_key(self, ns_key: str) -> str:
        if self.namespace:
            return ns_key[len(self.namespace) + 1 :]
        return ns_key

    def _expiry_for(self, ttl: int | None) -> float | None:
        if ttl is None:
            ttl = self.default_ttl
        ttl = int(ttl)
        return self._clock() + ttl if ttl > 0 else None

    async def _expire(self, ns_key: str, entry: CacheEntry) -> None:
        """Remove an entry found expired, unless it was replaced meanwhile."""
        async with self._lock:
            if self._entries.get(ns_key) is entry:
                del self._entries[ns_key]
                self._expirations += 1

    async def _live_entry(self, key: str) -> CacheEntry | None:
        ns_key = self._make_key(key)
        entry = self._entries.get(ns_key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            await self._expire(ns_key, entry)
            return None
        return entry

    # ------------ Lifecycle ------------

    def start(self) -> None:
        """Start the background sweeper if an interval is configured."""
        if self.sweep_interval <= 0 or self._sweeper is not None:
            return
        self._sweeper = asyncio.create_task(self._sweep_loop(), name="policycache-memory-sweeper")
        logger.debug(f"Started memory cache sweeper (interval: {self.sweep_interval}s)")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                removed = await self.sweep_expired()
                if removed:
                    logger.debug(f"Swept {removed} expired entries from memory cache")
            except Exception as e:
                logger.error(
                    f"Memory cache sweep failed: {e}",
                    extra={"namespace": self.namespace, "error": str(e)},
                    exc_info=True,
                )

    async def sweep_expired(self) -> int:
        """
        Remove expired entries one at a time.

        The lock is held only while removing a single entry and the event loop
        is yielded to between removals, so lookups are never blocked for longer
        than one deletion.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        candidates = [(k, e) for k, e in list(self._entries.items()) if e.is_expired(now)]
        removed = 0

        for ns_key, entry in candidates:
            async with self._lock:
                if self._entries.get(ns_key) is entry:
                    del self._entries[ns_key]
                    self._expirations += 1
                    removed += 1
            await asyncio.sleep(0)

        return removed

    async def close(self) -> None:
        """Stop the sweeper. Stored data stays in-process until cleared."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        logger.debug(f"Memory cache backend closed for namespace '{self.namespace}'")

    # ------------ Core Interface ------------

    async def get(self, key: str) -> Any | None:
        """Retrieve value from cache."""
        if not key:
            logger.warning("Attempted to get cache value with empty key")
            return None

        try:
            entry = await self._live_entry(key)
            if entry is None:
                self._misses += 1
                return None

            self._hits += 1
            return serialization.loads(entry.value)
        except Exception as e:
            logger.error(
                f"Unexpected error getting key '{key}' from memory cache: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            self._misses += 1
            return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
    ) -> bool:
        """Store value in cache."""
        if not key:
            logger.warning("Attempted to set cache value with empty key")
            return False

        try:
            payload = serialization.dumps(value)
        except CacheSerializationError as e:
            logger.error(
                f"Failed to serialize value for key '{key}': {e}",
                extra={"key": key, "value_type": type(value).__name__, **e.log_extra()},
            )
            return False

        try:
            entry = CacheEntry(value=payload, expires_at=self._expiry_for(ttl))
            async with self._lock:
                self._entries[self._make_key(key)] = entry
                self._sets += 1
            return True
        except Exception as e:
            logger.error(
                f"Unexpected error setting key '{key}' in memory cache: {e}",
                extra={"key": key, "namespace": self.namespace, "ttl": ttl, "error": str(e)},
                exc_info=True,
            )
            return False

    async def delete(self, key: str) -> bool:
        """Delete key from cache."""
        if not key:
            logger.warning("Attempted to delete cache value with empty key")
            return False

        try:
            async with self._lock:
                entry = self._entries.pop(self._make_key(key), None)
                if entry is None:
                    return False
                self._deletes += 1
                return not entry.is_expired(self._clock())
        except Exception as e:
            logger.error(
                f"Unexpected error deleting key '{key}' from memory cache: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching a glob pattern (full keyspace scan)."""
        if not pattern:
            logger.warning("Attempted to delete cache entries with empty pattern")
            return 0

        try:
            matcher = re.compile(fnmatch.translate(self._make_key(pattern)))
            async with self._lock:
                matched = [k for k in self._entries if matcher.match(k)]
                for ns_key in matched:
                    del self._entries[ns_key]
                self._deletes += len(matched)

            logger.debug(
                f"Deleted {len(matched)} keys matching '{pattern}' from memory cache",
                extra={"pattern": pattern, "namespace": self.namespace, "deleted": len(matched)},
            )
            return len(matched)
        except Exception as e:
            logger.error(
                f"Unexpected error deleting pattern '{pattern}' from memory cache: {e}",
                extra={"pattern": pattern, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return 0

    async def exists(self, key: str) -> bool:
        """Check if key exists and is not expired."""
        if not key:
            return False

        try:
            return await self._live_entry(key) is not None
        except Exception as e:
            logger.error(
                f"Unexpected error checking existence of key '{key}' in memory cache: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return False

    async def ttl(self, key: str) -> int:
        """Remaining TTL in whole seconds (-1 no expiry, -2 missing)."""
        if not key:
            return TTL_MISSING

        try:
            entry = await self._live_entry(key)
            if entry is None:
                return TTL_MISSING
            if entry.expires_at is None:
                return TTL_NO_EXPIRY
            return max(0, int(entry.expires_at - self._clock() + 0.5))
        except Exception as e:
            logger.error(
                f"Unexpected error reading TTL of key '{key}' in memory cache: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return TTL_MISSING

    async def clear(self) -> bool:
        """Clear all entries from cache."""
        try:
            async with self._lock:
                size = len(self._entries)
                self._entries.clear()
            logger.info(f"Cleared {size} entries from memory cache namespace '{self.namespace}'")
            return True
        except Exception as e:
            logger.error(
                f"Unexpected error clearing memory cache: {e}",
                extra={"namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return False

    async def keys(self, pattern: str = "*") -> list[str]:
        """List live keys matching a glob pattern (namespace prefix removed)."""
        matcher = re.compile(fnmatch.translate(self._make_key(pattern)))
        now = self._clock()
        return [
            self._strip_key(k) for k, e in list(self._entries.items()) if matcher.match(k) and not e.is_expired(now)
        ]

    async def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        total_requests = self._hits + self._misses
        hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0

        return {
            "backend": "memory",
            "size": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(hit_rate, 2),
            "sets": self._sets,
            "deletes": self._deletes,
            "expirations": self._expirations,
            "namespace": self.namespace,
            "sweeper_running": self._sweeper is not None and not self._sweeper.done(),
        }
