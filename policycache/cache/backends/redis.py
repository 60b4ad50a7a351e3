"""
policycache — Redis Cache Backend

Asynchronous Redis cache implementation with:
- JSON serialization for values (shared with the memory backend)
- Native per-key TTL
- Optional namespace prefixing
- Pattern deletion via SCAN + batched DEL

Requires: redis>=5 with asyncio support

Example:
    cache = RedisCacheBackend(redis_url="redis://localhost:6379/0")
    await cache.connect()
    await cache.set("cache:task:findbyid:3f2a", {"id": 1}, ttl=60)
    await cache.delete_pattern("cache:task:*")
"""

from __future__ import annotations

import logging
from typing import Any

from redis.asyncio import Redis

from ...errors import CacheConnectionError, CacheSerializationError
from .. import serialization
from ..interface import TTL_MISSING, CacheInterface

logger = logging.getLogger(__name__)

_BATCH_SIZE = 1000


class RedisCacheBackend(CacheInterface):
    """
    Redis cache backend with JSON serialization and native TTL.

    Notes:
    - Keys are prefixed with the namespace when one is configured.
    - Values are stored as UTF-8 JSON strings.
    - TTL is applied via Redis EX seconds (None -> default_ttl, 0 -> no expiry).
    - Every network failure is logged and converted to a neutral result.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        namespace: str = "",
        default_ttl: int = 3600,
        max_connections: int = 10,
        socket_timeout: int = 5,
        client: Redis | None = None,
    ) -> None:
        """
        Initialize Redis cache backend.

        Args:
            redis_url: Connection URL, e.g. redis://localhost:6379/0 or rediss:// for TLS
            namespace: Optional prefix for all keys
            default_ttl: Default TTL in seconds (0 => no expiry)
            max_connections: Connection pool size
            socket_timeout: Socket timeout in seconds
            client: Pre-built async client (overrides redis_url)
        """
        if client is None and not redis_url:
            raise ValueError("redis_url is required")

        self.namespace = namespace.strip().rstrip(":")
        self.default_ttl = max(0, int(default_ttl))
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

        if client is not None:
            self._client = client
        else:
            # Lazy connection; connects on first command
            self._client = Redis.from_url(  # type: ignore[call-overload]
                url=redis_url,
                decode_responses=True,
                max_connections=max_connections,
                socket_timeout=socket_timeout,
            )

    # ------------ Helpers ------------

    def _make_key(self, key: str) -> str:
        """Create namespaced key."""
        return f"{self.namespace}:{key}" if self.namespace else key

    def _ttl_seconds(self, ttl: int | None) -> int | None:
        """
        Normalize TTL:
        - None -> default_ttl
        - 0 or negative -> no expiry (return None)
        - positive -> provided ttl
        """
        if ttl is None:
            ttl = self.default_ttl
        ttl = int(ttl)
        return ttl if ttl > 0 else None

    @staticmethod
    def _decode(data: str | bytes) -> Any:
        try:
            return serialization.loads(data)
        except (ValueError, UnicodeDecodeError) as e:
            # Not written by this layer; hand back the raw payload
            logger.warning(
                f"Failed to decode JSON from cache, returning raw data: {e}",
                extra={"error": str(e)},
            )
            return data

    async def _scan_delete(self, match: str) -> int:
        """SCAN for keys matching a glob and DEL them in batches."""
        cursor = 0
        total_deleted = 0

        while True:
            cursor, keys = await self._client.scan(cursor=cursor, match=match, count=_BATCH_SIZE)
            if keys:
                total_deleted += int(await self._client.delete(*keys))
            if cursor == 0:
                break

        return total_deleted

    # ------------ Lifecycle ------------

    async def connect(self) -> None:
        """
        Verify the server is reachable.

        Raises:
            CacheConnectionError: If PING fails
        """
        try:
            await self._client.ping()
        except Exception as e:
            raise CacheConnectionError("redis", details={"namespace": self.namespace, "error": str(e)}) from e
        logger.info("Redis cache connected successfully")

    async def close(self) -> None:
        """Close the Redis client and release resources."""
        try:
            await self._client.aclose()
            logger.info(f"Closed Redis cache backend for namespace '{self.namespace}'")
        except Exception as e:
            logger.error(
                f"Error closing Redis client: {e}", extra={"namespace": self.namespace, "error": str(e)}, exc_info=True
            )

    # ------------ Core Interface ------------

    async def get(self, key: str) -> Any | None:
        """Retrieve a value by key."""
        try:
            data = await self._client.get(self._make_key(key))
            if data is None:
                self._misses += 1
                return None

            self._hits += 1
            return self._decode(data)
        except Exception as e:
            logger.error(
                f"Failed to get key '{key}' from Redis: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            self._misses += 1
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store a value with optional TTL."""
        try:
            payload = serialization.dumps(value)
        except CacheSerializationError as e:
            logger.error(
                f"Failed to serialize value for key '{key}': {e}",
                extra={"key": key, "value_type": type(value).__name__, **e.log_extra()},
            )
            return False

        try:
            res = await self._client.set(name=self._make_key(key), value=payload, ex=self._ttl_seconds(ttl))
            success = bool(res)
            if success:
                self._sets += 1
            return success
        except Exception as e:
            logger.error(
                f"Failed to set key '{key}' in Redis: {e}",
                extra={"key": key, "namespace": self.namespace, "ttl": ttl, "error": str(e)},
                exc_info=True,
            )
            return False

    async def delete(self, key: str) -> bool:
        """Delete a single key."""
        try:
            deleted = await self._client.delete(self._make_key(key))
            if deleted:
                self._deletes += 1
            return bool(deleted)
        except Exception as e:
            logger.error(
                f"Failed to delete key '{key}' from Redis: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """Enumerate keys matching a glob with SCAN, then delete them in bulk."""
        if not pattern:
            logger.warning("Attempted to delete cache entries with empty pattern")
            return 0

        try:
            deleted = await self._scan_delete(self._make_key(pattern))
            self._deletes += deleted
            logger.debug(
                f"Deleted {deleted} keys matching '{pattern}' from Redis",
                extra={"pattern": pattern, "namespace": self.namespace, "deleted": deleted},
            )
            return deleted
        except Exception as e:
            logger.error(
                f"Failed to delete pattern '{pattern}' from Redis: {e}",
                extra={"pattern": pattern, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return 0

    async def exists(self, key: str) -> bool:
        """Check if a key exists."""
        try:
            return bool(await self._client.exists(self._make_key(key)))
        except Exception as e:
            logger.error(
                f"Failed to check existence of key '{key}' in Redis: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return False

    async def ttl(self, key: str) -> int:
        """Remaining TTL in seconds (-1 no expiry, -2 missing)."""
        try:
            return int(await self._client.ttl(self._make_key(key)))
        except Exception as e:
            logger.error(
                f"Failed to read TTL of key '{key}' from Redis: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return TTL_MISSING

    async def clear(self) -> bool:
        """
        Clear all entries.

        With a namespace, only keys under "<namespace>:*" are removed;
        without one the whole logical database is flushed.
        """
        try:
            if self.namespace:
                total_deleted = await self._scan_delete(f"{self.namespace}:*")
                self._deletes += total_deleted
                logger.info(f"Cleared {total_deleted} keys from namespace '{self.namespace}'")
            else:
                await self._client.flushdb()
                logger.info("Flushed Redis cache database")
            return True
        except Exception as e:
            logger.error(
                f"Failed to clear Redis cache: {e}",
                extra={"namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return False

    async def get_stats(self) -> dict[str, Any]:
        """Return cache statistics and basic Redis info."""
        total_requests = self._hits + self._misses
        stats: dict[str, Any] = {
            "backend": "redis",
            "namespace": self.namespace,
            "default_ttl": self.default_ttl,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round((self._hits / total_requests) * 100, 2) if total_requests else 0.0,
            "sets": self._sets,
            "deletes": self._deletes,
            "connected": False,
        }

        try:
            stats["connected"] = bool(await self._client.ping())
            stats["size"] = int(await self._client.dbsize())
        except Exception as e:
            logger.warning(f"Failed to get Redis info (restricted or unavailable): {e}", extra={"error": str(e)})

        return stats

    # ------------ Batch operations ------------

    async def get_many(self, keys: list[str]) -> dict[str, Any]:
        """
        Retrieve multiple values in one round-trip using MGET.
        Missing keys are omitted from the result.
        """
        if not keys:
            return {}

        try:
            values = await self._client.mget([self._make_key(k) for k in keys])

            result: dict[str, Any] = {}
            for k, raw in zip(keys, values, strict=False):
                if raw is None:
                    self._misses += 1
                    continue
                self._hits += 1
                result[k] = self._decode(raw)

            return result
        except Exception as e:
            logger.error(
                f"Failed to get multiple keys from Redis: {e}",
                extra={"key_count": len(keys), "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return {}

    async def delete_many(self, keys: list[str]) -> int:
        """Delete multiple keys with chunked DEL calls."""
        if not keys:
            return 0

        try:
            ns_keys = [self._make_key(k) for k in keys]
            deleted_total = 0

            for i in range(0, len(ns_keys), _BATCH_SIZE):
                deleted_total += int(await self._client.delete(*ns_keys[i : i + _BATCH_SIZE]))

            self._deletes += deleted_total
            return deleted_total
        except Exception as e:
            logger.error(
                f"Failed to delete multiple keys from Redis: {e}",
                extra={"key_count": len(keys), "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return 0
