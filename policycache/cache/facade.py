"""
policycache — Cache Facade

Policy-free, imperative access to the process cache backend.

Collaborators that need ad hoc caching outside the declarative path use this
surface. Callers supply full key strings themselves; the facade shares the
backend instance and key namespace with the interceptor.

Every method returns a neutral result on backend failure instead of raising.
"""

import logging
from typing import Any

from ..errors import CacheOperationError
from .interface import TTL_MISSING, CacheInterface

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600


def _log_failure(operation: str, e: Exception, **context: Any) -> None:
    error = CacheOperationError(f"Cache {operation} failed: {e}", details={"operation": operation, **context})
    logger.error(str(error), extra={**context, **error.log_extra()}, exc_info=True)


class CacheFacade:
    """Thin async wrapper over a single CacheInterface backend."""

    def __init__(self, backend: CacheInterface):
        self.backend = backend

    async def get(self, key: str) -> Any | None:
        """Get a value, or None on miss or error."""
        try:
            return await self.backend.get(key)
        except Exception as e:
            _log_failure("get", e, key=key)
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> bool:
        """Store a value for ttl_seconds (0 = no expiry)."""
        try:
            return await self.backend.set(key, value, ttl=ttl_seconds)
        except Exception as e:
            _log_failure("set", e, key=key, ttl=ttl_seconds)
            return False

    async def delete(self, key: str) -> bool:
        try:
            return await self.backend.delete(key)
        except Exception as e:
            _log_failure("delete", e, key=key)
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern; returns the count removed."""
        try:
            return await self.backend.delete_pattern(pattern)
        except Exception as e:
            _log_failure("delete_pattern", e, pattern=pattern)
            return 0

    async def clear(self) -> bool:
        try:
            return await self.backend.clear()
        except Exception as e:
            _log_failure("clear", e)
            return False

    async def exists(self, key: str) -> bool:
        try:
            return await self.backend.exists(key)
        except Exception as e:
            _log_failure("exists", e, key=key)
            return False

    async def ttl(self, key: str) -> int:
        """Remaining TTL in seconds; -1 without expiry, -2 when missing or on error."""
        try:
            return await self.backend.ttl(key)
        except Exception as e:
            _log_failure("ttl", e, key=key)
            return TTL_MISSING

    async def get_stats(self) -> dict[str, Any]:
        try:
            return await self.backend.get_stats()
        except Exception as e:
            _log_failure("stats", e)
            return {}
