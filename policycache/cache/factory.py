"""
policycache — Cache Factory

Canonical factory for creating cache backend instances from configuration.

Key points:
- Backend selection happens once per instance name, at startup
- `initialize_cache()` verifies Redis connectivity; an unreachable or
  unconfigured Redis permanently selects the memory backend for the
  process lifetime (logged as a warning, never retried)
- `create_cache()` builds a backend without connectivity checks

Examples:
    from policycache.cache.factory import initialize_cache, get_cache

    cache = await initialize_cache()          # env-configured, with fallback
    same = get_cache()                         # later lookups

    from policycache.config import CacheBackend, CacheConfig
    cfg = CacheConfig(backend=CacheBackend.MEMORY, ttl_seconds=600)
    mem_cache = create_cache(cfg, name="test")
"""

from __future__ import annotations

import logging

from ..config import CacheBackend, CacheConfig, get_config
from ..errors import CacheConnectionError, ConfigurationError
from .backends.memory import MemoryCacheBackend
from .interface import CacheInterface

logger = logging.getLogger(__name__)

# Global cache instances registry
_cache_instances: dict[str, CacheInterface] = {}


def _create_memory_cache(config: CacheConfig) -> MemoryCacheBackend:
    """Internal helper to construct a memory cache backend."""
    return MemoryCacheBackend(
        default_ttl=config.ttl_seconds,
        namespace=config.namespace,
        sweep_interval=config.sweep_interval_seconds,
    )


def _create_redis_cache(config: CacheConfig) -> CacheInterface:
    """Internal helper to construct a redis cache backend with lazy import."""
    redis_url = config.redis_connection_url()
    if not redis_url:
        raise ConfigurationError(
            "REDIS_URL or REDIS_HOST must be set when CACHE_BACKEND=redis",
            details={"env": ["REDIS_URL", "REDIS_HOST"], "backend": "redis"},
        )

    try:
        from .backends.redis import RedisCacheBackend
    except ImportError as e:
        raise ConfigurationError(
            "Redis backend selected but redis client is unavailable. Install with: pip install 'redis>=5.0.0'",
            details={"package": "redis>=5.0.0", "error": str(e), "backend": "redis"},
        ) from e

    return RedisCacheBackend(
        redis_url=redis_url,
        namespace=config.namespace,
        default_ttl=config.ttl_seconds,
        max_connections=config.redis_max_connections,
        socket_timeout=config.redis_socket_timeout,
    )


def create_cache(
    config: CacheConfig | None = None,
    name: str = "default",
) -> CacheInterface:
    """
    Create a cache backend instance based on configuration.

    No connectivity check is performed; use initialize_cache() at startup
    to get the Redis-unavailable fallback.

    Args:
        config: Cache configuration (uses global config if not provided)
        name: Cache instance name

    Returns:
        Configured cache backend instance

    Raises:
        ConfigurationError: If cache configuration is invalid or backend unavailable
    """
    if name in _cache_instances:
        logger.debug("Returning existing cache instance: %s", name)
        return _cache_instances[name]

    if config is None:
        config = get_config().cache

    logger.info(
        "Creating cache instance '%s' with backend: %s",
        name,
        config.backend,
        extra={"cache_name": name, "backend": str(config.backend)},
    )

    if config.backend == CacheBackend.MEMORY:
        cache: CacheInterface = _create_memory_cache(config)
    elif config.backend == CacheBackend.REDIS:
        cache = _create_redis_cache(config)
    else:
        raise ConfigurationError(
            f"Unknown cache backend: {config.backend}",
            details={"backend": str(config.backend), "supported": ["memory", "redis"]},
        )

    _cache_instances[name] = cache
    return cache


async def initialize_cache(
    config: CacheConfig | None = None,
    name: str = "default",
) -> CacheInterface:
    """
    Select and initialize the cache backend for this process.

    Redis is used only when it is configured, importable and answers PING.
    Any failure falls back to the memory backend for the rest of the
    process lifetime.

    Args:
        config: Cache configuration (uses global config if not provided)
        name: Cache instance name

    Returns:
        Ready-to-use cache backend instance
    """
    if name in _cache_instances:
        return _cache_instances[name]

    if config is None:
        config = get_config().cache

    cache: CacheInterface | None = None

    if not config.redis_configured:
        logger.warning(
            "Redis not configured, using in-memory cache",
            extra={"cache_name": name, "requested_backend": str(config.backend)},
        )
    elif config.backend == CacheBackend.REDIS:
        candidate: CacheInterface | None = None
        try:
            candidate = _create_redis_cache(config)
            await candidate.connect()  # type: ignore[attr-defined]
            cache = candidate
        except (CacheConnectionError, ConfigurationError) as e:
            logger.warning(
                "Failed to connect to Redis, using in-memory cache fallback",
                extra={"cache_name": name, **e.log_extra()},
            )
            if candidate is not None:
                await candidate.close()

    if cache is None:
        memory = _create_memory_cache(config)
        memory.start()
        cache = memory

    _cache_instances[name] = cache
    logger.info(
        "Cache instance '%s' initialized with backend: %s",
        name,
        type(cache).__name__,
        extra={"cache_name": name},
    )
    return cache


def get_cache(name: str = "default") -> CacheInterface:
    """
    Get an existing cache instance by name.

    If the instance doesn't exist, it is created from the global configuration.

    Args:
        name: Cache instance name

    Returns:
        Cache backend instance
    """
    if name not in _cache_instances:
        logger.debug("Cache instance '%s' not found, creating new instance", name)
        return create_cache(name=name)

    return _cache_instances[name]


async def close_all_caches() -> None:
    """
    Close all cache instances and release resources.

    Must be called during graceful shutdown.
    """
    if not _cache_instances:
        logger.debug("No cache instances to close")
        return

    logger.info("Closing %d cache instance(s)...", len(_cache_instances))

    for name, cache in list(_cache_instances.items()):
        try:
            await cache.close()
            logger.info("Closed cache instance: %s", name)
        except Exception as e:
            logger.error(
                "Error closing cache instance '%s': %s",
                name,
                e,
                extra={"cache_name": name, "error": str(e)},
                exc_info=True,
            )

    _cache_instances.clear()
    logger.info("All cache instances closed")


def reset_cache_factory() -> None:
    """
    Reset the cache factory by clearing all instance references.

    Does NOT call close() on instances - use close_all_caches() for proper cleanup.
    Only use this in testing contexts.
    """
    count = len(_cache_instances)
    _cache_instances.clear()
    logger.debug("Reset cache factory, cleared %d instance reference(s)", count)


def list_cache_instances() -> list[str]:
    """
    List all registered cache instance names.

    Returns:
        List of cache instance names
    """
    return list(_cache_instances.keys())
