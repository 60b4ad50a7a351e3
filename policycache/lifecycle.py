"""
policycache — Lifecycle

Owns the process-wide backend, facade and interceptor.

    await init_cache()        # at startup: select backend once
    ...
    await shutdown_cache()    # at shutdown: drain pending work, close backend

If init_cache() is never called, the first decorated call initializes a
memory-backed interceptor lazily.
"""

import logging

from .cache.facade import CacheFacade
from .cache.factory import close_all_caches, create_cache, initialize_cache
from .config import CacheBackend, CacheConfig, PolicyCacheConfig, get_config
from .interceptor import CacheInterceptor
from .observability import initialize_observability, setup_logging

logger = logging.getLogger(__name__)

_facade: CacheFacade | None = None
_interceptor: CacheInterceptor | None = None


async def init_cache(config: PolicyCacheConfig | None = None) -> CacheInterceptor:
    """
    Initialize logging, metrics and the cache backend for this process.

    Args:
        config: Full configuration (loaded from the environment if not provided)

    Returns:
        The default interceptor
    """
    global _facade, _interceptor

    if _interceptor is not None:
        return _interceptor

    if config is None:
        config = get_config()

    setup_logging(config.log_level, config.observability.log_format)
    initialize_observability(
        enable_metrics=config.observability.enable_metrics,
        enable_tracing=config.observability.enable_tracing,
    )

    backend = await initialize_cache(config.cache)
    _facade = CacheFacade(backend)
    _interceptor = CacheInterceptor(_facade)

    logger.info(
        f"policycache initialized with {type(backend).__name__}",
        extra={"backend": type(backend).__name__, "environment": config.environment},
    )
    return _interceptor


def get_interceptor() -> CacheInterceptor:
    """
    Get the default interceptor.

    Falls back to an in-memory backend when init_cache() was not called.
    """
    global _facade, _interceptor

    if _interceptor is None:
        cache_config = get_config().cache
        fallback = CacheConfig(
            backend=CacheBackend.MEMORY,
            ttl_seconds=cache_config.ttl_seconds,
            namespace=cache_config.namespace,
            sweep_interval_seconds=0,
        )
        logger.warning("init_cache() was not called, using in-memory cache")
        _facade = CacheFacade(create_cache(fallback))
        _interceptor = CacheInterceptor(_facade)

    return _interceptor


def get_facade() -> CacheFacade:
    """Get the default facade for ad hoc caching."""
    return get_interceptor().facade


async def shutdown_cache() -> None:
    """Wait for pending cache work and close all backends."""
    global _facade, _interceptor

    if _interceptor is not None:
        await _interceptor.drain()

    await close_all_caches()
    _facade = None
    _interceptor = None
    logger.info("policycache shut down")
