"""
policycache — Cache Module

Storage layer with two interchangeable backends.

- factory.py: backend selection and instance registry
- interface.py: abstract cache interface all backends implement
- backends/: memory (in-process) and redis implementations
- facade.py: imperative get/set/delete surface for collaborators
- serialization.py: JSON value conversion shared by both backends

Usage:
    from policycache.cache import CacheFacade, initialize_cache

    facade = CacheFacade(await initialize_cache())
    await facade.set("cache:reports:weekly", {"total": 3}, ttl_seconds=600)
    value = await facade.get("cache:reports:weekly")
"""

from .facade import CacheFacade
from .factory import (
    close_all_caches,
    create_cache,
    get_cache,
    initialize_cache,
    list_cache_instances,
    reset_cache_factory,
)
from .interface import TTL_MISSING, TTL_NO_EXPIRY, CacheInterface

__all__ = [
    # Factory functions
    "create_cache",
    "initialize_cache",
    "get_cache",
    "close_all_caches",
    "list_cache_instances",
    "reset_cache_factory",
    # Interface
    "CacheInterface",
    "TTL_MISSING",
    "TTL_NO_EXPIRY",
    # Facade
    "CacheFacade",
]
