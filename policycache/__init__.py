"""
policycache — Declarative Caching Layer

Attach cache and eviction policies to async operations; an interceptor runs
the hit / miss / eviction state machine over a Redis or in-process backend.
"""

__version__ = "1.0.0"

from .cache import CacheFacade
from .decorators import cache_evict, cacheable
from .errors import (
    CacheConnectionError,
    CacheError,
    CacheOperationError,
    CacheSerializationError,
    ConfigurationError,
    EvictionTargetError,
    PolicyCacheError,
)
from .interceptor import CacheInterceptor, InterceptState
from .keys import build_key, build_pattern, extract_entity_id
from .lifecycle import get_facade, get_interceptor, init_cache, shutdown_cache
from .policies import Cacheable, CachePolicy, Evict, EvictPolicy
from .registry import PolicyRegistry, get_registry, reset_registry

__all__ = [
    # Declaration surface
    "Cacheable",
    "Evict",
    "CachePolicy",
    "EvictPolicy",
    "cacheable",
    "cache_evict",
    # Registry
    "PolicyRegistry",
    "get_registry",
    "reset_registry",
    # Orchestration
    "CacheInterceptor",
    "InterceptState",
    "CacheFacade",
    # Keys
    "build_key",
    "build_pattern",
    "extract_entity_id",
    # Lifecycle
    "init_cache",
    "shutdown_cache",
    "get_interceptor",
    "get_facade",
    # Errors
    "PolicyCacheError",
    "ConfigurationError",
    "CacheError",
    "CacheOperationError",
    "CacheConnectionError",
    "CacheSerializationError",
    "EvictionTargetError",
]
