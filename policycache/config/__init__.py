"""
policycache — Configuration Module

Provides typed configuration loading and validation.
"""

from .loader import get_config, load_config, reload_config
from .schemas import (
    CacheBackend,
    CacheConfig,
    Environment,
    LogFormat,
    LogLevel,
    ObservabilityConfig,
    PolicyCacheConfig,
)

__all__ = [
    # Loader functions
    "load_config",
    "get_config",
    "reload_config",
    # Main config
    "PolicyCacheConfig",
    # Enums
    "Environment",
    "CacheBackend",
    "LogLevel",
    "LogFormat",
    # Config sections
    "CacheConfig",
    "ObservabilityConfig",
]
