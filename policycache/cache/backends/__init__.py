"""
policycache — Cache Backends

Exports available cache backend implementations.

Redis backend is imported lazily by factory.py.
"""

from .memory import CacheEntry, MemoryCacheBackend

__all__ = [
    "CacheEntry",
    "MemoryCacheBackend",
]
