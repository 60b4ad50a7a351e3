"""
policycache — Observability Module

Single observability adapter for the cache layer.

Usage:
    from policycache.observability import get_observability

    obs = get_observability()
    obs.increment("cache.hit", tags={"operation": "TaskService.find_by_id"})
"""

from .monitoring import (
    JSONFormatter,
    ObservabilityAdapter,
    get_observability,
    initialize_observability,
    setup_logging,
)

__all__ = [
    "ObservabilityAdapter",
    "JSONFormatter",
    "get_observability",
    "initialize_observability",
    "setup_logging",
]
