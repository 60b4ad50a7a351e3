"""
policycache — Cache Policies

Declarative policy values attached to operations:

- CachePolicy: cache the operation's result for a TTL
- EvictPolicy: invalidate entries when the operation runs

`Cacheable(...)` and `Evict(...)` are the declaration surface; they build and
validate the policy values. Policies are immutable once declared.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from .errors import ConfigurationError

DEFAULT_TTL_SECONDS = 3600


@dataclass(frozen=True)
class CachePolicy:
    """
    Caching policy for a read operation.

    Attributes:
        ttl_seconds: Entry lifetime in seconds (0 = no expiry)
        key: Fixed cache key; when set, arguments do not affect the key
        condition: Predicate over the result; result is cached only if it returns True
    """

    ttl_seconds: int = DEFAULT_TTL_SECONDS
    key: str | None = None
    condition: Callable[[Any], bool] | None = None

    def __post_init__(self) -> None:
        if isinstance(self.ttl_seconds, bool) or not isinstance(self.ttl_seconds, int):
            raise ConfigurationError(
                "ttl_seconds must be an integer",
                details={"ttl_seconds": repr(self.ttl_seconds)},
            )
        if self.ttl_seconds < 0:
            raise ConfigurationError(
                "ttl_seconds must be >= 0",
                details={"ttl_seconds": self.ttl_seconds},
            )
        if self.key is not None and not self.key.strip():
            raise ConfigurationError("key must not be empty", details={"key": self.key})
        if self.condition is not None and not callable(self.condition):
            raise ConfigurationError(
                "condition must be callable",
                details={"condition": repr(self.condition)},
            )


@dataclass(frozen=True)
class EvictPolicy:
    """
    Invalidation policy for a mutating operation.

    Target precedence: all_entries, then keys, then pattern, then a pattern
    derived from the operation and its arguments.

    Attributes:
        keys: Exact keys to delete (used verbatim)
        pattern: Glob pattern of keys to delete
        all_entries: Clear the whole cache
        before_invocation: Evict before the operation runs instead of after it succeeds
    """

    keys: tuple[str, ...] = ()
    pattern: str | None = None
    all_entries: bool = False
    before_invocation: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.keys, str):
            raise ConfigurationError(
                "keys must be a sequence of key strings, not a single string",
                details={"keys": self.keys},
            )
        object.__setattr__(self, "keys", tuple(self.keys))
        if any(not isinstance(k, str) or not k for k in self.keys):
            raise ConfigurationError("keys must be non-empty strings", details={"keys": list(self.keys)})
        if self.pattern is not None and not self.pattern.strip():
            raise ConfigurationError("pattern must not be empty", details={"pattern": self.pattern})

    @property
    def uses_default_target(self) -> bool:
        """True when the target must be derived from the call."""
        return not self.all_entries and not self.keys and self.pattern is None


Policy = CachePolicy | EvictPolicy


def Cacheable(  # noqa: N802
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    key: str | None = None,
    condition: Callable[[Any], bool] | None = None,
) -> CachePolicy:
    """
    Declare an operation's result cacheable.

    Example:
        registry.register("TaskService.find_by_id", Cacheable(ttl_seconds=300))
    """
    return CachePolicy(ttl_seconds=ttl_seconds, key=key, condition=condition)


def Evict(  # noqa: N802
    keys: Iterable[str] | None = None,
    pattern: str | None = None,
    all_entries: bool = False,
    before_invocation: bool = False,
) -> EvictPolicy:
    """
    Declare an operation as invalidating cache entries.

    Example:
        registry.register("TaskService.update", Evict(pattern="cache:task:*"))
    """
    if isinstance(keys, str):
        raise ConfigurationError(
            "keys must be a sequence of key strings, not a single string",
            details={"keys": keys},
        )
    return EvictPolicy(
        keys=tuple(keys or ()),
        pattern=pattern,
        all_entries=all_entries,
        before_invocation=before_invocation,
    )
