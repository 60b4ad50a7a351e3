"""
policycache — Cache Interceptor

Wraps operation invocations and applies their cache policy:

    NO_POLICY   -> invoke the operation unchanged
    CACHE_ONLY  -> build key, return cached value on hit; on miss invoke,
                   then populate if the result is cacheable
    EVICT_ONLY  -> invalidate matching entries before the invocation, or
                   after it returns successfully

Cache failures never reach the caller: they are logged and the call
degrades to an uncached invocation. Exceptions raised by the operation
itself always propagate unchanged and are never cached.

Usage:
    interceptor = CacheInterceptor(CacheFacade(backend))
    task = await interceptor.run("TaskService.find_by_id", Cacheable(ttl_seconds=60), repo.find, task_id)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from enum import Enum
from typing import Any, TypeVar

from .cache.facade import CacheFacade
from .cache.interface import CacheInterface
from .errors import EvictionTargetError
from .keys import build_key, build_pattern, extract_entity_id, split_operation_id
from .observability import ObservabilityAdapter, get_observability
from .policies import CachePolicy, EvictPolicy, Policy
from .registry import PolicyRegistry, get_registry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InterceptState(str, Enum):
    """Path taken for an intercepted call."""

    NO_POLICY = "no_policy"
    CACHE_ONLY = "cache_only"
    EVICT_ONLY = "evict_only"


def resolve_state(policy: Policy | None) -> InterceptState:
    if isinstance(policy, CachePolicy):
        return InterceptState.CACHE_ONLY
    if isinstance(policy, EvictPolicy):
        return InterceptState.EVICT_ONLY
    return InterceptState.NO_POLICY


class CacheInterceptor:
    """
    Executes the cache-hit / cache-miss / eviction state machine.

    Registry and observability default to the process-wide instances and are
    resolved on each call, so a registry reset in tests is picked up.
    """

    def __init__(
        self,
        cache: CacheFacade | CacheInterface,
        registry: PolicyRegistry | None = None,
        observability: ObservabilityAdapter | None = None,
    ):
        """
        Initialize the interceptor.

        Args:
            cache: Facade (or bare backend) shared with ad hoc callers
            registry: Policy table for execute(); defaults to get_registry()
            observability: Counter sink; defaults to get_observability()
        """
        self.facade = cache if isinstance(cache, CacheFacade) else CacheFacade(cache)
        self._registry = registry
        self._observability = observability
        self._background: set[asyncio.Task[Any]] = set()

    @property
    def registry(self) -> PolicyRegistry:
        return self._registry if self._registry is not None else get_registry()

    @property
    def observability(self) -> ObservabilityAdapter:
        return self._observability if self._observability is not None else get_observability()

    def _count(self, metric: str, operation_id: str) -> None:
        self.observability.increment(metric, tags={"operation": operation_id})

    # ------------ Entry points ------------

    async def execute(self, operation_id: str, call: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Invoke `call` under the policy registered for `operation_id`."""
        policy = self.registry.get(operation_id)
        return await self.run(operation_id, policy, call, *args, **kwargs)

    async def run(
        self,
        operation_id: str,
        policy: Policy | None,
        call: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Invoke `call` under an explicit policy.

        Args:
            operation_id: Operation identity used for keys, patterns and metrics
            policy: CachePolicy, EvictPolicy, or None for pass-through
            call: Async callable representing the wrapped operation
            *args: Positional arguments for `call` (also keyed)
            **kwargs: Keyword arguments for `call` (also keyed)

        Returns:
            The operation's result, or the cached value on a hit
        """
        state = resolve_state(policy)

        if state is InterceptState.CACHE_ONLY:
            return await self._cache_only(operation_id, policy, call, args, kwargs)  # type: ignore[arg-type]
        if state is InterceptState.EVICT_ONLY:
            return await self._evict_only(operation_id, policy, call, args, kwargs)  # type: ignore[arg-type]
        return await call(*args, **kwargs)

    # ------------ CACHE_ONLY ------------

    async def _cache_only(
        self,
        operation_id: str,
        policy: CachePolicy,
        call: Callable[..., Awaitable[T]],
        args: Sequence[Any],
        kwargs: Mapping[str, Any],
    ) -> T:
        try:
            key = build_key(operation_id, args, custom_key=policy.key, kwargs=kwargs)
        except Exception as e:
            logger.error(
                f"Failed to build cache key for operation '{operation_id}', invoking uncached: {e}",
                extra={"operation_id": operation_id, "error": str(e)},
                exc_info=True,
            )
            self._count("cache.error", operation_id)
            return await call(*args, **kwargs)

        cached = await self.facade.get(key)
        if cached is not None:
            logger.debug(f"Cache hit: {key}", extra={"operation_id": operation_id, "key": key})
            self._count("cache.hit", operation_id)
            return cached

        logger.debug(f"Cache miss: {key}", extra={"operation_id": operation_id, "key": key})
        self._count("cache.miss", operation_id)

        result = await call(*args, **kwargs)

        if self._should_store(operation_id, policy, key, result):
            await self._spawn(self._populate(operation_id, key, result, policy.ttl_seconds))
        else:
            self._count("cache.skip", operation_id)

        return result

    def _should_store(self, operation_id: str, policy: CachePolicy, key: str, result: Any) -> bool:
        if result is None:
            return False
        if policy.condition is None:
            return True

        try:
            return bool(policy.condition(result))
        except Exception as e:
            logger.warning(
                f"Cache condition raised for operation '{operation_id}', not caching: {e}",
                extra={"operation_id": operation_id, "key": key, "error": str(e)},
                exc_info=True,
            )
            return False

    async def _populate(self, operation_id: str, key: str, value: Any, ttl_seconds: int) -> None:
        stored = await self.facade.set(key, value, ttl_seconds=ttl_seconds)
        if stored:
            logger.debug(
                f"Cached result for {key} (ttl={ttl_seconds}s)",
                extra={"operation_id": operation_id, "key": key, "ttl": ttl_seconds},
            )
            self._count("cache.set", operation_id)
        else:
            logger.warning(
                f"Failed to cache result for {key}",
                extra={"operation_id": operation_id, "key": key, "ttl": ttl_seconds},
            )
            self._count("cache.error", operation_id)

    # ------------ EVICT_ONLY ------------

    async def _evict_only(
        self,
        operation_id: str,
        policy: EvictPolicy,
        call: Callable[..., Awaitable[T]],
        args: Sequence[Any],
        kwargs: Mapping[str, Any],
    ) -> T:
        # Pre-invocation eviction is not rolled back if the call fails.
        if policy.before_invocation:
            await self._evict(operation_id, policy, args, kwargs)
            return await call(*args, **kwargs)

        result = await call(*args, **kwargs)
        await self._spawn(self._evict(operation_id, policy, args, kwargs))
        return result

    def resolve_eviction_pattern(self, operation_id: str, args: Sequence[Any], kwargs: Mapping[str, Any]) -> str:
        """
        Pattern used when an EvictPolicy names no explicit target.

        Scoped to the entity id found in the arguments; without one, falls
        back to every entry of the operation's owner.
        """
        owner, _ = split_operation_id(operation_id)
        entity_id = extract_entity_id(args, kwargs)
        if entity_id is not None:
            return build_pattern(owner, entity_id=entity_id)

        error = EvictionTargetError(operation_id, details={"fallback": "operation-wide pattern"})
        logger.debug(str(error), extra={"operation_id": operation_id, **error.log_extra()})
        return build_pattern(owner)

    async def _evict(
        self,
        operation_id: str,
        policy: EvictPolicy,
        args: Sequence[Any],
        kwargs: Mapping[str, Any],
    ) -> None:
        try:
            with self.observability.trace("cache.evict", tags={"operation": operation_id}):
                if policy.all_entries:
                    await self.facade.clear()
                    target = "*"
                elif policy.keys:
                    for key in policy.keys:
                        await self.facade.delete(key)
                    target = ",".join(policy.keys)
                else:
                    pattern = policy.pattern or self.resolve_eviction_pattern(operation_id, args, kwargs)
                    removed = await self.facade.delete_pattern(pattern)
                    target = pattern
                    logger.debug(
                        f"Evicted {removed} entries matching {pattern}",
                        extra={"operation_id": operation_id, "pattern": pattern, "deleted": removed},
                    )

            logger.debug(
                f"Cache evicted for operation '{operation_id}': {target}",
                extra={"operation_id": operation_id, "target": target},
            )
            self._count("cache.evict", operation_id)
        except Exception as e:
            logger.error(
                f"Cache eviction failed for operation '{operation_id}': {e}",
                extra={"operation_id": operation_id, "error": str(e)},
                exc_info=True,
            )
            self._count("cache.error", operation_id)

    # ------------ Background work ------------

    async def _spawn(self, work: Awaitable[None]) -> None:
        """Run cache work to completion even if the caller is cancelled."""
        task = asyncio.ensure_future(work)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        await asyncio.shield(task)

    @property
    def pending(self) -> int:
        """Number of cache writes/evictions still in flight."""
        return len(self._background)

    async def drain(self) -> None:
        """Wait for in-flight cache work (used at shutdown)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
