"""
policycache — Declarative Decorators

Decorators that attach a policy to an async function or method:

    class TaskService:
        @cacheable(ttl_seconds=300)
        async def find_by_id(self, task_id: str) -> dict: ...

        @cache_evict(pattern="cache:task:*")
        async def update(self, task_id: str, changes: dict) -> dict: ...

The policy is registered in the process-wide registry when the function is
decorated. Calls are routed through the default interceptor, which looks the
policy up by operation id at call time.

Cacheable operations whose ids reduce to the same key prefix (for example
module-level `get` functions in two `services` modules) are rejected at
decoration time; give one of them an explicit operation_id.
"""

import functools
import inspect
from collections.abc import Callable, Iterable
from typing import Any

from .errors import ConfigurationError
from .lifecycle import get_interceptor
from .policies import Cacheable, Evict, Policy
from .registry import get_registry

_BOUND_FIRST_PARAMS = ("self", "cls")
_POLICY_ATTR = "__cache_policy__"


def default_operation_id(func: Callable[..., Any]) -> str:
    """Operation id derived from where the function is defined."""
    return f"{func.__module__}.{func.__qualname__}"


def _takes_receiver(func: Callable[..., Any]) -> bool:
    params = list(inspect.signature(func).parameters)
    return bool(params) and params[0] in _BOUND_FIRST_PARAMS


def _attach(func: Callable[..., Any], policy: Policy, operation_id: str | None) -> Callable[..., Any]:
    if hasattr(func, _POLICY_ATTR):
        raise ConfigurationError(
            f"{func.__qualname__} already has a cache policy",
            details={"function": func.__qualname__, "existing": type(getattr(func, _POLICY_ATTR)).__name__},
        )
    if not inspect.iscoroutinefunction(func):
        raise ConfigurationError(
            f"Only async functions can carry a cache policy: {func.__qualname__}",
            details={"function": func.__qualname__},
        )

    op_id = operation_id or default_operation_id(func)
    get_registry().register(op_id, policy)
    receiver = _takes_receiver(func)

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        call: Callable[..., Any] = func
        if receiver and args:
            # The receiver is bound into the call and kept out of the key.
            call = functools.partial(func, args[0])
            args = args[1:]
        return await get_interceptor().execute(op_id, call, *args, **kwargs)

    setattr(wrapper, _POLICY_ATTR, policy)
    wrapper.operation_id = op_id  # type: ignore[attr-defined]
    return wrapper


def cacheable(
    ttl_seconds: int = 3600,
    key: str | None = None,
    condition: Callable[[Any], bool] | None = None,
    operation_id: str | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Cache the decorated coroutine's result.

    Args:
        ttl_seconds: Entry lifetime in seconds (0 = no expiry)
        key: Fixed cache key ("cache:<key>"); arguments are then ignored
        condition: Result predicate; only results it accepts are cached
        operation_id: Registry id (default: "<module>.<qualname>")

    Raises:
        ConfigurationError: If the policy is invalid or the function is not async
    """
    policy = Cacheable(ttl_seconds=ttl_seconds, key=key, condition=condition)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        return _attach(func, policy, operation_id)

    return decorator


def cache_evict(
    keys: Iterable[str] | None = None,
    pattern: str | None = None,
    all_entries: bool = False,
    before_invocation: bool = False,
    operation_id: str | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Invalidate cache entries when the decorated coroutine runs.

    Without keys, pattern or all_entries, entries of the same owner are
    evicted, scoped to the entity id found in the arguments when possible.
    The id-scoped pattern only matches custom or facade keys that embed the
    id. @cacheable keys hash their arguments, so evicting those needs an
    explicit pattern such as "cache:task:*".

    Args:
        keys: Exact keys to delete
        pattern: Glob pattern to delete
        all_entries: Clear the whole cache
        before_invocation: Evict before the call (not rolled back on failure)
        operation_id: Registry id (default: "<module>.<qualname>")
    """
    policy = Evict(keys=keys, pattern=pattern, all_entries=all_entries, before_invocation=before_invocation)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        return _attach(func, policy, operation_id)

    return decorator
