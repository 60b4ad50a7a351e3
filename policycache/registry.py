"""
policycache — Policy Registry

Side-table mapping operation ids to their cache or evict policy.

Policies are registered at startup (usually by the decorators) and looked up
by the interceptor on every call. An operation may carry a cache policy or an
evict policy, never both. Two operations whose ids derive the same key
prefix cannot both be cacheable without a custom key, since their entries
would overwrite each other.
"""

import logging
import threading

from .errors import ConfigurationError
from .keys import build_key
from .policies import CachePolicy, EvictPolicy, Policy

logger = logging.getLogger(__name__)


class PolicyRegistry:
    """Thread-safe operation id -> policy table."""

    def __init__(self) -> None:
        self._policies: dict[str, Policy] = {}
        self._lock = threading.Lock()

    def register(self, operation_id: str, policy: Policy) -> None:
        """
        Attach a policy to an operation.

        Re-registering the same kind of policy replaces the previous one.

        Raises:
            ConfigurationError: If the policy type is unknown, the operation id
                is empty, the operation already has a policy of the other kind,
                or another cacheable operation already owns the same key prefix
        """
        if not operation_id:
            raise ConfigurationError("operation_id must not be empty")
        if not isinstance(policy, CachePolicy | EvictPolicy):
            raise ConfigurationError(
                f"Unsupported policy type: {type(policy).__name__}",
                details={"operation_id": operation_id},
            )

        with self._lock:
            existing = self._policies.get(operation_id)
            if existing is not None and type(existing) is not type(policy):
                raise ConfigurationError(
                    f"Operation '{operation_id}' cannot be both cacheable and evicting",
                    details={
                        "operation_id": operation_id,
                        "existing": type(existing).__name__,
                        "requested": type(policy).__name__,
                    },
                )
            if isinstance(policy, CachePolicy) and policy.key is None:
                self._check_key_scope(operation_id)
            if existing is not None:
                logger.debug(f"Replacing {type(existing).__name__} for operation '{operation_id}'")
            self._policies[operation_id] = policy

        logger.debug(
            f"Registered {type(policy).__name__} for operation '{operation_id}'",
            extra={"operation_id": operation_id, "policy": type(policy).__name__},
        )

    def _check_key_scope(self, operation_id: str) -> None:
        try:
            scope = build_key(operation_id)
        except ValueError as e:
            raise ConfigurationError(str(e), details={"operation_id": operation_id}) from e

        for other_id, other in self._policies.items():
            if other_id == operation_id or not isinstance(other, CachePolicy) or other.key is not None:
                continue
            if build_key(other_id) == scope:
                raise ConfigurationError(
                    f"Operations '{other_id}' and '{operation_id}' would share cache keys under '{scope}'; "
                    "pass a distinct operation_id or a custom key",
                    details={"operation_id": operation_id, "conflicts_with": other_id, "key_prefix": scope},
                )

    def get(self, operation_id: str) -> Policy | None:
        return self._policies.get(operation_id)

    def unregister(self, operation_id: str) -> bool:
        """Remove an operation's policy. Returns True if one was registered."""
        with self._lock:
            return self._policies.pop(operation_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._policies.clear()

    def operations(self) -> list[str]:
        """Registered operation ids, sorted."""
        return sorted(self._policies)

    def __contains__(self, operation_id: object) -> bool:
        return operation_id in self._policies

    def __len__(self) -> int:
        return len(self._policies)


# Global registry instance (singleton)
_registry: PolicyRegistry | None = None


def get_registry() -> PolicyRegistry:
    """Get the process-wide policy registry."""
    global _registry

    if _registry is None:
        _registry = PolicyRegistry()

    return _registry


def reset_registry() -> None:
    """Drop the process-wide registry. Only use this in testing contexts."""
    global _registry
    _registry = None
