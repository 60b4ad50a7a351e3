"""
policycache — Cache Key Builder

Derives deterministic cache keys and invalidation patterns.

Key format (stable, relied on by operational tooling):
    cache:<operation>:<method>[:<fingerprint>]
    cache:<custom_key>

Pattern format:
    cache:<operation>[:<method>][:*<entity_id>*]*

The operation part is the owner name (class or module) lower-cased with
"service"/"controller" removed, so "TaskService.findById" keys live under
"cache:task:findbyid".

Fingerprints are 16-hex MD5 digests. Each argument is first classified into
an ArgKind; objects are hashed from a canonical JSON form (sorted keys,
cycles replaced by a marker), falling back to their `id` or their string
form when no structural form exists.
"""

import functools
import hashlib
import inspect
import logging
import re
from collections.abc import Mapping, Sequence
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from .cache.serialization import canonical_json
from .errors import CacheSerializationError

logger = logging.getLogger(__name__)

KEY_PREFIX = "cache"
NULL_TOKEN = "None"
DIGEST_LENGTH = 16

_ROLE_SUFFIXES = re.compile(r"service|controller")
_UUID_SHAPE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
_ENTITY_ID_FIELDS = ("id", "task_id", "taskId", "project_id", "projectId")


class ArgKind(str, Enum):
    """Classification of a call argument for fingerprinting."""

    NULL = "null"
    PRIMITIVE = "primitive"
    IDENTIFIABLE = "identifiable"
    OPAQUE = "opaque"
    FUNCTION = "function"


def hash_text(text: str) -> str:
    """Fixed-length digest used for fingerprints."""
    data = text.encode("utf-8", errors="surrogatepass")
    return hashlib.md5(data, usedforsecurity=False).hexdigest()[:DIGEST_LENGTH]


def _identifier_of(value: Any) -> Any | None:
    if isinstance(value, Mapping):
        return value.get("id")
    return getattr(value, "id", None)


def classify_argument(value: Any) -> ArgKind:
    """Assign an argument to its ArgKind."""
    if value is None:
        return ArgKind.NULL
    if inspect.isroutine(value) or isinstance(value, functools.partial):
        return ArgKind.FUNCTION
    if isinstance(value, str | int | float | bool | bytes | UUID | Decimal | Enum | datetime | date | time):
        return ArgKind.PRIMITIVE
    if _identifier_of(value) is not None:
        return ArgKind.IDENTIFIABLE
    return ArgKind.OPAQUE


def _primitive_text(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    return str(value)


def argument_fragment(value: Any) -> str:
    """
    Fingerprint fragment for a single argument.

    Returns:
        Fragment text; empty for function-typed arguments
    """
    kind = classify_argument(value)

    if kind is ArgKind.NULL:
        return NULL_TOKEN
    if kind is ArgKind.FUNCTION:
        return ""
    if kind is ArgKind.PRIMITIVE:
        return _primitive_text(value)

    try:
        return hash_text(canonical_json(value))
    except CacheSerializationError as e:
        logger.debug(
            f"Falling back to degraded fingerprint for {type(value).__name__}: {e}",
            extra={"arg_kind": kind.value, **e.log_extra()},
        )

    if kind is ArgKind.IDENTIFIABLE:
        return str(_identifier_of(value))
    return hash_text(str(value))


def fingerprint(args: Sequence[Any], kwargs: Mapping[str, Any] | None = None) -> str:
    """
    Bounded-length digest of a call's arguments.

    Positional fragments come first, then "name=fragment" for keyword
    arguments in sorted name order. Empty fragments are skipped.
    """
    fragments = [argument_fragment(arg) for arg in args]
    for name in sorted(kwargs or {}):
        fragment = argument_fragment(kwargs[name])  # type: ignore[index]
        if fragment:
            fragments.append(f"{name}={fragment}")

    return hash_text(":".join(f for f in fragments if f))


def split_operation_id(operation_id: str) -> tuple[str, str]:
    """
    Split an operation id into (owner, method).

    Only the last two dotted segments are used and "<locals>" segments are
    ignored, so "app.services.TaskService.find_by_id" and
    "TaskService.find_by_id" give the same result. A single segment is
    treated as an owner without a method.

    Raises:
        ValueError: If operation_id has no usable segment
    """
    segments = [s for s in operation_id.split(".") if s and s != "<locals>"]
    if not segments:
        raise ValueError(f"Invalid operation id: {operation_id!r}")
    if len(segments) == 1:
        return segments[0], ""
    return segments[-2], segments[-1]


def normalize_operation(name: str) -> str:
    """Short operation name: lower-cased with role suffixes removed."""
    return _ROLE_SUFFIXES.sub("", name.lower())


def build_key(
    operation_id: str,
    args: Sequence[Any] = (),
    custom_key: str | None = None,
    kwargs: Mapping[str, Any] | None = None,
) -> str:
    """
    Build the cache key for one invocation.

    Args:
        operation_id: Dotted operation identity, e.g. "TaskService.findById"
        args: Positional call arguments (without self/cls)
        custom_key: Fixed key; when given, arguments are ignored
        kwargs: Keyword call arguments

    Returns:
        "cache:<custom_key>" or "cache:<operation>:<method>[:<fingerprint>]"

    Example:
        >>> build_key("TaskService.findById", ["11111111-1111-1111-1111-111111111111"])
        'cache:task:findbyid:...'
    """
    if custom_key:
        return f"{KEY_PREFIX}:{custom_key}"

    owner, method = split_operation_id(operation_id)
    key = f"{KEY_PREFIX}:{normalize_operation(owner)}"
    if method:
        key += f":{method.lower()}"
    if args or kwargs:
        key += f":{fingerprint(args, kwargs)}"
    return key


def build_pattern(
    operation: str,
    method: str | None = None,
    entity_id: str | None = None,
) -> str:
    """
    Build a wildcard invalidation pattern.

    Args:
        operation: Owner name, e.g. "TaskService"
        method: Optional method name to narrow the pattern
        entity_id: Optional entity id the key must contain

    Returns:
        "cache:<operation>[:<method>][:*<entity_id>*]*"
    """
    pattern = f"{KEY_PREFIX}:{normalize_operation(operation)}"
    if method:
        pattern += f":{method.lower()}"
    if entity_id:
        pattern += f":*{entity_id}*"
    return pattern + "*"


def extract_entity_id(args: Sequence[Any], kwargs: Mapping[str, Any] | None = None) -> str | None:
    """
    Best-effort entity id from call arguments.

    The first argument (positional, then keyword) that is a UUID-shaped
    string or a UUID wins; otherwise the first mapping/object exposing an
    id-like field (id, task_id/taskId, project_id/projectId).
    """
    candidates = list(args) + list((kwargs or {}).values())

    for arg in candidates:
        if isinstance(arg, UUID):
            return str(arg)
        if isinstance(arg, str) and _UUID_SHAPE.match(arg):
            return arg
        if arg is None or isinstance(arg, str | bytes | int | float | bool):
            continue
        for field in _ENTITY_ID_FIELDS:
            if isinstance(arg, Mapping):
                value = arg.get(field)
            else:
                value = getattr(arg, field, None)
            if value is not None and not callable(value):
                return str(value)

    return None
