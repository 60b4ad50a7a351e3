"""
policycache — Value Serialization

Converts arbitrary Python values into JSON-compatible structures.

Used in two places:
- Backends store `dumps(value)` so both backends return identical
  JSON-shaped values on a hit
- KeyBuilder fingerprints objects from `canonical_json(value)`, which
  substitutes a sentinel for cyclic references instead of failing

Conversion rules:
- dict keys become strings; callable values are dropped
- list/tuple become lists; set/frozenset become lists in canonical order
- pydantic models, dataclasses and plain objects become dicts of their
  public fields
- datetime/date/time become ISO strings; UUID/Decimal become strings;
  Enum members become their value; bytes are decoded as UTF-8
"""

from __future__ import annotations

import dataclasses
import json
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from ..errors import CacheSerializationError

CIRCULAR_MARKER = "[Circular]"

_PRIMITIVES = (str, int, float, bool, type(None))


def _is_function(value: Any) -> bool:
    return callable(value) and not isinstance(value, (BaseModel, Enum)) and not dataclasses.is_dataclass(value)


def _fields_of(value: Any) -> dict[str, Any] | None:
    """Return the structural fields of an object, or None if it has none."""
    if isinstance(value, BaseModel):
        return {name: getattr(value, name) for name in type(value).model_fields}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    if hasattr(value, "__dict__") and not isinstance(value, type):
        return {k: v for k, v in vars(value).items() if not k.startswith("_")}
    return None


def to_jsonable(value: Any, cycle_marker: str | None = None) -> Any:
    """
    Convert a value into a JSON-compatible structure.

    Args:
        value: Value to convert
        cycle_marker: Replacement for references back to an ancestor.
            When None, a cycle raises CacheSerializationError.

    Returns:
        Structure made only of dict/list/str/int/float/bool/None

    Raises:
        CacheSerializationError: On cycles (without a marker) or unsupported types
    """
    return _convert(value, cycle_marker, set())


def _convert(value: Any, cycle_marker: str | None, ancestors: set[int]) -> Any:
    if isinstance(value, Enum):
        return _convert(value.value, cycle_marker, ancestors)
    if isinstance(value, _PRIMITIVES):
        return value
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    if isinstance(value, UUID | Decimal):
        return str(value)
    if isinstance(value, bytes | bytearray):
        return bytes(value).decode("utf-8", errors="replace")

    marker = id(value)
    if marker in ancestors:
        if cycle_marker is None:
            raise CacheSerializationError(
                "Cannot serialize self-referencing structure",
                details={"type": type(value).__name__},
            )
        return cycle_marker

    ancestors.add(marker)
    try:
        if isinstance(value, dict):
            return {
                str(k): _convert(v, cycle_marker, ancestors) for k, v in value.items() if not _is_function(v)
            }
        if isinstance(value, list | tuple):
            return [_convert(v, cycle_marker, ancestors) for v in value if not _is_function(v)]
        if isinstance(value, set | frozenset):
            items = [_convert(v, cycle_marker, ancestors) for v in value if not _is_function(v)]
            return sorted(items, key=lambda item: json.dumps(item, sort_keys=True, default=str))

        fields = _fields_of(value)
        if fields is not None:
            return {k: _convert(v, cycle_marker, ancestors) for k, v in fields.items() if not _is_function(v)}
    finally:
        ancestors.discard(marker)

    raise CacheSerializationError(
        f"Unsupported type for serialization: {type(value).__name__}",
        details={"type": type(value).__name__},
    )


def canonical_json(value: Any) -> str:
    """
    Deterministic JSON text for a value.

    Mapping keys are sorted and cycles are replaced by CIRCULAR_MARKER,
    so structurally identical values always produce identical text.
    """
    try:
        return json.dumps(
            to_jsonable(value, cycle_marker=CIRCULAR_MARKER),
            sort_keys=True,
            ensure_ascii=False,
            separators=(",", ":"),
        )
    except CacheSerializationError:
        raise
    except (TypeError, ValueError, RecursionError) as e:
        raise CacheSerializationError(
            f"Failed to build canonical form: {e}",
            details={"type": type(value).__name__, "error": str(e)},
        ) from e


def dumps(value: Any) -> str:
    """Serialize a value for storage."""
    try:
        return json.dumps(to_jsonable(value), ensure_ascii=False, separators=(",", ":"))
    except CacheSerializationError:
        raise
    except (TypeError, ValueError, RecursionError) as e:
        raise CacheSerializationError(
            f"Failed to serialize value: {e}",
            details={"type": type(value).__name__, "error": str(e)},
        ) from e


def loads(data: str | bytes) -> Any:
    """Deserialize a stored value."""
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    return json.loads(data)
