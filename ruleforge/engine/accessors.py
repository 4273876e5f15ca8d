"""
Field Accessors
===============
Path addressing over live object graphs without open-ended reflection.

Only fields that are declared up front can be read or written:
- pydantic models: `model_fields`
- dataclasses: `dataclasses.fields()`
- mappings: their keys (mappings are schema-less, so writes may create keys)

Field names match case-insensitively (exact match wins); mapping keys match
exactly. Paths are dotted
and may index mappings or lists with brackets: `inventory[potion]`,
`stats.strength`, `party[0].name`.
"""

import dataclasses
import json
import logging
import types
import typing
from collections.abc import Mapping, MutableMapping, MutableSequence
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

from ruleforge.errors import CoercionError, PathError

logger = logging.getLogger(__name__)

_MISSING = object()


# =============================================================================
# PATH PARSING
# =============================================================================


def split_path(path: str) -> List[str]:
    """
    Split a dotted path into segments, turning bracket keys into segments.

    Examples:
        "stats.strength"      -> ["stats", "strength"]
        "inventory[potion]"   -> ["inventory", "potion"]
        "inventory['super potion']" -> ["inventory", "super potion"]
    """
    segments: List[str] = []
    buf = ""
    i = 0
    while i < len(path):
        ch = path[i]
        if ch == ".":
            if buf:
                segments.append(buf.strip())
            buf = ""
        elif ch == "[":
            if buf:
                segments.append(buf.strip())
            buf = ""
            end = path.find("]", i)
            if end == -1:
                raise PathError(f"Unclosed bracket in path '{path}'")
            segments.append(path[i + 1 : end].strip().strip("'\""))
            i = end
        else:
            buf += ch
        i += 1
    if buf.strip():
        segments.append(buf.strip())
    if not segments:
        raise PathError("Empty path")
    return segments


# =============================================================================
# DECLARED FIELDS
# =============================================================================


def _unwrap_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def is_list_type(annotation: Any) -> bool:
    target = _unwrap_optional(annotation)
    return target is list or typing.get_origin(target) in (list, List, MutableSequence)


@lru_cache(maxsize=None)
def _dataclass_hints(cls: type) -> Dict[str, Any]:
    try:
        hints = typing.get_type_hints(cls)
    except Exception:
        hints = {}
    return {f.name: hints.get(f.name, f.type) for f in dataclasses.fields(cls)}


def declared_fields(obj: Any) -> Optional[Dict[str, Any]]:
    """Field name -> annotation for schema-described objects, None for anything else."""
    if isinstance(obj, BaseModel):
        return {name: info.annotation for name, info in type(obj).model_fields.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return _dataclass_hints(type(obj))
    return None


def resolve_name(container: Any, name: str) -> Optional[Any]:
    """
    The actual key or field name matching `name`, or None. Mapping keys
    match exactly; declared fields match case-insensitively.
    """
    if isinstance(container, Mapping):
        return name if name in container else None

    if isinstance(container, MutableSequence) or isinstance(container, (list, tuple)):
        try:
            index = int(name)
        except ValueError:
            return None
        return index if -len(container) <= index < len(container) else None

    fields = declared_fields(container)
    if fields is None:
        return None
    if name in fields:
        return name
    lowered = name.lower()
    for field_name in fields:
        if field_name.lower() == lowered:
            return field_name
    return None


def get_child(container: Any, name: str, default: Any = _MISSING) -> Any:
    resolved = resolve_name(container, name)
    if resolved is None:
        if default is not _MISSING:
            return default
        raise PathError(f"Property {name} not found on {type(container).__name__}")
    if isinstance(container, Mapping) or isinstance(container, (list, tuple, MutableSequence)):
        return container[resolved]
    return getattr(container, resolved)


def field_type(container: Any, name: str) -> Any:
    """
    Declared type of a child. For mappings the type of the current value
    stands in for a declaration when it is a scalar.
    """
    if isinstance(container, Mapping):
        current = get_child(container, name, None)
        if isinstance(current, (bool, int, float, str)):
            return type(current)
        return None
    fields = declared_fields(container)
    if fields is None:
        return None
    resolved = resolve_name(container, name)
    return fields.get(resolved) if resolved is not None else None


def read_path(root: Any, path: Union[str, List[str]], default: Any = _MISSING) -> Any:
    segments = split_path(path) if isinstance(path, str) else path
    current = root
    for segment in segments:
        if current is None:
            if default is not _MISSING:
                return default
            raise PathError(f"Cannot traverse null property before {segment}")
        current = get_child(current, segment, default)
        if current is default and default is not _MISSING:
            return default
    return current


# =============================================================================
# COERCION
# =============================================================================


@lru_cache(maxsize=256)
def type_adapter(annotation: Any) -> TypeAdapter:
    return TypeAdapter(annotation)


def coerce_value(value: Any, annotation: Any) -> Any:
    """
    Convert `value` to the declared type.

    Order: string fields take str(value); numbers already of the right shape
    pass through; otherwise pydantic lax validation; finally a JSON text
    round-trip (so "[1, 2]" can fill a list field).
    """
    target = _unwrap_optional(annotation)
    if target is None or target is Any:
        return value
    if target is str:
        return "" if value is None else str(value)
    if target in (int, float) and isinstance(value, (int, float)) and not isinstance(value, bool):
        if target is float or float(value).is_integer():
            return target(value)

    try:
        adapter = type_adapter(target)
    except Exception:
        # Annotation pydantic cannot build a schema for; assign as-is.
        return value

    try:
        return adapter.validate_python(value)
    except ValidationError:
        pass

    try:
        text = value if isinstance(value, str) else json.dumps(value, default=str)
        return adapter.validate_json(text)
    except (ValidationError, TypeError, ValueError) as e:
        name = getattr(target, "__name__", repr(target))
        raise CoercionError(f"Cannot convert {value!r} to {name}") from e


# =============================================================================
# WRITES
# =============================================================================


def _instantiate(annotation: Any) -> Any:
    """Build an empty instance for a null intermediate, or None when impossible."""
    target = _unwrap_optional(annotation)
    origin = typing.get_origin(target) or target
    if origin in (dict, Dict, MutableMapping, Mapping):
        return {}
    if isinstance(target, type) and (issubclass(target, BaseModel) or dataclasses.is_dataclass(target)):
        try:
            return target()
        except (TypeError, ValidationError):
            return None
    return None


def assign(container: Any, name: str, value: Any) -> Any:
    """Write a child value. Mappings accept new keys; declared objects do not."""
    if isinstance(container, MutableMapping):
        key = resolve_name(container, name)
        container[name if key is None else key] = value
        return value

    resolved = resolve_name(container, name)
    if resolved is None:
        raise PathError(f"Property {name} not found on {type(container).__name__}")
    if isinstance(container, MutableSequence):
        container[resolved] = value
    else:
        setattr(container, resolved, value)
    return value


def resolve_parent(root: Any, segments: List[str]) -> Tuple[Any, str]:
    """
    Walk to the container of the final segment, instantiating null
    intermediates that can be built without arguments.
    """
    current = root
    for segment in segments[:-1]:
        if isinstance(current, MutableMapping) and resolve_name(current, segment) is None:
            current[segment] = {}
        nxt = get_child(current, segment)
        if nxt is None:
            nxt = _instantiate(field_type(current, segment)) if not isinstance(current, Mapping) else {}
            if nxt is None:
                raise PathError(f"Cannot traverse null property {segment} on {type(current).__name__}")
            assign(current, segment, nxt)
        current = nxt
    return current, segments[-1]


def set_path(root: Any, path: str, value: Any) -> Any:
    """Set a value at a path, coercing it to the declared type. Returns the stored value."""
    segments = split_path(path)
    container, name = resolve_parent(root, segments)
    if not isinstance(container, MutableMapping) and resolve_name(container, name) is None:
        raise PathError(f"Property {name} not found on {type(container).__name__}")
    coerced = coerce_value(value, field_type(container, name))
    assign(container, name, coerced)
    return get_child(container, name)
