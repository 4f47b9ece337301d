"""Document traversal helpers shared by schema inference and profiling."""

import json
from datetime import datetime
from typing import Any, Iterator

from bson import Binary, Decimal128, ObjectId, Regex, Timestamp

ARRAY_SEGMENT = "[]"


def value_type_name(value: Any) -> str:
    """Name the type of a document value.

    Returns one of ``null, boolean, number, string, date, object, array`` or a
    BSON-specific name such as ``objectId`` or ``decimal``.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, datetime):
        return "date"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    if isinstance(value, ObjectId):
        return "objectId"
    if isinstance(value, Decimal128):
        return "decimal"
    if isinstance(value, (Binary, bytes)):
        return "binary"
    if isinstance(value, Timestamp):
        return "timestamp"
    if isinstance(value, Regex):
        return "regex"
    return type(value).__name__


def iter_paths(document: dict[str, Any]) -> Iterator[tuple[str, Any]]:
    """Yield ``(path, value)`` for every field path in a document.

    Nested objects use dotted paths; array elements are yielded under
    ``path[]`` once per element.
    """
    for key, value in document.items():
        yield from _walk(str(key), value)


def _walk(path: str, value: Any) -> Iterator[tuple[str, Any]]:
    yield path, value
    if isinstance(value, dict):
        for key, child in value.items():
            yield from _walk(f"{path}.{key}", child)
    elif isinstance(value, list):
        for element in value:
            yield from _walk(f"{path}{ARRAY_SEGMENT}", element)


def is_element_path(path: str) -> bool:
    return ARRAY_SEGMENT in path


def value_signature(value: Any) -> str:
    """Canonical serialization; structurally equal values share a signature."""
    return json.dumps(value, sort_keys=True, default=str, separators=(",", ":"))
