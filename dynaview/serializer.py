"""Record normalization: typed DynamoDB wire values to plain JSON-ready trees.

A TypedValue arrives in the low-level wire shape, a one-entry mapping from a
type tag to its payload::

    {"S": "abc"}  {"N": "1.50"}  {"L": [{"S": "x"}, {"NULL": True}]}

Numbers stay as their decimal strings so precision is never narrowed to a
float. Binary payloads are passed through as bytes; base64 is applied only
when a normalized record is encoded to JSON text.
"""
from __future__ import annotations

import base64
import json
import logging
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

from .errors import SerializationError, UnsupportedTypeError

logger = logging.getLogger(__name__)


class TypeTag(str, Enum):
    S = "S"
    N = "N"
    B = "B"
    BOOL = "BOOL"
    NULL = "NULL"
    L = "L"
    M = "M"
    SS = "SS"
    NS = "NS"
    BS = "BS"


def _as_bytes(payload: Any) -> bytes:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    raise SerializationError(f"binary payload must be bytes, got {type(payload).__name__}")


def _as_list(payload: Any) -> list:
    if isinstance(payload, (list, tuple)):
        return list(payload)
    raise SerializationError(f"expected a list payload, got {type(payload).__name__}")


def _convert_map(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, Mapping):
        raise SerializationError(f"expected a map payload, got {type(payload).__name__}")
    return {str(k): normalize_value(v) for k, v in payload.items()}


_CONVERTERS: dict[TypeTag, Callable[[Any], Any]] = {
    TypeTag.S: str,
    TypeTag.N: str,
    TypeTag.B: _as_bytes,
    TypeTag.BOOL: bool,
    TypeTag.NULL: lambda _payload: None,
    TypeTag.L: lambda payload: [normalize_value(v) for v in _as_list(payload)],
    TypeTag.M: _convert_map,
    # Sets keep service iteration order; never sorted.
    TypeTag.SS: lambda payload: [str(v) for v in _as_list(payload)],
    TypeTag.NS: lambda payload: [str(v) for v in _as_list(payload)],
    TypeTag.BS: lambda payload: [_as_bytes(v) for v in _as_list(payload)],
}

# Adding a TypeTag without a converter is a bug, caught at import time.
if set(_CONVERTERS) != set(TypeTag):
    raise RuntimeError(f"TypeTags without a converter: {sorted(set(TypeTag) - set(_CONVERTERS))}")


def normalize_value(value: Mapping[str, Any]) -> Any:
    """Normalize one TypedValue. Raises UnsupportedTypeError for unknown tags."""
    if not isinstance(value, Mapping) or len(value) != 1:
        raise SerializationError(f"malformed attribute value: {value!r}")

    (raw_tag, payload), = value.items()
    try:
        tag = TypeTag(raw_tag)
    except ValueError:
        raise UnsupportedTypeError(raw_tag) from None
    return _CONVERTERS[tag](payload)


def normalize_record(record: Mapping[str, Mapping[str, Any]]) -> dict[str, Any]:
    """Normalize a whole record, keeping attribute order."""
    return {str(name): normalize_value(value) for name, value in record.items()}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def encode_record(normalized: Mapping[str, Any]) -> str:
    """Encode a normalized record as a single-line JSON row."""
    return json.dumps(normalized, separators=(",", ":"), ensure_ascii=False, default=_json_default)


def serialize_items(items: Iterable[Mapping[str, Mapping[str, Any]]]) -> tuple[list[str], int]:
    """Convert raw records to JSON rows.

    Returns (rows, dropped). A record that fails to normalize is logged and
    dropped; the remaining records are still converted.
    """
    rows: list[str] = []
    dropped = 0
    for item in items:
        try:
            rows.append(encode_record(normalize_record(item)))
        except SerializationError as e:
            dropped += 1
            logger.warning("Dropping record that could not be converted: %s", e)
    return rows, dropped


def render_row(row: str) -> str:
    """Pretty-print a JSON row for the row inspector."""
    try:
        data = json.loads(row)
    except json.JSONDecodeError as e:
        raise SerializationError(f"row is not valid JSON: {e}") from e
    return json.dumps(data, indent=2, ensure_ascii=False)
