"""Key schema resolution and continuation token sanitization."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from .errors import MissingPartitionKeyError

HASH = "HASH"
RANGE = "RANGE"


@dataclass(frozen=True)
class KeySchema:
    """Primary key attribute names for a table."""

    partition_key: str
    sort_key: str | None = None

    @property
    def attribute_names(self) -> tuple[str, ...]:
        if self.sort_key is None:
            return (self.partition_key,)
        return (self.partition_key, self.sort_key)


def resolve_key_schema(elements: Iterable[Mapping[str, Any]]) -> KeySchema:
    """Build a KeySchema from `describe_table()["Table"]["KeySchema"]`.

    Each element looks like ``{"AttributeName": "pk", "KeyType": "HASH"}``.
    Raises MissingPartitionKeyError when no HASH element is present.
    """
    partition_key: str | None = None
    sort_key: str | None = None
    for element in elements or ():
        key_type = str(element.get("KeyType") or "").upper()
        name = element.get("AttributeName")
        if not name:
            continue
        if key_type == HASH:
            partition_key = str(name)
        elif key_type == RANGE:
            sort_key = str(name)

    if not partition_key:
        raise MissingPartitionKeyError("partition key not found in table schema")
    return KeySchema(partition_key=partition_key, sort_key=sort_key)


def sanitize_token(raw_token: Mapping[str, Any] | None, schema: KeySchema) -> dict[str, Any] | None:
    """Reduce a continuation token to the table's key attributes.

    Returns None for a None token. Attributes outside the key schema are
    dropped silently; missing key attributes are simply absent.
    """
    if raw_token is None:
        return None
    return {name: raw_token[name] for name in schema.attribute_names if name in raw_token}
