"""Events posted by background fetches to the UI loop."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..errors import FetchError


class FetchKind(str, Enum):
    COLLECTIONS = "collections"
    ROWS = "rows"


@dataclass(frozen=True)
class FetchStarted:
    kind: FetchKind
    request_id: int
    table: str | None = None


@dataclass(frozen=True)
class CollectionsFetched:
    request_id: int
    names: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RowsFetched:
    request_id: int
    table: str
    rows: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class FetchFailed:
    request_id: int
    kind: FetchKind
    error: FetchError
    table: str | None = None


FetchEvent = FetchStarted | CollectionsFetched | RowsFetched | FetchFailed
