"""Time-bounded on-disk result cache with stale-while-revalidate reads.

One JSON file per resource::

    {"data": ["...", "..."], "updated": "2026-01-01T00:00:00+00:00"}

The cache is a best-effort accelerator. Read failures behave like a miss and
write failures are logged and dropped; neither ever reaches the caller.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Sequence
from urllib.parse import quote, unquote

from .errors import CacheIOError
from .settings import Settings

logger = logging.getLogger(__name__)

COLLECTIONS_KEY = "collections"
_TABLE_PREFIX = "table:"
_COLLECTIONS_FILE = "collections_cache.json"
_TABLE_SUFFIX = "_data_cache.json"


def table_key(table_name: str) -> str:
    """Cache key for a table's rows (kept apart from the collections key)."""
    return f"{_TABLE_PREFIX}{table_name}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _safe_filename(name: str) -> str:
    # Percent-encoding keeps distinct names distinct; a leading dot is encoded
    # too so no cache file is hidden or resolves to "." or "..".
    quoted = quote(str(name), safe="")
    if quoted.startswith("."):
        quoted = "%2E" + quoted[1:]
    return quoted or "_"


@dataclass
class CacheRecord:
    data: list[str]
    updated: datetime

    def to_json(self) -> str:
        return json.dumps({"data": list(self.data), "updated": self.updated.isoformat()}, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> "CacheRecord":
        obj = json.loads(text)
        if not isinstance(obj, dict):
            raise ValueError("cache document must be an object")
        data = obj.get("data")
        if data is None:
            data = []
        if not isinstance(data, list) or not all(isinstance(v, str) for v in data):
            raise ValueError("cache 'data' must be a list of strings")
        updated = datetime.fromisoformat(str(obj["updated"]))
        if updated.tzinfo is None:
            updated = updated.replace(tzinfo=timezone.utc)
        return cls(data=data, updated=updated)


@dataclass(frozen=True)
class CacheEntryInfo:
    key: str
    path: Path
    rows: int
    size_bytes: int
    updated: datetime | None
    fresh: bool


@dataclass
class ResultCache:
    """Persisted last-known results keyed by resource.

    Args:
        cache_dir: Directory holding the cache files; created lazily on first write.
        ttl: Records younger than this are served without a synchronous fetch.
        clock: Returns the current time (UTC aware), injectable for tests.
    """

    cache_dir: Path
    ttl: timedelta = timedelta(hours=72)
    clock: Callable[[], datetime] = _utcnow
    last_refresh: threading.Thread | None = field(default=None, init=False, repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResultCache":
        return cls(cache_dir=Path(settings.DV_CACHE_DIR).expanduser(), ttl=settings.cache_ttl)

    def path_for(self, key: str) -> Path:
        if key == COLLECTIONS_KEY:
            return self.cache_dir / _COLLECTIONS_FILE
        if key.startswith(_TABLE_PREFIX):
            return self.cache_dir / f"{_safe_filename(key[len(_TABLE_PREFIX):])}{_TABLE_SUFFIX}"
        return self.cache_dir / f"{_safe_filename(key)}_cache.json"

    def is_fresh(self, record: CacheRecord) -> bool:
        return self.clock() - record.updated < self.ttl

    def load(self, key: str) -> CacheRecord | None:
        """Return the cached record, or None when missing or unreadable."""
        try:
            return self._read(self.path_for(key))
        except FileNotFoundError:
            return None
        except CacheIOError as e:
            logger.warning("Ignoring unreadable cache for %s: %s", key, e)
            return None

    def _read(self, path: Path) -> CacheRecord:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise
        except OSError as e:
            raise CacheIOError(f"could not read {path}: {e}") from e
        try:
            return CacheRecord.from_json(text)
        except (ValueError, KeyError, TypeError) as e:
            raise CacheIOError(f"corrupt cache file {path}: {e}") from e

    def save(self, key: str, data: Sequence[str]) -> CacheRecord:
        """Replace the record for `key` atomically. Raises CacheIOError."""
        record = CacheRecord(data=[str(v) for v in data], updated=self.clock())
        path = self.path_for(key)
        tmp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(record.to_json())
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise CacheIOError(f"could not write {path}: {e}") from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
        return record

    def read_through(self, key: str, fetch_fn: Callable[[], Sequence[str]]) -> list[str]:
        """Serve `key` from cache when fresh, otherwise fetch synchronously.

        A fresh hit is returned immediately and a detached refresh is started
        that only ever overwrites the cache. A miss or stale record calls
        `fetch_fn` in the caller's thread; its errors propagate and leave the
        existing cache file untouched.
        """
        record = self.load(key)
        if record is not None and self.is_fresh(record):
            logger.debug("Cache hit for %s (updated %s)", key, record.updated.isoformat())
            self.last_refresh = self._spawn_refresh(key, fetch_fn)
            return list(record.data)

        data = list(fetch_fn())
        try:
            self.save(key, data)
        except CacheIOError as e:
            logger.warning("Failed to save cache for %s: %s", key, e)
        return data

    def _spawn_refresh(self, key: str, fetch_fn: Callable[[], Sequence[str]]) -> threading.Thread:
        def _refresh() -> None:
            try:
                data = list(fetch_fn())
                self.save(key, data)
            except Exception as e:
                # Detached: nothing can observe this failure but the log.
                logger.warning("Background cache refresh for %s failed: %s", key, e)
                return
            logger.info("Cache refreshed in background for %s (%d rows)", key, len(data))

        thread = threading.Thread(target=_refresh, name=f"cache-refresh-{key}", daemon=True)
        thread.start()
        return thread

    def wait_for_refresh(self, timeout: float | None = None) -> bool:
        """Join the last background refresh. Returns False if it is still running."""
        thread = self.last_refresh
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _key_for_path(self, path: Path) -> str:
        name = path.name
        if name == _COLLECTIONS_FILE:
            return COLLECTIONS_KEY
        if name.endswith(_TABLE_SUFFIX):
            return table_key(unquote(name[: -len(_TABLE_SUFFIX)]))
        return unquote(name[: -len("_cache.json")])

    def info(self) -> list[CacheEntryInfo]:
        """Describe every cache file currently on disk."""
        if not self.cache_dir.is_dir():
            return []
        out: list[CacheEntryInfo] = []
        for path in sorted(self.cache_dir.glob("*_cache.json")):
            try:
                size = path.stat().st_size
            except OSError:
                continue
            try:
                record = self._read(path)
            except (FileNotFoundError, CacheIOError):
                record = None
            out.append(
                CacheEntryInfo(
                    key=self._key_for_path(path),
                    path=path,
                    rows=len(record.data) if record else 0,
                    size_bytes=size,
                    updated=record.updated if record else None,
                    fresh=bool(record and self.is_fresh(record)),
                )
            )
        return out

    def clear(self, key: str | None = None) -> int:
        """Delete one cache file, or all of them when `key` is None.

        Only ever called on explicit user request. Returns the number removed.
        """
        if key is not None:
            targets = [self.path_for(key)]
        elif self.cache_dir.is_dir():
            targets = list(self.cache_dir.glob("*_cache.json"))
        else:
            targets = []

        removed = 0
        for path in targets:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                raise CacheIOError(f"could not remove {path}: {e}") from e
        return removed
