"""Background fetches that report back to the UI loop as events.

The UI thread never calls the service. It asks the orchestrator for a fetch,
gets a request id back immediately, and later drains events from a queue.
"""
from __future__ import annotations

import itertools
import logging
import queue
import threading
from typing import Any, Callable

from ..cache import COLLECTIONS_KEY, ResultCache, table_key
from ..client import create_client, list_collections
from ..errors import FetchError
from ..scan import ParallelScanner
from ..settings import Settings
from .events import (
    CollectionsFetched,
    FetchEvent,
    FetchFailed,
    FetchKind,
    FetchStarted,
    RowsFetched,
)

logger = logging.getLogger(__name__)


def is_completion(event: FetchEvent) -> bool:
    return isinstance(event, (CollectionsFetched, RowsFetched, FetchFailed))


class FetchOrchestrator:
    """Issue collection and row fetches on worker threads.

    At most one collections fetch is in flight at a time; a repeated `start()`
    returns the in-flight request id. Row fetches may overlap: each
    `select_table()` supersedes the previous one, and the UI state discards
    events for superseded request ids.
    """

    def __init__(
        self,
        cache: ResultCache,
        list_fn: Callable[[], list[str]],
        scan_fn: Callable[[str], list[str]],
        events: queue.Queue | None = None,
    ):
        self.cache = cache
        self._list_fn = list_fn
        self._scan_fn = scan_fn
        self.events: queue.Queue = events if events is not None else queue.Queue()
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._inflight: dict[FetchKind, int] = {}
        self._threads: list[threading.Thread] = []

    @classmethod
    def from_settings(cls, settings: Settings, client: Any | None = None) -> "FetchOrchestrator":
        client = client if client is not None else create_client(settings)
        scanner = ParallelScanner.from_settings(client, settings)
        return cls(
            cache=ResultCache.from_settings(settings),
            list_fn=lambda: list_collections(client),
            scan_fn=lambda table: scanner.scan_table(table).rows,
        )

    def start(self) -> int:
        """Fetch the table list. Returns the request id."""
        with self._lock:
            current = self._inflight.get(FetchKind.COLLECTIONS)
            if current is not None:
                return current
            request_id = next(self._ids)
            self._inflight[FetchKind.COLLECTIONS] = request_id

        self.events.put(FetchStarted(kind=FetchKind.COLLECTIONS, request_id=request_id))
        self._spawn(self._fetch_collections, request_id)
        return request_id

    def select_table(self, table: str) -> int:
        """Fetch every row of `table`. Returns the request id."""
        with self._lock:
            request_id = next(self._ids)
            self._inflight[FetchKind.ROWS] = request_id

        self.events.put(FetchStarted(kind=FetchKind.ROWS, request_id=request_id, table=table))
        self._spawn(self._fetch_rows, request_id, table)
        return request_id

    def in_flight(self, kind: FetchKind) -> int | None:
        with self._lock:
            return self._inflight.get(kind)

    def _spawn(self, target: Callable[..., None], *args: Any) -> None:
        t = threading.Thread(target=target, args=args, name=f"fetch-{args[0]}", daemon=True)
        with self._lock:
            self._threads = [th for th in self._threads if th.is_alive()]
            self._threads.append(t)
        t.start()

    def _finish(self, kind: FetchKind, request_id: int) -> None:
        with self._lock:
            if self._inflight.get(kind) == request_id:
                del self._inflight[kind]

    def _fetch_collections(self, request_id: int) -> None:
        try:
            names = self.cache.read_through(COLLECTIONS_KEY, self._list_fn)
            event: FetchEvent = CollectionsFetched(request_id=request_id, names=tuple(names))
        except FetchError as e:
            logger.error("Collections fetch %d failed: %s", request_id, e)
            event = FetchFailed(request_id=request_id, kind=FetchKind.COLLECTIONS, error=e)
        except Exception as e:
            logger.exception("Collections fetch %d failed unexpectedly", request_id)
            event = FetchFailed(
                request_id=request_id,
                kind=FetchKind.COLLECTIONS,
                error=FetchError("Unexpected error while listing tables", cause=e),
            )
        finally:
            self._finish(FetchKind.COLLECTIONS, request_id)
        self.events.put(event)

    def _fetch_rows(self, request_id: int, table: str) -> None:
        try:
            rows = self.cache.read_through(table_key(table), lambda: self._scan_fn(table))
            event: FetchEvent = RowsFetched(request_id=request_id, table=table, rows=tuple(rows))
        except FetchError as e:
            logger.error("Row fetch %d for %s failed: %s", request_id, table, e)
            event = FetchFailed(request_id=request_id, kind=FetchKind.ROWS, error=e, table=table)
        except Exception as e:
            logger.exception("Row fetch %d for %s failed unexpectedly", request_id, table)
            event = FetchFailed(
                request_id=request_id,
                kind=FetchKind.ROWS,
                error=FetchError(f"Unexpected error while reading {table!r}", cause=e),
                table=table,
            )
        finally:
            self._finish(FetchKind.ROWS, request_id)
        self.events.put(event)

    def poll(self, timeout: float | None = 0.0) -> list[FetchEvent]:
        """Return pending events, waiting up to `timeout` for the first one."""
        out: list[FetchEvent] = []
        try:
            if timeout is None or timeout > 0:
                out.append(self.events.get(timeout=timeout))
            else:
                out.append(self.events.get_nowait())
        except queue.Empty:
            return out
        while True:
            try:
                out.append(self.events.get_nowait())
            except queue.Empty:
                return out

    def wait_for(
        self,
        request_id: int,
        *,
        on_event: Callable[[FetchEvent], None] | None = None,
        tick: float = 0.1,
        on_tick: Callable[[], None] | None = None,
    ) -> FetchEvent:
        """Drain events until the completion event for `request_id` arrives.

        Every drained event (including unrelated ones) is passed to
        `on_event`, so the caller's state sees them in order. `on_tick`
        runs between polls, e.g. to animate a spinner.
        """
        while True:
            for event in self.poll(timeout=tick):
                if on_event is not None:
                    on_event(event)
                if is_completion(event) and event.request_id == request_id:
                    return event
            if on_tick is not None:
                on_tick()

    def join(self, timeout: float | None = None) -> None:
        """Wait for outstanding fetch threads (used by tests and shutdown)."""
        with self._lock:
            threads = list(self._threads)
        for t in threads:
            t.join(timeout)
