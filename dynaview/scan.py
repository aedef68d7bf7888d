"""Segment-parallel full-table scan.

The table is split into N segments and each segment is paged to exhaustion
by its own worker thread. Results are all-or-nothing: if any segment fails
the whole scan fails and partial rows are discarded.
"""
from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from botocore.exceptions import BotoCoreError, ClientError, ConnectTimeoutError, ReadTimeoutError

from .client import describe_key_schema
from .errors import (
    MissingPartitionKeyError,
    ScanError,
    ScanTimeoutError,
    SegmentScanError,
)
from .keys import KeySchema, sanitize_token
from .serializer import serialize_items
from .settings import Settings, resolve_segment_count

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
DEFAULT_TIMEOUT_SEC = 120.0
# Extra time allowed for workers to notice the deadline before we stop waiting.
JOIN_GRACE_SEC = 5.0


@dataclass
class ScanResult:
    table: str
    rows: list[str] = field(default_factory=list)
    segments: int = 1
    pages: int = 0
    dropped: int = 0
    elapsed: float = 0.0


@dataclass
class _Accumulator:
    """Rows and counters shared by the workers of one scan."""

    rows: list[str] = field(default_factory=list)
    pages: int = 0
    dropped: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)

    def add_page(self, rows: list[str], dropped: int) -> None:
        with self.lock:
            self.rows.extend(rows)
            self.pages += 1
            self.dropped += dropped


class ParallelScanner:
    """Scan a table with one worker thread per segment.

    Args:
        client: Low-level DynamoDB client (or a double with the same
            `describe_table` / `scan` methods).
        segments: Total segment count, at least 1.
        page_size: Upper bound on records per scan call.
        timeout: Deadline in seconds shared by every segment worker.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        client: Any,
        *,
        segments: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float = DEFAULT_TIMEOUT_SEC,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.segments = max(1, int(segments))
        self.page_size = max(1, int(page_size))
        self.timeout = float(timeout)
        self._clock = clock

    @classmethod
    def from_settings(cls, client: Any, settings: Settings) -> "ParallelScanner":
        return cls(
            client,
            segments=resolve_segment_count(settings),
            page_size=settings.DV_SCAN_PAGE_SIZE,
            timeout=settings.DV_SCAN_TIMEOUT_SEC,
        )

    def scan_table(self, table_name: str) -> ScanResult:
        """Read every record of `table_name` as JSON rows.

        Raises:
            DescribeFailedError: table metadata was unavailable.
            ScanError: the key schema was malformed, a segment failed, or
                the deadline elapsed.
        """
        started = self._clock()
        deadline = started + self.timeout

        try:
            schema = describe_key_schema(self.client, table_name)
        except MissingPartitionKeyError as e:
            logger.error("Failed to retrieve primary key schema for %s: %s", table_name, e)
            raise ScanError(f"Table {table_name!r} has no usable key schema", cause=e) from e

        logger.info("Scanning %s with %d segments", table_name, self.segments)

        acc = _Accumulator()
        errors: queue.Queue[ScanError] = queue.Queue(maxsize=self.segments)
        workers = [
            threading.Thread(
                target=self._scan_segment,
                args=(table_name, segment, schema, deadline, acc, errors),
                name=f"scan-{table_name}-{segment}",
                daemon=True,
            )
            for segment in range(self.segments)
        ]
        for w in workers:
            w.start()

        wait_until = time.monotonic() + max(0.0, deadline - self._clock()) + JOIN_GRACE_SEC
        for w in workers:
            w.join(max(0.0, wait_until - time.monotonic()))

        if any(w.is_alive() for w in workers):
            logger.error("Scan of %s exceeded its %.0fs deadline", table_name, self.timeout)
            raise ScanTimeoutError(f"Scan of {table_name!r} timed out after {self.timeout:.0f}s")

        if not errors.empty():
            err = errors.get_nowait()
            logger.error("Error in parallel scan of %s: %s", table_name, err)
            raise err

        with acc.lock:
            result = ScanResult(
                table=table_name,
                rows=list(acc.rows),
                segments=self.segments,
                pages=acc.pages,
                dropped=acc.dropped,
                elapsed=self._clock() - started,
            )
        logger.info(
            "Scanned %s: %d rows, %d pages, %d dropped in %.2fs",
            table_name,
            len(result.rows),
            result.pages,
            result.dropped,
            result.elapsed,
        )
        return result

    def _scan_segment(
        self,
        table_name: str,
        segment: int,
        schema: KeySchema,
        deadline: float,
        acc: _Accumulator,
        errors: queue.Queue,
    ) -> None:
        try:
            self._drain_segment(table_name, segment, schema, deadline, acc)
        except ScanError as e:
            errors.put_nowait(e)
        except Exception as e:
            errors.put_nowait(SegmentScanError(f"Segment {segment} of {table_name!r} failed", segment, cause=e))

    def _drain_segment(
        self,
        table_name: str,
        segment: int,
        schema: KeySchema,
        deadline: float,
        acc: _Accumulator,
    ) -> None:
        token: dict[str, Any] | None = None
        while True:
            if self._clock() >= deadline:
                raise ScanTimeoutError(f"Scan of {table_name!r} timed out after {self.timeout:.0f}s")

            params: dict[str, Any] = {
                "TableName": table_name,
                "Limit": self.page_size,
                "Segment": segment,
                "TotalSegments": self.segments,
            }
            start_key = sanitize_token(token, schema)
            if start_key is not None:
                if not start_key:
                    raise SegmentScanError(
                        f"Segment {segment} of {table_name!r} returned a continuation token without key attributes",
                        segment,
                    )
                params["ExclusiveStartKey"] = start_key

            try:
                output = self.client.scan(**params)
            except (ReadTimeoutError, ConnectTimeoutError) as e:
                raise ScanTimeoutError(f"Scan of {table_name!r} timed out", cause=e) from e
            except (ClientError, BotoCoreError) as e:
                raise SegmentScanError(f"Segment {segment} of {table_name!r} failed", segment, cause=e) from e

            rows, dropped = serialize_items(output.get("Items") or [])
            acc.add_page(rows, dropped)

            token = output.get("LastEvaluatedKey") or None
            if token is None:
                return


def scan_table(client: Any, table_name: str, settings: Settings) -> ScanResult:
    return ParallelScanner.from_settings(client, settings).scan_table(table_name)
