"""Exception hierarchy for fetch, scan, serialization and cache failures."""
from __future__ import annotations


class DynaviewError(Exception):
    """Base class for every error raised by dynaview."""


class FetchError(DynaviewError):
    """A fetch for the UI failed. This is the only error the UI ever sees.

    Attributes:
        cause: The underlying exception (service error, timeout, schema error).
    """

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None and str(self.cause) and str(self.cause) not in self.message:
            return f"{self.message}: {self.cause}"
        return self.message


class ScanError(FetchError):
    """A full-table scan failed; no partial rows are delivered."""


class DescribeFailedError(ScanError):
    """Table metadata was unavailable."""


class SegmentScanError(ScanError):
    """A single segment worker failed, which fails the whole scan."""

    def __init__(self, message: str, segment: int, cause: BaseException | None = None):
        super().__init__(message, cause)
        self.segment = segment


class ScanTimeoutError(ScanError):
    """The scan deadline elapsed before every segment was exhausted."""


class MissingPartitionKeyError(DynaviewError):
    """A table's key schema has no partition (HASH) key element."""


class SerializationError(DynaviewError):
    """A single record could not be normalized. Recoverable: the record is dropped."""


class UnsupportedTypeError(SerializationError):
    def __init__(self, tag: object):
        super().__init__(f"unsupported attribute type: {tag!r}")
        self.tag = tag


class CacheIOError(DynaviewError):
    """Reading or writing a cache file failed."""


class InvalidTransitionError(DynaviewError):
    """A fetch state machine trigger is not legal in the current state."""

    def __init__(self, state: object, trigger: object):
        super().__init__(f"no transition from {state} on {trigger}")
        self.state = state
        self.trigger = trigger
