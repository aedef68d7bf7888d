from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration for the DynamoDB browser.

    Values are loaded from environment variables and `.env`.

    Notes:
    - The cache lives under the user's home directory by default; it is a
      local accelerator only, never a source of truth.
    - Segment count is a tunable: set DV_SCAN_SEGMENTS to pin it, otherwise
      it is derived from the number of logical cores.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Service client
    DV_AWS_REGION: str = Field(default="us-east-1")
    DV_AWS_PROFILE: str | None = Field(default=None)
    # Point at a local emulator (e.g. http://localhost:8000) when set.
    DV_ENDPOINT_URL: str | None = Field(default=None)
    # Transport-level retries are the client's concern, not ours.
    DV_MAX_ATTEMPTS: int = Field(default=20)

    # Cache
    DV_CACHE_DIR: Path = Field(default=Path("~/.dynaview/cache"))
    DV_CACHE_TTL_HOURS: float = Field(default=72)

    # Parallel scan
    DV_SCAN_SEGMENTS: int | None = Field(default=None)
    DV_SCAN_SEGMENT_DIVISOR: int = Field(default=2)
    DV_SCAN_PAGE_SIZE: int = Field(default=100)
    DV_SCAN_TIMEOUT_SEC: float = Field(default=120)

    # Logging (diagnostic; the TUI never logs to the console)
    DV_LOG_DIR: Path = Field(default=Path("~/.dynaview/logs"))
    DV_LOG_LEVEL: str = Field(default="INFO")
    # Timed rotation retention count (days).
    DV_LOG_BACKUP_COUNT: int = Field(default=14)

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(hours=float(self.DV_CACHE_TTL_HOURS))


def resolve_segment_count(settings: Settings, cpu_count: int | None = None) -> int:
    """Return how many scan segments to use.

    An explicit DV_SCAN_SEGMENTS wins. Otherwise the logical core count is
    divided by DV_SCAN_SEGMENT_DIVISOR to bound connection concurrency.
    The result is never below 1.
    """
    if settings.DV_SCAN_SEGMENTS is not None:
        return max(1, int(settings.DV_SCAN_SEGMENTS))

    cores = cpu_count if cpu_count is not None else (os.cpu_count() or 1)
    divisor = max(1, int(settings.DV_SCAN_SEGMENT_DIVISOR))
    return max(1, int(cores) // divisor)


def load_settings(**overrides) -> Settings:
    s = Settings(**overrides)
    s.DV_CACHE_DIR = s.DV_CACHE_DIR.expanduser()
    s.DV_LOG_DIR = s.DV_LOG_DIR.expanduser()
    return s
