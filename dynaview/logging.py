from __future__ import annotations

import logging
import os
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from .settings import Settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _resolve_log_dir(settings: object) -> Path:
    """Resolve the log directory.

    - If DV_LOG_DIR is absolute (after `~` expansion), use it directly.
    - Otherwise, treat it as relative to the current working directory.
    """

    raw = getattr(settings, "DV_LOG_DIR", Path("~/.dynaview/logs"))
    p = raw if isinstance(raw, Path) else Path(str(raw))
    p = p.expanduser()
    if p.is_absolute():
        return p
    return Path.cwd() / p


def setup_logging(settings: Settings | object, *, console: bool = False) -> Path:
    """Configure Python logging to write to a rotating diagnostic log file.

    Returns the resolved log file path.

    Rotation:
      - Daily rotation at midnight.
      - Keep the last `DV_LOG_BACKUP_COUNT` rotated files.

    Notes:
      - The interactive TUI must not log to the terminal; `console` is only
        enabled by non-interactive commands run with --verbose.
      - This function is safe to call multiple times (it resets handlers).
    """

    log_dir = _resolve_log_dir(settings)
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / "dynaview.log"

    level_name = str(getattr(settings, "DV_LOG_LEVEL", "INFO") or "INFO").upper().strip()
    level = getattr(logging, level_name, logging.INFO)

    file_handler = TimedRotatingFileHandler(
        filename=str(log_file),
        when="midnight",
        interval=1,
        backupCount=max(0, int(getattr(settings, "DV_LOG_BACKUP_COUNT", 14) or 0)),
        encoding="utf-8",
        utc=False,
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    # Reset root handlers so we don't duplicate logs on repeated setup.
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    root.setLevel(level)
    root.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(console_handler)

    # The AWS SDK is chatty at DEBUG/INFO.
    for name in ("boto3", "botocore", "urllib3"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logging.getLogger("dynaview").info(
        "dynaview logging enabled (file=%s, level=%s)",
        os.fspath(log_file),
        level_name,
    )

    return log_file
