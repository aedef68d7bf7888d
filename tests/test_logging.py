from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler

import pytest

from dynaview.logging import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for h in list(root.handlers):
        root.removeHandler(h)
        if h not in handlers:
            h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


def test_setup_logging_writes_rotating_file(settings, restore_root_logger):
    log_file = setup_logging(settings)

    assert log_file == settings.DV_LOG_DIR / "dynaview.log"
    handlers = restore_root_logger.handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0], TimedRotatingFileHandler)
    assert handlers[0].backupCount == 14

    logging.getLogger("dynaview.test").info("hello from the test")
    handlers[0].flush()
    assert "hello from the test" in log_file.read_text(encoding="utf-8")


def test_setup_logging_is_idempotent_and_quiets_sdk(settings, restore_root_logger):
    setup_logging(settings)
    setup_logging(settings, console=True)

    assert len(restore_root_logger.handlers) == 2
    assert logging.getLogger("botocore").level == logging.WARNING


def test_relative_log_dir_resolves_against_cwd(settings, tmp_path, restore_root_logger):
    settings.DV_LOG_DIR = "rel-logs"
    log_file = setup_logging(settings)
    assert log_file == tmp_path / "rel-logs" / "dynaview.log"
