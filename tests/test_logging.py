"""Tests for logging configuration."""

import logging
from logging.handlers import RotatingFileHandler

import structlog

from zai_gateway.main import configure_logging


def test_configure_logging_console_only():
    """Console-only mode installs a single stream handler."""
    logging.root.handlers.clear()

    configure_logging(log_level="DEBUG", log_file="")

    assert len(logging.root.handlers) == 1
    assert isinstance(logging.root.handlers[0], logging.StreamHandler)
    assert not isinstance(logging.root.handlers[0], RotatingFileHandler)
    assert logging.root.level == logging.DEBUG


def test_configure_logging_with_rotating_file(tmp_path):
    """A log file adds a rotating handler and creates missing directories."""
    logging.root.handlers.clear()
    log_file = tmp_path / "logs" / "gateway.log"

    configure_logging(
        log_level="INFO",
        log_file=str(log_file),
        log_file_max_bytes=5_000_000,
        log_file_backup_count=3,
    )

    assert len(logging.root.handlers) == 2
    file_handler = logging.root.handlers[1]
    assert isinstance(file_handler, RotatingFileHandler)
    assert file_handler.maxBytes == 5_000_000
    assert file_handler.backupCount == 3
    assert logging.root.level == logging.INFO
    assert log_file.exists()


def test_configure_logging_writes_json_events(tmp_path):
    """Events reach the log file as JSON lines."""
    logging.root.handlers.clear()
    log_file = tmp_path / "gateway.log"
    configure_logging(log_level="INFO", log_file=str(log_file))

    structlog.get_logger().info("transcode_complete", chunks_emitted=3)
    for handler in logging.root.handlers:
        handler.flush()

    log_content = log_file.read_text(encoding="utf-8")
    assert "transcode_complete" in log_content
    assert '"chunks_emitted": 3' in log_content


def test_unknown_level_falls_back_to_info():
    logging.root.handlers.clear()
    configure_logging(log_level="chatty")
    assert logging.root.level == logging.INFO


def test_http_client_loggers_held_at_warning():
    logging.root.handlers.clear()
    configure_logging(log_level="DEBUG")
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING


def test_debug_mode_forces_debug_everywhere():
    logging.root.handlers.clear()
    configure_logging(log_level="ERROR", debug_mode=True)
    assert logging.root.level == logging.DEBUG
    assert logging.getLogger("httpx").getEffectiveLevel() == logging.DEBUG
