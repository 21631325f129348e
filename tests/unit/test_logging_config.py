"""Tests for logging configuration helpers."""

import json
import logging
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from webserver.bootstrap.logging_setup import (
    CorrelationIdFilter,
    JsonFormatter,
    configure_logging,
)


@pytest.fixture(autouse=True)
def restore_project_handlers():
    """Drop handlers installed by configure_logging after each test."""
    logger = logging.getLogger("webserver")
    saved = list(logger.handlers)
    yield
    for handler in logger.handlers:
        if handler not in saved:
            handler.close()
    logger.handlers[:] = saved


def _record(name: str = "webserver.settings", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name=name,
        level=logging.INFO,
        pathname=__file__,
        lineno=0,
        msg="format test",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_configure_logging_stream_handler():
    """Configure stdout handler and validate formatter output."""
    logger = configure_logging("DEBUG", "stdout")

    assert logger.logger.name == "webserver"
    assert logger.logger.level == logging.DEBUG
    assert len(logger.logger.handlers) == 1

    handler = logger.logger.handlers[0]
    assert isinstance(handler, logging.StreamHandler)
    log_data = json.loads(
        handler.formatter.format(
            _record(correlation_id="test-id-123", component="settings")
        )
    )
    assert log_data["component"] == "settings"
    assert log_data["message"] == "format test"
    assert log_data["correlation_id"] == "test-id-123"


def test_configure_logging_file_destination(tmp_path: Path):
    """Configure file handler and verify writes are persisted."""
    destination = tmp_path / "logs" / "webserver.log"
    logger = configure_logging("WARNING", destination.as_posix())

    assert logger.logger.level == logging.WARNING
    handler = logger.logger.handlers[0]
    assert handler.baseFilename == destination.as_posix()

    logging.getLogger("webserver.listener").warning("file log test")

    handler.flush()
    assert "file log test" in destination.read_text()


def test_configure_logging_text_format():
    """Plain text output keeps the correlation id in brackets."""
    logger = configure_logging("INFO", "stdout", use_json=False)
    formatter = logger.logger.handlers[0].formatter

    line = formatter.format(_record(correlation_id="abc"))

    assert "[abc]" in line
    assert "webserver.settings :: format test" in line


def test_unknown_level_falls_back_to_info():
    """Unrecognized level names configure INFO instead of failing."""
    logger = configure_logging("CHATTY", "stdout")

    assert logger.logger.level == logging.INFO


def test_correlation_id_filter_inserts_placeholder_when_missing():
    """Filter should default correlation_id to '-' for bare records."""
    log_filter = CorrelationIdFilter()
    record = _record()

    assert not hasattr(record, "correlation_id")
    assert log_filter.filter(record)
    assert record.correlation_id == "-"


def test_json_formatter_includes_known_extras_and_redacts_values():
    """Event fields are emitted; secret-looking strings are masked."""
    formatter = JsonFormatter()
    record = _record(
        event="tls_key_rejected",
        port=8092,
        path="/etc/ssl/server.key",
        error="bad passphrase for key",
        unrelated="dropped",
    )

    log_data = json.loads(formatter.format(record))

    assert log_data["event"] == "tls_key_rejected"
    assert log_data["port"] == 8092
    assert log_data["path"] == "/etc/ssl/server.key"
    assert log_data["error"] == "[REDACTED]"
    assert "unrelated" not in log_data
    assert log_data["component"] == "unknown"


def test_json_formatter_serializes_exceptions():
    """exc_info is rendered into an 'exception' field."""
    formatter = JsonFormatter()
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record()
        record.exc_info = sys.exc_info()

    log_data = json.loads(formatter.format(record))

    assert "RuntimeError: boom" in log_data["exception"]


def test_configure_logging_emits_event():
    """configure_logging announces itself with a 'logging_configured' event."""
    with patch("webserver.bootstrap.logging_setup._build_handler") as mock_build:
        mock_handler = MagicMock()
        mock_handler.level = logging.INFO
        mock_build.return_value = mock_handler

        configure_logging("INFO", "stdout")

        assert mock_handler.handle.called
        record = mock_handler.handle.call_args[0][0]

        assert record.msg == "Logging configured"
        assert record.levelno == logging.INFO
        assert getattr(record, "event", None) == "logging_configured"
        assert getattr(record, "log_destination", None) == "stdout"
        assert getattr(record, "use_json", None) is True
