"""Tests for structured logging setup."""

from __future__ import annotations

import io
import json
import logging

import pytest
import structlog

from umami_client.logging import configure_logging


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.NOTSET)


def test_json_format():
    stream = io.StringIO()
    configure_logging(log_level="INFO", log_format="json", stream=stream)

    structlog.get_logger("test").info("Umami login succeeded", username="admin")

    record = json.loads(stream.getvalue().strip())
    assert record["event"] == "Umami login succeeded"
    assert record["username"] == "admin"
    assert record["level"] == "info"
    assert "timestamp" in record


def test_level_filters_lower_levels():
    stream = io.StringIO()
    configure_logging(log_level="WARNING", log_format="json", stream=stream)

    structlog.get_logger("test").info("hidden")

    assert stream.getvalue() == ""


def test_stdlib_records_are_rendered():
    stream = io.StringIO()
    configure_logging(log_level="INFO", log_format="json", stream=stream)

    logging.getLogger("some.library").warning("disk %s", "full")

    record = json.loads(stream.getvalue().strip())
    assert record["event"] == "disk full"
    assert record["level"] == "warning"


def test_httpx_is_quiet_unless_debug():
    configure_logging(log_level="INFO", stream=io.StringIO())
    assert logging.getLogger("httpx").level == logging.WARNING

    configure_logging(log_level="DEBUG", stream=io.StringIO())
    assert logging.getLogger("httpx").level == logging.DEBUG
