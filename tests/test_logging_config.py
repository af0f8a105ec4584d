"""Tests for logging configuration and formatters."""

import json
import logging
from datetime import date

import pytest

from notification_engine.domain.models import Channel
from notification_engine.logging import ComponentLoggerAdapter, get_logger
from notification_engine.logging.config import (
    ContextualFilter,
    JSONFormatter,
    KeyValueFormatter,
    configure_logging,
)
from notification_engine.logging.context import log_context


@pytest.fixture
def logger():
    test_logger = logging.getLogger("test_logger")
    test_logger.setLevel(logging.DEBUG)
    test_logger.handlers.clear()
    yield test_logger
    test_logger.handlers.clear()


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(logger, message="Test message", extra=None):
    return logger.makeRecord("test", logging.INFO, "test.py", 1, message, (), None, extra=extra)


def test_json_formatter_basic(logger):
    log_obj = json.loads(JSONFormatter().format(make_record(logger)))

    assert log_obj["level"] == "INFO"
    assert log_obj["message"] == "Test message"
    assert log_obj["timestamp"].endswith("Z")
    assert len(log_obj["timestamp"]) == 24
    assert "name" not in log_obj


def test_json_formatter_serialises_domain_values(logger):
    """Enums, dates and sets in extra fields become plain JSON values."""
    record = make_record(
        logger,
        extra={
            "event": "dedup.recorded",
            "channel": Channel.SMS,
            "day": date(2024, 5, 6),
            "channels_used": frozenset({Channel.IN_APP}),
        },
    )
    log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["event"] == "dedup.recorded"
    assert log_obj["channel"] == "sms"
    assert log_obj["day"] == "2024-05-06"
    assert log_obj["channels_used"] == ["in_app"]


def test_contextual_filter_adds_static_and_context_fields(logger):
    record_filter = ContextualFilter(service="notification-engine", environment="test")

    with log_context(run_id="abc123", reference_id="att-001"):
        record = make_record(logger)
        record_filter.filter(record)

    assert record.service == "notification-engine"
    assert record.environment == "test"
    assert record.run_id == "abc123"
    assert record.reference_id == "att-001"


def test_explicit_extra_wins_over_context(logger):
    with log_context(recipient_id="G1"):
        record = make_record(logger, extra={"recipient_id": "G2"})
        ContextualFilter().filter(record)

    assert record.recipient_id == "G2"


def test_full_json_pipeline(logger):
    formatter = JSONFormatter()
    record_filter = ContextualFilter(service="notification-engine", environment="test")

    with log_context(run_id="abc123", event_type="attendance_absent"):
        record = make_record(logger, "Event sent", extra={"event": "dispatch.event.sent"})
        record_filter.filter(record)
        log_obj = json.loads(formatter.format(record))

    assert log_obj["event"] == "dispatch.event.sent"
    assert log_obj["run_id"] == "abc123"
    assert log_obj["event_type"] == "attendance_absent"
    assert log_obj["service"] == "notification-engine"


def test_key_value_formatter(logger):
    formatter = KeyValueFormatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    record = make_record(
        logger, extra={"event": "channel.send.failed", "count": 42, "error": "HTTP 500 error", "ok": False}
    )

    output = formatter.format(record)

    assert "[INFO]" in output
    assert "event=channel.send.failed" in output
    assert "count=42" in output
    assert 'error="HTTP 500 error"' in output
    assert "ok=false" in output


def test_configure_logging_invalid_level():
    with pytest.raises(ValueError, match="Invalid log level"):
        configure_logging(level="INVALID")


def test_configure_logging_invalid_format():
    with pytest.raises(ValueError, match="Invalid log format"):
        configure_logging(format_type="xml")


@pytest.mark.parametrize("format_type,formatter_cls", [("json", JSONFormatter), ("key-value", KeyValueFormatter)])
def test_configure_logging_installs_formatter(restore_root_logger, format_type, formatter_cls):
    configure_logging(level="DEBUG", format_type=format_type, environment="test")

    root_logger = logging.getLogger()
    assert root_logger.level == logging.DEBUG
    assert len(root_logger.handlers) == 1
    assert isinstance(root_logger.handlers[0].formatter, formatter_cls)
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_get_logger_component_adapter(caplog):
    adapter = get_logger("notification_engine.test", component="pipeline")
    assert isinstance(adapter, ComponentLoggerAdapter)

    with caplog.at_level(logging.INFO, logger="notification_engine.test"):
        adapter.info("hello", extra={"event": "test.event"})

    record = caplog.records[-1]
    assert record.component == "pipeline"
    assert record.event == "test.event"


def test_get_logger_without_component():
    assert isinstance(get_logger("plain"), logging.Logger)
