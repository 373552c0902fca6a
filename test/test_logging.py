"""Tests for structured logging."""

import json
import logging

from booking_engine.shared.logging import StructuredFormatter, correlation_id_var


def _record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("booking_engine.test", logging.INFO, __file__, 1, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formats_json_with_extra_fields() -> None:
    line = StructuredFormatter().format(_record("Retry call placed", lead_id="abc", attempt_no=2))
    data = json.loads(line)

    assert data["message"] == "Retry call placed"
    assert data["level"] == "INFO"
    assert data["lead_id"] == "abc"
    assert data["attempt_no"] == 2
    assert "correlation_id" not in data


def test_includes_correlation_id() -> None:
    token = correlation_id_var.set("call-retry-123")
    try:
        data = json.loads(StructuredFormatter().format(_record("tick")))
    finally:
        correlation_id_var.reset(token)

    assert data["correlation_id"] == "call-retry-123"


def test_colliding_extra_keys_are_prefixed() -> None:
    data = json.loads(StructuredFormatter().format(_record("tick", level="custom")))
    assert data["level"] == "INFO"
    assert data["extra_level"] == "custom"
