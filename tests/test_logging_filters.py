"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from minimal_api.core.logging import (
    JsonFormatter,
    SensitiveDataFilter,
    clear_request_id,
    redact_headers,
    set_request_id,
)


@pytest.fixture
def capture():
    """Return (logger, stream) wired through the redaction filter and JSON formatter."""

    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    yield logger, stream
    logger.handlers.clear()


def test_sensitive_filter_redacts_secrets(capture):
    logger, stream = capture

    logger.info(
        "test_event",
        extra={
            "authorization": "Bearer sk-secret-123",
            "cookie": "session=abc",
            "policy": "myfixedwindowlimit",
        },
    )

    output = stream.getvalue()
    assert "sk-secret-123" not in output
    assert "session=abc" not in output
    assert "[REDACTED]" in output
    assert "myfixedwindowlimit" in output


def test_sensitive_filter_redacts_nested_dicts(capture):
    logger, stream = capture

    logger.info(
        "http.request",
        extra={
            "headers": {"x-api-key": "secret-key", "user-agent": "pytest"},
            "path": "/person",
        },
    )

    output = stream.getvalue()
    assert "secret-key" not in output
    assert "pytest" in output
    assert "/person" in output


def test_json_formatter_includes_request_id_from_context(capture):
    logger, stream = capture

    set_request_id("req-123")
    try:
        logger.info("rate_limit.granted", extra={"policy": "p"})
    finally:
        clear_request_id()

    payload = json.loads(stream.getvalue())
    assert payload["message"] == "rate_limit.granted"
    assert payload["request_id"] == "req-123"
    assert payload["level"] == "info"
    assert payload["policy"] == "p"


def test_redact_headers_masks_only_sensitive_names():
    headers = redact_headers(
        [("Authorization", "Bearer x"), ("Accept", "application/json"), ("Set-Cookie", "a=b")]
    )

    assert headers == {
        "authorization": "[REDACTED]",
        "accept": "application/json",
        "set-cookie": "[REDACTED]",
    }


def test_json_formatter_emits_only_event_fields(capture):
    logger, stream = capture

    logger.info("cache.hit", extra={"cache_key": "abc123"})

    payload = json.loads(stream.getvalue())
    assert set(payload) == {"timestamp", "level", "logger", "message", "cache_key"}
    assert payload["logger"] == "test_redaction"


def test_json_formatter_includes_exception_text(capture):
    logger, stream = capture

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        logger.exception("app.unhandled_exception")

    payload = json.loads(stream.getvalue())
    assert payload["level"] == "error"
    assert "RuntimeError: boom" in payload["exc_info"]
