import json
import logging

from simosmaths.logging_context import (
    RequestContextFilter,
    pop_request_context,
    push_request_context,
    set_profile_context,
)
from simosmaths.logging_utils import JSONFormatter


def _record(message: str) -> logging.LogRecord:
    return logging.LogRecord("simosmaths.test", logging.INFO, __file__, 1, message, (), None)


def test_json_formatter_carries_request_context():
    token = push_request_context("req-42")
    try:
        set_profile_context("profile-1")
        record = _record("checkout created")
        RequestContextFilter().filter(record)
        payload = json.loads(JSONFormatter().format(record))
    finally:
        pop_request_context(token)

    assert payload["message"] == "checkout created"
    assert payload["level"] == "INFO"
    assert payload["request_id"] == "req-42"
    assert payload["profile_id"] == "profile-1"
    assert "context" not in payload


def test_context_is_cleared_after_request():
    token = push_request_context("req-1")
    pop_request_context(token)

    record = _record("outside request")
    RequestContextFilter().filter(record)

    assert record.request_id is None
    payload = json.loads(JSONFormatter().format(record))
    assert "request_id" not in payload


def test_extra_fields_are_nested_under_context():
    record = _record("GET /api/health 200")
    record.status_code = 200
    record.duration_ms = 1.5
    RequestContextFilter().filter(record)

    payload = json.loads(JSONFormatter().format(record))

    assert payload["context"] == {"status_code": 200, "duration_ms": 1.5}
