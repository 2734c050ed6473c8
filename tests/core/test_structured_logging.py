"""Tests for structured (JSON) logging output.

Award logs are filtered downstream by user_id / project_id / badge_id,
so those fields must land on the top-level JSON object.
"""

from __future__ import annotations

import json
import logging
import sys

from badge_service.core.logging import _JsonFormatter


def _record(msg: str = "Badge approved", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="badge_service.services.ledger",
        level=logging.INFO,
        pathname="ledger.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_produces_valid_json() -> None:
    parsed = json.loads(_JsonFormatter().format(_record()))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "badge_service.services.ledger"
    assert parsed["message"] == "Badge approved"
    assert "timestamp" in parsed


def test_json_formatter_lifts_award_context() -> None:
    record = _record(
        user_id="u1",
        badge_id="b1",
        category="academy",
        awarded_by="admin-1",
        request_id="req-1",
    )
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["user_id"] == "u1"
    assert parsed["badge_id"] == "b1"
    assert parsed["category"] == "academy"
    assert parsed["awarded_by"] == "admin-1"
    assert parsed["request_id"] == "req-1"


def test_json_formatter_omits_missing_and_unknown_fields() -> None:
    parsed = json.loads(_JsonFormatter().format(_record(secret="nope")))
    assert "project_id" not in parsed
    assert "secret" not in parsed


def test_json_formatter_includes_exception_info() -> None:
    try:
        raise ValueError("ledger broke")
    except ValueError:
        record = logging.LogRecord(
            name="test",
            level=logging.ERROR,
            pathname="test.py",
            lineno=1,
            msg="Badge assignment crashed",
            args=(),
            exc_info=sys.exc_info(),
        )
    parsed = json.loads(_JsonFormatter().format(record))
    assert "ValueError: ledger broke" in parsed["exception"]
