"""Tests for the JSON log formatter and logging setup."""

import json
import logging
import sys

from gallery_sync.config import RuntimeConfig
from gallery_sync.core import logging_utils
from gallery_sync.core.logging_utils import (
    EnhancedJsonFormatter,
    configure_logging,
    generate_correlation_id,
    truncate_log_content,
)


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="gallery_sync.sync.mutation_queue",
        level=logging.WARNING,
        pathname=__file__,
        lineno=10,
        msg="mutation_failed",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestEnhancedJsonFormatter:
    def test_groups_sync_fields(self):
        formatter = EnhancedJsonFormatter(include_location=False)

        payload = json.loads(
            formatter.format(
                _record(
                    correlation_id="abc123",
                    collection_key="user-1",
                    operation="create_page",
                    error="boom",
                )
            )
        )

        assert payload["message"] == "mutation_failed"
        assert payload["level"] == "WARNING"
        assert payload["correlation_id"] == "abc123"
        assert payload["sync"] == {"collection_key": "user-1", "operation": "create_page"}
        assert payload["extra"] == {"error": "boom"}
        assert "line" not in payload

    def test_exception_info(self):
        formatter = EnhancedJsonFormatter()
        try:
            raise ValueError("bad")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()

        payload = json.loads(formatter.format(record))

        assert payload["exception"]["type"] == "ValueError"
        assert payload["exception"]["message"] == "bad"
        assert payload["line"] == 10


def test_configure_logging_uses_json_handler(monkeypatch):
    calls = []
    monkeypatch.setattr(
        logging_utils, "setup_json_logging", lambda level, **kw: calls.append((level, kw))
    )

    configure_logging(RuntimeConfig(log_level="debug", log_json=True, log_file="app.log"))

    assert calls == [("DEBUG", {"log_file": "app.log"})]


def test_configure_logging_plain(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw))

    configure_logging(RuntimeConfig(log_level="WARNING", log_json=False))

    assert calls[0]["level"] == logging.WARNING


def test_helpers():
    assert len(generate_correlation_id()) == 12
    assert truncate_log_content("short") == "short"
    assert truncate_log_content("x" * 300, max_length=10) == "x" * 10 + "... [truncated]"
    assert truncate_log_content(None) is None
