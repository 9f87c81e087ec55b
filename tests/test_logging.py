"""Tests for logging configuration."""

import json
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any

from sheets_bridge.logging import (
    _cloud_logging_serializer,
    clear_request_context,
    request_id_ctx,
    set_request_context,
)


def make_record(level: str = "INFO", no: int = 20, **extra: Any) -> dict[str, Any]:
    return {
        "level": SimpleNamespace(name=level, no=no),
        "message": "Request completed",
        "time": datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
        "file": SimpleNamespace(path="/app/sheets_bridge/api.py"),
        "line": 42,
        "function": "get_sheet_data",
        "exception": None,
        "extra": extra,
    }


class TestCloudLoggingSerializer:
    """Tests for the production JSON format."""

    def test_basic_fields(self) -> None:
        """Should emit severity, message, time and extra fields."""
        entry = json.loads(_cloud_logging_serializer(make_record(status_code=200)))

        assert entry["severity"] == "INFO"
        assert entry["message"] == "Request completed"
        assert entry["time"] == "2024-05-01T12:00:00+00:00"
        assert entry["status_code"] == 200
        assert "logging.googleapis.com/sourceLocation" not in entry

    def test_errors_carry_source_location(self) -> None:
        """Error entries include the source location."""
        entry = json.loads(_cloud_logging_serializer(make_record("ERROR", 40)))

        assert entry["severity"] == "ERROR"
        assert entry["logging.googleapis.com/sourceLocation"] == {
            "file": "/app/sheets_bridge/api.py",
            "line": "42",
            "function": "get_sheet_data",
        }

    def test_request_id_included(self) -> None:
        """The request id from context is added to each entry."""
        set_request_context(request_id="abc123")
        try:
            entry = json.loads(_cloud_logging_serializer(make_record()))
        finally:
            clear_request_context()

        assert entry["request_id"] == "abc123"
        assert request_id_ctx.get() is None

    def test_private_extra_keys_skipped(self) -> None:
        """Underscore-prefixed extra keys are not serialized."""
        entry = json.loads(_cloud_logging_serializer(make_record(_internal=1, visible=2)))

        assert "_internal" not in entry
        assert entry["visible"] == 2
