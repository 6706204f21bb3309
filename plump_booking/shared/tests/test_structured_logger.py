"""
Tests for JSON structured logging.
"""

import json
import logging

from ..structured_logger import StructuredLogger


def records(caplog):
    return [json.loads(record.getMessage()) for record in caplog.records]


class TestStructuredLogger:
    """Tests for StructuredLogger."""

    def test_step_transition(self, caplog):
        structured = StructuredLogger(logging.getLogger("test.transitions"))

        with caplog.at_level(logging.INFO, logger="test.transitions"):
            structured.step_transition("flow-1", "calendar", "user-info", ["selected_time", "current_step"])

        entry = records(caplog)[0]
        assert entry["event_type"] == "step_transition"
        assert entry["flow_id"] == "flow-1"
        assert entry["message"] == "calendar -> user-info"
        assert entry["data"]["patched_fields"] == ["current_step", "selected_time"]

    def test_fanout_with_failures_warns(self, caplog):
        structured = StructuredLogger(logging.getLogger("test.fanout"))

        with caplog.at_level(logging.INFO, logger="test.fanout"):
            structured.fanout_completed("load_all_staff", succeeded=5, failed=2, duration_ms=120.4)
            structured.fanout_completed("load_availability_for_month", succeeded=20, failed=0, duration_ms=80.0)

        assert [record.levelno for record in caplog.records] == [logging.WARNING, logging.INFO]
        first = records(caplog)[0]
        assert first["message"] == "load_all_staff: 5 ok, 2 failed in 120ms"
        assert "flow_id" not in first

    def test_event_level_and_unserializable_data(self, caplog):
        structured = StructuredLogger(logging.getLogger("test.events"))

        with caplog.at_level(logging.INFO, logger="test.events"):
            structured.event("flow-2", "booking_failed", "Payment required", level="ERROR", data={"cart": object()})

        record = caplog.records[0]
        assert record.levelno == logging.ERROR
        assert json.loads(record.getMessage())["event_type"] == "booking_failed"
