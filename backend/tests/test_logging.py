"""
Unit tests for structured logging configuration.
"""
import json
import logging
from io import StringIO
from unittest.mock import patch

import pytest

from deals.core import logging as deals_logging
from deals.core.logging import (
    add_request_context,
    configure_logging,
    generate_request_id,
    generate_trace_id,
    get_logger,
    get_request_id,
    get_trace_id,
    set_request_id,
    set_trace_id,
)


@pytest.fixture(autouse=True)
def clear_context():
    yield
    set_trace_id(None)
    set_request_id(None)


class TestLoggingConfiguration:

    def test_json_output(self):
        configure_logging(log_level="INFO", json_output=True)

        output = StringIO()
        root_logger = logging.getLogger()
        previous_level = root_logger.level
        handler = logging.StreamHandler(output)
        root_logger.addHandler(handler)
        root_logger.setLevel(logging.INFO)
        try:
            set_trace_id("trace-abc")
            get_logger("deals.test").info("catalog_page_computed", returned_count=3)
        finally:
            root_logger.removeHandler(handler)
            root_logger.setLevel(previous_level)

        lines = [line for line in output.getvalue().splitlines() if "catalog_page_computed" in line]
        assert lines, "No log output captured"
        entry = json.loads(lines[-1])
        assert entry["event"] == "catalog_page_computed"
        assert entry["returned_count"] == 3
        assert entry["trace_id"] == "trace-abc"
        assert entry["service"] == deals_logging.SERVICE_NAME
        assert entry["level"] == "info"
        assert "timestamp" in entry

    def test_console_output(self):
        configure_logging(log_level="DEBUG", json_output=False)
        get_logger(__name__).info("test_message", test_field="test_value")

    def test_service_name_override(self, monkeypatch):
        monkeypatch.setattr(deals_logging, "SERVICE_NAME", deals_logging.SERVICE_NAME)
        configure_logging(service_name="deals_test_service")
        assert deals_logging.SERVICE_NAME == "deals_test_service"


class TestRequestContext:

    def test_set_and_get_ids(self):
        set_trace_id("trace-123")
        set_request_id("request-456")
        assert get_trace_id() == "trace-123"
        assert get_request_id() == "request-456"

        set_trace_id(None)
        set_request_id(None)
        assert get_trace_id() is None
        assert get_request_id() is None

    def test_generated_ids_are_unique_uuids(self):
        first, second = generate_trace_id(), generate_request_id()
        assert len(first) == 36 and first.count("-") == 4
        assert len(second) == 36
        assert first != second
        assert generate_trace_id() != generate_trace_id()

    def test_processor_adds_context(self):
        set_trace_id("trace-1")
        set_request_id("request-1")
        event = add_request_context(None, "info", {"event": "x"})

        assert event["trace_id"] == "trace-1"
        assert event["request_id"] == "request-1"
        assert "service" in event

    def test_processor_without_context(self):
        event = add_request_context(None, "info", {"event": "x"})
        assert "trace_id" not in event
        assert "request_id" not in event


def test_usage_limit_warning_is_logged():
    from deals.core.usage import UpstreamUsageTracker

    tracker = UpstreamUsageTracker(limit=2)
    with patch("deals.core.usage.logger") as mock_logger:
        tracker.record_usage()
        mock_logger.warning.assert_not_called()
        tracker.record_usage()

    mock_logger.warning.assert_called_once()
    args, kwargs = mock_logger.warning.call_args
    assert args == ("upstream_usage_limit_reached",)
    assert kwargs["used"] == 2
