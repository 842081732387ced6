"""
Unit tests for the shared structured-logging processors.
"""

import pytest

from shared.logging import (
    add_correlation_context,
    add_service_context,
    clear_context,
    configure_logging,
    set_request_id,
)


class TestLoggingProcessors:
    """Test cases for the structlog processors."""

    @pytest.fixture(autouse=True)
    def reset_context(self):
        yield
        clear_context()

    def test_service_context_comes_from_config(self):
        configure_logging("symptoms", "info", env="staging")

        event = add_service_context(None, "info", {"logger": "symptoms.cache.coordinator", "event": "Cache hit"})

        assert event["service"] == "symptoms"
        assert event["env"] == "staging"

    def test_explicit_service_is_not_overwritten(self):
        configure_logging("symptoms", "info")

        event = add_service_context(None, "info", {"service": "worker", "event": "x"})

        assert event["service"] == "worker"
        assert event["env"] == "local"

    def test_request_id_is_attached(self):
        request_id = set_request_id("req-123")

        event = add_correlation_context(None, "info", {"event": "x"})

        assert request_id == "req-123"
        assert event["request_id"] == "req-123"

    def test_no_request_id_outside_a_request(self):
        assert "request_id" not in add_correlation_context(None, "info", {"event": "x"})
