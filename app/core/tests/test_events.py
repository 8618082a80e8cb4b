"""
Tests for event publishing helpers.
"""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

from django.test import override_settings

from core.events import LoggingEventPublisher, get_event_publisher, publish_event
from core.protocols import EventPublisher


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def publish(self, event_type, recipient_id, payload):
        self.events.append((event_type, recipient_id, payload))


class TestPublishEvent:
    """Tests for publish_event()."""

    def test_delivers_to_given_publisher(self):
        publisher = RecordingPublisher()

        delivered = publish_event(publisher, "job.cancelled", 7, {"job_id": "abc"})

        assert delivered is True
        assert publisher.events == [("job.cancelled", 7, {"job_id": "abc"})]

    def test_failure_is_logged_not_raised(self, caplog):
        publisher = MagicMock()
        publisher.publish.side_effect = ConnectionError("socket closed")

        with caplog.at_level(logging.ERROR):
            delivered = publish_event(publisher, "quote.accepted", 1, {})

        assert delivered is False
        assert "Failed to publish event quote.accepted" in caplog.text

    def test_logging_publisher_is_default(self, caplog):
        with caplog.at_level(logging.INFO, logger="core.events"):
            publish_event(None, "payment.released", 3, {"transaction_id": "t1"})

        assert "Event payment.released" in caplog.text


class TestGetEventPublisher:
    """Tests for publisher resolution from settings."""

    @override_settings(EVENT_PUBLISHER_CLASS="core.tests.test_events.RecordingPublisher")
    def test_uses_configured_class(self):
        get_event_publisher.cache_clear()

        assert isinstance(get_event_publisher(), RecordingPublisher)

    def test_protocol_runtime_check(self):
        assert isinstance(LoggingEventPublisher(), EventPublisher)
        assert isinstance(RecordingPublisher(), EventPublisher)
