"""
Domain event publishing.

Services receive an optional ``publisher`` argument implementing
core.protocols.EventPublisher. When it is omitted the publisher configured
by settings.EVENT_PUBLISHER_CLASS is used.

Event types:
    job.cancelled, job.completed,
    quote.submitted, quote.updated, quote.accepted, quote.declined,
    payment.succeeded, payment.failed, payment.released,
    refund.processed, wallet.withdrawal_processed, wallet.account_verified

Usage:
    from core.events import publish_event

    with cls.atomic():
        ...
    publish_event(publisher, "job.cancelled", provider_id, {"job_id": str(job.id)})
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils.module_loading import import_string

if TYPE_CHECKING:
    from typing import Any

    from core.protocols import EventPublisher

logger = logging.getLogger(__name__)

DEFAULT_PUBLISHER_CLASS = "core.events.LoggingEventPublisher"


class LoggingEventPublisher:
    """
    Publisher that writes every event to the application log.

    Stands in for a push/realtime delivery collaborator, which lives
    outside this service.
    """

    def publish(self, event_type: str, recipient_id: Any, payload: dict[str, Any]) -> None:
        logger.info(
            f"Event {event_type}",
            extra={
                "event_type": event_type,
                "recipient_id": str(recipient_id),
                "payload": payload,
            },
        )


@lru_cache(maxsize=1)
def get_event_publisher() -> EventPublisher:
    """Instantiate the publisher named by settings.EVENT_PUBLISHER_CLASS."""
    path = getattr(settings, "EVENT_PUBLISHER_CLASS", DEFAULT_PUBLISHER_CLASS)
    return import_string(path)()


def publish_event(
    publisher: EventPublisher | None,
    event_type: str,
    recipient_id: Any,
    payload: dict[str, Any],
) -> bool:
    """
    Publish an event without letting delivery failures escape.

    Must be called after the triggering state change committed. A failed
    delivery is logged and reported through the return value only.

    Returns:
        True if the publisher accepted the event
    """
    publisher = publisher or get_event_publisher()
    try:
        publisher.publish(event_type, recipient_id, payload)
    except Exception:
        logger.exception(
            f"Failed to publish event {event_type}",
            extra={"event_type": event_type, "recipient_id": str(recipient_id)},
        )
        return False
    return True
