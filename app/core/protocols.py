"""
Protocol definitions for infrastructure collaborators.

Protocols define contracts that collaborators must fulfill, enabling:
- Duck typing with static type checking
- Dependency inversion (services depend on abstractions)
- Easy mocking in tests

Available Protocols:
    EventPublisher: Fire-and-forget domain event emission

Usage:
    from core.protocols import EventPublisher

    class PushPublisher:
        def publish(self, event_type, recipient_id, payload): ...

    # PushPublisher is a valid EventPublisher
    # even without explicit inheritance (duck typing)
    publisher: EventPublisher = PushPublisher()
    JobService.cancel_job(job_id, client, reason, publisher=publisher)

Note:
    The default implementation lives in core.events and is selected by
    the EVENT_PUBLISHER_CLASS setting.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from typing import Any


@runtime_checkable
class EventPublisher(Protocol):
    """
    Protocol for domain event delivery.

    Implementations deliver notifications such as quote.accepted or
    payment.released to a user. Delivery is best-effort: services call
    publish() only after their database transaction committed, and a
    raised exception is logged by the caller, never propagated.

    Example:
        class RecordingPublisher:
            def __init__(self):
                self.events = []

            def publish(self, event_type, recipient_id, payload):
                self.events.append((event_type, recipient_id, payload))
    """

    def publish(self, event_type: str, recipient_id: Any, payload: dict[str, Any]) -> None:
        """
        Deliver one event.

        Args:
            event_type: Dotted event name (e.g. "quote.accepted")
            recipient_id: Primary key of the user to notify
            payload: JSON-serializable event body
        """
        ...
