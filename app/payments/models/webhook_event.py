"""
Inbound Stripe events, stored before any processing happens.

The endpoint writes the row and returns; payments.tasks.process_webhook_event
does the work later. stripe_event_id is unique, so Stripe's at-least-once
redeliveries land on the existing row instead of creating a second one.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import WebhookEventStatus

MAX_WEBHOOK_RETRIES = 5


def event_object(payload) -> dict:
    """data.object of a Stripe event body; {} when the body is not shaped like one."""
    data = payload.get("data") if isinstance(payload, dict) else None
    obj = data.get("object") if isinstance(data, dict) else None
    return obj if isinstance(obj, dict) else {}


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    One Stripe event and where it is in processing.

    pending -> processing -> processed, or -> failed. Failed rows are retried
    by retry_failed_webhooks until retry_count reaches MAX_WEBHOOK_RETRIES.
    """

    stripe_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe event id (evt_...); duplicate deliveries collide on it",
    )
    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Stripe event type, e.g. payment_intent.succeeded",
    )
    object_id = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
        help_text="Id of the Stripe object the event is about (pi_, acct_, po_ ...)",
    )
    payload = models.JSONField(
        help_text="Event body as received from Stripe",
    )
    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )
    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When a handler last finished the event successfully",
    )
    error_message = models.TextField(
        blank=True,
        help_text="Why the last attempt failed",
    )
    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Processing attempts so far",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="payments_wh_status_created_idx"),
            models.Index(fields=["status", "retry_count"], name="payments_wh_status_retry_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.event_type} {self.stripe_event_id}"

    @classmethod
    def receive(cls, event_data: dict) -> tuple[WebhookEvent, bool]:
        """Store a verified event body, or return the row an earlier delivery made."""
        return cls.objects.get_or_create(
            stripe_event_id=event_data["id"],
            defaults={
                "event_type": event_data["type"],
                "object_id": event_object(event_data).get("id") or "",
                "payload": event_data,
                "status": WebhookEventStatus.PENDING,
            },
        )

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def can_retry(self) -> bool:
        return self.status == WebhookEventStatus.FAILED and self.retry_count < MAX_WEBHOOK_RETRIES

    # Status helpers; callers save.

    def mark_processing(self) -> None:
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = ""

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message

    def get_object(self) -> dict:
        return event_object(self.payload)

    def get_object_id(self) -> str | None:
        return self.get_object().get("id")
