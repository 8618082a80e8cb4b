"""
Celery tasks for the payments app.

Webhook pipeline:
    process_webhook_event    - run the handler for one stored Stripe event
    retry_failed_webhooks    - requeue failed events and events never queued
    cleanup_stuck_webhooks   - fail events a dead worker left in PROCESSING
    cleanup_old_webhooks     - drop processed events past retention

Settlement:
    process_pending_releases        - the settlement sweep
    fail_stale_pending_transactions - reconcile abandoned card payments with Stripe

Beat schedules for the periodic ones are seeded by
payments/migrations/0002_payment_maintenance_schedules.py.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.utils import timezone

from payments.models import MAX_WEBHOOK_RETRIES, WebhookEvent
from payments.services import SettlementService
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)

STUCK_PROCESSING_THRESHOLD_MINUTES = 30
RETRY_BATCH_SIZE = 100

# PENDING rows older than this were stored while the broker was unreachable
UNQUEUED_PENDING_THRESHOLD_MINUTES = 5


def _context(webhook_event: WebhookEvent) -> dict:
    return {
        "webhook_event_id": str(webhook_event.id),
        "stripe_event_id": webhook_event.stripe_event_id,
        "event_type": webhook_event.event_type,
        "retry_count": webhook_event.retry_count,
    }


def _save_status(webhook_event: WebhookEvent) -> None:
    webhook_event.save(
        update_fields=["status", "retry_count", "processed_at", "error_message", "updated_at"]
    )


# =============================================================================
# Webhook Pipeline
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_WEBHOOK_RETRIES},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Dispatch one stored event to its handler.

    Outcomes ("status" in the returned dict):
        processed          - handler succeeded
        already_processed  - nothing to do (redelivery or duplicate queueing)
        not_found          - the row is gone
        handler_failed     - handler returned a failure; left FAILED for
                             retry_failed_webhooks

    An exception from the handler also leaves the row FAILED and is
    re-raised so Celery retries with backoff. Handlers open their own
    transactions; several of them call Stripe, which must happen outside one.
    """
    from payments.webhooks.handlers import dispatch_webhook

    webhook_event = WebhookEvent.objects.filter(pk=webhook_event_id).first()
    if webhook_event is None:
        logger.error("Webhook event not found", extra={"webhook_event_id": str(webhook_event_id)})
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.is_processed:
        logger.info("Webhook event already processed", extra=_context(webhook_event))
        return {"status": "already_processed", "webhook_event_id": str(webhook_event.id)}

    webhook_event.mark_processing()
    _save_status(webhook_event)

    try:
        result = dispatch_webhook(webhook_event)
    except Exception as e:
        webhook_event.mark_failed(f"{type(e).__name__}: {e}")
        _save_status(webhook_event)
        logger.exception("Webhook handler raised", extra=_context(webhook_event))
        raise

    if result.success:
        webhook_event.mark_processed()
        _save_status(webhook_event)
        logger.info("Webhook processed", extra=_context(webhook_event))
        return {
            "status": "processed",
            "webhook_event_id": str(webhook_event.id),
            "stripe_event_id": webhook_event.stripe_event_id,
        }

    error = result.error or "Handler returned failure"
    webhook_event.mark_failed(error)
    _save_status(webhook_event)
    logger.warning(
        f"Webhook handler failed: {error}",
        extra={**_context(webhook_event), "error_code": result.error_code},
    )
    return {
        "status": "handler_failed",
        "webhook_event_id": str(webhook_event.id),
        "error": error,
        "error_code": result.error_code,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """Requeue retryable FAILED events and PENDING events that never reached the broker."""
    now = timezone.now()
    candidates = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED, retry_count__lt=MAX_WEBHOOK_RETRIES
    ) | WebhookEvent.objects.filter(
        status=WebhookEventStatus.PENDING,
        created_at__lt=now - timedelta(minutes=UNQUEUED_PENDING_THRESHOLD_MINUTES),
    )
    batch = list(candidates.order_by("created_at")[:RETRY_BATCH_SIZE])

    for webhook_event in batch:
        process_webhook_event.delay(str(webhook_event.id))
        logger.info("Webhook requeued", extra=_context(webhook_event))

    if batch:
        logger.info(f"Requeued {len(batch)} webhook events")
    return {"queued_count": len(batch)}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """Mark PROCESSING rows untouched for STUCK_PROCESSING_THRESHOLD_MINUTES as FAILED."""
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)
    stuck = list(
        WebhookEvent.objects.filter(status=WebhookEventStatus.PROCESSING, updated_at__lt=threshold)
    )

    for webhook_event in stuck:
        webhook_event.mark_failed("Processing timed out - reset for retry")
        _save_status(webhook_event)
        logger.warning("Stuck webhook reset to failed", extra=_context(webhook_event))

    return {"reset_count": len(stuck)}


@shared_task
def cleanup_old_webhooks(days: int = 90) -> dict:
    """Delete PROCESSED rows older than `days`; FAILED rows stay for inspection."""
    cutoff = timezone.now() - timedelta(days=days)
    deleted_count, _ = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSED, processed_at__lt=cutoff
    ).delete()

    if deleted_count:
        logger.info(
            f"Deleted {deleted_count} processed webhook events",
            extra={"cutoff_date": cutoff.isoformat()},
        )
    return {"deleted_count": deleted_count}


# =============================================================================
# Settlement
# =============================================================================


@shared_task
def process_pending_releases() -> dict:
    """Credit missed completions and release eligible pending earnings."""
    return SettlementService.process_pending_releases()


@shared_task
def fail_stale_pending_transactions() -> dict:
    """Reconcile card payments still PENDING after PAYMENT_PENDING_TIMEOUT_HOURS with Stripe."""
    return SettlementService.fail_stale_pending_transactions()
