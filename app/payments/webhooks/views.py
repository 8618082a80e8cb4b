"""
Stripe webhook endpoint.

Only three things happen in the request: the signature is checked, the event
is stored (once per Stripe event id) and a Celery task is queued. Handlers
run in the worker, so a slow or failing handler never makes Stripe retry
the delivery.
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import StripeAdapter
from payments.exceptions import StripeInvalidRequestError
from payments.models import WebhookEvent

logger = logging.getLogger(__name__)


def _queue(webhook_event: WebhookEvent, duplicate: bool) -> None:
    from payments.tasks import process_webhook_event

    context = {
        "stripe_event_id": webhook_event.stripe_event_id,
        "event_type": webhook_event.event_type,
        "webhook_event_id": str(webhook_event.id),
    }
    try:
        process_webhook_event.delay(str(webhook_event.id))
    except Exception:
        # The PENDING row is picked up again by retry_failed_webhooks
        logger.error("Could not queue webhook event", extra=context, exc_info=True)
        return
    logger.info(
        f"Webhook queued: {webhook_event.event_type}",
        extra={**context, "duplicate": duplicate},
    )


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Accept a Stripe event.

    Responses:
        400 - no Stripe-Signature header, a signature that does not verify,
              or an event without id/type; nothing is stored
        200 "Already processed" - redelivery of an event handled before
        200 "Accepted" - stored (or found unprocessed) and queued
    """
    signature = request.headers.get("Stripe-Signature", "")
    if not signature:
        logger.warning("Webhook rejected: no Stripe-Signature header")
        return HttpResponse("Missing signature", status=400)

    try:
        event_data = StripeAdapter.verify_webhook_signature(request.body, signature)
    except StripeInvalidRequestError as e:
        logger.warning("Webhook rejected: bad signature", extra={"error": str(e)})
        return HttpResponse("Invalid signature", status=400)

    if not event_data.get("id") or not event_data.get("type"):
        logger.warning("Webhook rejected: event has no id or type")
        return HttpResponse("Invalid event", status=400)

    webhook_event, created = WebhookEvent.receive(event_data)
    if webhook_event.is_processed:
        logger.info(
            "Webhook redelivered after processing",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "event_type": webhook_event.event_type,
            },
        )
        return HttpResponse("Already processed", status=200)

    _queue(webhook_event, duplicate=not created)
    return HttpResponse("Accepted", status=200)
