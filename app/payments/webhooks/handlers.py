"""
Webhook event handlers for Stripe events.

This module provides a handler registry and implementations for
processing the Stripe webhook events the marketplace cares about.

Handlers never trust ordering or uniqueness of deliveries: every one
delegates to a service that re-checks state on a locked row, so a
replayed event is a no-op.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("custom.event")
    def handle_custom_event(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from core.services import ServiceResult
from payments.models import Transaction
from payments.services import PaymentService, SettlementService, WalletService
from payments.state_machines import TransactionStatus

if TYPE_CHECKING:
    from payments.models import WebhookEvent


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler("payment_intent.succeeded")
        def handle_payment_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
            ...
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to its registered handler.

    Unknown event types succeed without action so Stripe stops
    redelivering them.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )
    return handler(webhook_event)


def _missing_object_id(webhook_event: WebhookEvent) -> ServiceResult:
    logger.error(
        f"{webhook_event.event_type}: event has no object id",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )
    return ServiceResult.failure("Event payload has no object id", error_code="VALIDATION_ERROR")


# =============================================================================
# Payment Intent Handlers
# =============================================================================


@register_handler("payment_intent.succeeded")
def handle_payment_intent_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
    intent = webhook_event.get_object()
    payment_intent_id = intent.get("id")
    if not payment_intent_id:
        return _missing_object_id(webhook_event)

    return PaymentService.complete_card_payment(
        payment_intent_id,
        charge_id=intent.get("latest_charge") or "",
    )


@register_handler("payment_intent.processing")
def handle_payment_intent_processing(webhook_event: WebhookEvent) -> ServiceResult:
    payment_intent_id = webhook_event.get_object_id()
    if not payment_intent_id:
        return _missing_object_id(webhook_event)

    return PaymentService.mark_card_processing(payment_intent_id)


@register_handler("payment_intent.payment_failed")
def handle_payment_intent_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Fail the transaction with the decline message Stripe reports.

    A failure arriving after completion is logged and ignored.
    """
    intent = webhook_event.get_object()
    payment_intent_id = intent.get("id")
    if not payment_intent_id:
        return _missing_object_id(webhook_event)

    last_error = intent.get("last_payment_error") or {}
    reason = last_error.get("message") or "Payment failed"

    result = PaymentService.fail_card_payment(payment_intent_id, reason=reason)
    if result.error_code == "INVALID_STATE":
        logger.warning(
            "Ignoring payment failure for closed transaction",
            extra={"payment_intent_id": payment_intent_id, "error": result.error},
        )
        return ServiceResult.success(None)
    return result


# =============================================================================
# Connect Handlers
# =============================================================================


@register_handler("account.updated")
def handle_account_updated(webhook_event: WebhookEvent) -> ServiceResult:
    account = webhook_event.get_object()
    stripe_account_id = account.get("id")
    if not stripe_account_id:
        return _missing_object_id(webhook_event)

    return WalletService.update_account_status(stripe_account_id, account)


@register_handler("transfer.created")
def handle_transfer_created(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Link a transfer to its transaction.

    The transfer id is normally stored by the settlement path already;
    this covers a transfer whose local write never happened.
    """
    transfer = webhook_event.get_object()
    transfer_id = transfer.get("id")
    if not transfer_id:
        return _missing_object_id(webhook_event)

    transaction_id = (transfer.get("metadata") or {}).get("transaction_id")
    if not transaction_id:
        logger.info(
            "Transfer without transaction metadata",
            extra={"stripe_transfer_id": transfer_id},
        )
        return ServiceResult.success(None)

    updated = Transaction.objects.filter(pk=transaction_id, stripe_transfer_id="").update(
        stripe_transfer_id=transfer_id
    )
    logger.info(
        "Transfer acknowledged",
        extra={
            "stripe_transfer_id": transfer_id,
            "transaction_id": transaction_id,
            "linked": bool(updated),
        },
    )
    return ServiceResult.success(None)


@register_handler("payout.failed")
def handle_payout_failed(webhook_event: WebhookEvent) -> ServiceResult:
    payout = webhook_event.get_object()
    payout_id = payout.get("id")
    stripe_account_id = webhook_event.payload.get("account")
    if not payout_id or not stripe_account_id:
        return _missing_object_id(webhook_event)

    return WalletService.rollback_failed_payout(
        stripe_account_id,
        amount_cents=payout.get("amount", 0),
        payout_id=payout_id,
    )


# =============================================================================
# Charge Handlers
# =============================================================================


@register_handler("charge.refunded")
def handle_charge_refunded(webhook_event: WebhookEvent) -> ServiceResult:
    charge = webhook_event.get_object()
    payment_intent_id = charge.get("payment_intent")
    if not payment_intent_id:
        return _missing_object_id(webhook_event)

    refunds = (charge.get("refunds") or {}).get("data") or []
    refund_id = refunds[0].get("id", "") if refunds else ""

    return SettlementService.record_external_refund(
        payment_intent_id,
        amount_cents=charge.get("amount_refunded", 0),
        refund_id=refund_id,
    )


@register_handler("charge.dispute.created")
def handle_dispute_created(webhook_event: WebhookEvent) -> ServiceResult:
    """Move the disputed payment's transaction to DISPUTED."""
    dispute = webhook_event.get_object()
    payment_intent_id = dispute.get("payment_intent")
    if not payment_intent_id:
        return _missing_object_id(webhook_event)

    txn = Transaction.objects.filter(stripe_payment_intent_id=payment_intent_id).first()
    if txn is None:
        logger.error(
            "Dispute for unknown PaymentIntent",
            extra={"payment_intent_id": payment_intent_id},
        )
        return ServiceResult.failure(
            f"No transaction for PaymentIntent {payment_intent_id}",
            error_code="INCONSISTENCY",
        )

    with SettlementService.atomic():
        txn = Transaction.objects.select_for_update().get(pk=txn.pk)
        if txn.status == TransactionStatus.DISPUTED:
            return ServiceResult.success(txn)
        if txn.status != TransactionStatus.COMPLETED:
            return ServiceResult.failure(
                f"Only completed payments can be disputed (status: {txn.status})",
                error_code="INVALID_STATE",
            )
        txn.dispute(dispute_id=dispute.get("id", ""), reason=dispute.get("reason", ""))
        txn.save()

    logger.warning(
        "Payment disputed",
        extra={"transaction_id": str(txn.id), "payment_intent_id": payment_intent_id},
    )
    return ServiceResult.success(txn)
