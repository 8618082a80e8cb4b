"""
State and choice enums for payment models.

These are Django TextChoices for database storage and admin integration;
TransactionStatus backs a django-fsm field.

State Machines Overview:

Transaction States:
    pending → processing → completed
    pending/processing → failed
    completed → refunded
    completed → disputed

WebhookEvent States:
    pending → processing → processed
    pending → processing → failed (can retry)
"""

from django.db import models


class TransactionStatus(models.TextChoices):
    """
    States for the Transaction model lifecycle.

    Terminal states: FAILED, REFUNDED, DISPUTED

    Release is tracked separately by Transaction.released_at; a released
    transaction stays COMPLETED.
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"
    DISPUTED = "disputed", "Disputed"


class PaymentMethod(models.TextChoices):
    """
    How the client pays.

    - CARD: Stripe PaymentIntent, completed by webhook
    - CASH: Paid in person, confirmed by the provider
    - BANK_TRANSFER: Recorded by operators only
    """

    CARD = "card", "Card"
    CASH = "cash", "Cash"
    BANK_TRANSFER = "bank_transfer", "Bank Transfer"


class StripeAccountStatus(models.TextChoices):
    """
    Verification status of a provider's Stripe Connect account.

    Only VERIFIED accounts receive direct transfers.
    """

    PENDING = "pending", "Pending"
    VERIFIED = "verified", "Verified"
    REJECTED = "rejected", "Rejected"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


# Statuses that block a new payment initiation for the same job
ACTIVE_TRANSACTION_STATUSES = (
    TransactionStatus.PENDING,
    TransactionStatus.PROCESSING,
    TransactionStatus.COMPLETED,
)


__all__ = [
    "TransactionStatus",
    "PaymentMethod",
    "StripeAccountStatus",
    "WebhookEventStatus",
    "ACTIVE_TRANSACTION_STATUSES",
]
