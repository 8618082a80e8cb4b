"""
State machine enums for payment models.

This module defines the state and choice enums used by payment models with
django-fsm.
"""

from payments.state_machines.states import (
    ACTIVE_TRANSACTION_STATUSES,
    PaymentMethod,
    StripeAccountStatus,
    TransactionStatus,
    WebhookEventStatus,
)

__all__ = [
    "ACTIVE_TRANSACTION_STATUSES",
    "PaymentMethod",
    "StripeAccountStatus",
    "TransactionStatus",
    "WebhookEventStatus",
]
