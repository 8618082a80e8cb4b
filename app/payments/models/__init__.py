"""
Payment models.

Models:
    Transaction: A client's payment for a job with its commission split
    Wallet: A provider's pending/available/withdrawn balances
    WebhookEvent: Stored Stripe webhook event for idempotent processing
"""

from payments.models.transaction import Transaction, split_commission
from payments.models.wallet import Wallet
from payments.models.webhook_event import MAX_WEBHOOK_RETRIES, WebhookEvent

__all__ = [
    "MAX_WEBHOOK_RETRIES",
    "Transaction",
    "Wallet",
    "WebhookEvent",
    "split_commission",
]
