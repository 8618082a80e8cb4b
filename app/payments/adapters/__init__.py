"""
Payment adapters for external services.

All Stripe calls go through StripeAdapter for consistent error handling,
timeouts, idempotency and logging.

Usage:
    from payments.adapters import StripeAdapter, CreatePaymentIntentParams
"""

from payments.adapters.stripe_adapter import (
    AccountLinkResult,
    ConnectAccountResult,
    CreatePaymentIntentParams,
    IdempotencyKeyGenerator,
    PaymentIntentResult,
    PayoutResult,
    RefundResult,
    StripeAdapter,
    TransferResult,
)

__all__ = [
    "AccountLinkResult",
    "ConnectAccountResult",
    "CreatePaymentIntentParams",
    "IdempotencyKeyGenerator",
    "PaymentIntentResult",
    "PayoutResult",
    "RefundResult",
    "StripeAdapter",
    "TransferResult",
]
