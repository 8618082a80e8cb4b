"""
Payment-specific exceptions.

Exception Hierarchy:
    InsufficientBalanceError - Wallet guard failed (no mutation applied)
    StripeError - Base for all Stripe errors (PAYMENT_PROVIDER_ERROR)
    ├── StripeCardDeclinedError - Card declined (permanent)
    ├── StripeInvalidAccountError - Invalid connected account (permanent)
    ├── StripeInvalidRequestError - Invalid request params (permanent)
    ├── StripeRateLimitError - Rate limited (transient, retry)
    ├── StripeAPIUnavailableError - API unavailable (transient, retry)
    └── StripeTimeoutError - Request timeout (transient, retry)
    LockAcquisitionError - Distributed lock timeout (inherits ConflictError)

Usage:
    from payments.exceptions import InsufficientBalanceError, StripeError

    try:
        wallet.release_pending_balance(6000)
    except InsufficientBalanceError as e:
        return ServiceResult.from_exception(e)

    try:
        StripeAdapter.create_transfer(...)
    except StripeError as e:
        if e.is_retryable:
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError, ExternalServiceError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Wallet Exceptions
# =============================================================================


class InsufficientBalanceError(BaseApplicationError):
    """
    Raised by Wallet methods when a balance bucket would go negative.

    The wallet is left untouched when this is raised.

    Example:
        if self.pending_balance_cents < amount:
            raise InsufficientBalanceError(
                "Insufficient pending balance",
                details={"pending_balance_cents": 5000, "requested_cents": 6000},
            )
    """

    default_error_code: str = "INSUFFICIENT_BALANCE"


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(ExternalServiceError):
    """
    Base exception for all Stripe-related errors.

    Attributes:
        stripe_code: Stripe's internal error code
        decline_code: Card decline code (if applicable)
        is_retryable: Whether the operation can be retried

    Services surface every StripeError as PAYMENT_PROVIDER_ERROR; the
    subclass only decides retry behaviour.
    """

    default_error_code: str = "PAYMENT_PROVIDER_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class StripeCardDeclinedError(StripeError):
    """
    Card was declined by the issuing bank.

    The decline_code attribute contains the specific reason
    (generic_decline, insufficient_funds, expired_card, ...).
    """

    is_retryable: bool = False


class StripeInvalidAccountError(StripeError):
    """
    Invalid Stripe Connect account.

    Raised when the destination account of a transfer or payout is
    missing, restricted or not yet able to receive funds. Needs manual
    intervention on the provider's account.
    """

    is_retryable: bool = False


class StripeInvalidRequestError(StripeError):
    """
    Invalid request parameters sent to Stripe, or a webhook whose
    signature does not verify.

    Never succeeds with the same parameters.
    """

    is_retryable: bool = False


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class StripeRateLimitError(StripeError):
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """
    Stripe API is temporarily unavailable (network error or 5xx).
    """

    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    """
    Stripe API call timed out.

    The operation may have succeeded on Stripe's side. Retrying with the
    same idempotency key returns the original response if it did.
    """

    is_retryable: bool = True


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Another process holds the lock (a concurrent release or refund of the
    same transaction, or a running settlement sweep).
    """

    default_error_code: str = "INVALID_STATE"


__all__ = [
    "InsufficientBalanceError",
    "StripeError",
    "StripeCardDeclinedError",
    "StripeInvalidAccountError",
    "StripeInvalidRequestError",
    "StripeRateLimitError",
    "StripeAPIUnavailableError",
    "StripeTimeoutError",
    "LockAcquisitionError",
]
