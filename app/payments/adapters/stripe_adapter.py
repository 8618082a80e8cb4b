"""
Stripe API adapter for payment operations.

All Stripe calls go through StripeAdapter so that timeouts, idempotency,
error translation and logging are handled the same way everywhere. Adapter
methods are never called inside a database transaction.

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)

Usage:
    from payments.adapters import (
        CreatePaymentIntentParams,
        IdempotencyKeyGenerator,
        StripeAdapter,
    )

    result = StripeAdapter.create_payment_intent(
        CreatePaymentIntentParams(
            amount_cents=10000,
            currency="usd",
            metadata={"job_id": str(job.id)},
            idempotency_key=IdempotencyKeyGenerator.generate("create_intent", txn_id),
        )
    )
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import stripe
from django.conf import settings

from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeInvalidAccountError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreatePaymentIntentParams:
    """
    Parameters for creating a Stripe PaymentIntent.

    Attributes:
        amount_cents: Payment amount in smallest currency unit
        currency: ISO 4217 currency code
        idempotency_key: Unique key for idempotent creation
        metadata: Key-value pairs attached to the PaymentIntent
    """

    amount_cents: int
    currency: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)
    payment_method_types: list[str] = field(default_factory=lambda: ["card"])

    def __post_init__(self) -> None:
        if self.amount_cents <= 0:
            raise ValueError("amount_cents must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if not self.currency:
            raise ValueError("currency is required")


@dataclass
class PaymentIntentResult:
    id: str
    status: str
    amount_cents: int
    currency: str
    client_secret: str | None = None
    latest_charge_id: str = ""
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class TransferResult:
    id: str
    amount_cents: int
    currency: str
    destination_account: str
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class RefundResult:
    id: str
    amount_cents: int
    currency: str
    status: str
    payment_intent_id: str


@dataclass
class ConnectAccountResult:
    id: str
    charges_enabled: bool = False
    payouts_enabled: bool = False


@dataclass
class AccountLinkResult:
    url: str
    expires_at: int


@dataclass
class PayoutResult:
    id: str
    amount_cents: int
    currency: str
    status: str
    stripe_account_id: str


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    Example:
        key = IdempotencyKeyGenerator.generate("transfer", transaction.id)
        # "transfer:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are classmethods with no instance state, safe to use from
    Celery workers. Stripe SDK errors are translated to payments.exceptions
    StripeError subclasses.

    Operations:
        create_payment_intent, retrieve_payment_intent, cancel_payment_intent,
        create_transfer, create_refund,
        create_connect_account, create_account_link, create_payout,
        verify_webhook_signature
    """

    @staticmethod
    def _configure_stripe() -> None:
        stripe.api_key = settings.STRIPE_SECRET_KEY
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def _execute(
        cls,
        log_context: dict[str, Any],
        call: Callable[[], Any],
        result_context: Callable[[Any], dict[str, Any]],
    ) -> Any:
        """
        Run one Stripe call with timing, logging and error translation.

        Args:
            log_context: Structured context logged on start, success and error
            call: Zero-argument callable performing the SDK request
            result_context: Extra log fields extracted from the SDK response
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            response = call()
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Stripe operation completed",
            extra={**log_context, **result_context(response), "duration_ms": duration_ms},
        )
        return response

    # =========================================================================
    # Payments
    # =========================================================================

    @classmethod
    def create_payment_intent(cls, params: CreatePaymentIntentParams) -> PaymentIntentResult:
        """
        Create a Stripe PaymentIntent with automatic capture.

        Returns:
            PaymentIntentResult including the client_secret

        Raises:
            StripeError: Any Stripe failure, translated
        """
        intent = cls._execute(
            {
                "operation": "create_payment_intent",
                "amount_cents": params.amount_cents,
                "currency": params.currency,
                "idempotency_key": params.idempotency_key,
            },
            lambda: stripe.PaymentIntent.create(
                amount=params.amount_cents,
                currency=params.currency,
                metadata=params.metadata,
                payment_method_types=params.payment_method_types,
                idempotency_key=params.idempotency_key,
            ),
            lambda intent: {"payment_intent_id": intent.id, "status": intent.status},
        )
        return cls._payment_intent_result(intent)

    @classmethod
    def retrieve_payment_intent(cls, payment_intent_id: str) -> PaymentIntentResult:
        """
        Fetch the current state of a PaymentIntent.

        Raises:
            StripeError: Any Stripe failure, translated
        """
        intent = cls._execute(
            {"operation": "retrieve_payment_intent", "payment_intent_id": payment_intent_id},
            lambda: stripe.PaymentIntent.retrieve(payment_intent_id),
            lambda intent: {"status": intent.status},
        )
        return cls._payment_intent_result(intent)

    @classmethod
    def cancel_payment_intent(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
        reason: str = "abandoned",
    ) -> PaymentIntentResult:
        """
        Cancel a PaymentIntent so it can no longer be confirmed.

        Stripe refuses to cancel an intent that already succeeded or is
        processing; that surfaces as StripeInvalidRequestError.

        Raises:
            StripeError: Any Stripe failure, translated
        """
        intent = cls._execute(
            {
                "operation": "cancel_payment_intent",
                "payment_intent_id": payment_intent_id,
                "reason": reason,
                "idempotency_key": idempotency_key,
            },
            lambda: stripe.PaymentIntent.cancel(
                payment_intent_id,
                cancellation_reason=reason,
                idempotency_key=idempotency_key,
            ),
            lambda intent: {"status": intent.status},
        )
        return cls._payment_intent_result(intent)

    @staticmethod
    def _payment_intent_result(intent: Any) -> PaymentIntentResult:
        return PaymentIntentResult(
            id=intent.id,
            status=intent.status,
            amount_cents=intent.amount,
            currency=intent.currency,
            client_secret=getattr(intent, "client_secret", None),
            latest_charge_id=getattr(intent, "latest_charge", None) or "",
            metadata=dict(intent.metadata or {}),
        )

    @classmethod
    def create_refund(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
        amount_cents: int | None = None,
        metadata: dict[str, str] | None = None,
    ) -> RefundResult:
        """
        Refund a PaymentIntent (fully when amount_cents is None).

        Raises:
            StripeError: Any Stripe failure, translated
        """
        refund_params: dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "metadata": metadata or {},
        }
        if amount_cents is not None:
            refund_params["amount"] = amount_cents

        refund = cls._execute(
            {
                "operation": "create_refund",
                "payment_intent_id": payment_intent_id,
                "amount_cents": amount_cents,
                "idempotency_key": idempotency_key,
            },
            lambda: stripe.Refund.create(idempotency_key=idempotency_key, **refund_params),
            lambda refund: {"refund_id": refund.id, "status": refund.status},
        )

        return RefundResult(
            id=refund.id,
            amount_cents=refund.amount,
            currency=refund.currency,
            status=refund.status,
            payment_intent_id=refund.payment_intent,
        )

    # =========================================================================
    # Connect
    # =========================================================================

    @classmethod
    def create_transfer(
        cls,
        amount_cents: int,
        destination_account: str,
        idempotency_key: str,
        currency: str = "usd",
        metadata: dict[str, str] | None = None,
    ) -> TransferResult:
        """
        Transfer funds from the platform balance to a connected account.

        Raises:
            StripeInvalidAccountError: Destination cannot receive transfers
            StripeError: Any other Stripe failure, translated
        """
        transfer = cls._execute(
            {
                "operation": "create_transfer",
                "amount_cents": amount_cents,
                "destination_account": destination_account,
                "idempotency_key": idempotency_key,
            },
            lambda: stripe.Transfer.create(
                amount=amount_cents,
                currency=currency,
                destination=destination_account,
                metadata=metadata or {},
                idempotency_key=idempotency_key,
            ),
            lambda transfer: {"transfer_id": transfer.id},
        )

        return TransferResult(
            id=transfer.id,
            amount_cents=transfer.amount,
            currency=transfer.currency,
            destination_account=transfer.destination,
            metadata=dict(transfer.metadata or {}),
        )

    @classmethod
    def create_connect_account(
        cls,
        email: str,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
    ) -> ConnectAccountResult:
        """
        Create a Stripe Express account for a provider.

        US individual account with the transfers capability and the
        "general contractors" merchant category (MCC 1520).
        """
        account = cls._execute(
            {"operation": "create_connect_account", "idempotency_key": idempotency_key},
            lambda: stripe.Account.create(
                type="express",
                country="US",
                email=email,
                business_type="individual",
                capabilities={"transfers": {"requested": True}},
                business_profile={"mcc": "1520"},
                metadata=metadata or {},
                idempotency_key=idempotency_key,
            ),
            lambda account: {"stripe_account_id": account.id},
        )

        return ConnectAccountResult(
            id=account.id,
            charges_enabled=bool(account.charges_enabled),
            payouts_enabled=bool(account.payouts_enabled),
        )

    @classmethod
    def create_account_link(
        cls,
        stripe_account_id: str,
        refresh_url: str,
        return_url: str,
    ) -> AccountLinkResult:
        """Create a one-time onboarding link for a connected account."""
        link = cls._execute(
            {"operation": "create_account_link", "stripe_account_id": stripe_account_id},
            lambda: stripe.AccountLink.create(
                account=stripe_account_id,
                refresh_url=refresh_url,
                return_url=return_url,
                type="account_onboarding",
            ),
            lambda link: {"expires_at": link.expires_at},
        )

        return AccountLinkResult(url=link.url, expires_at=link.expires_at)

    @classmethod
    def create_payout(
        cls,
        amount_cents: int,
        stripe_account_id: str,
        idempotency_key: str,
        currency: str = "usd",
        metadata: dict[str, str] | None = None,
    ) -> PayoutResult:
        """
        Pay out from a connected account's balance to its bank account.

        Raises:
            StripeError: Any Stripe failure, translated
        """
        payout = cls._execute(
            {
                "operation": "create_payout",
                "amount_cents": amount_cents,
                "stripe_account_id": stripe_account_id,
                "idempotency_key": idempotency_key,
            },
            lambda: stripe.Payout.create(
                amount=amount_cents,
                currency=currency,
                metadata=metadata or {},
                stripe_account=stripe_account_id,
                idempotency_key=idempotency_key,
            ),
            lambda payout: {"payout_id": payout.id, "status": payout.status},
        )

        return PayoutResult(
            id=payout.id,
            amount_cents=payout.amount,
            currency=payout.currency,
            status=payout.status,
            stripe_account_id=stripe_account_id,
        )

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(cls, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Returns:
            Parsed event data dict

        Raises:
            StripeInvalidRequestError: Invalid signature or payload
        """
        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            )
        except stripe.SignatureVerificationError as e:
            raise StripeInvalidRequestError(
                "Invalid webhook signature",
                stripe_code="signature_verification_failed",
                details={"error": str(e)},
            ) from e
        except ValueError as e:
            raise StripeInvalidRequestError(
                "Invalid webhook payload",
                stripe_code="invalid_payload",
                details={"error": str(e)},
            ) from e
        return event.to_dict()

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe SDK exceptions to payments.exceptions.

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInvalidAccountError: Invalid connected account
            StripeInvalidRequestError: Invalid request or authentication
            StripeRateLimitError: Rate limited
            StripeTimeoutError: Request timed out
            StripeAPIUnavailableError: Network or server error, or unknown
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            raise StripeCardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            ) from error

        if isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            if "account" in str(error).lower():
                raise StripeInvalidAccountError(str(error), stripe_code=error.code) from error
            raise StripeInvalidRequestError(str(error), stripe_code=error.code) from error

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        if isinstance(error, stripe.APIConnectionError):
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            if "timed out" in str(error).lower():
                raise StripeTimeoutError(
                    "Stripe request timed out. Please retry.",
                    stripe_code="timeout",
                ) from error
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        if isinstance(error, stripe.AuthenticationError):
            logger.critical("Stripe authentication failed - check API key", extra=log_context)
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            ) from error

        if isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            ) from error

        logger.error(
            f"Unexpected error from Stripe: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise StripeAPIUnavailableError(
            f"Unexpected Stripe error: {error}",
            stripe_code="unknown_error",
        ) from error
