"""
Wallet and Stripe Connect services for providers.

Services:
    WalletService: Wallet lookup, withdrawals, payout rollback and
        connected-account verification updates
    ConnectService: Stripe Connect onboarding

Every balance mutation locks the wallet row; a failed guard raises
InsufficientBalanceError inside the transaction and is returned as an
INSUFFICIENT_BALANCE result with nothing changed.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings

from core.events import publish_event
from core.services import BaseService, ServiceResult
from payments.adapters import IdempotencyKeyGenerator, StripeAdapter
from payments.exceptions import InsufficientBalanceError, StripeError
from payments.models import Wallet
from payments.state_machines import StripeAccountStatus

if TYPE_CHECKING:
    from authentication.models import User
    from core.protocols import EventPublisher


@dataclass
class WithdrawalResult:
    wallet: Wallet
    amount_cents: int
    payout_id: str = ""


@dataclass
class ConnectOnboarding:
    wallet: Wallet
    url: str
    expires_at: int


def onboarding_urls() -> tuple[str, str]:
    """(refresh_url, return_url) for Stripe account links."""
    base = f"{settings.CLIENT_URL.rstrip('/')}/provider/payment-setup"
    return f"{base}?refresh=true", f"{base}?success=true"


class WalletService(BaseService):
    """
    Service for provider wallets.

    Methods:
        get_or_create_wallet: Lazily create a provider's wallet
        request_withdrawal: Move available funds out, paying out on Stripe
        rollback_failed_payout: payout.failed webhook
        update_account_status: account.updated webhook
    """

    @classmethod
    def get_or_create_wallet(cls, provider: User) -> ServiceResult[Wallet]:
        wallet, created = Wallet.objects.get_or_create(provider=provider)
        if created:
            cls.get_logger().info(
                "Wallet created", extra={"wallet_id": str(wallet.id), "provider_id": provider.id}
            )
        return ServiceResult.success(wallet)

    @classmethod
    def request_withdrawal(
        cls,
        provider: User,
        amount_cents: int,
        publisher: EventPublisher | None = None,
    ) -> ServiceResult[WithdrawalResult]:
        """
        Withdraw available funds.

        The wallet is debited available -> withdrawn first. For a verified
        connected account a Stripe payout follows; if it fails the debit is
        rolled back.

        Error codes:
            NOT_AUTHORIZED: Actor is not a provider
            VALIDATION_ERROR: Below WALLET_MIN_WITHDRAWAL_CENTS
            INSUFFICIENT_BALANCE: Available balance too small
            PAYMENT_PROVIDER_ERROR: Stripe payout failed (withdrawal rolled back)
        """
        if not provider.is_provider:
            return ServiceResult.failure(
                "Only providers can withdraw funds", error_code="NOT_AUTHORIZED"
            )
        minimum = settings.WALLET_MIN_WITHDRAWAL_CENTS
        if amount_cents is None or amount_cents < minimum:
            return ServiceResult.failure(
                "Validation failed",
                error_code="VALIDATION_ERROR",
                errors={"amount_cents": [f"Minimum withdrawal is {minimum} cents"]},
            )

        wallet = cls.get_or_create_wallet(provider).data
        try:
            with cls.atomic():
                wallet = Wallet.objects.select_for_update().get(pk=wallet.pk)
                wallet.process_withdrawal(amount_cents)
        except InsufficientBalanceError as e:
            return ServiceResult.from_exception(e)

        payout_id = ""
        if wallet.is_verified:
            try:
                payout = StripeAdapter.create_payout(
                    amount_cents=amount_cents,
                    stripe_account_id=wallet.stripe_account_id,
                    idempotency_key=IdempotencyKeyGenerator.generate("payout", uuid.uuid4()),
                    currency=settings.PLATFORM_CURRENCY,
                    metadata={"wallet_id": str(wallet.id), "provider_id": str(provider.id)},
                )
            except StripeError as e:
                with cls.atomic():
                    wallet = Wallet.objects.select_for_update().get(pk=wallet.pk)
                    wallet.rollback_withdrawal(amount_cents)
                return cls.handle_exception(e, "Payout failed", log_level=logging.WARNING)
            payout_id = payout.id

        cls.get_logger().info(
            "Withdrawal processed",
            extra={
                "wallet_id": str(wallet.id),
                "amount_cents": amount_cents,
                "payout_id": payout_id,
            },
        )
        publish_event(
            publisher,
            "wallet.withdrawal_processed",
            provider.id,
            {"wallet_id": str(wallet.id), "amount_cents": amount_cents, "payout_id": payout_id},
        )
        return ServiceResult.success(
            WithdrawalResult(wallet=wallet, amount_cents=amount_cents, payout_id=payout_id)
        )

    @classmethod
    def rollback_failed_payout(
        cls,
        stripe_account_id: str,
        amount_cents: int,
        payout_id: str = "",
    ) -> ServiceResult[Wallet]:
        """
        Return a failed payout's amount from withdrawn to available.

        Error codes:
            INCONSISTENCY: No wallet for the connected account
            INSUFFICIENT_BALANCE: Withdrawn bucket smaller than the amount
        """
        wallet = Wallet.objects.filter(stripe_account_id=stripe_account_id).first()
        if wallet is None:
            cls.get_logger().error(
                "Payout failed for unknown connected account",
                extra={"stripe_account_id": stripe_account_id, "payout_id": payout_id},
            )
            return ServiceResult.failure(
                f"No wallet for account {stripe_account_id}", error_code="INCONSISTENCY"
            )

        try:
            with cls.atomic():
                wallet = Wallet.objects.select_for_update().get(pk=wallet.pk)
                wallet.rollback_withdrawal(amount_cents)
        except InsufficientBalanceError as e:
            return cls.handle_exception(e, "Payout rollback failed")

        cls.get_logger().warning(
            "Payout failed, withdrawal rolled back",
            extra={"wallet_id": str(wallet.id), "payout_id": payout_id, "amount_cents": amount_cents},
        )
        return ServiceResult.success(wallet)

    @classmethod
    def update_account_status(
        cls,
        stripe_account_id: str,
        account: dict,
        publisher: EventPublisher | None = None,
    ) -> ServiceResult[Wallet | None]:
        """
        Derive a wallet's verification status from a Stripe account object.

        disabled_reason set -> REJECTED; charges and payouts enabled with no
        requirements currently due -> VERIFIED; otherwise PENDING.
        Unknown accounts are ignored.
        """
        wallet = Wallet.objects.filter(stripe_account_id=stripe_account_id).first()
        if wallet is None:
            cls.get_logger().warning(
                "account.updated for unknown connected account",
                extra={"stripe_account_id": stripe_account_id},
            )
            return ServiceResult.success(None)

        requirements = account.get("requirements") or {}
        if requirements.get("disabled_reason"):
            new_status = StripeAccountStatus.REJECTED
        elif (
            account.get("charges_enabled")
            and account.get("payouts_enabled")
            and not requirements.get("currently_due")
        ):
            new_status = StripeAccountStatus.VERIFIED
        else:
            new_status = StripeAccountStatus.PENDING

        with cls.atomic():
            wallet = Wallet.objects.select_for_update().get(pk=wallet.pk)
            previous = wallet.stripe_account_status
            if previous != new_status:
                wallet.stripe_account_status = new_status
                wallet.save(update_fields=["stripe_account_status", "updated_at"])

        if previous != new_status:
            cls.get_logger().info(
                "Connected account status changed",
                extra={
                    "wallet_id": str(wallet.id),
                    "stripe_account_id": stripe_account_id,
                    "from": previous,
                    "to": new_status,
                },
            )
        if new_status == StripeAccountStatus.VERIFIED and previous != new_status:
            publish_event(
                publisher,
                "wallet.account_verified",
                wallet.provider_id,
                {"wallet_id": str(wallet.id), "stripe_account_id": stripe_account_id},
            )
        return ServiceResult.success(wallet)


class ConnectService(BaseService):
    """Stripe Connect onboarding for providers."""

    @classmethod
    def setup_connect_account(cls, provider: User) -> ServiceResult[ConnectOnboarding]:
        """
        Create the provider's Express account if missing and return an
        onboarding link.

        Error codes:
            NOT_AUTHORIZED: Actor is not a provider
            PAYMENT_PROVIDER_ERROR: Stripe account or link creation failed
        """
        if not provider.is_provider:
            return ServiceResult.failure(
                "Only providers can set up payouts", error_code="NOT_AUTHORIZED"
            )

        wallet = WalletService.get_or_create_wallet(provider).data
        if not wallet.stripe_account_id:
            try:
                account = StripeAdapter.create_connect_account(
                    email=provider.email,
                    idempotency_key=IdempotencyKeyGenerator.generate("connect_account", wallet.id),
                    metadata={"provider_id": str(provider.id), "wallet_id": str(wallet.id)},
                )
            except StripeError as e:
                return cls.handle_exception(
                    e, "Connect account creation failed", log_level=logging.WARNING
                )

            with cls.atomic():
                wallet = Wallet.objects.select_for_update().get(pk=wallet.pk)
                if not wallet.stripe_account_id:
                    wallet.stripe_account_id = account.id
                    wallet.stripe_account_status = StripeAccountStatus.PENDING
                    wallet.save(
                        update_fields=["stripe_account_id", "stripe_account_status", "updated_at"]
                    )
            cls.get_logger().info(
                "Connect account created",
                extra={"wallet_id": str(wallet.id), "stripe_account_id": wallet.stripe_account_id},
            )

        refresh_url, return_url = onboarding_urls()
        try:
            link = StripeAdapter.create_account_link(
                wallet.stripe_account_id,
                refresh_url=refresh_url,
                return_url=return_url,
            )
        except StripeError as e:
            return cls.handle_exception(e, "Account link creation failed", log_level=logging.WARNING)

        return ServiceResult.success(
            ConnectOnboarding(wallet=wallet, url=link.url, expires_at=link.expires_at)
        )
