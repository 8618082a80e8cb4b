"""
Concrete settlement strategies.

Strategy selection (get_release_strategy):
    cash payment                  -> CashSettlementStrategy
    verified Stripe Connect wallet -> DirectTransferStrategy
    anything else                 -> PendingCreditStrategy
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from payments.adapters import IdempotencyKeyGenerator, StripeAdapter
from payments.exceptions import StripeError, StripeTimeoutError
from payments.strategies.base import ReleaseStrategy, TransferOutcome

if TYPE_CHECKING:
    from payments.models import Transaction, Wallet

logger = logging.getLogger(__name__)


def transfer_to_provider(transaction: Transaction, wallet: Wallet) -> TransferOutcome:
    """
    Transfer the provider amount to the wallet's connected account.

    The idempotency key is derived from the transaction id and its transfer
    attempt number, so a retried transfer never pays twice. A definitive
    error moves the next retry to a fresh key; after a timeout the outcome
    is unknown and the same key is reused.
    """
    idempotency_key = IdempotencyKeyGenerator.generate(
        "transfer", transaction.id, attempt=transaction.stripe_attempt("transfer")
    )
    try:
        result = StripeAdapter.create_transfer(
            amount_cents=transaction.provider_amount_cents,
            destination_account=wallet.stripe_account_id,
            idempotency_key=idempotency_key,
            currency=transaction.currency,
            metadata={
                "transaction_id": str(transaction.id),
                "job_id": str(transaction.job_id),
            },
        )
    except StripeError as e:
        logger.warning(
            "Provider transfer failed",
            extra={
                "transaction_id": str(transaction.id),
                "stripe_account_id": wallet.stripe_account_id,
                "error_code": e.error_code,
                "is_retryable": e.is_retryable,
            },
        )
        if not isinstance(e, StripeTimeoutError):
            transaction.record_failed_stripe_call("transfer")
        return TransferOutcome(error=e)
    return TransferOutcome(transfer_id=result.id)


class DirectTransferStrategy(ReleaseStrategy):
    """
    Verified account: transfer on Stripe, then credit available.

    A failed transfer falls back to crediting pending so the funds stay
    owed to the provider; the caller gets a warning.
    """

    name = "direct_transfer"

    def prepare(self, transaction: Transaction, wallet: Wallet) -> TransferOutcome:
        return transfer_to_provider(transaction, wallet)

    def credit(
        self,
        transaction: Transaction,
        wallet: Wallet,
        outcome: TransferOutcome,
    ) -> str | None:
        if outcome.transferred:
            transaction.stripe_transfer_id = outcome.transfer_id
            self.credit_available(transaction, wallet)
            return None

        self.credit_pending(transaction, wallet)
        return "Stripe transfer failed; provider amount credited to pending balance"


class PendingCreditStrategy(ReleaseStrategy):
    """Unverified, rejected or missing account: credit pending."""

    name = "pending_credit"

    def credit(
        self,
        transaction: Transaction,
        wallet: Wallet,
        outcome: TransferOutcome,
    ) -> str | None:
        self.credit_pending(transaction, wallet)
        return None


class CashSettlementStrategy(ReleaseStrategy):
    """The provider already holds cash: credit available and mark released."""

    name = "cash"

    def credit(
        self,
        transaction: Transaction,
        wallet: Wallet,
        outcome: TransferOutcome,
    ) -> str | None:
        self.credit_available(transaction, wallet)
        return None


def get_release_strategy(transaction: Transaction, wallet: Wallet) -> ReleaseStrategy:
    if transaction.is_cash:
        return CashSettlementStrategy()
    if wallet.is_verified:
        return DirectTransferStrategy()
    return PendingCreditStrategy()
