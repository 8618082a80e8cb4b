"""
Abstract base strategy for settling a completed payment to a provider.

Settlement happens in two phases so that no Stripe call runs inside a
database transaction:

    1. prepare(): external step, outside any database transaction
       (e.g. a Stripe transfer). Errors are captured, not raised.
    2. credit(): inside the caller's transaction with the Transaction and
       Wallet rows locked. Moves money into the wallet and stamps the
       settlement markers on the transaction.

Usage:
    strategy = get_release_strategy(txn, wallet)
    outcome = strategy.prepare(txn, wallet)
    with transaction.atomic():
        txn = Transaction.objects.select_for_update().get(pk=txn.pk)
        wallet = Wallet.objects.select_for_update().get(pk=wallet.pk)
        warning = strategy.credit(txn, wallet, outcome)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.utils import timezone

if TYPE_CHECKING:
    from payments.exceptions import StripeError
    from payments.models import Transaction, Wallet


@dataclass
class TransferOutcome:
    """
    Result of a strategy's external step.

    Attributes:
        transfer_id: Stripe transfer id when a transfer was made
        error: Captured Stripe error when the transfer failed
    """

    transfer_id: str = ""
    error: StripeError | None = None

    @property
    def transferred(self) -> bool:
        return bool(self.transfer_id)


class ReleaseStrategy(ABC):
    """
    Base class for settlement strategies.

    Subclasses decide where the provider amount lands (pending or
    available) and whether money moves on Stripe first.
    """

    name: str = "base"

    def prepare(self, transaction: Transaction, wallet: Wallet) -> TransferOutcome:
        """External step before crediting. No-op by default."""
        return TransferOutcome()

    @abstractmethod
    def credit(
        self,
        transaction: Transaction,
        wallet: Wallet,
        outcome: TransferOutcome,
    ) -> str | None:
        """
        Credit the wallet for a completed transaction.

        Both rows must be locked by the caller. Saves the wallet; the
        caller saves the transaction.

        Returns:
            Warning message for the caller, or None
        """

    # =========================================================================
    # Shared helpers
    # =========================================================================

    @staticmethod
    def credit_available(transaction: Transaction, wallet: Wallet) -> None:
        now = timezone.now()
        wallet.add_earnings(transaction.provider_amount_cents)
        transaction.wallet_credited_at = now
        transaction.released_at = now

    @staticmethod
    def credit_pending(transaction: Transaction, wallet: Wallet) -> None:
        now = timezone.now()
        wallet.add_earnings(transaction.provider_amount_cents, pending=True)
        transaction.wallet_credited_at = now
        transaction.pending_release_at = now
