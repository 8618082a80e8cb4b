"""
Wallet model: a provider's balance ledger.

Three buckets hold the provider's money:
    pending_balance_cents: Earned but not yet withdrawable
    available_balance_cents: Withdrawable
    withdrawn_balance_cents: Paid out

Each mutating method is a guarded read-check-then-write. Callers must hold
the row lock (Wallet.objects.select_for_update()) inside a transaction; a
failed guard raises InsufficientBalanceError before anything changes.

Usage:
    from payments.models import Wallet

    with transaction.atomic():
        wallet = Wallet.objects.select_for_update().get(provider=provider)
        wallet.add_earnings(9000, pending=True)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel
from payments.exceptions import InsufficientBalanceError
from payments.state_machines import StripeAccountStatus

BALANCE_FIELDS = [
    "total_earned_cents",
    "available_balance_cents",
    "pending_balance_cents",
    "withdrawn_balance_cents",
]


class Wallet(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    Provider balance across pending, available and withdrawn buckets.

    Invariants:
        - Every bucket is >= 0 (check constraints and method guards)
        - total_earned_cents only grows; it is the sum of every
          add_earnings call
    """

    provider = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="wallet",
        help_text="Provider owning this wallet",
    )

    # ==========================================================================
    # Balances
    # ==========================================================================

    total_earned_cents = models.BigIntegerField(
        default=0,
        help_text="Lifetime earnings credited to this wallet in cents",
    )

    available_balance_cents = models.BigIntegerField(
        default=0,
        help_text="Withdrawable balance in cents",
    )

    pending_balance_cents = models.BigIntegerField(
        default=0,
        help_text="Earned but not yet released balance in cents",
    )

    withdrawn_balance_cents = models.BigIntegerField(
        default=0,
        help_text="Total paid out to the provider in cents",
    )

    # ==========================================================================
    # Stripe Connect
    # ==========================================================================

    stripe_account_id = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
        help_text="Stripe Connect account ID (acct_xxx)",
    )

    stripe_account_status = models.CharField(
        max_length=20,
        choices=StripeAccountStatus.choices,
        default=StripeAccountStatus.PENDING,
        help_text="Verification status of the connected account",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Wallet"
        verbose_name_plural = "Wallets"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(available_balance_cents__gte=0),
                name="wallet_available_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(pending_balance_cents__gte=0),
                name="wallet_pending_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(withdrawn_balance_cents__gte=0),
                name="wallet_withdrawn_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"Wallet({self.provider_id}, available={self.available_balance_cents}, "
            f"pending={self.pending_balance_cents})"
        )

    @property
    def is_verified(self) -> bool:
        """Whether the connected account can receive transfers."""
        return bool(self.stripe_account_id) and (
            self.stripe_account_status == StripeAccountStatus.VERIFIED
        )

    # ==========================================================================
    # Ledger Operations
    # ==========================================================================

    def _save_balances(self) -> None:
        self.save(update_fields=[*BALANCE_FIELDS, "updated_at"])

    def add_earnings(self, amount_cents: int, pending: bool = False) -> None:
        """
        Credit earnings to the pending or the available bucket.

        Raises:
            InsufficientBalanceError: If amount is not positive
        """
        if amount_cents <= 0:
            raise InsufficientBalanceError(
                "Earnings amount must be positive",
                details={"amount_cents": amount_cents},
            )

        self.total_earned_cents += amount_cents
        if pending:
            self.pending_balance_cents += amount_cents
        else:
            self.available_balance_cents += amount_cents
        self._save_balances()

    def release_pending_balance(self, amount_cents: int) -> None:
        """
        Move funds from pending to available.

        Raises:
            InsufficientBalanceError: If pending is smaller than amount
        """
        if amount_cents <= 0 or self.pending_balance_cents < amount_cents:
            raise InsufficientBalanceError(
                "Insufficient pending balance",
                details={
                    "pending_balance_cents": self.pending_balance_cents,
                    "requested_cents": amount_cents,
                },
            )

        self.pending_balance_cents -= amount_cents
        self.available_balance_cents += amount_cents
        self._save_balances()

    def process_withdrawal(self, amount_cents: int) -> None:
        """
        Move funds from available to withdrawn.

        Raises:
            InsufficientBalanceError: If available is smaller than amount
        """
        if amount_cents <= 0 or self.available_balance_cents < amount_cents:
            raise InsufficientBalanceError(
                "Insufficient available balance",
                details={
                    "available_balance_cents": self.available_balance_cents,
                    "requested_cents": amount_cents,
                },
            )

        self.available_balance_cents -= amount_cents
        self.withdrawn_balance_cents += amount_cents
        self._save_balances()

    def rollback_withdrawal(self, amount_cents: int) -> None:
        """
        Undo a withdrawal whose payout failed: withdrawn back to available.

        Raises:
            InsufficientBalanceError: If withdrawn is smaller than amount
        """
        if amount_cents <= 0 or self.withdrawn_balance_cents < amount_cents:
            raise InsufficientBalanceError(
                "Insufficient withdrawn balance to roll back",
                details={
                    "withdrawn_balance_cents": self.withdrawn_balance_cents,
                    "requested_cents": amount_cents,
                },
            )

        self.withdrawn_balance_cents -= amount_cents
        self.available_balance_cents += amount_cents
        self._save_balances()
