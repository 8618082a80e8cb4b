"""
Transaction model: one client payment for one job.

A Transaction records the amount charged for an accepted quote together
with the commission split frozen at creation. Its status is a django-fsm
state machine; settlement to the provider's wallet is tracked separately
by the wallet_credited_at / pending_release_at / released_at markers.

Usage:
    from payments.models import Transaction

    txn = Transaction.objects.select_for_update().get(pk=transaction_id)
    txn.complete(charge_id="ch_123")  # pending/processing -> completed
    txn.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db import transaction as db_transaction
from django.utils import timezone
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel
from payments.state_machines import PaymentMethod, TransactionStatus


def split_commission(amount_cents: int, percent: int) -> tuple[int, int]:
    """
    Split an amount into (platform_commission, provider_amount).

    The commission is floored to the cent so the two parts always sum to
    the original amount.

    Example:
        split_commission(10000, 10)  # (1000, 9000)
        split_commission(999, 10)    # (99, 900)
    """
    commission = amount_cents * percent // 100
    return commission, amount_cents - commission


class TransactionQuerySet(models.QuerySet):
    def for_job(self, job):
        return self.filter(job=job)

    def awaiting_release(self):
        """Completed payments credited to pending and not yet released."""
        return self.filter(
            status=TransactionStatus.COMPLETED,
            wallet_credited_at__isnull=False,
            pending_release_at__isnull=False,
            released_at__isnull=True,
        )


class Transaction(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    A client's payment for a job.

    State Flow:
        PENDING -> PROCESSING -> COMPLETED
        PENDING/PROCESSING -> FAILED
        COMPLETED -> REFUNDED
        COMPLETED -> DISPUTED

    Settlement markers:
        wallet_credited_at: The provider's wallet was credited (exactly once)
        pending_release_at: The credit went to the pending bucket
        released_at: Funds were made available to the provider; a refund is
            no longer possible afterwards

    Invariant:
        provider_amount_cents + platform_commission_cents == amount_cents
        (database check constraint)
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    payer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="transactions",
        help_text="Client making the payment",
    )

    job = models.ForeignKey(
        "jobs.Job",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="transactions",
        help_text="Job being paid for",
    )

    quote = models.ForeignKey(
        "jobs.Quote",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="transactions",
        help_text="Accepted quote whose price is charged",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    amount_cents = models.PositiveBigIntegerField(
        help_text="Amount charged to the client in cents",
    )

    commission_percent = models.PositiveSmallIntegerField(
        help_text="Platform commission rate at creation (percent)",
    )

    platform_commission_cents = models.PositiveBigIntegerField(
        help_text="Platform commission in cents (frozen at creation)",
    )

    provider_amount_cents = models.PositiveBigIntegerField(
        help_text="Amount owed to the provider in cents (frozen at creation)",
    )

    refunded_amount_cents = models.PositiveBigIntegerField(
        default=0,
        help_text="Amount refunded to the client in cents",
    )

    currency = models.CharField(
        max_length=3,
        default="usd",
        help_text="ISO 4217 currency code (lowercase)",
    )

    # ==========================================================================
    # Method & State
    # ==========================================================================

    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        help_text="How the client pays",
    )

    status = FSMField(
        default=TransactionStatus.PENDING,
        choices=TransactionStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the transaction (managed by FSM)",
    )

    # ==========================================================================
    # Stripe Integration
    # ==========================================================================

    stripe_payment_intent_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe PaymentIntent ID (pi_xxx), set once at creation",
    )

    stripe_charge_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="Stripe Charge ID (ch_xxx)",
    )

    stripe_transfer_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="Stripe Transfer ID (tr_xxx) of the provider settlement",
    )

    stripe_refund_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="Stripe Refund ID (re_xxx)",
    )

    # ==========================================================================
    # State Timestamps
    # ==========================================================================

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the client's payment was confirmed",
    )

    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the transaction reached COMPLETED",
    )

    failed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment failed",
    )

    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment was refunded",
    )

    # ==========================================================================
    # Settlement
    # ==========================================================================

    wallet_credited_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the provider's wallet was credited (guards double credit)",
    )

    pending_release_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="When the credit was placed in the pending bucket",
    )

    released_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When funds were released to the provider (release idempotency marker)",
    )

    released_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="released_transactions",
        help_text="Operator who released the funds (null for automatic release)",
    )

    release_notes = models.TextField(
        blank=True,
        help_text="Operator notes recorded on release",
    )

    # ==========================================================================
    # Metadata & Error Info
    # ==========================================================================

    failure_reason = models.TextField(
        blank=True,
        help_text="Reason the payment failed",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON metadata (refund reason, frozen credit flags, ...)",
    )

    objects = TransactionQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Transaction"
        verbose_name_plural = "Transactions"
        indexes = [
            models.Index(fields=["job", "status"], name="payments_txn_job_status_idx"),
            models.Index(fields=["payer", "status"], name="payments_txn_payer_status_idx"),
            models.Index(
                fields=["status", "payment_method", "created_at"],
                name="payments_txn_status_method_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount_cents__gt=0),
                name="transaction_amount_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(
                    amount_cents=models.F("provider_amount_cents")
                    + models.F("platform_commission_cents")
                ),
                name="transaction_split_sums_to_amount",
            ),
            models.CheckConstraint(
                condition=models.Q(refunded_amount_cents__lte=models.F("amount_cents")),
                name="transaction_refund_within_amount",
            ),
        ]

    def __str__(self) -> str:
        amount_display = f"{self.amount_cents / 100:.2f} {self.currency.upper()}"
        return f"Transaction({self.id}, {self.status}, {amount_display})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_released(self) -> bool:
        return self.released_at is not None

    @property
    def is_card(self) -> bool:
        return self.payment_method == PaymentMethod.CARD

    @property
    def is_cash(self) -> bool:
        return self.payment_method == PaymentMethod.CASH

    @property
    def provider_id(self):
        """Provider owed the payment (from the accepted quote)."""
        return self.quote.provider_id if self.quote_id else None

    # ==========================================================================
    # Stripe Idempotency
    # ==========================================================================

    def stripe_attempt(self, operation: str) -> int:
        """Attempt number to build the next idempotency key for `operation`."""
        return self.metadata.get("stripe_attempts", {}).get(operation, 0) + 1

    def record_failed_stripe_call(self, operation: str) -> None:
        """
        Move `operation` on to a fresh idempotency key.

        Stripe replays the stored response for a key it has already seen,
        so a retry after a definitive error needs the next attempt number.
        The counter is merged into the locked row so concurrent metadata
        writes are kept.
        """
        with db_transaction.atomic():
            locked = Transaction.objects.select_for_update().get(pk=self.pk)
            attempts = dict(locked.metadata.get("stripe_attempts", {}))
            attempts[operation] = attempts.get(operation, 0) + 1
            locked.metadata = {**locked.metadata, "stripe_attempts": attempts}
            locked.save(update_fields=["metadata", "updated_at"])
        self.metadata = locked.metadata

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=TransactionStatus.PENDING,
        target=TransactionStatus.PROCESSING,
    )
    def mark_processing(self):
        """
        Stripe started processing the charge.

        Transition: PENDING -> PROCESSING
        """

    @transition(
        field=status,
        source=[TransactionStatus.PENDING, TransactionStatus.PROCESSING],
        target=TransactionStatus.COMPLETED,
    )
    def complete(self, charge_id: str = ""):
        """
        The client's payment succeeded.

        Transition: PENDING/PROCESSING -> COMPLETED
        """
        self._mark_paid(charge_id)

    @transition(
        field=status,
        source=TransactionStatus.FAILED,
        target=TransactionStatus.COMPLETED,
    )
    def complete_after_failure(self, charge_id: str = ""):
        """
        Stripe captured a PaymentIntent that was already marked failed.

        Happens when the client retries the same PaymentIntent with another
        card after a decline, or pays after the stale-payment sweep ran.
        failed_at and failure_reason are kept as history.

        Transition: FAILED -> COMPLETED
        """
        self.metadata = {**self.metadata, "completed_after_failure": True}
        self._mark_paid(charge_id)

    def _mark_paid(self, charge_id: str) -> None:
        now = timezone.now()
        self.paid_at = now
        self.completed_at = now
        if charge_id:
            self.stripe_charge_id = charge_id

    @transition(
        field=status,
        source=[TransactionStatus.PENDING, TransactionStatus.PROCESSING],
        target=TransactionStatus.FAILED,
    )
    def fail(self, reason: str = ""):
        """
        The client's payment failed; a new initiation may follow.

        Transition: PENDING/PROCESSING -> FAILED
        """
        self.failed_at = timezone.now()
        self.failure_reason = reason

    @transition(
        field=status,
        source=TransactionStatus.COMPLETED,
        target=TransactionStatus.REFUNDED,
    )
    def refund(self, amount_cents: int, refund_id: str = "", reason: str = ""):
        """
        Money went back to the client.

        Transition: COMPLETED -> REFUNDED
        """
        self.refunded_amount_cents = amount_cents
        self.refunded_at = timezone.now()
        if refund_id:
            self.stripe_refund_id = refund_id
        if reason:
            self.metadata = {**self.metadata, "refund_reason": reason}

    @transition(
        field=status,
        source=TransactionStatus.COMPLETED,
        target=TransactionStatus.DISPUTED,
    )
    def dispute(self, dispute_id: str = "", reason: str = ""):
        """
        The client opened a chargeback.

        Transition: COMPLETED -> DISPUTED
        """
        self.metadata = {
            **self.metadata,
            "dispute_id": dispute_id,
            "dispute_reason": reason,
        }
