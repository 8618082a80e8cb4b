"""
Settlement service: crediting, releasing and refunding completed payments.

Money owed to a provider moves through three markers on the Transaction:

    wallet_credited_at  -> the wallet was credited exactly once
    pending_release_at  -> the credit sits in the pending bucket
    released_at         -> funds are available to the provider

Release and refund of one transaction are serialized by a Redis
DistributedLock on "transaction:{id}" plus row locks, and both re-check
status and released_at on the locked row before mutating. Stripe calls
happen while the distributed lock is held but outside any database
transaction.

Usage:
    from payments.services import SettlementService

    result = SettlementService.release_payment(txn.id, operator, notes="Job verified")
    if result.error_code == "ALREADY_RELEASED":
        ...
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from core.events import publish_event
from core.services import BaseService, ServiceResult
from jobs.models import Job
from jobs.services import JobService
from payments.adapters import IdempotencyKeyGenerator, StripeAdapter
from payments.exceptions import (
    InsufficientBalanceError,
    LockAcquisitionError,
    StripeError,
    StripeTimeoutError,
)
from payments.locks import DistributedLock
from payments.models import Transaction, Wallet
from payments.state_machines import PaymentMethod, StripeAccountStatus, TransactionStatus
from payments.strategies import (
    DirectTransferStrategy,
    get_release_strategy,
    transfer_to_provider,
)

if TYPE_CHECKING:
    from authentication.models import User
    from core.protocols import EventPublisher


# =============================================================================
# Constants
# =============================================================================

TRANSACTION_LOCK_TTL = 30

SWEEP_LOCK_KEY = "settlement:sweep"
SWEEP_LOCK_TTL = 300

# Completed payments left uncredited this long are picked up by the sweep
UNSETTLED_GRACE_PERIOD = timedelta(minutes=10)

TRANSFER_FAILED_WARNING = "Stripe transfer failed; funds stay in the pending balance"


def transaction_lock(transaction_id) -> DistributedLock:
    return DistributedLock(f"transaction:{transaction_id}", ttl=TRANSACTION_LOCK_TTL)


class SettlementService(BaseService):
    """
    Service for the settlement/release engine.

    Methods:
        settle_completed_transaction: Credit the provider wallet once
        release_payment: Make pending funds available to the provider
        process_refund: Refund a completed, unreleased payment
        record_external_refund: Apply a refund issued directly in Stripe
        process_pending_releases: Batch release sweep
        fail_stale_pending_transactions: Reconcile abandoned card payments
    """

    # =========================================================================
    # Guards
    # =========================================================================

    @staticmethod
    def _check_releasable(txn: Transaction) -> ServiceResult | None:
        if txn.status != TransactionStatus.COMPLETED:
            return ServiceResult.failure(
                f"Only completed payments can be released (status: {txn.status})",
                error_code="INVALID_STATE",
            )
        if txn.is_released:
            return ServiceResult.failure(
                "Payment has already been released", error_code="ALREADY_RELEASED"
            )
        if txn.provider_id is None:
            return ServiceResult.failure(
                "Transaction has no provider to settle to", error_code="INCONSISTENCY"
            )
        return None

    @staticmethod
    def _check_refundable(txn: Transaction) -> ServiceResult | None:
        if txn.status != TransactionStatus.COMPLETED:
            return ServiceResult.failure(
                f"Only completed payments can be refunded (status: {txn.status})",
                error_code="INVALID_STATE",
            )
        if txn.is_released:
            return ServiceResult.failure(
                "Payment has already been released to the provider",
                error_code="ALREADY_RELEASED",
            )
        return None

    @staticmethod
    def _provider_wallet(txn: Transaction) -> Wallet:
        wallet, _ = Wallet.objects.get_or_create(provider_id=txn.provider_id)
        return wallet

    # =========================================================================
    # Settlement
    # =========================================================================

    @classmethod
    def settle_completed_transaction(cls, transaction_id) -> ServiceResult[Transaction]:
        """
        Credit the provider's wallet for a completed transaction.

        Called by both completion paths once the completion committed, and
        by the sweep for completions whose settlement never ran. Repeated
        calls credit at most once (guarded by wallet_credited_at on the
        locked row).

        Returns:
            ServiceResult with the transaction; warning set when a Stripe
            transfer fell back to a pending credit

        Error codes:
            NOT_FOUND, INVALID_STATE, INCONSISTENCY
            INVALID_STATE is also returned when the transaction lock is held
        """
        txn = Transaction.objects.select_related("quote").filter(pk=transaction_id).first()
        if txn is None:
            return ServiceResult.failure("Transaction not found", error_code="NOT_FOUND")
        if txn.status != TransactionStatus.COMPLETED:
            return ServiceResult.failure(
                f"Transaction is not completed (status: {txn.status})",
                error_code="INVALID_STATE",
            )
        if txn.wallet_credited_at is not None:
            return ServiceResult.success(txn)
        if txn.provider_id is None:
            cls.get_logger().error(
                "Completed transaction has no provider",
                extra={"transaction_id": str(txn.id)},
            )
            return ServiceResult.failure(
                "Transaction has no provider to settle to", error_code="INCONSISTENCY"
            )

        wallet = cls._provider_wallet(txn)
        strategy = get_release_strategy(txn, wallet)

        try:
            with transaction_lock(txn.id):
                txn = Transaction.objects.select_related("quote").get(pk=txn.pk)
                if txn.wallet_credited_at is not None:
                    return ServiceResult.success(txn)
                outcome = strategy.prepare(txn, wallet)
                with cls.atomic():
                    txn = Transaction.objects.select_for_update().get(pk=txn.pk)
                    if txn.wallet_credited_at is not None:
                        return ServiceResult.success(txn)
                    wallet = Wallet.objects.select_for_update().get(pk=wallet.pk)
                    warning = strategy.credit(txn, wallet, outcome)
                    txn.save()
        except LockAcquisitionError as e:
            return cls.handle_exception(e, "Settlement deferred", log_level=logging.WARNING)

        cls.get_logger().info(
            "Transaction settled",
            extra={
                "transaction_id": str(txn.id),
                "strategy": strategy.name,
                "provider_amount_cents": txn.provider_amount_cents,
                "released": txn.is_released,
            },
        )
        return ServiceResult.success(txn, warning=warning)

    # =========================================================================
    # Release
    # =========================================================================

    @classmethod
    def release_payment(
        cls,
        transaction_id,
        actor: User | None = None,
        notes: str = "",
        publisher: EventPublisher | None = None,
    ) -> ServiceResult[Transaction]:
        """
        Release a completed payment's funds to the provider.

        Pending funds with a verified wallet are transferred on Stripe and
        then moved pending -> available; with an unverified wallet they are
        moved pending -> available directly. A transaction whose wallet was
        never credited is credited fresh and released in one step.

        Args:
            transaction_id: Transaction to release
            actor: Operator releasing (None for the automatic sweep)
            notes: Operator notes stored on the transaction

        Returns:
            ServiceResult with the transaction. When the Stripe transfer
            fails the result is still a success: the funds stay pending,
            released_at stays empty and the warning says why.

        Error codes:
            NOT_FOUND: Transaction missing
            NOT_AUTHORIZED: Actor is not an operator
            INVALID_STATE: Not completed, or lock held by a concurrent operation
            ALREADY_RELEASED: released_at already set
            INSUFFICIENT_BALANCE: Pending bucket smaller than provider amount
        """
        if not Transaction.objects.filter(pk=transaction_id).exists():
            return ServiceResult.failure("Transaction not found", error_code="NOT_FOUND")
        if actor is not None and not actor.is_operator:
            return ServiceResult.failure(
                "Only operators can release payments", error_code="NOT_AUTHORIZED"
            )

        try:
            with transaction_lock(transaction_id):
                result = cls._release_locked(transaction_id, actor, notes)
        except LockAcquisitionError as e:
            return cls.handle_exception(e, "Release blocked", log_level=logging.WARNING)

        if result.success and not result.data.is_released:
            cls.get_logger().warning(
                "Release left funds pending",
                extra={"transaction_id": str(transaction_id), "reason": result.warning},
            )
        elif result.success:
            txn = result.data
            cls.get_logger().info(
                "Payment released",
                extra={
                    "transaction_id": str(txn.id),
                    "provider_amount_cents": txn.provider_amount_cents,
                    "released_by": actor.id if actor else None,
                },
            )
            publish_event(
                publisher,
                "payment.released",
                txn.provider_id,
                {
                    "transaction_id": str(txn.id),
                    "job_id": str(txn.job_id),
                    "amount_cents": txn.provider_amount_cents,
                },
            )
        return result

    @classmethod
    def _release_locked(cls, transaction_id, actor: User | None, notes: str) -> ServiceResult:
        txn = Transaction.objects.select_related("quote").get(pk=transaction_id)
        guard = cls._check_releasable(txn)
        if guard is not None:
            return guard

        wallet = cls._provider_wallet(txn)
        if txn.wallet_credited_at is None:
            return cls._credit_and_release(txn, wallet, actor, notes)

        amount = txn.provider_amount_cents
        if wallet.pending_balance_cents < amount:
            return ServiceResult.failure(
                "Insufficient pending balance",
                error_code="INSUFFICIENT_BALANCE",
            )

        transfer_id = ""
        if wallet.is_verified:
            outcome = transfer_to_provider(txn, wallet)
            if outcome.error is not None:
                return ServiceResult.success(txn, warning=TRANSFER_FAILED_WARNING)
            transfer_id = outcome.transfer_id

        try:
            with cls.atomic():
                txn = Transaction.objects.select_for_update().get(pk=transaction_id)
                guard = cls._check_releasable(txn)
                if guard is not None:
                    return guard
                wallet = Wallet.objects.select_for_update().get(pk=wallet.pk)
                wallet.release_pending_balance(amount)
                if transfer_id:
                    txn.stripe_transfer_id = transfer_id
                cls._mark_released(txn, actor, notes)
                txn.save()
        except InsufficientBalanceError as e:
            if transfer_id:
                cls.get_logger().error(
                    "Transfer made but pending balance could not be released",
                    extra={"transaction_id": str(txn.id), "stripe_transfer_id": transfer_id},
                )
            return ServiceResult.from_exception(e)

        return ServiceResult.success(txn)

    @classmethod
    def _credit_and_release(
        cls,
        txn: Transaction,
        wallet: Wallet,
        actor: User | None,
        notes: str,
    ) -> ServiceResult:
        strategy = get_release_strategy(txn, wallet)
        outcome = strategy.prepare(txn, wallet)

        with cls.atomic():
            txn = Transaction.objects.select_for_update().get(pk=txn.pk)
            guard = cls._check_releasable(txn)
            if guard is not None:
                return guard
            wallet = Wallet.objects.select_for_update().get(pk=wallet.pk)
            warning = strategy.credit(txn, wallet, outcome)
            transfer_failed = isinstance(strategy, DirectTransferStrategy) and not outcome.transferred
            if not transfer_failed:
                if not txn.is_released:
                    wallet.release_pending_balance(txn.provider_amount_cents)
                cls._mark_released(txn, actor, notes)
            txn.save()

        return ServiceResult.success(txn, warning=warning)

    @staticmethod
    def _mark_released(txn: Transaction, actor: User | None, notes: str) -> None:
        txn.released_at = txn.released_at or timezone.now()
        txn.released_by = actor
        txn.release_notes = notes

    # =========================================================================
    # Refunds
    # =========================================================================

    @classmethod
    def process_refund(
        cls,
        transaction_id,
        actor: User,
        amount_cents: int | None = None,
        reason: str = "",
        publisher: EventPublisher | None = None,
    ) -> ServiceResult[Transaction]:
        """
        Refund a completed, unreleased payment and cancel its job.

        The Stripe refund (card payments) is issued before any local change;
        if it fails nothing is modified. A pending wallet credit for the
        transaction is frozen and flagged in metadata.

        Args:
            amount_cents: Amount to refund (defaults to the full amount)

        Error codes:
            NOT_FOUND, NOT_AUTHORIZED,
            VALIDATION_ERROR: Amount not positive or above the original
            INVALID_STATE: Not completed, or lock held
            ALREADY_RELEASED: Funds already released to the provider
            PAYMENT_PROVIDER_ERROR: Stripe refund failed
        """
        txn = Transaction.objects.filter(pk=transaction_id).first()
        if txn is None:
            return ServiceResult.failure("Transaction not found", error_code="NOT_FOUND")
        if not actor.is_operator:
            return ServiceResult.failure(
                "Only operators can refund payments", error_code="NOT_AUTHORIZED"
            )

        amount = txn.amount_cents if amount_cents is None else amount_cents
        if amount <= 0 or amount > txn.amount_cents:
            return ServiceResult.failure(
                "Validation failed",
                error_code="VALIDATION_ERROR",
                errors={"amount_cents": [f"Must be between 1 and {txn.amount_cents}"]},
            )

        try:
            with transaction_lock(txn.id):
                txn = Transaction.objects.get(pk=txn.pk)
                guard = cls._check_refundable(txn)
                if guard is not None:
                    return guard

                refund_id = ""
                if txn.payment_method == PaymentMethod.CARD and txn.stripe_payment_intent_id:
                    # Amount is part of the key: a retry for a different amount is a new request
                    idempotency_key = IdempotencyKeyGenerator.generate(
                        "refund", f"{txn.id}:{amount}", attempt=txn.stripe_attempt("refund")
                    )
                    try:
                        refund = StripeAdapter.create_refund(
                            payment_intent_id=txn.stripe_payment_intent_id,
                            idempotency_key=idempotency_key,
                            amount_cents=amount,
                            metadata={"transaction_id": str(txn.id)},
                        )
                    except StripeError as e:
                        if not isinstance(e, StripeTimeoutError):
                            txn.record_failed_stripe_call("refund")
                        return cls.handle_exception(
                            e, "Stripe refund failed", log_level=logging.WARNING
                        )
                    refund_id = refund.id

                with cls.atomic():
                    txn = Transaction.objects.select_for_update().get(pk=txn.pk)
                    guard = cls._check_refundable(txn)
                    if guard is not None:
                        cls.get_logger().error(
                            "Refund issued but transaction changed state",
                            extra={"transaction_id": str(txn.id), "stripe_refund_id": refund_id},
                        )
                        return guard
                    cls._apply_refund(txn, amount, refund_id, reason)
        except LockAcquisitionError as e:
            return cls.handle_exception(e, "Refund blocked", log_level=logging.WARNING)

        cls.get_logger().info(
            "Payment refunded",
            extra={
                "transaction_id": str(txn.id),
                "refunded_amount_cents": amount,
                "stripe_refund_id": refund_id,
            },
        )
        publish_event(
            publisher,
            "refund.processed",
            txn.payer_id,
            {
                "transaction_id": str(txn.id),
                "job_id": str(txn.job_id),
                "amount_cents": amount,
            },
        )
        return ServiceResult.success(txn)

    @classmethod
    def record_external_refund(
        cls,
        payment_intent_id: str,
        amount_cents: int,
        refund_id: str = "",
        publisher: EventPublisher | None = None,
    ) -> ServiceResult[Transaction | None]:
        """
        Apply a refund that was issued directly in Stripe (charge.refunded).

        Already refunded transactions are a no-op. A refund of released
        funds is still recorded and flagged for manual reconciliation.

        Error codes:
            INCONSISTENCY: No transaction for the PaymentIntent
            INVALID_STATE: Transaction not completed, or lock held
        """
        txn = Transaction.objects.filter(stripe_payment_intent_id=payment_intent_id).first()
        if txn is None:
            cls.get_logger().error(
                "Refund for unknown PaymentIntent",
                extra={"payment_intent_id": payment_intent_id},
            )
            return ServiceResult.failure(
                f"No transaction for PaymentIntent {payment_intent_id}",
                error_code="INCONSISTENCY",
            )
        if txn.status == TransactionStatus.REFUNDED:
            return ServiceResult.success(txn)

        try:
            with transaction_lock(txn.id):
                with cls.atomic():
                    txn = Transaction.objects.select_for_update().get(pk=txn.pk)
                    if txn.status == TransactionStatus.REFUNDED:
                        return ServiceResult.success(txn)
                    if txn.status != TransactionStatus.COMPLETED:
                        return ServiceResult.failure(
                            f"Only completed payments can be refunded (status: {txn.status})",
                            error_code="INVALID_STATE",
                        )
                    if txn.is_released:
                        cls.get_logger().error(
                            "External refund of released funds",
                            extra={"transaction_id": str(txn.id)},
                        )
                        txn.metadata = {**txn.metadata, "refunded_after_release": True}
                    amount = min(amount_cents or txn.amount_cents, txn.amount_cents)
                    cls._apply_refund(txn, amount, refund_id, "Refunded in Stripe")
        except LockAcquisitionError as e:
            return cls.handle_exception(e, "External refund blocked", log_level=logging.WARNING)

        publish_event(
            publisher,
            "refund.processed",
            txn.payer_id,
            {"transaction_id": str(txn.id), "job_id": str(txn.job_id), "amount_cents": amount},
        )
        return ServiceResult.success(txn)

    @staticmethod
    def _apply_refund(txn: Transaction, amount: int, refund_id: str, reason: str) -> None:
        """Refund a locked transaction and cancel its job. Runs inside atomic."""
        if txn.wallet_credited_at is not None and not txn.is_released:
            txn.metadata = {
                **txn.metadata,
                "pending_credit_frozen": True,
                "frozen_pending_cents": txn.provider_amount_cents,
            }
        txn.refund(amount, refund_id=refund_id, reason=reason)
        txn.save()

        if txn.job_id is not None:
            job = Job.objects.select_for_update().get(pk=txn.job_id)
            JobService.cancel_for_refund(job, reason or "Payment refunded")

    # =========================================================================
    # Sweeps
    # =========================================================================

    @classmethod
    def process_pending_releases(cls) -> dict[str, int]:
        """
        Release pending credits that became eligible.

        Eligible: completed, credited to pending, unreleased, and either the
        provider's wallet is now verified or the credit is older than
        SETTLEMENT_RELEASE_WINDOW_DAYS. Completed payments whose settlement
        never ran are settled first.

        Returns:
            Counts: settled, released, deferred (transfer failed, still
            pending), failed, and skipped=1 if another sweep runs
        """
        summary = {"settled": 0, "released": 0, "deferred": 0, "failed": 0, "skipped": 0}
        lock = DistributedLock(SWEEP_LOCK_KEY, ttl=SWEEP_LOCK_TTL, blocking=False)
        try:
            with lock:
                now = timezone.now()
                unsettled = Transaction.objects.filter(
                    status=TransactionStatus.COMPLETED,
                    wallet_credited_at__isnull=True,
                    completed_at__lte=now - UNSETTLED_GRACE_PERIOD,
                ).values_list("id", flat=True)
                for transaction_id in list(unsettled):
                    if cls.settle_completed_transaction(transaction_id).success:
                        summary["settled"] += 1

                cutoff = now - timedelta(days=settings.SETTLEMENT_RELEASE_WINDOW_DAYS)
                eligible = Transaction.objects.awaiting_release().filter(
                    Q(pending_release_at__lte=cutoff)
                    | Q(
                        quote__provider__wallet__stripe_account_status=StripeAccountStatus.VERIFIED,
                        quote__provider__wallet__stripe_account_id__gt="",
                    )
                )
                for transaction_id in list(eligible.values_list("id", flat=True)):
                    result = cls.release_payment(transaction_id, notes="Automatic release")
                    if result.success and result.data.is_released:
                        summary["released"] += 1
                    elif result.success:
                        summary["deferred"] += 1
                    else:
                        summary["failed"] += 1
                        cls.get_logger().warning(
                            "Automatic release failed",
                            extra={
                                "transaction_id": str(transaction_id),
                                "error_code": result.error_code,
                            },
                        )
        except LockAcquisitionError:
            cls.get_logger().info("Settlement sweep already running")
            summary["skipped"] = 1
            return summary

        if any(summary[key] for key in ("settled", "released", "deferred", "failed")):
            cls.get_logger().info("Settlement sweep finished", extra=summary)
        return summary

    @classmethod
    def fail_stale_pending_transactions(cls) -> dict[str, int]:
        """
        Reconcile card payments left pending past PAYMENT_PENDING_TIMEOUT_HOURS.

        Stripe is asked for each PaymentIntent before anything changes
        locally:

            succeeded   -> completed and settled as if the webhook arrived
            processing  -> left alone; the webhook will settle it
            canceled    -> failed locally
            other       -> cancelled on Stripe, then failed locally

        A Stripe error leaves the transaction pending for the next run, so a
        payment that may still capture is never failed here. Failed payments
        keep the job in progress so the client can initiate a new one.

        Returns:
            Counts: failed, completed, skipped
        """
        hours = settings.PAYMENT_PENDING_TIMEOUT_HOURS
        cutoff = timezone.now() - timedelta(hours=hours)
        stale_ids = Transaction.objects.filter(
            status=TransactionStatus.PENDING,
            payment_method=PaymentMethod.CARD,
            created_at__lte=cutoff,
        ).values_list("id", flat=True)

        summary = {"failed": 0, "completed": 0, "skipped": 0}
        for transaction_id in list(stale_ids):
            summary[cls._reconcile_stale_payment(transaction_id, hours)] += 1

        if summary["failed"] or summary["completed"]:
            cls.get_logger().info("Stale pending payments reconciled", extra=summary)
        return summary

    @classmethod
    def _reconcile_stale_payment(cls, transaction_id, hours: int) -> str:
        """Reconcile one stale card payment; returns the summary key it counts under."""
        from payments.services.payment_service import PaymentService

        txn = Transaction.objects.get(pk=transaction_id)
        payment_intent_id = txn.stripe_payment_intent_id

        if payment_intent_id:
            try:
                intent = StripeAdapter.retrieve_payment_intent(payment_intent_id)
                if intent.status == "succeeded":
                    result = PaymentService.complete_card_payment(
                        payment_intent_id, charge_id=intent.latest_charge_id
                    )
                    return "completed" if result.success else "skipped"
                if intent.status == "processing":
                    return "skipped"
                if intent.status != "canceled":
                    StripeAdapter.cancel_payment_intent(
                        payment_intent_id,
                        idempotency_key=IdempotencyKeyGenerator.generate(
                            "cancel_intent", txn.id
                        ),
                    )
            except StripeError as e:
                cls.get_logger().warning(
                    "Stale payment left pending: Stripe state unknown",
                    extra={
                        "transaction_id": str(txn.id),
                        "payment_intent_id": payment_intent_id,
                        "error_code": e.error_code,
                    },
                )
                return "skipped"

        with cls.atomic():
            txn = Transaction.objects.select_for_update().get(pk=transaction_id)
            if txn.status != TransactionStatus.PENDING:
                return "skipped"
            txn.fail(f"Payment not completed within {hours} hours")
            txn.save()
        return "failed"
