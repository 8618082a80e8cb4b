"""
Payment service: capture of job payments with commission split.

Card payments follow a two-step pattern:
1. Create the Stripe PaymentIntent (outside any database transaction),
   keyed by a pre-generated transaction id
2. Only if that succeeds, write the Transaction row

Completion arrives asynchronously through the payment_intent.* webhooks
for card payments, or from the provider's confirmation for cash payments.
Both completion paths complete the job and hand the transaction to
SettlementService.

Usage:
    from payments.services import PaymentService

    result = PaymentService.initiate_payment(job.id, client, "card")
    if result.success:
        client_secret = result.data.client_secret
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings

from core.events import publish_event
from core.services import BaseService, ServiceResult
from jobs.models import Job
from jobs.services import JobService
from jobs.states import JobStatus
from payments.adapters import CreatePaymentIntentParams, IdempotencyKeyGenerator, StripeAdapter
from payments.exceptions import StripeError
from payments.models import Transaction, split_commission
from payments.services.settlement_service import SettlementService
from payments.state_machines import (
    ACTIVE_TRANSACTION_STATUSES,
    PaymentMethod,
    TransactionStatus,
)

if TYPE_CHECKING:
    from authentication.models import User
    from core.protocols import EventPublisher


@dataclass
class PaymentInitiation:
    """
    Result of initiating a payment.

    Attributes:
        transaction: The created Transaction (PENDING)
        client_secret: Stripe client secret for card payments, else None
    """

    transaction: Transaction
    client_secret: str | None = None


class PaymentService(BaseService):
    """
    Service for payment capture.

    Methods:
        initiate_payment: Create a pending payment for an in-progress job
        confirm_cash_payment: Provider confirms receipt of cash
        complete_card_payment: payment_intent.succeeded
        mark_card_processing: payment_intent.processing
        fail_card_payment: payment_intent.payment_failed
    """

    @classmethod
    def initiate_payment(
        cls,
        job_id,
        payer: User,
        method: str,
    ) -> ServiceResult[PaymentInitiation]:
        """
        Create a pending Transaction for a job's accepted quote.

        The commission rate and split are frozen into the record. For card
        payments the PaymentIntent is created first; if Stripe fails no
        Transaction row is written.

        Error codes:
            VALIDATION_ERROR: Unknown method, or bank_transfer
            NOT_FOUND: Job missing
            NOT_AUTHORIZED: Payer is not the job's client
            JOB_NOT_READY: Job not in progress with an accepted quote
            INVALID_STATE: Job already has an active transaction
            PAYMENT_PROVIDER_ERROR: PaymentIntent creation failed
        """
        if method not in PaymentMethod.values:
            return ServiceResult.failure(
                "Validation failed",
                error_code="VALIDATION_ERROR",
                errors={"method": [f"Must be one of {', '.join(PaymentMethod.values)}"]},
            )
        if method == PaymentMethod.BANK_TRANSFER:
            return ServiceResult.failure(
                "Bank transfers are recorded by operators",
                error_code="VALIDATION_ERROR",
                errors={"method": ["Bank transfer cannot be initiated here"]},
            )

        job = Job.objects.select_related("accepted_quote").filter(pk=job_id).first()
        if job is None:
            return ServiceResult.failure("Job not found", error_code="NOT_FOUND")
        if job.client_id != payer.id:
            return ServiceResult.failure(
                "Only the job's client can pay for it", error_code="NOT_AUTHORIZED"
            )
        if job.status != JobStatus.IN_PROGRESS or job.accepted_quote is None:
            return ServiceResult.failure(
                "Job is not ready for payment", error_code="JOB_NOT_READY"
            )
        if Transaction.objects.filter(job=job, status__in=ACTIVE_TRANSACTION_STATUSES).exists():
            return ServiceResult.failure(
                "Job already has an active payment", error_code="INVALID_STATE"
            )

        quote = job.accepted_quote
        percent = settings.PLATFORM_COMMISSION_PERCENT
        currency = settings.PLATFORM_CURRENCY
        commission_cents, provider_amount_cents = split_commission(quote.price_cents, percent)
        transaction_id = uuid.uuid4()

        intent = None
        if method == PaymentMethod.CARD:
            try:
                intent = StripeAdapter.create_payment_intent(
                    CreatePaymentIntentParams(
                        amount_cents=quote.price_cents,
                        currency=currency,
                        idempotency_key=IdempotencyKeyGenerator.generate(
                            "create_intent", transaction_id
                        ),
                        metadata={
                            "transaction_id": str(transaction_id),
                            "job_id": str(job.id),
                            "quote_id": str(quote.id),
                            "client_id": str(payer.id),
                            "provider_id": str(quote.provider_id),
                        },
                    )
                )
            except StripeError as e:
                return cls.handle_exception(
                    e, "PaymentIntent creation failed", log_level=logging.WARNING
                )

        with cls.atomic():
            job = Job.objects.select_for_update().get(pk=job.pk)
            blocked = (
                job.status != JobStatus.IN_PROGRESS
                or Transaction.objects.filter(
                    job=job, status__in=ACTIVE_TRANSACTION_STATUSES
                ).exists()
            )
            if blocked:
                if intent is not None:
                    cls.get_logger().warning(
                        "PaymentIntent orphaned by concurrent initiation",
                        extra={"job_id": str(job.id), "payment_intent_id": intent.id},
                    )
                return ServiceResult.failure(
                    "Job already has an active payment", error_code="INVALID_STATE"
                )

            txn = Transaction.objects.create(
                id=transaction_id,
                payer=payer,
                job=job,
                quote=quote,
                amount_cents=quote.price_cents,
                commission_percent=percent,
                platform_commission_cents=commission_cents,
                provider_amount_cents=provider_amount_cents,
                currency=currency,
                payment_method=method,
                stripe_payment_intent_id=intent.id if intent else None,
            )

        cls.get_logger().info(
            "Payment initiated",
            extra={
                "transaction_id": str(txn.id),
                "job_id": str(job.id),
                "payment_method": method,
                "amount_cents": txn.amount_cents,
                "payment_intent_id": txn.stripe_payment_intent_id,
            },
        )
        return ServiceResult.success(
            PaymentInitiation(
                transaction=txn,
                client_secret=intent.client_secret if intent else None,
            )
        )

    # =========================================================================
    # Completion
    # =========================================================================

    @classmethod
    def confirm_cash_payment(
        cls,
        transaction_id,
        actor: User,
        publisher: EventPublisher | None = None,
    ) -> ServiceResult[Transaction]:
        """
        Provider confirms the client paid in cash.

        Error codes:
            NOT_FOUND: Transaction missing
            NOT_AUTHORIZED: Actor is not the provider on the accepted quote
            INVALID_STATE: Not a pending cash payment
        """
        txn = Transaction.objects.select_related("quote").filter(pk=transaction_id).first()
        if txn is None:
            return ServiceResult.failure("Transaction not found", error_code="NOT_FOUND")
        if txn.provider_id != actor.id:
            return ServiceResult.failure(
                "Only the provider on the accepted quote can confirm this payment",
                error_code="NOT_AUTHORIZED",
            )

        with cls.atomic():
            txn = Transaction.objects.select_for_update().get(pk=transaction_id)
            if not txn.is_cash or txn.status != TransactionStatus.PENDING:
                return ServiceResult.failure(
                    f"Not a pending cash payment (status: {txn.status})",
                    error_code="INVALID_STATE",
                )
            txn.complete()
            txn.save()
            job_completed = cls._complete_job(txn)

        return cls._after_completion(txn, job_completed, publisher)

    @classmethod
    def complete_card_payment(
        cls,
        payment_intent_id: str,
        charge_id: str = "",
        publisher: EventPublisher | None = None,
    ) -> ServiceResult[Transaction]:
        """
        Complete a card payment from payment_intent.succeeded.

        A second completion for the same PaymentIntent is a no-op; it only
        retries settlement if that never ran. A FAILED transaction completes
        too (the client retried the intent with another card, or paid after
        the stale sweep) unless another payment replaced it.

        Error codes:
            INCONSISTENCY: No Transaction for the PaymentIntent, or the
                failed transaction was replaced by another payment
            INVALID_STATE: Transaction already refunded/disputed
        """
        txn = Transaction.objects.filter(stripe_payment_intent_id=payment_intent_id).first()
        if txn is None:
            cls.get_logger().error(
                "Payment succeeded for unknown PaymentIntent",
                extra={"payment_intent_id": payment_intent_id},
            )
            return ServiceResult.failure(
                f"No transaction for PaymentIntent {payment_intent_id}",
                error_code="INCONSISTENCY",
            )

        if txn.status == TransactionStatus.COMPLETED:
            if txn.wallet_credited_at is None:
                SettlementService.settle_completed_transaction(txn.id)
            return ServiceResult.success(txn)

        with cls.atomic():
            txn = Transaction.objects.select_for_update().get(pk=txn.pk)
            if txn.status == TransactionStatus.COMPLETED:
                return ServiceResult.success(txn)
            if txn.status == TransactionStatus.FAILED:
                conflict = cls._check_late_capture(txn)
                if conflict is not None:
                    return conflict
                txn.complete_after_failure(charge_id=charge_id)
            elif txn.status in (TransactionStatus.PENDING, TransactionStatus.PROCESSING):
                txn.complete(charge_id=charge_id)
            else:
                cls.get_logger().error(
                    "Payment succeeded for a closed transaction",
                    extra={"transaction_id": str(txn.id), "status": txn.status},
                )
                return ServiceResult.failure(
                    f"Transaction cannot complete (status: {txn.status})",
                    error_code="INVALID_STATE",
                )
            txn.save()
            job_completed = cls._complete_job(txn)

        return cls._after_completion(txn, job_completed, publisher)

    @classmethod
    def _check_late_capture(cls, txn: Transaction) -> ServiceResult | None:
        """
        Decide whether a failed transaction whose PaymentIntent captured can complete.

        It can only if nothing replaced it: no other active payment on the
        job, and the job still in progress. Otherwise the capture is
        reported for manual reconciliation. Runs inside atomic with the
        transaction locked; the job row is locked here.
        """
        if txn.job_id is None:
            return None

        job = Job.objects.select_for_update().get(pk=txn.job_id)
        replaced = (
            Transaction.objects.filter(job_id=txn.job_id, status__in=ACTIVE_TRANSACTION_STATUSES)
            .exclude(pk=txn.pk)
            .exists()
        )
        if not replaced and job.status == JobStatus.IN_PROGRESS:
            return None

        cls.get_logger().error(
            "Payment captured for a failed transaction that was replaced",
            extra={
                "transaction_id": str(txn.id),
                "payment_intent_id": txn.stripe_payment_intent_id,
                "job_id": str(txn.job_id),
                "job_status": job.status,
                "other_active_payment": replaced,
            },
        )
        return ServiceResult.failure(
            "Payment captured after the job moved on; needs manual reconciliation",
            error_code="INCONSISTENCY",
        )

    @classmethod
    def mark_card_processing(cls, payment_intent_id: str) -> ServiceResult[Transaction]:
        """
        Move a pending card payment to PROCESSING (payment_intent.processing).

        Out-of-order events for transactions past PENDING are ignored.
        """
        txn = Transaction.objects.filter(stripe_payment_intent_id=payment_intent_id).first()
        if txn is None:
            cls.get_logger().error(
                "Processing event for unknown PaymentIntent",
                extra={"payment_intent_id": payment_intent_id},
            )
            return ServiceResult.failure(
                f"No transaction for PaymentIntent {payment_intent_id}",
                error_code="INCONSISTENCY",
            )

        with cls.atomic():
            txn = Transaction.objects.select_for_update().get(pk=txn.pk)
            if txn.status != TransactionStatus.PENDING:
                return ServiceResult.success(txn)
            txn.mark_processing()
            txn.save()

        cls.get_logger().info("Card payment processing", extra={"transaction_id": str(txn.id)})
        return ServiceResult.success(txn)

    @classmethod
    def fail_card_payment(
        cls,
        payment_intent_id: str,
        reason: str = "",
        publisher: EventPublisher | None = None,
    ) -> ServiceResult[Transaction]:
        """
        Fail a card payment (payment_intent.payment_failed).

        The job stays in progress so the client can retry with a new
        initiation.

        Error codes:
            INCONSISTENCY: No Transaction for the PaymentIntent
            INVALID_STATE: Transaction already completed or closed
        """
        txn = Transaction.objects.filter(stripe_payment_intent_id=payment_intent_id).first()
        if txn is None:
            cls.get_logger().error(
                "Payment failure for unknown PaymentIntent",
                extra={"payment_intent_id": payment_intent_id},
            )
            return ServiceResult.failure(
                f"No transaction for PaymentIntent {payment_intent_id}",
                error_code="INCONSISTENCY",
            )

        with cls.atomic():
            txn = Transaction.objects.select_for_update().get(pk=txn.pk)
            if txn.status == TransactionStatus.FAILED:
                return ServiceResult.success(txn)
            if txn.status not in (TransactionStatus.PENDING, TransactionStatus.PROCESSING):
                return ServiceResult.failure(
                    f"Transaction cannot fail (status: {txn.status})",
                    error_code="INVALID_STATE",
                )
            txn.fail(reason)
            txn.save()

        cls.get_logger().info(
            "Card payment failed",
            extra={"transaction_id": str(txn.id), "reason": reason},
        )
        publish_event(
            publisher,
            "payment.failed",
            txn.payer_id,
            {"transaction_id": str(txn.id), "job_id": str(txn.job_id), "reason": reason},
        )
        return ServiceResult.success(txn)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _complete_job(txn: Transaction) -> bool:
        if txn.job_id is None:
            return False
        job = Job.objects.select_for_update().get(pk=txn.job_id)
        return JobService.complete_for_payment(job)

    @classmethod
    def _after_completion(
        cls,
        txn: Transaction,
        job_completed: bool,
        publisher: EventPublisher | None,
    ) -> ServiceResult[Transaction]:
        """Settle the committed completion and publish its events."""
        settlement = SettlementService.settle_completed_transaction(txn.id)
        if settlement.success:
            txn = settlement.data
            warning = settlement.warning
        else:
            warning = f"Settlement deferred: {settlement.error}"

        cls.get_logger().info(
            "Payment completed",
            extra={
                "transaction_id": str(txn.id),
                "job_id": str(txn.job_id),
                "payment_method": txn.payment_method,
                "job_completed": job_completed,
            },
        )

        payload = {
            "transaction_id": str(txn.id),
            "job_id": str(txn.job_id),
            "amount_cents": txn.amount_cents,
            "provider_amount_cents": txn.provider_amount_cents,
        }
        publish_event(publisher, "payment.succeeded", txn.provider_id, payload)
        if job_completed:
            publish_event(publisher, "job.completed", txn.payer_id, {"job_id": str(txn.job_id)})
        return ServiceResult.success(txn, warning=warning)
