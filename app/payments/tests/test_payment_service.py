"""
Tests for PaymentService.

Covers initiation (commission split frozen at creation, Stripe-first
ordering), cash confirmation, card completion/processing/failure from
webhooks, and the events each path publishes.
"""

from unittest.mock import patch

import pytest

from authentication.tests.factories import ProviderFactory
from jobs.models import Job
from jobs.states import JobStatus
from jobs.tests.factories import JobFactory
from payments.exceptions import (
    LockAcquisitionError,
    StripeAPIUnavailableError,
    StripeInvalidAccountError,
)
from payments.models import Transaction, Wallet
from payments.services import PaymentService
from payments.state_machines import TransactionStatus
from payments.tests.factories import TransactionFactory, completed_transaction


@pytest.mark.django_db
class TestInitiatePayment:
    def test_card_payment_freezes_split(self, in_progress_job, client_user, stripe_intent):
        job, quote = in_progress_job

        result = PaymentService.initiate_payment(job.id, client_user, "card")

        assert result.success
        txn = result.data.transaction
        assert result.data.client_secret == "pi_new_secret_abc"
        assert txn.status == TransactionStatus.PENDING
        assert txn.amount_cents == 10000
        assert txn.platform_commission_cents == 1000
        assert txn.provider_amount_cents == 9000
        assert txn.commission_percent == 10
        assert txn.stripe_payment_intent_id == "pi_new"
        assert txn.quote == quote

        params = stripe_intent.call_args[0][0]
        assert params.amount_cents == 10000
        assert params.idempotency_key.startswith(f"create_intent:{txn.id}:1:")
        assert params.metadata["job_id"] == str(job.id)

    def test_rate_change_does_not_touch_existing_transactions(
        self, in_progress_job, client_user, stripe_intent, settings
    ):
        job, _ = in_progress_job
        txn = PaymentService.initiate_payment(job.id, client_user, "card").data.transaction

        settings.PLATFORM_COMMISSION_PERCENT = 20
        txn = Transaction.objects.get(pk=txn.pk)

        assert txn.platform_commission_cents == 1000
        assert txn.provider_amount_cents == 9000

    def test_configured_rate_applied(self, in_progress_job, client_user, settings):
        settings.PLATFORM_COMMISSION_PERCENT = 15
        job, _ = in_progress_job

        result = PaymentService.initiate_payment(job.id, client_user, "cash")

        txn = result.data.transaction
        assert txn.platform_commission_cents == 1500
        assert txn.provider_amount_cents == 8500

    def test_cash_payment_skips_stripe(self, in_progress_job, client_user, stripe_intent):
        job, _ = in_progress_job

        result = PaymentService.initiate_payment(job.id, client_user, "cash")

        assert result.success
        assert result.data.client_secret is None
        assert result.data.transaction.stripe_payment_intent_id is None
        stripe_intent.assert_not_called()

    @pytest.mark.parametrize("method", ["bank_transfer", "bitcoin"])
    def test_unsupported_methods_rejected(self, in_progress_job, client_user, method):
        job, _ = in_progress_job

        result = PaymentService.initiate_payment(job.id, client_user, method)

        assert result.error_code == "VALIDATION_ERROR"
        assert "method" in result.errors

    def test_only_job_client_can_pay(self, in_progress_job):
        job, _ = in_progress_job
        stranger = JobFactory().client

        result = PaymentService.initiate_payment(job.id, stranger, "cash")

        assert result.error_code == "NOT_AUTHORIZED"

    def test_pending_job_not_ready(self, client_user):
        job = JobFactory(client=client_user)

        result = PaymentService.initiate_payment(job.id, client_user, "cash")

        assert result.error_code == "JOB_NOT_READY"

    def test_missing_job(self, client_user):
        result = PaymentService.initiate_payment(
            "00000000-0000-0000-0000-000000000000", client_user, "cash"
        )

        assert result.error_code == "NOT_FOUND"

    def test_second_active_payment_rejected(self, in_progress_job, client_user):
        job, _ = in_progress_job
        PaymentService.initiate_payment(job.id, client_user, "cash")

        result = PaymentService.initiate_payment(job.id, client_user, "cash")

        assert result.error_code == "INVALID_STATE"
        assert Transaction.objects.filter(job=job).count() == 1

    def test_new_payment_allowed_after_failure(self, in_progress_job, client_user):
        job, quote = in_progress_job
        TransactionFactory(
            job_and_quote=(job, quote), payer=client_user, status=TransactionStatus.FAILED
        )

        result = PaymentService.initiate_payment(job.id, client_user, "cash")

        assert result.success

    def test_stripe_failure_writes_nothing(self, in_progress_job, client_user):
        job, _ = in_progress_job

        with patch(
            "payments.services.payment_service.StripeAdapter.create_payment_intent",
            side_effect=StripeAPIUnavailableError("Stripe down"),
        ):
            result = PaymentService.initiate_payment(job.id, client_user, "card")

        assert result.error_code == "PAYMENT_PROVIDER_ERROR"
        assert not Transaction.objects.exists()


@pytest.mark.django_db
class TestConfirmCashPayment:
    def test_provider_confirms(self, pending_cash_txn, provider, recording_publisher):
        result = PaymentService.confirm_cash_payment(
            pending_cash_txn.id, provider, publisher=recording_publisher
        )

        assert result.success
        txn = Transaction.objects.get(pk=pending_cash_txn.pk)
        assert txn.status == TransactionStatus.COMPLETED
        assert txn.is_released
        assert Job.objects.get(pk=txn.job_id).status == JobStatus.COMPLETED

        wallet = Wallet.objects.get(provider=provider)
        assert wallet.available_balance_cents == 9000
        assert wallet.pending_balance_cents == 0

        assert recording_publisher.types() == ["payment.succeeded", "job.completed"]
        assert recording_publisher.recipient("payment.succeeded") == provider.id
        assert recording_publisher.recipient("job.completed") == txn.payer_id

    def test_other_provider_rejected(self, pending_cash_txn):
        """A provider not holding the accepted quote changes nothing."""
        other = ProviderFactory()

        result = PaymentService.confirm_cash_payment(pending_cash_txn.id, other)

        assert result.error_code == "NOT_AUTHORIZED"
        txn = Transaction.objects.get(pk=pending_cash_txn.pk)
        assert txn.status == TransactionStatus.PENDING
        assert Job.objects.get(pk=txn.job_id).status == JobStatus.IN_PROGRESS
        assert not Wallet.objects.filter(provider=other).exists()

    def test_card_payment_cannot_be_confirmed_as_cash(self, pending_card_txn, provider):
        result = PaymentService.confirm_cash_payment(pending_card_txn.id, provider)

        assert result.error_code == "INVALID_STATE"

    def test_second_confirmation_rejected(self, pending_cash_txn, provider):
        PaymentService.confirm_cash_payment(pending_cash_txn.id, provider)

        result = PaymentService.confirm_cash_payment(pending_cash_txn.id, provider)

        assert result.error_code == "INVALID_STATE"
        assert Wallet.objects.get(provider=provider).available_balance_cents == 9000


@pytest.mark.django_db
class TestCompleteCardPayment:
    def test_unverified_provider_credited_pending(
        self, pending_card_txn, provider, recording_publisher
    ):
        result = PaymentService.complete_card_payment(
            "pi_pending", charge_id="ch_1", publisher=recording_publisher
        )

        assert result.success
        txn = Transaction.objects.get(pk=pending_card_txn.pk)
        assert txn.status == TransactionStatus.COMPLETED
        assert txn.stripe_charge_id == "ch_1"
        assert txn.wallet_credited_at is not None
        assert txn.pending_release_at is not None
        assert not txn.is_released

        wallet = Wallet.objects.get(provider=provider)
        assert wallet.pending_balance_cents == 9000
        assert wallet.available_balance_cents == 0
        assert Job.objects.get(pk=txn.job_id).status == JobStatus.COMPLETED
        assert "payment.succeeded" in recording_publisher.types()

    def test_verified_provider_paid_by_transfer(
        self, pending_card_txn, verified_wallet, stripe_transfer
    ):
        result = PaymentService.complete_card_payment("pi_pending")

        assert result.success
        assert result.warning is None
        txn = Transaction.objects.get(pk=pending_card_txn.pk)
        assert txn.is_released
        assert txn.stripe_transfer_id == "tr_test"

        wallet = Wallet.objects.get(pk=verified_wallet.pk)
        assert wallet.available_balance_cents == 9000
        assert wallet.pending_balance_cents == 0

        kwargs = stripe_transfer.call_args.kwargs
        assert kwargs["amount_cents"] == 9000
        assert kwargs["destination_account"] == "acct_verified"
        assert kwargs["idempotency_key"].startswith(f"transfer:{txn.id}:1:")

    def test_failed_transfer_falls_back_to_pending(self, pending_card_txn, verified_wallet):
        with patch(
            "payments.strategies.release.StripeAdapter.create_transfer",
            side_effect=StripeInvalidAccountError("No such destination"),
        ):
            result = PaymentService.complete_card_payment("pi_pending")

        assert result.success
        assert "pending balance" in result.warning
        txn = Transaction.objects.get(pk=pending_card_txn.pk)
        assert not txn.is_released
        wallet = Wallet.objects.get(pk=verified_wallet.pk)
        assert wallet.pending_balance_cents == 9000

    def test_replayed_success_is_noop(self, pending_card_txn, provider, recording_publisher):
        PaymentService.complete_card_payment("pi_pending")

        result = PaymentService.complete_card_payment("pi_pending", publisher=recording_publisher)

        assert result.success
        assert recording_publisher.events == []
        wallet = Wallet.objects.get(provider=provider)
        assert wallet.total_earned_cents == 9000

    def test_replay_settles_when_settlement_never_ran(self, provider):
        txn = completed_transaction(provider=provider, stripe_payment_intent_id="pi_unsettled")

        result = PaymentService.complete_card_payment("pi_unsettled")

        assert result.success
        assert Transaction.objects.get(pk=txn.pk).wallet_credited_at is not None
        assert Wallet.objects.get(provider=provider).pending_balance_cents == 9000

    def test_unknown_intent_is_inconsistency(self, db):
        result = PaymentService.complete_card_payment("pi_missing")

        assert result.error_code == "INCONSISTENCY"

    def test_declined_then_retried_intent_completes(self, provider, recording_publisher):
        """The client retries the same PaymentIntent with another card after a decline."""
        txn = TransactionFactory(provider=provider, stripe_payment_intent_id="pi_retry")
        PaymentService.fail_card_payment("pi_retry", reason="Your card was declined.")

        result = PaymentService.complete_card_payment(
            "pi_retry", charge_id="ch_1", publisher=recording_publisher
        )

        assert result.success
        txn = Transaction.objects.get(pk=txn.pk)
        assert txn.status == TransactionStatus.COMPLETED
        assert txn.stripe_charge_id == "ch_1"
        assert txn.metadata["completed_after_failure"] is True
        assert txn.failure_reason == "Your card was declined."
        assert txn.wallet_credited_at is not None
        assert Job.objects.get(pk=txn.job_id).status == JobStatus.COMPLETED
        assert Wallet.objects.get(provider=provider).pending_balance_cents == 9000
        assert recording_publisher.types() == ["payment.succeeded", "job.completed"]

    def test_late_capture_after_replacement_is_inconsistency(self, provider):
        failed = TransactionFactory(provider=provider, stripe_payment_intent_id="pi_old")
        PaymentService.fail_card_payment("pi_old")
        replacement = TransactionFactory(job_and_quote=(failed.job, failed.quote))

        result = PaymentService.complete_card_payment("pi_old", charge_id="ch_late")

        assert result.error_code == "INCONSISTENCY"
        assert Transaction.objects.get(pk=failed.pk).status == TransactionStatus.FAILED
        assert Transaction.objects.get(pk=replacement.pk).status == TransactionStatus.PENDING
        assert not Wallet.objects.filter(provider=provider).exists()

    def test_late_capture_for_cancelled_job_is_inconsistency(self, pending_card_txn):
        PaymentService.fail_card_payment("pi_pending")
        Job.objects.filter(pk=pending_card_txn.job_id).update(status=JobStatus.CANCELLED)

        result = PaymentService.complete_card_payment("pi_pending")

        assert result.error_code == "INCONSISTENCY"
        assert Transaction.objects.get(pk=pending_card_txn.pk).status == TransactionStatus.FAILED

    def test_refunded_transaction_cannot_complete(self):
        TransactionFactory(
            stripe_payment_intent_id="pi_refunded", status=TransactionStatus.REFUNDED
        )

        result = PaymentService.complete_card_payment("pi_refunded")

        assert result.error_code == "INVALID_STATE"

    def test_settlement_contention_still_completes(self, pending_card_txn, no_redis_locks):
        no_redis_locks.return_value.__enter__.side_effect = LockAcquisitionError("held")

        result = PaymentService.complete_card_payment("pi_pending")

        assert result.success
        assert result.warning.startswith("Settlement deferred")
        txn = Transaction.objects.get(pk=pending_card_txn.pk)
        assert txn.status == TransactionStatus.COMPLETED
        assert txn.wallet_credited_at is None


@pytest.mark.django_db
class TestCardProcessingAndFailure:
    def test_mark_processing(self, pending_card_txn):
        result = PaymentService.mark_card_processing("pi_pending")

        assert result.success
        assert Transaction.objects.get(pk=pending_card_txn.pk).status == TransactionStatus.PROCESSING

    def test_processing_after_completion_ignored(self, pending_card_txn):
        PaymentService.complete_card_payment("pi_pending")

        result = PaymentService.mark_card_processing("pi_pending")

        assert result.success
        assert Transaction.objects.get(pk=pending_card_txn.pk).status == TransactionStatus.COMPLETED

    def test_fail_notifies_payer_and_keeps_job_open(self, pending_card_txn, recording_publisher):
        result = PaymentService.fail_card_payment(
            "pi_pending", reason="Your card was declined.", publisher=recording_publisher
        )

        assert result.success
        txn = Transaction.objects.get(pk=pending_card_txn.pk)
        assert txn.status == TransactionStatus.FAILED
        assert txn.failure_reason == "Your card was declined."
        assert Job.objects.get(pk=txn.job_id).status == JobStatus.IN_PROGRESS
        assert recording_publisher.types() == ["payment.failed"]
        assert recording_publisher.recipient("payment.failed") == txn.payer_id

    def test_fail_is_idempotent(self, pending_card_txn, recording_publisher):
        PaymentService.fail_card_payment("pi_pending")

        result = PaymentService.fail_card_payment("pi_pending", publisher=recording_publisher)

        assert result.success
        assert recording_publisher.events == []

    def test_fail_after_completion_rejected(self, pending_card_txn):
        PaymentService.complete_card_payment("pi_pending")

        result = PaymentService.fail_card_payment("pi_pending")

        assert result.error_code == "INVALID_STATE"
