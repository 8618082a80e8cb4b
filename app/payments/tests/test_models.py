"""
Tests for payment models.

Covers the commission split, Transaction state transitions and database
constraints, the Wallet ledger guards and WebhookEvent helpers.
"""

import pytest
from django.db import IntegrityError, transaction
from django_fsm import TransitionNotAllowed

from payments.exceptions import InsufficientBalanceError
from payments.models import (
    MAX_WEBHOOK_RETRIES,
    Transaction,
    Wallet,
    WebhookEvent,
    split_commission,
)
from payments.state_machines import StripeAccountStatus, TransactionStatus, WebhookEventStatus
from payments.tests.factories import (
    TransactionFactory,
    WalletFactory,
    WebhookEventFactory,
    completed_transaction,
)


class TestSplitCommission:
    @pytest.mark.parametrize(
        "amount,percent,expected",
        [
            (10000, 10, (1000, 9000)),
            (999, 10, (99, 900)),
            (1, 10, (0, 1)),
            (15000, 0, (0, 15000)),
            (12345, 15, (1851, 10494)),
        ],
    )
    def test_parts_sum_to_amount(self, amount, percent, expected):
        commission, provider_amount = split_commission(amount, percent)

        assert (commission, provider_amount) == expected
        assert commission + provider_amount == amount


@pytest.mark.django_db
class TestTransactionTransitions:
    def test_card_payment_happy_path(self):
        txn = TransactionFactory()

        txn.mark_processing()
        txn.save()
        txn.complete(charge_id="ch_1")
        txn.save()

        txn = Transaction.objects.get(pk=txn.pk)
        assert txn.status == TransactionStatus.COMPLETED
        assert txn.stripe_charge_id == "ch_1"
        assert txn.paid_at is not None
        assert txn.completed_at is not None

    def test_fail_records_reason(self):
        txn = TransactionFactory()

        txn.fail("Card declined")
        txn.save()

        txn = Transaction.objects.get(pk=txn.pk)
        assert txn.status == TransactionStatus.FAILED
        assert txn.failure_reason == "Card declined"
        assert txn.failed_at is not None

    def test_refund_records_amount_and_reason(self):
        txn = completed_transaction()

        txn.refund(4000, refund_id="re_1", reason="Work not done")
        txn.save()

        txn = Transaction.objects.get(pk=txn.pk)
        assert txn.status == TransactionStatus.REFUNDED
        assert txn.refunded_amount_cents == 4000
        assert txn.stripe_refund_id == "re_1"
        assert txn.metadata["refund_reason"] == "Work not done"

    def test_dispute_keeps_existing_metadata(self):
        txn = completed_transaction()
        Transaction.objects.filter(pk=txn.pk).update(metadata={"note": "x"})
        txn = Transaction.objects.get(pk=txn.pk)

        txn.dispute(dispute_id="dp_1", reason="fraudulent")

        assert txn.status == TransactionStatus.DISPUTED
        assert txn.metadata == {"note": "x", "dispute_id": "dp_1", "dispute_reason": "fraudulent"}

    @pytest.mark.parametrize(
        "status,method",
        [
            (TransactionStatus.FAILED, "complete"),
            (TransactionStatus.COMPLETED, "fail"),
            (TransactionStatus.PENDING, "refund"),
            (TransactionStatus.REFUNDED, "dispute"),
            (TransactionStatus.PROCESSING, "mark_processing"),
        ],
    )
    def test_invalid_transitions_rejected(self, status, method):
        txn = TransactionFactory(status=status)
        args = (100,) if method == "refund" else ()

        with pytest.raises(TransitionNotAllowed):
            getattr(txn, method)(*args)

    def test_status_cannot_be_assigned_directly(self):
        txn = TransactionFactory()

        with pytest.raises(AttributeError):
            txn.status = TransactionStatus.COMPLETED

    def test_save_bumps_version(self):
        txn = TransactionFactory()
        assert txn.version == 1

        txn.mark_processing()
        txn.save()

        assert txn.version == 2

    def test_provider_id_from_quote(self, provider):
        txn = TransactionFactory(provider=provider)

        assert txn.provider_id == provider.id


@pytest.mark.django_db
class TestTransactionConstraints:
    def test_split_must_sum_to_amount(self):
        txn = TransactionFactory()

        with pytest.raises(IntegrityError), transaction.atomic():
            Transaction.objects.filter(pk=txn.pk).update(provider_amount_cents=1)

    def test_refund_cannot_exceed_amount(self):
        txn = completed_transaction()

        with pytest.raises(IntegrityError), transaction.atomic():
            Transaction.objects.filter(pk=txn.pk).update(refunded_amount_cents=txn.amount_cents + 1)

    def test_payment_intent_id_unique(self):
        TransactionFactory(stripe_payment_intent_id="pi_dup")

        with pytest.raises(IntegrityError), transaction.atomic():
            TransactionFactory(stripe_payment_intent_id="pi_dup")


@pytest.mark.django_db
class TestTransactionQuerySet:
    def test_awaiting_release(self):
        waiting = completed_transaction(credited="pending")
        completed_transaction(credited="released")
        completed_transaction()
        TransactionFactory()

        assert list(Transaction.objects.awaiting_release()) == [waiting]


@pytest.mark.django_db
class TestWalletLedger:
    def test_add_earnings_to_pending(self):
        wallet = WalletFactory()

        wallet.add_earnings(9000, pending=True)

        wallet = Wallet.objects.get(pk=wallet.pk)
        assert wallet.pending_balance_cents == 9000
        assert wallet.available_balance_cents == 0
        assert wallet.total_earned_cents == 9000

    def test_add_earnings_to_available(self):
        wallet = WalletFactory()

        wallet.add_earnings(9000)

        assert wallet.available_balance_cents == 9000
        assert wallet.total_earned_cents == 9000

    def test_add_earnings_rejects_non_positive(self):
        wallet = WalletFactory()

        with pytest.raises(InsufficientBalanceError):
            wallet.add_earnings(0)

    def test_release_pending_balance(self):
        wallet = WalletFactory()
        wallet.add_earnings(9000, pending=True)

        wallet.release_pending_balance(9000)

        wallet = Wallet.objects.get(pk=wallet.pk)
        assert wallet.pending_balance_cents == 0
        assert wallet.available_balance_cents == 9000

    def test_release_more_than_pending_changes_nothing(self):
        wallet = WalletFactory()
        wallet.add_earnings(5000, pending=True)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            wallet.release_pending_balance(6000)

        assert exc_info.value.error_code == "INSUFFICIENT_BALANCE"
        wallet = Wallet.objects.get(pk=wallet.pk)
        assert wallet.pending_balance_cents == 5000
        assert wallet.available_balance_cents == 0

    def test_withdrawal_and_rollback(self):
        wallet = WalletFactory()
        wallet.add_earnings(9000)

        wallet.process_withdrawal(4000)
        assert wallet.available_balance_cents == 5000
        assert wallet.withdrawn_balance_cents == 4000

        wallet.rollback_withdrawal(4000)
        assert wallet.available_balance_cents == 9000
        assert wallet.withdrawn_balance_cents == 0

    def test_withdrawal_beyond_available_rejected(self):
        wallet = WalletFactory()
        wallet.add_earnings(1000)

        with pytest.raises(InsufficientBalanceError):
            wallet.process_withdrawal(1001)

    def test_rollback_beyond_withdrawn_rejected(self):
        wallet = WalletFactory()

        with pytest.raises(InsufficientBalanceError):
            wallet.rollback_withdrawal(100)

    def test_negative_balance_blocked_by_database(self):
        wallet = WalletFactory()

        with pytest.raises(IntegrityError), transaction.atomic():
            Wallet.objects.filter(pk=wallet.pk).update(available_balance_cents=-1)

    def test_is_verified_needs_account_and_status(self):
        wallet = WalletFactory(stripe_account_status=StripeAccountStatus.VERIFIED)
        assert not wallet.is_verified

        wallet.stripe_account_id = "acct_1"
        assert wallet.is_verified

        wallet.stripe_account_status = StripeAccountStatus.REJECTED
        assert not wallet.is_verified


@pytest.mark.django_db
class TestWebhookEvent:
    def test_processing_lifecycle(self):
        event = WebhookEventFactory()

        event.mark_processing()
        assert event.status == WebhookEventStatus.PROCESSING
        assert event.retry_count == 1

        event.mark_failed("boom")
        assert event.can_retry

        event.mark_processing()
        event.mark_processed()
        assert event.is_processed
        assert event.error_message == ""
        assert event.processed_at is not None

    def test_cannot_retry_past_limit(self):
        event = WebhookEventFactory(
            status=WebhookEventStatus.FAILED, retry_count=MAX_WEBHOOK_RETRIES
        )

        assert not event.can_retry

    def test_get_object_tolerates_malformed_payload(self):
        event = WebhookEventFactory(payload={"data": "oops"})

        assert event.get_object() == {}
        assert event.get_object_id() is None

    def test_get_object_id(self):
        event = WebhookEventFactory()

        assert event.get_object_id() == "pi_test123"

    def test_receive_stores_once(self):
        body = {
            "id": "evt_payout_failed",
            "type": "payout.failed",
            "data": {"object": {"id": "po_1", "object": "payout"}},
        }

        first, created = WebhookEvent.receive(body)
        again, created_again = WebhookEvent.receive({**body, "type": "changed"})

        assert created is True
        assert created_again is False
        assert again.pk == first.pk
        assert again.event_type == "payout.failed"
        assert first.object_id == "po_1"
        assert first.status == WebhookEventStatus.PENDING
