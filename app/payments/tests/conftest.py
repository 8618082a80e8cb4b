"""
Pytest fixtures for payment tests.

Fixtures provide transactions and wallets in the states the settlement
tests start from. Redis locks are replaced by no-op context managers and
Stripe is never called: tests patch StripeAdapter where they need it.

Usage:
    def test_release(pending_credit_txn, operator):
        result = SettlementService.release_payment(pending_credit_txn.id, operator)
        assert result.success
"""

from unittest.mock import MagicMock, patch

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import AdminUserFactory, ProviderFactory, UserFactory
from jobs.tests.factories import accepted_job
from payments.adapters import (
    PaymentIntentResult,
    PayoutResult,
    RefundResult,
    TransferResult,
)
from payments.models import Wallet
from payments.state_machines import PaymentMethod, StripeAccountStatus
from payments.tests.factories import (
    TransactionFactory,
    WebhookEventFactory,
    completed_transaction,
)


# =============================================================================
# Lock Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def no_redis_locks():
    """
    Replace DistributedLock in the settlement service with a no-op.

    Tests that exercise contention set side_effect on the returned mock's
    __enter__ (no_redis_locks.return_value.__enter__.side_effect).
    """
    lock = MagicMock()
    lock.__enter__.return_value = lock
    lock.__exit__.return_value = False
    with patch(
        "payments.services.settlement_service.DistributedLock", return_value=lock
    ) as lock_class:
        yield lock_class


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def client_user(db):
    """Client who pays for jobs."""
    return UserFactory()


@pytest.fixture
def provider(db):
    return ProviderFactory()


@pytest.fixture
def operator(db):
    return AdminUserFactory()


# =============================================================================
# Job / Transaction Fixtures
# =============================================================================


@pytest.fixture
def in_progress_job(db, client_user, provider):
    """Job with an accepted 100.00 quote. Returns (job, quote)."""
    return accepted_job(client=client_user, provider=provider, price_cents=10000)


@pytest.fixture
def pending_card_txn(db, provider):
    return TransactionFactory(provider=provider, stripe_payment_intent_id="pi_pending")


@pytest.fixture
def pending_cash_txn(db, provider):
    return TransactionFactory(provider=provider, payment_method=PaymentMethod.CASH)


@pytest.fixture
def pending_credit_txn(db, provider):
    """Completed card payment credited to the provider's pending bucket."""
    return completed_transaction(
        credited="pending", provider=provider, stripe_payment_intent_id="pi_credited"
    )


@pytest.fixture
def verified_wallet(db, provider):
    """The provider's wallet with a verified connected account (created if missing)."""
    wallet, _ = Wallet.objects.get_or_create(provider=provider)
    Wallet.objects.filter(pk=wallet.pk).update(
        stripe_account_id="acct_verified",
        stripe_account_status=StripeAccountStatus.VERIFIED,
    )
    return Wallet.objects.get(pk=wallet.pk)


# =============================================================================
# Stripe Fixtures
# =============================================================================


@pytest.fixture
def stripe_intent():
    """Patch PaymentIntent creation; yields the mock."""
    with patch("payments.services.payment_service.StripeAdapter.create_payment_intent") as mock:
        mock.return_value = PaymentIntentResult(
            id="pi_new",
            status="requires_payment_method",
            amount_cents=10000,
            currency="usd",
            client_secret="pi_new_secret_abc",
        )
        yield mock


@pytest.fixture
def stripe_transfer():
    """Patch transfers made by the settlement strategies; yields the mock."""
    with patch("payments.strategies.release.StripeAdapter.create_transfer") as mock:
        mock.return_value = TransferResult(
            id="tr_test",
            amount_cents=9000,
            currency="usd",
            destination_account="acct_test",
        )
        yield mock


@pytest.fixture
def stripe_refund():
    with patch("payments.services.settlement_service.StripeAdapter.create_refund") as mock:
        mock.return_value = RefundResult(
            id="re_test",
            amount_cents=10000,
            currency="usd",
            status="succeeded",
            payment_intent_id="pi_credited",
        )
        yield mock


@pytest.fixture
def stripe_payout():
    with patch("payments.services.wallet_service.StripeAdapter.create_payout") as mock:
        mock.return_value = PayoutResult(
            id="po_test",
            amount_cents=5000,
            currency="usd",
            status="pending",
            stripe_account_id="acct_test",
        )
        yield mock


# =============================================================================
# Webhook Fixtures
# =============================================================================


@pytest.fixture
def webhook_event_factory(db):
    """Build a stored webhook event for a given type and data.object."""

    def _make(event_type, obj, **extra):
        payload = {
            "id": extra.pop("stripe_event_id", None) or f"evt_{event_type.replace('.', '_')}",
            "type": event_type,
            "data": {"object": obj},
            **extra,
        }
        return WebhookEventFactory(
            stripe_event_id=payload["id"], event_type=event_type, payload=payload
        )

    return _make


# =============================================================================
# Event Fixtures
# =============================================================================


@pytest.fixture
def recording_publisher():
    """Event publisher that records every call."""

    class RecordingPublisher:
        def __init__(self):
            self.events = []

        def publish(self, event_type, recipient_id, payload):
            self.events.append((event_type, recipient_id, payload))

        def types(self):
            return [event[0] for event in self.events]

        def recipient(self, event_type):
            return next(event[1] for event in self.events if event[0] == event_type)

    return RecordingPublisher()


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def authenticated_client_factory():
    """Build an APIClient authenticated as the given user."""

    def _make(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    return _make
