"""
Fixtures for StripeAdapter tests.

Stripe SDK resources are patched where the adapter looks them up (the
top-level stripe module). Responses are FakeStripeObject dicts, readable by
attribute like the SDK's StripeObject.
"""

from unittest.mock import patch

import pytest
import stripe


class FakeStripeObject(dict):
    """Dict with attribute access and to_dict(), like stripe.StripeObject."""

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def to_dict(self):
        return dict(self)


def stripe_object(object_type: str, **fields) -> FakeStripeObject:
    return FakeStripeObject(object=object_type, metadata={}, **fields)


# =============================================================================
# Responses
# =============================================================================


@pytest.fixture
def job_payment_intent():
    """PaymentIntent for a $100.00 job, awaiting card details by default."""

    def _build(id="pi_job_100", status="requires_payment_method", **fields):
        fields.setdefault("amount", 10000)
        fields.setdefault("currency", "usd")
        fields.setdefault("client_secret", f"{id}_secret_x")
        return stripe_object("payment_intent", id=id, status=status, **fields)

    return _build


# =============================================================================
# Errors
# =============================================================================


@pytest.fixture
def card_declined():
    def _build(decline_code="generic_decline"):
        error = stripe.CardError(
            message="Your card was declined.", param=None, code="card_declined"
        )
        error.decline_code = decline_code
        return error

    return _build


@pytest.fixture
def invalid_request():
    def _build(message="No such payment_intent: 'pi_missing'", code="resource_missing"):
        return stripe.InvalidRequestError(message=message, param=None, code=code)

    return _build


# =============================================================================
# Patched SDK resources
# =============================================================================


@pytest.fixture(autouse=True)
def no_stripe_http():
    """The adapter builds a RequestsClient on configure; never a real one."""
    with patch("stripe.RequestsClient") as client_class:
        yield client_class


@pytest.fixture
def payment_intent_api(job_payment_intent):
    with patch("stripe.PaymentIntent") as api:
        api.create.return_value = job_payment_intent()
        api.retrieve.return_value = job_payment_intent()
        yield api


@pytest.fixture
def transfer_api():
    with patch("stripe.Transfer") as api:
        api.create.return_value = stripe_object(
            "transfer", id="tr_provider_share", amount=9000, currency="usd",
            destination="acct_provider",
        )
        yield api


@pytest.fixture
def refund_api():
    with patch("stripe.Refund") as api:
        api.create.return_value = stripe_object(
            "refund", id="re_job_100", amount=10000, currency="usd",
            status="succeeded", payment_intent="pi_job_100",
        )
        yield api


@pytest.fixture
def webhook_api():
    with patch("stripe.Webhook") as api:
        api.construct_event.return_value = FakeStripeObject(
            id="evt_job_paid",
            type="payment_intent.succeeded",
            data={"object": {"id": "pi_job_100", "object": "payment_intent"}},
        )
        yield api
