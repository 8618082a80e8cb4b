"""
Pytest fixtures for jobs tests.

Fixtures provide jobs and quotes in the states the lifecycle tests start
from, plus authenticated API clients for the view tests.
"""

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import AdminUserFactory, ProviderFactory, UserFactory
from jobs.tests.factories import CategoryFactory, JobFactory, QuoteFactory, accepted_job


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def client_user(db):
    """Client who posts jobs."""
    return UserFactory()


@pytest.fixture
def provider(db):
    return ProviderFactory()


@pytest.fixture
def other_provider(db):
    return ProviderFactory()


@pytest.fixture
def operator(db):
    return AdminUserFactory()


# =============================================================================
# Job and Quote Fixtures
# =============================================================================


@pytest.fixture
def category(db):
    return CategoryFactory(name="Plumbing")


@pytest.fixture
def job(db, client_user, category):
    """Pending job with ASAP urgency."""
    return JobFactory(client=client_user, category=category)


@pytest.fixture
def quote(db, job, provider):
    """Pending root quote on the job."""
    return QuoteFactory(job=job, provider=provider, price_cents=12000)


@pytest.fixture
def in_progress_job(db, client_user, provider):
    """Job with an accepted quote. Returns (job, quote)."""
    return accepted_job(client=client_user, provider=provider, price_cents=15000)


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
