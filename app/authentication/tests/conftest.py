"""
Test configuration and fixtures for authentication tests.

Usage:
    def test_example(user, api_client):
        response = api_client.post('/api/v1/auth/token/', {...})
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import AdminUserFactory, ProviderFactory, UserFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a basic client user with auto-created profile."""
    return UserFactory()


@pytest.fixture
def provider(db):
    """Create a provider user."""
    return ProviderFactory()


@pytest.fixture
def operator(db):
    """Create a staff user with the admin role."""
    return AdminUserFactory()


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()
