"""
Tests for UserManager.

The UserManager provides:
- create_user(): Creates users with optional password and a marketplace role
- create_superuser(): Creates operator accounts with elevated privileges
"""

import pytest

from authentication.models import User


class TestUserManagerCreateUser:
    """Tests for UserManager.create_user() method."""

    def test_creates_user_with_email_and_password(self, db):
        """
        Given valid email and password
        When create_user is called
        Then a client user is created with those credentials
        """
        user = User.objects.create_user(email="mgr@example.com", password="SecurePass123!")

        assert user.pk is not None
        assert user.check_password("SecurePass123!") is True
        assert user.role == User.Role.CLIENT
        assert user.completed_jobs_count == 0

    def test_normalizes_email_domain_to_lowercase(self, db):
        user = User.objects.create_user(email="Test.User@EXAMPLE.COM", password="x")

        assert user.email == "Test.User@example.com"

    def test_accepts_provider_role(self, db):
        user = User.objects.create_user(
            email="pro@example.com", password="x", role=User.Role.PROVIDER
        )

        assert user.is_provider is True
        assert user.is_client is False

    def test_without_password_sets_unusable_password(self, db):
        user = User.objects.create_user(email="nopass@example.com")

        assert user.has_usable_password() is False

    def test_missing_email_raises(self, db):
        with pytest.raises(ValueError, match="email address is required"):
            User.objects.create_user(email="", password="x")

    def test_drops_profile_fields(self, db):
        user = User.objects.create_user(
            email="names@example.com", password="x", first_name="Ada", last_name="L"
        )

        assert user.profile.first_name == ""


class TestUserManagerCreateSuperuser:
    """Tests for UserManager.create_superuser() method."""

    def test_creates_operator(self, db):
        admin = User.objects.create_superuser(email="ops@example.com", password="x")

        assert admin.is_staff is True
        assert admin.is_superuser is True
        assert admin.role == User.Role.ADMIN
        assert admin.is_operator is True

    def test_rejects_non_staff(self, db):
        with pytest.raises(ValueError, match="is_staff=True"):
            User.objects.create_superuser(email="bad@example.com", password="x", is_staff=False)
