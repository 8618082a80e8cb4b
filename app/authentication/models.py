"""
Authentication models.

This module defines the user directory for the marketplace:
- User: Custom user model with email-based authentication and a marketplace role
- Profile: Extended user profile data (OneToOne with User)

Related files:
    - managers.py: Custom user manager for email-based creation
    - signals.py: Auto-create profile on user creation

Roles:
    - client: posts jobs, accepts quotes, pays
    - provider: submits quotes, completes jobs, owns a Wallet
    - admin: operator access to release/refund endpoints (also is_staff)
"""

from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models
from django.db.models import F

from authentication.managers import UserManager
from core.models import BaseModel


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        role: Marketplace role (client, provider, admin)
        completed_jobs_count: Number of jobs this provider has completed
        email_verified: Whether the user's email has been verified
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        provider = User.objects.create_user(
            email="plumber@example.com",
            password="securepassword",
            role=User.Role.PROVIDER,
        )
    """

    class Role(models.TextChoices):
        CLIENT = "client", "Client"
        PROVIDER = "provider", "Provider"
        ADMIN = "admin", "Admin"

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )

    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.CLIENT,
        db_index=True,
        help_text="Marketplace role determining which operations the user may perform",
    )

    completed_jobs_count = models.PositiveIntegerField(
        default=0,
        help_text="Jobs completed by this provider (incremented on job completion)",
    )

    email_verified = models.BooleanField(
        default=False,
        help_text="Whether the user's email has been verified",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    @property
    def is_client(self) -> bool:
        return self.role == self.Role.CLIENT

    @property
    def is_provider(self) -> bool:
        return self.role == self.Role.PROVIDER

    @property
    def is_operator(self) -> bool:
        """Whether the user may run admin settlement operations."""
        return self.is_staff or self.role == self.Role.ADMIN

    def get_full_name(self):
        try:
            return self.profile.full_name or self.email
        except Profile.DoesNotExist:
            return self.email

    def get_short_name(self):
        try:
            return self.profile.first_name or self.email.split("@")[0]
        except Profile.DoesNotExist:
            return self.email.split("@")[0]

    def increment_completed_jobs(self):
        """
        Atomically bump completed_jobs_count.

        Uses an UPDATE with F() so concurrent completions for the same
        provider are not lost.
        """
        User.objects.filter(pk=self.pk).update(
            completed_jobs_count=F("completed_jobs_count") + 1
        )
        self.refresh_from_db(fields=["completed_jobs_count"])


class Profile(BaseModel):
    """
    Extended user profile data.

    Fields:
        user: OneToOne link to User (also serves as primary key)
        first_name: User's first name
        last_name: User's last name
        phone_number: Contact number shared with the other party of a job
        business_name: Trading name shown on a provider's quotes

    Note:
        Profile is automatically created via signals when a User is created.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
        primary_key=True,
        help_text="User this profile belongs to",
    )

    first_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="User's first name",
    )
    last_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="User's last name",
    )
    phone_number = models.CharField(
        max_length=32,
        blank=True,
        help_text="Contact phone number",
    )
    business_name = models.CharField(
        max_length=200,
        blank=True,
        help_text="Provider trading name (blank for clients)",
    )

    class Meta:
        db_table = "authentication_profile"
        verbose_name = "profile"
        verbose_name_plural = "profiles"

    def __str__(self):
        return self.business_name or self.full_name or str(self.user)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()
