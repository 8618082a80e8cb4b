"""
Manager for the email-login User model.
"""

from django.contrib.auth.models import BaseUserManager


class UserManager(BaseUserManager):
    """
    Creates users keyed by email.

    Names live on Profile, so first_name/last_name passed by generic Django
    tooling are dropped here. Superusers are marketplace operators: they get
    the admin role so the release and refund endpoints accept them.
    """

    use_in_migrations = True

    def _build(self, email, password, **fields):
        if not email:
            raise ValueError("An email address is required")
        for name_field in ("first_name", "last_name"):
            fields.pop(name_field, None)

        user = self.model(email=self.normalize_email(email), **fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **fields):
        fields.setdefault("is_staff", False)
        fields.setdefault("is_superuser", False)
        return self._build(email, password, **fields)

    def create_superuser(self, email, password=None, **fields):
        fields.setdefault("is_staff", True)
        fields.setdefault("is_superuser", True)
        fields.setdefault("email_verified", True)
        fields.setdefault("role", "admin")

        for flag in ("is_staff", "is_superuser"):
            if fields[flag] is not True:
                raise ValueError(f"Superuser must have {flag}=True.")

        return self._build(email, password, **fields)

