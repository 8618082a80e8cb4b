"""
Payments app configuration.

This app provides payment capture with commission split, settlement of
provider earnings, the provider wallet ledger and Stripe webhook handling.
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
