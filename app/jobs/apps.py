"""
Jobs app configuration.

This app owns the job and quote state machines:
- Category directory
- Job lifecycle (post, accept quote, complete, cancel, expire)
- Quote lifecycle (submit, revise, decline, cancel)
"""

from django.apps import AppConfig


class JobsConfig(AppConfig):
    """Configuration for the jobs application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "jobs"
    verbose_name = "Jobs"
