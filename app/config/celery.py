"""
Celery configuration for the marketplace backend.

Background work handled by the worker:
- Stripe webhook events, processed asynchronously after the endpoint stores them
- Settlement sweep: crediting missed completions and releasing pending earnings
- Expiry of card payments that never reached a terminal state
- Webhook housekeeping (retries, stuck events, retention)

Redis is both the message broker and result backend. Periodic schedules are
stored by django-celery-beat (DatabaseScheduler) and seeded by data migrations.

Usage:
    from payments.tasks import process_webhook_event

    process_webhook_event.delay(str(event.id))
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up jobs.tasks and payments.tasks
app.autodiscover_tasks()
