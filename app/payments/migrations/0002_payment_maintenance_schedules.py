"""
Add celery-beat schedules for payment maintenance.

Webhook recovery runs frequently so a lost queue message delays processing
by minutes at most. The settlement sweep and stale-payment cleanup are hourly.
"""

from django.db import migrations

# (name, task, every, period, description)
SCHEDULES = [
    (
        "Retry Failed Webhooks",
        "payments.tasks.retry_failed_webhooks",
        5,
        "minutes",
        "Re-queues failed webhook events under the retry limit and pending events never queued.",
    ),
    (
        "Cleanup Stuck Webhooks",
        "payments.tasks.cleanup_stuck_webhooks",
        15,
        "minutes",
        "Marks webhook events stuck in PROCESSING for over 30 minutes as failed.",
    ),
    (
        "Cleanup Old Webhooks",
        "payments.tasks.cleanup_old_webhooks",
        1,
        "days",
        "Deletes processed webhook events older than 90 days.",
    ),
    (
        "Process Pending Releases",
        "payments.tasks.process_pending_releases",
        1,
        "hours",
        "Settles uncredited completed payments and releases pending credits past the release window.",
    ),
    (
        "Fail Stale Pending Transactions",
        "payments.tasks.fail_stale_pending_transactions",
        1,
        "hours",
        "Fails card payments stuck in PENDING beyond the payment timeout.",
    ),
]


def create_periodic_tasks(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for name, task, every, period, description in SCHEDULES:
        schedule, _ = IntervalSchedule.objects.get_or_create(every=every, period=period)
        PeriodicTask.objects.get_or_create(
            name=name,
            defaults={
                "task": task,
                "interval": schedule,
                "enabled": True,
                "description": description,
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name__in=[entry[0] for entry in SCHEDULES]).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
