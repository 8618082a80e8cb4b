"""
Add celery-beat schedule for the job expiry sweep.

Runs expire_overdue_jobs every 10 minutes so pending jobs past their
listing lifetime move to EXPIRED along with their open quotes.
"""

from django.db import migrations

TASK_NAME = "Expire Overdue Jobs"


def create_periodic_task(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=10,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "jobs.tasks.expire_overdue_jobs",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Moves pending jobs past expires_at to EXPIRED and expires "
                "their open quotes."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("jobs", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
