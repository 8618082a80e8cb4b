"""Tests for jobs Celery tasks."""

from unittest.mock import patch

import pytest
from freezegun import freeze_time

from jobs.models import Job
from jobs.states import JobStatus, JobUrgency
from jobs.tasks import expire_overdue_jobs
from jobs.tests.factories import JobFactory


@pytest.mark.django_db
class TestExpireOverdueJobsTask:
    def test_task_expires_jobs(self):
        with freeze_time("2026-03-01 12:00:00"):
            job = JobFactory(urgency=JobUrgency.URGENT)

        with freeze_time("2026-03-05 12:00:00"):
            result = expire_overdue_jobs()

        assert result == {"expired": 1}
        assert Job.objects.get(pk=job.pk).status == JobStatus.EXPIRED

    def test_task_delegates_to_service(self):
        with patch("jobs.tasks.JobService.expire_overdue_jobs", return_value=3) as sweep:
            result = expire_overdue_jobs.delay().get()

        sweep.assert_called_once_with()
        assert result == {"expired": 3}
