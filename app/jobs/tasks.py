"""
Celery tasks for the job lifecycle.

Usage:
    from jobs.tasks import expire_overdue_jobs

    # Typically scheduled via celery-beat (see migration 0002)
    expire_overdue_jobs.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task

from jobs.services import JobService

logger = logging.getLogger(__name__)


@shared_task
def expire_overdue_jobs() -> dict:
    """
    Periodic task moving pending jobs past their expiry to EXPIRED.

    Overdue jobs are already excluded from active listings; this task
    makes the state explicit and expires their open quotes.

    Returns:
        Dict with the number of jobs expired
    """
    expired = JobService.expire_overdue_jobs()

    logger.info("Job expiry sweep finished", extra={"expired_count": expired})
    return {"expired": expired}
