"""
State and choice enums for jobs and quotes.

State Machines Overview:

Job States:
    pending → in_progress → completed
    pending → cancelled
    pending → expired (time-based sweep)
    in_progress/completed → cancelled (refund rollback only)

Quote States:
    pending/updated → accepted | declined | cancelled | expired
    A revision cancels the current record and creates a successor in UPDATED.
"""

from datetime import timedelta

from django.db import models


class JobStatus(models.TextChoices):
    """
    States for the Job model lifecycle.

    Terminal states: COMPLETED, CANCELLED, EXPIRED
    (COMPLETED can still move to CANCELLED through a refund.)
    """

    PENDING = "pending", "Pending"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    EXPIRED = "expired", "Expired"


class QuoteStatus(models.TextChoices):
    """
    States for the Quote model lifecycle.

    PENDING and UPDATED are the open states; everything else is terminal.
    """

    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    DECLINED = "declined", "Declined"
    UPDATED = "updated", "Updated"
    CANCELLED = "cancelled", "Cancelled"
    EXPIRED = "expired", "Expired"


class JobUrgency(models.TextChoices):
    URGENT = "urgent", "Urgent"
    ASAP = "asap", "As soon as possible"
    NEXT_WEEK = "next_week", "Next week"


OPEN_QUOTE_STATUSES = (QuoteStatus.PENDING, QuoteStatus.UPDATED)

# Listing lifetime per urgency, applied once at creation
URGENCY_EXPIRY = {
    JobUrgency.URGENT: timedelta(days=1),
    JobUrgency.ASAP: timedelta(days=7),
    JobUrgency.NEXT_WEEK: timedelta(days=14),
}


__all__ = [
    "JobStatus",
    "QuoteStatus",
    "JobUrgency",
    "OPEN_QUOTE_STATUSES",
    "URGENCY_EXPIRY",
]
