"""
Job, Quote and Category models.

Job and Quote carry django-fsm state machines. Transitions only change
in-memory state; callers save inside the service layer's transaction.

Usage:
    from jobs.models import Job, Quote
    from jobs.states import JobStatus

    job = Job.objects.select_for_update().get(pk=job_id)
    job.start(quote)  # pending -> in_progress
    job.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel
from jobs.states import (
    OPEN_QUOTE_STATUSES,
    URGENCY_EXPIRY,
    JobStatus,
    JobUrgency,
    QuoteStatus,
)


class Category(BaseModel):
    """
    Service category a job is posted under (plumbing, electrical, ...).

    Fields:
        name: Unique display name
        description: Optional longer description
        is_active: Inactive categories reject new jobs
        popularity_count: Number of jobs ever posted in this category
    """

    name = models.CharField(
        max_length=100,
        unique=True,
        help_text="Category display name",
    )
    description = models.TextField(
        blank=True,
        help_text="Category description",
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether new jobs may be posted in this category",
    )
    popularity_count = models.PositiveIntegerField(
        default=0,
        help_text="Jobs posted in this category (incremented with F() on job creation)",
    )

    class Meta:
        ordering = ["name"]
        verbose_name = "Category"
        verbose_name_plural = "Categories"

    def __str__(self) -> str:
        return self.name


class JobQuerySet(models.QuerySet):
    def active(self):
        """Pending jobs whose listing has not expired."""
        return self.filter(status=JobStatus.PENDING, expires_at__gt=timezone.now())

    def overdue(self):
        """Pending jobs past expiry, waiting for the expiry sweep."""
        return self.filter(status=JobStatus.PENDING, expires_at__lte=timezone.now())


class Job(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    A client's posted request for a home service.

    State Flow:
        PENDING -> IN_PROGRESS -> COMPLETED
        PENDING -> CANCELLED
        PENDING -> EXPIRED

    Refund Rollback:
        IN_PROGRESS/COMPLETED -> CANCELLED

    Note:
        expires_at is derived from urgency on first save and never
        recalculated afterwards.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="jobs",
        help_text="Client who posted the job",
    )

    category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        related_name="jobs",
        help_text="Service category",
    )

    accepted_quote = models.ForeignKey(
        "jobs.Quote",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
        help_text="Quote accepted by the client (set on acceptance, kept for audit)",
    )

    # ==========================================================================
    # Request Details
    # ==========================================================================

    title = models.CharField(
        max_length=200,
        help_text="Short summary of the work",
    )
    description = models.TextField(
        help_text="Full description of the work",
    )
    specializations = models.JSONField(
        default=list,
        blank=True,
        help_text="Specializations required (list of strings)",
    )
    latitude = models.DecimalField(
        max_digits=9,
        decimal_places=6,
        help_text="Job site latitude (-90 to 90)",
    )
    longitude = models.DecimalField(
        max_digits=9,
        decimal_places=6,
        help_text="Job site longitude (-180 to 180)",
    )
    address = models.CharField(
        max_length=500,
        blank=True,
        help_text="Job site street address",
    )
    urgency = models.CharField(
        max_length=20,
        choices=JobUrgency.choices,
        default=JobUrgency.ASAP,
        help_text="Urgency; determines listing expiry",
    )
    price_range_min_cents = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Lower bound of the client's budget in cents",
    )
    price_range_max_cents = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Upper bound of the client's budget in cents",
    )
    preferred_date = models.DateField(
        null=True,
        blank=True,
        help_text="Date the client would like the work done",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=JobStatus.PENDING,
        choices=JobStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the job (managed by FSM)",
    )

    expires_at = models.DateTimeField(
        db_index=True,
        help_text="When the listing expires (derived from urgency at creation)",
    )

    quote_count = models.PositiveIntegerField(
        default=0,
        help_text="Number of root quotes submitted (incremented with F())",
    )

    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the job was completed",
    )
    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the job was cancelled",
    )
    cancellation_reason = models.TextField(
        blank=True,
        help_text="Why the job was cancelled",
    )

    objects = JobQuerySet.as_manager()

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Job"
        verbose_name_plural = "Jobs"
        indexes = [
            models.Index(fields=["status", "expires_at"], name="jobs_job_status_expires_idx"),
            models.Index(fields=["client", "status"], name="jobs_job_client_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(latitude__gte=-90) & models.Q(latitude__lte=90),
                name="job_latitude_range",
            ),
            models.CheckConstraint(
                condition=models.Q(longitude__gte=-180) & models.Q(longitude__lte=180),
                name="job_longitude_range",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(price_range_min_cents__isnull=True)
                    | models.Q(price_range_max_cents__isnull=True)
                    | models.Q(price_range_min_cents__lte=models.F("price_range_max_cents"))
                ),
                name="job_price_range_ordered",
            ),
        ]

    def __str__(self) -> str:
        return f"Job({self.id}, {self.status}, {self.title!r})"

    def save(self, *args, **kwargs):
        if self.expires_at is None:
            start = self.created_at or timezone.now()
            self.expires_at = start + URGENCY_EXPIRY[JobUrgency(self.urgency)]
        super().save(*args, **kwargs)

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and self.expires_at <= timezone.now()

    @property
    def is_open(self) -> bool:
        """Whether the job accepts quotes and quote acceptance."""
        return self.status == JobStatus.PENDING and not self.is_expired

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source=JobStatus.PENDING, target=JobStatus.IN_PROGRESS)
    def start(self, quote: Quote):
        """
        Begin work on the job under an accepted quote.

        Transition: PENDING -> IN_PROGRESS
        """
        self.accepted_quote = quote

    @transition(field=status, source=JobStatus.IN_PROGRESS, target=JobStatus.COMPLETED)
    def complete(self):
        """
        Mark the work as done.

        Transition: IN_PROGRESS -> COMPLETED
        """
        self.completed_at = timezone.now()

    @transition(field=status, source=JobStatus.PENDING, target=JobStatus.CANCELLED)
    def cancel(self, reason: str = ""):
        """
        Client cancellation before any quote was accepted.

        Transition: PENDING -> CANCELLED
        """
        self.cancelled_at = timezone.now()
        self.cancellation_reason = reason

    @transition(
        field=status,
        source=[JobStatus.IN_PROGRESS, JobStatus.COMPLETED],
        target=JobStatus.CANCELLED,
    )
    def cancel_for_refund(self, reason: str = ""):
        """
        Roll the job back after its payment was refunded.

        Transition: IN_PROGRESS/COMPLETED -> CANCELLED

        accepted_quote is kept for audit.
        """
        self.cancelled_at = timezone.now()
        self.cancellation_reason = reason or "Payment refunded"

    @transition(field=status, source=JobStatus.PENDING, target=JobStatus.EXPIRED)
    def expire(self):
        """
        Listing lifetime elapsed without an accepted quote.

        Transition: PENDING -> EXPIRED
        """


class Quote(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    A provider's priced proposal against a job.

    Quotes are never edited in place. A revision cancels the current record
    and creates a successor pointing back through original_quote, so the
    chain is an append-only audit trail. The current quote of a chain is the
    record with no successor.

    State Flow:
        PENDING/UPDATED -> ACCEPTED | DECLINED | CANCELLED | EXPIRED
    """

    job = models.ForeignKey(
        Job,
        on_delete=models.CASCADE,
        related_name="quotes",
        help_text="Job this quote is for",
    )

    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="quotes",
        help_text="Provider who submitted the quote",
    )

    price_cents = models.PositiveBigIntegerField(
        help_text="Quoted price in cents",
    )

    description = models.TextField(
        help_text="Scope of work and terms",
    )

    proposed_date = models.DateField(
        null=True,
        blank=True,
        help_text="Date the provider proposes to do the work",
    )

    status = FSMField(
        default=QuoteStatus.PENDING,
        choices=QuoteStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the quote (managed by FSM)",
    )

    original_quote = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="revisions",
        help_text="Record this quote supersedes (null for the root of a chain)",
    )

    is_updated = models.BooleanField(
        default=False,
        help_text="Whether this record is a revision",
    )

    update_reason = models.TextField(
        blank=True,
        help_text="Provider's reason for the revision",
    )

    class Meta:
        ordering = ["price_cents", "created_at", "id"]
        verbose_name = "Quote"
        verbose_name_plural = "Quotes"
        indexes = [
            models.Index(fields=["job", "status"], name="jobs_quote_job_id_status_idx"),
            models.Index(fields=["provider", "status"], name="jobs_quote_provider_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["job", "provider"],
                condition=models.Q(original_quote__isnull=True),
                name="unique_root_quote_per_provider",
            ),
            models.UniqueConstraint(
                fields=["job"],
                condition=models.Q(status=QuoteStatus.ACCEPTED),
                name="one_accepted_quote_per_job",
            ),
            models.CheckConstraint(
                condition=models.Q(price_cents__gt=0),
                name="quote_price_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Quote({self.id}, {self.status}, {self.price_cents / 100:.2f})"

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_QUOTE_STATUSES

    @property
    def is_current(self) -> bool:
        """Whether this record is the latest in its revision chain."""
        return not self.revisions.exists()

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source=list(OPEN_QUOTE_STATUSES), target=QuoteStatus.ACCEPTED)
    def accept(self):
        pass

    @transition(field=status, source=list(OPEN_QUOTE_STATUSES), target=QuoteStatus.DECLINED)
    def decline(self):
        pass

    @transition(field=status, source=list(OPEN_QUOTE_STATUSES), target=QuoteStatus.CANCELLED)
    def cancel(self):
        """Withdrawn by the provider, or superseded by a revision."""

    @transition(field=status, source=list(OPEN_QUOTE_STATUSES), target=QuoteStatus.EXPIRED)
    def expire(self):
        pass
