"""
Tests for Job and Quote models.

Covers expiry derivation, open/expired properties, FSM transitions and the
database constraints backing the quote rules.
"""

from datetime import timedelta

import pytest
from django.db import IntegrityError
from django.utils import timezone
from django_fsm import TransitionNotAllowed
from freezegun import freeze_time

from jobs.models import Job, Quote
from jobs.states import JobStatus, JobUrgency, QuoteStatus
from jobs.tests.factories import JobFactory, QuoteFactory


@pytest.mark.django_db
class TestJobExpiry:
    """expires_at is derived from urgency once, at creation."""

    @pytest.mark.parametrize(
        "urgency,days",
        [
            (JobUrgency.URGENT, 1),
            (JobUrgency.ASAP, 7),
            (JobUrgency.NEXT_WEEK, 14),
        ],
    )
    def test_expiry_from_urgency(self, urgency, days):
        with freeze_time("2026-03-01 12:00:00"):
            job = JobFactory(urgency=urgency)
            assert job.expires_at == timezone.now() + timedelta(days=days)

    def test_expiry_not_recalculated_on_save(self):
        with freeze_time("2026-03-01 12:00:00"):
            job = JobFactory(urgency=JobUrgency.URGENT)
        original = job.expires_at

        with freeze_time("2026-03-05 12:00:00"):
            job.title = "Updated title"
            job.save()

        assert Job.objects.get(pk=job.pk).expires_at == original

    def test_is_open_until_expiry(self):
        with freeze_time("2026-03-01 12:00:00"):
            job = JobFactory(urgency=JobUrgency.URGENT)

        with freeze_time("2026-03-02 11:59:00"):
            assert job.is_open is True
        with freeze_time("2026-03-02 12:00:00"):
            assert job.is_expired is True
            assert job.is_open is False

    def test_active_excludes_expired_and_non_pending(self):
        with freeze_time("2026-03-01 12:00:00"):
            live = JobFactory(urgency=JobUrgency.NEXT_WEEK)
            stale = JobFactory(urgency=JobUrgency.URGENT)
            started = JobFactory(status=JobStatus.IN_PROGRESS)

        with freeze_time("2026-03-03 12:00:00"):
            active = set(Job.objects.active().values_list("id", flat=True))
            overdue = set(Job.objects.overdue().values_list("id", flat=True))

        assert live.id in active
        assert stale.id not in active
        assert started.id not in active
        assert overdue == {stale.id}


@pytest.mark.django_db
class TestJobTransitions:
    def test_start_sets_accepted_quote(self, job, quote):
        job.start(quote)
        job.save()

        job = Job.objects.get(pk=job.pk)
        assert job.status == JobStatus.IN_PROGRESS
        assert job.accepted_quote_id == quote.id

    def test_complete_requires_in_progress(self, job):
        with pytest.raises(TransitionNotAllowed):
            job.complete()

    def test_cancel_only_from_pending(self, in_progress_job):
        job, _ = in_progress_job
        with pytest.raises(TransitionNotAllowed):
            job.cancel("changed my mind")

    def test_cancel_for_refund_keeps_accepted_quote(self, in_progress_job):
        job, quote = in_progress_job
        job.cancel_for_refund()
        job.save()

        job = Job.objects.get(pk=job.pk)
        assert job.status == JobStatus.CANCELLED
        assert job.accepted_quote_id == quote.id
        assert job.cancellation_reason == "Payment refunded"

    def test_status_cannot_be_assigned_directly(self, job):
        with pytest.raises(AttributeError):
            job.status = JobStatus.COMPLETED

    def test_save_increments_version(self, job):
        assert job.version == 1
        job.title = "New title"
        job.save()
        assert job.version == 2


@pytest.mark.django_db
class TestJobConstraints:
    def test_latitude_out_of_range_rejected(self):
        with pytest.raises(IntegrityError):
            JobFactory(latitude=91)

    def test_price_range_must_be_ordered(self):
        with pytest.raises(IntegrityError):
            JobFactory(price_range_min_cents=5000, price_range_max_cents=1000)


@pytest.mark.django_db
class TestQuoteModel:
    def test_open_statuses(self, quote):
        assert quote.is_open is True
        quote.decline()
        assert quote.is_open is False

    def test_terminal_quote_cannot_be_accepted(self, quote):
        quote.cancel()
        with pytest.raises(TransitionNotAllowed):
            quote.accept()

    def test_second_root_quote_rejected(self, job, quote):
        with pytest.raises(IntegrityError):
            QuoteFactory(job=job, provider=quote.provider)

    def test_revision_allowed_alongside_root(self, job, quote):
        revision = QuoteFactory(
            job=job,
            provider=quote.provider,
            original_quote=quote,
            status=QuoteStatus.UPDATED,
            is_updated=True,
        )
        assert quote.is_current is False
        assert revision.is_current is True

    def test_only_one_accepted_quote_per_job(self, job):
        QuoteFactory(job=job, status=QuoteStatus.ACCEPTED)
        with pytest.raises(IntegrityError):
            QuoteFactory(job=job, status=QuoteStatus.ACCEPTED)

    def test_price_must_be_positive(self, job):
        with pytest.raises(IntegrityError):
            Quote.objects.create(
                job=job,
                provider=QuoteFactory().provider,
                price_cents=0,
                description="Free",
            )

    def test_decline_increments_version(self, quote):
        assert quote.version == 1
        quote.decline()
        quote.save()
        assert quote.version == 2
        assert Quote.objects.get(pk=quote.pk).version == 2
