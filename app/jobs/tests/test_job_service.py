"""
Tests for JobService.

Covers job creation validation, quote acceptance (sibling decline and
rollback), provider completion, client cancellation and the expiry sweep.
"""

from decimal import Decimal
from unittest.mock import patch

import pytest
from freezegun import freeze_time

from authentication.models import User
from authentication.tests.factories import ProviderFactory
from jobs.models import Job, Quote
from jobs.services import JobService, QuoteService
from jobs.states import JobStatus, JobUrgency, QuoteStatus
from jobs.tests.factories import CategoryFactory, JobFactory, QuoteFactory


def _details(category, **overrides):
    details = {
        "category_id": category.id,
        "title": "Fix leaking sink",
        "description": "Kitchen sink drips constantly",
        "latitude": Decimal("40.7128"),
        "longitude": Decimal("-74.0060"),
        "urgency": JobUrgency.ASAP,
    }
    details.update(overrides)
    return details


@pytest.mark.django_db
class TestCreateJob:
    def test_creates_pending_job(self, client_user, category):
        result = JobService.create_job(client_user, _details(category))

        assert result.success
        job = result.data
        assert job.status == JobStatus.PENDING
        assert job.client == client_user
        assert job.quote_count == 0
        category.refresh_from_db()
        assert category.popularity_count == 1

    def test_provider_cannot_post(self, provider, category):
        result = JobService.create_job(provider, _details(category))

        assert not result.success
        assert result.error_code == "NOT_AUTHORIZED"

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"latitude": Decimal("90.5")}, "latitude"),
            ({"longitude": Decimal("-181")}, "longitude"),
            ({"urgency": "someday"}, "urgency"),
            ({"price_range_min_cents": 5000, "price_range_max_cents": 1000}, "price_range_max_cents"),
        ],
    )
    def test_invalid_details_rejected(self, client_user, category, overrides, field):
        result = JobService.create_job(client_user, _details(category, **overrides))

        assert result.error_code == "VALIDATION_ERROR"
        assert field in result.errors
        assert not Job.objects.exists()

    def test_missing_title_rejected(self, client_user, category):
        result = JobService.create_job(client_user, _details(category, title=""))

        assert result.error_code == "VALIDATION_ERROR"
        assert "title" in result.errors

    def test_inactive_category_not_found(self, client_user):
        category = CategoryFactory(is_active=False)

        result = JobService.create_job(client_user, _details(category))

        assert result.error_code == "NOT_FOUND"


@pytest.mark.django_db
class TestAcceptQuote:
    """Acceptance locks the job and declines every other open quote."""

    def test_accept_declines_siblings(self, job, client_user, recording_publisher):
        q1 = QuoteFactory(job=job, price_cents=10000)
        q2 = QuoteFactory(job=job, price_cents=12000)
        q3 = QuoteFactory(job=job, price_cents=9000)

        result = JobService.accept_quote(
            job.id, q2.id, client_user, publisher=recording_publisher
        )

        assert result.success
        job = Job.objects.get(pk=job.pk)
        assert job.status == JobStatus.IN_PROGRESS
        assert job.accepted_quote_id == q2.id
        assert Quote.objects.get(pk=q2.pk).status == QuoteStatus.ACCEPTED
        assert Quote.objects.get(pk=q1.pk).status == QuoteStatus.DECLINED
        assert Quote.objects.get(pk=q3.pk).status == QuoteStatus.DECLINED

        assert recording_publisher.types().count("quote.accepted") == 1
        assert recording_publisher.types().count("quote.declined") == 2
        accepted = recording_publisher.events[0]
        assert accepted[1] == q2.provider_id

    def test_second_acceptance_fails(self, job, client_user):
        q1 = QuoteFactory(job=job)
        q2 = QuoteFactory(job=job)
        JobService.accept_quote(job.id, q1.id, client_user)

        result = JobService.accept_quote(job.id, q2.id, client_user)

        assert result.error_code == "INVALID_STATE"
        assert Quote.objects.filter(job=job, status=QuoteStatus.ACCEPTED).count() == 1

    def test_only_client_can_accept(self, job, quote, provider):
        result = JobService.accept_quote(job.id, quote.id, provider)

        assert result.error_code == "NOT_AUTHORIZED"

    def test_quote_from_other_job_rejected(self, job, client_user):
        foreign = QuoteFactory()

        result = JobService.accept_quote(job.id, foreign.id, client_user)

        assert result.error_code == "INVALID_STATE"

    def test_expired_job_cannot_accept(self, client_user):
        with freeze_time("2026-03-01 12:00:00"):
            job = JobFactory(client=client_user, urgency=JobUrgency.URGENT)
            quote = QuoteFactory(job=job)

        with freeze_time("2026-03-03 12:00:00"):
            result = JobService.accept_quote(job.id, quote.id, client_user)

        assert result.error_code == "INVALID_STATE"
        assert Quote.objects.get(pk=quote.pk).status == QuoteStatus.PENDING

    def test_failure_mid_transaction_rolls_back(self, job, client_user):
        q1 = QuoteFactory(job=job)
        q2 = QuoteFactory(job=job)

        with patch.object(Quote, "accept", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                JobService.accept_quote(job.id, q1.id, client_user)

        assert Job.objects.get(pk=job.pk).status == JobStatus.PENDING
        assert Quote.objects.get(pk=q2.pk).status == QuoteStatus.PENDING

    def test_unknown_job(self, client_user, quote):
        result = JobService.accept_quote(
            "00000000-0000-0000-0000-000000000000", quote.id, client_user
        )

        assert result.error_code == "NOT_FOUND"


@pytest.mark.django_db
class TestMarkComplete:
    def test_provider_completes_job(self, in_progress_job, provider, recording_publisher):
        job, _ = in_progress_job

        result = JobService.mark_complete(job.id, provider, publisher=recording_publisher)

        assert result.success
        job = Job.objects.get(pk=job.pk)
        assert job.status == JobStatus.COMPLETED
        assert job.completed_at is not None
        assert User.objects.get(pk=provider.pk).completed_jobs_count == 1
        assert recording_publisher.types() == ["job.completed"]

    def test_second_completion_is_idempotent(self, in_progress_job, provider):
        job, _ = in_progress_job
        JobService.mark_complete(job.id, provider)

        result = JobService.mark_complete(job.id, provider)

        assert result.success
        assert User.objects.get(pk=provider.pk).completed_jobs_count == 1

    def test_other_provider_rejected(self, in_progress_job):
        job, _ = in_progress_job

        result = JobService.mark_complete(job.id, ProviderFactory())

        assert result.error_code == "NOT_AUTHORIZED"

    def test_job_without_accepted_quote(self, job, provider):
        result = JobService.mark_complete(job.id, provider)

        assert result.error_code == "INVALID_STATE"


@pytest.mark.django_db
class TestCancelJob:
    def test_cancel_pending_job(self, job, client_user, recording_publisher):
        q1 = QuoteFactory(job=job)
        q2 = QuoteFactory(job=job)

        result = JobService.cancel_job(
            job.id, client_user, "No longer needed", publisher=recording_publisher
        )

        assert result.success
        job = Job.objects.get(pk=job.pk)
        assert job.status == JobStatus.CANCELLED
        assert job.cancellation_reason == "No longer needed"
        assert set(Quote.objects.filter(job=job).values_list("status", flat=True)) == {
            QuoteStatus.CANCELLED
        }
        recipients = {event[1] for event in recording_publisher.events}
        assert recipients == {q1.provider_id, q2.provider_id}
        assert set(recording_publisher.types()) == {"job.cancelled"}

    def test_in_progress_job_cannot_be_cancelled(self, in_progress_job, client_user):
        job, _ = in_progress_job

        result = JobService.cancel_job(job.id, client_user)

        assert result.error_code == "INVALID_STATE"

    def test_only_client_can_cancel(self, job, provider):
        result = JobService.cancel_job(job.id, provider)

        assert result.error_code == "NOT_AUTHORIZED"

    def test_publisher_failure_does_not_undo_cancel(self, job, client_user):
        QuoteFactory(job=job)

        class BrokenPublisher:
            def publish(self, event_type, recipient_id, payload):
                raise ConnectionError("push service down")

        result = JobService.cancel_job(job.id, client_user, publisher=BrokenPublisher())

        assert result.success
        assert Job.objects.get(pk=job.pk).status == JobStatus.CANCELLED


@pytest.mark.django_db
class TestExpireOverdueJobs:
    """Time-based expiry of pending listings."""

    def test_urgent_job_expires_after_one_day(self, client_user, provider):
        with freeze_time("2026-03-01 12:00:00"):
            job = JobFactory(client=client_user, urgency=JobUrgency.URGENT)
            assert QuoteService.submit_quote(job.id, provider, 10000, "Can do").success

        with freeze_time("2026-03-02 13:00:00"):
            other = ProviderFactory()
            late = QuoteService.submit_quote(job.id, other, 9000, "Me too")
            assert late.error_code == "JOB_NOT_OPEN"

            assert JobService.expire_overdue_jobs() == 1

        job = Job.objects.get(pk=job.pk)
        assert job.status == JobStatus.EXPIRED
        assert set(job.quotes.values_list("status", flat=True)) == {QuoteStatus.EXPIRED}

    def test_live_and_accepted_jobs_untouched(self, in_progress_job):
        with freeze_time("2026-03-01 12:00:00"):
            live = JobFactory(urgency=JobUrgency.NEXT_WEEK)

        with freeze_time("2026-03-03 12:00:00"):
            assert JobService.expire_overdue_jobs() == 0

        assert Job.objects.get(pk=live.pk).status == JobStatus.PENDING
        assert Job.objects.get(pk=in_progress_job[0].pk).status == JobStatus.IN_PROGRESS


@pytest.mark.django_db
class TestPaymentDrivenTransitions:
    def test_complete_for_payment_once(self, in_progress_job, provider):
        job, _ = in_progress_job

        assert JobService.complete_for_payment(job) is True
        job = Job.objects.get(pk=job.pk)
        assert JobService.complete_for_payment(job) is False
        assert User.objects.get(pk=provider.pk).completed_jobs_count == 1

    def test_cancel_for_refund_from_completed(self, in_progress_job):
        job, _ = in_progress_job
        JobService.complete_for_payment(job)
        job = Job.objects.get(pk=job.pk)

        assert JobService.cancel_for_refund(job) is True
        assert Job.objects.get(pk=job.pk).status == JobStatus.CANCELLED

    def test_cancel_for_refund_ignores_pending(self, job):
        assert JobService.cancel_for_refund(job) is False
