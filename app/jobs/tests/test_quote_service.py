"""
Tests for QuoteService.

Covers submission guards, the revision chain, decline/cancel and the
client's quote listing order.
"""

import pytest
from freezegun import freeze_time

from authentication.tests.factories import ProviderFactory
from jobs.models import Job, Quote
from jobs.services import JobService, QuoteService
from jobs.states import JobStatus, QuoteStatus
from jobs.tests.factories import JobFactory, QuoteFactory


@pytest.mark.django_db
class TestSubmitQuote:
    def test_submit_creates_pending_quote(self, job, provider, recording_publisher):
        result = QuoteService.submit_quote(
            job.id, provider, 12000, "Replace the valve", publisher=recording_publisher
        )

        assert result.success
        quote = result.data
        assert quote.status == QuoteStatus.PENDING
        assert quote.original_quote is None
        assert Job.objects.get(pk=job.pk).quote_count == 1
        assert recording_publisher.events == [
            (
                "quote.submitted",
                job.client_id,
                {"job_id": str(job.id), "quote_id": str(quote.id)},
            )
        ]

    def test_duplicate_quote_rejected(self, job, provider):
        QuoteService.submit_quote(job.id, provider, 12000, "First")

        result = QuoteService.submit_quote(job.id, provider, 11000, "Second")

        assert result.error_code == "DUPLICATE_QUOTE"
        assert Job.objects.get(pk=job.pk).quote_count == 1

    def test_client_role_cannot_quote(self, job, client_user):
        result = QuoteService.submit_quote(job.id, client_user, 12000, "Self quote")

        assert result.error_code == "NOT_AUTHORIZED"

    @pytest.mark.parametrize("price", [0, -500])
    def test_non_positive_price_rejected(self, job, provider, price):
        result = QuoteService.submit_quote(job.id, provider, price, "Cheap")

        assert result.error_code == "VALIDATION_ERROR"
        assert "price_cents" in result.errors

    def test_closed_job_rejects_quotes(self, in_progress_job):
        job, _ = in_progress_job

        result = QuoteService.submit_quote(job.id, ProviderFactory(), 9000, "Late")

        assert result.error_code == "JOB_NOT_OPEN"

    def test_unknown_job(self, provider):
        result = QuoteService.submit_quote(
            "00000000-0000-0000-0000-000000000000", provider, 9000, "Hello"
        )

        assert result.error_code == "NOT_FOUND"


@pytest.mark.django_db
class TestReviseQuote:
    """A revision cancels the current record and creates an UPDATED successor."""

    def test_revision_chain(self, job, quote, provider, recording_publisher):
        result = QuoteService.revise_quote(
            quote.id, provider, price_cents=11000, reason="Found cheaper part",
            publisher=recording_publisher,
        )

        assert result.success
        revision = result.data
        assert revision.status == QuoteStatus.UPDATED
        assert revision.original_quote_id == quote.id
        assert revision.is_updated is True
        assert revision.price_cents == 11000
        assert revision.description == quote.description
        assert Quote.objects.get(pk=quote.pk).status == QuoteStatus.CANCELLED
        assert recording_publisher.types() == ["quote.updated"]

    def test_revision_does_not_count_as_new_quote(self, job, provider):
        first = QuoteService.submit_quote(job.id, provider, 12000, "First").data

        QuoteService.revise_quote(first.id, provider, price_cents=10000)

        assert Job.objects.get(pk=job.pk).quote_count == 1

    def test_superseded_record_cannot_be_revised(self, quote, provider):
        QuoteService.revise_quote(quote.id, provider, price_cents=11000)

        result = QuoteService.revise_quote(quote.id, provider, price_cents=10000)

        assert result.error_code == "INVALID_STATE"

    def test_revision_can_be_revised_and_accepted(self, job, quote, provider, client_user):
        second = QuoteService.revise_quote(quote.id, provider, price_cents=11000).data
        third = QuoteService.revise_quote(second.id, provider, price_cents=10500).data

        result = JobService.accept_quote(job.id, third.id, client_user)

        assert result.success
        assert Quote.objects.get(pk=third.pk).status == QuoteStatus.ACCEPTED
        assert Quote.objects.get(pk=second.pk).original_quote_id == quote.id

    def test_other_provider_cannot_revise(self, quote):
        result = QuoteService.revise_quote(quote.id, ProviderFactory(), price_cents=9000)

        assert result.error_code == "NOT_AUTHORIZED"

    def test_revision_on_expired_job_rejected(self, client_user, provider):
        with freeze_time("2026-03-01 12:00:00"):
            job = JobFactory(client=client_user, urgency="urgent")
            quote = QuoteFactory(job=job, provider=provider)

        with freeze_time("2026-03-04 12:00:00"):
            result = QuoteService.revise_quote(quote.id, provider, price_cents=9000)

        assert result.error_code == "JOB_NOT_OPEN"


@pytest.mark.django_db
class TestDeclineAndCancel:
    def test_client_declines_quote(self, quote, client_user, recording_publisher):
        result = QuoteService.decline_quote(quote.id, client_user, publisher=recording_publisher)

        assert result.success
        assert Quote.objects.get(pk=quote.pk).status == QuoteStatus.DECLINED
        assert recording_publisher.events[0][1] == quote.provider_id

    def test_provider_cannot_decline(self, quote, provider):
        result = QuoteService.decline_quote(quote.id, provider)

        assert result.error_code == "NOT_AUTHORIZED"

    def test_declined_quote_cannot_be_accepted(self, job, quote, client_user):
        QuoteService.decline_quote(quote.id, client_user)

        result = JobService.accept_quote(job.id, quote.id, client_user)

        assert result.error_code == "INVALID_STATE"
        assert Job.objects.get(pk=job.pk).status == JobStatus.PENDING

    def test_provider_withdraws_quote(self, quote, provider):
        result = QuoteService.cancel_quote(quote.id, provider)

        assert result.success
        assert Quote.objects.get(pk=quote.pk).status == QuoteStatus.CANCELLED

    def test_cancelled_quote_cannot_be_cancelled_again(self, quote, provider):
        QuoteService.cancel_quote(quote.id, provider)

        result = QuoteService.cancel_quote(quote.id, provider)

        assert result.error_code == "INVALID_STATE"


@pytest.mark.django_db
class TestListJobQuotes:
    def test_ordered_by_price_then_time(self, job, client_user):
        with freeze_time("2026-03-01 10:00:00"):
            QuoteFactory(job=job, price_cents=12000)
            first_cheap = QuoteFactory(job=job, price_cents=9000)
        with freeze_time("2026-03-01 11:00:00"):
            second_cheap = QuoteFactory(job=job, price_cents=9000)

        result = QuoteService.list_job_quotes(job.id, client_user)

        prices = [q.price_cents for q in result.data]
        assert prices == [9000, 9000, 12000]
        assert result.data[0].id == first_cheap.id
        assert result.data[1].id == second_cheap.id

    def test_superseded_records_hidden(self, job, quote, provider, client_user):
        revision = QuoteService.revise_quote(quote.id, provider, price_cents=8000).data

        current = QuoteService.list_job_quotes(job.id, client_user)
        everything = QuoteService.list_job_quotes(job.id, client_user, current_only=False)

        assert [q.id for q in current.data] == [revision.id]
        assert {q.id for q in everything.data} == {quote.id, revision.id}

    def test_provider_cannot_list(self, job, provider):
        result = QuoteService.list_job_quotes(job.id, provider)

        assert result.error_code == "NOT_AUTHORIZED"

    def test_operator_can_list(self, job, quote, operator):
        result = QuoteService.list_job_quotes(job.id, operator)

        assert [q.id for q in result.data] == [quote.id]
