"""
Job and quote service layer.

This module owns the job and quote state machines. Every transition runs in
one database transaction with the job row locked, and domain events are
published only after that transaction committed.

Services:
    JobService: Job lifecycle (create, accept quote, complete, cancel, expire)
    QuoteService: Quote lifecycle (submit, revise, decline, cancel, list)

Usage:
    from jobs.services import JobService, QuoteService

    result = QuoteService.submit_quote(job.id, provider, 12000, "Replace valve")
    result = JobService.accept_quote(job.id, result.data.id, client)
    if result.success:
        job = result.data
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from authentication.models import User
from core.events import publish_event
from core.services import BaseService, ServiceResult
from jobs.models import Category, Job, Quote
from jobs.states import OPEN_QUOTE_STATUSES, JobStatus, JobUrgency, QuoteStatus

if TYPE_CHECKING:
    from typing import Any

    from core.protocols import EventPublisher


def _decimal(value) -> Decimal | None:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None


class JobService(BaseService):
    """
    Service for the job state machine.

    Methods:
        create_job: Post a new job
        accept_quote: Accept one quote, decline its siblings
        mark_complete: Provider marks the job done
        cancel_job: Client cancels a pending job
        complete_for_payment: Completion driven by a successful payment
        cancel_for_refund: Rollback driven by a refund
        expire_overdue_jobs: Sweep pending jobs past expiry
    """

    @classmethod
    def create_job(
        cls,
        client: User,
        details: dict[str, Any],
        publisher: EventPublisher | None = None,
    ) -> ServiceResult[Job]:
        """
        Create a job in PENDING.

        Args:
            client: User posting the job (must have the client role)
            details: Job attributes: category_id, title, description,
                latitude, longitude and optionally address, urgency,
                specializations, price_range_min_cents,
                price_range_max_cents, preferred_date

        Returns:
            ServiceResult with the created Job

        Error codes:
            NOT_AUTHORIZED: Actor is not a client
            VALIDATION_ERROR: Missing fields, coordinates or price range invalid
            NOT_FOUND: Category missing or inactive
        """
        if not client.is_client:
            return ServiceResult.failure(
                "Only clients can post jobs", error_code="NOT_AUTHORIZED"
            )

        validation = cls.validate_required(
            title=details.get("title"),
            description=details.get("description"),
            latitude=details.get("latitude"),
            longitude=details.get("longitude"),
        )
        if validation is not None:
            return validation

        errors: dict[str, list[str]] = {}
        latitude = _decimal(details["latitude"])
        longitude = _decimal(details["longitude"])
        if latitude is None or not Decimal(-90) <= latitude <= Decimal(90):
            errors["latitude"] = ["Must be between -90 and 90"]
        if longitude is None or not Decimal(-180) <= longitude <= Decimal(180):
            errors["longitude"] = ["Must be between -180 and 180"]

        urgency = details.get("urgency") or JobUrgency.ASAP
        if urgency not in JobUrgency.values:
            errors["urgency"] = [f"Must be one of {', '.join(JobUrgency.values)}"]

        price_min = details.get("price_range_min_cents")
        price_max = details.get("price_range_max_cents")
        if price_min is not None and price_min < 0:
            errors["price_range_min_cents"] = ["Must not be negative"]
        if price_max is not None and price_max < 0:
            errors["price_range_max_cents"] = ["Must not be negative"]
        if price_min is not None and price_max is not None and price_min > price_max:
            errors.setdefault("price_range_max_cents", []).append(
                "Must be greater than or equal to the minimum"
            )

        if errors:
            return ServiceResult.failure(
                "Validation failed", error_code="VALIDATION_ERROR", errors=errors
            )

        category = Category.objects.filter(
            pk=details.get("category_id"), is_active=True
        ).first()
        if category is None:
            return ServiceResult.failure("Category not found", error_code="NOT_FOUND")

        with cls.atomic():
            job = Job.objects.create(
                client=client,
                category=category,
                title=details["title"],
                description=details["description"],
                specializations=list(details.get("specializations") or []),
                latitude=latitude,
                longitude=longitude,
                address=details.get("address", ""),
                urgency=urgency,
                price_range_min_cents=price_min,
                price_range_max_cents=price_max,
                preferred_date=details.get("preferred_date"),
            )
            Category.objects.filter(pk=category.pk).update(
                popularity_count=F("popularity_count") + 1
            )

        cls.get_logger().info(
            "Job created",
            extra={
                "job_id": str(job.id),
                "client_id": client.id,
                "urgency": urgency,
                "expires_at": job.expires_at.isoformat(),
            },
        )
        return ServiceResult.success(job)

    @classmethod
    def accept_quote(
        cls,
        job_id,
        quote_id,
        actor: User,
        publisher: EventPublisher | None = None,
    ) -> ServiceResult[Job]:
        """
        Accept a quote for a job.

        In one transaction with the job row locked: the job moves to
        IN_PROGRESS, the quote to ACCEPTED and every other open quote on
        the job to DECLINED. Any failure rolls all of it back.

        Error codes:
            NOT_FOUND: Job or quote missing
            NOT_AUTHORIZED: Actor is not the job's client
            INVALID_STATE: Job not pending/unexpired, or quote not open or
                not on this job
        """
        job = Job.objects.filter(pk=job_id).first()
        if job is None:
            return ServiceResult.failure("Job not found", error_code="NOT_FOUND")
        if job.client_id != actor.id:
            return ServiceResult.failure(
                "Only the job's client can accept quotes", error_code="NOT_AUTHORIZED"
            )

        with cls.atomic():
            job = Job.objects.select_for_update().get(pk=job_id)
            if not job.is_open:
                return ServiceResult.failure(
                    f"Job is not open for acceptance (status: {job.status})",
                    error_code="INVALID_STATE",
                )

            quote = Quote.objects.select_for_update().filter(pk=quote_id).first()
            if quote is None:
                return ServiceResult.failure("Quote not found", error_code="NOT_FOUND")
            if quote.job_id != job.id or not quote.is_open:
                return ServiceResult.failure(
                    "Quote cannot be accepted", error_code="INVALID_STATE"
                )

            job.start(quote)
            job.save()
            quote.accept()
            quote.save()

            siblings = Quote.objects.filter(
                job=job, status__in=OPEN_QUOTE_STATUSES
            ).exclude(pk=quote.pk)
            declined = list(siblings.values_list("id", "provider_id"))
            siblings.update(status=QuoteStatus.DECLINED, updated_at=timezone.now())

        cls.get_logger().info(
            "Quote accepted",
            extra={
                "job_id": str(job.id),
                "quote_id": str(quote.id),
                "declined_count": len(declined),
            },
        )

        publish_event(
            publisher,
            "quote.accepted",
            quote.provider_id,
            {"job_id": str(job.id), "quote_id": str(quote.id)},
        )
        for declined_id, provider_id in declined:
            publish_event(
                publisher,
                "quote.declined",
                provider_id,
                {"job_id": str(job.id), "quote_id": str(declined_id)},
            )

        return ServiceResult.success(job)

    @classmethod
    def mark_complete(
        cls,
        job_id,
        actor: User,
        publisher: EventPublisher | None = None,
    ) -> ServiceResult[Job]:
        """
        Provider marks the job as completed.

        Completion may also be driven by the payment path first; in that case
        the call is an idempotent success and the provider counter is not
        incremented a second time.

        Error codes:
            NOT_FOUND: Job missing
            INVALID_STATE: No accepted quote, or job not in progress
            NOT_AUTHORIZED: Actor does not hold the accepted quote
        """
        job = Job.objects.select_related("accepted_quote").filter(pk=job_id).first()
        if job is None:
            return ServiceResult.failure("Job not found", error_code="NOT_FOUND")
        if job.accepted_quote is None:
            return ServiceResult.failure(
                "Job has no accepted quote", error_code="INVALID_STATE"
            )
        if job.accepted_quote.provider_id != actor.id:
            return ServiceResult.failure(
                "Only the provider on the accepted quote can complete this job",
                error_code="NOT_AUTHORIZED",
            )

        with cls.atomic():
            job = Job.objects.select_for_update().get(pk=job_id)
            if job.status == JobStatus.COMPLETED:
                return ServiceResult.success(job)
            if job.status != JobStatus.IN_PROGRESS:
                return ServiceResult.failure(
                    f"Job is not in progress (status: {job.status})",
                    error_code="INVALID_STATE",
                )
            cls.complete_for_payment(job)

        cls.get_logger().info("Job completed by provider", extra={"job_id": str(job.id)})
        publish_event(publisher, "job.completed", job.client_id, {"job_id": str(job.id)})
        return ServiceResult.success(job)

    @classmethod
    def cancel_job(
        cls,
        job_id,
        actor: User,
        reason: str = "",
        publisher: EventPublisher | None = None,
    ) -> ServiceResult[Job]:
        """
        Client cancels a pending job.

        In-progress jobs cannot be cancelled here; they need a refund.
        Every open quote on the job is cancelled and each provider who
        quoted is notified.

        Error codes:
            NOT_FOUND, NOT_AUTHORIZED, INVALID_STATE
        """
        job = Job.objects.filter(pk=job_id).first()
        if job is None:
            return ServiceResult.failure("Job not found", error_code="NOT_FOUND")
        if job.client_id != actor.id:
            return ServiceResult.failure(
                "Only the job's client can cancel it", error_code="NOT_AUTHORIZED"
            )

        with cls.atomic():
            job = Job.objects.select_for_update().get(pk=job_id)
            if job.status != JobStatus.PENDING:
                return ServiceResult.failure(
                    f"Only pending jobs can be cancelled (status: {job.status})",
                    error_code="INVALID_STATE",
                )
            job.cancel(reason)
            job.save()
            Quote.objects.filter(job=job, status__in=OPEN_QUOTE_STATUSES).update(
                status=QuoteStatus.CANCELLED, updated_at=timezone.now()
            )
            provider_ids = set(job.quotes.values_list("provider_id", flat=True))

        cls.get_logger().info(
            "Job cancelled",
            extra={"job_id": str(job.id), "notified_providers": len(provider_ids)},
        )
        for provider_id in provider_ids:
            publish_event(
                publisher,
                "job.cancelled",
                provider_id,
                {"job_id": str(job.id), "reason": reason},
            )
        return ServiceResult.success(job)

    @classmethod
    def complete_for_payment(cls, job: Job) -> bool:
        """
        Move a locked job to COMPLETED and bump the provider's counter.

        Must run inside the caller's transaction with the job row locked.

        Returns:
            True if the job transitioned, False if it was already completed
        """
        if job.status == JobStatus.COMPLETED:
            return False
        job.complete()
        job.save()
        provider = User.objects.get(pk=job.accepted_quote.provider_id)
        provider.increment_completed_jobs()
        return True

    @classmethod
    def cancel_for_refund(cls, job: Job, reason: str = "") -> bool:
        """
        Roll a locked job back to CANCELLED after its payment was refunded.

        Returns:
            True if the job transitioned, False if it was not in progress
            or completed
        """
        if job.status not in (JobStatus.IN_PROGRESS, JobStatus.COMPLETED):
            return False
        job.cancel_for_refund(reason)
        job.save()
        return True

    @classmethod
    def expire_overdue_jobs(cls) -> int:
        """
        Expire pending jobs past their expiry and their open quotes.

        Each job is handled in its own transaction and re-checked after
        locking so a concurrent acceptance wins.

        Returns:
            Number of jobs expired
        """
        expired = 0
        for job_id in Job.objects.overdue().values_list("id", flat=True):
            with transaction.atomic():
                job = Job.objects.select_for_update().get(pk=job_id)
                if job.status != JobStatus.PENDING or not job.is_expired:
                    continue
                job.expire()
                job.save()
                QuoteService.expire_open_quotes(job)
            expired += 1

        if expired:
            cls.get_logger().info("Expired overdue jobs", extra={"count": expired})
        return expired


class QuoteService(BaseService):
    """
    Service for the quote state machine.

    Acceptance lives in JobService.accept_quote since it touches every
    quote on the job.
    """

    @classmethod
    def submit_quote(
        cls,
        job_id,
        provider: User,
        price_cents: int,
        description: str,
        proposed_date=None,
        publisher: EventPublisher | None = None,
    ) -> ServiceResult[Quote]:
        """
        Submit a provider's first quote on a job.

        Error codes:
            NOT_FOUND: Job missing
            NOT_AUTHORIZED: Actor is not a provider, or is the job's client
            VALIDATION_ERROR: Non-positive price or empty description
            JOB_NOT_OPEN: Job not pending or expired
            DUPLICATE_QUOTE: Provider already has a root quote on the job
        """
        if not provider.is_provider:
            return ServiceResult.failure(
                "Only providers can submit quotes", error_code="NOT_AUTHORIZED"
            )

        job = Job.objects.filter(pk=job_id).first()
        if job is None:
            return ServiceResult.failure("Job not found", error_code="NOT_FOUND")
        if job.client_id == provider.id:
            return ServiceResult.failure(
                "Cannot quote on your own job", error_code="NOT_AUTHORIZED"
            )

        validation = cls.validate_required(description=description)
        if validation is not None:
            return validation
        if price_cents is None or price_cents <= 0:
            return ServiceResult.failure(
                "Validation failed",
                error_code="VALIDATION_ERROR",
                errors={"price_cents": ["Must be greater than zero"]},
            )

        with cls.atomic():
            job = Job.objects.select_for_update().get(pk=job_id)
            if not job.is_open:
                return ServiceResult.failure(
                    "Job is not open for quotes", error_code="JOB_NOT_OPEN"
                )
            if Quote.objects.filter(
                job=job, provider=provider, original_quote__isnull=True
            ).exists():
                return ServiceResult.failure(
                    "You have already quoted on this job; revise your quote instead",
                    error_code="DUPLICATE_QUOTE",
                )

            try:
                with transaction.atomic():
                    quote = Quote.objects.create(
                        job=job,
                        provider=provider,
                        price_cents=price_cents,
                        description=description,
                        proposed_date=proposed_date,
                    )
            except IntegrityError:
                return ServiceResult.failure(
                    "You have already quoted on this job", error_code="DUPLICATE_QUOTE"
                )

            Job.objects.filter(pk=job.pk).update(quote_count=F("quote_count") + 1)

        cls.get_logger().info(
            "Quote submitted",
            extra={
                "job_id": str(job.id),
                "quote_id": str(quote.id),
                "provider_id": provider.id,
                "price_cents": price_cents,
            },
        )
        publish_event(
            publisher,
            "quote.submitted",
            job.client_id,
            {"job_id": str(job.id), "quote_id": str(quote.id)},
        )
        return ServiceResult.success(quote)

    @classmethod
    def revise_quote(
        cls,
        quote_id,
        provider: User,
        price_cents: int | None = None,
        description: str | None = None,
        proposed_date=None,
        reason: str = "",
        publisher: EventPublisher | None = None,
    ) -> ServiceResult[Quote]:
        """
        Supersede a quote with a revised record.

        The current record is cancelled and a successor is created in
        UPDATED with original_quote pointing back to it. Fields not given
        are copied from the current record.

        Error codes:
            NOT_FOUND, NOT_AUTHORIZED,
            INVALID_STATE: Quote not open (already superseded, accepted, ...)
            JOB_NOT_OPEN: Job no longer accepts quotes
            VALIDATION_ERROR: Non-positive price
        """
        quote = Quote.objects.filter(pk=quote_id).first()
        if quote is None:
            return ServiceResult.failure("Quote not found", error_code="NOT_FOUND")
        if quote.provider_id != provider.id:
            return ServiceResult.failure(
                "Only the quote's provider can revise it", error_code="NOT_AUTHORIZED"
            )
        if price_cents is not None and price_cents <= 0:
            return ServiceResult.failure(
                "Validation failed",
                error_code="VALIDATION_ERROR",
                errors={"price_cents": ["Must be greater than zero"]},
            )

        with cls.atomic():
            job = Job.objects.select_for_update().get(pk=quote.job_id)
            quote = Quote.objects.select_for_update().get(pk=quote_id)
            if not quote.is_open:
                return ServiceResult.failure(
                    f"Quote cannot be revised (status: {quote.status})",
                    error_code="INVALID_STATE",
                )
            if not job.is_open:
                return ServiceResult.failure(
                    "Job is not open for quotes", error_code="JOB_NOT_OPEN"
                )

            quote.cancel()
            quote.save()
            revision = Quote.objects.create(
                job=job,
                provider=provider,
                price_cents=price_cents if price_cents is not None else quote.price_cents,
                description=description or quote.description,
                proposed_date=proposed_date or quote.proposed_date,
                status=QuoteStatus.UPDATED,
                original_quote=quote,
                is_updated=True,
                update_reason=reason,
            )

        cls.get_logger().info(
            "Quote revised",
            extra={
                "job_id": str(job.id),
                "previous_quote_id": str(quote.id),
                "quote_id": str(revision.id),
            },
        )
        publish_event(
            publisher,
            "quote.updated",
            job.client_id,
            {
                "job_id": str(job.id),
                "quote_id": str(revision.id),
                "previous_quote_id": str(quote.id),
            },
        )
        return ServiceResult.success(revision)

    @classmethod
    def decline_quote(
        cls,
        quote_id,
        actor: User,
        publisher: EventPublisher | None = None,
    ) -> ServiceResult[Quote]:
        """
        Client declines a single open quote.

        Error codes:
            NOT_FOUND, NOT_AUTHORIZED, INVALID_STATE
        """
        quote = Quote.objects.select_related("job").filter(pk=quote_id).first()
        if quote is None:
            return ServiceResult.failure("Quote not found", error_code="NOT_FOUND")
        if quote.job.client_id != actor.id:
            return ServiceResult.failure(
                "Only the job's client can decline quotes", error_code="NOT_AUTHORIZED"
            )

        with cls.atomic():
            quote = Quote.objects.select_for_update().get(pk=quote_id)
            if not quote.is_open:
                return ServiceResult.failure(
                    f"Quote cannot be declined (status: {quote.status})",
                    error_code="INVALID_STATE",
                )
            quote.decline()
            quote.save()

        cls.get_logger().info("Quote declined", extra={"quote_id": str(quote.id)})
        publish_event(
            publisher,
            "quote.declined",
            quote.provider_id,
            {"job_id": str(quote.job_id), "quote_id": str(quote.id)},
        )
        return ServiceResult.success(quote)

    @classmethod
    def cancel_quote(cls, quote_id, actor: User) -> ServiceResult[Quote]:
        """
        Provider withdraws an open quote.

        Error codes:
            NOT_FOUND, NOT_AUTHORIZED, INVALID_STATE
        """
        quote = Quote.objects.filter(pk=quote_id).first()
        if quote is None:
            return ServiceResult.failure("Quote not found", error_code="NOT_FOUND")
        if quote.provider_id != actor.id:
            return ServiceResult.failure(
                "Only the quote's provider can cancel it", error_code="NOT_AUTHORIZED"
            )

        with cls.atomic():
            quote = Quote.objects.select_for_update().get(pk=quote_id)
            if not quote.is_open:
                return ServiceResult.failure(
                    f"Quote cannot be cancelled (status: {quote.status})",
                    error_code="INVALID_STATE",
                )
            quote.cancel()
            quote.save()

        cls.get_logger().info("Quote cancelled", extra={"quote_id": str(quote.id)})
        return ServiceResult.success(quote)

    @classmethod
    def list_job_quotes(
        cls,
        job_id,
        actor: User,
        current_only: bool = True,
    ) -> ServiceResult[list[Quote]]:
        """
        List quotes on a job for its client (or an operator).

        Ordered by price ascending; ties broken by submission time and then
        id so the order is stable.

        Args:
            current_only: Hide records superseded by a revision
        """
        job = Job.objects.filter(pk=job_id).first()
        if job is None:
            return ServiceResult.failure("Job not found", error_code="NOT_FOUND")
        if job.client_id != actor.id and not actor.is_operator:
            return ServiceResult.failure(
                "Only the job's client can view its quotes", error_code="NOT_AUTHORIZED"
            )

        quotes = Quote.objects.filter(job=job).select_related("provider__profile")
        if current_only:
            quotes = quotes.filter(revisions__isnull=True)
        return ServiceResult.success(list(quotes.order_by("price_cents", "created_at", "id")))

    @classmethod
    def expire_open_quotes(cls, job: Job) -> int:
        """Expire every open quote on a job. Returns the number expired."""
        return Quote.objects.filter(job=job, status__in=OPEN_QUOTE_STATUSES).update(
            status=QuoteStatus.EXPIRED, updated_at=timezone.now()
        )
