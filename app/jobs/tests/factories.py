"""
Factory Boy factories for jobs test data.

Usage:
    from jobs.tests.factories import JobFactory, QuoteFactory

    job = JobFactory()
    quote = QuoteFactory(job=job, price_cents=12000)

    # Job already under way
    job = JobFactory(status=JobStatus.IN_PROGRESS)
"""

from decimal import Decimal

import factory

from authentication.tests.factories import ProviderFactory, UserFactory
from jobs.models import Category, Job, Quote
from jobs.states import JobStatus, JobUrgency, QuoteStatus


class CategoryFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Category
        django_get_or_create = ("name",)

    name = factory.Sequence(lambda n: f"Category {n}")
    description = factory.Faker("sentence")
    is_active = True


class JobFactory(factory.django.DjangoModelFactory):
    """
    Factory for Job model.

    Creates PENDING jobs with ASAP urgency; expires_at is derived on save.
    Pass status to create a job directly in another state.
    """

    class Meta:
        model = Job

    client = factory.SubFactory(UserFactory)
    category = factory.SubFactory(CategoryFactory)
    title = factory.Faker("sentence", nb_words=4)
    description = factory.Faker("paragraph")
    latitude = Decimal("40.712800")
    longitude = Decimal("-74.006000")
    address = factory.Faker("street_address")
    urgency = JobUrgency.ASAP
    status = JobStatus.PENDING


class QuoteFactory(factory.django.DjangoModelFactory):
    """Factory for Quote model. Creates a PENDING root quote."""

    class Meta:
        model = Quote

    job = factory.SubFactory(JobFactory)
    provider = factory.SubFactory(ProviderFactory)
    price_cents = 10000
    description = factory.Faker("sentence")
    status = QuoteStatus.PENDING


def accepted_job(client=None, provider=None, price_cents: int = 10000):
    """Build an IN_PROGRESS job with one ACCEPTED quote."""
    client = client or UserFactory()
    provider = provider or ProviderFactory()
    job = JobFactory(client=client)
    quote = QuoteFactory(
        job=job, provider=provider, price_cents=price_cents, status=QuoteStatus.ACCEPTED
    )
    Job.objects.filter(pk=job.pk).update(status=JobStatus.IN_PROGRESS, accepted_quote=quote)
    return Job.objects.get(pk=job.pk), quote
