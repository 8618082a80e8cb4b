# Generated manually - initial jobs schema

import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Category",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True, help_text="Timestamp when this record was last modified"
                    ),
                ),
                (
                    "name",
                    models.CharField(help_text="Category display name", max_length=100, unique=True),
                ),
                ("description", models.TextField(blank=True, help_text="Category description")),
                (
                    "is_active",
                    models.BooleanField(
                        db_index=True,
                        default=True,
                        help_text="Whether new jobs may be posted in this category",
                    ),
                ),
                (
                    "popularity_count",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Jobs posted in this category (incremented with F() on job creation)",
                    ),
                ),
            ],
            options={
                "verbose_name": "Category",
                "verbose_name_plural": "Categories",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Job",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True, help_text="Timestamp when this record was last modified"
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Optimistic locking version - incremented on every update",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("title", models.CharField(help_text="Short summary of the work", max_length=200)),
                ("description", models.TextField(help_text="Full description of the work")),
                (
                    "specializations",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Specializations required (list of strings)",
                    ),
                ),
                (
                    "latitude",
                    models.DecimalField(
                        decimal_places=6, help_text="Job site latitude (-90 to 90)", max_digits=9
                    ),
                ),
                (
                    "longitude",
                    models.DecimalField(
                        decimal_places=6, help_text="Job site longitude (-180 to 180)", max_digits=9
                    ),
                ),
                (
                    "address",
                    models.CharField(blank=True, help_text="Job site street address", max_length=500),
                ),
                (
                    "urgency",
                    models.CharField(
                        choices=[
                            ("urgent", "Urgent"),
                            ("asap", "As soon as possible"),
                            ("next_week", "Next week"),
                        ],
                        default="asap",
                        help_text="Urgency; determines listing expiry",
                        max_length=20,
                    ),
                ),
                (
                    "price_range_min_cents",
                    models.PositiveBigIntegerField(
                        blank=True,
                        help_text="Lower bound of the client's budget in cents",
                        null=True,
                    ),
                ),
                (
                    "price_range_max_cents",
                    models.PositiveBigIntegerField(
                        blank=True,
                        help_text="Upper bound of the client's budget in cents",
                        null=True,
                    ),
                ),
                (
                    "preferred_date",
                    models.DateField(
                        blank=True,
                        help_text="Date the client would like the work done",
                        null=True,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("in_progress", "In Progress"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                            ("expired", "Expired"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the job (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "expires_at",
                    models.DateTimeField(
                        db_index=True,
                        help_text="When the listing expires (derived from urgency at creation)",
                    ),
                ),
                (
                    "quote_count",
                    models.PositiveIntegerField(
                        default=0, help_text="Number of root quotes submitted (incremented with F())"
                    ),
                ),
                (
                    "completed_at",
                    models.DateTimeField(blank=True, help_text="When the job was completed", null=True),
                ),
                (
                    "cancelled_at",
                    models.DateTimeField(blank=True, help_text="When the job was cancelled", null=True),
                ),
                (
                    "cancellation_reason",
                    models.TextField(blank=True, help_text="Why the job was cancelled"),
                ),
                (
                    "category",
                    models.ForeignKey(
                        help_text="Service category",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="jobs",
                        to="jobs.category",
                    ),
                ),
                (
                    "client",
                    models.ForeignKey(
                        help_text="Client who posted the job",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="jobs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Job",
                "verbose_name_plural": "Jobs",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Quote",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True, help_text="Timestamp when this record was last modified"
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Optimistic locking version - incremented on every update",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("price_cents", models.PositiveBigIntegerField(help_text="Quoted price in cents")),
                ("description", models.TextField(help_text="Scope of work and terms")),
                (
                    "proposed_date",
                    models.DateField(
                        blank=True,
                        help_text="Date the provider proposes to do the work",
                        null=True,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("accepted", "Accepted"),
                            ("declined", "Declined"),
                            ("updated", "Updated"),
                            ("cancelled", "Cancelled"),
                            ("expired", "Expired"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the quote (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "is_updated",
                    models.BooleanField(default=False, help_text="Whether this record is a revision"),
                ),
                (
                    "update_reason",
                    models.TextField(blank=True, help_text="Provider's reason for the revision"),
                ),
                (
                    "job",
                    models.ForeignKey(
                        help_text="Job this quote is for",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="quotes",
                        to="jobs.job",
                    ),
                ),
                (
                    "original_quote",
                    models.ForeignKey(
                        blank=True,
                        help_text="Record this quote supersedes (null for the root of a chain)",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="revisions",
                        to="jobs.quote",
                    ),
                ),
                (
                    "provider",
                    models.ForeignKey(
                        help_text="Provider who submitted the quote",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="quotes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Quote",
                "verbose_name_plural": "Quotes",
                "ordering": ["price_cents", "created_at", "id"],
                "indexes": [
                    models.Index(fields=["job", "status"], name="jobs_quote_job_id_status_idx"),
                    models.Index(
                        fields=["provider", "status"], name="jobs_quote_provider_status_idx"
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("original_quote__isnull", True)),
                        fields=("job", "provider"),
                        name="unique_root_quote_per_provider",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("status", "accepted")),
                        fields=("job",),
                        name="one_accepted_quote_per_job",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("price_cents__gt", 0)),
                        name="quote_price_positive",
                    ),
                ],
            },
        ),
        migrations.AddField(
            model_name="job",
            name="accepted_quote",
            field=models.ForeignKey(
                blank=True,
                help_text="Quote accepted by the client (set on acceptance, kept for audit)",
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="+",
                to="jobs.quote",
            ),
        ),
        migrations.AddIndex(
            model_name="job",
            index=models.Index(fields=["status", "expires_at"], name="jobs_job_status_expires_idx"),
        ),
        migrations.AddIndex(
            model_name="job",
            index=models.Index(fields=["client", "status"], name="jobs_job_client_status_idx"),
        ),
        migrations.AddConstraint(
            model_name="job",
            constraint=models.CheckConstraint(
                condition=models.Q(("latitude__gte", -90), ("latitude__lte", 90)),
                name="job_latitude_range",
            ),
        ),
        migrations.AddConstraint(
            model_name="job",
            constraint=models.CheckConstraint(
                condition=models.Q(("longitude__gte", -180), ("longitude__lte", 180)),
                name="job_longitude_range",
            ),
        ),
        migrations.AddConstraint(
            model_name="job",
            constraint=models.CheckConstraint(
                condition=models.Q(
                    ("price_range_min_cents__isnull", True),
                    ("price_range_max_cents__isnull", True),
                    ("price_range_min_cents__lte", models.F("price_range_max_cents")),
                    _connector="OR",
                ),
                name="job_price_range_ordered",
            ),
        ),
    ]
