# Generated manually - initial payments schema

import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("jobs", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Transaction",
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
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Amount charged to the client in cents"
                    ),
                ),
                (
                    "commission_percent",
                    models.PositiveSmallIntegerField(
                        help_text="Platform commission rate at creation (percent)"
                    ),
                ),
                (
                    "platform_commission_cents",
                    models.PositiveBigIntegerField(
                        help_text="Platform commission in cents (frozen at creation)"
                    ),
                ),
                (
                    "provider_amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Amount owed to the provider in cents (frozen at creation)"
                    ),
                ),
                (
                    "refunded_amount_cents",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Amount refunded to the client in cents"
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="usd",
                        help_text="ISO 4217 currency code (lowercase)",
                        max_length=3,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        choices=[
                            ("card", "Card"),
                            ("cash", "Cash"),
                            ("bank_transfer", "Bank Transfer"),
                        ],
                        help_text="How the client pays",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                            ("disputed", "Disputed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the transaction (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "stripe_payment_intent_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe PaymentIntent ID (pi_xxx), set once at creation",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "stripe_charge_id",
                    models.CharField(
                        blank=True, help_text="Stripe Charge ID (ch_xxx)", max_length=255
                    ),
                ),
                (
                    "stripe_transfer_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe Transfer ID (tr_xxx) of the provider settlement",
                        max_length=255,
                    ),
                ),
                (
                    "stripe_refund_id",
                    models.CharField(
                        blank=True, help_text="Stripe Refund ID (re_xxx)", max_length=255
                    ),
                ),
                (
                    "paid_at",
                    models.DateTimeField(
                        blank=True, help_text="When the client's payment was confirmed", null=True
                    ),
                ),
                (
                    "completed_at",
                    models.DateTimeField(
                        blank=True, help_text="When the transaction reached COMPLETED", null=True
                    ),
                ),
                (
                    "failed_at",
                    models.DateTimeField(
                        blank=True, help_text="When the payment failed", null=True
                    ),
                ),
                (
                    "refunded_at",
                    models.DateTimeField(
                        blank=True, help_text="When the payment was refunded", null=True
                    ),
                ),
                (
                    "wallet_credited_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the provider's wallet was credited (guards double credit)",
                        null=True,
                    ),
                ),
                (
                    "pending_release_at",
                    models.DateTimeField(
                        blank=True,
                        db_index=True,
                        help_text="When the credit was placed in the pending bucket",
                        null=True,
                    ),
                ),
                (
                    "released_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When funds were released to the provider (release idempotency marker)",
                        null=True,
                    ),
                ),
                (
                    "release_notes",
                    models.TextField(blank=True, help_text="Operator notes recorded on release"),
                ),
                (
                    "failure_reason",
                    models.TextField(blank=True, help_text="Reason the payment failed"),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary JSON metadata (refund reason, frozen credit flags, ...)",
                    ),
                ),
                (
                    "payer",
                    models.ForeignKey(
                        help_text="Client making the payment",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "job",
                    models.ForeignKey(
                        blank=True,
                        help_text="Job being paid for",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="jobs.job",
                    ),
                ),
                (
                    "quote",
                    models.ForeignKey(
                        blank=True,
                        help_text="Accepted quote whose price is charged",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="jobs.quote",
                    ),
                ),
                (
                    "released_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="Operator who released the funds (null for automatic release)",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="released_transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Transaction",
                "verbose_name_plural": "Transactions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["job", "status"], name="payments_txn_job_status_idx"),
                    models.Index(
                        fields=["payer", "status"], name="payments_txn_payer_status_idx"
                    ),
                    models.Index(
                        fields=["status", "payment_method", "created_at"],
                        name="payments_txn_status_method_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(amount_cents__gt=0),
                        name="transaction_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            amount_cents=models.F("provider_amount_cents")
                            + models.F("platform_commission_cents")
                        ),
                        name="transaction_split_sums_to_amount",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(refunded_amount_cents__lte=models.F("amount_cents")),
                        name="transaction_refund_within_amount",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Wallet",
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
                (
                    "total_earned_cents",
                    models.BigIntegerField(
                        default=0, help_text="Lifetime earnings credited to this wallet in cents"
                    ),
                ),
                (
                    "available_balance_cents",
                    models.BigIntegerField(default=0, help_text="Withdrawable balance in cents"),
                ),
                (
                    "pending_balance_cents",
                    models.BigIntegerField(
                        default=0, help_text="Earned but not yet released balance in cents"
                    ),
                ),
                (
                    "withdrawn_balance_cents",
                    models.BigIntegerField(
                        default=0, help_text="Total paid out to the provider in cents"
                    ),
                ),
                (
                    "stripe_account_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Stripe Connect account ID (acct_xxx)",
                        max_length=255,
                    ),
                ),
                (
                    "stripe_account_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("verified", "Verified"),
                            ("rejected", "Rejected"),
                        ],
                        default="pending",
                        help_text="Verification status of the connected account",
                        max_length=20,
                    ),
                ),
                (
                    "provider",
                    models.OneToOneField(
                        help_text="Provider owning this wallet",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="wallet",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Wallet",
                "verbose_name_plural": "Wallets",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(available_balance_cents__gte=0),
                        name="wallet_available_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(pending_balance_cents__gte=0),
                        name="wallet_pending_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(withdrawn_balance_cents__gte=0),
                        name="wallet_withdrawn_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
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
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "stripe_event_id",
                    models.CharField(
                        help_text="Stripe event id (evt_...); duplicate deliveries collide on it",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe event type, e.g. payment_intent.succeeded",
                        max_length=100,
                    ),
                ),
                (
                    "object_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Id of the Stripe object the event is about (pi_, acct_, po_ ...)",
                        max_length=255,
                    ),
                ),
                ("payload", models.JSONField(help_text="Event body as received from Stripe")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True, help_text="When a handler last finished the event successfully", null=True
                    ),
                ),
                (
                    "error_message",
                    models.TextField(blank=True, help_text="Why the last attempt failed"),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Processing attempts so far"
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"], name="payments_wh_status_created_idx"
                    ),
                    models.Index(
                        fields=["status", "retry_count"], name="payments_wh_status_retry_idx"
                    ),
                ],
            },
        ),
    ]
