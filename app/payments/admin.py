"""
Django admin configuration for payments models.

Balances and transaction status are read-only: money only moves through
the payment services so the wallet and settlement invariants hold.
"""

from django.contrib import admin

from payments.models import Transaction, Wallet, WebhookEvent


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    """Admin configuration for Transaction."""

    list_display = [
        "id",
        "payer",
        "job",
        "amount_cents",
        "payment_method",
        "status",
        "released_at",
        "created_at",
    ]
    list_filter = ["status", "payment_method", "created_at"]
    search_fields = ["id", "payer__email", "stripe_payment_intent_id", "stripe_charge_id"]
    raw_id_fields = ["payer", "job", "quote", "released_by"]
    readonly_fields = [
        "id",
        "status",
        "amount_cents",
        "commission_percent",
        "platform_commission_cents",
        "provider_amount_cents",
        "refunded_amount_cents",
        "stripe_payment_intent_id",
        "wallet_credited_at",
        "pending_release_at",
        "released_at",
        "version",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "payer", "job", "quote", "payment_method", "status")}),
        (
            "Amounts",
            {
                "fields": (
                    "amount_cents",
                    "commission_percent",
                    "platform_commission_cents",
                    "provider_amount_cents",
                    "refunded_amount_cents",
                    "currency",
                ),
            },
        ),
        (
            "Settlement",
            {
                "fields": (
                    "wallet_credited_at",
                    "pending_release_at",
                    "released_at",
                    "released_by",
                    "release_notes",
                ),
            },
        ),
        (
            "Stripe",
            {
                "fields": (
                    "stripe_payment_intent_id",
                    "stripe_charge_id",
                    "stripe_transfer_id",
                    "stripe_refund_id",
                ),
                "classes": ("collapse",),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("failure_reason", "metadata", "version", "created_at", "updated_at"),
                "classes": ("collapse",),
            },
        ),
    )


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    list_display = [
        "provider",
        "available_balance_cents",
        "pending_balance_cents",
        "withdrawn_balance_cents",
        "stripe_account_status",
        "updated_at",
    ]
    list_filter = ["stripe_account_status"]
    search_fields = ["provider__email", "stripe_account_id"]
    raw_id_fields = ["provider"]
    readonly_fields = [
        "id",
        "total_earned_cents",
        "available_balance_cents",
        "pending_balance_cents",
        "withdrawn_balance_cents",
        "version",
        "created_at",
        "updated_at",
    ]


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Webhook events are immutable once received.
    """

    list_display = [
        "stripe_event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "stripe_event_id", "object_id", "event_type"]
    readonly_fields = [
        "id",
        "stripe_event_id",
        "event_type",
        "object_id",
        "payload",
        "processed_at",
        "created_at",
        "updated_at",
    ]
