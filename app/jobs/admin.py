"""
Django admin configuration for jobs models.

Status fields are read-only: transitions go through JobService and
QuoteService so their invariants hold.
"""

from django.contrib import admin

from jobs.models import Category, Job, Quote


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "is_active", "popularity_count", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name",)
    readonly_fields = ("popularity_count", "created_at", "updated_at")


class QuoteInline(admin.TabularInline):
    model = Quote
    extra = 0
    can_delete = False
    fields = ("provider", "price_cents", "status", "original_quote", "created_at")
    readonly_fields = fields


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    """Admin configuration for Job model."""

    list_display = (
        "id",
        "title",
        "client",
        "category",
        "status",
        "urgency",
        "quote_count",
        "expires_at",
        "created_at",
    )
    list_filter = ("status", "urgency", "category")
    search_fields = ("id", "title", "client__email")
    raw_id_fields = ("client", "accepted_quote")
    readonly_fields = (
        "id",
        "status",
        "accepted_quote",
        "expires_at",
        "quote_count",
        "completed_at",
        "cancelled_at",
        "version",
        "created_at",
        "updated_at",
    )
    inlines = [QuoteInline]


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    """Admin configuration for Quote model."""

    list_display = ("id", "job", "provider", "price_cents", "status", "is_updated", "created_at")
    list_filter = ("status", "is_updated")
    search_fields = ("id", "job__id", "provider__email")
    raw_id_fields = ("job", "provider", "original_quote")
    readonly_fields = ("id", "status", "original_quote", "is_updated", "created_at", "updated_at")
