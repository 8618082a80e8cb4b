"""
Serializers for jobs API.

Serializer Hierarchy:
    CategorySerializer: Category directory listing
    JobSerializer: Job read model
    JobCreateSerializer: Job posting input
    QuoteSerializer: Quote read model
    QuoteCreateSerializer / QuoteReviseSerializer: Quote input
    AcceptQuoteSerializer / CancelJobSerializer: Action input

Design Decisions:
    - Read and write serializers are separate
    - Business validation (coordinate ranges, ownership, state) lives in
      the service layer; serializers only check shape and types
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.models import Profile
from jobs.models import Category, Job, Quote
from jobs.states import JobUrgency


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ["id", "name", "description", "popularity_count"]
        read_only_fields = fields


class QuoteSerializer(serializers.ModelSerializer):
    """Quote with provider display name and revision lineage."""

    provider_name = serializers.SerializerMethodField()

    class Meta:
        model = Quote
        fields = [
            "id",
            "job",
            "provider",
            "provider_name",
            "price_cents",
            "description",
            "proposed_date",
            "status",
            "original_quote",
            "is_updated",
            "update_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_provider_name(self, obj: Quote) -> str:
        try:
            profile = obj.provider.profile
        except Profile.DoesNotExist:
            return obj.provider.email
        return profile.business_name or profile.full_name or obj.provider.email


class JobSerializer(serializers.ModelSerializer):
    """Job read model."""

    category = CategorySerializer(read_only=True)

    class Meta:
        model = Job
        fields = [
            "id",
            "client",
            "category",
            "title",
            "description",
            "specializations",
            "latitude",
            "longitude",
            "address",
            "urgency",
            "price_range_min_cents",
            "price_range_max_cents",
            "preferred_date",
            "status",
            "accepted_quote",
            "expires_at",
            "quote_count",
            "completed_at",
            "cancelled_at",
            "cancellation_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class JobCreateSerializer(serializers.Serializer):
    category_id = serializers.IntegerField()
    title = serializers.CharField(max_length=200)
    description = serializers.CharField()
    specializations = serializers.ListField(
        child=serializers.CharField(max_length=100), required=False, default=list
    )
    latitude = serializers.DecimalField(max_digits=9, decimal_places=6)
    longitude = serializers.DecimalField(max_digits=9, decimal_places=6)
    address = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    urgency = serializers.ChoiceField(choices=JobUrgency.choices, default=JobUrgency.ASAP)
    price_range_min_cents = serializers.IntegerField(required=False, allow_null=True)
    price_range_max_cents = serializers.IntegerField(required=False, allow_null=True)
    preferred_date = serializers.DateField(required=False, allow_null=True)


class AcceptQuoteSerializer(serializers.Serializer):
    quote_id = serializers.UUIDField()


class CancelJobSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class QuoteCreateSerializer(serializers.Serializer):
    job_id = serializers.UUIDField()
    price_cents = serializers.IntegerField()
    description = serializers.CharField()
    proposed_date = serializers.DateField(required=False, allow_null=True)


class QuoteReviseSerializer(serializers.Serializer):
    price_cents = serializers.IntegerField(required=False)
    description = serializers.CharField(required=False)
    proposed_date = serializers.DateField(required=False, allow_null=True)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
