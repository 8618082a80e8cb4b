"""
ViewSets for jobs API.

URL Structure:
    /api/v1/jobs/categories/                 GET
    /api/v1/jobs/                            GET, POST
    /api/v1/jobs/{id}/                       GET
    /api/v1/jobs/{id}/accept-quote/          POST
    /api/v1/jobs/{id}/complete/              POST
    /api/v1/jobs/{id}/cancel/                POST
    /api/v1/jobs/{id}/quotes/                GET
    /api/v1/jobs/quotes/                     POST
    /api/v1/jobs/quotes/{id}/revise/         POST
    /api/v1/jobs/quotes/{id}/decline/        POST
    /api/v1/jobs/quotes/{id}/cancel/         POST

Design Decisions:
    - All state changes go through JobService / QuoteService
    - Service error codes map to HTTP statuses via core.views.error_response
"""

from __future__ import annotations

from django.db.models import Q
from drf_spectacular.utils import OpenApiResponse, extend_schema, extend_schema_view
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.views import error_response
from jobs.models import Category, Job
from jobs.permissions import IsClient, IsProvider
from jobs.serializers import (
    AcceptQuoteSerializer,
    CancelJobSerializer,
    CategorySerializer,
    JobCreateSerializer,
    JobSerializer,
    QuoteCreateSerializer,
    QuoteReviseSerializer,
    QuoteSerializer,
)
from jobs.services import JobService, QuoteService

UUID_LOOKUP_REGEX = "[0-9a-fA-F-]{36}"


@extend_schema_view(
    list=extend_schema(
        operation_id="list_categories",
        summary="List active categories",
        tags=["Jobs - Categories"],
    ),
)
class CategoryViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    serializer_class = CategorySerializer
    permission_classes = [IsAuthenticated]
    queryset = Category.objects.filter(is_active=True)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_jobs",
        summary="List jobs",
        description=(
            "Clients see their own jobs. Providers see active jobs "
            "(pending and not expired). Operators see every job."
        ),
        tags=["Jobs"],
    ),
    retrieve=extend_schema(
        operation_id="get_job",
        summary="Get job",
        tags=["Jobs"],
    ),
    create=extend_schema(
        operation_id="create_job",
        summary="Post a job",
        request=JobCreateSerializer,
        responses={201: JobSerializer},
        tags=["Jobs"],
    ),
)
class JobViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for the job lifecycle.

    accept_quote:
        Client accepts one quote. The job moves to in_progress and every
        other open quote is declined.

    complete:
        Provider on the accepted quote marks the job completed.

    cancel:
        Client cancels a pending job.

    quotes:
        Client lists current quotes ordered by price.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = UUID_LOOKUP_REGEX

    def get_queryset(self):
        user = self.request.user
        if not user.is_authenticated:
            return Job.objects.none()

        queryset = Job.objects.select_related("category", "accepted_quote")
        if user.is_operator:
            return queryset
        if user.is_provider:
            if self.action == "list":
                return queryset.active()
            return queryset.filter(
                Q(status="pending") | Q(accepted_quote__provider=user) | Q(quotes__provider=user)
            ).distinct()
        return queryset.filter(client=user)

    def get_serializer_class(self):
        if self.action == "create":
            return JobCreateSerializer
        return JobSerializer

    def get_permissions(self):
        if self.action == "create":
            return [IsAuthenticated(), IsClient()]
        return [IsAuthenticated()]

    def create(self, request):
        serializer = JobCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = JobService.create_job(request.user, serializer.validated_data)
        if not result.success:
            return error_response(result)

        return Response(JobSerializer(result.data).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="accept_quote",
        summary="Accept a quote",
        request=AcceptQuoteSerializer,
        responses={
            200: JobSerializer,
            403: OpenApiResponse(description="Not the job's client"),
            409: OpenApiResponse(description="Job or quote not in an acceptable state"),
        },
        tags=["Jobs"],
    )
    @action(detail=True, methods=["post"], url_path="accept-quote")
    def accept_quote(self, request, pk=None):
        serializer = AcceptQuoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = JobService.accept_quote(pk, serializer.validated_data["quote_id"], request.user)
        if not result.success:
            return error_response(result)

        return Response(JobSerializer(result.data).data)

    @extend_schema(
        operation_id="complete_job",
        summary="Mark job completed",
        request=None,
        responses={200: JobSerializer},
        tags=["Jobs"],
    )
    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        result = JobService.mark_complete(pk, request.user)
        if not result.success:
            return error_response(result)

        return Response(JobSerializer(result.data).data)

    @extend_schema(
        operation_id="cancel_job",
        summary="Cancel a pending job",
        request=CancelJobSerializer,
        responses={200: JobSerializer},
        tags=["Jobs"],
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        serializer = CancelJobSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = JobService.cancel_job(pk, request.user, serializer.validated_data["reason"])
        if not result.success:
            return error_response(result)

        return Response(JobSerializer(result.data).data)

    @extend_schema(
        operation_id="list_job_quotes",
        summary="List quotes on a job",
        responses={200: QuoteSerializer(many=True)},
        tags=["Jobs"],
    )
    @action(detail=True, methods=["get"])
    def quotes(self, request, pk=None):
        result = QuoteService.list_job_quotes(pk, request.user)
        if not result.success:
            return error_response(result)

        return Response(QuoteSerializer(result.data, many=True).data)


class QuoteViewSet(viewsets.GenericViewSet):
    """
    ViewSet for quote actions.

    create:
        Provider submits a quote on an open job.

    revise:
        Provider supersedes their quote with a revised record.

    decline:
        Client declines a quote.

    cancel:
        Provider withdraws their quote.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = QuoteSerializer
    lookup_value_regex = UUID_LOOKUP_REGEX

    def get_permissions(self):
        if self.action in ("create", "revise", "cancel"):
            return [IsAuthenticated(), IsProvider()]
        return [IsAuthenticated()]

    @extend_schema(
        operation_id="submit_quote",
        summary="Submit a quote",
        request=QuoteCreateSerializer,
        responses={201: QuoteSerializer},
        tags=["Jobs - Quotes"],
    )
    def create(self, request):
        serializer = QuoteCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = QuoteService.submit_quote(
            data["job_id"],
            request.user,
            data["price_cents"],
            data["description"],
            proposed_date=data.get("proposed_date"),
        )
        if not result.success:
            return error_response(result)

        return Response(QuoteSerializer(result.data).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="revise_quote",
        summary="Revise a quote",
        request=QuoteReviseSerializer,
        responses={201: QuoteSerializer},
        tags=["Jobs - Quotes"],
    )
    @action(detail=True, methods=["post"])
    def revise(self, request, pk=None):
        serializer = QuoteReviseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = QuoteService.revise_quote(
            pk,
            request.user,
            price_cents=data.get("price_cents"),
            description=data.get("description"),
            proposed_date=data.get("proposed_date"),
            reason=data["reason"],
        )
        if not result.success:
            return error_response(result)

        return Response(QuoteSerializer(result.data).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="decline_quote",
        summary="Decline a quote",
        request=None,
        responses={200: QuoteSerializer},
        tags=["Jobs - Quotes"],
    )
    @action(detail=True, methods=["post"])
    def decline(self, request, pk=None):
        result = QuoteService.decline_quote(pk, request.user)
        if not result.success:
            return error_response(result)

        return Response(QuoteSerializer(result.data).data)

    @extend_schema(
        operation_id="cancel_quote",
        summary="Withdraw a quote",
        request=None,
        responses={200: QuoteSerializer},
        tags=["Jobs - Quotes"],
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        result = QuoteService.cancel_quote(pk, request.user)
        if not result.success:
            return error_response(result)

        return Response(QuoteSerializer(result.data).data)
