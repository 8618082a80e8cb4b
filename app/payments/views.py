"""
Views for payments API.

URL Structure:
    /api/v1/payments/initiate/                              POST
    /api/v1/payments/transactions/                          GET
    /api/v1/payments/transactions/{id}/                     GET
    /api/v1/payments/transactions/{id}/confirm-cash/        POST
    /api/v1/payments/wallet/                                GET
    /api/v1/payments/wallet/withdraw/                       POST
    /api/v1/payments/connect/setup/                         POST
    /api/v1/payments/admin/transactions/                    GET
    /api/v1/payments/admin/transactions/{id}/               GET
    /api/v1/payments/admin/transactions/{id}/release/       POST
    /api/v1/payments/admin/transactions/{id}/refund/        POST
    /api/v1/payments/admin/wallets/                         GET
    /api/v1/payments/webhooks/stripe/                       POST (Stripe only)

Design Decisions:
    - All state changes go through the payment services
    - Service error codes map to HTTP statuses via core.views.error_response
"""

from __future__ import annotations

from django.db.models import Q
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiResponse, extend_schema, extend_schema_view
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.views import error_response
from jobs.permissions import IsClient, IsProvider
from payments.filters import TransactionFilter, WalletFilter
from payments.models import Transaction, Wallet
from payments.permissions import IsOperator
from payments.serializers import (
    AdminTransactionSerializer,
    InitiatePaymentSerializer,
    RefundSerializer,
    ReleasePaymentSerializer,
    TransactionSerializer,
    WalletSerializer,
    WithdrawalSerializer,
)
from payments.services import ConnectService, PaymentService, SettlementService, WalletService

UUID_LOOKUP_REGEX = "[0-9a-fA-F-]{36}"


# =============================================================================
# Client / Provider Endpoints
# =============================================================================


class InitiatePaymentView(APIView):
    """Client starts paying for an in-progress job."""

    permission_classes = [IsAuthenticated, IsClient]

    @extend_schema(
        operation_id="initiate_payment",
        summary="Initiate payment for a job",
        request=InitiatePaymentSerializer,
        responses={
            201: OpenApiResponse(description="Transaction and card client_secret"),
            409: OpenApiResponse(description="Job not ready or payment already active"),
            502: OpenApiResponse(description="Stripe error"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = InitiatePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PaymentService.initiate_payment(
            serializer.validated_data["job_id"],
            request.user,
            serializer.validated_data["method"],
        )
        if not result.success:
            return error_response(result)

        return Response(
            {
                "transaction": TransactionSerializer(result.data.transaction).data,
                "client_secret": result.data.client_secret,
            },
            status=status.HTTP_201_CREATED,
        )


@extend_schema_view(
    list=extend_schema(
        operation_id="list_transactions",
        summary="List my transactions",
        description="Payments made by the user, or owed to them as provider.",
        tags=["Payments"],
    ),
    retrieve=extend_schema(
        operation_id="get_transaction",
        summary="Get one of my transactions",
        tags=["Payments"],
    ),
)
class TransactionViewSet(
    mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet
):
    """
    Transactions visible to the user.

    confirm_cash:
        Provider on the accepted quote confirms a cash payment.
    """

    serializer_class = TransactionSerializer
    permission_classes = [IsAuthenticated]
    lookup_value_regex = UUID_LOOKUP_REGEX

    def get_queryset(self):
        user = self.request.user
        if not user.is_authenticated:
            return Transaction.objects.none()
        return Transaction.objects.filter(Q(payer=user) | Q(quote__provider=user))

    @extend_schema(
        operation_id="confirm_cash_payment",
        summary="Confirm cash payment",
        request=None,
        responses={
            200: TransactionSerializer,
            403: OpenApiResponse(description="Not the provider on the accepted quote"),
            409: OpenApiResponse(description="Not a pending cash payment"),
        },
        tags=["Payments"],
    )
    @action(detail=True, methods=["post"], url_path="confirm-cash")
    def confirm_cash(self, request, pk=None):
        result = PaymentService.confirm_cash_payment(pk, request.user)
        if not result.success:
            return error_response(result)

        return Response(TransactionSerializer(result.data).data)


class WalletView(APIView):
    permission_classes = [IsAuthenticated, IsProvider]

    @extend_schema(
        operation_id="get_wallet",
        summary="Get my wallet",
        responses={200: WalletSerializer},
        tags=["Payments - Wallet"],
    )
    def get(self, request):
        result = WalletService.get_or_create_wallet(request.user)
        return Response(WalletSerializer(result.data).data)


class WithdrawView(APIView):
    permission_classes = [IsAuthenticated, IsProvider]

    @extend_schema(
        operation_id="request_withdrawal",
        summary="Withdraw available balance",
        request=WithdrawalSerializer,
        responses={
            200: OpenApiResponse(description="Updated wallet and payout id"),
            409: OpenApiResponse(description="Insufficient available balance"),
            502: OpenApiResponse(description="Stripe payout failed; withdrawal rolled back"),
        },
        tags=["Payments - Wallet"],
    )
    def post(self, request):
        serializer = WithdrawalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = WalletService.request_withdrawal(
            request.user, serializer.validated_data["amount_cents"]
        )
        if not result.success:
            return error_response(result)

        return Response(
            {
                "wallet": WalletSerializer(result.data.wallet).data,
                "amount_cents": result.data.amount_cents,
                "payout_id": result.data.payout_id,
            }
        )


class ConnectSetupView(APIView):
    permission_classes = [IsAuthenticated, IsProvider]

    @extend_schema(
        operation_id="setup_connect_account",
        summary="Start Stripe Connect onboarding",
        request=None,
        responses={200: OpenApiResponse(description="Onboarding link url and expiry")},
        tags=["Payments - Wallet"],
    )
    def post(self, request):
        result = ConnectService.setup_connect_account(request.user)
        if not result.success:
            return error_response(result)

        return Response(
            {
                "url": result.data.url,
                "expires_at": result.data.expires_at,
                "stripe_account_status": result.data.wallet.stripe_account_status,
            }
        )


# =============================================================================
# Operator Endpoints
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="admin_list_transactions",
        summary="List all transactions",
        tags=["Payments - Admin"],
    ),
    retrieve=extend_schema(
        operation_id="admin_get_transaction",
        summary="Get transaction details",
        tags=["Payments - Admin"],
    ),
)
class AdminTransactionViewSet(
    mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet
):
    """
    Operator view of every transaction.

    release:
        Make a completed payment's funds available to the provider.

    refund:
        Refund a completed, unreleased payment and cancel its job.
    """

    serializer_class = AdminTransactionSerializer
    permission_classes = [IsAuthenticated, IsOperator]
    lookup_value_regex = UUID_LOOKUP_REGEX
    queryset = Transaction.objects.select_related("quote")
    filter_backends = [DjangoFilterBackend]
    filterset_class = TransactionFilter

    @extend_schema(
        operation_id="admin_release_payment",
        summary="Release payment to provider",
        request=ReleasePaymentSerializer,
        responses={
            200: AdminTransactionSerializer,
            409: OpenApiResponse(description="Not completed, already released, or insufficient balance"),
        },
        tags=["Payments - Admin"],
    )
    @action(detail=True, methods=["post"])
    def release(self, request, pk=None):
        serializer = ReleasePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = SettlementService.release_payment(
            pk, request.user, notes=serializer.validated_data["notes"]
        )
        if not result.success:
            return error_response(result)

        data = AdminTransactionSerializer(result.data).data
        if result.warning:
            data["warning"] = result.warning
        return Response(data)

    @extend_schema(
        operation_id="admin_refund_payment",
        summary="Refund payment",
        request=RefundSerializer,
        responses={
            200: AdminTransactionSerializer,
            409: OpenApiResponse(description="Not completed or already released"),
            502: OpenApiResponse(description="Stripe refund failed; nothing changed"),
        },
        tags=["Payments - Admin"],
    )
    @action(detail=True, methods=["post"])
    def refund(self, request, pk=None):
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = SettlementService.process_refund(
            pk,
            request.user,
            amount_cents=serializer.validated_data.get("amount_cents"),
            reason=serializer.validated_data["reason"],
        )
        if not result.success:
            return error_response(result)

        return Response(AdminTransactionSerializer(result.data).data)


@extend_schema_view(
    list=extend_schema(
        operation_id="admin_list_wallets",
        summary="List provider wallets",
        tags=["Payments - Admin"],
    ),
)
class AdminWalletViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    serializer_class = WalletSerializer
    permission_classes = [IsAuthenticated, IsOperator]
    queryset = Wallet.objects.select_related("provider")
    filter_backends = [DjangoFilterBackend]
    filterset_class = WalletFilter
