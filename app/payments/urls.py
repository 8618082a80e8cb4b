"""
URL configuration for the payments app.

All routes are prefixed with /api/v1/payments/ in the main URLconf.
"""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from payments.views import (
    AdminTransactionViewSet,
    AdminWalletViewSet,
    ConnectSetupView,
    InitiatePaymentView,
    TransactionViewSet,
    WalletView,
    WithdrawView,
)
from payments.webhooks.views import stripe_webhook

router = SimpleRouter()
router.register(r"transactions", TransactionViewSet, basename="transaction")
router.register(r"admin/transactions", AdminTransactionViewSet, basename="admin-transaction")
router.register(r"admin/wallets", AdminWalletViewSet, basename="admin-wallet")

app_name = "payments"

urlpatterns = [
    path("initiate/", InitiatePaymentView.as_view(), name="initiate"),
    path("wallet/", WalletView.as_view(), name="wallet"),
    path("wallet/withdraw/", WithdrawView.as_view(), name="wallet-withdraw"),
    path("connect/setup/", ConnectSetupView.as_view(), name="connect-setup"),
    path("webhooks/stripe/", stripe_webhook, name="stripe-webhook"),
    path("", include(router.urls)),
]
