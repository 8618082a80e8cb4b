"""
Root URL configuration.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - JWT token obtain/refresh
    /api/v1/jobs/                  - Jobs and quotes
        jobs/                      - Post/list jobs, cancel, complete, quotes
        quotes/{id}/               - Update/withdraw/accept/decline a quote
        categories/                - Service categories
    /api/v1/payments/              - Payments, wallets and settlement
        initiate/                  - Start a payment for a job
        transactions/              - My transactions, confirm cash
        wallet/                    - Provider wallet and withdrawals
        connect/setup/             - Stripe Connect onboarding
        admin/                     - Operator release/refund
        webhooks/stripe/           - Stripe webhook endpoint (POST)
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/", include("authentication.urls")),
    path("jobs/", include("jobs.urls")),
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Marketplace Admin"
admin.site.site_title = "Marketplace Admin"
admin.site.index_title = "Jobs, payments and settlement"
