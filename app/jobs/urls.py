"""
URL configuration for jobs API.

All URLs are prefixed with /api/v1/jobs/ in the main URL configuration.
"categories" and "quotes" are registered before the job routes so they are
not captured as job ids.
"""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from jobs.views import CategoryViewSet, JobViewSet, QuoteViewSet

router = SimpleRouter()
router.register(r"categories", CategoryViewSet, basename="category")
router.register(r"quotes", QuoteViewSet, basename="quote")
router.register(r"", JobViewSet, basename="job")

app_name = "jobs"

urlpatterns = [
    path("", include(router.urls)),
]
