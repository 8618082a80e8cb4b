"""
Core views and response helpers.

Contains the infrastructure health check and the translation from service
error codes to HTTP status codes used by every API view.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse
from rest_framework import status
from rest_framework.response import Response

if TYPE_CHECKING:
    from core.services import ServiceResult

logger = logging.getLogger(__name__)

# Service error code -> HTTP status
ERROR_STATUS_MAP = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "NOT_AUTHORIZED": status.HTTP_403_FORBIDDEN,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "JOB_NOT_OPEN": status.HTTP_409_CONFLICT,
    "JOB_NOT_READY": status.HTTP_409_CONFLICT,
    "DUPLICATE_QUOTE": status.HTTP_409_CONFLICT,
    "ALREADY_RELEASED": status.HTTP_409_CONFLICT,
    "INSUFFICIENT_BALANCE": status.HTTP_409_CONFLICT,
    "PAYMENT_PROVIDER_ERROR": status.HTTP_502_BAD_GATEWAY,
    "INCONSISTENCY": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for_error_code(error_code: str | None) -> int:
    """Return the HTTP status for a service error code (400 if unknown)."""
    return ERROR_STATUS_MAP.get(error_code or "", status.HTTP_400_BAD_REQUEST)


def error_response(result: ServiceResult) -> Response:
    """
    Build a DRF Response for a failed ServiceResult.

    Example:
        result = JobService.cancel_job(pk, request.user, reason)
        if not result.success:
            return error_response(result)
    """
    return Response(result.to_response(), status=status_for_error_code(result.error_code))


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    HTTP Status Codes:
        200: Database reachable
        503: Database unreachable

    Example Response:
        {
            "status": "healthy",
            "database": "connected",
            "cache": "connected"
        }
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except DatabaseError:
        logger.exception("Health check could not reach the database")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    # Cache failure degrades but does not fail the check
    try:
        cache.set("health_check", "ok", timeout=1)
        health_status["cache"] = "connected" if cache.get("health_check") == "ok" else "disconnected"
    except Exception:
        logger.warning("Health check could not reach the cache", exc_info=True)
        health_status["cache"] = "disconnected"

    status_code = 200 if is_healthy else 503
    return JsonResponse(health_status, status=status_code)
