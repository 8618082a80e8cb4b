"""
Permission classes for payments API.

- IsOperator: Staff or admin-role user (release, refund, admin listings)

Provider-only and client-only checks reuse jobs.permissions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


class IsOperator(permissions.BasePermission):
    message = "Only operators can perform this action."

    def has_permission(self, request: Request, view: APIView) -> bool:
        return bool(request.user and request.user.is_authenticated and request.user.is_operator)
