"""
Permission classes for jobs API.

- IsClient: User has the client role
- IsProvider: User has the provider role

Ownership checks (job's client, quote's provider) are enforced by the
service layer, which reports NOT_AUTHORIZED.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


class IsClient(permissions.BasePermission):
    message = "Only clients can perform this action."

    def has_permission(self, request: Request, view: APIView) -> bool:
        return bool(request.user and request.user.is_authenticated and request.user.is_client)


class IsProvider(permissions.BasePermission):
    message = "Only providers can perform this action."

    def has_permission(self, request: Request, view: APIView) -> bool:
        return bool(request.user and request.user.is_authenticated and request.user.is_provider)
