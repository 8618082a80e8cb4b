"""
Base exception classes for marketplace-wide error handling.

Service operations report expected failures through ServiceResult. The
exceptions below are raised where a guard lives below the service layer
(model methods, adapters, locks) and are converted into a ServiceResult by
the calling service via ServiceResult.from_exception().

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ConflictError - State machine guard rejected the transition
    └── ExternalServiceError - Payment provider call failed

The error_code of each class matches the code used in ServiceResult
failures, so core.views.error_response can map either to an HTTP status.

Usage:
    from core.exceptions import ConflictError

    raise ConflictError(
        "Job is not pending",
        details={"job_id": str(job.id), "status": job.status},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (ids, balances, field errors)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Insufficient pending balance",
                "error_code": "INSUFFICIENT_BALANCE",
                "details": {"requested": 6000, "available": 5000}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with the current record state.

    Use for:
    - Rejected state machine transitions
    - Duplicate entries
    - Lock contention on a record being settled

    HTTP 409 Conflict is the appropriate status for these errors.
    """

    default_error_code: str = "INVALID_STATE"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Payment provider errors are transient candidates for retry by the
    caller. They must leave local state at the last known good point.

    Note:
        Log the original error for debugging but don't expose
        internal details to clients in production.
    """

    default_error_code: str = "PAYMENT_PROVIDER_ERROR"
