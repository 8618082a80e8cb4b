"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Pattern Comparison:
    - ServiceResult: Use for expected failures (guard rejections such as
      INVALID_STATE or NOT_AUTHORIZED, validation, payment provider errors)
    - Exceptions: Use for unexpected failures (database errors, bugs) and
      for guard failures deep inside model methods (InsufficientBalanceError)
      that the calling service converts into a ServiceResult

Usage:
    from core.services import BaseService, ServiceResult

    class JobService(BaseService):
        @classmethod
        def cancel_job(cls, job_id, actor, reason="") -> ServiceResult[Job]:
            job = Job.objects.filter(pk=job_id).first()
            if job is None:
                return ServiceResult.failure("Job not found", error_code="NOT_FOUND")

            with cls.atomic():
                ...

            cls.get_logger().info("Job cancelled", extra={"job_id": str(job.id)})
            return ServiceResult.success(job)

    # In a view
    result = JobService.cancel_job(job_id, request.user)
    if result.success:
        return Response(JobSerializer(result.data).data)
    return error_response(result)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures
        warning: Non-fatal condition the caller should surface (e.g. a
            Stripe transfer that fell back to crediting pending balance)

    Usage:
        # Success case
        return ServiceResult.success(job)

        # Failure case
        return ServiceResult.failure("Job is not pending", "INVALID_STATE")

        # Validation errors with field details
        return ServiceResult.failure(
            "Validation failed",
            error_code="VALIDATION_ERROR",
            errors={"latitude": ["Must be between -90 and 90"]},
        )
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)
    warning: str | None = None

    @classmethod
    def success(cls, data: T, warning: str | None = None) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data
            warning: Optional non-fatal warning for the caller

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data, warning=warning)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)

        Returns:
            ServiceResult with success=False and error details
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors carry their own error_code, which is used unless
        an explicit one is given.

        Example:
            try:
                wallet.release_pending_balance(amount)
            except InsufficientBalanceError as e:
                return ServiceResult.from_exception(e)
        """
        code = error_code or getattr(exc, "error_code", None) or exc.__class__.__name__.upper()
        message = getattr(exc, "message", None) or str(exc)
        return cls(success=False, error=message, error_code=code)

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API response format.

        Returns:
            Dict with success status and data or error details
        """
        if self.success:
            response: dict[str, Any] = {"success": True, "data": self.data}
            if self.warning:
                response["warning"] = self.warning
            return response

        response = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - Exception handling patterns

    Design Notes:
        - Use @classmethod (no instance state)
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
        - Never call external providers (Stripe) inside cls.atomic()
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Thin wrapper around Django's transaction.atomic() that makes
        transaction boundaries explicit in service code.

        Example:
            with cls.atomic():
                job = Job.objects.select_for_update().get(pk=job_id)
                job.start(quote)
                job.save()
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        error_code: str | None = None,
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Convert exception to ServiceResult with logging.

        Args:
            exc: The caught exception
            context: Additional context for logging
            error_code: Error code for the result (defaults to the
                exception's own code or class name)
            log_level: Logging level (default ERROR)

        Returns:
            ServiceResult with error details

        Example:
            try:
                StripeAdapter.create_refund(...)
            except StripeError as e:
                return cls.handle_exception(e, "refund", "PAYMENT_PROVIDER_ERROR")
        """
        logger = cls.get_logger()
        message = f"{context}: {exc}" if context else str(exc)
        logger.log(log_level, message, exc_info=log_level >= logging.ERROR)
        return ServiceResult.from_exception(exc, error_code)

    @classmethod
    def validate_required(cls, **kwargs) -> ServiceResult | None:
        """
        Validate that required fields are provided.

        Returns a failure result if any required field is None or blank.
        Returns None if all fields are valid.

        Example:
            validation = cls.validate_required(title=title, description=description)
            if validation is not None:
                return validation
        """
        errors = {}
        for field_name, value in kwargs.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field_name] = ["This field is required."]

        if errors:
            return ServiceResult.failure(
                "Required fields missing",
                error_code="VALIDATION_ERROR",
                errors=errors,
            )
        return None
