"""
Core Application - Infrastructure & Base Classes

Shared foundation for the marketplace apps (authentication, jobs, payments):

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - VersionedMixin: Optimistic-lock version counter

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError and its typed subclasses

Events (import from core.protocols / core.events):
    - EventPublisher: Event delivery interface
    - LoggingEventPublisher, publish_event: default delivery and safe helper

Views (import from core.views):
    - health_check, error_response

Note:
    Django models and model mixins are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
"""

# Services (no Django model dependencies)
from .services import BaseService, ServiceResult

# Exceptions (no Django dependencies)
from .exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
)

# Protocols (no Django dependencies)
from .protocols import EventPublisher

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "ConflictError",
    "ExternalServiceError",
    # Protocols
    "EventPublisher",
]
