"""
Standard Exception Hierarchy for clientdesk

This module provides the exception hierarchy used by the record stores, the
store registry and the entity services. All exceptions inherit from
ServiceError so callers (the CLI, a UI layer) can catch one type and surface
``exc.message`` to the end user.
"""
from typing import Any


# ============================================================================
# Base Exception Class
# ============================================================================

class ServiceError(Exception):
    """Base exception for all clientdesk errors.

    Attributes:
        message: Human-readable error message
        context: Dictionary of additional context
        original_error: Optional original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        original_error: Exception | None = None
    ):
        """Initialize service error.

        Args:
            message: Human-readable error message
            context: Optional dictionary of additional context
            original_error: Optional original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.original_error = original_error

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Returns:
            Dictionary representation of the exception
        """
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
        }
        if self.context:
            result["context"] = self.context
        if self.original_error:
            result["original_error"] = {
                "type": type(self.original_error).__name__,
                "message": str(self.original_error)
            }
        return result


# ============================================================================
# Common Exception Types
# ============================================================================

class NotFoundError(ServiceError):
    """Raised when an operation targets a record that does not exist.

    Attributes:
        resource_type: Type of resource (e.g., "Client", "Project", or a store name)
        resource_id: ID of the resource that was not found
    """

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        *,
        message: str | None = None,
        context: dict[str, Any] | None = None
    ):
        if message is None:
            message = f"{resource_type} with ID '{resource_id}' not found"

        super().__init__(message, context=context)
        self.resource_type = resource_type
        self.resource_id = str(resource_id)
        self.context.setdefault("resource_type", resource_type)
        self.context.setdefault("resource_id", str(resource_id))


class ValidationError(ServiceError):
    """Raised when a record fails its store's validation rules.

    Attributes:
        field: Optional field name that failed validation
        value: Optional value that failed validation
    """

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        context: dict[str, Any] | None = None
    ):
        """Initialize validation error.

        Args:
            message: Error message describing the validation failure
            field: Optional field name that failed validation
            value: Optional value that failed validation
            context: Optional additional context
        """
        super().__init__(message, context=context)
        self.field = field
        self.value = value
        if field is not None:
            self.context.setdefault("field", field)
        if value is not None:
            self.context.setdefault("value", str(value))


class DuplicateError(ServiceError):
    """Raised when attempting to create a duplicate resource.

    Attributes:
        resource_type: Type of resource (e.g., "Client")
        field: Field that has duplicate value
        value: Duplicate value
    """

    def __init__(
        self,
        resource_type: str,
        field: str,
        value: str,
        *,
        message: str | None = None,
        context: dict[str, Any] | None = None
    ):
        if message is None:
            message = f"{resource_type} with {field} '{value}' already exists"

        super().__init__(message, context=context)
        self.resource_type = resource_type
        self.field = field
        self.value = value
        self.context.setdefault("resource_type", resource_type)
        self.context.setdefault("field", field)
        self.context.setdefault("value", value)


class PersistenceError(ServiceError):
    """Raised when reading or writing the persistence area fails.

    By the time a write failure is raised the in-memory mutation has
    already been applied, so the store may be ahead of what is persisted.

    Attributes:
        operation: Optional operation that failed ("read", "write", "remove")
        key: Optional persistence key involved
    """

    def __init__(
        self,
        message: str,
        *,
        original_error: Exception | None = None,
        operation: str | None = None,
        key: str | None = None,
        context: dict[str, Any] | None = None
    ):
        super().__init__(message, context=context, original_error=original_error)
        self.operation = operation
        self.key = key
        if operation is not None:
            self.context.setdefault("operation", operation)
        if key is not None:
            self.context.setdefault("key", key)


class ImportFormatError(ServiceError):
    """Raised when an import snapshot does not have the expected shape."""


# ============================================================================
# Service-Specific Exceptions
# ============================================================================

class DuplicateIdError(DuplicateError):
    """Raised when a caller-supplied record id is already in use."""

    def __init__(self, store_name: str, record_id: str, **kwargs):
        super().__init__(store_name, "id", str(record_id), **kwargs)
        self.record_id = record_id  # Convenience attribute


class QuotaExceededError(PersistenceError):
    """Raised when a persistence area runs out of space."""


class ClientNotFoundError(NotFoundError):
    """Raised when a client is not found."""

    def __init__(self, client_id: str, **kwargs):
        super().__init__("Client", client_id, **kwargs)
        self.client_id = client_id  # Convenience attribute


class ProjectNotFoundError(NotFoundError):
    """Raised when a project is not found."""

    def __init__(self, project_id: str, **kwargs):
        super().__init__("Project", project_id, **kwargs)
        self.project_id = project_id  # Convenience attribute


class RelationConflictError(ServiceError):
    """Raised when a record cannot be removed because other records depend on it.

    Attributes:
        resource_type: Type of resource being removed
        resource_id: ID of the resource being removed
    """

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: str,
        *,
        context: dict[str, Any] | None = None
    ):
        super().__init__(message, context=context)
        self.resource_type = resource_type
        self.resource_id = str(resource_id)
        self.context.setdefault("resource_type", resource_type)
        self.context.setdefault("resource_id", str(resource_id))


# ============================================================================
# Exports
# ============================================================================

__all__ = [
    "ServiceError",
    "NotFoundError",
    "ValidationError",
    "DuplicateError",
    "PersistenceError",
    "ImportFormatError",
    "DuplicateIdError",
    "QuotaExceededError",
    "ClientNotFoundError",
    "ProjectNotFoundError",
    "RelationConflictError",
]
