"""
Standard exceptions for the application.
"""
from clientdesk.exceptions.errors import (
    ServiceError,
    NotFoundError,
    ValidationError,
    DuplicateError,
    PersistenceError,
    ImportFormatError,
    DuplicateIdError,
    QuotaExceededError,
    ClientNotFoundError,
    ProjectNotFoundError,
    RelationConflictError,
)

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
