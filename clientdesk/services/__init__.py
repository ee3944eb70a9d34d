"""
Service layer for business logic.
Services contain pure business logic on top of the record stores, without CLI dependencies.
"""

from clientdesk.services.client_service import ClientService, CLIENT_VALIDATOR
from clientdesk.services.project_service import ProjectService, PROJECT_VALIDATOR

__all__ = ["ClientService", "ProjectService", "CLIENT_VALIDATOR", "PROJECT_VALIDATOR"]
