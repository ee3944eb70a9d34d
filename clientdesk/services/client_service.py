"""
Client service - business logic for client operations.
This layer contains no CLI or presentation dependencies.
Handles email uniqueness, delete guards, search and client statistics.
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List, Callable

from clientdesk.constants import ClientStatus, ClientType, ProjectStatus, StoreName
from clientdesk.exceptions import (
    ClientNotFoundError,
    DuplicateError,
    RelationConflictError,
    ServiceError,
)
from clientdesk.storage import (
    AllOf,
    ChoiceRule,
    PatternRule,
    RecordStore,
    RequiredFields,
    StoreRegistry,
)
from clientdesk.timeutils import format_timestamp, parse_timestamp, utcnow

logger = logging.getLogger(__name__)

CLIENT_REQUIRED_FIELDS = ("companyName", "contactPerson", "email", "phone")

EMAIL_PATTERN = r"[^\s@]+@[^\s@]+\.[^\s@]+"
PHONE_PATTERN = r"[\d\-+().\s]+"

CLIENT_VALIDATOR = AllOf(
    RequiredFields(CLIENT_REQUIRED_FIELDS),
    PatternRule("email", EMAIL_PATTERN, "Invalid email address"),
    PatternRule("phone", PHONE_PATTERN, "Invalid phone number"),
    ChoiceRule("clientType", ClientType),
)


class ClientService:
    """Service for client business logic."""

    def __init__(self, registry: StoreRegistry, clock: Callable[[], datetime] = utcnow):
        """
        Initialize client service.

        Args:
            registry: Registry holding the clients store and related stores
            clock: Source of the current time

        Raises:
            ServiceError: If no clients store is registered
        """
        storage = registry.get(StoreName.CLIENTS)
        if storage is None:
            raise ServiceError("Client storage is not available")
        self.registry = registry
        self.storage: RecordStore = storage
        self.guard = registry.relation_guard()
        self._clock = clock

    def _now(self) -> str:
        return format_timestamp(self._clock())

    def create_client(self, client_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a new client.

        Args:
            client_data: Client fields (companyName, contactPerson, email, phone, ...)

        Returns:
            Created client record

        Raises:
            DuplicateError: If a client with the same email already exists
            ValidationError: If required fields are missing or malformed
        """
        email = client_data.get("email")
        if isinstance(email, str) and self.get_by_email(email):
            raise DuplicateError("Client", "email", email)

        new_client = {
            **client_data,
            "clientType": client_data.get("clientType") or ClientType.CORPORATE.value,
            "status": ClientStatus.ACTIVE.value,
            "totalProjects": 0,
            "totalRevenue": 0,
            "lastContactDate": self._now(),
        }
        created = self.storage.create(new_client)
        logger.info(f"Created client {created['id']}: {created.get('companyName')}")
        return created

    def update_client(self, client_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update a client and stamp lastModifiedDate.

        Raises:
            ClientNotFoundError: If the client does not exist
            DuplicateError: If the new email belongs to another client
        """
        if not self.storage.exists(client_id):
            raise ClientNotFoundError(client_id)

        email = updates.get("email")
        if isinstance(email, str):
            owner = self.get_by_email(email)
            if owner and owner["id"] != client_id:
                raise DuplicateError("Client", "email", email)

        return self.storage.update(client_id, {**updates, "lastModifiedDate": self._now()})

    def delete_client(self, client_id: str) -> bool:
        """
        Delete a client that has no active projects.

        Returns:
            True if the client was deleted, False if it did not exist

        Raises:
            RelationConflictError: If the client still has projects that are
                neither completed nor cancelled
        """
        active = self.guard.active_projects_for_client(client_id)
        if active:
            raise RelationConflictError(
                "Client",
                client_id,
                "Client has projects in progress and cannot be deleted",
                context={"project_ids": [project["id"] for project in active]}
            )
        deleted = self.storage.delete(client_id)
        if deleted:
            logger.info(f"Deleted client {client_id}")
        return deleted

    def get_client(self, client_id: str) -> Optional[Dict[str, Any]]:
        return self.storage.get_by_id(client_id)

    def list_clients(self) -> List[Dict[str, Any]]:
        return self.storage.get_all()

    def search_by_company(self, company_name: str) -> List[Dict[str, Any]]:
        query = company_name.lower()
        return self.storage.get_where(lambda c: query in str(c.get("companyName", "")).lower())

    def search_by_contact(self, contact_person: str) -> List[Dict[str, Any]]:
        query = contact_person.lower()
        return self.storage.get_where(lambda c: query in str(c.get("contactPerson", "")).lower())

    def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Find a client by email, ignoring case."""
        target = email.strip().lower()
        matches = self.storage.get_where(lambda c: str(c.get("email", "")).strip().lower() == target)
        return matches[0] if matches else None

    def get_by_type(self, client_type: str) -> List[Dict[str, Any]]:
        return self.storage.get_where(lambda c: c.get("clientType") == client_type)

    def get_recent(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recently created clients first."""
        clients = self.storage.get_all()
        clients.sort(key=lambda c: c.get("createdAt") or "", reverse=True)
        return clients[:limit]

    def search_clients(
        self,
        query: Optional[str] = None,
        client_type: Optional[str] = None,
        status: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Search clients.

        Args:
            query: Case-insensitive text matched against company, contact and email
            client_type: Exact clientType
            status: Exact status
            date_from: Earliest createdAt (inclusive)
            date_to: Latest createdAt (inclusive)

        Returns:
            Matching clients in insertion order
        """
        results = self.storage.get_all()

        if query:
            lower_query = query.lower()
            results = [
                c for c in results
                if lower_query in str(c.get("companyName", "")).lower()
                or lower_query in str(c.get("contactPerson", "")).lower()
                or lower_query in str(c.get("email", "")).lower()
            ]

        if client_type:
            results = [c for c in results if c.get("clientType") == client_type]

        if status:
            results = [c for c in results if c.get("status") == status]

        start = parse_timestamp(date_from)
        end = parse_timestamp(date_to)
        if start or end:
            filtered = []
            for client in results:
                created = parse_timestamp(client.get("createdAt"))
                if created is None:
                    continue
                if start and created < start:
                    continue
                if end and created > end:
                    continue
                filtered.append(client)
            results = filtered

        return results

    def get_client_stats(self, client_id: str) -> Optional[Dict[str, Any]]:
        """
        Statistics for one client across projects, quotes and contracts.

        Returns:
            Statistics dictionary, or None if the client does not exist
        """
        if not self.storage.exists(client_id):
            return None

        def belongs(record: Dict[str, Any]) -> bool:
            return record.get("clientId") == client_id

        projects = self.guard.find_related(StoreName.PROJECTS, belongs)
        quotes = self.guard.find_related(StoreName.QUOTES, belongs)
        contracts = self.guard.find_related(StoreName.CONTRACTS, belongs)

        accepted_quotes = [q for q in quotes if q.get("status") == "accepted"]
        total_revenue = sum(c.get("contractAmount") or 0 for c in contracts)
        project_dates = [d for d in (parse_timestamp(p.get("createdAt")) for p in projects) if d]

        return {
            "totalProjects": len(projects),
            "activeProjects": len([
                p for p in projects
                if p.get("status") in (ProjectStatus.IN_PROGRESS.value, ProjectStatus.CONTRACTED.value)
            ]),
            "completedProjects": len([p for p in projects if p.get("status") == ProjectStatus.COMPLETED.value]),
            "totalQuotes": len(quotes),
            "acceptedQuotes": len(accepted_quotes),
            "totalRevenue": total_revenue,
            "averageProjectValue": total_revenue / len(contracts) if contracts else 0,
            "lastProjectDate": format_timestamp(max(project_dates)) if project_dates else None,
            "conversionRate": len(accepted_quotes) / len(quotes) * 100 if quotes else 0,
        }

    def get_overall_stats(self) -> Dict[str, Any]:
        """Totals across all clients."""
        clients = self.storage.get_all()
        active = [c for c in clients if c.get("status") == ClientStatus.ACTIVE.value]
        now = self._clock()

        def created_this_month(client: Dict[str, Any]) -> bool:
            created = parse_timestamp(client.get("createdAt"))
            return created is not None and created.year == now.year and created.month == now.month

        return {
            "totalClients": len(clients),
            "activeClients": len(active),
            "corporateClients": len([c for c in clients if c.get("clientType") == ClientType.CORPORATE.value]),
            "individualClients": len([c for c in clients if c.get("clientType") == ClientType.INDIVIDUAL.value]),
            "newClientsThisMonth": len([c for c in clients if created_this_month(c)]),
            "averageProjectsPerClient": (
                sum(c.get("totalProjects") or 0 for c in active) / len(active) if active else 0
            ),
        }
