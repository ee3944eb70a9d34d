"""
Project service - business logic for project operations.
This layer contains no CLI or presentation dependencies.
Handles project numbering, status transitions, progress tracking, delete
guards and the derived statistics (completion rate, workload, overdue).
"""
import logging
import math
from datetime import date, datetime
from typing import Optional, Dict, Any, List, Callable

from clientdesk.constants import (
    ACTIVE_PROJECT_STATUSES,
    PROJECT_TYPES,
    UNASSIGNED,
    Priority,
    ProjectStatus,
    StoreName,
)
from clientdesk.exceptions import (
    ClientNotFoundError,
    ProjectNotFoundError,
    RelationConflictError,
    ServiceError,
    ValidationError,
)
from clientdesk.storage import (
    AllOf,
    ChoiceRule,
    DateOrderRule,
    RangeRule,
    RecordStore,
    RequiredFields,
    StoreRegistry,
)
from clientdesk.timeutils import format_timestamp, parse_timestamp, utcnow

logger = logging.getLogger(__name__)

PROJECT_REQUIRED_FIELDS = ("clientId", "projectTitle", "projectDescription", "projectType")

PROJECT_VALIDATOR = AllOf(
    RequiredFields(PROJECT_REQUIRED_FIELDS),
    DateOrderRule("startDate", "endDate", "End date must be after the start date"),
    ChoiceRule("status", ProjectStatus),
    ChoiceRule("priority", Priority),
    RangeRule("progress", 0, 100, "Progress must be between 0 and 100"),
)


class ProjectService:
    """Service for project business logic."""

    def __init__(self, registry: StoreRegistry, clock: Callable[[], datetime] = utcnow):
        """
        Initialize project service.

        Args:
            registry: Registry holding the projects store and related stores
            clock: Source of the current time

        Raises:
            ServiceError: If no projects store is registered
        """
        storage = registry.get(StoreName.PROJECTS)
        if storage is None:
            raise ServiceError("Project storage is not available")
        self.registry = registry
        self.storage: RecordStore = storage
        self.guard = registry.relation_guard()
        self._clock = clock

    def _now(self) -> str:
        return format_timestamp(self._clock())

    def generate_project_number(self, day: Optional[date] = None) -> str:
        """
        Next project number for a day, formatted YYMMDD_NN.

        Args:
            day: Day to number for (defaults to today)

        Returns:
            Project number with a two-digit per-day sequence
        """
        day = day or self._clock().date()
        prefix = day.strftime("%y%m%d")
        existing = self.storage.get_where(
            lambda p: str(p.get("projectNumber") or "").startswith(prefix)
        )
        return f"{prefix}_{len(existing) + 1:02d}"

    def create_project(self, project_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a new project.

        Args:
            project_data: Project fields (clientId, projectTitle, projectDescription, projectType, ...)

        Returns:
            Created project record

        Raises:
            ClientNotFoundError: If the clients store is available and has no such client
            ValidationError: If required fields are missing or invalid
        """
        client_id = project_data.get("clientId")
        if client_id and self.guard.exists(StoreName.CLIENTS, client_id) is False:
            raise ClientNotFoundError(client_id)

        new_project = {
            **project_data,
            "projectNumber": self.generate_project_number(),
            "status": project_data.get("status") or ProjectStatus.RECEIVED.value,
            "priority": project_data.get("priority") or Priority.MEDIUM.value,
            "progress": 0,
        }
        created = self.storage.create(new_project)
        logger.info(f"Created project {created['id']} ({created['projectNumber']})")
        return created

    def update_project(self, project_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update a project, applying status transition side effects.

        Raises:
            ProjectNotFoundError: If the project does not exist
            ValidationError: If the result fails validation
        """
        project = self.storage.get_by_id(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)

        updates = dict(updates)
        new_status = updates.get("status")
        if new_status and new_status != project.get("status"):
            updates = self._handle_status_change(project, updates)

        return self.storage.update(project_id, updates)

    def update_progress(self, project_id: str, progress: float) -> Dict[str, Any]:
        """
        Set progress; reaching 100 completes the project.

        Raises:
            ValidationError: If progress is outside 0..100
            ProjectNotFoundError: If the project does not exist
        """
        if isinstance(progress, bool) or not isinstance(progress, (int, float)) or not 0 <= progress <= 100:
            raise ValidationError("Progress must be between 0 and 100", field="progress", value=progress)

        updates: Dict[str, Any] = {"progress": progress}
        if progress == 100:
            updates["status"] = ProjectStatus.COMPLETED.value
            updates["completedDate"] = self._now()
        return self.update_project(project_id, updates)

    def delete_project(self, project_id: str) -> bool:
        """
        Delete a project that no document references.

        Returns:
            True if the project was deleted, False if it did not exist

        Raises:
            RelationConflictError: If quotes, contracts or transactions reference it
        """
        documents = self.guard.documents_for_project(project_id)
        if documents:
            raise RelationConflictError(
                "Project",
                project_id,
                "Project has related documents and cannot be deleted",
                context={"stores": sorted(documents)}
            )
        deleted = self.storage.delete(project_id)
        if deleted:
            logger.info(f"Deleted project {project_id}")
        return deleted

    def get_project(self, project_id: str) -> Optional[Dict[str, Any]]:
        return self.storage.get_by_id(project_id)

    def list_projects(self) -> List[Dict[str, Any]]:
        return self.storage.get_all()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_client(self, client_id: str) -> List[Dict[str, Any]]:
        return self.storage.get_where(lambda p: p.get("clientId") == client_id)

    def get_by_status(self, status: str) -> List[Dict[str, Any]]:
        return self.storage.get_where(lambda p: p.get("status") == status)

    def get_by_assignee(self, assignee: str) -> List[Dict[str, Any]]:
        return self.storage.get_where(lambda p: p.get("assignee") == assignee)

    def get_by_date_range(self, start: Any, end: Any) -> List[Dict[str, Any]]:
        """Projects whose startDate lies within [start, end]."""
        range_start = parse_timestamp(start)
        range_end = parse_timestamp(end)
        if range_start is None or range_end is None:
            raise ValidationError("Date range requires a valid start and end")

        def in_range(project: Dict[str, Any]) -> bool:
            project_start = parse_timestamp(project.get("startDate"))
            return project_start is not None and range_start <= project_start <= range_end

        return self.storage.get_where(in_range)

    def get_active_projects(self) -> List[Dict[str, Any]]:
        return self.storage.get_where(lambda p: p.get("status") in ACTIVE_PROJECT_STATUSES)

    def get_completed_projects(self) -> List[Dict[str, Any]]:
        return self.storage.get_where(lambda p: p.get("status") == ProjectStatus.COMPLETED.value)

    def get_overdue_projects(self) -> List[Dict[str, Any]]:
        """Projects past their endDate that are not completed."""
        now = self._clock()
        return self.storage.get_where(
            lambda p: p.get("status") != ProjectStatus.COMPLETED.value and self._is_past(p.get("endDate"), now)
        )

    def search_projects(
        self,
        query: Optional[str] = None,
        status: Optional[str] = None,
        client_id: Optional[str] = None,
        assignee: Optional[str] = None,
        project_type: Optional[str] = None,
        priority: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Search projects.

        Args:
            query: Case-insensitive text matched against title, description and number
            status: Exact status
            client_id: Exact clientId
            assignee: Exact assignee
            project_type: Exact projectType
            priority: Exact priority
            date_from: Earliest startDate (or createdAt when unset), inclusive
            date_to: Latest startDate (or createdAt when unset), inclusive

        Returns:
            Matching projects in insertion order
        """
        results = self.storage.get_all()

        if query:
            lower_query = query.lower()
            results = [
                p for p in results
                if lower_query in str(p.get("projectTitle", "")).lower()
                or lower_query in str(p.get("projectDescription", "")).lower()
                or lower_query in str(p.get("projectNumber", "")).lower()
            ]

        exact_filters = {
            "status": status,
            "clientId": client_id,
            "assignee": assignee,
            "projectType": project_type,
            "priority": priority,
        }
        for field, value in exact_filters.items():
            if value:
                results = [p for p in results if p.get(field) == value]

        start = parse_timestamp(date_from)
        end = parse_timestamp(date_to)
        if start or end:
            filtered = []
            for project in results:
                project_date = parse_timestamp(project.get("startDate") or project.get("createdAt"))
                if project_date is None:
                    continue
                if start and project_date < start:
                    continue
                if end and project_date > end:
                    continue
                filtered.append(project)
            results = filtered

        return results

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_project_stats(self) -> Dict[str, Any]:
        """Totals, per-status/type/month breakdowns, completion time and rate."""
        projects = self.storage.get_all()
        completed = self.get_completed_projects()

        status_stats = {
            status.value: len([p for p in projects if p.get("status") == status.value])
            for status in ProjectStatus
        }
        type_stats = {
            project_type: len([p for p in projects if p.get("projectType") == project_type])
            for project_type in PROJECT_TYPES
        }

        return {
            "totalProjects": len(projects),
            "activeProjects": len(self.get_active_projects()),
            "completedProjects": len(completed),
            "overdueProjects": len(self.get_overdue_projects()),
            "statusStats": status_stats,
            "typeStats": type_stats,
            "monthlyStats": self._get_monthly_stats(projects),
            "averageCompletionTime": self._get_average_completion_time(completed),
            "completionRate": len(completed) / len(projects) * 100 if projects else 0,
        }

    def get_workload_by_assignee(self) -> Dict[str, Dict[str, int]]:
        """Active project counts per assignee, with urgent and overdue counts."""
        now = self._clock()
        workload: Dict[str, Dict[str, int]] = {}

        for project in self.get_active_projects():
            assignee = project.get("assignee") or UNASSIGNED
            entry = workload.setdefault(assignee, {
                "totalProjects": 0,
                "urgentProjects": 0,
                "overdueProjects": 0,
            })
            entry["totalProjects"] += 1
            if project.get("priority") == Priority.URGENT.value:
                entry["urgentProjects"] += 1
            if self._is_past(project.get("endDate"), now):
                entry["overdueProjects"] += 1

        return workload

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _handle_status_change(self, project: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
        """Stamp the dates and fields that go with entering a new status."""
        new_status = updates["status"]
        old_status = project.get("status")
        now = self._now()

        if new_status == ProjectStatus.QUOTED.value:
            updates["quotedDate"] = now
        elif new_status == ProjectStatus.CONTRACTED.value:
            updates["contractedDate"] = now
            if not project.get("startDate"):
                updates["startDate"] = now
        elif new_status == ProjectStatus.IN_PROGRESS.value:
            if not project.get("startDate"):
                updates["startDate"] = now
        elif new_status == ProjectStatus.COMPLETED.value:
            updates["completedDate"] = now
            updates["progress"] = 100
        elif new_status == ProjectStatus.CANCELLED.value:
            updates["cancelledDate"] = now

        logger.info(f"Project {project['id']} status {old_status} -> {new_status}")
        return updates

    @staticmethod
    def _is_past(value: Any, now: datetime) -> bool:
        moment = parse_timestamp(value)
        return moment is not None and moment < now

    @staticmethod
    def _get_monthly_stats(projects: List[Dict[str, Any]]) -> Dict[str, Dict[str, int]]:
        monthly: Dict[str, Dict[str, int]] = {}
        for project in projects:
            created = parse_timestamp(project.get("createdAt"))
            if created is None:
                continue
            entry = monthly.setdefault(f"{created.year}-{created.month:02d}", {"created": 0, "completed": 0})
            entry["created"] += 1
            if project.get("status") == ProjectStatus.COMPLETED.value:
                entry["completed"] += 1
        return monthly

    @staticmethod
    def _get_average_completion_time(completed_projects: List[Dict[str, Any]]) -> int:
        """Average whole days from startDate to completedDate, rounded half up."""
        durations = []
        for project in completed_projects:
            start = parse_timestamp(project.get("startDate"))
            end = parse_timestamp(project.get("completedDate"))
            if start is None or end is None:
                continue
            durations.append(math.ceil((end - start).total_seconds() / 86400))
        if not durations:
            return 0
        return math.floor(sum(durations) / len(durations) + 0.5)
