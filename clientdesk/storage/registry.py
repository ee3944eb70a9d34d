"""
Directory of named record stores with a merged change feed.

A registry is constructed explicitly and passed to whatever needs store
lookups; see clientdesk.app for the cached per-process instance.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from clientdesk.constants import DOCUMENT_STORE_NAMES, TERMINAL_PROJECT_STATUSES, StoreName
from clientdesk.storage.notifications import ChangeAction, Listener, ListenerSet
from clientdesk.storage.record_store import RecordStore
from clientdesk.storage.snapshots import (
    ImportReport,
    StoreSnapshot,
    parse_registry_snapshot,
    parse_store_snapshot,
)
from clientdesk.timeutils import format_timestamp, utcnow

logger = logging.getLogger(__name__)


class StoreRegistry:
    """Maps store names to RecordStore instances."""

    def __init__(self, version: str = "2.0.0", clock: Callable[[], datetime] = utcnow):
        self.version = version
        self._clock = clock
        self._stores: Dict[str, RecordStore] = {}
        self._forwarders: Dict[str, Callable[[], None]] = {}
        self._global_listeners = ListenerSet("registry")

    def register(self, name: str, store: RecordStore) -> RecordStore:
        """
        Bind name to store, replacing any previous binding.

        The store's notifications are re-emitted to global listeners with
        name as the store name.

        Returns:
            The registered store
        """
        previous_unsubscribe = self._forwarders.pop(name, None)
        if previous_unsubscribe is not None:
            previous_unsubscribe()
            logger.info(f"Replacing store registered as '{name}'")

        def forward(action: ChangeAction, data: Any, _store_name: str) -> None:
            self._global_listeners.notify(action, data, name)

        self._stores[name] = store
        self._forwarders[name] = store.subscribe(forward)
        return store

    def get(self, name: str) -> Optional[RecordStore]:
        """Return the store registered as name, or None if unavailable."""
        return self._stores.get(name)

    def names(self) -> List[str]:
        return list(self._stores)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for every registered store's notifications.

        Returns:
            A callable that unsubscribes the listener
        """
        return self._global_listeners.add(listener)

    def export_all(self) -> Dict[str, Any]:
        """Export every registered store, keyed by registry name."""
        return {
            "version": self.version,
            "exportedAt": format_timestamp(self._clock()),
            "storages": {name: store.export() for name, store in self._stores.items()},
        }

    def import_all(self, snapshot: Any, merge: bool = False) -> Dict[str, ImportReport]:
        """
        Import a registry-wide snapshot.

        Every registered store's entry is checked before any store is
        touched. Entries naming unregistered stores are ignored and stores
        without an entry are left alone.

        Args:
            snapshot: Mapping with a ``storages`` mapping of store snapshots
            merge: Passed to each store's import_snapshot

        Returns:
            Import report per imported store name

        Raises:
            ImportFormatError: If the top level or any registered store's
                entry is malformed; no store is modified in that case
        """
        parsed = parse_registry_snapshot(snapshot)
        pending: Dict[str, StoreSnapshot] = {}
        for name, store_snapshot in parsed.storages.items():
            if self.get(name) is None:
                logger.warning(f"Skipping import for unregistered store '{name}'")
                continue
            pending[name] = parse_store_snapshot(store_snapshot)

        reports: Dict[str, ImportReport] = {}
        for name, store_snapshot in pending.items():
            reports[name] = self.get(name).import_snapshot(store_snapshot, merge=merge)
        return reports

    def clear_all(self) -> None:
        """
        Clear every registered store.

        Each store is attempted even if an earlier one fails; the first
        failure is re-raised afterwards.
        """
        first_error: Optional[Exception] = None
        for name, store in self._stores.items():
            try:
                store.clear()
            except Exception as e:
                logger.error(f"Failed to clear store '{name}': {e}")
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    def relation_guard(self) -> "RelationGuard":
        return RelationGuard(self)


class RelationGuard:
    """
    Cross-store lookups used to refuse deletes that would orphan records.

    A store that is not registered counts as having no related records.
    """

    def __init__(self, registry: StoreRegistry):
        self.registry = registry

    def find_related(self, store_name: str, predicate: Callable[[Dict[str, Any]], bool]) -> List[Dict[str, Any]]:
        store = self.registry.get(store_name)
        if store is None:
            return []
        return store.get_where(predicate)

    def has_related(self, store_name: str, predicate: Callable[[Dict[str, Any]], bool]) -> bool:
        return len(self.find_related(store_name, predicate)) > 0

    def exists(self, store_name: str, record_id: str) -> Optional[bool]:
        """Whether record_id exists in store_name; None if the store is unavailable."""
        store = self.registry.get(store_name)
        if store is None:
            return None
        return store.exists(record_id)

    def active_projects_for_client(self, client_id: str) -> List[Dict[str, Any]]:
        return self.find_related(
            StoreName.PROJECTS,
            lambda project: project.get("clientId") == client_id
            and project.get("status") not in TERMINAL_PROJECT_STATUSES
        )

    def documents_for_project(self, project_id: str) -> Dict[str, List[Dict[str, Any]]]:
        """Quotes, contracts and transactions referencing project_id, by store name."""
        documents = {}
        for store_name in DOCUMENT_STORE_NAMES:
            related = self.find_related(store_name, lambda doc: doc.get("projectId") == project_id)
            if related:
                documents[store_name] = related
        return documents
