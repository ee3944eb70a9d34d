"""
In-memory record store for one entity kind.

This is the only component allowed to mutate a kind's records. Every
mutating call runs validate -> mutate -> persist -> notify before it
returns. Reads never raise.
"""
import atexit
import copy
import dataclasses
import logging
import secrets
import string
import time
import weakref
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from clientdesk.config import DEFAULT_STORAGE_PREFIX
from clientdesk.exceptions import DuplicateIdError, NotFoundError, ValidationError
from clientdesk.storage.codecs import Codec
from clientdesk.storage.notifications import ChangeAction, Listener, ListenerSet
from clientdesk.storage.persistence import PersistenceArea, StorePersistence
from clientdesk.storage.snapshots import ImportReport, parse_store_snapshot
from clientdesk.storage.validation import Validator
from clientdesk.timeutils import format_timestamp, utcnow

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_id() -> str:
    """Millisecond timestamp plus nine random base36 characters."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{int(time.time() * 1000)}_{suffix}"


@dataclasses.dataclass(frozen=True)
class StoreOptions:
    """Per-store behaviour switches.

    Parameters
    ----------
    validation : bool
        Run the store's validator on create, update and bulk update.
    auto_save : bool
        Flush the records to the persistence area at interpreter exit.
    compression : bool
        Wrap the persisted payload with the store's codec.
    """

    validation: bool = True
    auto_save: bool = True
    compression: bool = False


def _flush_at_exit(store_ref: "weakref.ref[RecordStore]") -> None:
    store = store_ref()
    if store is None:
        return
    try:
        store.save()
    except Exception as e:
        logger.warning(f"[{store.name}] Exit flush failed: {e}")


class RecordStore:
    """Ordered records of one entity kind with validation, persistence and notification."""

    def __init__(
        self,
        name: str,
        *,
        area: PersistenceArea,
        validator: Optional[Validator] = None,
        options: Optional[StoreOptions] = None,
        codec: Optional[Codec] = None,
        prefix: str = DEFAULT_STORAGE_PREFIX,
        version: str = "2.0.0",
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = generate_id,
    ):
        """
        Create a store and hydrate it from its persisted entry.

        Args:
            name: Store name; persistence key suffix and registry key
            area: Persistence area holding the store's entry
            validator: Validation rule applied when validation is enabled
            options: Behaviour switches (defaults to StoreOptions())
            codec: Codec used when compression is enabled
            prefix: Persistence key prefix
            version: Version string stamped on exports
            clock: Source of the current time for timestamps
            id_factory: Generator for ids not supplied by the caller
        """
        self.name = name
        self.validator = validator
        self.options = options or StoreOptions()
        self.version = version
        self._clock = clock
        self._id_factory = id_factory
        self._persistence = StorePersistence(
            area,
            f"{prefix}{name}",
            codec=codec,
            compression=self.options.compression
        )
        self._listeners = ListenerSet(name)
        self._records: List[Dict[str, Any]] = self._persistence.load()
        logger.debug(f"[{name}] Loaded {len(self._records)} record(s)")

        if self.options.auto_save:
            atexit.register(_flush_at_exit, weakref.ref(self))

    @property
    def key(self) -> str:
        return self._persistence.key

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all(self) -> List[Dict[str, Any]]:
        """Return copies of all records in insertion order."""
        try:
            return copy.deepcopy(self._records)
        except Exception as e:
            logger.error(f"[{self.name}] Failed to read records: {e}", exc_info=True)
            return []

    def get_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        """Return a copy of the record with record_id, or None."""
        try:
            index = self._index_of(record_id)
            if index is None:
                return None
            return copy.deepcopy(self._records[index])
        except Exception as e:
            logger.error(f"[{self.name}] Failed to look up '{record_id}': {e}", exc_info=True)
            return None

    def get_where(self, predicate: Callable[[Dict[str, Any]], bool]) -> List[Dict[str, Any]]:
        """Return copies of the records satisfying predicate, order preserved."""
        try:
            return [copy.deepcopy(record) for record in self._records if predicate(record)]
        except Exception as e:
            logger.error(f"[{self.name}] Filtered read failed: {e}", exc_info=True)
            return []

    def count(self) -> int:
        return len(self._records)

    def exists(self, record_id: str) -> bool:
        return self._index_of(record_id) is not None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Validate, stamp and append a new record.

        Args:
            data: Record fields; an ``id`` is honoured if not already taken

        Returns:
            Copy of the stored record including id, createdAt and updatedAt

        Raises:
            ValidationError: If data is not a mapping or fails validation
            DuplicateIdError: If the supplied id is already in use
            PersistenceError: If the write fails (record is kept in memory)
        """
        self._check_mapping(data)
        self._validate(data)

        record_id = str(data["id"]) if data.get("id") else self._id_factory()
        if self.exists(record_id):
            raise DuplicateIdError(self.name, record_id)

        now = self._now()
        record = copy.deepcopy(dict(data))
        record.update({"id": record_id, "createdAt": now, "updatedAt": now})

        self._records.append(record)
        self._persistence.save(self._records)
        logger.debug(f"[{self.name}] Created {record_id}")
        self._notify(ChangeAction.CREATE, record)
        return copy.deepcopy(record)

    def update(self, record_id: str, partial: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Merge partial over an existing record.

        ``id`` and ``createdAt`` in partial are ignored. The merged record is
        validated before anything is changed.

        Raises:
            NotFoundError: If no record has record_id
            ValidationError: If the merged record fails validation
            PersistenceError: If the write fails (update is kept in memory)
        """
        index = self._index_of(record_id)
        if index is None:
            raise NotFoundError(self.name, record_id)
        self._check_mapping(partial)

        existing = self._records[index]
        updated = copy.deepcopy(existing)
        updated.update(copy.deepcopy(dict(partial)))
        updated["id"] = existing["id"]
        if "createdAt" in existing:
            updated["createdAt"] = existing["createdAt"]
        updated["updatedAt"] = self._now()

        self._validate(updated)

        self._records[index] = updated
        self._persistence.save(self._records)
        logger.debug(f"[{self.name}] Updated {record_id}")
        self._notify(ChangeAction.UPDATE, updated)
        return copy.deepcopy(updated)

    def delete(self, record_id: str) -> bool:
        """
        Remove the record with record_id.

        Returns:
            True if a record was removed, False if none matched
        """
        index = self._index_of(record_id)
        if index is None:
            return False

        removed = self._records.pop(index)
        self._persistence.save(self._records)
        logger.debug(f"[{self.name}] Deleted {record_id}")
        self._notify(ChangeAction.DELETE, removed)
        return True

    def bulk_update(self, records: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """
        Replace the whole record list with records.

        Each entry is validated (when enabled) and gets a fresh updatedAt;
        entries lacking an id or createdAt get one. Nothing changes if any
        entry is rejected.

        Raises:
            ValidationError: If an entry is not a mapping or fails validation
            DuplicateIdError: If two entries share an id
        """
        if not isinstance(records, (list, tuple)):
            raise ValidationError("Bulk update requires a list of records")

        now = self._now()
        replacement: List[Dict[str, Any]] = []
        seen = set()
        for item in records:
            self._check_mapping(item)
            self._validate(item)
            record = copy.deepcopy(dict(item))
            if not record.get("id"):
                record["id"] = self._id_factory()
            else:
                record["id"] = str(record["id"])
            if record["id"] in seen:
                raise DuplicateIdError(self.name, record["id"])
            seen.add(record["id"])
            record.setdefault("createdAt", now)
            record["updatedAt"] = now
            replacement.append(record)

        self._records = replacement
        self._persistence.save(self._records)
        logger.debug(f"[{self.name}] Replaced all records ({len(replacement)})")
        self._notify(ChangeAction.BULK_UPDATE, replacement)
        return copy.deepcopy(replacement)

    def clear(self) -> None:
        """Remove every record."""
        self._records = []
        self._persistence.save(self._records)
        logger.debug(f"[{self.name}] Cleared")
        self._notify(ChangeAction.CLEAR, [])

    def save(self) -> None:
        """Write the current records to the persistence area."""
        self._persistence.save(self._records)

    # ------------------------------------------------------------------
    # Notification
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Args:
            listener: Called as listener(action, data, store_name)

        Returns:
            A callable that unsubscribes the listener
        """
        return self._listeners.add(listener)

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export(self) -> Dict[str, Any]:
        """Return a snapshot of the store's records."""
        return {
            "storeName": self.name,
            "version": self.version,
            "exportedAt": self._now(),
            "data": copy.deepcopy(self._records),
        }

    def import_snapshot(self, snapshot: Any, merge: bool = False) -> ImportReport:
        """
        Load records from a snapshot produced by export().

        Args:
            snapshot: Mapping with a ``data`` list of records
            merge: Keep existing records and append only unseen ids; when
                False, replace everything with the snapshot's records

        Returns:
            ImportReport naming imported ids and dropped conflicting ids

        Raises:
            ImportFormatError: If the snapshot shape is invalid
        """
        parsed = parse_store_snapshot(snapshot)
        incoming = copy.deepcopy(parsed.data)
        report = ImportReport(store_name=self.name, merge=merge)

        if merge:
            existing_ids = {record.get("id") for record in self._records}
            additions = []
            for record in incoming:
                if record["id"] in existing_ids:
                    report.conflicts.append(record["id"])
                else:
                    additions.append(record)
            self._records.extend(additions)
            report.imported = [record["id"] for record in additions]
        else:
            self._records = incoming
            report.imported = [record["id"] for record in incoming]

        if report.conflicts:
            logger.info(f"[{self.name}] Merge import skipped {len(report.conflicts)} existing id(s)")

        self._persistence.save(self._records)
        self._notify(ChangeAction.IMPORT, self._records)
        return report

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _now(self) -> str:
        return format_timestamp(self._clock())

    def _index_of(self, record_id: str) -> Optional[int]:
        for index, record in enumerate(self._records):
            if record.get("id") == record_id:
                return index
        return None

    def _check_mapping(self, data: Any) -> None:
        if not isinstance(data, Mapping):
            raise ValidationError("Record data must be an object")

    def _validate(self, data: Mapping[str, Any]) -> None:
        if self.options.validation and self.validator is not None:
            self.validator.validate(data)

    def _notify(self, action: ChangeAction, data: Any) -> None:
        self._listeners.notify(action, copy.deepcopy(data), self.name)

    def __repr__(self) -> str:
        return f"RecordStore(name={self.name!r}, count={len(self._records)})"
