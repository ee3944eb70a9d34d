"""
Export/import snapshot shapes.

Single store: ``{"storeName", "version", "exportedAt", "data": [...]}``.
Registry-wide: ``{"version", "exportedAt", "storages": {name: store snapshot}}``.
"""
import dataclasses
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from clientdesk.exceptions import ImportFormatError


class StoreSnapshot(BaseModel):
    """Snapshot of one store. ``records`` is accepted as an alias of ``data``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    store_name: Optional[str] = Field(default=None, alias="storeName")
    version: Optional[str] = None
    exported_at: Optional[str] = Field(default=None, alias="exportedAt")
    data: List[Dict[str, Any]] = Field(validation_alias=AliasChoices("data", "records"))

    @field_validator("data")
    @classmethod
    def _check_ids(cls, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        seen = set()
        for index, record in enumerate(records):
            record_id = record.get("id")
            if not isinstance(record_id, str) or not record_id:
                raise ValueError(f"record {index} has no id")
            if record_id in seen:
                raise ValueError(f"id '{record_id}' appears more than once")
            seen.add(record_id)
        return records


class RegistrySnapshot(BaseModel):
    """Snapshot of every registered store, keyed by store name."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: Optional[str] = None
    exported_at: Optional[str] = Field(default=None, alias="exportedAt")
    storages: Dict[str, Dict[str, Any]]


def _describe(error: PydanticValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "snapshot"
    return f"{location}: {first.get('msg', 'invalid')}"


def parse_store_snapshot(snapshot: Any) -> StoreSnapshot:
    """
    Validate a single-store snapshot.

    Raises:
        ImportFormatError: If the snapshot is not a mapping whose data is a
            list of records with unique non-empty string ids
    """
    if isinstance(snapshot, StoreSnapshot):
        return snapshot
    if not isinstance(snapshot, dict):
        raise ImportFormatError("Invalid data format: snapshot must be an object")
    try:
        return StoreSnapshot.model_validate(snapshot)
    except PydanticValidationError as e:
        raise ImportFormatError(f"Invalid data format: {_describe(e)}", original_error=e)


def parse_registry_snapshot(snapshot: Any) -> RegistrySnapshot:
    """
    Validate the top level of a registry-wide snapshot.

    Raises:
        ImportFormatError: If there is no ``storages`` mapping of objects
    """
    if not isinstance(snapshot, dict):
        raise ImportFormatError("Invalid data format: snapshot must be an object")
    try:
        return RegistrySnapshot.model_validate(snapshot)
    except PydanticValidationError as e:
        raise ImportFormatError(f"Invalid data format: {_describe(e)}", original_error=e)


@dataclasses.dataclass
class ImportReport:
    """Outcome of an import into one store.

    conflicts lists incoming ids that were dropped during a merge import
    because a record with the same id already existed.
    """

    store_name: str
    merge: bool
    imported: List[str] = dataclasses.field(default_factory=list)
    conflicts: List[str] = dataclasses.field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return len(self.imported)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "store": self.store_name,
            "merge": self.merge,
            "imported_count": len(self.imported),
            "imported": list(self.imported),
            "conflicts": list(self.conflicts),
        }
