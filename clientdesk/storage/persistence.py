"""
Keyed persistence areas and the adapter that loads and saves a store's
full record list.

A persistence area is a flat string-to-string mapping, the local analogue
of browser local storage. Each record store owns exactly one key in it.
"""
import json
import logging
import os
import sqlite3
import tempfile
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from clientdesk.exceptions import PersistenceError, QuotaExceededError
from clientdesk.storage.codecs import Codec, JsonCodec

logger = logging.getLogger(__name__)

COMPRESSED_MARKER = "_compressed"


def _size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class PersistenceArea(ABC):
    """Synchronous keyed string storage."""

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove key if present."""

    @abstractmethod
    def keys(self) -> List[str]:
        """List stored keys."""


class MemoryArea(PersistenceArea):
    """
    In-process area.

    With quota_bytes set, a write that would push the total size of all
    keys and values past the quota raises QuotaExceededError and leaves the
    previous value in place.
    """

    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes
        self._entries: Dict[str, str] = {}

    def read(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def write(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(_size(k, v) for k, v in self._entries.items() if k != key)
            if used + _size(key, value) > self.quota_bytes:
                raise QuotaExceededError(
                    f"Quota of {self.quota_bytes} bytes exceeded writing '{key}'",
                    operation="write",
                    key=key
                )
        self._entries[key] = value

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._entries)


def _key_to_filename(key: str) -> str:
    """Map a persistence key to a safe file name."""
    safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
    if not safe or safe.startswith("."):
        safe = f"_{safe}"
    return f"{safe}.json"


class DirectoryArea(PersistenceArea):
    """One UTF-8 file per key under a directory; writes replace atomically."""

    def __init__(self, directory: str):
        self.directory = os.path.abspath(directory)
        os.makedirs(self.directory, exist_ok=True)

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, _key_to_filename(key))

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def write(self, key: str, value: str) -> None:
        path = self._path(key)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=".tmp_", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def remove(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.unlink(path)

    def keys(self) -> List[str]:
        # Derived from file names; unusual keys come back sanitised.
        return sorted(
            name[:-len(".json")]
            for name in os.listdir(self.directory)
            if name.endswith(".json") and not name.startswith(".tmp_")
        )


class SQLiteArea(PersistenceArea):
    """Entries kept in a single sqlite table."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        directory = os.path.dirname(os.path.abspath(db_path))
        if directory:
            os.makedirs(directory, exist_ok=True)
        conn = self._get_connection()
        try:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS entries (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
            )
            conn.commit()
        finally:
            conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def read(self, key: str) -> Optional[str]:
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT value FROM entries WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None
        finally:
            conn.close()

    def write(self, key: str, value: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                "INSERT INTO entries (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value)
            )
            conn.commit()
        finally:
            conn.close()

    def remove(self, key: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute("DELETE FROM entries WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()

    def keys(self) -> List[str]:
        conn = self._get_connection()
        try:
            return [row[0] for row in conn.execute("SELECT key FROM entries ORDER BY key")]
        finally:
            conn.close()


def build_area(settings: Any) -> PersistenceArea:
    """
    Create the persistence area selected by settings.

    Args:
        settings: Settings instance (storage_backend, data_dir)

    Returns:
        A PersistenceArea
    """
    backend = settings.storage_backend
    if backend == "memory":
        return MemoryArea()
    if backend == "sqlite":
        return SQLiteArea(os.path.join(settings.data_dir, "clientdesk.db"))
    return DirectoryArea(settings.data_dir)


class StorePersistence:
    """
    Loads and saves one store's record list under a single key.

    The value is a JSON array of records, or, when compression is on,
    ``{"_compressed": true, "data": <codec string>}``.
    """

    def __init__(
        self,
        area: PersistenceArea,
        key: str,
        codec: Optional[Codec] = None,
        compression: bool = False
    ):
        self.area = area
        self.key = key
        self.codec = codec or JsonCodec()
        self.compression = compression

    def serialize(self, records: List[Dict[str, Any]]) -> str:
        if self.compression:
            payload: Any = {COMPRESSED_MARKER: True, "data": self.codec.encode(records)}
        else:
            payload = records
        return json.dumps(payload, ensure_ascii=False)

    def deserialize(self, stored: str) -> List[Dict[str, Any]]:
        parsed = json.loads(stored)
        if isinstance(parsed, dict) and parsed.get(COMPRESSED_MARKER):
            records = self.codec.decode(parsed["data"])
        else:
            records = parsed
        if not isinstance(records, list):
            raise ValueError(f"Stored payload is {type(records).__name__}, expected list")
        if not all(isinstance(record, dict) for record in records):
            raise ValueError("Stored payload contains non-object records")
        return records

    def load(self) -> List[Dict[str, Any]]:
        """
        Load the persisted records.

        Returns:
            The stored records, or an empty list when the key is absent or
            its value cannot be read or decoded (logged, not raised)
        """
        try:
            stored = self.area.read(self.key)
        except Exception as e:
            logger.error(f"Failed to read persisted records for '{self.key}': {e}", exc_info=True)
            return []

        if not stored:
            return []

        try:
            return self.deserialize(stored)
        except Exception as e:
            logger.error(f"Corrupt persisted records for '{self.key}', starting empty: {e}")
            return []

    def save(self, records: List[Dict[str, Any]]) -> None:
        """
        Write the full record list.

        Raises:
            PersistenceError: If serialization or the underlying write fails
        """
        try:
            value = self.serialize(records)
            self.area.write(self.key, value)
        except PersistenceError:
            raise
        except Exception as e:
            logger.error(f"Failed to persist records for '{self.key}': {e}", exc_info=True)
            raise PersistenceError(
                f"Failed to save '{self.key}': {e}",
                original_error=e,
                operation="write",
                key=self.key
            )
