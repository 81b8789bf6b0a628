"""
Local Durable Cache

The on-device fallback for every synchronized collection. It holds the
last known-good snapshot of each collection so the app has something to
show before (or without) a remote round-trip.

DESIGN DECISION: The cache is NOT authoritative. It is written only by
the synchronized collection that owns the key, and only with data the
remote store delivered. Reading never fails (malformed data reads as an
empty list) and writing never blocks the live path (failures are logged
and swallowed).

Key layout, with the default "household" prefix:
    household-expenses-v2        snapshot of a collection
    household-schema-version     schema version of the snapshots
    household-migrated-v1        "true" once legacy data was replayed
    household-expenses           legacy pre-sync expenses (deprecated)
    household-goals              legacy pre-sync goals (deprecated)
"""

import json
import os
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from household.audit import AuditLogger
from household.models.audit import AuditEventBuilder
from household.models.records import DATA_SCHEMA_VERSION


# Legacy kinds written by the pre-sync version of the app
LEGACY_KINDS = ("expenses", "goals")


class LocalCacheWriteFailure(Exception):
    """A snapshot could not be persisted. Logged, never raised to callers."""
    pass


class LocalStore(ABC):
    """
    Synchronous string key-value persistence.

    The local counterpart of browser localStorage: tiny, synchronous,
    survives restarts.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass

    def contains(self, key: str) -> bool:
        return self.get(key) is not None


class MemoryLocalStore(LocalStore):
    """LocalStore for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileLocalStore(LocalStore):
    """
    LocalStore keeping one file per key in a directory.

    Writes go to a temporary file that is then renamed over the target,
    so a crash mid-write leaves the previous snapshot intact.
    """

    _SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")

    def __init__(self, directory: Path):
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self._directory / f"{self._SAFE_KEY.sub('_', key)}.json"

    def get(self, key: str) -> Optional[str]:
        target = self._path(key)
        if not target.exists():
            return None
        try:
            with target.open('r', encoding='utf-8') as handle:
                return handle.read()
        except OSError:
            return None

    def set(self, key: str, value: str) -> None:
        target = self._path(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        temporary = target.with_suffix(".tmp")
        with temporary.open('w', encoding='utf-8') as handle:
            handle.write(value)
        os.replace(temporary, target)

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass


def _load_array(store: LocalStore, key: str) -> list[Any]:
    raw = store.get(key)
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return []
    return data if isinstance(data, list) else []


class LocalCollectionCache:
    """
    Last known-good snapshot per collection.

    Only the SyncedCollection owning a collection writes its key.
    """

    def __init__(
        self,
        store: LocalStore,
        key_prefix: str = "household",
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._prefix = key_prefix
        self._audit_logger = audit_logger

    def key_for(self, collection: str) -> str:
        return f"{self._prefix}-{collection}-v2"

    @property
    def schema_version_key(self) -> str:
        return f"{self._prefix}-schema-version"

    def load(self, collection: str) -> list[dict[str, Any]]:
        """
        Read a collection snapshot.

        Returns [] when nothing is stored or the stored data is malformed.
        Entries that are not JSON objects are skipped.
        """
        return [
            item for item in _load_array(self._store, self.key_for(collection))
            if isinstance(item, dict)
        ]

    def save(self, collection: str, records: list[dict[str, Any]]) -> bool:
        """
        Persist a collection snapshot with the schema version marker.

        Returns False (and logs a LocalCacheWriteFailure) when the write
        fails. Never raises.
        """
        try:
            payload = json.dumps(records, default=str)
            self._store.set(self.key_for(collection), payload)
            self._store.set(self.schema_version_key, DATA_SCHEMA_VERSION)
            return True
        except Exception as e:
            failure = LocalCacheWriteFailure(str(e))
            if self._audit_logger:
                self._audit_logger.log(
                    AuditEventBuilder.cache_write_failed(collection, failure)
                )
            return False

    def schema_version(self) -> Optional[str]:
        return self._store.get(self.schema_version_key)


class MigrationState:
    """
    The persisted "legacy migration complete" marker and the deprecated
    pre-sync keys it guards.

    The marker is checked once at startup and never reset: once true it
    stays true.
    """

    def __init__(self, store: LocalStore, key_prefix: str = "household"):
        self._store = store
        self._prefix = key_prefix

    @property
    def marker_key(self) -> str:
        return f"{self._prefix}-migrated-v1"

    def legacy_key(self, kind: str) -> str:
        return f"{self._prefix}-{kind}"

    def is_complete(self) -> bool:
        return self._store.get(self.marker_key) == "true"

    def mark_complete(self) -> None:
        self._store.set(self.marker_key, "true")

    def has_legacy_data(self) -> bool:
        return any(self._store.get(self.legacy_key(kind)) for kind in LEGACY_KINDS)

    def load_legacy(self, kind: str) -> list[Any]:
        """Legacy records of a kind; malformed data reads as []."""
        return _load_array(self._store, self.legacy_key(kind))

    def clear_legacy(self) -> None:
        for kind in LEGACY_KINDS:
            self._store.remove(self.legacy_key(kind))
