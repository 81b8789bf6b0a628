"""
Tests for the local durable cache and the migration marker.
"""

import json

from household.audit import AuditLogger
from household.models.audit import AuditEventType
from household.models.records import DATA_SCHEMA_VERSION
from household.services.cache import (
    JsonFileLocalStore,
    LocalCollectionCache,
    LocalStore,
    MemoryLocalStore,
    MigrationState,
)


class BrokenLocalStore(MemoryLocalStore):
    """A store whose writes always fail, like a full disk."""

    def set(self, key: str, value: str) -> None:
        raise OSError("quota exceeded")


class TestLocalCollectionCache:
    """Tests for per-collection snapshots."""

    def test_save_then_load(self):
        cache = LocalCollectionCache(MemoryLocalStore())
        records = [{"id": "a", "amount": 1.5}, {"id": "b", "amount": 2}]
        assert cache.save("expenses", records) is True
        assert cache.load("expenses") == records

    def test_keys_are_namespaced_and_versioned(self):
        store = MemoryLocalStore()
        cache = LocalCollectionCache(store, key_prefix="casa")
        cache.save("goals", [])
        assert "casa-goals-v2" in store.keys()
        assert cache.schema_version() == DATA_SCHEMA_VERSION

    def test_missing_key_reads_empty(self):
        cache = LocalCollectionCache(MemoryLocalStore())
        assert cache.load("budgets") == []

    def test_malformed_json_reads_empty(self):
        store = MemoryLocalStore({"household-expenses-v2": "{not json"})
        assert LocalCollectionCache(store).load("expenses") == []

    def test_non_array_reads_empty(self):
        store = MemoryLocalStore({"household-expenses-v2": json.dumps({"id": "a"})})
        assert LocalCollectionCache(store).load("expenses") == []

    def test_non_object_entries_are_skipped(self):
        store = MemoryLocalStore({"household-expenses-v2": json.dumps([{"id": "a"}, 3, "x"])})
        assert LocalCollectionCache(store).load("expenses") == [{"id": "a"}]

    def test_write_failure_is_logged_not_raised(self):
        audit_logger = AuditLogger()
        cache = LocalCollectionCache(BrokenLocalStore(), audit_logger=audit_logger)
        assert cache.save("expenses", [{"id": "a"}]) is False
        events = audit_logger.recent_events()
        assert events[0].event_type == AuditEventType.CACHE_WRITE_FAILED
        assert events[0].error_type == "LocalCacheWriteFailure"


class TestJsonFileLocalStore:
    """Tests for the file-backed store."""

    def test_round_trip_on_disk(self, tmp_path):
        store = JsonFileLocalStore(tmp_path / "cache")
        store.set("household-expenses-v2", "[]")
        assert store.get("household-expenses-v2") == "[]"
        assert store.contains("household-expenses-v2")

    def test_persists_across_instances(self, tmp_path):
        JsonFileLocalStore(tmp_path).set("k", "v")
        assert JsonFileLocalStore(tmp_path).get("k") == "v"

    def test_remove_missing_is_noop(self, tmp_path):
        store = JsonFileLocalStore(tmp_path)
        store.remove("never-written")
        assert store.get("never-written") is None

    def test_is_a_local_store(self, tmp_path):
        assert isinstance(JsonFileLocalStore(tmp_path), LocalStore)


class TestMigrationState:
    """Tests for the migration marker and the legacy keys."""

    def test_marker_starts_unset(self):
        state = MigrationState(MemoryLocalStore())
        assert not state.is_complete()
        assert not state.has_legacy_data()

    def test_marker_persists(self):
        store = MemoryLocalStore()
        MigrationState(store).mark_complete()
        assert MigrationState(store).is_complete()

    def test_legacy_data_detection_and_clear(self):
        store = MemoryLocalStore({"household-goals": json.dumps([{"id": "1", "name": "Car"}])})
        state = MigrationState(store)
        assert state.has_legacy_data()
        assert state.load_legacy("goals") == [{"id": "1", "name": "Car"}]
        assert state.load_legacy("expenses") == []
        state.clear_legacy()
        assert not state.has_legacy_data()
