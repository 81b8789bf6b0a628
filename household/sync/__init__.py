"""Synchronization package: live collections, legacy migration, backups."""

from household.sync.collection import SyncedCollection, SyncState, to_payload
from household.sync.migration import (
    LegacyMigrationRunner,
    MigrationPartialFailure,
    MigrationResult,
)
from household.sync.transfer import (
    ExportBundle,
    ImportValidationError,
    bundle_to_json,
    export_bundle,
    import_bundle,
    parse_bundle,
    write_backup,
)

__all__ = [
    "SyncState",
    "SyncedCollection",
    "to_payload",
    "LegacyMigrationRunner",
    "MigrationPartialFailure",
    "MigrationResult",
    "ExportBundle",
    "ImportValidationError",
    "bundle_to_json",
    "export_bundle",
    "import_bundle",
    "parse_bundle",
    "write_backup",
]
