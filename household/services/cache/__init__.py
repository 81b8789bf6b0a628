"""Local durable cache package."""

from household.services.cache.local_store import (
    LEGACY_KINDS,
    JsonFileLocalStore,
    LocalCacheWriteFailure,
    LocalCollectionCache,
    LocalStore,
    MemoryLocalStore,
    MigrationState,
)

__all__ = [
    "LEGACY_KINDS",
    "JsonFileLocalStore",
    "LocalCacheWriteFailure",
    "LocalCollectionCache",
    "LocalStore",
    "MemoryLocalStore",
    "MigrationState",
]
