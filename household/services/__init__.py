"""Services package."""

from household.services.cache import (
    JsonFileLocalStore,
    LocalCacheWriteFailure,
    LocalCollectionCache,
    LocalStore,
    MemoryLocalStore,
    MigrationState,
)
from household.services.storage import (
    DELETE_FIELD,
    SERVER_TIMESTAMP,
    ConnectionError,
    DocumentStore,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    NotFoundError,
    RemoteSubscriptionError,
    RemoteWriteError,
    StorageError,
)

__all__ = [
    # Local cache
    "JsonFileLocalStore",
    "LocalCacheWriteFailure",
    "LocalCollectionCache",
    "LocalStore",
    "MemoryLocalStore",
    "MigrationState",
    # Remote storage
    "DELETE_FIELD",
    "SERVER_TIMESTAMP",
    "ConnectionError",
    "DocumentStore",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
    "NotFoundError",
    "RemoteSubscriptionError",
    "RemoteWriteError",
    "StorageError",
]
