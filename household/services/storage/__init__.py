"""
Storage Services Package

Provides the abstract remote document store interface and its backends.
Google Sheets is the production backend; the in-memory store serves
tests and offline sessions.
"""

from household.services.storage.interface import (
    DELETE_FIELD,
    NEWEST_FIRST,
    SERVER_TIMESTAMP,
    CollectionQuery,
    ConnectionError,
    DocumentStore,
    FieldFilter,
    NotFoundError,
    RemoteDocument,
    RemoteSubscriptionError,
    RemoteWriteError,
    StorageError,
    Subscription,
    apply_query,
)
from household.services.storage.memory import InMemoryDocumentStore
from household.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
)

__all__ = [
    # Interface
    "DELETE_FIELD",
    "NEWEST_FIRST",
    "SERVER_TIMESTAMP",
    "CollectionQuery",
    "DocumentStore",
    "FieldFilter",
    "RemoteDocument",
    "Subscription",
    "apply_query",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "RemoteSubscriptionError",
    "RemoteWriteError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
]
