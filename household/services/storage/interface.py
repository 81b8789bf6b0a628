"""
Abstract Remote Document Store Interface

DESIGN DECISION: We define an abstract interface for the remote store.
This allows us to:
1. Swap Google Sheets for a real document database later
2. Use in-memory storage for testing and offline demos
3. Keep the sync layer decoupled from any one backend

The remote store is a set of named collections of schemaless documents.
It offers a live subscription delivering full ordered snapshots, plus
add / update / remove. Nothing more is assumed.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Sentinel:
    """A named marker value that survives copying and compares by identity."""

    def __init__(self, name: str):
        self._name = name

    def __repr__(self) -> str:
        return self._name

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


# Replaced by the store's own clock when the write is applied
SERVER_TIMESTAMP = _Sentinel("SERVER_TIMESTAMP")

# In an update payload: remove the field, which is not the same as setting ""
DELETE_FIELD = _Sentinel("DELETE_FIELD")


class RemoteDocument(BaseModel):
    """One document of a snapshot: its store id and raw payload."""
    model_config = ConfigDict(frozen=True)

    id: str
    data: dict[str, Any] = Field(default_factory=dict)


class FieldFilter(BaseModel):
    """A single where-clause of a collection query."""
    model_config = ConfigDict(frozen=True)

    field: str
    op: Literal["==", "!=", "<", "<=", ">", ">=", "in"] = "=="
    value: Any = None


class CollectionQuery(BaseModel):
    """Ordering and filter constraints for a subscription."""
    model_config = ConfigDict(frozen=True)

    order_by: Optional[str] = None
    descending: bool = False
    filters: tuple[FieldFilter, ...] = ()


NEWEST_FIRST = CollectionQuery(order_by="createdAt", descending=True)

SnapshotCallback = Callable[[list[RemoteDocument]], None]
ErrorCallback = Callable[[Exception], None]


class Subscription(ABC):
    """Handle of a live subscription."""

    @abstractmethod
    async def close(self) -> None:
        """
        Tear the subscription down.

        When this returns, no further callback will be delivered.
        Closing twice is a no-op.
        """
        pass


class DocumentStore(ABC):
    """
    Abstract interface for the remote document store.

    Any backend (Google Sheets, a document database, memory)
    must implement these methods.
    """

    @abstractmethod
    async def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        query: Optional[CollectionQuery] = None,
    ) -> Subscription:
        """
        Open a live subscription to a collection.

        Args:
            collection: Collection name
            on_snapshot: Called with the full, ordered collection after
                every change, starting with the current contents
            on_error: Called once when the subscription fails; no snapshot
                follows an error
            query: Optional ordering and filters

        Returns:
            A Subscription handle

        Raises:
            RemoteSubscriptionError: If the subscription cannot be opened
        """
        pass

    @abstractmethod
    async def add(self, collection: str, document: dict[str, Any]) -> str:
        """
        Add a document; the store assigns its id.

        SERVER_TIMESTAMP values are replaced by the store's clock.

        Returns:
            The new document id

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update(
        self,
        collection: str,
        doc_id: str,
        partial: dict[str, Any],
    ) -> None:
        """
        Merge a partial document into an existing one.

        DELETE_FIELD values remove the field.

        Raises:
            NotFoundError: If the document doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def remove(self, collection: str, doc_id: str) -> None:
        """
        Delete a document. Deleting a missing document is not an error.

        Raises:
            StorageError: If the write fails
        """
        pass


# =============================================================================
# Helpers shared by backends that filter and sort in Python
# =============================================================================

def resolve_sentinels(
    current: dict[str, Any],
    changes: dict[str, Any],
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Apply a write payload to a document, resolving both sentinels."""
    now = now or datetime.now(timezone.utc)
    merged = dict(current)
    for key, value in changes.items():
        if value is DELETE_FIELD:
            merged.pop(key, None)
        elif value is SERVER_TIMESTAMP:
            merged[key] = now
        else:
            merged[key] = value
    return merged


def _sort_key(value: Any) -> tuple:
    # Documents of mixed vintage hold strings, dates and datetimes side by side
    if value is None:
        return (0, 0)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        try:
            return (1, value.timestamp())
        except (ValueError, OverflowError):
            # Beyond the representable range: order at the matching end
            return (1, float("-inf") if value.year < 1970 else float("inf"))
    if isinstance(value, date):
        return (1, datetime(value.year, value.month, value.day, tzinfo=timezone.utc).timestamp())
    if isinstance(value, bool):
        return (2, int(value))
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return (3, value)
        return _sort_key(parsed)
    return (3, str(value))


def _matches(data: dict[str, Any], condition: FieldFilter) -> bool:
    value = data.get(condition.field)
    try:
        if condition.op == "==":
            return value == condition.value
        if condition.op == "!=":
            return value != condition.value
        if condition.op == "in":
            return value in condition.value
        if value is None:
            return False
        if condition.op == "<":
            return value < condition.value
        if condition.op == "<=":
            return value <= condition.value
        if condition.op == ">":
            return value > condition.value
        return value >= condition.value
    except TypeError:
        # Incomparable types never match, like in real document stores
        return False


def apply_query(
    documents: Iterable[RemoteDocument],
    query: Optional[CollectionQuery],
) -> list[RemoteDocument]:
    """Filter and order documents. Ties keep insertion order."""
    result = list(documents)
    if query is None:
        return result
    for condition in query.filters:
        result = [doc for doc in result if _matches(doc.data, condition)]
    if query.order_by:
        result = sorted(
            result,
            key=lambda doc: _sort_key(doc.data.get(query.order_by)),
            reverse=query.descending,
        )
    return result


# =============================================================================
# Errors
# =============================================================================

class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class RemoteSubscriptionError(StorageError):
    """A live subscription could not be opened or broke down."""

    def __init__(self, collection: str, message: str):
        self.collection = collection
        super().__init__(f"{collection}: {message}")


class RemoteWriteError(StorageError):
    """An add/update/remove did not reach the remote store."""

    def __init__(self, collection: str, operation: str, message: str):
        self.collection = collection
        self.operation = operation
        super().__init__(f"{operation} on {collection} failed: {message}")
