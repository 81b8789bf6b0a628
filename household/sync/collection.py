"""
Synchronized Collection Manager

Mirrors one remote collection into an in-memory view that is:
- available immediately (seeded from the local durable cache)
- replaced wholesale on every remote snapshot (the remote store is the
  source of truth for membership and ordering)
- never emptied by an outage (falls back to the cached snapshot)
- self-healing (resubscribes forever, with a capped backoff)

State machine:

    INITIALIZING --start()--> SUBSCRIBING --snapshot--> LIVE --snapshot--> LIVE
                                  ^                       |
                                  |                     error
                               RETRYING <--delay-- DEGRADED
                                              (cache fallback)

    any state --close()--> CLOSED

CONCURRENCY: Everything runs on one event loop. Only the subscription
callbacks write the view and the cache; mutations go to the remote store
and come back through the subscription. At most one subscription is open
at a time and a torn-down subscription can never deliver again.
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_never,
)

from household.audit import AuditLogger
from household.config import SyncSettings
from household.models.audit import AuditEventBuilder
from household.models.records import (
    DATA_SCHEMA_VERSION,
    EntityKind,
    Record,
    dump_record,
    money_to_json,
)
from household.normalization import normalize_document
from household.services.cache import LocalCollectionCache
from household.services.storage import (
    DELETE_FIELD,
    NEWEST_FIRST,
    SERVER_TIMESTAMP,
    CollectionQuery,
    DocumentStore,
    RemoteDocument,
    RemoteSubscriptionError,
    RemoteWriteError,
)


class SyncState(str, Enum):
    """Lifecycle states of a synchronized collection."""
    INITIALIZING = "initializing"
    SUBSCRIBING = "subscribing"
    LIVE = "live"
    DEGRADED = "degraded"
    RETRYING = "retrying"
    CLOSED = "closed"


Listener = Callable[["SyncedCollection"], None]

# Fields the sync layer owns; callers cannot set them through writes
_RESERVED_FIELDS = ("id", "createdAt", "updatedAt", "schemaVersion")


def encode_value(value: Any) -> Any:
    """Convert a Python value to what the remote store should hold."""
    if value is SERVER_TIMESTAMP or value is DELETE_FIELD:
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return money_to_json(value)
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {key: encode_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    return value


def to_payload(document: Union[Mapping[str, Any], BaseModel]) -> dict[str, Any]:
    """
    Turn a record or a plain mapping into a write payload.

    None values are dropped: "no value" is expressed by omitting a field
    on add and by DELETE_FIELD on update.
    """
    if isinstance(document, BaseModel):
        document = document.model_dump(by_alias=True, exclude_none=True)
    return {
        key: encode_value(value)
        for key, value in document.items()
        if value is not None and key not in _RESERVED_FIELDS
    }


class SyncedCollection:
    """
    Live, cache-backed view of one remote collection.

    Usage:
        expenses = SyncedCollection(EntityKind.EXPENSES, store, cache)
        await expenses.start()
        expenses.add_listener(lambda c: render(c.records))
        new_id = await expenses.add({"amount": 120, ...})
        await expenses.close()
    """

    def __init__(
        self,
        kind: Union[EntityKind, str],
        remote: DocumentStore,
        cache: LocalCollectionCache,
        settings: Optional[SyncSettings] = None,
        query: Optional[CollectionQuery] = NEWEST_FIRST,
        audit_logger: Optional[AuditLogger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._kind = kind
        self._name = kind.value if isinstance(kind, EntityKind) else str(kind)
        self._remote = remote
        self._cache = cache
        self._settings = settings or SyncSettings()
        self._query = query
        self._audit_logger = audit_logger or AuditLogger()
        self._sleep = sleep

        self._listeners: list[Listener] = []
        self._supervisor: Optional[asyncio.Task] = None
        self._active_token: Optional[object] = None
        self._consecutive_failures = 0
        self._error: Optional[RemoteSubscriptionError] = None

        # INITIALIZING: never start from empty if the cache has data
        self._state = SyncState.INITIALIZING
        self._view: tuple = self._normalize_cached()

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> Union[EntityKind, str]:
        return self._kind

    @property
    def records(self) -> tuple:
        """The current view. An immutable tuple, replaced as a whole."""
        return self._view

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def error(self) -> Optional[RemoteSubscriptionError]:
        """The last subscription error, cleared by the next snapshot."""
        return self._error

    @property
    def is_connected(self) -> bool:
        return self._state == SyncState.LIVE

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def get(self, record_id: str) -> Optional[Union[Record, dict]]:
        for record in self._view:
            current = record["id"] if isinstance(record, dict) else record.id
            if current == record_id:
                return record
        return None

    def __len__(self) -> int:
        return len(self._view)

    def __iter__(self):
        return iter(self._view)

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback invoked after every view change.

        Returns a function that unregisters it.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Begin syncing. Returns immediately; the view updates in the background."""
        if self._state == SyncState.CLOSED:
            raise RuntimeError(f"Collection {self._name} is closed")
        if self._supervisor is None:
            self._supervisor = asyncio.create_task(
                self._supervise(), name=f"sync-{self._name}"
            )

    async def close(self) -> None:
        """
        Stop syncing.

        Cancels a pending retry and tears down the live subscription.
        The last view stays readable.
        """
        supervisor, self._supervisor = self._supervisor, None
        if supervisor is not None and not supervisor.done():
            supervisor.cancel()
            try:
                await supervisor
            except asyncio.CancelledError:
                pass
        self._active_token = None
        if self._state != SyncState.CLOSED:
            self._state = SyncState.CLOSED
            self._audit_logger.log(AuditEventBuilder.collection_closed(self._name))

    async def _supervise(self) -> None:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RemoteSubscriptionError),
            stop=stop_never,
            wait=self._backoff,
            before_sleep=self._enter_retrying,
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self._subscribe_once(attempt.retry_state.attempt_number)

    def _backoff(self, retry_state: RetryCallState) -> float:
        """Capped exponential delay, reset by every delivered snapshot."""
        failures = max(1, self._consecutive_failures)
        delay = self._settings.retry_delay_seconds * (
            self._settings.retry_backoff_multiplier ** (failures - 1)
        )
        return min(delay, self._settings.retry_max_delay_seconds)

    def _enter_retrying(self, retry_state: RetryCallState) -> None:
        self._state = SyncState.RETRYING
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        self._audit_logger.log(
            AuditEventBuilder.retry_scheduled(
                self._name, delay, self._consecutive_failures
            )
        )
        self._notify()

    async def _subscribe_once(self, attempt: int) -> None:
        """
        One subscription lifetime: open it, serve snapshots until it
        fails, degrade, tear it down, then raise for the retry loop.
        """
        self._state = SyncState.SUBSCRIBING
        self._audit_logger.log(AuditEventBuilder.subscription_opened(self._name, attempt))

        loop = asyncio.get_running_loop()
        failed: asyncio.Future = loop.create_future()
        token = object()
        self._active_token = token

        def on_snapshot(documents: list[RemoteDocument]) -> None:
            if self._active_token is not token:
                return
            try:
                self._apply_snapshot(documents)
            except Exception as e:
                # A snapshot that cannot be applied ends this subscription
                on_error(e)

        def on_error(error: Exception) -> None:
            if self._active_token is token and not failed.done():
                failed.set_result(error)

        subscription = None
        try:
            try:
                subscription = await self._remote.subscribe(
                    self._name, on_snapshot, on_error, self._query
                )
            except Exception as e:
                error = e
            else:
                error = await failed
            self._active_token = None
            self._enter_degraded(error)
        finally:
            self._active_token = None
            if subscription is not None:
                try:
                    await subscription.close()
                except Exception as e:
                    self._audit_logger.log(
                        AuditEventBuilder.system_error(
                            "subscription_close_failed",
                            str(e) or type(e).__name__,
                            {"collection": self._name},
                        )
                    )

        raise self._error

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _normalize(self, raw: Mapping[str, Any], doc_id: str):
        return normalize_document(self._kind, raw, doc_id)

    def _normalize_cached(self) -> tuple:
        records = []
        for item in self._cache.load(self._name):
            doc_id = item.get("id")
            if doc_id is None:
                continue
            records.append(self._normalize(item, str(doc_id)))
        return tuple(records)

    def _apply_snapshot(self, documents: list[RemoteDocument]) -> None:
        """LIVE: normalize, swap the view, clear the error, persist."""
        view = tuple(self._normalize(doc.data, doc.id) for doc in documents)
        self._view = view
        self._state = SyncState.LIVE
        self._error = None
        self._consecutive_failures = 0
        self._cache.save(self._name, [self._dump(record) for record in view])
        self._audit_logger.log(AuditEventBuilder.snapshot_applied(self._name, len(view)))
        self._notify()

    def _enter_degraded(self, error: Exception) -> None:
        """DEGRADED: surface the error, fall back to the cached snapshot."""
        self._state = SyncState.DEGRADED
        self._consecutive_failures += 1
        if isinstance(error, RemoteSubscriptionError):
            self._error = error
        else:
            self._error = RemoteSubscriptionError(self._name, str(error) or type(error).__name__)
            self._error.__cause__ = error
        self._audit_logger.log(AuditEventBuilder.subscription_error(self._name, error))

        cached = self._normalize_cached()
        if cached:
            self._view = cached
            self._audit_logger.log(AuditEventBuilder.cache_fallback(self._name, len(cached)))
        self._notify()

    @staticmethod
    def _dump(record: Union[Record, dict]) -> dict:
        if isinstance(record, Record):
            return dump_record(record)
        return {key: encode_value(value) for key, value in record.items()}

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                self._audit_logger.log(
                    AuditEventBuilder.system_error(
                        "listener_failed", str(e), {"collection": self._name}
                    )
                )

    # -------------------------------------------------------------------------
    # Write side: pass-through to the remote store
    # -------------------------------------------------------------------------

    async def add(
        self,
        document: Union[Mapping[str, Any], BaseModel],
        created_at: Optional[datetime] = None,
    ) -> str:
        """
        Add a record. The store assigns the id.

        Args:
            document: Field values (camelCase keys or a record model)
            created_at: Preserved creation time; server time when omitted

        Returns:
            The new record id

        Raises:
            RemoteWriteError: If the write fails
        """
        payload = to_payload(document)
        payload["schemaVersion"] = DATA_SCHEMA_VERSION
        payload["createdAt"] = created_at or SERVER_TIMESTAMP
        try:
            record_id = await self._remote.add(self._name, payload)
        except Exception as e:
            raise self._write_failed("add", e)
        self._audit_logger.log(AuditEventBuilder.record_written(self._name, "add", record_id))
        return record_id

    async def update(
        self,
        record_id: str,
        changes: Mapping[str, Any],
    ) -> None:
        """
        Partially update a record.

        Pass DELETE_FIELD as a value to remove an optional field.

        Raises:
            RemoteWriteError: If the write fails
        """
        payload = to_payload(changes)
        payload["schemaVersion"] = DATA_SCHEMA_VERSION
        payload["updatedAt"] = SERVER_TIMESTAMP
        try:
            await self._remote.update(self._name, record_id, payload)
        except Exception as e:
            raise self._write_failed("update", e, record_id)
        self._audit_logger.log(AuditEventBuilder.record_written(self._name, "update", record_id))

    async def remove(self, record_id: str) -> None:
        """
        Delete a record. Terminal: there is no undo.

        Raises:
            RemoteWriteError: If the write fails
        """
        try:
            await self._remote.remove(self._name, record_id)
        except Exception as e:
            raise self._write_failed("remove", e, record_id)
        self._audit_logger.log(AuditEventBuilder.record_written(self._name, "remove", record_id))

    def _write_failed(
        self,
        operation: str,
        error: Exception,
        record_id: Optional[str] = None,
    ) -> RemoteWriteError:
        self._audit_logger.log(
            AuditEventBuilder.write_failed(self._name, operation, error, record_id)
        )
        failure = RemoteWriteError(self._name, operation, str(error))
        failure.__cause__ = error
        return failure
