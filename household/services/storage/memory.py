"""
In-Memory Document Store

A complete DocumentStore kept in process memory. Used by the test suite
and for offline sessions where no remote backend is configured.

It behaves like a push-based document database: subscribers get the
current snapshot right after subscribing and a fresh one after every
write, always on the event loop, never inline in the writer's call.

Fault injection hooks let tests drive the sync layer through its error
states without a network.
"""

import asyncio
import copy
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import uuid4

from household.services.storage.interface import (
    CollectionQuery,
    ConnectionError,
    DocumentStore,
    ErrorCallback,
    NotFoundError,
    RemoteDocument,
    RemoteSubscriptionError,
    SnapshotCallback,
    Subscription,
    apply_query,
    resolve_sentinels,
)


class _MemorySubscription(Subscription):

    def __init__(
        self,
        store: "InMemoryDocumentStore",
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        query: Optional[CollectionQuery],
    ):
        self._store = store
        self.collection = collection
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.query = query
        self.active = True

    def deliver(self, documents: list[RemoteDocument]) -> None:
        if self.active:
            self.on_snapshot(apply_query(documents, self.query))

    def fail(self, error: Exception) -> None:
        if self.active:
            self.active = False
            self._store._detach(self)
            self.on_error(error)

    async def close(self) -> None:
        self.active = False
        self._store._detach(self)


class InMemoryDocumentStore(DocumentStore):
    """
    DocumentStore backed by plain dicts.

    Fault injection:
        fail_writes: when True every add/update/remove raises ConnectionError
        fail_next_subscribes: number of upcoming subscribe() calls to refuse
        break_subscriptions(): push an error to every live subscription
    """

    def __init__(self):
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._subscriptions: list[_MemorySubscription] = []
        self._last_timestamp: Optional[datetime] = None
        self.fail_writes = False
        self.fail_next_subscribes = 0
        self.write_count = 0
        self.subscribe_count = 0

    # -------------------------------------------------------------------------
    # Inspection helpers
    # -------------------------------------------------------------------------

    def documents(self, collection: str) -> dict[str, dict[str, Any]]:
        """Deep copy of a collection's raw documents keyed by id."""
        return copy.deepcopy(self._collections.get(collection, {}))

    def active_subscriptions(self, collection: Optional[str] = None) -> int:
        return sum(
            1 for sub in self._subscriptions
            if collection is None or sub.collection == collection
        )

    def seed(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Insert a raw document as-is, bypassing sentinels and subscribers."""
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    def break_subscriptions(
        self,
        error: Optional[Exception] = None,
        collection: Optional[str] = None,
    ) -> None:
        """Fail every live subscription (optionally of one collection)."""
        error = error or ConnectionError("connection lost")
        loop = asyncio.get_running_loop()
        for sub in list(self._subscriptions):
            if collection is None or sub.collection == collection:
                loop.call_soon(sub.fail, error)

    # -------------------------------------------------------------------------
    # DocumentStore
    # -------------------------------------------------------------------------

    def _now(self) -> datetime:
        # Strictly increasing, so createdAt order equals insertion order
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    def _snapshot(self, collection: str) -> list[RemoteDocument]:
        return [
            RemoteDocument(id=doc_id, data=copy.deepcopy(data))
            for doc_id, data in self._collections.get(collection, {}).items()
        ]

    def _publish(self, collection: str) -> None:
        loop = asyncio.get_running_loop()
        for sub in list(self._subscriptions):
            if sub.collection == collection:
                loop.call_soon(sub.deliver, self._snapshot(collection))

    def _detach(self, subscription: _MemorySubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def _check_writable(self) -> None:
        if self.fail_writes:
            raise ConnectionError("remote store unavailable")

    async def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        query: Optional[CollectionQuery] = None,
    ) -> Subscription:
        self.subscribe_count += 1
        if self.fail_next_subscribes > 0:
            self.fail_next_subscribes -= 1
            raise RemoteSubscriptionError(collection, "permission denied")

        subscription = _MemorySubscription(self, collection, on_snapshot, on_error, query)
        self._subscriptions.append(subscription)
        asyncio.get_running_loop().call_soon(
            subscription.deliver, self._snapshot(collection)
        )
        return subscription

    async def add(self, collection: str, document: dict[str, Any]) -> str:
        self._check_writable()
        doc_id = uuid4().hex
        self._collections.setdefault(collection, {})[doc_id] = resolve_sentinels(
            {}, copy.deepcopy(document), self._now()
        )
        self.write_count += 1
        self._publish(collection)
        return doc_id

    async def update(
        self,
        collection: str,
        doc_id: str,
        partial: dict[str, Any],
    ) -> None:
        self._check_writable()
        documents = self._collections.get(collection, {})
        if doc_id not in documents:
            raise NotFoundError(f"Document not found: {collection}/{doc_id}")
        documents[doc_id] = resolve_sentinels(
            documents[doc_id], copy.deepcopy(partial), self._now()
        )
        self.write_count += 1
        self._publish(collection)

    async def remove(self, collection: str, doc_id: str) -> None:
        self._check_writable()
        if self._collections.get(collection, {}).pop(doc_id, None) is not None:
            self.write_count += 1
            self._publish(collection)
