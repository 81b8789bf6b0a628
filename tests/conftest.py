"""
Shared fixtures for the Household Ledger test suite.

No test talks to a real backend: the remote store is the in-memory one
and Google Sheets worksheets are mocked.
"""

import asyncio

import pytest
import pytest_asyncio

from household.audit import AuditLogger
from household.config import SyncSettings
from household.models.records import EntityKind
from household.services.cache import LocalCollectionCache, MemoryLocalStore
from household.services.storage import InMemoryDocumentStore
from household.sync import SyncedCollection


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Yield to the event loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.001)


@pytest.fixture
def fast_sync_settings():
    """Retry delays small enough to run many cycles in a test."""
    return SyncSettings(
        retry_delay_seconds=0.001,
        retry_backoff_multiplier=2.0,
        retry_max_delay_seconds=0.01,
        poll_interval_seconds=0.01,
    )


@pytest.fixture
def remote():
    return InMemoryDocumentStore()


@pytest.fixture
def local_store():
    return MemoryLocalStore()


@pytest.fixture
def audit_logger():
    return AuditLogger(history_size=500)


@pytest.fixture
def cache(local_store, audit_logger):
    return LocalCollectionCache(local_store, audit_logger=audit_logger)


@pytest_asyncio.fixture
async def make_collection(remote, cache, fast_sync_settings, audit_logger):
    """Factory for collections wired to the shared store and cache. Closes them afterwards."""
    created = []

    def factory(kind=EntityKind.EXPENSES, store=None, collection_cache=None, **options):
        options.setdefault("settings", fast_sync_settings)
        options.setdefault("audit_logger", audit_logger)
        collection = SyncedCollection(
            kind,
            store or remote,
            collection_cache or cache,
            **options,
        )
        created.append(collection)
        return collection

    yield factory

    for collection in created:
        await collection.close()
