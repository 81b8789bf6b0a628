"""
Tests for the Google Sheets document store.

The gspread client is mocked; worksheets are plain in-memory row lists.
"""

import asyncio
import json
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from household.models.records import Category
from household.services.storage import (
    DELETE_FIELD,
    NEWEST_FIRST,
    SERVER_TIMESTAMP,
    GoogleSheetsDocumentStore,
    NotFoundError,
    RemoteSubscriptionError,
    StorageError,
)
from household.services.storage.google_sheets import (
    DOCUMENT_COLUMNS,
    document_to_row,
    row_to_document,
)

from tests.conftest import wait_until


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the document store."""

    def __init__(self):
        self.rows = [list(DOCUMENT_COLUMNS)]

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append(list(row))

    def update_cell(self, row, col, value):
        self.rows[row - 1][col - 1] = value

    def delete_rows(self, index):
        del self.rows[index - 1]


@pytest.fixture
def sheets():
    return {}


@pytest.fixture
def sheets_store(sheets):
    client = MagicMock()
    client.get_collection_sheet.side_effect = lambda name: sheets.setdefault(name, FakeWorksheet())
    return GoogleSheetsDocumentStore(client, poll_interval_seconds=0.01)


class TestRowConversion:
    """Tests for document <-> row conversion."""

    def test_document_to_row_serializes_rich_values(self):
        row = document_to_row("abc", {
            "amount": Decimal("12.5"),
            "category": Category.FOOD,
            "createdAt": datetime(2026, 9, 1, tzinfo=timezone.utc),
        })
        assert row[0] == "abc"
        data = json.loads(row[1])
        assert data == {
            "amount": 12.5,
            "category": "Food",
            "createdAt": "2026-09-01T00:00:00+00:00",
        }

    def test_row_to_document(self):
        document = row_to_document(["abc", '{"amount": 3}'])
        assert document.id == "abc"
        assert document.data == {"amount": 3}

    def test_blank_row_is_skipped(self):
        assert row_to_document([]) is None
        assert row_to_document(["", "{}"]) is None

    @pytest.mark.parametrize("payload", ["{broken", "[1, 2]", ""])
    def test_bad_payload_keeps_the_row(self, payload):
        """Test that an unreadable row still yields a document to normalize."""
        document = row_to_document(["abc", payload])
        assert document.id == "abc"
        assert document.data == {}


class TestGoogleSheetsDocumentStore:
    """Tests for writes and polling subscriptions."""

    @pytest.mark.asyncio
    async def test_add_resolves_server_timestamp(self, sheets_store, sheets):
        doc_id = await sheets_store.add("expenses", {"amount": 5, "createdAt": SERVER_TIMESTAMP})
        stored = json.loads(sheets["expenses"].rows[1][1])
        assert sheets["expenses"].rows[1][0] == doc_id
        assert stored["amount"] == 5
        assert stored["createdAt"].endswith("+00:00")

    @pytest.mark.asyncio
    async def test_update_merges_and_deletes_fields(self, sheets_store, sheets):
        doc_id = await sheets_store.add("expenses", {"amount": 5, "thirdPartyName": "Mom"})
        await sheets_store.update("expenses", doc_id, {"amount": 7, "thirdPartyName": DELETE_FIELD})
        stored = json.loads(sheets["expenses"].rows[1][1])
        assert stored == {"amount": 7}

    @pytest.mark.asyncio
    async def test_update_missing_document(self, sheets_store):
        with pytest.raises(NotFoundError):
            await sheets_store.update("expenses", "missing", {"amount": 1})

    @pytest.mark.asyncio
    async def test_remove(self, sheets_store, sheets):
        doc_id = await sheets_store.add("goals", {"name": "Car"})
        await sheets_store.remove("goals", doc_id)
        await sheets_store.remove("goals", "already-gone")
        assert sheets["goals"].rows == [DOCUMENT_COLUMNS]

    @pytest.mark.asyncio
    async def test_write_errors_become_storage_errors(self, sheets):
        client = MagicMock()
        client.get_collection_sheet.side_effect = RuntimeError("quota")
        store = GoogleSheetsDocumentStore(client, poll_interval_seconds=0.01)
        with pytest.raises(StorageError):
            await store.add("expenses", {"amount": 1})

    @pytest.mark.asyncio
    async def test_subscription_delivers_ordered_snapshots(self, sheets_store):
        snapshots = []
        errors = []
        await sheets_store.add("expenses", {"amount": 1, "createdAt": "2026-09-01T00:00:00Z"})
        subscription = await sheets_store.subscribe(
            "expenses", snapshots.append, errors.append, NEWEST_FIRST
        )
        try:
            await wait_until(lambda: len(snapshots) == 1)
            await sheets_store.add("expenses", {"amount": 2, "createdAt": "2026-09-02T00:00:00Z"})
            await wait_until(lambda: len(snapshots) == 2)
            assert [doc.data["amount"] for doc in snapshots[-1]] == [2, 1]
            assert errors == []
        finally:
            await subscription.close()

        count = len(snapshots)
        await sheets_store.add("expenses", {"amount": 3})
        await asyncio.sleep(0.05)
        assert len(snapshots) == count

    @pytest.mark.asyncio
    async def test_subscribe_failure_raises(self):
        client = MagicMock()
        client.get_collection_sheet.side_effect = RuntimeError("no access")
        store = GoogleSheetsDocumentStore(client, poll_interval_seconds=0.01)
        with pytest.raises(RemoteSubscriptionError):
            await store.subscribe("expenses", lambda docs: None, lambda error: None)

    @pytest.mark.asyncio
    async def test_poll_failure_reports_error(self, sheets_store, sheets):
        errors = []
        subscription = await sheets_store.subscribe("expenses", lambda docs: None, errors.append)
        try:
            sheets["expenses"].get_all_values = MagicMock(side_effect=RuntimeError("offline"))
            await wait_until(lambda: errors)
            assert str(errors[0]) == "offline"
        finally:
            await subscription.close()
