"""
Google Sheets Document Store

DESIGN DECISION: Google Sheets is used as the remote backend because:
1. Both members of the household can view their data directly in Sheets
2. No database setup required
3. Every edit is visible in the sheet history

TRADEOFFS:
- No push notifications: live subscriptions poll the worksheet and
  deliver a snapshot whenever its contents change
- No transactions: each write is a single row append, cell update
  or row delete
- Limited query capabilities (we filter and sort in Python)

Each collection is one worksheet. Every document is one row holding its
id and its payload as JSON, so documents of any schema vintage fit.
"""

import asyncio
import hashlib
import json
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from household.audit import get_logger
from household.config import GoogleSheetsSettings, get_settings
from household.models.records import money_to_json
from household.services.storage.interface import (
    CollectionQuery,
    ConnectionError,
    DocumentStore,
    ErrorCallback,
    NotFoundError,
    RemoteDocument,
    RemoteSubscriptionError,
    SnapshotCallback,
    StorageError,
    Subscription,
    apply_query,
    resolve_sentinels,
)


logger = get_logger(__name__)

DOCUMENT_COLUMNS = ["id", "data_json"]


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return money_to_json(value)
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def document_to_row(doc_id: str, data: dict[str, Any]) -> list[str]:
    """Convert a document to a spreadsheet row."""
    return [doc_id, json.dumps(data, default=_json_default, sort_keys=True)]


def row_to_document(row: list) -> Optional[RemoteDocument]:
    """
    Convert a spreadsheet row to a document.

    A row whose payload is not a JSON object still yields a document with
    an empty payload: the normalizer turns it into a visible default record
    instead of silently dropping it.
    """
    if not row or not row[0]:
        return None
    payload = row[1] if len(row) > 1 else ""
    try:
        data = json.loads(payload) if payload else {}
    except json.JSONDecodeError:
        data = {}
    if not isinstance(data, dict):
        data = {}
    return RemoteDocument(id=str(row[0]), data=data)


class GoogleSheetsClient:
    """
    Owns the gspread session and the per-collection worksheets.

    Connecting is retried; worksheet calls are not.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Authorize with the service account key, once per client.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """The household spreadsheet, opened lazily."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_collection_sheet(self, collection: str) -> gspread.Worksheet:
        """Get or create the worksheet holding a collection."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(collection)
        except gspread.WorksheetNotFound:
            # Collection seen for the first time
            sheet = spreadsheet.add_worksheet(
                title=collection,
                rows=1000,
                cols=len(DOCUMENT_COLUMNS),
            )
            sheet.append_row(DOCUMENT_COLUMNS)
        return sheet


class _PollingSubscription(Subscription):
    """Emulates a live subscription by polling the worksheet."""

    def __init__(self, task: asyncio.Task):
        self._task = task

    async def close(self) -> None:
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class GoogleSheetsDocumentStore(DocumentStore):
    """
    Google Sheets implementation of the remote document store.

    gspread is synchronous, so every API call runs in a worker thread
    to keep the event loop responsive.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        poll_interval_seconds: Optional[float] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._poll_interval = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else get_settings().sync.poll_interval_seconds
        )

    def _read_documents(self, collection: str) -> list[RemoteDocument]:
        sheet = self._client.get_collection_sheet(collection)
        documents = []
        for row in sheet.get_all_values()[1:]:  # Skip header
            document = row_to_document(row)
            if document is not None:
                documents.append(document)
        return documents

    def _find_row(self, sheet: gspread.Worksheet, doc_id: str) -> Optional[tuple[int, list]]:
        all_rows = sheet.get_all_values()
        # Start from 2 (row 1 is header)
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == doc_id:
                return idx, row
        return None

    @staticmethod
    def _fingerprint(documents: list[RemoteDocument]) -> str:
        digest = hashlib.sha256()
        for document in documents:
            digest.update(document.id.encode("utf-8"))
            digest.update(
                json.dumps(document.data, sort_keys=True, default=str).encode("utf-8")
            )
        return digest.hexdigest()

    async def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        query: Optional[CollectionQuery] = None,
    ) -> Subscription:
        try:
            documents = await asyncio.to_thread(self._read_documents, collection)
        except Exception as e:
            raise RemoteSubscriptionError(collection, str(e)) from e

        async def poll(initial: list[RemoteDocument]) -> None:
            last = self._fingerprint(initial)
            on_snapshot(apply_query(initial, query))
            while True:
                await asyncio.sleep(self._poll_interval)
                try:
                    current = await asyncio.to_thread(self._read_documents, collection)
                except Exception as e:
                    logger.warning(
                        "sheets_poll_failed",
                        collection=collection,
                        error=str(e),
                    )
                    on_error(e)
                    return
                fingerprint = self._fingerprint(current)
                if fingerprint != last:
                    last = fingerprint
                    on_snapshot(apply_query(current, query))

        task = asyncio.create_task(poll(documents), name=f"sheets-poll-{collection}")
        return _PollingSubscription(task)

    async def add(self, collection: str, document: dict[str, Any]) -> str:
        """Append a document row to the collection's worksheet."""
        doc_id = uuid4().hex
        data = resolve_sentinels({}, document)

        def write() -> None:
            sheet = self._client.get_collection_sheet(collection)
            sheet.append_row(document_to_row(doc_id, data), value_input_option="RAW")

        try:
            await asyncio.to_thread(write)
        except Exception as e:
            raise StorageError(f"Failed to add document: {e}")
        return doc_id

    async def update(
        self,
        collection: str,
        doc_id: str,
        partial: dict[str, Any],
    ) -> None:
        """Merge a partial document into its row."""

        def write() -> None:
            sheet = self._client.get_collection_sheet(collection)
            found = self._find_row(sheet, doc_id)
            if found is None:
                raise NotFoundError(f"Document not found: {collection}/{doc_id}")
            idx, row = found
            current = row_to_document(row)
            merged = resolve_sentinels(current.data if current else {}, partial)
            sheet.update_cell(idx, 2, document_to_row(doc_id, merged)[1])

        try:
            await asyncio.to_thread(write)
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update document: {e}")

    async def remove(self, collection: str, doc_id: str) -> None:
        """Delete a document row."""

        def write() -> None:
            sheet = self._client.get_collection_sheet(collection)
            found = self._find_row(sheet, doc_id)
            if found is not None:
                sheet.delete_rows(found[0])

        try:
            await asyncio.to_thread(write)
        except Exception as e:
            raise StorageError(f"Failed to delete document: {e}")
