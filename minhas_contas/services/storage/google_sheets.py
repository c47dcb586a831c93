"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as an alternative backend because:
1. Users can view their records directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: last write wins
- Limited query capabilities (we filter by user in Python)

One worksheet per collection. Every row carries the owner's user_id and
rows of other users are never returned or touched.
"""

from typing import Any, Callable, Optional
from uuid import uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from minhas_contas.config import get_settings
from minhas_contas.errors import NotFoundError, PersistenceError
from minhas_contas.models.audit import AuditEvent
from minhas_contas.models.ledger import LedgerCollection
from minhas_contas.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    StoredDocument,
    merge_fields,
    not_found,
)


logger = structlog.get_logger("minhas_contas.storage.sheets")


# Column mappings per worksheet; the first two are always id and user_id
EXPENSE_COLUMNS = [
    "id",
    "user_id",
    "description",
    "amount",
    "dueDate",
    "category",
    "isRecurring",
    "recurrenceType",
    "totalParcels",
    "currentParcel",
    "endDate",
    "isPaid",
]

INCOME_COLUMNS = [
    "id",
    "user_id",
    "description",
    "amount",
]

ACTIVITY_COLUMNS = [
    "eventId",
    "user_id",
    "timestamp",
    "eventType",
    "severity",
    "entityType",
    "entityId",
    "correlationId",
    "description",
    "details",
    "errorMessage",
    "isUserAction",
]

COLLECTION_COLUMNS = {
    LedgerCollection.EXPENSES: EXPENSE_COLUMNS,
    LedgerCollection.INCOMES: INCOME_COLUMNS,
}


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


# Cells come back as text; these restore the stored types
COLUMN_DECODERS: dict[str, Callable[[str], Any]] = {
    "amount": float,
    "totalParcels": int,
    "currentParcel": int,
    "isRecurring": _to_bool,
    "isPaid": _to_bool,
}


def _encode_cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet creation. Connecting is retried;
    reads and writes are not.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
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
                raise PersistenceError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise PersistenceError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise PersistenceError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_collection_sheet(self, collection: LedgerCollection) -> gspread.Worksheet:
        """Worksheet holding one ledger collection."""
        title = (
            self._settings.expenses_sheet_name
            if collection == LedgerCollection.EXPENSES
            else self._settings.incomes_sheet_name
        )
        return self.get_worksheet(title, COLLECTION_COLUMNS[collection])

    def get_activity_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.activity_sheet_name, ACTIVITY_COLUMNS)


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of the ledger store.

    Records are stored as rows, one record per row, columns as in
    EXPENSE_COLUMNS / INCOME_COLUMNS. Empty cells are absent fields.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _document_to_row(
        self,
        document_id: str,
        user_id: str,
        document: dict[str, Any],
        columns: list[str],
    ) -> list[str]:
        """Convert a document to a spreadsheet row."""
        row = [document_id, user_id]
        row.extend(_encode_cell(document.get(column)) for column in columns[2:])
        return row

    def _row_to_document(self, row: list[str], columns: list[str]) -> StoredDocument:
        """Convert a spreadsheet row back to a typed document."""
        fields = {}
        for index, column in enumerate(columns[2:], start=2):
            value = row[index] if index < len(row) else ""
            if value == "":
                continue
            decoder = COLUMN_DECODERS.get(column)
            fields[column] = decoder(value) if decoder else value
        return StoredDocument(row[0], fields)

    def _find_row(
        self,
        rows: list[list[str]],
        user_id: str,
        document_id: str,
    ) -> Optional[int]:
        """1-based sheet row number of the document, skipping the header."""
        for idx, row in enumerate(rows[1:], start=2):
            if len(row) > 1 and row[0] == document_id and row[1] == user_id:
                return idx
        return None

    async def create(
        self,
        user_id: str,
        collection: LedgerCollection,
        document: dict[str, Any],
    ) -> str:
        """Append a row with a fresh id."""
        document_id = uuid4().hex[:20]
        try:
            sheet = self._client.get_collection_sheet(collection)
            row = self._document_to_row(document_id, user_id, document, COLLECTION_COLUMNS[collection])
            sheet.append_row(row, value_input_option="RAW")
            return document_id
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to create {collection.value} row: {e}")

    async def list_all(
        self,
        user_id: str,
        collection: LedgerCollection,
    ) -> list[StoredDocument]:
        """All rows owned by the user."""
        columns = COLLECTION_COLUMNS[collection]
        try:
            sheet = self._client.get_collection_sheet(collection)
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to list {collection.value}: {e}")

        documents = []
        for row in all_rows:
            if len(row) < 2 or not row[0] or row[1] != user_id:
                continue
            try:
                documents.append(self._row_to_document(row, columns))
            except ValueError as e:
                logger.warning(
                    "undecodable_row_skipped",
                    collection=collection.value,
                    document_id=row[0],
                    user_id=user_id,
                    error=str(e),
                )
        return documents

    async def update(
        self,
        user_id: str,
        collection: LedgerCollection,
        document_id: str,
        fields: dict[str, Any],
    ) -> None:
        """Rewrite the row with the merged fields."""
        columns = COLLECTION_COLUMNS[collection]
        try:
            sheet = self._client.get_collection_sheet(collection)
            all_rows = sheet.get_all_values()

            idx = self._find_row(all_rows, user_id, document_id)
            if idx is None:
                raise not_found(collection, document_id, user_id)

            current = self._row_to_document(all_rows[idx - 1], columns)
            merged = merge_fields(dict(current), fields)
            new_row = self._document_to_row(document_id, user_id, merged, columns)
            sheet.update(range_name=f"A{idx}", values=[new_row], value_input_option="RAW")
        except (NotFoundError, PersistenceError):
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to update {collection.value} row: {e}")

    async def delete(
        self,
        user_id: str,
        collection: LedgerCollection,
        document_id: str,
    ) -> None:
        """Delete the row owned by the user."""
        try:
            sheet = self._client.get_collection_sheet(collection)
            idx = self._find_row(sheet.get_all_values(), user_id, document_id)
            if idx is None:
                raise not_found(collection, document_id, user_id)
            sheet.delete_rows(idx)
        except (NotFoundError, PersistenceError):
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to delete {collection.value} row: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of the activity trail.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        document = event.to_document()
        document["user_id"] = event.user_id or ""
        row = [_encode_cell(document.get(column)) for column in ACTIVITY_COLUMNS]
        try:
            self._client.get_activity_sheet().append_row(row, value_input_option="RAW")
            return True
        except Exception as e:
            raise PersistenceError(f"Failed to write audit event: {e}")

    async def get_recent_events(
        self,
        user_id: str,
        limit: int = 50,
    ) -> list[AuditEvent]:
        """Get recent events of one user, newest first."""
        try:
            all_rows = self._client.get_activity_sheet().get_all_values()[1:]
        except Exception as e:
            raise PersistenceError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if len(row) < 2 or not row[0] or row[1] != user_id:
                continue
            document = dict(zip(ACTIVITY_COLUMNS, row))
            events.append(AuditEvent.from_document(user_id, document))

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
