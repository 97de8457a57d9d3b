"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the persistent ledger because:
1. Users can look at their accounts and transactions directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- No transactions across worksheets. A save rewrites each worksheet in
  full, accounts last, so an interrupted save never shows balances that
  include rows the transactions sheet lacks.
- Limited query capabilities (we load everything and work in Python)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing business logic.
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from wealthwise.config import get_settings
from wealthwise.models.audit import AuditEvent, AuditEventType, AuditSeverity
from wealthwise.models.ledger import (
    Account,
    LedgerPreferences,
    LedgerSnapshot,
    LedgerTransaction,
)
from wealthwise.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


ACCOUNT_COLUMNS = [
    "id",
    "name",
    "account_type",
    "balance",
    "opening_balance",
    "account_holder",
    "branch",
    "notes",
]

TRANSACTION_COLUMNS = [
    "id",
    "date",
    "description",
    "amount",
    "type",
    "category",
    "sub_category",
    "account_id",
    "unit_details",
    "remarks",
    "transfer_account_id",
]

META_COLUMNS = ["key", "value_json"]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _row_to_dict(columns: list[str], row: list) -> dict:
    """Map a sheet row onto column names, dropping empty cells."""
    return {
        name: row[idx]
        for idx, name in enumerate(columns)
        if idx < len(row) and row[idx] != ""
    }


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @property
    def settings(self):
        return self._settings

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
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

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
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    One worksheet per record type, one record per row.
    Categories and preferences live as JSON in the Meta worksheet.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheets(self) -> tuple[gspread.Worksheet, gspread.Worksheet, gspread.Worksheet]:
        settings = self._client.settings
        return (
            self._client.get_worksheet(settings.accounts_sheet_name, ACCOUNT_COLUMNS),
            self._client.get_worksheet(settings.transactions_sheet_name, TRANSACTION_COLUMNS, rows=5000),
            self._client.get_worksheet(settings.meta_sheet_name, META_COLUMNS, rows=10),
        )

    @staticmethod
    def snapshot_to_rows(snapshot: LedgerSnapshot) -> dict[str, list[list]]:
        """Convert a snapshot into header + rows per worksheet."""
        accounts = [
            [
                a.id,
                a.name,
                a.account_type.value,
                str(a.balance),
                str(a.opening_balance),
                a.account_holder or "",
                a.branch or "",
                a.notes or "",
            ]
            for a in snapshot.accounts
        ]
        transactions = [
            [
                t.id,
                t.date.isoformat(),
                t.description,
                str(t.amount),
                t.type.value,
                t.category,
                t.sub_category,
                t.account_id,
                t.unit_details or "",
                t.remarks or "",
                t.transfer_account_id or "",
            ]
            for t in snapshot.transactions
        ]
        meta = [
            ["version", json.dumps(snapshot.version)],
            ["categories", json.dumps(snapshot.categories)],
            ["preferences", snapshot.preferences.model_dump_json()],
        ]
        return {
            "accounts": [ACCOUNT_COLUMNS, *accounts],
            "transactions": [TRANSACTION_COLUMNS, *transactions],
            "meta": [META_COLUMNS, *meta],
        }

    @staticmethod
    def rows_to_snapshot(
        account_rows: list[list],
        transaction_rows: list[list],
        meta_rows: list[list],
    ) -> LedgerSnapshot:
        """Rebuild a snapshot from worksheet values (header rows excluded)."""
        meta = {
            row[0]: json.loads(row[1])
            for row in meta_rows
            if len(row) >= 2 and row[0] and row[1]
        }
        data = {
            "accounts": [
                Account.model_validate(_row_to_dict(ACCOUNT_COLUMNS, row))
                for row in account_rows
                if row and row[0]
            ],
            "transactions": [
                LedgerTransaction.model_validate(_row_to_dict(TRANSACTION_COLUMNS, row))
                for row in transaction_rows
                if row and row[0]
            ],
        }
        if "version" in meta:
            data["version"] = meta["version"]
        if "categories" in meta:
            data["categories"] = meta["categories"]
        if "preferences" in meta:
            data["preferences"] = LedgerPreferences.model_validate(meta["preferences"])
        return LedgerSnapshot.model_validate(data)

    async def load(self) -> LedgerSnapshot:
        """Read all worksheets and rebuild the ledger."""
        try:
            accounts, transactions, meta = self._sheets()
            return self.rows_to_snapshot(
                accounts.get_all_values()[1:],
                transactions.get_all_values()[1:],
                meta.get_all_values()[1:],
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load ledger: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save(self, snapshot: LedgerSnapshot) -> None:
        """Rewrite every worksheet with the snapshot contents."""
        rows = self.snapshot_to_rows(snapshot)
        try:
            accounts, transactions, meta = self._sheets()
            # Accounts last: balances must never run ahead of the rows behind them
            for sheet, values in (
                (transactions, rows["transactions"]),
                (meta, rows["meta"]),
                (accounts, rows["accounts"]),
            ):
                # Overwrite in place, then trim what the old contents left below
                sheet.update(values=values, range_name="A1", value_input_option="RAW")
                sheet.batch_clear([f"A{len(values) + 1}:Z"])
        except Exception as e:
            raise StorageError(f"Failed to save ledger: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(
            self._client.settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        events = []
        for row in self._sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, TypeError) as e:
                logger.warning("audit_row_skipped", row=row[:3], error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._sheet().append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [
                e for e in self._read_events()
                if e.correlation_id == correlation_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._read_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
