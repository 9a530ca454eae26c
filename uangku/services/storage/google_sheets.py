"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as a storage backend because:
1. Users can view and fix their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No row-level security (each user gets their own spreadsheet, and
  user_id is still stored and filtered on)
- Limited query capabilities (we filter in Python)

One worksheet per record kind. Worksheets are created with a header
row on first use.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional, TypeVar
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from uangku.config import GoogleSheetsSettings, get_settings
from uangku.models.ledger import (
    Account,
    AccountRole,
    AccountType,
    Transaction,
    TransactionType,
    Transfer,
)
from uangku.models.audit import AuditEvent, AuditEventType, AuditSeverity
from uangku.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    in_window,
)


logger = structlog.get_logger("uangku.storage.sheets")


ACCOUNT_COLUMNS = [
    "id",
    "user_id",
    "name",
    "type",
    "role",
    "opening_balance",
    "created_at",
]

TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "date",
    "amount",
    "type",
    "account_id",
    "category",
    "note",
    "created_at",
]

TRANSFER_COLUMNS = [
    "id",
    "user_id",
    "date",
    "amount",
    "admin_fee",
    "from_account_id",
    "to_account_id",
    "note",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

Record = TypeVar("Record", Account, Transaction, Transfer)

_retry = retry(
    retry=retry_if_not_exception_type(DuplicateError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows and blank cells."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _optional_datetime(value: str) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @_retry
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

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
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

    def get_accounts_sheet(self) -> gspread.Worksheet:
        """Get or create the Accounts worksheet."""
        return self._get_or_create(
            self._settings.accounts_sheet_name, ACCOUNT_COLUMNS, rows=100
        )

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, rows=1000
        )

    def get_transfers_sheet(self) -> gspread.Worksheet:
        """Get or create the Transfers worksheet."""
        return self._get_or_create(
            self._settings.transfers_sheet_name, TRANSFER_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Records are stored one per row; column 0 is always the record ID
    and column 1 the owning user ID.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    @staticmethod
    def _account_to_row(account: Account) -> list:
        return [
            str(account.id),
            str(account.user_id),
            account.name,
            account.type.value,
            account.role.value,
            str(account.opening_balance),
            account.created_at.isoformat(),
        ]

    @staticmethod
    def _row_to_account(row: list) -> Account:
        return Account(
            id=UUID(_cell(row, 0)),
            user_id=UUID(_cell(row, 1)),
            name=_cell(row, 2),
            type=AccountType(_cell(row, 3, AccountType.BANK.value)),
            role=AccountRole(_cell(row, 4, AccountRole.SPEND.value)),
            opening_balance=Decimal(_cell(row, 5, "0")),
            created_at=datetime.fromisoformat(_cell(row, 6)),
        )

    @staticmethod
    def _transaction_to_row(transaction: Transaction) -> list:
        return [
            str(transaction.id),
            str(transaction.user_id),
            transaction.date,
            str(transaction.amount),
            transaction.type.value,
            str(transaction.account_id),
            transaction.category,
            transaction.note or "",
            transaction.created_at.isoformat() if transaction.created_at else "",
        ]

    @staticmethod
    def _row_to_transaction(row: list) -> Transaction:
        return Transaction(
            id=UUID(_cell(row, 0)),
            user_id=UUID(_cell(row, 1)),
            date=_cell(row, 2),
            amount=Decimal(_cell(row, 3)),
            type=TransactionType(_cell(row, 4)),
            account_id=UUID(_cell(row, 5)),
            category=_cell(row, 6, "General"),
            note=_cell(row, 7) or None,
            created_at=_optional_datetime(_cell(row, 8)),
        )

    @staticmethod
    def _transfer_to_row(transfer: Transfer) -> list:
        return [
            str(transfer.id),
            str(transfer.user_id),
            transfer.date,
            str(transfer.amount),
            str(transfer.admin_fee) if transfer.admin_fee is not None else "",
            str(transfer.from_account_id),
            str(transfer.to_account_id),
            transfer.note or "",
            transfer.created_at.isoformat() if transfer.created_at else "",
        ]

    @staticmethod
    def _row_to_transfer(row: list) -> Transfer:
        return Transfer(
            id=UUID(_cell(row, 0)),
            user_id=UUID(_cell(row, 1)),
            date=_cell(row, 2),
            amount=Decimal(_cell(row, 3)),
            admin_fee=Decimal(_cell(row, 4)) if _cell(row, 4) else None,
            from_account_id=UUID(_cell(row, 5)),
            to_account_id=UUID(_cell(row, 6)),
            note=_cell(row, 7) or None,
            created_at=_optional_datetime(_cell(row, 8)),
        )

    # -------------------------------------------------------------------------
    # Generic sheet operations
    # -------------------------------------------------------------------------

    @staticmethod
    def _read_rows(
        sheet: gspread.Worksheet,
        user_id: UUID,
        parse: Callable[[list], Record],
    ) -> list[Record]:
        """Parse every row owned by user_id; malformed rows are logged and skipped."""
        records = []
        for row_number, row in enumerate(sheet.get_all_values()[1:], start=2):  # Row 1 is header
            if not row or not row[0] or _cell(row, 1) != str(user_id):
                continue
            try:
                records.append(parse(row))
            except Exception as e:
                logger.warning(
                    "sheet_row_skipped",
                    sheet=getattr(sheet, "title", None),
                    row_number=row_number,
                    record_id=row[0],
                    error=str(e),
                )
        return records

    @staticmethod
    def _find_row(sheet: gspread.Worksheet, record_id: UUID, user_id: UUID) -> Optional[int]:
        """1-based sheet row number for a record, or None."""
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):  # Row 1 is header
            if row and row[0] == str(record_id) and _cell(row, 1) == str(user_id):
                return idx
        return None

    def _append(self, sheet: gspread.Worksheet, record: Record, to_row: Callable) -> bool:
        if self._find_row(sheet, record.id, record.user_id) is not None:
            raise DuplicateError(f"{type(record).__name__} already exists: {record.id}")
        sheet.append_row(to_row(record), value_input_option="RAW")
        return True

    def _replace(self, sheet: gspread.Worksheet, record: Record, to_row: Callable) -> bool:
        idx = self._find_row(sheet, record.id, record.user_id)
        if idx is None:
            raise NotFoundError(f"{type(record).__name__} not found: {record.id}")
        for col_idx, value in enumerate(to_row(record), start=1):
            sheet.update_cell(idx, col_idx, value)
        return True

    def _remove(self, sheet: gspread.Worksheet, record_id: UUID, user_id: UUID) -> bool:
        idx = self._find_row(sheet, record_id, user_id)
        if idx is None:
            return False
        sheet.delete_rows(idx)
        return True

    @staticmethod
    def _window(
        records: list[Record],
        date_from: Optional[str],
        date_to: Optional[str],
        limit: Optional[int],
    ) -> list[Record]:
        selected = [r for r in records if in_window(r.date, date_from, date_to)]
        # Newest first
        selected.sort(
            key=lambda r: (r.date, r.created_at.isoformat() if r.created_at else ""),
            reverse=True,
        )
        return selected[:limit] if limit else selected

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def list_accounts(self, user_id: UUID) -> list[Account]:
        """List a user's accounts, oldest first."""
        try:
            sheet = self._client.get_accounts_sheet()
            accounts = self._read_rows(sheet, user_id, self._row_to_account)
            accounts.sort(key=lambda a: a.created_at)
            return accounts
        except Exception as e:
            raise StorageError(f"Failed to list accounts: {e}")

    async def get_account(self, user_id: UUID, account_id: UUID) -> Optional[Account]:
        """Retrieve one account by ID."""
        for account in await self.list_accounts(user_id):
            if account.id == account_id:
                return account
        return None

    @_retry
    async def save_account(self, account: Account) -> bool:
        """Save a new account."""
        try:
            sheet = self._client.get_accounts_sheet()
            return self._append(sheet, account, self._account_to_row)
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save account: {e}")

    async def update_account(self, account: Account) -> bool:
        """Replace an existing account row."""
        try:
            sheet = self._client.get_accounts_sheet()
            return self._replace(sheet, account, self._account_to_row)
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update account: {e}")

    async def delete_account(self, user_id: UUID, account_id: UUID) -> bool:
        """Delete an account row."""
        try:
            sheet = self._client.get_accounts_sheet()
            return self._remove(sheet, account_id, user_id)
        except Exception as e:
            raise StorageError(f"Failed to delete account: {e}")

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def list_transactions(
        self,
        user_id: UUID,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        """List transactions with an optional date window."""
        try:
            sheet = self._client.get_transactions_sheet()
            records = self._read_rows(sheet, user_id, self._row_to_transaction)
            return self._window(records, date_from, date_to, limit)
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

    @_retry
    async def save_transaction(self, transaction: Transaction) -> bool:
        """Save a new transaction."""
        try:
            sheet = self._client.get_transactions_sheet()
            return self._append(sheet, transaction, self._transaction_to_row)
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def update_transaction(self, transaction: Transaction) -> bool:
        """Replace an existing transaction row."""
        try:
            sheet = self._client.get_transactions_sheet()
            return self._replace(sheet, transaction, self._transaction_to_row)
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

    async def delete_transaction(self, user_id: UUID, transaction_id: UUID) -> bool:
        """Delete a transaction row."""
        try:
            sheet = self._client.get_transactions_sheet()
            return self._remove(sheet, transaction_id, user_id)
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    async def list_transfers(
        self,
        user_id: UUID,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Transfer]:
        """List transfers with an optional date window."""
        try:
            sheet = self._client.get_transfers_sheet()
            records = self._read_rows(sheet, user_id, self._row_to_transfer)
            return self._window(records, date_from, date_to, limit)
        except Exception as e:
            raise StorageError(f"Failed to list transfers: {e}")

    @_retry
    async def save_transfer(self, transfer: Transfer) -> bool:
        """Save a new transfer."""
        try:
            sheet = self._client.get_transfers_sheet()
            return self._append(sheet, transfer, self._transfer_to_row)
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save transfer: {e}")

    async def delete_transfer(self, user_id: UUID, transfer_id: UUID) -> bool:
        """Delete a transfer row."""
        try:
            sheet = self._client.get_transfers_sheet()
            return self._remove(sheet, transfer_id, user_id)
        except Exception as e:
            raise StorageError(f"Failed to delete transfer: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            user_id=UUID(_cell(row, 4)) if _cell(row, 4) else None,
            entity_type=_cell(row, 5) or None,
            entity_id=UUID(_cell(row, 6)) if _cell(row, 6) else None,
            correlation_id=UUID(_cell(row, 7)) if _cell(row, 7) else None,
            description=_cell(row, 8),
            details=json.loads(_cell(row, 9)) if _cell(row, 9) else {},
            error_message=_cell(row, 10) or None,
            is_user_action=_cell(row, 11).lower() == "true",
        )

    def _all_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue
        return events

    @_retry
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [e for e in self._all_events() if e.correlation_id == correlation_id]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        try:
            events = [
                e for e in self._all_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events, newest first."""
        try:
            events = self._all_events()
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
