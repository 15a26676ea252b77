"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the persistent backend because:
1. Non-technical users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (multi-row operations are sagas, see pocket_ledger.saga)
- Limited query capabilities (we filter in Python)
- Version checks are read-then-write, so they narrow the race window
  rather than closing it

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing ledger logic.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pocket_ledger.config import get_settings
from pocket_ledger.models.account import (
    AccountBase,
    AccountKind,
    parse_account,
    quantize_money,
    utcnow,
)
from pocket_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from pocket_ledger.models.budget import BudgetParticipant, SharedBudget, SplitType
from pocket_ledger.models.ledger import EntryKind, LedgerEntry
from pocket_ledger.services.storage.interface import (
    AccountStorageInterface,
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    DuplicateError,
    EntryStorageInterface,
    NotFoundError,
    StaleVersionError,
    StorageError,
)


# Column mappings for Accounts sheet
ACCOUNT_COLUMNS = [
    "id",
    "kind",
    "name",
    "initial_balance",
    "current_balance",
    "version",
    "created_at",
    "updated_at",
    "attributes_json",  # kind-specific fields (cut_off_day, credit_limit, ...)
]

# Column mappings for Entries sheet
ENTRY_COLUMNS = [
    "id",
    "account_id",
    "kind",
    "amount",
    "entry_date",
    "description",
    "linked_entry_id",
    "is_adjustment",
    "correlation_id",
    "installments_total_amount",
    "installments_count",
    "installment_number",
    "created_at",
    "deleted_at",
]

# Column mappings for SharedBudgets sheet
BUDGET_COLUMNS = [
    "id",
    "name",
    "description",
    "total_amount",
    "split_type",
    "user_share",
    "creditor_id",
    "created_at",
    "cancelled_at",
    "participants_json",
    "creditor_entry_id",
]

# Column mappings for Audit sheet
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

_BASE_ACCOUNT_FIELDS = {
    "id", "kind", "name", "initial_balance", "current_balance",
    "version", "created_at", "updated_at",
}

# Transient API failures are retried; our own errors are not
_api_retry = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _safe_getter(row: list):
    """Return a getter that tolerates short rows and empty cells."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
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

    def _worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
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

    def get_accounts_sheet(self) -> gspread.Worksheet:
        return self._worksheet(self._settings.accounts_sheet_name, ACCOUNT_COLUMNS)

    def get_entries_sheet(self) -> gspread.Worksheet:
        return self._worksheet(self._settings.entries_sheet_name, ENTRY_COLUMNS, rows=5000)

    def get_budgets_sheet(self) -> gspread.Worksheet:
        return self._worksheet(self._settings.budgets_sheet_name, BUDGET_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self._worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)

    @_api_retry
    def read_rows(self, sheet: gspread.Worksheet) -> list[list]:
        """All data rows, header excluded."""
        return sheet.get_all_values()[1:]

    @_api_retry
    def append_row(self, sheet: gspread.Worksheet, row: list) -> None:
        sheet.append_row(row, value_input_option="RAW")

    @_api_retry
    def update_cells(self, sheet: gspread.Worksheet, row_number: int, values: dict[int, str]) -> None:
        """Write {column_index: value} into one row (1-based indices)."""
        for col_idx, value in values.items():
            sheet.update_cell(row_number, col_idx, value)

    @_api_retry
    def delete_row(self, sheet: gspread.Worksheet, row_number: int) -> None:
        sheet.delete_rows(row_number)

    def find_row(self, sheet: gspread.Worksheet, entity_id: UUID) -> tuple[Optional[int], Optional[list]]:
        """Locate a row by the ID in column A. Returns (1-based row number, row)."""
        for idx, row in enumerate(self.read_rows(sheet), start=2):  # Row 1 is header
            if row and row[0] == str(entity_id):
                return idx, row
        return None, None


class GoogleSheetsAccountStorage(AccountStorageInterface):
    """
    Google Sheets implementation of account storage.

    Common fields get their own columns; fields that only some kinds
    have are JSON-serialized into attributes_json.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _account_to_row(self, account: AccountBase) -> list:
        """Convert an account to a spreadsheet row."""
        attributes = account.model_dump(mode="json", exclude=_BASE_ACCOUNT_FIELDS)
        return [
            str(account.id),
            account.kind,
            account.name,
            str(account.initial_balance),
            str(account.current_balance),
            str(account.version),
            account.created_at.isoformat(),
            account.updated_at.isoformat(),
            json.dumps(attributes) if attributes else "",
        ]

    def _row_to_account(self, row: list) -> AccountBase:
        """Convert a spreadsheet row to the right account variant."""
        safe_get = _safe_getter(row)

        data = {
            "id": safe_get(0),
            "kind": safe_get(1),
            "name": safe_get(2),
            "initial_balance": Decimal(safe_get(3, "0")),
            "current_balance": Decimal(safe_get(4, "0")),
            "version": int(safe_get(5, "0")),
            "created_at": datetime.fromisoformat(safe_get(6)),
            "updated_at": datetime.fromisoformat(safe_get(7)),
        }
        attributes_json = safe_get(8)
        if attributes_json:
            data.update(json.loads(attributes_json))
        return parse_account(data)

    async def create_account(self, account: AccountBase) -> bool:
        try:
            sheet = self._client.get_accounts_sheet()
            row_number, _ = self._client.find_row(sheet, account.id)
            if row_number is not None:
                raise DuplicateError(f"Account already exists: {account.id}")
            self._client.append_row(sheet, self._account_to_row(account))
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save account: {e}")

    async def get_account(self, account_id: UUID) -> Optional[AccountBase]:
        try:
            sheet = self._client.get_accounts_sheet()
            _, row = self._client.find_row(sheet, account_id)
            return self._row_to_account(row) if row else None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get account: {e}")

    async def list_accounts(
        self,
        kind: Optional[AccountKind] = None,
    ) -> list[AccountBase]:
        try:
            sheet = self._client.get_accounts_sheet()
            accounts = []
            for row in self._client.read_rows(sheet):
                if not row or not row[0]:  # Skip empty rows
                    continue
                if kind and row[1] != AccountKind(kind).value:
                    continue
                accounts.append(self._row_to_account(row))

            accounts.sort(key=lambda a: a.created_at)
            return accounts
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list accounts: {e}")

    async def update_balance(
        self,
        account_id: UUID,
        new_balance: Decimal,
        expected_version: int,
    ) -> AccountBase:
        try:
            sheet = self._client.get_accounts_sheet()
            row_number, row = self._client.find_row(sheet, account_id)
            if row_number is None:
                raise NotFoundError("Account", account_id)

            stored = self._row_to_account(row)
            if stored.version != expected_version:
                raise StaleVersionError(account_id, expected_version, stored.version)

            updated = stored.model_copy(update={
                "current_balance": quantize_money(new_balance),
                "version": stored.version + 1,
                "updated_at": utcnow(),
            })
            self._client.update_cells(sheet, row_number, {
                ACCOUNT_COLUMNS.index("current_balance") + 1: str(updated.current_balance),
                ACCOUNT_COLUMNS.index("version") + 1: str(updated.version),
                ACCOUNT_COLUMNS.index("updated_at") + 1: updated.updated_at.isoformat(),
            })
            return updated
        except (NotFoundError, StorageError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to update account balance: {e}")


class GoogleSheetsEntryStorage(EntryStorageInterface):
    """Google Sheets implementation of ledger entry storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _entry_to_row(self, entry: LedgerEntry) -> list:
        """Convert a LedgerEntry to a spreadsheet row."""
        return [
            str(entry.id),
            str(entry.account_id),
            entry.kind.value,
            str(entry.amount),
            entry.entry_date.isoformat(),
            entry.description,
            str(entry.linked_entry_id) if entry.linked_entry_id else "",
            str(entry.is_adjustment),
            str(entry.correlation_id) if entry.correlation_id else "",
            str(entry.installments_total_amount) if entry.installments_total_amount else "",
            str(entry.installments_count) if entry.installments_count else "",
            str(entry.installment_number) if entry.installment_number else "",
            entry.created_at.isoformat(),
            entry.deleted_at.isoformat() if entry.deleted_at else "",
        ]

    def _row_to_entry(self, row: list) -> LedgerEntry:
        """Convert a spreadsheet row to a LedgerEntry."""
        safe_get = _safe_getter(row)

        return LedgerEntry(
            id=UUID(safe_get(0)),
            account_id=UUID(safe_get(1)),
            kind=EntryKind(safe_get(2)),
            amount=Decimal(safe_get(3)),
            entry_date=date.fromisoformat(safe_get(4)),
            description=safe_get(5),
            linked_entry_id=UUID(safe_get(6)) if safe_get(6) else None,
            is_adjustment=safe_get(7).lower() == "true",
            correlation_id=UUID(safe_get(8)) if safe_get(8) else None,
            installments_total_amount=Decimal(safe_get(9)) if safe_get(9) else None,
            installments_count=int(safe_get(10)) if safe_get(10) else None,
            installment_number=int(safe_get(11)) if safe_get(11) else None,
            created_at=datetime.fromisoformat(safe_get(12)),
            deleted_at=datetime.fromisoformat(safe_get(13)) if safe_get(13) else None,
        )

    async def save_entry(self, entry: LedgerEntry) -> bool:
        try:
            sheet = self._client.get_entries_sheet()
            row_number, _ = self._client.find_row(sheet, entry.id)
            if row_number is not None:
                raise DuplicateError(f"Entry already exists: {entry.id}")
            self._client.append_row(sheet, self._entry_to_row(entry))
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save entry: {e}")

    async def get_entry(self, entry_id: UUID) -> Optional[LedgerEntry]:
        try:
            sheet = self._client.get_entries_sheet()
            _, row = self._client.find_row(sheet, entry_id)
            return self._row_to_entry(row) if row else None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get entry: {e}")

    async def list_entries(
        self,
        account_id: UUID,
        include_deleted: bool = False,
    ) -> list[LedgerEntry]:
        try:
            sheet = self._client.get_entries_sheet()
            entries = []
            for row in self._client.read_rows(sheet):
                if not row or len(row) < 2 or row[1] != str(account_id):
                    continue
                entry = self._row_to_entry(row)
                if entry.is_deleted and not include_deleted:
                    continue
                entries.append(entry)

            entries.sort(key=lambda e: (e.entry_date, e.created_at))
            return entries
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list entries: {e}")

    async def mark_deleted(
        self,
        entry_id: UUID,
        deleted_at: datetime,
    ) -> LedgerEntry:
        try:
            sheet = self._client.get_entries_sheet()
            row_number, row = self._client.find_row(sheet, entry_id)
            if row_number is None:
                raise NotFoundError("Entry", entry_id)

            self._client.update_cells(sheet, row_number, {
                ENTRY_COLUMNS.index("deleted_at") + 1: deleted_at.isoformat(),
            })
            return self._row_to_entry(row).model_copy(update={"deleted_at": deleted_at})
        except (NotFoundError, StorageError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to mark entry deleted: {e}")

    async def remove_entry(self, entry_id: UUID) -> bool:
        try:
            sheet = self._client.get_entries_sheet()
            row_number, _ = self._client.find_row(sheet, entry_id)
            if row_number is None:
                return False
            self._client.delete_row(sheet, row_number)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to remove entry: {e}")


class GoogleSheetsBudgetStorage(BudgetStorageInterface):
    """
    Google Sheets implementation of shared budget storage.

    One budget per row; participants are JSON-serialized.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _budget_to_row(self, budget: SharedBudget) -> list:
        return [
            str(budget.id),
            budget.name,
            budget.description or "",
            str(budget.total_amount),
            budget.split_type.value,
            str(budget.user_share),
            str(budget.creditor_id) if budget.creditor_id else "",
            budget.created_at.isoformat(),
            budget.cancelled_at.isoformat() if budget.cancelled_at else "",
            json.dumps([
                p.model_dump(mode="json", exclude={"is_paid"})
                for p in budget.participants
            ]),
            str(budget.creditor_entry_id) if budget.creditor_entry_id else "",
        ]

    def _row_to_budget(self, row: list) -> SharedBudget:
        safe_get = _safe_getter(row)

        participants = []
        participants_json = safe_get(9)
        if participants_json:
            participants = [
                BudgetParticipant(**item) for item in json.loads(participants_json)
            ]

        return SharedBudget(
            id=UUID(safe_get(0)),
            name=safe_get(1),
            description=safe_get(2) or None,
            total_amount=Decimal(safe_get(3)),
            split_type=SplitType(safe_get(4)),
            user_share=Decimal(safe_get(5)),
            creditor_id=UUID(safe_get(6)) if safe_get(6) else None,
            creditor_entry_id=UUID(safe_get(10)) if safe_get(10) else None,
            created_at=datetime.fromisoformat(safe_get(7)),
            cancelled_at=datetime.fromisoformat(safe_get(8)) if safe_get(8) else None,
            participants=participants,
        )

    async def save_budget(self, budget: SharedBudget) -> bool:
        try:
            sheet = self._client.get_budgets_sheet()
            row_number, _ = self._client.find_row(sheet, budget.id)
            if row_number is not None:
                raise DuplicateError(f"Budget already exists: {budget.id}")
            self._client.append_row(sheet, self._budget_to_row(budget))
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save budget: {e}")

    async def get_budget(self, budget_id: UUID) -> Optional[SharedBudget]:
        try:
            sheet = self._client.get_budgets_sheet()
            _, row = self._client.find_row(sheet, budget_id)
            return self._row_to_budget(row) if row else None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get budget: {e}")

    async def update_budget(self, budget: SharedBudget) -> bool:
        try:
            sheet = self._client.get_budgets_sheet()
            row_number, _ = self._client.find_row(sheet, budget.id)
            if row_number is None:
                raise NotFoundError("Budget", budget.id)

            new_row = self._budget_to_row(budget)
            self._client.update_cells(sheet, row_number, {
                col_idx: value for col_idx, value in enumerate(new_row, start=1)
            })
            return True
        except (NotFoundError, StorageError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to update budget: {e}")

    async def list_budgets(self, include_cancelled: bool = False) -> list[SharedBudget]:
        try:
            sheet = self._client.get_budgets_sheet()
            budgets = []
            for row in self._client.read_rows(sheet):
                if not row or not row[0]:
                    continue
                budget = self._row_to_budget(row)
                if budget.cancelled_at is not None and not include_cancelled:
                    continue
                budgets.append(budget)

            # Newest first
            budgets.sort(key=lambda b: b.created_at, reverse=True)
            return budgets
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list budgets: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _safe_getter(row)

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            self._client.append_row(sheet, event.to_sheets_row())
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            events = [
                self._row_to_event(row)
                for row in self._client.read_rows(sheet)
                if row and len(row) > 6 and row[6] == str(correlation_id)
            ]
            # Sort chronologically
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            events = [
                self._row_to_event(row)
                for row in self._client.read_rows(sheet)
                if row and row[0]
            ]
            # Sort newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
