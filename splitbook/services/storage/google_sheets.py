"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the shared backend because:
1. Everyone in a group can look at the raw expense rows
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for large histories (balances are recomputed from all rows)
- No transactions; a failed append may or may not have landed
- Limited query capabilities (we filter in Python)

Connection setup and whole-sheet reads are retried because they are
idempotent. Appends and deletes are never retried, so a double write can
only come from the caller.
"""

import json
from collections.abc import Iterable
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from splitbook.config import GoogleSheetsSettings, get_settings
from splitbook.models.audit import AuditEvent, AuditEventType, AuditSeverity
from splitbook.models.expense import Expense, ExpenseDraft, Split, User
from splitbook.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    PersistenceError,
    StorageConnectionError,
    UserDirectoryInterface,
)


logger = structlog.get_logger(__name__)


# Column mappings for Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "created_at",
    "date",
    "amount",
    "reason",
    "category",
    "paid_by",
    "participants_json",
    "splits_json",
]

# Column mappings for Users sheet
USER_COLUMNS = [
    "id",
    "email",
    "display_name",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "actor_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

_read_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _cell(row: list, index: int, default: str = "") -> str:
    """Handle missing trailing columns gracefully."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet creation.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @_read_retry
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
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            return spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
            return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.expenses_sheet_name, EXPENSE_COLUMNS, rows=1000
        )

    def get_users_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.users_sheet_name, USER_COLUMNS, rows=200
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


@_read_retry
def _read_data_rows(sheet: gspread.Worksheet) -> list[list]:
    """All rows except the header."""
    return sheet.get_all_values()[1:]


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """
    Google Sheets implementation of expense storage.

    One expense per row. Participants and splits are JSON-serialized.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _expense_to_row(self, expense: Expense) -> list:
        return [
            expense.id,
            datetime.now(timezone.utc).isoformat(),
            expense.date.isoformat(),
            str(expense.amount),
            expense.reason,
            expense.category,
            expense.paid_by,
            json.dumps(expense.participants),
            json.dumps([
                {"participant_id": s.participant_id, "amount": str(s.amount)}
                for s in expense.splits
            ]),
        ]

    def _row_to_expense(self, row: list) -> Expense:
        splits = [
            Split(participant_id=item["participant_id"], amount=Decimal(item["amount"]))
            for item in json.loads(_cell(row, 8, "[]"))
        ]
        return Expense(
            id=_cell(row, 0),
            date=datetime.fromisoformat(_cell(row, 2)),
            amount=Decimal(_cell(row, 3)),
            reason=_cell(row, 4),
            category=_cell(row, 5),
            paid_by=_cell(row, 6),
            participants=json.loads(_cell(row, 7, "[]")),
            splits=splits,
        )

    async def fetch_expenses(self, user_id: str) -> list[Expense]:
        try:
            rows = _read_data_rows(self._client.get_expenses_sheet())
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to list expenses: {e}")

        expenses = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                expense = self._row_to_expense(row)
            except Exception as e:
                logger.warning("malformed_expense_row", expense_id=row[0], error=str(e))
                continue
            if user_id in expense.participants:
                expenses.append(expense)

        expenses.sort(key=lambda e: e.date, reverse=True)
        return expenses

    async def create_expense(self, draft: ExpenseDraft) -> Expense:
        expense = Expense.from_draft(draft, uuid4().hex)
        try:
            sheet = self._client.get_expenses_sheet()
            sheet.append_row(self._expense_to_row(expense), value_input_option="RAW")
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save expense: {e}")
        return expense

    async def delete_expense(self, expense_id: str) -> bool:
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
                if row and row[0] == expense_id:
                    sheet.delete_rows(idx)
                    return True

            return False
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to delete expense: {e}")


class GoogleSheetsUserDirectory(UserDirectoryInterface):
    """User profiles, one per row."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_user(self, row: list) -> User:
        return User(
            id=_cell(row, 0),
            email=_cell(row, 1),
            display_name=_cell(row, 2) or None,
        )

    def _all_users(self) -> list[tuple[int, User]]:
        """(sheet row number, user) pairs."""
        try:
            rows = _read_data_rows(self._client.get_users_sheet())
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to read users: {e}")

        users = []
        for idx, row in enumerate(rows, start=2):
            if row and row[0]:
                users.append((idx, self._row_to_user(row)))
        return users

    async def get_user(self, user_id: str) -> User:
        for _, user in self._all_users():
            if user.id == user_id:
                return user
        raise NotFoundError(f"User not found: {user_id}")

    async def fetch_users_by_ids(self, user_ids: Iterable[str]) -> list[User]:
        wanted = set(user_ids)
        if not wanted:
            return []
        return [user for _, user in self._all_users() if user.id in wanted]

    async def search_users(
        self,
        text: str,
        exclude_ids: Iterable[str] = (),
    ) -> list[User]:
        if not text:
            return []
        excluded = set(exclude_ids)
        return [
            user for _, user in self._all_users()
            if user.display_name
            and user.display_name.startswith(text)
            and user.id not in excluded
        ]

    async def update_user_profile(self, user_id: str, display_name: str) -> User:
        users = self._all_users()

        if any(u.id != user_id and u.display_name == display_name for _, u in users):
            raise DuplicateError(f"Display name already taken: {display_name}")

        for row_number, user in users:
            if user.id == user_id:
                try:
                    sheet = self._client.get_users_sheet()
                    sheet.update_cell(row_number, USER_COLUMNS.index("display_name") + 1, display_name)
                except Exception as e:
                    raise PersistenceError(f"Failed to update user: {e}")
                return user.model_copy(update={"display_name": display_name})

        raise NotFoundError(f"User not found: {user_id}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            actor_id=_cell(row, 4) or None,
            entity_type=_cell(row, 5) or None,
            entity_id=_cell(row, 6) or None,
            correlation_id=UUID(_cell(row, 7)) if _cell(row, 7) else None,
            description=_cell(row, 8),
            details=json.loads(_cell(row, 9)) if _cell(row, 9) else {},
            error_message=_cell(row, 10) or None,
            is_user_action=_cell(row, 11).lower() == "true",
        )

    def _all_events(self) -> list[AuditEvent]:
        try:
            rows = _read_data_rows(self._client.get_audit_sheet())
        except Exception as e:
            raise PersistenceError(f"Failed to get audit events: {e}")

        events = []
        for row in rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_append_failed", event_id=str(event.event_id), error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._all_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
        actor_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._all_events()
            if actor_id is None or e.actor_id == actor_id
        ]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
