"""
Abstract Storage Interface

DESIGN DECISION: The ledger core never talks to a backend directly.
These interfaces are the collaborator contract:
1. Expenses are fetched, created and deleted through ExpenseStorageInterface
2. User profiles are looked up and renamed through UserDirectoryInterface
3. Audit events are appended through AuditStorageInterface

Implementations exist for Google Sheets and for in-memory use in tests.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Optional
from uuid import UUID

from splitbook.models.audit import AuditEvent
from splitbook.models.expense import Expense, ExpenseDraft, User


class ExpenseStorageInterface(ABC):
    """Abstract interface for expense storage operations."""

    @abstractmethod
    async def fetch_expenses(self, user_id: str) -> list[Expense]:
        """
        Get every expense the user participates in.

        Returns:
            Expenses ordered by date, newest first

        Raises:
            PersistenceError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def create_expense(self, draft: ExpenseDraft) -> Expense:
        """
        Store a new expense.

        The backend assigns the id. The caller provides the date.
        Never retried: a failed call may or may not have stored the row.

        Raises:
            PersistenceError: If the save fails
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: str) -> bool:
        """
        Delete an expense by ID.

        Returns:
            True if deleted, False if no such expense
        """
        pass


class UserDirectoryInterface(ABC):
    """Abstract interface for user profile lookups."""

    @abstractmethod
    async def get_user(self, user_id: str) -> User:
        """
        Get a single user.

        Raises:
            NotFoundError: If no user has this id
        """
        pass

    @abstractmethod
    async def fetch_users_by_ids(self, user_ids: Iterable[str]) -> list[User]:
        """Batch lookup. Unknown ids are silently omitted."""
        pass

    @abstractmethod
    async def search_users(
        self,
        text: str,
        exclude_ids: Iterable[str] = (),
    ) -> list[User]:
        """Users whose display name starts with text, minus exclude_ids."""
        pass

    @abstractmethod
    async def update_user_profile(self, user_id: str, display_name: str) -> User:
        """
        Change a user's display name.

        Raises:
            DuplicateError: If another user already has this name
            NotFoundError: If the user doesn't exist
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Returns True if logged successfully."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events for one user action, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
        actor_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        """The most recent events, newest first."""
        pass


class PersistenceError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(PersistenceError):
    """Entity not found in storage."""
    pass


class DuplicateError(PersistenceError):
    """Attempted to store a value that must be unique."""
    pass


class StorageConnectionError(PersistenceError):
    """Could not connect to storage backend."""
    pass
