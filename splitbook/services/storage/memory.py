"""
In-Memory Storage Implementation

Keeps everything in process. Used by the test-suite and for local
development (STORAGE_BACKEND=memory). Behaves like the Sheets backend:
ids are assigned on create, expenses come back newest first, unknown ids
are dropped from batch lookups.
"""

from collections.abc import Iterable
from typing import Optional
from uuid import UUID, uuid4

from splitbook.models.audit import AuditEvent
from splitbook.models.expense import Expense, ExpenseDraft, User
from splitbook.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    PersistenceError,
    UserDirectoryInterface,
)


class InMemoryExpenseStorage(ExpenseStorageInterface):

    def __init__(self, expenses: Iterable[Expense] = ()):
        self._expenses: dict[str, Expense] = {e.id: e for e in expenses}
        # Set to an exception to make the next calls fail
        self.fail_with: Optional[PersistenceError] = None

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def fetch_expenses(self, user_id: str) -> list[Expense]:
        self._check()
        mine = [e for e in self._expenses.values() if user_id in e.participants]
        mine.sort(key=lambda e: e.date, reverse=True)
        return mine

    async def create_expense(self, draft: ExpenseDraft) -> Expense:
        self._check()
        expense = Expense.from_draft(draft, uuid4().hex)
        self._expenses[expense.id] = expense
        return expense

    async def delete_expense(self, expense_id: str) -> bool:
        self._check()
        return self._expenses.pop(expense_id, None) is not None

    def __len__(self) -> int:
        return len(self._expenses)


class InMemoryUserDirectory(UserDirectoryInterface):

    def __init__(self, users: Iterable[User] = ()):
        self._users: dict[str, User] = {u.id: u for u in users}

    def add(self, user: User) -> None:
        self._users[user.id] = user

    async def get_user(self, user_id: str) -> User:
        try:
            return self._users[user_id]
        except KeyError:
            raise NotFoundError(f"User not found: {user_id}")

    async def fetch_users_by_ids(self, user_ids: Iterable[str]) -> list[User]:
        return [self._users[uid] for uid in dict.fromkeys(user_ids) if uid in self._users]

    async def search_users(
        self,
        text: str,
        exclude_ids: Iterable[str] = (),
    ) -> list[User]:
        if not text:
            return []
        excluded = set(exclude_ids)
        return [
            u for u in self._users.values()
            if u.display_name
            and u.display_name.startswith(text)
            and u.id not in excluded
        ]

    async def update_user_profile(self, user_id: str, display_name: str) -> User:
        user = await self.get_user(user_id)
        for other in self._users.values():
            if other.id != user_id and other.display_name == display_name:
                raise DuplicateError(f"Display name already taken: {display_name}")
        updated = user.model_copy(update={"display_name": display_name})
        self._users[user_id] = updated
        return updated


class InMemoryAuditStorage(AuditStorageInterface):

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
        actor_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if actor_id is None or e.actor_id == actor_id]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
