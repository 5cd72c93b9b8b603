"""
Session Orchestrator for Splitbook

This module ties the ledger core to its collaborators and defines the
end-to-end flows:
1. Refresh (fetch expenses → resolve names → derived views)
2. Add expense (split → validate → store → refresh)
3. Settle debt (balance → settlement → store → refresh)
4. Delete expense (payer check → delete → refresh)
5. Profile and user search

DESIGN DECISION: The session owns the expense snapshot. Everything shown
to the user (balances, monthly spend, transaction lists) is a pure
derivation of that snapshot, and the snapshot is only ever replaced
wholesale by refresh(). A failed store call leaves it untouched.

Nothing here retries. A double-submitted action creates two records;
callers should block resubmission while a request is outstanding.
"""

import asyncio
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

import pydantic
import structlog

from splitbook.audit import AuditLogger, create_correlation_id
from splitbook.config import LedgerSettings, get_settings
from splitbook.ledger import (
    ValidationError,
    build_settlement,
    calculate_splits,
    compute_balances,
    monthly_spend,
    to_amount,
)
from splitbook.ledger.dates import resolve_zone
from splitbook.ledger.money import AmountLike
from splitbook.models.expense import (
    BalanceSummary,
    Expense,
    ExpenseDraft,
    FilterKind,
    HistoryEntry,
    SplitMode,
    TransactionView,
    User,
    derive_label,
)
from splitbook.queries import (
    describe_transaction,
    filter_transactions,
    friend_history,
    recent_transactions,
)
from splitbook.services.auth import AuthProviderInterface
from splitbook.services.storage import (
    DuplicateError,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsUserDirectory,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryUserDirectory,
    NotFoundError,
    PersistenceError,
    UserDirectoryInterface,
)
from splitbook.validation import ExpenseValidator


logger = structlog.get_logger(__name__)


class UserSearch:
    """
    Debounced user search.

    Each call waits for a quiet period. If another call arrives in the
    meantime the older one is superseded and returns None, both before
    and after the directory request.
    """

    def __init__(
        self,
        directory: UserDirectoryInterface,
        min_length: int = 2,
        quiet_period: float = 0.3,
    ):
        self._directory = directory
        self._min_length = min_length
        self._quiet_period = quiet_period
        self._generation = 0

    async def search(
        self,
        text: str,
        exclude_ids: Iterable[str] = (),
    ) -> Optional[list[User]]:
        self._generation += 1
        generation = self._generation

        text = text.strip()
        if len(text) < self._min_length:
            return []

        await asyncio.sleep(self._quiet_period)
        if generation != self._generation:
            return None

        results = await self._directory.search_users(text, list(exclude_ids))
        if generation != self._generation:
            return None
        return results


class LedgerSession:
    """
    Session-scoped ledger context for one signed-in user.

    Flow:
    1. refresh() loads the user's expenses and participant names
    2. balances(), monthly_spend(), transactions() derive views
    3. add_expense(), settle(), delete_expense() mutate through the store
       and then refresh

    Derived balances are memoized on the identity of the snapshot.
    """

    def __init__(
        self,
        user: User,
        expense_storage: ExpenseStorageInterface,
        user_directory: UserDirectoryInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[ExpenseValidator] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._user = user
        self._expense_storage = expense_storage
        self._user_directory = user_directory
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().ledger
        self._validator = validator or ExpenseValidator(self._settings)
        self._tz = resolve_zone(self._settings.timezone)

        self._expenses: tuple[Expense, ...] = ()
        self._names: dict[str, str] = {user.id: user.label}
        self._balance_cache: Optional[tuple[tuple, dict, BalanceSummary]] = None
        self.loaded = False
        self.stale = False

        self.user_search = UserSearch(
            user_directory,
            min_length=self._settings.min_search_length,
            quiet_period=self._settings.search_debounce_seconds,
        )

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    @property
    def user(self) -> User:
        return self._user

    @property
    def expenses(self) -> tuple[Expense, ...]:
        return self._expenses

    @property
    def names(self) -> Mapping[str, str]:
        return self._names

    async def refresh(self, correlation_id: Optional[UUID] = None) -> tuple[Expense, ...]:
        """
        Reload the expense snapshot and the names of everyone in it.

        Raises:
            PersistenceError: expenses could not be fetched (snapshot unchanged)
        """
        try:
            expenses = await self._expense_storage.fetch_expenses(self._user.id)
        except PersistenceError as e:
            await self._audit_logger.log_persistence_failed(
                actor_id=self._user.id,
                operation="fetch_expenses",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        people = {self._user.id}
        for expense in expenses:
            people.add(expense.paid_by)
            people.update(expense.participants)

        self._expenses = tuple(expenses)
        self._names = await self._load_names(people)
        self.loaded = True
        self.stale = False

        await self._audit_logger.log_expenses_loaded(
            actor_id=self._user.id,
            expense_count=len(self._expenses),
            correlation_id=correlation_id,
        )
        return self._expenses

    async def _load_names(self, user_ids: set[str]) -> dict[str, str]:
        names = dict(self._names)
        try:
            users = await self._user_directory.fetch_users_by_ids(sorted(user_ids))
        except PersistenceError as e:
            # Names are cosmetic; keep what we had and fall back to labels
            logger.warning("name_lookup_failed", error=str(e))
            return names

        for user in users:
            names[user.id] = user.label
        names[self._user.id] = self._user.label
        return names

    def name_for(self, user_id: str) -> str:
        return self._names.get(user_id) or derive_label(user_id)

    async def resolve_name(self, user_id: str) -> str:
        """Name for any user id, fetched on demand; never raises NotFoundError."""
        if user_id in self._names:
            return self._names[user_id]
        try:
            user = await self._user_directory.get_user(user_id)
        except NotFoundError:
            return derive_label(user_id)
        self._names = {**self._names, user_id: user.label}
        return user.label

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    def balances(self) -> BalanceSummary:
        cache = self._balance_cache
        if cache is None or cache[0] is not self._expenses or cache[1] is not self._names:
            summary = compute_balances(
                self._expenses,
                self._user.id,
                names=self._names,
                noise_floor=self._settings.balance_noise_floor,
            )
            self._balance_cache = (self._expenses, self._names, summary)
            return summary
        return cache[2]

    def monthly_spend(self, today: Optional[date] = None) -> Decimal:
        return monthly_spend(self._expenses, self._user.id, today=today, tz=self._tz)

    def transactions(
        self,
        kind: Union[FilterKind, str] = FilterKind.ALL,
        custom_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> list[TransactionView]:
        matching = filter_transactions(
            self._expenses, kind, custom_date=custom_date, today=today, tz=self._tz
        )
        return [describe_transaction(e, self._user.id) for e in matching]

    def recent_transactions(self) -> list[TransactionView]:
        recent = recent_transactions(
            self._expenses, limit=self._settings.recent_transactions_limit
        )
        return [describe_transaction(e, self._user.id) for e in recent]

    def friend_history(self, counterparty_id: str) -> list[HistoryEntry]:
        return friend_history(
            self._expenses,
            self._user.id,
            counterparty_id,
            self.name_for(counterparty_id),
            currency_symbol=self._settings.currency_symbol,
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def add_expense(
        self,
        amount: AmountLike,
        reason: str,
        category: str,
        participants: Sequence[str],
        split_mode: Union[SplitMode, str] = SplitMode.EQUAL,
        manual_amounts: Optional[Mapping[str, str]] = None,
        paid_by: Optional[str] = None,
        when: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Split, validate and store a new expense.

        Raises:
            ValidationError: bad amount, participants or split totals
            PersistenceError: the store rejected the write
        """
        correlation_id = correlation_id or create_correlation_id()
        paid_by = paid_by or self._user.id
        when = when or datetime.now(timezone.utc)
        participants = list(participants)

        try:
            total = to_amount(amount)
            splits = calculate_splits(total, participants, split_mode, manual_amounts)
            result = self._validator.validate(
                total, reason, category, paid_by, participants, splits, when
            )
            self._validator.ensure_valid(result)
            draft = self._draft(
                amount=total,
                reason=reason,
                category=category,
                date=when,
                paid_by=paid_by,
                participants=participants,
                splits=splits,
            )
        except ValidationError as e:
            await self._audit_logger.log_validation_failed(
                actor_id=self._user.id,
                operation="add_expense",
                issues=e.issue_dicts(),
                correlation_id=correlation_id,
            )
            raise

        expense = await self._store(draft, "add_expense", correlation_id)
        await self._audit_logger.log_expense_added(
            expense_id=expense.id,
            actor_id=self._user.id,
            amount=expense.amount,
            category=expense.category,
            participant_count=len(expense.participants),
            correlation_id=correlation_id,
        )
        await self._refresh_after_mutation(correlation_id)
        return expense

    async def settle(
        self,
        counterparty_id: str,
        amount: AmountLike,
        when: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Record a settlement against the current balance with a counterparty.

        The local snapshot is not touched until the store confirms the
        write and the following refresh succeeds.
        """
        correlation_id = correlation_id or create_correlation_id()
        friend = self.balances().get(counterparty_id)

        try:
            if friend is None:
                raise ValidationError(
                    f"You have no outstanding balance with {self.name_for(counterparty_id)}",
                    field="counterparty",
                )
            draft = build_settlement(
                self._user.id,
                friend,
                amount,
                when=when,
                tolerance=self._settings.settlement_tolerance,
            )
        except ValidationError as e:
            await self._audit_logger.log_validation_failed(
                actor_id=self._user.id,
                operation="settle",
                issues=e.issue_dicts(),
                correlation_id=correlation_id,
            )
            raise

        expense = await self._store(draft, "settle", correlation_id)
        await self._audit_logger.log_settlement_recorded(
            expense_id=expense.id,
            actor_id=self._user.id,
            counterparty_id=counterparty_id,
            mode="pay" if expense.paid_by == self._user.id else "receive",
            amount=expense.amount,
            correlation_id=correlation_id,
        )
        await self._refresh_after_mutation(correlation_id)
        return expense

    async def delete_expense(
        self,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete an expense the current user paid for.

        Returns False if the store no longer had it.
        """
        correlation_id = correlation_id or create_correlation_id()
        expense = next((e for e in self._expenses if e.id == expense_id), None)

        try:
            if expense is None:
                raise ValidationError(
                    f"Expense not found: {expense_id}", field="expense_id"
                )
            self._validator.validate_deletion(expense, self._user.id)
        except ValidationError as e:
            await self._audit_logger.log_validation_failed(
                actor_id=self._user.id,
                operation="delete_expense",
                issues=e.issue_dicts(),
                correlation_id=correlation_id,
            )
            raise

        try:
            deleted = await self._expense_storage.delete_expense(expense_id)
        except PersistenceError as e:
            await self._audit_logger.log_persistence_failed(
                actor_id=self._user.id,
                operation="delete_expense",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        if deleted:
            await self._audit_logger.log_expense_deleted(
                expense_id=expense_id,
                actor_id=self._user.id,
                correlation_id=correlation_id,
            )
        else:
            logger.warning("expense_already_gone", expense_id=expense_id)

        await self._refresh_after_mutation(correlation_id)
        return deleted

    async def update_profile(
        self,
        display_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> User:
        """
        Change the current user's display name.

        Raises:
            ValidationError: empty name or name held by someone else
            PersistenceError: the directory rejected the write
        """
        correlation_id = correlation_id or create_correlation_id()
        name = display_name.strip()

        try:
            if not name:
                raise ValidationError("A name is required", field="display_name")
            try:
                updated = await self._user_directory.update_user_profile(
                    self._user.id, name
                )
            except DuplicateError:
                raise ValidationError(
                    "That name is already taken", field="display_name"
                )
        except ValidationError as e:
            await self._audit_logger.log_validation_failed(
                actor_id=self._user.id,
                operation="update_profile",
                issues=e.issue_dicts(),
                correlation_id=correlation_id,
            )
            raise
        except PersistenceError as e:
            await self._audit_logger.log_persistence_failed(
                actor_id=self._user.id,
                operation="update_profile",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        self._user = updated
        self._names = {**self._names, updated.id: updated.label}
        await self._audit_logger.log_profile_updated(
            actor_id=updated.id,
            display_name=name,
            correlation_id=correlation_id,
        )
        return updated

    async def search_users(
        self,
        text: str,
        exclude_ids: Iterable[str] = (),
    ) -> Optional[list[User]]:
        """Debounced participant search; None when superseded."""
        excluded = {self._user.id, *exclude_ids}
        return await self.user_search.search(text, excluded)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _draft(**fields) -> ExpenseDraft:
        try:
            return ExpenseDraft(**fields)
        except pydantic.ValidationError as e:
            raise ValidationError.from_pydantic(e)

    async def _store(
        self,
        draft: ExpenseDraft,
        operation: str,
        correlation_id: UUID,
    ) -> Expense:
        try:
            return await self._expense_storage.create_expense(draft)
        except PersistenceError as e:
            await self._audit_logger.log_persistence_failed(
                actor_id=self._user.id,
                operation=operation,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

    async def _refresh_after_mutation(self, correlation_id: UUID) -> None:
        # The write already succeeded; a failed reload only leaves us stale
        try:
            await self.refresh(correlation_id)
        except PersistenceError:
            self.stale = True


class SessionContext:
    """
    Follows the auth provider and keeps one LedgerSession per signed-in user.

    A new session starts empty; call current_session() to get it loaded.
    """

    def __init__(
        self,
        auth_provider: AuthProviderInterface,
        expense_storage: ExpenseStorageInterface,
        user_directory: UserDirectoryInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._expense_storage = expense_storage
        self._user_directory = user_directory
        self._audit_logger = audit_logger
        self._settings = settings
        self.session: Optional[LedgerSession] = None
        self._unsubscribe = auth_provider.on_auth_state_changed(self._on_auth_changed)

    def _on_auth_changed(self, user: Optional[User]) -> None:
        if user is None:
            self.session = None
        elif self.session is None or self.session.user.id != user.id:
            self.session = LedgerSession(
                user,
                self._expense_storage,
                self._user_directory,
                audit_logger=self._audit_logger,
                settings=self._settings,
            )

    async def current_session(self) -> Optional[LedgerSession]:
        session = self.session
        if session is not None and not session.loaded:
            await session.refresh()
        return session

    def close(self) -> None:
        self._unsubscribe()
        self.session = None


def create_app_components(
    use_storage: bool = True,
) -> tuple[ExpenseStorageInterface, UserDirectoryInterface, AuditLogger]:
    """
    Factory function to create the storage collaborators.

    Args:
        use_storage: Whether to honour STORAGE_BACKEND.
                    Set to False to force in-memory storage.

    Returns:
        (expense_storage, user_directory, audit_logger)
    """
    app_settings = get_settings().app

    if use_storage and app_settings.uses_google_sheets:
        sheets_client = GoogleSheetsClient()
        return (
            GoogleSheetsExpenseStorage(sheets_client),
            GoogleSheetsUserDirectory(sheets_client),
            AuditLogger(GoogleSheetsAuditStorage(sheets_client)),
        )

    return (
        InMemoryExpenseStorage(),
        InMemoryUserDirectory(),
        AuditLogger(InMemoryAuditStorage()),
    )
