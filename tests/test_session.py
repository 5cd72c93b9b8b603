"""
Flow tests for the ledger session.

Async flows are driven with asyncio.run against the in-memory backends.
"""

import asyncio
import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from splitbook.audit import AuditLogger
from splitbook.ledger import ValidationError
from splitbook.models import AuditEventType, FilterKind, SplitMode, User
from splitbook.orchestrator import LedgerSession, SessionContext, UserSearch
from splitbook.services.auth import InMemoryAuthProvider
from splitbook.services.storage import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryUserDirectory,
    PersistenceError,
)


ALICE = "alice@example.com"
BOB = "bob@example.com"
CAROL = "carol@example.com"

WHEN = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def expense_storage():
    return InMemoryExpenseStorage()


@pytest.fixture
def directory(users):
    return InMemoryUserDirectory(users)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def session(users, expense_storage, directory, audit_storage, ledger_settings):
    session = LedgerSession(
        users[0],
        expense_storage,
        directory,
        audit_logger=AuditLogger(audit_storage),
        settings=ledger_settings,
    )
    asyncio.run(session.refresh())
    return session


def _event_types(audit_storage):
    return [e.event_type for e in audit_storage.events]


def _balance_map(session):
    return {b.counterparty_id: b.balance for b in session.balances().balances}


class TestAddExpense:
    """Tests for the add-expense flow."""

    def test_equal_split(self, session, expense_storage, audit_storage):
        expense = asyncio.run(session.add_expense(
            "90", "Dinner", "Food", [ALICE, BOB, CAROL], when=WHEN
        ))
        assert expense.paid_by == ALICE
        assert len(expense_storage) == 1
        assert session.expenses == (expense,)
        assert _balance_map(session) == {BOB: Decimal("30.00"), CAROL: Decimal("30.00")}
        assert session.balances().get(BOB).name == "Bob"
        assert AuditEventType.EXPENSE_ADDED in _event_types(audit_storage)

    def test_manual_split(self, session):
        asyncio.run(session.add_expense(
            Decimal("100"), "Rent share", "Rent", [ALICE, BOB],
            split_mode=SplitMode.MANUAL,
            manual_amounts={ALICE: "70", BOB: "30"},
            when=WHEN,
        ))
        assert _balance_map(session) == {BOB: Decimal("30.00")}

    def test_manual_mismatch_creates_nothing(self, session, expense_storage, audit_storage):
        with pytest.raises(ValidationError, match="split totals do not match amount"):
            asyncio.run(session.add_expense(
                "60", "Taxi", "Travel", [ALICE, BOB],
                split_mode="manual",
                manual_amounts={ALICE: "20", BOB: "20"},
                when=WHEN,
            ))
        assert len(expense_storage) == 0
        assert session.expenses == ()
        assert AuditEventType.VALIDATION_FAILED in _event_types(audit_storage)

    def test_settlement_category_rejected(self, session, expense_storage):
        with pytest.raises(ValidationError):
            asyncio.run(session.add_expense(
                "10", "Sneaky", "Settlement", [ALICE, BOB], when=WHEN
            ))
        assert len(expense_storage) == 0

    def test_paid_by_someone_else(self, session):
        asyncio.run(session.add_expense(
            "40", "Lunch", "Food", [ALICE, BOB], paid_by=BOB, when=WHEN
        ))
        assert _balance_map(session) == {BOB: Decimal("-20.00")}
        assert session.balances().total_user_owes == Decimal("20.00")

    def test_naive_and_aware_dates_mix(self, session):
        asyncio.run(session.add_expense(
            "20", "Breakfast", "Food", [ALICE, BOB], when=datetime(2026, 10, 1, 12, 0)
        ))
        asyncio.run(session.add_expense("30", "Lunch", "Food", [ALICE, BOB]))
        asyncio.run(session.settle(BOB, "10", when=datetime(2026, 10, 2, 9, 0)))
        asyncio.run(session.refresh())
        assert len(session.expenses) == 3
        assert session.stale is False
        assert [e.reason for e in session.expenses][-1] == "Breakfast"
        assert _balance_map(session) == {BOB: Decimal("15.00")}
        assert len(session.friend_history(BOB)) == 3

    def test_unknown_split_mode_is_audited(self, session, expense_storage, audit_storage):
        with pytest.raises(ValidationError, match="Unknown split mode"):
            asyncio.run(session.add_expense(
                "10", "Snack", "Food", [ALICE, BOB], split_mode="percent", when=WHEN
            ))
        assert len(expense_storage) == 0
        assert AuditEventType.VALIDATION_FAILED in _event_types(audit_storage)

    def test_store_failure_leaves_snapshot(self, session, expense_storage, audit_storage):
        expense_storage.fail_with = PersistenceError("sheet unavailable")
        with pytest.raises(PersistenceError):
            asyncio.run(session.add_expense("10", "Snack", "Food", [ALICE, BOB]))
        assert session.expenses == ()
        assert AuditEventType.PERSISTENCE_FAILED in _event_types(audit_storage)


class TestSettle:
    """Tests for the settle-debt flow."""

    @pytest.fixture
    def owing_session(self, session):
        asyncio.run(session.add_expense(
            "100", "Groceries", "Groceries", [ALICE, BOB], paid_by=BOB, when=WHEN
        ))
        return session

    def test_full_settlement_clears_balance(self, owing_session, audit_storage):
        expense = asyncio.run(owing_session.settle(BOB, "50"))
        assert expense.category == "Settlement"
        assert expense.reason == "Settlement to Bob"
        assert owing_session.balances().balances == []
        assert AuditEventType.SETTLEMENT_RECORDED in _event_types(audit_storage)

    def test_partial_settlement(self, owing_session):
        asyncio.run(owing_session.settle(BOB, "20"))
        assert _balance_map(owing_session) == {BOB: Decimal("-30.00")}

    def test_overpayment_rejected(self, owing_session, expense_storage):
        with pytest.raises(ValidationError):
            asyncio.run(owing_session.settle(BOB, "60"))
        assert len(expense_storage) == 1
        assert _balance_map(owing_session) == {BOB: Decimal("-50.00")}

    def test_no_balance_rejected(self, owing_session):
        with pytest.raises(ValidationError, match="no outstanding balance"):
            asyncio.run(owing_session.settle(CAROL, "5"))

    def test_receive_mode(self, session):
        asyncio.run(session.add_expense("80", "Cab", "Travel", [ALICE, BOB], when=WHEN))
        expense = asyncio.run(session.settle(BOB, "40"))
        assert expense.paid_by == BOB
        assert expense.reason == "Settlement from Bob"
        assert session.balances().balances == []

    def test_persistence_failure_keeps_balance(self, owing_session, expense_storage):
        before = owing_session.expenses
        expense_storage.fail_with = PersistenceError("quota exceeded")
        with pytest.raises(PersistenceError):
            asyncio.run(owing_session.settle(BOB, "50"))
        assert owing_session.expenses is before
        assert _balance_map(owing_session) == {BOB: Decimal("-50.00")}


class TestDeleteExpense:
    """Tests for deleting expenses."""

    def test_payer_can_delete(self, session, expense_storage, audit_storage):
        expense = asyncio.run(session.add_expense(
            "10", "Tea", "Food", [ALICE, BOB], when=WHEN
        ))
        assert asyncio.run(session.delete_expense(expense.id)) is True
        assert len(expense_storage) == 0
        assert session.balances().balances == []
        assert AuditEventType.EXPENSE_DELETED in _event_types(audit_storage)

    def test_non_payer_cannot_delete(self, session, expense_storage):
        expense = asyncio.run(session.add_expense(
            "10", "Tea", "Food", [ALICE, BOB], paid_by=BOB, when=WHEN
        ))
        with pytest.raises(ValidationError, match="Only the person who paid"):
            asyncio.run(session.delete_expense(expense.id))
        assert len(expense_storage) == 1

    def test_unknown_expense(self, session):
        with pytest.raises(ValidationError, match="Expense not found"):
            asyncio.run(session.delete_expense("missing"))


class TestDerivedViews:
    """Tests for the views derived from the snapshot."""

    def test_balances_memoized_until_refresh(self, session):
        asyncio.run(session.add_expense("10", "Tea", "Food", [ALICE, BOB], when=WHEN))
        first = session.balances()
        assert session.balances() is first
        asyncio.run(session.refresh())
        assert session.balances() is not first
        assert session.balances() == first

    def test_monthly_spend_and_transactions(self, session):
        asyncio.run(session.add_expense(
            "100", "Dinner", "Food", [ALICE, BOB], paid_by=BOB, when=WHEN
        ))
        asyncio.run(session.settle(BOB, "50", when=WHEN + timedelta(hours=1)))
        assert session.monthly_spend(today=date(2026, 10, 17)) == Decimal("50.00")

        views = session.transactions(FilterKind.THIS_MONTH, today=date(2026, 10, 17))
        assert len(views) == 2
        assert {v.is_settlement for v in views} == {True, False}
        assert len(session.recent_transactions()) == 2

        history = session.friend_history(BOB)
        assert [h.summary for h in history] == [
            "You paid back ₹50.00.",
            "Bob paid ₹100.00. Your share was ₹50.00.",
        ]

    def test_names_fall_back_to_derived_label(self, session):
        assert session.name_for("zoe@example.com") == "zoe"
        assert asyncio.run(session.resolve_name("zoe@example.com")) == "zoe"
        assert asyncio.run(session.resolve_name(CAROL)) == "Carol"

    def test_refresh_failure_raises_and_keeps_snapshot(self, session, expense_storage):
        asyncio.run(session.add_expense("10", "Tea", "Food", [ALICE, BOB], when=WHEN))
        before = session.expenses
        expense_storage.fail_with = PersistenceError("offline")
        with pytest.raises(PersistenceError):
            asyncio.run(session.refresh())
        assert session.expenses is before


class TestProfileAndSearch:
    """Tests for profile updates and user search."""

    def test_update_profile(self, session, audit_storage):
        user = asyncio.run(session.update_profile("  Ally "))
        assert user.display_name == "Ally"
        assert session.user.label == "Ally"
        assert session.name_for(ALICE) == "Ally"
        assert AuditEventType.PROFILE_UPDATED in _event_types(audit_storage)

    def test_duplicate_name_rejected(self, session):
        with pytest.raises(ValidationError, match="already taken"):
            asyncio.run(session.update_profile("Bob"))
        assert session.user.display_name == "Alice"

    def test_empty_name_rejected(self, session):
        with pytest.raises(ValidationError):
            asyncio.run(session.update_profile("   "))

    def test_search_excludes_self_and_selected(self, session, directory):
        directory.add(User(id="ali@example.com", email="ali@example.com", display_name="Ali"))
        results = asyncio.run(session.search_users("Al"))
        assert [u.id for u in results] == ["ali@example.com"]
        assert asyncio.run(session.search_users("Al", ["ali@example.com"])) == []

    def test_search_is_case_sensitive_prefix(self, session):
        assert asyncio.run(session.search_users("bo")) == []
        assert [u.id for u in asyncio.run(session.search_users("Bo"))] == [BOB]

    def test_short_text_returns_nothing(self, session):
        assert asyncio.run(session.search_users("B")) == []
        assert asyncio.run(session.search_users("  ")) == []

    def test_superseded_search_returns_none(self, directory):
        search = UserSearch(directory, min_length=2, quiet_period=0.01)

        async def type_quickly():
            return await asyncio.gather(
                search.search("Ca"),
                search.search("Car"),
            )

        first, second = asyncio.run(type_quickly())
        assert first is None
        assert [u.id for u in second] == [CAROL]


class TestSessionContext:
    """Tests for following the auth provider."""

    def test_session_follows_sign_in_and_out(
        self, users, expense_storage, directory, ledger_settings
    ):
        auth = InMemoryAuthProvider()
        context = SessionContext(
            auth, expense_storage, directory, settings=ledger_settings
        )
        assert context.session is None
        assert asyncio.run(context.current_session()) is None

        auth.sign_in(users[1])
        session = asyncio.run(context.current_session())
        assert session.user.id == BOB
        assert session.loaded is True

        auth.sign_in(users[1])
        assert context.session is session

        auth.sign_out()
        assert context.session is None

        context.close()
        auth.sign_in(users[0])
        assert context.session is None

    def test_signed_in_user_at_start(self, users, expense_storage, directory, ledger_settings):
        auth = InMemoryAuthProvider(users[0])
        context = SessionContext(
            auth, expense_storage, directory, settings=ledger_settings
        )
        assert context.session.user.id == ALICE
        assert context.session.loaded is False
