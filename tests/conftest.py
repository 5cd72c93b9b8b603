"""Shared fixtures for the splitbook test-suite."""

from datetime import datetime
from decimal import Decimal

import pytest

from splitbook.config import LedgerSettings
from splitbook.models import Expense, Split, User


ALICE = "alice@example.com"
BOB = "bob@example.com"
CAROL = "carol@example.com"


@pytest.fixture
def users():
    return [
        User(id=ALICE, email=ALICE, display_name="Alice"),
        User(id=BOB, email=BOB, display_name="Bob"),
        User(id=CAROL, email=CAROL, display_name="Carol"),
    ]


@pytest.fixture
def ledger_settings():
    return LedgerSettings(search_debounce_seconds=0.0, timezone=None)


@pytest.fixture
def make_expense():
    """Factory for stored expenses; splits given as {participant: amount}."""
    counter = {"n": 0}

    def _make(paid_by, shares, amount=None, category="Food",
              reason="Dinner", when=None):
        counter["n"] += 1
        splits = [
            Split(participant_id=pid, amount=Decimal(str(value)))
            for pid, value in shares.items()
        ]
        total = Decimal(str(amount)) if amount is not None else sum(
            (s.amount for s in splits), Decimal("0")
        )
        return Expense(
            id=f"exp-{counter['n']}",
            amount=total,
            reason=reason,
            category=category,
            date=when or datetime(2026, 10, 17, 12, 0),
            paid_by=paid_by,
            participants=list(shares),
            splits=splits,
        )

    return _make
