"""
Monthly Spend Aggregator

"My share of real purchases this month": the reference user's own split
of every non-settlement expense dated in the current calendar month,
regardless of who fronted the money.
"""

from collections.abc import Iterable
from datetime import date, tzinfo
from decimal import Decimal
from typing import Optional

from splitbook.ledger.dates import local_date, same_month, today_local
from splitbook.ledger.money import ZERO
from splitbook.models.expense import ExpenseDraft


def monthly_spend(
    expenses: Iterable[ExpenseDraft],
    reference_user_id: str,
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> Decimal:
    """
    Sum the reference user's share of this month's purchases.

    Settlements are transfers, not spend, and are skipped entirely.
    """
    today = today or today_local(tz)
    total = ZERO
    for expense in expenses:
        if expense.is_settlement:
            continue
        if not same_month(local_date(expense.date, tz), today):
            continue
        total += expense.share_of(reference_user_id)
    return total
