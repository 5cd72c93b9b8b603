"""
Transaction Queries

Read-only views over the expense history for display:
- date filtering (all / today / yesterday / this month / a chosen day)
- per-transaction debit/credit classification
- the recent transactions list
- the history with a single counterparty

DESIGN DECISION: Dates are compared by local calendar day, never by
timestamp. Every function preserves the input order, which the expense
store returns newest first.
"""

from collections.abc import Iterable, Sequence
from datetime import date, tzinfo
from typing import Optional, Union

from splitbook.ledger.dates import local_date, same_month, today_local, yesterday_of
from splitbook.ledger.errors import ValidationError
from splitbook.ledger.money import format_money
from splitbook.models.expense import (
    Expense,
    FilterKind,
    HistoryEntry,
    TransactionDirection,
    TransactionView,
)


def filter_transactions(
    expenses: Iterable[Expense],
    kind: Union[FilterKind, str] = FilterKind.ALL,
    custom_date: Optional[date] = None,
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> list[Expense]:
    """
    Filter the expense history by calendar date.

    Args:
        expenses: Expense history, newest first
        kind: Which filter to apply
        custom_date: Target day, required for FilterKind.CUSTOM_DATE
        today: Override for the current day (tests)
        tz: Zone for calendar comparisons (system local if None)

    Returns:
        The matching expenses, in input order
    """
    kind = FilterKind(kind)
    items = list(expenses)

    if kind is FilterKind.ALL:
        return items

    today = today or today_local(tz)

    if kind is FilterKind.TODAY:
        return [e for e in items if local_date(e.date, tz) == today]
    if kind is FilterKind.YESTERDAY:
        yesterday = yesterday_of(today)
        return [e for e in items if local_date(e.date, tz) == yesterday]
    if kind is FilterKind.THIS_MONTH:
        return [e for e in items if same_month(local_date(e.date, tz), today)]

    if custom_date is None:
        raise ValidationError(
            "A date is required for the custom date filter", field="custom_date"
        )
    return [e for e in items if local_date(e.date, tz) == custom_date]


def describe_transaction(expense: Expense, user_id: str) -> TransactionView:
    """
    Classify an expense from the viewer's point of view.

    Debit: someone else paid a purchase the viewer has a share of,
    or the viewer paid back a settlement.
    Credit: someone paid the viewer back.
    """
    user_share = expense.share_of(user_id)
    user_paid = expense.paid_by == user_id

    if expense.is_settlement:
        direction = TransactionDirection.DEBIT if user_paid else TransactionDirection.CREDIT
    elif not user_paid and user_share > 0:
        direction = TransactionDirection.DEBIT
    else:
        direction = TransactionDirection.NEUTRAL

    if expense.is_settlement and user_paid:
        display_amount = expense.amount
    else:
        display_amount = user_share

    return TransactionView(
        expense=expense,
        direction=direction,
        display_amount=display_amount,
        is_settlement=expense.is_settlement,
        can_delete=user_paid,
    )


def recent_transactions(expenses: Sequence[Expense], limit: int = 5) -> list[Expense]:
    return list(expenses[:limit])


def friend_history(
    expenses: Iterable[Expense],
    user_id: str,
    counterparty_id: str,
    counterparty_name: str,
    currency_symbol: str = "₹",
) -> list[HistoryEntry]:
    """
    Transactions between the viewer and one counterparty, newest first.

    Only expenses where both take part and one of them paid are included;
    a third party's expense shared by both is not part of this history.
    """
    shared = [
        e for e in expenses
        if user_id in e.participants
        and counterparty_id in e.participants
        and e.paid_by in (user_id, counterparty_id)
    ]
    shared.sort(key=lambda e: e.date, reverse=True)

    entries = []
    for expense in shared:
        user_share = expense.share_of(user_id)
        their_share = expense.share_of(counterparty_id)
        total = format_money(expense.amount, currency_symbol)

        if expense.is_settlement:
            if expense.paid_by == user_id:
                summary = f"You paid back {total}."
            else:
                summary = f"{counterparty_name} paid you back {total}."
        elif expense.paid_by == user_id:
            summary = (
                f"You paid {total}. Their share was "
                f"{format_money(their_share, currency_symbol)}."
            )
        else:
            summary = (
                f"{counterparty_name} paid {total}. Your share was "
                f"{format_money(user_share, currency_symbol)}."
            )

        entries.append(HistoryEntry(
            expense=expense,
            user_share=user_share,
            counterparty_share=their_share,
            summary=summary,
        ))

    return entries
