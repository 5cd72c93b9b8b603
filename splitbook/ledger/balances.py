"""
Balance Aggregator

Folds the full expense history into signed net balances between the
reference user and every counterparty.

    payer == reference user:  every other owner's split is added to that
                              owner's balance (they owe us more)
    reference user takes part: our own split is subtracted from the
                              payer's balance (we owe the payer)
    otherwise:                the expense is ignored

Only sums matter, so the result does not depend on expense order.
Settlements need no special case: they are expenses whose whole amount
sits on one side.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Optional

from splitbook.ledger.money import BALANCE_NOISE_FLOOR, ZERO
from splitbook.models.expense import (
    BalanceSummary,
    ExpenseDraft,
    FriendBalance,
    derive_label,
)


def net_balances(
    expenses: Iterable[ExpenseDraft],
    reference_user_id: str,
) -> dict[str, Decimal]:
    """Raw running totals per counterparty, before noise filtering."""
    balances: dict[str, Decimal] = {}

    for expense in expenses:
        if expense.paid_by == reference_user_id:
            for split in expense.splits:
                if split.participant_id != reference_user_id:
                    owner = split.participant_id
                    balances[owner] = balances.get(owner, ZERO) + split.amount
        elif reference_user_id in expense.participants:
            payer = expense.paid_by
            own_share = expense.share_of(reference_user_id)
            balances[payer] = balances.get(payer, ZERO) - own_share

    return balances


def compute_balances(
    expenses: Iterable[ExpenseDraft],
    reference_user_id: str,
    names: Optional[Mapping[str, str]] = None,
    noise_floor: Decimal = BALANCE_NOISE_FLOOR,
) -> BalanceSummary:
    """
    Compute the reference user's balance against every counterparty.

    Args:
        expenses: Full expense history (any order)
        reference_user_id: The viewer
        names: Counterparty id -> display name; unknown ids get a derived label
        noise_floor: Balances with a smaller absolute value are dropped

    Returns:
        BalanceSummary sorted by balance, descending
    """
    names = names or {}
    raw = net_balances(expenses, reference_user_id)

    entries = [
        FriendBalance(
            counterparty_id=counterparty_id,
            name=names.get(counterparty_id) or derive_label(counterparty_id),
            balance=balance,
        )
        for counterparty_id, balance in raw.items()
        if abs(balance) >= noise_floor
    ]
    entries.sort(key=lambda entry: entry.balance, reverse=True)

    owed_to_user = sum((e.balance for e in entries if e.balance > 0), ZERO)
    user_owes = sum((-e.balance for e in entries if e.balance < 0), ZERO)

    return BalanceSummary(
        reference_user_id=reference_user_id,
        balances=entries,
        total_owed_to_user=owed_to_user,
        total_user_owes=user_owes,
    )
