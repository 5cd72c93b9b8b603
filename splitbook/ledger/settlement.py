"""
Settlement Protocol

Turns an outstanding balance into a "Settlement" expense that nets it
back toward zero.

A settlement reuses the ordinary expense shape: when the reference user
pays a counterparty X, that is recorded as "reference user paid X, all of
it on the counterparty's split". The balance aggregator then reduces the
debt with no special handling.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import pydantic

from splitbook.ledger.errors import ValidationError
from splitbook.ledger.money import SETTLEMENT_TOLERANCE, ZERO, AmountLike, to_amount
from splitbook.models.expense import (
    SETTLEMENT_CATEGORY,
    ExpenseDraft,
    FriendBalance,
    SettlementMode,
    Split,
)


def settlement_mode(balance: Decimal) -> SettlementMode:
    """PAY when the reference user owes, RECEIVE when the counterparty owes."""
    if balance < 0:
        return SettlementMode.PAY
    if balance > 0:
        return SettlementMode.RECEIVE
    raise ValidationError("There is no outstanding balance to settle", field="balance")


def build_settlement(
    reference_user_id: str,
    friend: FriendBalance,
    settlement_amount: AmountLike,
    when: Optional[datetime] = None,
    tolerance: Decimal = SETTLEMENT_TOLERANCE,
) -> ExpenseDraft:
    """
    Build the settlement expense for one counterparty.

    Args:
        reference_user_id: The user recording the settlement
        friend: Current balance against the counterparty
        settlement_amount: 0 < amount <= |balance| (+ tolerance)
        when: Settlement date (defaults to now, UTC)
        tolerance: Slack for paying off the full balance

    Returns:
        An ExpenseDraft with category "Settlement", ready to store

    Raises:
        ValidationError: zero balance, amount out of bounds
    """
    mode = settlement_mode(friend.balance)
    amount = to_amount(settlement_amount, field="settlement amount")

    if amount <= ZERO:
        raise ValidationError(
            "Settlement amount must be greater than zero", field="amount"
        )
    outstanding = abs(friend.balance)
    if amount > outstanding + tolerance:
        raise ValidationError(
            f"Settlement amount cannot exceed {outstanding:.2f}", field="amount"
        )

    counterparty_id = friend.counterparty_id
    if mode is SettlementMode.PAY:
        paid_by = reference_user_id
        reason = f"Settlement to {friend.name}"
        splits = [
            Split(participant_id=counterparty_id, amount=amount),
            Split(participant_id=reference_user_id, amount=ZERO),
        ]
    else:
        paid_by = counterparty_id
        reason = f"Settlement from {friend.name}"
        splits = [
            Split(participant_id=reference_user_id, amount=amount),
            Split(participant_id=counterparty_id, amount=ZERO),
        ]

    try:
        return ExpenseDraft(
            amount=amount,
            reason=reason,
            category=SETTLEMENT_CATEGORY,
            date=when or datetime.now(timezone.utc),
            paid_by=paid_by,
            participants=[reference_user_id, counterparty_id],
            splits=splits,
        )
    except pydantic.ValidationError as e:
        # e.g. counterparty id equal to the reference user
        raise ValidationError.from_pydantic(e)
