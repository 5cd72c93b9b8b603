"""
Split Calculator

Divides an expense amount among its participants.

EQUAL mode rounds the per-person share half-up to the cent and hands the
whole rounding remainder to the last participant, so the splits always
add up to the amount exactly. MANUAL mode takes what the user typed and
does no adjustment; callers must check the total with
validate_split_total before submitting.
"""

from collections.abc import Iterable, Mapping, Sequence
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Optional, Union

from splitbook.ledger.errors import ValidationError
from splitbook.ledger.money import (
    SPLIT_TOLERANCE,
    ZERO,
    AmountLike,
    parse_manual_amount,
    to_amount,
)
from splitbook.models.expense import CENT, Split, SplitMode


def calculate_splits(
    total_amount: AmountLike,
    participant_ids: Sequence[str],
    mode: Union[SplitMode, str] = SplitMode.EQUAL,
    manual_amounts: Optional[Mapping[str, str]] = None,
) -> list[Split]:
    """
    Compute per-participant owed amounts.

    Args:
        total_amount: Expense amount, must be > 0
        participant_ids: Participants in display order (payer included)
        mode: "equal" or "manual"
        manual_amounts: participant id -> freeform amount text (manual mode)

    Returns:
        One Split per participant, in participant_ids order

    Raises:
        ValidationError: non-positive amount, no participants, duplicates
    """
    total = to_amount(total_amount)
    if total <= 0:
        raise ValidationError("Amount must be greater than zero", field="amount")

    ids = list(participant_ids)
    if not ids:
        raise ValidationError(
            "At least one participant is required", field="participants"
        )
    if len(set(ids)) != len(ids):
        raise ValidationError(
            "Participants must not contain duplicates", field="participants"
        )

    try:
        mode = SplitMode(mode)
    except ValueError:
        raise ValidationError(f"Unknown split mode: {mode}", field="split_mode")

    if mode is SplitMode.EQUAL:
        return _equal_splits(total, ids)
    return _manual_splits(ids, manual_amounts or {})


def _equal_splits(total: Decimal, ids: list[str]) -> list[Split]:
    count = len(ids)
    per_person = (total / count).quantize(CENT, rounding=ROUND_HALF_UP)
    remainder = total - per_person * count

    # Rounding up across many people can overshoot by more than one share
    if per_person + remainder < 0:
        per_person = (total / count).quantize(CENT, rounding=ROUND_DOWN)
        remainder = total - per_person * count

    amounts = [per_person] * count
    amounts[-1] = amounts[-1] + remainder
    return [
        Split(participant_id=pid, amount=amount)
        for pid, amount in zip(ids, amounts)
    ]


def _manual_splits(ids: list[str], manual_amounts: Mapping[str, str]) -> list[Split]:
    return [
        Split(participant_id=pid, amount=parse_manual_amount(manual_amounts.get(pid)))
        for pid in ids
    ]


def split_total(splits: Iterable[Split]) -> Decimal:
    return sum((split.amount for split in splits), ZERO)


def validate_split_total(
    splits: Iterable[Split],
    total_amount: AmountLike,
    tolerance: Decimal = SPLIT_TOLERANCE,
) -> None:
    """Raise ValidationError unless the splits add up to the amount."""
    total = to_amount(total_amount)
    if abs(split_total(splits) - total) >= tolerance:
        raise ValidationError("split totals do not match amount", field="splits")
