"""
Money helpers.

Amounts are Decimals with exactly 2 decimal places. Floats are converted
through their string form so 0.1 stays 0.1.
"""

import re
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Optional, Union

from splitbook.ledger.errors import ValidationError
from splitbook.models.expense import CENT


ZERO = Decimal("0.00")

# Tolerances used when no settings are passed in
SPLIT_TOLERANCE = Decimal("0.01")
SETTLEMENT_TOLERANCE = Decimal("0.001")
BALANCE_NOISE_FLOOR = Decimal("0.01")

_MANUAL_AMOUNT = re.compile(r"^\s*(\d*)(?:\.(\d*))?\s*$")

AmountLike = Union[Decimal, int, float, str]


def to_amount(value: AmountLike, field: str = "amount") -> Decimal:
    """
    Convert a caller-supplied amount to a 2-place Decimal.

    Raises ValidationError for non-numeric values or more than 2 decimals.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}: {value!r}", field=field)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid {field}: {value!r}", field=field)

    if not amount.is_finite():
        raise ValidationError(f"Invalid {field}: {value!r}", field=field)
    if amount != amount.quantize(CENT):
        raise ValidationError(
            f"The {field} can have at most 2 decimal places", field=field
        )
    return amount.quantize(CENT)


def parse_manual_amount(text: Optional[str]) -> Decimal:
    """
    Parse a freeform manual split entry.

    Digits with an optional decimal point. Decimals beyond the second are
    ignored. Anything else (empty, negative, letters) counts as 0.
    """
    if not text:
        return ZERO
    match = _MANUAL_AMOUNT.match(text)
    if match is None:
        return ZERO
    whole, fraction = match.group(1), match.group(2) or ""
    if not whole and not fraction:
        return ZERO
    amount = Decimal(f"{whole or '0'}.{fraction or '0'}")
    return amount.quantize(CENT, rounding=ROUND_DOWN)


def format_money(amount: Decimal, symbol: str = "₹") -> str:
    """Format an amount for summaries, e.g. ₹1,234.50."""
    return f"{symbol}{amount:,.2f}"
