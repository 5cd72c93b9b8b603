"""
Ledger Package

Pure functions over in-memory expense lists: splitting, balances,
settlements and monthly spend. Nothing here performs I/O.
"""

from splitbook.ledger.balances import compute_balances, net_balances
from splitbook.ledger.errors import LedgerError, ValidationError
from splitbook.ledger.money import format_money, parse_manual_amount, to_amount
from splitbook.ledger.settlement import build_settlement, settlement_mode
from splitbook.ledger.spend import monthly_spend
from splitbook.ledger.splits import (
    calculate_splits,
    split_total,
    validate_split_total,
)

__all__ = [
    "LedgerError",
    "ValidationError",
    "build_settlement",
    "calculate_splits",
    "compute_balances",
    "format_money",
    "monthly_spend",
    "net_balances",
    "parse_manual_amount",
    "settlement_mode",
    "split_total",
    "to_amount",
    "validate_split_total",
]
