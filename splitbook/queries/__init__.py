"""Transaction query package."""

from splitbook.queries.transactions import (
    describe_transaction,
    filter_transactions,
    friend_history,
    recent_transactions,
)

__all__ = [
    "describe_transaction",
    "filter_transactions",
    "friend_history",
    "recent_transactions",
]
