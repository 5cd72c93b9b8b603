"""
Data Models Package

This package contains all Pydantic models used in Splitbook.
All data flowing through the system must conform to these schemas.
"""

from splitbook.models.expense import (
    CENT,
    EXPENSE_CATEGORIES,
    SETTLEMENT_CATEGORY,
    BalanceSummary,
    Expense,
    ExpenseDraft,
    FilterKind,
    FriendBalance,
    HistoryEntry,
    Money,
    SettlementMode,
    Split,
    SplitMode,
    TransactionDirection,
    TransactionView,
    User,
    ValidationIssue,
    ValidationResult,
    derive_label,
)
from splitbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "CENT",
    "EXPENSE_CATEGORIES",
    "SETTLEMENT_CATEGORY",
    "BalanceSummary",
    "Expense",
    "ExpenseDraft",
    "FilterKind",
    "FriendBalance",
    "HistoryEntry",
    "Money",
    "SettlementMode",
    "Split",
    "SplitMode",
    "TransactionDirection",
    "TransactionView",
    "User",
    "ValidationIssue",
    "ValidationResult",
    "derive_label",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
