"""
Core Data Models for Splitbook

These models define the strict schemas for expense data flowing through
the system. They are designed to:
1. Enforce the expense invariants at construction time
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Money is always Decimal with at most 2 decimal places.
Amounts with more precision are rejected rather than silently rounded.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


CENT = Decimal("0.01")

# Category used for balance-transfer records
SETTLEMENT_CATEGORY = "Settlement"

# Categories offered when adding a regular expense
EXPENSE_CATEGORIES = (
    "Food",
    "Travel",
    "Shopping",
    "Entertainment",
    "Utilities",
    "Rent",
    "Groceries",
    "Health",
    "Other",
)


def _whole_cents(value: Decimal) -> Decimal:
    if value != value.quantize(CENT):
        raise ValueError(f"Amount {value} has more than 2 decimal places")
    return value.quantize(CENT)


Money = Annotated[Decimal, AfterValidator(_whole_cents)]


def derive_label(identifier: str) -> str:
    """Fallback display label: local-part of an email-like id, else the id."""
    if "@" in identifier:
        local_part = identifier.split("@", 1)[0]
        if local_part:
            return local_part
    return identifier


# =============================================================================
# ENUMS
# =============================================================================

class SplitMode(str, Enum):
    """How an expense amount is divided among participants."""
    EQUAL = "equal"
    MANUAL = "manual"


class SettlementMode(str, Enum):
    """
    Direction of a settlement.

    PAY: the reference user is the debtor and pays the counterparty.
    RECEIVE: the counterparty is the debtor and pays the reference user.
    """
    PAY = "pay"
    RECEIVE = "receive"


class FilterKind(str, Enum):
    """Date filters offered on the transaction list."""
    ALL = "all"
    TODAY = "today"
    YESTERDAY = "yesterday"
    THIS_MONTH = "this_month"
    CUSTOM_DATE = "custom_date"


class TransactionDirection(str, Enum):
    """How a transaction affects the viewer's money."""
    DEBIT = "debit"
    CREDIT = "credit"
    NEUTRAL = "neutral"


# =============================================================================
# USERS
# =============================================================================

class User(BaseModel):
    """
    A registered user.

    `id` is the canonical identity. `email` is a secondary lookup key
    and may change.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    display_name: Optional[str] = Field(default=None, max_length=100)

    @property
    def label(self) -> str:
        return self.display_name or derive_label(self.email)


# =============================================================================
# EXPENSES
# =============================================================================

class Split(BaseModel):
    """One participant's owed share of an expense."""

    participant_id: str = Field(..., min_length=1)
    amount: Annotated[Money, Field(ge=0)]


class ExpenseDraft(BaseModel):
    """
    An expense that has not been stored yet.

    The store assigns the id and returns an Expense.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Annotated[Money, Field(gt=0)]
    reason: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1, max_length=50)
    date: datetime
    paid_by: str = Field(..., min_length=1)
    participants: list[str] = Field(..., min_length=1)
    splits: list[Split] = Field(default_factory=list)

    @property
    def is_settlement(self) -> bool:
        return self.category == SETTLEMENT_CATEGORY

    @field_validator("date")
    @classmethod
    def attach_local_zone(cls, v: datetime) -> datetime:
        """Naive dates are local time; store them zone-aware so dates always compare."""
        if v.tzinfo is None:
            return v.astimezone()
        return v

    def share_of(self, participant_id: str) -> Decimal:
        """Amount owed by a participant, 0 if they have no split entry."""
        for split in self.splits:
            if split.participant_id == participant_id:
                return split.amount
        return Decimal("0.00")

    @model_validator(mode='after')
    def validate_invariants(self) -> 'ExpenseDraft':
        """Validate participant membership, split totals and settlement shape."""
        if len(set(self.participants)) != len(self.participants):
            raise ValueError("Participants must not contain duplicates")

        if self.paid_by not in self.participants:
            raise ValueError("Payer must be one of the participants")

        owners = [split.participant_id for split in self.splits]
        if len(set(owners)) != len(owners):
            raise ValueError("Each participant can have at most one split")
        for owner in owners:
            if owner not in self.participants:
                raise ValueError(f"Split owner {owner} is not a participant")

        total = sum((split.amount for split in self.splits), Decimal("0"))
        if abs(total - self.amount) >= CENT:
            raise ValueError("split totals do not match amount")

        if self.is_settlement:
            if len(self.participants) != 2 or len(self.splits) != 2:
                raise ValueError("A settlement must have exactly two participants")
            amounts = sorted(split.amount for split in self.splits)
            if amounts != [Decimal("0"), self.amount]:
                raise ValueError(
                    "A settlement must attribute the full amount to one side"
                )

        return self


class Expense(ExpenseDraft):
    """A stored expense. Immutable in normal flow."""

    id: str = Field(..., min_length=1)

    @classmethod
    def from_draft(cls, draft: ExpenseDraft, expense_id: str) -> 'Expense':
        return cls(id=expense_id, **draft.model_dump())


# =============================================================================
# DERIVED VIEWS (never persisted)
# =============================================================================

class FriendBalance(BaseModel):
    """
    Net balance against one counterparty.

    balance > 0: the counterparty owes the reference user.
    balance < 0: the reference user owes the counterparty.
    """

    counterparty_id: str
    name: str
    balance: Decimal


class BalanceSummary(BaseModel):
    """All non-zero balances of the reference user, largest credit first."""

    reference_user_id: str
    balances: list[FriendBalance] = Field(default_factory=list)
    total_owed_to_user: Decimal = Decimal("0.00")
    total_user_owes: Decimal = Decimal("0.00")

    @property
    def people_who_owe_user(self) -> list[FriendBalance]:
        return [b for b in self.balances if b.balance > 0]

    @property
    def people_user_owes(self) -> list[FriendBalance]:
        """Largest debt first."""
        return sorted(
            (b for b in self.balances if b.balance < 0),
            key=lambda b: b.balance,
        )

    def get(self, counterparty_id: str) -> Optional[FriendBalance]:
        for entry in self.balances:
            if entry.counterparty_id == counterparty_id:
                return entry
        return None


class TransactionView(BaseModel):
    """An expense as it appears in the viewer's transaction list."""

    expense: Expense
    direction: TransactionDirection
    display_amount: Decimal
    is_settlement: bool
    can_delete: bool


class HistoryEntry(BaseModel):
    """One line of the transaction history with a single counterparty."""

    expense: Expense
    user_share: Decimal
    counterparty_share: Decimal
    summary: str


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage expense validation.

    Stage 1: Schema validation (presence, positivity, membership)
    Stage 2: Semantic validation (split totals, dates, sanity checks)
    """

    schema_valid: bool
    semantic_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]
