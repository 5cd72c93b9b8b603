"""
Two-Stage Expense Validation

STAGE 1 - SCHEMA VALIDATION:
- Amount present and positive
- Reason present
- Participants present, unique, payer included

STAGE 2 - SEMANTIC VALIDATION:
- Split totals match the amount
- Every split belongs to a participant
- Future dates and absurd amounts are flagged
- Unknown categories are flagged

Stage 2 only runs when stage 1 passes. Warnings never block submission;
errors always do.

IMPORTANT: Validation NEVER silently fixes issues.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from splitbook.config import LedgerSettings, get_settings
from splitbook.ledger.errors import ValidationError
from splitbook.ledger.splits import split_total
from splitbook.models.expense import (
    EXPENSE_CATEGORIES,
    SETTLEMENT_CATEGORY,
    Expense,
    Split,
    ValidationIssue,
    ValidationResult,
)


def _error(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(
        field=field, issue_type=issue_type, message=message, severity="error"
    )


def _warning(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(
        field=field, issue_type=issue_type, message=message, severity="warning"
    )


class ExpenseValidator:
    """Validates user-entered expenses before they are built and stored."""

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    def _validate_schema(
        self,
        amount: Optional[Decimal],
        reason: str,
        category: str,
        paid_by: str,
        participants: list[str],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if amount is None:
            issues.append(_error("amount", "missing", "Amount is required"))
        elif amount <= 0:
            issues.append(_error(
                "amount", "invalid_value", "Amount must be greater than zero"
            ))

        if not reason or not reason.strip():
            issues.append(_error("reason", "missing", "A description is required"))

        if category == SETTLEMENT_CATEGORY:
            issues.append(_error(
                "category",
                "reserved",
                "Settlements are recorded with settle up, not as expenses",
            ))

        if not participants:
            issues.append(_error(
                "participants", "missing", "At least one participant is required"
            ))
        elif len(set(participants)) != len(participants):
            issues.append(_error(
                "participants", "duplicate", "A participant was added twice"
            ))
        elif paid_by not in participants:
            issues.append(_error(
                "paid_by", "not_participant", "The payer must be a participant"
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        amount: Decimal,
        category: str,
        participants: list[str],
        splits: list[Split],
        date: datetime,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        for split in splits:
            if split.participant_id not in participants:
                issues.append(_error(
                    "splits",
                    "not_participant",
                    f"Split for {split.participant_id} who is not a participant",
                ))

        if abs(split_total(splits) - amount) >= self._settings.split_tolerance:
            issues.append(_error(
                "splits", "mismatch", "split totals do not match amount"
            ))

        now = datetime.now(date.tzinfo)
        max_future = now + timedelta(days=self._settings.future_date_tolerance_days)
        if date > max_future:
            issues.append(_warning(
                "date", "future_date", f"Expense date ({date:%d %b %Y}) is in the future"
            ))

        if amount > self._settings.max_expense_amount:
            issues.append(_warning(
                "amount",
                "suspicious_value",
                f"Amount ({amount:,.2f}) seems unusually high",
            ))

        if category not in EXPENSE_CATEGORIES:
            issues.append(_warning(
                "category", "unknown", f"Unknown category '{category}'"
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(
        self,
        amount: Optional[Decimal],
        reason: str,
        category: str,
        paid_by: str,
        participants: list[str],
        splits: list[Split],
        date: Optional[datetime] = None,
    ) -> ValidationResult:
        """Run the full two-stage validation pipeline."""
        date = date or datetime.now(timezone.utc)

        schema_valid, issues = self._validate_schema(
            amount, reason, category, paid_by, participants
        )

        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(
                amount, category, participants, splits, date
            )
            issues.extend(semantic_issues)

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            issues=issues,
        )

    def validate_deletion(self, expense: Expense, requester_id: str) -> None:
        """Only the payer may delete an expense."""
        if expense.paid_by != requester_id:
            raise ValidationError.from_issues([_error(
                "paid_by",
                "not_permitted",
                "Only the person who paid can delete this expense",
            )])

    @staticmethod
    def ensure_valid(result: ValidationResult) -> None:
        """Raise ValidationError if the result has any error-level issue."""
        if result.has_errors:
            raise ValidationError.from_issues(result.issues)
