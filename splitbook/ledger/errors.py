"""
Ledger Errors

ValidationError is raised synchronously for malformed or inconsistent
input and is never retried. Storage failures live with the storage
interface (PersistenceError and friends).
"""

from typing import Optional

import pydantic

from splitbook.models.expense import ValidationIssue


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError):
    """
    Input rejected before anything was created.

    Carries the individual issues so callers can show them per field.
    """

    def __init__(
        self,
        message: str,
        issues: Optional[list[ValidationIssue]] = None,
        field: str = "input",
    ):
        super().__init__(message)
        self.message = message
        if issues is None:
            issues = [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=message,
                severity="error",
            )]
        self.issues = issues

    @classmethod
    def from_issues(cls, issues: list[ValidationIssue]) -> "ValidationError":
        errors = [issue for issue in issues if issue.severity == "error"]
        message = "; ".join(issue.message for issue in errors) or "invalid input"
        return cls(message, issues=issues)

    @classmethod
    def from_pydantic(cls, exc: pydantic.ValidationError) -> "ValidationError":
        """Convert a model validation failure into ledger issues."""
        issues = [
            ValidationIssue(
                field=".".join(str(part) for part in error["loc"]) or "expense",
                issue_type=error["type"],
                message=error["msg"],
                severity="error",
            )
            for error in exc.errors()
        ]
        return cls.from_issues(issues)

    def issue_dicts(self) -> list[dict]:
        return [issue.model_dump() for issue in self.issues]
