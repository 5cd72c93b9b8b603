"""
Tests for Splitbook

Test strategy:
1. Unit tests for individual components (models, ledger functions, validator)
2. Flow tests for the session against in-memory storage
3. No real Google Sheets calls in tests (use fakes)
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from splitbook.models import (
    EXPENSE_CATEGORIES,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    BalanceSummary,
    Expense,
    ExpenseDraft,
    FriendBalance,
    Split,
    User,
    ValidationIssue,
    ValidationResult,
    derive_label,
)


ALICE = "alice@example.com"
BOB = "bob@example.com"


def _draft(**overrides):
    fields = dict(
        amount=Decimal("100.00"),
        reason="Dinner",
        category="Food",
        date=datetime(2026, 10, 17, 20, 0),
        paid_by=ALICE,
        participants=[ALICE, BOB],
        splits=[
            Split(participant_id=ALICE, amount=Decimal("50.00")),
            Split(participant_id=BOB, amount=Decimal("50.00")),
        ],
    )
    fields.update(overrides)
    return ExpenseDraft(**fields)


class TestUserModel:
    """Tests for the User model."""

    def test_label_prefers_display_name(self):
        user = User(id=ALICE, email=ALICE, display_name="  Alice  ")
        assert user.display_name == "Alice"
        assert user.label == "Alice"

    def test_label_falls_back_to_email_local_part(self):
        user = User(id=BOB, email=BOB)
        assert user.label == "bob"

    def test_derive_label(self):
        assert derive_label("carol@example.com") == "carol"
        assert derive_label("uid-123") == "uid-123"
        assert derive_label("@example.com") == "@example.com"


class TestExpenseModels:
    """Tests for expense-related Pydantic models."""

    def test_draft_creation(self):
        draft = _draft()
        assert draft.amount == Decimal("100.00")
        assert draft.is_settlement is False
        assert draft.share_of(BOB) == Decimal("50.00")

    def test_share_of_absent_participant_is_zero(self):
        draft = _draft(splits=[Split(participant_id=ALICE, amount=Decimal("100"))])
        assert draft.share_of(BOB) == Decimal("0")

    def test_split_rejects_negative_amount(self):
        with pytest.raises(ValueError):
            Split(participant_id=BOB, amount=Decimal("-1.00"))

    def test_amount_rejects_sub_cent_precision(self):
        with pytest.raises(ValueError, match="more than 2 decimal places"):
            _draft(
                amount=Decimal("100.001"),
                splits=[Split(participant_id=ALICE, amount=Decimal("100.00"))],
            )

    def test_amount_must_be_positive(self):
        with pytest.raises(ValueError):
            _draft(amount=Decimal("0"), splits=[])

    def test_payer_must_be_participant(self):
        with pytest.raises(ValueError, match="Payer must be one of the participants"):
            _draft(paid_by="dave@example.com")

    def test_split_owner_must_be_participant(self):
        with pytest.raises(ValueError, match="is not a participant"):
            _draft(splits=[
                Split(participant_id=ALICE, amount=Decimal("50.00")),
                Split(participant_id="dave@example.com", amount=Decimal("50.00")),
            ])

    def test_split_total_must_match_amount(self):
        with pytest.raises(ValueError, match="split totals do not match amount"):
            _draft(splits=[
                Split(participant_id=ALICE, amount=Decimal("50.00")),
                Split(participant_id=BOB, amount=Decimal("40.00")),
            ])

    def test_duplicate_participants_rejected(self):
        with pytest.raises(ValueError, match="duplicates"):
            _draft(participants=[ALICE, BOB, BOB])

    def test_settlement_shape(self):
        draft = _draft(
            amount=Decimal("30.00"),
            category="Settlement",
            splits=[
                Split(participant_id=BOB, amount=Decimal("30.00")),
                Split(participant_id=ALICE, amount=Decimal("0")),
            ],
        )
        assert draft.is_settlement is True

    def test_settlement_must_put_full_amount_on_one_side(self):
        with pytest.raises(ValueError, match="full amount to one side"):
            _draft(category="Settlement")

    def test_settlement_needs_exactly_two_participants(self):
        with pytest.raises(ValueError, match="exactly two participants"):
            _draft(
                amount=Decimal("30.00"),
                category="Settlement",
                participants=[ALICE, BOB, "carol@example.com"],
                splits=[
                    Split(participant_id=BOB, amount=Decimal("30.00")),
                    Split(participant_id=ALICE, amount=Decimal("0")),
                ],
            )

    def test_naive_date_is_made_zone_aware(self):
        naive = datetime(2026, 10, 1, 12, 0)
        draft = _draft(date=naive)
        assert draft.date.tzinfo is not None
        assert draft.date.replace(tzinfo=None) == naive

    def test_aware_date_kept(self):
        aware = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
        assert _draft(date=aware).date == aware

    def test_expense_from_draft(self):
        expense = Expense.from_draft(_draft(), "exp-1")
        assert expense.id == "exp-1"
        assert expense.splits[1].participant_id == BOB

    def test_categories(self):
        assert "Food" in EXPENSE_CATEGORIES
        assert "Settlement" not in EXPENSE_CATEGORIES


class TestBalanceSummary:
    """Tests for the derived BalanceSummary views."""

    def test_tabs(self):
        summary = BalanceSummary(
            reference_user_id=ALICE,
            balances=[
                FriendBalance(counterparty_id="a", name="A", balance=Decimal("20")),
                FriendBalance(counterparty_id="b", name="B", balance=Decimal("-5")),
                FriendBalance(counterparty_id="c", name="C", balance=Decimal("-40")),
            ],
        )
        assert [b.counterparty_id for b in summary.people_who_owe_user] == ["a"]
        assert [b.counterparty_id for b in summary.people_user_owes] == ["c", "b"]
        assert summary.get("b").balance == Decimal("-5")
        assert summary.get("zzz") is None


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            description="Expense added",
        )
        assert event.event_type == AuditEventType.EXPENSE_ADDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        event = AuditEvent(
            event_type=AuditEventType.SETTLEMENT_RECORDED,
            description="Settled",
            details={"mode": "pay", "amount": "50.00"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "settlement_recorded"
        assert log_dict["details"]["mode"] == "pay"

    def test_audit_event_to_sheets_row(self):
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            description="Expense deleted",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "expense_deleted"
        assert row[11] == "True"

    def test_builder_expense_added(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.expense_added(
            expense_id="exp-1",
            actor_id=ALICE,
            amount="100.00",
            category="Food",
            participant_count=2,
            correlation_id=correlation_id,
        )
        assert event.entity_id == "exp-1"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_builder_validation_failed_is_warning(self):
        event = AuditEventBuilder.validation_failed(
            actor_id=ALICE,
            operation="settle",
            issues=[{"field": "amount"}],
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.details["operation"] == "settle"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_has_errors(self):
        result = ValidationResult(
            schema_valid=False,
            semantic_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="missing",
                    message="Amount is required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.is_valid is False

    def test_warnings_only(self):
        result = ValidationResult(
            schema_valid=True,
            semantic_valid=True,
            issues=[
                ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.warnings == ["Date in future"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
