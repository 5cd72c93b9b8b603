"""Expense validation package."""

from splitbook.validation.validator import ExpenseValidator

__all__ = ["ExpenseValidator"]
