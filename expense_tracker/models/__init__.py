"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker.
Everything sent to the backend or written to local storage conforms to these schemas.
"""

from expense_tracker.models.expense import (
    Budget,
    BudgetSummary,
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    RecurrenceFrequency,
    RecurringExpense,
    ValidationIssue,
    ValidationResult,
)
from expense_tracker.models.session import Session, UserProfile
from expense_tracker.models.actions import (
    ActionOperation,
    ImportReport,
    PendingAction,
    ReplayReport,
)
from expense_tracker.models.audit import (
    AuthLogBuilder,
    AuthLogEntry,
    AuthLogEvent,
)

__all__ = [
    # Expense models
    "Budget",
    "BudgetSummary",
    "Expense",
    "ExpenseCategory",
    "ExpenseDraft",
    "RecurrenceFrequency",
    "RecurringExpense",
    "ValidationIssue",
    "ValidationResult",
    # Session models
    "Session",
    "UserProfile",
    # Offline queue models
    "ActionOperation",
    "ImportReport",
    "PendingAction",
    "ReplayReport",
    # Audit models
    "AuthLogBuilder",
    "AuthLogEntry",
    "AuthLogEvent",
]
