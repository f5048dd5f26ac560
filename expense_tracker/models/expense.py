"""
Core Data Models for Expense Tracker

These models define the schemas for every record exchanged with the backend.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for the backend and for local storage

DESIGN DECISION: Amounts are Decimal inside the client and only become
JSON numbers at the wire boundary, so sums and percentages do not drift.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    The values are the exact strings stored in the backend and written to CSV.
    """
    FOOD = "Food"
    TRANSPORTATION = "Transportation"
    ENTERTAINMENT = "Entertainment"
    SHOPPING = "Shopping"
    BILLS = "Bills"
    OTHER = "Other"


class RecurrenceFrequency(str, Enum):
    """How often a recurring expense repeats."""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseDraft(BaseModel):
    """
    An expense as entered by the user, before the backend assigns an id.

    Used for both inserts and updates.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount spent"
    )
    category: ExpenseCategory
    description: str = Field(
        default="",
        max_length=500,
        description="Free-text note"
    )
    date: date

    @field_validator('description', mode='before')
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    def to_payload(self) -> dict[str, Any]:
        """Row fields in the shape the expenses table expects."""
        return {
            "amount": float(self.amount),
            "category": self.category.value,
            "description": self.description,
            "date": self.date.isoformat(),
        }


class Expense(ExpenseDraft):
    """
    An expense row owned by the backend.

    The client only ever holds a transient copy of these for the current session.
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Backend-assigned identifier"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owner of the row"
    )
    created_at: Optional[datetime] = None

    @field_validator('id', 'user_id', mode='before')
    @classmethod
    def coerce_identifier(cls, v: Any) -> Any:
        """Backends hand out ints or UUIDs; the client treats both as opaque strings."""
        return str(v) if v is not None else v

    def to_draft(self) -> ExpenseDraft:
        return ExpenseDraft(
            amount=self.amount,
            category=self.category,
            description=self.description,
            date=self.date,
        )


# =============================================================================
# BUDGETS AND RECURRING EXPENSES
# =============================================================================

class Budget(BaseModel):
    """A user's monthly spending budget. One row per user."""

    user_id: str
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Monthly budget"
    )

    def to_payload(self) -> dict[str, Any]:
        return {"user_id": self.user_id, "amount": float(self.amount)}


class BudgetSummary(BaseModel):
    """How the current month compares to the budget."""

    budget: Decimal
    spent: Decimal
    remaining: Decimal
    percentage: float = Field(
        ...,
        description="Spent as a percentage of budget (0 when no budget is set)"
    )

    @property
    def over_budget(self) -> bool:
        return self.budget > 0 and self.spent > self.budget


class RecurringExpense(BaseModel):
    """A template for an expense that repeats on a schedule."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    user_id: Optional[str] = None
    description: str = Field(default="", max_length=500)
    category: ExpenseCategory
    amount: Decimal = Field(..., ge=0)
    frequency: RecurrenceFrequency = RecurrenceFrequency.MONTHLY
    day_of_month: int = Field(
        default=1,
        ge=1,
        le=31,
        description="Day of the month the expense falls due"
    )

    @field_validator('id', 'user_id', mode='before')
    @classmethod
    def coerce_identifier(cls, v: Any) -> Any:
        return str(v) if v is not None else v

    def to_payload(self) -> dict[str, Any]:
        payload = {
            "description": self.description,
            "category": self.category.value,
            "amount": float(self.amount),
            "frequency": self.frequency.value,
            "day_of_month": self.day_of_month,
        }
        if self.user_id:
            payload["user_id"] = self.user_id
        return payload


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found on a form."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'weak_password')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of validating a form.

    Errors block submission; warnings are shown inline only.
    """

    issues: list[ValidationIssue] = Field(default_factory=list)
    draft: Optional[ExpenseDraft] = Field(
        default=None,
        description="Parsed expense when an expense form was valid"
    )

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def messages(self) -> list[str]:
        return [issue.message for issue in self.issues]
