"""
Form Validation

Pure functions that check what the user typed before anything is sent
to the backend.

- Password strength (sign-up and password reset)
- Form completeness (sign-up, password reset, expense entry)

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the form can show them inline and block submission.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from expense_tracker.models.expense import (
    ExpenseCategory,
    ExpenseDraft,
    ValidationIssue,
    ValidationResult,
)


PASSWORD_MIN_LENGTH = 8
PASSWORD_SYMBOLS = '!@#$%^&*(),.?":{}|<>'

_PASSWORD_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"[A-Z]"), "One uppercase letter"),
    (re.compile(r"[a-z]"), "One lowercase letter"),
    (re.compile(r"[0-9]"), "One number"),
    (re.compile("[" + re.escape(PASSWORD_SYMBOLS) + "]"), "One special character"),
]

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def check_password_strength(password: str) -> list[str]:
    """
    List the password requirements that are not met.

    An empty list means the password is acceptable.
    """
    unmet = []
    if len(password) < PASSWORD_MIN_LENGTH:
        unmet.append(f"At least {PASSWORD_MIN_LENGTH} characters")
    for pattern, message in _PASSWORD_RULES:
        if not pattern.search(password):
            unmet.append(message)
    return unmet


def _required(issues: list[ValidationIssue], field: str, value: Optional[str], label: str) -> bool:
    if value is None or not str(value).strip():
        issues.append(ValidationIssue(
            field=field,
            issue_type="missing",
            message=f"{label} is required",
        ))
        return False
    return True


def _password_issues(field: str, password: str) -> list[ValidationIssue]:
    return [
        ValidationIssue(field=field, issue_type="weak_password", message=message)
        for message in check_password_strength(password)
    ]


def validate_sign_up_form(
    first_name: str,
    last_name: str,
    email: str,
    password: str,
) -> ValidationResult:
    """Check a sign-up form. Sign-in forms only need email and password present."""
    issues: list[ValidationIssue] = []
    _required(issues, "first_name", first_name, "First name")
    _required(issues, "last_name", last_name, "Last name")
    if _required(issues, "email", email, "Email") and not EMAIL_PATTERN.match(email.strip()):
        issues.append(ValidationIssue(
            field="email",
            issue_type="invalid_format",
            message="Enter a valid email address",
        ))
    if _required(issues, "password", password, "Password"):
        weak = _password_issues("password", password)
        if weak:
            issues.append(ValidationIssue(
                field="password",
                issue_type="weak_password",
                message="Please fix the password requirements",
            ))
            issues.extend(weak)
    return ValidationResult(issues=issues)


def validate_sign_in_form(email: str, password: str) -> ValidationResult:
    issues: list[ValidationIssue] = []
    _required(issues, "email", email, "Email")
    _required(issues, "password", password, "Password")
    return ValidationResult(issues=issues)


def validate_password_reset(
    code: str,
    new_password: str,
    confirm_password: str,
) -> ValidationResult:
    """
    Check the second step of the password reset dialog.

    A mismatch is reported before strength, the same order the dialog shows them.
    """
    issues: list[ValidationIssue] = []
    _required(issues, "code", code, "Verification code")
    if not _required(issues, "new_password", new_password, "New password"):
        return ValidationResult(issues=issues)

    if new_password != confirm_password:
        issues.append(ValidationIssue(
            field="confirm_password",
            issue_type="mismatch",
            message="Passwords do not match",
        ))
        return ValidationResult(issues=issues)

    weak = _password_issues("new_password", new_password)
    if weak:
        issues.append(ValidationIssue(
            field="new_password",
            issue_type="weak_password",
            message="Please fix the password requirements",
        ))
        issues.extend(weak)
    return ValidationResult(issues=issues)


def validate_expense_form(
    amount: Union[str, Decimal, float, None],
    category: Union[str, ExpenseCategory, None],
    description: Optional[str],
    expense_date: Union[str, date, None],
) -> ValidationResult:
    """
    Check an expense form and parse it into an ExpenseDraft.

    Amount, category and date are required; description is optional.
    """
    issues: list[ValidationIssue] = []

    parsed_amount: Optional[Decimal] = None
    if amount is None or str(amount).strip() == "":
        issues.append(ValidationIssue(field="amount", issue_type="missing", message="Amount is required"))
    else:
        try:
            parsed_amount = Decimal(str(amount).strip())
        except InvalidOperation:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message=f"Amount is not a number: {amount}",
            ))
        else:
            if not parsed_amount.is_finite():
                parsed_amount = None
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_format",
                    message=f"Amount is not a number: {amount}",
                ))
            elif parsed_amount < 0:
                parsed_amount = None
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Amount cannot be negative",
                ))

    parsed_category: Optional[ExpenseCategory] = None
    if category is None or str(getattr(category, "value", category)).strip() == "":
        issues.append(ValidationIssue(field="category", issue_type="missing", message="Category is required"))
    else:
        try:
            parsed_category = ExpenseCategory(getattr(category, "value", category))
        except ValueError:
            issues.append(ValidationIssue(
                field="category",
                issue_type="invalid_value",
                message=f"Unknown category: {category}",
            ))

    parsed_date: Optional[date] = None
    if isinstance(expense_date, date):
        parsed_date = expense_date
    elif expense_date is None or str(expense_date).strip() == "":
        issues.append(ValidationIssue(field="date", issue_type="missing", message="Date is required"))
    else:
        try:
            parsed_date = date.fromisoformat(str(expense_date).strip())
        except ValueError:
            issues.append(ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message=f"Date must be YYYY-MM-DD: {expense_date}",
            ))

    result = ValidationResult(issues=issues)
    if result.is_valid:
        result.draft = ExpenseDraft(
            amount=parsed_amount,
            category=parsed_category,
            description=description or "",
            date=parsed_date,
        )
    return result
