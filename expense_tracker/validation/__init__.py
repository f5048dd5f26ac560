"""Form validation package."""

from expense_tracker.validation.validator import (
    PASSWORD_MIN_LENGTH,
    PASSWORD_SYMBOLS,
    check_password_strength,
    validate_expense_form,
    validate_password_reset,
    validate_sign_in_form,
    validate_sign_up_form,
)

__all__ = [
    "PASSWORD_MIN_LENGTH",
    "PASSWORD_SYMBOLS",
    "check_password_strength",
    "validate_expense_form",
    "validate_password_reset",
    "validate_sign_in_form",
    "validate_sign_up_form",
]
