"""
Tests for Expense Tracker

Test strategy:
1. Unit tests for individual components (models, validators, insights)
2. Integration tests for flows (with in-memory backends)
3. No real API calls in tests (fake HTTP sessions, fixed clocks)
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from expense_tracker.models import (
    ActionOperation,
    AuthLogBuilder,
    AuthLogEvent,
    Budget,
    BudgetSummary,
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    ImportReport,
    PendingAction,
    RecurringExpense,
    ReplayReport,
    Session,
    UserProfile,
    ValidationIssue,
    ValidationResult,
)


class TestExpenseModels:
    """Tests for expense-related Pydantic models."""

    def test_draft_creation(self):
        """Test ExpenseDraft model creation."""
        draft = ExpenseDraft(
            amount=Decimal("12.50"),
            category=ExpenseCategory.FOOD,
            description="Lunch",
            date=date(2024, 6, 10),
        )
        assert draft.amount == Decimal("12.50")
        assert draft.category == ExpenseCategory.FOOD

    def test_draft_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            ExpenseDraft(amount=Decimal("-1"), category="Food", date=date(2024, 6, 10))

    def test_draft_missing_description_is_empty(self):
        """Test that a null description is stored as an empty string."""
        draft = ExpenseDraft(amount=5, category="Food", description=None, date=date(2024, 6, 10))
        assert draft.description == ""

    def test_draft_to_payload(self):
        """Test the row shape sent to the expenses table."""
        draft = ExpenseDraft(amount=Decimal("9.99"), category="Shopping", date=date(2024, 6, 1))
        assert draft.to_payload() == {
            "amount": 9.99,
            "category": "Shopping",
            "description": "",
            "date": "2024-06-01",
        }

    def test_expense_coerces_identifiers(self):
        """Test that integer ids from the backend become strings."""
        expense = Expense.model_validate({
            "id": 42,
            "user_id": "u-1",
            "amount": "10",
            "category": "Bills",
            "description": "Water",
            "date": "2024-05-01",
            "created_at": "2024-05-01T10:00:00+00:00",
        })
        assert expense.id == "42"
        assert expense.to_draft().description == "Water"

    def test_expense_rejects_unknown_category(self):
        """Test that categories outside the enumerated set are rejected."""
        with pytest.raises(ValueError):
            Expense(id="1", user_id="u", amount=1, category="Travel", date=date(2024, 1, 1))

    def test_budget_summary_over_budget(self):
        """Test the over-budget flag."""
        summary = BudgetSummary(
            budget=Decimal("100"),
            spent=Decimal("120"),
            remaining=Decimal("-20"),
            percentage=120.0,
        )
        assert summary.over_budget

    def test_zero_budget_is_never_over(self):
        """Test that no budget means no over-budget warning."""
        summary = BudgetSummary(budget=Decimal("0"), spent=Decimal("5"), remaining=Decimal("-5"), percentage=0.0)
        assert not summary.over_budget

    def test_budget_payload(self):
        budget = Budget(user_id="u-1", amount=Decimal("500"))
        assert budget.to_payload() == {"user_id": "u-1", "amount": 500.0}

    def test_recurring_day_of_month_bounds(self):
        """Test that day_of_month must be 1..31."""
        with pytest.raises(ValueError):
            RecurringExpense(category="Bills", amount=10, day_of_month=32)

    def test_recurring_payload_omits_missing_user(self):
        item = RecurringExpense(category="Bills", amount=10, description="Rent")
        payload = item.to_payload()
        assert "user_id" not in payload
        assert payload["frequency"] == "monthly"


class TestSessionModels:
    """Tests for session models."""

    def test_from_auth_response_uses_expires_at(self):
        """Test that the absolute expiry wins over expires_in."""
        session = Session.from_auth_response({
            "access_token": "a",
            "refresh_token": "r",
            "expires_at": 1718452800,
            "expires_in": 10,
            "user": {
                "id": "u-1",
                "email": "ada@example.com",
                "user_metadata": {"first_name": "Ada", "last_name": "Lovelace"},
            },
        })
        assert session.expires_at == datetime.fromtimestamp(1718452800, tz=timezone.utc)
        assert session.user.display_name == "Ada Lovelace"
        assert session.user.initials == "AL"

    def test_from_auth_response_falls_back_to_expires_in(self):
        now = datetime(2024, 6, 15, tzinfo=timezone.utc)
        session = Session.from_auth_response(
            {"access_token": "a", "refresh_token": "r", "expires_in": 3600, "user": {"id": "u", "email": "x@y.z"}},
            now=now,
        )
        assert session.expires_at == now + timedelta(hours=1)

    def test_refresh_due_at(self):
        expires = datetime(2024, 6, 15, 13, 0, tzinfo=timezone.utc)
        session = Session(
            access_token="a",
            refresh_token="r",
            expires_at=expires,
            user=UserProfile(id="u", email="x@y.z"),
        )
        assert session.refresh_due_at(timedelta(minutes=5)) == expires - timedelta(minutes=5)
        assert not session.is_expired(expires - timedelta(seconds=1))
        assert session.is_expired(expires)

    def test_display_name_falls_back_to_email(self):
        user = UserProfile(id="u", email="ada@example.com")
        assert user.display_name == "ada@example.com"
        assert user.initials == "A"


class TestActionModels:
    """Tests for pending action models."""

    def test_pending_action_defaults(self):
        action = PendingAction(operation=ActionOperation.DELETE_EXPENSE, payload={"id": "7"})
        assert action.attempts == 0
        assert action.action_id
        assert action.describe() == "delete expense 7"

    def test_pending_action_json_round_trip(self):
        """Test that an action survives being written to local storage."""
        action = PendingAction(operation=ActionOperation.UPSERT_BUDGET, payload={"user_id": "u", "amount": "5"})
        restored = PendingAction.model_validate(action.model_dump(mode="json"))
        assert restored == action

    def test_replay_report_processed(self):
        report = ReplayReport(succeeded=["a", "b"], requeued=["c"], dropped=[])
        assert report.processed == 3

    def test_import_report_total(self):
        assert ImportReport(imported=2, queued=1, skipped=3).total_rows == 6


class TestAuditModels:
    """Tests for auth log models."""

    def test_login_failed_entry(self):
        entry = AuthLogBuilder.login_failed("ada@example.com", "Invalid login credentials")
        assert entry.event == AuthLogEvent.LOGIN_FAILED
        assert not entry.success
        assert entry.to_payload()["error_message"] == "Invalid login credentials"

    def test_success_payload_has_no_error_message(self):
        payload = AuthLogBuilder.login("ada@example.com").to_payload()
        assert payload["event"] == "login"
        assert "error_message" not in payload

    def test_logout_expired(self):
        assert AuthLogBuilder.logout("a@b.c", expired=True).event == AuthLogEvent.SESSION_EXPIRED
        assert AuthLogBuilder.logout("a@b.c").event == AuthLogEvent.LOGOUT

    def test_to_log_dict(self):
        entry = AuthLogBuilder.registration("ada@example.com")
        log_dict = entry.to_log_dict()
        assert log_dict["event_type"] == "registration"
        assert log_dict["entry_id"] == str(entry.entry_id)


class TestValidationResult:
    """Tests for ValidationResult."""

    def test_validation_result_has_errors(self):
        result = ValidationResult(issues=[
            ValidationIssue(field="amount", issue_type="missing", message="Amount is required"),
            ValidationIssue(field="description", issue_type="long", message="Long", severity="warning"),
        ])
        assert not result.is_valid
        assert result.has_errors
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        result = ValidationResult(issues=[
            ValidationIssue(field="description", issue_type="long", message="Long", severity="warning"),
        ])
        assert result.is_valid


class TestExpenseCategories:
    """Tests for expense categories."""

    def test_all_categories_exist(self):
        assert [c.value for c in ExpenseCategory] == [
            "Food", "Transportation", "Entertainment", "Shopping", "Bills", "Other",
        ]
