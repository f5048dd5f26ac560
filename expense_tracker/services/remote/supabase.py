"""
Supabase Backend Implementation

DESIGN DECISION: Supabase is the backend-as-a-service. Auth goes through
its GoTrue endpoints, data through its PostgREST table endpoints. We talk
to both over plain HTTPS with the shared SupabaseClient, so retry and
header policy live in one place.

Row-level security on the backend scopes every table to the signed-in
user; the filters below only narrow what the user already owns.
"""

from typing import Any, Optional

import structlog
from pydantic import ValidationError

from expense_tracker.models.audit import AuthLogEntry
from expense_tracker.models.expense import (
    Budget,
    Expense,
    ExpenseDraft,
    RecurringExpense,
)
from expense_tracker.models.session import Session, UserProfile
from expense_tracker.services.remote.http import SupabaseClient
from expense_tracker.services.remote.interface import (
    AuthBackendInterface,
    AuthError,
    AuthLogStorageInterface,
    BudgetStorageInterface,
    ExpenseStorageInterface,
    HTTPStatusError,
    NotFoundError,
    RecurringExpenseStorageInterface,
)


logger = structlog.get_logger(__name__)

EXPENSES_TABLE = "expenses"
BUDGETS_TABLE = "budgets"
RECURRING_TABLE = "recurring_expenses"
AUTH_LOGS_TABLE = "auth_logs"

RETURN_ROWS = {"Prefer": "return=representation"}


def _first_row(rows: Any) -> Optional[dict]:
    if isinstance(rows, list):
        return rows[0] if rows else None
    return rows or None


class SupabaseAuthService(AuthBackendInterface):
    """
    GoTrue authentication.

    HTTP 4xx answers are turned into AuthError carrying the backend's
    message so the sign-in form can show it as is. Network errors pass through.
    """

    def __init__(self, client: SupabaseClient):
        self._client = client

    def _call(self, method: str, path: str, **kwargs) -> Any:
        try:
            return self._client.auth(method, path, **kwargs)
        except HTTPStatusError as e:
            if 400 <= e.status_code < 500:
                raise AuthError(str(e), status_code=e.status_code) from e
            raise

    def sign_in(self, email: str, password: str) -> Session:
        data = self._call(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return Session.from_auth_response(data)

    def sign_up(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> Optional[Session]:
        data = self._call(
            "POST",
            "/signup",
            json={
                "email": email,
                "password": password,
                "data": {"first_name": first_name, "last_name": last_name},
            },
        )
        # With email confirmation on, GoTrue answers with the bare user
        if data and data.get("access_token"):
            return Session.from_auth_response(data)
        return None

    def request_otp(self, email: str) -> None:
        self._call(
            "POST",
            "/otp",
            json={"email": email, "create_user": False},
        )

    def verify_otp(self, email: str, token: str) -> Session:
        data = self._call(
            "POST",
            "/verify",
            json={"email": email, "token": token, "type": "email"},
        )
        return Session.from_auth_response(data)

    def update_password(self, access_token: str, new_password: str) -> UserProfile:
        data = self._call(
            "PUT",
            "/user",
            json={"password": new_password},
            access_token=access_token,
        )
        return UserProfile.from_auth_user(data)

    def sign_out(self, access_token: str) -> None:
        self._call("POST", "/logout", access_token=access_token)

    def refresh_session(self, refresh_token: str) -> Session:
        data = self._call(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        return Session.from_auth_response(data)

    def get_user(self, access_token: str) -> UserProfile:
        data = self._call("GET", "/user", access_token=access_token)
        return UserProfile.from_auth_user(data)


class SupabaseExpenseStorage(ExpenseStorageInterface):
    """
    Expenses table.

    Rows that fail model validation are skipped with a warning rather
    than failing the whole list.
    """

    def __init__(self, client: SupabaseClient):
        self._client = client

    def list_expenses(self) -> list[Expense]:
        rows = self._client.rest(
            "GET",
            EXPENSES_TABLE,
            params={"select": "*", "order": "date.desc"},
        ) or []

        expenses = []
        for row in rows:
            try:
                expenses.append(Expense.model_validate(row))
            except ValidationError as e:
                logger.warning("expense_row_skipped", row_id=row.get("id"), error=str(e))
        return expenses

    def create_expense(self, draft: ExpenseDraft, user_id: str) -> Expense:
        payload = {**draft.to_payload(), "user_id": user_id}
        rows = self._client.rest("POST", EXPENSES_TABLE, json=[payload], headers=RETURN_ROWS)
        row = _first_row(rows)
        if row is None:
            raise NotFoundError("Backend did not return the inserted expense")
        return Expense.model_validate(row)

    def update_expense(self, expense_id: str, draft: ExpenseDraft) -> Expense:
        rows = self._client.rest(
            "PATCH",
            EXPENSES_TABLE,
            params={"id": f"eq.{expense_id}"},
            json=draft.to_payload(),
            headers=RETURN_ROWS,
        )
        row = _first_row(rows)
        if row is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        return Expense.model_validate(row)

    def delete_expense(self, expense_id: str) -> bool:
        rows = self._client.rest(
            "DELETE",
            EXPENSES_TABLE,
            params={"id": f"eq.{expense_id}"},
            headers=RETURN_ROWS,
        )
        return bool(rows)


class SupabaseBudgetStorage(BudgetStorageInterface):
    """Budgets table, keyed by user_id."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    def get_budget(self, user_id: str) -> Optional[Budget]:
        rows = self._client.rest(
            "GET",
            BUDGETS_TABLE,
            params={"select": "user_id,amount", "user_id": f"eq.{user_id}", "limit": "1"},
        )
        row = _first_row(rows)
        return Budget.model_validate(row) if row else None

    def upsert_budget(self, budget: Budget) -> Budget:
        rows = self._client.rest(
            "POST",
            BUDGETS_TABLE,
            params={"on_conflict": "user_id"},
            json=[budget.to_payload()],
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        row = _first_row(rows)
        return Budget.model_validate(row) if row else budget


class SupabaseRecurringExpenseStorage(RecurringExpenseStorageInterface):
    """Recurring expense templates table."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    def list_recurring(self, user_id: str) -> list[RecurringExpense]:
        rows = self._client.rest(
            "GET",
            RECURRING_TABLE,
            params={"select": "*", "user_id": f"eq.{user_id}"},
        ) or []
        items = []
        for row in rows:
            try:
                items.append(RecurringExpense.model_validate(row))
            except ValidationError as e:
                logger.warning("recurring_row_skipped", row_id=row.get("id"), error=str(e))
        return items

    def create_recurring(self, item: RecurringExpense) -> RecurringExpense:
        rows = self._client.rest(
            "POST",
            RECURRING_TABLE,
            json=[item.to_payload()],
            headers=RETURN_ROWS,
        )
        row = _first_row(rows)
        return RecurringExpense.model_validate(row) if row else item

    def update_recurring(self, item: RecurringExpense) -> RecurringExpense:
        if not item.id:
            raise NotFoundError("Recurring expense has no id")
        rows = self._client.rest(
            "PATCH",
            RECURRING_TABLE,
            params={"id": f"eq.{item.id}"},
            json=item.to_payload(),
            headers=RETURN_ROWS,
        )
        row = _first_row(rows)
        if row is None:
            raise NotFoundError(f"Recurring expense not found: {item.id}")
        return RecurringExpense.model_validate(row)

    def delete_recurring(self, item_id: str) -> bool:
        rows = self._client.rest(
            "DELETE",
            RECURRING_TABLE,
            params={"id": f"eq.{item_id}"},
            headers=RETURN_ROWS,
        )
        return bool(rows)


class SupabaseAuthLogStorage(AuthLogStorageInterface):
    """auth_logs table (insert only)."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    def append_entry(self, entry: AuthLogEntry) -> bool:
        self._client.rest("POST", AUTH_LOGS_TABLE, json=[entry.to_payload()])
        return True
