"""
In-Memory Backends

Stand-ins for the hosted backend, used by tests and by the app when no
Supabase project is configured. Setting offline=True makes every call
raise NetworkError, which is how the offline queue is exercised without
a network.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import uuid4

from expense_tracker.models.audit import AuthLogEntry
from expense_tracker.models.expense import (
    Budget,
    Expense,
    ExpenseDraft,
    RecurringExpense,
)
from expense_tracker.models.session import Session, UserProfile
from expense_tracker.services.remote.interface import (
    AuthBackendInterface,
    AuthError,
    AuthLogStorageInterface,
    BudgetStorageInterface,
    ExpenseStorageInterface,
    NetworkError,
    NotFoundError,
    RecurringExpenseStorageInterface,
)


class _OfflineSwitch:
    offline: bool = False

    def _check_online(self) -> None:
        if self.offline:
            raise NetworkError("Failed to fetch")


class InMemoryExpenseStorage(_OfflineSwitch, ExpenseStorageInterface):

    def __init__(self, expenses: Optional[list[Expense]] = None):
        self._rows: dict[str, Expense] = {e.id: e for e in expenses or []}

    def list_expenses(self) -> list[Expense]:
        self._check_online()
        return sorted(self._rows.values(), key=lambda e: e.date, reverse=True)

    def create_expense(self, draft: ExpenseDraft, user_id: str) -> Expense:
        self._check_online()
        expense = Expense(
            **draft.model_dump(),
            id=uuid4().hex,
            user_id=user_id,
            created_at=datetime.now(timezone.utc),
        )
        self._rows[expense.id] = expense
        return expense

    def update_expense(self, expense_id: str, draft: ExpenseDraft) -> Expense:
        self._check_online()
        current = self._rows.get(expense_id)
        if current is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        updated = current.model_copy(update=draft.model_dump())
        self._rows[expense_id] = updated
        return updated

    def delete_expense(self, expense_id: str) -> bool:
        self._check_online()
        return self._rows.pop(expense_id, None) is not None


class InMemoryBudgetStorage(_OfflineSwitch, BudgetStorageInterface):

    def __init__(self):
        self._budgets: dict[str, Budget] = {}

    def get_budget(self, user_id: str) -> Optional[Budget]:
        self._check_online()
        return self._budgets.get(user_id)

    def upsert_budget(self, budget: Budget) -> Budget:
        self._check_online()
        self._budgets[budget.user_id] = budget
        return budget


class InMemoryRecurringExpenseStorage(_OfflineSwitch, RecurringExpenseStorageInterface):

    def __init__(self):
        self._items: dict[str, RecurringExpense] = {}

    def list_recurring(self, user_id: str) -> list[RecurringExpense]:
        self._check_online()
        return [item for item in self._items.values() if item.user_id == user_id]

    def create_recurring(self, item: RecurringExpense) -> RecurringExpense:
        self._check_online()
        stored = item.model_copy(update={"id": uuid4().hex})
        self._items[stored.id] = stored
        return stored

    def update_recurring(self, item: RecurringExpense) -> RecurringExpense:
        self._check_online()
        if not item.id or item.id not in self._items:
            raise NotFoundError(f"Recurring expense not found: {item.id}")
        self._items[item.id] = item
        return item

    def delete_recurring(self, item_id: str) -> bool:
        self._check_online()
        return self._items.pop(item_id, None) is not None


class InMemoryAuthLogStorage(_OfflineSwitch, AuthLogStorageInterface):

    def __init__(self):
        self.entries: list[AuthLogEntry] = []

    def append_entry(self, entry: AuthLogEntry) -> bool:
        self._check_online()
        self.entries.append(entry)
        return True


class InMemoryAuthBackend(_OfflineSwitch, AuthBackendInterface):
    """
    Accepts any registered email/password pair.

    One-time codes are always "123456". Tokens last token_lifetime,
    measured on the injected clock.
    """

    OTP_CODE = "123456"

    def __init__(
        self,
        token_lifetime: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._users: dict[str, tuple[str, UserProfile]] = {}
        self._refresh_tokens: dict[str, str] = {}
        self._access_tokens: dict[str, str] = {}
        self._token_lifetime = token_lifetime
        self._clock = clock
        self.refresh_calls = 0

    def _issue(self, email: str) -> Session:
        _, user = self._users[email]
        access, refresh = uuid4().hex, uuid4().hex
        self._access_tokens[access] = email
        self._refresh_tokens[refresh] = email
        return Session(
            access_token=access,
            refresh_token=refresh,
            expires_at=self._clock() + self._token_lifetime,
            user=user,
        )

    def _email_for(self, access_token: str) -> str:
        email = self._access_tokens.get(access_token)
        if email is None:
            raise AuthError("Invalid token", status_code=401)
        return email

    def sign_in(self, email: str, password: str) -> Session:
        self._check_online()
        stored = self._users.get(email)
        if stored is None or stored[0] != password:
            raise AuthError("Invalid login credentials", status_code=400)
        return self._issue(email)

    def sign_up(self, email: str, password: str, first_name: str, last_name: str) -> Optional[Session]:
        self._check_online()
        if email in self._users:
            raise AuthError("User already registered", status_code=422)
        user = UserProfile(id=uuid4().hex, email=email, first_name=first_name, last_name=last_name)
        self._users[email] = (password, user)
        return self._issue(email)

    def request_otp(self, email: str) -> None:
        self._check_online()
        if email not in self._users:
            raise AuthError("Signups not allowed for otp", status_code=422)

    def verify_otp(self, email: str, token: str) -> Session:
        self._check_online()
        if email not in self._users or token != self.OTP_CODE:
            raise AuthError("Token has expired or is invalid", status_code=403)
        return self._issue(email)

    def update_password(self, access_token: str, new_password: str) -> UserProfile:
        self._check_online()
        email = self._email_for(access_token)
        _, user = self._users[email]
        self._users[email] = (new_password, user)
        return user

    def sign_out(self, access_token: str) -> None:
        self._check_online()
        self._access_tokens.pop(access_token, None)

    def refresh_session(self, refresh_token: str) -> Session:
        self._check_online()
        self.refresh_calls += 1
        email = self._refresh_tokens.pop(refresh_token, None)
        if email is None:
            raise AuthError("Invalid Refresh Token", status_code=400)
        return self._issue(email)

    def get_user(self, access_token: str) -> UserProfile:
        self._check_online()
        return self._users[self._email_for(access_token)][1]
