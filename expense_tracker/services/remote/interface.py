"""
Abstract Backend Interfaces

DESIGN DECISION: Every call to the hosted backend goes through one of
these interfaces. This allows us to:
1. Use in-memory backends for tests and offline demos
2. Keep flows and the UI unaware of HTTP, headers and table names
3. Replay queued mutations through the same code path as live ones

The interfaces are intentionally thin. Query execution, token issuance and
row-level security belong to the backend.
"""

from abc import ABC, abstractmethod
from typing import Optional

from expense_tracker.models.audit import AuthLogEntry
from expense_tracker.models.expense import (
    Budget,
    Expense,
    ExpenseDraft,
    RecurringExpense,
)
from expense_tracker.models.session import Session, UserProfile


class RemoteError(Exception):
    """Base exception for backend calls."""
    pass


class NetworkError(RemoteError):
    """The backend could not be reached (DNS, refused connection, timeout)."""
    pass


class HTTPStatusError(RemoteError):
    """The backend answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str, url: Optional[str] = None):
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class NotFoundError(RemoteError):
    """Entity not found in the backend."""
    pass


class AuthError(RemoteError):
    """The auth backend rejected the request (bad credentials, expired code, ...)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class AuthBackendInterface(ABC):
    """Authentication operations. Tokens are issued and verified by the backend."""

    @abstractmethod
    def sign_in(self, email: str, password: str) -> Session:
        """
        Exchange email and password for a session.

        Raises:
            AuthError: If the credentials are rejected
        """
        pass

    @abstractmethod
    def sign_up(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> Optional[Session]:
        """
        Register a new user.

        Returns:
            A session when the backend signs the user in right away,
            None when the email must be confirmed first
        """
        pass

    @abstractmethod
    def request_otp(self, email: str) -> None:
        """Send a one-time code to an existing user's email."""
        pass

    @abstractmethod
    def verify_otp(self, email: str, token: str) -> Session:
        """Exchange a one-time code for a session."""
        pass

    @abstractmethod
    def update_password(self, access_token: str, new_password: str) -> UserProfile:
        pass

    @abstractmethod
    def sign_out(self, access_token: str) -> None:
        pass

    @abstractmethod
    def refresh_session(self, refresh_token: str) -> Session:
        """
        Trade a refresh token for a new session.

        Raises:
            AuthError: If the refresh token is no longer valid
        """
        pass

    @abstractmethod
    def get_user(self, access_token: str) -> UserProfile:
        pass


class ExpenseStorageInterface(ABC):
    """
    Expense CRUD against the expenses collection.

    Rows are scoped to the signed-in user by the backend.
    """

    @abstractmethod
    def list_expenses(self) -> list[Expense]:
        """
        List the user's expenses, newest date first.
        """
        pass

    @abstractmethod
    def create_expense(self, draft: ExpenseDraft, user_id: str) -> Expense:
        """
        Insert an expense.

        Returns:
            The stored row, including its backend-assigned id
        """
        pass

    @abstractmethod
    def update_expense(self, expense_id: str, draft: ExpenseDraft) -> Expense:
        """
        Replace the editable fields of an expense.

        Raises:
            NotFoundError: If no row has this id
        """
        pass

    @abstractmethod
    def delete_expense(self, expense_id: str) -> bool:
        """
        Delete an expense.

        Returns:
            True if a row was deleted
        """
        pass


class BudgetStorageInterface(ABC):
    """Monthly budget, one row per user."""

    @abstractmethod
    def get_budget(self, user_id: str) -> Optional[Budget]:
        pass

    @abstractmethod
    def upsert_budget(self, budget: Budget) -> Budget:
        pass


class RecurringExpenseStorageInterface(ABC):
    """Recurring expense templates."""

    @abstractmethod
    def list_recurring(self, user_id: str) -> list[RecurringExpense]:
        pass

    @abstractmethod
    def create_recurring(self, item: RecurringExpense) -> RecurringExpense:
        pass

    @abstractmethod
    def update_recurring(self, item: RecurringExpense) -> RecurringExpense:
        """
        Raises:
            NotFoundError: If item.id does not exist
        """
        pass

    @abstractmethod
    def delete_recurring(self, item_id: str) -> bool:
        pass


class AuthLogStorageInterface(ABC):
    """
    Append-only auth log.

    We never read, delete or modify entries from the client.
    """

    @abstractmethod
    def append_entry(self, entry: AuthLogEntry) -> bool:
        """
        Append an auth log entry.

        Returns:
            True if logged successfully
        """
        pass
