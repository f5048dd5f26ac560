"""Services package."""

from expense_tracker.services.local_storage import (
    JsonFileStorage,
    LocalStorage,
    LocalStorageError,
    MemoryStorage,
)
from expense_tracker.services.remote import (
    AuthBackendInterface,
    AuthError,
    AuthLogStorageInterface,
    BudgetStorageInterface,
    ExpenseStorageInterface,
    HTTPStatusError,
    NetworkError,
    NotFoundError,
    RecurringExpenseStorageInterface,
    RemoteError,
    SupabaseClient,
)

__all__ = [
    # Local storage
    "JsonFileStorage",
    "LocalStorage",
    "LocalStorageError",
    "MemoryStorage",
    # Remote backend
    "AuthBackendInterface",
    "AuthError",
    "AuthLogStorageInterface",
    "BudgetStorageInterface",
    "ExpenseStorageInterface",
    "HTTPStatusError",
    "NetworkError",
    "NotFoundError",
    "RecurringExpenseStorageInterface",
    "RemoteError",
    "SupabaseClient",
]
