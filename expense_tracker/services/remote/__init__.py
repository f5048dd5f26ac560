"""
Remote Backend Package

Provides abstract interfaces and concrete implementations for every call
to the hosted backend. Supabase is the production backend; the in-memory
implementations back tests and offline demos.
"""

from expense_tracker.services.remote.interface import (
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
)
from expense_tracker.services.remote.http import SupabaseClient, fetch_with_retry
from expense_tracker.services.remote.supabase import (
    SupabaseAuthLogStorage,
    SupabaseAuthService,
    SupabaseBudgetStorage,
    SupabaseExpenseStorage,
    SupabaseRecurringExpenseStorage,
)
from expense_tracker.services.remote.memory import (
    InMemoryAuthBackend,
    InMemoryAuthLogStorage,
    InMemoryBudgetStorage,
    InMemoryExpenseStorage,
    InMemoryRecurringExpenseStorage,
)

__all__ = [
    # Interfaces
    "AuthBackendInterface",
    "AuthLogStorageInterface",
    "BudgetStorageInterface",
    "ExpenseStorageInterface",
    "RecurringExpenseStorageInterface",
    # Exceptions
    "AuthError",
    "HTTPStatusError",
    "NetworkError",
    "NotFoundError",
    "RemoteError",
    # Supabase implementation
    "SupabaseAuthLogStorage",
    "SupabaseAuthService",
    "SupabaseBudgetStorage",
    "SupabaseClient",
    "SupabaseExpenseStorage",
    "SupabaseRecurringExpenseStorage",
    "fetch_with_retry",
    # In-memory implementation
    "InMemoryAuthBackend",
    "InMemoryAuthLogStorage",
    "InMemoryBudgetStorage",
    "InMemoryExpenseStorage",
    "InMemoryRecurringExpenseStorage",
]
