"""Session lifecycle package."""

from expense_tracker.session.lifecycle import (
    SessionExpiredError,
    SessionLifecycle,
    SessionStore,
    utcnow,
)

__all__ = [
    "SessionExpiredError",
    "SessionLifecycle",
    "SessionStore",
    "utcnow",
]
