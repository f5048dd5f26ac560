"""Offline support: the pending action queue and its dispatcher."""

from expense_tracker.offline.dispatcher import (
    ActionDispatcher,
    UnknownActionError,
    create_expense_action,
    delete_expense_action,
    delete_recurring_action,
    save_recurring_action,
    update_expense_action,
    upsert_budget_action,
)
from expense_tracker.offline.queue import PendingActionQueue

__all__ = [
    "ActionDispatcher",
    "PendingActionQueue",
    "UnknownActionError",
    "create_expense_action",
    "delete_expense_action",
    "delete_recurring_action",
    "save_recurring_action",
    "update_expense_action",
    "upsert_budget_action",
]
