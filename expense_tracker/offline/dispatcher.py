"""
Pending Action Dispatcher

Maps each queued operation type to the backend call that performs it.
Payloads are plain JSON so they can be written to local storage; the
helpers at the bottom build them from models.
"""

from typing import Any, Callable, Optional

from expense_tracker.models.actions import ActionOperation, PendingAction
from expense_tracker.models.expense import (
    Budget,
    ExpenseDraft,
    RecurringExpense,
)
from expense_tracker.services.remote.interface import (
    BudgetStorageInterface,
    ExpenseStorageInterface,
    RecurringExpenseStorageInterface,
)


class UnknownActionError(Exception):
    """No handler is registered for a queued operation."""
    pass


ActionHandler = Callable[[dict[str, Any]], Any]


class ActionDispatcher:
    """
    Executes pending actions against the backend.

    Handlers for budgets and recurring expenses are only registered when
    the matching storage is given.
    """

    def __init__(
        self,
        expenses: ExpenseStorageInterface,
        budgets: Optional[BudgetStorageInterface] = None,
        recurring: Optional[RecurringExpenseStorageInterface] = None,
    ):
        self._handlers: dict[ActionOperation, ActionHandler] = {
            ActionOperation.CREATE_EXPENSE: lambda p: expenses.create_expense(
                ExpenseDraft.model_validate(p["draft"]), p["user_id"]
            ),
            ActionOperation.UPDATE_EXPENSE: lambda p: expenses.update_expense(
                p["id"], ExpenseDraft.model_validate(p["draft"])
            ),
            ActionOperation.DELETE_EXPENSE: lambda p: expenses.delete_expense(p["id"]),
        }
        if budgets is not None:
            self._handlers[ActionOperation.UPSERT_BUDGET] = lambda p: budgets.upsert_budget(
                Budget.model_validate(p)
            )
        if recurring is not None:
            self._handlers[ActionOperation.CREATE_RECURRING_EXPENSE] = lambda p: recurring.create_recurring(
                RecurringExpense.model_validate(p)
            )
            self._handlers[ActionOperation.UPDATE_RECURRING_EXPENSE] = lambda p: recurring.update_recurring(
                RecurringExpense.model_validate(p)
            )
            self._handlers[ActionOperation.DELETE_RECURRING_EXPENSE] = lambda p: recurring.delete_recurring(
                p["id"]
            )

    def register(self, operation: ActionOperation, handler: ActionHandler) -> None:
        """Add or replace the handler for an operation."""
        self._handlers[operation] = handler

    def dispatch(self, action: PendingAction) -> Any:
        handler = self._handlers.get(action.operation)
        if handler is None:
            raise UnknownActionError(f"No handler for {action.operation.value}")
        return handler(action.payload)


# =============================================================================
# ACTION BUILDERS
# =============================================================================

def create_expense_action(draft: ExpenseDraft, user_id: str) -> PendingAction:
    return PendingAction(
        operation=ActionOperation.CREATE_EXPENSE,
        payload={"draft": draft.model_dump(mode="json"), "user_id": user_id},
    )


def update_expense_action(expense_id: str, draft: ExpenseDraft) -> PendingAction:
    return PendingAction(
        operation=ActionOperation.UPDATE_EXPENSE,
        payload={"id": expense_id, "draft": draft.model_dump(mode="json")},
    )


def delete_expense_action(expense_id: str) -> PendingAction:
    return PendingAction(
        operation=ActionOperation.DELETE_EXPENSE,
        payload={"id": expense_id},
    )


def upsert_budget_action(budget: Budget) -> PendingAction:
    return PendingAction(
        operation=ActionOperation.UPSERT_BUDGET,
        payload=budget.model_dump(mode="json"),
    )


def save_recurring_action(item: RecurringExpense) -> PendingAction:
    operation = (
        ActionOperation.UPDATE_RECURRING_EXPENSE
        if item.id
        else ActionOperation.CREATE_RECURRING_EXPENSE
    )
    return PendingAction(operation=operation, payload=item.model_dump(mode="json"))


def delete_recurring_action(item_id: str) -> PendingAction:
    return PendingAction(
        operation=ActionOperation.DELETE_RECURRING_EXPENSE,
        payload={"id": item_id},
    )
