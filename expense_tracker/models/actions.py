"""
Pending Action Models

A pending action is a remote mutation that could not reach the backend.
It is stored as a plain command descriptor (operation + JSON payload)
so that it survives a restart and can be replayed by any process.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class ActionOperation(str, Enum):
    """Mutations that can be deferred while offline."""
    CREATE_EXPENSE = "create_expense"
    UPDATE_EXPENSE = "update_expense"
    DELETE_EXPENSE = "delete_expense"
    UPSERT_BUDGET = "upsert_budget"
    CREATE_RECURRING_EXPENSE = "create_recurring_expense"
    UPDATE_RECURRING_EXPENSE = "update_recurring_expense"
    DELETE_RECURRING_EXPENSE = "delete_recurring_expense"


class PendingAction(BaseModel):
    """
    A deferred unit of work.

    attempts counts failed replays; it is 0 for an action that has never
    been replayed.
    """

    action_id: str = Field(default_factory=lambda: uuid4().hex)
    operation: ActionOperation
    payload: dict[str, Any] = Field(default_factory=dict)
    enqueued_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    attempts: int = Field(default=0, ge=0)

    def describe(self) -> str:
        """Short label for banners and logs."""
        target = self.payload.get("id") or self.payload.get("description") or ""
        label = self.operation.value.replace("_", " ")
        return f"{label} {target}".strip()


class ReplayReport(BaseModel):
    """Outcome of one drain of the pending action queue."""

    succeeded: list[str] = Field(default_factory=list)
    requeued: list[str] = Field(default_factory=list)
    dropped: list[str] = Field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.succeeded) + len(self.requeued) + len(self.dropped)


class ImportReport(BaseModel):
    """Outcome of a CSV import."""

    imported: int = 0
    queued: int = 0
    skipped: int = 0

    @property
    def total_rows(self) -> int:
        return self.imported + self.queued + self.skipped
