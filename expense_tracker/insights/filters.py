"""
Expense Filtering

The table view is the cached expense list narrowed by three independent
predicates. Each predicate is skipped when its input is empty, so the
order in which they are applied never changes the result.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

from expense_tracker.models.expense import Expense, ExpenseCategory


T = TypeVar("T")


def amount_text(amount: Decimal) -> str:
    """Amount as the user would type it: no exponent, no trailing zeros."""
    return format(amount.normalize(), "f")


class ExpenseFilter(BaseModel):
    """
    Filter criteria from the table toolbar.

    The date range only applies when BOTH bounds are set; a half-open
    range is ignored rather than guessed at. A reversed range matches
    nothing.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    category: Optional[ExpenseCategory] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    search: str = ""

    @property
    def has_date_range(self) -> bool:
        return self.start_date is not None and self.end_date is not None

    @property
    def is_active(self) -> bool:
        """Whether the toolbar should offer 'clear filters' (search has its own box)."""
        return bool(self.category or self.start_date or self.end_date)

    def matches_category(self, expense: Expense) -> bool:
        return self.category is None or expense.category == self.category

    def matches_date_range(self, expense: Expense) -> bool:
        if not self.has_date_range:
            return True
        return self.start_date <= expense.date <= self.end_date

    def matches_search(self, expense: Expense) -> bool:
        if not self.search:
            return True
        needle = self.search.lower()
        return (
            needle in (expense.description or "").lower()
            or self.search in amount_text(expense.amount)
            or needle in expense.category.value.lower()
        )

    def matches(self, expense: Expense) -> bool:
        return (
            self.matches_category(expense)
            and self.matches_date_range(expense)
            and self.matches_search(expense)
        )


def filter_expenses(
    expenses: Iterable[Expense],
    criteria: Optional[ExpenseFilter] = None,
) -> list[Expense]:
    """Keep the expenses matching every active predicate, preserving order."""
    if criteria is None:
        return list(expenses)
    return [expense for expense in expenses if criteria.matches(expense)]


def page_count(total: int, rows_per_page: int) -> int:
    if rows_per_page <= 0:
        raise ValueError("rows_per_page must be positive")
    return max(1, -(-total // rows_per_page))


def paginate(items: list[T], page: int, rows_per_page: int) -> list[T]:
    """Zero-based page of a list. Out-of-range pages are empty."""
    if rows_per_page <= 0:
        raise ValueError("rows_per_page must be positive")
    if page < 0:
        return []
    start = page * rows_per_page
    return items[start:start + rows_per_page]
