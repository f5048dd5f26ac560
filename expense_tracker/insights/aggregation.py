"""
Spending Aggregation

Numbers behind the insight charts and the budget bar. Everything here is
a pure function of an expense list and (where months matter) a reference
date, so the charts can be recomputed on every change.
"""

import math
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel

from expense_tracker.models.expense import BudgetSummary, Expense, ExpenseCategory


class CategorySlice(BaseModel):
    """One slice of the category pie."""

    category: ExpenseCategory
    amount: Decimal
    percentage: float


class MonthlyTotal(BaseModel):
    """One bar of the monthly chart."""

    year: int
    month: int
    amount: Decimal

    @property
    def label(self) -> str:
        return date(self.year, self.month, 1).strftime("%b %Y")


def percentage_of(amount: Decimal, total: Decimal) -> float:
    """amount / total * 100, or 0 when there is no total."""
    if not total:
        return 0.0
    return float(amount / total * 100)


def category_totals(expenses: Iterable[Expense]) -> dict[ExpenseCategory, Decimal]:
    """Sum per category, in order of first appearance."""
    totals: dict[ExpenseCategory, Decimal] = {}
    for expense in expenses:
        totals[expense.category] = totals.get(expense.category, Decimal("0")) + expense.amount
    return totals


def total_spent(expenses: Iterable[Expense]) -> Decimal:
    return sum((expense.amount for expense in expenses), Decimal("0"))


def category_breakdown(expenses: Iterable[Expense]) -> list[CategorySlice]:
    """
    Pie chart data: categories with a positive total and their share of it.
    """
    totals = category_totals(expenses)
    grand_total = sum(totals.values(), Decimal("0"))
    return [
        CategorySlice(
            category=category,
            amount=amount,
            percentage=percentage_of(amount, grand_total),
        )
        for category, amount in totals.items()
        if amount > 0
    ]


def _shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def monthly_totals(
    expenses: Iterable[Expense],
    today: Optional[date] = None,
    months: int = 6,
) -> list[MonthlyTotal]:
    """
    Bar chart data: totals for the last `months` calendar months.

    Oldest month first, the current month last. Months with no expenses
    are present with a zero amount; expenses outside the window are ignored.
    """
    today = today or date.today()
    window = [_shift_month(today.year, today.month, -offset) for offset in reversed(range(months))]
    sums = {key: Decimal("0") for key in window}

    for expense in expenses:
        key = (expense.date.year, expense.date.month)
        if key in sums:
            sums[key] += expense.amount

    return [MonthlyTotal(year=year, month=month, amount=sums[(year, month)]) for year, month in window]


def chart_axis_max(totals: Iterable[MonthlyTotal], step: int = 1000) -> int:
    """Largest monthly amount rounded up to a multiple of step."""
    peak = max((total.amount for total in totals), default=Decimal("0"))
    return int(math.ceil(peak / step)) * step


def budget_summary(
    expenses: Iterable[Expense],
    budget: Decimal,
    today: Optional[date] = None,
) -> BudgetSummary:
    """How much of this month's budget has been spent."""
    today = today or date.today()
    spent = total_spent(
        expense for expense in expenses
        if expense.date.year == today.year and expense.date.month == today.month
    )
    return BudgetSummary(
        budget=budget,
        spent=spent,
        remaining=budget - spent,
        percentage=percentage_of(spent, budget),
    )
