"""Tests for filtering, pagination and aggregation."""

import pytest
from datetime import date
from decimal import Decimal

from expense_tracker.insights import (
    ExpenseFilter,
    MonthlyTotal,
    amount_text,
    budget_summary,
    category_breakdown,
    category_totals,
    chart_axis_max,
    filter_expenses,
    monthly_totals,
    page_count,
    paginate,
    percentage_of,
    total_spent,
)
from expense_tracker.models import ExpenseCategory


TODAY = date(2024, 6, 15)


def expense_ids(expenses):
    return [expense.id for expense in expenses]


class TestExpenseFilter:
    """Tests for the three filter predicates."""

    def test_no_criteria_keeps_everything(self, sample_expenses):
        assert filter_expenses(sample_expenses, ExpenseFilter()) == sample_expenses
        assert filter_expenses(sample_expenses) == sample_expenses

    def test_category(self, sample_expenses):
        result = filter_expenses(sample_expenses, ExpenseFilter(category=ExpenseCategory.FOOD))
        assert expense_ids(result) == ["1", "4"]

    def test_date_range_is_inclusive(self, sample_expenses):
        criteria = ExpenseFilter(start_date=date(2024, 5, 28), end_date=date(2024, 6, 10))
        assert expense_ids(filter_expenses(sample_expenses, criteria)) == ["1", "2", "3"]

    def test_half_open_range_is_ignored(self, sample_expenses):
        criteria = ExpenseFilter(start_date=date(2024, 6, 1))
        assert len(filter_expenses(sample_expenses, criteria)) == len(sample_expenses)

    def test_end_before_start_matches_nothing(self, sample_expenses):
        criteria = ExpenseFilter(
            category=ExpenseCategory.FOOD,
            start_date=date(2024, 6, 10),
            end_date=date(2024, 6, 1),
        )
        assert filter_expenses(sample_expenses, criteria) == []

    def test_search_description_case_insensitive(self, sample_expenses):
        result = filter_expenses(sample_expenses, ExpenseFilter(search="TRAIN"))
        assert expense_ids(result) == ["2"]

    def test_search_amount_text(self, sample_expenses):
        result = filter_expenses(sample_expenses, ExpenseFilter(search="12"))
        assert expense_ids(result) == ["1", "3"]

    def test_search_category(self, sample_expenses):
        result = filter_expenses(sample_expenses, ExpenseFilter(search="bills"))
        assert expense_ids(result) == ["3"]

    def test_predicates_commute(self, sample_expenses):
        """Applying the predicates one at a time, in any order, gives the same list."""
        full = ExpenseFilter(
            category=ExpenseCategory.FOOD,
            start_date=date(2024, 1, 1),
            end_date=date(2024, 6, 30),
            search="g",
        )
        parts = [
            ExpenseFilter(category=full.category),
            ExpenseFilter(start_date=full.start_date, end_date=full.end_date),
            ExpenseFilter(search=full.search),
        ]

        forward = sample_expenses
        for part in parts:
            forward = filter_expenses(forward, part)
        backward = sample_expenses
        for part in reversed(parts):
            backward = filter_expenses(backward, part)

        assert forward == backward == filter_expenses(sample_expenses, full)
        assert expense_ids(forward) == ["4"]

    def test_is_active_ignores_search(self):
        assert not ExpenseFilter(search="lunch").is_active
        assert ExpenseFilter(category=ExpenseCategory.OTHER).is_active
        assert ExpenseFilter(start_date=date(2024, 1, 1)).is_active


class TestAmountText:
    @pytest.mark.parametrize("amount, expected", [
        ("12.50", "12.5"),
        ("120", "120"),
        ("0.10", "0.1"),
        ("1000.00", "1000"),
    ])
    def test_amount_text(self, amount, expected):
        assert amount_text(Decimal(amount)) == expected


class TestPagination:
    """Tests for page_count and paginate."""

    def test_page_count(self):
        assert page_count(0, 10) == 1
        assert page_count(10, 10) == 1
        assert page_count(11, 10) == 2

    def test_pages_cover_every_item_once(self):
        items = list(range(23))
        pages = [paginate(items, page, 10) for page in range(page_count(len(items), 10))]
        assert [len(page) for page in pages] == [10, 10, 3]
        assert sum(pages, []) == items

    def test_out_of_range_page_is_empty(self):
        assert paginate([1, 2, 3], 5, 10) == []
        assert paginate([1, 2, 3], -1, 10) == []

    def test_rows_per_page_must_be_positive(self):
        with pytest.raises(ValueError):
            paginate([1], 0, 0)


class TestAggregation:
    """Tests for totals, percentages and chart data."""

    def test_category_totals_sum_to_total(self, sample_expenses):
        totals = category_totals(sample_expenses)
        assert totals[ExpenseCategory.FOOD] == Decimal("42.50")
        assert sum(totals.values()) == total_spent(sample_expenses) == Decimal("267.50")

    def test_empty_list(self):
        assert category_totals([]) == {}
        assert total_spent([]) == Decimal("0")
        assert category_breakdown([]) == []

    def test_percentage_zero_total_guard(self):
        assert percentage_of(Decimal("5"), Decimal("0")) == 0.0
        assert percentage_of(Decimal("25"), Decimal("200")) == 12.5

    def test_breakdown_percentages_add_up(self, sample_expenses):
        slices = category_breakdown(sample_expenses)
        assert {s.category for s in slices} == {
            ExpenseCategory.FOOD,
            ExpenseCategory.TRANSPORTATION,
            ExpenseCategory.BILLS,
            ExpenseCategory.ENTERTAINMENT,
        }
        assert sum(s.percentage for s in slices) == pytest.approx(100.0)

    def test_breakdown_skips_zero_categories(self, expense_factory):
        expenses = [
            expense_factory("1", "0", ExpenseCategory.OTHER),
            expense_factory("2", "10", ExpenseCategory.FOOD),
        ]
        assert [s.category for s in category_breakdown(expenses)] == [ExpenseCategory.FOOD]

    def test_monthly_totals_oldest_first(self, sample_expenses):
        totals = monthly_totals(sample_expenses, today=TODAY)

        assert [(t.year, t.month) for t in totals] == [
            (2024, 1), (2024, 2), (2024, 3), (2024, 4), (2024, 5), (2024, 6),
        ]
        assert [t.amount for t in totals] == [
            Decimal("60"), Decimal("0"), Decimal("0"), Decimal("30"), Decimal("120"), Decimal("57.50"),
        ]
        assert totals[0].label == "Jan 2024"

    def test_current_month_only_gives_leading_zeros(self, expense_factory):
        expenses = [expense_factory("1", "25", expense_date=date(2024, 6, 1))]
        totals = monthly_totals(expenses, today=TODAY)

        assert [t.amount for t in totals[:5]] == [Decimal("0")] * 5
        assert totals[-1].amount == Decimal("25")

    def test_monthly_window_crosses_year(self, expense_factory):
        expenses = [expense_factory("1", "5", expense_date=date(2023, 9, 30))]
        totals = monthly_totals(expenses, today=date(2024, 2, 10))

        assert (totals[0].year, totals[0].month) == (2023, 9)
        assert totals[0].amount == Decimal("5")
        assert (totals[-1].year, totals[-1].month) == (2024, 2)

    def test_expenses_outside_window_are_ignored(self, expense_factory):
        expenses = [expense_factory("1", "5", expense_date=date(2023, 12, 31))]
        assert all(t.amount == 0 for t in monthly_totals(expenses, today=TODAY))

    @pytest.mark.parametrize("peak, expected", [
        ("0", 0),
        ("120", 1000),
        ("2000", 2000),
        ("2000.01", 3000),
    ])
    def test_chart_axis_max(self, peak, expected):
        totals = [
            MonthlyTotal(year=2024, month=5, amount=Decimal("0")),
            MonthlyTotal(year=2024, month=6, amount=Decimal(peak)),
        ]
        assert chart_axis_max(totals) == expected


class TestBudgetSummary:
    """Tests for the current-month budget summary."""

    def test_counts_current_month_only(self, sample_expenses):
        summary = budget_summary(sample_expenses, Decimal("100"), today=TODAY)

        assert summary.spent == Decimal("57.50")
        assert summary.remaining == Decimal("42.50")
        assert summary.percentage == pytest.approx(57.5)
        assert not summary.over_budget

    def test_zero_budget(self, sample_expenses):
        summary = budget_summary(sample_expenses, Decimal("0"), today=TODAY)
        assert summary.percentage == 0.0
