"""Derived views over the cached expense list: filters, charts, CSV."""

from expense_tracker.insights.aggregation import (
    CategorySlice,
    MonthlyTotal,
    budget_summary,
    category_breakdown,
    category_totals,
    chart_axis_max,
    monthly_totals,
    percentage_of,
    total_spent,
)
from expense_tracker.insights.csv_io import (
    CSV_HEADER,
    decode_csv,
    export_csv,
    export_filename,
    parse_csv,
)
from expense_tracker.insights.filters import (
    ExpenseFilter,
    amount_text,
    filter_expenses,
    page_count,
    paginate,
)

__all__ = [
    "CSV_HEADER",
    "CategorySlice",
    "ExpenseFilter",
    "MonthlyTotal",
    "amount_text",
    "budget_summary",
    "category_breakdown",
    "category_totals",
    "chart_axis_max",
    "decode_csv",
    "export_csv",
    "export_filename",
    "filter_expenses",
    "monthly_totals",
    "page_count",
    "paginate",
    "parse_csv",
    "percentage_of",
    "total_spent",
]
