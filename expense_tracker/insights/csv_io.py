"""
CSV Export and Import

Format: header row Date,Category,Description,Amount, then one row per
expense with the date as YYYY-MM-DD. Import reads the same four columns,
skips the header, and skips any row without a date, category or amount.
Rows that have all three but do not validate (unknown category, bad
number) are skipped as well; nothing is guessed.
"""

import csv
import io
from datetime import date
from typing import Iterable, Optional, Union

import structlog

from expense_tracker.insights.filters import amount_text
from expense_tracker.models.expense import Expense, ExpenseDraft
from expense_tracker.validation import validate_expense_form


logger = structlog.get_logger(__name__)

CSV_HEADER = ["Date", "Category", "Description", "Amount"]


def export_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"expenses-{today.isoformat()}.csv"


def export_csv(expenses: Iterable[Expense]) -> str:
    """Render expenses (already filtered by the caller) as CSV text."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for expense in expenses:
        writer.writerow([
            expense.date.isoformat(),
            expense.category.value,
            expense.description or "",
            amount_text(expense.amount),
        ])
    return buffer.getvalue()


def decode_csv(data: bytes) -> str:
    """Uploaded file bytes as text; undecodable bytes become U+FFFD."""
    return data.decode("utf-8-sig", errors="replace")


def parse_csv(text: Union[str, bytes]) -> tuple[list[ExpenseDraft], int]:
    """
    Parse exported CSV back into drafts.

    Accepts the text, or the raw bytes of an uploaded file.

    Returns:
        (drafts, skipped_row_count); blank lines are not counted as skipped
    """
    if isinstance(text, bytes):
        text = decode_csv(text)

    drafts: list[ExpenseDraft] = []
    skipped = 0

    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    next(reader, None)  # header

    for line_number, row in enumerate(reader, start=2):
        if not any(cell.strip() for cell in row):
            continue
        row = row + [""] * (len(CSV_HEADER) - len(row))
        raw_date, category, description, amount = (cell.strip() for cell in row[:4])

        if not (raw_date and category and amount):
            skipped += 1
            continue

        result = validate_expense_form(amount, category, description, raw_date)
        if not result.is_valid:
            logger.debug("csv_row_skipped", line=line_number, issues=result.messages)
            skipped += 1
            continue
        drafts.append(result.draft)

    return drafts, skipped
