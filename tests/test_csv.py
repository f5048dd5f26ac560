"""Tests for CSV export and import."""

from datetime import date
from decimal import Decimal

from expense_tracker.insights import CSV_HEADER, decode_csv, export_csv, export_filename, parse_csv
from expense_tracker.models import ExpenseCategory


class TestExport:
    """Tests for export_csv."""

    def test_header_and_rows(self, sample_expenses):
        lines = export_csv(sample_expenses[:2]).splitlines()

        assert lines[0] == "Date,Category,Description,Amount"
        assert lines[1] == "2024-06-10,Food,Lunch at cafe,12.5"
        assert lines[2] == "2024-06-02,Transportation,Train pass,45"

    def test_empty_list_is_header_only(self):
        assert export_csv([]) == ",".join(CSV_HEADER) + "\n"

    def test_commas_in_description_are_quoted(self, expense_factory):
        text = export_csv([expense_factory("1", "3", description="Coffee, large")])
        assert text.splitlines()[1] == '2024-06-10,Food,"Coffee, large",3'

    def test_filename(self):
        assert export_filename(date(2024, 6, 5)) == "expenses-2024-06-05.csv"


class TestImport:
    """Tests for parse_csv."""

    def test_exported_file_imports_back(self, sample_expenses):
        drafts, skipped = parse_csv(export_csv(sample_expenses))

        assert skipped == 0
        assert [d.amount for d in drafts] == [e.amount for e in sample_expenses]
        assert [d.category for d in drafts] == [e.category for e in sample_expenses]
        assert drafts[0].description == "Lunch at cafe"

    def test_rows_missing_required_columns_are_skipped(self):
        text = "\n".join([
            "Date,Category,Description,Amount",
            "2024-06-01,Food,Lunch,10",
            ",Food,No date,10",
            "2024-06-02,,No category,10",
            "2024-06-03,Food,No amount,",
            "2024-06-04,Food",
        ])
        drafts, skipped = parse_csv(text)

        assert len(drafts) == 1
        assert skipped == 4

    def test_rows_that_do_not_validate_are_skipped(self):
        text = "\n".join([
            "Date,Category,Description,Amount",
            "2024-06-01,Travel,Unknown category,10",
            "2024-06-01,Food,Not a number,ten",
            "06/01/2024,Food,Bad date,10",
            "2024-06-01,Bills,Rent,800.00",
        ])
        drafts, skipped = parse_csv(text)

        assert skipped == 3
        assert drafts[0].category == ExpenseCategory.BILLS
        assert drafts[0].amount == Decimal("800.00")

    def test_blank_lines_and_bom(self):
        text = "\ufeffDate,Category,Description,Amount\n\n2024-06-01,Food,,4\n\n"
        drafts, skipped = parse_csv(text)

        assert skipped == 0
        assert drafts[0].date == date(2024, 6, 1)
        assert drafts[0].description == ""

    def test_header_only(self):
        assert parse_csv("Date,Category,Description,Amount\n") == ([], 0)

    def test_empty_text(self):
        assert parse_csv("") == ([], 0)

    def test_uploaded_bytes_that_are_not_utf8(self):
        data = b"Date,Category,Description,Amount\n2024-06-01,Food,Caf\xe9,3\n"
        drafts, skipped = parse_csv(data)

        assert skipped == 0
        assert drafts[0].description == "Caf\ufffd"
        assert drafts[0].amount == Decimal("3")

    def test_uploaded_bytes_with_bom(self):
        assert decode_csv(b"\xef\xbb\xbfDate\n") == "Date\n"
