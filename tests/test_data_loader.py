"""Tests for overdue_notifier.data_loader -- XLSX export parsing.

Covers:
- Invoices / Customers / Employees sheets built with openpyxl
- Status filtering (only open invoices kept)
- Id normalization and Decimal amounts
- Date parsing (datetime cells, serials, strings)
- Header aliases and column reordering
- Error handling (missing file, sheet, required column)
"""

import io
from datetime import date, datetime
from decimal import Decimal

import openpyxl
import pytest

from overdue_notifier.data_loader import (
    LoadResult,
    _clean_id,
    _parse_amount,
    _parse_date,
    load_workbook,
)


# ============================================================================
# Workbook builders
# ============================================================================

INVOICE_HEADER = ["Customer ID", "Invoice Number", "Amount", "Due Date", "Status", "Sales Rep ID"]


def _make_workbook(path, invoices, customers=None, employees=None,
                   invoice_header=INVOICE_HEADER):
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Invoices"
    ws.append(invoice_header)
    for row in invoices:
        ws.append(row)

    if customers is not None:
        cs = wb.create_sheet("Customers")
        cs.append(["Customer ID", "Company Name", "First Name", "Email", "Sales Rep ID"])
        for row in customers:
            cs.append(row)

    if employees is not None:
        es = wb.create_sheet("Employees")
        es.append(["Employee ID", "Name", "Email"])
        for row in employees:
            es.append(row)

    wb.save(path)
    return path


@pytest.fixture
def workbook_path(tmp_path):
    return _make_workbook(
        tmp_path / "export.xlsx",
        invoices=[
            [1001, "INV-1", 100.5, datetime(2024, 1, 15), "Open", 42],
            [1001, "INV-2", "$1,250.00", datetime(2024, 2, 1), "Open", 42],
            [1002, "INV-3", 75, datetime(2024, 1, 31), "Paid In Full", None],
            [None, None, None, None, None, None],
            [None, "INV-4", 10, datetime(2024, 1, 1), "Open", None],
            [1003, "INV-5", None, datetime(2024, 1, 1), "Open", None],
        ],
        customers=[
            [1001, "Acme Corp", "", "ap@acme.com", 42],
            [1002, None, "Jane", "jane@example.com", None],
        ],
        employees=[
            [42, "Rita Rep", "rita@example.com"],
            [43, "No Mail", None],
        ],
    )


# ============================================================================
# Full Workbook Load
# ============================================================================

class TestLoadWorkbook:

    @pytest.fixture
    def result(self, workbook_path) -> LoadResult:
        return load_workbook(workbook_path)

    def test_open_invoices_only(self, result: LoadResult):
        numbers = [inv.invoice_number for inv in result.invoices]
        assert numbers == ["INV-1", "INV-2", "INV-4"]

    def test_counters(self, result: LoadResult):
        assert result.total_rows_scanned == 6
        assert result.empty_rows_skipped == 1
        assert result.closed_rows_skipped == 1
        assert result.invalid_rows_skipped == 1

    def test_invoice_fields(self, result: LoadResult):
        inv = result.invoices[0]
        assert inv.customer_id == "1001"
        assert inv.amount == Decimal("100.5")
        assert inv.due_date == date(2024, 1, 15)
        assert inv.sales_rep_id == "42"

    def test_currency_string_amount(self, result: LoadResult):
        assert result.invoices[1].amount == Decimal("1250.00")

    def test_missing_customer_id_kept_as_none(self, result: LoadResult):
        assert result.invoices[2].customer_id is None

    def test_total_open_amount(self, result: LoadResult):
        assert result.total_open_amount == Decimal("1360.50")

    def test_customers(self, result: LoadResult):
        assert set(result.customers) == {"1001", "1002"}
        acme = result.customers["1001"]
        assert acme.company_name == "Acme Corp"
        assert acme.email == "ap@acme.com"
        assert acme.sales_rep_id == "42"
        assert result.customers["1002"].display_name == "Jane"

    def test_employees(self, result: LoadResult):
        assert result.employees["42"].email == "rita@example.com"
        assert result.employees["43"].email == ""

    def test_source_file(self, result: LoadResult, workbook_path):
        assert result.source_file == str(workbook_path)

    def test_invalid_row_warning(self, result: LoadResult):
        assert any("row 7" in w for w in result.warnings)

    def test_print_summary(self, result: LoadResult, capsys):
        result.print_summary()
        out = capsys.readouterr().out
        assert "Open invoices     : 3" in out


class TestWorkbookVariants:

    def test_bytes_buffer(self, workbook_path):
        buffer = io.BytesIO(workbook_path.read_bytes())
        result = load_workbook(buffer)
        assert result.source_file is None
        assert len(result.invoices) == 3

    def test_no_status_column_means_all_open(self, tmp_path):
        path = _make_workbook(
            tmp_path / "export.xlsx",
            invoices=[["7", "INV-9", 5, datetime(2024, 1, 1)]],
            invoice_header=["Customer ID", "Invoice Number", "Amount", "Due Date"],
        )
        result = load_workbook(path)
        assert [i.invoice_number for i in result.invoices] == ["INV-9"]

    def test_aliases_and_reordering(self, tmp_path):
        path = _make_workbook(
            tmp_path / "export.xlsx",
            invoices=[["2024-01-05", "open", 12.25, "DOC-1", 9]],
            invoice_header=["due date", "STATUS", "Amount Remaining", "Document Number", "Entity"],
        )
        inv = load_workbook(path).invoices[0]
        assert inv.invoice_number == "DOC-1"
        assert inv.customer_id == "9"
        assert inv.due_date == date(2024, 1, 5)

    def test_missing_side_sheets_warn(self, tmp_path):
        path = _make_workbook(
            tmp_path / "export.xlsx",
            invoices=[["7", "INV-9", 5, datetime(2024, 1, 1), "Open", None]],
        )
        result = load_workbook(path)
        assert result.customers == {}
        assert result.employees == {}
        assert len(result.warnings) == 2


# ============================================================================
# Error Handling
# ============================================================================

class TestErrorHandling:

    def test_missing_file_raises(self):
        with pytest.raises(FileNotFoundError):
            load_workbook("nonexistent/path/file.xlsx")

    def test_corrupt_file_raises_value_error(self, tmp_path):
        path = tmp_path / "export.xlsx"
        path.write_text("not a zip", encoding="utf-8")
        with pytest.raises(ValueError, match="Not a readable XLSX workbook"):
            load_workbook(path)

    def test_wrong_extension_raises_value_error(self, tmp_path):
        path = tmp_path / "export.txt"
        path.write_text("Customer ID,Invoice Number\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_workbook(path)

    def test_missing_invoices_sheet(self, tmp_path):
        wb = openpyxl.Workbook()
        wb.active.title = "Something Else"
        path = tmp_path / "export.xlsx"
        wb.save(path)
        with pytest.raises(ValueError, match="not found"):
            load_workbook(path)

    def test_missing_required_column(self, tmp_path):
        path = _make_workbook(
            tmp_path / "export.xlsx",
            invoices=[],
            invoice_header=["Customer ID", "Invoice Number", "Amount"],
        )
        with pytest.raises(ValueError, match="due_date"):
            load_workbook(path)


# ============================================================================
# Data Cleaning
# ============================================================================

class TestDataCleaning:

    @pytest.mark.parametrize("value,expected", [
        (42, "42"),
        (42.0, "42"),
        ("  42 ", "42"),
        ("#N/A", None),
        (None, None),
        ("", None),
    ])
    def test_clean_id(self, value, expected):
        assert _clean_id(value) == expected

    @pytest.mark.parametrize("value,expected", [
        (100, Decimal("100")),
        (100.1, Decimal("100.1")),
        ("$1,234.56", Decimal("1234.56")),
        ("($500.00)", Decimal("-500.00")),
        ("n/a-ish", None),
        (None, None),
    ])
    def test_parse_amount(self, value, expected):
        assert _parse_amount(value) == expected

    def test_parse_date_variants(self):
        warnings = []
        assert _parse_date(datetime(2024, 1, 2, 13, 0), "ctx", warnings) == date(2024, 1, 2)
        assert _parse_date(date(2024, 1, 2), "ctx", warnings) == date(2024, 1, 2)
        assert _parse_date(45292, "ctx", warnings) == date(2024, 1, 1)
        assert _parse_date("01/31/2024", "ctx", warnings) == date(2024, 1, 31)
        assert warnings == []

    def test_unparseable_date_warns(self):
        warnings = []
        assert _parse_date("someday", "Invoices row 3", warnings) is None
        assert warnings == ["Invoices row 3: could not parse date 'someday'"]
