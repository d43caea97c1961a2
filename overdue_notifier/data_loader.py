"""Overdue Invoice Notifier - ERP Export Loader.

Parses an XLSX export of the ERP's invoice, customer and employee lists so
the job can run outside the ERP's scripting runtime.  The loaded records
back the in-memory services in ``adapters``.

Sheet layout:

+---------------+-----------------------------------------------------------+
| Sheet         | Purpose                                                   |
+===============+===========================================================+
| ``Invoices``  | Invoice search export (customer, number, amount, due ...) |
| ``Customers`` | Customer records (company / first name, email, sales rep) |
| ``Employees`` | Employee records (sales rep emails)                       |
+---------------+-----------------------------------------------------------+

Usage::

    from overdue_notifier.data_loader import load_workbook

    result = load_workbook("data/erp_export.xlsx")
    print(f"Invoices: {len(result.invoices)}")
    result.print_summary()
"""

from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import IO, Union

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from .models import CustomerRecord, EmployeeRecord, Invoice

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

INVOICES_SHEET = "Invoices"
CUSTOMERS_SHEET = "Customers"
EMPLOYEES_SHEET = "Employees"

# Column header aliases -- mapped by *header text* so we are resilient
# to column reordering between exports.
_INVOICE_HEADERS: dict[str, list[str]] = {
    "customer_id":    ["Customer ID", "Customer Internal ID", "Entity"],
    "invoice_number": ["Invoice Number", "Document Number", "Tran ID"],
    "amount":         ["Amount", "Amount Remaining", "Amount Due"],
    "due_date":       ["Due Date", "Due Date/Receive By"],
    "status":         ["Status"],
    "sales_rep_id":   ["Sales Rep ID", "Sales Rep"],
}

_CUSTOMER_HEADERS: dict[str, list[str]] = {
    "customer_id":  ["Customer ID", "Internal ID"],
    "company_name": ["Company Name", "Company"],
    "first_name":   ["First Name"],
    "email":        ["Email", "E-mail"],
    "sales_rep_id": ["Sales Rep ID", "Sales Rep"],
}

_EMPLOYEE_HEADERS: dict[str, list[str]] = {
    "employee_id": ["Employee ID", "Internal ID"],
    "email":       ["Email", "E-mail"],
    "name":        ["Name", "Employee Name"],
}

# Status values that mean "open / unpaid".  An export without a Status
# column is assumed to contain open invoices only.
OPEN_STATUSES: set[str] = {"open", "custinvc:a", "open invoice"}

# Cell values that should be treated as null / unknown.
_NULL_SIGNALS: set[str | None] = {"", "#N/A", "N/A", "#REF!", None}


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------

@dataclass
class LoadResult:
    """Aggregated output from :func:`load_workbook`."""

    invoices: list[Invoice] = field(default_factory=list)
    customers: dict[str, CustomerRecord] = field(default_factory=dict)
    employees: dict[str, EmployeeRecord] = field(default_factory=dict)

    # Metadata
    source_file: str | None = None
    total_rows_scanned: int = 0
    empty_rows_skipped: int = 0
    closed_rows_skipped: int = 0
    invalid_rows_skipped: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def total_open_amount(self) -> Decimal:
        return sum((i.amount for i in self.invoices), Decimal("0"))

    def print_summary(self) -> None:
        """Print a human-readable summary of what was loaded."""
        print("=" * 65)
        print("  Overdue Invoice Notifier -- Data Load Summary")
        print("=" * 65)
        print(f"  Source file       : {self.source_file or '(bytes buffer)'}")
        print(f"  Rows scanned      : {self.total_rows_scanned}")
        print(f"  Empty rows skipped: {self.empty_rows_skipped}")
        print(f"  Closed invoices   : {self.closed_rows_skipped}")
        print(f"  Invalid rows      : {self.invalid_rows_skipped}")
        print("-" * 65)
        print(f"  Open invoices     : {len(self.invoices)}")
        print(f"  Open amount       : {self.total_open_amount}")
        print(f"  Customers loaded  : {len(self.customers)}")
        print(f"  Employees loaded  : {len(self.employees)}")
        if self.warnings:
            print("-" * 65)
            print(f"  Warnings ({len(self.warnings)}):")
            for w in self.warnings[:10]:
                print(f"    {w}")
        print("=" * 65)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def load_workbook(source: Union[str, Path, IO[bytes]]) -> LoadResult:
    """Load open invoices, customers and employees from an ERP export.

    Parameters
    ----------
    source:
        File path (``str`` or ``Path``) or a readable bytes buffer.

    Returns
    -------
    LoadResult
        Parsed records plus row counters and warnings.

    Raises
    ------
    FileNotFoundError
        If a path is given and does not exist.
    ValueError
        If the file is not a readable workbook, or the Invoices sheet or
        one of its required columns is missing.
    """
    result = LoadResult()

    wb = _open_workbook(source)
    if isinstance(source, (str, Path)):
        result.source_file = str(source)

    try:
        if INVOICES_SHEET not in wb.sheetnames:
            raise ValueError(
                f"Sheet '{INVOICES_SHEET}' not found.  Available: {wb.sheetnames}"
            )
        _parse_invoices(wb[INVOICES_SHEET], result)

        if CUSTOMERS_SHEET in wb.sheetnames:
            result.customers = _parse_customers(wb[CUSTOMERS_SHEET], result.warnings)
        else:
            result.warnings.append(
                f"Sheet '{CUSTOMERS_SHEET}' not found -- customer data unavailable"
            )

        if EMPLOYEES_SHEET in wb.sheetnames:
            result.employees = _parse_employees(wb[EMPLOYEES_SHEET], result.warnings)
        else:
            result.warnings.append(
                f"Sheet '{EMPLOYEES_SHEET}' not found -- sales rep emails unavailable"
            )
    finally:
        wb.close()

    logger.info(
        "Loaded %d open invoices, %d customers, %d employees",
        len(result.invoices), len(result.customers), len(result.employees),
    )
    return result


# ---------------------------------------------------------------------------
# Workbook opening
# ---------------------------------------------------------------------------

def _open_workbook(source: Union[str, Path, IO[bytes]]) -> Workbook:
    """Open an openpyxl Workbook from a file path or bytes buffer.

    Raises:
        FileNotFoundError: If a path is given and does not exist.
        ValueError: If the file is not a readable XLSX workbook.
    """
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"XLSX file not found: {path}")
        logger.info("Opening XLSX file: %s", path)
        target = path
        label = str(path)
    else:
        logger.info("Opening XLSX from bytes buffer")
        target = source
        label = "bytes buffer"

    try:
        return openpyxl.load_workbook(target, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError) as exc:
        raise ValueError(f"Not a readable XLSX workbook: {label} ({exc})") from exc


# ---------------------------------------------------------------------------
# Sheet parsing
# ---------------------------------------------------------------------------

def _parse_invoices(ws: Worksheet, result: LoadResult) -> None:
    """Parse open invoice rows into ``result.invoices``."""
    header_map = _build_header_map(ws, _INVOICE_HEADERS)

    missing_required = [
        key for key in ("customer_id", "invoice_number", "amount", "due_date")
        if key not in header_map
    ]
    if missing_required:
        raise ValueError(
            f"Required columns not found in '{INVOICES_SHEET}' sheet: "
            f"{missing_required}.  Header row: {[c.value for c in ws[1]]}"
        )

    for row_idx, row in enumerate(ws.iter_rows(min_row=2), start=2):
        result.total_rows_scanned += 1
        if all(cell.value is None for cell in row):
            result.empty_rows_skipped += 1
            continue

        context = f"{INVOICES_SHEET} row {row_idx}"

        status = _clean_str(_cell_value(row, header_map, "status"))
        if "status" in header_map and status.lower() not in OPEN_STATUSES:
            result.closed_rows_skipped += 1
            continue

        invoice_number = _clean_id(_cell_value(row, header_map, "invoice_number"))
        amount = _parse_amount(_cell_value(row, header_map, "amount"))
        due_date = _parse_date(
            _cell_value(row, header_map, "due_date"), context, result.warnings,
        )
        if not invoice_number or amount is None or due_date is None:
            result.invalid_rows_skipped += 1
            result.warnings.append(
                f"{context}: missing invoice number, amount or due date -- skipped"
            )
            continue

        result.invoices.append(Invoice(
            # may be None; grouping logs and skips those rows
            customer_id=_clean_id(_cell_value(row, header_map, "customer_id")),
            invoice_number=invoice_number,
            amount=amount,
            due_date=due_date,
            sales_rep_id=_clean_id(_cell_value(row, header_map, "sales_rep_id")),
        ))


def _parse_customers(
    ws: Worksheet,
    warnings: list[str],
) -> dict[str, CustomerRecord]:
    header_map = _build_header_map(ws, _CUSTOMER_HEADERS)
    if "customer_id" not in header_map:
        warnings.append(f"'{CUSTOMERS_SHEET}' sheet has no Customer ID column")
        return {}

    customers: dict[str, CustomerRecord] = {}
    for row in ws.iter_rows(min_row=2):
        customer_id = _clean_id(_cell_value(row, header_map, "customer_id"))
        if not customer_id:
            continue
        customers[customer_id] = CustomerRecord(
            customer_id=customer_id,
            company_name=_clean_str(_cell_value(row, header_map, "company_name")),
            first_name=_clean_str(_cell_value(row, header_map, "first_name")),
            email=_clean_str(_cell_value(row, header_map, "email")),
            sales_rep_id=_clean_id(_cell_value(row, header_map, "sales_rep_id")),
        )
    return customers


def _parse_employees(
    ws: Worksheet,
    warnings: list[str],
) -> dict[str, EmployeeRecord]:
    header_map = _build_header_map(ws, _EMPLOYEE_HEADERS)
    if "employee_id" not in header_map:
        warnings.append(f"'{EMPLOYEES_SHEET}' sheet has no Employee ID column")
        return {}

    employees: dict[str, EmployeeRecord] = {}
    for row in ws.iter_rows(min_row=2):
        employee_id = _clean_id(_cell_value(row, header_map, "employee_id"))
        if not employee_id:
            continue
        employees[employee_id] = EmployeeRecord(
            employee_id=employee_id,
            email=_clean_str(_cell_value(row, header_map, "email")),
            name=_clean_str(_cell_value(row, header_map, "name")),
        )
    return employees


# ---------------------------------------------------------------------------
# Header map builder
# ---------------------------------------------------------------------------

def _build_header_map(
    ws: Worksheet,
    header_spec: dict[str, list[str]],
) -> dict[str, int]:
    """Map logical field names to 0-based column indices.

    Reads row 1 of the worksheet and matches each header cell against
    the known aliases in *header_spec* (case-insensitive).
    """
    header_map: dict[str, int] = {}

    row1_values: list[str | None] = []
    for cell in ws[1]:
        val = cell.value
        row1_values.append(str(val).strip().lower() if val is not None else None)

    for logical_name, aliases in header_spec.items():
        lowered = [a.lower() for a in aliases]
        for idx, header_text in enumerate(row1_values):
            if header_text is not None and header_text in lowered:
                header_map[logical_name] = idx
                break

    logger.debug("Header map for %s (%d/%d): %s",
                 ws.title, len(header_map), len(header_spec), list(header_map))
    return header_map


# ---------------------------------------------------------------------------
# Cell reading helpers
# ---------------------------------------------------------------------------

def _cell_value(row, header_map: dict[str, int], field_name: str):
    """Safely read a cell value by logical field name.

    Returns ``None`` if the field is not in the header map or the cell
    index is beyond the row length.
    """
    idx = header_map.get(field_name)
    if idx is None or idx >= len(row):
        return None
    return row[idx].value


# ---------------------------------------------------------------------------
# Data cleaning / type coercion helpers
# ---------------------------------------------------------------------------

def _clean_str(val) -> str:
    """Convert a cell value to a stripped string.  None becomes ``""``."""
    if val is None:
        return ""
    s = str(val).strip()
    return "" if s in _NULL_SIGNALS else s


def _clean_id(val) -> str | None:
    """Normalize an id cell: ``42``, ``42.0`` and ``"42"`` all become ``"42"``."""
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    s = str(val).strip()
    return None if s in _NULL_SIGNALS else s


def _parse_amount(val) -> Decimal | None:
    """Parse an amount cell into a Decimal.

    Handles:
    - Numeric ints / floats from openpyxl (floats go through ``str`` so
      ``100.1`` stays ``Decimal("100.1")``).
    - Strings like ``"$1,234.56"`` or ``"1234.56"``.
    - Parenthesized negatives: ``"($500.00)"``.
    """
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, int):
        return Decimal(val)
    if isinstance(val, float):
        return Decimal(str(val))

    s = str(val).strip()
    if not s or s in _NULL_SIGNALS:
        return None

    negative = False
    if s.startswith("(") and s.endswith(")"):
        negative = True
        s = s[1:-1]
    s = s.replace("$", "").replace(",", "").strip()

    try:
        amount = Decimal(s)
    except InvalidOperation:
        return None
    return -amount if negative else amount


def _parse_date(val, context: str, warnings: list[str]) -> date | None:
    """Parse a date cell value.

    openpyxl typically returns ``datetime`` objects for date-typed cells.
    Also handles Excel serial date numbers and common string formats.
    """
    if val is None:
        return None

    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val

    # Numeric -- might be an Excel serial date
    if isinstance(val, (int, float)):
        serial = int(val)
        if 20000 < serial < 80000:
            base = datetime(1899, 12, 30)
            return (base + timedelta(days=serial)).date()

    s = str(val).strip()
    for fmt in ("%Y-%m-%d", "%m/%d/%Y", "%d/%m/%Y", "%m-%d-%Y",
                "%Y-%m-%dT%H:%M:%S", "%b %d, %Y", "%B %d, %Y"):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue

    warnings.append(f"{context}: could not parse date '{val}'")
    return None
