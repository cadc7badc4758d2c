"""
Spreadsheet export of analytics expense rows (``openpyxl``).

One worksheet, one row per expense item, in the order the selector
returned them.  Amounts are written as numbers with a two-decimal format
so the workbook can be summed; dates are written as dates.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Font

from reimburse_kernel.domain.dtos import ExpenseRow
from reimburse_kernel.exceptions import DependencyFailureError, ValidationError
from reimburse_kernel.logging_config import get_logger

logger = get_logger("services.spreadsheet_export")

SHEET_TITLE = "Expense details"

COLUMNS: tuple[str, ...] = (
    "Expense date",
    "Category",
    "Amount",
    "Employee",
    "Customer",
    "Bill to customer",
    "Report",
    "Submitted",
    "Approved",
    "Approver",
    "Expense ID",
)

_AMOUNT_FORMAT = "#,##0.00"
_DATE_FORMAT = "yyyy-mm-dd"


def _day(value) -> date | None:
    return value.date() if value is not None else None


def row_values(row: ExpenseRow) -> list:
    """Cell values for one expense row, in ``COLUMNS`` order."""
    return [
        row.expense_date,
        row.category,
        row.amount,
        row.employee_name or "N/A",
        row.customer_name or "-",
        "Yes" if row.bill_to_customer else "No",
        row.report_title,
        _day(row.submitted_at) or "-",
        _day(row.approved_at) or "-",
        row.approver_name or "-",
        str(row.item_id),
    ]


def export_expense_rows(rows: Sequence[ExpenseRow]) -> bytes:
    """Render ``rows`` as an .xlsx workbook and return its bytes.

    Raises:
        ValidationError: ``rows`` is empty; there is nothing to export.
        DependencyFailureError: openpyxl failed to write the workbook.
    """
    if not rows:
        raise ValidationError("rows", "there is no data to export; run a query first")

    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE
    ws.append(list(COLUMNS))
    for cell in ws[1]:
        cell.font = Font(bold=True)
    ws.freeze_panes = "A2"

    for row in rows:
        ws.append(row_values(row))
        current = ws.max_row
        ws.cell(row=current, column=1).number_format = _DATE_FORMAT
        ws.cell(row=current, column=3).number_format = _AMOUNT_FORMAT
        for column in (8, 9):
            cell = ws.cell(row=current, column=column)
            if isinstance(cell.value, date):
                cell.number_format = _DATE_FORMAT

    for index, title in enumerate(COLUMNS, start=1):
        letter = ws.cell(row=1, column=index).column_letter
        ws.column_dimensions[letter].width = max(len(title) + 2, 12)

    buffer = BytesIO()
    try:
        wb.save(buffer)
    except Exception as exc:
        raise DependencyFailureError("spreadsheet", "save", str(exc)) from exc
    finally:
        wb.close()

    logger.info("expense_rows_exported", extra={"row_count": len(rows)})
    return buffer.getvalue()
