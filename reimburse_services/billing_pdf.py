"""
reimburse_services.billing_pdf -- Customer billing statement (``reportlab``).

Responsibility:
    Render the statement sent to a customer for expenses incurred on their
    behalf.  Only approved reports marked ``bill_to_customer`` qualify.

Architecture position:
    Services -- export surface.  Reads DTOs only; never changes report state,
    so a rendering failure cannot corrupt a report.

Failure modes:
    - ExportNotPermittedError: report not approved, or not billable.
    - DependencyFailureError: reportlab failed to build the document.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from reimburse_kernel.domain.dtos import ExpenseItem, Report
from reimburse_kernel.domain.lifecycle import ReportStatus
from reimburse_kernel.exceptions import DependencyFailureError, ExportNotPermittedError
from reimburse_kernel.logging_config import get_logger

logger = get_logger("services.billing_pdf")

_CENT = Decimal("0.01")


def can_bill(report: Report) -> bool:
    return report.status == ReportStatus.APPROVED and report.bill_to_customer


def _money(amount: Decimal, currency: str) -> str:
    return f"{currency} {Decimal(amount).quantize(_CENT):,}"


def render_billing_statement(
    report: Report,
    items: Sequence[ExpenseItem],
    currency: str = "CNY",
) -> bytes:
    """Build the billing statement PDF for ``report`` and return its bytes."""
    if not can_bill(report):
        raise ExportNotPermittedError(
            str(report.id), report.status.value, report.bill_to_customer,
        )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "StatementTitle",
        parent=styles["Heading1"],
        fontSize=18,
        spaceAfter=12,
    )

    content = [
        Paragraph("Expense Billing Statement", title_style),
        Paragraph(f"<b>Customer:</b> {escape(report.customer_name or '-')}", styles["Normal"]),
        Paragraph(f"<b>Report:</b> {escape(report.title)}", styles["Normal"]),
    ]
    if report.purpose:
        content.append(Paragraph(f"<b>Purpose:</b> {escape(report.purpose)}", styles["Normal"]))
    if report.approved_at is not None:
        content.append(Paragraph(
            f"<b>Approved:</b> {report.approved_at.date().isoformat()}", styles["Normal"],
        ))
    content.append(Spacer(1, 0.25 * inch))

    data = [["Date", "Category", "Description", "Amount"]]
    for item in items:
        data.append([
            item.expense_date.isoformat(),
            item.category,
            Paragraph(escape(item.description or ""), styles["BodyText"]),
            _money(item.amount, currency),
        ])
    data.append(["", "", "Total", _money(report.total_amount, currency)])

    table = Table(data, colWidths=[1.0 * inch, 1.4 * inch, 3.0 * inch, 1.4 * inch], repeatRows=1)
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
        ("LINEBELOW", (0, 0), (-1, 0), 0.5, colors.black),
        ("LINEABOVE", (0, -1), (-1, -1), 0.5, colors.black),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("ALIGN", (3, 0), (3, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    content.append(table)

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        title=f"Billing statement - {report.title}",
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
    )
    try:
        doc.build(content)
    except Exception as exc:
        raise DependencyFailureError("pdf", "build", str(exc)) from exc

    logger.info(
        "billing_statement_rendered",
        extra={"report_id": str(report.id), "item_count": len(items)},
    )
    return buffer.getvalue()
