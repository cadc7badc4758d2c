"""
reimburse_services.export_service -- Export entry points.

Responsibility:
    Load what an export needs through the kernel's read paths, check that
    the actor may see it, and hand the DTOs to the renderers.

Architecture position:
    Services -- composes kernel selectors with the export renderers.
    Read-only: never adds, flushes or commits.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from reimburse_engines.authorization import can_view
from reimburse_kernel.domain.lifecycle import ActorContext
from reimburse_kernel.exceptions import NotAuthorizedError, ReportNotFoundError
from reimburse_kernel.logging_config import LogContext, get_logger
from reimburse_kernel.models.report import ExpenseItemModel, ReportModel
from reimburse_kernel.selectors.analytics_selector import AnalyticsSelector
from reimburse_services.billing_pdf import render_billing_statement
from reimburse_services.spreadsheet_export import export_expense_rows

logger = get_logger("services.export")


class ExportService:
    def __init__(self, session: Session, currency: str = "CNY") -> None:
        self._session = session
        self._currency = currency
        self._analytics = AnalyticsSelector(session)

    def expense_workbook(
        self,
        actor: ActorContext,
        start_date: date | None = None,
        end_date: date | None = None,
        customer: str | None = None,
    ) -> bytes:
        """The analytics query rendered as an .xlsx workbook."""
        rows = self._analytics.expense_rows(actor, start_date, end_date, customer)
        return export_expense_rows(rows)

    def billing_statement(self, actor: ActorContext, report_id: UUID) -> bytes:
        """PDF billing statement for an approved, billable report."""
        with LogContext.bind(actor_id=str(actor.actor_id), report_id=str(report_id)):
            report = self._session.execute(
                select(ReportModel)
                .where(ReportModel.id == report_id)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if report is None:
                raise ReportNotFoundError(str(report_id))
            if not can_view(actor, report.user_id):
                raise NotAuthorizedError(
                    str(actor.actor_id), "export", "only the owner or a reviewer may export this report",
                )

            items = self._session.execute(
                select(ExpenseItemModel)
                .where(ExpenseItemModel.report_id == report_id)
                .order_by(ExpenseItemModel.expense_date, ExpenseItemModel.created_at)
            ).scalars().all()
            return render_billing_statement(
                report.to_dto(), [item.to_dto() for item in items], self._currency,
            )
