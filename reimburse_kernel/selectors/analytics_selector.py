"""
Module: reimburse_kernel.selectors.analytics_selector
Responsibility: Flattened expense rows for the analytics page and its
    spreadsheet export.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import aliased

from reimburse_engines.authorization import REVIEWER_ROLES
from reimburse_kernel.db.base import as_utc
from reimburse_kernel.domain.dtos import ExpenseRow
from reimburse_kernel.domain.lifecycle import ActorContext, ReportStatus
from reimburse_kernel.exceptions import NotAuthorizedError, ValidationError
from reimburse_kernel.models.directory import ProfileModel
from reimburse_kernel.models.report import ExpenseItemModel, ReportModel
from reimburse_kernel.selectors.base import BaseSelector


class AnalyticsSelector(BaseSelector):
    def expense_rows(
        self,
        actor: ActorContext,
        start_date: date | None = None,
        end_date: date | None = None,
        customer: str | None = None,
    ) -> list[ExpenseRow]:
        """Items across all reports, oldest expense first.

        Date bounds are inclusive.  ``customer`` matches the report's
        customer name as a case-insensitive substring.
        """
        if actor.role not in REVIEWER_ROLES:
            raise NotAuthorizedError(str(actor.actor_id), "view_analytics", "reviewer role required")
        if start_date and end_date and start_date > end_date:
            raise ValidationError("start_date", "must not be after end_date")

        owner = aliased(ProfileModel)
        approver = aliased(ProfileModel)
        stmt = (
            select(
                ExpenseItemModel,
                ReportModel,
                owner.full_name.label("employee_name"),
                approver.full_name.label("approver_name"),
            )
            .join(ReportModel, ExpenseItemModel.report_id == ReportModel.id)
            .outerjoin(owner, owner.id == ReportModel.user_id)
            .outerjoin(approver, approver.id == ReportModel.approver_id)
            .order_by(ExpenseItemModel.expense_date, ExpenseItemModel.created_at)
        )
        if start_date is not None:
            stmt = stmt.where(ExpenseItemModel.expense_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(ExpenseItemModel.expense_date <= end_date)
        if customer and customer.strip():
            stmt = stmt.where(
                ReportModel.customer_name.icontains(customer.strip(), autoescape=True)
            )

        rows: list[ExpenseRow] = []
        for item, report, employee_name, approver_name in self.session.execute(stmt).all():
            rows.append(ExpenseRow(
                item_id=item.id,
                report_id=report.id,
                expense_date=item.expense_date,
                category=item.category,
                amount=item.to_dto().amount,
                employee_name=employee_name,
                customer_name=report.customer_name,
                bill_to_customer=bool(report.bill_to_customer),
                report_title=report.title,
                report_status=ReportStatus(report.status),
                submitted_at=as_utc(report.submitted_at),
                approved_at=as_utc(report.approved_at),
                approver_name=approver_name,
            ))
        return rows
