"""
Module: reimburse_kernel.selectors.report_selector
Responsibility: Read paths behind the dashboard and approval pages: an
    owner's reports, an approver's queue, recently decided reports, and a
    report's approval history.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - The approval queue is exactly the set of reports the authorization
      predicate lets the actor approve; it never includes their own.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select

from reimburse_engines.authorization import REVIEWER_ROLES, can_view, is_permitted
from reimburse_kernel.domain.dtos import ApprovalRecord, Report
from reimburse_kernel.domain.lifecycle import (
    REVIEW_STATUSES,
    TERMINAL_REPORT_STATUSES,
    ActorContext,
    ReportAction,
    ReportStatus,
)
from reimburse_kernel.exceptions import NotAuthorizedError, ReportNotFoundError
from reimburse_kernel.models.approval import ApprovalRecordModel
from reimburse_kernel.models.report import ReportModel
from reimburse_kernel.selectors.base import BaseSelector

DEFAULT_PROCESSED_LIMIT = 20


class ReportSelector(BaseSelector):
    """Report listings and history."""

    def reports_for_owner(self, owner_id: UUID) -> list[Report]:
        """Every report the owner has, newest first."""
        models = self.session.execute(
            select(ReportModel)
            .where(ReportModel.user_id == owner_id)
            .order_by(ReportModel.created_at.desc())
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def approval_queue(self, actor: ActorContext) -> list[Report]:
        """Reports ``actor`` may decide on now, oldest submission first.

        Managers and admins see submitted reports; partners additionally
        see reports escalated to them.
        """
        if actor.role not in REVIEWER_ROLES:
            return []
        models = self.session.execute(
            select(ReportModel)
            .where(
                ReportModel.status.in_([s.value for s in REVIEW_STATUSES]),
                ReportModel.user_id != actor.actor_id,
            )
            .execution_options(populate_existing=True)
        ).scalars().all()

        queue = [
            m.to_dto() for m in models
            if is_permitted(actor, m.user_id, ReportStatus(m.status), ReportAction.APPROVE)
        ]
        queue.sort(key=lambda r: (r.submitted_at or r.created_at, str(r.id)))
        return queue

    def processed_reports(
        self,
        actor: ActorContext,
        limit: int = DEFAULT_PROCESSED_LIMIT,
    ) -> list[Report]:
        """Approved and rejected reports, most recently decided first."""
        if actor.role not in REVIEWER_ROLES:
            raise NotAuthorizedError(
                str(actor.actor_id), "view_processed", "reviewer role required",
            )

        decided = (
            select(
                ApprovalRecordModel.report_id.label("report_id"),
                func.max(ApprovalRecordModel.sequence).label("last_sequence"),
            )
            .group_by(ApprovalRecordModel.report_id)
            .subquery()
        )
        last_record = (
            select(
                ApprovalRecordModel.report_id.label("report_id"),
                ApprovalRecordModel.created_at.label("decided_at"),
            )
            .join(
                decided,
                (ApprovalRecordModel.report_id == decided.c.report_id)
                & (ApprovalRecordModel.sequence == decided.c.last_sequence),
            )
            .subquery()
        )
        rows = self.session.execute(
            select(ReportModel, last_record.c.decided_at)
            .join(last_record, last_record.c.report_id == ReportModel.id)
            .where(ReportModel.status.in_([s.value for s in TERMINAL_REPORT_STATUSES]))
            .order_by(last_record.c.decided_at.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        ).all()
        return [model.to_dto() for model, _decided_at in rows]

    def history(self, actor: ActorContext, report_id: UUID) -> list[ApprovalRecord]:
        """Applied transitions of a report, in the order they happened."""
        owner_id = self.session.execute(
            select(ReportModel.user_id).where(ReportModel.id == report_id)
        ).scalar_one_or_none()
        if owner_id is None:
            raise ReportNotFoundError(str(report_id))
        if not can_view(actor, owner_id):
            raise NotAuthorizedError(
                str(actor.actor_id), "view", "only the owner or a reviewer may view this report",
            )
        models = self.session.execute(
            select(ApprovalRecordModel)
            .where(ApprovalRecordModel.report_id == report_id)
            .order_by(ApprovalRecordModel.sequence)
        ).scalars().all()
        return [m.to_dto() for m in models]
