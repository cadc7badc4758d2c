"""
Module: reimburse_kernel.models.approval
Responsibility: ORM persistence for the append-only report approval history.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per applied lifecycle transition, written by ``ReportWriter``
      in the same transaction as the status change.
    - ``sequence`` numbers a report's history from 1 with no gaps.
    - Rows are never updated.  They are deleted only with their report.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from reimburse_kernel.db.base import TrackedBase, UUIDString, as_utc
from reimburse_kernel.domain.dtos import ApprovalRecord
from reimburse_kernel.domain.lifecycle import ReportAction, ReportStatus, Role


class ApprovalRecordModel(TrackedBase):
    """A single applied transition: who did what, from which status to which."""

    __tablename__ = "report_approvals"

    __table_args__ = (
        UniqueConstraint("report_id", "sequence", name="uq_report_approvals_sequence"),
        Index("idx_report_approvals_report", "report_id", "created_at"),
    )

    report_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("reports.id", ondelete="CASCADE"), nullable=False,
    )
    sequence: Mapped[int] = mapped_column(nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(20), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    from_status: Mapped[str] = mapped_column(String(50), nullable=False)
    to_status: Mapped[str] = mapped_column(String(50), nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def to_dto(self) -> ApprovalRecord:
        return ApprovalRecord(
            id=self.id,
            report_id=self.report_id,
            actor_id=self.actor_id,
            actor_role=Role(self.actor_role),
            action=ReportAction(self.action),
            from_status=ReportStatus(self.from_status),
            to_status=ReportStatus(self.to_status),
            comment=self.comment or "",
            created_at=as_utc(self.created_at),
            sequence=self.sequence,
        )

    def __repr__(self) -> str:
        return (
            f"<ApprovalRecord {self.report_id} {self.action} "
            f"{self.from_status}->{self.to_status}>"
        )
