"""
reimburse_kernel.services.report_writer -- Conditional report status writes.

Responsibility:
    Read a fresh ``ReportState`` snapshot for the lifecycle engine and
    apply a decided ``TransitionOutcome`` as a single conditional UPDATE,
    appending the approval history row in the same transaction.

Architecture position:
    Kernel > Services.  The only code that writes ``reports.status``.
    Does not commit; ``ReportService`` owns the transaction boundary.

Invariants enforced:
    - The UPDATE is conditioned on the status the decision was made from.
      Zero rows matched means another actor moved the report first, and
      the write fails instead of overwriting.
    - A history row exists for every applied transition.

Failure modes:
    - ReportNotFoundError: no report with that id.
    - ConcurrentModificationError: conditional write matched zero rows.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from reimburse_kernel.domain.clock import Clock, SystemClock
from reimburse_kernel.domain.lifecycle import (
    ActorContext,
    ReportState,
    ReportStatus,
    TransitionOutcome,
)
from reimburse_kernel.exceptions import (
    ConcurrentModificationError,
    ReportNotFoundError,
)
from reimburse_kernel.logging_config import get_logger
from reimburse_kernel.models.approval import ApprovalRecordModel
from reimburse_kernel.models.report import ReportModel
from reimburse_kernel.services.totals_service import TotalsService

logger = get_logger("services.report_writer")


class ReportWriter:
    """Reads report snapshots and applies status transitions atomically."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        totals: TotalsService | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._totals = totals or TotalsService(session)

    def read_status(self, report_id: UUID) -> ReportStatus | None:
        value = self._session.execute(
            select(ReportModel.status).where(ReportModel.id == report_id)
        ).scalar_one_or_none()
        return ReportStatus(value) if value is not None else None

    def load_state(self, report_id: UUID) -> ReportState:
        """Read the persisted status, owner and item-derived total."""
        row = self._session.execute(
            select(ReportModel.user_id, ReportModel.status).where(
                ReportModel.id == report_id,
            )
        ).one_or_none()
        if row is None:
            raise ReportNotFoundError(str(report_id))

        return ReportState(
            report_id=report_id,
            owner_id=row.user_id,
            status=ReportStatus(row.status),
            total_amount=self._totals.current_total(report_id),
            item_count=self._totals.item_count(report_id),
        )

    def write_transition(
        self,
        state: ReportState,
        outcome: TransitionOutcome,
        actor: ActorContext,
        comment: str = "",
    ) -> None:
        """Apply ``outcome`` if the report is still in ``outcome.from_status``."""
        values: dict = {"status": outcome.to_status.value}
        now = self._clock.now()
        if outcome.stamps_submission:
            values["submitted_at"] = now
        if outcome.stamps_approval:
            values["approved_at"] = now
            values["approver_id"] = actor.actor_id
        if outcome.clears_timestamps:
            values["submitted_at"] = None
            values["approved_at"] = None
            values["approver_id"] = None

        result = self._session.execute(
            update(ReportModel)
            .where(
                ReportModel.id == state.report_id,
                ReportModel.status == outcome.from_status.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            actual = self.read_status(state.report_id)
            logger.warning(
                "report_transition_conflict",
                extra={
                    "report_id": str(state.report_id),
                    "action": outcome.action.value,
                    "expected_status": outcome.from_status.value,
                    "actual_status": actual.value if actual else None,
                },
            )
            raise ConcurrentModificationError(
                str(state.report_id),
                outcome.from_status.value,
                actual.value if actual else None,
            )

        sequence = self._session.execute(
            select(func.count(ApprovalRecordModel.id)).where(
                ApprovalRecordModel.report_id == state.report_id,
            )
        ).scalar_one() + 1
        self._session.add(ApprovalRecordModel(
            report_id=state.report_id,
            sequence=sequence,
            actor_id=actor.actor_id,
            actor_role=actor.role.value,
            action=outcome.action.value,
            from_status=outcome.from_status.value,
            to_status=outcome.to_status.value,
            comment=comment or outcome.reason,
            created_at=now,
        ))
        self._session.flush()
