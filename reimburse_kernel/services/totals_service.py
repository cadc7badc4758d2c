"""
reimburse_kernel.services.totals_service -- Report total maintenance.

Responsibility:
    Recompute a report's ``total_amount`` from its expense items and persist
    it.  Called inside the same transaction as every item insert, update or
    delete, so a committed report total always matches its committed items.
    The write only lands while the report is still draft; an item change
    that loses a race with a submit fails instead of altering a report
    that already left the owner's hands.

Architecture position:
    Kernel > Services.  Does not commit; the calling service owns the
    transaction boundary.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from reimburse_engines.aggregation import sum_item_amounts
from reimburse_kernel.domain.lifecycle import ReportStatus
from reimburse_kernel.exceptions import ConcurrentModificationError
from reimburse_kernel.logging_config import get_logger
from reimburse_kernel.models.report import ExpenseItemModel, ReportModel

logger = get_logger("services.totals")


class TotalsService:
    """Keeps ``reports.total_amount`` equal to the sum of item amounts."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def current_total(self, report_id: UUID) -> Decimal:
        """Sum the item amounts as currently visible to this session."""
        self._session.flush()
        amounts = self._session.execute(
            select(ExpenseItemModel.amount).where(
                ExpenseItemModel.report_id == report_id,
            )
        ).scalars().all()
        # summed in Python so SQLite and PostgreSQL give identical Decimals
        return sum_item_amounts(amounts)

    def item_count(self, report_id: UUID) -> int:
        self._session.flush()
        return self._session.execute(
            select(func.count(ExpenseItemModel.id)).where(
                ExpenseItemModel.report_id == report_id,
            )
        ).scalar_one()

    def recompute(self, report_id: UUID) -> Decimal:
        """Recompute and store the total for draft ``report_id``; returns it.

        Raises ConcurrentModificationError if the report is no longer
        draft, leaving the caller to roll back its item change.
        """
        total = self.current_total(report_id)
        result = self._session.execute(
            update(ReportModel)
            .where(
                ReportModel.id == report_id,
                ReportModel.status == ReportStatus.DRAFT.value,
            )
            .values(total_amount=total)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            actual = self._session.execute(
                select(ReportModel.status).where(ReportModel.id == report_id)
            ).scalar_one_or_none()
            logger.warning(
                "report_total_conflict",
                extra={
                    "report_id": str(report_id),
                    "expected_status": ReportStatus.DRAFT.value,
                    "actual_status": actual,
                },
            )
            raise ConcurrentModificationError(str(report_id), ReportStatus.DRAFT.value, actual)

        logger.debug(
            "report_total_recomputed",
            extra={"report_id": str(report_id), "total_amount": str(total)},
        )
        return total
