"""
reimburse_kernel.services.report_service -- Report lifecycle facade.

Responsibility:
    Every mutating report entry point: create, edit details, delete, and
    the five status-changing actions.  Each action re-reads the report,
    asks the pure lifecycle engine for a decision, and hands the outcome
    to ``ReportWriter`` for a conditional write.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/, engines.
    Owns the transaction boundary: commits on success, rolls back and
    re-raises on any failure.

Invariants enforced:
    - The authorization predicate gates every mutation (via the engine).
    - Status is re-read before every decision; a caller that passes
      ``expected_status`` gets ``ConcurrentModificationError`` when the
      persisted status no longer matches what it observed.
    - The status write is conditional on the pre-state the decision was
      made from.
    - Report deletion removes receipt blobs only after the record delete
      has committed.

Failure modes:
    - ReportNotFoundError, InvalidTransitionError, NotAuthorizedError,
      ValidationError, ConcurrentModificationError.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from reimburse_engines.authorization import can_view
from reimburse_engines.authorization import permitted_actions as predicate_actions
from reimburse_engines.lifecycle import check_action, decide_transition
from reimburse_kernel.domain.clock import Clock, SystemClock
from reimburse_kernel.domain.dtos import Report
from reimburse_kernel.domain.lifecycle import (
    ActorContext,
    LifecyclePolicy,
    ReportAction,
    ReportStatus,
)
from reimburse_kernel.domain.storage import DeletionResult, ObjectStore
from reimburse_kernel.exceptions import (
    ConcurrentModificationError,
    NotAuthorizedError,
    ReportNotFoundError,
    ValidationError,
)
from reimburse_kernel.logging_config import LogContext, get_logger
from reimburse_kernel.models.approval import ApprovalRecordModel
from reimburse_kernel.models.report import ExpenseItemModel, ReportModel
from reimburse_kernel.services.receipt_cleanup import remove_blobs
from reimburse_kernel.services.report_writer import ReportWriter
from reimburse_kernel.services.totals_service import TotalsService

logger = get_logger("services.report")

_MAX_TITLE_LENGTH = 200


def _clean_title(title: str | None) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError("title", "a report title is required")
    if len(cleaned) > _MAX_TITLE_LENGTH:
        raise ValidationError("title", f"must be at most {_MAX_TITLE_LENGTH} characters")
    return cleaned


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class ReportService:
    """Create, edit, delete and move reports through their lifecycle."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: LifecyclePolicy | None = None,
        object_store: ObjectStore | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._policy = policy or LifecyclePolicy()
        self._store = object_store
        self._totals = TotalsService(session)
        self._writer = ReportWriter(session, self._clock, self._totals)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _load_model(self, report_id: UUID) -> ReportModel:
        model = self._session.execute(
            select(ReportModel)
            .where(ReportModel.id == report_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise ReportNotFoundError(str(report_id))
        return model

    def get_report(self, actor: ActorContext, report_id: UUID) -> Report:
        """Return the report if ``actor`` may see it."""
        model = self._load_model(report_id)
        if not can_view(actor, model.user_id):
            raise NotAuthorizedError(
                str(actor.actor_id), "view", "only the owner or a reviewer may view this report",
            )
        return model.to_dto()

    def permitted_actions(self, actor: ActorContext, report_id: UUID) -> frozenset[ReportAction]:
        """What ``actor`` may do to the report right now.  Drives the UI buttons."""
        model = self._load_model(report_id)
        return predicate_actions(actor, model.user_id, ReportStatus(model.status))

    # ------------------------------------------------------------------
    # Draft editing
    # ------------------------------------------------------------------

    def create_report(
        self,
        actor: ActorContext,
        title: str,
        *,
        purpose: str | None = None,
        customer_name: str | None = None,
        bill_to_customer: bool = False,
    ) -> Report:
        """Create a draft report owned by ``actor``."""
        try:
            model = ReportModel(
                user_id=actor.actor_id,
                title=_clean_title(title),
                purpose=_clean_optional(purpose),
                status=ReportStatus.DRAFT.value,
                customer_name=_clean_optional(customer_name),
                bill_to_customer=bool(bill_to_customer),
                created_at=self._clock.now(),
            )
            self._session.add(model)
            self._session.flush()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "report_created",
            extra={"report_id": str(model.id), "owner_id": str(actor.actor_id)},
        )
        return model.to_dto()

    def update_report_details(
        self,
        actor: ActorContext,
        report_id: UUID,
        *,
        title: str | None = None,
        purpose: str | None = None,
        customer_name: str | None = None,
        bill_to_customer: bool | None = None,
    ) -> Report:
        """Edit header fields of a draft report.  ``None`` leaves a field unchanged."""
        try:
            state = self._writer.load_state(report_id)
            check_action(actor, state, ReportAction.EDIT)

            model = self._load_model(report_id)
            if title is not None:
                model.title = _clean_title(title)
            if purpose is not None:
                model.purpose = _clean_optional(purpose)
            if customer_name is not None:
                model.customer_name = _clean_optional(customer_name)
            if bill_to_customer is not None:
                model.bill_to_customer = bool(bill_to_customer)
            self._session.flush()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("report_details_updated", extra={"report_id": str(report_id)})
        return model.to_dto()

    def delete_report(self, actor: ActorContext, report_id: UUID) -> DeletionResult:
        """Delete a draft report with its items, history and receipts."""
        try:
            state = self._writer.load_state(report_id)
            check_action(actor, state, ReportAction.DELETE)

            model = self._load_model(report_id)
            keys = [key for item in model.items for key in item.receipt_keys]

            self._session.execute(
                delete(ApprovalRecordModel).where(ApprovalRecordModel.report_id == report_id)
            )
            self._session.delete(model)
            self._session.flush()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "report_deleted",
            extra={"report_id": str(report_id), "receipt_count": len(keys)},
        )
        return remove_blobs(self._store, keys)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def submit(
        self,
        actor: ActorContext,
        report_id: UUID,
        *,
        expected_status: ReportStatus | None = None,
        comment: str = "",
    ) -> Report:
        return self._apply(actor, report_id, ReportAction.SUBMIT, expected_status, comment)

    def approve(
        self,
        actor: ActorContext,
        report_id: UUID,
        *,
        expected_status: ReportStatus | None = None,
        comment: str = "",
    ) -> Report:
        """Approve, or escalate to partner approval when over the threshold.

        Callers acting on a report they displayed must pass the status they
        saw as ``expected_status``.  A report withdrawn or decided in the
        meantime then fails with ConcurrentModificationError; without it the
        late decision is judged against the new status and usually fails
        with InvalidTransitionError instead.
        """
        return self._apply(actor, report_id, ReportAction.APPROVE, expected_status, comment)

    def reject(
        self,
        actor: ActorContext,
        report_id: UUID,
        *,
        expected_status: ReportStatus | None = None,
        comment: str = "",
    ) -> Report:
        """Reject a report under review; it becomes terminal.

        Pass the observed status as ``expected_status``, as for ``approve``.
        """
        return self._apply(actor, report_id, ReportAction.REJECT, expected_status, comment)

    def send_back(
        self,
        actor: ActorContext,
        report_id: UUID,
        *,
        expected_status: ReportStatus | None = None,
        comment: str = "",
    ) -> Report:
        """Return a report under review to its owner as a draft.

        Pass the observed status as ``expected_status``, as for ``approve``.
        """
        return self._apply(actor, report_id, ReportAction.SEND_BACK, expected_status, comment)

    def withdraw(
        self,
        actor: ActorContext,
        report_id: UUID,
        *,
        expected_status: ReportStatus | None = None,
        comment: str = "",
    ) -> Report:
        """Owner pulls a report under review back to draft."""
        return self._apply(actor, report_id, ReportAction.WITHDRAW, expected_status, comment)

    def _apply(
        self,
        actor: ActorContext,
        report_id: UUID,
        action: ReportAction,
        expected_status: ReportStatus | None,
        comment: str,
    ) -> Report:
        with LogContext.bind(actor_id=actor.actor_id, report_id=report_id, action=action):
            logger.info("report_transition_started", extra={"actor_role": actor.role.value})
            try:
                state = self._writer.load_state(report_id)
                LogContext.set(status=state.status)
                if expected_status is not None and state.status != ReportStatus(expected_status):
                    raise ConcurrentModificationError(
                        str(report_id),
                        ReportStatus(expected_status).value,
                        state.status.value,
                    )

                outcome = decide_transition(actor, state, action, self._policy)
                self._writer.write_transition(state, outcome, actor, comment)
                self._session.commit()
            except Exception as exc:
                self._session.rollback()
                logger.warning(
                    "report_transition_rejected",
                    extra={"error_code": getattr(exc, "code", type(exc).__name__)},
                )
                raise

            logger.info(
                "report_transition_applied",
                extra={
                    "from_status": outcome.from_status.value,
                    "to_status": outcome.to_status.value,
                    "escalated": outcome.escalated,
                    "total_amount": str(state.total_amount),
                },
            )
            return self._load_model(report_id).to_dto()
