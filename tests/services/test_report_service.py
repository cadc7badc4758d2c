"""
Tests for ReportService -- the report lifecycle facade.

Covers:
- Escalation scenarios: large report via manager then partner; small
  report approved directly; threshold boundary persisted end to end
- Terminal check: a second approve fails with InvalidTransitionError
- Round trip: submit -> send_back -> draft keeps items and allows resubmit
- Withdraw, reject, timestamps cleared on return to draft
- Draft editing and deletion (cascade to items, history and receipts)
- Stale expected_status -> ConcurrentModificationError, nothing written
- Approval history rows and structured logs
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from reimburse_kernel.domain.lifecycle import ReportAction, ReportStatus
from reimburse_kernel.domain.storage import ReceiptUpload
from reimburse_kernel.exceptions import (
    ConcurrentModificationError,
    InvalidTransitionError,
    NotAuthorizedError,
    ReportNotFoundError,
    ValidationError,
)
from reimburse_kernel.models.approval import ApprovalRecordModel
from reimburse_kernel.models.report import ExpenseItemModel, ReportModel
from reimburse_kernel.selectors.report_selector import ReportSelector

S = ReportStatus


# ---------------------------------------------------------------------------
# Concrete approval scenarios
# ---------------------------------------------------------------------------


class TestEscalationScenarios:
    def test_large_report_needs_partner(
        self, make_report, report_service, owner, manager, partner, deterministic_clock,
    ):
        report = make_report("6000.00")
        assert report.status == S.DRAFT
        assert report.total_amount == Decimal("6000.00")

        submitted = report_service.submit(owner, report.id)
        assert submitted.status == S.SUBMITTED
        assert submitted.submitted_at == deterministic_clock.now()

        deterministic_clock.advance(60)
        escalated = report_service.approve(manager, report.id)
        assert escalated.status == S.PENDING_PARTNER_APPROVAL
        assert escalated.approved_at is None
        assert escalated.approver_id is None

        deterministic_clock.advance(60)
        approved = report_service.approve(partner, report.id)
        assert approved.status == S.APPROVED
        assert approved.approved_at == deterministic_clock.now()
        assert approved.approver_id == partner.actor_id
        assert approved.submitted_at == submitted.submitted_at

    def test_small_report_approved_directly(self, submitted_report, report_service, manager):
        report = submitted_report("400.00", "600.00")
        assert report.total_amount == Decimal("1000.00")

        approved = report_service.approve(manager, report.id)
        assert approved.status == S.APPROVED
        assert approved.approver_id == manager.actor_id
        assert approved.approved_at is not None

    @pytest.mark.parametrize("amounts,expected", [
        (("5000.00",), S.APPROVED),
        (("2500.00", "2500.00"), S.APPROVED),
        (("5000.01",), S.PENDING_PARTNER_APPROVAL),
        (("4999.99", "0.02"), S.PENDING_PARTNER_APPROVAL),
    ])
    def test_threshold_boundary(self, submitted_report, report_service, manager, amounts, expected):
        report = submitted_report(*amounts)
        assert report_service.approve(manager, report.id).status == expected

    def test_admin_is_bounded_like_manager(self, submitted_report, report_service, admin):
        report = submitted_report("7500.00")
        assert report_service.approve(admin, report.id).status == S.PENDING_PARTNER_APPROVAL

    def test_partner_approves_large_submitted_directly(
        self, submitted_report, report_service, partner,
    ):
        report = submitted_report("20000.00")
        approved = report_service.approve(partner, report.id)
        assert approved.status == S.APPROVED
        assert approved.approver_id == partner.actor_id

    def test_manager_cannot_finalize_pending(self, submitted_report, report_service, manager):
        report = submitted_report("6000.00")
        report_service.approve(manager, report.id)
        with pytest.raises(NotAuthorizedError):
            report_service.approve(manager, report.id)


class TestTerminalStates:
    def test_second_approve_is_invalid_transition(
        self, submitted_report, report_service, manager, partner,
    ):
        report = submitted_report("100.00")
        report_service.approve(manager, report.id)

        for approver in (manager, partner):
            with pytest.raises(InvalidTransitionError) as exc_info:
                report_service.approve(approver, report.id)
            assert exc_info.value.current_status == "approved"

    def test_reject_is_terminal(self, submitted_report, report_service, partner, owner):
        report = submitted_report("100.00")
        rejected = report_service.reject(partner, report.id, comment="Out of policy")
        assert rejected.status == S.REJECTED

        with pytest.raises(InvalidTransitionError):
            report_service.withdraw(owner, report.id)
        with pytest.raises(InvalidTransitionError):
            report_service.send_back(partner, report.id)


class TestReturnToDraft:
    def test_send_back_round_trip_keeps_items(
        self, submitted_report, report_service, expense_service, owner, manager,
    ):
        report = submitted_report("120.00", "80.00")
        returned = report_service.send_back(manager, report.id, comment="Add receipts")

        assert returned.status == S.DRAFT
        assert returned.submitted_at is None
        assert returned.approved_at is None
        assert len(expense_service.list_items(owner, report.id)) == 2
        assert report_service.permitted_actions(owner, report.id) == {
            ReportAction.EDIT, ReportAction.SUBMIT, ReportAction.DELETE,
        }

        expense_service.add_item(
            owner, report.id, category="meals", amount="15.00", expense_date=date(2024, 1, 9),
        )
        resubmitted = report_service.submit(owner, report.id)
        assert resubmitted.status == S.SUBMITTED
        assert resubmitted.submitted_at is not None
        assert resubmitted.total_amount == Decimal("215.00")

    def test_send_back_from_pending_clears_escalation(
        self, submitted_report, report_service, manager, partner,
    ):
        report = submitted_report("9000.00")
        report_service.approve(manager, report.id)
        returned = report_service.send_back(partner, report.id)
        assert returned.status == S.DRAFT
        assert returned.submitted_at is None

    def test_owner_withdraws_submitted(self, submitted_report, report_service, owner):
        report = submitted_report("50.00")
        withdrawn = report_service.withdraw(owner, report.id)
        assert withdrawn.status == S.DRAFT
        assert withdrawn.submitted_at is None

    def test_only_owner_withdraws(self, submitted_report, report_service, partner):
        report = submitted_report("50.00")
        with pytest.raises(NotAuthorizedError):
            report_service.withdraw(partner, report.id)

    def test_owner_cannot_send_back(self, submitted_report, report_service, owner):
        report = submitted_report("50.00")
        with pytest.raises(NotAuthorizedError):
            report_service.send_back(owner, report.id)


# ---------------------------------------------------------------------------
# Submission guards and authorization
# ---------------------------------------------------------------------------


class TestSubmitGuards:
    def test_empty_report_cannot_be_submitted(self, report_service, owner, session):
        report = report_service.create_report(owner, "Nothing yet")
        with pytest.raises(ValidationError):
            report_service.submit(owner, report.id)
        assert session.get(ReportModel, report.id).status == S.DRAFT.value

    def test_colleague_cannot_submit(self, make_report, report_service, actors):
        report = make_report("10.00")
        with pytest.raises(NotAuthorizedError):
            report_service.submit(actors.colleague, report.id)

    def test_manager_cannot_approve_own_report(
        self, make_report, report_service, manager,
    ):
        report = make_report("10.00", actor=manager)
        report_service.submit(manager, report.id)
        with pytest.raises(NotAuthorizedError) as exc_info:
            report_service.approve(manager, report.id)
        assert "own report" in exc_info.value.reason

    def test_unknown_report(self, report_service, owner):
        with pytest.raises(ReportNotFoundError):
            report_service.submit(owner, uuid4())


class TestStaleObservation:
    def test_expected_status_mismatch_raises_without_writing(
        self, submitted_report, report_service, owner, partner, session,
    ):
        report = submitted_report("6000.00")
        report_service.withdraw(owner, report.id)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            report_service.approve(partner, report.id, expected_status=S.SUBMITTED)
        assert exc_info.value.expected_status == "submitted"
        assert exc_info.value.actual_status == "draft"
        assert exc_info.value.code == "CONCURRENT_MODIFICATION"

        assert session.get(ReportModel, report.id).status == S.DRAFT.value
        count = session.execute(
            select(func.count(ApprovalRecordModel.id))
            .where(ApprovalRecordModel.report_id == report.id)
        ).scalar_one()
        assert count == 2  # submit + withdraw

    def test_matching_expected_status_applies(self, submitted_report, report_service, manager):
        report = submitted_report("10.00")
        approved = report_service.approve(manager, report.id, expected_status=S.SUBMITTED)
        assert approved.status == S.APPROVED


# ---------------------------------------------------------------------------
# Draft editing and deletion
# ---------------------------------------------------------------------------


class TestDraftEditing:
    def test_create_report(self, report_service, owner, deterministic_clock):
        report = report_service.create_report(
            owner, "  Client dinner  ", customer_name="Northwind", bill_to_customer=True,
            purpose="Quarterly review",
        )
        assert report.title == "Client dinner"
        assert report.status == S.DRAFT
        assert report.total_amount == Decimal("0.00")
        assert report.user_id == owner.actor_id
        assert report.bill_to_customer is True
        assert report.created_at == deterministic_clock.now()

    @pytest.mark.parametrize("title", ["", "   ", None, "x" * 201])
    def test_invalid_title(self, report_service, owner, title):
        with pytest.raises(ValidationError):
            report_service.create_report(owner, title)

    def test_update_details_in_draft(self, make_report, report_service, owner):
        report = make_report("10.00")
        updated = report_service.update_report_details(
            owner, report.id, title="Renamed", customer_name="", bill_to_customer=True,
        )
        assert updated.title == "Renamed"
        assert updated.customer_name is None
        assert updated.bill_to_customer is True

    def test_title_frozen_after_submit(self, submitted_report, report_service, owner):
        report = submitted_report("10.00")
        with pytest.raises(InvalidTransitionError):
            report_service.update_report_details(owner, report.id, title="Too late")

    def test_colleague_cannot_edit(self, make_report, report_service, actors):
        report = make_report("10.00")
        with pytest.raises(NotAuthorizedError):
            report_service.update_report_details(actors.colleague, report.id, title="Mine now")

    def test_colleague_cannot_view(self, make_report, report_service, actors):
        report = make_report("10.00")
        with pytest.raises(NotAuthorizedError):
            report_service.get_report(actors.colleague, report.id)


class TestDeletion:
    def test_delete_draft_cascades(
        self, report_service, expense_service, owner, object_store, session,
    ):
        report = report_service.create_report(owner, "Trip")
        expense_service.add_item(
            owner,
            report.id,
            category="lodging",
            amount="300.00",
            expense_date="2024-02-01",
            receipts=[ReceiptUpload("hotel.jpg", b"jpeg-bytes", "image/jpeg")],
        )
        report_service.submit(owner, report.id)
        report_service.withdraw(owner, report.id)
        assert len(object_store.keys()) == 1

        result = report_service.delete_report(owner, report.id)

        assert len(result.removed_keys) == 1
        assert result.orphaned_keys == ()
        assert object_store.keys() == []
        assert session.get(ReportModel, report.id) is None
        assert session.execute(
            select(func.count(ExpenseItemModel.id))
            .where(ExpenseItemModel.report_id == report.id)
        ).scalar_one() == 0
        assert session.execute(
            select(func.count(ApprovalRecordModel.id))
            .where(ApprovalRecordModel.report_id == report.id)
        ).scalar_one() == 0

    def test_cannot_delete_submitted(self, submitted_report, report_service, owner):
        report = submitted_report("10.00")
        with pytest.raises(InvalidTransitionError):
            report_service.delete_report(owner, report.id)

    def test_only_owner_deletes(self, make_report, report_service, admin):
        report = make_report("10.00")
        with pytest.raises(NotAuthorizedError):
            report_service.delete_report(admin, report.id)


# ---------------------------------------------------------------------------
# History and logging
# ---------------------------------------------------------------------------


class TestHistoryAndLogs:
    def test_history_records_each_transition(
        self, submitted_report, report_service, session, owner, manager, partner,
    ):
        report = submitted_report("6000.00")
        report_service.approve(manager, report.id)
        report_service.approve(partner, report.id, comment="OK for client project")

        history = ReportSelector(session).history(owner, report.id)
        assert [(h.sequence, h.action, h.from_status, h.to_status) for h in history] == [
            (1, ReportAction.SUBMIT, S.DRAFT, S.SUBMITTED),
            (2, ReportAction.APPROVE, S.SUBMITTED, S.PENDING_PARTNER_APPROVAL),
            (3, ReportAction.APPROVE, S.PENDING_PARTNER_APPROVAL, S.APPROVED),
        ]
        assert history[1].actor_id == manager.actor_id
        assert "partner approval required" in history[1].comment
        assert history[2].comment == "OK for client project"

    def test_transition_logs(self, submitted_report, report_service, manager, captured_logs):
        report = submitted_report("6000.00")
        report_service.approve(manager, report.id)

        applied = [r for r in captured_logs() if r["message"] == "report_transition_applied"]
        assert applied[-1]["action"] == "approve"
        assert applied[-1]["status"] == "submitted"
        assert applied[-1]["to_status"] == "pending_partner_approval"
        assert applied[-1]["escalated"] is True
        assert applied[-1]["report_id"] == str(report.id)
        assert applied[-1]["actor_id"] == str(manager.actor_id)

    def test_rejected_mutation_logs_error_code(
        self, submitted_report, report_service, owner, captured_logs,
    ):
        report = submitted_report("10.00")
        with pytest.raises(NotAuthorizedError):
            report_service.approve(owner, report.id)

        rejected = [r for r in captured_logs() if r["message"] == "report_transition_rejected"]
        assert rejected[-1]["error_code"] == "NOT_AUTHORIZED"
        assert rejected[-1]["level"] == "WARNING"
