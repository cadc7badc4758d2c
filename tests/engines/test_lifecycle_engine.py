"""
Tests for the pure report lifecycle engine.

Covers:
- decide_transition(): every edge of the state table
- Escalation boundary: 5000.00 approves, 5000.01 escalates
- Error precedence: wrong state before authorization
- Submit guard: at least one expense item
- Configurable threshold
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from reimburse_engines.lifecycle import check_action, decide_transition, requires_partner
from reimburse_kernel.domain.lifecycle import (
    REPORT_TRANSITIONS,
    ActorContext,
    LifecyclePolicy,
    ReportAction,
    ReportState,
    ReportStatus,
    Role,
)
from reimburse_kernel.exceptions import (
    InvalidTransitionError,
    NotAuthorizedError,
    ValidationError,
)

A = ReportAction
S = ReportStatus

OWNER = ActorContext(actor_id=uuid4(), role=Role.EMPLOYEE)
MANAGER = ActorContext(actor_id=uuid4(), role=Role.MANAGER)
ADMIN = ActorContext(actor_id=uuid4(), role=Role.ADMIN)
PARTNER = ActorContext(actor_id=uuid4(), role=Role.PARTNER)


def state(status: ReportStatus, total: str = "100.00", items: int = 1) -> ReportState:
    return ReportState(
        report_id=uuid4(),
        owner_id=OWNER.actor_id,
        status=status,
        total_amount=Decimal(total),
        item_count=items,
    )


class TestSubmit:
    def test_owner_submits_draft(self):
        outcome = decide_transition(OWNER, state(S.DRAFT), A.SUBMIT)
        assert outcome.to_status == S.SUBMITTED
        assert outcome.stamps_submission
        assert not outcome.stamps_approval

    def test_submit_without_items_is_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            decide_transition(OWNER, state(S.DRAFT, total="0.00", items=0), A.SUBMIT)
        assert exc_info.value.field == "expense_items"

    def test_non_owner_cannot_submit(self):
        with pytest.raises(NotAuthorizedError):
            decide_transition(MANAGER, state(S.DRAFT), A.SUBMIT)

    @pytest.mark.parametrize("status", [S.SUBMITTED, S.APPROVED, S.REJECTED])
    def test_submit_outside_draft_is_invalid_transition(self, status):
        with pytest.raises(InvalidTransitionError) as exc_info:
            decide_transition(OWNER, state(status), A.SUBMIT)
        assert exc_info.value.current_status == status.value


class TestApprove:
    @pytest.mark.parametrize("approver", [MANAGER, ADMIN])
    def test_bounded_approver_at_threshold_approves(self, approver):
        outcome = decide_transition(approver, state(S.SUBMITTED, "5000.00"), A.APPROVE)
        assert outcome.to_status == S.APPROVED
        assert outcome.stamps_approval
        assert not outcome.escalated

    @pytest.mark.parametrize("approver", [MANAGER, ADMIN])
    def test_bounded_approver_above_threshold_escalates(self, approver):
        outcome = decide_transition(approver, state(S.SUBMITTED, "5000.01"), A.APPROVE)
        assert outcome.to_status == S.PENDING_PARTNER_APPROVAL
        assert outcome.escalated
        assert not outcome.stamps_approval

    def test_partner_approval_is_final_regardless_of_amount(self):
        outcome = decide_transition(PARTNER, state(S.SUBMITTED, "999999.99"), A.APPROVE)
        assert outcome.to_status == S.APPROVED
        assert outcome.stamps_approval

    def test_partner_finalizes_pending(self):
        outcome = decide_transition(
            PARTNER, state(S.PENDING_PARTNER_APPROVAL, "6000.00"), A.APPROVE,
        )
        assert outcome.from_status == S.PENDING_PARTNER_APPROVAL
        assert outcome.to_status == S.APPROVED

    def test_manager_cannot_approve_pending_partner(self):
        with pytest.raises(NotAuthorizedError):
            decide_transition(MANAGER, state(S.PENDING_PARTNER_APPROVAL, "6000.00"), A.APPROVE)

    def test_owner_cannot_approve_own_report(self):
        own_manager = ActorContext(actor_id=OWNER.actor_id, role=Role.MANAGER)
        with pytest.raises(NotAuthorizedError):
            decide_transition(own_manager, state(S.SUBMITTED), A.APPROVE)

    @pytest.mark.parametrize("approver", [OWNER, MANAGER, ADMIN, PARTNER])
    def test_second_approve_is_invalid_transition_for_everyone(self, approver):
        with pytest.raises(InvalidTransitionError):
            decide_transition(approver, state(S.APPROVED), A.APPROVE)

    def test_approving_draft_is_invalid_transition(self):
        with pytest.raises(InvalidTransitionError):
            decide_transition(MANAGER, state(S.DRAFT), A.APPROVE)

    def test_custom_threshold(self):
        policy = LifecyclePolicy(escalation_threshold=Decimal("100.00"))
        outcome = decide_transition(MANAGER, state(S.SUBMITTED, "100.01"), A.APPROVE, policy)
        assert outcome.to_status == S.PENDING_PARTNER_APPROVAL

    def test_requires_partner_only_for_bounded_roles_in_submitted(self):
        policy = LifecyclePolicy()
        big = state(S.SUBMITTED, "7000.00")
        assert requires_partner(MANAGER, big, policy)
        assert not requires_partner(PARTNER, big, policy)
        assert not requires_partner(
            MANAGER, state(S.PENDING_PARTNER_APPROVAL, "7000.00"), policy,
        )


class TestReturnToDraft:
    @pytest.mark.parametrize("reviewer,status", [
        (MANAGER, S.SUBMITTED),
        (ADMIN, S.SUBMITTED),
        (PARTNER, S.SUBMITTED),
        (PARTNER, S.PENDING_PARTNER_APPROVAL),
    ])
    def test_send_back(self, reviewer, status):
        outcome = decide_transition(reviewer, state(status), A.SEND_BACK)
        assert outcome.to_status == S.DRAFT
        assert outcome.clears_timestamps

    @pytest.mark.parametrize("status", [S.SUBMITTED, S.PENDING_PARTNER_APPROVAL])
    def test_owner_withdraws(self, status):
        outcome = decide_transition(OWNER, state(status), A.WITHDRAW)
        assert outcome.to_status == S.DRAFT
        assert outcome.clears_timestamps

    def test_reviewer_cannot_withdraw(self):
        with pytest.raises(NotAuthorizedError):
            decide_transition(PARTNER, state(S.SUBMITTED), A.WITHDRAW)

    @pytest.mark.parametrize("status", [S.APPROVED, S.REJECTED, S.DRAFT])
    def test_withdraw_outside_review_is_invalid(self, status):
        with pytest.raises(InvalidTransitionError):
            decide_transition(OWNER, state(status), A.WITHDRAW)


class TestReject:
    @pytest.mark.parametrize("reviewer,status", [
        (MANAGER, S.SUBMITTED),
        (PARTNER, S.PENDING_PARTNER_APPROVAL),
    ])
    def test_reject(self, reviewer, status):
        outcome = decide_transition(reviewer, state(status), A.REJECT)
        assert outcome.to_status == S.REJECTED
        assert not outcome.clears_timestamps

    def test_rejected_is_terminal(self):
        with pytest.raises(InvalidTransitionError):
            decide_transition(PARTNER, state(S.REJECTED), A.REJECT)


class TestEngineContract:
    def test_non_status_action_rejected(self):
        with pytest.raises(ValueError):
            decide_transition(OWNER, state(S.DRAFT), A.EDIT)

    def test_wrong_state_reported_before_authorization(self):
        # an employee approving a draft fails on state, not on role
        colleague = ActorContext(actor_id=uuid4(), role=Role.EMPLOYEE)
        with pytest.raises(InvalidTransitionError):
            decide_transition(colleague, state(S.DRAFT), A.APPROVE)

    def test_check_action_edit_only_in_draft(self):
        check_action(OWNER, state(S.DRAFT), A.EDIT)
        with pytest.raises(InvalidTransitionError):
            check_action(OWNER, state(S.SUBMITTED), A.EDIT)

    @pytest.mark.parametrize("actor,status,action", [
        (OWNER, S.DRAFT, A.SUBMIT),
        (MANAGER, S.SUBMITTED, A.APPROVE),
        (PARTNER, S.PENDING_PARTNER_APPROVAL, A.APPROVE),
        (PARTNER, S.SUBMITTED, A.REJECT),
        (MANAGER, S.SUBMITTED, A.SEND_BACK),
        (OWNER, S.PENDING_PARTNER_APPROVAL, A.WITHDRAW),
    ])
    def test_every_decision_is_a_table_edge(self, actor, status, action):
        outcome = decide_transition(actor, state(status, "6000.00"), action)
        assert outcome.to_status in REPORT_TRANSITIONS[outcome.from_status]
