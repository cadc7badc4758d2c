"""
reimburse_engines.lifecycle -- Pure report lifecycle engine.

Responsibility:
    Given an actor, a report snapshot and a requested action, decide the
    next status and which timestamps to stamp or clear.  Applies the
    two-tier escalation rule: a manager or admin approving a submitted
    report whose total exceeds the threshold routes it to partner approval
    instead of approving it outright.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import reimburse_kernel/domain/ types and sibling engines.

Invariants enforced:
    - Wrong-state requests raise ``InvalidTransitionError`` before the
      authorization predicate runs, so a second approve on an approved
      report is a state error for every actor.
    - The authorization predicate is consulted for every action.
    - Every decided edge is a member of ``REPORT_TRANSITIONS``.
    - Purity: no clock access, no I/O, no database.

Failure modes:
    - InvalidTransitionError: action not defined for the current status.
    - NotAuthorizedError: predicate denies the actor.
    - ValidationError: submit with zero expense items.
"""

from __future__ import annotations

from reimburse_engines.authorization import require_permitted
from reimburse_kernel.domain.lifecycle import (
    ACTION_SOURCE_STATUSES,
    REPORT_TRANSITIONS,
    STATUS_CHANGING_ACTIONS,
    ActorContext,
    LifecyclePolicy,
    ReportAction,
    ReportState,
    ReportStatus,
    Role,
    TransitionOutcome,
)
from reimburse_kernel.exceptions import InvalidTransitionError, ValidationError

_BOUNDED_APPROVERS: frozenset[Role] = frozenset({Role.MANAGER, Role.ADMIN})


def check_action(
    actor: ActorContext,
    state: ReportState,
    action: ReportAction,
) -> None:
    """Validate status first, then authorization, for any report action.

    Used directly for non-transition actions (edit, delete) and by
    ``decide_transition`` for status-changing ones.
    """
    if state.status not in ACTION_SOURCE_STATUSES[action]:
        raise InvalidTransitionError(
            str(state.report_id), action.value, state.status.value,
        )
    require_permitted(actor, state.owner_id, state.status, action)


def requires_partner(
    actor: ActorContext,
    state: ReportState,
    policy: LifecyclePolicy,
) -> bool:
    """True when an approval by ``actor`` must escalate to a partner.

    The boundary is exclusive: a total equal to the threshold does not
    escalate.
    """
    return (
        actor.role in _BOUNDED_APPROVERS
        and state.status == ReportStatus.SUBMITTED
        and state.total_amount > policy.escalation_threshold
    )


def decide_transition(
    actor: ActorContext,
    state: ReportState,
    action: ReportAction,
    policy: LifecyclePolicy | None = None,
) -> TransitionOutcome:
    """Decide the outcome of a status-changing action.

    Args:
        actor: The authenticated actor requesting the action.
        state: Freshly read report snapshot, total included.
        action: One of submit, approve, reject, send_back, withdraw.
        policy: Escalation policy; defaults to the built-in threshold.

    Returns:
        TransitionOutcome describing the edge and its side effects.
    """
    if action not in STATUS_CHANGING_ACTIONS:
        raise ValueError(f"{action.value} does not change report status")

    policy = policy or LifecyclePolicy()
    check_action(actor, state, action)

    if action == ReportAction.SUBMIT:
        if state.item_count < 1:
            raise ValidationError(
                "expense_items", "a report needs at least one expense item to be submitted",
            )
        outcome = TransitionOutcome(
            action=action,
            from_status=state.status,
            to_status=ReportStatus.SUBMITTED,
            stamps_submission=True,
            reason="Submitted for approval",
        )
    elif action == ReportAction.APPROVE:
        if requires_partner(actor, state, policy):
            outcome = TransitionOutcome(
                action=action,
                from_status=state.status,
                to_status=ReportStatus.PENDING_PARTNER_APPROVAL,
                escalated=True,
                reason=(
                    f"Total {state.total_amount} exceeds "
                    f"{policy.escalation_threshold}; partner approval required"
                ),
            )
        else:
            outcome = TransitionOutcome(
                action=action,
                from_status=state.status,
                to_status=ReportStatus.APPROVED,
                stamps_approval=True,
                reason=f"Approved by {actor.role.value}",
            )
    elif action == ReportAction.REJECT:
        outcome = TransitionOutcome(
            action=action,
            from_status=state.status,
            to_status=ReportStatus.REJECTED,
            reason=f"Rejected by {actor.role.value}",
        )
    else:
        # send_back and withdraw both return the report to draft
        outcome = TransitionOutcome(
            action=action,
            from_status=state.status,
            to_status=ReportStatus.DRAFT,
            clears_timestamps=True,
            reason="Returned to draft",
        )

    if outcome.to_status not in REPORT_TRANSITIONS[outcome.from_status]:
        raise InvalidTransitionError(
            str(state.report_id), action.value, state.status.value,
        )
    return outcome
