"""
reimburse_engines.authorization -- The report authorization predicate.

Responsibility:
    Decide, from the actor's role and identity plus the report's owner and
    status, which actions the actor may request.  This is the single source
    of truth for "who can do what"; every mutating entry point consults it.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import reimburse_kernel/domain/ types and exceptions.

Rules:
    - Owner, draft: edit, submit, delete.
    - Owner, submitted / pending_partner_approval: withdraw.
    - Non-owner manager or admin, submitted: approve, reject, send_back.
    - Non-owner partner, submitted / pending_partner_approval:
      approve, reject, send_back.
    - Everything else: read-only.
"""

from __future__ import annotations

from uuid import UUID

from reimburse_kernel.domain.lifecycle import (
    REVIEW_STATUSES,
    ActorContext,
    ReportAction,
    ReportStatus,
    Role,
)
from reimburse_kernel.exceptions import NotAuthorizedError

_NO_ACTIONS: frozenset[ReportAction] = frozenset()

_OWNER_DRAFT_ACTIONS: frozenset[ReportAction] = frozenset({
    ReportAction.EDIT,
    ReportAction.SUBMIT,
    ReportAction.DELETE,
})

_OWNER_REVIEW_ACTIONS: frozenset[ReportAction] = frozenset({
    ReportAction.WITHDRAW,
})

_DECISION_ACTIONS: frozenset[ReportAction] = frozenset({
    ReportAction.APPROVE,
    ReportAction.REJECT,
    ReportAction.SEND_BACK,
})

# role -> statuses in which a non-owner of that role may decide
_DECISION_STATUSES: dict[Role, frozenset[ReportStatus]] = {
    Role.MANAGER: frozenset({ReportStatus.SUBMITTED}),
    Role.ADMIN: frozenset({ReportStatus.SUBMITTED}),
    Role.PARTNER: REVIEW_STATUSES,
}

REVIEWER_ROLES: frozenset[Role] = frozenset(_DECISION_STATUSES)


def permitted_actions(
    actor: ActorContext,
    owner_id: UUID,
    status: ReportStatus,
) -> frozenset[ReportAction]:
    """Return the set of actions ``actor`` may request on a report.

    Args:
        actor: The authenticated actor.
        owner_id: The report's ``user_id``.
        status: The report's current status.

    Returns:
        A frozenset of ``ReportAction``; empty means read-only.
    """
    if actor.actor_id == owner_id:
        if status == ReportStatus.DRAFT:
            return _OWNER_DRAFT_ACTIONS
        if status in REVIEW_STATUSES:
            return _OWNER_REVIEW_ACTIONS
        return _NO_ACTIONS

    if status in _DECISION_STATUSES.get(actor.role, frozenset()):
        return _DECISION_ACTIONS
    return _NO_ACTIONS


def is_permitted(
    actor: ActorContext,
    owner_id: UUID,
    status: ReportStatus,
    action: ReportAction,
) -> bool:
    return action in permitted_actions(actor, owner_id, status)


def require_permitted(
    actor: ActorContext,
    owner_id: UUID,
    status: ReportStatus,
    action: ReportAction,
) -> None:
    """Raise ``NotAuthorizedError`` unless ``action`` is permitted.

    The error's ``reason`` names the rule that denied the request so the
    caller can show something more useful than "forbidden".
    """
    if is_permitted(actor, owner_id, status, action):
        return

    is_owner = actor.actor_id == owner_id
    if is_owner and action in _DECISION_ACTIONS:
        reason = "actors cannot decide on their own report"
    elif not is_owner and action in (_OWNER_DRAFT_ACTIONS | _OWNER_REVIEW_ACTIONS):
        reason = "only the report owner may do this"
    else:
        reason = f"role {actor.role.value} may not {action.value} a {status.value} report"

    raise NotAuthorizedError(str(actor.actor_id), action.value, reason)


def can_view(actor: ActorContext, owner_id: UUID) -> bool:
    """Owners see their own reports; reviewer roles see every report."""
    return actor.actor_id == owner_id or actor.role in REVIEWER_ROLES
