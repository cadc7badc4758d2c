"""
Report lifecycle domain types (``reimburse_kernel.domain.lifecycle``).

Responsibility
--------------
Pure value objects for the report approval state machine: statuses,
actions, roles, the transition table, the explicit actor context, and the
policy inputs consumed by ``reimburse_engines.lifecycle``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* ``REPORT_TRANSITIONS`` lists the only status edges the engine may take.
* ``ACTION_SOURCE_STATUSES`` lists the statuses each action is defined for;
  any other status is a wrong-state request.
* Approved and rejected reports have no outgoing transition edges.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

DEFAULT_ESCALATION_THRESHOLD = Decimal("5000.00")


# =========================================================================
# Statuses, actions, roles
# =========================================================================


class ReportStatus(str, Enum):
    """Report lifecycle states."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    PENDING_PARTNER_APPROVAL = "pending_partner_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReportAction(str, Enum):
    """Everything an actor can ask to do to a report."""

    EDIT = "edit"
    SUBMIT = "submit"
    DELETE = "delete"
    APPROVE = "approve"
    REJECT = "reject"
    SEND_BACK = "send_back"
    WITHDRAW = "withdraw"


class Role(str, Enum):
    """Actor roles.  Flat; only escalation orders them."""

    EMPLOYEE = "employee"
    MANAGER = "manager"
    PARTNER = "partner"
    ADMIN = "admin"


REVIEW_STATUSES: frozenset[ReportStatus] = frozenset({
    ReportStatus.SUBMITTED,
    ReportStatus.PENDING_PARTNER_APPROVAL,
})

TERMINAL_REPORT_STATUSES: frozenset[ReportStatus] = frozenset({
    ReportStatus.APPROVED,
    ReportStatus.REJECTED,
})

REPORT_TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.DRAFT: frozenset({ReportStatus.SUBMITTED}),
    ReportStatus.SUBMITTED: frozenset({
        ReportStatus.PENDING_PARTNER_APPROVAL,
        ReportStatus.APPROVED,
        ReportStatus.REJECTED,
        ReportStatus.DRAFT,
    }),
    ReportStatus.PENDING_PARTNER_APPROVAL: frozenset({
        ReportStatus.APPROVED,
        ReportStatus.REJECTED,
        ReportStatus.DRAFT,
    }),
    ReportStatus.APPROVED: frozenset(),
    ReportStatus.REJECTED: frozenset(),
}

ACTION_SOURCE_STATUSES: dict[ReportAction, frozenset[ReportStatus]] = {
    ReportAction.EDIT: frozenset({ReportStatus.DRAFT}),
    ReportAction.SUBMIT: frozenset({ReportStatus.DRAFT}),
    ReportAction.DELETE: frozenset({ReportStatus.DRAFT}),
    ReportAction.APPROVE: REVIEW_STATUSES,
    ReportAction.REJECT: REVIEW_STATUSES,
    ReportAction.SEND_BACK: REVIEW_STATUSES,
    ReportAction.WITHDRAW: REVIEW_STATUSES,
}

STATUS_CHANGING_ACTIONS: frozenset[ReportAction] = frozenset({
    ReportAction.SUBMIT,
    ReportAction.APPROVE,
    ReportAction.REJECT,
    ReportAction.SEND_BACK,
    ReportAction.WITHDRAW,
})


# =========================================================================
# Explicit context and policy
# =========================================================================


@dataclass(frozen=True)
class ActorContext:
    """The authenticated actor a call is made on behalf of.

    Built by the identity layer from a verified session, never from
    client-supplied identity, and passed explicitly into every engine and
    service call.
    """

    actor_id: UUID
    role: Role


@dataclass(frozen=True)
class LifecyclePolicy:
    """Configuration inputs to the lifecycle engine."""

    escalation_threshold: Decimal = DEFAULT_ESCALATION_THRESHOLD


# =========================================================================
# Engine input / output
# =========================================================================


@dataclass(frozen=True)
class ReportState:
    """The slice of a persisted report the engine decides on.

    ``total_amount`` must reflect every committed item change at the time
    the snapshot is taken.
    """

    report_id: UUID
    owner_id: UUID
    status: ReportStatus
    total_amount: Decimal
    item_count: int


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of deciding a status-changing action.

    Side-effect flags tell the writer which columns to stamp or clear.
    """

    action: ReportAction
    from_status: ReportStatus
    to_status: ReportStatus
    escalated: bool = False
    stamps_submission: bool = False
    stamps_approval: bool = False
    clears_timestamps: bool = False
    reason: str = ""
