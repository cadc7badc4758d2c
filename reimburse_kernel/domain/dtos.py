"""
Domain DTOs (``reimburse_kernel.domain.dtos``).

Frozen read models returned by services and selectors.  ORM models convert
to these via ``to_dto()``; nothing outside ``models/`` sees an ORM instance.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from reimburse_kernel.domain.lifecycle import ReportAction, ReportStatus, Role


@dataclass(frozen=True)
class Report:
    """A reimbursement claim."""

    id: UUID
    user_id: UUID
    title: str
    status: ReportStatus
    total_amount: Decimal
    customer_name: str | None = None
    bill_to_customer: bool = False
    purpose: str | None = None
    created_at: datetime | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    approver_id: UUID | None = None


@dataclass(frozen=True)
class ExpenseItem:
    """One discrete cost on a report."""

    id: UUID
    report_id: UUID
    user_id: UUID
    category: str
    amount: Decimal
    expense_date: date
    description: str | None = None
    customer_name: str | None = None
    cost_center: str | None = None
    is_tax_invoice: bool = False
    tax_rate: Decimal | None = None
    receipt_keys: tuple[str, ...] = ()


@dataclass(frozen=True)
class ApprovalRecord:
    """One applied lifecycle transition.  Append-only history."""

    id: UUID
    report_id: UUID
    actor_id: UUID
    actor_role: Role
    action: ReportAction
    from_status: ReportStatus
    to_status: ReportStatus
    comment: str = ""
    created_at: datetime | None = None
    sequence: int = 0


@dataclass(frozen=True)
class Profile:
    """Directory entry for an actor."""

    id: UUID
    role: Role
    full_name: str | None = None
    email: str | None = None
    department: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class Customer:
    id: UUID
    name: str


@dataclass(frozen=True)
class CostCenter:
    id: UUID
    name: str


@dataclass(frozen=True)
class ExpenseRow:
    """One item joined with its report and the people on it, for analytics."""

    item_id: UUID
    report_id: UUID
    expense_date: date
    category: str
    amount: Decimal
    employee_name: str | None
    customer_name: str | None
    bill_to_customer: bool
    report_title: str
    report_status: ReportStatus
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    approver_name: str | None = None
