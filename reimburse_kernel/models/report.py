"""
Module: reimburse_kernel.models.report
Responsibility: ORM persistence for reports, their expense items, and the
    receipt keys attached to each item.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ DTO types only.

Invariants enforced:
    - ``status`` is one of the five lifecycle values (DB check constraint).
      Only ``ReportWriter`` changes it, through a conditional UPDATE.
    - ``total_amount`` is non-negative and is maintained by
      ``TotalsService`` in the same transaction as every item change.
    - Items and receipt rows cascade-delete with their parent.

Failure modes:
    - IntegrityError on an unknown status value or a negative total.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reimburse_kernel.db.base import Base, TrackedBase, UUIDString, as_utc
from reimburse_kernel.domain.dtos import ExpenseItem, Report
from reimburse_kernel.domain.lifecycle import ReportStatus


class ReportModel(TrackedBase):
    """
    A reimbursement claim.

    Guarantees:
        - ``user_id`` is set at creation and never changes.
        - ``submitted_at`` / ``approved_at`` / ``approver_id`` are only
          written by lifecycle transitions.
    """

    __tablename__ = "reports"

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'submitted', 'pending_partner_approval', "
            "'approved', 'rejected')",
            name="ck_reports_valid_status",
        ),
        CheckConstraint("total_amount >= 0", name="ck_reports_total_non_negative"),
        Index("idx_reports_user", "user_id"),
        Index("idx_reports_status", "status"),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ReportStatus.DRAFT.value,
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )
    customer_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    bill_to_customer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approver_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    items: Mapped[list["ExpenseItemModel"]] = relationship(
        "ExpenseItemModel",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ExpenseItemModel.expense_date",
        lazy="selectin",
    )

    def to_dto(self) -> Report:
        return Report(
            id=self.id,
            user_id=self.user_id,
            title=self.title,
            status=ReportStatus(self.status),
            total_amount=Decimal(self.total_amount).quantize(Decimal("0.01")),
            customer_name=self.customer_name,
            bill_to_customer=bool(self.bill_to_customer),
            purpose=self.purpose,
            created_at=as_utc(self.created_at),
            submitted_at=as_utc(self.submitted_at),
            approved_at=as_utc(self.approved_at),
            approver_id=self.approver_id,
        )

    def __repr__(self) -> str:
        return f"<ReportModel {self.id} [{self.status}] {self.total_amount}>"


class ExpenseItemModel(TrackedBase):
    """
    One cost on a report.

    Guarantees:
        - Belongs to exactly one report; ``user_id`` mirrors the report owner.
        - ``amount`` is strictly positive.
    """

    __tablename__ = "expense_items"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_expense_items_amount_positive"),
        Index("idx_expense_items_report", "report_id"),
        Index("idx_expense_items_date", "expense_date"),
    )

    report_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("reports.id", ondelete="CASCADE"), nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    customer_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    cost_center: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_tax_invoice: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)

    report: Mapped[ReportModel] = relationship("ReportModel", back_populates="items")
    receipts: Mapped[list["ReceiptModel"]] = relationship(
        "ReceiptModel",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="ReceiptModel.position",
        lazy="selectin",
    )

    @property
    def receipt_keys(self) -> tuple[str, ...]:
        return tuple(r.storage_key for r in self.receipts)

    def to_dto(self) -> ExpenseItem:
        return ExpenseItem(
            id=self.id,
            report_id=self.report_id,
            user_id=self.user_id,
            category=self.category,
            amount=Decimal(self.amount).quantize(Decimal("0.01")),
            expense_date=self.expense_date,
            description=self.description,
            customer_name=self.customer_name,
            cost_center=self.cost_center,
            is_tax_invoice=bool(self.is_tax_invoice),
            tax_rate=Decimal(self.tax_rate).normalize() if self.tax_rate is not None else None,
            receipt_keys=self.receipt_keys,
        )

    def __repr__(self) -> str:
        return f"<ExpenseItemModel {self.id} {self.category} {self.amount}>"


class ReceiptModel(Base):
    """Opaque object-storage key for one receipt image of an item."""

    __tablename__ = "expense_item_receipts"

    __table_args__ = (
        Index("idx_receipts_item", "item_id"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("expense_items.id", ondelete="CASCADE"), nullable=False,
    )
    storage_key: Mapped[str] = mapped_column(String(500), nullable=False, unique=True)
    position: Mapped[int] = mapped_column(nullable=False, default=0)

    item: Mapped[ExpenseItemModel] = relationship("ExpenseItemModel", back_populates="receipts")
