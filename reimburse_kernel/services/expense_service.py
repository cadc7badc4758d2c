"""
reimburse_kernel.services.expense_service -- Expense item management.

Responsibility:
    Add, edit and delete the expense items of a draft report, including
    their receipt uploads, and keep the report total in step.  Also hands
    out time-limited receipt links for display.

Architecture position:
    Kernel > Services.  Owns its transaction boundary.

Invariants enforced:
    - Items change only while the report is draft and only by its owner;
      the authorization predicate decides (``ReportAction.EDIT``).
    - ``reports.total_amount`` is recomputed in the same transaction as
      every item change.
    - The total write is conditioned on the report still being draft, so
      an item change racing a submit from another session rolls back.
    - A cost center, when given, names a stored cost center.
    - Receipt uploads happen before the record write.  If an upload or the
      record write fails, blobs already uploaded for the call are removed
      and no item row is left behind.

Failure modes:
    - ExpenseItemNotFoundError, ReportNotFoundError.
    - InvalidTransitionError / NotAuthorizedError from the predicate.
    - ConcurrentModificationError when the report left draft mid-edit.
    - ValidationError for malformed input.
    - DependencyFailureError from object storage.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from reimburse_engines.aggregation import parse_amount, parse_tax_rate
from reimburse_engines.authorization import can_view
from reimburse_engines.lifecycle import check_action
from reimburse_kernel.domain.clock import Clock, SystemClock
from reimburse_kernel.domain.dtos import ExpenseItem
from reimburse_kernel.domain.item_policy import ItemPolicy
from reimburse_kernel.domain.lifecycle import ActorContext, ReportAction
from reimburse_kernel.domain.storage import (
    DeletionResult,
    ObjectStore,
    ReceiptUpload,
    SignedReference,
    new_receipt_key,
)
from reimburse_kernel.exceptions import (
    DependencyFailureError,
    ExpenseItemNotFoundError,
    NotAuthorizedError,
    ReportNotFoundError,
    ValidationError,
)
from reimburse_kernel.logging_config import LogContext, get_logger
from reimburse_kernel.models.directory import CostCenterModel
from reimburse_kernel.models.report import ExpenseItemModel, ReceiptModel, ReportModel
from reimburse_kernel.services.receipt_cleanup import remove_blobs
from reimburse_kernel.services.report_writer import ReportWriter
from reimburse_kernel.services.totals_service import TotalsService

logger = get_logger("services.expense")


def _parse_date(value: date | str | None) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError("expense_date", f"{value!r} is not an ISO date") from None
    raise ValidationError("expense_date", "an expense date is required")


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class ExpenseItemService:
    """Expense item CRUD with receipt handling for draft reports."""

    def __init__(
        self,
        session: Session,
        object_store: ObjectStore,
        clock: Clock | None = None,
        item_policy: ItemPolicy | None = None,
    ) -> None:
        self._session = session
        self._store = object_store
        self._clock = clock or SystemClock()
        self._policy = item_policy or ItemPolicy()
        self._totals = TotalsService(session)
        self._writer = ReportWriter(session, self._clock, self._totals)

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _check_category(self, category: str | None) -> str:
        cleaned = (category or "").strip()
        if cleaned not in self._policy.categories:
            raise ValidationError(
                "category",
                f"{category!r} is not one of: {', '.join(self._policy.categories)}",
            )
        return cleaned

    def _check_cost_center(self, cost_center: str | None) -> str | None:
        """Resolve to the stored cost-center name; blank clears the field."""
        cleaned = _clean_optional(cost_center)
        if cleaned is None:
            return None
        stored = self._session.execute(
            select(CostCenterModel.name).where(
                func.lower(CostCenterModel.name) == cleaned.lower(),
            )
        ).scalar_one_or_none()
        if stored is None:
            raise ValidationError("cost_center", f"{cost_center!r} is not a known cost center")
        return stored

    def _resolve_tax(
        self,
        category: str,
        is_tax_invoice: bool | None,
        tax_rate: Any,
    ) -> tuple[bool, Decimal | None]:
        """Apply the category default when the caller leaves the flag unset."""
        default_rate = self._policy.default_tax_rate(category)
        if is_tax_invoice is None:
            is_tax_invoice = default_rate is not None or tax_rate is not None
        if not is_tax_invoice:
            return False, None
        if tax_rate is None:
            if default_rate is None:
                raise ValidationError("tax_rate", "a tax rate is required for a tax invoice")
            return True, default_rate
        return True, parse_tax_rate(tax_rate)

    def _require_editable(self, actor: ActorContext, report_id: UUID) -> None:
        check_action(actor, self._writer.load_state(report_id), ReportAction.EDIT)

    def _load_item(self, item_id: UUID) -> ExpenseItemModel:
        model = self._session.execute(
            select(ExpenseItemModel)
            .where(ExpenseItemModel.id == item_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise ExpenseItemNotFoundError(str(item_id))
        return model

    def _upload(self, owner_id: UUID, receipts: Sequence[ReceiptUpload]) -> list[str]:
        """Store every receipt or none of them."""
        keys: list[str] = []
        try:
            for receipt in receipts:
                if not receipt.content:
                    raise ValidationError("receipts", f"{receipt.filename!r} is empty")
                key = new_receipt_key(owner_id, receipt.filename)
                self._store.put(key, receipt.content, receipt.content_type)
                keys.append(key)
        except (DependencyFailureError, ValidationError):
            remove_blobs(self._store, keys)
            raise
        return keys

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def add_item(
        self,
        actor: ActorContext,
        report_id: UUID,
        *,
        category: str,
        amount: Any,
        expense_date: date | str,
        description: str | None = None,
        customer_name: str | None = None,
        cost_center: str | None = None,
        is_tax_invoice: bool | None = None,
        tax_rate: Any = None,
        receipts: Sequence[ReceiptUpload] = (),
    ) -> ExpenseItem:
        """Add an item (and its receipts) to a draft report."""
        with LogContext.bind(
            actor_id=actor.actor_id, report_id=report_id, action=ReportAction.EDIT,
        ):
            self._require_editable(actor, report_id)
            clean_category = self._check_category(category)
            clean_amount = parse_amount(amount)
            clean_date = _parse_date(expense_date)
            tax_flag, clean_rate = self._resolve_tax(clean_category, is_tax_invoice, tax_rate)
            clean_cost_center = self._check_cost_center(cost_center)

            keys = self._upload(actor.actor_id, receipts)
            try:
                model = ExpenseItemModel(
                    report_id=report_id,
                    user_id=actor.actor_id,
                    category=clean_category,
                    amount=clean_amount,
                    expense_date=clean_date,
                    description=_clean_optional(description),
                    customer_name=_clean_optional(customer_name),
                    cost_center=clean_cost_center,
                    is_tax_invoice=tax_flag,
                    tax_rate=clean_rate,
                    created_at=self._clock.now(),
                    receipts=[
                        ReceiptModel(storage_key=key, position=i) for i, key in enumerate(keys)
                    ],
                )
                self._session.add(model)
                total = self._totals.recompute(report_id)
                self._session.commit()
            except Exception:
                self._session.rollback()
                remove_blobs(self._store, keys)
                raise

            logger.info(
                "expense_item_added",
                extra={
                    "item_id": str(model.id),
                    "category": clean_category,
                    "amount": str(clean_amount),
                    "receipt_count": len(keys),
                    "report_total": str(total),
                },
            )
            return model.to_dto()

    def update_item(
        self,
        actor: ActorContext,
        item_id: UUID,
        *,
        category: str | None = None,
        amount: Any = None,
        expense_date: date | str | None = None,
        description: str | None = None,
        customer_name: str | None = None,
        cost_center: str | None = None,
        is_tax_invoice: bool | None = None,
        tax_rate: Any = None,
        add_receipts: Sequence[ReceiptUpload] = (),
        remove_receipt_keys: Sequence[str] = (),
    ) -> ExpenseItem:
        """Edit an item of a draft report.

        ``None`` (or omission) leaves a field unchanged; pass ``""`` to clear
        an optional text field and ``is_tax_invoice=False`` to drop the tax
        rate.  Removed receipts are deleted from storage after the
        edit commits.
        """
        model = self._load_item(item_id)
        report_id = model.report_id
        with LogContext.bind(
            actor_id=actor.actor_id, report_id=report_id, action=ReportAction.EDIT,
        ):
            self._require_editable(actor, report_id)

            new_category = (
                self._check_category(category) if category is not None else model.category
            )
            new_amount = parse_amount(amount) if amount is not None else None
            new_date = _parse_date(expense_date) if expense_date is not None else None

            category_changed = new_category != model.category
            if is_tax_invoice is None and tax_rate is None and not category_changed:
                tax = (model.is_tax_invoice, model.tax_rate)
            else:
                flag = is_tax_invoice
                if flag is None and not category_changed:
                    flag = model.is_tax_invoice
                rate = tax_rate
                if rate is None and not category_changed and model.is_tax_invoice:
                    rate = model.tax_rate
                tax = self._resolve_tax(new_category, flag, rate)

            new_cost_center = (
                self._check_cost_center(cost_center) if cost_center is not None else None
            )

            existing_keys = set(model.receipt_keys)
            unknown = [k for k in remove_receipt_keys if k not in existing_keys]
            if unknown:
                raise ValidationError("remove_receipt_keys", f"not receipts of this item: {unknown}")

            new_keys = self._upload(actor.actor_id, add_receipts)
            try:
                model.category = new_category
                if new_amount is not None:
                    model.amount = new_amount
                if new_date is not None:
                    model.expense_date = new_date
                if description is not None:
                    model.description = _clean_optional(description)
                if customer_name is not None:
                    model.customer_name = _clean_optional(customer_name)
                if cost_center is not None:
                    model.cost_center = new_cost_center
                model.is_tax_invoice, model.tax_rate = tax

                removing = set(remove_receipt_keys)
                model.receipts = [r for r in model.receipts if r.storage_key not in removing]
                next_position = max((r.position for r in model.receipts), default=-1) + 1
                for offset, key in enumerate(new_keys):
                    model.receipts.append(
                        ReceiptModel(storage_key=key, position=next_position + offset),
                    )

                total = self._totals.recompute(report_id)
                self._session.commit()
            except Exception:
                self._session.rollback()
                remove_blobs(self._store, new_keys)
                raise

            cleanup = remove_blobs(self._store, remove_receipt_keys)
            logger.info(
                "expense_item_updated",
                extra={
                    "item_id": str(item_id),
                    "receipts_added": len(new_keys),
                    "receipts_removed": len(cleanup.removed_keys),
                    "report_total": str(total),
                },
            )
            return self._load_item(item_id).to_dto()

    def delete_item(self, actor: ActorContext, item_id: UUID) -> DeletionResult:
        """Delete an item of a draft report, then its receipt blobs."""
        model = self._load_item(item_id)
        report_id = model.report_id
        with LogContext.bind(
            actor_id=actor.actor_id, report_id=report_id, action=ReportAction.EDIT,
        ):
            try:
                self._require_editable(actor, report_id)
                keys = model.receipt_keys
                self._session.delete(model)
                total = self._totals.recompute(report_id)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "expense_item_deleted",
                extra={"item_id": str(item_id), "report_total": str(total)},
            )
            return remove_blobs(self._store, keys)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _require_viewable(self, actor: ActorContext, report_id: UUID) -> None:
        owner_id = self._session.execute(
            select(ReportModel.user_id).where(ReportModel.id == report_id)
        ).scalar_one_or_none()
        if owner_id is None:
            raise ReportNotFoundError(str(report_id))
        if not can_view(actor, owner_id):
            raise NotAuthorizedError(
                str(actor.actor_id), "view", "only the owner or a reviewer may view this report",
            )

    def list_items(self, actor: ActorContext, report_id: UUID) -> list[ExpenseItem]:
        """Items of a report, oldest expense first."""
        self._require_viewable(actor, report_id)
        models = self._session.execute(
            select(ExpenseItemModel)
            .where(ExpenseItemModel.report_id == report_id)
            .order_by(ExpenseItemModel.expense_date, ExpenseItemModel.created_at)
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def receipt_links(self, actor: ActorContext, item_id: UUID) -> list[SignedReference]:
        """Short-lived display links for every receipt of an item."""
        model = self._load_item(item_id)
        self._require_viewable(actor, model.report_id)
        ttl = self._policy.receipt_link_ttl_seconds
        return [self._store.signed_reference(key, ttl) for key in model.receipt_keys]
