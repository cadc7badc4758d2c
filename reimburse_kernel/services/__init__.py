"""Kernel services: every write path into the reimbursement store."""

from reimburse_kernel.services.directory_service import DirectoryService
from reimburse_kernel.services.expense_service import ExpenseItemService
from reimburse_kernel.services.identity import (
    IdentityProvider,
    StaticIdentityProvider,
    resolve_actor,
)
from reimburse_kernel.services.report_service import ReportService
from reimburse_kernel.services.report_writer import ReportWriter
from reimburse_kernel.services.totals_service import TotalsService

__all__ = [
    "DirectoryService",
    "ExpenseItemService",
    "IdentityProvider",
    "ReportService",
    "ReportWriter",
    "StaticIdentityProvider",
    "TotalsService",
    "resolve_actor",
]
