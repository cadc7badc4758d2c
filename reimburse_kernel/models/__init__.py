"""ORM models.  Every table lives on ``reimburse_kernel.db.base.Base.metadata``."""

from reimburse_kernel.models.approval import ApprovalRecordModel
from reimburse_kernel.models.directory import CostCenterModel, CustomerModel, ProfileModel
from reimburse_kernel.models.report import ExpenseItemModel, ReceiptModel, ReportModel


def import_all_models() -> list[type]:
    """Return every model class; importing this package registers their tables."""
    return [
        ReportModel,
        ExpenseItemModel,
        ReceiptModel,
        ApprovalRecordModel,
        ProfileModel,
        CustomerModel,
        CostCenterModel,
    ]


__all__ = [
    "ApprovalRecordModel",
    "CostCenterModel",
    "CustomerModel",
    "ExpenseItemModel",
    "ProfileModel",
    "ReceiptModel",
    "ReportModel",
    "import_all_models",
]
