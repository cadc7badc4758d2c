"""
reimburse_services -- Package init and public API.

Responsibility:
    Adapters around the kernel's external collaborators: receipt object
    storage, spreadsheet and PDF exports, and the invoice-recognition
    webhook.  Failures here surface as ``DependencyFailureError`` and never
    change report state.

Architecture position:
    Services -- I/O adapters over the kernel.

    Dependency direction:
        reimburse_services/ -> reimburse_kernel/, reimburse_engines/  (allowed)
        reimburse_kernel/   -> reimburse_services/                    (FORBIDDEN)
"""

from reimburse_services.billing_pdf import render_billing_statement
from reimburse_services.export_service import ExportService
from reimburse_services.invoice_recognition import (
    InvoiceRecognitionClient,
    RecognizedInvoice,
)
from reimburse_services.receipt_storage import InMemoryObjectStore, LocalObjectStore
from reimburse_services.spreadsheet_export import export_expense_rows

__all__ = [
    "ExportService",
    "InMemoryObjectStore",
    "InvoiceRecognitionClient",
    "LocalObjectStore",
    "RecognizedInvoice",
    "export_expense_rows",
    "render_billing_statement",
]
