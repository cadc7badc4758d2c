"""
Typed Exception Hierarchy for the Reimbursement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every rejected mutation must tell the caller WHICH precondition failed so the
UI can decide what to do next:

  - state          -> block the action (the report is not in a usable status)
  - authorization  -> block the action (this actor may not do this)
  - staleness      -> refresh and retry (someone else changed the report)

Callers catch by type and read structured attributes; they never parse
message strings.

    try:
        service.approve(actor, report_id, expected_status=observed)
    except ConcurrentModificationError as e:
        refresh(e.report_id)
    except (InvalidTransitionError, NotAuthorizedError) as e:
        show_blocked(e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ReimbursementError (base)
    |
    +-- ReportError
    |   +-- ReportNotFoundError
    |   +-- ExpenseItemNotFoundError
    |   +-- InvalidTransitionError
    |   +-- NotAuthorizedError
    |   +-- ExportNotPermittedError
    |
    +-- ValidationError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |
    +-- IntegrationError
    |   +-- DependencyFailureError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                     | When Raised
--------------|--------------------------|-----------------------------------------
Report        | REPORT_NOT_FOUND         | Report ID doesn't exist
              | EXPENSE_ITEM_NOT_FOUND   | Expense item ID doesn't exist
              | INVALID_TRANSITION       | Action not defined for current status
              | NOT_AUTHORIZED           | Role/ownership does not permit action
              | EXPORT_NOT_PERMITTED     | Billing export on unsuitable report
--------------|--------------------------|-----------------------------------------
Validation    | VALIDATION_ERROR         | Malformed input, empty submission
--------------|--------------------------|-----------------------------------------
Concurrency   | CONCURRENT_MODIFICATION  | Status changed since it was observed
--------------|--------------------------|-----------------------------------------
Integration   | DEPENDENCY_FAILURE       | Storage/identity/export/OCR failed
--------------|--------------------------|-----------------------------------------
Config        | CONFIGURATION_ERROR      | Configuration file is invalid

All report-mutation errors are raised before any persisted write.
"""


class ReimbursementError(Exception):
    """
    Base exception for all reimbursement kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "REIMBURSEMENT_ERROR"


# Report-related exceptions


class ReportError(ReimbursementError):
    """Base exception for report lifecycle errors."""

    code: str = "REPORT_ERROR"


class ReportNotFoundError(ReportError):
    """Report with given ID was not found."""

    code: str = "REPORT_NOT_FOUND"

    def __init__(self, report_id: str):
        self.report_id = report_id
        super().__init__(f"Report not found: {report_id}")


class ExpenseItemNotFoundError(ReportError):
    """Expense item with given ID was not found."""

    code: str = "EXPENSE_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Expense item not found: {item_id}")


class InvalidTransitionError(ReportError):
    """The requested action is not defined for the report's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, report_id: str, action: str, current_status: str):
        self.report_id = report_id
        self.action = action
        self.current_status = current_status
        super().__init__(
            f"Cannot {action} report {report_id} while it is {current_status}"
        )


class NotAuthorizedError(ReportError):
    """
    The actor's role or ownership does not permit the requested action.

    Also raised for self-approval and for requests carrying no valid
    authenticated identity.
    """

    code: str = "NOT_AUTHORIZED"

    def __init__(self, actor_id: str, action: str, reason: str):
        self.actor_id = actor_id
        self.action = action
        self.reason = reason
        super().__init__(f"Actor {actor_id} may not {action}: {reason}")


class ExportNotPermittedError(ReportError):
    """Customer billing export requested for a report that does not qualify."""

    code: str = "EXPORT_NOT_PERMITTED"

    def __init__(self, report_id: str, status: str, bill_to_customer: bool):
        self.report_id = report_id
        self.status = status
        self.bill_to_customer = bill_to_customer
        super().__init__(
            f"Billing export requires an approved, billable report; "
            f"report {report_id} is {status} (bill_to_customer={bill_to_customer})"
        )


# Validation exceptions


class ValidationError(ReimbursementError):
    """Malformed input to a mutating operation."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"Invalid {field}: {message}")


# Concurrency-related exceptions


class ConcurrencyError(ReimbursementError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """
    The report's status changed between observation and write.

    Callers should refresh the report and let the actor retry.
    """

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(
        self,
        report_id: str,
        expected_status: str,
        actual_status: str | None = None,
    ):
        self.report_id = report_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        detail = f", now {actual_status}" if actual_status else ""
        super().__init__(
            f"Report {report_id} was modified concurrently "
            f"(expected {expected_status}{detail})"
        )


# Integration exceptions


class IntegrationError(ReimbursementError):
    """Base exception for failures of external collaborators."""

    code: str = "INTEGRATION_ERROR"


class DependencyFailureError(IntegrationError):
    """
    A collaborator (storage, identity, export, OCR) failed.

    Never leaves a partial report or expense item behind.
    """

    code: str = "DEPENDENCY_FAILURE"

    def __init__(self, dependency: str, operation: str, detail: str):
        self.dependency = dependency
        self.operation = operation
        self.detail = detail
        super().__init__(f"{dependency} failed during {operation}: {detail}")


# Configuration exceptions


class ConfigurationError(ReimbursementError):
    """Configuration file failed validation."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, source: str, problems: list[str]):
        self.source = source
        self.problems = list(problems)
        super().__init__(
            f"Invalid configuration {source}: " + "; ".join(self.problems)
        )
