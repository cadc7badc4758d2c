"""
Module: reimburse_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    engines: the lifecycle state machine, the authorization predicate,
    and amount aggregation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import reimburse_kernel/domain/ and reimburse_kernel.exceptions.
    MUST NOT import reimburse_services or reimburse_kernel services/models.

Invariants enforced:
    - Purity: engines never read the clock or the database.  Callers pass
      a freshly read ``ReportState`` in.
    - Decimal-only arithmetic for all monetary amounts.

Usage:
    from reimburse_engines import decide_transition, permitted_actions
"""

from reimburse_engines.aggregation import (
    parse_amount,
    parse_tax_rate,
    sum_item_amounts,
)
from reimburse_engines.authorization import (
    REVIEWER_ROLES,
    can_view,
    is_permitted,
    permitted_actions,
    require_permitted,
)
from reimburse_engines.lifecycle import (
    check_action,
    decide_transition,
    requires_partner,
)

__all__ = [
    "REVIEWER_ROLES",
    "can_view",
    "check_action",
    "decide_transition",
    "is_permitted",
    "parse_amount",
    "parse_tax_rate",
    "permitted_actions",
    "require_permitted",
    "requires_partner",
    "sum_item_amounts",
]
