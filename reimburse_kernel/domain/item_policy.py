"""
Expense item rules (``reimburse_kernel.domain.item_policy``).

The category list and per-category tax-invoice defaults an item is
validated against.  Built from configuration by
``reimburse_config.bridges.build_item_policy``; the defaults below match
the shipped configuration set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

DEFAULT_CATEGORIES: tuple[str, ...] = (
    "flight",
    "train",
    "coach",
    "taxi",
    "meals",
    "lodging",
    "office_supplies",
    "client_entertainment",
    "staff_welfare",
    "other",
)

DEFAULT_TAX_INVOICE_RATES: dict[str, Decimal] = {
    "flight": Decimal("9"),
    "train": Decimal("9"),
}


@dataclass(frozen=True)
class ItemPolicy:
    """Which categories exist and which carry a tax invoice by default.

    A category present in ``tax_invoice_defaults`` is treated as a tax
    invoice at that rate unless the caller says otherwise.
    """

    categories: tuple[str, ...] = DEFAULT_CATEGORIES
    tax_invoice_defaults: dict[str, Decimal] = field(
        default_factory=lambda: dict(DEFAULT_TAX_INVOICE_RATES),
    )
    receipt_link_ttl_seconds: int = 60

    def default_tax_rate(self, category: str) -> Decimal | None:
        return self.tax_invoice_defaults.get(category)
