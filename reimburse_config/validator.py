"""
Configuration validator (``reimburse_config.validator``).

Checks a parsed ``ReimbursementConfig`` for values that parse but make no
sense, collecting every problem before failing.
"""

from __future__ import annotations

from decimal import Decimal

from reimburse_config.schema import ReimbursementConfig
from reimburse_kernel.exceptions import ConfigurationError


def collect_problems(config: ReimbursementConfig) -> list[str]:
    problems: list[str] = []

    if config.escalation_threshold < 0:
        problems.append("escalation_threshold: must not be negative")
    if config.escalation_threshold != config.escalation_threshold.quantize(Decimal("0.01")):
        problems.append("escalation_threshold: must have at most two decimal places")

    if not config.categories:
        problems.append("categories: at least one category is required")
    seen: set[str] = set()
    for category in config.categories:
        if not category.strip():
            problems.append("categories: blank category name")
        elif category in seen:
            problems.append(f"categories: duplicate category {category!r}")
        seen.add(category)

    for category, rate in config.tax_invoice_defaults.items():
        if category not in seen:
            problems.append(f"tax_invoice_defaults: unknown category {category!r}")
        if rate < 0 or rate > 100:
            problems.append(f"tax_invoice_defaults.{category}: must be between 0 and 100")

    if config.receipt_link_ttl_seconds <= 0:
        problems.append("receipt_link_ttl_seconds: must be positive")
    if config.processed_history_limit <= 0:
        problems.append("processed_history_limit: must be positive")
    if config.invoice_recognition.timeout_seconds <= 0:
        problems.append("invoice_recognition.timeout_seconds: must be positive")

    return problems


def validate_config(config: ReimbursementConfig, source: str = "<memory>") -> None:
    """Raise ``ConfigurationError`` listing every problem found."""
    problems = collect_problems(config)
    if problems:
        raise ConfigurationError(source, problems)
