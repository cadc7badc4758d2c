"""
Config -> kernel bridges.

Convert a ``ReimbursementConfig`` into the plain policy objects the engines
and services take.  These live here because the kernel must never import
``reimburse_config``.

Usage:
    config = get_active_config()
    policy = build_lifecycle_policy(config)
    items = build_item_policy(config)
"""

from __future__ import annotations

from reimburse_config.schema import ReimbursementConfig
from reimburse_kernel.domain.item_policy import ItemPolicy
from reimburse_kernel.domain.lifecycle import LifecyclePolicy


def build_lifecycle_policy(config: ReimbursementConfig) -> LifecyclePolicy:
    return LifecyclePolicy(escalation_threshold=config.escalation_threshold)


def build_item_policy(config: ReimbursementConfig) -> ItemPolicy:
    return ItemPolicy(
        categories=config.categories,
        tax_invoice_defaults=dict(config.tax_invoice_defaults),
        receipt_link_ttl_seconds=config.receipt_link_ttl_seconds,
    )
