"""
Configuration schema (``reimburse_config.schema``).

Frozen dataclasses produced by ``reimburse_config.loader``.  Nothing here
touches the filesystem.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class InvoiceRecognitionSettings:
    """Where the invoice-recognition webhook lives.  ``url`` None disables it."""

    url: str | None = None
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class ReimbursementConfig:
    """The complete runtime configuration."""

    config_id: str
    version: int
    escalation_threshold: Decimal
    currency: str
    categories: tuple[str, ...]
    tax_invoice_defaults: dict[str, Decimal] = field(default_factory=dict)
    receipt_link_ttl_seconds: int = 60
    processed_history_limit: int = 20
    invoice_recognition: InvoiceRecognitionSettings = field(
        default_factory=InvoiceRecognitionSettings,
    )
    checksum: str = ""
