"""
Configuration loader (``reimburse_config.loader``).

Responsibility
--------------
Load a YAML configuration set and parse it into a frozen
``ReimbursementConfig``.  Parsing is lenient about types (``"5000"`` and
``5000`` are both accepted for money) and strict about presence; the
validator reports every remaining problem at once.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unparseable values  -> ``ConfigurationError`` listing each problem.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from reimburse_config.schema import InvoiceRecognitionSettings, ReimbursementConfig
from reimburse_kernel.exceptions import ConfigurationError
from reimburse_kernel.utils.hashing import hash_payload


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _decimal(value: Any, name: str, problems: list[str]) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        problems.append(f"{name}: {value!r} is not a decimal number")
        return Decimal("0")


def _int(value: Any, name: str, problems: list[str]) -> int:
    if isinstance(value, bool):
        problems.append(f"{name}: {value!r} is not an integer")
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        problems.append(f"{name}: {value!r} is not an integer")
        return 0


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 over the canonical JSON of the raw configuration mapping."""
    return hash_payload(data)


def parse_config(data: dict[str, Any], source: str = "<memory>") -> ReimbursementConfig:
    """Parse a raw mapping into ``ReimbursementConfig``."""
    problems: list[str] = []

    for required in ("escalation_threshold", "categories"):
        if required not in data:
            problems.append(f"{required}: missing")
    if problems:
        raise ConfigurationError(source, problems)

    raw_categories = data["categories"]
    if not isinstance(raw_categories, list):
        problems.append("categories: must be a list")
        raw_categories = []

    raw_defaults = data.get("tax_invoice_defaults") or {}
    if not isinstance(raw_defaults, dict):
        problems.append("tax_invoice_defaults: must be a mapping")
        raw_defaults = {}

    raw_recognition = data.get("invoice_recognition") or {}
    if not isinstance(raw_recognition, dict):
        problems.append("invoice_recognition: must be a mapping")
        raw_recognition = {}

    config = ReimbursementConfig(
        config_id=str(data.get("config_id", "default")),
        version=_int(data.get("version", 1), "version", problems),
        escalation_threshold=_decimal(
            data["escalation_threshold"], "escalation_threshold", problems,
        ),
        currency=str(data.get("currency", "CNY")),
        categories=tuple(str(c) for c in raw_categories),
        tax_invoice_defaults={
            str(k): _decimal(v, f"tax_invoice_defaults.{k}", problems)
            for k, v in raw_defaults.items()
        },
        receipt_link_ttl_seconds=_int(
            data.get("receipt_link_ttl_seconds", 60), "receipt_link_ttl_seconds", problems,
        ),
        processed_history_limit=_int(
            data.get("processed_history_limit", 20), "processed_history_limit", problems,
        ),
        invoice_recognition=InvoiceRecognitionSettings(
            url=raw_recognition.get("url"),
            timeout_seconds=float(
                _decimal(
                    raw_recognition.get("timeout_seconds", 30),
                    "invoice_recognition.timeout_seconds",
                    problems,
                )
            ),
        ),
        checksum=compute_checksum(data),
    )

    if problems:
        raise ConfigurationError(source, problems)
    return config


def load_config_file(path: Path) -> ReimbursementConfig:
    return parse_config(load_yaml_file(path), source=str(path))
