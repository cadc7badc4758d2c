"""
reimburse_services.invoice_recognition -- Invoice-recognition webhook client.

Responsibility:
    Send a receipt's signed display link to the external recognition
    webhook and parse the suggested amount, date, tax rate and vendor.
    The result only pre-fills an expense form; nothing here writes a record.

Failure modes:
    - DependencyFailureError: webhook not configured, HTTP error, timeout,
      or a response body that is not the expected JSON shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

import requests

from reimburse_config.schema import InvoiceRecognitionSettings
from reimburse_kernel.domain.storage import SignedReference
from reimburse_kernel.exceptions import DependencyFailureError
from reimburse_kernel.logging_config import get_logger

logger = get_logger("services.invoice_recognition")

_DEPENDENCY = "invoice_recognition"


@dataclass(frozen=True)
class RecognizedInvoice:
    """Fields the webhook could read off a receipt.  Any may be missing."""

    amount: Decimal | None = None
    expense_date: date | None = None
    tax_rate: Decimal | None = None
    vendor: str | None = None


def _optional_decimal(data: dict[str, Any], name: str) -> Decimal | None:
    value = data.get(name)
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise DependencyFailureError(
            _DEPENDENCY, "parse", f"{name}={value!r} is not a number",
        ) from None


def _optional_date(data: dict[str, Any], name: str) -> date | None:
    value = data.get(name)
    if not value:
        return None
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise DependencyFailureError(
            _DEPENDENCY, "parse", f"{name}={value!r} is not an ISO date",
        ) from None


def parse_recognition(data: Any) -> RecognizedInvoice:
    if not isinstance(data, dict):
        raise DependencyFailureError(_DEPENDENCY, "parse", "response is not a JSON object")
    vendor = data.get("vendor")
    if vendor is not None:
        vendor = str(vendor).strip() or None
    return RecognizedInvoice(
        amount=_optional_decimal(data, "amount"),
        expense_date=_optional_date(data, "date"),
        tax_rate=_optional_decimal(data, "tax_rate"),
        vendor=vendor,
    )


class InvoiceRecognitionClient:
    """Thin ``requests`` client for the recognition webhook."""

    def __init__(
        self,
        settings: InvoiceRecognitionSettings,
        http: requests.Session | None = None,
    ) -> None:
        self._settings = settings
        self._http = http or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self._settings.url)

    def recognize(self, receipt: SignedReference | str) -> RecognizedInvoice:
        """Ask the webhook to read the receipt at ``receipt``."""
        if not self.enabled:
            raise DependencyFailureError(_DEPENDENCY, "recognize", "webhook URL is not configured")

        link = receipt.url if isinstance(receipt, SignedReference) else receipt
        try:
            response = self._http.post(
                self._settings.url,
                json={"receipt_url": link},
                headers={"Content-Type": "application/json"},
                timeout=self._settings.timeout_seconds,
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as exc:
            logger.warning("invoice_recognition_failed", extra={"error": str(exc)})
            raise DependencyFailureError(_DEPENDENCY, "recognize", str(exc)) from exc
        except ValueError as exc:
            raise DependencyFailureError(_DEPENDENCY, "parse", "response is not JSON") from exc

        result = parse_recognition(body)
        logger.info(
            "invoice_recognized",
            extra={
                "has_amount": result.amount is not None,
                "has_date": result.expense_date is not None,
            },
        )
        return result
