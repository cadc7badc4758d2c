"""
reimburse_engines.aggregation -- Amount parsing and report totals.

Responsibility:
    Parse user-supplied money and tax-rate inputs into validated Decimals
    and compute a report's ``total_amount`` from its item amounts.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Decimal-only arithmetic; floats are converted through ``str`` first.
    - Amounts are positive with at most two decimal places.
    - A report total is the exact sum of its item amounts, quantized to cents.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from typing import Any

from reimburse_kernel.exceptions import ValidationError

CENT = Decimal("0.01")
_MAX_TAX_RATE = Decimal("100")


def _to_decimal(field: str, value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError(field, "a number is required")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError(field, "a number is required")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(field, f"{value!r} is not a number") from None
    if not result.is_finite():
        raise ValidationError(field, f"{value!r} is not a finite number")
    return result


def parse_amount(value: Any, field: str = "amount") -> Decimal:
    """Parse a currency amount.

    Raises:
        ValidationError: non-numeric, non-positive, or finer than a cent.
    """
    amount = _to_decimal(field, value)
    if amount <= 0:
        raise ValidationError(field, "must be greater than zero")
    if amount != amount.quantize(CENT):
        raise ValidationError(field, "must have at most two decimal places")
    return amount.quantize(CENT)


def parse_tax_rate(value: Any) -> Decimal:
    """Parse a tax rate given in percent (``9`` means 9%)."""
    rate = _to_decimal("tax_rate", value)
    if rate < 0 or rate > _MAX_TAX_RATE:
        raise ValidationError("tax_rate", "must be between 0 and 100")
    return rate


def sum_item_amounts(amounts: Iterable[Decimal]) -> Decimal:
    """Total of item amounts; an empty report totals zero."""
    total = sum((Decimal(str(a)) for a in amounts), Decimal("0"))
    return total.quantize(CENT)
