"""
reimburse_kernel.logging_config -- JSON log lines carrying report context.

Every record under the ``reimburse_kernel`` logger is written as one JSON
object.  Fields bound through ``LogContext`` (who acts, on which report,
with which action, from which status) are merged into each record emitted
while bound, so one report's decisions can be pulled out of the log with
a single filter.  Context values may be UUIDs or lifecycle enums; they
are logged in their string form.
"""

from __future__ import annotations

__all__ = [
    "CONTEXT_FIELDS",
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, TextIO
from uuid import UUID

_LOGGER_PREFIX = "reimburse_kernel"

CONTEXT_FIELDS = ("correlation_id", "actor_id", "report_id", "action", "status")

_context: ContextVar[dict[str, str] | None] = ContextVar("reimburse_log_context", default=None)


def _plain(value: Any) -> Any:
    """Enum members log as their value; ids, amounts and times as strings."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class LogContext:
    """Report-scoped log fields, held in a context variable."""

    @staticmethod
    def _merged(fields: dict[str, Any]) -> dict[str, str]:
        unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
        if unknown:
            raise TypeError(f"unknown log context fields: {unknown}")
        merged = dict(_context.get() or {})
        merged.update({k: str(_plain(v)) for k, v in fields.items() if v is not None})
        return merged

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set fields; a ``None`` value leaves that field unchanged."""
        _context.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get() or {})

    @classmethod
    def clear(cls) -> None:
        _context.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[None]:
        """Set fields for a ``with`` block.

        On exit the context is restored to what it was on entry, including
        any fields ``set`` inside the block.
        """
        token = _context.set(cls._merged(fields))
        try:
            yield
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "taskName",
}


def _json_default(obj: Any) -> Any:
    plain = _plain(obj)
    return str(obj) if plain is obj else plain


def _error_fields(exc: BaseException) -> dict[str, Any]:
    """Type and message, plus the code and attributes of kernel errors."""
    fields: dict[str, Any] = {"exc_type": type(exc).__name__, "exc_message": str(exc)}
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
        fields.update(
            (f"exc_{k}", v) for k, v in vars(exc).items()
            if not k.startswith("_") and k != "code"
        )
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: header, bound context, extras, error."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())
        # extras passed at the call site win over bound context
        payload.update(
            (k, v) for k, v in vars(record).items() if k not in _RECORD_ATTRS
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_error_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the reimburse_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def configure_logging(*, level: int = logging.INFO, stream: TextIO | None = None) -> None:
    """Attach the JSON handler to the reimburse_kernel logger (idempotent)."""
    root = logging.getLogger(_LOGGER_PREFIX)
    if any(isinstance(h.formatter, StructuredFormatter) for h in root.handlers):
        return
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False


def reset_logging() -> None:
    """Detach all handlers.  For tests."""
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.NOTSET)
    root.propagate = True
