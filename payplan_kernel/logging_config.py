"""
Structured JSON logging for payplan.

Every record under the ``payplan`` logger is written as one JSON object per
line::

    {"ts": "...", "level": "INFO", "logger": "payplan.engines.installment_allocator",
     "message": "allocation_completed", "record_id": "REV-001",
     "payment_id": "...", "amount": "1200.00", "affected_count": 2}

Three sources feed a line:
    - the envelope (``ts``, ``level``, ``logger``, ``message``);
    - the request context bound with ``LogContext`` (which record, which
      cashier, which payment);
    - ``extra={...}`` passed at the call site, plus ``exc_*`` fields when a
      record carries an exception. PayplanError subclasses contribute their
      ``code`` and their context attributes (installment id, balances, ...).

Amounts are logged as strings so that Decimal precision survives JSON.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

_ROOT = "payplan"


# ---------------------------------------------------------------------------
# Request context
# ---------------------------------------------------------------------------

_context: ContextVar[dict[str, str] | None] = ContextVar("payplan_log_context", default=None)


class LogContext:
    """
    Fields stamped onto every record logged in the current context.

    Backed by a single ContextVar holding an immutable snapshot, so threads
    and asyncio tasks each see their own payment.
    """

    FIELDS = ("correlation_id", "record_id", "actor_id", "payment_id", "trace_id")

    @classmethod
    def _merged(cls, fields: dict[str, str | None]) -> dict[str, str]:
        merged = dict(_context.get() or {})
        merged.update({k: v for k, v in fields.items() if k in cls.FIELDS and v is not None})
        return merged

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Add or overwrite fields. None values leave a field as it is."""
        unknown = set(fields) - set(cls.FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
        _context.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get() or {})

    @classmethod
    def clear(cls) -> None:
        _context.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block, then restore."""
        token = _context.set(cls._merged(fields))
        try:
            yield cls
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "taskName",
}


def _json_default(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = self._envelope(record)
        payload.update(LogContext.get_all())
        for key, value in vars(record).items():
            if key not in _RESERVED and key not in payload:
                payload[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_json_default)

    def _envelope(self, record: logging.LogRecord) -> dict[str, Any]:
        return {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # PayplanError subclasses keep their context as public attributes
        for name, value in vars(exc).items():
            if not name.startswith("_") and name != "code":
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """``get_logger("engines.status")`` -> the ``payplan.engines.status`` logger."""
    return logging.getLogger(f"{_ROOT}.{name}")


_setup_lock = threading.Lock()
_configured = False


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``payplan`` logger.

    Only the first call has any effect until ``reset_logging`` is called.
    Records stop at the ``payplan`` logger and are not passed to the root
    logger.
    """
    global _configured
    with _setup_lock:
        if _configured:
            return
        _configured = True

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger(_ROOT)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(handler)


def reset_logging() -> None:
    """Undo ``configure_logging``. For tests."""
    global _configured
    with _setup_lock:
        _configured = False
    root = logging.getLogger(_ROOT)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
