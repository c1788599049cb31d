"""
payplan_engines.tracer -- Engine invocation tracer emitting PAYPLAN_ENGINE_TRACE.

Responsibility:
    ``@traced_engine`` wraps each allocator, status and schedule-builder
    entrypoint so that every successful call leaves one log record naming
    the engine and version, a fingerprint of the inputs that determined the
    result, and how long it took. Two calls with equal schedules and
    amounts share a fingerprint, which is how a disputed allocation is
    matched to the call that produced it.

Architecture position:
    Engines -- support code; the only side effect is the log record.

Invariants enforced:
    - Fingerprint computation is deterministic: _canonicalize produces
      stable string representations of values (Money, Installment, enums,
      dates, Decimals); dict keys are sorted; the hash is SHA-256 truncated
      to 16 hex chars.
    - The decorator only reads arguments and emits a log record; it does
      not mutate inputs.

Failure modes:
    - Fingerprint fields that are not parameters of the wrapped function
      are recorded as "null".
    - Exceptions from the wrapped function propagate unchanged and no trace
      record is emitted for the failed call.

Usage:
    from payplan_engines.tracer import traced_engine

    @traced_engine("installment_allocator", "1.0", fingerprint_fields=("amount",))
    def allocate(self, amount, schedule, start_index):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import time
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from payplan_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")


def _canonicalize(value: Any) -> str:
    """Produce a stable string representation of a value for fingerprinting.

    Postconditions:
        Returns a deterministic string for None, scalars, Decimal, dates,
        enums, dataclasses (field order), dict (sorted keys) and
        list/tuple (order-preserved). Unknown types fall back to
        ``str(value)``.
    """
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (bool, int, Decimal)):
        return str(value)
    if isinstance(value, str):
        return value
    if isinstance(value, date):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        inner = ",".join(
            f"{f.name}:{_canonicalize(getattr(value, f.name))}"
            for f in dataclasses.fields(value)
        )
        return f"{type(value).__name__}({inner})"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: dict[str, Any],
) -> str:
    """Compute a deterministic SHA-256 fingerprint of selected input fields.

    Only the fields listed in ``fingerprint_fields`` are included. Missing
    fields are recorded as "null". The result is a 16-char hex digest prefix.
    """
    parts: list[str] = []
    for field in fingerprint_fields:
        parts.append(f"{field}={_canonicalize(arguments.get(field))}")
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits PAYPLAN_ENGINE_TRACE for pure engine invocations.

    Args:
        engine_name: Engine identifier (e.g., "installment_allocator").
        engine_version: Engine version (e.g., "1.0").
        fingerprint_fields: Parameter names to include in the input
            fingerprint hash. Positional and keyword arguments are both
            resolved against the wrapped function's signature.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                try:
                    bound = signature.bind(*args, **kwargs)
                except TypeError:
                    # Let the real call raise the signature error.
                    return func(*args, **kwargs)
                fp = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.info(
                "PAYPLAN_ENGINE_TRACE",
                extra={
                    "trace_type": "PAYPLAN_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
