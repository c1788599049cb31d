"""
Module: payplan_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines. This is the canonical import surface for
    payplan_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import payplan_kernel (and sibling engine modules).
    MUST NOT import payplan_services or payplan_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      ``as_of`` dates are explicit parameters; services own the clock.
    - Decimal-only arithmetic through ``Money``; floats are refused.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine entrypoint is wrapped by ``@traced_engine`` (see
    ``payplan_engines.tracer``), emitting PAYPLAN_ENGINE_TRACE records
    with engine name, version, input fingerprint and duration.

Usage:
    from payplan_engines import InstallmentAllocator, apply_allocation
    from payplan_engines import check_payment_amount, OverpaymentPolicy
    from payplan_engines import build_schedule, generate_due_dates
    from payplan_engines import refresh_statuses
"""

from payplan_kernel.logging_config import get_logger

logger = get_logger("engines")

from payplan_engines.amount_validation import (
    OverpaymentPolicy,
    check_amount_precision,
    check_payment_amount,
    decimal_places_of,
    outstanding_from,
)
from payplan_engines.installment_allocator import (
    AffectedInstallment,
    AllocationResult,
    InstallmentAllocator,
    apply_allocation,
)
from payplan_engines.schedule_builder import (
    ScheduleValidation,
    build_schedule,
    distribute_amount,
    generate_due_dates,
    redistribute_forward,
    split_equally,
    validate_schedule,
)
from payplan_engines.status import (
    StatusRefresh,
    derive_status,
    is_payable,
    is_terminal,
    refresh_statuses,
    status_after_payment,
)
from payplan_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Allocation
    "AffectedInstallment",
    "AllocationResult",
    "InstallmentAllocator",
    "apply_allocation",
    # Amount validation
    "OverpaymentPolicy",
    "check_amount_precision",
    "check_payment_amount",
    "decimal_places_of",
    "outstanding_from",
    # Schedule builder
    "ScheduleValidation",
    "build_schedule",
    "distribute_amount",
    "generate_due_dates",
    "redistribute_forward",
    "split_equally",
    "validate_schedule",
    # Status
    "StatusRefresh",
    "derive_status",
    "is_payable",
    "is_terminal",
    "refresh_statuses",
    "status_after_payment",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]
