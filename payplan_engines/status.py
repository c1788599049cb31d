"""
Module: payplan_engines.status
Responsibility:
    The installment status state machine: the transition applied when a
    payment closes part of an installment's balance, and the time-based
    re-derivation that marks unpaid installments OVERDUE.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    ``as_of`` dates are always passed in; this module never reads a clock.

States:
    PENDING -> PARTIALLY_PAID -> COMPLETED
    OVERDUE is applied by ``derive_status`` to any non-terminal installment
    past its due date with a balance. CANCELLED / WRITTEN_OFF are set by
    administrative action elsewhere and are preserved as-is here.

Invariants enforced:
    - ``status_after_payment`` only ever yields COMPLETED or PARTIALLY_PAID.
    - ``derive_status`` never changes CANCELLED or WRITTEN_OFF.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from payplan_engines.tracer import traced_engine
from payplan_kernel.domain.schedule import (
    ADMINISTRATIVE_STATUSES,
    TERMINAL_STATUSES,
    Installment,
    InstallmentStatus,
)
from payplan_kernel.domain.values import Money
from payplan_kernel.logging_config import get_logger

logger = get_logger("engines.status")


def is_terminal(status: InstallmentStatus) -> bool:
    """True for COMPLETED, CANCELLED and WRITTEN_OFF."""
    return status in TERMINAL_STATUSES


def is_payable(installment: Installment) -> bool:
    """True when the installment is open and still has a balance."""
    return installment.is_payable


def status_after_payment(new_balance: Money) -> InstallmentStatus:
    """
    Status of an installment after a payment leaves ``new_balance`` owing.

    Preconditions:
        ``new_balance`` is not negative.
    Raises:
        ValueError: if ``new_balance`` is negative.
    """
    if new_balance.is_negative:
        raise ValueError(f"Balance cannot be negative after payment: {new_balance}")
    if new_balance.is_zero:
        return InstallmentStatus.COMPLETED
    return InstallmentStatus.PARTIALLY_PAID


def derive_status(installment: Installment, as_of: date) -> InstallmentStatus:
    """
    Recompute an installment's status from its amounts and due date.

    Administrative closures (CANCELLED, WRITTEN_OFF) are returned unchanged.
    Otherwise: fully paid -> COMPLETED; past due with a balance -> OVERDUE;
    something paid -> PARTIALLY_PAID; else PENDING. An installment due
    *on* ``as_of`` is not yet overdue.
    """
    if installment.status in ADMINISTRATIVE_STATUSES:
        return installment.status
    if installment.amount_paid >= installment.amount_due:
        return InstallmentStatus.COMPLETED
    if installment.due_date < as_of:
        return InstallmentStatus.OVERDUE
    if installment.amount_paid.is_positive:
        return InstallmentStatus.PARTIALLY_PAID
    return InstallmentStatus.PENDING


@dataclass(frozen=True)
class StatusRefresh:
    """Result of re-deriving every status in a schedule."""

    installments: tuple[Installment, ...]
    overdue_count: int
    changed_count: int


@traced_engine("status_refresh", "1.0", fingerprint_fields=("schedule", "as_of"))
def refresh_statuses(schedule: Sequence[Installment], as_of: date) -> StatusRefresh:
    """
    Apply ``derive_status`` to every installment.

    Returns new Installment instances; the input is not modified.
    """
    refreshed: list[Installment] = []
    changed = 0
    for installment in schedule:
        status = derive_status(installment, as_of)
        if status != installment.status:
            changed += 1
            refreshed.append(installment.with_status(status))
        else:
            refreshed.append(installment)

    overdue = sum(1 for i in refreshed if i.status == InstallmentStatus.OVERDUE)

    logger.info("status_refresh_completed", extra={
        "as_of": as_of.isoformat(),
        "installment_count": len(refreshed),
        "overdue_count": overdue,
        "changed_count": changed,
    })

    return StatusRefresh(
        installments=tuple(refreshed),
        overdue_count=overdue,
        changed_count=changed,
    )
