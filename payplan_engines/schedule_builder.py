"""
Module: payplan_engines.schedule_builder
Responsibility:
    Generate installment schedules (due dates by frequency, equal split of
    a total) and re-split a schedule's amounts after an edit, locking any
    installment that is no longer PENDING.

Architecture position:
    Engines -- pure calculation layer, zero I/O. Start dates are passed in.

Invariants enforced:
    - Sum of ``amount_due`` equals the requested total exactly; the last
      re-split installment absorbs the sub-cent remainder.
    - Shares are rounded DOWN to the currency's minor unit so the remainder
      absorbed by the last installment is never negative.
    - Only PENDING installments are re-split; others keep their amounts.

Failure modes:
    - ScheduleDefinitionError for impossible requests (no installments,
      non-positive totals, editing a locked installment, locked amounts
      exceeding the total).
"""

from __future__ import annotations

import calendar
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_DOWN

from payplan_engines.tracer import traced_engine
from payplan_kernel.domain.schedule import (
    Installment,
    InstallmentStatus,
    ScheduleFrequency,
    validate_schedule_order,
)
from payplan_kernel.domain.values import Money
from payplan_kernel.exceptions import CurrencyMismatchError, MalformedScheduleError, ScheduleDefinitionError
from payplan_kernel.logging_config import get_logger

logger = get_logger("engines.schedule_builder")


# ---------------------------------------------------------------------------
# Due dates
# ---------------------------------------------------------------------------


def _add_months(start: date, months: int) -> date:
    """Same day-of-month ``months`` later, clamped to the month's last day."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _add_years(start: date, years: int) -> date:
    """Same month/day ``years`` later; Feb 29 becomes Feb 28 in common years."""
    year = start.year + years
    if start.month == 2 and start.day == 29 and not calendar.isleap(year):
        return date(year, 2, 28)
    return start.replace(year=year)


def generate_due_dates(
    frequency: ScheduleFrequency,
    start_date: date,
    count: int,
) -> tuple[date, ...]:
    """
    Due dates for ``count`` installments starting on ``start_date``.

    CUSTOM schedules have user-entered dates, so nothing is generated.

    Raises:
        ScheduleDefinitionError: if ``count`` is negative.
    """
    if count < 0:
        raise ScheduleDefinitionError(f"Installment count cannot be negative: {count}")

    match frequency:
        case ScheduleFrequency.CUSTOM:
            return ()
        case ScheduleFrequency.DAILY:
            return tuple(start_date + timedelta(days=i) for i in range(count))
        case ScheduleFrequency.WEEKLY:
            return tuple(start_date + timedelta(days=7 * i) for i in range(count))
        case ScheduleFrequency.BIWEEKLY:
            return tuple(start_date + timedelta(days=14 * i) for i in range(count))
        case ScheduleFrequency.MONTHLY:
            return tuple(_add_months(start_date, i) for i in range(count))
        case ScheduleFrequency.ANNUALLY:
            return tuple(_add_years(start_date, i) for i in range(count))
        case _:
            raise ScheduleDefinitionError(f"Unknown schedule frequency: {frequency}")


# ---------------------------------------------------------------------------
# Splitting
# ---------------------------------------------------------------------------


def split_equally(total: Money, parts: int) -> tuple[Money, ...]:
    """
    Split ``total`` into ``parts`` shares that sum to it exactly.

    Every share but the last is ``total / parts`` rounded down to the
    currency's minor unit; the last takes what is left.
    """
    if parts < 1:
        raise ScheduleDefinitionError(f"Cannot split into {parts} parts")
    share = (total / parts).round(ROUND_DOWN)
    return (share,) * (parts - 1) + (total - share * (parts - 1),)


@traced_engine("schedule_builder.build", "1.0", fingerprint_fields=("total", "due_dates"))
def build_schedule(
    total: Money,
    due_dates: Sequence[date],
    *,
    id_prefix: str = "inst",
) -> tuple[Installment, ...]:
    """
    Create a PENDING schedule splitting ``total`` equally over ``due_dates``.

    Installments are numbered from 1 and get ids ``{id_prefix}-{number}``.

    Raises:
        ScheduleDefinitionError: no dates, or ``total`` not positive.
    """
    if not due_dates:
        raise ScheduleDefinitionError("Schedule must have at least one installment")
    if not total.is_positive:
        raise ScheduleDefinitionError(f"Schedule total must be positive, got {total}")

    zero = Money.zero(total.currency)
    installments = tuple(
        Installment(
            id=f"{id_prefix}-{number}",
            installment_number=number,
            due_date=due,
            amount_due=share,
            amount_paid=zero,
            status=InstallmentStatus.PENDING,
        )
        for number, (due, share) in enumerate(
            zip(due_dates, split_equally(total, len(due_dates))), start=1
        )
    )

    logger.info("schedule_built", extra={
        "total": str(total.amount),
        "currency": total.currency.code,
        "installment_count": len(installments),
    })
    return installments


def _sum_due(installments: Sequence[Installment], currency) -> Money:
    total = Money.zero(currency)
    for installment in installments:
        total = total + installment.amount_due
    return total


def _resplit(
    schedule: list[Installment],
    indexes: Sequence[int],
    amount: Money,
) -> None:
    for index, share in zip(indexes, split_equally(amount, len(indexes))):
        schedule[index] = schedule[index].with_amount_due(share)


@traced_engine("schedule_builder.distribute", "1.0", fingerprint_fields=("total", "schedule"))
def distribute_amount(
    total: Money,
    schedule: Sequence[Installment],
) -> tuple[Installment, ...]:
    """
    Re-split ``total`` across the schedule's PENDING installments.

    Non-PENDING installments are locked at their current ``amount_due``;
    the rest of ``total`` is split equally among PENDING ones. A schedule
    with no PENDING installment is returned unchanged.

    Raises:
        ScheduleDefinitionError: if locked amounts exceed ``total``.
    """
    items = list(schedule)
    editable = [i for i, inst in enumerate(items) if inst.status == InstallmentStatus.PENDING]
    if not editable:
        return tuple(items)

    locked = _sum_due(
        [inst for inst in items if inst.status != InstallmentStatus.PENDING], total.currency
    )
    remaining = total - locked
    if remaining.is_negative:
        raise ScheduleDefinitionError(
            f"Locked installments ({locked}) exceed schedule total ({total})"
        )

    _resplit(items, editable, remaining)

    logger.info("schedule_distributed", extra={
        "total": str(total.amount),
        "locked": str(locked.amount),
        "editable_count": len(editable),
    })
    return tuple(items)


@traced_engine(
    "schedule_builder.redistribute_forward", "1.0",
    fingerprint_fields=("total", "schedule", "edited_index", "new_amount"),
)
def redistribute_forward(
    total: Money,
    schedule: Sequence[Installment],
    edited_index: int,
    new_amount: Money,
) -> tuple[Installment, ...]:
    """
    Set one PENDING installment to ``new_amount`` and re-split the rest of
    ``total`` across the PENDING installments *after* it.

    Installments before the edited one are never touched. When nothing
    editable follows, only the edited installment changes.

    Raises:
        ScheduleDefinitionError: edited index out of range, edited
            installment not PENDING, ``new_amount`` not positive, or the
            fixed amounts exceeding ``total``.
    """
    if not 0 <= edited_index < len(schedule):
        raise ScheduleDefinitionError(f"No installment at position {edited_index}")
    edited = schedule[edited_index]
    if edited.status != InstallmentStatus.PENDING:
        raise ScheduleDefinitionError(
            f"Installment #{edited.installment_number} is {edited.status.value} "
            f"and cannot be edited"
        )
    if not new_amount.is_positive:
        raise ScheduleDefinitionError(f"Installment amount must be positive, got {new_amount}")

    items = list(schedule)
    items[edited_index] = edited.with_amount_due(new_amount)

    following = [
        i for i in range(edited_index + 1, len(items))
        if items[i].status == InstallmentStatus.PENDING
    ]
    if not following:
        return tuple(items)

    following_set = set(following)
    fixed = _sum_due(
        [inst for i, inst in enumerate(items) if i not in following_set], total.currency
    )
    remaining = total - fixed
    if remaining.is_negative:
        raise ScheduleDefinitionError(
            f"Installments up to #{edited.installment_number} ({fixed}) "
            f"exceed schedule total ({total})"
        )

    _resplit(items, following, remaining)

    logger.info("schedule_redistributed_forward", extra={
        "total": str(total.amount),
        "edited_installment_number": edited.installment_number,
        "new_amount": str(new_amount.amount),
        "redistributed_count": len(following),
    })
    return tuple(items)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScheduleValidation:
    """Outcome of ``validate_schedule``; ``errors`` is empty when valid."""

    errors: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_schedule(schedule: Sequence[Installment], total: Money) -> ScheduleValidation:
    """
    Check a schedule before it is saved.

    Collects every problem rather than stopping at the first: empty
    schedule, numbering out of order, mixed currencies, amounts not adding
    up to ``total``, due dates not strictly increasing, non-positive
    installment amounts.
    """
    if not schedule:
        return ScheduleValidation(("Schedule must have at least one installment",))

    errors: list[str] = []

    try:
        validate_schedule_order(schedule)
    except MalformedScheduleError as exc:
        errors.append(str(exc))

    if any(inst.currency != total.currency for inst in schedule):
        errors.append(
            str(CurrencyMismatchError(
                total.currency.code,
                next(i.currency.code for i in schedule if i.currency != total.currency),
            ))
        )
    else:
        calculated = _sum_due(schedule, total.currency)
        if calculated != total:
            errors.append(
                f"Total amount mismatch: expected {total.amount}, got {calculated.amount}"
            )

    for position in range(1, len(schedule)):
        if schedule[position].due_date <= schedule[position - 1].due_date:
            errors.append(
                f"Installment {position + 1} date must be after installment {position} date"
            )

    for position, inst in enumerate(schedule, start=1):
        if not inst.amount_due.is_positive:
            errors.append(f"Installment {position} amount must be greater than zero")

    return ScheduleValidation(tuple(errors))
