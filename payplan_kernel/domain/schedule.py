"""
Schedule -- Installment value objects and ordered-schedule helpers.

Responsibility:
    Defines the Installment record, its status vocabulary, and the small
    set of read-only helpers every engine needs to inspect a schedule
    (ordering check, id lookup, outstanding total).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Depends only on payplan_kernel.domain.values and payplan_kernel.exceptions.

Invariants enforced:
    - ``installment_number`` is a positive integer.
    - ``amount_due`` and ``amount_paid`` are non-negative Money in one currency.
    - ``balance = amount_due - amount_paid`` is never negative.
    - A schedule is strictly ascending by ``installment_number``; helpers
      report violations, they never re-sort.

Failure modes:
    - ValueError on constructing an Installment that breaks the above.
    - MalformedScheduleError from ``validate_schedule_order``.
    - CurrencyMismatchError from ``schedule_currency``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum

from payplan_kernel.domain.values import Currency, Money
from payplan_kernel.exceptions import CurrencyMismatchError, MalformedScheduleError


class InstallmentStatus(str, Enum):
    """Payment status of a single installment."""

    PENDING = "PENDING"  # Nothing paid yet
    PARTIALLY_PAID = "PARTIALLY_PAID"  # Some paid, balance remains
    OVERDUE = "OVERDUE"  # Past due with a balance; set by time-based refresh
    COMPLETED = "COMPLETED"  # Balance reached zero through payment
    CANCELLED = "CANCELLED"  # Invalidated before collection
    WRITTEN_OFF = "WRITTEN_OFF"  # Administratively closed, uncollectable


TERMINAL_STATUSES: frozenset[InstallmentStatus] = frozenset({
    InstallmentStatus.COMPLETED,
    InstallmentStatus.CANCELLED,
    InstallmentStatus.WRITTEN_OFF,
})

# Closed administratively; never recomputed from amounts.
ADMINISTRATIVE_STATUSES: frozenset[InstallmentStatus] = frozenset({
    InstallmentStatus.CANCELLED,
    InstallmentStatus.WRITTEN_OFF,
})


class ScheduleFrequency(str, Enum):
    """Spacing between generated due dates."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    ANNUALLY = "ANNUALLY"
    CUSTOM = "CUSTOM"  # Dates supplied by the user


@dataclass(frozen=True)
class Installment:
    """
    One entry in a payment schedule.

    Contract:
        Frozen value object. Updates produce new instances through
        ``with_payment`` / ``with_status``; nothing mutates in place.
    Guarantees:
        - ``balance`` is ``amount_due - amount_paid`` and is never negative.
        - ``amount_due`` and ``amount_paid`` share one currency.
    Non-goals:
        - Does not decide its own status from the calendar; see
          ``payplan_engines.status.derive_status``.
    """

    id: str
    installment_number: int
    due_date: date
    amount_due: Money
    amount_paid: Money
    status: InstallmentStatus = InstallmentStatus.PENDING

    def __post_init__(self) -> None:
        if not isinstance(self.status, InstallmentStatus):
            object.__setattr__(self, "status", InstallmentStatus(self.status))
        if self.installment_number < 1:
            raise ValueError(
                f"installment_number must be positive, got {self.installment_number}"
            )
        if self.amount_due.currency != self.amount_paid.currency:
            raise ValueError(
                f"Installment {self.id} mixes currencies: "
                f"{self.amount_due.currency} and {self.amount_paid.currency}"
            )
        if self.amount_due.is_negative:
            raise ValueError(f"Installment {self.id} amount_due cannot be negative")
        if self.amount_paid.is_negative:
            raise ValueError(f"Installment {self.id} amount_paid cannot be negative")
        if self.amount_paid > self.amount_due:
            raise ValueError(
                f"Installment {self.id} overpaid: paid {self.amount_paid} "
                f"exceeds due {self.amount_due}"
            )

    @property
    def currency(self) -> Currency:
        return self.amount_due.currency

    @property
    def balance(self) -> Money:
        """Amount still owed on this installment."""
        return self.amount_due - self.amount_paid

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_payable(self) -> bool:
        """True when the installment can still receive a payment."""
        return not self.is_terminal and self.balance.is_positive

    def with_payment(self, amount_applied: Money, new_status: InstallmentStatus) -> Installment:
        """Return a copy with ``amount_applied`` added to ``amount_paid``."""
        return replace(
            self,
            amount_paid=self.amount_paid + amount_applied,
            status=new_status,
        )

    def with_status(self, status: InstallmentStatus) -> Installment:
        return replace(self, status=status)

    def with_amount_due(self, amount_due: Money) -> Installment:
        return replace(self, amount_due=amount_due)


def validate_schedule_order(schedule: Sequence[Installment]) -> None:
    """
    Check that ``installment_number`` strictly increases through the schedule.

    Raises:
        MalformedScheduleError: at the first position that does not increase.
    """
    for position in range(1, len(schedule)):
        previous = schedule[position - 1].installment_number
        current = schedule[position].installment_number
        if current <= previous:
            raise MalformedScheduleError(position, previous, current)


def schedule_currency(schedule: Sequence[Installment]) -> Currency | None:
    """
    Return the single currency used by the schedule (None when empty).

    Raises:
        CurrencyMismatchError: if installments use different currencies.
    """
    if not schedule:
        return None
    currency = schedule[0].currency
    for installment in schedule[1:]:
        if installment.currency != currency:
            raise CurrencyMismatchError(currency.code, installment.currency.code)
    return currency


def find_installment_index(schedule: Sequence[Installment], installment_id: str) -> int | None:
    """Position of the installment with ``installment_id``, or None."""
    for index, installment in enumerate(schedule):
        if installment.id == installment_id:
            return index
    return None


def total_outstanding(schedule: Sequence[Installment], start_index: int = 0) -> Money | None:
    """
    Sum of balances of non-terminal installments from ``start_index`` on.

    Returns None for an empty schedule (there is no currency to express
    zero in).
    """
    currency = schedule_currency(schedule)
    if currency is None:
        return None
    total = Money.zero(currency)
    for installment in schedule[start_index:]:
        if not installment.is_terminal:
            total = total + installment.balance
    return total
