"""
Module: payplan_engines.installment_allocator
Responsibility:
    Distribute one payment across an ordered installment schedule: the
    target installment first, then (when the payment exceeds its balance)
    each later installment in turn until the money runs out.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import payplan_kernel and sibling engine modules.

Invariants enforced:
    - Conservation: sum(amount_applied) + remaining_unapplied == amount,
      exactly. All arithmetic is Money/Decimal.
    - No overpay: every amount_applied is > 0 and <= previous_balance.
    - Monotonic targeting: entries are in schedule order, never before the
      start installment.
    - Status: new_balance == 0 <=> COMPLETED, otherwise PARTIALLY_PAID.
    - Purity: inputs are never mutated, no clock, no randomness.

Failure modes (all ``ValidationError`` subclasses, raised before any work):
    - NonPositiveAmountError when amount <= 0.
    - CurrencyMismatchError when amount and schedule currencies differ.
    - MalformedScheduleError when installment_number is not strictly
      increasing.
    - InstallmentNotFoundError when the start index / id is not in the
      schedule.
    - InstallmentNotPayableError when the start installment is terminal.

    A payment larger than everything outstanding is NOT an error: the
    excess is reported in ``remaining_unapplied``.

    AllocationInvariantError (not a ValidationError) if a finished plan
    does not conserve the payment amount.

Usage:
    from payplan_engines.installment_allocator import InstallmentAllocator
    from payplan_kernel.domain.values import Money

    allocator = InstallmentAllocator()
    result = allocator.allocate(
        amount=Money.of("1200.00", "PHP"),
        schedule=schedule,
        start_index=0,
    )
    updated = apply_allocation(schedule, result)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from payplan_engines.status import status_after_payment
from payplan_engines.tracer import traced_engine
from payplan_kernel.domain.schedule import (
    Installment,
    InstallmentStatus,
    find_installment_index,
    schedule_currency,
    validate_schedule_order,
)
from payplan_kernel.domain.values import Money
from payplan_kernel.exceptions import (
    AllocationInvariantError,
    CurrencyMismatchError,
    InstallmentNotFoundError,
    InstallmentNotPayableError,
    NonPositiveAmountError,
    StaleAllocationError,
    ValidationError,
)
from payplan_kernel.logging_config import get_logger

logger = get_logger("engines.installment_allocator")


@dataclass(frozen=True)
class AffectedInstallment:
    """
    What one payment does to one installment.

    Guarantees:
        - ``amount_applied > 0``.
        - ``previous_balance - amount_applied == new_balance >= 0``.
    """

    installment_id: str
    installment_number: int
    amount_applied: Money
    previous_balance: Money
    new_balance: Money
    new_status: InstallmentStatus


@dataclass(frozen=True)
class AllocationResult:
    """
    Allocation plan for a single payment.

    Contract:
        Ephemeral and never persisted by the engine; the caller decides
        whether to apply it (see ``apply_allocation``).
    Guarantees:
        - ``total_applied + remaining_unapplied == amount``.
        - ``affected`` is ascending by installment_number.
    """

    amount: Money
    start_index: int
    affected: tuple[AffectedInstallment, ...]
    remaining_unapplied: Money

    @property
    def total_applied(self) -> Money:
        total = Money.zero(self.amount.currency)
        for entry in self.affected:
            total = total + entry.amount_applied
        return total

    @property
    def is_fully_applied(self) -> bool:
        """True if no part of the payment was left over."""
        return self.remaining_unapplied.is_zero

    @property
    def cascaded(self) -> bool:
        """True if the payment touched more than one installment."""
        return len(self.affected) > 1

    @property
    def affected_ids(self) -> tuple[str, ...]:
        return tuple(entry.installment_id for entry in self.affected)


class InstallmentAllocator:
    """
    Cascade a payment across an installment schedule.

    Contract:
        Pure and deterministic. The same (amount, schedule, start_index)
        always yields an equal AllocationResult.
    Guarantees:
        - Terminal installments after the start are skipped, not aborted on.
        - Zero-balance installments are skipped without consuming money.
        - The schedule is validated, never re-sorted.
    Non-goals:
        - Does not apply the plan; see ``apply_allocation``.
        - Does not decide what to do with ``remaining_unapplied``.
    """

    @traced_engine(
        "installment_allocator", "1.0",
        fingerprint_fields=("amount", "schedule", "start_index"),
    )
    def allocate(
        self,
        amount: Money,
        schedule: Sequence[Installment],
        start_index: int,
    ) -> AllocationResult:
        """
        Allocate ``amount`` starting at ``schedule[start_index]``.

        Args:
            amount: Positive payment amount.
            schedule: Installments ascending by installment_number.
            start_index: Position of the installment the payment targets.

        Returns:
            AllocationResult describing every installment touched.

        Raises:
            ValidationError: see module docstring for the subclasses.
        """
        self._check_preconditions(amount, schedule, start_index)

        logger.info("allocation_started", extra={
            "amount": str(amount.amount),
            "currency": amount.currency.code,
            "start_index": start_index,
            "start_installment_number": schedule[start_index].installment_number,
            "installment_count": len(schedule),
        })

        remaining = amount
        affected: list[AffectedInstallment] = []
        skipped_terminal = 0
        cursor = start_index

        while remaining.is_positive and cursor < len(schedule):
            installment = schedule[cursor]
            cursor += 1

            if installment.is_terminal:
                skipped_terminal += 1
                continue

            balance = installment.balance
            if not balance.is_positive:
                continue

            applied = min(remaining, balance)
            new_balance = balance - applied

            affected.append(
                AffectedInstallment(
                    installment_id=installment.id,
                    installment_number=installment.installment_number,
                    amount_applied=applied,
                    previous_balance=balance,
                    new_balance=new_balance,
                    new_status=status_after_payment(new_balance),
                )
            )
            remaining = remaining - applied

        result = AllocationResult(
            amount=amount,
            start_index=start_index,
            affected=tuple(affected),
            remaining_unapplied=remaining,
        )

        self._check_conservation(result)

        logger.info("allocation_completed", extra={
            "amount": str(amount.amount),
            "total_applied": str(result.total_applied.amount),
            "remaining_unapplied": str(remaining.amount),
            "affected_count": len(affected),
            "skipped_terminal": skipped_terminal,
        })
        if not remaining.is_zero:
            logger.warning("allocation_unapplied_remainder", extra={
                "amount": str(amount.amount),
                "remaining_unapplied": str(remaining.amount),
            })

        return result

    def allocate_to(
        self,
        amount: Money,
        schedule: Sequence[Installment],
        installment_id: str,
    ) -> AllocationResult:
        """
        Allocate ``amount`` starting at the installment with ``installment_id``.

        Raises:
            InstallmentNotFoundError: if no installment has that id.
            ValidationError: as for ``allocate``.
        """
        index = find_installment_index(schedule, installment_id)
        if index is None:
            logger.warning("allocation_target_not_found", extra={
                "installment_id": installment_id,
            })
            raise InstallmentNotFoundError(f"id={installment_id}", len(schedule))
        return self.allocate(amount, schedule, index)

    def _check_conservation(self, result: AllocationResult) -> None:
        """Raise AllocationInvariantError unless applied + unapplied == amount."""
        total_applied = result.total_applied
        if total_applied + result.remaining_unapplied == result.amount:
            return
        logger.error("allocation_invariant_violated", extra={
            "amount": str(result.amount.amount),
            "total_applied": str(total_applied.amount),
            "remaining_unapplied": str(result.remaining_unapplied.amount),
        })
        raise AllocationInvariantError(
            str(result.amount.amount),
            str(total_applied.amount),
            str(result.remaining_unapplied.amount),
        )

    def _check_preconditions(
        self,
        amount: Money,
        schedule: Sequence[Installment],
        start_index: int,
    ) -> None:
        """Fail fast with the specific ValidationError for the first broken rule."""
        if not isinstance(amount, Money):
            raise TypeError(f"amount must be Money, got {type(amount).__name__}")

        try:
            if not amount.is_positive:
                raise NonPositiveAmountError(str(amount.amount))

            validate_schedule_order(schedule)

            currency = schedule_currency(schedule)
            if currency is not None and currency != amount.currency:
                raise CurrencyMismatchError(currency.code, amount.currency.code)

            if not 0 <= start_index < len(schedule):
                raise InstallmentNotFoundError(f"index={start_index}", len(schedule))

            target = schedule[start_index]
            if target.is_terminal:
                raise InstallmentNotPayableError(
                    target.id, target.installment_number, target.status.value
                )
        except ValidationError as exc:
            logger.warning("allocation_rejected", extra={
                "error_code": exc.code,
                "amount": str(amount.amount),
                "start_index": start_index,
            })
            raise


@traced_engine("apply_allocation", "1.0", fingerprint_fields=("result",))
def apply_allocation(
    schedule: Sequence[Installment],
    result: AllocationResult,
) -> tuple[Installment, ...]:
    """
    Return the schedule with ``result`` applied.

    Each affected installment gets ``amount_applied`` added to
    ``amount_paid`` and takes ``new_status``. Other installments are
    returned unchanged. The input schedule is not modified.

    Raises:
        StaleAllocationError: if an affected installment is missing, has
            become terminal, or its balance no longer equals the
            ``previous_balance`` the plan was computed from.
    """
    updated = list(schedule)
    for entry in result.affected:
        index = find_installment_index(updated, entry.installment_id)
        if index is None:
            raise StaleAllocationError(
                entry.installment_id, str(entry.previous_balance.amount), "missing"
            )
        current = updated[index]
        if current.is_terminal or current.balance != entry.previous_balance:
            logger.warning("allocation_stale", extra={
                "installment_id": entry.installment_id,
                "expected_balance": str(entry.previous_balance.amount),
                "actual_balance": str(current.balance.amount),
                "status": current.status.value,
            })
            raise StaleAllocationError(
                entry.installment_id,
                str(entry.previous_balance.amount),
                str(current.balance.amount),
            )
        updated[index] = current.with_payment(entry.amount_applied, entry.new_status)

    logger.info("allocation_applied", extra={
        "affected_count": len(result.affected),
        "total_applied": str(result.total_applied.amount),
    })
    return tuple(updated)
