"""
payplan_services.reimbursement -- Driver/conductor reimbursement shares.

Responsibility:
    Split an operational expense reimbursement between the employees who
    incurred it, and keep one installment schedule per employee so that a
    payment to one never touches the other's balance.

    Shares come either from amounts entered per employee
    (``split_reimbursement``) or from share percentages
    (``split_by_percentage``), by default the ``reimbursement`` section of
    the active configuration (``configured_percentages``).

Architecture position:
    Services -- orchestration over PaymentRecorder.

Invariants enforced:
    - Shares sum to the reimbursable total exactly, or the split is refused.
    - Every share is in the total's currency and not negative.
    - A percentage split rounds each non-driver share down to the minor
      unit; the driver absorbs what is left.
    - ``record_payment`` only ever allocates against the chosen role's
      schedule.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from enum import Enum

from payplan_config import PayplanConfig
from payplan_kernel.domain.payment_methods import PaymentFlow
from payplan_kernel.domain.schedule import Installment, total_outstanding
from payplan_kernel.domain.values import Money
from payplan_kernel.logging_config import get_logger
from payplan_services.payment_recorder import PaymentRecord, PaymentRecorder, PaymentRequest

logger = get_logger("services.reimbursement")

_HUNDRED = Decimal(100)


class EmployeeRole(str, Enum):
    DRIVER = "DRIVER"
    CONDUCTOR = "CONDUCTOR"


def split_reimbursement(
    total: Money,
    shares: Mapping[EmployeeRole, Money],
) -> dict[EmployeeRole, Money]:
    """
    Check per-employee amounts against ``total`` and return them by role.

    The driver is always on the expense; a conductor share is optional.
    The result lists the driver first.

    Raises:
        ValueError: negative total or share, a share in another currency,
            no driver share, or shares not adding up to ``total``.
    """
    if total.is_negative:
        raise ValueError(f"Reimbursement total cannot be negative: {total}")

    by_role = {EmployeeRole(role): amount for role, amount in shares.items()}
    if EmployeeRole.DRIVER not in by_role:
        raise ValueError("Reimbursement shares must include the driver")

    allocated = Money.zero(total.currency)
    for role, amount in by_role.items():
        if amount.currency != total.currency:
            raise ValueError(
                f"{role.value} share is in {amount.currency}, total is in {total.currency}"
            )
        if amount.is_negative:
            raise ValueError(f"{role.value} share cannot be negative: {amount}")
        allocated = allocated + amount

    if allocated != total:
        logger.warning("reimbursement_split_rejected", extra={
            "total": str(total.amount),
            "allocated": str(allocated.amount),
            "roles": [role.value for role in by_role],
        })
        raise ValueError(f"Reimbursement shares add up to {allocated}, expected {total}")

    return {role: by_role[role] for role in EmployeeRole if role in by_role}


def _as_percentage(value: object) -> Decimal:
    try:
        pct = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid share percentage: {value!r}") from e
    if not pct.is_finite():
        raise ValueError(f"Invalid share percentage: {value!r}")
    return pct


def split_by_percentage(
    total: Money,
    percentages: Mapping[EmployeeRole, Decimal | int | str],
) -> dict[EmployeeRole, Money]:
    """
    Split ``total`` by share percentages that add up to 100.

    ``split_by_percentage(php("1000.01"), {DRIVER: 50, CONDUCTOR: 50})``
    gives the conductor 500.00 and the driver 500.01.

    Raises:
        ValueError: no driver percentage, an unparseable or negative
            percentage, or percentages not adding up to exactly 100.
    """
    by_role = {EmployeeRole(role): _as_percentage(pct) for role, pct in percentages.items()}
    if EmployeeRole.DRIVER not in by_role:
        raise ValueError("Share percentages must include the driver")
    negative = [role.value for role, pct in by_role.items() if pct < 0]
    if negative:
        raise ValueError(f"Share percentages cannot be negative: {negative}")
    if sum(by_role.values()) != _HUNDRED:
        raise ValueError(f"Share percentages must add up to 100, got {sum(by_role.values())}")

    shares: dict[EmployeeRole, Money] = {}
    for role, pct in by_role.items():
        if role is not EmployeeRole.DRIVER:
            shares[role] = (total * pct / _HUNDRED).round(ROUND_DOWN)
    others = Money.zero(total.currency)
    for amount in shares.values():
        others = others + amount
    shares[EmployeeRole.DRIVER] = total - others
    return split_reimbursement(total, shares)


def configured_percentages(
    config: PayplanConfig,
    has_conductor: bool,
) -> dict[EmployeeRole, Decimal]:
    """
    Share percentages from the ``reimbursement`` config section.

    Without a conductor the driver is owed everything.
    """
    if not has_conductor:
        return {EmployeeRole.DRIVER: _HUNDRED}
    policy = config.reimbursement
    return {
        EmployeeRole.DRIVER: policy.driver_share_percentage,
        EmployeeRole.CONDUCTOR: policy.conductor_share_percentage,
    }


class ReimbursementAccount:
    """
    Per-employee reimbursement schedules for one expense.

    Contract:
        ``schedules`` maps each role present on the expense to its own
        installment schedule. The account holds the latest version of each
        schedule; ``record_payment`` replaces it with the recorder's result.
    """

    def __init__(
        self,
        expense_id: str,
        schedules: Mapping[EmployeeRole, Sequence[Installment]],
    ):
        self.expense_id = expense_id
        self._schedules: dict[EmployeeRole, tuple[Installment, ...]] = {
            EmployeeRole(role): tuple(schedule) for role, schedule in schedules.items()
        }

    @property
    def roles(self) -> tuple[EmployeeRole, ...]:
        return tuple(self._schedules)

    def schedule_for(self, role: EmployeeRole) -> tuple[Installment, ...]:
        try:
            return self._schedules[role]
        except KeyError:
            raise ValueError(
                f"Expense {self.expense_id} has no {role.value.lower()} schedule"
            ) from None

    def balance_for(self, role: EmployeeRole) -> Money | None:
        """Outstanding balance for ``role``; None for an empty schedule."""
        return total_outstanding(self.schedule_for(role))

    def record_payment(
        self,
        role: EmployeeRole,
        request: PaymentRequest,
        recorder: PaymentRecorder,
    ) -> PaymentRecord:
        """
        Record a reimbursement payment to one employee.

        Raises:
            ValueError: role not on this expense, or request not an
                expense-flow payment.
            PayplanError: from ``PaymentRecorder.record``.
        """
        if request.flow != PaymentFlow.EXPENSE:
            raise ValueError(
                f"Reimbursement payments must use the {PaymentFlow.EXPENSE.value} flow, "
                f"got {request.flow.value}"
            )
        schedule = self.schedule_for(role)
        record = recorder.record(request, schedule)
        self._schedules[role] = record.schedule

        logger.info("reimbursement_payment_recorded", extra={
            "expense_id": self.expense_id,
            "employee_role": role.value,
            "amount": str(request.amount.amount),
        })
        return record

    @property
    def is_fully_paid(self) -> bool:
        """True when no role has anything left to be paid."""
        for schedule in self._schedules.values():
            outstanding = total_outstanding(schedule)
            if outstanding is not None and outstanding.is_positive:
                return False
        return True
