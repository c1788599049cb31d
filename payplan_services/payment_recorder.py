"""
payplan_services.payment_recorder -- Record a payment against an installment schedule.

Responsibility:
    Turn a PaymentRequest into an applied allocation: check the payment
    method against the flow, check the amount against the schedule and
    the overpayment policy, enforce the payables cascade rule, run the
    InstallmentAllocator, apply the plan, and write an audit entry.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Owns the clock (payment/audit timestamps) and the audit trail; the
    engines it calls stay pure. Persistence of the resulting schedule is
    the caller's concern.

Invariants enforced:
    - Nothing is returned or audited unless every check passed.
    - ``PaymentRecord.schedule`` is ``apply_allocation(schedule, allocation)``;
      the caller's schedule is never mutated.
    - ``cascade_breakdown`` lists exactly the installments the allocation
      touched, in schedule order.
    - ``credit_held`` is non-zero only under HOLD_AS_CREDIT.

Failure modes:
    - UnknownPaymentMethodError / PaymentMethodNotAllowedError from the
      catalog.
    - ValidationError subclasses from the allocator and amount checks.
    - CurrencyMismatchError when the payment is not in the recorder's
      operating currency (the configured ``currency``), or its schedule is
      not in the payment's currency.
    - OverpaymentError under REJECT policy.
    - CascadeNotAllowedError for payable payments larger than the target
      balance when payable cascading is disabled.
    All failures are logged at WARNING with the error code and re-raised.

Audit relevance:
    Every recorded payment appends an AuditEntry (payment id, record id,
    actor, timestamp, amounts, affected installments) to the injected
    AuditTrail, and logs ``payment_recorded`` with LogContext bound to the
    record, actor and payment.

Usage:
    from payplan_config import get_active_config
    from payplan_services import PaymentRecorder, PaymentRequest

    recorder = PaymentRecorder.from_config(get_active_config(), clock)
    record = recorder.record(request, schedule)
    save(record.schedule)
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from uuid import UUID, uuid4

from payplan_config import PayplanConfig, build_payment_catalog, overpayment_policy_of
from payplan_engines.amount_validation import OverpaymentPolicy, check_payment_amount
from payplan_engines.installment_allocator import (
    AllocationResult,
    InstallmentAllocator,
    apply_allocation,
)
from payplan_kernel.domain.clock import Clock, SystemClock
from payplan_kernel.domain.payment_methods import PaymentFlow, PaymentMethodCatalog
from payplan_kernel.domain.schedule import Installment
from payplan_kernel.domain.values import Currency, Money
from payplan_kernel.exceptions import CascadeNotAllowedError, CurrencyMismatchError, PayplanError
from payplan_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.payment_recorder")


@dataclass(frozen=True)
class PaymentRequest:
    """What the user asked to record."""

    record_id: str  # Owning revenue/expense record
    installment_id: str  # Installment the payment targets
    amount: Money
    payment_date: date
    payment_method_id: int
    recorded_by: str
    flow: PaymentFlow = PaymentFlow.REVENUE
    record_ref: str | None = None  # Invoice number, revenue code, ...
    reference_number: str | None = None
    remarks: str | None = None


@dataclass(frozen=True)
class CascadeLine:
    installment_id: str
    installment_number: int
    amount_applied: Money


@dataclass(frozen=True)
class PaymentRecord:
    """A recorded payment and the schedule it produced."""

    payment_id: UUID
    request: PaymentRequest
    method_code: str
    allocation: AllocationResult
    schedule: tuple[Installment, ...]
    cascade_breakdown: tuple[CascadeLine, ...]
    recorded_at: datetime
    credit_held: Money

    @property
    def cascaded(self) -> bool:
        return self.allocation.cascaded


@dataclass(frozen=True)
class AuditEntry:
    payment_id: UUID
    action: str
    record_id: str
    actor: str
    occurred_at: datetime
    details: dict[str, str] = field(default_factory=dict)


class AuditTrail:
    """Append-only, in-memory audit log of recorded payments."""

    def __init__(self) -> None:
        self._entries: list[AuditEntry] = []

    def append(self, entry: AuditEntry) -> None:
        self._entries.append(entry)

    @property
    def entries(self) -> tuple[AuditEntry, ...]:
        return tuple(self._entries)

    def for_record(self, record_id: str) -> tuple[AuditEntry, ...]:
        return tuple(e for e in self._entries if e.record_id == record_id)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[AuditEntry]:
        return iter(self._entries)


class PaymentRecorder:
    """
    Validates, allocates and applies payments.

    Contract:
        Receives the payment method catalog, clock and audit trail via
        constructor injection; policy knobs come from config (see
        ``from_config``) or keyword arguments.
        With a ``currency`` set, payments and schedules in any other
        currency are refused.
    Non-goals:
        - Does not persist schedules or payments.
        - Does not refresh OVERDUE statuses; see ``refresh_statuses``.
    """

    def __init__(
        self,
        catalog: PaymentMethodCatalog,
        clock: Clock | None = None,
        *,
        overpayment_policy: OverpaymentPolicy = OverpaymentPolicy.REJECT,
        cascade_payables: bool = True,
        max_decimal_places: int | None = None,
        currency: Currency | str | None = None,
        audit_trail: AuditTrail | None = None,
        allocator: InstallmentAllocator | None = None,
    ):
        self._catalog = catalog
        self._clock = clock or SystemClock()
        self._overpayment_policy = OverpaymentPolicy(overpayment_policy)
        self._cascade_payables = cascade_payables
        self._max_decimal_places = max_decimal_places
        if isinstance(currency, str):
            currency = Currency(currency)
        self._currency = currency
        self._audit_trail = audit_trail if audit_trail is not None else AuditTrail()
        self._allocator = allocator or InstallmentAllocator()

    @classmethod
    def from_config(
        cls,
        config: PayplanConfig,
        clock: Clock | None = None,
        audit_trail: AuditTrail | None = None,
    ) -> PaymentRecorder:
        return cls(
            build_payment_catalog(config),
            clock,
            overpayment_policy=overpayment_policy_of(config),
            cascade_payables=config.allocation.cascade_payables,
            max_decimal_places=config.allocation.max_decimal_places,
            currency=config.currency,
            audit_trail=audit_trail,
        )

    @property
    def audit_trail(self) -> AuditTrail:
        return self._audit_trail

    @property
    def currency(self) -> Currency | None:
        """Operating currency every payment must be in, or None for any."""
        return self._currency

    @property
    def overpayment_policy(self) -> OverpaymentPolicy:
        return self._overpayment_policy

    def preview(
        self,
        request: PaymentRequest,
        schedule: Sequence[Installment],
    ) -> AllocationResult:
        """
        Run every check and return the allocation ``record`` would apply.

        Nothing is applied or audited.
        """
        with LogContext.bind(record_id=request.record_id, actor_id=request.recorded_by):
            return self._plan(request, schedule)

    def record(
        self,
        request: PaymentRequest,
        schedule: Sequence[Installment],
    ) -> PaymentRecord:
        """
        Record ``request`` against ``schedule``.

        Returns:
            PaymentRecord with the updated schedule.
        Raises:
            PayplanError: see module docstring.
        """
        payment_id = uuid4()
        with LogContext.bind(
            record_id=request.record_id,
            actor_id=request.recorded_by,
            payment_id=str(payment_id),
        ):
            allocation = self._plan(request, schedule)
            method = self._catalog.get(request.payment_method_id)
            updated = apply_allocation(schedule, allocation)

            if self._overpayment_policy == OverpaymentPolicy.HOLD_AS_CREDIT:
                credit_held = allocation.remaining_unapplied
            else:
                credit_held = Money.zero(request.amount.currency)

            record = PaymentRecord(
                payment_id=payment_id,
                request=request,
                method_code=method.method_code.value,
                allocation=allocation,
                schedule=updated,
                cascade_breakdown=tuple(
                    CascadeLine(
                        installment_id=a.installment_id,
                        installment_number=a.installment_number,
                        amount_applied=a.amount_applied,
                    )
                    for a in allocation.affected
                ),
                recorded_at=self._clock.now(),
                credit_held=credit_held,
            )

            self._audit_trail.append(self._audit_entry(record))

            logger.info("payment_recorded", extra={
                "flow": request.flow.value,
                "method_code": record.method_code,
                "amount": str(request.amount.amount),
                "total_applied": str(allocation.total_applied.amount),
                "remaining_unapplied": str(allocation.remaining_unapplied.amount),
                "credit_held": str(credit_held.amount),
                "affected_count": len(allocation.affected),
            })
            return record

    def _plan(
        self,
        request: PaymentRequest,
        schedule: Sequence[Installment],
    ) -> AllocationResult:
        try:
            self._catalog.require_allowed(request.payment_method_id, request.flow)

            if self._currency is not None and request.amount.currency != self._currency:
                raise CurrencyMismatchError(self._currency.code, request.amount.currency.code)

            allocation = self._allocator.allocate_to(
                request.amount, schedule, request.installment_id
            )

            check_payment_amount(
                request.amount,
                schedule,
                allocation.start_index,
                overpayment_policy=self._overpayment_policy,
                max_decimal_places=self._max_decimal_places,
            )

            target = schedule[allocation.start_index]
            if (
                request.flow == PaymentFlow.EXPENSE
                and not self._cascade_payables
                and request.amount > target.balance
            ):
                raise CascadeNotAllowedError(
                    target.id, str(request.amount.amount), str(target.balance.amount)
                )
        except PayplanError as exc:
            logger.warning("payment_rejected", extra={
                "error_code": exc.code,
                "installment_id": request.installment_id,
                "amount": str(request.amount.amount),
                "flow": request.flow.value,
            })
            raise

        return allocation

    def _audit_entry(self, record: PaymentRecord) -> AuditEntry:
        request = record.request
        details = {
            "flow": request.flow.value,
            "method_code": record.method_code,
            "amount": str(request.amount.amount),
            "currency": request.amount.currency.code,
            "payment_date": request.payment_date.isoformat(),
            "installments": ",".join(record.allocation.affected_ids),
            "remaining_unapplied": str(record.allocation.remaining_unapplied.amount),
            "credit_held": str(record.credit_held.amount),
        }
        if request.record_ref:
            details["record_ref"] = request.record_ref
        if request.reference_number:
            details["reference_number"] = request.reference_number
        if request.remarks:
            details["remarks"] = request.remarks
        return AuditEntry(
            payment_id=record.payment_id,
            action="PAYMENT_RECORDED",
            record_id=request.record_id,
            actor=request.recorded_by,
            occurred_at=record.recorded_at,
            details=details,
        )
