"""
Module: payplan_engines.amount_validation
Responsibility:
    Bounds checks on a payment amount before it reaches the allocator:
    positive, no finer than the currency's minor unit, and (depending on
    the overpayment policy) no larger than what is still owed.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Failure modes:
    - NonPositiveAmountError when amount <= 0.
    - AmountPrecisionError when the amount has too many decimal places.
    - OverpaymentError when the amount exceeds the outstanding balance
      and the policy is REJECT.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum

from payplan_kernel.domain.schedule import Installment, total_outstanding
from payplan_kernel.domain.values import Money
from payplan_kernel.exceptions import (
    AmountPrecisionError,
    CurrencyMismatchError,
    NonPositiveAmountError,
    OverpaymentError,
)
from payplan_kernel.logging_config import get_logger

logger = get_logger("engines.amount_validation")


class OverpaymentPolicy(str, Enum):
    """What to do with money beyond the total outstanding balance."""

    REJECT = "REJECT"  # Refuse the payment before allocating
    HOLD_AS_CREDIT = "HOLD_AS_CREDIT"  # Accept; keep the excess as a credit
    ALLOW = "ALLOW"  # Accept; report the excess as unapplied


def decimal_places_of(amount: Money) -> int:
    """Number of significant decimal places in ``amount``."""
    if amount.is_zero:
        return 0
    _, digits, exponent = amount.amount.as_tuple()
    places = -exponent
    # Trailing zeros after the point are not significant ("1.50" has one)
    for digit in reversed(digits):
        if places <= 0 or digit:
            break
        places -= 1
    return max(0, places)


def check_amount_precision(amount: Money, max_decimal_places: int | None = None) -> None:
    """
    Reject amounts finer than ``max_decimal_places`` (default: the
    currency's own decimal places).
    """
    places = (
        amount.currency.decimal_places
        if max_decimal_places is None
        else max_decimal_places
    )
    if decimal_places_of(amount) > places:
        raise AmountPrecisionError(str(amount.amount), places)


def outstanding_from(schedule: Sequence[Installment], start_index: int) -> Money:
    """Balance still owed on open installments from ``start_index`` onward."""
    outstanding = total_outstanding(schedule, start_index)
    if outstanding is None:
        raise ValueError("Cannot compute outstanding balance of an empty schedule")
    return outstanding


def check_payment_amount(
    amount: Money,
    schedule: Sequence[Installment],
    start_index: int,
    *,
    overpayment_policy: OverpaymentPolicy = OverpaymentPolicy.REJECT,
    max_decimal_places: int | None = None,
) -> Money:
    """
    Validate ``amount`` against the schedule it will be allocated to.

    Preconditions:
        ``schedule`` is non-empty and ``start_index`` is within it.
    Returns:
        The outstanding balance from ``start_index`` onward.
    Raises:
        NonPositiveAmountError, AmountPrecisionError, CurrencyMismatchError,
        OverpaymentError.
    """
    if not amount.is_positive:
        raise NonPositiveAmountError(str(amount.amount))

    check_amount_precision(amount, max_decimal_places)

    outstanding = outstanding_from(schedule, start_index)
    if outstanding.currency != amount.currency:
        raise CurrencyMismatchError(outstanding.currency.code, amount.currency.code)
    if amount > outstanding:
        if overpayment_policy == OverpaymentPolicy.REJECT:
            logger.warning("payment_amount_exceeds_outstanding", extra={
                "amount": str(amount.amount),
                "outstanding": str(outstanding.amount),
                "policy": overpayment_policy.value,
            })
            raise OverpaymentError(str(amount.amount), str(outstanding.amount))
        logger.info("payment_amount_overpayment_accepted", extra={
            "amount": str(amount.amount),
            "outstanding": str(outstanding.amount),
            "policy": overpayment_policy.value,
        })

    return outstanding
