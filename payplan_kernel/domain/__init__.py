"""
Pure domain layer.

This module contains immutable value objects and schedule helpers with NO
dependencies on:
- Persistence
- Time/clock (except the Clock abstraction itself)
- I/O
"""

from payplan_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payplan_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from payplan_kernel.domain.payment_methods import (
    PaymentFlow,
    PaymentMethod,
    PaymentMethodCatalog,
    PaymentMethodCode,
)
from payplan_kernel.domain.schedule import (
    ADMINISTRATIVE_STATUSES,
    TERMINAL_STATUSES,
    Installment,
    InstallmentStatus,
    ScheduleFrequency,
    find_installment_index,
    schedule_currency,
    total_outstanding,
    validate_schedule_order,
)
from payplan_kernel.domain.values import Currency, Money

__all__ = [
    "ADMINISTRATIVE_STATUSES",
    "Clock",
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DeterministicClock",
    "Installment",
    "InstallmentStatus",
    "Money",
    "PaymentFlow",
    "PaymentMethod",
    "PaymentMethodCatalog",
    "PaymentMethodCode",
    "ScheduleFrequency",
    "SystemClock",
    "TERMINAL_STATUSES",
    "find_installment_index",
    "schedule_currency",
    "total_outstanding",
    "validate_schedule_order",
]
