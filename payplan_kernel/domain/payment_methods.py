"""
Payment methods -- reference catalog of how money moves.

Responsibility:
    Holds the closed set of payment method codes and a lookup catalog of
    ``{id, method_code, method_name}`` rows. The allocator never looks at
    payment methods; the recording service uses the catalog to check that
    a method is valid for the flow it is recording.

Architecture position:
    Kernel > Domain -- pure reference data, zero I/O. Catalog rows are
    supplied by ``payplan_config.build_payment_catalog`` or by tests.

Invariants enforced:
    - Method ids and codes are unique within a catalog.
    - ``REIMBURSEMENT`` is only valid for expense (payable) flows.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from payplan_kernel.exceptions import (
    PaymentMethodNotAllowedError,
    UnknownPaymentMethodError,
)


class PaymentFlow(str, Enum):
    """Direction of a payment relative to the organisation."""

    REVENUE = "REVENUE"  # Receivable: money coming in
    EXPENSE = "EXPENSE"  # Payable / reimbursement: money going out


class PaymentMethodCode(str, Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    E_WALLET = "E_WALLET"
    REIMBURSEMENT = "REIMBURSEMENT"


# Flows each code may be used with.
_ALLOWED_FLOWS: dict[PaymentMethodCode, frozenset[PaymentFlow]] = {
    PaymentMethodCode.CASH: frozenset({PaymentFlow.REVENUE, PaymentFlow.EXPENSE}),
    PaymentMethodCode.BANK_TRANSFER: frozenset({PaymentFlow.REVENUE, PaymentFlow.EXPENSE}),
    PaymentMethodCode.E_WALLET: frozenset({PaymentFlow.REVENUE, PaymentFlow.EXPENSE}),
    PaymentMethodCode.REIMBURSEMENT: frozenset({PaymentFlow.EXPENSE}),
}


@dataclass(frozen=True)
class PaymentMethod:
    """One row of the payment method catalog."""

    id: int
    method_code: PaymentMethodCode
    method_name: str

    def __post_init__(self) -> None:
        if not isinstance(self.method_code, PaymentMethodCode):
            object.__setattr__(self, "method_code", PaymentMethodCode(self.method_code))

    def allows(self, flow: PaymentFlow) -> bool:
        return flow in _ALLOWED_FLOWS[self.method_code]


class PaymentMethodCatalog:
    """
    Immutable lookup over payment methods.

    Contract:
        Built once from an iterable of PaymentMethod rows.
    Guarantees:
        - Lookups by id or code raise ``UnknownPaymentMethodError`` on miss.
    Raises:
        ValueError: on duplicate ids or codes at construction.
    """

    def __init__(self, methods: Iterable[PaymentMethod]):
        by_id: dict[int, PaymentMethod] = {}
        by_code: dict[PaymentMethodCode, PaymentMethod] = {}
        for method in methods:
            if method.id in by_id:
                raise ValueError(f"Duplicate payment method id: {method.id}")
            if method.method_code in by_code:
                raise ValueError(f"Duplicate payment method code: {method.method_code.value}")
            by_id[method.id] = method
            by_code[method.method_code] = method
        self._by_id = by_id
        self._by_code = by_code

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self):
        return iter(sorted(self._by_id.values(), key=lambda m: m.id))

    def get(self, method_id: int) -> PaymentMethod:
        try:
            return self._by_id[method_id]
        except KeyError:
            raise UnknownPaymentMethodError(str(method_id)) from None

    def by_code(self, code: PaymentMethodCode | str) -> PaymentMethod:
        try:
            return self._by_code[PaymentMethodCode(code)]
        except (KeyError, ValueError):
            raise UnknownPaymentMethodError(str(code)) from None

    def for_flow(self, flow: PaymentFlow) -> tuple[PaymentMethod, ...]:
        """Methods usable for ``flow``, ordered by id."""
        return tuple(m for m in self if m.allows(flow))

    def require_allowed(self, method_id: int, flow: PaymentFlow) -> PaymentMethod:
        """
        Resolve ``method_id`` and check it against ``flow``.

        Raises:
            UnknownPaymentMethodError: id not in catalog.
            PaymentMethodNotAllowedError: method not valid for the flow.
        """
        method = self.get(method_id)
        if not method.allows(flow):
            raise PaymentMethodNotAllowedError(method.method_code.value, flow.value)
        return method
