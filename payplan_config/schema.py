"""
PayplanConfig schema.

Typed, frozen view of a configuration set file. YAML under
``payplan_config/sets/`` is parsed into these types by the loader,
checked by the validator, and bridged into kernel/engine objects by
``payplan_config.bridges``.

Values are kept as the plain strings/ints found in YAML; conversion to
enums happens in the bridges so that the validator can report every bad
value at once instead of failing on the first.
Share percentages are the one exception: they are parsed to Decimal so
that the validator can check their sum exactly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class AllocationPolicyDef:
    """How payments are checked and cascaded."""

    overpayment_policy: str = "REJECT"  # REJECT, HOLD_AS_CREDIT, ALLOW
    cascade_payables: bool = True
    max_decimal_places: int | None = None  # None = currency's own precision


@dataclass(frozen=True)
class ReimbursementPolicyDef:
    """Default driver/conductor split of an expense reimbursement."""

    driver_share_percentage: Decimal = Decimal(50)
    conductor_share_percentage: Decimal = Decimal(50)


@dataclass(frozen=True)
class PaymentMethodDef:
    """One row of the payment method reference table."""

    id: int
    method_code: str
    method_name: str


@dataclass(frozen=True)
class PayplanConfig:
    """A complete configuration set."""

    config_id: str
    version: int
    currency: str
    allocation: AllocationPolicyDef
    reimbursement: ReimbursementPolicyDef = ReimbursementPolicyDef()
    payment_methods: tuple[PaymentMethodDef, ...] = ()
    checksum: str = ""
