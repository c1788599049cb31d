"""
Configuration Validator (``payplan_config.validator``).

Responsibility
--------------
Checks a parsed ``PayplanConfig`` before it is handed to the runtime:
every value must name something the kernel and engines understand.

Invariants enforced
-------------------
* Currency is a registered ISO 4217 code.
* ``overpayment_policy`` is one of the ``OverpaymentPolicy`` values.
* Payment method codes are known; ids and codes are unique.
* ``max_decimal_places`` is not negative.
* Reimbursement share percentages lie in 0..100 and add up to exactly 100.

Failure modes
-------------
* Errors (``ConfigValidationResult.errors``) -> configuration MUST NOT be
  used.
* Warnings -> configuration is usable but should be reviewed.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal

from payplan_config.schema import PayplanConfig
from payplan_engines.amount_validation import OverpaymentPolicy
from payplan_kernel.domain.currency import CurrencyRegistry
from payplan_kernel.domain.payment_methods import PaymentMethodCode


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` is ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_config(config: PayplanConfig) -> ConfigValidationResult:
    """Validate a configuration set; collects every problem found."""
    result = ConfigValidationResult()

    if not CurrencyRegistry.is_valid(config.currency):
        result.add_error(f"Unknown currency: {config.currency!r}")

    policies = {p.value for p in OverpaymentPolicy}
    if config.allocation.overpayment_policy not in policies:
        result.add_error(
            f"Unknown overpayment_policy {config.allocation.overpayment_policy!r}; "
            f"expected one of {sorted(policies)}"
        )

    places = config.allocation.max_decimal_places
    if places is not None and places < 0:
        result.add_error(f"max_decimal_places cannot be negative: {places}")
    elif places is not None and CurrencyRegistry.is_valid(config.currency):
        currency_places = CurrencyRegistry.get_decimal_places(config.currency)
        if places > currency_places:
            result.add_warning(
                f"max_decimal_places ({places}) is finer than {config.currency} "
                f"precision ({currency_places})"
            )

    shares = config.reimbursement
    for name in ("driver_share_percentage", "conductor_share_percentage"):
        pct = getattr(shares, name)
        if not Decimal(0) <= pct <= Decimal(100):
            result.add_error(f"reimbursement.{name} must be between 0 and 100: {pct}")
    share_total = shares.driver_share_percentage + shares.conductor_share_percentage
    if share_total != Decimal(100):
        result.add_error(f"Reimbursement share percentages add up to {share_total}, expected 100")
    if shares.driver_share_percentage == 0:
        result.add_warning("reimbursement.driver_share_percentage is 0; drivers are never reimbursed")

    codes = {c.value for c in PaymentMethodCode}
    for method in config.payment_methods:
        if method.method_code not in codes:
            result.add_error(
                f"Payment method {method.id}: unknown method_code {method.method_code!r}"
            )

    for method_id, count in Counter(m.id for m in config.payment_methods).items():
        if count > 1:
            result.add_error(f"Duplicate payment method id: {method_id}")
    for code, count in Counter(m.method_code for m in config.payment_methods).items():
        if count > 1:
            result.add_error(f"Duplicate payment method code: {code}")

    if not config.payment_methods:
        result.add_warning("No payment methods configured")

    return result
