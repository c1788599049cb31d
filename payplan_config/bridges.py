"""
Config -> Kernel/Engine Bridges.

Functions that convert a ``PayplanConfig`` into the objects the kernel and
engines consume. These live in payplan_config (the producer) because the
kernel must NEVER import payplan_config.

Usage:
    from payplan_config import get_active_config
    from payplan_config.bridges import build_payment_catalog

    config = get_active_config()
    catalog = build_payment_catalog(config)
"""

from __future__ import annotations

from payplan_config.schema import PayplanConfig
from payplan_engines.amount_validation import OverpaymentPolicy
from payplan_kernel.domain.payment_methods import (
    PaymentMethod,
    PaymentMethodCatalog,
    PaymentMethodCode,
)


def build_payment_catalog(config: PayplanConfig) -> PaymentMethodCatalog:
    """Build the kernel payment method catalog from config rows."""
    return PaymentMethodCatalog(
        PaymentMethod(
            id=m.id,
            method_code=PaymentMethodCode(m.method_code),
            method_name=m.method_name,
        )
        for m in config.payment_methods
    )


def overpayment_policy_of(config: PayplanConfig) -> OverpaymentPolicy:
    return OverpaymentPolicy(config.allocation.overpayment_policy)
