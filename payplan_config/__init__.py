"""
payplan_config -- single public entrypoint for payplan configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``. No other component may read configuration
    files or environment variables directly.

Architecture position:
    Configuration -- YAML-driven policy, validated on load.
    This package sits above ``payplan_kernel`` / ``payplan_engines`` and
    below ``payplan_services``. The kernel MUST NEVER import from
    ``payplan_config``; bridges in this package translate the config into
    kernel-compatible inputs.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Validation: a config with errors is never returned.
    - Deterministic identity: the same YAML document always yields the
      same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``KeyError`` / ``ValueError`` -- structural or validation failures.
    - ``yaml.YAMLError`` -- malformed YAML.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``PAYPLAN_CONFIG_TRACE`` log entry with config_id, version, checksum,
    overpayment policy and payment method count, tying every recorded
    payment to the configuration that governed it.
"""

from __future__ import annotations

from pathlib import Path

from payplan_config.bridges import build_payment_catalog, overpayment_policy_of
from payplan_config.loader import load_yaml_file, parse_config
from payplan_config.schema import (
    AllocationPolicyDef,
    PaymentMethodDef,
    PayplanConfig,
    ReimbursementPolicyDef,
)
from payplan_config.validator import validate_config
from payplan_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration set
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> PayplanConfig:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned ``PayplanConfig`` has passed ``validate_config``.
        - A ``PAYPLAN_CONFIG_TRACE`` log entry is emitted on every
          successful call; validation warnings are logged at WARNING.

    Non-goals:
        - Does NOT cache across calls; callers hold the returned config.

    Args:
        config_path: Override path to a configuration set file.
            Defaults to payplan_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If configuration validation fails.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH

    config = parse_config(load_yaml_file(path))

    validation = validate_config(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={
            "config_set_id": config.config_id,
            "warning": warning,
        })

    _logger.info(
        "PAYPLAN_CONFIG_TRACE",
        extra={
            "trace_type": "PAYPLAN_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "currency": config.currency,
            "overpayment_policy": config.allocation.overpayment_policy,
            "cascade_payables": config.allocation.cascade_payables,
            "driver_share_percentage": config.reimbursement.driver_share_percentage,
            "conductor_share_percentage": config.reimbursement.conductor_share_percentage,
            "payment_method_count": len(config.payment_methods),
        },
    )

    return config


__all__ = [
    "AllocationPolicyDef",
    "DEFAULT_CONFIG_PATH",
    "PaymentMethodDef",
    "PayplanConfig",
    "ReimbursementPolicyDef",
    "build_payment_catalog",
    "get_active_config",
    "overpayment_policy_of",
]
