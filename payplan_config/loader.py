"""
Configuration Loader (``payplan_config.loader``).

Responsibility
--------------
Loads a YAML configuration set file and parses it into typed
``payplan_config.schema`` dataclass instances. The single public entry
point for runtime config is ``payplan_config.get_active_config()``; this
module is the tooling underneath it.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Wrong value types  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from payplan_config.schema import (
    AllocationPolicyDef,
    PaymentMethodDef,
    PayplanConfig,
    ReimbursementPolicyDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Preconditions:
        - ``path`` must point to an existing, readable YAML file.
    Postconditions:
        - Returns a ``dict`` (possibly empty if the YAML is empty).
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top-level YAML value is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return data


def _parse_bool(value: Any, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"{field_name} must be true or false, got {value!r}")


def _parse_optional_int(value: Any, field_name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer, got {value!r}")
    return value


def parse_allocation_policy(data: dict[str, Any]) -> AllocationPolicyDef:
    """Parse the ``allocation`` section. Every key is optional."""
    return AllocationPolicyDef(
        overpayment_policy=str(data.get("overpayment_policy", "REJECT")).upper(),
        cascade_payables=_parse_bool(
            data.get("cascade_payables", True), "allocation.cascade_payables"
        ),
        max_decimal_places=_parse_optional_int(
            data.get("max_decimal_places"), "allocation.max_decimal_places"
        ),
    )


def _parse_percentage(value: Any, field_name: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"{field_name} must be a number, got {value!r}")
    try:
        pct = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{field_name} must be a number, got {value!r}") from e
    if not pct.is_finite():
        raise ValueError(f"{field_name} must be a number, got {value!r}")
    return pct


def parse_reimbursement_policy(data: dict[str, Any]) -> ReimbursementPolicyDef:
    """Parse the ``reimbursement`` section. Both percentages default to 50."""
    return ReimbursementPolicyDef(
        driver_share_percentage=_parse_percentage(
            data.get("driver_share_percentage", 50),
            "reimbursement.driver_share_percentage",
        ),
        conductor_share_percentage=_parse_percentage(
            data.get("conductor_share_percentage", 50),
            "reimbursement.conductor_share_percentage",
        ),
    )


def parse_payment_method(data: dict[str, Any]) -> PaymentMethodDef:
    """Parse one ``payment_methods`` entry; ``id`` and ``method_code`` are required."""
    method_id = data["id"]
    if isinstance(method_id, bool) or not isinstance(method_id, int):
        raise ValueError(f"payment method id must be an integer, got {method_id!r}")
    code = str(data["method_code"]).upper()
    return PaymentMethodDef(
        id=method_id,
        method_code=code,
        method_name=str(data.get("method_name", code.replace("_", " ").title())),
    )


def parse_config(data: dict[str, Any]) -> PayplanConfig:
    """
    Parse a whole configuration document.

    Preconditions:
        - ``data`` has ``config_id`` and ``currency`` keys.
    Postconditions:
        - ``checksum`` is ``compute_checksum(data)``.
    Raises:
        KeyError: if a required key is missing.
        ValueError: if a value has the wrong type.
    """
    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int):
        raise ValueError(f"version must be an integer, got {version!r}")

    return PayplanConfig(
        config_id=str(data["config_id"]),
        version=version,
        currency=str(data["currency"]).upper(),
        allocation=parse_allocation_policy(data.get("allocation") or {}),
        reimbursement=parse_reimbursement_policy(data.get("reimbursement") or {}),
        payment_methods=tuple(
            parse_payment_method(m) for m in data.get("payment_methods") or ()
        ),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Returns a hex-encoded SHA-256 hash string.
        - Identical ``data`` always produces identical checksums, regardless
          of key order.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
