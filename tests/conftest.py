"""
Pytest fixtures for the payplan test suite.

Provides:
- Structured logging configured for the session, plus a ``captured_logs``
  fixture returning parsed JSON log records
- Deterministic clock
- Default payment method catalog and recorder
"""

import json
import logging
from io import StringIO

import pytest

from payplan_kernel.domain.clock import DeterministicClock
from payplan_kernel.domain.payment_methods import (
    PaymentMethod,
    PaymentMethodCatalog,
    PaymentMethodCode,
)
from payplan_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from payplan_services.payment_recorder import AuditTrail, PaymentRecorder


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture payplan logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            allocator.allocate(...)
            logs = captured_logs()
            assert any(r["message"] == "allocation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("payplan")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


# =============================================================================
# Payment fixtures
# =============================================================================


@pytest.fixture
def payment_catalog() -> PaymentMethodCatalog:
    """The four standard payment methods, ids 1-4."""
    return PaymentMethodCatalog([
        PaymentMethod(1, PaymentMethodCode.CASH, "Cash"),
        PaymentMethod(2, PaymentMethodCode.BANK_TRANSFER, "Bank Transfer"),
        PaymentMethod(3, PaymentMethodCode.E_WALLET, "E-Wallet"),
        PaymentMethod(4, PaymentMethodCode.REIMBURSEMENT, "Reimbursement"),
    ])


@pytest.fixture
def audit_trail() -> AuditTrail:
    return AuditTrail()


@pytest.fixture
def recorder(payment_catalog, deterministic_clock, audit_trail) -> PaymentRecorder:
    """Recorder with the default policy (REJECT overpayments, payables cascade)."""
    return PaymentRecorder(
        payment_catalog,
        deterministic_clock,
        audit_trail=audit_trail,
    )
