"""
payplan_services -- Orchestration over the pure payplan engines.

Services own the clock and the audit trail; engines stay pure.

Usage:
    from payplan_services import PaymentRecorder, PaymentRequest, PaymentFlow
    from payplan_services import ReimbursementAccount, split_by_percentage
"""

from payplan_kernel.domain.payment_methods import PaymentFlow
from payplan_services.payment_recorder import (
    AuditEntry,
    AuditTrail,
    CascadeLine,
    PaymentRecord,
    PaymentRecorder,
    PaymentRequest,
)
from payplan_services.reimbursement import (
    EmployeeRole,
    ReimbursementAccount,
    configured_percentages,
    split_by_percentage,
    split_reimbursement,
)

__all__ = [
    "AuditEntry",
    "AuditTrail",
    "CascadeLine",
    "EmployeeRole",
    "PaymentFlow",
    "PaymentRecord",
    "PaymentRecorder",
    "PaymentRequest",
    "ReimbursementAccount",
    "configured_percentages",
    "split_by_percentage",
    "split_reimbursement",
]
