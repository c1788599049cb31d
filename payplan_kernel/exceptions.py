"""
Typed Exception Hierarchy for payplan.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (a UI, an API layer, a batch job) must react to *which* rule was
broken, not to the wording of a message. Every error here therefore:
  1. Has its own class (catch by type, not by message)
  2. Carries a ``code`` class attribute (machine-readable, API-safe)
  3. Stores its context as attributes (installment id, amounts, ...)

Example - WRONG way to handle errors:
    try:
        allocator.allocate(amount, schedule, index)
    except Exception as e:
        if "not payable" in str(e):  # FRAGILE
            ...

Example - RIGHT way:
    try:
        allocator.allocate(amount, schedule, index)
    except InstallmentNotPayableError as e:
        api_response(code=e.code, installment=e.installment_id, status=e.status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayplanError (base)
    |
    +-- ValidationError                 (allocator preconditions)
    |   +-- NonPositiveAmountError
    |   +-- InstallmentNotFoundError
    |   +-- InstallmentNotPayableError
    |   +-- MalformedScheduleError
    |   +-- CurrencyMismatchError
    |   +-- AmountPrecisionError
    |
    +-- PaymentError                    (recording policy)
    |   +-- OverpaymentError
    |   +-- CascadeNotAllowedError
    |   +-- StaleAllocationError
    |
    +-- PaymentMethodError
    |   +-- UnknownPaymentMethodError
    |   +-- PaymentMethodNotAllowedError
    |
    +-- ScheduleDefinitionError
    |
    +-- AllocationInvariantError        (internal consistency)

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | NON_POSITIVE_AMOUNT         | Payment amount <= 0
                | INSTALLMENT_NOT_FOUND       | Start index / id not in schedule
                | INSTALLMENT_NOT_PAYABLE     | Target is COMPLETED/CANCELLED/WRITTEN_OFF
                | MALFORMED_SCHEDULE          | installment_number not strictly increasing
                | CURRENCY_MISMATCH           | Payment, schedule or operating currency differ
                | AMOUNT_PRECISION            | More decimal places than allowed
----------------|-----------------------------|-----------------------------------------
Payment         | OVERPAYMENT_REJECTED        | Amount > outstanding under REJECT policy
                | CASCADE_NOT_ALLOWED         | Payable payment would spill over
                | STALE_ALLOCATION            | Plan computed against an older schedule
----------------|-----------------------------|-----------------------------------------
Payment method  | UNKNOWN_PAYMENT_METHOD      | Method id/code not in catalog
                | PAYMENT_METHOD_NOT_ALLOWED  | Method not valid for the flow
----------------|-----------------------------|-----------------------------------------
Schedule        | SCHEDULE_DEFINITION_ERROR   | Cannot build/redistribute a schedule
----------------|-----------------------------|-----------------------------------------
Internal        | ALLOCATION_INVARIANT_VIOLATED | applied + unapplied != payment amount

===============================================================================
HANDLING PATTERNS
===============================================================================

1. ``ValidationError`` is always recoverable: fix the input and retry.
   "Payment exceeds total outstanding" is NOT an error of the allocator;
   it is ``AllocationResult.remaining_unapplied``.

2. ``StaleAllocationError`` means another payment landed first. Reload the
   schedule, recompute the allocation, apply again.

3. Catch the narrowest class you can act on; fall back to the category.

4. ``AllocationInvariantError`` is a defect, not a user error. Report it;
   do not retry with the same inputs.
"""


class PayplanError(Exception):
    """
    Base exception for all payplan errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYPLAN_ERROR"


# Validation exceptions (allocator preconditions)


class ValidationError(PayplanError):
    """Base exception for precondition violations. Always recoverable."""

    code: str = "VALIDATION_ERROR"


class NonPositiveAmountError(ValidationError):
    """Payment amount is zero or negative."""

    code: str = "NON_POSITIVE_AMOUNT"

    def __init__(self, amount: str):
        self.amount = amount
        super().__init__(f"Payment amount must be positive, got {amount}")


class InstallmentNotFoundError(ValidationError):
    """Start installment (by index or id) does not exist in the schedule."""

    code: str = "INSTALLMENT_NOT_FOUND"

    def __init__(self, reference: str, schedule_size: int):
        self.reference = reference
        self.schedule_size = schedule_size
        super().__init__(
            f"Installment {reference} not found in schedule of {schedule_size}"
        )


class InstallmentNotPayableError(ValidationError):
    """Target installment is in a terminal status."""

    code: str = "INSTALLMENT_NOT_PAYABLE"

    def __init__(self, installment_id: str, installment_number: int, status: str):
        self.installment_id = installment_id
        self.installment_number = installment_number
        self.status = status
        super().__init__(
            f"Installment #{installment_number} ({installment_id}) is {status} "
            f"and cannot receive payments"
        )


class MalformedScheduleError(ValidationError):
    """Schedule is not strictly ordered by installment_number."""

    code: str = "MALFORMED_SCHEDULE"

    def __init__(self, position: int, previous_number: int, installment_number: int):
        self.position = position
        self.previous_number = previous_number
        self.installment_number = installment_number
        super().__init__(
            f"Schedule out of order at position {position}: installment "
            f"#{installment_number} follows #{previous_number}"
        )


class CurrencyMismatchError(ValidationError):
    """Payment, schedule or operating currency do not match."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, received: str):
        self.expected = expected
        self.received = received
        super().__init__(f"Currency mismatch: expected {expected}, got {received}")


class AmountPrecisionError(ValidationError):
    """Amount carries more decimal places than the currency allows."""

    code: str = "AMOUNT_PRECISION"

    def __init__(self, amount: str, max_decimal_places: int):
        self.amount = amount
        self.max_decimal_places = max_decimal_places
        super().__init__(
            f"Amount {amount} exceeds {max_decimal_places} decimal places"
        )


# Payment recording exceptions


class PaymentError(PayplanError):
    """Base exception for payment recording policy violations."""

    code: str = "PAYMENT_ERROR"


class OverpaymentError(PaymentError):
    """Payment exceeds the outstanding balance and policy forbids credit."""

    code: str = "OVERPAYMENT_REJECTED"

    def __init__(self, amount: str, outstanding: str):
        self.amount = amount
        self.outstanding = outstanding
        super().__init__(
            f"Payment of {amount} exceeds outstanding balance of {outstanding}"
        )


class CascadeNotAllowedError(PaymentError):
    """Payment would spill over to later installments on a non-cascading flow."""

    code: str = "CASCADE_NOT_ALLOWED"

    def __init__(self, installment_id: str, amount: str, balance: str):
        self.installment_id = installment_id
        self.amount = amount
        self.balance = balance
        super().__init__(
            f"Payment of {amount} exceeds balance {balance} of installment "
            f"{installment_id}; cascading is disabled for this flow"
        )


class StaleAllocationError(PaymentError):
    """Allocation plan no longer matches the schedule it is applied to."""

    code: str = "STALE_ALLOCATION"

    def __init__(self, installment_id: str, expected_balance: str, actual_balance: str):
        self.installment_id = installment_id
        self.expected_balance = expected_balance
        self.actual_balance = actual_balance
        super().__init__(
            f"Installment {installment_id} balance changed: plan expected "
            f"{expected_balance}, schedule has {actual_balance}"
        )


# Payment method exceptions


class PaymentMethodError(PayplanError):
    """Base exception for payment method catalog errors."""

    code: str = "PAYMENT_METHOD_ERROR"


class UnknownPaymentMethodError(PaymentMethodError):
    """Payment method id or code is not in the catalog."""

    code: str = "UNKNOWN_PAYMENT_METHOD"

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Unknown payment method: {reference}")


class PaymentMethodNotAllowedError(PaymentMethodError):
    """Payment method cannot be used for this payment flow."""

    code: str = "PAYMENT_METHOD_NOT_ALLOWED"

    def __init__(self, method_code: str, flow: str):
        self.method_code = method_code
        self.flow = flow
        super().__init__(f"Payment method {method_code} is not allowed for {flow} payments")


# Schedule definition exceptions


class ScheduleDefinitionError(PayplanError):
    """A schedule cannot be generated or redistributed as requested."""

    code: str = "SCHEDULE_DEFINITION_ERROR"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


# Internal consistency exceptions


class AllocationInvariantError(PayplanError):
    """
    An allocation plan does not add up to the payment it was built from.

    Raised by the allocator itself, never by bad input. Nothing has been
    applied when it is raised; the plan must be discarded.
    """

    code: str = "ALLOCATION_INVARIANT_VIOLATED"

    def __init__(self, amount: str, total_applied: str, remaining_unapplied: str):
        self.amount = amount
        self.total_applied = total_applied
        self.remaining_unapplied = remaining_unapplied
        super().__init__(
            f"Allocation conservation violated: {total_applied} applied + "
            f"{remaining_unapplied} unapplied != {amount}"
        )
