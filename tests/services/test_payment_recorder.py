"""
Tests for PaymentRecorder.

Covers:
- Recording receivable payments (single and cascading)
- Payment method vs flow checks
- Overpayment policies (REJECT, HOLD_AS_CREDIT, ALLOW)
- Payables cascade switch
- Audit trail entries and LogContext-bound log records
- Preview is side-effect free
- Construction from configuration
- Operating currency enforcement
"""

from datetime import date

import pytest

from payplan_config import get_active_config
from payplan_engines.amount_validation import OverpaymentPolicy
from payplan_kernel.domain.payment_methods import PaymentFlow
from payplan_kernel.domain.schedule import InstallmentStatus
from payplan_kernel.domain.values import Currency, Money
from payplan_kernel.exceptions import (
    AmountPrecisionError,
    CascadeNotAllowedError,
    CurrencyMismatchError,
    InstallmentNotFoundError,
    InstallmentNotPayableError,
    NonPositiveAmountError,
    OverpaymentError,
    PaymentMethodNotAllowedError,
    UnknownPaymentMethodError,
)
from payplan_services.payment_recorder import AuditTrail, PaymentRecorder, PaymentRequest
from tests.factories import make_schedule, php

CASH = 1
REIMBURSEMENT = 4


def _request(value, installment_id="inst-1", **overrides) -> PaymentRequest:
    fields = dict(
        record_id="REV-001",
        installment_id=installment_id,
        amount=php(value),
        payment_date=date(2024, 2, 1),
        payment_method_id=CASH,
        recorded_by="cashier-7",
    )
    fields.update(overrides)
    return PaymentRequest(**fields)


class TestRecordPayment:
    """Happy paths."""

    def test_single_installment(self, recorder, deterministic_clock):
        schedule = make_schedule("1000", "500")

        record = recorder.record(_request("1000"), schedule)

        assert record.schedule[0].status == InstallmentStatus.COMPLETED
        assert record.schedule[1] is schedule[1]
        assert record.method_code == "CASH"
        assert record.recorded_at == deterministic_clock.now()
        assert not record.cascaded
        assert record.credit_held.is_zero

    def test_cascade_breakdown(self, recorder):
        schedule = make_schedule("1000", "500", "500")

        record = recorder.record(_request("1200"), schedule)

        assert record.cascaded
        assert [(c.installment_number, c.amount_applied) for c in record.cascade_breakdown] == [
            (1, php("1000")),
            (2, php("200")),
        ]
        assert [i.amount_paid for i in record.schedule] == [php("1000"), php("200"), php("0")]

    def test_targets_requested_installment(self, recorder):
        schedule = make_schedule("100", "100")

        record = recorder.record(_request("100", installment_id="inst-2"), schedule)

        assert record.allocation.affected_ids == ("inst-2",)
        assert record.schedule[0].amount_paid.is_zero

    def test_caller_schedule_untouched(self, recorder):
        schedule = make_schedule("1000")
        recorder.record(_request("400"), schedule)
        assert schedule[0].amount_paid.is_zero

    def test_unique_payment_ids(self, recorder):
        schedule = make_schedule("1000")
        first = recorder.record(_request("100"), schedule)
        second = recorder.record(_request("100"), first.schedule)
        assert first.payment_id != second.payment_id


class TestValidationFailures:
    """Nothing is recorded when a check fails."""

    def test_unknown_method(self, recorder, audit_trail):
        with pytest.raises(UnknownPaymentMethodError):
            recorder.record(_request("100", payment_method_id=42), make_schedule("100"))
        assert len(audit_trail) == 0

    def test_reimbursement_not_allowed_for_revenue(self, recorder):
        with pytest.raises(PaymentMethodNotAllowedError):
            recorder.record(
                _request("100", payment_method_id=REIMBURSEMENT), make_schedule("100")
            )

    def test_reimbursement_allowed_for_expense(self, recorder):
        record = recorder.record(
            _request("100", payment_method_id=REIMBURSEMENT, flow=PaymentFlow.EXPENSE),
            make_schedule("100"),
        )
        assert record.method_code == "REIMBURSEMENT"

    def test_unknown_installment(self, recorder):
        with pytest.raises(InstallmentNotFoundError):
            recorder.record(_request("100", installment_id="inst-9"), make_schedule("100"))

    def test_terminal_installment(self, recorder):
        schedule = make_schedule(("100", "100", InstallmentStatus.COMPLETED))
        with pytest.raises(InstallmentNotPayableError):
            recorder.record(_request("50"), schedule)

    def test_non_positive_amount(self, recorder):
        with pytest.raises(NonPositiveAmountError):
            recorder.record(_request("0"), make_schedule("100"))

    def test_sub_cent_amount(self, recorder):
        with pytest.raises(AmountPrecisionError):
            recorder.record(_request("10.005"), make_schedule("100"))

    def test_rejection_logged_with_context(self, recorder, captured_logs):
        with pytest.raises(OverpaymentError):
            recorder.record(_request("150"), make_schedule("100"))

        record = next(r for r in captured_logs() if r["message"] == "payment_rejected")
        assert record["error_code"] == "OVERPAYMENT_REJECTED"
        assert record["record_id"] == "REV-001"
        assert record["actor_id"] == "cashier-7"


class TestOverpaymentPolicy:

    def test_reject_is_default(self, recorder, audit_trail):
        with pytest.raises(OverpaymentError):
            recorder.record(_request("1500.01"), make_schedule("1000", "500"))
        assert len(audit_trail) == 0

    def test_hold_as_credit(self, payment_catalog, deterministic_clock):
        recorder = PaymentRecorder(
            payment_catalog,
            deterministic_clock,
            overpayment_policy=OverpaymentPolicy.HOLD_AS_CREDIT,
        )

        record = recorder.record(_request("250"), make_schedule("100"))

        assert record.credit_held == php("150")
        assert record.allocation.remaining_unapplied == php("150")
        assert record.schedule[0].status == InstallmentStatus.COMPLETED

    def test_allow_reports_unapplied_only(self, payment_catalog, deterministic_clock):
        recorder = PaymentRecorder(
            payment_catalog,
            deterministic_clock,
            overpayment_policy=OverpaymentPolicy.ALLOW,
        )

        record = recorder.record(_request("250"), make_schedule("100"))

        assert record.credit_held.is_zero
        assert record.allocation.remaining_unapplied == php("150")

    def test_policy_accepts_string(self, payment_catalog):
        recorder = PaymentRecorder(payment_catalog, overpayment_policy="ALLOW")
        assert recorder.overpayment_policy is OverpaymentPolicy.ALLOW


class TestPayablesCascade:

    def _expense(self, amount):
        return _request(amount, record_id="EXP-001", flow=PaymentFlow.EXPENSE)

    def test_payables_cascade_by_default(self, recorder):
        record = recorder.record(self._expense("150"), make_schedule("100", "100"))
        assert record.cascaded

    def test_cascade_disabled_rejects_spillover(self, payment_catalog, deterministic_clock):
        recorder = PaymentRecorder(payment_catalog, deterministic_clock, cascade_payables=False)

        with pytest.raises(CascadeNotAllowedError) as exc_info:
            recorder.record(self._expense("150"), make_schedule("100", "100"))

        assert exc_info.value.installment_id == "inst-1"
        assert exc_info.value.balance == "100"

    def test_cascade_disabled_allows_within_balance(self, payment_catalog, deterministic_clock):
        recorder = PaymentRecorder(payment_catalog, deterministic_clock, cascade_payables=False)
        record = recorder.record(self._expense("100"), make_schedule("100", "100"))
        assert record.allocation.affected_ids == ("inst-1",)

    def test_cascade_switch_ignores_receivables(self, payment_catalog, deterministic_clock):
        recorder = PaymentRecorder(payment_catalog, deterministic_clock, cascade_payables=False)
        record = recorder.record(_request("150"), make_schedule("100", "100"))
        assert record.cascaded


class TestPreview:

    def test_preview_matches_record(self, recorder):
        schedule = make_schedule("1000", "500")
        preview = recorder.preview(_request("1200"), schedule)
        record = recorder.record(_request("1200"), schedule)
        assert preview == record.allocation

    def test_preview_writes_no_audit(self, recorder, audit_trail):
        recorder.preview(_request("100"), make_schedule("1000"))
        assert len(audit_trail) == 0

    def test_preview_runs_checks(self, recorder):
        with pytest.raises(OverpaymentError):
            recorder.preview(_request("2000"), make_schedule("1000"))


class TestAuditTrail:

    def test_entry_written(self, recorder, audit_trail, deterministic_clock):
        request = _request(
            "1200", record_ref="INV-2024-01", reference_number="OR-55", remarks="walk-in",
        )

        record = recorder.record(request, make_schedule("1000", "500"))

        (entry,) = audit_trail.entries
        assert entry.payment_id == record.payment_id
        assert entry.action == "PAYMENT_RECORDED"
        assert entry.actor == "cashier-7"
        assert entry.occurred_at == deterministic_clock.now()
        assert entry.details["installments"] == "inst-1,inst-2"
        assert entry.details["record_ref"] == "INV-2024-01"
        assert entry.details["reference_number"] == "OR-55"
        assert entry.details["remarks"] == "walk-in"
        assert entry.details["payment_date"] == "2024-02-01"

    def test_for_record(self, recorder, audit_trail):
        schedule = make_schedule("1000")
        recorder.record(_request("100"), schedule)
        recorder.record(_request("100", record_id="REV-002"), schedule)

        assert len(audit_trail.for_record("REV-002")) == 1
        assert [e.record_id for e in audit_trail] == ["REV-001", "REV-002"]

    def test_recorded_log_carries_context(self, recorder, captured_logs):
        record = recorder.record(_request("100"), make_schedule("1000"))

        logged = next(r for r in captured_logs() if r["message"] == "payment_recorded")
        assert logged["payment_id"] == str(record.payment_id)
        assert logged["record_id"] == "REV-001"
        assert logged["actor_id"] == "cashier-7"
        assert logged["method_code"] == "CASH"


class TestFromConfig:

    def test_default_config(self, deterministic_clock):
        trail = AuditTrail()
        recorder = PaymentRecorder.from_config(get_active_config(), deterministic_clock, trail)

        assert recorder.overpayment_policy is OverpaymentPolicy.REJECT
        assert recorder.audit_trail is trail
        record = recorder.record(_request("100", payment_method_id=3), make_schedule("100"))
        assert record.method_code == "E_WALLET"

    def test_default_config_sets_operating_currency(self, deterministic_clock):
        recorder = PaymentRecorder.from_config(get_active_config(), deterministic_clock)

        assert recorder.currency == Currency("PHP")


class TestOperatingCurrency:
    """A recorder with a currency refuses payments in any other."""

    def test_config_currency_rejects_foreign_payment(self, deterministic_clock, captured_logs):
        trail = AuditTrail()
        recorder = PaymentRecorder.from_config(get_active_config(), deterministic_clock, trail)
        request = _request("100", amount=Money.of("100", "USD"))

        with pytest.raises(CurrencyMismatchError) as exc_info:
            recorder.record(request, make_schedule("100", currency="USD"))

        assert (exc_info.value.expected, exc_info.value.received) == ("PHP", "USD")
        assert len(trail) == 0
        rejected = next(r for r in captured_logs() if r["message"] == "payment_rejected")
        assert rejected["error_code"] == "CURRENCY_MISMATCH"

    def test_preview_applies_same_check(self, payment_catalog):
        recorder = PaymentRecorder(payment_catalog, currency="php")

        with pytest.raises(CurrencyMismatchError):
            recorder.preview(
                _request("100", amount=Money.of("100", "USD")),
                make_schedule("100", currency="USD"),
            )

    def test_schedule_in_other_currency(self, payment_catalog):
        recorder = PaymentRecorder(payment_catalog, currency="PHP")

        with pytest.raises(CurrencyMismatchError):
            recorder.record(_request("100"), make_schedule("100", currency="USD"))

    def test_no_currency_accepts_any(self, payment_catalog):
        recorder = PaymentRecorder(payment_catalog)

        record = recorder.record(
            _request("100", amount=Money.of("100", "USD")),
            make_schedule("100", currency="USD"),
        )

        assert recorder.currency is None
        assert record.allocation.total_applied == Money.of("100", "USD")
