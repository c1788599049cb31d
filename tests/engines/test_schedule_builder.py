"""
Tests for the schedule builder.

Covers:
- Due date generation per frequency (month-end clamping, leap days)
- Equal split with the remainder on the last installment
- Re-splitting around locked (non-PENDING) installments
- Forward redistribution after editing one installment
- Schedule validation messages
"""

import pytest
from datetime import date

from payplan_engines.schedule_builder import (
    build_schedule,
    distribute_amount,
    generate_due_dates,
    redistribute_forward,
    split_equally,
    validate_schedule,
)
from payplan_kernel.domain.schedule import InstallmentStatus, ScheduleFrequency
from payplan_kernel.domain.values import Money
from payplan_kernel.exceptions import ScheduleDefinitionError
from tests.factories import make_schedule, php


def _total_due(schedule) -> Money:
    total = Money.zero("PHP")
    for inst in schedule:
        total = total + inst.amount_due
    return total


class TestGenerateDueDates:

    def test_daily(self):
        assert generate_due_dates(ScheduleFrequency.DAILY, date(2024, 2, 28), 3) == (
            date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1),
        )

    def test_weekly(self):
        dates = generate_due_dates(ScheduleFrequency.WEEKLY, date(2024, 1, 1), 3)
        assert dates == (date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15))

    def test_biweekly(self):
        dates = generate_due_dates(ScheduleFrequency.BIWEEKLY, date(2024, 1, 1), 2)
        assert dates == (date(2024, 1, 1), date(2024, 1, 15))

    def test_monthly_clamps_to_month_end(self):
        dates = generate_due_dates(ScheduleFrequency.MONTHLY, date(2024, 1, 31), 4)
        assert dates == (
            date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30),
        )

    def test_monthly_crosses_year(self):
        dates = generate_due_dates(ScheduleFrequency.MONTHLY, date(2024, 11, 15), 3)
        assert dates[-1] == date(2025, 1, 15)

    def test_annually_leap_day(self):
        dates = generate_due_dates(ScheduleFrequency.ANNUALLY, date(2024, 2, 29), 5)
        assert dates == (
            date(2024, 2, 29), date(2025, 2, 28), date(2026, 2, 28),
            date(2027, 2, 28), date(2028, 2, 29),
        )

    def test_custom_generates_nothing(self):
        assert generate_due_dates(ScheduleFrequency.CUSTOM, date(2024, 1, 1), 5) == ()

    def test_zero_count(self):
        assert generate_due_dates(ScheduleFrequency.MONTHLY, date(2024, 1, 1), 0) == ()

    def test_negative_count(self):
        with pytest.raises(ScheduleDefinitionError):
            generate_due_dates(ScheduleFrequency.MONTHLY, date(2024, 1, 1), -1)


class TestSplitEqually:

    def test_even_split(self):
        assert split_equally(php("300"), 3) == (php("100"), php("100"), php("100"))

    def test_last_absorbs_remainder(self):
        assert split_equally(php("100"), 3) == (php("33.33"), php("33.33"), php("33.34"))

    def test_tiny_total_never_negative(self):
        shares = split_equally(php("0.05"), 10)
        assert all(not s.is_negative for s in shares)
        assert sum((s.amount for s in shares)) == php("0.05").amount

    def test_zero_decimal_currency(self):
        shares = split_equally(Money.of("1000", "JPY"), 3)
        assert [s.amount for s in shares] == [333, 333, 334]

    def test_zero_parts(self):
        with pytest.raises(ScheduleDefinitionError):
            split_equally(php("100"), 0)

    def test_wide_total_sums_exactly(self):
        total = php("100000000000000000000000000000.00")
        shares = split_equally(total, 3)
        assert shares[0] == php("33333333333333333333333333333.33")
        assert shares[-1] == php("33333333333333333333333333333.34")
        assert shares[0] + shares[1] + shares[2] == total


class TestBuildSchedule:

    def test_builds_pending_numbered_schedule(self):
        dates = generate_due_dates(ScheduleFrequency.MONTHLY, date(2024, 1, 15), 3)

        schedule = build_schedule(php("1000"), dates, id_prefix="rev-7")

        assert [i.id for i in schedule] == ["rev-7-1", "rev-7-2", "rev-7-3"]
        assert [i.installment_number for i in schedule] == [1, 2, 3]
        assert [i.due_date for i in schedule] == list(dates)
        assert all(i.status == InstallmentStatus.PENDING for i in schedule)
        assert all(i.amount_paid.is_zero for i in schedule)
        assert [i.amount_due for i in schedule] == [php("333.33"), php("333.33"), php("333.34")]
        assert _total_due(schedule) == php("1000")

    def test_built_schedule_validates(self):
        dates = generate_due_dates(ScheduleFrequency.WEEKLY, date(2024, 1, 1), 7)
        schedule = build_schedule(php("999.99"), dates)
        assert validate_schedule(schedule, php("999.99")).is_valid

    def test_requires_dates(self):
        with pytest.raises(ScheduleDefinitionError, match="at least one"):
            build_schedule(php("100"), ())

    @pytest.mark.parametrize("total", ["0", "-1"])
    def test_requires_positive_total(self, total):
        with pytest.raises(ScheduleDefinitionError, match="positive"):
            build_schedule(php(total), (date(2024, 1, 1),))


class TestDistributeAmount:

    def test_all_pending(self):
        schedule = distribute_amount(php("900"), make_schedule("100", "100", "100"))
        assert [i.amount_due for i in schedule] == [php("300")] * 3

    def test_locked_installments_keep_amounts(self):
        schedule = make_schedule(
            ("400", "400", InstallmentStatus.COMPLETED),
            ("300", "100", InstallmentStatus.PARTIALLY_PAID),
            "100",
            "100",
        )

        result = distribute_amount(php("1000"), schedule)

        assert [i.amount_due for i in result] == [php("400"), php("300"), php("150"), php("150")]
        assert result[0] is schedule[0]
        assert _total_due(result) == php("1000")

    def test_nothing_pending_returns_schedule(self):
        schedule = make_schedule(("100", "100", InstallmentStatus.COMPLETED))
        assert distribute_amount(php("500"), schedule) == schedule

    def test_locked_exceeds_total(self):
        schedule = make_schedule(("800", "800", InstallmentStatus.COMPLETED), "100")
        with pytest.raises(ScheduleDefinitionError, match="exceed"):
            distribute_amount(php("500"), schedule)


class TestRedistributeForward:

    def test_splits_remainder_across_following(self):
        schedule = make_schedule("250", "250", "250", "250")

        result = redistribute_forward(php("1000"), schedule, 1, php("400"))

        assert [i.amount_due for i in result] == [php("250"), php("400"), php("175"), php("175")]
        assert result[0] is schedule[0]
        assert _total_due(result) == php("1000")

    def test_odd_cent_goes_to_last(self):
        schedule = make_schedule("250", "250", "250", "250")

        result = redistribute_forward(php("1000"), schedule, 0, php("100"))

        assert [i.amount_due for i in result] == [php("100"), php("300"), php("300"), php("300")]

        result = redistribute_forward(php("1000"), schedule, 0, php("0.01"))
        assert [i.amount_due for i in result][1:] == [php("333.33"), php("333.33"), php("333.33")]

    def test_locked_following_installments_kept(self):
        schedule = make_schedule(
            "250", "250", ("250", "250", InstallmentStatus.COMPLETED), "250",
        )

        result = redistribute_forward(php("1000"), schedule, 0, php("200"))

        assert [i.amount_due for i in result] == [php("200"), php("275"), php("250"), php("275")]
        assert _total_due(result) == php("1000")

    def test_last_installment_edit_changes_only_it(self):
        schedule = make_schedule("500", "500")

        result = redistribute_forward(php("1000"), schedule, 1, php("600"))

        assert [i.amount_due for i in result] == [php("500"), php("600")]

    def test_edit_non_pending_rejected(self):
        schedule = make_schedule(("500", "100", InstallmentStatus.PARTIALLY_PAID), "500")
        with pytest.raises(ScheduleDefinitionError, match="cannot be edited"):
            redistribute_forward(php("1000"), schedule, 0, php("300"))

    def test_index_out_of_range(self):
        with pytest.raises(ScheduleDefinitionError):
            redistribute_forward(php("1000"), make_schedule("500", "500"), 2, php("1"))

    def test_non_positive_amount(self):
        with pytest.raises(ScheduleDefinitionError, match="positive"):
            redistribute_forward(php("1000"), make_schedule("500", "500"), 0, php("0"))

    def test_edit_exceeding_total(self):
        with pytest.raises(ScheduleDefinitionError, match="exceed"):
            redistribute_forward(php("1000"), make_schedule("500", "500"), 0, php("1000.01"))


class TestValidateSchedule:

    def test_valid(self):
        result = validate_schedule(make_schedule("500", "500"), php("1000"))
        assert result.is_valid
        assert result.errors == ()

    def test_empty(self):
        result = validate_schedule((), php("1000"))
        assert not result.is_valid
        assert "at least one" in result.errors[0]

    def test_total_mismatch(self):
        result = validate_schedule(make_schedule("500", "499.99"), php("1000"))
        assert result.errors == ("Total amount mismatch: expected 1000, got 999.99",)

    def test_dates_must_increase(self):
        first, second = make_schedule("500", "500")
        same_day = second.__class__(
            id=second.id,
            installment_number=second.installment_number,
            due_date=first.due_date,
            amount_due=second.amount_due,
            amount_paid=second.amount_paid,
        )

        result = validate_schedule((first, same_day), php("1000"))

        assert result.errors == ("Installment 2 date must be after installment 1 date",)

    def test_zero_amount(self):
        result = validate_schedule(make_schedule("1000", "0"), php("1000"))
        assert result.errors == ("Installment 2 amount must be greater than zero",)

    def test_currency_mismatch(self):
        result = validate_schedule(make_schedule("1000"), Money.of("1000", "USD"))
        assert not result.is_valid
        assert "Currency mismatch" in result.errors[0]

    def test_collects_every_error(self):
        schedule = tuple(reversed(make_schedule("0", "600")))
        result = validate_schedule(schedule, php("1000"))
        # order, total, dates, amount
        assert len(result.errors) == 4
