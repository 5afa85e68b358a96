"""
Unit tests for the installment planner.

Verifies:
- Amounts sum exactly to the financed remainder (last absorbs rounding)
- Calendar month arithmetic with day overflow for monthly/quarterly plans
- Fixed-day periods for weekly/biweekly plans
- Non-positive counts treated as 1
- Milestone schedule
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from studio_kernel.domain.values import Money
from studio_kernel.exceptions import ValidationError
from studio_modules.installments.models import PaymentFrequency
from studio_modules.installments.planner import (
    add_months,
    add_period,
    plan_down_payment,
    plan_installments,
    plan_milestones,
    split_evenly,
)


def ars(amount: str) -> Money:
    return Money.of(amount, "ARS")


class TestAddMonths:

    @pytest.mark.parametrize(
        "start, months, expected",
        [
            (date(2024, 1, 15), 1, date(2024, 2, 15)),
            (date(2024, 1, 31), 1, date(2024, 3, 2)),
            (date(2023, 1, 31), 1, date(2023, 3, 3)),
            (date(2024, 1, 31), 2, date(2024, 3, 31)),
            (date(2024, 3, 31), 1, date(2024, 5, 1)),
            (date(2024, 11, 30), 3, date(2025, 3, 2)),
            (date(2024, 12, 10), 1, date(2025, 1, 10)),
        ],
    )
    def test_overflow_rolls_into_next_month(self, start, months, expected):
        assert add_months(start, months) == expected

    def test_quarterly_is_three_months(self):
        assert add_period(date(2024, 1, 10), PaymentFrequency.QUARTERLY, 2) == date(2024, 7, 10)

    def test_weekly_and_biweekly(self):
        start = date(2024, 2, 26)
        assert add_period(start, "weekly", 1) == date(2024, 3, 4)
        assert add_period(start, PaymentFrequency.BIWEEKLY, 2) == start + timedelta(days=28)


class TestSplitEvenly:

    def test_last_absorbs_remainder(self):
        parts = split_evenly(ars("100.00"), 3)
        assert [p.amount for p in parts] == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]

    def test_exact_division(self):
        parts = split_evenly(ars("800000"), 4)
        assert all(p == ars("200000") for p in parts)

    def test_non_positive_count_is_one(self):
        assert split_evenly(ars("10"), 0) == [ars("10")]


class TestPlanInstallments:

    def test_monthly_plan(self):
        plan = plan_installments(
            total=ars("1000000"),
            down_payment=ars("200000"),
            count=4,
            frequency=PaymentFrequency.MONTHLY,
            first_payment_date=date(2024, 1, 31),
        )
        assert [p.number for p in plan] == [1, 2, 3, 4]
        assert [p.due_date for p in plan] == [
            date(2024, 1, 31), date(2024, 3, 2), date(2024, 3, 31), date(2024, 5, 1),
        ]
        assert all(p.amount == ars("200000") for p in plan)
        assert plan[0].description == "Cuota mensual 1 de 4"

    def test_count_zero_becomes_one(self):
        plan = plan_installments(ars("1000"), ars("0"), 0, "monthly", date(2024, 1, 1))
        assert len(plan) == 1
        assert plan[0].amount == ars("1000")

    def test_down_payment_above_total_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            plan_installments(ars("100"), ars("200"), 2, "monthly", date(2024, 1, 1))
        assert "down_payment_amount" in exc_info.value.field_errors

    def test_mixed_currency_rejected(self):
        with pytest.raises(ValidationError):
            plan_installments(ars("100"), Money.of("10", "USD"), 2, "monthly", date(2024, 1, 1))

    @settings(max_examples=200, deadline=None)
    @given(
        total_cents=st.integers(min_value=1, max_value=10**12),
        down_ratio=st.integers(min_value=0, max_value=100),
        count=st.integers(min_value=-2, max_value=60),
        frequency=st.sampled_from(list(PaymentFrequency)),
    )
    def test_down_payment_plus_installments_equals_total(self, total_cents, down_ratio, count, frequency):
        total = ars(str(Decimal(total_cents) / 100))
        down = ars(str((Decimal(total_cents) * down_ratio / 100).to_integral_value() / 100))
        plan = plan_installments(total, down, count, frequency, date(2024, 1, 31))

        assert len(plan) == max(count, 1)
        summed = sum((p.amount for p in plan), Money.zero("ARS"))
        assert down + summed == total
        regular = {p.amount for p in plan[:-1]}
        assert len(regular) <= 1
        if regular:
            assert Decimal("0") <= plan[-1].amount.amount - regular.pop().amount < Decimal("0.01") * len(plan)

    @settings(max_examples=100, deadline=None)
    @given(
        first=st.dates(min_value=date(2000, 1, 1), max_value=date(2090, 12, 31)),
        count=st.integers(min_value=1, max_value=36),
    )
    def test_monthly_due_dates_follow_calendar(self, first, count):
        plan = plan_installments(ars("1000"), ars("0"), count, "monthly", first)
        for p in plan:
            assert p.due_date == add_months(first, p.number - 1)


class TestDownPaymentAndMilestones:

    def test_down_payment_is_installment_zero(self):
        planned = plan_down_payment(ars("200000"), date(2024, 3, 15))
        assert planned.number == 0
        assert planned.is_down_payment
        assert planned.description == "Anticipo inicial"

    def test_milestones_sum_to_total(self):
        plan = plan_milestones(ars("1000000.01"), date(2024, 1, 1))
        assert len(plan) == 6
        assert plan[0].is_down_payment
        assert plan[0].amount == ars("200000.00")
        assert plan[-1].due_date == date(2024, 1, 1) + timedelta(days=240)
        assert sum((p.amount for p in plan), Money.zero("ARS")) == ars("1000000.01")
