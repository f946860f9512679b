from datetime import date
from decimal import Decimal

import pytest

from networth_calc.data_models import (
    AnnualExtraPayment,
    MonthlyExtraPayment,
    extra_payment_rule,
)
from networth_calc.engine import EXTRA_PERIOD_ALLOWANCE, project_with_extra_payments, schedule

D = Decimal
START = date(2024, 1, 1)


@pytest.mark.parametrize(
    "principal, rate, term",
    [("300000", "6", 30), ("100000", "0", 10), ("45000", "4.2", 5), ("1000", "12", 50)],
)
def test_no_extra_payments_matches_standard_schedule(principal, rate, term):
    standard = schedule(D(principal), D(rate), term, START)
    result = project_with_extra_payments(D(principal), D(rate), term, START, [])
    assert result.interest_saved == 0
    assert len(result.schedule) == len(standard)
    assert [e.principal for e in result.schedule] == [e.principal for e in standard]
    assert [e.balance for e in result.schedule] == [e.balance for e in standard]
    assert all(e.extra_payment == 0 for e in result.schedule)
    if len(standard) == term * 12:
        assert result.months_saved == 0


def test_missing_rule_list_is_the_same_as_empty():
    result = project_with_extra_payments(D("300000"), D("6"), 30, START)
    assert result.months_saved == 0
    assert result.payoff_date == date(2053, 12, 1)


@pytest.mark.parametrize("extra", ["25", "200", "1000", "5000"])
def test_monthly_extra_payment_saves_interest_and_time(extra):
    rules = [MonthlyExtraPayment(amount=D(extra), start_date=START)]
    result = project_with_extra_payments(D("300000"), D("6"), 30, START, rules)
    assert result.months_saved > 0
    assert result.interest_saved > 0
    assert result.schedule[-1].balance == 0
    assert result.schedule[0].extra_payment == D(extra)
    assert result.payoff_date < result.standard_schedule[-1].date


def test_monthly_rule_starts_on_its_effective_date():
    rules = [MonthlyExtraPayment(amount=D("100"), start_date=date(2024, 6, 1))]
    result = project_with_extra_payments(D("300000"), D("6"), 30, START, rules)
    assert [e.extra_payment for e in result.schedule[:5]] == [D("0.00")] * 5
    assert result.schedule[5].date == date(2024, 6, 1)
    assert result.schedule[5].extra_payment == D("100.00")


def test_annual_rule_only_on_anniversary_months():
    rule = AnnualExtraPayment(amount=D("5000"), start_date=date(2024, 3, 15))
    assert rule.anchor_month == 3
    result = project_with_extra_payments(D("300000"), D("6"), 30, START, [rule])
    with_extra = [e.date for e in result.schedule if e.extra_payment]
    assert with_extra[0] == date(2025, 3, 1)
    assert all(d.month == 3 for d in with_extra)
    assert date(2024, 3, 1) not in with_extra
    assert result.months_saved > 0


def test_rules_are_summed_per_period():
    rules = [
        extra_payment_rule(D("100"), "monthly", START),
        extra_payment_rule(D("50"), "monthly", START),
        extra_payment_rule(D("1000"), "annual", date(2023, 1, 10)),
    ]
    result = project_with_extra_payments(D("300000"), D("6"), 30, START, rules)
    assert result.schedule[0].extra_payment == D("1150.00")
    assert result.schedule[1].extra_payment == D("150.00")


def test_extra_payment_that_retires_the_balance():
    rules = [MonthlyExtraPayment(amount=D("1000000"), start_date=START)]
    result = project_with_extra_payments(D("300000"), D("6"), 30, START, rules)
    assert len(result.schedule) == 1
    only = result.schedule[0]
    assert only.principal == D("300000.00")
    assert only.balance == 0
    assert only.extra_payment == D("299701.35")
    assert result.months_saved == 359
    assert result.payoff_date == START


def test_projection_terminates_when_extra_payments_are_negative():
    rules = [MonthlyExtraPayment(amount=D("-5000"), start_date=START)]
    result = project_with_extra_payments(D("100000"), D("6"), 10, START, rules)
    assert len(result.schedule) <= 10 * 12 + EXTRA_PERIOD_ALLOWANCE
    # the nominal last payment clears the grown balance, so the cap is never hit
    assert len(result.schedule) == 10 * 12
    assert result.schedule[-1].balance == 0
    assert result.months_saved == 0


def test_total_interest_is_sum_of_rows():
    rules = [MonthlyExtraPayment(amount=D("300"), start_date=START)]
    result = project_with_extra_payments(D("150000"), D("5.5"), 20, START, rules)
    assert result.total_interest == sum(e.interest for e in result.schedule)
    standard_interest = sum(e.interest for e in result.standard_schedule)
    assert result.interest_saved == standard_interest - result.total_interest


def test_unknown_frequency_is_rejected():
    with pytest.raises(ValueError):
        extra_payment_rule(D("100"), "weekly", START)
