"""Core calculation engine for the net worth calculator.

This module implements the loan math behind the dashboard: the fixed annuity
payment, the standard month-by-month amortization schedule, a projection that
injects recurring extra principal payments and reports what they save, the
interest/principal split of a single real payment, and the appreciation of a
home's purchase price.

All functions are pure and work on ``Decimal`` amounts. They do not validate
their inputs; negative principals, non-positive terms or negative rates are
rejected by the callers that parse user input.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, getcontext
from typing import Iterable, List, Optional, Union

from .data_models import (
    ExtraPaymentRule,
    PaymentBreakdown,
    PaymentType,
    ProjectionResult,
    ScheduleEntry,
)
from .utils import add_months, round_money, round_whole, years_between

getcontext().prec = 28  # increase precision for financial calculations

ZERO = Decimal("0")

# Hard limit on how many months past the nominal term a projection may run.
EXTRA_PERIOD_ALLOWANCE = 120


def _monthly_rate(annual_rate: Decimal) -> Decimal:
    return Decimal(annual_rate) / Decimal(100) / Decimal(12)


def monthly_payment(principal: Decimal, annual_rate: Decimal, term_years: int) -> Decimal:
    """Return the annuity (equal installment) monthly payment for a loan.

    The formula is:

        payment = P * (i * (1 + i)^n) / ((1 + i)^n - 1)

    where ``P`` is the principal, ``i`` is the monthly interest rate and
    ``n`` is the number of payments. The result is rounded to cents. When the
    interest rate is zero, the payment is exactly ``P / n``.
    """
    rate_per_month = _monthly_rate(annual_rate)
    num_payments = int(term_years) * 12
    if rate_per_month == 0:
        return Decimal(principal) / Decimal(num_payments)
    factor = (1 + rate_per_month) ** num_payments
    return round_money(Decimal(principal) * (rate_per_month * factor) / (factor - 1))


def schedule(
    principal: Decimal, annual_rate: Decimal, term_years: int, start_date: date
) -> List[ScheduleEntry]:
    """Compute the standard fixed-payment amortization schedule.

    One entry per month starting at ``start_date``. Principal, interest and
    balance are rounded to cents independently on every row; the drift this
    causes is not corrected. The schedule ends when the balance reaches zero or
    after ``term_years * 12`` payments, and the last nominal payment clears
    whatever residual the cent-rounded payment left behind.
    """
    rate_per_month = _monthly_rate(annual_rate)
    num_payments = int(term_years) * 12
    payment = monthly_payment(principal, annual_rate, term_years)

    entries: List[ScheduleEntry] = []
    balance = Decimal(principal)
    for period in range(1, num_payments + 1):
        if balance <= 0:
            break
        interest = balance * rate_per_month
        if period == num_payments:
            principal_paid = balance
        else:
            principal_paid = min(payment - interest, balance)
        balance = max(ZERO, balance - principal_paid)
        entries.append(
            ScheduleEntry(
                payment_number=period,
                date=add_months(start_date, period - 1),
                payment=round_money(interest + principal_paid),
                principal=round_money(principal_paid),
                interest=round_money(interest),
                balance=round_money(balance),
            )
        )
    return entries


def total_interest(entries: Iterable[ScheduleEntry]) -> Decimal:
    return round_money(sum((e.interest for e in entries), ZERO))


def project_with_extra_payments(
    principal: Decimal,
    annual_rate: Decimal,
    term_years: int,
    start_date: date,
    extra_payments: Optional[Iterable[ExtraPaymentRule]] = None,
) -> ProjectionResult:
    """Re-run the amortization with recurring extra principal payments.

    Each month the extra amounts of every rule that applies to that month are
    summed and added to the ordinary principal portion, capped at the
    remaining balance. The run goes on until the balance is paid off; the
    nominal last payment clears any residual, so a run never outlasts the
    term, even when negative extra amounts grow the balance. The
    ``term_years * 12 + EXTRA_PERIOD_ALLOWANCE`` month cap is a termination
    backstop only; no input the other functions accept reaches it.

    Parameters
    ----------
    extra_payments: Iterable[ExtraPaymentRule]
        ``MonthlyExtraPayment`` and ``AnnualExtraPayment`` rules. An empty or
        missing list reproduces the standard schedule.

    Returns
    -------
    ProjectionResult
        The modified schedule, its total interest and payoff date, and the
        interest and months saved against the standard schedule.
    """
    rules = list(extra_payments or [])
    standard = schedule(principal, annual_rate, term_years, start_date)
    standard_interest = total_interest(standard)

    rate_per_month = _monthly_rate(annual_rate)
    num_payments = int(term_years) * 12
    max_periods = num_payments + EXTRA_PERIOD_ALLOWANCE
    payment = monthly_payment(principal, annual_rate, term_years)

    entries: List[ScheduleEntry] = []
    balance = Decimal(principal)
    period = 0
    while balance > 0 and period < max_periods:
        period += 1
        period_date = add_months(start_date, period - 1)
        extra = sum((Decimal(r.amount) for r in rules if r.applies_to(period_date)), ZERO)

        interest = balance * rate_per_month
        base_principal = payment - interest
        principal_paid = min(base_principal + extra, balance)
        extra_applied = max(ZERO, min(extra, principal_paid - base_principal))
        # The nominal last payment clears the residual, as in ``schedule``.
        if period == num_payments:
            principal_paid = balance
        balance = max(ZERO, balance - principal_paid)

        entries.append(
            ScheduleEntry(
                payment_number=period,
                date=period_date,
                payment=round_money(interest + principal_paid),
                principal=round_money(principal_paid),
                interest=round_money(interest),
                balance=round_money(balance),
                extra_payment=round_money(extra_applied),
            )
        )

    modified_interest = total_interest(entries)
    return ProjectionResult(
        schedule=entries,
        total_interest=modified_interest,
        payoff_date=entries[-1].date if entries else None,
        interest_saved=round_money(standard_interest - modified_interest),
        months_saved=num_payments - len(entries),
        standard_schedule=standard,
    )


def balance_at_date(
    original_amount: Decimal,
    annual_rate: Decimal,
    term_years: int,
    start_date: date,
    as_of: date,
) -> Decimal:
    """Return the scheduled balance on ``as_of`` per the standard schedule.

    Before the first payment date this is the original amount; after the last
    scheduled payment the loan is paid off.
    """
    entries = schedule(original_amount, annual_rate, term_years, start_date)
    previous: Optional[ScheduleEntry] = None
    for entry in entries:
        if entry.date > as_of:
            return previous.balance if previous else Decimal(original_amount)
        previous = entry
    return ZERO


def split_payment(
    current_balance: Decimal,
    annual_rate: Decimal,
    payment_amount: Decimal,
    payment_type: Union[str, PaymentType],
) -> PaymentBreakdown:
    """Split a single real payment into the principal and interest it covers.

    An ``extra`` payment goes entirely to principal, capped at the balance.
    A ``regular`` payment first covers one month of interest on the current
    balance; the remainder goes to principal, capped at the balance. When
    the payment does not cover the interest, ``principal_paid`` is zero and
    the shortfall is not tracked.
    """
    balance = Decimal(current_balance)
    amount = Decimal(payment_amount)
    if PaymentType(payment_type) is PaymentType.EXTRA:
        return PaymentBreakdown(principal_paid=min(amount, balance), interest_paid=ZERO)

    interest_paid = round_money(balance * _monthly_rate(annual_rate))
    principal_paid = max(ZERO, min(amount - interest_paid, balance))
    return PaymentBreakdown(principal_paid=round_money(principal_paid), interest_paid=interest_paid)


def payment_retires_balance(
    breakdown: PaymentBreakdown,
    payment_amount: Decimal,
    payment_type: Union[str, PaymentType] = PaymentType.REGULAR,
) -> bool:
    """True when a regular payment was capped because it pays off the loan.

    Callers use this to ask the user for confirmation before recording it.
    """
    if PaymentType(payment_type) is not PaymentType.REGULAR:
        return False
    # principal_paid is in cents, so compare against the cent-rounded remainder.
    return breakdown.principal_paid < round_money(Decimal(payment_amount) - breakdown.interest_paid)


def home_value(
    purchase_price: Decimal,
    purchase_date: Union[date, datetime],
    appreciation_rate: Decimal,
    as_of: Union[date, datetime, None] = None,
) -> Decimal:
    """Compound the purchase price forward at an annual appreciation rate.

    ``value = price * (1 + rate/100) ** years_owned`` with years of 365.25
    days, rounded to a whole currency unit. ``as_of`` defaults to now.
    """
    if as_of is None:
        as_of = datetime.now().astimezone()
    years_owned = years_between(purchase_date, as_of)
    multiplier = (1 + Decimal(appreciation_rate) / Decimal(100)) ** years_owned
    return round_whole(Decimal(purchase_price) * multiplier)


def equity(home_value: Decimal, loan_balance: Decimal) -> Decimal:
    """Home value minus the loan balance; negative equity is returned as is."""
    return Decimal(home_value) - Decimal(loan_balance)
