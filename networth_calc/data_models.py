"""Data models for the net worth calculator.

This module defines dataclasses representing the entities used by the
calculator: loans and their extra-payment rules, recorded payments, bank and
investment accounts, households, daily net worth snapshots and the computed
values the engine returns (schedule entries, projections, trend and forecast
points). Using dataclasses makes it easy to construct, inspect and serialize
these structures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Union


class Frequency(str, Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"


class PaymentType(str, Enum):
    """How a recorded payment is split.

    ``REGULAR`` pays the month's interest first and the rest goes to
    principal. ``EXTRA`` is a principal-only supplemental payment.
    """

    REGULAR = "regular"
    EXTRA = "extra"


class AccountCategory(str, Enum):
    BANK = "bank"
    INVESTMENT = "investment"


@dataclass(frozen=True)
class MonthlyExtraPayment:
    """An extra principal payment made every period on or after ``start_date``."""

    amount: Decimal
    start_date: date
    id: Optional[str] = None

    frequency = Frequency.MONTHLY

    def applies_to(self, period_date: date) -> bool:
        return period_date >= self.start_date


@dataclass(frozen=True)
class AnnualExtraPayment:
    """An extra principal payment made once a year in the anchor month.

    The anchor month is the month of ``start_date``. The first contribution
    falls in the anniversary month one year after ``start_date``, whatever
    the day of the month.
    """

    amount: Decimal
    start_date: date
    id: Optional[str] = None

    frequency = Frequency.ANNUAL

    @property
    def anchor_month(self) -> int:
        return self.start_date.month

    def applies_to(self, period_date: date) -> bool:
        return period_date.month == self.anchor_month and period_date.year > self.start_date.year


ExtraPaymentRule = Union[MonthlyExtraPayment, AnnualExtraPayment]


def extra_payment_rule(
    amount: Decimal, frequency: Union[str, Frequency], start_date: date, id: Optional[str] = None
) -> ExtraPaymentRule:
    """Build the rule variant matching ``frequency``.

    Raises ``ValueError`` for an unknown frequency.
    """
    freq = Frequency(frequency)
    if freq is Frequency.MONTHLY:
        return MonthlyExtraPayment(amount=amount, start_date=start_date, id=id)
    return AnnualExtraPayment(amount=amount, start_date=start_date, id=id)


@dataclass
class Loan:
    """One amortizing debt obligation.

    ``current_balance`` is authoritative: it is decremented by recorded
    payments and restored when a payment is deleted, but it is never
    re-derived from the payment ledger.
    """

    id: str
    household_id: str
    original_amount: Decimal
    current_balance: Decimal
    annual_rate: Decimal  # annual nominal interest rate in percent
    term_years: int
    start_date: date
    monthly_payment: Decimal
    lender: str = ""
    loan_type: str = "mortgage"
    is_deleted: bool = False


@dataclass
class PaymentBreakdown:
    principal_paid: Decimal
    interest_paid: Decimal


@dataclass
class PaymentRecord:
    """A real payment made against a loan, as kept in the ledger."""

    id: str
    loan_id: str
    date: date
    amount: Decimal
    payment_type: PaymentType
    principal_paid: Decimal
    interest_paid: Decimal
    note: str = ""
    created_at: Optional[datetime] = None


@dataclass
class Account:
    """A bank or investment account; only the balance matters for totals."""

    id: str
    household_id: str
    category: AccountCategory
    balance: Decimal
    institution: str = ""
    account_type: str = ""
    is_deleted: bool = False


@dataclass
class Household:
    id: str
    name: str = ""
    currency: str = "USD"
    timezone: Optional[str] = None
    home_purchase_price: Optional[Decimal] = None
    home_purchase_date: Optional[date] = None
    appreciation_rate: Decimal = Decimal("0")  # percent per year


@dataclass
class Totals:
    total_bank_balance: Decimal
    total_investments: Decimal
    home_value: Decimal
    mortgage_balance: Decimal

    @property
    def net_worth(self) -> Decimal:
        return (
            self.total_bank_balance
            + self.total_investments
            + self.home_value
            - self.mortgage_balance
        )

    @property
    def home_equity(self) -> Decimal:
        return self.home_value - self.mortgage_balance


@dataclass
class Snapshot:
    """One household's financial summary for a calendar day.

    ``net_worth`` is always derived from the four stored fields.
    """

    id: str
    household_id: str
    date: date
    total_bank_balance: Decimal
    total_investments: Decimal
    home_value: Decimal
    mortgage_balance: Decimal
    created_at: Optional[datetime] = None

    @property
    def net_worth(self) -> Decimal:
        return (
            self.total_bank_balance
            + self.total_investments
            + self.home_value
            - self.mortgage_balance
        )


@dataclass
class ScheduleEntry:
    """An entry in the amortization schedule.

    Each entry corresponds to one month. ``extra_payment`` is only set by the
    extra-payment projection and is the extra principal actually applied.
    """

    payment_number: int
    date: date
    payment: Decimal
    principal: Decimal
    interest: Decimal
    balance: Decimal
    extra_payment: Optional[Decimal] = None


@dataclass
class ProjectionResult:
    schedule: List[ScheduleEntry]
    total_interest: Decimal
    payoff_date: Optional[date]
    interest_saved: Decimal
    months_saved: int
    standard_schedule: List[ScheduleEntry] = field(default_factory=list)


@dataclass
class TrendPoint:
    date: date
    net_worth: Decimal
    total_banks: Decimal
    total_investments: Decimal
    home_equity: Decimal


@dataclass
class ForecastPoint:
    date: date
    forecast_net_worth: Decimal
