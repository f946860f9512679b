"""Output helpers for the net worth calculator.

This module provides simple functions to render amortization schedules,
projection summaries, payment splits and forecasts in a tabular text format
using built-in printing and string formatting.
"""

from __future__ import annotations

from typing import Iterable

from .data_models import ForecastPoint, PaymentBreakdown, ProjectionResult, ScheduleEntry


def print_summary(result: ProjectionResult, monthly_payment) -> None:
    """Print a summary of a projection in a human-readable format."""
    standard_interest = sum(e.interest for e in result.standard_schedule)
    print("Summary")
    print("-" * 72)
    print(f"Monthly payment    : {monthly_payment:.2f}")
    print(f"Standard interest  : {standard_interest:.2f}")
    print(f"Total interest     : {result.total_interest:.2f}")
    if result.standard_schedule:
        print(f"Original end date  : {result.standard_schedule[-1].date:%Y-%m}")
    if result.payoff_date:
        print(f"Payoff date        : {result.payoff_date:%Y-%m}")
    print(f"Payments made      : {len(result.schedule)}")
    if result.interest_saved:
        print(f"Interest saved     : {result.interest_saved:.2f}")
    if result.months_saved:
        print(f"Term reduction     : {result.months_saved} months")
    print("-" * 72)


def print_schedule(schedule: Iterable[ScheduleEntry], show_extra: bool = False) -> None:
    """Print the amortization schedule as a simple table.

    Parameters
    ----------
    schedule: Iterable[ScheduleEntry]
        The schedule entries to print.
    show_extra: bool
        Whether to include the ``Extra`` column of a projection.
    """
    headers = ["No", "Date", "Payment", "Principal", "Interest"]
    if show_extra:
        headers.append("Extra")
    headers.append("Balance")
    print("\t".join(headers))
    for entry in schedule:
        row = [
            str(entry.payment_number),
            entry.date.strftime("%Y-%m-%d"),
            f"{entry.payment:.2f}",
            f"{entry.principal:.2f}",
            f"{entry.interest:.2f}",
        ]
        if show_extra:
            row.append(f"{entry.extra_payment or 0:.2f}")
        row.append(f"{entry.balance:.2f}")
        print("\t".join(row))


def print_breakdown(breakdown: PaymentBreakdown, amount) -> None:
    print(f"Payment            : {amount:.2f}")
    print(f"Principal paid     : {breakdown.principal_paid:.2f}")
    print(f"Interest paid      : {breakdown.interest_paid:.2f}")


def print_forecast(points: Iterable[ForecastPoint]) -> None:
    print("Date\tProjected net worth")
    for point in points:
        print(f"{point.date:%Y-%m-%d}\t{point.forecast_net_worth:.2f}")
