"""Command-line interface for the net worth calculator.

This module uses the ``click`` library to implement a multi-command
interface. Users can compute a loan's monthly payment, print its amortization
schedule (optionally with recurring extra payments), split a real payment into
principal and interest, value a home with appreciation and project net worth
forward. Schedules can be exported to JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click

from .data_models import ExtraPaymentRule, ProjectionResult, ScheduleEntry, TrendPoint, extra_payment_rule
from .engine import home_value, monthly_payment, payment_retires_balance, project_with_extra_payments, split_payment
from .formatter import print_breakdown, print_forecast, print_schedule, print_summary
from .snapshots import DEFAULT_GROWTH_RATE, TIME_RANGE_DAYS, build_forecast, forecast_horizon
from .utils import decimal_from_str, parse_date


def parse_amount(value: str) -> Decimal:
    """Parse a numeric string with optional suffixes.

    Accepts plain numbers ("500000") and shorthand with ``k``/``m`` suffixes
    (e.g., "500k" meaning 500_000).
    """
    value = value.strip().lower()
    value = value.replace(",", "")
    factor = Decimal(1)
    if value.endswith("k"):
        factor = Decimal(1_000)
        value = value[:-1]
    elif value.endswith("m"):
        factor = Decimal(1_000_000)
        value = value[:-1]
    try:
        return decimal_from_str(value) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")


def parse_date_option(value: str) -> date:
    try:
        return parse_date(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def parse_extra_payment_strings(values: Tuple[str, ...]) -> List[ExtraPaymentRule]:
    rules: List[ExtraPaymentRule] = []
    for item in values:
        parts = item.split(":")
        if len(parts) != 3:
            raise click.BadParameter(
                f"Extra payment must be in AMOUNT:FREQUENCY:YYYY-MM-DD format; got {item}"
            )
        amt_str, freq, start = parts
        amount = parse_amount(amt_str)
        if amount <= 0:
            raise click.BadParameter(f"Extra payment amount must be positive; got {amt_str}")
        freq = freq.lower()
        if freq not in ("monthly", "annual"):
            raise click.BadParameter(
                f"Extra payment frequency must be 'monthly' or 'annual'; got {freq}"
            )
        rules.append(extra_payment_rule(amount, freq, parse_date_option(start)))
    return rules


def validate_loan_terms(principal: Decimal, rate: float, term: int) -> None:
    if principal <= 0:
        raise click.BadParameter("Principal must be positive")
    if rate < 0:
        raise click.BadParameter("Rate cannot be negative")
    if term <= 0:
        raise click.BadParameter("Term must be positive")


def _schedule_rows(schedule: List[ScheduleEntry]) -> List[Dict[str, Any]]:
    rows = []
    for e in schedule:
        rows.append(
            {
                "payment_number": e.payment_number,
                "date": e.date.isoformat(),
                "payment": float(e.payment),
                "principal": float(e.principal),
                "interest": float(e.interest),
                "extra_payment": float(e.extra_payment or 0),
                "balance": float(e.balance),
            }
        )
    return rows


def export_to_json(path: Path, result: ProjectionResult, payment: Decimal) -> None:
    """Export the projection and its summary to a JSON file."""
    data = {
        "summary": {
            "monthly_payment": float(payment),
            "total_interest": float(result.total_interest),
            "payoff_date": result.payoff_date.isoformat() if result.payoff_date else None,
            "interest_saved": float(result.interest_saved),
            "months_saved": result.months_saved,
        },
        "schedule": _schedule_rows(result.schedule),
    }
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_to_csv(path: Path, schedule: List[ScheduleEntry]) -> None:
    """Export schedule to a CSV file."""
    header = ["Payment_Number", "Date", "Payment", "Principal", "Interest", "Extra_Payment", "Balance"]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for row in _schedule_rows(schedule):
            writer.writerow(list(row.values()))


@click.group()
def cli() -> None:
    """Household loan and net worth calculator."""
    pass


@cli.command()
@click.option("--principal", "-p", "principal", required=True, help="Loan amount")
@click.option("--rate", "-r", "rate", required=True, type=float, help="Annual interest rate (percent)")
@click.option("--term", "-t", "term", required=True, type=int, help="Loan term in years")
def payment(principal: str, rate: float, term: int) -> None:
    """Print the fixed monthly payment for a loan."""
    principal_value = parse_amount(principal)
    validate_loan_terms(principal_value, rate, term)
    amount = monthly_payment(principal_value, decimal_from_str(str(rate)), term)
    click.echo(f"{amount:.2f}")


@cli.command()
@click.option("--principal", "-p", "principal", required=True, help="Loan amount")
@click.option("--rate", "-r", "rate", required=True, type=float, help="Annual interest rate (percent)")
@click.option("--term", "-t", "term", required=True, type=int, help="Loan term in years")
@click.option("--start-date", "-s", "start_date", required=True, help="First payment date (YYYY-MM-DD)")
@click.option(
    "--extra",
    "extra",
    multiple=True,
    help="Recurring extra payment in AMOUNT:FREQUENCY:YYYY-MM-DD format. Example: --extra 200:monthly:2024-01-01",
)
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def schedule(
    principal: str,
    rate: float,
    term: int,
    start_date: str,
    extra: Tuple[str, ...],
    output: Optional[str],
) -> None:
    """Compute and print the amortization schedule."""
    principal_value = parse_amount(principal)
    validate_loan_terms(principal_value, rate, term)
    rate_value = decimal_from_str(str(rate))
    start = parse_date_option(start_date)
    rules = parse_extra_payment_strings(extra) if extra else []

    result = project_with_extra_payments(principal_value, rate_value, term, start, rules)
    amount = monthly_payment(principal_value, rate_value, term)
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, result, amount)
            click.echo(f"Schedule exported to {path}")
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, result.schedule)
            click.echo(f"Schedule exported to {path}")
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
    else:
        print_summary(result, amount)
        # Limit schedule length printed to avoid flooding the terminal
        max_rows = 120
        if len(result.schedule) > max_rows:
            click.echo(
                f"Schedule has {len(result.schedule)} rows; showing first {max_rows} rows."
            )
        print_schedule(result.schedule[:max_rows], show_extra=bool(rules))


@cli.command()
@click.option("--balance", "-b", "balance", required=True, help="Current loan balance")
@click.option("--rate", "-r", "rate", required=True, type=float, help="Annual interest rate (percent)")
@click.option("--amount", "-a", "amount", required=True, help="Amount paid")
@click.option("--type", "payment_type", type=click.Choice(["regular", "extra"]), default="regular", help="Payment type")
def split(balance: str, rate: float, amount: str, payment_type: str) -> None:
    """Split a payment into the principal and interest it pays."""
    balance_value = parse_amount(balance)
    amount_value = parse_amount(amount)
    breakdown = split_payment(balance_value, decimal_from_str(str(rate)), amount_value, payment_type)
    print_breakdown(breakdown, amount_value)
    if payment_retires_balance(breakdown, amount_value, payment_type):
        click.echo("This payment amount will pay off the remaining balance.")


@cli.command("home-value")
@click.option("--price", "price", required=True, help="Purchase price")
@click.option("--purchased", "purchased", required=True, help="Purchase date (YYYY-MM-DD)")
@click.option("--rate", "-r", "rate", type=float, default=0.0, help="Annual appreciation rate (percent)")
@click.option("--as-of", "as_of", help="Valuation date (YYYY-MM-DD); defaults to now")
@click.option("--balance", "balance", help="Outstanding loan balance, to show equity")
def home_value_command(price: str, purchased: str, rate: float, as_of: Optional[str], balance: Optional[str]) -> None:
    """Value a home by compounding its purchase price."""
    as_of_value = parse_date_option(as_of) if as_of else datetime.now().astimezone()
    value = home_value(parse_amount(price), parse_date_option(purchased), decimal_from_str(str(rate)), as_of_value)
    click.echo(f"Home value         : {value:.2f}")
    if balance:
        click.echo(f"Equity             : {value - parse_amount(balance):.2f}")


@cli.command()
@click.option("--net-worth", "net_worth", required=True, help="Net worth at the starting point")
@click.option("--date", "start", help="Date of the starting point (YYYY-MM-DD); defaults to today")
@click.option(
    "--window",
    "window",
    type=click.Choice(list(TIME_RANGE_DAYS), case_sensitive=False),
    default="1Y",
    help="Display window; selects the forecast horizon",
)
@click.option("--growth", "growth", type=float, help="Assumed annual growth rate (percent)")
def forecast(net_worth: str, start: Optional[str], window: str, growth: Optional[float]) -> None:
    """Project net worth forward at an assumed annual growth rate."""
    start_date = parse_date_option(start) if start else date.today()
    value = parse_amount(net_worth)
    last_point = TrendPoint(
        date=start_date, net_worth=value, total_banks=Decimal(0), total_investments=Decimal(0), home_equity=Decimal(0)
    )
    growth_rate = decimal_from_str(str(growth)) / 100 if growth is not None else DEFAULT_GROWTH_RATE
    print_forecast(build_forecast(last_point, forecast_horizon(window), growth_rate))


if __name__ == "__main__":
    cli()
