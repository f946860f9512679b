"""Utility functions for the net worth calculator.

This module provides helpers for parsing user input into Python data types,
rounding money to the currency minor unit and handling dates, including adding
months and normalizing instants to a calendar day in a given timezone.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, getcontext
import calendar
from typing import Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

CENT = Decimal("0.01")
UNIT = Decimal("1")
DAYS_PER_YEAR = Decimal("365.25")
SECONDS_PER_DAY = Decimal(24 * 60 * 60)


def round_money(value: Decimal) -> Decimal:
    """Round to two decimal places, halves away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round_whole(value: Decimal) -> Decimal:
    return value.quantize(UNIT, rounding=ROUND_HALF_UP)


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` (or ``YYYY-MM``) string into a ``date``.

    A missing day component means the first day of the month.

    Raises
    ------
    ValueError
        If the string is not a valid date.
    """
    try:
        parts = value.strip().split("-")
        if len(parts) < 2:
            raise ValueError
        year = int(parts[0])
        month = int(parts[1])
        day = int(parts[2][:2]) if len(parts) > 2 else 1
        return date(year, month, day)
    except Exception as exc:
        raise ValueError(f"Invalid date string: {value}") from exc


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def decimal_from_str(value: Union[str, int, float, Decimal]) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and handles both integer and float-like
    strings. It raises ``ValueError`` if conversion fails.
    """
    if isinstance(value, Decimal):
        return value
    try:
        cleaned = str(value).replace(",", "").strip()
        result = Decimal(cleaned)
    except Exception as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def as_instant(value: Union[date, datetime]) -> datetime:
    """Promote a ``date`` to midnight UTC; attach UTC to naive datetimes."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def years_between(start: Union[date, datetime], end: Union[date, datetime]) -> Decimal:
    """Elapsed time in years of 365.25 days (negative when ``end`` is earlier)."""
    elapsed = as_instant(end) - as_instant(start)
    seconds = Decimal(elapsed.days) * SECONDS_PER_DAY + Decimal(elapsed.seconds)
    seconds += Decimal(elapsed.microseconds) / Decimal(1_000_000)
    return seconds / (DAYS_PER_YEAR * SECONDS_PER_DAY)


def local_day(instant: Union[date, datetime, None] = None, tz: str = "UTC") -> date:
    """Return the calendar day ``instant`` falls on in timezone ``tz``.

    Naive datetimes are taken to be UTC and a bare ``date`` is already a day.
    ``None`` means now.
    """
    if instant is None:
        instant = datetime.now(timezone.utc)
    if not isinstance(instant, datetime):
        return instant
    return as_instant(instant).astimezone(ZoneInfo(tz)).date()


def parse_timezone(value: str) -> str:
    """Return ``value`` if it names an IANA timezone, else raise ``ValueError``."""
    name = str(value).strip()
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {value}") from exc
    return name
