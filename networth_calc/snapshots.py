"""Net worth snapshots, trend series and forecasts.

A snapshot is one household's totals for a calendar day: bank balances,
investments, the appreciated home value and the sum of outstanding loan
balances. Snapshots are upserted after every balance-affecting change, so a
household has at most one per day and the latest call of the day wins.

The store passed to ``upsert_snapshot`` and ``refresh_snapshot`` is any object
providing ``snapshot_for_day(household_id, day)`` and
``save_snapshot(snapshot)``; ``refresh_snapshot`` also needs
``get_household``, ``list_accounts`` and ``list_loans``.
``networth_calc_web.store.HouseholdStore`` is the SQLAlchemy implementation.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from .data_models import (
    Account,
    AccountCategory,
    ForecastPoint,
    Household,
    Loan,
    Snapshot,
    Totals,
    TrendPoint,
)
from .engine import home_value
from .utils import local_day, round_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Trailing display windows in days; ``None`` means all history.
TIME_RANGE_DAYS: Dict[str, Optional[int]] = {
    "1M": 30,
    "3M": 90,
    "6M": 180,
    "1Y": 365,
    "ALL": None,
}
DEFAULT_TIME_RANGE = "1Y"

# How far ahead the forecast line reaches for each display window.
FORECAST_HORIZON_DAYS: Dict[str, int] = {
    "1M": 14,
    "3M": 30,
    "6M": 60,
    "1Y": 90,
    "ALL": 90,
}

DEFAULT_GROWTH_RATE = Decimal("0.05")
FORECAST_STEP_DAYS = 7


def normalize_time_range(window: Optional[str]) -> str:
    """Map a window name to a known key; unknown names fall back to 1Y."""
    key = (window or "").upper()
    return key if key in TIME_RANGE_DAYS else DEFAULT_TIME_RANGE


def forecast_horizon(window: Optional[str]) -> int:
    return FORECAST_HORIZON_DAYS[normalize_time_range(window)]


def compute_totals(
    accounts: Iterable[Account],
    investments: Iterable[Account],
    household: Optional[Household],
    loans: Iterable[Loan],
    as_of: Optional[datetime] = None,
) -> Totals:
    """Sum the household's balances into snapshot totals.

    Deleted accounts and loans are skipped. The home value is only counted
    when the household has both a purchase price and a purchase date. Every
    loan balance counts toward ``mortgage_balance`` whatever the loan type.
    """
    total_bank_balance = sum((a.balance or ZERO for a in accounts or [] if not a.is_deleted), ZERO)
    total_investments = sum((i.balance or ZERO for i in investments or [] if not i.is_deleted), ZERO)

    value = ZERO
    if household and household.home_purchase_price and household.home_purchase_date:
        value = home_value(
            household.home_purchase_price,
            household.home_purchase_date,
            household.appreciation_rate or ZERO,
            as_of,
        )

    mortgage_balance = sum(
        (loan.current_balance or ZERO for loan in loans or [] if not loan.is_deleted), ZERO
    )
    return Totals(
        total_bank_balance=total_bank_balance,
        total_investments=total_investments,
        home_value=value,
        mortgage_balance=mortgage_balance,
    )


def upsert_snapshot(
    store,
    household_id: str,
    totals: Totals,
    as_of: Optional[datetime] = None,
    tz: str = "UTC",
) -> Snapshot:
    """Create or update the household's snapshot for the day of ``as_of``.

    The day is taken in timezone ``tz`` (the household's). An existing
    snapshot for that day has its totals overwritten; otherwise a new one is
    created. Calling this repeatedly on the same day never adds rows.
    """
    day = local_day(as_of, tz)
    existing = store.snapshot_for_day(household_id, day)
    if existing is not None:
        snapshot = replace(
            existing,
            total_bank_balance=totals.total_bank_balance,
            total_investments=totals.total_investments,
            home_value=totals.home_value,
            mortgage_balance=totals.mortgage_balance,
        )
    else:
        snapshot = Snapshot(
            id=uuid4().hex,
            household_id=household_id,
            date=day,
            total_bank_balance=totals.total_bank_balance,
            total_investments=totals.total_investments,
            home_value=totals.home_value,
            mortgage_balance=totals.mortgage_balance,
            created_at=datetime.now(timezone.utc),
        )
    return store.save_snapshot(snapshot)


def refresh_snapshot(
    store,
    household_id: str,
    as_of: Optional[datetime] = None,
    default_tz: str = "UTC",
) -> Optional[Snapshot]:
    """Recompute the household's totals from the store and upsert today's snapshot.

    This runs after a primary mutation has already been committed, so it
    never raises: failures are logged and ``None`` is returned.
    """
    try:
        household = store.get_household(household_id)
        totals = compute_totals(
            store.list_accounts(household_id, AccountCategory.BANK),
            store.list_accounts(household_id, AccountCategory.INVESTMENT),
            household,
            store.list_loans(household_id),
            as_of,
        )
        snapshot = upsert_snapshot(
            store, household_id, totals, as_of, household.timezone or default_tz
        )
    except Exception:
        logger.exception(f"Failed to refresh snapshot for household {household_id}.")
        return None
    logger.info(f"Snapshot {snapshot.date} updated for household {household_id}: net worth {snapshot.net_worth}.")
    return snapshot


def _trend_point(snapshot: Snapshot) -> TrendPoint:
    return TrendPoint(
        date=snapshot.date,
        net_worth=snapshot.net_worth,
        total_banks=snapshot.total_bank_balance,
        total_investments=snapshot.total_investments,
        home_equity=snapshot.home_value - snapshot.mortgage_balance,
    )


def build_trend_series(
    snapshots: Iterable[Snapshot],
    window: Optional[str] = DEFAULT_TIME_RANGE,
    current_totals: Optional[Totals] = None,
    today: Optional[date] = None,
) -> List[TrendPoint]:
    """Return the snapshots inside the trailing window as chart points, oldest first.

    When no snapshot falls inside the window, a single point built from
    ``current_totals`` (dated ``today``) is returned so the chart is never
    empty. Without current totals the result may be empty.
    """
    if today is None:
        today = local_day()
    days = TIME_RANGE_DAYS[normalize_time_range(window)]
    cutoff = today - timedelta(days=days) if days is not None else None

    selected = [s for s in snapshots if cutoff is None or s.date >= cutoff]
    selected.sort(key=lambda s: s.date)
    points = [_trend_point(s) for s in selected]

    if not points and current_totals is not None:
        points.append(
            TrendPoint(
                date=today,
                net_worth=current_totals.net_worth,
                total_banks=current_totals.total_bank_balance,
                total_investments=current_totals.total_investments,
                home_equity=current_totals.home_equity,
            )
        )
    return points


def build_forecast(
    last_point: TrendPoint,
    horizon_days: int,
    growth_rate: Decimal = DEFAULT_GROWTH_RATE,
) -> List[ForecastPoint]:
    """Extrapolate net worth forward from the last historical point.

    The first point restates ``last_point`` so the forecast line joins the
    history without a gap. Further points are weekly out to ``horizon_days``
    and grow at ``growth_rate`` per year (0.05 means 5 %), compounded daily.
    """
    daily_rate = (1 + Decimal(growth_rate)) ** (Decimal(1) / Decimal(365))
    points = [ForecastPoint(date=last_point.date, forecast_net_worth=last_point.net_worth)]
    for days_elapsed in range(FORECAST_STEP_DAYS, int(horizon_days) + 1, FORECAST_STEP_DAYS):
        points.append(
            ForecastPoint(
                date=last_point.date + timedelta(days=days_elapsed),
                forecast_net_worth=round_money(last_point.net_worth * daily_rate ** days_elapsed),
            )
        )
    return points
