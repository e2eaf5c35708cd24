"""Per-station aggregation of daily observations into city metrics.

Snow series become a season total plus the most recent day's snowfall;
temperature series become the season low and the date it occurred.
"""

import math
from datetime import date, timedelta
from typing import Iterable, Optional, Union

import pandas as pd

from brroyale.leaderboard.models import ColdMetric, MetricKind, SnowMetric
from brroyale.pipelines.cdo import StationObservation, observations_to_frame

# Snow season: Sep 1 of year Y through Apr 30 of year Y+1, labeled Y
SEASON_START_MONTH = 9
SEASON_END_MONTH = 4
SEASON_END_DAY = 30

# Pace is measured from Oct 1 over a 212-day (Oct-Apr) snow season
PACE_START_MONTH = 10
PACE_SEASON_DAYS = 212
PROGRESS_CAP_PCT = 150

Observations = Union[pd.DataFrame, Iterable[StationObservation]]


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves going up (toward +inf), e.g. -10.5 -> -10."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def _as_frame(observations: Observations) -> pd.DataFrame:
    if isinstance(observations, pd.DataFrame):
        return observations.sort_values("date", kind="mergesort").reset_index(drop=True)
    return observations_to_frame(observations)


def season_start_year(today: date) -> int:
    """Season label for a day: Jan-Aug belong to the season that began last year."""
    return today.year if today.month >= SEASON_START_MONTH else today.year - 1


def current_season_window(today: date) -> tuple[str, str, int]:
    """Date window of the season in progress.

    Returns:
        Tuple of (start_date, end_date, season_start_year); the window runs
        from Sep 1 of the season year through today.
    """
    year = season_start_year(today)
    return f"{year}-09-01", today.isoformat(), year


def season_window(year: int) -> tuple[str, str]:
    """Full window of a past season, Sep 1 of `year` to Apr 30 of `year + 1`."""
    return (
        date(year, SEASON_START_MONTH, 1).isoformat(),
        date(year + 1, SEASON_END_MONTH, SEASON_END_DAY).isoformat(),
    )


def aggregate_snow(observations: Observations, today: date) -> SnowMetric:
    """Aggregate a snowfall series.

    ``total_snow`` sums every positive reading. ``last_24h`` is the last
    reading's value when that reading is dated today or yesterday, else 0.

    Args:
        observations: SNOW readings (inches), any order
        today: Reference day for the 24h window

    Returns:
        SnowMetric with both values rounded to one decimal
    """
    df = _as_frame(observations)
    if len(df) == 0:
        return SnowMetric(total_snow=0.0, last_24h=0.0)

    values = df["value"].astype(float)
    total = float(values[values > 0].sum())

    last = df.iloc[-1]
    last_24h = 0.0
    yesterday = today - timedelta(days=1)
    if last["date"].date() >= yesterday and last["value"] > 0:
        last_24h = float(last["value"])

    return SnowMetric(
        total_snow=round_half_up(total, 1),
        last_24h=round_half_up(last_24h, 1),
    )


def aggregate_cold(observations: Observations) -> ColdMetric:
    """Find the lowest reading of a temperature series.

    Ties go to the earliest date. An empty series gives a ColdMetric with
    both fields None.
    """
    df = _as_frame(observations)
    values = df["value"].astype(float).dropna()
    if len(values) == 0:
        return ColdMetric(lowest_temp=None, record_date=None)

    idx = values.idxmin()
    return ColdMetric(
        lowest_temp=int(round_half_up(float(values[idx]))),
        record_date=df.loc[idx, "date"].date(),
    )


def aggregate(kind: MetricKind, observations: Observations, today: date):
    """Dispatch to the aggregator for a metric kind."""
    if kind is MetricKind.SNOW:
        return aggregate_snow(observations, today)
    if kind is MetricKind.COLD:
        return aggregate_cold(observations)
    raise ValueError(f"Unknown metric kind: {kind}")


def season_total(observations: Observations) -> Optional[float]:
    """Total snowfall of a historical season, or None when there is no data."""
    df = _as_frame(observations)
    if len(df) == 0:
        return None
    values = df["value"].astype(float)
    return round_half_up(float(values[values > 0].sum()), 1)


def season_progress(total_snow: float, annual_average: Optional[float]) -> int:
    """Season total as a percentage of the annual average, capped at 150."""
    if not annual_average or annual_average <= 0:
        return 0
    return min(PROGRESS_CAP_PCT, int(round_half_up(total_snow / annual_average * 100)))


def season_pace(total_snow: float, annual_average: Optional[float], today: date) -> Optional[int]:
    """Percent ahead (+) or behind (-) the expected accumulation to date.

    Expected accumulation is the annual average prorated over the days
    elapsed since Oct 1, clamped to 1..212 days.
    """
    if not annual_average or annual_average <= 0:
        return None

    year = today.year if today.month >= PACE_START_MONTH else today.year - 1
    elapsed = (today - date(year, PACE_START_MONTH, 1)).days
    elapsed = max(1, min(PACE_SEASON_DAYS, elapsed))

    expected = annual_average * (elapsed / PACE_SEASON_DAYS)
    return int(round_half_up((total_snow - expected) / expected * 100))
