"""Ranking engine: city metrics to ordered leaderboard rows.

Ranking is a pure function of the metrics and the previous ranks; it never
touches the filesystem. Ranks are strictly sequential (1..N) and ties keep
the order in which cities were passed in.
"""

from datetime import date
from typing import Optional, Sequence

from brroyale.leaderboard.aggregation import season_pace, season_progress
from brroyale.leaderboard.models import (
    City,
    CityMetric,
    ColdMetric,
    MetricKind,
    RankingEntry,
    SnowMetric,
)

# Offsets the leaderboard uses to approximate wind chill from air temperature
WINDCHILL_OFFSET = 5
ALL_TIME_WINDCHILL_OFFSET = 10

MISSING_DATE = "N/A"


def format_record_date(day: Optional[date]) -> str:
    """Render a record date like 'Jan 5, 2024'."""
    if day is None:
        return MISSING_DATE
    return f"{day:%b} {day.day}, {day.year}"


def _minus(value: Optional[float], offset: int) -> Optional[float]:
    return value - offset if value is not None else None


class SnowRanking:
    """Snow leaderboards: most season snowfall first."""

    kind = MetricKind.SNOW
    empty = SnowMetric()

    def sort_key(self, metric: SnowMetric):
        return -metric.total_snow

    def fields(self, city: City, metric: SnowMetric, today: date) -> dict:
        return {
            "total_snow": metric.total_snow,
            "last_24h": metric.last_24h,
            "avg_annual": city.annual_average or 0,
            "progress_pct": season_progress(metric.total_snow, city.annual_average),
            "pace_pct": season_pace(metric.total_snow, city.annual_average, today),
        }


class ColdRanking:
    """Cold leaderboard: lowest temperature first, cities without data last."""

    kind = MetricKind.COLD
    empty = ColdMetric()

    def sort_key(self, metric: ColdMetric):
        if metric.lowest_temp is None:
            return (1, 0)
        return (0, metric.lowest_temp)

    def fields(self, city: City, metric: ColdMetric, today: date) -> dict:
        return {
            "lowest_temp": metric.lowest_temp,
            "lowest_windchill": _minus(metric.lowest_temp, WINDCHILL_OFFSET),
            "record_date": format_record_date(metric.record_date),
            "all_time_low": city.all_time_low,
            "all_time_windchill": _minus(city.all_time_low, ALL_TIME_WINDCHILL_OFFSET),
        }


STRATEGIES = {
    MetricKind.SNOW: SnowRanking(),
    MetricKind.COLD: ColdRanking(),
}


def rank_entries(
    kind: MetricKind,
    results: Sequence[tuple[City, Optional[CityMetric]]],
    previous_ranks: Optional[dict[str, int]] = None,
    today: Optional[date] = None,
) -> list[RankingEntry]:
    """Sort city metrics into a leaderboard.

    Args:
        kind: Metric the leaderboard ranks on
        results: (city, metric) pairs in registry order. A None metric is
            replaced by the neutral value for the kind.
        previous_ranks: City id -> rank from the previous snapshot
        today: Reference day for season pace (defaults to today)

    Returns:
        RankingEntry list sorted by rank, ranks 1..N. Cities absent from
        previous_ranks get previous_rank 0.
    """
    strategy = STRATEGIES[kind]
    previous_ranks = previous_ranks or {}
    today = today or date.today()

    filled = [(city, metric if metric is not None else strategy.empty) for city, metric in results]
    ordered = sorted(filled, key=lambda pair: strategy.sort_key(pair[1]))

    return [
        RankingEntry(
            id=city.id,
            city=city.name,
            state=city.state,
            tags=list(city.tags),
            rank=position,
            previous_rank=previous_ranks.get(city.id, 0),
            fields=strategy.fields(city, metric, today),
        )
        for position, (city, metric) in enumerate(ordered, 1)
    ]
