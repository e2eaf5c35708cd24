"""Snowfall and cold-temperature leaderboards.

The daily refresh can be run via:
    python -m brroyale.leaderboard.refresh

The historical archive is built once via:
    python -m brroyale.leaderboard.history
"""

from brroyale.leaderboard.aggregation import (
    aggregate_cold,
    aggregate_snow,
    current_season_window,
    season_pace,
    season_progress,
    season_window,
)
from brroyale.leaderboard.alerts import detect_storms
from brroyale.leaderboard.cities import CITIES_DATA, cities_with_tag, load_cities
from brroyale.leaderboard.models import (
    CATEGORIES,
    AlertEvent,
    Category,
    City,
    ColdMetric,
    LeaderboardSnapshot,
    MetricKind,
    RankingEntry,
    SnowMetric,
)
from brroyale.leaderboard.ranking import rank_entries
from brroyale.leaderboard.snapshot import SnapshotStore
from brroyale.leaderboard.refresh import RefreshResult, run_refresh
from brroyale.leaderboard.history import HistoryPipeline, summarize_history

__all__ = [
    "AlertEvent",
    "CATEGORIES",
    "CITIES_DATA",
    "Category",
    "City",
    "ColdMetric",
    "HistoryPipeline",
    "LeaderboardSnapshot",
    "MetricKind",
    "RankingEntry",
    "RefreshResult",
    "SnapshotStore",
    "SnowMetric",
    "aggregate_cold",
    "aggregate_snow",
    "cities_with_tag",
    "current_season_window",
    "detect_storms",
    "load_cities",
    "rank_entries",
    "run_refresh",
    "season_pace",
    "season_progress",
    "season_window",
    "summarize_history",
]
