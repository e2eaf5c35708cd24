"""Data models for the leaderboard pipeline."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional, Union


class MetricKind(str, Enum):
    """Which metric a leaderboard ranks on."""

    SNOW = "snow"
    COLD = "cold"


@dataclass(frozen=True)
class City:
    """City registry entry.

    Attributes:
        id: Unique key (e.g., 'syracuse-ny')
        name: Display name
        state: Two-letter state code
        station_id: CDO station identifier (e.g., 'GHCND:USW00014771')
        tags: Category memberships ('US_Top10', 'NY_Top10', 'Coldest_Cities')
        annual_average: Average seasonal snowfall in inches, if known
        all_time_low: Record low temperature in F, if known
    """

    id: str
    name: str
    state: str
    station_id: str
    tags: tuple[str, ...] = ()
    annual_average: Optional[float] = None
    all_time_low: Optional[float] = None

    @classmethod
    def from_dict(cls, d: dict) -> "City":
        return cls(
            id=d["id"],
            name=d["name"],
            state=d["state"],
            station_id=d["station_id"],
            tags=tuple(d.get("tags", ())),
            annual_average=d.get("annual_average"),
            all_time_low=d.get("all_time_low"),
        )


@dataclass(frozen=True)
class SnowMetric:
    """Season snowfall for one city (inches)."""

    total_snow: float = 0.0
    last_24h: float = 0.0


@dataclass(frozen=True)
class ColdMetric:
    """Season low temperature for one city (F). Both None when no data."""

    lowest_temp: Optional[int] = None
    record_date: Optional[date] = None


CityMetric = Union[SnowMetric, ColdMetric]


@dataclass
class RankingEntry:
    """One row of a leaderboard.

    ``fields`` holds the category-specific metric columns in the order they
    are serialized (e.g. total_snow, last_24h, avg_annual).
    """

    id: str
    city: str
    state: str
    tags: list[str]
    rank: int
    previous_rank: int
    fields: dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.fields[key]

    def to_dict(self) -> dict:
        d = {"id": self.id, "city": self.city, "state": self.state}
        d.update(self.fields)
        d["tags"] = list(self.tags)
        d["rank"] = self.rank
        d["previous_rank"] = self.previous_rank
        return d


@dataclass(frozen=True)
class AlertEvent:
    """A storm notice derived from a fresh snow leaderboard."""

    city: str
    state: str
    snow_24h: float
    message: str

    def to_dict(self) -> dict:
        return {
            "city": self.city,
            "state": self.state,
            "snow_24h": self.snow_24h,
            "message": self.message,
        }


@dataclass
class LeaderboardSnapshot:
    """A fully rebuilt leaderboard for one category."""

    last_updated: str
    rankings: list[RankingEntry]
    storm_events: Optional[list[AlertEvent]] = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"last_updated": self.last_updated}
        if self.storm_events is not None:
            d["storm_events"] = [e.to_dict() for e in self.storm_events]
        d["rankings"] = [r.to_dict() for r in self.rankings]
        return d


@dataclass(frozen=True)
class Category:
    """A leaderboard category and where its snapshot lives.

    Attributes:
        name: Short name used on the command line
        tag: Registry tag selecting member cities
        kind: Metric the category ranks on
        filename: Snapshot filename inside the output directory
        storm_events: Whether the snapshot carries storm events
    """

    name: str
    tag: str
    kind: MetricKind
    filename: str
    storm_events: bool = False


CATEGORIES = [
    Category("national", "US_Top10", MetricKind.SNOW, "season_current.json", storm_events=True),
    Category("regional", "NY_Top10", MetricKind.SNOW, "snowfall_ny.json"),
    Category("cold", "Coldest_Cities", MetricKind.COLD, "coldest_cities.json"),
]
