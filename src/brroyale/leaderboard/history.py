"""Historical snowfall archive.

Builds per-city season totals (Sep 1 - Apr 30) over a range of seasons and
writes them to ``history.json`` for the season-history charts. This is a
one-off backfill, not part of the daily refresh:

    NOAA_TOKEN=<token> python -m brroyale.leaderboard.history --start 2005 --end 2025

Usage:
    python -m brroyale.leaderboard.history              # Default seasons 2005-2025
    python -m brroyale.leaderboard.history --summary    # Summarize existing archive
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pandas as pd
import requests
from dotenv import load_dotenv

from brroyale.leaderboard.aggregation import season_total, season_window
from brroyale.leaderboard.cities import load_cities
from brroyale.leaderboard.models import City
from brroyale.pipelines.cdo import CDOClient, CDOPipeline
from brroyale.utils.config import MissingTokenError, Settings
from brroyale.utils.io import get_output_dir, read_json, write_json

logger = logging.getLogger(__name__)

DEFAULT_START_SEASON = 2005
DEFAULT_END_SEASON = 2025
HISTORY_FILENAME = "history.json"
HISTORY_SOURCE = "NOAA NCEI (GHCND)"


def history_cities(cities: list[City]) -> list[City]:
    """Cities worth a snow history: those with a known annual average."""
    return [c for c in cities if c.annual_average is not None]


class HistoryPipeline:
    """Season-by-season snowfall backfill.

    Example:
        >>> pipeline = HistoryPipeline(client, start_season=2015, end_season=2024)
        >>> archive = pipeline.build(history_cities(load_cities()))
        >>> archive["cities"]["syracuse-ny"]["2017"]
        160.9
    """

    def __init__(
        self,
        client: CDOClient,
        start_season: int = DEFAULT_START_SEASON,
        end_season: int = DEFAULT_END_SEASON,
    ):
        if end_season < start_season:
            raise ValueError(f"end_season {end_season} is before start_season {start_season}")
        self.pipeline = CDOPipeline(client, datatype_id="SNOW")
        self.start_season = start_season
        self.end_season = end_season

    @property
    def seasons(self) -> range:
        return range(self.start_season, self.end_season + 1)

    def fetch_season(self, city: City, season: int) -> Optional[float]:
        """Total snowfall for one city and season, None when there is no data."""
        start_date, end_date = season_window(season)
        df, validation = self.pipeline.run(start_date, end_date, station_id=city.station_id)
        if validation.outliers_count:
            logger.warning(f"  {city.name} season {season}-{season + 1}: {'; '.join(validation.issues)}")
        return season_total(df)

    def fetch_city(self, city: City) -> dict[str, float]:
        """Season totals for one city keyed by season start year (as a string).

        Seasons without data, or whose request failed, are left out.
        """
        totals = {}
        for season in self.seasons:
            try:
                total = self.fetch_season(city, season)
            except requests.RequestException as e:
                logger.error(f"  {city.name} season {season}-{season + 1}: failed - {e}")
                continue

            if total is None:
                logger.info(f"  Season {season}-{season + 1}: no data")
                continue

            logger.info(f'  Season {season}-{season + 1}: {total}"')
            totals[str(season)] = total
        return totals

    def build(self, cities: list[City], generated_at: Optional[datetime] = None) -> dict:
        """Build the archive document for the given cities."""
        generated_at = (generated_at or datetime.now(timezone.utc)).astimezone(timezone.utc)
        total = len(cities)

        logger.info(
            f"Fetching seasons {self.start_season}-{self.start_season + 1} "
            f"through {self.end_season}-{self.end_season + 1} for {total} cities"
        )

        history = {}
        for i, city in enumerate(cities, 1):
            logger.info(f"[{i}/{total}] {city.name}, {city.state} ({city.station_id})")
            history[city.id] = self.fetch_city(city)

        return {
            "meta": {
                "generated_at": generated_at.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
                "source": HISTORY_SOURCE,
                "start_season": self.start_season,
                "end_season": self.end_season,
            },
            "cities": history,
        }


def write_history(archive: dict, output_dir: Optional[Path] = None) -> Path:
    path = write_json(get_output_dir(output_dir) / HISTORY_FILENAME, archive)
    logger.info(f"Wrote {path}")
    return path


def history_to_frame(archive: dict) -> pd.DataFrame:
    """Long-format DataFrame (city_id, season, total_snow) from an archive."""
    records = [
        {"city_id": city_id, "season": int(season), "total_snow": float(total)}
        for city_id, seasons in archive.get("cities", {}).items()
        for season, total in seasons.items()
    ]
    return pd.DataFrame(records, columns=["city_id", "season", "total_snow"])


def summarize_history(archive: dict) -> pd.DataFrame:
    """Per-city season statistics.

    Returns:
        DataFrame indexed by city_id with columns seasons, mean, min, max,
        best_season and worst_season, sorted by mean descending.
    """
    df = history_to_frame(archive)
    columns = ["seasons", "mean", "min", "max", "best_season", "worst_season"]
    if len(df) == 0:
        return pd.DataFrame(columns=columns).rename_axis("city_id")

    grouped = df.groupby("city_id")
    summary = pd.DataFrame({
        "seasons": grouped["season"].count(),
        "mean": grouped["total_snow"].mean().round(1),
        "min": grouped["total_snow"].min(),
        "max": grouped["total_snow"].max(),
        "best_season": df.loc[grouped["total_snow"].idxmax(), ["city_id", "season"]].set_index("city_id")["season"],
        "worst_season": df.loc[grouped["total_snow"].idxmin(), ["city_id", "season"]].set_index("city_id")["season"],
    })
    return summary[columns].sort_values("mean", ascending=False, kind="mergesort")


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point for the historical backfill."""
    parser = argparse.ArgumentParser(
        description="Build the multi-season snowfall archive from NOAA CDO",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--start", type=int, default=DEFAULT_START_SEASON,
                        help=f"First season start year (default: {DEFAULT_START_SEASON})")
    parser.add_argument("--end", type=int, default=DEFAULT_END_SEASON,
                        help=f"Last season start year (default: {DEFAULT_END_SEASON})")
    parser.add_argument("--output-dir", type=Path, default=None,
                        help="Directory for history.json (default: public/data)")
    parser.add_argument("--cities", type=Path, default=None,
                        help="JSON city registry to use instead of the built-in one")
    parser.add_argument("--summary", action="store_true",
                        help="Print statistics for the existing archive and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    load_dotenv()

    if args.summary:
        path = get_output_dir(args.output_dir) / HISTORY_FILENAME
        try:
            archive = read_json(path)
        except (OSError, ValueError) as e:
            logger.error(f"Cannot read {path}: {e}")
            return 1
        print(summarize_history(archive).to_string())
        return 0

    try:
        settings = Settings.from_env(output_dir=args.output_dir, cities_file=args.cities)
    except MissingTokenError as e:
        logger.error(str(e))
        return 1

    try:
        cities = history_cities(load_cities(settings.cities_file))
        with CDOClient.from_settings(settings) as client:
            pipeline = HistoryPipeline(client, start_season=args.start, end_season=args.end)
            archive = pipeline.build(cities)
        write_history(archive, settings.output_dir)
    except Exception as e:
        logger.exception(f"History backfill failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
