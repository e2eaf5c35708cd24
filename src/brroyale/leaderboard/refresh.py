"""Scheduled leaderboard refresh.

Fetches current-season snowfall and minimum temperatures for every city in
the registry, ranks each category, and rewrites its snapshot file. Run
daily via cron or CI:

    # Every morning at 07:30, once NOAA has ingested yesterday's reports
    30 7 * * * python -m brroyale.leaderboard.refresh

Usage:
    python -m brroyale.leaderboard.refresh                     # All categories
    python -m brroyale.leaderboard.refresh --category cold     # One category
    python -m brroyale.leaderboard.refresh --status            # Show snapshots
"""

import argparse
import logging
import sys
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional

import requests
from dotenv import load_dotenv

from brroyale.leaderboard.aggregation import aggregate, current_season_window
from brroyale.leaderboard.alerts import detect_storms
from brroyale.leaderboard.cities import cities_with_tag, load_cities
from brroyale.leaderboard.models import (
    CATEGORIES,
    Category,
    City,
    CityMetric,
    LeaderboardSnapshot,
    MetricKind,
)
from brroyale.leaderboard.ranking import rank_entries
from brroyale.leaderboard.snapshot import SnapshotStore
from brroyale.pipelines.cdo import CDOClient, CDOPipeline
from brroyale.utils.config import STORM_THRESHOLD, MissingTokenError, Settings

logger = logging.getLogger(__name__)

# CDO datatype fetched for each metric kind
DATATYPES = {
    MetricKind.SNOW: "SNOW",
    MetricKind.COLD: "TMIN",
}


@dataclass
class RefreshResult:
    """Result of a refresh run."""

    total: int
    success: int
    failed: int
    no_data: int
    duration_ms: int
    storm_events: int = 0
    snapshots: dict[str, Path] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        """Percentage of station fetches that returned data."""
        if self.total == 0:
            return 0.0
        return (self.success / self.total) * 100

    def __str__(self) -> str:
        return (
            f"Refresh complete: {self.success}/{self.total} stations with data, "
            f"{self.no_data} empty, {self.failed} failed, "
            f"{len(self.snapshots)} snapshots, {self.storm_events} storm events "
            f"({self.duration_ms}ms)"
        )


@dataclass
class _FetchCounts:
    success: int = 0
    failed: int = 0
    no_data: int = 0


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2025-01-15T12:00:00.000Z."""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def fetch_metrics(
    client: CDOClient,
    cities: list[City],
    kind: MetricKind,
    start_date: str,
    end_date: str,
    today: date,
    counts: Optional[_FetchCounts] = None,
) -> dict[str, Optional[CityMetric]]:
    """Fetch and aggregate one metric for each city, one station at a time.

    A transport failure for one city is logged and leaves that city's
    metric as None (ranked with neutral values); the run continues.

    Returns:
        City id -> metric (None when the fetch failed)
    """
    counts = counts if counts is not None else _FetchCounts()
    pipeline = CDOPipeline(client, datatype_id=DATATYPES[kind])
    total = len(cities)
    metrics: dict[str, Optional[CityMetric]] = {}

    logger.info(f"Fetching {DATATYPES[kind]} for {total} cities ({start_date} to {end_date})...")

    for i, city in enumerate(cities, 1):
        try:
            df, validation = pipeline.run(start_date, end_date, station_id=city.station_id)
        except requests.RequestException as e:
            logger.error(f"[{i}/{total}] {city.name}, {city.state}: failed - {e}")
            counts.failed += 1
            metrics[city.id] = None
            continue

        metric = aggregate(kind, df, today)
        metrics[city.id] = metric

        if len(df) == 0:
            logger.info(f"[{i}/{total}] {city.name}, {city.state}: no data returned")
            counts.no_data += 1
        else:
            if validation.issues:
                logger.warning(f"[{i}/{total}] {city.name}: {'; '.join(validation.issues)}")
            logger.debug(f"[{i}/{total}] {city.name}: {validation} {validation.stats}")
            logger.info(f"[{i}/{total}] {city.name}, {city.state}: {metric}")
            counts.success += 1

    return metrics


def build_snapshot(
    category: Category,
    cities: list[City],
    metrics: dict[str, Optional[CityMetric]],
    previous_ranks: dict[str, int],
    last_updated: str,
    today: date,
    storm_threshold: float = STORM_THRESHOLD,
) -> LeaderboardSnapshot:
    """Rank a category's cities and attach storm events where the category has them."""
    members = cities_with_tag(cities, category.tag)
    rankings = rank_entries(
        category.kind,
        [(city, metrics.get(city.id)) for city in members],
        previous_ranks,
        today=today,
    )
    storm_events = detect_storms(rankings, storm_threshold) if category.storm_events else None
    return LeaderboardSnapshot(
        last_updated=last_updated,
        rankings=rankings,
        storm_events=storm_events,
    )


def _unique_members(cities: list[City], categories: list[Category]) -> list[City]:
    """Cities belonging to any of the categories, once each, in registry order."""
    tags = {c.tag for c in categories}
    return [city for city in cities if tags.intersection(city.tags)]


def run_refresh(
    settings: Settings,
    client: Optional[CDOClient] = None,
    cities: Optional[list[City]] = None,
    categories: Optional[list[Category]] = None,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> RefreshResult:
    """Refresh leaderboard snapshots.

    Previous ranks for every category are read before anything is fetched
    or written. Stations are fetched sequentially; snow stations first,
    then temperature stations, each city once even if it sits in several
    categories.

    Args:
        settings: Run settings (token, output directory, threshold, ...)
        client: CDO client; one is created from settings if not given
        cities: City registry; loaded from settings.cities_file or built-in
        categories: Categories to refresh. Defaults to all.
        today: Reference day (season window, 24h window, pace)
        now: Timestamp written as last_updated

    Returns:
        RefreshResult with fetch counts and written snapshot paths
    """
    start_time = time.time()
    today = today or date.today()
    cities = cities if cities is not None else load_cities(settings.cities_file)
    categories = categories or CATEGORIES

    store = SnapshotStore(settings.output_dir)
    start_date, end_date, season = current_season_window(today)

    logger.info("=" * 60)
    logger.info(f"Season {season}-{season + 1}: {start_date} to {end_date}")
    logger.info(f"Output: {store.output_dir}")
    logger.info("=" * 60)

    previous_ranks = {c.name: store.read_previous_ranks(c) for c in categories}

    own_client = client is None
    client = client or CDOClient.from_settings(settings)
    counts = _FetchCounts()
    metrics: dict[MetricKind, dict[str, Optional[CityMetric]]] = {}

    try:
        for kind in (MetricKind.SNOW, MetricKind.COLD):
            kind_categories = [c for c in categories if c.kind is kind]
            members = _unique_members(cities, kind_categories)
            if not members:
                continue
            metrics[kind] = fetch_metrics(
                client, members, kind, start_date, end_date, today, counts
            )
    finally:
        if own_client:
            client.close()

    last_updated = utc_timestamp(now)
    snapshots = {}
    storm_count = 0

    for category in categories:
        snapshot = build_snapshot(
            category,
            cities,
            metrics.get(category.kind, {}),
            previous_ranks[category.name],
            last_updated,
            today,
            settings.storm_threshold,
        )
        snapshots[category.name] = store.write(category, snapshot)
        if snapshot.storm_events:
            storm_count += len(snapshot.storm_events)
            for event in snapshot.storm_events:
                logger.info(f"Storm: {event.message}")

    result = RefreshResult(
        total=counts.success + counts.failed + counts.no_data,
        success=counts.success,
        failed=counts.failed,
        no_data=counts.no_data,
        duration_ms=int((time.time() - start_time) * 1000),
        storm_events=storm_count,
        snapshots=snapshots,
    )

    logger.info(str(result))
    return result


def get_snapshot_status(output_dir: Optional[Path] = None, top: int = 3) -> list[dict]:
    """Summarize the snapshot file of each category without fetching."""
    store = SnapshotStore(output_dir, create=False)
    status = []

    for category in CATEGORIES:
        path = store.path_for(category)
        entry = {"category": category.name, "path": str(path), "exists": path.exists()}
        try:
            data = store.read(category)
        except ValueError as e:
            entry["error"] = str(e)
            status.append(entry)
            continue

        if data is not None and not isinstance(data, dict):
            entry["error"] = "not a snapshot object"
            status.append(entry)
            continue

        if data is not None:
            rankings = data.get("rankings")
            if not isinstance(rankings, list):
                rankings = []
            entry["last_updated"] = data.get("last_updated")
            entry["cities"] = len(rankings)
            entry["storm_events"] = len(data.get("storm_events") or [])
            entry["top"] = rankings[:top]
        status.append(entry)

    return status


def print_status(status: list[dict]) -> None:
    """Print snapshot status in human-readable format."""
    print()
    print("=" * 60)
    print("Leaderboard Snapshot Status")
    print("=" * 60)

    for entry in status:
        print(f"{entry['category']:<10} {entry['path']}")
        if "error" in entry:
            print(f"  UNREADABLE: {entry['error']}")
            continue
        if not entry["exists"]:
            print("  MISSING")
            continue

        print(f"  Updated: {entry['last_updated']}  Cities: {entry['cities']}  "
              f"Storms: {entry['storm_events']}")
        for row in entry["top"]:
            metric = row.get("total_snow", row.get("lowest_temp"))
            print(f"  #{row.get('rank')} {row.get('city')}, {row.get('state')}: {metric}")

    print("=" * 60)


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point for the leaderboard refresh."""
    parser = argparse.ArgumentParser(
        description="Refresh snowfall and cold-temperature leaderboards from NOAA CDO",
        epilog="""
Examples:
  python -m brroyale.leaderboard.refresh                  # All categories
  python -m brroyale.leaderboard.refresh --category cold  # Cold leaderboard only
  python -m brroyale.leaderboard.refresh --status         # Show snapshots

Requires NOAA_TOKEN in the environment or a .env file.
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--category",
        action="append",
        choices=[c.name for c in CATEGORIES],
        help="Refresh only this category (repeatable)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for snapshot files (default: public/data)",
    )
    parser.add_argument(
        "--cities",
        type=Path,
        default=None,
        help="JSON city registry to use instead of the built-in one",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help=f"24h snowfall in inches that counts as a storm (default: {STORM_THRESHOLD})",
    )
    parser.add_argument(
        "--rate-limit",
        type=float,
        default=None,
        help="Seconds between API requests",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show current snapshot status",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress output except errors",
    )

    args = parser.parse_args(argv)

    if args.quiet:
        level = logging.ERROR
    elif args.verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    load_dotenv()

    if args.status:
        print_status(get_snapshot_status(args.output_dir))
        return 0

    try:
        settings = Settings.from_env(
            output_dir=args.output_dir,
            cities_file=args.cities,
            storm_threshold=args.threshold,
            rate_limit_seconds=args.rate_limit,
        )
    except MissingTokenError as e:
        logger.error(str(e))
        return 1

    categories = None
    if args.category:
        categories = [c for c in CATEGORIES if c.name in args.category]

    try:
        result = run_refresh(settings, categories=categories)
    except Exception as e:
        logger.exception(f"Refresh failed: {e}")
        return 1

    if result.failed > 0:
        logger.warning(f"{result.failed} station fetches failed; their cities were ranked without data")

    return 0


if __name__ == "__main__":
    sys.exit(main())
