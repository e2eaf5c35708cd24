"""Storm events derived from a freshly ranked snow leaderboard."""

from brroyale.leaderboard.models import AlertEvent, RankingEntry
from brroyale.utils.config import STORM_THRESHOLD


def format_inches(value: float) -> str:
    """Render inches without a trailing '.0' (4.0 -> '4', 4.5 -> '4.5')."""
    return f"{value:g}"


def storm_message(city: str, snow_24h: float) -> str:
    return f'{city} just got {format_inches(snow_24h)}" of fresh powder!'


def detect_storms(
    rankings: list[RankingEntry],
    threshold: float = STORM_THRESHOLD,
) -> list[AlertEvent]:
    """Emit one AlertEvent per city whose last-24h snowfall reaches the threshold.

    Events follow leaderboard order and are recomputed on every run.
    """
    events = []
    for entry in rankings:
        snow_24h = entry.fields.get("last_24h") or 0
        if snow_24h >= threshold:
            events.append(AlertEvent(
                city=entry.city,
                state=entry.state,
                snow_24h=snow_24h,
                message=storm_message(entry.city, snow_24h),
            ))
    return events
