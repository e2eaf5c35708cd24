"""City registry.

Each city is bound to one GHCN-Daily station queried through the CDO API.
A JSON file with the same fields can replace the built-in list
(see ``load_cities``).
"""

import logging
from pathlib import Path
from typing import Optional

from brroyale.leaderboard.models import City
from brroyale.utils.io import read_json

logger = logging.getLogger(__name__)

US = "US_Top10"
NY = "NY_Top10"
COLD = "Coldest_Cities"

# Snowiest US cities, snowiest New York cities, and coldest US cities
CITIES_DATA = [
    # National snow belt
    City("syracuse-ny", "Syracuse", "NY", "GHCND:USW00014771", (US, NY), 124.3, -26),
    City("erie-pa", "Erie", "PA", "GHCND:USW00014860", (US,), 104.1, -18),
    City("rochester-ny", "Rochester", "NY", "GHCND:USW00014768", (US, NY), 99.5, -22),
    City("buffalo-ny", "Buffalo", "NY", "GHCND:USW00014733", (US, NY), 95.4, -20),
    City("sault-ste-marie-mi", "Sault Ste. Marie", "MI", "GHCND:USW00014847", (US,), 120.1, -37),
    City("caribou-me", "Caribou", "ME", "GHCND:USW00014607", (US, COLD), 116.3, -41),
    City("duluth-mn", "Duluth", "MN", "GHCND:USW00014913", (US, COLD), 90.2, -41),
    City("burlington-vt", "Burlington", "VT", "GHCND:USW00014742", (US,), 89.0, -30),
    City("flagstaff-az", "Flagstaff", "AZ", "GHCND:USW00003103", (US,), 87.6, -30),
    City("juneau-ak", "Juneau", "AK", "GHCND:USW00025309", (US,), 86.0, -22),
    # New York
    City("watertown-ny", "Watertown", "NY", "GHCND:USW00094790", (NY,), 110.0, -37),
    City("binghamton-ny", "Binghamton", "NY", "GHCND:USW00004725", (NY,), 84.1, -20),
    City("utica-ny", "Utica", "NY", "GHCND:USW00094794", (NY,), 102.0, -28),
    City("glens-falls-ny", "Glens Falls", "NY", "GHCND:USW00014750", (NY,), 70.3, -36),
    City("massena-ny", "Massena", "NY", "GHCND:USW00094725", (NY, COLD), 68.0, -45),
    City("saranac-lake-ny", "Saranac Lake", "NY", "GHCND:USW00094740", (NY, COLD), 95.0, -42),
    City("albany-ny", "Albany", "NY", "GHCND:USW00014735", (NY,), 59.2, -28),
    # Cold-focus
    City("fairbanks-ak", "Fairbanks", "AK", "GHCND:USW00026411", (COLD,), 65.0, -66),
    City("utqiagvik-ak", "Utqiagvik", "AK", "GHCND:USW00027502", (COLD,), 37.0, -56),
    City("international-falls-mn", "International Falls", "MN", "GHCND:USW00014918", (COLD,), 71.0, -55),
    City("fargo-nd", "Fargo", "ND", "GHCND:USW00014914", (COLD,), 50.1, -48),
    City("bismarck-nd", "Bismarck", "ND", "GHCND:USW00024011", (COLD,), 51.0, -45),
    City("great-falls-mt", "Great Falls", "MT", "GHCND:USW00024143", (COLD,), 63.0, -43),
    City("minneapolis-mn", "Minneapolis", "MN", "GHCND:USW00014922", (COLD,), 51.2, -41),
    City("mount-washington-nh", "Mount Washington", "NH", "GHCND:USW00014755", (COLD,), 281.2, -47),
]


def load_cities(path: Optional[Path] = None) -> list[City]:
    """Load the city registry.

    Args:
        path: JSON file holding a list of city objects. Uses the built-in
            registry when not given.

    Returns:
        List of City objects in registry order

    Raises:
        ValueError: If the file is not a list of city objects or ids repeat
    """
    if path is None:
        return list(CITIES_DATA)

    logger.info(f"Loading city registry from {path}")
    raw = read_json(path)
    if not isinstance(raw, list):
        raise ValueError(f"City registry {path} must be a JSON list")

    try:
        cities = [City.from_dict(item) for item in raw]
    except (KeyError, TypeError) as e:
        raise ValueError(f"Invalid city entry in {path}: {e}") from e

    ids = [c.id for c in cities]
    if len(ids) != len(set(ids)):
        raise ValueError(f"Duplicate city ids in {path}")

    return cities


def cities_with_tag(cities: list[City], tag: str) -> list[City]:
    """Select cities carrying a category tag, keeping registry order."""
    return [c for c in cities if tag in c.tags]
