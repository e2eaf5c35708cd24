"""Snapshot files: one JSON document per leaderboard category.

Each run fully replaces a category's file. Before that happens, the
previous file is read once to recover ``{city id: rank}`` for rank deltas.
A missing file means no history. An unreadable file also means no history:
it is logged as a warning and every city becomes a new entrant.
"""

import logging
from pathlib import Path
from typing import Optional

from brroyale.leaderboard.models import Category, LeaderboardSnapshot
from brroyale.utils.io import get_output_dir, read_json, resolve_output_dir, write_json

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Reads and writes leaderboard snapshots in an output directory."""

    def __init__(self, output_dir: Optional[Path] = None, create: bool = True):
        """Initialize the store.

        Args:
            output_dir: Directory holding snapshot files. Defaults to
                <project>/public/data.
            create: Create the directory if missing. Read-only callers
                pass False.
        """
        self.output_dir = get_output_dir(output_dir) if create else resolve_output_dir(output_dir)

    def path_for(self, category: Category) -> Path:
        return self.output_dir / category.filename

    def read(self, category: Category) -> Optional[dict]:
        """Load a category's snapshot document, or None if it does not exist.

        Raises:
            ValueError: If the file is not valid JSON
        """
        path = self.path_for(category)
        if not path.exists():
            return None
        return read_json(path)

    def read_previous_ranks(self, category: Category) -> dict[str, int]:
        """Recover ``{city id: rank}`` from the category's current snapshot.

        Returns an empty map when the file is absent, unparseable, or not
        shaped like a snapshot.
        """
        path = self.path_for(category)
        if not path.exists():
            logger.info(f"No previous snapshot at {path}; all cities are new entrants")
            return {}

        try:
            data = read_json(path)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable snapshot {path}: {e}")
            return {}

        rankings = data.get("rankings") if isinstance(data, dict) else None
        if not isinstance(rankings, list):
            logger.warning(f"Ignoring snapshot {path}: no rankings list")
            return {}

        ranks = {}
        for row in rankings:
            if not isinstance(row, dict) or "id" not in row:
                continue
            rank = row.get("rank")
            # JSON writers may store ranks as 3.0
            if isinstance(rank, (int, float)) and not isinstance(rank, bool) and float(rank).is_integer():
                ranks[row["id"]] = int(rank)

        logger.debug(f"Loaded {len(ranks)} previous ranks from {path}")
        return ranks

    def write(self, category: Category, snapshot: LeaderboardSnapshot) -> Path:
        """Replace the category's snapshot file with a new snapshot."""
        path = write_json(self.path_for(category), snapshot.to_dict())
        logger.info(f"Wrote {path} ({len(snapshot.rankings)} cities)")
        return path
