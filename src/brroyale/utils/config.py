"""Run configuration for the leaderboard and history jobs."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# NOAA Climate Data Online (CDO) v2 data endpoint
CDO_BASE_URL = "https://www.ncei.noaa.gov/cdo-web/api/v2/data"
CDO_TOKEN_URL = "https://www.ncdc.noaa.gov/cdo-web/token"

PAGE_SIZE = 1000
RATE_LIMIT_SECONDS = 0.26  # CDO allows 5 requests/second per token
REQUEST_TIMEOUT = 30  # seconds

# Inches of new snow in 24h that count as a storm
STORM_THRESHOLD = 4.0

TOKEN_ENV = "NOAA_TOKEN"
OUTPUT_DIR_ENV = "BRROYALE_OUTPUT_DIR"
CITIES_FILE_ENV = "BRROYALE_CITIES_FILE"


class MissingTokenError(RuntimeError):
    """Raised when no CDO API token is configured."""


@dataclass
class Settings:
    """Settings shared by the refresh and history runs.

    Attributes:
        token: CDO API token sent in the ``token`` header
        base_url: CDO data endpoint
        page_size: Rows requested per page
        rate_limit_seconds: Minimum delay between two consecutive requests
        timeout: Per-request timeout in seconds
        storm_threshold: 24h snowfall (inches) that triggers a storm event
        output_dir: Directory for snapshot files (None = project default)
        cities_file: Optional JSON city registry replacing the built-in one
    """

    token: str
    base_url: str = CDO_BASE_URL
    page_size: int = PAGE_SIZE
    rate_limit_seconds: float = RATE_LIMIT_SECONDS
    timeout: float = REQUEST_TIMEOUT
    storm_threshold: float = STORM_THRESHOLD
    output_dir: Optional[Path] = None
    cities_file: Optional[Path] = None

    def __post_init__(self):
        if not self.token or not self.token.strip():
            raise MissingTokenError(
                f"{TOKEN_ENV} environment variable is required. "
                f"Get a free token at: {CDO_TOKEN_URL}"
            )
        if self.page_size <= 0:
            raise ValueError(f"page_size must be positive, got {self.page_size}")

    @classmethod
    def from_env(cls, environ: Optional[dict] = None, **overrides) -> "Settings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)
            **overrides: Explicit values that win over the environment

        Raises:
            MissingTokenError: If NOAA_TOKEN is absent or empty
        """
        env = os.environ if environ is None else environ

        output_dir = env.get(OUTPUT_DIR_ENV)
        cities_file = env.get(CITIES_FILE_ENV)
        values = {
            "token": env.get(TOKEN_ENV, ""),
            "output_dir": Path(output_dir) if output_dir else None,
            "cities_file": Path(cities_file) if cities_file else None,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
