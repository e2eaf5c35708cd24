"""NOAA Climate Data Online (CDO) fetch client.

The CDO v2 ``/data`` endpoint serves GHCN-Daily observations as paged JSON.
Requests carry the API token in a ``token`` header and are limited to five
per second, so the client spaces every request (across pages and across
stations) by a fixed delay.

Data source:
- Endpoint: https://www.ncei.noaa.gov/cdo-web/api/v2/data
- Token: https://www.ncdc.noaa.gov/cdo-web/token

Variables used here (``units=standard``):
- SNOW: Daily snowfall (inches)
- TMIN: Daily minimum temperature (F)
"""

import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterator, Optional

import pandas as pd
import requests

from brroyale.utils import Settings, TemporalPipeline, ValidationResult
from brroyale.utils.config import CDO_BASE_URL, PAGE_SIZE, RATE_LIMIT_SECONDS, REQUEST_TIMEOUT

logger = logging.getLogger(__name__)

# Plausible bounds for a single daily reading
CDO_VALUE_LIMITS = {
    "SNOW": (0.0, 80.0),
    "TMIN": (-80.0, 110.0),
}

OBSERVATION_COLUMNS = ["date", "datatype", "value", "station_id"]


@dataclass(frozen=True)
class StationObservation:
    """One daily reading from the CDO data endpoint.

    Values are already unit-normalized by the API (``units=standard``):
    inches for SNOW, degrees Fahrenheit for TMIN.
    """

    date: date
    datatype: str  # 'SNOW' or 'TMIN'
    value: float
    station_id: str


@dataclass(frozen=True)
class CDOQuery:
    """Parameters for one station time series.

    Attributes:
        station_id: CDO station id (e.g., 'GHCND:USW00014771')
        datatype_id: 'SNOW' or 'TMIN'
        start_date: First day, YYYY-MM-DD
        end_date: Last day, YYYY-MM-DD
        dataset_id: CDO dataset, GHCND for daily summaries
        units: 'standard' (inches, F) or 'metric'
    """

    station_id: str
    datatype_id: str
    start_date: str
    end_date: str
    dataset_id: str = "GHCND"
    units: str = "standard"

    def to_params(self) -> dict[str, str]:
        return {
            "datasetid": self.dataset_id,
            "datatypeid": self.datatype_id,
            "stationid": self.station_id,
            "startdate": self.start_date,
            "enddate": self.end_date,
            "units": self.units,
        }


class CDOClient:
    """Paginated, rate-limited client for the CDO data endpoint.

    Only one request is in flight at a time. A page that comes back with a
    non-success status, a malformed body, or times out is treated as "no
    data" and ends pagination for that query. Other transport errors
    (connection refused, DNS failures, ...) propagate to the caller.

    Example:
        >>> client = CDOClient(token="...")
        >>> query = CDOQuery("GHCND:USW00014771", "SNOW", "2024-09-01", "2025-01-15")
        >>> total = sum(o.value for o in client.fetch_series(query) if o.value > 0)
    """

    # Retry configuration for throttling and server errors
    MAX_RETRIES = 3
    RETRY_DELAY = 2.0  # seconds
    RETRY_STATUSES = {429, 500, 502, 503, 504}

    def __init__(
        self,
        token: str,
        base_url: str = CDO_BASE_URL,
        page_size: int = PAGE_SIZE,
        rate_limit_seconds: float = RATE_LIMIT_SECONDS,
        timeout: float = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            token: CDO API token
            base_url: Data endpoint URL
            page_size: Rows per page (CDO maximum is 1000)
            rate_limit_seconds: Minimum spacing between consecutive requests
            timeout: Per-request timeout in seconds
            session: Optional requests session (for connection reuse/tests)
        """
        self.token = token
        self.base_url = base_url
        self.page_size = page_size
        self.rate_limit_seconds = rate_limit_seconds
        self.timeout = timeout
        self.session = session or requests.Session()
        self.request_count = 0
        self._last_request: Optional[float] = None

    @classmethod
    def from_settings(cls, settings: Settings, session: Optional[requests.Session] = None) -> "CDOClient":
        return cls(
            token=settings.token,
            base_url=settings.base_url,
            page_size=settings.page_size,
            rate_limit_seconds=settings.rate_limit_seconds,
            timeout=settings.timeout,
            session=session,
        )

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "CDOClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _throttle(self) -> None:
        """Sleep until the inter-request delay since the last request has passed."""
        if self._last_request is None or self.rate_limit_seconds <= 0:
            return
        elapsed = time.monotonic() - self._last_request
        remaining = self.rate_limit_seconds - elapsed
        if remaining > 0:
            time.sleep(remaining)

    def _request(self, params: dict[str, Any]) -> requests.Response:
        self._throttle()
        try:
            return self.session.get(
                self.base_url,
                params=params,
                headers={"token": self.token},
                timeout=self.timeout,
            )
        finally:
            self._last_request = time.monotonic()
            self.request_count += 1

    def fetch_page(self, query: CDOQuery, offset: int) -> Optional[list[dict]]:
        """Fetch one page of raw result rows.

        Args:
            query: Series to fetch
            offset: 1-based row offset

        Returns:
            List of raw result dicts, or None when the page yields no data
        """
        params = {**query.to_params(), "limit": str(self.page_size), "offset": str(offset)}

        for attempt in range(self.MAX_RETRIES + 1):
            try:
                response = self._request(params)
            except requests.Timeout as e:
                logger.warning(
                    f"CDO request timed out for {query.station_id} "
                    f"{query.datatype_id} offset={offset}: {e}"
                )
                return None

            status = response.status_code
            if status in self.RETRY_STATUSES and attempt < self.MAX_RETRIES:
                delay = self.RETRY_DELAY * (2**attempt)
                logger.warning(
                    f"CDO API returned {status} (attempt {attempt + 1}). "
                    f"Retrying in {delay:.1f}s..."
                )
                time.sleep(delay)
                continue

            if not 200 <= status < 300:
                logger.warning(f"CDO API error ({status}): {response.text[:200]}")
                return None

            try:
                body = response.json()
            except ValueError as e:
                logger.warning(f"Malformed CDO response for {query.station_id}: {e}")
                return None

            # CDO answers an empty query with "{}"
            results = body.get("results") if isinstance(body, dict) else None
            if not isinstance(results, list):
                logger.debug(f"No results for {query.station_id} offset={offset}")
                return None
            return results

        return None

    def iter_pages(self, query: CDOQuery) -> Iterator[list[dict]]:
        """Yield raw result pages until a short, empty, or failed page."""
        offset = 1
        while True:
            rows = self.fetch_page(query, offset)
            if not rows:
                return

            yield rows

            if len(rows) < self.page_size:
                return
            offset += self.page_size

    def fetch_series(self, query: CDOQuery) -> Iterator[StationObservation]:
        """Lazily yield observations for a query, page by page, in request order."""
        for rows in self.iter_pages(query):
            for row in rows:
                observation = parse_observation(row, query)
                if observation is not None:
                    yield observation


def parse_observation(row: dict, query: CDOQuery) -> Optional[StationObservation]:
    """Convert one CDO result row into a StationObservation.

    Rows look like ``{"date": "2024-01-05T00:00:00", "datatype": "SNOW",
    "station": "GHCND:USW00014771", "attributes": ",,W,2400", "value": 3.1}``.
    Rows missing a date or numeric value are skipped.
    """
    try:
        day = date.fromisoformat(str(row["date"])[:10])
        value = float(row["value"])
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Skipping malformed CDO row for {query.station_id}: {row!r} ({e})")
        return None

    return StationObservation(
        date=day,
        datatype=row.get("datatype", query.datatype_id),
        value=value,
        station_id=row.get("station", query.station_id),
    )


def observations_to_frame(observations) -> pd.DataFrame:
    """Build a date-sorted DataFrame from observations.

    Sorting is stable, so readings sharing a date keep their arrival order.
    """
    records = [
        {
            "date": pd.Timestamp(o.date),
            "datatype": o.datatype,
            "value": o.value,
            "station_id": o.station_id,
        }
        for o in observations
    ]
    if not records:
        df = pd.DataFrame(columns=OBSERVATION_COLUMNS)
        df["date"] = pd.to_datetime(df["date"])
        df["value"] = df["value"].astype(float)
        return df

    df = pd.DataFrame(records, columns=OBSERVATION_COLUMNS)
    return df.sort_values("date", kind="mergesort").reset_index(drop=True)


class CDOPipeline(TemporalPipeline):
    """Station time-series pipeline on top of CDOClient.

    Example:
        >>> pipeline = CDOPipeline(client, datatype_id="TMIN")
        >>> df, validation = pipeline.run(
        ...     "2024-09-01", "2025-01-15", station_id="GHCND:USW00026411"
        ... )
    """

    def __init__(self, client: CDOClient, datatype_id: str = "SNOW", dataset_id: str = "GHCND"):
        self.client = client
        self.datatype_id = datatype_id
        self.dataset_id = dataset_id

    def download(
        self,
        start_date: str,
        end_date: str,
        station_id: Optional[str] = None,
        **kwargs
    ) -> list[StationObservation]:
        """Fetch all observations for one station and date range.

        Implements the TemporalPipeline interface.

        Raises:
            ValueError: If no station_id is given
        """
        if station_id is None:
            raise ValueError("station_id is required")

        query = CDOQuery(
            station_id=station_id,
            datatype_id=self.datatype_id,
            start_date=start_date,
            end_date=end_date,
            dataset_id=self.dataset_id,
        )
        return list(self.client.fetch_series(query))

    def process(self, raw: list[StationObservation]) -> pd.DataFrame:
        """Turn observations into a date-sorted DataFrame."""
        return observations_to_frame(raw)

    def validate(self, data: pd.DataFrame) -> ValidationResult:
        """Validate a station series.

        An empty series is reported invalid but is not an error for the
        leaderboard: the aggregators map it to neutral values.
        """
        if len(data) == 0:
            return ValidationResult(
                valid=False,
                total_rows=0,
                missing_pct=100.0,
                issues=["No data found"],
            )

        issues = []
        total_rows = len(data)

        missing_count = int(data["value"].isna().sum())
        missing_pct = (missing_count / total_rows) * 100

        low, high = CDO_VALUE_LIMITS.get(self.datatype_id, (float("-inf"), float("inf")))
        outliers_count = int(((data["value"] < low) | (data["value"] > high)).sum())
        if outliers_count > 0:
            issues.append(
                f"Found {outliers_count} {self.datatype_id} outliers (outside {low} to {high})"
            )

        duplicate_days = int(data["date"].duplicated().sum())
        if duplicate_days > 0:
            issues.append(f"Found {duplicate_days} duplicate dates")

        stats = {
            "stations": data["station_id"].nunique(),
            "date_range": (
                data["date"].min().date().isoformat(),
                data["date"].max().date().isoformat(),
            ),
            "value_min": float(data["value"].min()),
            "value_max": float(data["value"].max()),
        }

        return ValidationResult(
            valid=missing_pct < 20 and len(issues) == 0,
            total_rows=total_rows,
            missing_pct=missing_pct,
            outliers_count=outliers_count,
            issues=issues,
            stats=stats,
        )
