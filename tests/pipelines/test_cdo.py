"""Tests for the NOAA CDO fetch client and pipeline."""

from datetime import date
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest
import requests

from helpers import make_response, make_rows
from brroyale.pipelines.cdo import (
    CDOClient,
    CDOPipeline,
    CDOQuery,
    StationObservation,
    observations_to_frame,
    parse_observation,
)
from brroyale.utils import Settings, ValidationResult


QUERY = CDOQuery(
    station_id="GHCND:USW00014771",
    datatype_id="SNOW",
    start_date="2024-09-01",
    end_date="2025-01-15",
)


def _client(responses, page_size=1000, **kwargs):
    session = MagicMock()
    session.get.side_effect = responses
    kwargs.setdefault("rate_limit_seconds", 0)
    return CDOClient(token="test-token", page_size=page_size, session=session, **kwargs), session


class TestCDOQuery:
    """Tests for CDOQuery parameters."""

    def test_to_params(self):
        """Should map fields to CDO query parameter names."""
        params = QUERY.to_params()

        assert params == {
            "datasetid": "GHCND",
            "datatypeid": "SNOW",
            "stationid": "GHCND:USW00014771",
            "startdate": "2024-09-01",
            "enddate": "2025-01-15",
            "units": "standard",
        }


class TestPagination:
    """Tests for paginated fetching."""

    def test_full_pages_then_short_page(self):
        """N full pages plus a short page should take exactly N+1 requests."""
        pages = [make_rows(3), make_rows(3, start=date(2024, 1, 4)), make_rows(2, start=date(2024, 1, 7))]
        client, session = _client([make_response(body={"results": p}) for p in pages], page_size=3)

        observations = list(client.fetch_series(QUERY))

        assert session.get.call_count == 3
        assert client.request_count == 3
        assert len(observations) == 8
        assert [o.date for o in observations] == [date(2024, 1, d) for d in range(1, 9)]

    def test_default_page_size(self):
        """Two full 1000-row pages then a short one should take three requests."""
        pages = [make_rows(1000), make_rows(1000), make_rows(5)]
        client, session = _client([make_response(body={"results": p}) for p in pages])

        observations = list(client.fetch_series(QUERY))

        assert session.get.call_count == 3
        assert len(observations) == 2005

    def test_offsets_increase_by_page_size(self):
        """Offsets should start at 1 and advance by the page size."""
        pages = [make_rows(3), make_rows(3), make_rows(0)]
        client, session = _client([make_response(body={"results": p}) for p in pages], page_size=3)

        list(client.fetch_series(QUERY))

        offsets = [c.kwargs["params"]["offset"] for c in session.get.call_args_list]
        limits = {c.kwargs["params"]["limit"] for c in session.get.call_args_list}
        assert offsets == ["1", "4", "7"]
        assert limits == {"3"}

    def test_token_header_and_timeout(self):
        """Requests should carry the token header and the configured timeout."""
        client, session = _client([make_response(body={"results": make_rows(1)})], timeout=12)

        list(client.fetch_series(QUERY))

        kwargs = session.get.call_args.kwargs
        assert kwargs["headers"] == {"token": "test-token"}
        assert kwargs["timeout"] == 12
        assert kwargs["params"]["stationid"] == "GHCND:USW00014771"

    def test_empty_body_stops(self):
        """CDO's empty '{}' answer should end pagination with no data."""
        client, session = _client([make_response(body={})])

        assert list(client.fetch_series(QUERY)) == []
        assert session.get.call_count == 1

    def test_lazy_iteration(self):
        """No request should be made until the series is iterated."""
        client, session = _client([make_response(body={"results": make_rows(1)})])

        series = client.fetch_series(QUERY)

        assert session.get.call_count == 0
        next(series)
        assert session.get.call_count == 1


class TestErrorHandling:
    """Tests for degraded responses."""

    def test_error_status_is_no_data(self):
        """A non-success status should yield no data rather than raise."""
        client, session = _client([make_response(status=400, text="bad station")])

        assert list(client.fetch_series(QUERY)) == []
        assert session.get.call_count == 1

    def test_error_on_later_page_keeps_earlier_rows(self):
        """A failed page should end pagination but keep rows already fetched."""
        client, _ = _client(
            [make_response(body={"results": make_rows(3)}), make_response(status=400)],
            page_size=3,
        )

        assert len(list(client.fetch_series(QUERY))) == 3

    def test_malformed_body_is_no_data(self):
        """An unparseable body should yield no data."""
        client, _ = _client([make_response(body=ValueError("Expecting value"))])

        assert list(client.fetch_series(QUERY)) == []

    def test_results_not_a_list_is_no_data(self):
        """A body whose results are not a list should yield no data."""
        client, _ = _client([make_response(body={"results": "oops"})])

        assert list(client.fetch_series(QUERY)) == []

    def test_timeout_is_no_data(self):
        """A request timeout should yield no data for that page."""
        client, _ = _client([requests.Timeout("read timed out")])

        assert list(client.fetch_series(QUERY)) == []

    def test_connection_error_propagates(self):
        """Other transport failures should propagate to the caller."""
        client, _ = _client([requests.ConnectionError("refused")])

        with pytest.raises(requests.ConnectionError):
            list(client.fetch_series(QUERY))

    @patch("brroyale.pipelines.cdo.time")
    def test_retries_server_errors(self, mock_time):
        """429/5xx responses should be retried with backoff."""
        client, session = _client([
            make_response(status=503),
            make_response(status=429),
            make_response(body={"results": make_rows(2)}),
        ])

        observations = list(client.fetch_series(QUERY))

        assert len(observations) == 2
        assert session.get.call_count == 3
        delays = [c.args[0] for c in mock_time.sleep.call_args_list]
        assert delays == [2.0, 4.0]

    @patch("brroyale.pipelines.cdo.time")
    def test_gives_up_after_max_retries(self, mock_time):
        """Persistent server errors should end as no data."""
        client, session = _client([make_response(status=503)] * (CDOClient.MAX_RETRIES + 1))

        assert list(client.fetch_series(QUERY)) == []
        assert session.get.call_count == CDOClient.MAX_RETRIES + 1


class TestRateLimit:
    """Tests for inter-request spacing."""

    @patch("brroyale.pipelines.cdo.time")
    def test_delay_between_different_queries(self, mock_time):
        """The delay should also apply between requests for different stations."""
        mock_time.monotonic.side_effect = [100.0, 100.1, 100.5]
        client, session = _client(
            [make_response(body={"results": make_rows(1)}), make_response(body={"results": make_rows(1)})],
            rate_limit_seconds=0.26,
        )
        other = CDOQuery("GHCND:USW00014733", "SNOW", "2024-09-01", "2025-01-15")

        list(client.fetch_series(QUERY))
        list(client.fetch_series(other))

        assert session.get.call_count == 2
        mock_time.sleep.assert_called_once()
        assert mock_time.sleep.call_args.args[0] == pytest.approx(0.16)

    @patch("brroyale.pipelines.cdo.time")
    def test_no_sleep_when_enough_time_passed(self, mock_time):
        """No sleep should happen when the delay has already elapsed."""
        mock_time.monotonic.side_effect = [100.0, 101.0, 101.1]
        client, _ = _client(
            [make_response(body={"results": make_rows(1)}), make_response(body={"results": make_rows(1)})],
            rate_limit_seconds=0.26,
        )

        list(client.fetch_series(QUERY))
        list(client.fetch_series(QUERY))

        mock_time.sleep.assert_not_called()


class TestFromSettings:
    """Tests for building a client from settings."""

    def test_from_settings(self):
        """Should copy token, page size, rate limit and timeout."""
        settings = Settings(token="abc", page_size=500, rate_limit_seconds=1.0, timeout=5)
        client = CDOClient.from_settings(settings, session=MagicMock())

        assert client.token == "abc"
        assert client.page_size == 500
        assert client.rate_limit_seconds == 1.0
        assert client.timeout == 5

    def test_context_manager_closes_session(self):
        """Leaving the context should close the session."""
        session = MagicMock()
        with CDOClient(token="abc", session=session):
            pass
        session.close.assert_called_once()


class TestParseObservation:
    """Tests for parse_observation."""

    def test_parse_row(self):
        """Should parse date, value, datatype and station."""
        row = make_rows(1, start=date(2025, 1, 14), value=3.1)[0]

        observation = parse_observation(row, QUERY)

        assert observation == StationObservation(
            date=date(2025, 1, 14), datatype="SNOW", value=3.1, station_id="GHCND:USW00014771"
        )

    def test_missing_value_skipped(self):
        """Rows without a numeric value should be skipped."""
        assert parse_observation({"date": "2025-01-14T00:00:00", "value": None}, QUERY) is None
        assert parse_observation({"value": 1.0}, QUERY) is None

    def test_defaults_from_query(self):
        """Missing datatype/station should fall back to the query."""
        observation = parse_observation({"date": "2025-01-14T00:00:00", "value": -12}, QUERY)

        assert observation.datatype == "SNOW"
        assert observation.station_id == "GHCND:USW00014771"
        assert observation.value == -12.0


class TestObservationsToFrame:
    """Tests for observations_to_frame."""

    def test_sorted_by_date(self):
        """Should sort observations ascending by date."""
        observations = [
            StationObservation(date(2025, 1, 3), "SNOW", 2.0, "S"),
            StationObservation(date(2025, 1, 1), "SNOW", 1.0, "S"),
        ]

        df = observations_to_frame(observations)

        assert list(df["value"]) == [1.0, 2.0]
        assert pd.api.types.is_datetime64_any_dtype(df["date"])

    def test_empty(self):
        """Should return an empty frame with the standard columns."""
        df = observations_to_frame([])

        assert len(df) == 0
        assert list(df.columns) == ["date", "datatype", "value", "station_id"]


class TestCDOPipeline:
    """Tests for the TemporalPipeline implementation."""

    def test_run(self):
        """run() should download, process and validate one station."""
        client, session = _client([make_response(body={"results": make_rows(3, value=2.5)})])
        pipeline = CDOPipeline(client, datatype_id="SNOW")

        df, validation = pipeline.run("2024-09-01", "2025-01-15", station_id="GHCND:USW00014771")

        assert len(df) == 3
        assert isinstance(validation, ValidationResult)
        assert validation.valid
        assert validation.stats["value_max"] == 2.5
        assert session.get.call_args.kwargs["params"]["datatypeid"] == "SNOW"

    def test_download_requires_station(self):
        """download() without a station should raise ValueError."""
        client, _ = _client([])
        pipeline = CDOPipeline(client)

        with pytest.raises(ValueError, match="station_id"):
            pipeline.download("2024-09-01", "2025-01-15")

    def test_validate_empty(self):
        """An empty series should be invalid with a 'No data' issue."""
        client, _ = _client([])
        validation = CDOPipeline(client).validate(observations_to_frame([]))

        assert not validation.valid
        assert validation.issues == ["No data found"]

    def test_validate_outliers(self):
        """Readings outside plausible bounds should be flagged."""
        client, _ = _client([])
        observations = [
            StationObservation(date(2025, 1, 1), "TMIN", -95.0, "S"),
            StationObservation(date(2025, 1, 2), "TMIN", -10.0, "S"),
        ]

        validation = CDOPipeline(client, datatype_id="TMIN").validate(observations_to_frame(observations))

        assert validation.outliers_count == 1
        assert not validation.valid

    def test_run_raise_on_invalid(self):
        """run(raise_on_invalid=True) should raise for an empty series."""
        client, _ = _client([make_response(body={})])
        pipeline = CDOPipeline(client)

        with pytest.raises(ValueError, match="validation failed"):
            pipeline.run("2024-09-01", "2025-01-15", raise_on_invalid=True, station_id="GHCND:X")
