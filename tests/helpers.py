"""Builders and fakes shared across test modules."""

from datetime import date, timedelta
from unittest.mock import MagicMock

from brroyale.pipelines.cdo import CDOQuery, StationObservation


def make_response(status=200, body=None, text=""):
    """Build a fake requests.Response."""
    response = MagicMock()
    response.status_code = status
    response.text = text
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


def make_rows(count, start=date(2024, 1, 1), value=1.0, datatype="SNOW", station="GHCND:USW00014771"):
    """Build `count` raw CDO result rows on consecutive days."""
    return [
        {
            "date": f"{(start + timedelta(days=i)).isoformat()}T00:00:00",
            "datatype": datatype,
            "station": station,
            "attributes": ",,W,2400",
            "value": value,
        }
        for i in range(count)
    ]


def obs(day, value, datatype="SNOW", station="GHCND:TEST"):
    """Shorthand for a StationObservation on an ISO date."""
    return StationObservation(date=date.fromisoformat(day), datatype=datatype, value=value, station_id=station)


class FakeCDOClient:
    """Stands in for CDOClient: serves canned observations per (station, datatype)."""

    def __init__(self, series=None, errors=None):
        self.series = series or {}
        self.errors = errors or {}
        self.queries: list[CDOQuery] = []
        self.closed = False

    def fetch_series(self, query):
        self.queries.append(query)
        key = (query.station_id, query.datatype_id)
        if key in self.errors:
            raise self.errors[key]
        return iter(self.series.get(key, []))

    def close(self):
        self.closed = True
