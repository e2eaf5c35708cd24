"""Shared pytest fixtures for brroyale tests.

Test Tiers:
- unit: Fast tests with fixtures, no network (default)
- integration: Tests against canned API responses
- live: Real API tests, slow, requires network and a NOAA_TOKEN

Run live tests with: pytest -m live --run-live
"""

from datetime import date
from pathlib import Path

import pytest

from brroyale.leaderboard.models import City


def pytest_addoption(parser):
    """Add command line options for test configuration."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run live API tests (slow, requires network)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: fast unit tests using fixtures")
    config.addinivalue_line("markers", "integration: tests with recorded API responses")
    config.addinivalue_line("markers", "live: real API tests (slow, requires network)")


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is specified."""
    if config.getoption("--run-live"):
        return

    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def sample_cities() -> list[City]:
    """Small registry covering all three categories."""
    return [
        City("syracuse-ny", "Syracuse", "NY", "GHCND:SYR", ("US_Top10", "NY_Top10"), 124.3, -26),
        City("erie-pa", "Erie", "PA", "GHCND:ERI", ("US_Top10",), 104.1, -18),
        City("buffalo-ny", "Buffalo", "NY", "GHCND:BUF", ("US_Top10", "NY_Top10"), 95.4, -20),
        City("watertown-ny", "Watertown", "NY", "GHCND:ART", ("NY_Top10",), 110.0, -37),
        City("fairbanks-ak", "Fairbanks", "AK", "GHCND:FAI", ("Coldest_Cities",), 65.0, -66),
        City("fargo-nd", "Fargo", "ND", "GHCND:FAR", ("Coldest_Cities",), None, -48),
        City("duluth-mn", "Duluth", "MN", "GHCND:DLH", ("US_Top10", "Coldest_Cities"), 90.2, -41),
    ]


@pytest.fixture
def today() -> date:
    return date(2025, 1, 15)
