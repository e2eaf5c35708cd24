"""Data ingestion pipelines for brroyale.

Pipelines:
- cdo: NOAA Climate Data Online daily observations (GHCND SNOW and TMIN),
  paginated and rate limited
"""

from .cdo import CDOClient, CDOPipeline, CDOQuery, StationObservation

__all__ = [
    "CDOClient",
    "CDOPipeline",
    "CDOQuery",
    "StationObservation",
]
