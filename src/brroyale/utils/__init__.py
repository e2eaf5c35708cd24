"""Shared utilities for brroyale pipelines."""

from .base import BasePipeline, TemporalPipeline, ValidationResult
from .config import MissingTokenError, Settings
from .io import get_output_dir, read_json, write_json

__all__ = [
    "BasePipeline",
    "TemporalPipeline",
    "ValidationResult",
    "MissingTokenError",
    "Settings",
    "get_output_dir",
    "read_json",
    "write_json",
]
