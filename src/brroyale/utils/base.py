"""Fetch pipeline contract used by the CDO station pipeline."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import pandas as pd


@dataclass
class ValidationResult:
    """Result of data validation.

    Attributes:
        valid: Whether the data passed all validation checks
        total_rows: Total number of observations in the dataset
        missing_pct: Percentage of missing values (0-100)
        outliers_count: Number of outlier values detected
        issues: List of validation issues found
        stats: Dictionary of summary statistics
    """

    valid: bool
    total_rows: int
    missing_pct: float
    outliers_count: int = 0
    issues: list[str] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        status = "VALID" if self.valid else "INVALID"
        return (
            f"ValidationResult({status}, "
            f"rows={self.total_rows}, "
            f"missing={self.missing_pct:.1f}%, "
            f"outliers={self.outliers_count})"
        )


class BasePipeline(ABC):
    """A source whose output can be checked before it is ranked or archived."""

    @abstractmethod
    def validate(self, data: Any) -> ValidationResult:
        """Validate data for quality and completeness.

        Args:
            data: Data to validate

        Returns:
            ValidationResult with quality metrics and issues
        """
        pass


class TemporalPipeline(BasePipeline):
    """A source of dated observations for one station and date range."""

    @abstractmethod
    def download(self, start_date: str, end_date: str, **kwargs) -> Any:
        """Download raw records from the source for a date range.

        Args:
            start_date: Start date in YYYY-MM-DD format
            end_date: End date in YYYY-MM-DD format
            **kwargs: Additional source-specific parameters

        Returns:
            Raw records as returned by the source.
        """
        pass

    @abstractmethod
    def process(self, raw: Any) -> pd.DataFrame:
        """Process raw records into standardized DataFrame format.

        Args:
            raw: Raw records from download().

        Returns:
            DataFrame with standardized columns and types
        """
        pass

    def run(
        self,
        start_date: str,
        end_date: str,
        raise_on_invalid: bool = False,
        **kwargs
    ) -> tuple[pd.DataFrame, ValidationResult]:
        """Download and tabulate one date range, then validate it.

        Args:
            start_date: Start date in YYYY-MM-DD format
            end_date: End date in YYYY-MM-DD format
            raise_on_invalid: If True, raise ValueError when validation fails
            **kwargs: Additional parameters passed to download()

        Returns:
            Tuple of (processed DataFrame, validation result)

        Raises:
            ValueError: If raise_on_invalid=True and validation fails
        """
        raw = self.download(start_date, end_date, **kwargs)
        df = self.process(raw)
        validation = self.validate(df)

        if raise_on_invalid and not validation.valid:
            raise ValueError(
                f"Data validation failed: {validation.issues}. "
                f"Missing: {validation.missing_pct:.1f}%, "
                f"Outliers: {validation.outliers_count}"
            )

        return df, validation
