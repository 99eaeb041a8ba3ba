"""Chart pipeline exception hierarchy.

All pipeline-specific exceptions derive from :class:`ChartError` so callers can
catch all chart-related errors uniformly.
"""

from __future__ import annotations


class ChartError(Exception):
    """Base class for chart pipeline exceptions.

    Derived exceptions should extend this class so that callers can catch all
    chart-specific errors uniformly.
    """


class ConfigError(ChartError):
    """Raised when configuration files or parameters are invalid."""


class DataSourceError(ChartError):
    """Raised when fetching from an upstream collaborator fails."""


class TimeRangeError(ChartError):
    """Raised when a requested time range cannot be normalized.

    This is a hard input error: it is raised before any fetch is issued.
    """


class DataValidationError(ChartError):
    """Raised when data fails validation checks.

    Named DataValidationError to avoid conflict with pydantic's ValidationError.
    """


__all__ = [
    "ChartError",
    "ConfigError",
    "DataSourceError",
    "TimeRangeError",
    "DataValidationError",
]
