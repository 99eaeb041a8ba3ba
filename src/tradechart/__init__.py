"""Unified time-series chart pipeline package root."""

from tradechart.exceptions import ChartError, DataSourceError, TimeRangeError

__all__ = ["ChartError", "DataSourceError", "TimeRangeError"]
