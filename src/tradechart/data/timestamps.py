"""Timestamp canonicalization to integer epoch milliseconds."""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone
from numbers import Real
from typing import Any

from tradechart.exceptions import TimeRangeError
from tradechart.types import TimeRange

# Numeric timestamps below this are epoch seconds, at or above it milliseconds.
MILLISECONDS_THRESHOLD = 1e12

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)

# Epoch milliseconds representable as a datetime.
_MIN_MS = (datetime.min.replace(tzinfo=timezone.utc) - _EPOCH) // _ONE_MS
_MAX_MS = (datetime.max.replace(tzinfo=timezone.utc) - _EPOCH) // _ONE_MS


def _datetime_to_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // _ONE_MS


def _number_to_ms(value: float) -> int | None:
    if not math.isfinite(value):
        return None
    if value < MILLISECONDS_THRESHOLD:
        return int(round(value * 1000))
    return int(value)


def _parse_string(value: str) -> int | None:
    text = value.strip()
    if not text:
        return None

    try:
        return _number_to_ms(float(text))
    except ValueError:
        pass

    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return _datetime_to_ms(dt)


def normalize_timestamp(value: Any) -> int | None:
    """Normalize a timestamp to integer epoch milliseconds.

    Numbers below 1e12 are read as epoch seconds and scaled by 1000; larger
    numbers are taken as milliseconds already. Strings may be numeric or
    ISO-8601; naive datetimes and offset-less strings are read as UTC.

    :param value: Epoch seconds/ms, ``datetime``/``date``, or string.
    :returns: Epoch milliseconds, or None if the value cannot be parsed.
    """
    if isinstance(value, datetime):
        return _datetime_to_ms(value)
    if isinstance(value, date):
        return _datetime_to_ms(datetime(value.year, value.month, value.day))
    if isinstance(value, bool):
        return None
    if isinstance(value, Real):
        return _number_to_ms(float(value))
    if isinstance(value, str):
        return _parse_string(value)
    return None


def normalize_time_range(start: Any, end: Any) -> TimeRange:
    """Normalize both ends of a caller-supplied time range.

    :param start: Range start in any form accepted by :func:`normalize_timestamp`.
    :param end: Range end in any form accepted by :func:`normalize_timestamp`.
    :returns: Normalized range in epoch milliseconds.
    :raises TimeRangeError: If either end is unparseable, outside the
        dates a ``datetime`` can represent, or start is after end.
    """
    start_ms = normalize_timestamp(start)
    end_ms = normalize_timestamp(end)

    if start_ms is None or end_ms is None:
        raise TimeRangeError(f"Invalid time range: start={start!r}, end={end!r}")
    if not (_MIN_MS <= start_ms <= _MAX_MS and _MIN_MS <= end_ms <= _MAX_MS):
        raise TimeRangeError(
            f"Invalid time range: start={start!r}, end={end!r} "
            "is outside the supported dates"
        )
    if start_ms > end_ms:
        raise TimeRangeError(
            f"Invalid time range: start {start_ms} is after end {end_ms}"
        )

    return TimeRange(start=start_ms, end=end_ms)


def to_iso(timestamp_ms: int) -> str:
    """Format epoch milliseconds as a UTC ISO-8601 string.

    :param timestamp_ms: Epoch milliseconds.
    :returns: ISO string with millisecond precision and ``Z`` suffix.
    """
    dt = _EPOCH + timedelta(milliseconds=timestamp_ms)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


__all__ = [
    "MILLISECONDS_THRESHOLD",
    "normalize_timestamp",
    "normalize_time_range",
    "to_iso",
]
