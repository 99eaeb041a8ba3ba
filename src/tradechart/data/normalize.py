"""Pure transforms from raw collaborator records to normalized points.

Every transform filters to an inclusive ``[start, end]`` window and skips
points with an unparseable timestamp or a non-finite value. A bad point never
discards the rest of the series, and output order always follows input order.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, Iterator

from tradechart.data.timestamps import normalize_timestamp
from tradechart.types import (
    CandleField,
    NormalizedPoint,
    RawCandlePoint,
    RawEquityPoint,
    RawSentimentPoint,
)

logger = logging.getLogger(__name__)


def _to_finite_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _valid_in_range(
    samples: Iterable[tuple[Any, Any]],
    start: int,
    end: int,
) -> Iterator[tuple[int, float]]:
    """Yield (timestamp_ms, value) for valid, in-range samples."""
    skipped = 0
    for raw_timestamp, raw_value in samples:
        timestamp = normalize_timestamp(raw_timestamp)
        value = _to_finite_float(raw_value)
        if timestamp is None or value is None:
            skipped += 1
            continue
        if timestamp < start or timestamp > end:
            continue
        yield timestamp, value
    if skipped:
        logger.debug("Skipped %d invalid points", skipped)


def _percent_change(samples: Iterator[tuple[int, float]]) -> list[NormalizedPoint]:
    points: list[NormalizedPoint] = []
    baseline: float | None = None

    for timestamp, value in samples:
        if baseline is None:
            baseline = value
        change = (value - baseline) * 100 / baseline if baseline != 0 else 0.0
        points.append(NormalizedPoint(timestamp=timestamp, value=change))

    return points


def filter_to_time_range(
    points: Iterable[NormalizedPoint],
    start: int,
    end: int,
) -> list[NormalizedPoint]:
    """Keep normalized points whose timestamp lies in ``[start, end]``."""
    return [p for p in points if start <= p.timestamp <= end]


def equity_to_percent_change(
    points: Iterable[RawEquityPoint],
    start: int,
    end: int,
) -> list[NormalizedPoint]:
    """Convert equity history to percent change from its first in-range value.

    A zero baseline yields 0 for every point rather than NaN or infinity.

    :param points: Raw equity samples in chronological order.
    :param start: Window start in epoch ms (inclusive).
    :param end: Window end in epoch ms (inclusive).
    :returns: Percent-change points.
    """
    return _percent_change(
        _valid_in_range(((p.timestamp, p.equity) for p in points), start, end)
    )


def candles_to_percent_change(
    candles: Iterable[RawCandlePoint],
    start: int,
    end: int,
    field: CandleField = "close",
) -> list[NormalizedPoint]:
    """Convert one OHLC field to percent change from its first in-range value.

    :param candles: Raw candles in chronological order.
    :param start: Window start in epoch ms (inclusive).
    :param end: Window end in epoch ms (inclusive).
    :param field: OHLC field to chart.
    :returns: Percent-change points.
    """
    return _percent_change(
        _valid_in_range(((c.timestamp, getattr(c, field)) for c in candles), start, end)
    )


def sentiment_to_normalized(
    points: Iterable[RawSentimentPoint],
    start: int,
    end: int,
) -> list[NormalizedPoint]:
    """Pass sentiment scores through unchanged, filtered to the window.

    Scores are already bounded to [-1, 1], so no baseline is applied.

    :param points: Raw sentiment samples in chronological order.
    :param start: Window start in epoch ms (inclusive).
    :param end: Window end in epoch ms (inclusive).
    :returns: Sentiment points.
    """
    return [
        NormalizedPoint(timestamp=timestamp, value=score)
        for timestamp, score in _valid_in_range(
            ((p.timestamp, p.score) for p in points), start, end
        )
    ]


__all__ = [
    "filter_to_time_range",
    "equity_to_percent_change",
    "candles_to_percent_change",
    "sentiment_to_normalized",
]
