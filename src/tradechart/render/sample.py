"""Placeholder sample lines shown when a caller opts in and has no real data."""

from __future__ import annotations

import random

from tradechart.data.assemble import format_percent
from tradechart.types import ChartLine, LinePoint

SAMPLE_POINT_COUNT = 40

# (id, name, color, late trend)
SAMPLE_AGENTS = (
    ("sample-1", "Agent Alpha", "#00ff9f", 0.4),
    ("sample-2", "Agent Beta", "#ff6b35", 0.35),
    ("sample-3", "Agent Gamma", "#00d4ff", 0.3),
)


def _sample_walk(rng: random.Random, late_trend: float, count: int) -> list[LinePoint]:
    """Upward-drifting random walk in percent, positive after the first third."""
    crossover = count // 3
    volatility = 0.6
    current = 0.0
    points = []

    for i in range(count):
        trend = 0.3 if i <= crossover else late_trend
        if i == crossover and current <= 0:
            current = 0.2
        current += trend * 0.15 + (rng.random() - 0.5) * volatility
        if i >= crossover:
            current = max(0.1, min(15.0, current))
        else:
            current = max(-15.0, min(15.0, current))
        points.append(LinePoint(time=i / (count - 1), value=current))

    return points


def sample_lines(seed: int = 1, count: int = SAMPLE_POINT_COUNT) -> list[ChartLine]:
    """Deterministic placeholder lines for charts without real data.

    :param seed: Random seed; the same seed always yields the same lines.
    :param count: Points per line (at least 2).
    :returns: One line per sample agent, on the left axis.
    """
    rng = random.Random(seed)
    count = max(count, 2)
    return [
        ChartLine(
            id=line_id,
            name=name,
            color=color,
            data=_sample_walk(rng, trend, count),
            format_value=format_percent,
        )
        for line_id, name, color, trend in SAMPLE_AGENTS
    ]


__all__ = ["SAMPLE_POINT_COUNT", "SAMPLE_AGENTS", "sample_lines"]
