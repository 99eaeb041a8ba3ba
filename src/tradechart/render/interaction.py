"""Touch state machine and per-line value interpolation.

Everything here runs synchronously on each pointer event.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Sequence

import numpy as np

from tradechart.render.layout import ChartLayout
from tradechart.types import LinePoint


class TouchPhase(str, Enum):
    """Pointer interaction state."""

    IDLE = "idle"
    TOUCHING = "touching"


def _clamp_unit(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return min(max(value, 0.0), 1.0)


def normalize_touch_x(location_x: float, layout: ChartLayout) -> float:
    """Convert a pointer x coordinate to a normalized plot position.

    :param location_x: Pointer x relative to the chart's left edge.
    :param layout: Current layout.
    :returns: Position in [0, 1], clamped to the plot bounds.
    """
    return _clamp_unit((location_x - layout.plot_left) / max(layout.plot_width, 1.0))


class TouchTracker:
    """``Idle``/``Touching`` state machine driven by pointer events.

    The tracked position is always a normalized x in [0, 1].
    """

    def __init__(self) -> None:
        self.phase = TouchPhase.IDLE
        self.x = 0.0

    @property
    def is_touching(self) -> bool:
        return self.phase is TouchPhase.TOUCHING

    def press(self, x: float) -> None:
        """Pointer down: Idle → Touching at x."""
        self.x = _clamp_unit(x)
        self.phase = TouchPhase.TOUCHING

    def move(self, x: float) -> None:
        """Pointer move: update x while touching; ignored while idle."""
        if self.is_touching:
            self.x = _clamp_unit(x)

    def release(self) -> None:
        """Pointer up: Touching → Idle."""
        self.phase = TouchPhase.IDLE

    def cancel(self) -> None:
        """Pointer terminated by the system: Touching → Idle."""
        self.phase = TouchPhase.IDLE


def interpolate_value(points: Sequence[LinePoint], x: float) -> float:
    """Linearly interpolate a line's value at normalized time x.

    Outside the line's own time extent the nearest end point's value is used.
    Non-finite points are ignored; a line with no usable points yields 0.

    :param points: Line points.
    :param x: Normalized time.
    :returns: Interpolated value.
    """
    valid = [
        (p.time, p.value)
        for p in points
        if math.isfinite(p.time) and math.isfinite(p.value)
    ]
    if not valid:
        return 0.0

    times = np.array([t for t, _ in valid], dtype=float)
    values = np.array([v for _, v in valid], dtype=float)
    order = np.argsort(times, kind="stable")
    times, values = times[order], values[order]

    if not math.isfinite(x):
        return float(values[0])

    result = float(np.interp(x, times, values))
    return result if math.isfinite(result) else 0.0


__all__ = [
    "TouchPhase",
    "normalize_touch_x",
    "TouchTracker",
    "interpolate_value",
]
