"""Per-axis-group value scales and the data-to-pixel mapping."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np

from tradechart.render.layout import ChartLayout
from tradechart.types import AxisGroup, ChartLine

TICK_COUNT = 5
# Fraction of the data range added above and below.
PADDING_RATIO = 0.1
# Padding used when the data range is exactly zero.
MIN_PADDING = 1.0
# Scale used by a group with no finite values.
EMPTY_SCALE_RANGE = (-10.0, 10.0)

AXIS_GROUPS: tuple[AxisGroup, ...] = ("left", "right")


@dataclass(frozen=True)
class AxisScale:
    """Value range and tick positions for one axis group.

    :param minimum: Bottom of the scale.
    :param maximum: Top of the scale.
    :param ticks: Evenly spaced tick values from minimum to maximum.
    """

    minimum: float
    maximum: float
    ticks: tuple[float, ...]

    @property
    def span(self) -> float:
        return self.maximum - self.minimum


def compute_axis_scale(values: Iterable[float]) -> AxisScale:
    """Build a padded scale that always spans zero.

    :param values: Line values in the group; non-finite values are ignored.
    :returns: Scale over ``[min(0, lo), max(0, hi)]`` plus 10% padding.
    """
    data = np.fromiter(values, dtype=float)
    data = data[np.isfinite(data)]

    if data.size == 0:
        minimum, maximum = EMPTY_SCALE_RANGE
    else:
        low = min(0.0, float(data.min()))
        high = max(0.0, float(data.max()))
        padding = (high - low) * PADDING_RATIO or MIN_PADDING
        minimum, maximum = low - padding, high + padding

    ticks = tuple(float(t) for t in np.linspace(minimum, maximum, TICK_COUNT))
    return AxisScale(minimum=minimum, maximum=maximum, ticks=ticks)


def group_lines(lines: Sequence[ChartLine]) -> dict[AxisGroup, list[ChartLine]]:
    """Partition lines by axis group, preserving order."""
    groups: dict[AxisGroup, list[ChartLine]] = {group: [] for group in AXIS_GROUPS}
    for line in lines:
        groups[line.axis_group].append(line)
    return groups


def compute_axis_scales(lines: Sequence[ChartLine]) -> dict[AxisGroup, AxisScale]:
    """Compute a scale for every axis group that has at least one line."""
    return {
        group: compute_axis_scale(p.value for line in members for p in line.data)
        for group, members in group_lines(lines).items()
        if members
    }


class CoordinateMapper:
    """Maps normalized time and axis values to plot coordinates.

    Non-finite intermediates map to the center of the plot so geometry never
    carries NaN or infinity.

    :param layout: Chart layout.
    :param scales: Scales keyed by axis group.
    """

    def __init__(self, layout: ChartLayout, scales: dict[AxisGroup, AxisScale]) -> None:
        self.layout = layout
        self.scales = scales

    @property
    def center_x(self) -> float:
        return self.layout.plot_left + self.layout.plot_width / 2

    @property
    def center_y(self) -> float:
        return self.layout.plot_top + self.layout.plot_height / 2

    def x(self, time: float) -> float:
        """Horizontal position of a normalized time in [0, 1]."""
        if not math.isfinite(time):
            return self.center_x
        clamped = min(max(time, 0.0), 1.0)
        result = self.layout.plot_left + clamped * self.layout.plot_width
        return result if math.isfinite(result) else self.center_x

    def y(self, value: float, axis_group: AxisGroup = "left") -> float:
        """Vertical position of a value on the given axis group."""
        scale = self.scales.get(axis_group)
        if scale is None or not math.isfinite(value):
            return self.center_y

        span = scale.span
        if not math.isfinite(span) or span == 0:
            return self.center_y

        normalized = (value - scale.minimum) / span
        if not math.isfinite(normalized):
            return self.center_y
        normalized = min(max(normalized, 0.0), 1.0)

        result = self.layout.plot_bottom - normalized * self.layout.plot_height
        return result if math.isfinite(result) else self.center_y


__all__ = [
    "TICK_COUNT",
    "PADDING_RATIO",
    "MIN_PADDING",
    "EMPTY_SCALE_RANGE",
    "AXIS_GROUPS",
    "AxisScale",
    "compute_axis_scale",
    "group_lines",
    "compute_axis_scales",
    "CoordinateMapper",
]
