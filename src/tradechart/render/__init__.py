"""Multi-line, dual-axis chart rendering module."""

from tradechart.render.chart import ChartScene, MultiLineChart, Placeholder, pulse_state
from tradechart.render.interaction import TouchPhase, TouchTracker, interpolate_value
from tradechart.render.layout import ChartLayout, ChartPadding, LayoutTracker
from tradechart.render.sample import sample_lines
from tradechart.render.scales import (
    AxisScale,
    CoordinateMapper,
    compute_axis_scale,
    compute_axis_scales,
)

__all__ = [
    "ChartPadding",
    "ChartLayout",
    "LayoutTracker",
    "AxisScale",
    "compute_axis_scale",
    "compute_axis_scales",
    "CoordinateMapper",
    "TouchPhase",
    "TouchTracker",
    "interpolate_value",
    "sample_lines",
    "pulse_state",
    "Placeholder",
    "ChartScene",
    "MultiLineChart",
]
