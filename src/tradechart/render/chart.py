"""Interactive multi-line, dual-axis chart renderer.

The renderer only accepts lines already normalized to a shared [0, 1] time
axis; it knows nothing about where the data came from. :meth:`MultiLineChart.render`
returns a :class:`ChartScene` of drawable primitives (or a
:class:`Placeholder` when there is nothing safe to draw) that can be
serialized to SVG.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from html import escape
from typing import Sequence

from tradechart.render.interaction import (
    TouchTracker,
    interpolate_value,
    normalize_touch_x,
)
from tradechart.render.layout import (
    DEFAULT_ASPECT_RATIO,
    DEFAULT_PADDING,
    ChartLayout,
    ChartPadding,
    LayoutTracker,
)
from tradechart.render.sample import sample_lines
from tradechart.render.scales import (
    AXIS_GROUPS,
    AxisScale,
    CoordinateMapper,
    compute_axis_scales,
)
from tradechart.types import AxisGroup, ChartLine

MUTED_COLOR = "#94a3b8"
GUIDE_COLOR = "#cbd5e1"
SURFACE_COLOR = "#0f172a"

VERTICAL_GRID_POSITIONS = (0.0, 0.25, 0.5, 0.75, 1.0)
TOUCH_MARKER_RADIUS = 5.0
LOADING_MESSAGE = "Loading chart..."

# End-point pulse: grows for half a period, shrinks for the other half.
PULSE_HALF_PERIOD = 0.418
PULSE_RADIUS = (4.0, 6.0)
PULSE_OPACITY = (0.9, 0.6)


def default_format(value: float) -> str:
    if not math.isfinite(value):
        return "0.0"
    return f"{value:.1f}"


def pulse_state(elapsed: float) -> tuple[float, float]:
    """Radius and opacity of the end-point pulse.

    :param elapsed: Seconds since the animation started.
    :returns: (radius, opacity).
    """
    if not math.isfinite(elapsed):
        elapsed = 0.0
    phase = (elapsed % (2 * PULSE_HALF_PERIOD)) / PULSE_HALF_PERIOD
    progress = phase if phase <= 1 else 2 - phase
    radius = PULSE_RADIUS[0] + (PULSE_RADIUS[1] - PULSE_RADIUS[0]) * progress
    opacity = PULSE_OPACITY[0] + (PULSE_OPACITY[1] - PULSE_OPACITY[0]) * progress
    return radius, opacity


# ---------------------------------------------------------------------------
# Scene Primitives
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Segment:
    """Straight line between two points."""

    x1: float
    y1: float
    x2: float
    y2: float
    stroke: str
    stroke_width: float = 1.0
    opacity: float = 1.0
    dash: str | None = None


@dataclass(frozen=True)
class Label:
    """Text anchored at a point."""

    x: float
    y: float
    text: str
    fill: str
    anchor: str = "start"
    font_size: float = 10.0


@dataclass(frozen=True)
class Polyline:
    """A chart line's path."""

    line_id: str
    points: tuple[tuple[float, float], ...]
    stroke: str
    stroke_width: float = 2.0
    opacity: float = 0.9


@dataclass(frozen=True)
class Marker:
    """Circle marking a point on a line."""

    line_id: str
    cx: float
    cy: float
    radius: float
    fill: str
    opacity: float = 1.0
    stroke: str | None = None
    stroke_width: float = 0.0


@dataclass(frozen=True)
class OverlayRow:
    """One line's entry in the touch overlay.

    :param line_id: Line identifier.
    :param name: Line name.
    :param color: Line color.
    :param value: Interpolated value at the touch position.
    :param text: Formatted value.
    """

    line_id: str
    name: str
    color: str
    value: float
    text: str

    @property
    def is_positive(self) -> bool:
        return self.value >= 0


@dataclass(frozen=True)
class TouchOverlay:
    """Guide, intersection markers and values shown while touching.

    :param position: Normalized touch position.
    :param guide: Vertical guide line.
    :param markers: Intersection marker per line.
    :param rows: Value row per line.
    """

    position: float
    guide: Segment
    markers: tuple[Marker, ...]
    rows: tuple[OverlayRow, ...]


@dataclass(frozen=True)
class Placeholder:
    """Stand-in drawn when geometry cannot or should not be computed."""

    width: float | None
    height: float | None
    message: str = ""


@dataclass(frozen=True)
class ChartScene:
    """Everything needed to draw one frame of the chart."""

    width: float
    height: float
    grid: tuple[Segment, ...]
    tick_labels: tuple[Label, ...]
    zero_line: Segment | None
    polylines: tuple[Polyline, ...]
    pulses: tuple[Marker, ...]
    overlay: TouchOverlay | None = None

    def to_svg(self) -> str:
        """Serialize the scene as a standalone SVG document."""
        parts = [
            '<svg xmlns="http://www.w3.org/2000/svg" '
            f'width="{self.width:.2f}" height="{self.height:.2f}" '
            f'viewBox="0 0 {self.width:.2f} {self.height:.2f}">'
        ]
        parts.extend(_segment_svg(s) for s in self.grid)
        parts.extend(_label_svg(label) for label in self.tick_labels)
        if self.zero_line is not None:
            parts.append(_segment_svg(self.zero_line))
        parts.extend(_polyline_svg(p) for p in self.polylines)
        parts.extend(_marker_svg(m) for m in self.pulses)

        if self.overlay is not None:
            parts.append(_segment_svg(self.overlay.guide))
            parts.extend(_marker_svg(m) for m in self.overlay.markers)
            for i, row in enumerate(self.overlay.rows):
                parts.append(
                    _label_svg(
                        Label(
                            x=12.0,
                            y=20.0 + 14.0 * i,
                            text=f"{row.name}: {row.text}",
                            fill=row.color,
                            font_size=12.0,
                        )
                    )
                )

        parts.append("</svg>")
        return "\n".join(parts)


def _segment_svg(s: Segment) -> str:
    dash = f' stroke-dasharray="{s.dash}"' if s.dash else ""
    return (
        f'<line x1="{s.x1:.2f}" y1="{s.y1:.2f}" x2="{s.x2:.2f}" y2="{s.y2:.2f}" '
        f'stroke="{escape(s.stroke)}" stroke-width="{s.stroke_width}" '
        f'opacity="{s.opacity}"{dash}/>'
    )


def _label_svg(label: Label) -> str:
    return (
        f'<text x="{label.x:.2f}" y="{label.y:.2f}" font-size="{label.font_size}" '
        f'fill="{escape(label.fill)}" text-anchor="{label.anchor}">'
        f"{escape(label.text)}</text>"
    )


def _polyline_svg(p: Polyline) -> str:
    points = " ".join(f"{x:.2f},{y:.2f}" for x, y in p.points)
    return (
        f'<polyline points="{points}" fill="none" stroke="{escape(p.stroke)}" '
        f'stroke-width="{p.stroke_width}" stroke-linejoin="round" '
        f'stroke-linecap="round" opacity="{p.opacity}"/>'
    )


def _marker_svg(m: Marker) -> str:
    stroke = (
        f' stroke="{escape(m.stroke)}" stroke-width="{m.stroke_width}"'
        if m.stroke
        else ""
    )
    return (
        f'<circle cx="{m.cx:.2f}" cy="{m.cy:.2f}" r="{m.radius:.2f}" '
        f'fill="{escape(m.fill)}" opacity="{m.opacity:.2f}"{stroke}/>'
    )


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class MultiLineChart:
    """Multi-line chart with left/right axis groups and touch inspection.

    Example::

        chart = MultiLineChart(datasets_to_lines(result.datasets))
        chart.on_layout(350)
        chart.pointer_down(120)
        scene = chart.render()

    :param lines: Lines on a shared [0, 1] time axis.
    :param aspect_ratio: Height-to-width ratio.
    :param padding: Plot insets.
    :param width: Width known before the first layout event, if any.
    :param is_loading: Render a loading placeholder instead of geometry.
    :param use_sample_data: Show placeholder sample lines when ``lines`` is empty.
    """

    def __init__(
        self,
        lines: Sequence[ChartLine] = (),
        *,
        aspect_ratio: float = DEFAULT_ASPECT_RATIO,
        padding: ChartPadding = DEFAULT_PADDING,
        width: float | None = None,
        is_loading: bool = False,
        use_sample_data: bool = False,
    ) -> None:
        self.layout_tracker = LayoutTracker(aspect_ratio, padding, width)
        self.touch = TouchTracker()
        self.is_loading = is_loading
        self.use_sample_data = use_sample_data
        self.lines: list[ChartLine] = []
        self.scales: dict[AxisGroup, AxisScale] = {}
        self.set_lines(lines)

    @property
    def layout(self) -> ChartLayout | None:
        return self.layout_tracker.layout

    def set_lines(self, lines: Sequence[ChartLine]) -> None:
        """Replace the chart's lines and recompute the axis scales."""
        resolved = list(lines)
        if not resolved and self.use_sample_data:
            resolved = sample_lines()
        self.lines = resolved
        self.scales = compute_axis_scales(resolved)

    def on_layout(self, width: float) -> bool:
        """Handle a container measurement; see :class:`LayoutTracker`."""
        return self.layout_tracker.on_layout(width)

    # -- pointer events ----------------------------------------------------

    def _renderable_layout(self) -> ChartLayout | None:
        layout = self.layout
        if layout is None or not layout.is_renderable:
            return None
        return layout

    def pointer_down(self, location_x: float) -> None:
        layout = self._renderable_layout()
        if layout is not None:
            self.touch.press(normalize_touch_x(location_x, layout))

    def pointer_move(self, location_x: float) -> None:
        layout = self._renderable_layout()
        if layout is not None:
            self.touch.move(normalize_touch_x(location_x, layout))

    def pointer_up(self) -> None:
        self.touch.release()

    def pointer_cancel(self) -> None:
        self.touch.cancel()

    def touch_values(self) -> list[tuple[ChartLine, float]]:
        """Interpolated value of every line at the touch position.

        :returns: (line, value) pairs; empty while idle.
        """
        if not self.touch.is_touching:
            return []
        return [(line, interpolate_value(line.data, self.touch.x)) for line in self.lines]

    # -- rendering ---------------------------------------------------------

    def render(self, elapsed: float = 0.0) -> ChartScene | Placeholder:
        """Compute the scene for the current lines, layout and touch state.

        :param elapsed: Seconds since the pulse animation started.
        :returns: Scene, or a placeholder while loading or before a usable layout.
        """
        layout = self.layout
        if self.is_loading:
            return Placeholder(
                width=layout.width if layout else None,
                height=layout.height if layout else None,
                message=LOADING_MESSAGE,
            )
        if layout is None or not layout.is_renderable:
            return Placeholder(width=None, height=None)

        mapper = CoordinateMapper(layout, self.scales)
        grid, tick_labels, zero_line = self._axes(layout, mapper)
        polylines, pulses = self._lines(mapper, elapsed)

        return ChartScene(
            width=layout.width,
            height=layout.height,
            grid=grid,
            tick_labels=tick_labels,
            zero_line=zero_line,
            polylines=polylines,
            pulses=pulses,
            overlay=self._overlay(layout, mapper),
        )

    def _formatter(self, group: AxisGroup):
        for line in self.lines:
            if line.axis_group == group and line.format_value is not None:
                return line.format_value
        return default_format

    def _axes(
        self, layout: ChartLayout, mapper: CoordinateMapper
    ) -> tuple[tuple[Segment, ...], tuple[Label, ...], Segment | None]:
        left, right = layout.plot_left, layout.plot_left + layout.plot_width
        grid = [
            Segment(
                x1=mapper.x(pos), y1=layout.plot_top,
                x2=mapper.x(pos), y2=layout.plot_bottom,
                stroke=MUTED_COLOR, opacity=0.1,
            )
            for pos in VERTICAL_GRID_POSITIONS
        ]
        labels = []
        zero_line = None

        active = [group for group in AXIS_GROUPS if group in self.scales]
        for index, group in enumerate(active):
            formatter = self._formatter(group)
            is_primary = index == 0
            for tick in self.scales[group].ticks:
                y = mapper.y(tick, group)
                if is_primary:
                    grid.append(
                        Segment(x1=left, y1=y, x2=right, y2=y, stroke=MUTED_COLOR, opacity=0.3)
                    )
                labels.append(
                    Label(
                        x=left + 6 if group == "left" else right - 6,
                        y=y + 4,
                        text=formatter(tick),
                        fill=MUTED_COLOR,
                        anchor="start" if group == "left" else "end",
                    )
                )
            if is_primary:
                zero_y = mapper.y(0.0, group)
                zero_line = Segment(
                    x1=left, y1=zero_y, x2=right, y2=zero_y,
                    stroke=MUTED_COLOR, stroke_width=1.5, opacity=0.8, dash="3,3",
                )

        return tuple(grid), tuple(labels), zero_line

    def _lines(
        self, mapper: CoordinateMapper, elapsed: float
    ) -> tuple[tuple[Polyline, ...], tuple[Marker, ...]]:
        polylines = []
        pulses = []
        radius, opacity = pulse_state(elapsed)

        for line in self.lines:
            valid = [
                p for p in line.data if math.isfinite(p.time) and math.isfinite(p.value)
            ]
            if not valid:
                continue

            polylines.append(
                Polyline(
                    line_id=line.id,
                    points=tuple(
                        (mapper.x(p.time), mapper.y(p.value, line.axis_group))
                        for p in valid
                    ),
                    stroke=line.color,
                )
            )
            if not self.touch.is_touching:
                last = valid[-1]
                pulses.append(
                    Marker(
                        line_id=line.id,
                        cx=mapper.x(last.time),
                        cy=mapper.y(last.value, line.axis_group),
                        radius=radius,
                        fill=line.color,
                        opacity=opacity,
                    )
                )

        return tuple(polylines), tuple(pulses)

    def _overlay(self, layout: ChartLayout, mapper: CoordinateMapper) -> TouchOverlay | None:
        if not self.touch.is_touching:
            return None

        x = mapper.x(self.touch.x)
        markers = []
        rows = []
        for line, value in self.touch_values():
            markers.append(
                Marker(
                    line_id=line.id,
                    cx=x,
                    cy=mapper.y(value, line.axis_group),
                    radius=TOUCH_MARKER_RADIUS,
                    fill=line.color,
                    stroke=SURFACE_COLOR,
                    stroke_width=2.0,
                )
            )
            formatter = line.format_value or default_format
            rows.append(
                OverlayRow(
                    line_id=line.id,
                    name=line.name,
                    color=line.color,
                    value=value,
                    text=formatter(value),
                )
            )

        return TouchOverlay(
            position=self.touch.x,
            guide=Segment(
                x1=x, y1=layout.plot_top, x2=x, y2=layout.plot_bottom,
                stroke=GUIDE_COLOR, stroke_width=1.5, opacity=0.6, dash="4,4",
            ),
            markers=tuple(markers),
            rows=tuple(rows),
        )


__all__ = [
    "default_format",
    "pulse_state",
    "Segment",
    "Label",
    "Polyline",
    "Marker",
    "OverlayRow",
    "TouchOverlay",
    "Placeholder",
    "ChartScene",
    "MultiLineChart",
]
