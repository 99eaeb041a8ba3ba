"""Tests for the multi-line chart renderer."""

import math

import pytest

from tradechart.data.assemble import format_percent, format_score
from tradechart.render.chart import (
    LOADING_MESSAGE,
    ChartScene,
    MultiLineChart,
    Placeholder,
    default_format,
    pulse_state,
)
from tradechart.render.sample import SAMPLE_AGENTS, sample_lines
from tradechart.types import ChartLine, LinePoint


def make_line(line_id: str, values, axis_group: str = "left", fmt=None) -> ChartLine:
    count = max(len(values) - 1, 1)
    return ChartLine(
        id=line_id,
        name=line_id.title(),
        color="#00ff9f",
        data=[LinePoint(time=i / count, value=v) for i, v in enumerate(values)],
        axis_group=axis_group,
        format_value=fmt,
    )


@pytest.fixture
def lines() -> list[ChartLine]:
    return [
        make_line("equity", [0, 5, 10], fmt=format_percent),
        make_line("sentiment", [0.2, -0.4], axis_group="right", fmt=format_score),
    ]


@pytest.fixture
def chart(lines) -> MultiLineChart:
    chart = MultiLineChart(lines)
    chart.on_layout(350)
    return chart


class TestPlaceholders:
    """Tests for placeholder rendering."""

    def test_placeholder_before_layout(self, lines) -> None:
        """No geometry is computed before a layout arrives."""
        result = MultiLineChart(lines).render()

        assert isinstance(result, Placeholder)
        assert result.width is None

    def test_loading_placeholder(self, lines) -> None:
        """Loading renders a placeholder with a message."""
        chart = MultiLineChart(lines, width=350, is_loading=True)

        result = chart.render()

        assert isinstance(result, Placeholder)
        assert result.message == LOADING_MESSAGE
        assert result.width == 350

    def test_invalid_width_keeps_placeholder(self, lines) -> None:
        """A zero or NaN width never produces a layout."""
        chart = MultiLineChart(lines)
        chart.on_layout(0)
        chart.on_layout(math.nan)

        assert isinstance(chart.render(), Placeholder)


class TestScene:
    """Tests for the computed scene."""

    def test_renders_scene(self, chart) -> None:
        """A laid-out chart renders a scene of the layout's size."""
        scene = chart.render()

        assert isinstance(scene, ChartScene)
        assert scene.width == 350
        assert [p.line_id for p in scene.polylines] == ["equity", "sentiment"]
        assert len(scene.polylines[0].points) == 3

    def test_geometry_is_finite(self, chart) -> None:
        """No coordinate in the scene is NaN or infinite."""
        scene = chart.render()

        coords = [c for p in scene.polylines for xy in p.points for c in xy]
        coords += [c for s in scene.grid for c in (s.x1, s.y1, s.x2, s.y2)]
        coords += [c for m in scene.pulses for c in (m.cx, m.cy, m.radius)]
        assert all(math.isfinite(c) for c in coords)

    def test_grid_and_labels(self, chart) -> None:
        """Five vertical grid lines plus horizontal lines for the primary axis."""
        scene = chart.render()

        vertical = [s for s in scene.grid if s.x1 == s.x2]
        horizontal = [s for s in scene.grid if s.y1 == s.y2]
        assert len(vertical) == 5
        assert len(horizontal) == 5
        # Five ticks per active axis group.
        assert len(scene.tick_labels) == 10

    def test_tick_labels_use_group_formatter(self, chart) -> None:
        """Left labels use the percent formatter, right ones the score formatter."""
        scene = chart.render()

        left = [l for l in scene.tick_labels if l.anchor == "start"]
        right = [l for l in scene.tick_labels if l.anchor == "end"]
        assert all(l.text.endswith("%") for l in left)
        assert not any(l.text.endswith("%") for l in right)

    def test_zero_line_on_primary_axis(self, chart) -> None:
        """The zero reference line is dashed and horizontal."""
        scene = chart.render()

        assert scene.zero_line is not None
        assert scene.zero_line.dash
        assert scene.zero_line.y1 == scene.zero_line.y2

    def test_right_only_chart(self) -> None:
        """A chart with only right-axis lines still draws a zero line."""
        chart = MultiLineChart([make_line("s", [0.5, -0.5], axis_group="right")], width=350)

        scene = chart.render()

        assert scene.zero_line is not None
        assert len([l for l in scene.tick_labels if l.anchor == "end"]) == 5

    def test_pulse_markers_while_idle(self, chart) -> None:
        """Each line's last point pulses while idle."""
        scene = chart.render(elapsed=0.0)

        assert [m.line_id for m in scene.pulses] == ["equity", "sentiment"]
        assert scene.pulses[0].cx == pytest.approx(335)
        assert scene.overlay is None

    def test_non_finite_points_skipped(self) -> None:
        """Non-finite points are left out of the polyline."""
        line = ChartLine(
            id="x",
            name="X",
            color="#fff",
            data=[
                LinePoint(time=0, value=1),
                LinePoint(time=0.5, value=math.nan),
                LinePoint(time=1, value=2),
            ],
        )
        scene = MultiLineChart([line], width=350).render()

        assert len(scene.polylines[0].points) == 2

    def test_empty_chart_renders_axes(self) -> None:
        """A chart with no lines still renders a frame."""
        scene = MultiLineChart([], width=350).render()

        assert isinstance(scene, ChartScene)
        assert scene.polylines == ()
        assert scene.zero_line is None


class TestTouch:
    """Tests for pointer interaction."""

    def test_touch_values_interpolated(self, chart) -> None:
        """Touching the middle interpolates every line."""
        chart.pointer_down(175)

        values = {line.id: value for line, value in chart.touch_values()}
        assert values["equity"] == pytest.approx(5.0)
        assert values["sentiment"] == pytest.approx(-0.1)

    def test_overlay_while_touching(self, chart) -> None:
        """Touching shows a guide, markers and value rows; pulses stop."""
        chart.pointer_down(175)

        scene = chart.render()

        assert scene.overlay is not None
        assert scene.overlay.guide.x1 == pytest.approx(175)
        assert scene.overlay.guide.dash == "4,4"
        assert [m.line_id for m in scene.overlay.markers] == ["equity", "sentiment"]
        assert [r.text for r in scene.overlay.rows] == ["+5.00%", "-0.10"]
        assert scene.overlay.rows[0].is_positive
        assert not scene.overlay.rows[1].is_positive
        assert scene.pulses == ()

    def test_move_and_release(self, chart) -> None:
        """Moves update the position; release clears the overlay."""
        chart.pointer_down(15)
        chart.pointer_move(335)

        assert chart.touch.x == 1.0

        chart.pointer_up()

        assert chart.touch_values() == []
        assert chart.render().overlay is None

    def test_cancel_clears_touch(self, chart) -> None:
        """A cancelled gesture returns to idle."""
        chart.pointer_down(100)
        chart.pointer_cancel()

        assert not chart.touch.is_touching

    def test_touch_ignored_without_layout(self, lines) -> None:
        """Pointer events before layout are ignored."""
        chart = MultiLineChart(lines)
        chart.pointer_down(100)

        assert not chart.touch.is_touching

    def test_touch_clamped_to_plot(self, chart) -> None:
        """Touches outside the plot clamp to endpoint values."""
        chart.pointer_down(-50)

        values = {line.id: value for line, value in chart.touch_values()}
        assert values["equity"] == 0.0


class TestSampleData:
    """Tests for the sample-data flag."""

    def test_sample_lines_when_flag_set_and_empty(self) -> None:
        """Empty input with the flag set shows sample lines."""
        chart = MultiLineChart([], width=350, use_sample_data=True)

        assert [l.id for l in chart.lines] == [agent[0] for agent in SAMPLE_AGENTS]

    def test_no_sample_lines_without_flag(self) -> None:
        """Without the flag an empty chart stays empty."""
        assert MultiLineChart([], width=350).lines == []

    def test_real_data_wins_over_samples(self, lines) -> None:
        """The flag never replaces real lines."""
        chart = MultiLineChart(lines, width=350, use_sample_data=True)

        assert [l.id for l in chart.lines] == ["equity", "sentiment"]

    def test_sample_lines_deterministic(self) -> None:
        """The same seed yields the same lines."""
        assert sample_lines(seed=7) == sample_lines(seed=7)

    def test_sample_lines_positive_after_crossover(self) -> None:
        """Sample series end up positive."""
        for line in sample_lines():
            assert line.data[-1].value > 0
            assert line.data[0].time == 0.0
            assert line.data[-1].time == 1.0


class TestPulseState:
    """Tests for pulse_state."""

    def test_cycle_bounds(self) -> None:
        """The pulse grows to its peak at half a period and back."""
        assert pulse_state(0.0) == pytest.approx((4.0, 0.9))
        assert pulse_state(0.418) == pytest.approx((6.0, 0.6))
        assert pulse_state(0.836) == pytest.approx((4.0, 0.9))

    def test_non_finite_elapsed(self) -> None:
        assert pulse_state(math.nan) == pytest.approx((4.0, 0.9))


class TestSvg:
    """Tests for SVG serialization."""

    def test_to_svg_contains_elements(self, chart) -> None:
        """The document contains lines, polylines and circles."""
        chart.pointer_down(175)
        svg = chart.render().to_svg()

        assert svg.startswith("<svg")
        assert svg.endswith("</svg>")
        assert svg.count("<polyline") == 2
        assert 'stroke-dasharray="4,4"' in svg
        assert "Equity: +5.00%" in svg

    def test_text_is_escaped(self) -> None:
        """Names are XML-escaped."""
        line = ChartLine(
            id="x", name="<A&B>", color="#fff", data=[LinePoint(time=0, value=1)]
        )
        chart = MultiLineChart([line], width=350)
        chart.pointer_down(100)

        svg = chart.render().to_svg()

        assert "&lt;A&amp;B&gt;" in svg
        assert "<A&B>" not in svg


def test_default_format() -> None:
    """The fallback formatter uses one decimal."""
    assert default_format(1.26) == "1.3"
    assert default_format(math.inf) == "0.0"
