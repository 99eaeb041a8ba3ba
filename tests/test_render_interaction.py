"""Tests for touch tracking and value interpolation."""

import math

import pytest

from tradechart.render.interaction import (
    TouchPhase,
    TouchTracker,
    interpolate_value,
    normalize_touch_x,
)
from tradechart.render.layout import ChartLayout
from tradechart.types import LinePoint


def points(*pairs) -> list[LinePoint]:
    return [LinePoint(time=t, value=v) for t, v in pairs]


class TestInterpolateValue:
    """Tests for interpolate_value."""

    def test_midpoint_of_two_point_line(self) -> None:
        """Halfway along [(0, 0), (1, 10)] is exactly 5."""
        assert interpolate_value(points((0, 0), (1, 10)), 0.5) == 5.0

    @pytest.mark.parametrize("x, expected", [(-0.5, 0.0), (1.5, 10.0)])
    def test_clamps_to_endpoints(self, x: float, expected: float) -> None:
        """Outside the line the nearest endpoint's value is used."""
        assert interpolate_value(points((0, 0), (1, 10)), x) == expected

    def test_clamps_to_line_extent(self) -> None:
        """A line covering part of the axis clamps at its own ends."""
        line = points((0.2, 1), (0.6, 3))

        assert interpolate_value(line, 0.0) == 1
        assert interpolate_value(line, 0.4) == pytest.approx(2)
        assert interpolate_value(line, 0.9) == 3

    def test_exact_point(self) -> None:
        """A touch on a point returns that point's value."""
        assert interpolate_value(points((0, 1), (0.5, 7), (1, 3)), 0.5) == 7

    def test_single_point(self) -> None:
        """A single point line is constant."""
        assert interpolate_value(points((0.3, 4.2)), 0.9) == 4.2

    def test_empty_line_is_zero(self) -> None:
        """A line without usable points yields 0."""
        assert interpolate_value([], 0.5) == 0.0
        assert interpolate_value(points((math.nan, 1), (0.5, math.inf)), 0.5) == 0.0

    def test_non_finite_points_ignored(self) -> None:
        """Non-finite points are skipped."""
        line = points((0, 0), (0.5, math.nan), (1, 10))

        assert interpolate_value(line, 0.5) == 5.0

    def test_non_finite_touch(self) -> None:
        """A non-finite touch yields the first value instead of NaN."""
        assert interpolate_value(points((0, 2), (1, 10)), math.nan) == 2


class TestTouchTracker:
    """Tests for the Idle/Touching state machine."""

    def test_starts_idle(self) -> None:
        tracker = TouchTracker()

        assert tracker.phase is TouchPhase.IDLE
        assert not tracker.is_touching

    def test_press_move_release(self) -> None:
        """Down enters Touching, move updates, up returns to Idle."""
        tracker = TouchTracker()

        tracker.press(0.25)
        assert tracker.is_touching
        assert tracker.x == 0.25

        tracker.move(0.75)
        assert tracker.x == 0.75

        tracker.release()
        assert tracker.phase is TouchPhase.IDLE

    def test_move_while_idle_ignored(self) -> None:
        """Moves without a press do nothing."""
        tracker = TouchTracker()
        tracker.move(0.8)

        assert not tracker.is_touching
        assert tracker.x == 0.0

    def test_cancel_returns_to_idle(self) -> None:
        """System termination ends the touch."""
        tracker = TouchTracker()
        tracker.press(0.5)
        tracker.cancel()

        assert tracker.phase is TouchPhase.IDLE

    def test_positions_clamped(self) -> None:
        """Positions stay within [0, 1]."""
        tracker = TouchTracker()
        tracker.press(1.7)
        assert tracker.x == 1.0

        tracker.move(-3)
        assert tracker.x == 0.0


class TestNormalizeTouchX:
    """Tests for normalize_touch_x."""

    @pytest.fixture
    def layout(self) -> ChartLayout:
        return ChartLayout(width=350, height=150)

    def test_maps_plot_bounds(self, layout) -> None:
        """Plot edges map to 0 and 1."""
        assert normalize_touch_x(15, layout) == 0.0
        assert normalize_touch_x(335, layout) == 1.0
        assert normalize_touch_x(175, layout) == 0.5

    def test_clamps_outside_plot(self, layout) -> None:
        """Touches in the padding clamp to the plot edge."""
        assert normalize_touch_x(0, layout) == 0.0
        assert normalize_touch_x(349, layout) == 1.0

    def test_non_finite_is_zero(self, layout) -> None:
        """A non-finite location maps to 0."""
        assert normalize_touch_x(math.nan, layout) == 0.0
