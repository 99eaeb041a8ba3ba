"""Chart geometry derived from the measured container width."""

from __future__ import annotations

import math
from dataclasses import dataclass

# Height is width times this ratio.
DEFAULT_ASPECT_RATIO = 3 / 7
# Width changes at or below this are measurement jitter and ignored.
WIDTH_HYSTERESIS = 1.0


@dataclass(frozen=True)
class ChartPadding:
    """Fixed insets between the chart edge and the plot area.

    :param top: Top inset.
    :param right: Right inset.
    :param bottom: Bottom inset.
    :param left: Left inset.
    """

    top: float = 15.0
    right: float = 15.0
    bottom: float = 10.0
    left: float = 15.0


DEFAULT_PADDING = ChartPadding()


@dataclass(frozen=True)
class ChartLayout:
    """Outer chart size plus the plot area inside the insets.

    :param width: Outer width.
    :param height: Outer height.
    :param padding: Insets around the plot area.
    """

    width: float
    height: float
    padding: ChartPadding = DEFAULT_PADDING

    @classmethod
    def from_width(
        cls,
        width: float,
        aspect_ratio: float = DEFAULT_ASPECT_RATIO,
        padding: ChartPadding = DEFAULT_PADDING,
    ) -> ChartLayout:
        """Derive the layout for a measured width.

        The height never drops below the vertical insets plus one unit.
        """
        minimum_height = padding.top + padding.bottom + 1
        height = width * aspect_ratio
        if height < minimum_height:
            height = minimum_height
        return cls(width=width, height=height, padding=padding)

    @property
    def plot_width(self) -> float:
        return max(1.0, self.width - self.padding.left - self.padding.right)

    @property
    def plot_height(self) -> float:
        return max(1.0, self.height - self.padding.top - self.padding.bottom)

    @property
    def plot_left(self) -> float:
        return self.padding.left

    @property
    def plot_top(self) -> float:
        return self.padding.top

    @property
    def plot_bottom(self) -> float:
        return self.padding.top + self.plot_height

    @property
    def is_renderable(self) -> bool:
        """Whether every dimension is finite and positive."""
        dimensions = (self.width, self.height, self.plot_width, self.plot_height)
        return all(math.isfinite(d) and d > 0 for d in dimensions)


class LayoutTracker:
    """Tracks the measured width and recomputes the layout on real changes.

    :param aspect_ratio: Height-to-width ratio.
    :param padding: Plot insets.
    :param initial_width: Width known before the first layout event, if any.
    """

    def __init__(
        self,
        aspect_ratio: float = DEFAULT_ASPECT_RATIO,
        padding: ChartPadding = DEFAULT_PADDING,
        initial_width: float | None = None,
    ) -> None:
        self.aspect_ratio = aspect_ratio
        self.padding = padding
        self.width: float | None = None
        self.layout: ChartLayout | None = None
        if initial_width is not None:
            self.on_layout(initial_width)

    def on_layout(self, width: float) -> bool:
        """Handle a layout measurement.

        :param width: Measured outer width.
        :returns: True if the layout was recomputed.
        """
        if not isinstance(width, (int, float)) or not math.isfinite(width) or width <= 0:
            return False
        if self.width is not None and abs(self.width - width) <= WIDTH_HYSTERESIS:
            return False

        self.width = float(width)
        self.layout = ChartLayout.from_width(self.width, self.aspect_ratio, self.padding)
        return True


__all__ = [
    "DEFAULT_ASPECT_RATIO",
    "WIDTH_HYSTERESIS",
    "ChartPadding",
    "DEFAULT_PADDING",
    "ChartLayout",
    "LayoutTracker",
]
