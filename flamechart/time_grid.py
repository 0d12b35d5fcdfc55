"""Time grid spacing, accuracy and tick labels."""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass
from decimal import Decimal

MIN_PIXEL_DELTA = 85.0


@dataclass(frozen=True, slots=True)
class Tick:
    """A grid line position with its label."""

    pixel: float
    time: float
    label: str


def decimal_places(value: float) -> int:
    """Return the decimals needed to show the leading digit of ``value``.

    Values of at least one need none; ``0.05`` needs two.
    """
    if value <= 0 or not math.isfinite(value) or value >= 1:
        return 0
    return max(0, -Decimal(repr(value)).adjusted())


class TimeGrid:
    """Grid line spacing derived from the visible time window.

    The spacing halves each time the visible window halves relative to the full
    extent, so lines stay at least ``min_pixel_delta`` pixels apart on average.
    """

    def __init__(self, min_pixel_delta: float = MIN_PIXEL_DELTA, time_units: str = "ms"):
        self.min_pixel_delta = float(min_pixel_delta)
        self.time_units = time_units
        self.delta = 0.0
        self.start = 0
        self.end = 0
        self.accuracy = 0
        self._min = 0.0
        self._position_x = 0.0
        self._zoom = 1.0

    def recalc(self, min_time: float, max_time: float, position_x: float, zoom: float, width: float) -> None:
        """Recompute spacing for the given viewport."""
        self._min = min_time
        self._position_x = position_x
        self._zoom = zoom

        time_width = max_time - min_time
        if time_width <= 0 or width <= 0 or zoom <= 0:
            self.delta = 0.0
            self.start = 0
            self.end = 0
            self.accuracy = 0
            return

        initial_delta = time_width / (width / self.min_pixel_delta)
        real_view = width / zoom
        proportion = real_view / time_width
        self.delta = initial_delta / 2 ** math.floor(math.log2(1 / proportion))
        self.start = math.floor((position_x - min_time) / self.delta)
        self.end = math.ceil(real_view / self.delta) + self.start
        self.accuracy = decimal_places(self.delta / 2)

    def ticks(self) -> Iterator[Tick]:
        """Yield grid ticks covering the visible window."""
        if self.delta <= 0:
            return
        for i in range(self.start, self.end + 1):
            time = i * self.delta + self._min
            pixel = (round(time, self.accuracy) - self._position_x) * self._zoom
            yield Tick(pixel=pixel, time=time, label=f"{time:.{self.accuracy}f}{self.time_units}")
