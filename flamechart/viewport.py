"""Shared horizontal viewport and the vertical panel layout beneath it."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum

import numpy as np

from flamechart.events import EventBus, EventKind, ViewportChange
from flamechart.settings import ChartSettings
from flamechart.time_grid import TimeGrid

logger = logging.getLogger(__name__)

ROOT_ID = 0


class SizingPolicy(Enum):
    """How a panel takes vertical space from the root."""

    STATIC = "static"
    FLEXIBLE_STATIC = "flexible-static"
    FLEXIBLE_GROWING = "flexible-growing"


@dataclass(slots=True)
class ViewportState:
    """Horizontal zoom and scroll shared by every panel."""

    zoom: float = 1.0
    position_x: float = 0.0
    min: float = 0.0
    max: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def real_view(self) -> float:
        """Visible time span."""
        return self.width / self.zoom

    @property
    def end(self) -> float:
        return self.position_x + self.real_view


@dataclass(slots=True)
class PanelViewport:
    """Horizontal band of the surface owned by one panel.

    The shared fields mirror the root state and are only written by
    :meth:`ViewportEngine._propagate`.
    """

    id: int
    parent_id: int
    name: str = ""
    preferred_height: float = 0.0
    flexible: bool = False
    collapsed: bool = False
    user_height: float | None = None
    height: float = 0.0
    position: float = 0.0
    zoom: float = 1.0
    position_x: float = 0.0
    min: float = 0.0
    max: float = 0.0
    width: float = 0.0

    @property
    def policy(self) -> SizingPolicy:
        if self.flexible and (self.preferred_height or self.user_height):
            return SizingPolicy.FLEXIBLE_STATIC
        if not self.preferred_height:
            return SizingPolicy.FLEXIBLE_GROWING
        return SizingPolicy.STATIC

    @property
    def real_view(self) -> float:
        return self.width / self.zoom

    def contains_y(self, y: float) -> bool:
        """Return True if global ``y`` lies in this band (edges inclusive)."""
        return not self.collapsed and self.position <= y <= self.position + self.height

    def time_to_pixel(self, time: float) -> float:
        return (time - self.position_x) * self.zoom

    def pixel_to_time(self, pixels: float) -> float:
        return pixels / self.zoom


class ViewportEngine:
    """Owns zoom, scroll and extent; lays out panels top to bottom.

    Every change to the shared fields recomputes the time grid, copies the state
    into each panel viewport and emits ``VIEWPORT_CHANGED`` once.
    """

    def __init__(self, settings: ChartSettings | None = None, bus: EventBus | None = None):
        self.settings = settings or ChartSettings()
        self.bus = bus or EventBus("viewport")
        self.state = ViewportState()
        self.grid = TimeGrid(self.settings.min_pixel_delta, self.settings.time_units)
        self.free_space = 0.0
        self._panels: dict[int, PanelViewport] = {}
        self._order: list[int] = []
        self._next_id = ROOT_ID + 1
        self._last_change: ViewportChange | None = None

    # ------------------------------------------------------------------
    # Shared state accessors
    # ------------------------------------------------------------------

    @property
    def zoom(self) -> float:
        return self.state.zoom

    @property
    def position_x(self) -> float:
        return self.state.position_x

    @property
    def min(self) -> float:
        return self.state.min

    @property
    def max(self) -> float:
        return self.state.max

    @property
    def width(self) -> float:
        return self.state.width

    @property
    def height(self) -> float:
        return self.state.height

    @property
    def real_view(self) -> float:
        return self.state.real_view

    @property
    def accuracy(self) -> int:
        return self.grid.accuracy

    @property
    def has_extent(self) -> bool:
        return self.state.max - self.state.min > 0 and self.state.width > 0

    @property
    def initial_zoom(self) -> float:
        """Zoom at which the whole extent fills the width; 1 for a degenerate extent."""
        if self.state.max - self.state.min > 0 and self.state.width > 0:
            return self.state.width / (self.state.max - self.state.min)
        return 1.0

    def snapshot(self) -> ViewportChange:
        s = self.state
        return ViewportChange(s.zoom, s.position_x, s.min, s.max, s.width, s.height)

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    def time_to_pixel(self, time: float) -> float:
        """Return the x pixel of ``time`` relative to the left edge."""
        return (time - self.state.position_x) * self.state.zoom

    def pixel_to_time(self, pixels: float) -> float:
        """Return the time span covered by ``pixels``."""
        return pixels / self.state.zoom

    def pixel_to_absolute_time(self, pixel_x: float) -> float:
        """Return the time drawn at ``pixel_x``; the inverse of :meth:`time_to_pixel`."""
        return self.state.position_x + pixel_x / self.state.zoom

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_extent(self, min_time: float, max_time: float, *, reset: bool = True) -> None:
        """Set the time bounds and optionally fit them to the width.

        With ``reset`` false the current zoom and position are kept, clamped to
        the new bounds. A view that had no extent yet is always fitted.
        """
        had_extent = self.has_extent
        self.state.min = float(min_time)
        self.state.max = float(max(min_time, max_time))
        if reset or not had_extent:
            self.state.zoom = self.initial_zoom
            self.state.position_x = self.state.min
        else:
            self.state.zoom = max(self.state.zoom, self.initial_zoom)
            self.state.position_x = self._clamp_position(self.state.position_x)
        self._commit()

    def set_zoom(self, zoom: float) -> bool:
        """Set the zoom level.

        Requests below the initial zoom are raised to it. Zooming in is refused
        once the grid needs ``max_accuracy`` decimals to label ticks.

        Returns:
            True if the request was accepted.
        """
        if not self._apply_zoom(zoom):
            return False
        self.state.position_x = self._clamp_position(self.state.position_x)
        self._commit()
        return True

    def pan(self, delta: float) -> bool:
        """Shift the view by ``delta`` time units, clamped to the extent.

        Returns:
            True if the position changed.
        """
        if not math.isfinite(delta):
            return False
        target = self._clamp_position(self.state.position_x + delta)
        if target == self.state.position_x:
            return False
        self.state.position_x = target
        self._commit()
        return True

    def zoom_at(self, pixel_x: float, factor: float) -> bool:
        """Multiply zoom by ``factor`` keeping the time under ``pixel_x`` in place."""
        if not (math.isfinite(pixel_x) and math.isfinite(factor)) or factor <= 0:
            return False
        anchor = self.pixel_to_absolute_time(pixel_x)
        if not self._apply_zoom(self.state.zoom * factor):
            return False
        self.state.position_x = self._clamp_position(anchor - pixel_x / self.state.zoom)
        self._commit()
        return True

    def set_visible_range(self, start: float, end: float) -> bool:
        """Zoom and scroll so that ``[start, end]`` fills the width."""
        if not (math.isfinite(start) and math.isfinite(end)) or end <= start or self.state.width <= 0:
            return False
        zoom = self.state.width / (end - start)
        if not self._apply_zoom(zoom):
            return False
        self.state.position_x = self._clamp_position(start)
        self._commit()
        return True

    def reset_to_fit(self) -> None:
        """Show the whole extent."""
        self.state.zoom = self.initial_zoom
        self.state.position_x = self.state.min
        self._commit()

    def resize(self, width: float, height: float) -> None:
        """Resize the surface, keeping the view centred where possible."""
        old_width = self.state.width
        self.state.width = max(0.0, float(width))
        self.state.height = max(0.0, float(height))
        self.recalc_panel_sizes()
        if self.initial_zoom > self.state.zoom or old_width <= 0:
            self.state.zoom = self.initial_zoom
            self.state.position_x = self.state.min
        elif self.state.position_x > self.state.min:
            delta = -self.pixel_to_time((self.state.width - old_width) / 2)
            self.state.position_x = self._clamp_position(self.state.position_x + delta)
        else:
            self.state.position_x = self._clamp_position(self.state.position_x)
        self._commit()

    def _apply_zoom(self, zoom: float) -> bool:
        if not math.isfinite(zoom) or zoom <= 0:
            return False
        if self.has_extent:
            zoom = max(zoom, self.initial_zoom)
        if self.grid.accuracy >= self.settings.max_accuracy and zoom > self.state.zoom:
            logger.debug("Zoom %.6g refused at grid accuracy %d", zoom, self.grid.accuracy)
            return False
        self.state.zoom = zoom
        return True

    def _clamp_position(self, position: float) -> float:
        upper = max(self.state.min, self.state.max - self.state.real_view)
        return float(min(max(position, self.state.min), upper))

    def _commit(self) -> None:
        s = self.state
        self.grid.recalc(s.min, s.max, s.position_x, s.zoom, s.width)
        self._propagate()
        change = self.snapshot()
        if self._last_change is not None and _same_change(change, self._last_change):
            return
        self._last_change = change
        self.bus.emit(EventKind.VIEWPORT_CHANGED, change)

    def _propagate(self) -> None:
        s = self.state
        for panel in self._panels.values():
            panel.zoom = s.zoom
            panel.position_x = s.position_x
            panel.min = s.min
            panel.max = s.max
            panel.width = s.width

    # ------------------------------------------------------------------
    # Panels
    # ------------------------------------------------------------------

    @property
    def panels(self) -> list[PanelViewport]:
        """Panels in top-to-bottom order."""
        return [self._panels[pid] for pid in self._order]

    def panel(self, panel_id: int) -> PanelViewport:
        try:
            return self._panels[panel_id]
        except KeyError:
            raise KeyError(f"Unknown panel id: {panel_id}") from None

    def add_panel(self, name: str = "", preferred_height: float = 0.0, flexible: bool = False) -> int:
        """Append a panel below the existing ones and return its id."""
        panel = PanelViewport(
            id=self._next_id,
            parent_id=ROOT_ID,
            name=name,
            preferred_height=float(preferred_height),
            flexible=flexible,
        )
        self._next_id += 1
        self._panels[panel.id] = panel
        self._order.append(panel.id)
        self._propagate()
        self.recalc_panel_sizes()
        return panel.id

    def panel_at(self, y: float) -> PanelViewport | None:
        """Return the first expanded panel whose band contains global ``y``."""
        for pid in self._order:
            panel = self._panels[pid]
            if panel.contains_y(y):
                return panel
        return None

    def neighbour(self, panel_id: int, offset: int) -> PanelViewport | None:
        """Return the panel ``offset`` places away in layout order."""
        index = self._order.index(self.panel(panel_id).id) + offset
        if 0 <= index < len(self._order):
            return self._panels[self._order[index]]
        return None

    def set_flexible(self, panel_id: int, flexible: bool = True) -> None:
        self.panel(panel_id).flexible = flexible
        self.recalc_panel_sizes()

    def set_preferred_height(self, panel_id: int, height: float) -> None:
        self.panel(panel_id).preferred_height = max(0.0, float(height))
        self.recalc_panel_sizes()

    def collapse_panel(self, panel_id: int) -> None:
        self.panel(panel_id).collapsed = True
        self.recalc_panel_sizes()

    def expand_panel(self, panel_id: int) -> None:
        self.panel(panel_id).collapsed = False
        self.recalc_panel_sizes()

    def toggle_panel(self, panel_id: int) -> bool:
        """Flip the collapsed flag and return the new value."""
        panel = self.panel(panel_id)
        panel.collapsed = not panel.collapsed
        self.recalc_panel_sizes()
        return panel.collapsed

    def resize_panel(self, panel_id: int, height: float) -> None:
        """Give a flexible panel an explicit height; zero or less collapses it."""
        panel = self.panel(panel_id)
        if height <= 0:
            panel.collapsed = True
            panel.user_height = 0.0
        else:
            panel.collapsed = False
            panel.user_height = float(height)
        self.recalc_panel_sizes()

    def recalc_panel_sizes(self) -> None:
        """Allocate heights and positions to every panel."""
        panels = self.panels
        free = self.state.height
        growing = 0
        for panel in panels:
            if panel.collapsed:
                continue
            policy = panel.policy
            if policy is SizingPolicy.FLEXIBLE_GROWING:
                growing += 1
            elif policy is SizingPolicy.FLEXIBLE_STATIC:
                free -= panel.user_height or panel.preferred_height
            else:
                free -= panel.preferred_height

        share = math.floor(max(0.0, free) / growing) if growing else 0

        position = 0.0
        for panel in panels:
            if panel.collapsed:
                height = 0.0
            elif panel.policy is SizingPolicy.STATIC:
                height = panel.preferred_height
            elif panel.policy is SizingPolicy.FLEXIBLE_STATIC:
                height = panel.user_height or panel.preferred_height
            else:
                height = float(share)
            panel.height = height
            panel.position = position
            position += height

        self.free_space = max(0.0, self.state.height - position)


def _same_change(a: ViewportChange, b: ViewportChange) -> bool:
    return bool(
        np.isclose(a.zoom, b.zoom, rtol=1e-12, atol=0.0)
        and np.isclose(a.position_x, b.position_x, rtol=1e-12, atol=1e-12)
        and a.min == b.min
        and a.max == b.max
        and a.width == b.width
        and a.height == b.height
    )
