"""FlameChart: panels, viewport and pointer dispatch wired together."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from flamechart.clusters import RenderCluster
from flamechart.events import EventBus, EventKind, Listener, PointerEvent, Selection, ViewportChange
from flamechart.frame import Frame, LineItem, PanelFrame
from flamechart.interactions import InteractionDispatcher
from flamechart.panels import FlamePanel, Mark, MarksPanel, Panel, TimeframeSelectorPanel, TimeGridPanel
from flamechart.regions import Cursor, HitRegion
from flamechart.scheduler import FrameScheduler, ManualFrameScheduler, RenderLoop
from flamechart.settings import ChartSettings, ValidationIssue
from flamechart.utils import Timer
from flamechart.viewport import ViewportEngine

logger = logging.getLogger(__name__)

# Pointer-level events live on the dispatcher bus; the rest on the chart bus.
_POINTER_EVENTS = frozenset(
    {
        EventKind.DOWN,
        EventKind.UP,
        EventKind.MOVE,
        EventKind.CLICK,
        EventKind.CHANGE_POSITION,
        EventKind.DOUBLE_CLICK,
    }
)


class FlameChart:
    """Headless flame chart.

    The host feeds surface size and pointer input, drives the scheduler, and
    paints :attr:`frame` whenever ``FRAME_READY`` fires.

    Args:
        data: Optional interval forest loaded on construction.
        marks: Optional marks; a marks panel is only created when given.
        settings: Chart settings; invalid settings raise ``ValueError``.
        scheduler: Host frame clock. Defaults to a :class:`ManualFrameScheduler`.
        panels: Explicit panel stack, top to bottom. Overrides the default
            layout: a timeframe selector when ``data`` is given, then the time
            grid, the marks panel when ``marks`` is given, and the flame panel.
        clock: Monotonic clock in seconds, used for double-click timing.
    """

    def __init__(
        self,
        data: Sequence[Any] | None = None,
        marks: Sequence[Mark | Mapping[str, Any]] | None = None,
        *,
        settings: ChartSettings | None = None,
        scheduler: FrameScheduler | None = None,
        panels: Sequence[Panel] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or ChartSettings()
        issues = self.settings.validate()
        if issues:
            raise ValueError(
                "Invalid chart settings: " + "; ".join(f"{i.field}: {i.message}" for i in issues)
            )

        self.bus = EventBus("chart")
        self.viewport = ViewportEngine(self.settings, self.bus)
        self.dispatcher = InteractionDispatcher(self.viewport, self.settings, clock)
        self.scheduler = scheduler or ManualFrameScheduler(self.settings.frame_interval_ms)
        self.render_loop = RenderLoop(self.scheduler, self._render_full, self._render_partial)
        self.frame: Frame | None = None
        self._panel_frames: dict[int, PanelFrame] = {}
        self._sequence = 0

        if panels is None:
            panels = [TimeGridPanel()]
            if data is not None:
                panels.insert(0, TimeframeSelectorPanel())
            if marks is not None:
                panels.append(MarksPanel())
            panels.append(FlamePanel())
        self.panels: list[Panel] = list(panels)
        self._by_id: dict[int, Panel] = {}
        for panel in self.panels:
            panel_id = self.viewport.add_panel(panel.name, panel.preferred_height, panel.flexible)
            panel.attach(self, panel_id)
            self._by_id[panel_id] = panel
        for panel in self.panels:
            panel.init()

        self.flame: FlamePanel | None = next((p for p in self.panels if isinstance(p, FlamePanel)), None)
        self.marks_panel: MarksPanel | None = next(
            (p for p in self.panels if isinstance(p, MarksPanel)), None
        )
        self.timeframe_selector: TimeframeSelectorPanel | None = next(
            (p for p in self.panels if isinstance(p, TimeframeSelectorPanel)), None
        )

        self.bus.subscribe(EventKind.VIEWPORT_CHANGED, self._handle_viewport_changed)
        self.dispatcher.bus.subscribe(EventKind.HOVER, self._forward_hover)

        if marks and self.marks_panel is not None:
            self.marks_panel.set_marks(marks)
        if data is not None:
            self.set_data(data)
        else:
            self.recalc_extent()
        self.render_loop.request_full()

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def set_data(self, forest: Sequence[Any]) -> list[ValidationIssue]:
        """Load a new interval forest and fit it to the width.

        Returns:
            Validation issues; when non-empty nothing changed.
        """
        if self.flame is None:
            return [ValidationIssue("data", "Chart has no flame panel.")]
        issues = self.flame.set_data(forest)
        if issues:
            return issues
        self.recalc_extent()
        self.render_loop.request_full()
        return []

    def set_marks(self, marks: Sequence[Mark | Mapping[str, Any]]) -> list[ValidationIssue]:
        if self.marks_panel is None:
            return [ValidationIssue("marks", "Chart has no marks panel.")]
        issues = self.marks_panel.set_marks(marks)
        if issues:
            return issues
        self.recalc_extent(reset=False)
        self.render_loop.request_full()
        return []

    def recalc_extent(self, reset: bool = True) -> None:
        """Recompute the time extent from every panel's data."""
        bounds = [extent for panel in self.panels if (extent := panel.extent()) is not None]
        if bounds:
            min_time = min(b[0] for b in bounds)
            max_time = max(b[1] for b in bounds)
        else:
            min_time = max_time = 0.0
        self.viewport.set_extent(min_time, max_time, reset=reset)

    # ------------------------------------------------------------------
    # Viewport
    # ------------------------------------------------------------------

    def set_viewport(self, width: float, height: float) -> None:
        self.viewport.resize(width, height)
        self.render_loop.request_full()

    def pan(self, delta_time: float) -> bool:
        return self.viewport.pan(delta_time)

    def zoom_at(self, pixel_x: float, factor: float) -> bool:
        return self.viewport.zoom_at(pixel_x, factor)

    def set_zoom(self, zoom: float) -> bool:
        return self.viewport.set_zoom(zoom)

    def set_visible_range(self, start: float, end: float) -> bool:
        return self.viewport.set_visible_range(start, end)

    def reset_to_fit(self) -> None:
        self.viewport.reset_to_fit()

    def set_flame_position(self, x: float | None = None, y: float | None = None) -> None:
        """Scroll to absolute time ``x`` and/or flame scroll offset ``y``."""
        if x is not None:
            self.viewport.pan(x - self.viewport.position_x)
        if y is not None and self.flame is not None:
            self.flame.set_position_y(y)
        self.render_loop.request_full()

    @property
    def viewport_state(self) -> ViewportChange:
        return self.viewport.snapshot()

    def time_to_pixel(self, time_value: float) -> float:
        return self.viewport.time_to_pixel(time_value)

    def pixel_to_time(self, pixels: float) -> float:
        return self.viewport.pixel_to_time(pixels)

    def visible_clusters(self) -> list[RenderCluster]:
        if self.flame is None:
            return []
        return self.flame.visible_clusters()

    def hit_test(self, x: float, y: float) -> HitRegion | None:
        return self.dispatcher.resolve(x, y)

    # ------------------------------------------------------------------
    # Events and pointer input
    # ------------------------------------------------------------------

    def subscribe(self, kind: EventKind, listener: Listener) -> Callable[[], None]:
        """Listen for chart or pointer events; returns an unsubscribe callable."""
        if kind in _POINTER_EVENTS:
            return self.dispatcher.bus.subscribe(kind, listener)
        return self.bus.subscribe(kind, listener)

    def pointer_move(self, x: float, y: float) -> None:
        self.dispatcher.pointer_move(x, y)

    def pointer_down(self, x: float, y: float) -> None:
        self.dispatcher.pointer_down(x, y)

    def pointer_up(self, x: float | None = None, y: float | None = None) -> None:
        self.dispatcher.pointer_up(x, y)

    def pointer_leave(self) -> None:
        self.dispatcher.pointer_leave()

    def wheel(self, x: float, y: float, delta_x: float, delta_y: float) -> bool:
        return self.dispatcher.wheel(x, y, delta_x, delta_y)

    @property
    def cursor(self) -> Cursor:
        return self.dispatcher.cursor

    def render(self) -> None:
        """Schedule a full frame."""
        self.render_loop.request_full()

    def panel_by_id(self, panel_id: int) -> Panel:
        return self._by_id[panel_id]

    def _handle_viewport_changed(self, change: ViewportChange) -> None:
        self.render_loop.request_full()

    def _forward_hover(self, event: PointerEvent) -> None:
        region = event.region
        if region is None or region.owner_panel_id not in self._by_id:
            selection = Selection(region)
        else:
            selection = self._by_id[region.owner_panel_id].describe(region)
        self.bus.emit(EventKind.HOVER, selection)
        self.render_loop.request_partial()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _render_panel(self, panel: Panel) -> PanelFrame:
        viewport = self.viewport.panel(panel.panel_id)
        panel.channel.clear_regions()
        panel_frame = PanelFrame(
            panel.panel_id, viewport.position, viewport.height, padding=self.settings.block_padding
        )
        if viewport.collapsed:
            return panel_frame
        if not panel.render(panel_frame, viewport):
            for tick in self.viewport.grid.ticks():
                panel_frame.add_grid_line(tick.pixel, viewport.height)
        return panel_frame

    def _render_full(self) -> None:
        with Timer("Full render"):
            self._panel_frames = {panel.panel_id: self._render_panel(panel) for panel in self.panels}
            self._compose()

    def _render_partial(self, panel_ids: list[int]) -> None:
        for panel_id in panel_ids:
            panel = self._by_id.get(panel_id)
            if panel is not None:
                self._panel_frames[panel_id] = self._render_panel(panel)
        self._compose()

    def _compose(self) -> None:
        self._sequence += 1
        vp = self.viewport
        frame = Frame(width=vp.width, height=vp.height, sequence=self._sequence)
        for panel in self.panels:
            panel_frame = self._panel_frames.get(panel.panel_id)
            if panel_frame is not None:
                frame.panels.append(panel_frame)
        if vp.free_space > 0:
            top = vp.height - vp.free_space
            for tick in vp.grid.ticks():
                frame.free_space_lines.append(LineItem("grid", tick.pixel, top, vp.height))
        for panel in self.panels:
            if not vp.panel(panel.panel_id).collapsed:
                panel.post_render(frame)
        self.frame = frame
        self.bus.emit(EventKind.FRAME_READY, frame)
