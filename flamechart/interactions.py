"""Pointer handling: region resolution, press/drag state and per-panel fan-out."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto

from flamechart.events import EventBus, EventKind, Listener, PointerEvent, PositionChange
from flamechart.regions import Cursor, HitRegion, PanelRegions, RegionKind, RegionPayload
from flamechart.settings import ChartSettings
from flamechart.viewport import ViewportEngine

logger = logging.getLogger(__name__)

# Events forwarded to a panel only while the pointer is inside its band.
_BAND_EVENTS = (EventKind.DOWN, EventKind.UP, EventKind.MOVE, EventKind.CLICK, EventKind.SELECT)


class PointerState(Enum):
    IDLE = auto()
    PRESSED = auto()
    DRAGGING = auto()


@dataclass(slots=True)
class _Press:
    x: float
    y: float
    panel_id: int | None


class PanelChannel:
    """Event channel and hit regions of a single panel."""

    def __init__(self, dispatcher: InteractionDispatcher, panel_id: int):
        self.dispatcher = dispatcher
        self.panel_id = panel_id
        self.bus = EventBus(f"panel-{panel_id}")
        self.regions = PanelRegions(panel_id)

    def on(self, kind: EventKind, listener: Listener) -> Callable[[], None]:
        return self.bus.subscribe(kind, listener)

    def add_region(
        self,
        kind: RegionKind,
        payload: RegionPayload,
        x: float,
        y: float,
        w: float,
        h: float,
        cursor: Cursor | None = None,
    ) -> HitRegion:
        return self.regions.add(kind, payload, x, y, w, h, cursor)

    def clear_regions(self) -> None:
        self.regions.clear()

    @property
    def mouse(self) -> tuple[float, float]:
        """Pointer position relative to the panel's top edge."""
        x, y = self.dispatcher.mouse
        return x, y - self.dispatcher.viewport.panel(self.panel_id).position

    @property
    def global_mouse(self) -> tuple[float, float]:
        return self.dispatcher.mouse

    def set_cursor(self, cursor: Cursor) -> None:
        self.dispatcher.set_cursor(cursor)

    def clear_cursor(self) -> None:
        self.dispatcher.clear_cursor()


class InteractionDispatcher:
    """Turns raw pointer input into region events.

    Global listeners subscribe on :attr:`bus`; panels receive filtered copies of
    the same events through their :class:`PanelChannel`.
    """

    def __init__(
        self,
        viewport: ViewportEngine,
        settings: ChartSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.viewport = viewport
        self.settings = settings or viewport.settings
        self.clock = clock
        self.bus = EventBus("interactions")
        self.root_regions = PanelRegions(None)
        self.state = PointerState.IDLE
        self.mouse: tuple[float, float] = (0.0, 0.0)
        self.hovered: HitRegion | None = None
        self._channels: dict[int, PanelChannel] = {}
        self._press: _Press | None = None
        self._last_click_ms: float | None = None
        self._forced_cursor: Cursor | None = None

    def channel(self, panel_id: int) -> PanelChannel:
        """Return the channel of ``panel_id``, creating it on first use."""
        channel = self._channels.get(panel_id)
        if channel is None:
            self.viewport.panel(panel_id)
            channel = PanelChannel(self, panel_id)
            self._channels[panel_id] = channel
        return channel

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, x: float, y: float) -> HitRegion | None:
        """Return the region under a global point, or None.

        Root regions are checked first, then the regions of the panel whose band
        contains ``y``. Within a list the first inserted match wins.
        """
        region = self.root_regions.find(x, y)
        if region is not None:
            return region
        panel = self.viewport.panel_at(y)
        if panel is None:
            return None
        channel = self._channels.get(panel.id)
        if channel is None:
            return None
        return channel.regions.find(x, y - panel.position)

    hit_test = resolve

    # ------------------------------------------------------------------
    # Pointer input
    # ------------------------------------------------------------------

    def pointer_move(self, x: float, y: float) -> None:
        if self.state is not PointerState.IDLE:
            dx = self.mouse[0] - x
            dy = self.mouse[1] - y
            if dx or dy:
                self.state = PointerState.DRAGGING
                change = PositionChange(delta_x=dx, delta_y=dy, delta_time=dx / self.viewport.zoom)
                self._emit(EventKind.CHANGE_POSITION, change, None)
        self.mouse = (x, y)
        self._check_hover()
        self._emit(EventKind.MOVE, self._pointer_event(), self.hovered)

    def pointer_down(self, x: float, y: float) -> None:
        if self.mouse != (x, y):
            self.mouse = (x, y)
            self._check_hover()
        panel = self.viewport.panel_at(y)
        self._press = _Press(x, y, panel.id if panel is not None else None)
        self.state = PointerState.PRESSED
        self._emit(EventKind.DOWN, self._pointer_event(), self.hovered)

    def pointer_up(self, x: float | None = None, y: float | None = None) -> None:
        if x is not None and y is not None and self.mouse != (x, y):
            self.pointer_move(x, y)
        press = self._press
        self._press = None
        self.state = PointerState.IDLE

        is_click = press is not None and (
            math.hypot(self.mouse[0] - press.x, self.mouse[1] - press.y)
            <= self.settings.click_threshold_px
        )
        region = self.resolve(*self.mouse) if is_click else self.hovered
        if is_click:
            self._emit(EventKind.SELECT, self._pointer_event(region), region)
        self._emit(EventKind.UP, self._pointer_event(region), region)
        if is_click:
            self._emit(EventKind.CLICK, self._pointer_event(region), region)
            self._check_double_click(region)

    def pointer_leave(self) -> None:
        """Treat leaving the surface as a release and drop the hover."""
        self.pointer_up()
        if self.hovered is not None:
            self.hovered = None
            self._emit(EventKind.HOVER, self._pointer_event(None), None)

    def wheel(self, x: float, y: float, delta_x: float, delta_y: float) -> bool:
        """Pan by the horizontal delta and zoom around ``x`` by the vertical one.

        Returns:
            True if the viewport changed.
        """
        if not all(math.isfinite(value) for value in (x, y, delta_x, delta_y)):
            return False
        self.mouse = (x, y)
        vp = self.viewport
        start = (vp.zoom, vp.position_x)

        if delta_x:
            vp.pan(delta_x / vp.zoom)

        if delta_y:
            target = vp.zoom * (1 - delta_y / self.settings.wheel_zoom_divisor)
            if vp.has_extent and target < vp.initial_zoom:
                target = vp.initial_zoom
            if target > 0 and target != vp.zoom:
                vp.zoom_at(x, target / vp.zoom)

        self._check_hover()
        return (vp.zoom, vp.position_x) != start

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    @property
    def cursor(self) -> Cursor:
        if self._forced_cursor is not None:
            return self._forced_cursor
        if self.hovered is not None and self.hovered.cursor is not None:
            return self.hovered.cursor
        return Cursor.DEFAULT

    def set_cursor(self, cursor: Cursor) -> None:
        self._forced_cursor = cursor

    def clear_cursor(self) -> None:
        self._forced_cursor = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def refresh_hover(self) -> None:
        """Re-resolve the hovered region after regions were rebuilt."""
        self._check_hover()

    def _pointer_event(self, region: HitRegion | None = None) -> PointerEvent:
        if region is None:
            region = self.hovered
        return PointerEvent(self.mouse[0], self.mouse[1], region)

    def _check_hover(self) -> None:
        region = self.resolve(*self.mouse)
        old = self.hovered
        old_identity = old.identity if old is not None else None
        new_identity = region.identity if region is not None else None
        if old_identity == new_identity:
            self.hovered = region
            return
        if old is not None and region is not None:
            self.hovered = None
            self._emit(EventKind.HOVER, PointerEvent(self.mouse[0], self.mouse[1], None), None)
        self.hovered = region
        self._emit(EventKind.HOVER, PointerEvent(self.mouse[0], self.mouse[1], region), region)

    def _check_double_click(self, region: HitRegion | None) -> None:
        now_ms = self.clock() * 1000.0
        qualifies = region is not None and region.kind.value in self.settings.double_click_kinds
        if not qualifies:
            self._last_click_ms = None
            return
        last = self._last_click_ms
        if last is not None and now_ms - last <= self.settings.double_click_ms:
            self._last_click_ms = None
            self._emit(EventKind.DOUBLE_CLICK, self._pointer_event(region), region)
            logger.debug("Double click on %s, resetting view", region.kind.value)
            self.viewport.reset_to_fit()
        else:
            self._last_click_ms = now_ms

    def _emit(self, kind: EventKind, payload, region: HitRegion | None) -> None:
        self.bus.emit(kind, payload)
        if kind is EventKind.CHANGE_POSITION:
            press = self._press
            if press is not None and press.panel_id in self._channels:
                self._channels[press.panel_id].bus.emit(kind, payload)
            return

        y = self.mouse[1]
        for panel_id, channel in list(self._channels.items()):
            if region is not None and region.owner_panel_id != panel_id:
                continue
            if kind in _BAND_EVENTS and not self.viewport.panel(panel_id).contains_y(y):
                continue
            channel.bus.emit(kind, payload)
