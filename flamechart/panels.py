"""Panel tracks stacked under the shared viewport."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from flamechart.clusters import (
    BlockRect,
    EquivalenceFn,
    MetaCluster,
    RenderCluster,
    block_rect,
    cluster_rect,
    clusterize,
    default_equivalence,
    density_graph,
    find_node_at,
    label_visible,
    meta_clusterize,
    reclusterize,
)
from flamechart.events import EventKind, PointerEvent, PositionChange, Selection
from flamechart.frame import Frame, LineItem, PanelFrame
from flamechart.regions import (
    ClusterPayload,
    Cursor,
    HitRegion,
    RegionKind,
    ResizeKnobPayload,
    TimeframeAreaPayload,
    TimeframeKnobPayload,
    TimestampPayload,
    TogglePayload,
)
from flamechart.settings import ValidationIssue
from flamechart.time_grid import TimeGrid
from flamechart.tree import FlatNode, coerce_forest, flatten, get_extent, validate_forest
from flamechart.utils import Timer
from flamechart.viewport import PanelViewport

if TYPE_CHECKING:
    from flamechart.chart import FlameChart
    from flamechart.interactions import PanelChannel

logger = logging.getLogger(__name__)

# Blocks narrower than this are registered for hit testing but not painted.
MIN_PAINT_WIDTH = 0.25


class Panel:
    """Base class for a horizontal track.

    Subclasses override :meth:`render` and, where they own time data,
    :meth:`extent`.
    """

    name = "panel"

    def __init__(self, preferred_height: float = 0.0, flexible: bool = False):
        self.preferred_height = preferred_height
        self.flexible = flexible
        self.chart: FlameChart | None = None
        self.panel_id: int = -1
        self.channel: PanelChannel | None = None

    def attach(self, chart: FlameChart, panel_id: int) -> None:
        self.chart = chart
        self.panel_id = panel_id
        self.channel = chart.dispatcher.channel(panel_id)

    def init(self) -> None:
        """Called once every panel of the chart is attached."""

    @property
    def viewport(self) -> PanelViewport:
        return self.chart.viewport.panel(self.panel_id)

    @property
    def settings(self):
        return self.chart.settings

    def extent(self) -> tuple[float, float] | None:
        """Time bounds contributed by this panel, if any."""
        return None

    def render(self, frame: PanelFrame, viewport: PanelViewport) -> bool:
        """Queue draw commands; return True if grid lines are already drawn."""
        return False

    def post_render(self, frame: Frame) -> None:
        """Queue overlay commands drawn above every panel."""

    def describe(self, region: HitRegion | None) -> Selection:
        """Map a region owned by this panel to the item reported to listeners."""
        return Selection(region)

    def request_render(self) -> None:
        if self.chart is not None:
            self.chart.render_loop.request_partial(self.panel_id)


class TimeGridPanel(Panel):
    """Tick labels across the top of the chart."""

    name = "time-grid"

    def __init__(self, preferred_height: float | None = None):
        super().__init__(preferred_height or 0.0)
        self._explicit_height = preferred_height

    def attach(self, chart: FlameChart, panel_id: int) -> None:
        super().attach(chart, panel_id)
        if not self._explicit_height:
            self.preferred_height = chart.settings.time_grid_height
            chart.viewport.set_preferred_height(panel_id, self.preferred_height)

    def render(self, frame: PanelFrame, viewport: PanelViewport) -> bool:
        grid = self.chart.viewport.grid
        for tick in grid.ticks():
            frame.add_text(tick.label, tick.pixel, 0.0, self.settings.min_pixel_delta)
            frame.add_grid_line(tick.pixel, viewport.height)
        return True


@dataclass(frozen=True, slots=True)
class Mark:
    """Named timestamp drawn as a flag with a dashed line across the chart."""

    short_name: str
    full_name: str
    timestamp: float
    color: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Mark:
        short_name = str(data.get("short_name", data.get("shortName", "")))
        return cls(
            short_name=short_name,
            full_name=str(data.get("full_name", data.get("fullName", short_name))),
            timestamp=float(data["timestamp"]),
            color=str(data.get("color", "#888888")),
        )


def validate_marks(marks: Any) -> list[ValidationIssue]:
    """Return validation issues for a list of marks or mark mappings."""
    issues: list[ValidationIssue] = []
    if isinstance(marks, (str, bytes, Mapping)) or not isinstance(marks, Iterable):
        return [ValidationIssue("marks", "Marks must be a list.")]
    for i, mark in enumerate(marks):
        if isinstance(mark, Mark):
            timestamp = mark.timestamp
        elif isinstance(mark, Mapping):
            if "timestamp" not in mark:
                issues.append(ValidationIssue(f"marks[{i}].timestamp", "Timestamp is required."))
                continue
            timestamp = mark["timestamp"]
        else:
            issues.append(ValidationIssue(f"marks[{i}]", "Mark must be a Mark or a mapping."))
            continue
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            issues.append(ValidationIssue(f"marks[{i}].timestamp", "Timestamp must be numeric."))
        elif not math.isfinite(timestamp):
            issues.append(ValidationIssue(f"marks[{i}].timestamp", "Timestamp must be finite."))
    return issues


class MarksPanel(Panel):
    """Row of timestamp flags."""

    name = "marks"

    def __init__(self, marks: Sequence[Mark | Mapping[str, Any]] = ()):
        super().__init__()
        self.marks: list[Mark] = self._prepare(marks)
        self.hovered: Mark | None = None
        self.selected: HitRegion | None = None

    @staticmethod
    def _prepare(marks: Iterable[Mark | Mapping[str, Any]]) -> list[Mark]:
        prepared = [m if isinstance(m, Mark) else Mark.from_dict(m) for m in marks]
        return sorted(prepared, key=lambda m: m.timestamp)

    def attach(self, chart: FlameChart, panel_id: int) -> None:
        super().attach(chart, panel_id)
        self.preferred_height = chart.settings.block_height + 2
        chart.viewport.set_preferred_height(panel_id, self.preferred_height)
        self.channel.on(EventKind.HOVER, self._handle_hover)
        self.channel.on(EventKind.SELECT, self._handle_select)

    def set_marks(self, marks: Sequence[Mark | Mapping[str, Any]]) -> list[ValidationIssue]:
        issues = validate_marks(marks)
        if issues:
            logger.warning("Rejected marks: %s", "; ".join(f"{i.field}: {i.message}" for i in issues))
            return issues
        self.marks = self._prepare(marks)
        self.selected = None
        self.hovered = None
        return []

    def extent(self) -> tuple[float, float] | None:
        if not self.marks:
            return None
        return self.marks[0].timestamp, self.marks[-1].timestamp

    def _flag_width(self, mark: Mark) -> float:
        return len(mark.short_name) * self.settings.char_width + self.settings.block_padding * 2

    def render(self, frame: PanelFrame, viewport: PanelViewport) -> bool:
        block_height = self.settings.block_height
        prev_ending = 0.0
        for mark in self.marks:
            width = self._flag_width(mark)
            position = viewport.time_to_pixel(mark.timestamp)
            if position > 0 and prev_ending > position:
                position = prev_ending
            frame.add_rect(mark.color, position, 1.0, width, block_height)
            frame.add_text(mark.short_name, position, 1.0, width)
            self.channel.add_region(
                RegionKind.TIMESTAMP, TimestampPayload(mark), position, 1.0, width, block_height
            )
            prev_ending = position + width
        return False

    def post_render(self, frame: Frame) -> None:
        viewport = self.viewport
        for mark in self.marks:
            x = viewport.time_to_pixel(mark.timestamp)
            frame.overlay.append(LineItem(mark.color, x, viewport.position, frame.height, dashed=True))

    def describe(self, region: HitRegion | None) -> Selection:
        if region is not None and region.kind is RegionKind.TIMESTAMP:
            return Selection(region, None, "mark")
        return Selection(None)

    def _handle_hover(self, event: PointerEvent) -> None:
        region = event.region
        self.hovered = region.payload.mark if region is not None and region.kind is RegionKind.TIMESTAMP else None

    def _handle_select(self, event: PointerEvent) -> None:
        region = event.region
        if region is not None and region.kind is not RegionKind.TIMESTAMP:
            region = None
        if region != self.selected:
            self.selected = region
            self.chart.bus.emit(EventKind.SELECT, self.describe(region))
            self.request_render()


class TogglePanel(Panel):
    """Header bar that collapses the panel below and resizes the panel above."""

    name = "toggle"

    def __init__(self, title: str):
        super().__init__()
        self.title = title
        self.resize_active = False
        self._resize_start_height = 0.0
        self._resize_start_y = 0.0

    def attach(self, chart: FlameChart, panel_id: int) -> None:
        super().attach(chart, panel_id)
        self.preferred_height = chart.settings.toggle_height + 1
        chart.viewport.set_preferred_height(panel_id, self.preferred_height)
        self.channel.on(EventKind.CLICK, self._handle_click)
        self.channel.on(EventKind.DOWN, self._handle_down)
        chart.dispatcher.bus.subscribe(EventKind.MOVE, self._handle_global_move)
        chart.dispatcher.bus.subscribe(EventKind.UP, self._handle_global_up)

    def init(self) -> None:
        next_panel = self.chart.viewport.neighbour(self.panel_id, 1)
        if next_panel is not None:
            self.chart.viewport.set_flexible(next_panel.id)

    def _button_width(self) -> float:
        padding = self.settings.block_padding
        return padding * 2 + self.settings.toggle_height + len(self.title) * self.settings.char_width

    def render(self, frame: PanelFrame, viewport: PanelViewport) -> bool:
        height = self.settings.toggle_height
        padding = self.settings.block_padding
        next_panel = self.chart.viewport.neighbour(self.panel_id, 1)
        prev_panel = self.chart.viewport.neighbour(self.panel_id, -1)
        button_width = self._button_width()

        frame.add_rect("toggle", 0.0, 0.0, viewport.width, height)
        direction = "right" if next_panel is not None and next_panel.collapsed else "bottom"
        frame.add_triangle(padding, height / 2, direction)
        frame.add_text(self.title, padding + height, 0.0, viewport.width)
        self.channel.add_region(
            RegionKind.TOGGLE, TogglePayload(self.panel_id), 0.0, 0.0, button_width, height, Cursor.POINTER
        )
        if prev_panel is not None and prev_panel.flexible:
            self.channel.add_region(
                RegionKind.KNOB_RESIZE,
                ResizeKnobPayload(self.panel_id),
                button_width,
                0.0,
                viewport.width - button_width,
                height,
                Cursor.ROW_RESIZE,
            )
        return False

    def _handle_click(self, event: PointerEvent) -> None:
        region = event.region
        if region is None or region.kind is not RegionKind.TOGGLE or region.payload.panel_id != self.panel_id:
            return
        next_panel = self.chart.viewport.neighbour(self.panel_id, 1)
        if next_panel is None:
            return
        collapsed = self.chart.viewport.toggle_panel(next_panel.id)
        logger.debug("Panel %s %s", next_panel.name, "collapsed" if collapsed else "expanded")
        self.chart.render_loop.request_full()

    def _handle_down(self, event: PointerEvent) -> None:
        region = event.region
        if region is None or region.kind is not RegionKind.KNOB_RESIZE:
            return
        if region.payload.panel_id != self.panel_id:
            return
        prev_panel = self.chart.viewport.neighbour(self.panel_id, -1)
        if prev_panel is None:
            return
        self.channel.set_cursor(Cursor.ROW_RESIZE)
        self.resize_active = True
        self._resize_start_height = prev_panel.height
        self._resize_start_y = event.y

    def _handle_global_move(self, event: PointerEvent) -> None:
        if not self.resize_active:
            return
        prev_panel = self.chart.viewport.neighbour(self.panel_id, -1)
        if prev_panel is None or not prev_panel.flexible:
            return
        new_height = self._resize_start_height - (self._resize_start_y - event.y)
        self.chart.viewport.resize_panel(prev_panel.id, new_height)
        self.chart.render_loop.request_full()

    def _handle_global_up(self, event: PointerEvent) -> None:
        if self.resize_active:
            self.resize_active = False
            self.channel.clear_cursor()


class FlamePanel(Panel):
    """Flame tree track: clusters nodes and paints them level by level."""

    name = "flame"

    def __init__(
        self,
        preferred_height: float = 0.0,
        flexible: bool = False,
        equivalence: EquivalenceFn = default_equivalence,
    ):
        super().__init__(preferred_height, flexible)
        self.equivalence = equivalence
        self.flat: list[FlatNode] = []
        self.meta_clusters: list[MetaCluster] = []
        self.clusters: list[RenderCluster] = []
        self.position_y = 0.0
        self.selected: FlatNode | None = None
        self.hovered: FlatNode | None = None
        self.grabbing = False
        self._min = 0.0
        self._max = 0.0
        self._initial_clusters: list[RenderCluster] | None = None
        self._initial_key: tuple[float, float, float] | None = None

    def attach(self, chart: FlameChart, panel_id: int) -> None:
        super().attach(chart, panel_id)
        self.channel.on(EventKind.CHANGE_POSITION, self._handle_position_change)
        self.channel.on(EventKind.SELECT, self._handle_select)
        self.channel.on(EventKind.HOVER, self._handle_hover)
        self.channel.on(EventKind.MOVE, self._handle_move)
        chart.dispatcher.bus.subscribe(EventKind.UP, self._handle_up)

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def set_data(self, forest: Any) -> list[ValidationIssue]:
        """Replace the data set.

        Returns:
            Validation issues; when non-empty the previous data is kept.
        """
        issues = validate_forest(forest)
        if issues:
            logger.warning(
                "Rejected flame data with %d issue(s): %s",
                len(issues),
                "; ".join(f"{i.field}: {i.message}" for i in issues[:5]),
            )
            return issues

        with Timer("Flatten"):
            self.flat = flatten(coerce_forest(forest))
        extent = get_extent(self.flat)
        self._min, self._max = extent.min, extent.max
        with Timer("Meta clusterize"):
            self.meta_clusters = meta_clusterize(self.flat, self.equivalence)
        self._initial_clusters = None
        self.clusters = []
        self.position_y = 0.0
        self.selected = None
        self.hovered = None
        logger.info("Loaded %d nodes in %d meta clusters", len(self.flat), len(self.meta_clusters))
        return []

    def extent(self) -> tuple[float, float] | None:
        if not self.flat:
            return None
        return self._min, self._max

    def set_position_y(self, y: float) -> None:
        self.position_y = max(0.0, float(y))

    # ------------------------------------------------------------------
    # Clustering
    # ------------------------------------------------------------------

    def initial_clusters(self) -> list[RenderCluster]:
        """Clusters of the whole extent at the fit-to-width zoom."""
        vp = self.chart.viewport
        key = (vp.initial_zoom, vp.min, vp.max)
        if self._initial_clusters is None or key != self._initial_key:
            with Timer("Clusterize"):
                self._initial_clusters = clusterize(
                    self.meta_clusters,
                    vp.initial_zoom,
                    vp.min,
                    vp.max,
                    self.settings.stick_distance,
                    self.settings.min_block_size,
                )
            self._initial_key = key
        return self._initial_clusters

    def visible_clusters(self) -> list[RenderCluster]:
        """Clusters for the current zoom and window."""
        vp = self.chart.viewport
        return reclusterize(
            self.initial_clusters(),
            vp.zoom,
            vp.position_x,
            vp.position_x + vp.real_view,
            self.settings.stick_distance,
            self.settings.min_block_size,
        )

    def _rect(self, cluster: RenderCluster, viewport: PanelViewport) -> BlockRect:
        return cluster_rect(
            cluster,
            zoom=viewport.zoom,
            position_x=viewport.position_x,
            position_y=self.position_y,
            block_height=self.settings.block_height,
            min_render_width=self.settings.min_render_width,
        )

    def _on_screen(self, rect: BlockRect, viewport: PanelViewport) -> bool:
        block_height = self.settings.block_height
        return rect.x + rect.w > 0 and rect.x < viewport.width and rect.y + block_height > 0 and rect.y < viewport.height

    def find_node(self, region: HitRegion | None) -> FlatNode | None:
        """Return the node under the pointer inside a cluster region."""
        if region is None or region.kind is not RegionKind.CLUSTER:
            return None
        x, y = self.channel.mouse
        vp = self.viewport
        return find_node_at(
            region.payload.cluster,
            x,
            y,
            zoom=vp.zoom,
            position_x=vp.position_x,
            position_y=self.position_y,
            block_height=self.settings.block_height,
            min_render_width=self.settings.min_render_width,
        )

    def describe(self, region: HitRegion | None) -> Selection:
        node = self.find_node(region)
        if node is None:
            return Selection(None)
        return Selection(region, node, "node")

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, frame: PanelFrame, viewport: PanelViewport) -> bool:
        self.clusters = self.visible_clusters()
        block_height = self.settings.block_height
        _, mouse_y = self.channel.mouse

        for cluster in self.clusters:
            rect = self._rect(cluster, viewport)
            if not self._on_screen(rect, viewport):
                continue
            # Only the pointer's row is registered here; the rest follows after a delay.
            if rect.y <= mouse_y <= rect.y + block_height:
                self.channel.add_region(
                    RegionKind.CLUSTER, ClusterPayload(cluster), rect.x, rect.y, rect.w, block_height
                )
            if rect.w >= MIN_PAINT_WIDTH:
                frame.add_rect(cluster.color or cluster.type or "_default", rect.x, rect.y, rect.w, block_height)
            if label_visible(cluster, rect.w, self.settings.min_text_width):
                frame.add_text(cluster.nodes[0].name, rect.x, rect.y, rect.w)

        if self.selected is not None:
            rect = block_rect(
                self.selected.start,
                self.selected.duration,
                self.selected.level,
                zoom=viewport.zoom,
                position_x=viewport.position_x,
                position_y=self.position_y,
                block_height=block_height,
                min_render_width=self.settings.min_render_width,
            )
            frame.add_stroke("selection", rect.x, rect.y, rect.w, block_height)

        self.chart.render_loop.debounce(
            f"regions-{self.panel_id}", self.settings.hit_region_delay_ms, self.rebuild_regions
        )
        return False

    def rebuild_regions(self) -> None:
        """Register a region for every on-screen cluster."""
        viewport = self.viewport
        self.channel.clear_regions()
        if viewport.collapsed:
            return
        block_height = self.settings.block_height
        for cluster in self.clusters:
            rect = self._rect(cluster, viewport)
            if self._on_screen(rect, viewport):
                self.channel.add_region(
                    RegionKind.CLUSTER, ClusterPayload(cluster), rect.x, rect.y, rect.w, block_height
                )
        self.chart.dispatcher.refresh_hover()

    # ------------------------------------------------------------------
    # Pointer handlers
    # ------------------------------------------------------------------

    def _handle_position_change(self, change: PositionChange) -> None:
        start_y = self.position_y
        self.grabbing = True
        self.channel.set_cursor(Cursor.GRABBING)
        self.set_position_y(self.position_y + change.delta_y)
        moved = self.chart.viewport.pan(change.delta_time)
        if not moved and start_y != self.position_y:
            self.chart.render_loop.request_full()

    def _handle_up(self, event: PointerEvent) -> None:
        if self.grabbing:
            self.grabbing = False
            self.channel.clear_cursor()

    def _handle_select(self, event: PointerEvent) -> None:
        node = self.find_node(event.region)
        if node is not self.selected:
            self.selected = node
            self.chart.bus.emit(EventKind.SELECT, self.describe(event.region if node else None))
            self.request_render()

    def _handle_hover(self, event: PointerEvent) -> None:
        self.hovered = self.find_node(event.region)

    def _handle_move(self, event: PointerEvent) -> None:
        region = event.region
        if region is None or region.kind is not RegionKind.CLUSTER:
            return
        # Members of one merged cluster share a single region.
        node = self.find_node(region)
        if node is not self.hovered:
            self.hovered = node
            self.chart.bus.emit(EventKind.HOVER, self.describe(region))
            self.chart.render_loop.request_partial()


class TimeframeSelectorPanel(Panel):
    """Overview strip of the whole extent with the visible timeframe marked.

    The strip is drawn at the fit-to-width zoom. Knobs sit on both edges of the
    main view and move that edge when dragged. Dragging across the strip selects
    a new timeframe, and a click moves the closer edge to the pointer.
    """

    name = "timeframe-selector"

    def __init__(self, preferred_height: float | None = None):
        super().__init__(preferred_height or 0.0)
        self._explicit_height = preferred_height
        self.grid = TimeGrid()
        self.moving_knob: str | None = None
        self.selecting = False
        self.selection: tuple[float, float] | None = None
        self._select_start = 0.0
        self._graph: list[tuple[float, int]] = []
        self._max_level = 0
        self._graph_source: list[FlatNode] | None = None
        self._graph_key: tuple[float, float, float] | None = None

    def attach(self, chart: FlameChart, panel_id: int) -> None:
        super().attach(chart, panel_id)
        if not self._explicit_height:
            self.preferred_height = chart.settings.timeframe_height
            chart.viewport.set_preferred_height(panel_id, self.preferred_height)
        self.grid = TimeGrid(chart.settings.min_pixel_delta, chart.settings.time_units)
        self.channel.on(EventKind.DOWN, self._handle_down)
        self.channel.on(EventKind.CLICK, self._handle_click)
        chart.dispatcher.bus.subscribe(EventKind.MOVE, self._handle_global_move)
        chart.dispatcher.bus.subscribe(EventKind.UP, self._handle_global_up)

    # ------------------------------------------------------------------
    # Knobs
    # ------------------------------------------------------------------

    def knob_positions(self) -> tuple[float, float]:
        """Pixel positions of the left and right edges of the visible timeframe."""
        vp = self.chart.viewport
        left = (vp.position_x - vp.min) * vp.initial_zoom
        return left, left + vp.real_view * vp.initial_zoom

    def overview_time(self, x: float) -> float:
        """Return the time drawn at ``x`` on the overview strip."""
        vp = self.chart.viewport
        return vp.min + x / vp.initial_zoom

    def set_left_knob(self, x: float) -> bool:
        """Move the start of the visible timeframe to the overview pixel ``x``."""
        left, right = self.knob_positions()
        if x >= right - 1:
            return False
        vp = self.chart.viewport
        return vp.set_visible_range(max(self.overview_time(x), vp.min), vp.position_x + vp.real_view)

    def set_right_knob(self, x: float) -> bool:
        """Move the end of the visible timeframe to the overview pixel ``x``."""
        left, right = self.knob_positions()
        if x <= left + 1:
            return False
        vp = self.chart.viewport
        return vp.set_visible_range(vp.position_x, min(self.overview_time(x), vp.max))

    def select_range(self, x0: float, x1: float) -> bool:
        """Show the time between two overview pixels in the main view."""
        vp = self.chart.viewport
        start = max(self.overview_time(min(x0, x1)), vp.min)
        end = min(self.overview_time(max(x0, x1)), vp.max)
        return vp.set_visible_range(start, end)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def overview_graph(self) -> tuple[list[tuple[float, int]], int]:
        """Density graph of the flame data at the fit-to-width zoom."""
        flame = self.chart.flame
        nodes = flame.flat if flame is not None else []
        vp = self.chart.viewport
        key = (vp.initial_zoom, vp.min, vp.max)
        if nodes is not self._graph_source or key != self._graph_key:
            with Timer("Timeframe graph"):
                self._graph, self._max_level = density_graph(
                    nodes, vp.initial_zoom, vp.min, vp.max, self.settings.timeframe_stick_distance
                )
            self._graph_source = nodes
            self._graph_key = key
        return self._graph, self._max_level

    def render(self, frame: PanelFrame, viewport: PanelViewport) -> bool:
        vp = self.chart.viewport
        height = viewport.height
        scale = vp.initial_zoom

        self.grid.recalc(vp.min, vp.max, vp.min, scale, vp.width)
        for tick in self.grid.ticks():
            frame.add_text(tick.label, tick.pixel, 0.0, self.settings.min_pixel_delta)
            frame.add_grid_line(tick.pixel, height)

        points, max_level = self.overview_graph()
        if max_level > 0:
            graph_height = max(height - self.settings.block_height, 0.0)
            frame.add_graph(
                "timeframe-graph",
                "timeframe-graph-stroke",
                (((t - vp.min) * scale, height - level / max_level * graph_height) for t, level in points),
            )
        frame.add_rect("timeframe-bottom", 0.0, height - 1, viewport.width, 1.0)

        left, right = self.knob_positions()
        frame.add_rect("timeframe-overlay", 0.0, 0.0, max(left, 0.0), height)
        frame.add_rect("timeframe-overlay", right, 0.0, max(viewport.width - right, 0.0), height)
        frame.add_rect("timeframe-overlay", left - 1, 0.0, 1.0, height)
        frame.add_rect("timeframe-overlay", right + 1, 0.0, 1.0, height)
        if self.selection is not None:
            x0, x1 = self.selection
            frame.add_rect("timeframe-selection", x0, 0.0, x1 - x0, height)

        knob = self.settings.timeframe_knob_size
        knob_height = height / 3
        for side, position in (("left", left), ("right", right)):
            x = position - knob / 2
            frame.add_rect("timeframe-knob", x, 0.0, knob, knob_height)
            frame.add_stroke("timeframe-knob-stroke", x, 0.0, knob, knob_height)
            self.channel.add_region(
                RegionKind.TIMEFRAME_KNOB, TimeframeKnobPayload(side), x, 0.0, knob, knob_height, Cursor.COL_RESIZE
            )
        self.channel.add_region(
            RegionKind.TIMEFRAME_AREA,
            TimeframeAreaPayload(self.panel_id),
            0.0,
            0.0,
            viewport.width,
            height,
            Cursor.TEXT,
        )
        return True

    # ------------------------------------------------------------------
    # Pointer handlers
    # ------------------------------------------------------------------

    def _handle_down(self, event: PointerEvent) -> None:
        region = event.region
        if region is None:
            return
        if region.kind is RegionKind.TIMEFRAME_KNOB:
            self.moving_knob = region.payload.side
            self.channel.set_cursor(Cursor.COL_RESIZE)
        elif region.kind is RegionKind.TIMEFRAME_AREA:
            self.selecting = True
            self._select_start = event.x
            self.selection = None

    def _handle_global_move(self, event: PointerEvent) -> None:
        if self.moving_knob == "left":
            self.set_left_knob(event.x)
        elif self.moving_knob == "right":
            self.set_right_knob(event.x)
        elif self.selecting:
            self.selection = (min(self._select_start, event.x), max(self._select_start, event.x))
            self.request_render()

    def _handle_global_up(self, event: PointerEvent) -> None:
        if self.moving_knob is not None:
            self.moving_knob = None
            self.channel.clear_cursor()
        if self.selecting:
            self.selecting = False
            selection, self.selection = self.selection, None
            if selection is not None and selection[1] - selection[0] > 1:
                self.select_range(*selection)
            self.request_render()

    def _handle_click(self, event: PointerEvent) -> None:
        region = event.region
        if region is None or region.kind not in (RegionKind.TIMEFRAME_KNOB, RegionKind.TIMEFRAME_AREA):
            return
        left, right = self.knob_positions()
        x = event.x
        if x > right:
            self.set_right_knob(x)
        elif left < x < right:
            if x - left > right - x:
                self.set_right_knob(x)
            else:
                self.set_left_knob(x)
        else:
            self.set_left_knob(x)
