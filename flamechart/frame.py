"""Render queues handed to the drawing collaborator after each frame."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class RectItem:
    x: float
    y: float
    w: float
    h: float


@dataclass(frozen=True, slots=True)
class TextItem:
    """Label clipped to ``max_width`` pixels, drawn at ``x + padding``."""

    text: str
    x: float
    y: float
    w: float
    max_width: float


@dataclass(frozen=True, slots=True)
class StrokeItem:
    color: str
    x: float
    y: float
    w: float
    h: float


@dataclass(frozen=True, slots=True)
class LineItem:
    """Vertical line in global coordinates."""

    color: str
    x: float
    y0: float
    y1: float
    dashed: bool = False


@dataclass(frozen=True, slots=True)
class GraphItem:
    """Filled polyline closed against the bottom edge of its panel."""

    color: str
    stroke: str
    points: tuple[tuple[float, float], ...]


@dataclass(slots=True)
class PanelFrame:
    """Draw commands of one panel in panel-local coordinates.

    Rectangles are grouped by colour key so the painter switches brushes once per
    colour.
    """

    panel_id: int
    position: float
    height: float
    padding: float = 4.0
    rects: dict[str, list[RectItem]] = field(default_factory=dict)
    texts: list[TextItem] = field(default_factory=list)
    strokes: list[StrokeItem] = field(default_factory=list)
    lines: list[LineItem] = field(default_factory=list)
    triangles: list[tuple[float, float, str]] = field(default_factory=list)
    graphs: list[GraphItem] = field(default_factory=list)

    def add_rect(self, color: str, x: float, y: float, w: float, h: float) -> None:
        self.rects.setdefault(color, []).append(RectItem(x, y, w, h))

    def add_text(self, text: str, x: float, y: float, w: float) -> None:
        """Queue a label; blocks partly scrolled off the left edge keep their visible part."""
        if not text:
            return
        max_width = w - (self.padding * 2 - (x if x < 0 else 0))
        if max_width > 0:
            self.texts.append(TextItem(text, x, y, w, max_width))

    def add_stroke(self, color: str, x: float, y: float, w: float, h: float) -> None:
        self.strokes.append(StrokeItem(color, x, y, w, h))

    def add_grid_line(self, x: float, height: float) -> None:
        self.lines.append(LineItem("grid", x, 0.0, height))

    def add_triangle(self, x: float, y: float, direction: str) -> None:
        self.triangles.append((x, y, direction))

    def add_graph(self, color: str, stroke: str, points: Iterable[tuple[float, float]]) -> None:
        points = tuple(points)
        if len(points) > 1:
            self.graphs.append(GraphItem(color, stroke, points))

    @property
    def rect_count(self) -> int:
        return sum(len(items) for items in self.rects.values())


@dataclass(slots=True)
class Frame:
    """Everything drawn in one pass, panels in layout order."""

    width: float
    height: float
    sequence: int
    panels: list[PanelFrame] = field(default_factory=list)
    overlay: list[LineItem] = field(default_factory=list)
    free_space_lines: list[LineItem] = field(default_factory=list)

    def panel(self, panel_id: int) -> PanelFrame | None:
        for panel_frame in self.panels:
            if panel_frame.panel_id == panel_id:
                return panel_frame
        return None
