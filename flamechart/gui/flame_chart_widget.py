"""QWidget host that feeds pointer input to a FlameChart and paints its frames."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from PySide6.QtCore import QPointF, QRectF, Qt
from PySide6.QtGui import QColor, QFontMetricsF, QMouseEvent, QPainter, QPen, QPolygonF, QWheelEvent
from PySide6.QtWidgets import QWidget

from flamechart.chart import FlameChart
from flamechart.events import EventKind, Selection
from flamechart.frame import Frame, LineItem, PanelFrame
from flamechart.gui.qt_scheduler import QtFrameScheduler
from flamechart.regions import Cursor, RegionKind
from flamechart.settings import ChartSettings, ValidationIssue

_CURSORS: dict[Cursor, Qt.CursorShape] = {
    Cursor.DEFAULT: Qt.CursorShape.ArrowCursor,
    Cursor.POINTER: Qt.CursorShape.PointingHandCursor,
    Cursor.GRABBING: Qt.CursorShape.ClosedHandCursor,
    Cursor.ROW_RESIZE: Qt.CursorShape.SizeVerCursor,
    Cursor.COL_RESIZE: Qt.CursorShape.SizeHorCursor,
    Cursor.TEXT: Qt.CursorShape.IBeamCursor,
}

# Region kinds that get a hover highlight.
_HOVER_KINDS = frozenset({RegionKind.CLUSTER, RegionKind.TIMESTAMP})

# Hue step between generated block colours.
_HUE_STEP = 27


class FlameChartWidget(QWidget):
    """Widget that renders a flame chart and forwards mouse input to it."""

    def __init__(
        self,
        chart: FlameChart | None = None,
        parent: QWidget | None = None,
        *,
        settings: ChartSettings | None = None,
    ) -> None:
        super().__init__(parent)
        if chart is None:
            settings = settings or ChartSettings()
            chart = FlameChart(
                settings=settings,
                scheduler=QtFrameScheduler(self, settings.frame_interval_ms),
            )
        self._chart = chart
        self._block_colors: dict[str, QColor] = {}
        self._next_hue = 0
        self._hovered: Selection | None = None

        self.setMouseTracking(True)
        self.setMinimumHeight(60)

        self._theme_colors: dict[str, QColor] = {
            "background": QColor(0xFF, 0xFF, 0xFF),
            "text": QColor(0x22, 0x22, 0x22),
            "grid": QColor(90, 90, 90, 0x33),
            "selection": QColor(0x2E, 0xA0, 0x43),
            "toggle": QColor(0xF0, 0xF0, 0xF0),
            "triangle": QColor(0x66, 0x66, 0x66),
            "hover": QColor(0x00, 0x00, 0x00, 0x40),
            "timeframe-graph": QColor(0x00, 0x00, 0x00, 0x26),
            "timeframe-graph-stroke": QColor(0x00, 0x00, 0x00, 0x1A),
            "timeframe-overlay": QColor(0x70, 0x70, 0x70, 0x80),
            "timeframe-selection": QColor(0x70, 0x70, 0x70, 0x40),
            "timeframe-knob": QColor(0x83, 0x83, 0x83),
            "timeframe-knob-stroke": QColor(0xFF, 0xFF, 0xFF),
            "timeframe-bottom": QColor(0x00, 0x00, 0x00, 0x40),
        }

        self._unsubscribe = [
            chart.subscribe(EventKind.FRAME_READY, self._handle_frame_ready),
            chart.subscribe(EventKind.HOVER, self._handle_hover),
        ]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def chart(self) -> FlameChart:
        return self._chart

    def set_data(self, forest: Sequence[Any]) -> list[ValidationIssue]:
        """Load an interval forest; returns validation issues."""
        self._block_colors.clear()
        self._next_hue = 0
        return self._chart.set_data(forest)

    def set_marks(self, marks: Sequence[Mapping[str, Any]]) -> list[ValidationIssue]:
        return self._chart.set_marks(marks)

    def set_theme_colors(self, colors: dict[str, QColor]) -> None:
        """Apply theme colors from the main palette."""
        for key, value in colors.items():
            if key in self._theme_colors and isinstance(value, QColor):
                self._theme_colors[key] = value
        self.update()

    def block_color(self, key: str) -> QColor:
        """Return the fill colour for a render-queue colour key.

        Keys that Qt can parse are used directly; others get a generated hue.
        """
        color = self._block_colors.get(key)
        if color is not None:
            return color
        if key in self._theme_colors:
            color = self._theme_colors[key]
        elif QColor.isValidColorName(key):
            color = QColor(key)
        else:
            self._next_hue = (self._next_hue + _HUE_STEP) % 360
            color = QColor.fromHsv(self._next_hue, 110, 235)
        self._block_colors[key] = color
        return color

    # ------------------------------------------------------------------
    # Qt events
    # ------------------------------------------------------------------

    def resizeEvent(self, event: Any) -> None:
        super().resizeEvent(event)
        self._chart.set_viewport(self.width(), self.height())

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        pos = event.position()
        self._chart.pointer_move(pos.x(), pos.y())
        self._sync_cursor()

    def mousePressEvent(self, event: QMouseEvent) -> None:
        if event.button() != Qt.MouseButton.LeftButton:
            super().mousePressEvent(event)
            return
        pos = event.position()
        self._chart.pointer_down(pos.x(), pos.y())
        self._sync_cursor()

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        if event.button() != Qt.MouseButton.LeftButton:
            super().mouseReleaseEvent(event)
            return
        pos = event.position()
        self._chart.pointer_up(pos.x(), pos.y())
        self._sync_cursor()

    def leaveEvent(self, event: Any) -> None:
        self._chart.pointer_leave()
        self._sync_cursor()
        super().leaveEvent(event)

    def wheelEvent(self, event: QWheelEvent) -> None:
        pos = event.position()
        delta = event.pixelDelta()
        if delta.isNull():
            delta = event.angleDelta()
        # Scrolling away from the user zooms in.
        self._chart.wheel(pos.x(), pos.y(), -delta.x(), -delta.y())
        self._sync_cursor()
        event.accept()

    # ------------------------------------------------------------------
    # Painting
    # ------------------------------------------------------------------

    def paintEvent(self, event: Any) -> None:
        painter = QPainter(self)
        try:
            painter.fillRect(self.rect(), self._theme_colors["background"])
            frame = self._chart.frame
            if frame is None:
                return
            for panel_frame in frame.panels:
                if panel_frame.height > 0:
                    self._paint_panel(painter, panel_frame)
            self._paint_lines(painter, frame.free_space_lines)
            self._paint_lines(painter, frame.overlay)
            self._paint_hover(painter, frame)
        finally:
            painter.end()

    def _paint_panel(self, painter: QPainter, panel_frame: PanelFrame) -> None:
        painter.save()
        painter.translate(0, panel_frame.position)
        painter.setClipRect(QRectF(0, 0, self.width(), panel_frame.height))

        grid_pen = QPen(self._theme_colors["grid"], 1)
        painter.setPen(grid_pen)
        for line in panel_frame.lines:
            painter.drawLine(QPointF(line.x, line.y0), QPointF(line.x, line.y1))

        for graph in panel_frame.graphs:
            polygon = QPolygonF([QPointF(x, y) for x, y in graph.points])
            polygon.append(QPointF(graph.points[-1][0], panel_frame.height))
            polygon.append(QPointF(graph.points[0][0], panel_frame.height))
            painter.setPen(QPen(self.block_color(graph.stroke), 1))
            painter.setBrush(self.block_color(graph.color))
            painter.drawPolygon(polygon)

        painter.setPen(Qt.PenStyle.NoPen)
        for key, items in panel_frame.rects.items():
            painter.setBrush(self.block_color(key))
            for item in items:
                painter.drawRect(QRectF(item.x, item.y, item.w, item.h))

        painter.setBrush(self._theme_colors["triangle"])
        size = 6.0
        for x, y, direction in panel_frame.triangles:
            if direction == "right":
                points = [QPointF(x, y - size / 2), QPointF(x + size, y), QPointF(x, y + size / 2)]
            else:
                points = [QPointF(x, y - size / 2), QPointF(x + size, y - size / 2), QPointF(x + size / 2, y + size / 2)]
            painter.drawPolygon(QPolygonF(points))

        metrics = QFontMetricsF(painter.font())
        block_height = self._chart.settings.block_height
        painter.setPen(self._theme_colors["text"])
        for text in panel_frame.texts:
            label = metrics.elidedText(text.text, Qt.TextElideMode.ElideMiddle, text.max_width)
            if not label:
                continue
            x = max(text.x, 0.0) + panel_frame.padding
            painter.drawText(QPointF(x, text.y + block_height - panel_frame.padding), label)

        painter.setBrush(Qt.BrushStyle.NoBrush)
        for stroke in panel_frame.strokes:
            painter.setPen(QPen(self.block_color(stroke.color), 2))
            painter.drawRect(QRectF(stroke.x, stroke.y, stroke.w, stroke.h))

        painter.restore()

    def _paint_lines(self, painter: QPainter, lines: list[LineItem]) -> None:
        for line in lines:
            pen = QPen(self.block_color(line.color), 1)
            if line.dashed:
                pen.setDashPattern([8, 7])
            painter.setPen(pen)
            painter.drawLine(QPointF(line.x, line.y0), QPointF(line.x, line.y1))

    def _paint_hover(self, painter: QPainter, frame: Frame) -> None:
        hovered = self._hovered
        if hovered is None or hovered.region is None:
            return
        region = hovered.region
        if region.kind not in _HOVER_KINDS:
            return
        panel_frame = frame.panel(region.owner_panel_id) if region.owner_panel_id is not None else None
        offset = panel_frame.position if panel_frame is not None else 0.0
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(self._theme_colors["hover"])
        painter.drawRect(QRectF(region.x, region.y + offset, region.w, region.h))

    # ------------------------------------------------------------------
    # Chart callbacks
    # ------------------------------------------------------------------

    def _handle_frame_ready(self, frame: Frame) -> None:
        self.update()

    def _handle_hover(self, selection: Selection) -> None:
        self._hovered = selection
        node = selection.node
        if node is None:
            self.setToolTip("")
            return
        units = self._chart.settings.time_units
        places = self._chart.viewport.accuracy + 2
        self.setToolTip(
            f"{node.name}\nduration: {node.duration:.{places}f} {units}\nstart: {node.start:.{places}f}"
        )

    def _sync_cursor(self) -> None:
        self.setCursor(_CURSORS.get(self._chart.cursor, Qt.CursorShape.ArrowCursor))
