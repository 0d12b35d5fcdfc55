"""Tests for the Qt host widget and the Qt frame scheduler."""

from __future__ import annotations

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtGui import QColor
from PySide6.QtTest import QTest
from PySide6.QtWidgets import QApplication

from flamechart import FlameChart, Interval
from flamechart.gui.flame_chart_widget import FlameChartWidget
from flamechart.gui.qt_scheduler import QtFrameScheduler


def _ensure_qapp() -> QApplication:
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


def _forest() -> list[Interval]:
    return [Interval("main", 0.0, 40.0, type="frame", children=[Interval("work", 5.0, 20.0, type="call")])]


def test_widget_resize_sets_viewport():
    app = _ensure_qapp()
    chart = FlameChart(_forest())
    widget = FlameChartWidget(chart)
    widget.resize(800, 300)
    widget.show()
    app.processEvents()

    assert chart.viewport.width == pytest.approx(800.0)
    assert chart.viewport.height == pytest.approx(300.0)
    assert chart.viewport.zoom == pytest.approx(20.0)
    widget.close()


def test_widget_paints_frame():
    app = _ensure_qapp()
    chart = FlameChart(_forest())
    widget = FlameChartWidget(chart)
    widget.resize(400, 200)
    widget.show()
    app.processEvents()
    chart.scheduler.flush()

    assert chart.frame is not None
    pixmap = widget.grab()
    assert not pixmap.isNull()
    widget.close()


def test_block_color_lookup():
    _ensure_qapp()
    widget = FlameChartWidget(FlameChart())
    assert widget.block_color("selection") == QColor(0x2E, 0xA0, 0x43)
    assert widget.block_color("#ff0000") == QColor(255, 0, 0)

    generated = widget.block_color("call")
    assert generated.isValid()
    assert widget.block_color("call") is generated
    assert widget.block_color("frame") != generated


def test_widget_set_data_reports_issues():
    _ensure_qapp()
    widget = FlameChartWidget(FlameChart())
    assert widget.set_data([{"name": "x", "start": 0, "duration": 1}]) == []
    issues = widget.set_data([{"name": "x", "start": "late", "duration": 1}])
    assert [issue.field for issue in issues] == ["[0].start"]


def test_default_widget_uses_qt_scheduler():
    _ensure_qapp()
    widget = FlameChartWidget()
    assert isinstance(widget.chart.scheduler, QtFrameScheduler)


def test_qt_scheduler_fires_and_cancels():
    _ensure_qapp()
    scheduler = QtFrameScheduler(frame_interval_ms=1.0)
    calls: list[str] = []
    scheduler.request_frame(lambda: calls.append("frame"))
    cancelled = scheduler.call_later(1, lambda: calls.append("cancelled"))
    scheduler.cancel(cancelled)
    assert scheduler.pending == 1

    QTest.qWait(50)

    assert calls == ["frame"]
    assert scheduler.pending == 0
