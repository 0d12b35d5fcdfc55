"""Flame chart layout, viewport and pointer handling."""

from flamechart.chart import FlameChart
from flamechart.clusters import MetaCluster, RenderCluster, clusterize, meta_clusterize, reclusterize
from flamechart.events import EventKind, Selection
from flamechart.panels import (
    FlamePanel,
    Mark,
    MarksPanel,
    Panel,
    TimeframeSelectorPanel,
    TimeGridPanel,
    TogglePanel,
)
from flamechart.settings import ChartSettings, ValidationIssue
from flamechart.tree import FlatNode, Interval, flatten, get_extent
from flamechart.viewport import ViewportEngine

__all__ = [
    "ChartSettings",
    "EventKind",
    "FlameChart",
    "FlamePanel",
    "FlatNode",
    "Interval",
    "Mark",
    "MarksPanel",
    "MetaCluster",
    "Panel",
    "RenderCluster",
    "Selection",
    "TimeGridPanel",
    "TimeframeSelectorPanel",
    "TogglePanel",
    "ValidationIssue",
    "ViewportEngine",
    "clusterize",
    "flatten",
    "get_extent",
    "meta_clusterize",
    "reclusterize",
]
