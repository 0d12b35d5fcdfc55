"""Adaptive time clustering of flat nodes and block geometry."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from flamechart.tree import FlatNode

logger = logging.getLogger(__name__)

STICK_DISTANCE = 0.25
MIN_BLOCK_SIZE = 1.0
MIN_RENDER_WIDTH = 0.1

EquivalenceFn = Callable[[FlatNode, FlatNode], bool]


@dataclass(slots=True)
class MetaCluster:
    """Maximal run of same-level adjacent nodes that may be merged at some zoom."""

    nodes: list[FlatNode]

    @property
    def level(self) -> int:
        return self.nodes[0].level

    @property
    def start(self) -> float:
        return self.nodes[0].start

    @property
    def end(self) -> float:
        return self.nodes[-1].end


@dataclass(frozen=True, slots=True)
class RenderCluster:
    """Group of nodes drawn as one block at the current zoom.

    ``nodes`` is always a contiguous run taken from a single meta cluster.
    """

    start: float
    end: float
    duration: float
    level: int
    type: str | None
    color: str | None
    nodes: tuple[FlatNode, ...]

    @property
    def name(self) -> str:
        """Label of the cluster; only single-node clusters are labelled."""
        return self.nodes[0].name if len(self.nodes) == 1 else ""

    def overlaps(self, start: float, end: float) -> bool:
        return self.start < end and self.end > start


@dataclass(frozen=True, slots=True)
class BlockRect:
    """Panel-local rectangle of a block."""

    x: float
    y: float
    w: float
    h: float

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x <= self.x + self.w and self.y <= y <= self.y + self.h


def default_equivalence(a: FlatNode, b: FlatNode) -> bool:
    """Nodes are equivalent when category and visual type both match."""
    return a.type == b.type and a.color == b.color


def meta_clusterize(
    nodes: Sequence[FlatNode], equivalence: EquivalenceFn = default_equivalence
) -> list[MetaCluster]:
    """Partition level-ordered nodes into meta clusters in a single pass.

    Args:
        nodes: Flat nodes sorted by ``(level, start)``.
        equivalence: Predicate deciding whether two neighbours may be merged.

    Returns:
        Meta clusters covering every node exactly once, in input order.
    """
    clusters: list[MetaCluster] = []
    current: MetaCluster | None = None
    for node in nodes:
        if current is not None:
            last = current.nodes[-1]
            if last.level == node.level and equivalence(last, node):
                current.nodes.append(node)
                continue
        current = MetaCluster(nodes=[node])
        clusters.append(current)
    return clusters


def _build_cluster(members: list[FlatNode]) -> RenderCluster:
    first = members[0]
    duration = members[-1].end - first.start
    return RenderCluster(
        start=first.start,
        end=first.start + duration,
        duration=duration,
        level=first.level,
        type=first.type,
        color=first.color,
        nodes=tuple(members),
    )


def _clusterize_run(
    nodes: Iterable[FlatNode],
    zoom: float,
    start: float,
    end: float,
    stick_distance: float,
    min_block_size: float,
    out: list[RenderCluster],
) -> None:
    members: list[FlatNode] = []
    for node in nodes:
        if not (node.start < end and node.end > start):
            continue
        if members:
            prev = members[-1]
            if (
                (node.start - prev.end) * zoom < stick_distance
                and node.duration * zoom < min_block_size
                and prev.duration * zoom < min_block_size
            ):
                members.append(node)
                continue
            out.append(_build_cluster(members))
        members = [node]
    if members:
        out.append(_build_cluster(members))


def clusterize(
    meta_clusters: Iterable[MetaCluster],
    zoom: float,
    start: float,
    end: float,
    stick_distance: float = STICK_DISTANCE,
    min_block_size: float = MIN_BLOCK_SIZE,
) -> list[RenderCluster]:
    """Merge visible nodes that would be too small or too close to draw apart.

    A node is visible when ``node.start < end`` and ``node.end > start``. It joins
    the open cluster when the pixel gap to the previous visible node is below
    ``stick_distance`` and both nodes are narrower than ``min_block_size`` pixels.

    Args:
        meta_clusters: Output of :func:`meta_clusterize`.
        zoom: Pixels per time unit.
        start: Start of the visible time window.
        end: End of the visible time window.
        stick_distance: Pixel gap below which neighbours stick together.
        min_block_size: Pixel width below which a node may be merged.

    Returns:
        Render clusters in meta-cluster order.
    """
    result: list[RenderCluster] = []
    for meta in meta_clusters:
        _clusterize_run(meta.nodes, zoom, start, end, stick_distance, min_block_size, result)
    return result


def reclusterize(
    clusters: Iterable[RenderCluster],
    zoom: float,
    start: float,
    end: float,
    stick_distance: float = STICK_DISTANCE,
    min_block_size: float = MIN_BLOCK_SIZE,
) -> list[RenderCluster]:
    """Refine existing render clusters for a new zoom or window.

    Clusters outside ``[start, end)`` are dropped. A cluster whose pixel width is at
    most ``2 * min_block_size + stick_distance`` cannot be resolved further and is
    kept; wider clusters are clustered again over their own members only.
    """
    min_cluster_size = min_block_size * 2 + stick_distance
    result: list[RenderCluster] = []
    for cluster in clusters:
        if not cluster.overlaps(start, end):
            continue
        if cluster.duration * zoom <= min_cluster_size:
            result.append(cluster)
        else:
            _clusterize_run(
                cluster.nodes, zoom, start, end, stick_distance, min_block_size, result
            )
    return result


def density_graph(
    nodes: Sequence[FlatNode],
    zoom: float,
    start: float,
    end: float,
    stick_distance: float,
) -> tuple[list[tuple[float, int]], int]:
    """Step graph of how many merged blocks overlap at each time.

    Every level is merged regardless of category, so only nodes further apart than
    ``stick_distance`` pixels stay separate. Each cluster edge contributes the
    level before and after it, which gives vertical steps when plotted.

    Returns:
        ``(time, level)`` points in time order and the highest level reached.
    """
    meta = meta_clusterize(nodes, lambda a, b: True)
    clusters = sorted(clusterize(meta, zoom, start, end, stick_distance, math.inf), key=lambda c: c.start)
    edges: list[tuple[float, int]] = []
    for cluster in clusters:
        edges.append((cluster.start, 1))
        edges.append((cluster.end, -1))
    edges.sort(key=lambda edge: edge[0])

    points: list[tuple[float, int]] = []
    level = 0
    max_level = 0
    for time, step in edges:
        points.append((time, level))
        level += step
        max_level = max(max_level, level)
        points.append((time, level))
    return points, max_level


def block_width(duration: float, zoom: float, min_render_width: float = MIN_RENDER_WIDTH) -> float:
    """Return the drawn width for a block of ``duration`` at ``zoom``.

    Wide blocks lose one pixel for the gutter, narrow ones a third of their
    width, and anything thinner than ``min_render_width`` is widened to it.
    """
    w = duration * zoom
    if w <= min_render_width:
        return min_render_width
    if w >= 3:
        return w - 1
    return w - w / 3


def block_rect(
    start: float,
    duration: float,
    level: int,
    *,
    zoom: float,
    position_x: float,
    position_y: float,
    block_height: float,
    min_render_width: float = MIN_RENDER_WIDTH,
) -> BlockRect:
    """Return the panel-local rectangle of a block."""
    return BlockRect(
        x=(start - position_x) * zoom,
        y=level * (block_height + 1) - position_y,
        w=block_width(duration, zoom, min_render_width),
        h=block_height,
    )


def cluster_rect(
    cluster: RenderCluster,
    *,
    zoom: float,
    position_x: float,
    position_y: float,
    block_height: float,
    min_render_width: float = MIN_RENDER_WIDTH,
) -> BlockRect:
    """Return the panel-local rectangle of a render cluster."""
    return block_rect(
        cluster.start,
        cluster.duration,
        cluster.level,
        zoom=zoom,
        position_x=position_x,
        position_y=position_y,
        block_height=block_height,
        min_render_width=min_render_width,
    )


def label_visible(cluster: RenderCluster, width: float, min_text_width: float) -> bool:
    """Return True if a block of ``width`` pixels should carry its label."""
    return len(cluster.nodes) == 1 and width >= min_text_width


def find_node_at(
    cluster: RenderCluster,
    x: float,
    y: float,
    *,
    zoom: float,
    position_x: float,
    position_y: float,
    block_height: float,
    min_render_width: float = MIN_RENDER_WIDTH,
) -> FlatNode | None:
    """Return the member of ``cluster`` whose block contains the panel-local point."""
    for node in cluster.nodes:
        rect = block_rect(
            node.start,
            node.duration,
            node.level,
            zoom=zoom,
            position_x=position_x,
            position_y=position_y,
            block_height=block_height,
            min_render_width=min_render_width,
        )
        if rect.contains(x, y):
            return node
    return None
