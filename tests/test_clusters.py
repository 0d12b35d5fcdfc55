"""Tests for meta clustering, render clustering and block geometry."""

import pytest

from flamechart.clusters import (
    block_rect,
    block_width,
    clusterize,
    density_graph,
    find_node_at,
    label_visible,
    meta_clusterize,
    reclusterize,
)
from flamechart.tree import Interval, flatten


def _row(spans, type_="a", color=None):
    """Build level-0 nodes from (start, duration) pairs."""
    return flatten([Interval(f"n{i}", s, d, type=type_, color=color) for i, (s, d) in enumerate(spans)])


def _mixed_nodes():
    forest = [
        Interval(
            "root",
            0.0,
            100.0,
            type="frame",
            children=[Interval(f"c{i}", i * 0.5, 0.4, type="call") for i in range(40)]
            + [Interval("big", 30.0, 50.0, type="call"), Interval("gc", 85.0, 0.2, type="gc")],
        ),
        Interval("tail", 100.0, 0.05, type="frame"),
    ]
    return flatten(forest)


def test_meta_clusterize_partitions_by_level_and_equivalence():
    """Runs break on type changes and on level changes."""
    nodes = flatten(
        [
            Interval("a1", 0, 1, type="a"),
            Interval("a2", 1, 1, type="a"),
            Interval("b1", 2, 1, type="b"),
            Interval("a3", 3, 1, type="a", children=[Interval("k", 3, 1, type="a")]),
        ]
    )
    metas = meta_clusterize(nodes)
    assert [[n.name for n in m.nodes] for m in metas] == [["a1", "a2"], ["b1"], ["a3"], ["k"]]
    assert sum(len(m.nodes) for m in metas) == len(nodes)


def test_meta_clusterize_uses_color_as_well_as_type():
    """Same category with different visual type should not join."""
    nodes = flatten([Interval("x", 0, 1, type="a", color="red"), Interval("y", 1, 1, type="a", color="blue")])
    assert len(meta_clusterize(nodes)) == 2


def test_meta_clusterize_custom_equivalence():
    """A custom predicate replaces the default one."""
    nodes = _row([(0, 1), (1, 1), (2, 1)])
    metas = meta_clusterize(nodes, equivalence=lambda a, b: False)
    assert len(metas) == 3


def test_clusterize_merges_tiny_adjacent_nodes():
    """Nodes narrower than a pixel and touching merge into one block."""
    metas = meta_clusterize(_row([(0, 1), (1, 1), (2, 1)]))
    clusters = clusterize(metas, zoom=0.1, start=0, end=3)
    assert len(clusters) == 1
    cluster = clusters[0]
    assert cluster.start == pytest.approx(0.0)
    assert cluster.duration == pytest.approx(3.0)
    assert cluster.end == pytest.approx(3.0)
    assert len(cluster.nodes) == 3
    assert cluster.type == "a"


def test_clusterize_keeps_wide_nodes_apart():
    """Nodes wider than the minimum block stay separate."""
    metas = meta_clusterize(_row([(0, 1), (1, 1), (2, 1)]))
    assert len(clusterize(metas, zoom=10, start=0, end=3)) == 3


def test_clusterize_respects_stick_distance():
    """A gap of at least the stick distance starts a new cluster."""
    metas = meta_clusterize(_row([(0, 1), (5, 1)]))
    assert len(clusterize(metas, zoom=0.1, start=0, end=10)) == 2
    metas = meta_clusterize(_row([(0, 1), (2, 1)]))
    assert len(clusterize(metas, zoom=0.1, start=0, end=10)) == 1


def test_clusterize_skips_nodes_outside_window():
    """Only nodes overlapping the half-open window are kept."""
    metas = meta_clusterize(_row([(0, 1), (10, 1), (19, 2), (20, 1)]))
    clusters = clusterize(metas, zoom=10, start=10, end=20)
    assert [c.nodes[0].name for c in clusters] == ["n1", "n2"]


def test_render_clusters_are_contiguous_runs_of_one_meta_cluster():
    """Every render cluster is a slice of a single meta cluster."""
    metas = meta_clusterize(_mixed_nodes())
    for zoom in (0.5, 2.0, 10.0, 100.0):
        for cluster in clusterize(metas, zoom=zoom, start=0, end=101):
            owners = [m for m in metas if cluster.nodes[0] in m.nodes]
            assert len(owners) == 1
            meta_nodes = owners[0].nodes
            i = meta_nodes.index(cluster.nodes[0])
            assert tuple(meta_nodes[i : i + len(cluster.nodes)]) == cluster.nodes


def test_reclusterize_is_idempotent():
    """Re-running on freshly built clusters with the same inputs changes nothing."""
    metas = meta_clusterize(_mixed_nodes())
    for zoom, start, end in ((1.0, 0, 101), (8.0, 10, 60), (0.2, 0, 101)):
        clusters = clusterize(metas, zoom, start, end)
        assert reclusterize(clusters, zoom, start, end) == clusters


def test_reclusterize_splits_merged_clusters_when_zooming_in():
    """A merged block that becomes wide enough is split again."""
    metas = meta_clusterize(_row([(0, 1), (1, 1), (2, 1)]))
    initial = clusterize(metas, zoom=0.1, start=0, end=3)
    assert len(initial) == 1
    refined = reclusterize(initial, zoom=10, start=0, end=3)
    assert [len(c.nodes) for c in refined] == [1, 1, 1]


def test_reclusterize_keeps_narrow_clusters():
    """Clusters that are still narrow on screen are kept untouched."""
    metas = meta_clusterize(_row([(0, 1), (1, 1), (2, 1)]))
    initial = clusterize(metas, zoom=0.1, start=0, end=3)
    refined = reclusterize(initial, zoom=0.5, start=0, end=3)
    assert refined == initial
    assert refined[0] is initial[0]


def test_reclusterize_drops_clusters_outside_window():
    """Clusters not overlapping the window are removed."""
    metas = meta_clusterize(_row([(0, 1), (50, 1)]))
    initial = clusterize(metas, zoom=1, start=0, end=51)
    refined = reclusterize(initial, zoom=1, start=40, end=60)
    assert [c.nodes[0].name for c in refined] == ["n1"]


def test_block_width_adjustments():
    """Widths get a gutter, a proportional trim or the minimum width."""
    assert block_width(0.0, 10.0) == pytest.approx(0.1)
    assert block_width(1.0, 0.1) == pytest.approx(0.1)
    assert block_width(1.0, 10.0) == pytest.approx(9.0)
    assert block_width(1.5, 1.0) == pytest.approx(1.0)


def test_block_rect_positions_by_level():
    """y steps by block height plus one and is offset by the scroll."""
    rect = block_rect(5.0, 2.0, 2, zoom=10.0, position_x=1.0, position_y=5.0, block_height=16)
    assert rect.x == pytest.approx(40.0)
    assert rect.y == pytest.approx(29.0)
    assert rect.w == pytest.approx(19.0)
    assert rect.h == 16


def test_label_only_for_single_wide_clusters():
    """Merged clusters and narrow blocks get no label."""
    metas = meta_clusterize(_row([(0, 1), (1, 1)]))
    merged = clusterize(metas, zoom=0.1, start=0, end=2)[0]
    single = clusterize(metas, zoom=100, start=0, end=2)[0]
    assert not label_visible(merged, 100.0, 16)
    assert label_visible(single, 16.0, 16)
    assert not label_visible(single, 15.9, 16)
    assert single.name == "n0"
    assert merged.name == ""


def test_find_node_at_picks_member_under_point():
    """The member whose block contains the point is returned."""
    metas = meta_clusterize(_row([(0, 1), (1, 1), (2, 1)]))
    cluster = clusterize(metas, zoom=0.1, start=0, end=3)[0]
    geometry = dict(zoom=10.0, position_x=0.0, position_y=0.0, block_height=16)
    assert find_node_at(cluster, 15.0, 8.0, **geometry).name == "n1"
    assert find_node_at(cluster, 15.0, 40.0, **geometry) is None


@pytest.mark.parametrize("count", [1_000, 10_000])
def test_cluster_count_bounded_in_fixed_pixel_span(count):
    """Packing more tiny nodes into the same 100 pixels does not add clusters."""
    duration = 10.0 / count
    nodes = flatten(
        [
            Interval(
                "root",
                0.0,
                10.0,
                type="frame",
                children=[Interval(f"c{i}", i * duration, duration, type="call") for i in range(count)],
            )
        ]
    )
    zoom = 10.0
    clusters = clusterize(meta_clusterize(nodes), zoom, 0.0, 10.0)
    refined = reclusterize(clusters, zoom, 0.0, 10.0)

    assert len(clusters) == 2
    assert len(refined) == 2
    assert sum(len(c.nodes) for c in refined) == count + 1


def test_cluster_count_bounded_with_gaps_below_stick_distance():
    """Sub-pixel gaps between ten thousand nodes still collapse into one block."""
    nodes = _row([(i * 0.001, 0.0005) for i in range(10_000)])
    clusters = reclusterize(clusterize(meta_clusterize(nodes), 10.0, 0.0, 10.0), 10.0, 0.0, 10.0)
    assert len(clusters) == 1
    assert clusters[0].duration * 10.0 == pytest.approx(100.0, abs=0.01)


def test_density_graph_counts_overlapping_blocks():
    """Every edge contributes the level before and after it."""
    nodes = flatten([Interval("root", 0.0, 100.0, children=[Interval("child", 10.0, 30.0)])])
    points, max_level = density_graph(nodes, 10.0, 0.0, 100.0, 2.0)

    assert max_level == 2
    assert points == [
        (0.0, 0),
        (0.0, 1),
        (10.0, 1),
        (10.0, 2),
        (40.0, 2),
        (40.0, 1),
        (100.0, 1),
        (100.0, 0),
    ]


def test_density_graph_merges_across_categories():
    """Nearby nodes of different types count as one block."""
    nodes = flatten(
        [Interval("a", 0.0, 1.0, type="x"), Interval("b", 1.1, 1.0, type="y"), Interval("c", 50.0, 1.0, type="x")]
    )
    points, max_level = density_graph(nodes, 10.0, 0.0, 51.0, 2.0)

    assert max_level == 1
    assert [time for time, _ in points] == pytest.approx([0.0, 0.0, 2.1, 2.1, 50.0, 50.0, 51.0, 51.0])
