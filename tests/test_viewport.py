"""Tests for the shared viewport and panel layout."""

import pytest

from flamechart.events import EventKind
from flamechart.settings import ChartSettings
from flamechart.viewport import SizingPolicy, ViewportEngine


def _engine(width: float = 1000.0, height: float = 300.0, extent=(0.0, 100.0)) -> ViewportEngine:
    engine = ViewportEngine(ChartSettings())
    engine.resize(width, height)
    engine.set_extent(*extent)
    return engine


def test_set_extent_fits_to_width():
    """A new extent resets to the fit-to-width zoom."""
    engine = _engine()
    assert engine.initial_zoom == pytest.approx(10.0)
    assert engine.zoom == pytest.approx(10.0)
    assert engine.position_x == pytest.approx(0.0)
    assert engine.real_view == pytest.approx(100.0)


def test_time_pixel_round_trip_and_monotonic():
    """Pixel conversion inverts time conversion and preserves order."""
    engine = _engine()
    engine.set_zoom(40.0)
    engine.pan(33.3)
    times = [0.0, 12.5, 33.3, 50.0, 99.9]
    pixels = [engine.time_to_pixel(t) for t in times]
    assert pixels == sorted(pixels)
    for t, px in zip(times, pixels):
        assert engine.pixel_to_absolute_time(px) == pytest.approx(t)
    assert engine.pixel_to_time(40.0) == pytest.approx(1.0)


def test_zoom_floor_is_initial_zoom():
    """Zooming out past the whole extent clamps to the fit zoom."""
    engine = _engine()
    assert engine.set_zoom(1.0)
    assert engine.zoom == pytest.approx(10.0)


def test_pan_is_clamped_to_extent():
    """Panning stops at both ends of the extent."""
    engine = _engine()
    engine.set_zoom(20.0)
    assert engine.pan(1000.0)
    assert engine.position_x == pytest.approx(50.0)
    assert engine.pan(-1000.0)
    assert engine.position_x == pytest.approx(0.0)
    assert not engine.pan(-1.0)


def test_pan_clamp_holds_for_arbitrary_deltas():
    """Large, negative and fractional deltas all land inside ``[min, max - real_view]``."""
    engine = _engine()
    engine.set_zoom(20.0)
    expected = engine.position_x
    for delta in (0.5, 1e12, -0.25, -1e12, 37.3, 12.7, -1000.5, 49.99, 1e-9, -3.75, 2.5e6):
        engine.pan(delta)
        expected = min(max(expected + delta, 0.0), 50.0)
        assert engine.position_x == pytest.approx(expected)
        assert 0.0 <= engine.position_x <= engine.max - engine.real_view

    assert not engine.pan(float("nan"))
    assert not engine.pan(float("inf"))
    assert engine.position_x == pytest.approx(expected)


def test_zoom_at_rejects_non_finite_anchor():
    """A NaN or infinite anchor leaves the view untouched."""
    engine = _engine()
    engine.set_zoom(20.0)
    engine.pan(10.0)
    assert not engine.zoom_at(float("nan"), 2.0)
    assert not engine.zoom_at(float("inf"), 2.0)
    assert not engine.zoom_at(500.0, float("nan"))
    assert engine.zoom == pytest.approx(20.0)
    assert engine.position_x == pytest.approx(10.0)


def test_set_extent_without_reset_keeps_view():
    """Widening the extent keeps zoom and position; shrinking clamps them."""
    engine = _engine()
    engine.set_zoom(20.0)
    engine.pan(30.0)

    engine.set_extent(0.0, 200.0, reset=False)
    assert engine.zoom == pytest.approx(20.0)
    assert engine.position_x == pytest.approx(30.0)

    engine.set_extent(0.0, 60.0, reset=False)
    assert engine.zoom == pytest.approx(20.0)
    assert engine.position_x == pytest.approx(10.0)

    engine.set_extent(0.0, 10.0, reset=False)
    assert engine.zoom == pytest.approx(100.0)
    assert engine.position_x == pytest.approx(0.0)


def test_set_extent_without_reset_fits_first_extent():
    """A view with no extent yet is fitted even without a reset."""
    engine = _engine(extent=(0.0, 0.0))
    engine.set_extent(0.0, 50.0, reset=False)
    assert engine.zoom == pytest.approx(20.0)
    assert engine.position_x == pytest.approx(0.0)


def test_zoom_refused_at_max_accuracy():
    """Zooming in stops once grid labels need too many decimals."""
    engine = _engine(extent=(0.0, 1.0))
    assert engine.set_zoom(1e9)
    assert engine.accuracy >= 6
    assert not engine.set_zoom(2e9)
    assert engine.zoom == pytest.approx(1e9)
    assert engine.set_zoom(1e8)


def test_degenerate_extent_uses_unit_zoom():
    """A zero-width extent never divides by zero."""
    engine = _engine(extent=(5.0, 5.0))
    assert engine.initial_zoom == 1.0
    assert engine.zoom == 1.0
    engine.pan(10.0)
    assert engine.position_x == pytest.approx(5.0)
    assert engine.time_to_pixel(5.0) == pytest.approx(0.0)
    assert engine.set_zoom(0.5)
    assert engine.zoom == pytest.approx(0.5)


def test_zero_width_viewport():
    """Without a width the initial zoom falls back to one."""
    engine = ViewportEngine()
    engine.set_extent(0.0, 100.0)
    assert engine.initial_zoom == 1.0


def test_zoom_at_keeps_anchor():
    """The time under the anchor pixel stays put."""
    engine = _engine()
    assert engine.zoom_at(500.0, 2.0)
    assert engine.zoom == pytest.approx(20.0)
    assert engine.position_x == pytest.approx(25.0)
    assert engine.pixel_to_absolute_time(500.0) == pytest.approx(50.0)
    assert not engine.zoom_at(500.0, 0.0)


def test_set_visible_range():
    """The requested range fills the width."""
    engine = _engine()
    assert engine.set_visible_range(20.0, 40.0)
    assert engine.zoom == pytest.approx(50.0)
    assert engine.position_x == pytest.approx(20.0)
    assert not engine.set_visible_range(40.0, 20.0)


def test_resize_keeps_view_centred():
    """Widening the surface shifts the view left by half the growth."""
    engine = _engine()
    engine.set_zoom(20.0)
    engine.pan(25.0)
    engine.resize(1200.0, 300.0)
    assert engine.zoom == pytest.approx(20.0)
    assert engine.position_x == pytest.approx(20.0)


def test_resize_resets_when_below_new_floor():
    """If the new fit zoom exceeds the current zoom the view resets."""
    engine = _engine()
    engine.resize(2000.0, 300.0)
    assert engine.zoom == pytest.approx(20.0)
    assert engine.position_x == pytest.approx(0.0)


def test_reset_to_fit():
    """Reset restores the fit zoom and the left edge."""
    engine = _engine()
    engine.set_zoom(30.0)
    engine.pan(10.0)
    engine.reset_to_fit()
    assert engine.zoom == pytest.approx(10.0)
    assert engine.position_x == pytest.approx(0.0)


def test_viewport_changed_emitted_once_per_change():
    """Listeners hear about real changes only."""
    engine = _engine()
    changes = []
    engine.bus.subscribe(EventKind.VIEWPORT_CHANGED, changes.append)

    engine.set_zoom(20.0)
    engine.pan(0.0)
    engine.pan(5.0)
    engine.set_zoom(20.0)

    assert len(changes) == 2
    assert changes[-1].position_x == pytest.approx(5.0)
    assert changes[-1].zoom == pytest.approx(20.0)


def test_panel_heights_and_positions():
    """Static panels take their height and growing panels split the rest."""
    engine = _engine()
    grid = engine.add_panel("grid", 20)
    marks = engine.add_panel("marks", 18)
    flame = engine.add_panel("flame")
    other = engine.add_panel("other")

    assert engine.panel(grid).policy is SizingPolicy.STATIC
    assert engine.panel(flame).policy is SizingPolicy.FLEXIBLE_GROWING
    assert [p.height for p in engine.panels] == [20, 18, 131, 131]
    assert [p.position for p in engine.panels] == [0, 20, 38, 169]
    assert engine.free_space == pytest.approx(0.0)

    engine.collapse_panel(other)
    assert engine.panel(flame).height == 262
    assert engine.panel(other).height == 0

    engine.set_flexible(flame)
    engine.resize_panel(flame, 100)
    engine.expand_panel(other)
    assert engine.panel(flame).policy is SizingPolicy.FLEXIBLE_STATIC
    assert engine.panel(flame).height == 100
    assert engine.panel(other).height == 162

    engine.resize_panel(flame, -5)
    assert engine.panel(flame).collapsed
    assert engine.panel(other).height == 262
    assert engine.panel(marks).position == 20


def test_free_space_below_static_panels():
    """Space not claimed by any panel is reported on the root."""
    engine = _engine()
    engine.add_panel("only", 50)
    assert engine.free_space == pytest.approx(250.0)


def test_growing_panels_never_negative():
    """Over-committed layouts give growing panels zero height."""
    engine = _engine(height=30.0)
    engine.add_panel("grid", 20)
    engine.add_panel("marks", 18)
    flame = engine.add_panel("flame")
    assert engine.panel(flame).height == 0
    assert engine.free_space == 0


def test_panel_at_prefers_first_band_on_shared_edge():
    """Band edges are inclusive and the upper panel wins."""
    engine = _engine()
    grid = engine.add_panel("grid", 20)
    marks = engine.add_panel("marks", 18)
    assert engine.panel_at(20).id == grid
    assert engine.panel_at(25).id == marks
    assert engine.panel_at(400) is None


def test_panel_viewports_mirror_shared_state():
    """Every panel sees the root zoom and position."""
    engine = _engine()
    panel_id = engine.add_panel("flame")
    engine.set_zoom(25.0)
    engine.pan(12.0)
    panel = engine.panel(panel_id)
    assert panel.zoom == pytest.approx(25.0)
    assert panel.position_x == pytest.approx(12.0)
    assert panel.parent_id == 0
    assert panel.time_to_pixel(13.0) == pytest.approx(25.0)


def test_unknown_panel_raises():
    """Looking up a missing panel is a programming error."""
    engine = _engine()
    with pytest.raises(KeyError):
        engine.panel(99)
