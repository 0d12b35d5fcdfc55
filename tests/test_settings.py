"""Tests for chart settings validation and serialization."""

import pytest

from flamechart import FlameChart
from flamechart.settings import ChartSettings


def test_chart_settings_defaults_are_valid():
    """Default settings should produce no validation issues."""
    settings = ChartSettings()
    assert settings.validate() == []
    assert settings.double_click_ms == pytest.approx(300.0)
    assert settings.max_accuracy == 6


def test_min_cluster_size_combines_block_size_and_stick_distance():
    """Clusters at or below two blocks plus the stick distance cannot split."""
    assert ChartSettings().min_cluster_size == pytest.approx(2.25)
    assert ChartSettings(min_block_size=2.0, stick_distance=0.5).min_cluster_size == pytest.approx(4.5)


def test_chart_settings_validation_detects_bad_numbers():
    """Non-positive sizes and non-numeric values should be reported by field."""
    settings = ChartSettings(min_block_size=0, block_height=-1, char_width="wide", double_click_ms=float("nan"))
    fields = {issue.field for issue in settings.validate()}
    assert fields == {"min_block_size", "block_height", "char_width", "double_click_ms"}


def test_chart_settings_validation_detects_unknown_double_click_kind():
    """Double click kinds must name region kinds."""
    issues = ChartSettings(double_click_kinds=("cluster", "banner")).validate()
    assert [issue.field for issue in issues] == ["double_click_kinds"]


def test_chart_settings_round_trip():
    """Settings should survive a dictionary round trip."""
    original = ChartSettings(block_height=20, time_units="s", double_click_kinds=("cluster",))
    data = original.to_dict()
    assert data["double_click_kinds"] == ["cluster"]

    loaded = ChartSettings.from_dict({**data, "unknown": 1})
    assert loaded.block_height == 20
    assert loaded.time_units == "s"
    assert loaded.double_click_kinds == ("cluster",)
    assert ChartSettings.from_dict(None).block_height == 16
    assert original.copy().to_dict() == data


def test_flame_chart_rejects_invalid_settings():
    """Constructing a chart with invalid settings should fail early."""
    with pytest.raises(ValueError, match="min_block_size"):
        FlameChart(settings=ChartSettings(min_block_size=-1))
