"""Shared chart settings for FlameChart layout and interaction."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, ClassVar

from flamechart.regions import RegionKind


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """Represents a single validation issue for settings or input data."""

    field: str
    message: str


class ChartSettings:
    """Container for layout, grid and pointer settings."""

    _SERIALIZED_FIELDS: ClassVar[tuple[str, ...]] = (
        "stick_distance",
        "min_block_size",
        "min_render_width",
        "block_height",
        "block_padding",
        "min_text_width",
        "char_width",
        "max_accuracy",
        "min_pixel_delta",
        "time_units",
        "double_click_ms",
        "click_threshold_px",
        "hit_region_delay_ms",
        "frame_interval_ms",
        "wheel_zoom_divisor",
        "time_grid_height",
        "toggle_height",
        "timeframe_height",
        "timeframe_knob_size",
        "timeframe_stick_distance",
        "double_click_kinds",
    )

    def __init__(self, **kwargs: Any) -> None:
        """Initialize settings from keyword arguments."""
        # Clustering (pixels)
        self.stick_distance: float = kwargs.get("stick_distance", 0.25)
        self.min_block_size: float = kwargs.get("min_block_size", 1.0)
        self.min_render_width: float = kwargs.get("min_render_width", 0.1)

        # Block geometry
        self.block_height: int = kwargs.get("block_height", 16)
        self.block_padding: int = kwargs.get("block_padding", 4)
        self.min_text_width: float = kwargs.get("min_text_width", 16.0)
        self.char_width: float = kwargs.get("char_width", 6.0)

        # Time grid
        self.max_accuracy: int = kwargs.get("max_accuracy", 6)
        self.min_pixel_delta: float = kwargs.get("min_pixel_delta", 85.0)
        self.time_units: str = kwargs.get("time_units", "ms")
        self.time_grid_height: int = kwargs.get("time_grid_height", 20)
        self.toggle_height: int = kwargs.get("toggle_height", 16)

        # Timeframe selector
        self.timeframe_height: int = kwargs.get("timeframe_height", 60)
        self.timeframe_knob_size: float = kwargs.get("timeframe_knob_size", 6.0)
        self.timeframe_stick_distance: float = kwargs.get("timeframe_stick_distance", 2.0)

        # Pointer handling
        self.double_click_ms: float = kwargs.get("double_click_ms", 300.0)
        self.click_threshold_px: float = kwargs.get("click_threshold_px", 0.0)
        self.wheel_zoom_divisor: float = kwargs.get("wheel_zoom_divisor", 1000.0)
        kinds = kwargs.get(
            "double_click_kinds", ("cluster", "timestamp", "timeframe-knob", "timeframe-area")
        )
        self.double_click_kinds: tuple[str, ...] = tuple(kinds or ())

        # Scheduling
        self.hit_region_delay_ms: float = kwargs.get("hit_region_delay_ms", 16.0)
        self.frame_interval_ms: float = kwargs.get("frame_interval_ms", 16.0)

    @property
    def min_cluster_size(self) -> float:
        """Pixel width at or below which a render cluster cannot be split further."""
        return self.min_block_size * 2 + self.stick_distance

    def validate(self) -> list[ValidationIssue]:
        """Return a list of validation issues for the current settings."""

        issues: list[ValidationIssue] = []

        def _label(field: str) -> str:
            return field.replace("_", " ").capitalize()

        def _check_number(field: str, *, minimum: float, strict: bool = False) -> None:
            value = getattr(self, field)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                issues.append(ValidationIssue(field, f"{_label(field)} must be numeric."))
                return
            if not math.isfinite(value):
                issues.append(ValidationIssue(field, f"{_label(field)} must be finite."))
                return
            if strict and value <= minimum:
                issues.append(
                    ValidationIssue(field, f"{_label(field)} must be greater than {minimum:g}.")
                )
            elif not strict and value < minimum:
                issues.append(ValidationIssue(field, f"{_label(field)} must be at least {minimum:g}."))

        _check_number("stick_distance", minimum=0.0)
        _check_number("min_block_size", minimum=0.0, strict=True)
        _check_number("min_render_width", minimum=0.0, strict=True)
        _check_number("block_height", minimum=1.0)
        _check_number("block_padding", minimum=0.0)
        _check_number("min_text_width", minimum=0.0)
        _check_number("char_width", minimum=0.0, strict=True)
        _check_number("max_accuracy", minimum=0.0)
        _check_number("min_pixel_delta", minimum=1.0)
        _check_number("time_grid_height", minimum=0.0)
        _check_number("toggle_height", minimum=0.0)
        _check_number("timeframe_height", minimum=0.0)
        _check_number("timeframe_knob_size", minimum=0.0, strict=True)
        _check_number("timeframe_stick_distance", minimum=0.0)
        _check_number("double_click_ms", minimum=0.0)
        _check_number("click_threshold_px", minimum=0.0)
        _check_number("wheel_zoom_divisor", minimum=0.0, strict=True)
        _check_number("hit_region_delay_ms", minimum=0.0)
        _check_number("frame_interval_ms", minimum=0.0)

        if not isinstance(self.time_units, str):
            issues.append(ValidationIssue("time_units", "Time units must be a string."))

        allowed_kinds = {kind.value for kind in RegionKind}
        unknown = [kind for kind in self.double_click_kinds if kind not in allowed_kinds]
        if unknown:
            issues.append(
                ValidationIssue(
                    "double_click_kinds",
                    "Double click kinds must be drawn from: "
                    + ", ".join(kind.value for kind in RegionKind)
                    + ".",
                )
            )

        return issues

    def to_dict(self) -> dict[str, Any]:
        """Serialize chart settings to a plain dictionary."""
        result: dict[str, Any] = {}
        for key in self._SERIALIZED_FIELDS:
            value = getattr(self, key, None)
            if value is None:
                continue
            result[key] = list(value) if isinstance(value, tuple) else value
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ChartSettings:
        """Create settings from a dictionary, ignoring unknown keys."""
        if not data:
            return cls()
        known = {key: data[key] for key in cls._SERIALIZED_FIELDS if key in data}
        return cls(**known)

    def copy(self) -> ChartSettings:
        """Return a shallow copy of the settings."""
        return ChartSettings(**self.to_dict())
