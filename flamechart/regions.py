"""Hit regions registered by panels during rendering."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from flamechart.clusters import RenderCluster
    from flamechart.panels import Mark


class RegionKind(Enum):
    CLUSTER = "cluster"
    TIMESTAMP = "timestamp"
    TOGGLE = "toggle"
    KNOB_RESIZE = "knob-resize"
    TIMEFRAME_KNOB = "timeframe-knob"
    TIMEFRAME_AREA = "timeframe-area"


class Cursor(Enum):
    """Cursor hints for the host surface."""

    DEFAULT = "default"
    POINTER = "pointer"
    GRABBING = "grabbing"
    ROW_RESIZE = "row-resize"
    COL_RESIZE = "col-resize"
    TEXT = "text"


@dataclass(frozen=True, slots=True)
class ClusterPayload:
    cluster: RenderCluster


@dataclass(frozen=True, slots=True)
class TimestampPayload:
    mark: Mark


@dataclass(frozen=True, slots=True)
class TogglePayload:
    """Toggle button of the panel with ``panel_id``; it collapses the panel below."""

    panel_id: int


@dataclass(frozen=True, slots=True)
class ResizeKnobPayload:
    """Drag knob of the panel with ``panel_id``; it resizes the panel above."""

    panel_id: int


@dataclass(frozen=True, slots=True)
class TimeframeKnobPayload:
    """Edge of the selected timeframe; ``side`` is ``"left"`` or ``"right"``."""

    side: str


@dataclass(frozen=True, slots=True)
class TimeframeAreaPayload:
    panel_id: int


RegionPayload = Union[
    ClusterPayload,
    TimestampPayload,
    TogglePayload,
    ResizeKnobPayload,
    TimeframeKnobPayload,
    TimeframeAreaPayload,
]

_PAYLOAD_TYPES: dict[RegionKind, type] = {
    RegionKind.CLUSTER: ClusterPayload,
    RegionKind.TIMESTAMP: TimestampPayload,
    RegionKind.TOGGLE: TogglePayload,
    RegionKind.KNOB_RESIZE: ResizeKnobPayload,
    RegionKind.TIMEFRAME_KNOB: TimeframeKnobPayload,
    RegionKind.TIMEFRAME_AREA: TimeframeAreaPayload,
}


@dataclass(frozen=True, slots=True)
class HitRegion:
    """Rectangle in panel-local coordinates with a typed payload.

    Two regions are the same target when kind, payload and owner match, even
    across rebuilds.
    """

    kind: RegionKind
    payload: RegionPayload
    x: float
    y: float
    w: float
    h: float
    cursor: Cursor | None = None
    owner_panel_id: int | None = None

    def __post_init__(self) -> None:
        expected = _PAYLOAD_TYPES[self.kind]
        if not isinstance(self.payload, expected):
            raise TypeError(
                f"{self.kind.value} region expects {expected.__name__}, "
                f"got {type(self.payload).__name__}"
            )

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x <= self.x + self.w and self.y <= y <= self.y + self.h

    @property
    def identity(self) -> tuple[RegionKind, RegionPayload, int | None]:
        return (self.kind, self.payload, self.owner_panel_id)


class PanelRegions:
    """Ordered regions of one panel; the first inserted region wins ties."""

    def __init__(self, owner_panel_id: int | None):
        self.owner_panel_id = owner_panel_id
        self._regions: list[HitRegion] = []

    def __len__(self) -> int:
        return len(self._regions)

    def __iter__(self) -> Iterator[HitRegion]:
        return iter(self._regions)

    def clear(self) -> None:
        self._regions = []

    def add(
        self,
        kind: RegionKind,
        payload: RegionPayload,
        x: float,
        y: float,
        w: float,
        h: float,
        cursor: Cursor | None = None,
    ) -> HitRegion:
        region = HitRegion(kind, payload, x, y, w, h, cursor, self.owner_panel_id)
        self._regions.append(region)
        return region

    def find(self, x: float, y: float) -> HitRegion | None:
        """Return the first region containing the panel-local point."""
        for region in self._regions:
            if region.contains(x, y):
                return region
        return None
