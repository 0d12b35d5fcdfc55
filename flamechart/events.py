"""Typed subscription lists for chart and panel events."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from flamechart.regions import HitRegion
    from flamechart.tree import FlatNode

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class EventKind(Enum):
    """Events emitted by the dispatcher, the viewport and the chart."""

    DOWN = "down"
    UP = "up"
    MOVE = "move"
    CLICK = "click"
    SELECT = "select"
    HOVER = "hover"
    CHANGE_POSITION = "change-position"
    DOUBLE_CLICK = "double-click"
    VIEWPORT_CHANGED = "viewport-changed"
    FRAME_READY = "frame-ready"


@dataclass(frozen=True, slots=True)
class PointerEvent:
    """Pointer position with the region resolved under it."""

    x: float
    y: float
    region: HitRegion | None


@dataclass(frozen=True, slots=True)
class PositionChange:
    """Drag delta; ``delta_time`` is the horizontal delta converted by zoom."""

    delta_x: float
    delta_y: float
    delta_time: float


@dataclass(frozen=True, slots=True)
class ViewportChange:
    """Shared viewport fields after a change."""

    zoom: float
    position_x: float
    min: float
    max: float
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class Selection:
    """Selected or hovered item reported to the embedding application.

    Attributes:
        region: The resolved hit region, or None when cleared.
        node: Flat node under the pointer for cluster regions.
        kind: ``"node"``, ``"mark"`` or None.
    """

    region: HitRegion | None
    node: FlatNode | None = None
    kind: str | None = None

    @property
    def payload(self) -> Any:
        return self.region.payload if self.region is not None else None


class EventBus:
    """Per-kind listener lists.

    Listeners are called in subscription order. A failing listener is logged and
    the remaining listeners still run.
    """

    def __init__(self, name: str = "chart"):
        self.name = name
        self._listeners: dict[EventKind, list[Listener]] = {}

    def subscribe(self, kind: EventKind, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for ``kind`` and return an unsubscribe callable."""
        listeners = self._listeners.setdefault(kind, [])
        listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    def emit(self, kind: EventKind, payload: Any = None) -> None:
        for listener in list(self._listeners.get(kind, ())):
            try:
                listener(payload)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "%s listener for %s failed: %s", self.name, kind.value, exc, exc_info=exc
                )

    def clear(self) -> None:
        self._listeners.clear()
