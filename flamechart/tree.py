"""Interval forest model and flattening into level-ordered nodes."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from flamechart.settings import ValidationIssue

logger = logging.getLogger(__name__)


@dataclass
class Interval:
    """A named time interval with optional nested children.

    Attributes:
        name: Label drawn inside the block.
        start: Start time in chart units.
        duration: Length in chart units, never negative.
        type: Optional category used for equivalence when merging.
        color: Optional visual type; drawing collaborators map it to a colour.
        children: Nested intervals. They are not required to lie inside the parent.
    """

    name: str
    start: float
    duration: float
    type: str | None = None
    color: str | None = None
    children: list[Interval] = field(default_factory=list)

    @property
    def end(self) -> float:
        """Return the end time of the interval."""
        return self.start + self.duration

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Interval:
        """Build an interval tree from a mapping without validating it.

        Nested children are converted with an explicit stack, so nesting depth
        is not limited by the interpreter recursion limit. Children that are
        already ``Interval`` objects are kept as they are.
        """

        def shallow(item: Mapping[str, Any]) -> Interval:
            return cls(
                name=str(item.get("name", "")),
                start=float(item["start"]),
                duration=float(item["duration"]),
                type=item.get("type"),
                color=item.get("color"),
            )

        root = shallow(data)
        stack: list[tuple[Interval, Mapping[str, Any]]] = [(root, data)]
        while stack:
            interval, item = stack.pop()
            for child in item.get("children") or ():
                if isinstance(child, Interval):
                    interval.children.append(child)
                    continue
                converted = shallow(child)
                interval.children.append(converted)
                stack.append((converted, child))
        return root

    def to_dict(self) -> dict[str, Any]:
        """Serialize the interval tree to plain dictionaries."""

        def shallow(interval: Interval) -> dict[str, Any]:
            result: dict[str, Any] = {
                "name": interval.name,
                "start": interval.start,
                "duration": interval.duration,
            }
            if interval.type is not None:
                result["type"] = interval.type
            if interval.color is not None:
                result["color"] = interval.color
            return result

        root = shallow(self)
        stack: list[tuple[Interval, dict[str, Any]]] = [(self, root)]
        while stack:
            interval, result = stack.pop()
            if not interval.children:
                continue
            result["children"] = []
            for child in interval.children:
                converted = shallow(child)
                result["children"].append(converted)
                stack.append((child, converted))
        return root


@dataclass(slots=True, eq=False)
class FlatNode:
    """One interval placed on its level.

    ``parent`` is a back-reference used for navigation only; nodes are compared
    by identity.
    """

    source: Interval
    end: float
    parent: FlatNode | None
    level: int
    index: int

    @property
    def start(self) -> float:
        return self.source.start

    @property
    def duration(self) -> float:
        return self.source.duration

    @property
    def name(self) -> str:
        return self.source.name

    @property
    def type(self) -> str | None:
        return self.source.type

    @property
    def color(self) -> str | None:
        return self.source.color

    def __repr__(self) -> str:
        return (
            f"FlatNode(name={self.name!r}, start={self.start}, end={self.end}, "
            f"level={self.level}, index={self.index})"
        )


@dataclass(frozen=True, slots=True)
class Extent:
    """Time bounds of a flattened forest."""

    min: float
    max: float

    @property
    def width(self) -> float:
        return self.max - self.min


def flatten(forest: Iterable[Interval]) -> list[FlatNode]:
    """Flatten an interval forest into nodes ordered by level then start.

    The walk is pre-order depth first; ``index`` records visitation order and
    breaks ties between nodes sharing a level and start.

    Args:
        forest: Root intervals, each placed on level 0.

    Returns:
        Flat nodes sorted by ``(level, start, index)``.
    """
    nodes: list[FlatNode] = []
    stack: list[tuple[Interval, FlatNode | None, int]] = [
        (root, None, 0) for root in reversed(list(forest))
    ]
    while stack:
        interval, parent, level = stack.pop()
        node = FlatNode(
            source=interval,
            end=interval.start + interval.duration,
            parent=parent,
            level=level,
            index=len(nodes),
        )
        nodes.append(node)
        for child in reversed(interval.children):
            stack.append((child, node, level + 1))

    nodes.sort(key=lambda n: (n.level, n.start, n.index))
    return nodes


def get_extent(nodes: Sequence[FlatNode]) -> Extent:
    """Return the minimum start and maximum end over ``nodes``.

    An empty sequence yields ``Extent(0.0, 0.0)``.
    """
    if not nodes:
        return Extent(0.0, 0.0)
    starts = np.fromiter((n.start for n in nodes), dtype=np.float64, count=len(nodes))
    ends = np.fromiter((n.end for n in nodes), dtype=np.float64, count=len(nodes))
    return Extent(float(starts.min()), float(ends.max()))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool)


def validate_forest(forest: Any) -> list[ValidationIssue]:
    """Return validation issues for a forest of intervals or mappings.

    Issues name the offending path, for example ``[0].children[1].duration``.
    """
    issues: list[ValidationIssue] = []
    if isinstance(forest, (str, bytes, Mapping)) or not isinstance(forest, Iterable):
        issues.append(ValidationIssue("data", "Data must be a list of intervals."))
        return issues

    stack: list[tuple[str, Any]] = [(f"[{i}]", item) for i, item in enumerate(forest)]
    stack.reverse()
    while stack:
        path, item = stack.pop()
        if isinstance(item, Interval):
            start, duration, children = item.start, item.duration, item.children
        elif isinstance(item, Mapping):
            if "start" not in item:
                issues.append(ValidationIssue(f"{path}.start", "Start is required."))
            if "duration" not in item:
                issues.append(ValidationIssue(f"{path}.duration", "Duration is required."))
            start = item.get("start", 0.0)
            duration = item.get("duration", 0.0)
            children = item.get("children") or []
        else:
            issues.append(ValidationIssue(path, "Interval must be an Interval or a mapping."))
            continue

        if not _is_number(start):
            issues.append(ValidationIssue(f"{path}.start", "Start must be numeric."))
        elif not math.isfinite(start):
            issues.append(ValidationIssue(f"{path}.start", "Start must be finite."))

        if not _is_number(duration):
            issues.append(ValidationIssue(f"{path}.duration", "Duration must be numeric."))
        elif not math.isfinite(duration):
            issues.append(ValidationIssue(f"{path}.duration", "Duration must be finite."))
        elif duration < 0:
            issues.append(ValidationIssue(f"{path}.duration", "Duration must not be negative."))

        if isinstance(children, (str, bytes, Mapping)) or not isinstance(children, Sequence):
            issues.append(ValidationIssue(f"{path}.children", "Children must be a list."))
            continue
        for i in range(len(children) - 1, -1, -1):
            stack.append((f"{path}.children[{i}]", children[i]))

    return issues


def coerce_forest(forest: Iterable[Interval | Mapping[str, Any]]) -> list[Interval]:
    """Convert a validated forest to ``Interval`` objects.

    Callers run :func:`validate_forest` first; mappings are converted with
    :meth:`Interval.from_dict` and intervals are passed through.
    """
    result: list[Interval] = []
    for item in forest:
        if isinstance(item, Interval):
            result.append(item)
        else:
            result.append(Interval.from_dict(item))
    return result
