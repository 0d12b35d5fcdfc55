"""Frame scheduling and render coalescing."""

from __future__ import annotations

import heapq
import itertools
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class FrameScheduler(ABC):
    """Host clock used to defer work to the next frame or a later time."""

    frame_interval_ms: float = 16.0

    def request_frame(self, callback: Callback) -> int:
        """Run ``callback`` on the next frame and return a cancellable handle."""
        return self.call_later(self.frame_interval_ms, callback)

    @abstractmethod
    def call_later(self, delay_ms: float, callback: Callback) -> int:
        """Run ``callback`` after ``delay_ms`` and return a cancellable handle."""

    @abstractmethod
    def cancel(self, handle: int) -> None:
        """Cancel a pending callback; unknown handles are ignored."""


def run_callback(callback: Callback) -> None:
    """Invoke a scheduled callback, logging instead of propagating failures."""
    try:
        callback()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Scheduled callback failed: %s", exc, exc_info=exc)


class ManualFrameScheduler(FrameScheduler):
    """Deterministic scheduler driven by :meth:`advance`.

    Used by headless hosts and tests.
    """

    def __init__(self, frame_interval_ms: float = 16.0):
        self.frame_interval_ms = frame_interval_ms
        self.now = 0.0
        self._queue: list[tuple[float, int, int, Callback]] = []
        self._cancelled: set[int] = set()
        self._ids = itertools.count(1)
        self._seq = itertools.count()

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle, _ in self._queue if handle not in self._cancelled)

    def call_later(self, delay_ms: float, callback: Callback) -> int:
        handle = next(self._ids)
        heapq.heappush(self._queue, (self.now + max(0.0, delay_ms), next(self._seq), handle, callback))
        return handle

    def cancel(self, handle: int) -> None:
        if any(h == handle for _, _, h, _ in self._queue):
            self._cancelled.add(handle)

    def advance(self, ms: float) -> int:
        """Move the clock forward and run everything that became due.

        Returns:
            Number of callbacks executed.
        """
        target = self.now + max(0.0, ms)
        executed = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            if handle in self._cancelled:
                self._cancelled.discard(handle)
                continue
            run_callback(callback)
            executed += 1
        self.now = target
        return executed

    def flush(self, max_rounds: int = 1000) -> int:
        """Run pending callbacks, including ones they schedule, until idle."""
        executed = 0
        for _ in range(max_rounds):
            live = [entry for entry in self._queue if entry[2] not in self._cancelled]
            if not live:
                self._queue.clear()
                self._cancelled.clear()
                break
            executed += self.advance(max(0.0, min(entry[0] for entry in live) - self.now))
        else:
            logger.warning("Scheduler still busy after %d rounds", max_rounds)
        return executed


class RenderLoop:
    """Coalesces render requests into at most one partial and one full frame.

    Partial requests accumulate panel ids. A full request cancels any pending
    partial frame, since the full frame redraws every panel.
    """

    def __init__(
        self,
        scheduler: FrameScheduler,
        render_full: Callback,
        render_partial: Callable[[list[int]], None],
    ):
        self.scheduler = scheduler
        self._render_full = render_full
        self._render_partial = render_partial
        self._partial_handle: int | None = None
        self._full_handle: int | None = None
        self._requested: list[int] = []
        self._debounced: dict[str, int] = {}

    @property
    def full_pending(self) -> bool:
        return self._full_handle is not None

    @property
    def partial_pending(self) -> bool:
        return self._partial_handle is not None

    def request_partial(self, panel_id: int | None = None) -> None:
        if self._full_handle is not None:
            return
        if panel_id is not None and panel_id not in self._requested:
            self._requested.append(panel_id)
        if self._partial_handle is None:
            self._partial_handle = self.scheduler.request_frame(self._run_partial)

    def request_full(self) -> None:
        if self._partial_handle is not None:
            self.scheduler.cancel(self._partial_handle)
            self._partial_handle = None
        self._requested = []
        if self._full_handle is None:
            self._full_handle = self.scheduler.request_frame(self._run_full)

    def debounce(self, key: str, delay_ms: float, callback: Callback) -> None:
        """Run ``callback`` after ``delay_ms``, replacing an earlier pending one for ``key``."""
        previous = self._debounced.pop(key, None)
        if previous is not None:
            self.scheduler.cancel(previous)

        def _fire() -> None:
            self._debounced.pop(key, None)
            callback()

        self._debounced[key] = self.scheduler.call_later(delay_ms, _fire)

    def cancel_all(self) -> None:
        for handle in (self._partial_handle, self._full_handle, *self._debounced.values()):
            if handle is not None:
                self.scheduler.cancel(handle)
        self._partial_handle = None
        self._full_handle = None
        self._requested = []
        self._debounced.clear()

    def _run_partial(self) -> None:
        panel_ids = self._requested
        self._requested = []
        self._partial_handle = None
        self._render_partial(panel_ids)

    def _run_full(self) -> None:
        self._full_handle = None
        self._render_full()
