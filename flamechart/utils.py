"""Utility functions for logging and timing."""

import logging
import time

logger = logging.getLogger(__name__)


class Timer:
    """Simple context manager for timing layout passes."""

    def __init__(self, label: str = "Operation"):
        """Initialize timer with a label.

        Args:
            label: Description of what is being timed.
        """
        self.label = label
        self.start_time: float | None = None
        self.elapsed: float | None = None

    def __enter__(self):
        """Start timing."""
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Stop timing and log elapsed time."""
        if self.start_time is not None:
            self.elapsed = time.perf_counter() - self.start_time
            logger.debug("%s took %.3fms", self.label, self.elapsed * 1000.0)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: If True, set log level to DEBUG, otherwise INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    frame_level = logging.INFO if verbose else logging.WARNING
    logging.getLogger("flamechart.scheduler").setLevel(frame_level)
    logging.getLogger("flamechart.gui.qt_scheduler").setLevel(frame_level)
