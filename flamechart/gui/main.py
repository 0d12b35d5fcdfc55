"""Viewer entry point: open a JSON interval forest in a window."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from flamechart.utils import setup_logging

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def _print_help() -> None:
    print(
        "FlameChart viewer\n\n"
        "Usage:\n"
        "  flamechart-view --data <path>                 Open an interval forest (JSON)\n"
        "  flamechart-view --data <path> --marks <path>  Also show marks (JSON list)\n"
        "  flamechart-view --verbose                     Enable verbose (DEBUG) logging\n"
        "  flamechart-view --help                        Show this help and exit\n"
        "  flamechart-view --version                     Show version and exit\n"
    )


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments.
    """
    parser = argparse.ArgumentParser(description="FlameChart viewer", add_help=False)
    parser.add_argument("--data", type=str, help="Interval forest JSON file")
    parser.add_argument("--marks", type=str, help="Marks JSON file")
    parser.add_argument("--help", action="store_true", help="Show help and exit")
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose (DEBUG) logging")
    return parser.parse_args(argv)


def load_json(path: Path) -> Any:
    """Read a JSON document.

    A document of the form ``{"data": [...], "marks": [...]}`` is accepted for
    data files as well as a bare list.
    """
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _split_document(document: Any) -> tuple[Any, Any]:
    if isinstance(document, dict):
        return document.get("data", []), document.get("marks")
    return document, None


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the viewer."""
    args = _parse_args(argv)
    setup_logging(verbose=getattr(args, "verbose", False))

    # Fast-path before importing Qt
    if args.help:
        _print_help()
        return
    if args.version:
        print(f"FlameChart {VERSION}")
        return
    if not args.data:
        _print_help()
        sys.exit(2)

    data_path = Path(args.data)
    if not data_path.exists():
        print(f"Error: Data file not found: {data_path}", file=sys.stderr)
        sys.exit(1)
    try:
        data, marks = _split_document(load_json(data_path))
        if args.marks:
            marks = load_json(Path(args.marks))
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to read input: %s", exc, exc_info=exc)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    from PySide6.QtWidgets import QApplication, QMainWindow

    from flamechart.chart import FlameChart
    from flamechart.gui.flame_chart_widget import FlameChartWidget
    from flamechart.gui.qt_scheduler import QtFrameScheduler
    from flamechart.settings import ChartSettings

    app = QApplication(sys.argv[:1])
    app.setApplicationName("FlameChart")
    app.setApplicationVersion(VERSION)

    window = QMainWindow()
    settings = ChartSettings()
    scheduler = QtFrameScheduler(window, settings.frame_interval_ms)
    chart = FlameChart([], marks=[] if marks is not None else None, settings=settings, scheduler=scheduler)

    issues = chart.set_data(data)
    if marks:
        issues += chart.set_marks(marks)
    if issues:
        for issue in issues:
            print(f"Error: {issue.field}: {issue.message}", file=sys.stderr)
        sys.exit(1)

    widget = FlameChartWidget(chart, window)
    window.setCentralWidget(widget)
    window.setWindowTitle(f"FlameChart - {data_path.name}")
    window.resize(1400, 700)
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
