"""Tests for the viewer command line (paths that exit before Qt starts)."""

import json
from pathlib import Path

import pytest

from flamechart.gui import main as main_module


def test_help_and_version(capsys):
    """--help and --version print and return without starting Qt."""
    main_module.main(["--help"])
    assert "flamechart-view --data <path>" in capsys.readouterr().out

    main_module.main(["--version"])
    assert capsys.readouterr().out.strip() == f"FlameChart {main_module.VERSION}"


def test_missing_data_argument_exits_with_usage(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main_module.main([])
    assert exc_info.value.code == 2
    assert "Usage:" in capsys.readouterr().out


def test_missing_data_file_exits(tmp_path: Path, capsys):
    with pytest.raises(SystemExit) as exc_info:
        main_module.main(["--data", str(tmp_path / "absent.json")])
    assert exc_info.value.code == 1
    assert "Data file not found" in capsys.readouterr().err


def test_unreadable_json_exits(tmp_path: Path, capsys):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(SystemExit) as exc_info:
        main_module.main(["--data", str(path)])
    assert exc_info.value.code == 1
    assert "Error:" in capsys.readouterr().err


def test_split_document_accepts_both_layouts(tmp_path: Path):
    """Data files may be a bare list or an object with data and marks."""
    forest = [{"name": "a", "start": 0, "duration": 1}]
    marks = [{"shortName": "m", "timestamp": 0.5}]
    path = tmp_path / "doc.json"
    path.write_text(json.dumps({"data": forest, "marks": marks}), encoding="utf-8")

    assert main_module._split_document(main_module.load_json(path)) == (forest, marks)
    assert main_module._split_document(forest) == (forest, None)
