"""Tests for the probe-generate and probe-import command-line tools."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

from probe_designer.gcode.generator import generate_gcode
from probe_designer.scripts import generate_gcode as generate_script
from probe_designer.scripts import import_gcode as import_script
from probe_designer.sequence_ir.operations import (
    ProbeOperation,
    ProbeSequenceSettings,
    RapidStep,
)
from probe_designer.sequence_ir.storage import load_sequence, save_sequence
from probe_designer.utils import logging_config


@pytest.fixture(autouse=True)
def _restore_logging(monkeypatch):
    """The tools configure the root logger and excepthook; undo both."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    logging_config.pop_context()


@pytest.fixture()
def operations() -> tuple[ProbeOperation, ...]:
    return (
        ProbeOperation(
            "Y", -1, 10, 100, 1,
            wcs_offset=1.5875,
            post_moves=[RapidStep({"X": 12}, "relative", description="Move up in X")],
        ),
        ProbeOperation("Z", -1, 20, 50, 2),
    )


@pytest.fixture()
def settings() -> ProbeSequenceSettings:
    return ProbeSequenceSettings(dwells_before_probe=4, spindle_speed=8000)


@pytest.fixture()
def sequence_file(tmp_path: Path, operations, settings) -> Path:
    return save_sequence(tmp_path / "fixture.yaml", operations, settings)


# ---------------------------------------------------------------------------
# probe-generate
# ---------------------------------------------------------------------------


class TestGenerate:
    def test_prints_program(self, sequence_file, operations, settings, capsys) -> None:
        assert generate_script.main([str(sequence_file)]) == 0
        assert capsys.readouterr().out == generate_gcode(operations, settings)

    def test_writes_output_file(self, tmp_path, sequence_file, operations, settings, capsys) -> None:
        out = tmp_path / "programs" / "fixture.nc"
        assert generate_script.main([str(sequence_file), "-o", str(out)]) == 0
        assert out.read_text(encoding="utf-8") == generate_gcode(operations, settings)
        assert capsys.readouterr().out == ""

    def test_summary(self, sequence_file, capsys) -> None:
        assert generate_script.main([str(sequence_file), "--summary"]) == 0
        assert "2 probe operation(s)" in capsys.readouterr().err

    def test_missing_sequence(self, tmp_path, capsys) -> None:
        assert generate_script.main([str(tmp_path / "missing.yaml")]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_invalid_sequence(self, tmp_path, capsys) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("schema: stroke.v1\n", encoding="utf-8")
        assert generate_script.main([str(path)]) == 1
        assert "sequence.v1" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# probe-import
# ---------------------------------------------------------------------------


class TestImport:
    @pytest.fixture()
    def program(self, tmp_path, operations, settings) -> Path:
        path = tmp_path / "fixture.nc"
        path.write_text(generate_gcode(operations, settings), encoding="utf-8")
        return path

    def test_imports_and_saves(self, tmp_path, program, capsys) -> None:
        out = tmp_path / "imported.yaml"
        assert import_script.main([str(program), "-o", str(out)]) == 0

        stdout = capsys.readouterr().out
        assert "Imported 2 probe operation(s) (0 error(s), 0 warning(s))" in stdout
        assert "1. Y- distance=10 feed=100 pre=0 post=1" in stdout

        ops, settings = load_sequence(out)
        assert [op.axis for op in ops] == ["Y", "Z"]
        assert ops[0].post_moves[0].description == "Move up in X"
        assert settings.spindle_speed == 8000
        assert settings.dwells_before_probe == 4

    def test_reports_errors(self, tmp_path, capsys) -> None:
        path = tmp_path / "broken.nc"
        path.write_text("G4 P0.01\nG4 P0.01\nG38.2 X-5 Y-5 F10\n", encoding="utf-8")
        assert import_script.main([str(path)]) == 0
        captured = capsys.readouterr()
        assert "error: Error parsing line 3:" in captured.err
        assert "Imported 0 probe operation(s) (1 error(s)" in captured.out

    def test_strict_fails_on_errors(self, tmp_path, capsys) -> None:
        path = tmp_path / "broken.nc"
        path.write_text("G38.2 X-5 Y-5 F10\n", encoding="utf-8")
        out = tmp_path / "imported.yaml"
        assert import_script.main([str(path), "--strict", "-o", str(out)]) == 2
        assert not out.exists()

    def test_warnings_go_to_stderr(self, tmp_path, capsys) -> None:
        path = tmp_path / "nofeed.nc"
        path.write_text("G4 P0.01\nG4 P0.01\nG38.2 Z-5\nG10 L20 P1 Z0\nG0 G91 Z1\n", encoding="utf-8")
        assert import_script.main([str(path)]) == 0
        assert "warning: Probe on line 3 has no feed rate" in capsys.readouterr().err

    def test_missing_program(self, tmp_path, capsys) -> None:
        assert import_script.main([str(tmp_path / "missing.nc")]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_bad_config(self, tmp_path, program, capsys) -> None:
        config = tmp_path / "defaults.yaml"
        config.write_text("settings: {}\n", encoding="utf-8")
        assert import_script.main([str(program), "-c", str(config)]) == 1
        assert "Error loading config" in capsys.readouterr().err
