"""Tests for line padding and number rendering."""

from __future__ import annotations

import pytest

from probe_designer.gcode.formatting import format_line, format_number, pad_line


class TestFormatNumber:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (10, "10"),
            (10.0, "10"),
            (-41.0, "-41"),
            (-0.0, "0"),
            (1.5875, "1.5875"),
            (-3.5, "-3.5"),
            (0.01, "0.01"),
            (0.1 + 0.2, "0.30000000000000004"),
        ],
    )
    def test_finite(self, value: float, expected: str) -> None:
        assert format_number(value) == expected

    def test_non_finite(self) -> None:
        assert format_number(float("nan")) == "NaN"
        assert format_number(float("inf")) == "Infinity"
        assert format_number(float("-inf")) == "-Infinity"


class TestPadLine:
    def test_pads_to_column_40(self) -> None:
        line = pad_line("G21", "Set units to millimeters")
        assert line == "G21" + " " * 37 + "(Set units to millimeters)"

    def test_long_command_keeps_two_spaces(self) -> None:
        command = "G0 G90 G54 X-123.456 Y-234.567 Z-345.678"
        assert pad_line(command, "far") == command + "  (far)"

    def test_empty_comment_leaves_padding_only(self) -> None:
        assert pad_line("G91", "") == "G91" + " " * 37

    def test_trailing_command_whitespace_is_dropped(self) -> None:
        assert pad_line("G91   ", "x").index("(") == 40

    def test_format_line_terminates_with_newline(self) -> None:
        assert format_line("S0", "Stop spindle").endswith("(Stop spindle)\n")
