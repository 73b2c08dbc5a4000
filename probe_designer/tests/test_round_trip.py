"""Generator -> parser round trip.

Parsing a generated program must give back every probe's parameters,
its pre/post move counts and the move descriptions.
"""

from __future__ import annotations

import pytest

from probe_designer.gcode.generator import generate_gcode
from probe_designer.gcode.parser import parse_gcode
from probe_designer.sequence_ir.operations import (
    DwellStep,
    Position,
    ProbeOperation,
    ProbeSequenceSettings,
    RapidStep,
)


@pytest.fixture()
def operations() -> list[ProbeOperation]:
    return [
        ProbeOperation(
            axis="Y",
            direction=-1,
            distance=10,
            feed_rate=10,
            backoff_distance=1,
            wcs_offset=1.5875,
            pre_moves=[
                RapidStep({"Z": -24}, "absolute", "machine", "Safe height"),
                RapidStep({"X": 5, "Y": 12}, "relative", "none", "Position for probe"),
            ],
            post_moves=[RapidStep({"X": 12}, "relative", "none", "Move up in X")],
        ),
        ProbeOperation(
            axis="X",
            direction=-1,
            distance=10,
            feed_rate=20,
            backoff_distance=2,
            wcs_offset=1.5875,
            pre_moves=[DwellStep(0.5, "Settle")],
            post_moves=[
                RapidStep({"Z": -24}, "none", "machine", "Raise"),
                RapidStep({"X": -5.5, "Y": -4}, "absolute", "wcs", "Center of stock"),
            ],
        ),
        ProbeOperation(
            axis="Z",
            direction=-1,
            distance=45,
            feed_rate=15,
            backoff_distance=2,
            wcs_offset=0,
            post_moves=[RapidStep({"X": 0, "Y": 0}, "absolute", "wcs", "Return to work origin")],
        ),
        ProbeOperation(axis="X", direction=1, distance=7.25, feed_rate=5, backoff_distance=0.5),
    ]


@pytest.fixture()
def settings() -> ProbeSequenceSettings:
    return ProbeSequenceSettings(
        initial_position=Position(-78, -100, -41),
        dwells_before_probe=15,
        spindle_speed=12000,
    )


class TestRoundTrip:
    def test_probe_parameters(self, operations, settings) -> None:
        result = parse_gcode(generate_gcode(operations, settings))
        assert result.errors == []
        assert result.warnings == []
        assert len(result.probe_sequence) == len(operations)
        for parsed, original in zip(result.probe_sequence, operations):
            assert parsed.axis == original.axis
            assert parsed.direction == original.direction
            assert parsed.distance == original.distance
            assert parsed.feed_rate == original.feed_rate
            assert parsed.wcs_offset == original.wcs_offset
            assert parsed.backoff_distance == original.backoff_distance

    def test_move_counts_and_descriptions(self, operations, settings) -> None:
        result = parse_gcode(generate_gcode(operations, settings))
        for parsed, original in zip(result.probe_sequence, operations):
            assert [m.description for m in parsed.pre_moves] == [
                m.description for m in original.pre_moves
            ]
            assert [m.description for m in parsed.post_moves] == [
                m.description for m in original.post_moves
            ]

    def test_move_contents(self, operations, settings) -> None:
        result = parse_gcode(generate_gcode(operations, settings))
        first = result.probe_sequence[0]
        safe = first.pre_moves[0]
        assert safe.axes_values == {"Z": -24}
        assert (safe.position_mode, safe.coordinate_system) == ("absolute", "machine")
        assert result.probe_sequence[1].pre_moves[0].dwell_time == 0.5

    def test_header_values(self, operations, settings) -> None:
        result = parse_gcode(generate_gcode(operations, settings))
        assert result.units == "mm"
        assert result.spindle_speed == 12000
        assert result.dwells_before_probe == 15
        assert result.initial_position == settings.initial_position

    def test_backoff_never_reappears_as_move(self, operations, settings) -> None:
        result = parse_gcode(generate_gcode(operations, settings))
        for parsed in result.probe_sequence:
            for move in parsed.post_moves:
                assert move.description != "Back off from surface"

    def test_regenerated_program_is_identical(self, operations, settings) -> None:
        gcode = generate_gcode(operations, settings)
        result = parse_gcode(gcode)
        again = generate_gcode(
            result.probe_sequence,
            ProbeSequenceSettings(
                initial_position=result.initial_position,
                dwells_before_probe=result.dwells_before_probe,
                spindle_speed=result.spindle_speed,
                units=result.units,
            ),
        )
        assert again == gcode

    def test_without_moves(self, settings) -> None:
        ops = [ProbeOperation("Y", -1, 10, 100, 1, wcs_offset=1.5875)]
        parsed = parse_gcode(generate_gcode(ops, settings)).probe_sequence
        assert len(parsed) == 1
        assert parsed[0].pre_moves == ()
        assert parsed[0].post_moves == ()

    def test_buffer_length_dwell_merges_into_block(self, settings) -> None:
        # A 0.01 s pause written last in the pre-moves reads as one more buffer dwell.
        ops = [
            ProbeOperation(
                "Z", -1, 5, 10, 1, pre_moves=[DwellStep(0.01, "Short pause")],
            )
        ]
        result = parse_gcode(generate_gcode(ops, settings))
        assert result.dwells_before_probe == settings.dwells_before_probe + 1
        assert result.probe_sequence[0].pre_moves == ()
