"""Tests for nominal probe-path planning and time estimates."""

from __future__ import annotations

import pytest

from probe_designer.gcode.toolpath import (
    DEFAULT_RAPID_FEED,
    build_probe_path,
    estimate_duration_s,
    probe_contacts,
)
from probe_designer.sequence_ir.operations import (
    DwellStep,
    Position,
    ProbeOperation,
    RapidStep,
)

ORIGIN = Position(0.0, 0.0, 0.0)


@pytest.fixture()
def y_probe() -> ProbeOperation:
    return ProbeOperation(
        axis="Y",
        direction=-1,
        distance=10,
        feed_rate=100,
        backoff_distance=1,
        wcs_offset=1.5,
        pre_moves=[RapidStep({"X": 5}, "relative", description="Approach")],
        post_moves=[RapidStep({"Y": 0}, "absolute", "wcs", description="Edge")],
        id="probe-y",
    )


# ---------------------------------------------------------------------------
# Single operation
# ---------------------------------------------------------------------------


class TestSingleProbe:
    def test_segment_kinds(self, y_probe: ProbeOperation) -> None:
        segments = build_probe_path([y_probe], ORIGIN)
        assert [s.kind for s in segments] == ["rapid", "probe", "backoff", "rapid"]
        assert all(s.operation_id == "probe-y" for s in segments)
        assert segments[0].step_id == y_probe.pre_moves[0].id
        assert segments[1].step_id is None

    def test_positions(self, y_probe: ProbeOperation) -> None:
        approach, probe, backoff, post = build_probe_path([y_probe], ORIGIN)
        assert approach.end == Position(5, 0, 0)
        assert probe.end == Position(5, -10, 0)
        # Retract runs opposite to the probing direction
        assert backoff.end == Position(5, -9, 0)
        # Y0 in work coordinates: contact (-10) minus the offset (1.5)
        assert post.end == Position(5, -11.5, 0)

    def test_durations(self, y_probe: ProbeOperation) -> None:
        segments = build_probe_path([y_probe], ORIGIN)
        assert [s.duration_s for s in segments] == pytest.approx([0.15, 6.0, 0.03, 0.075])
        assert estimate_duration_s(segments) == pytest.approx(6.255)

    def test_lengths(self, y_probe: ProbeOperation) -> None:
        segments = build_probe_path([y_probe], ORIGIN)
        assert [s.length for s in segments] == pytest.approx([5.0, 10.0, 1.0, 2.5])

    def test_positive_direction(self) -> None:
        op = ProbeOperation("X", 1, 4, 60, 0.5)
        probe, backoff = build_probe_path([op], Position(1, 2, 3))
        assert probe.end == Position(5, 2, 3)
        assert backoff.end == Position(4.5, 2, 3)
        assert probe.duration_s == pytest.approx(4.0)

    def test_contacts(self, y_probe: ProbeOperation) -> None:
        z_probe = ProbeOperation("Z", -1, 20, 50, 2)
        segments = build_probe_path([y_probe, z_probe], ORIGIN)
        assert probe_contacts(segments) == [
            Position(5, -10, 0),
            Position(5, -11.5, -20),
        ]


# ---------------------------------------------------------------------------
# Movement semantics
# ---------------------------------------------------------------------------


class TestMoves:
    def test_machine_move_is_absolute(self) -> None:
        op = ProbeOperation(
            "Z", -1, 5, 10, 1,
            pre_moves=[RapidStep({"Z": -24, "X": 3}, "none", "machine")],
        )
        first = build_probe_path([op], Position(-78, -100, -41))[0]
        assert first.end == Position(3, -100, -24)

    def test_dwell_segment_holds_position(self) -> None:
        op = ProbeOperation(
            "Z", -1, 5, 10, 1,
            post_moves=[DwellStep(0.5, "Settle"), DwellStep(0, "Skipped")],
        )
        segments = build_probe_path([op], ORIGIN)
        assert segments[-1].kind == "dwell"
        assert segments[-1].start == segments[-1].end
        assert segments[-1].duration_s == 0.5
        assert len(segments) == 3

    def test_empty_rapid_is_skipped(self) -> None:
        op = ProbeOperation("Z", -1, 5, 10, 1, pre_moves=[RapidStep({}, "absolute")])
        assert [s.kind for s in build_probe_path([op], ORIGIN)] == ["probe", "backoff"]

    def test_position_mode_is_modal(self) -> None:
        op = ProbeOperation(
            "X", -1, 2, 10, 1,
            pre_moves=[
                RapidStep({"X": 10}, "absolute"),
                RapidStep({"Y": 4}),
            ],
        )
        first, second = build_probe_path([op], Position(1, 1, 1))[:2]
        assert first.end == Position(10, 1, 1)
        # No mode given: still absolute from the previous step
        assert second.end == Position(10, 4, 1)

    def test_unprobed_axis_uses_zero_origin(self, y_probe: ProbeOperation) -> None:
        op = ProbeOperation(
            "X", -1, 2, 10, 1,
            pre_moves=[RapidStep({"X": 7, "Y": 0}, "absolute", "wcs")],
        )
        segments = build_probe_path([y_probe, op], ORIGIN)
        assert segments[4].end == Position(7, -11.5, 0)

    def test_rapid_feed_override(self, y_probe: ProbeOperation) -> None:
        slow = build_probe_path([y_probe], ORIGIN, rapid_feed=DEFAULT_RAPID_FEED / 2)
        assert slow[0].duration_s == pytest.approx(0.3)

    def test_no_operations(self) -> None:
        assert build_probe_path([], ORIGIN) == []
        assert estimate_duration_s([]) == 0
