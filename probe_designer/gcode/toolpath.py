"""Nominal probe path for a probe sequence.

Walks the operations the way the generated program would drive the
machine and returns one straight segment per motion, with an estimated
duration.  Probes are assumed to touch at the end of their full travel,
so the result is the *planned* path, not a simulation.

Modal state mirrors the program header:
    - Positioning starts incremental (the header's ``G91``); a step that
      names ``G90``/``G91`` switches the modal mode for later steps.
    - ``G53`` moves are absolute machine coordinates.
    - Other absolute moves are in G54 work coordinates.  Each probe's
      ``G10 L20 P1`` sets the work origin on its axis to
      ``contact - wcs_offset``; axes never probed keep origin 0.
    - The backoff retracts opposite to the probe direction.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Literal, Sequence

from probe_designer.sequence_ir.operations import (
    AXES,
    DwellStep,
    MovementStep,
    Position,
    ProbeOperation,
    RapidStep,
)

logger = logging.getLogger(__name__)

DEFAULT_RAPID_FEED = 2000.0
"""Assumed rapid traverse rate (units/min)."""

SegmentKind = Literal["rapid", "dwell", "probe", "backoff"]


@dataclass(frozen=True, slots=True)
class PathSegment:
    """One straight motion (or a pause) on the planned path."""

    kind: SegmentKind
    start: Position
    end: Position
    duration_s: float
    operation_id: str
    step_id: str | None = None

    @property
    def length(self) -> float:
        return _distance(self.start, self.end)


def _distance(a: Position, b: Position) -> float:
    return math.sqrt((b.x - a.x) ** 2 + (b.y - a.y) ** 2 + (b.z - a.z) ** 2)


def _travel_time_s(distance: float, feed: float) -> float:
    if feed <= 0:
        return 0.0
    return distance / feed * 60.0


class _PathWalker:
    """Carries position, modal mode and work origin across operations."""

    def __init__(self, start: Position, rapid_feed: float) -> None:
        self.position = start
        self.rapid_feed = rapid_feed
        self.mode = "relative"
        self.origin = {axis: 0.0 for axis in AXES}
        self.segments: list[PathSegment] = []

    def run_step(self, step: MovementStep, op_id: str) -> None:
        if isinstance(step, RapidStep):
            self._rapid(step, op_id)
        elif isinstance(step, DwellStep):
            if step.dwell_time:
                self.segments.append(
                    PathSegment(
                        "dwell",
                        self.position,
                        self.position,
                        float(step.dwell_time),
                        op_id,
                        step.id,
                    )
                )

    def _rapid(self, step: RapidStep, op_id: str) -> None:
        if not step.axes_values:
            return
        if step.position_mode != "none":
            self.mode = step.position_mode

        end = self.position
        for axis, value in step.axes_values.items():
            if step.coordinate_system == "machine":
                target = value
            elif self.mode == "relative":
                target = end.get(axis) + value
            else:
                target = value + self.origin[axis]
            end = end.with_axis(axis, target)

        self._append("rapid", end, self.rapid_feed, op_id, step.id)

    def run_probe(self, op: ProbeOperation) -> None:
        contact = self.position.with_axis(
            op.axis, self.position.get(op.axis) + op.signed_distance
        )
        self._append("probe", contact, op.feed_rate, op.id)
        self.origin[op.axis] = contact.get(op.axis) - op.wcs_offset

        retract = contact.with_axis(
            op.axis, contact.get(op.axis) - op.direction * op.backoff_distance
        )
        self._append("backoff", retract, self.rapid_feed, op.id)

    def _append(
        self,
        kind: SegmentKind,
        end: Position,
        feed: float,
        op_id: str,
        step_id: str | None = None,
    ) -> None:
        start = self.position
        duration = _travel_time_s(_distance(start, end), feed)
        self.segments.append(PathSegment(kind, start, end, duration, op_id, step_id))
        self.position = end


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_probe_path(
    operations: Sequence[ProbeOperation],
    initial_position: Position,
    *,
    rapid_feed: float = DEFAULT_RAPID_FEED,
) -> list[PathSegment]:
    """Plan the nominal path of a probe sequence.

    Parameters
    ----------
    operations : Sequence[ProbeOperation]
        Probe operations in execution order.
    initial_position : Position
        Machine position after the header moves.
    rapid_feed : float
        Rapid traverse rate used for rapids and backoffs (units/min).

    Returns
    -------
    list[PathSegment]
        Segments in execution order: pre-moves, probe, backoff and
        post-moves of each operation.  Empty rapids and zero dwells are
        left out.
    """
    walker = _PathWalker(initial_position, rapid_feed)
    for op in operations:
        for step in op.pre_moves:
            walker.run_step(step, op.id)
        walker.run_probe(op)
        for step in op.post_moves:
            walker.run_step(step, op.id)

    logger.debug(
        "Planned %d segment(s) for %d operation(s)",
        len(walker.segments),
        len(operations),
    )
    return walker.segments


def estimate_duration_s(segments: Iterable[PathSegment]) -> float:
    """Total duration of *segments* in seconds."""
    return sum(segment.duration_s for segment in segments)


def probe_contacts(segments: Iterable[PathSegment]) -> list[Position]:
    """Nominal contact point of every probe, in order."""
    return [segment.end for segment in segments if segment.kind == "probe"]
