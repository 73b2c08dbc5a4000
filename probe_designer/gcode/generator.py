"""G-code generator -- probe-sequence IR to a commented G-code program.

The output is the designer's canonical form: every line carries a
comment starting at column 40, each probe operation is introduced by a
section banner, and every probe is preceded by a fixed-length block of
``G4 P0.01`` buffer-clearing dwells.  The parser relies on these
conventions to rebuild the sequence from the text.

Program layout::

    G21                  units
    G90 G53 G0 Z/Y/X     initial position (machine coordinates)
    S<rpm> M4, G4 P3     spindle start + stabilisation dwell
    G91                  incremental mode for everything after
    per operation:
        (=== Probe Operation n: <axis> Axis ===)
        pre-moves, buffer-clear dwells, G38.2 / G10 L20 P1 / G0 G91 backoff,
        post-moves
    G0 G54 G90 X0Y0, S0  return to origin + spindle stop

Backoff convention:
    The automatic backoff is always written as ``G0 G91 <axis><distance>``
    with a positive value, whatever the probe direction.
"""

from __future__ import annotations

import logging
from io import StringIO
from typing import Sequence

from probe_designer.gcode.formatting import format_line, format_number
from probe_designer.sequence_ir.operations import (
    DwellStep,
    MovementStep,
    Position,
    ProbeOperation,
    ProbeSequenceSettings,
    RapidStep,
)

logger = logging.getLogger(__name__)

BUFFER_CLEAR_DWELL_S = 0.01
SPINDLE_STABILIZE_DWELL_S = 3

_POSITION_MODE_WORDS = {"absolute": "G90", "relative": "G91"}
_COORDINATE_SYSTEM_WORDS = {"machine": "G53", "wcs": "G54"}


# ---------------------------------------------------------------------------
# Movement steps
# ---------------------------------------------------------------------------


def _axes_words(axes_values: dict[str, float]) -> str:
    return " ".join(
        f"{axis}{format_number(value)}"
        for axis, value in axes_values.items()
        if isinstance(value, (int, float))
    )


def format_movement(step: MovementStep) -> str:
    """Serialize one movement step, or ``""`` when there is nothing to emit.

    A rapid with no axis values and a dwell with no dwell time produce no
    line at all.
    """
    if isinstance(step, RapidStep):
        axes = _axes_words(step.axes_values)
        if not axes:
            return ""
        words = [
            "G0",
            _POSITION_MODE_WORDS.get(step.position_mode, ""),
            _COORDINATE_SYSTEM_WORDS.get(step.coordinate_system, ""),
            axes,
        ]
        return format_line(" ".join(w for w in words if w), step.description)
    if isinstance(step, DwellStep):
        if not step.dwell_time:
            return ""
        return format_line(
            f"G4 P{format_number(step.dwell_time)}", step.description
        )
    logger.warning("Unsupported movement step: %s", type(step).__name__)
    return ""


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class GCodeGenerator:
    """Convert a probe sequence to G-code.

    Stateless: one instance can be reused for any number of sequences and
    shared between threads.
    """

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate(
        self,
        operations: Sequence[ProbeOperation],
        settings: ProbeSequenceSettings,
    ) -> str:
        """Generate the complete program.

        Parameters
        ----------
        operations : Sequence[ProbeOperation]
            Probe operations in execution order.
        settings : ProbeSequenceSettings
            Units, initial position, spindle speed and buffer-dwell count.

        Returns
        -------
        str
            G-code text with ``\\n`` line endings.
        """
        buf = StringIO()
        self._write_header(buf, settings)

        for index, op in enumerate(operations, start=1):
            self._write_operation(buf, op, index, settings.dwells_before_probe)

        self._write_footer(buf)
        gcode = buf.getvalue()
        logger.debug(
            "Generated %d probe operation(s), %d lines",
            len(operations),
            gcode.count("\n"),
        )
        return gcode

    # ------------------------------------------------------------------
    # Header / footer
    # ------------------------------------------------------------------

    def _write_header(self, buf: StringIO, settings: ProbeSequenceSettings) -> None:
        is_mm = settings.units == "mm"
        buf.write(
            format_line(
                "G21" if is_mm else "G20",
                f"Set units to {'millimeters' if is_mm else 'inches'}",
            )
        )
        self._write_initial_position(buf, settings.initial_position)

        speed = format_number(settings.spindle_speed)
        buf.write(format_line(f"S{speed} M4", f"Start spindle in reverse at {speed} RPM"))
        buf.write(
            format_line(
                f"G4 P{SPINDLE_STABILIZE_DWELL_S}",
                f"Dwell for {SPINDLE_STABILIZE_DWELL_S} seconds to let spindle stabilize",
            )
        )
        buf.write("\n")

        buf.write(format_line("G91", "Set to incremental positioning mode"))
        buf.write("\n")

    def _write_initial_position(self, buf: StringIO, pos: Position) -> None:
        # Z first so the tool clears the stock before XY travel
        for axis in ("Z", "Y", "X"):
            buf.write(
                format_line(
                    f"G90 G53 G0 {axis}{format_number(pos.get(axis))}",
                    f"Absolute move in machine coordinates to {axis}",
                )
            )
        buf.write("\n")

    def _write_footer(self, buf: StringIO) -> None:
        buf.write(format_line("G0 G54 G90 X0Y0", "Return to origin"))
        buf.write(format_line("S0", "Stop spindle"))

    # ------------------------------------------------------------------
    # Per-operation blocks
    # ------------------------------------------------------------------

    def _write_operation(
        self,
        buf: StringIO,
        op: ProbeOperation,
        index: int,
        dwells_before_probe: int,
    ) -> None:
        buf.write(f"(=== Probe Operation {index}: {op.axis} Axis ===)\n")
        self._write_movements(buf, op.pre_moves, f"Pre-moves for Probe Operation {index}")
        self._write_buffer_clear(buf, dwells_before_probe)
        self._write_probe(buf, op)
        self._write_movements(buf, op.post_moves, f"Post-moves for Probe Operation {index}")
        buf.write("\n")

    def _write_movements(
        self, buf: StringIO, moves: Sequence[MovementStep], label: str
    ) -> None:
        if not moves:
            return
        buf.write(f"({label})\n")
        for move in moves:
            buf.write(format_movement(move))
        buf.write("\n")

    def _write_buffer_clear(self, buf: StringIO, count: int) -> None:
        for _ in range(count):
            buf.write(format_line(f"G4 P{BUFFER_CLEAR_DWELL_S}", "Empty Buffer"))
        buf.write("\n")

    def _write_probe(self, buf: StringIO, op: ProbeOperation) -> None:
        sign = "" if op.direction > 0 else "-"
        axis = op.axis
        buf.write(
            format_line(
                f"G38.2 {axis}{sign}{format_number(op.distance)} "
                f"F{format_number(op.feed_rate)}",
                f"Probe along {axis}{sign} axis",
            )
        )
        buf.write(
            format_line(
                f"G10 L20 P1 {axis}{format_number(op.wcs_offset)}",
                f"Set WCS G54 {axis} origin",
            )
        )
        buf.write(
            format_line(
                f"G0 G91 {axis}{format_number(op.backoff_distance)}",
                "Back off from surface",
            )
        )
        buf.write("\n")


def generate_gcode(
    operations: Sequence[ProbeOperation],
    settings: ProbeSequenceSettings,
) -> str:
    """Functional form of :meth:`GCodeGenerator.generate`."""
    return GCodeGenerator().generate(operations, settings)
