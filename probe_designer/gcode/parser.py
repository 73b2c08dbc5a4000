"""G-code parser -- probe-sequence programs back into the IR.

The generator writes structure explicitly (pre-moves, probe, backoff,
post-moves); on the way back in that structure has to be *inferred* from
a flat instruction stream that may also be hand-written or hand-edited.

Structure inference:
    - A run of >= 2 consecutive ``G4 P0.01`` lines is a *buffer-clear
      block*.  The first block ends the program header; every later block
      closes the probe before it.  A lone ``G4 P0.01`` is a normal dwell.
    - Rapids and dwells accumulate as *pending moves*.  A ``G38.2`` line
      takes them as its pre-moves; the next block boundary (or the end of
      the program) hands them to the open probe as post-moves.
    - ``G90 G53`` rapids before the first block are the initial position.
    - The ``G0 G91 <axis>`` line right after a ``G10 L20 P1`` line is the
      generator's automatic backoff: it sets ``backoff_distance`` and is
      never recorded as a post-move.
    - The generator's ``(Pre-moves for Probe Operation n)`` banner, when
      present, marks where one probe's post-moves end and the next one's
      pre-moves begin.

Error policy:
    ``parse_gcode`` never raises on program content.  Problems are
    reported as line-referenced strings in ``errors`` and parsing carries
    on with the next line.  Values that had to be defaulted are listed in
    ``warnings``.  Unknown commands are ignored silently.

Usage::

    from probe_designer.gcode.parser import parse_gcode
    result = parse_gcode(text)
    if result.errors:
        ...
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Sequence

from probe_designer.gcode.formatting import format_number
from probe_designer.sequence_ir.operations import (
    AXES,
    DwellStep,
    MovementStep,
    ParsedGCodeResult,
    Position,
    ProbeOperation,
    RapidStep,
)

logger = logging.getLogger(__name__)

DEFAULT_FEED_RATE = 10.0
DEFAULT_BACKOFF_DISTANCE = 1.0
BUFFER_CLEAR_DWELL_S = 0.01
MIN_BUFFER_BLOCK_LINES = 2

# ---------------------------------------------------------------------------
# Patterns (matched against the cleaned, upper-cased command text)
# ---------------------------------------------------------------------------

_NUM = r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)"
_UNSIGNED = r"(?:\d+(?:\.\d*)?|\.\d+)"
_END = r"(?![\d.])"

AXIS_WORD_PAT = re.compile(rf"([XYZ])\s*({_NUM})")
FEED_PAT = re.compile(rf"F\s*({_UNSIGNED})")
DWELL_TIME_PAT = re.compile(rf"P\s*({_UNSIGNED})")
SPINDLE_SPEED_PAT = re.compile(r"S\s*(\d+)")
COMMENT_PAT = re.compile(r"\((.+)\)")

UNITS_PAT = re.compile(rf"G2[01]{_END}")
INCH_PAT = re.compile(rf"G20{_END}")
SPINDLE_PAT = re.compile(r"S\d+.*M0?[34](?!\d)|M0?[34](?!\d).*S\d+")
PROBE_PAT = re.compile(r"G38\.2(?!\d)")
WCS_PAT = re.compile(rf"G10{_END}.*L20{_END}.*P1{_END}")
RAPID_PAT = re.compile(rf"G0{{1,2}}{_END}")
DWELL_PAT = re.compile(rf"G0?4{_END}")
ABSOLUTE_PAT = re.compile(rf"G90{_END}")
RELATIVE_PAT = re.compile(rf"G91{_END}")
MACHINE_COORDS_PAT = re.compile(rf"G53{_END}")
WCS_COORDS_PAT = re.compile(rf"G54{_END}")
SETUP_PAT = re.compile(r"G53(?![\d.])|M0?[34](?!\d)")

# The generator's closing "G0 G54 G90 X0Y0" (axes run together, unlike
# any generated movement step)
RETURN_TO_ORIGIN_PAT = re.compile(r"^G0\s+G54\s+G90\s+X0Y0$")
PRE_MOVES_MARKER_PAT = re.compile(
    r"^\(\s*PRE-MOVES\s+FOR\s+PROBE\s+OPERATION\b", re.IGNORECASE
)


class CommandType(str, Enum):
    """Line classification, in matching priority order."""

    UNITS = "units"
    SPINDLE = "spindle"
    PROBE = "probe"
    WCS = "wcs"
    RETURN_TO_ORIGIN = "return_to_origin"
    RAPID = "rapid"
    DWELL = "dwell"
    OTHER = "other"


_CLASSIFIERS: tuple[tuple[re.Pattern[str], CommandType], ...] = (
    (UNITS_PAT, CommandType.UNITS),
    (SPINDLE_PAT, CommandType.SPINDLE),
    (PROBE_PAT, CommandType.PROBE),
    (WCS_PAT, CommandType.WCS),
    (RETURN_TO_ORIGIN_PAT, CommandType.RETURN_TO_ORIGIN),
    (RAPID_PAT, CommandType.RAPID),
    (DWELL_PAT, CommandType.DWELL),
)


# ---------------------------------------------------------------------------
# Line helpers (pure)
# ---------------------------------------------------------------------------


def is_comment_only(line: str) -> bool:
    """``True`` for full-line ``(...)`` comments (input already stripped)."""
    return line.startswith("(")


def clean_line(line: str) -> str:
    """Command text before the first ``(``, trimmed and upper-cased."""
    return line.split("(", 1)[0].strip().upper()


def classify_line(cleaned: str) -> CommandType:
    """Return the first matching command type for a cleaned line."""
    for pattern, command in _CLASSIFIERS:
        if pattern.search(cleaned):
            return command
    return CommandType.OTHER


def extract_axes(cleaned: str) -> dict[str, float]:
    """Axis words in encounter order; a repeated axis keeps its last value."""
    axes: dict[str, float] = {}
    for match in AXIS_WORD_PAT.finditer(cleaned.upper()):
        axes[match.group(1)] = float(match.group(2))
    return axes


def extract_value(cleaned: str, pattern: re.Pattern[str]) -> float | None:
    """First numeric capture of *pattern*, or ``None`` when absent."""
    match = pattern.search(cleaned)
    return float(match.group(1)) if match else None


def extract_comment(original: str) -> str | None:
    """Trailing ``(...)`` text of the original line, trimmed."""
    match = COMMENT_PAT.search(original)
    if not match:
        return None
    return match.group(1).strip() or None


def position_mode_of(cleaned: str) -> str:
    if RELATIVE_PAT.search(cleaned):
        return "relative"
    if ABSOLUTE_PAT.search(cleaned):
        return "absolute"
    return "none"


def coordinate_system_of(cleaned: str) -> str:
    if MACHINE_COORDS_PAT.search(cleaned):
        return "machine"
    if WCS_COORDS_PAT.search(cleaned):
        return "wcs"
    return "none"


def is_buffer_clear(line: str) -> bool:
    """``True`` for a ``G4 P0.01`` line (comment text ignored)."""
    stripped = line.strip()
    if not stripped or is_comment_only(stripped):
        return False
    cleaned = clean_line(stripped)
    return (
        classify_line(cleaned) is CommandType.DWELL
        and extract_value(cleaned, DWELL_TIME_PAT) == BUFFER_CLEAR_DWELL_S
    )


# ---------------------------------------------------------------------------
# Buffer-clear pre-pass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BufferClearBlocks:
    """Buffer-clear blocks found in a program.

    Attributes
    ----------
    starts : dict[int, int]
        Line index of each block's first dwell -> number of dwells.
    members : frozenset[int]
        Line indices of every dwell that belongs to a block.
    """

    starts: dict[int, int]
    members: frozenset[int]


def find_buffer_clear_blocks(lines: Sequence[str]) -> BufferClearBlocks:
    """Locate runs of >= 2 consecutive ``G4 P0.01`` lines.

    Blank and comment-only lines are transparent: they neither extend nor
    break a run.  Any other command ends the current run.
    """
    starts: dict[int, int] = {}
    members: set[int] = set()
    run: list[int] = []

    def close_run() -> None:
        if len(run) >= MIN_BUFFER_BLOCK_LINES:
            starts[run[0]] = len(run)
            members.update(run)
        run.clear()

    for index, line in enumerate(lines):
        stripped = line.strip()
        if not stripped or is_comment_only(stripped):
            continue
        if is_buffer_clear(stripped):
            run.append(index)
        else:
            close_run()
    close_run()

    return BufferClearBlocks(starts=starts, members=frozenset(members))


# ---------------------------------------------------------------------------
# Parser state
# ---------------------------------------------------------------------------


@dataclass
class OpenProbe:
    """A probe whose ``G38.2`` line has been read but not yet closed."""

    axis: str
    direction: int
    distance: float
    feed_rate: float
    line_number: int
    backoff_distance: float = DEFAULT_BACKOFF_DISTANCE
    wcs_offset: float | None = None
    pre_moves: list[MovementStep] = field(default_factory=list)
    saw_backoff: bool = False


@dataclass
class ParserState:
    """Mutable state threaded through the line scan."""

    probe_sequence: list[ProbeOperation] = field(default_factory=list)
    current_probe: OpenProbe | None = None
    pending_moves: list[MovementStep] = field(default_factory=list)
    has_seen_first_buffer_block: bool = False
    expecting_backoff_move: bool = False
    initial_position: dict[str, float] = field(default_factory=dict)
    dwells_before_probe: int | None = None
    spindle_speed: int | None = None
    units: str | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    # Set once a G53 or spindle-start command has been read
    seen_setup_command: bool = False
    # Pending-move count at a pre-moves banner seen before the first block
    setup_floor: int | None = None


def add_error(state: ParserState, index: int, original: str, message: str) -> None:
    error = f'Error parsing line {index + 1}: "{original}" - {message}'
    logger.warning(error)
    state.errors.append(error)


def finalize_current_probe(state: ParserState) -> None:
    """Close the open probe: pending moves become its post-moves."""
    probe = state.current_probe
    if probe is None:
        return
    if not probe.saw_backoff:
        state.warnings.append(
            f"Probe on line {probe.line_number} has no backoff move, "
            f"using default backoff {format_number(probe.backoff_distance)}"
        )
    state.probe_sequence.append(
        ProbeOperation(
            axis=probe.axis,
            direction=probe.direction,
            distance=probe.distance,
            feed_rate=probe.feed_rate,
            backoff_distance=probe.backoff_distance,
            wcs_offset=probe.wcs_offset or 0.0,
            pre_moves=tuple(probe.pre_moves),
            post_moves=tuple(state.pending_moves),
        )
    )
    state.pending_moves = []
    state.current_probe = None
    state.expecting_backoff_move = False


def enter_buffer_block(state: ParserState, length: int) -> None:
    """Apply a buffer-clear block boundary."""
    if not state.has_seen_first_buffer_block:
        state.has_seen_first_buffer_block = True
        state.dwells_before_probe = length
        if state.seen_setup_command:
            # Moves read so far belong to machine setup, not to a probe
            floor = state.setup_floor
            if floor is None:
                floor = len(state.pending_moves)
            del state.pending_moves[:floor]
        return
    finalize_current_probe(state)


def handle_section_comment(state: ParserState, original: str) -> None:
    """React to the generator's ``(Pre-moves for Probe Operation n)`` banner."""
    if not PRE_MOVES_MARKER_PAT.match(original):
        return
    if state.current_probe is not None:
        finalize_current_probe(state)
    elif not state.has_seen_first_buffer_block and state.setup_floor is None:
        state.setup_floor = len(state.pending_moves)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def handle_units(state: ParserState, cleaned: str, index: int, original: str) -> None:
    if state.units is None:
        state.units = "inch" if INCH_PAT.search(cleaned) else "mm"


def handle_spindle(state: ParserState, cleaned: str, index: int, original: str) -> None:
    speed = extract_value(cleaned, SPINDLE_SPEED_PAT)
    if speed is not None and state.spindle_speed is None:
        state.spindle_speed = int(speed)


def handle_probe(state: ParserState, cleaned: str, index: int, original: str) -> None:
    axes = extract_axes(cleaned)
    if len(axes) != 1:
        add_error(
            state, index, original, "Invalid probe command, expected exactly one axis"
        )
        return

    (axis, value), = axes.items()
    feed = extract_value(cleaned, FEED_PAT)
    if not feed:
        state.warnings.append(
            f"Probe on line {index + 1} has no feed rate, "
            f"using default F{format_number(DEFAULT_FEED_RATE)}"
        )
        feed = DEFAULT_FEED_RATE

    pre_moves = list(state.pending_moves)
    state.pending_moves = []
    # A probe still open here never reached a block boundary
    finalize_current_probe(state)

    state.current_probe = OpenProbe(
        axis=axis,
        direction=-1 if value < 0 else 1,
        distance=abs(value),
        feed_rate=feed,
        line_number=index + 1,
        pre_moves=pre_moves,
    )


def handle_wcs(state: ParserState, cleaned: str, index: int, original: str) -> None:
    probe = state.current_probe
    if probe is None:
        return
    value = extract_axes(cleaned).get(probe.axis)
    if value is not None:
        probe.wcs_offset = abs(value)
        state.expecting_backoff_move = True


def handle_rapid(state: ParserState, cleaned: str, index: int, original: str) -> None:
    axes = extract_axes(cleaned)
    if not axes:
        return

    if (
        not state.has_seen_first_buffer_block
        and state.setup_floor is None
        and ABSOLUTE_PAT.search(cleaned)
        and MACHINE_COORDS_PAT.search(cleaned)
    ):
        for axis, value in axes.items():
            if axis in AXES:
                state.initial_position.setdefault(axis, value)
        return

    probe = state.current_probe
    if (
        state.expecting_backoff_move
        and probe is not None
        and RELATIVE_PAT.search(cleaned)
        and len(axes) == 1
        and probe.axis in axes
    ):
        probe.backoff_distance = abs(axes[probe.axis])
        probe.saw_backoff = True
        state.expecting_backoff_move = False
        return

    description = extract_comment(original) or "Rapid move to " + " ".join(
        f"{axis}{format_number(value)}" for axis, value in axes.items()
    )
    state.pending_moves.append(
        RapidStep(
            axes_values=axes,
            position_mode=position_mode_of(cleaned),
            coordinate_system=coordinate_system_of(cleaned),
            description=description,
        )
    )
    state.expecting_backoff_move = False


def handle_dwell(state: ParserState, cleaned: str, index: int, original: str) -> None:
    dwell_time = extract_value(cleaned, DWELL_TIME_PAT)
    if dwell_time is None:
        return
    description = (
        extract_comment(original) or f"Dwell for {format_number(dwell_time)} seconds"
    )
    state.pending_moves.append(DwellStep(dwell_time=dwell_time, description=description))


Handler = Callable[[ParserState, str, int, str], None]

_HANDLERS: dict[CommandType, Handler] = {
    CommandType.UNITS: handle_units,
    CommandType.SPINDLE: handle_spindle,
    CommandType.PROBE: handle_probe,
    CommandType.WCS: handle_wcs,
    CommandType.RAPID: handle_rapid,
    CommandType.DWELL: handle_dwell,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def process_line(
    state: ParserState,
    original: str,
    index: int,
    blocks: BufferClearBlocks,
) -> None:
    """Advance *state* by one stripped, non-blank program line."""
    if is_comment_only(original):
        handle_section_comment(state, original)
        return

    if index in blocks.starts:
        enter_buffer_block(state, blocks.starts[index])
    if index in blocks.members:
        return

    cleaned = clean_line(original)
    if not cleaned:
        return

    try:
        handler = _HANDLERS.get(classify_line(cleaned))
        if handler is not None:
            handler(state, cleaned, index, original)
    except Exception as e:
        add_error(state, index, original, str(e))

    if SETUP_PAT.search(cleaned):
        state.seen_setup_command = True


def build_result(state: ParserState) -> ParsedGCodeResult:
    initial_position = None
    if state.initial_position:
        initial_position = Position(
            x=state.initial_position.get("X", 0.0),
            y=state.initial_position.get("Y", 0.0),
            z=state.initial_position.get("Z", 0.0),
        )
    return ParsedGCodeResult(
        probe_sequence=list(state.probe_sequence),
        initial_position=initial_position,
        dwells_before_probe=state.dwells_before_probe,
        spindle_speed=state.spindle_speed,
        units=state.units,
        errors=list(state.errors),
        warnings=list(state.warnings),
    )


def parse_gcode(gcode: str) -> ParsedGCodeResult:
    """Parse a probe-sequence program.

    Parameters
    ----------
    gcode : str
        Complete program text (``\\n`` or ``\\r\\n`` line endings).

    Returns
    -------
    ParsedGCodeResult
        Reconstructed probe sequence, header values that were present,
        and any line-referenced errors.  Never raises on program content.
    """
    lines = gcode.split("\n")
    blocks = find_buffer_clear_blocks(lines)
    state = ParserState()

    for index, line in enumerate(lines):
        original = line.strip()
        if original:
            process_line(state, original, index, blocks)

    finalize_current_probe(state)

    logger.info(
        "Parsed %d probe operation(s) from %d lines (%d error(s))",
        len(state.probe_sequence),
        len(lines),
        len(state.errors),
    )
    return build_result(state)


def parse_gcode_file(path: str | Path) -> ParsedGCodeResult:
    """Read a G-code file (UTF-8) and parse it.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"G-code file not found: {path}")
    logger.info("Loading G-code from %s", path)
    return parse_gcode(path.read_text(encoding="utf-8"))
