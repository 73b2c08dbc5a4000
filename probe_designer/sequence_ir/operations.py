"""Probe-sequence IR -- the vocabulary between the editor and G-code.

Every model object is an immutable, slotted dataclass.  Fields use
**semantic** names (``backoff_distance``, not ``G0 G91 Y1``) and the
sequence's own units (mm or inch, as set in the settings).

Movement steps
--------------
A ``MovementStep`` is a closed sum type: ``RapidStep`` (``G0``) or
``DwellStep`` (``G4``).  A rapid never carries a dwell time and a dwell
never carries axes, a positioning mode or a coordinate system.

Probe operations
----------------
A ``ProbeOperation`` is one ``G38.2`` cycle along a single axis, with the
steps that run just before its approach (``pre_moves``) and just after
its automatic backoff (``post_moves``).
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Literal

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

Axis = Literal["X", "Y", "Z"]
Direction = Literal[1, -1]
PositionMode = Literal["relative", "absolute", "none"]
CoordinateSystem = Literal["machine", "wcs", "none"]
Units = Literal["mm", "inch"]
EndmillUnit = Literal["fraction", "inch", "mm"]

AXES: tuple[str, ...] = ("X", "Y", "Z")
POSITION_MODES: tuple[str, ...] = ("relative", "absolute", "none")
COORDINATE_SYSTEMS: tuple[str, ...] = ("machine", "wcs", "none")
UNITS: tuple[str, ...] = ("mm", "inch")
ENDMILL_UNITS: tuple[str, ...] = ("fraction", "inch", "mm")


def new_probe_id() -> str:
    """Return a fresh opaque probe identifier."""
    return f"probe-{uuid.uuid4().hex[:12]}"


def new_step_id() -> str:
    """Return a fresh opaque movement-step identifier."""
    return f"step-{uuid.uuid4().hex[:12]}"


def _check_axis(axis: str) -> None:
    if axis not in AXES:
        raise ValueError(f"axis must be one of {AXES}, got {axis!r}")


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Position:
    """XYZ triple (absolute machine coordinates unless stated otherwise)."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def get(self, axis: str) -> float:
        """Return the coordinate for ``"X"``, ``"Y"`` or ``"Z"``."""
        _check_axis(axis)
        return getattr(self, axis.lower())

    def with_axis(self, axis: str, value: float) -> Position:
        """Return a copy with one axis replaced."""
        _check_axis(axis)
        coords = {"x": self.x, "y": self.y, "z": self.z}
        coords[axis.lower()] = value
        return Position(**coords)

    def as_dict(self) -> dict[str, float]:
        return {"X": self.x, "Y": self.y, "Z": self.z}


# ---------------------------------------------------------------------------
# Movement steps
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MovementStep(ABC):
    """Base class for auxiliary steps attached to a probe operation."""

    @property
    @abstractmethod
    def type(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class RapidStep(MovementStep):
    """Rapid positioning move (``G0``).

    Parameters
    ----------
    axes_values : dict[str, float]
        Axis letter -> signed value, in caller order (0-3 entries).  An
        empty mapping is a placeholder the generator skips.
    position_mode : ``"relative"`` | ``"absolute"`` | ``"none"``
        Emitted as ``G91`` / ``G90`` / nothing.
    coordinate_system : ``"machine"`` | ``"wcs"`` | ``"none"``
        Emitted as ``G53`` / ``G54`` / nothing.
    description : str
        Human-readable text, written as the line comment.
    """

    axes_values: dict[str, float] = field(default_factory=dict)
    position_mode: PositionMode = "none"
    coordinate_system: CoordinateSystem = "none"
    description: str = ""
    id: str = field(default_factory=new_step_id)

    def __post_init__(self) -> None:
        for axis in self.axes_values:
            _check_axis(axis)
        if self.position_mode not in POSITION_MODES:
            raise ValueError(
                f"position_mode must be one of {POSITION_MODES}, "
                f"got {self.position_mode!r}"
            )
        if self.coordinate_system not in COORDINATE_SYSTEMS:
            raise ValueError(
                f"coordinate_system must be one of {COORDINATE_SYSTEMS}, "
                f"got {self.coordinate_system!r}"
            )

    @property
    def type(self) -> str:
        return "rapid"


@dataclass(frozen=True, slots=True)
class DwellStep(MovementStep):
    """Timed pause (``G4 P<seconds>``).

    Parameters
    ----------
    dwell_time : float
        Pause length in seconds.  Zero is a placeholder the generator skips.
    description : str
        Human-readable text, written as the line comment.
    """

    dwell_time: float
    description: str = ""
    id: str = field(default_factory=new_step_id)

    def __post_init__(self) -> None:
        if self.dwell_time < 0:
            raise ValueError(f"dwell_time must be >= 0, got {self.dwell_time}")

    @property
    def type(self) -> str:
        return "dwell"


# ---------------------------------------------------------------------------
# Probe operation
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ProbeOperation:
    """One touch-probe cycle along a single axis.

    Parameters
    ----------
    axis : ``"X"`` | ``"Y"`` | ``"Z"``
        Probing axis.
    direction : ``1`` | ``-1``
        Sign applied to ``distance`` in the ``G38.2`` word.
    distance : float
        Probing travel magnitude (>= 0).
    feed_rate : float
        Probing feed (units/min).
    backoff_distance : float
        Retract magnitude after contact (>= 0).
    wcs_offset : float
        Value written into the G54 register by ``G10 L20 P1``.
    pre_moves, post_moves : tuple[MovementStep, ...]
        Steps executed before the approach / after the backoff.
    """

    axis: Axis
    direction: Direction
    distance: float
    feed_rate: float
    backoff_distance: float
    wcs_offset: float = 0.0
    pre_moves: tuple[MovementStep, ...] = ()
    post_moves: tuple[MovementStep, ...] = ()
    id: str = field(default_factory=new_probe_id)

    def __post_init__(self) -> None:
        _check_axis(self.axis)
        if self.direction not in (1, -1):
            raise ValueError(f"direction must be 1 or -1, got {self.direction!r}")
        if self.distance < 0:
            raise ValueError(f"distance must be >= 0, got {self.distance}")
        if self.backoff_distance < 0:
            raise ValueError(
                f"backoff_distance must be >= 0, got {self.backoff_distance}"
            )
        # Accept lists from callers but store tuples
        if not isinstance(self.pre_moves, tuple):
            object.__setattr__(self, "pre_moves", tuple(self.pre_moves))
        if not isinstance(self.post_moves, tuple):
            object.__setattr__(self, "post_moves", tuple(self.post_moves))

    @property
    def signed_distance(self) -> float:
        return self.direction * self.distance


# ---------------------------------------------------------------------------
# Program-level settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EndmillSize:
    """Probe/endmill diameter as typed by the user plus its mm value."""

    input: str = "1/8"
    unit: EndmillUnit = "fraction"
    size_in_mm: float = 3.175

    def __post_init__(self) -> None:
        if self.unit not in ENDMILL_UNITS:
            raise ValueError(
                f"endmill unit must be one of {ENDMILL_UNITS}, got {self.unit!r}"
            )


@dataclass(frozen=True, slots=True)
class ProbeSequenceSettings:
    """Program-level parameters for a probe sequence.

    ``operations`` mirrors the probe list for callers that carry the
    whole sequence in one object; the generator takes the list explicitly.
    """

    initial_position: Position = field(
        default_factory=lambda: Position(-78.0, -100.0, -41.0)
    )
    dwells_before_probe: int = 15
    spindle_speed: float = 5000
    units: Units = "mm"
    endmill_size: EndmillSize = field(default_factory=EndmillSize)
    operations: tuple[ProbeOperation, ...] = ()

    def __post_init__(self) -> None:
        if self.units not in UNITS:
            raise ValueError(f"units must be 'mm' or 'inch', got {self.units!r}")
        if not isinstance(self.operations, tuple):
            object.__setattr__(self, "operations", tuple(self.operations))


# ---------------------------------------------------------------------------
# Parser output
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ParsedGCodeResult:
    """Result of parsing a G-code program.

    Header fields are ``None`` when the program never set them.  ``errors``
    holds line-referenced diagnostics; ``warnings`` records values the
    parser had to default (missing feed rate, missing backoff line).
    """

    probe_sequence: list[ProbeOperation] = field(default_factory=list)
    initial_position: Position | None = None
    dwells_before_probe: int | None = None
    spindle_speed: int | None = None
    units: Units | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

