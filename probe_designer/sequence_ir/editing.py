"""Pure editing operations on a probe sequence.

Every function takes the current sequence (any sequence of
``ProbeOperation``) and returns a new tuple; inputs are never mutated.
Operations address probes and steps by id.

Errors:
    - Unknown probe or step id -> ``KeyError``
    - ``which`` other than ``"pre"`` / ``"post"`` -> ``ValueError``
    - Field values that break a model invariant -> ``ValueError`` from
      the model constructor
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import Any, Literal, Mapping, Sequence

from probe_designer.sequence_ir.operations import (
    DwellStep,
    EndmillSize,
    MovementStep,
    ParsedGCodeResult,
    ProbeOperation,
    ProbeSequenceSettings,
    RapidStep,
)

logger = logging.getLogger(__name__)

MM_PER_INCH = 25.4

Which = Literal["pre", "post"]

DEFAULT_PROBE_FIELDS: dict[str, Any] = {
    "axis": "Y",
    "direction": -1,
    "distance": 25.0,
    "feed_rate": 10.0,
    "backoff_distance": 1.0,
    "wcs_offset": 0.0,
}

DEFAULT_STEP_DESCRIPTIONS: dict[str, str] = {
    "pre": "Position for probe",
    "post": "Move away from surface",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _index_of(operations: Sequence[ProbeOperation], probe_id: str) -> int:
    for index, op in enumerate(operations):
        if op.id == probe_id:
            return index
    raise KeyError(f"Unknown probe id: {probe_id!r}")


def _moves_field(which: str) -> str:
    if which == "pre":
        return "pre_moves"
    if which == "post":
        return "post_moves"
    raise ValueError(f"which must be 'pre' or 'post', got {which!r}")


def _replace_at(
    operations: Sequence[ProbeOperation], index: int, op: ProbeOperation
) -> tuple[ProbeOperation, ...]:
    ops = list(operations)
    ops[index] = op
    return tuple(ops)


# ---------------------------------------------------------------------------
# Probe operations
# ---------------------------------------------------------------------------


def add_probe(
    operations: Sequence[ProbeOperation],
    template: Mapping[str, Any] | None = None,
    **overrides: Any,
) -> tuple[ProbeOperation, ...]:
    """Append a new probe built from defaults, *template*, then *overrides*.

    Defaults probe Y- for 25 at F10 with a backoff of 1 and no moves.
    """
    fields = {**DEFAULT_PROBE_FIELDS, **(template or {}), **overrides}
    probe = ProbeOperation(**fields)
    logger.debug("Added probe %s (%s axis)", probe.id, probe.axis)
    return (*operations, probe)


def update_probe(
    operations: Sequence[ProbeOperation], probe_id: str, **changes: Any
) -> tuple[ProbeOperation, ...]:
    """Replace fields of one probe (``axis="X"``, ``distance=12`` ...)."""
    index = _index_of(operations, probe_id)
    updated = dataclasses.replace(operations[index], **changes)
    return _replace_at(operations, index, updated)


def remove_probe(
    operations: Sequence[ProbeOperation], probe_id: str
) -> tuple[ProbeOperation, ...]:
    index = _index_of(operations, probe_id)
    return tuple(op for i, op in enumerate(operations) if i != index)


def move_probe(
    operations: Sequence[ProbeOperation], from_index: int, to_index: int
) -> tuple[ProbeOperation, ...]:
    """Move the probe at *from_index* so it ends up at *to_index*.

    Raises
    ------
    IndexError
        If either index is out of range.
    """
    count = len(operations)
    for value in (from_index, to_index):
        if not -count <= value < count:
            raise IndexError(f"probe index {value} out of range for {count} probe(s)")
    ops = list(operations)
    ops.insert(to_index % count, ops.pop(from_index))
    return tuple(ops)


# ---------------------------------------------------------------------------
# Movement steps
# ---------------------------------------------------------------------------


def add_movement(
    operations: Sequence[ProbeOperation],
    probe_id: str,
    which: Which = "post",
    step: MovementStep | None = None,
) -> tuple[ProbeOperation, ...]:
    """Append *step* (or an empty relative rapid) to a probe's moves."""
    field_name = _moves_field(which)
    index = _index_of(operations, probe_id)
    if step is None:
        step = RapidStep(
            position_mode="relative",
            description=DEFAULT_STEP_DESCRIPTIONS[which],
        )
    op = operations[index]
    moves = (*getattr(op, field_name), step)
    return _replace_at(
        operations, index, dataclasses.replace(op, **{field_name: moves})
    )


def _changed_step(step: MovementStep, changes: dict[str, Any]) -> MovementStep:
    new_type = changes.pop("type", step.type)
    if new_type == step.type:
        return dataclasses.replace(step, **changes)

    # Switching kind keeps identity and description only
    base = {"id": step.id, "description": step.description}
    if new_type == "rapid":
        return RapidStep(**{"position_mode": "relative", **base, **changes})
    if new_type == "dwell":
        return DwellStep(**{"dwell_time": 1.0, **base, **changes})
    raise ValueError(f"step type must be 'rapid' or 'dwell', got {new_type!r}")


def update_movement(
    operations: Sequence[ProbeOperation],
    probe_id: str,
    step_id: str,
    which: Which = "post",
    **changes: Any,
) -> tuple[ProbeOperation, ...]:
    """Replace fields of one movement step.

    ``type="dwell"`` / ``type="rapid"`` converts the step to the other
    kind, keeping its id and description.
    """
    field_name = _moves_field(which)
    index = _index_of(operations, probe_id)
    op = operations[index]
    moves = list(getattr(op, field_name))
    for i, step in enumerate(moves):
        if step.id == step_id:
            moves[i] = _changed_step(step, dict(changes))
            break
    else:
        raise KeyError(f"Unknown step id {step_id!r} in {which}-moves of {probe_id!r}")
    return _replace_at(
        operations, index, dataclasses.replace(op, **{field_name: tuple(moves)})
    )


def remove_movement(
    operations: Sequence[ProbeOperation],
    probe_id: str,
    step_id: str,
    which: Which = "post",
) -> tuple[ProbeOperation, ...]:
    field_name = _moves_field(which)
    index = _index_of(operations, probe_id)
    op = operations[index]
    moves = getattr(op, field_name)
    kept = tuple(step for step in moves if step.id != step_id)
    if len(kept) == len(moves):
        raise KeyError(f"Unknown step id {step_id!r} in {which}-moves of {probe_id!r}")
    return _replace_at(
        operations, index, dataclasses.replace(op, **{field_name: kept})
    )


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

_LEADING_NUMBER = re.compile(r"^\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?)")


def _leading_float(text: str) -> float:
    match = _LEADING_NUMBER.match(text)
    return float(match.group(1)) if match else 0.0


def _strict_float(text: str) -> float | None:
    text = text.strip()
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        return None


def parse_tool_size(text: str, unit: str) -> float:
    """Convert an endmill size as typed into millimetres.

    ``"mm"`` and ``"inch"`` read the leading number of *text* (``"3.2mm"``
    -> 3.2).  ``"fraction"`` expects ``a/b``.  Anything unreadable, and a
    zero denominator, gives 0.
    """
    if unit == "mm":
        return _leading_float(text)
    if unit == "inch":
        return _leading_float(text) * MM_PER_INCH
    if unit == "fraction":
        parts = text.split("/")
        if len(parts) < 2:
            return 0.0
        num, denom = _strict_float(parts[0]), _strict_float(parts[1])
        if num is None or denom is None or denom == 0:
            return 0.0
        return num / denom * MM_PER_INCH
    return 0.0


def update_endmill_size(
    settings: ProbeSequenceSettings,
    input: str | None = None,
    unit: str | None = None,
) -> ProbeSequenceSettings:
    """Return *settings* with a new endmill entry and recomputed mm size."""
    current = settings.endmill_size
    new_input = current.input if input is None else input
    new_unit = current.unit if unit is None else unit
    endmill = EndmillSize(
        input=new_input,
        unit=new_unit,
        size_in_mm=parse_tool_size(new_input, new_unit),
    )
    return dataclasses.replace(settings, endmill_size=endmill)


def apply_import(
    settings: ProbeSequenceSettings, result: ParsedGCodeResult
) -> tuple[tuple[ProbeOperation, ...], ProbeSequenceSettings]:
    """Merge a parse result into *settings*.

    The probe list is taken as-is.  Initial position and units replace the
    current ones when the program set them; dwell count and spindle speed
    only when non-zero.

    Returns
    -------
    tuple
        ``(operations, settings)``; ``settings.operations`` mirrors the
        imported probes.
    """
    operations = tuple(result.probe_sequence)
    updates: dict[str, Any] = {"operations": operations}
    if result.initial_position is not None:
        updates["initial_position"] = result.initial_position
    if result.dwells_before_probe:
        updates["dwells_before_probe"] = result.dwells_before_probe
    if result.spindle_speed:
        updates["spindle_speed"] = result.spindle_speed
    if result.units:
        updates["units"] = result.units

    logger.info(
        "Imported %d probe operation(s); updated %s",
        len(operations),
        ", ".join(k for k in updates if k != "operations") or "no settings",
    )
    return operations, dataclasses.replace(settings, **updates)
