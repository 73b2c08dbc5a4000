"""Sequence documents: YAML persistence of settings plus operations.

Document layout (``schema: sequence.v1``)::

    schema: sequence.v1
    settings:
      initial_position: {x: -78.0, y: -100.0, z: -41.0}
      dwells_before_probe: 15
      spindle_speed: 5000
      units: mm
      endmill_size: {input: 1/8, unit: fraction, size_in_mm: 3.175}
    operations:
      - id: probe-3f9a0c2b41d7
        axis: Y
        direction: -1
        ...
        pre_moves:
          - {type: rapid, id: ..., axes_values: {X: 5}, position_mode: relative, ...}

Loading validates with the pydantic schema in
``probe_designer.utils.validators`` before building model objects.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Sequence

from probe_designer.sequence_ir.operations import (
    DwellStep,
    EndmillSize,
    MovementStep,
    Position,
    ProbeOperation,
    ProbeSequenceSettings,
    RapidStep,
)
from probe_designer.utils import fs
from probe_designer.utils.validators import (
    SEQUENCE_SCHEMA,
    SequenceFileV1,
    load_sequence_file,
    validate_sequence_data,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Model -> plain data
# ---------------------------------------------------------------------------


def _step_to_dict(step: MovementStep) -> dict[str, Any]:
    if isinstance(step, RapidStep):
        return {
            "type": "rapid",
            "id": step.id,
            "description": step.description,
            "axes_values": {axis: float(v) for axis, v in step.axes_values.items()},
            "position_mode": step.position_mode,
            "coordinate_system": step.coordinate_system,
        }
    if isinstance(step, DwellStep):
        return {
            "type": "dwell",
            "id": step.id,
            "description": step.description,
            "dwell_time": float(step.dwell_time),
        }
    raise TypeError(f"Unsupported movement step: {type(step).__name__}")


def _operation_to_dict(op: ProbeOperation) -> dict[str, Any]:
    return {
        "id": op.id,
        "axis": op.axis,
        "direction": op.direction,
        "distance": float(op.distance),
        "feed_rate": float(op.feed_rate),
        "backoff_distance": float(op.backoff_distance),
        "wcs_offset": float(op.wcs_offset),
        "pre_moves": [_step_to_dict(s) for s in op.pre_moves],
        "post_moves": [_step_to_dict(s) for s in op.post_moves],
    }


def sequence_to_dict(
    operations: Sequence[ProbeOperation], settings: ProbeSequenceSettings
) -> dict[str, Any]:
    """Return the ``sequence.v1`` document for a sequence."""
    pos = settings.initial_position
    endmill = settings.endmill_size
    return {
        "schema": SEQUENCE_SCHEMA,
        "settings": {
            "initial_position": {"x": float(pos.x), "y": float(pos.y), "z": float(pos.z)},
            "dwells_before_probe": int(settings.dwells_before_probe),
            "spindle_speed": settings.spindle_speed,
            "units": settings.units,
            "endmill_size": {
                "input": endmill.input,
                "unit": endmill.unit,
                "size_in_mm": float(endmill.size_in_mm),
            },
        },
        "operations": [_operation_to_dict(op) for op in operations],
    }


# ---------------------------------------------------------------------------
# Validated document -> model
# ---------------------------------------------------------------------------


def _id_kwargs(id_: str | None) -> dict[str, str]:
    # Missing ids get a fresh one from the model's default factory
    return {"id": id_} if id_ else {}


def _step_from_model(step) -> MovementStep:
    if step.type == "rapid":
        return RapidStep(
            axes_values=dict(step.axes_values),
            position_mode=step.position_mode,
            coordinate_system=step.coordinate_system,
            description=step.description,
            **_id_kwargs(step.id),
        )
    return DwellStep(
        dwell_time=step.dwell_time,
        description=step.description,
        **_id_kwargs(step.id),
    )


def _build(doc: SequenceFileV1) -> tuple[tuple[ProbeOperation, ...], ProbeSequenceSettings]:
    operations = tuple(
        ProbeOperation(
            axis=op.axis,
            direction=op.direction,
            distance=op.distance,
            feed_rate=op.feed_rate,
            backoff_distance=op.backoff_distance,
            wcs_offset=op.wcs_offset,
            pre_moves=tuple(_step_from_model(s) for s in op.pre_moves),
            post_moves=tuple(_step_from_model(s) for s in op.post_moves),
            **_id_kwargs(op.id),
        )
        for op in doc.operations
    )
    s = doc.settings
    settings = ProbeSequenceSettings(
        initial_position=Position(s.initial_position.x, s.initial_position.y, s.initial_position.z),
        dwells_before_probe=s.dwells_before_probe,
        spindle_speed=s.spindle_speed,
        units=s.units,
        endmill_size=EndmillSize(
            input=s.endmill_size.input,
            unit=s.endmill_size.unit,
            size_in_mm=s.endmill_size.size_in_mm,
        ),
        operations=operations,
    )
    return operations, settings


def sequence_from_dict(
    data: dict[str, Any],
) -> tuple[tuple[ProbeOperation, ...], ProbeSequenceSettings]:
    """Validate a ``sequence.v1`` mapping and build the model objects.

    Raises
    ------
    ValueError
        If the mapping does not match the schema.
    """
    return _build(validate_sequence_data(data))


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def save_sequence(
    path: str | Path,
    operations: Sequence[ProbeOperation],
    settings: ProbeSequenceSettings,
) -> Path:
    """Write a sequence document atomically and return its path."""
    path = Path(path)
    fs.atomic_yaml_dump(sequence_to_dict(operations, settings), path)
    logger.info("Saved %d probe operation(s) to %s", len(operations), path)
    return path


def load_sequence(
    path: str | Path,
) -> tuple[tuple[ProbeOperation, ...], ProbeSequenceSettings]:
    """Load and validate a sequence document.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If the document fails validation (message includes *path*).
    """
    doc = load_sequence_file(path)
    operations, settings = _build(doc)
    logger.info("Loaded %d probe operation(s) from %s", len(operations), path)
    return operations, settings
