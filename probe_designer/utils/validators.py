"""YAML schema validation for sequence documents.

A sequence document (``sequence.v1``) stores one probe sequence: the
program settings and the ordered probe operations with their pre- and
post-moves.  Field names match the in-memory model.

Units:
    - Geometry and feeds: the document's own ``settings.units`` (mm or inch)
    - Dwell times: seconds
    - Spindle speed: RPM

Usage:
    from probe_designer.utils import validators

    doc = validators.load_sequence_file("fixture_probe.yaml")
    doc.operations[0].axis
"""

from pathlib import Path
from typing import Annotated, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

SEQUENCE_SCHEMA = "sequence.v1"


# ============================================================================
# SEQUENCE SCHEMA V1
# ============================================================================

class PositionV1(BaseModel):
    """XYZ triple (machine coordinates)."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class EndmillSizeV1(BaseModel):
    """Endmill diameter as entered plus its mm value."""
    input: str = "1/8"
    unit: Literal["fraction", "inch", "mm"] = "fraction"
    size_in_mm: float = Field(3.175, ge=0.0)


class RapidStepV1(BaseModel):
    """``G0`` positioning step."""
    type: Literal["rapid"]
    id: Optional[str] = None
    description: str = ""
    axes_values: Dict[str, float] = Field(default_factory=dict)
    position_mode: Literal["relative", "absolute", "none"] = "none"
    coordinate_system: Literal["machine", "wcs", "none"] = "none"

    @field_validator('axes_values')
    @classmethod
    def validate_axes(cls, v: Dict[str, float]) -> Dict[str, float]:
        normalized = {}
        for axis, value in v.items():
            key = axis.upper()
            if key not in ("X", "Y", "Z"):
                raise ValueError(f"Axis must be X, Y or Z, got '{axis}'")
            normalized[key] = value
        return normalized


class DwellStepV1(BaseModel):
    """``G4`` pause step."""
    type: Literal["dwell"]
    id: Optional[str] = None
    description: str = ""
    dwell_time: float = Field(..., ge=0.0, description="Pause length (s)")


MovementStepV1 = Annotated[
    Union[RapidStepV1, DwellStepV1], Field(discriminator="type")
]


class ProbeOperationV1(BaseModel):
    """One ``G38.2`` probe cycle."""
    id: Optional[str] = None
    axis: Literal["X", "Y", "Z"]
    direction: Literal[1, -1]
    distance: float = Field(..., ge=0.0)
    feed_rate: float = Field(..., gt=0.0)
    backoff_distance: float = Field(..., ge=0.0)
    wcs_offset: float = 0.0
    pre_moves: List[MovementStepV1] = Field(default_factory=list)
    post_moves: List[MovementStepV1] = Field(default_factory=list)

    @field_validator('axis', mode='before')
    @classmethod
    def upper_axis(cls, v):
        return v.upper() if isinstance(v, str) else v


class SequenceSettingsV1(BaseModel):
    """Program-level settings."""
    initial_position: PositionV1 = Field(
        default_factory=lambda: PositionV1(x=-78.0, y=-100.0, z=-41.0)
    )
    dwells_before_probe: int = Field(15, ge=0)
    spindle_speed: float = Field(5000, ge=0.0)
    units: Literal["mm", "inch"] = "mm"
    endmill_size: EndmillSizeV1 = Field(default_factory=EndmillSizeV1)


class SequenceFileV1(BaseModel):
    """Sequence document (sequence.v1 YAML file)."""
    model_config = ConfigDict(populate_by_name=True)

    schema_version: str = Field(SEQUENCE_SCHEMA, alias="schema", description="Schema version")
    settings: SequenceSettingsV1 = Field(default_factory=SequenceSettingsV1)
    operations: List[ProbeOperationV1] = Field(default_factory=list)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != SEQUENCE_SCHEMA:
            raise ValueError(f"Expected schema '{SEQUENCE_SCHEMA}', got '{v}'")
        return v


# ============================================================================
# PUBLIC API
# ============================================================================

def validate_sequence_data(data: object, source: str = "<data>") -> SequenceFileV1:
    """Validate an already-loaded sequence document.

    Raises
    ------
    ValueError
        If validation fails (message names *source* and the offending fields)
    """
    try:
        return SequenceFileV1.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Sequence file validation failed at {source}: {e}") from e


def load_sequence_file(path: Union[str, Path]) -> SequenceFileV1:
    """Load and validate a sequence document from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to a sequence.v1 YAML file

    Returns
    -------
    SequenceFileV1
        Validated document

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails (with actionable error message)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Sequence file not found: {path}")

    try:
        data = fs.load_yaml(path)
    except yaml.YAMLError as e:
        raise ValueError(str(e)) from e
    return validate_sequence_data(data, str(path))
