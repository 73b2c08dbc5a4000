"""
Probe-sequence intermediate representation.

Defines the probe operations and movement steps as immutable dataclasses.
This vocabulary is the contract between the sequence editor and G-code
generation / parsing.

Coordinates and feeds are in the sequence's own units (mm or inch).
"""

from probe_designer.sequence_ir.operations import (
    DwellStep,
    EndmillSize,
    MovementStep,
    ParsedGCodeResult,
    Position,
    ProbeOperation,
    ProbeSequenceSettings,
    RapidStep,
)

__all__ = [
    "DwellStep",
    "EndmillSize",
    "MovementStep",
    "ParsedGCodeResult",
    "Position",
    "ProbeOperation",
    "ProbeSequenceSettings",
    "RapidStep",
]
