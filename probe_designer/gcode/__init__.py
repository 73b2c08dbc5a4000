"""G-code generation and parsing for probe sequences.

Modules:
    formatting: Line padding and number rendering shared by both directions
    generator: Probe sequence -> commented G-code program
    parser: G-code program -> probe sequence + diagnostics
    toolpath: Nominal probe path and duration estimate
"""

from probe_designer.gcode.generator import GCodeGenerator, format_movement, generate_gcode
from probe_designer.gcode.parser import parse_gcode, parse_gcode_file
from probe_designer.gcode.toolpath import (
    PathSegment,
    build_probe_path,
    estimate_duration_s,
    probe_contacts,
)

__all__ = [
    "GCodeGenerator",
    "format_movement",
    "generate_gcode",
    "parse_gcode",
    "parse_gcode_file",
    "PathSegment",
    "build_probe_path",
    "estimate_duration_s",
    "probe_contacts",
]
