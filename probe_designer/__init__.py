"""
Probe Designer Package.

Core of a CNC probing-sequence designer.  Converts a structured touch-probe
sequence into a commented G-code program and reconstructs the sequence
from G-code text (generated or hand-edited).

Subpackages:
    sequence_ir: Probe-sequence data model, editing helpers, persistence
    gcode: Generator, parser, line formatting, nominal probe path
    configs: Default settings loading and validation
    utils: Logging, atomic file I/O, YAML schemas
    scripts: Command-line entry points
"""

__all__ = ["sequence_ir", "gcode", "configs", "utils"]
