"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Sequence document validation (validators)
    - Atomic I/O and YAML (fs)
    - Unified logging (logging_config)

No module in utils/ may import from sequence_ir, gcode, configs or scripts.

Convenience imports:
    from probe_designer.utils import fs, validators
    from probe_designer.utils.logging_config import setup_logging, get_logger
"""

from . import fs
from . import logging_config
from . import validators
