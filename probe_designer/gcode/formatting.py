"""Line and number formatting shared by the generator and the parser.

Numbers are rendered the way the designer has always written them into
programs: integral values without a decimal point (``X10``, ``Z-41``),
everything else in shortest round-trip form (``Y1.5875``, ``P0.01``).
The parser's fallback descriptions use the same rendering so that
``Rapid move to X10 Y20`` reads identically to the generated G-code.
"""

from __future__ import annotations

import math

COMMENT_COLUMN = 40
"""Column at which generated line comments start."""

MIN_COMMENT_GAP = 2


def format_number(value: float) -> str:
    """Render a number as it appears in a G-code word.

    Parameters
    ----------
    value : float
        Any real number (NaN and infinities are rendered, not rejected).

    Returns
    -------
    str
        ``"10"`` for 10.0, ``"-3.5"`` for -3.5, ``"0"`` for -0.0,
        ``"NaN"`` / ``"Infinity"`` / ``"-Infinity"`` for non-finite input.
    """
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def pad_line(command: str, comment: str, pad_to: int = COMMENT_COLUMN) -> str:
    """Pad *command* to *pad_to* and append ``(comment)`` when non-empty."""
    code = command.rstrip()
    pad = max(pad_to - len(code), MIN_COMMENT_GAP)
    return code + " " * pad + (f"({comment})" if comment else "")


def format_line(command: str, comment: str) -> str:
    """Return one newline-terminated program line."""
    return pad_line(command, comment) + "\n"
