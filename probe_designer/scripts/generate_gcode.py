#!/usr/bin/env python3
"""
Generate G-code Script.

Render a saved probe sequence (sequence.v1 YAML) as a G-code program.

Usage:
    probe-generate fixture.yaml                 # print to stdout
    probe-generate fixture.yaml -o fixture.nc   # write file atomically
    python -m probe_designer.scripts.generate_gcode fixture.yaml --summary
"""

from __future__ import annotations

import argparse
import sys

from probe_designer.configs.loader import ConfigError, load_config
from probe_designer.gcode.generator import generate_gcode
from probe_designer.gcode.toolpath import build_probe_path, estimate_duration_s
from probe_designer.sequence_ir.storage import load_sequence
from probe_designer.utils.fs import atomic_write_text
from probe_designer.utils.logging_config import get_logger, install_excepthook, setup_logging

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="probe-generate",
        description="Generate a G-code probing program from a sequence file",
    )
    parser.add_argument("sequence", help="Sequence file (sequence.v1 YAML)")
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        help="Write the program to this file instead of stdout",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Defaults file to validate before generating",
    )
    parser.add_argument(
        "--summary",
        action="store_true",
        help="Print probe count and estimated run time to stderr",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, context={"app": "probe-generate"})
    install_excepthook()

    try:
        if args.config:
            load_config(args.config)
        operations, settings = load_sequence(args.sequence)
    except (ConfigError, FileNotFoundError, ValueError) as e:
        logger.debug("Failed to load inputs", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    gcode = generate_gcode(operations, settings)

    if args.output:
        try:
            atomic_write_text(args.output, gcode)
        except RuntimeError as e:
            logger.error("Write failed", exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
            return 1
        logger.info("Wrote %s", args.output)
    else:
        sys.stdout.write(gcode)

    if args.summary:
        segments = build_probe_path(operations, settings.initial_position)
        print(
            f"{len(operations)} probe operation(s), "
            f"~{estimate_duration_s(segments):.1f} s of motion",
            file=sys.stderr,
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
