#!/usr/bin/env python3
"""
Import G-code Script.

Parse a probing program back into a probe sequence and save it as a
sequence.v1 YAML document.  Settings the program does not set come from
the designer defaults.

Usage:
    probe-import fixture.nc                     # print a summary
    probe-import fixture.nc -o fixture.yaml     # save the sequence
    probe-import fixture.nc --strict            # exit 2 on parse errors

Exit status:
    0  success
    1  unreadable input, bad config, or write failure
    2  parse errors with --strict
"""

from __future__ import annotations

import argparse
import sys

from probe_designer.configs.loader import ConfigError, load_config
from probe_designer.gcode.parser import parse_gcode_file
from probe_designer.sequence_ir.editing import apply_import
from probe_designer.sequence_ir.storage import save_sequence
from probe_designer.utils.logging_config import (
    get_logger,
    install_excepthook,
    pop_context,
    push_context,
    setup_logging,
)

logger = get_logger(__name__)

EXIT_PARSE_ERRORS = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="probe-import",
        description="Import a G-code probing program as a probe sequence",
    )
    parser.add_argument("gcode", help="G-code program to parse")
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        help="Save the sequence to this YAML file",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Defaults file (default: packaged defaults.yaml)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail (exit 2) if any line could not be parsed",
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
    setup_logging(args.log_level, context={"app": "probe-import"})
    install_excepthook()

    try:
        config = load_config(args.config)
    except (ConfigError, FileNotFoundError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    push_context(source=args.gcode)
    try:
        try:
            result = parse_gcode_file(args.gcode)
        except (FileNotFoundError, UnicodeDecodeError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        for error in result.errors:
            print(f"error: {error}", file=sys.stderr)
        for warning in result.warnings:
            print(f"warning: {warning}", file=sys.stderr)
        if result.errors and args.strict:
            return EXIT_PARSE_ERRORS

        operations, settings = apply_import(config.settings, result)

        if args.output:
            try:
                save_sequence(args.output, operations, settings)
            except RuntimeError as e:
                logger.error("Write failed", exc_info=True)
                print(f"Error: {e}", file=sys.stderr)
                return 1

        print(
            f"Imported {len(operations)} probe operation(s) "
            f"({len(result.errors)} error(s), {len(result.warnings)} warning(s))"
        )
        for index, op in enumerate(operations, start=1):
            sign = "-" if op.direction < 0 else "+"
            print(
                f"  {index}. {op.axis}{sign} distance={op.distance:g} "
                f"feed={op.feed_rate:g} pre={len(op.pre_moves)} "
                f"post={len(op.post_moves)}"
            )
        return 0
    finally:
        pop_context(keys=["source"])


if __name__ == "__main__":
    sys.exit(main())
