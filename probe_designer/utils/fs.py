"""Atomic file writes and YAML helpers.

Sequence documents and exported programs are written to a temporary file
in the target directory, fsynced, then renamed over the target, so an
editor or machine controller watching the file never sees a partial
program.

Usage:
    from probe_designer.utils import fs
    fs.atomic_write_text("probe.nc", gcode)
    fs.atomic_yaml_dump(document, "probe.yaml")
    data = fs.load_yaml("probe.yaml")
"""

import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory (and parents) if missing, return it as a Path."""
    directory = Path(p)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def atomic_write_bytes(path: Union[str, Path], data: bytes) -> None:
    """Replace *path* with *data* in one rename.

    The temporary file gets a unique name next to the target (so the
    rename never crosses filesystems and concurrent writers do not share
    it).

    Raises
    ------
    RuntimeError
        If writing or renaming fails; the temporary file is removed.
    """
    target = Path(path)
    directory = ensure_dir(target.parent)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=directory
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, target)
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        raise RuntimeError(f"Failed to write {target} atomically: {e}") from e


def atomic_write_text(
    path: Union[str, Path],
    text: str,
    encoding: str = "utf-8"
) -> None:
    """Text wrapper around :func:`atomic_write_bytes` (no newline translation)."""
    atomic_write_bytes(path, text.encode(encoding))


def atomic_yaml_dump(obj: Any, path: Union[str, Path]) -> None:
    """Save a plain-data object as YAML atomically.

    Keys keep insertion order so documents read top-down the way they
    were built (settings first, then operations).
    """
    text = yaml.safe_dump(obj, sort_keys=False, default_flow_style=False, allow_unicode=True)
    atomic_write_text(path, text)


def load_yaml(path: Union[str, Path]) -> Optional[Dict[str, Any]]:
    """Load a YAML file with ``safe_load``.

    Returns ``None`` for an empty file.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    yaml.YAMLError
        If the file is not valid YAML (message names the file).
    """
    source = Path(path)
    if not source.is_file():
        raise FileNotFoundError(f"YAML file not found: {source}")

    with open(source, 'r', encoding='utf-8') as f:
        try:
            return yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Failed to parse YAML file {source}: {e}") from e
