"""Configuration loader for the probe designer.

Loads and validates ``defaults.yaml`` into typed, frozen dataclasses:
the settings a new sequence starts from and the template for newly
added probes.

Usage::

    from probe_designer.configs.loader import load_config
    cfg = load_config()                         # default path
    cfg = load_config("/custom/defaults.yaml")  # explicit path
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from probe_designer.sequence_ir.editing import parse_tool_size
from probe_designer.sequence_ir.operations import (
    AXES,
    UNITS,
    EndmillSize,
    Position,
    ProbeSequenceSettings,
)
from probe_designer.utils.fs import load_yaml

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# ---------------------------------------------------------------------------
# Dataclasses -- mirror the YAML structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProbeTemplate:
    """Field values for probes added in the editor."""

    axis: str
    direction: int
    distance: float
    feed_rate: float
    backoff_distance: float
    wcs_offset: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        """Keyword arguments accepted by ``editing.add_probe``."""
        return {
            "axis": self.axis,
            "direction": self.direction,
            "distance": self.distance,
            "feed_rate": self.feed_rate,
            "backoff_distance": self.backoff_distance,
            "wcs_offset": self.wcs_offset,
        }


@dataclass(frozen=True)
class DesignerConfig:
    """Root configuration object."""

    settings: ProbeSequenceSettings
    probe_template: ProbeTemplate


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------


def _parse_settings(data: dict[str, Any]) -> ProbeSequenceSettings:
    pos = data["initial_position"]
    endmill_data = data.get("endmill_size", {})
    endmill_input = str(endmill_data.get("input", "1/8"))
    endmill_unit = str(endmill_data.get("unit", "fraction"))
    return ProbeSequenceSettings(
        initial_position=Position(
            x=float(pos["x"]), y=float(pos["y"]), z=float(pos["z"])
        ),
        dwells_before_probe=int(data["dwells_before_probe"]),
        spindle_speed=float(data["spindle_speed"]),
        units=str(data.get("units", "mm")),
        endmill_size=EndmillSize(
            input=endmill_input,
            unit=endmill_unit,
            size_in_mm=parse_tool_size(endmill_input, endmill_unit),
        ),
    )


def _parse_probe_template(data: dict[str, Any]) -> ProbeTemplate:
    return ProbeTemplate(
        axis=str(data["axis"]).upper(),
        direction=int(data["direction"]),
        distance=float(data["distance"]),
        feed_rate=float(data["feed_rate"]),
        backoff_distance=float(data["backoff_distance"]),
        wcs_offset=float(data.get("wcs_offset", 0.0)),
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate_config(cfg: DesignerConfig) -> None:
    """Validate value ranges.

    Raises
    ------
    ConfigError
        On any out-of-range value.
    """
    s = cfg.settings
    if s.dwells_before_probe < 0:
        raise ConfigError(
            f"dwells_before_probe must be >= 0, got {s.dwells_before_probe}"
        )
    if s.dwells_before_probe == 1:
        logger.warning(
            "dwells_before_probe=1: a single G4 P0.01 line is not "
            "recognised as a buffer-clear block on re-import"
        )
    if s.spindle_speed < 0:
        raise ConfigError(f"spindle_speed must be >= 0, got {s.spindle_speed}")
    if s.units not in UNITS:
        raise ConfigError(f"units must be one of {UNITS}, got {s.units!r}")

    t = cfg.probe_template
    if t.axis not in AXES:
        raise ConfigError(f"probe_template.axis must be one of {AXES}, got {t.axis!r}")
    if t.direction not in (1, -1):
        raise ConfigError(
            f"probe_template.direction must be 1 or -1, got {t.direction}"
        )
    for name in ("distance", "feed_rate", "backoff_distance"):
        value = getattr(t, name)
        if value <= 0:
            raise ConfigError(f"probe_template.{name} must be > 0, got {value}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(path: str | Path | None = None) -> DesignerConfig:
    """Load and validate designer defaults from YAML.

    Parameters
    ----------
    path : str | Path | None
        Path to a defaults file.  ``None`` loads ``defaults.yaml``
        shipped alongside this module.

    Returns
    -------
    DesignerConfig
        Fully validated, frozen configuration object.

    Raises
    ------
    ConfigError
        If any field is missing or fails validation.
    FileNotFoundError
        If *path* does not exist.
    """
    if path is None:
        path = Path(__file__).parent / "defaults.yaml"
    else:
        path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading configuration from %s", path)

    try:
        data: dict[str, Any] | None = load_yaml(path)
    except yaml.YAMLError as exc:
        raise ConfigError(str(exc)) from exc
    if data is None:
        raise ConfigError(f"Empty configuration file: {path}")

    try:
        config = DesignerConfig(
            settings=_parse_settings(data["settings"]),
            probe_template=_parse_probe_template(data["probe_template"]),
        )
    except KeyError as exc:
        raise ConfigError(
            f"Missing required configuration key: {exc}"
        ) from exc
    except (TypeError, ValueError) as exc:
        raise ConfigError(
            f"Invalid configuration value: {exc}"
        ) from exc

    _validate_config(config)
    logger.info("Configuration loaded successfully")
    return config
