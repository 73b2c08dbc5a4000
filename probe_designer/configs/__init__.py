"""Designer defaults loading and validation."""

from probe_designer.configs.loader import (
    ConfigError,
    DesignerConfig,
    ProbeTemplate,
    load_config,
)

__all__ = [
    "ConfigError",
    "DesignerConfig",
    "ProbeTemplate",
    "load_config",
]
