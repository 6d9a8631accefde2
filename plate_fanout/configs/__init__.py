"""Plant configuration loading and validation."""

from plate_fanout.configs.loader import (
    FieldSpan,
    FilenameConfig,
    LoggingConfig,
    MarkConfig,
    PathsConfig,
    PlantConfig,
    PollingConfig,
    RasterConfig,
    ValidateTier,
    load_config,
)

__all__ = [
    "FieldSpan",
    "FilenameConfig",
    "LoggingConfig",
    "MarkConfig",
    "PathsConfig",
    "PlantConfig",
    "PollingConfig",
    "RasterConfig",
    "ValidateTier",
    "load_config",
]
