"""Configuration loader for the plate conveyor.

Loads and validates ``plant.yaml`` into typed, frozen dataclasses.  All
site values (slot directories, mark placement, resolution, filename
offsets, polling cadence) come from the config -- nothing is hardcoded.

Relative paths in the file are resolved against the directory holding the
config file, so a plant directory can be moved as a whole.

Usage::

    from plate_fanout.configs.loader import load_config
    cfg = load_config()                     # default path
    cfg = load_config("/srv/press/plant.yaml")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from plate_fanout.errors import ConfigError
from plate_fanout.utils.fs import load_yaml

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Dataclasses -- mirror the YAML structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PathsConfig:
    """Slot and support directories."""

    intake: Path
    processing: Path
    delivery: Path
    rejected: Path
    log: Path
    marks: Path

    def slots(self) -> dict[str, Path]:
        """Directories that must exist before plates are moved."""
        return {
            "intake": self.intake,
            "processing": self.processing,
            "delivery": self.delivery,
            "rejected": self.rejected,
            "log": self.log,
        }


@dataclass(frozen=True)
class MarkConfig:
    """One alignment mark: its raster file and the plate offset in pixels."""

    file: str
    x: int
    y: int


@dataclass(frozen=True)
class RasterConfig:
    """Plate resolution and the file suffixes treated as plates."""

    dpi: float
    suffixes: tuple[str, ...] = (".tif", ".tiff")

    def is_plate(self, path: Path) -> bool:
        return path.suffix.lower() in self.suffixes


@dataclass(frozen=True)
class FieldSpan:
    """Fixed substring of a filename, ``start`` is 1-based."""

    start: int
    length: int

    @property
    def end(self) -> int:
        """Minimum filename length that contains this field."""
        return self.start - 1 + self.length

    def extract(self, name: str) -> str:
        return name[self.start - 1 : self.end]


@dataclass(frozen=True)
class FilenameConfig:
    """Where tower, cylinder, section and half sit in a plate filename."""

    tower: FieldSpan
    cylinder: FieldSpan
    section: FieldSpan
    half: FieldSpan

    def fields(self) -> dict[str, FieldSpan]:
        return {
            "tower": self.tower,
            "cylinder": self.cylinder,
            "section": self.section,
            "half": self.half,
        }


@dataclass(frozen=True)
class ValidateTier:
    """Retry cadence for the startup/iteration path check.

    ``attempts`` is ``None`` for the open-ended last tier.
    """

    delay_s: float
    attempts: int | None = None


@dataclass(frozen=True)
class PollingConfig:
    """Conveyor loop timing and transfer retries."""

    interval_s: float
    settle_delay_s: float = 0.1
    transfer_retries: int = 3
    transfer_delay_s: float = 0.5
    validate_tiers: tuple[ValidateTier, ...] = (
        ValidateTier(delay_s=1.0, attempts=10),
        ValidateTier(delay_s=10.0, attempts=90),
        ValidateTier(delay_s=600.0),
    )

    def validate_delay(self, attempt: int) -> float:
        """Sleep before retrying after the 0-based *attempt* failed."""
        remaining = attempt
        for tier in self.validate_tiers:
            if tier.attempts is None or remaining < tier.attempts:
                return tier.delay_s
            remaining -= tier.attempts
        return self.validate_tiers[-1].delay_s


@dataclass(frozen=True)
class LoggingConfig:
    """Log level, format and the daily log file name."""

    level: str = "INFO"
    json: bool = False
    file_name: str = "fanout.log"


@dataclass(frozen=True)
class PlantConfig:
    """Top-level configuration -- single source of truth for the conveyor."""

    source: Path
    paths: PathsConfig
    marks: dict[str, MarkConfig]
    raster: RasterConfig
    filename: FilenameConfig
    geometry_source: Path
    polling: PollingConfig
    logging: LoggingConfig

    @property
    def log_file(self) -> Path:
        return self.paths.log / self.logging.file_name

    def mark_path(self, name: str) -> Path:
        """Absolute path of mark *name*'s raster file."""
        try:
            mark = self.marks[name]
        except KeyError:
            raise ConfigError(
                f"Unknown mark '{name}'. Available: {sorted(self.marks)}"
            ) from None
        return self.paths.marks / mark.file


# ---------------------------------------------------------------------------
# Internal parsing helpers
# ---------------------------------------------------------------------------


def _resolve(base: Path, value: Any) -> Path:
    path = Path(str(value)).expanduser()
    if not path.is_absolute():
        path = base / path
    return path


def _parse_paths(base: Path, data: dict[str, Any]) -> PathsConfig:
    """Parse the ``paths`` section."""
    return PathsConfig(
        intake=_resolve(base, data["intake"]),
        processing=_resolve(base, data["processing"]),
        delivery=_resolve(base, data["delivery"]),
        rejected=_resolve(base, data["rejected"]),
        log=_resolve(base, data["log"]),
        marks=_resolve(base, data.get("marks", ".")),
    )


def _parse_marks(data: dict[str, Any]) -> dict[str, MarkConfig]:
    """Parse the ``marks`` section (``lead`` and ``trail`` required)."""
    marks = {}
    for name, mark in data.items():
        marks[str(name)] = MarkConfig(
            file=str(mark["file"]),
            x=int(mark["x"]),
            y=int(mark["y"]),
        )
    for required in ("lead", "trail"):
        if required not in marks:
            raise ConfigError(f"marks.{required} is required")
    return marks


def _parse_raster(data: dict[str, Any]) -> RasterConfig:
    suffixes = data.get("suffixes", [".tif", ".tiff"])
    if isinstance(suffixes, str) or not suffixes:
        raise ConfigError(
            f"raster.suffixes must be a non-empty list, got {suffixes!r}"
        )
    return RasterConfig(
        dpi=float(data["dpi"]),
        suffixes=tuple(str(s).lower() for s in suffixes),
    )


def _parse_span(name: str, data: dict[str, Any]) -> FieldSpan:
    span = FieldSpan(start=int(data["start"]), length=int(data["length"]))
    if span.start < 1 or span.length < 1:
        raise ConfigError(
            f"filename.{name} needs start >= 1 and length >= 1, "
            f"got start={span.start}, length={span.length}"
        )
    return span


def _parse_filename(data: dict[str, Any]) -> FilenameConfig:
    return FilenameConfig(
        tower=_parse_span("tower", data["tower"]),
        cylinder=_parse_span("cylinder", data["cylinder"]),
        section=_parse_span("section", data["section"]),
        half=_parse_span("half", data["half"]),
    )


def _parse_polling(data: dict[str, Any]) -> PollingConfig:
    """Parse the ``polling`` section; tiers fall back to the defaults."""
    kwargs: dict[str, Any] = {}
    raw_tiers = data.get("validate_tiers")
    if raw_tiers is not None:
        kwargs["validate_tiers"] = tuple(
            ValidateTier(
                delay_s=float(t["delay_s"]),
                attempts=int(t["attempts"]) if t.get("attempts") is not None else None,
            )
            for t in raw_tiers
        )
    return PollingConfig(
        interval_s=float(data["interval_s"]),
        settle_delay_s=float(data.get("settle_delay_s", 0.1)),
        transfer_retries=int(data.get("transfer_retries", 3)),
        transfer_delay_s=float(data.get("transfer_delay_s", 0.5)),
        **kwargs,
    )


def _parse_logging(data: dict[str, Any]) -> LoggingConfig:
    return LoggingConfig(
        level=str(data.get("level", "INFO")).upper(),
        json=bool(data.get("json", False)),
        file_name=str(data.get("file_name", "fanout.log")),
    )


def _validate_config(cfg: PlantConfig) -> None:
    """Validate cross-field consistency.

    Raises
    ------
    ConfigError
        On any invalid combination.
    """
    # -- Slots are distinct directories -----------------------------------
    slots = cfg.paths.slots()
    seen: dict[Path, str] = {}
    for name in ("intake", "processing", "delivery", "rejected"):
        path = slots[name]
        if path in seen:
            raise ConfigError(
                f"paths.{name} and paths.{seen[path]} point to the same "
                f"directory: {path}"
            )
        seen[path] = name

    # -- Raster -------------------------------------------------------------
    if cfg.raster.dpi <= 0:
        raise ConfigError(f"raster.dpi must be > 0, got {cfg.raster.dpi}")
    for suffix in cfg.raster.suffixes:
        if not suffix.startswith("."):
            raise ConfigError(f"raster suffix must start with '.', got {suffix!r}")
        if suffix == ".tmp":
            raise ConfigError("'.tmp' is reserved for files in transit")

    # -- Marks ----------------------------------------------------------------
    for name, mark in cfg.marks.items():
        if mark.x < 0 or mark.y < 0:
            raise ConfigError(
                f"Mark '{name}' offset must be >= 0, got ({mark.x}, {mark.y})"
            )

    # -- Polling --------------------------------------------------------------
    p = cfg.polling
    if p.interval_s < 0:
        raise ConfigError(f"polling.interval_s must be >= 0, got {p.interval_s}")
    if p.settle_delay_s < 0:
        raise ConfigError(
            f"polling.settle_delay_s must be >= 0, got {p.settle_delay_s}"
        )
    if p.transfer_retries < 0:
        raise ConfigError(
            f"polling.transfer_retries must be >= 0, got {p.transfer_retries}"
        )
    if p.transfer_delay_s < 0:
        raise ConfigError(
            f"polling.transfer_delay_s must be >= 0, got {p.transfer_delay_s}"
        )
    if not p.validate_tiers:
        raise ConfigError("polling.validate_tiers must not be empty")
    for i, tier in enumerate(p.validate_tiers):
        if tier.delay_s < 0:
            raise ConfigError(f"validate tier {i}: delay_s must be >= 0")
        if tier.attempts is not None and tier.attempts < 1:
            raise ConfigError(f"validate tier {i}: attempts must be >= 1")
    if p.validate_tiers[-1].attempts is not None:
        logger.warning(
            "Last validate tier is bounded (%d attempts); its delay is reused "
            "once it runs out",
            p.validate_tiers[-1].attempts,
        )

    # -- Logging --------------------------------------------------------------
    if cfg.logging.level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ConfigError(f"Unknown logging.level '{cfg.logging.level}'")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(path: str | Path | None = None) -> PlantConfig:
    """Load and validate plant configuration from YAML.

    Parameters
    ----------
    path : str | Path | None
        Path to ``plant.yaml``.  ``None`` loads the default shipped
        alongside this module.

    Returns
    -------
    PlantConfig
        Fully validated, frozen configuration object.

    Raises
    ------
    ConfigError
        If the file is missing, or any field is missing or fails
        validation.
    """
    if path is None:
        path = Path(__file__).parent / "plant.yaml"
    else:
        path = Path(path)

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    logger.info("Loading configuration from %s", path)

    try:
        data = load_yaml(path)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse configuration file {path}: {exc}") from exc
    if data is None:
        raise ConfigError(f"Empty configuration file: {path}")
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root must be a mapping: {path}")

    base = path.resolve().parent

    try:
        config = PlantConfig(
            source=path.resolve(),
            paths=_parse_paths(base, data["paths"]),
            marks=_parse_marks(data["marks"]),
            raster=_parse_raster(data["raster"]),
            filename=_parse_filename(data["filename"]),
            geometry_source=_resolve(base, data["geometry"]["source"]),
            polling=_parse_polling(data["polling"]),
            logging=_parse_logging(data.get("logging") or {}),
        )

        _validate_config(config)
        logger.info("Configuration loaded successfully")
        return config

    except KeyError as exc:
        raise ConfigError(
            f"Missing required configuration key: {exc}"
        ) from exc
    except (TypeError, ValueError, AttributeError) as exc:
        raise ConfigError(
            f"Invalid configuration value: {exc}"
        ) from exc
