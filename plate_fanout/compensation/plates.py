"""Per-file plate processing: filename → geometry → compensated plate.

A plate's press position is encoded in its filename at fixed 1-based
offsets (``FilenameConfig``).  The tower id selects an entry of the
geometry document; the cylinder selects the colour and therefore the
fan-out distance.  Black plates (cylinder > 6) are passed through without
consulting the geometry document at all.

``PlateProcessor.process`` rewrites the plate in place (atomic write to a
``.tmp`` sibling, then rename) and leaves skipped plates untouched.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from plate_fanout.compensation.compensator import AlignmentMark, FanoutCompensator
from plate_fanout.compensation.geometry import (
    CompensationPlan,
    GeometryParameters,
    colour_for_cylinder,
)
from plate_fanout.configs.loader import FilenameConfig, PlantConfig
from plate_fanout.errors import (
    ConfigError,
    FilenameError,
    GeometryError,
    PlateValidationError,
)
from plate_fanout.raster import codec
from plate_fanout.utils.logging_config import pop_context, push_context
from plate_fanout.utils.retry import retry_io
from plate_fanout.utils.validators import GeometryDocumentV1, load_geometry_document

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Filename parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlateName:
    """Press position decoded from a plate filename."""

    filename: str
    tower: str
    cylinder: int
    section: str
    half: str

    @property
    def colour(self) -> str | None:
        return colour_for_cylinder(self.cylinder)


def parse_plate_name(filename: str, layout: FilenameConfig) -> PlateName:
    """Decode *filename* using the fixed offsets in *layout*.

    Raises
    ------
    FilenameError
        If the name is too short for a field or the cylinder is not a
        positive integer.
    """
    for field, span in layout.fields().items():
        if len(filename) < span.end:
            raise FilenameError(
                f"{filename}: too short for {field} at "
                f"{span.start}..{span.end}"
            )

    raw_cylinder = layout.cylinder.extract(filename)
    try:
        cylinder = int(raw_cylinder)
    except ValueError:
        raise FilenameError(
            f"{filename}: cylinder field {raw_cylinder!r} is not a number"
        ) from None
    if cylinder < 1:
        raise FilenameError(f"{filename}: cylinder must be >= 1, got {cylinder}")

    return PlateName(
        filename=filename,
        tower=layout.tower.extract(filename),
        cylinder=cylinder,
        section=layout.section.extract(filename),
        half=layout.half.extract(filename),
    )


# ---------------------------------------------------------------------------
# Geometry lookup
# ---------------------------------------------------------------------------


def geometry_for(
    plate: PlateName,
    document: GeometryDocumentV1,
    dpi: float,
) -> GeometryParameters:
    """Build ``GeometryParameters`` for a colour plate.

    Raises
    ------
    GeometryError
        If the tower is unknown or has no fan-out for the plate's colour.
    """
    colour = plate.colour
    if colour is None:
        raise GeometryError(
            f"{plate.filename}: cylinder {plate.cylinder} carries no "
            f"compensated colour"
        )
    try:
        tower = document.tower(plate.tower)
    except KeyError as exc:
        raise GeometryError(f"{plate.filename}: {exc.args[0]}") from None

    if colour not in tower.fanout_mm:
        raise GeometryError(
            f"{plate.filename}: tower {plate.tower} has no fan-out for "
            f"colour {colour}"
        )

    return GeometryParameters(
        tower=plate.tower,
        cylinder=plate.cylinder,
        section=plate.section,
        fanout_mm=tower.fanout_mm[colour],
        roll_pattern=tower.roll_position,
        dpi=dpi,
    )


def load_geometry(path: str | Path) -> GeometryDocumentV1:
    """Load the geometry document, mapping failures to ``GeometryError``."""
    try:
        return load_geometry_document(path)
    except (FileNotFoundError, ValueError) as exc:
        raise GeometryError(str(exc)) from exc


def load_marks(config: PlantConfig) -> list[AlignmentMark]:
    """Read the configured mark rasters, lead first.

    Raises
    ------
    ConfigError
        If a mark file is missing or not a valid plate raster.
    """
    marks = []
    for name in sorted(config.marks, key=lambda n: (n != "lead", n != "trail", n)):
        mark = config.marks[name]
        path = config.mark_path(name)
        try:
            image = codec.read_plate(path)
        except (OSError, PlateValidationError) as exc:
            raise ConfigError(f"Cannot load mark '{name}' from {path}: {exc}") from exc
        marks.append(AlignmentMark(name=name, image=image, x=mark.x, y=mark.y))
        logger.debug(
            "Loaded mark %s (%d x %d) at (%d, %d)",
            name,
            image.width,
            image.height,
            mark.x,
            mark.y,
        )
    return marks


# ---------------------------------------------------------------------------
# Processor
# ---------------------------------------------------------------------------


class PlateProcessor:
    """Compensate one plate file in place.

    Parameters
    ----------
    layout : FilenameConfig
        Offsets of the position fields in plate filenames.
    geometry_source : Path
        Geometry document, re-read for every plate so measurements can be
        updated while the conveyor runs.
    compensator : FanoutCompensator
        Holds the alignment marks.
    dpi : float
        Plate resolution; plates at another resolution are rejected.
    retries, retry_delay_s : int, float
        Retry budget for reading and writing the plate file.
    sleep : Callable[[float], None]
        Injected for tests.
    """

    def __init__(
        self,
        layout: FilenameConfig,
        geometry_source: Path,
        compensator: FanoutCompensator,
        dpi: float,
        retries: int = 3,
        retry_delay_s: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.layout = layout
        self.geometry_source = Path(geometry_source)
        self.compensator = compensator
        self.dpi = dpi
        self.retries = retries
        self.retry_delay_s = retry_delay_s
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        config: PlantConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> PlateProcessor:
        """Build a processor with the marks and geometry named in *config*."""
        return cls(
            layout=config.filename,
            geometry_source=config.geometry_source,
            compensator=FanoutCompensator(load_marks(config)),
            dpi=config.raster.dpi,
            retries=config.polling.transfer_retries,
            retry_delay_s=config.polling.transfer_delay_s,
            sleep=sleep,
        )

    def _io(self, operation, description: str):
        return retry_io(
            operation,
            retries=self.retries,
            delay_s=self.retry_delay_s,
            description=description,
            sleep=self._sleep,
        )

    def process(self, path: str | Path) -> CompensationPlan | None:
        """Compensate the plate at *path*.

        Returns
        -------
        CompensationPlan | None
            The applied plan, or ``None`` if the plate was left untouched.

        Raises
        ------
        PlateValidationError
            If the filename, geometry or container is invalid.
        TransferError
            If the file cannot be read or written after retries.
        """
        path = Path(path)
        push_context(plate=path.name)
        try:
            plate = parse_plate_name(path.name, self.layout)
            if plate.colour is None:
                logger.info(
                    "Cylinder %d is the reference layer; passing through",
                    plate.cylinder,
                )
                return None

            params = geometry_for(plate, load_geometry(self.geometry_source), self.dpi)
            if not params.requires_compensation:
                logger.info(
                    "Zero fan-out for tower %s colour %s; passing through",
                    params.tower,
                    params.colour,
                )
                return None

            image = self._io(
                lambda: codec.read_plate(path, dpi=self.dpi),
                f"read {path.name}",
            )
            logger.info("Loaded %d x %d", image.width, image.height)

            plan = self.compensator.compensate(image, params)
            if plan is None:
                return None

            self._io(
                lambda: codec.write_plate(image, path, dpi=self.dpi),
                f"write {path.name}",
            )
            logger.info("Saved compensated plate")
            return plan
        finally:
            pop_context(["plate"])
