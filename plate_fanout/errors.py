"""Error taxonomy shared by the raster, compensation and conveyor layers.

Handling policy (applied by ``conveyor.runner`` and the CLI):

``PlateValidationError``
    The current plate is unusable (bad container, geometry or filename).
    The plate is moved to the rejected slot; polling continues.
``SlotAnomaly``
    A slot holds more than one plate. Logged as a warning; the iteration
    stops without moving anything until an operator clears the slot.
``TransferError``
    A move kept failing after all retries. Fatal.
``ConfigError``
    Missing or invalid configuration at startup. Fatal.
"""

from __future__ import annotations


class PlateFanoutError(Exception):
    """Base exception for all plate_fanout errors."""

    pass


class ConfigError(PlateFanoutError):
    """Raised when configuration loading or validation fails."""

    pass


class PlateValidationError(PlateFanoutError):
    """A single plate cannot be processed and must be rejected."""

    pass


class PlateFormatError(PlateValidationError):
    """The container metadata does not describe a 1-bit MINISWHITE plate."""

    pass


class GeometryError(PlateValidationError):
    """Geometry for the plate is missing, unparsable or out of range."""

    pass


class FilenameError(PlateValidationError):
    """The plate's filename does not carry the expected fields."""

    pass


class SlotAnomaly(PlateFanoutError):
    """A conveyor slot holds more than one plate; operator action required."""

    def __init__(self, slot: str, files: list[str]) -> None:
        self.slot = slot
        self.files = files
        super().__init__(
            f"More than one plate present in {slot}: {', '.join(files)}"
        )


class TransferError(PlateFanoutError):
    """Moving a plate between slots failed after all retries."""

    pass
