"""Three-slot file conveyor: intake → processing → delivery.

Each slot is a directory that should hold at most one plate:

    intake      RIP output, picked up one plate at a time
    processing  the plate being compensated
    delivery    watched by the CTP, which removes plates as it images them

Occupancy is the only coordination with the external RIP and CTP, so the
moves are guarded:

- intake → processing only when processing is empty;
- processing → delivery only when delivery is empty, and through a
  ``.tmp`` name that is renamed once the file is complete;
- more than one plate in intake or processing is a ``SlotAnomaly``.  Nothing
  is moved until an operator clears the slot, because there is no way to
  tell which plate is the right one.

Transient ``OSError``s (locked files, a network share dropping out) are
retried with a fixed delay, then attempted once more; if that fails too the
``TransferError`` ends the program.
"""

from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, TypeVar

from plate_fanout.configs.loader import (
    PathsConfig,
    PlantConfig,
    PollingConfig,
    RasterConfig,
)
from plate_fanout.errors import SlotAnomaly
from plate_fanout.utils import fs
from plate_fanout.utils.retry import retry_io

logger = logging.getLogger(__name__)

T = TypeVar("T")

INTAKE = "intake"
PROCESSING = "processing"
DELIVERY = "delivery"
REJECTED = "rejected"


@dataclass(frozen=True)
class ConveyorState:
    """Snapshot of the plates in each slot."""

    intake: tuple[str, ...] = ()
    processing: tuple[str, ...] = ()
    delivery: tuple[str, ...] = ()

    def anomalies(self) -> dict[str, tuple[str, ...]]:
        """Single-plate slots that hold more than one plate."""
        return {
            slot: files
            for slot, files in ((INTAKE, self.intake), (PROCESSING, self.processing))
            if len(files) > 1
        }

    @property
    def is_idle(self) -> bool:
        return not (self.intake or self.processing or self.delivery)


class Conveyor:
    """Slot listing, path validation and the guarded moves.

    Parameters
    ----------
    paths : PathsConfig
        Slot directories.
    raster : RasterConfig
        Decides which directory entries are plates.
    polling : PollingConfig
        Settle delay, transfer retries and validation backoff tiers.
    sleep : Callable[[float], None]
        Injected for tests.
    """

    def __init__(
        self,
        paths: PathsConfig,
        raster: RasterConfig,
        polling: PollingConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.paths = paths
        self.raster = raster
        self.polling = polling
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        config: PlantConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Conveyor:
        return cls(config.paths, config.raster, config.polling, sleep=sleep)

    # ------------------------------------------------------------------
    # Slot inspection
    # ------------------------------------------------------------------

    def _io(self, operation: Callable[[], T], description: str) -> T:
        return retry_io(
            operation,
            retries=self.polling.transfer_retries,
            delay_s=self.polling.transfer_delay_s,
            description=description,
            sleep=self._sleep,
        )

    def slot_dir(self, slot: str) -> Path:
        return getattr(self.paths, slot)

    def list_slot(self, slot: str) -> tuple[str, ...]:
        """Plate filenames in *slot*, sorted; files in transit are ignored."""
        directory = self.slot_dir(slot)

        def scan() -> tuple[str, ...]:
            return tuple(sorted(
                p.name for p in directory.iterdir()
                if p.is_file() and self.raster.is_plate(p)
            ))

        return self._io(scan, f"list {slot}")

    def state(self) -> ConveyorState:
        return ConveyorState(
            intake=self.list_slot(INTAKE),
            processing=self.list_slot(PROCESSING),
            delivery=self.list_slot(DELIVERY),
        )

    # ------------------------------------------------------------------
    # Path validation
    # ------------------------------------------------------------------

    def missing(self) -> list[str]:
        """Names of required directories that do not currently exist."""
        return [
            name for name, path in self.paths.slots().items()
            if not path.is_dir()
        ]

    def validate(self) -> bool:
        """``True`` when every required directory exists."""
        return not self.missing()

    def wait_until_valid(self, max_attempts: int | None = None) -> int:
        """Block until ``validate()`` passes, backing off in tiers.

        Parameters
        ----------
        max_attempts : int | None
            Give up after this many failed checks and return.  ``None``
            waits forever.

        Returns
        -------
        int
            Number of failed checks before the paths became valid.
        """
        failures = 0
        while True:
            missing = self.missing()
            if not missing:
                if failures:
                    logger.info("All paths reachable again after %d checks", failures)
                return failures
            if max_attempts is not None and failures >= max_attempts:
                return failures

            delay = self.polling.validate_delay(failures)
            failures += 1
            logger.warning(
                "Missing directories %s (check %d); retrying in %.0f s",
                ", ".join(f"{name}={self.slot_dir(name)}" for name in missing),
                failures,
                delay,
            )
            self._sleep(delay)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _single(self, slot: str) -> str | None:
        files = self.list_slot(slot)
        if len(files) > 1:
            raise SlotAnomaly(slot, list(files))
        return files[0] if files else None

    def intake_to_processing(self) -> str | None:
        """Move the intake plate into processing.

        Returns
        -------
        str | None
            The moved filename, or ``None`` if intake is empty or processing
            is occupied.

        Raises
        ------
        SlotAnomaly
            If intake holds more than one plate.
        TransferError
            If the move keeps failing.
        """
        name = self._single(INTAKE)
        if name is None:
            return None
        if self.list_slot(PROCESSING):
            logger.debug("Processing slot occupied; %s stays in intake", name)
            return None

        src = self.paths.intake / name
        dest = self.paths.processing / name
        self._sleep(self.polling.settle_delay_s)
        self._io(lambda: shutil.move(str(src), str(dest)), f"move {name} to processing")
        logger.info("%s moved to processing", name)
        return name

    def processing_to_delivery(self) -> str | None:
        """Hand the processed plate to the CTP.

        The plate appears in delivery under a ``.tmp`` name first and is
        renamed once complete.

        Returns
        -------
        str | None
            The delivered filename, or ``None`` if processing is empty or
            delivery is occupied.

        Raises
        ------
        SlotAnomaly
            If processing holds more than one plate.
        TransferError
            If the move keeps failing.
        """
        name = self._single(PROCESSING)
        if name is None:
            return None
        if self.list_slot(DELIVERY):
            logger.debug("Delivery slot occupied; %s waits in processing", name)
            return None

        src = self.paths.processing / name
        dest = self.paths.delivery / name
        self._sleep(self.polling.settle_delay_s)
        self._io(lambda: fs.atomic_move(src, dest), f"move {name} to delivery")
        logger.info("%s delivered", name)
        return name

    def reject(self, name: str) -> Path:
        """Move *name* from processing to the rejected directory."""
        src = self.paths.processing / name
        dest = self.paths.rejected / name
        if dest.exists():
            logger.warning("Replacing earlier rejected plate %s", name)
        self._io(lambda: fs.atomic_move(src, dest), f"move {name} to rejected")
        logger.info("%s moved to rejected", name)
        return dest
