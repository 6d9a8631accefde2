"""Polling loop that drives plates through the conveyor.

One iteration::

    wait until all directories exist
    intake → processing
    compensate the plate that just arrived (if any)
    processing → delivery
    sleep polling.interval_s

Only one plate is ever in flight.  A plate that fails validation goes to
the rejected directory and the loop carries on; a slot anomaly ends the
iteration without moving anything; a ``TransferError`` propagates.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from plate_fanout.compensation.plates import PlateProcessor
from plate_fanout.configs.loader import PlantConfig
from plate_fanout.conveyor.slots import PROCESSING, Conveyor
from plate_fanout.errors import PlateValidationError, SlotAnomaly

logger = logging.getLogger(__name__)


class PlateConveyor:
    """Couples a ``Conveyor`` with a ``PlateProcessor``.

    Parameters
    ----------
    conveyor : Conveyor
        Slot moves and validation.
    processor : PlateProcessor
        Compensates plates in the processing slot.
    interval_s : float
        Pause between iterations.
    sleep : Callable[[float], None]
        Injected for tests.
    """

    def __init__(
        self,
        conveyor: Conveyor,
        processor: PlateProcessor,
        interval_s: float,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.conveyor = conveyor
        self.processor = processor
        self.interval_s = interval_s
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        config: PlantConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> PlateConveyor:
        return cls(
            conveyor=Conveyor.from_config(config, sleep=sleep),
            processor=PlateProcessor.from_config(config, sleep=sleep),
            interval_s=config.polling.interval_s,
            sleep=sleep,
        )

    def _process(self, name: str) -> None:
        path = self.conveyor.slot_dir(PROCESSING) / name
        try:
            self.processor.process(path)
        except PlateValidationError as exc:
            logger.error("Rejecting %s: %s", name, exc)
            self.conveyor.reject(name)

    def run_once(self) -> str | None:
        """Run one iteration.

        Returns
        -------
        str | None
            Filename handed to delivery in this iteration, if any.

        Raises
        ------
        TransferError
            If a move or plate read/write keeps failing.
        """
        self.conveyor.wait_until_valid()

        anomalies = self.conveyor.state().anomalies()
        if anomalies:
            for slot, files in anomalies.items():
                logger.warning(
                    "%d plates in %s (%s); waiting for operator",
                    len(files),
                    slot,
                    ", ".join(files),
                )
            return None

        try:
            arrived = self.conveyor.intake_to_processing()
            if arrived is not None:
                self._process(arrived)
            return self.conveyor.processing_to_delivery()
        except SlotAnomaly as exc:
            # a plate arrived after the snapshot
            logger.warning("%s; waiting for operator", exc)
            return None

    def run(self, iterations: int | None = None) -> int:
        """Poll until *iterations* have run (forever when ``None``).

        Returns
        -------
        int
            Number of plates delivered.
        """
        leftover = self.conveyor.list_slot(PROCESSING)
        if leftover:
            logger.warning(
                "Found %s in processing from an earlier run; it will be "
                "delivered as is",
                ", ".join(leftover),
            )

        logger.info("Conveyor started (interval %.1f s)", self.interval_s)
        delivered = 0
        count = 0
        while iterations is None or count < iterations:
            if self.run_once() is not None:
                delivered += 1
            count += 1
            if iterations is None or count < iterations:
                self._sleep(self.interval_s)

        logger.info("Conveyor stopped after %d iterations, %d delivered", count, delivered)
        return delivered
