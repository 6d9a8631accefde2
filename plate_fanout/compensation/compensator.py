"""Fan-out compensator -- applies a compensation plan to a plate in place.

Sequence for one plate (original height ``H``):

    1. Erase the alignment marks (overlay a blank of the same size) so
       decimation does not distort them.
    2. ``downsize_height(scale)``.
    3. Pad back towards ``H``: all removed rows at the bottom for ``up``,
       at the top for ``down``, half on each side for ``middle`` (an odd
       row is dropped, so a ``middle`` plate may end one row short).
    4. ``move_image(direction, shift)``; ``middle`` plates are not moved.
    5. Stamp the lead and trail marks back at their fixed coordinates.

The marks drive physical register on the press, so they are restored
exactly where they were regardless of what happened to the image.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from plate_fanout.compensation.geometry import (
    DOWN,
    MIDDLE,
    UP,
    CompensationPlan,
    GeometryParameters,
    plan_compensation,
)
from plate_fanout.errors import GeometryError
from plate_fanout.raster.bitimage import BitImage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlignmentMark:
    """A register mark and the plate offset it is stamped at."""

    name: str
    image: BitImage
    x: int
    y: int

    def blank(self) -> BitImage:
        """All-off image with the mark's dimensions."""
        return BitImage.create(self.image.width, self.image.height)


class FanoutCompensator:
    """Compress and shift colour plates to counter paper fan-out.

    Parameters
    ----------
    marks : Sequence[AlignmentMark]
        Register marks to protect from resizing (usually lead and trail).
    """

    def __init__(self, marks: Sequence[AlignmentMark] = ()) -> None:
        self.marks = tuple(marks)

    def remove_marks(self, image: BitImage) -> None:
        for mark in self.marks:
            image.insert(mark.blank(), mark.x, mark.y)

    def restore_marks(self, image: BitImage) -> None:
        for mark in self.marks:
            image.insert(mark.image, mark.x, mark.y)

    def compensate(
        self,
        image: BitImage,
        params: GeometryParameters,
    ) -> CompensationPlan | None:
        """Apply fan-out compensation to *image* in place.

        Returns
        -------
        CompensationPlan | None
            The plan that was applied, or ``None`` when the plate passes
            through unchanged (reference layer or zero fan-out).

        Raises
        ------
        GeometryError
            If the geometry cannot be turned into a plan for this plate.
        """
        original_height = image.height
        try:
            plan = plan_compensation(params, original_height)
        except ValueError as exc:
            raise GeometryError(
                f"Tower {params.tower} cylinder {params.cylinder}: {exc}"
            ) from exc

        if plan is None:
            logger.info(
                "No compensation for tower %s cylinder %d (colour=%s, fanout=%.3f mm)",
                params.tower,
                params.cylinder,
                params.colour,
                params.fanout_mm,
            )
            return None

        logger.info(
            "Compensating %s plate: fanout=%d px, scale=%d, direction=%s, shift=%d",
            params.colour,
            plan.pixel_fanout,
            plan.scale,
            plan.direction,
            plan.shift,
        )

        self.remove_marks(image)

        image.downsize_height(plan.scale)
        logger.info("Resized to %d x %d", image.width, image.height)

        removed = original_height - image.height
        if plan.direction == UP:
            image.pad_height(image.height + 1, removed)
        elif plan.direction == DOWN:
            image.pad_height(1, removed)
        else:
            half = removed // 2
            image.pad_height(1, half)
            image.pad_height(image.height + 1, half)

        if plan.direction != MIDDLE:
            image.move_image(plan.direction, plan.shift)

        self.restore_marks(image)
        return plan
