"""Fan-out geometry: from a physical measurement to row operations.

All functions here are pure.  Units:
    - Fan-out: millimetres on paper
    - Resolution: dots per inch
    - Everything downstream: whole pixels / rows

Pipeline for one plate::

    fanout_mm --(dpi)--> pixel_fanout --(height)--> scale
    (roll_pattern, section, cylinder) --> direction
    (roll_pattern, section, pixel_fanout) --> shift

The decimation factor inverts ``BitImage.downsize_height``'s height
formula ``int(H * (1 - 1/scale))``.  Both use plain float truncation; the
number of rows actually removed can differ from ``pixel_fanout`` by a row
or so.
"""

from __future__ import annotations

from dataclasses import dataclass

INCHES_PER_MM = 0.0393701

# Cylinders 1-6 carry colour plates; higher indices are the black reference.
CYLINDER_COLOURS = {1: "C", 2: "C", 3: "M", 4: "M", 5: "Y", 6: "Y"}

UP = "up"
DOWN = "down"
MIDDLE = "middle"


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GeometryParameters:
    """Press geometry for one plate (read-only input to the compensator)."""

    tower: str
    cylinder: int
    section: str
    fanout_mm: float
    roll_pattern: str
    dpi: float

    @property
    def colour(self) -> str | None:
        """``"C"``, ``"M"`` or ``"Y"``; ``None`` for the reference layer."""
        return colour_for_cylinder(self.cylinder)

    @property
    def is_front(self) -> bool:
        """Odd cylinders are front-side, even cylinders back-side."""
        return self.cylinder % 2 == 1

    @property
    def requires_compensation(self) -> bool:
        return self.colour is not None and self.fanout_mm != 0


@dataclass(frozen=True)
class CompensationPlan:
    """Row operations derived for one plate."""

    pixel_fanout: int
    scale: int
    direction: str
    shift: int


# ---------------------------------------------------------------------------
# Derivations
# ---------------------------------------------------------------------------


def colour_for_cylinder(cylinder: int) -> str | None:
    """Colour printed by *cylinder*, or ``None`` above cylinder 6."""
    if cylinder < 1:
        raise ValueError(f"Cylinder index must be >= 1, got {cylinder}")
    return CYLINDER_COLOURS.get(cylinder)


def dots_per_mm(dpi: float) -> float:
    return dpi * INCHES_PER_MM


def pixel_fanout(dpi: float, fanout_mm: float) -> int:
    """Fan-out distance in whole pixels (truncated toward zero)."""
    if fanout_mm < 0:
        raise ValueError(f"Fan-out must be >= 0 mm, got {fanout_mm}")
    return int(dots_per_mm(dpi) * fanout_mm)


def decimation_factor(height: int, fanout_px: int) -> int:
    """Scale for ``downsize_height`` that removes about *fanout_px* rows.

    ``scale = int(1 / (1 - (H - fanout_px) / H))``.  Returns 0 (no
    decimation) when *fanout_px* is 0.

    Raises
    ------
    ValueError
        If *fanout_px* is negative or not smaller than *height*.
    """
    if fanout_px < 0:
        raise ValueError(f"Pixel fan-out must be >= 0, got {fanout_px}")
    if fanout_px == 0:
        return 0
    if fanout_px >= height:
        raise ValueError(
            f"Pixel fan-out {fanout_px} does not fit in a plate of height {height}"
        )
    return int(1 / (1 - (height - fanout_px) / height))


def _check_pattern(roll_pattern: str) -> None:
    if not 1 <= len(roll_pattern) <= 4:
        raise ValueError(
            f"Roll position pattern must have 1-4 sections, got {roll_pattern!r}"
        )


def compute_direction(roll_pattern: str, section: str, cylinder: int) -> str:
    """Direction in which the plate content is pushed.

    Sections at the start of the roll move down, sections at the end move
    up, a lone or central section stays in the middle.  Back-side (even)
    cylinders are mirrored, so up and down swap; middle never changes.
    """
    _check_pattern(roll_pattern)
    n = len(roll_pattern)

    if n == 1:
        direction = MIDDLE
    elif n == 2:
        direction = DOWN if section == roll_pattern[0] else UP
    elif n == 3:
        if section == roll_pattern[0]:
            direction = DOWN
        elif section == roll_pattern[2]:
            direction = UP
        else:
            direction = MIDDLE
    else:
        direction = DOWN if section in (roll_pattern[0], roll_pattern[1]) else UP

    if cylinder % 2 == 0:
        direction = {UP: DOWN, DOWN: UP}.get(direction, direction)
    return direction


def compute_shift_pixels(roll_pattern: str, section: str, fanout_px: int) -> int:
    """Number of rows the content is shifted after decimation."""
    _check_pattern(roll_pattern)
    n = len(roll_pattern)

    if n <= 2:
        return 0
    if n == 3:
        return 0 if section == roll_pattern[1] else fanout_px // 2
    if section in (roll_pattern[0], roll_pattern[3]):
        return fanout_px
    return 0


def plan_compensation(params: GeometryParameters, height: int) -> CompensationPlan | None:
    """Derive the row operations for a plate of *height* rows.

    Returns ``None`` when the plate passes through untouched: the black
    reference layer (cylinder > 6) or a fan-out of exactly 0 mm.

    Raises
    ------
    ValueError
        On a negative fan-out, a bad roll pattern or a fan-out that does
        not fit the plate.
    """
    if not params.requires_compensation:
        return None

    fanout_px = pixel_fanout(params.dpi, params.fanout_mm)
    return CompensationPlan(
        pixel_fanout=fanout_px,
        scale=decimation_factor(height, fanout_px),
        direction=compute_direction(params.roll_pattern, params.section, params.cylinder),
        shift=compute_shift_pixels(params.roll_pattern, params.section, fanout_px),
    )
