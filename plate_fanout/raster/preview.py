"""Low-fidelity colour preview of a CMYK plate set.

Each preview pixel stands for a 3x3 block of plate pixels.  The ink
coverage of that block on every plate (0-9 on pixels, see
``BitImage.area_coverage``) darkens the complementary RGB channel; black
darkens all three.  This is a sampling aid for operators, not a proof.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from plate_fanout.raster.bitimage import BitImage

PAPER = 252
COLOUR_WEIGHT = 12
BLACK_WEIGHT = 16


@dataclass
class CmykPlates:
    """The four separations of one page."""

    cyan: BitImage
    magenta: BitImage
    yellow: BitImage
    black: BitImage

    def separations(self) -> dict[str, BitImage]:
        return {
            "C": self.cyan,
            "M": self.magenta,
            "Y": self.yellow,
            "K": self.black,
        }


def coverage_grid(image: BitImage, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """``image.area_coverage(x, y)`` for every ``(y, x)`` in the grid.

    Vectorized equivalent of calling ``area_coverage`` per sample point,
    including its one-pixel up-left offset.

    Returns
    -------
    np.ndarray
        ``(len(ys), len(xs))`` integer array of on-pixel counts (0-9).
    """
    xs = np.asarray(xs, dtype=np.int64)
    ys = np.asarray(ys, dtype=np.int64)
    pixels = image.to_array()

    # area_coverage(x, y) reads 0-based columns x-3..x-1 and rows y-3..y-1;
    # after padding by 3 those start at x and y.
    pad_h = max(image.height, int(ys.max(initial=0))) + 6
    pad_w = max(image.width, int(xs.max(initial=0))) + 6
    padded = np.zeros((pad_h, pad_w), dtype=np.int64)
    padded[3 : 3 + image.height, 3 : 3 + image.width] = pixels

    rows = np.clip(ys, 0, None)[:, None]
    cols = np.clip(xs, 0, None)[None, :]
    total = np.zeros((len(ys), len(xs)), dtype=np.int64)
    for dy in range(3):
        for dx in range(3):
            total += padded[rows + dy, cols + dx]
    return total


def render_preview(plates: CmykPlates, out_width: int, out_height: int) -> np.ndarray:
    """Compose an RGB preview at a third of *out_width* x *out_height*.

    Border pixels of the preview stay paper white.

    Returns
    -------
    np.ndarray
        ``(out_height // 3, out_width // 3, 3)`` uint8 RGB image.
    """
    width, height = out_width // 3, out_height // 3
    rgb = np.full((height, width, 3), PAPER, dtype=np.uint8)
    if width < 3 or height < 3:
        return rgb

    xs = np.arange(1, width - 1) * 3
    ys = np.arange(1, height - 1) * 3

    black = coverage_grid(plates.black, xs, ys) * BLACK_WEIGHT
    for channel, plate in enumerate((plates.cyan, plates.magenta, plates.yellow)):
        ink = coverage_grid(plate, xs, ys) * COLOUR_WEIGHT + black
        rgb[1:-1, 1:-1, channel] = np.clip(PAPER - ink, 0, 255).astype(np.uint8)

    return rgb


def total_area_coverage(
    plates: CmykPlates,
    x: int,
    y: int,
    sample_area: int,
) -> dict[str, float]:
    """Fraction of on pixels per separation in a square sample.

    The sample covers pixels ``x .. x + sample_area - 1`` by
    ``y .. y + sample_area - 1`` (1-based); pixels outside a plate count
    as off.

    Returns
    -------
    dict[str, float]
        Coverage in ``[0, 1]`` keyed by ``"C"``, ``"M"``, ``"Y"``, ``"K"``.
    """
    if sample_area <= 0:
        raise ValueError(f"sample_area must be > 0, got {sample_area}")

    cells = sample_area * sample_area
    coverage = {}
    for name, plate in plates.separations().items():
        on = sum(
            plate.get_pixel(x + i, y + j)
            for j in range(sample_area)
            for i in range(sample_area)
        )
        coverage[name] = on / cells
    return coverage
