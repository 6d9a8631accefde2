#!/usr/bin/env python3
"""
Render Preview Script.

Compose a low-resolution RGB preview from the four separations of a page,
and optionally print the ink coverage of a sample square.

Usage:
    python -m plate_fanout.scripts.render_preview \\
        --cyan C.tif --magenta M.tif --yellow Y.tif --black K.tif \\
        --out preview.png
    python -m plate_fanout.scripts.render_preview ... --sample 4000 2000 600
"""

from __future__ import annotations

import argparse
import logging
import sys

from plate_fanout.errors import PlateValidationError
from plate_fanout.raster.codec import read_plate
from plate_fanout.raster.preview import (
    CmykPlates,
    render_preview,
    total_area_coverage,
)
from plate_fanout.utils import fs
from plate_fanout.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Render a CMYK preview of four plate separations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    for colour in ("cyan", "magenta", "yellow", "black"):
        parser.add_argument(
            f"--{colour}",
            required=True,
            type=str,
            help=f"{colour.capitalize()} plate (1-bit TIFF)",
        )
    parser.add_argument(
        "--out",
        "-o",
        type=str,
        required=True,
        help="Output image (format from extension, e.g. .png)",
    )
    parser.add_argument(
        "--sample",
        nargs=3,
        type=int,
        metavar=("X", "Y", "SIZE"),
        help="Also report ink coverage of a SIZE x SIZE square at (X, Y)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging("INFO", context={"app": "preview"})

    try:
        plates = CmykPlates(
            cyan=read_plate(args.cyan),
            magenta=read_plate(args.magenta),
            yellow=read_plate(args.yellow),
            black=read_plate(args.black),
        )
    except (OSError, PlateValidationError) as exc:
        logger.error("Cannot read plates: %s", exc)
        return 1

    separations = plates.separations().values()
    width = max(p.width for p in separations)
    height = max(p.height for p in separations)

    rgb = render_preview(plates, width, height)
    fs.atomic_save_image(rgb, args.out)
    logger.info("Preview %d x %d written to %s", rgb.shape[1], rgb.shape[0], args.out)

    if args.sample:
        x, y, size = args.sample
        coverage = total_area_coverage(plates, x, y, size)
        logger.info(
            "Coverage at (%d, %d) size %d: %s (total %.0f%%)",
            x,
            y,
            size,
            " ".join(f"{k}={v:.1%}" for k, v in coverage.items()),
            100 * sum(coverage.values()),
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
