#!/usr/bin/env python3
"""
Stamp Plate Script.

Write a text label and/or a Code 39 barcode onto a plate, e.g. to mark
test plates or job numbers outside the printed area.

Usage:
    python -m plate_fanout.scripts.stamp_plate plate.tif --text "JOB 1234" --at 200 400
    python -m plate_fanout.scripts.stamp_plate plate.tif --barcode "*1234*" --at 200 900
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from plate_fanout.errors import PlateValidationError
from plate_fanout.raster.codec import DEFAULT_DPI, read_plate, write_plate
from plate_fanout.raster.glyphs import code39_mask, text_mask
from plate_fanout.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Stamp text or a Code 39 barcode onto a plate",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("plate", type=str, help="Plate to modify (1-bit TIFF)")
    parser.add_argument("--text", type=str, help="Text to write")
    parser.add_argument("--font-size", type=int, default=48, help="Text size in pixels")
    parser.add_argument("--barcode", type=str, help="Code 39 content")
    parser.add_argument(
        "--at",
        nargs=2,
        type=int,
        metavar=("X", "Y"),
        default=(0, 0),
        help="Top-left offset in pixels",
    )
    parser.add_argument(
        "--out",
        "-o",
        type=str,
        help="Output file (default: overwrite the input)",
    )
    parser.add_argument(
        "--dpi",
        type=float,
        default=DEFAULT_DPI,
        help="Resolution written to the output",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.text and not args.barcode:
        parser.error("nothing to stamp: pass --text and/or --barcode")

    setup_logging("INFO", context={"app": "stamp"})

    try:
        image = read_plate(args.plate)
    except (OSError, PlateValidationError) as exc:
        logger.error("Cannot read %s: %s", args.plate, exc)
        return 1

    x, y = args.at
    if args.text:
        mask = text_mask(args.text, font_size=args.font_size)
        image.draw_mask(mask, x, y)
        y += mask.shape[0]
        logger.info("Stamped text %r (%d x %d)", args.text, mask.shape[1], mask.shape[0])
    if args.barcode:
        try:
            mask = code39_mask(args.barcode)
        except ValueError as exc:
            logger.error("%s", exc)
            return 1
        image.draw_mask(mask, x, y)
        logger.info("Stamped barcode %r (%d x %d)", args.barcode, mask.shape[1], mask.shape[0])

    out = Path(args.out or args.plate)
    write_plate(image, out, dpi=args.dpi)
    logger.info("Wrote %s", out)
    return 0


if __name__ == "__main__":
    sys.exit(main())
