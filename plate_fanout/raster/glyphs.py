"""Glyph rasterizers producing boolean masks for ``BitImage.draw_mask``.

Two sources of glyphs are stamped onto plates:

* text, rendered with a Pillow font and rotated a quarter turn so it reads
  along the plate edge;
* Code 39 barcodes, drawn as stacked bars (bars run across the plate,
  the code advances downwards).

Masks are ``(rows, cols)`` boolean arrays with ``True`` for ink.
"""

from __future__ import annotations

import numpy as np
from PIL import Image, ImageDraw, ImageFont

# Code 39 element patterns: b/B narrow/wide bar, w/W narrow/wide space.
CODE39: dict[str, str] = {
    "A": "BwbwbWbwB", "B": "bwBwbWbwB", "C": "BwBwbWbwb", "D": "bwbwBWbwB",
    "E": "BwbwBWbwb", "F": "bwBwBWbwb", "G": "bwbwbWBwB", "H": "BwbwbWBwb",
    "I": "bwBwbWBwb", "J": "bwbwBWBwb", "K": "BwbwbwbWB", "L": "bwBwbwbWB",
    "M": "BwBwbwbWb", "N": "bwbwBwbWB", "O": "BwbwBwbWb", "P": "bwBwBwbWb",
    "Q": "bwbwbwBWB", "R": "BwbwbwBWb", "S": "bwBwbwBWb", "T": "bwbwBwBWb",
    "U": "BWbwbwbwB", "V": "bWBwbwbwB", "W": "BWBwbwbwb", "X": "bWbwBwbwB",
    "Y": "BWbwBwbwb", "Z": "bWBwBwbwb",
    "0": "bwbWBwBwb", "1": "BwbWbwbwB", "2": "bwBWbwbwB", "3": "BwBWbwbwb",
    "4": "bwbWBwbwB", "5": "BwbWBwbwb", "6": "bwBWBwbwb", "7": "bwbWbwBwB",
    "8": "BwbWbwBwb", "9": "bwBWbwBwb",
    " ": "bWBwbwBwb", "-": "bWbwbwBwB", "$": "bWbWbWbwb", "%": "bwbWbWbWb",
    ".": "BWbwbwBwb", "/": "bWbWbwbWb", "+": "bWbwbWbWb", "*": "bWbwBwBwb",
}

NARROW_PX = 13
WIDE_PX = 39
BAR_LENGTH_PX = 500


def code39_mask(
    text: str,
    narrow: int = NARROW_PX,
    wide: int = WIDE_PX,
    bar_length: int = BAR_LENGTH_PX,
) -> np.ndarray:
    """Rasterize *text* as a Code 39 barcode.

    Each character is followed by a narrow space.  Start/stop characters
    (``*``) are not added; include them in *text*.

    Parameters
    ----------
    text : str
        Characters from ``CODE39`` (lower case is upper-cased).
    narrow, wide : int
        Thickness in pixels of narrow and wide elements.
    bar_length : int
        Length of every bar in pixels.

    Returns
    -------
    np.ndarray
        Boolean mask of shape ``(total_thickness, bar_length)``.

    Raises
    ------
    ValueError
        If *text* contains a character Code 39 cannot encode.
    """
    elements: list[str] = []
    for char in text.upper():
        try:
            elements.extend(CODE39[char])
        except KeyError:
            raise ValueError(f"Character {char!r} has no Code 39 encoding") from None
        elements.append("w")

    thickness = {"b": narrow, "w": narrow, "B": wide, "W": wide}
    rows = [
        np.full((thickness[e], bar_length), e in "bB", dtype=bool)
        for e in elements
    ]
    if not rows:
        return np.zeros((0, bar_length), dtype=bool)
    return np.concatenate(rows, axis=0)


def text_mask(text: str, font_size: int = 48, rotate: bool = True) -> np.ndarray:
    """Rasterize *text* with Pillow's default font.

    Parameters
    ----------
    text : str
        Text to render.
    font_size : int
        Font size in pixels.
    rotate : bool
        Rotate a quarter turn clockwise so the text runs down the plate.

    Returns
    -------
    np.ndarray
        Boolean mask, ``True`` where the glyphs have ink.
    """
    font = ImageFont.load_default(size=font_size)
    canvas = Image.new("L", (max(1, len(text)) * font_size, font_size * 2), 0)
    ImageDraw.Draw(canvas).text((0, 0), text, fill=255, font=font)

    mask = np.asarray(canvas) > 127
    if rotate:
        mask = np.rot90(mask, k=-1)
    return np.ascontiguousarray(mask)
