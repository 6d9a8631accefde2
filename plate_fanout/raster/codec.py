"""TIFF container codec for 1-bit printing plates.

Plates are strip-based monochrome TIFFs.  On read the container must
declare:

    SamplesPerPixel            1
    BitsPerSample              1
    PhotometricInterpretation  0 (MINISWHITE: a set bit is ink)
    PlanarConfiguration        1 (contiguous)
    ResolutionUnit             2 (inch)

Optional tags that are absent take their TIFF defaults.  Anything else is
a ``PlateFormatError`` and the plate is rejected as a whole.

On write the plate is Group-4 compressed, MINISWHITE, with a fixed
resolution in dots per inch.  Files are written to a temporary sibling and
renamed, so nobody reads a half-written plate.

Pillow decodes MINISWHITE bilevel images to mode ``"1"`` with ink as
black (0); the codec inverts between that and the ``BitImage`` convention
where a set bit is ink.

Writing is the slow direction.  With PhotometricInterpretation forced to
MINISWHITE, Pillow inverts mode ``"1"`` data pixel by pixel in Python
before handing it to libtiff: a 4000 x 3000 plate takes seconds to write,
and a full-size 1200 dpi plate takes minutes.  Reading is decoded by
libtiff and stays fast.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from plate_fanout.errors import PlateFormatError
from plate_fanout.raster.bitimage import BitImage
from plate_fanout.utils import fs

logger = logging.getLogger(__name__)

# TIFF tag ids
SAMPLES_PER_PIXEL = 277
BITS_PER_SAMPLE = 258
PHOTOMETRIC = 262
PLANAR_CONFIG = 284
RESOLUTION_UNIT = 296
X_RESOLUTION = 282
Y_RESOLUTION = 283

MINISWHITE = 0
CONTIG = 1
INCH = 2

DEFAULT_DPI = 1200

# Full-size plates at 1200 dpi exceed Pillow's decompression-bomb limit.
Image.MAX_IMAGE_PIXELS = None


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate_tags(img: Image.Image, path: Path, dpi: float | None) -> None:
    """Check the container fields of an opened TIFF."""
    if img.format != "TIFF":
        raise PlateFormatError(f"{path.name}: not a TIFF file ({img.format})")

    tags = img.tag_v2

    samples = tags.get(SAMPLES_PER_PIXEL, 1)
    if samples != 1:
        raise PlateFormatError(
            f"{path.name}: SamplesPerPixel must be 1, got {samples}"
        )

    bits = tags.get(BITS_PER_SAMPLE, 1)
    if isinstance(bits, tuple):
        bits_ok = all(b == 1 for b in bits)
    else:
        bits_ok = bits == 1
    if not bits_ok:
        raise PlateFormatError(
            f"{path.name}: BitsPerSample must be 1, got {bits}"
        )

    photometric = tags.get(PHOTOMETRIC)
    if photometric != MINISWHITE:
        raise PlateFormatError(
            f"{path.name}: Photometric must be MINISWHITE (0), got {photometric}"
        )

    planar = tags.get(PLANAR_CONFIG, CONTIG)
    if planar != CONTIG:
        raise PlateFormatError(
            f"{path.name}: PlanarConfiguration must be CONTIG (1), got {planar}"
        )

    unit = tags.get(RESOLUTION_UNIT, INCH)
    if unit != INCH:
        raise PlateFormatError(
            f"{path.name}: ResolutionUnit must be INCH (2), got {unit}"
        )

    if img.mode != "1":
        raise PlateFormatError(f"{path.name}: expected bilevel mode '1', got {img.mode!r}")

    if dpi is not None:
        for tag, axis in ((X_RESOLUTION, "X"), (Y_RESOLUTION, "Y")):
            value = tags.get(tag)
            if value is None or round(float(value)) != round(dpi):
                raise PlateFormatError(
                    f"{path.name}: {axis} resolution must be {dpi:g} dpi, "
                    f"got {value}"
                )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def read_plate(path: str | Path, dpi: float | None = None) -> BitImage:
    """Load a 1-bit TIFF plate.

    Parameters
    ----------
    path : str | Path
        Plate file.
    dpi : float | None
        Required resolution.  ``None`` accepts any resolution.

    Returns
    -------
    BitImage
        The decoded plate.

    Raises
    ------
    PlateFormatError
        If the file is not a TIFF or its fields do not describe a
        MINISWHITE 1-bit contiguous plate.
    OSError
        If the file cannot be opened or read (errors with an ``errno``).
    """
    path = Path(path)
    try:
        with Image.open(path) as img:
            _validate_tags(img, path, dpi)
            img.load()
            width, height = img.size
            data = img.tobytes()
    except UnidentifiedImageError as exc:
        raise PlateFormatError(f"{path.name}: not a readable image") from exc
    except OSError as exc:
        # Pillow reports undecodable strips as OSError without an errno;
        # anything carrying one is an I/O failure and may be retried.
        if exc.errno is not None:
            raise
        raise PlateFormatError(f"{path.name}: corrupt image data: {exc}") from exc

    # Pillow: 1 = white.  BitImage: 1 = ink.
    ink = np.frombuffer(data, dtype=np.uint8) ^ 0xFF
    logger.debug("Read %s: %d x %d", path.name, width, height)
    return BitImage.from_bytes(width, height, ink.tobytes())


def encode_plate(image: BitImage, dpi: float = DEFAULT_DPI) -> bytes:
    """Encode *image* as a Group-4 MINISWHITE TIFF and return the bytes."""
    if image.width == 0 or image.height == 0:
        raise ValueError(f"Cannot encode an empty plate: {image!r}")

    white_is_one = np.frombuffer(image.buffer, dtype=np.uint8) ^ 0xFF
    pil_img = Image.frombytes(
        "1", (image.width, image.height), white_is_one.tobytes()
    )

    out = io.BytesIO()
    pil_img.save(
        out,
        format="TIFF",
        compression="group4",
        dpi=(dpi, dpi),
        tiffinfo={PHOTOMETRIC: MINISWHITE},
    )
    return out.getvalue()


def write_plate(
    image: BitImage,
    path: str | Path,
    dpi: float = DEFAULT_DPI,
) -> None:
    """Save *image* to *path* atomically as a Group-4 MINISWHITE TIFF."""
    path = Path(path)
    fs.atomic_write_bytes(path, encode_plate(image, dpi))
    logger.debug("Wrote %s: %d x %d @ %g dpi", path.name, image.width, image.height, dpi)
