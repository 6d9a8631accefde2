"""
Raster module.

Provides the bit-packed plate raster, the TIFF container codec, glyph
rasterizers for stamping text and barcodes, and the CMYK preview sampler.
"""

from plate_fanout.raster.bitimage import BitImage
from plate_fanout.raster.codec import encode_plate, read_plate, write_plate
from plate_fanout.raster.glyphs import code39_mask, text_mask
from plate_fanout.raster.preview import (
    CmykPlates,
    render_preview,
    total_area_coverage,
)

__all__ = [
    "BitImage",
    "CmykPlates",
    "code39_mask",
    "encode_plate",
    "read_plate",
    "render_preview",
    "text_mask",
    "total_area_coverage",
    "write_plate",
]
