"""Fan-out compensation for monochrome printing plates.

Subpackages:
    raster        bit-packed plate raster, TIFF codec, glyphs, preview
    compensation  fan-out geometry and the compensator
    conveyor      intake → processing → delivery slots and polling loop
    configs       plant configuration
    utils         fs, logging, validators, retries
"""

__version__ = "1.0.0"
