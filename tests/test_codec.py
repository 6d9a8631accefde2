"""Tests for the TIFF plate codec.

Tests for plate_fanout.raster.codec:
    - Encode/decode reproduces width, height and every pixel
    - Written files are Group-4, MINISWHITE, inch unit, fixed resolution
    - Non-TIFF, non-bilevel and MINISBLACK files are rejected
    - Resolution is enforced only when a dpi is requested
    - write_plate leaves no temporary file behind

Run:
    pytest tests/test_codec.py -v
"""

from __future__ import annotations

import errno
from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest
from PIL import Image

from plate_fanout.errors import PlateFormatError, PlateValidationError
from plate_fanout.raster import codec
from plate_fanout.raster.bitimage import BitImage


@pytest.fixture()
def random_plate() -> BitImage:
    rng = np.random.default_rng(1234)
    return BitImage.from_array(rng.random((37, 53)) > 0.6)


# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------


class TestRoundTrip:
    def test_pixels_preserved(self, tmp_path: Path, random_plate: BitImage) -> None:
        path = tmp_path / "plate.tif"
        codec.write_plate(random_plate, path, dpi=1200)

        decoded = codec.read_plate(path, dpi=1200)
        assert decoded.width == random_plate.width
        assert decoded.height == random_plate.height
        assert decoded == random_plate

    def test_no_tmp_left(self, tmp_path: Path, random_plate: BitImage) -> None:
        codec.write_plate(random_plate, tmp_path / "plate.tif")
        assert sorted(p.name for p in tmp_path.iterdir()) == ["plate.tif"]

    def test_container_fields(self, tmp_path: Path, random_plate: BitImage) -> None:
        path = tmp_path / "plate.tif"
        codec.write_plate(random_plate, path, dpi=600)

        with Image.open(path) as img:
            tags = img.tag_v2
            assert img.format == "TIFF"
            assert img.mode == "1"
            assert tags[codec.PHOTOMETRIC] == codec.MINISWHITE
            assert tags.get(codec.RESOLUTION_UNIT, codec.INCH) == codec.INCH
            assert round(float(tags[codec.X_RESOLUTION])) == 600
            assert img.info.get("compression") == "group4"

    def test_ink_is_black_in_pillow(self, tmp_path: Path) -> None:
        img = BitImage.create(8, 1)
        img.set_pixel(1, 1, True)
        path = tmp_path / "dot.tif"
        codec.write_plate(img, path)

        with Image.open(path) as pil:
            assert pil.getpixel((0, 0)) == 0
            assert pil.getpixel((1, 0)) == 255

    def test_empty_plate_rejected(self) -> None:
        with pytest.raises(ValueError):
            codec.encode_plate(BitImage.create(0, 0))


# ---------------------------------------------------------------------------
# Validation on read
# ---------------------------------------------------------------------------


class TestReadValidation:
    def test_wrong_resolution(self, tmp_path: Path, random_plate: BitImage) -> None:
        path = tmp_path / "plate.tif"
        codec.write_plate(random_plate, path, dpi=600)
        with pytest.raises(PlateFormatError, match="resolution"):
            codec.read_plate(path, dpi=1200)

    def test_resolution_unchecked_without_dpi(
        self, tmp_path: Path, random_plate: BitImage,
    ) -> None:
        path = tmp_path / "plate.tif"
        codec.write_plate(random_plate, path, dpi=600)
        assert codec.read_plate(path) == random_plate

    def test_minisblack_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "black.tif"
        Image.new("1", (16, 4), 0).save(path, format="TIFF")
        with pytest.raises(PlateFormatError, match="Photometric"):
            codec.read_plate(path)

    def test_greyscale_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "grey.tif"
        Image.new("L", (16, 4), 128).save(path, format="TIFF")
        with pytest.raises(PlateFormatError):
            codec.read_plate(path)

    def test_png_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "plate.tif"
        Image.new("1", (16, 4), 0).save(path, format="PNG")
        with pytest.raises(PlateFormatError, match="not a TIFF"):
            codec.read_plate(path)

    def test_garbage_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "plate.tif"
        path.write_bytes(b"this is not an image at all")
        with pytest.raises(PlateValidationError):
            codec.read_plate(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            codec.read_plate(tmp_path / "absent.tif")

    def test_io_error_propagates(self, tmp_path: Path, random_plate: BitImage) -> None:
        path = tmp_path / "plate.tif"
        codec.write_plate(random_plate, path)
        with patch.object(codec.Image, "open", side_effect=OSError(errno.EIO, "Input/output error")):
            with pytest.raises(OSError) as excinfo:
                codec.read_plate(path)
        assert excinfo.value.errno == errno.EIO
        assert not isinstance(excinfo.value, PlateValidationError)

    def test_decoder_error_rejected(self, tmp_path: Path, random_plate: BitImage) -> None:
        path = tmp_path / "plate.tif"
        codec.write_plate(random_plate, path)
        with patch.object(codec.Image, "open", side_effect=OSError("broken data stream")):
            with pytest.raises(PlateFormatError, match="corrupt image data"):
                codec.read_plate(path)
