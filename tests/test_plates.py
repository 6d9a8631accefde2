"""Tests for filename parsing, geometry lookup and the plate processor.

Tests for plate_fanout.compensation.plates:
    - Fixed-offset filename fields, short names, bad cylinders
    - Geometry lookup by tower and colour
    - PlateProcessor rewrites colour plates and leaves others untouched
    - Invalid plates raise PlateValidationError subclasses
    - Transient read failures are retried

Run:
    pytest tests/test_plates.py -v
"""

from __future__ import annotations

import errno
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from plate_fanout.compensation.compensator import FanoutCompensator
from plate_fanout.compensation.plates import (
    PlateProcessor,
    geometry_for,
    load_geometry,
    parse_plate_name,
)
from plate_fanout.errors import (
    FilenameError,
    GeometryError,
    PlateFormatError,
    TransferError,
)
from plate_fanout.raster import codec


# ---------------------------------------------------------------------------
# Filename parsing
# ---------------------------------------------------------------------------


class TestParseName:
    def test_fields(self, layout) -> None:
        plate = parse_plate_name("T01_3_B_L_page12.tif", layout)
        assert plate.tower == "T01"
        assert plate.cylinder == 3
        assert plate.section == "B"
        assert plate.half == "L"
        assert plate.colour == "M"

    def test_black_cylinder(self, layout) -> None:
        assert parse_plate_name("T01_7_A_R.tif", layout).colour is None

    def test_too_short(self, layout) -> None:
        with pytest.raises(FilenameError, match="half"):
            parse_plate_name("T01_3_B", layout)

    def test_non_numeric_cylinder(self, layout) -> None:
        with pytest.raises(FilenameError, match="not a number"):
            parse_plate_name("T01_X_B_L.tif", layout)

    def test_cylinder_zero(self, layout) -> None:
        with pytest.raises(FilenameError):
            parse_plate_name("T01_0_B_L.tif", layout)


# ---------------------------------------------------------------------------
# Geometry lookup
# ---------------------------------------------------------------------------


class TestGeometryLookup:
    def test_parameters(self, layout, geometry_file: Path) -> None:
        doc = load_geometry(geometry_file)
        params = geometry_for(parse_plate_name("T01_3_B_L.tif", layout), doc, 1200)
        assert params.tower == "T01"
        assert params.roll_pattern == "ABCD"
        assert params.fanout_mm == pytest.approx(0.15)
        assert params.dpi == 1200

    def test_unknown_tower(self, layout, geometry_file: Path) -> None:
        doc = load_geometry(geometry_file)
        with pytest.raises(GeometryError, match="T99"):
            geometry_for(parse_plate_name("T99_1_A_L.tif", layout), doc, 1200)

    def test_missing_colour(self, layout, geometry_file: Path) -> None:
        doc = load_geometry(geometry_file)
        with pytest.raises(GeometryError, match="colour Y"):
            geometry_for(parse_plate_name("T02_5_A_L.tif", layout), doc, 1200)

    def test_missing_document(self, tmp_path: Path) -> None:
        with pytest.raises(GeometryError):
            load_geometry(tmp_path / "absent.yaml")


# ---------------------------------------------------------------------------
# Processor
# ---------------------------------------------------------------------------


@pytest.fixture()
def processor(layout, geometry_file: Path) -> PlateProcessor:
    return PlateProcessor(
        layout=layout,
        geometry_source=geometry_file,
        compensator=FanoutCompensator(),
        dpi=1200,
        sleep=MagicMock(),
    )


class TestProcessor:
    def test_colour_plate_rewritten(self, tmp_path: Path, processor, solid_plate) -> None:
        path = tmp_path / "T01_1_A_L.tif"
        codec.write_plate(solid_plate(), path, dpi=1200)

        plan = processor.process(path)

        assert plan is not None
        result = codec.read_plate(path, dpi=1200)
        assert (result.width, result.height) == (16, 200)
        assert result.count_on() < 16 * 200
        assert not result.get_pixel(1, 1)

    @pytest.mark.parametrize("name", ["T01_7_A_L.tif", "T04_1_A_L.tif"])
    def test_untouched(self, tmp_path: Path, processor, solid_plate, name: str) -> None:
        path = tmp_path / name
        codec.write_plate(solid_plate(), path, dpi=1200)
        before = path.read_bytes()

        assert processor.process(path) is None
        assert path.read_bytes() == before

    def test_black_plate_needs_no_geometry(self, tmp_path: Path, processor, solid_plate) -> None:
        path = tmp_path / "T99_8_A_L.tif"
        codec.write_plate(solid_plate(), path, dpi=1200)
        assert processor.process(path) is None

    def test_unknown_tower(self, tmp_path: Path, processor, solid_plate) -> None:
        path = tmp_path / "T99_1_A_L.tif"
        codec.write_plate(solid_plate(), path, dpi=1200)
        with pytest.raises(GeometryError):
            processor.process(path)

    def test_corrupt_plate(self, tmp_path: Path, processor) -> None:
        path = tmp_path / "T01_1_A_L.tif"
        path.write_bytes(b"not a plate")
        with pytest.raises(PlateFormatError):
            processor.process(path)

    def test_wrong_resolution(self, tmp_path: Path, processor, solid_plate) -> None:
        path = tmp_path / "T01_1_A_L.tif"
        codec.write_plate(solid_plate(), path, dpi=600)
        with pytest.raises(PlateFormatError):
            processor.process(path)

    def test_read_retried(self, tmp_path: Path, processor, solid_plate) -> None:
        path = tmp_path / "T01_1_A_L.tif"
        codec.write_plate(solid_plate(), path, dpi=1200)
        real_read = codec.read_plate
        calls = []

        def flaky_read(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise PermissionError("locked by scanner")
            return real_read(*args, **kwargs)

        with patch.object(codec, "read_plate", side_effect=flaky_read):
            assert processor.process(path) is not None
        assert len(calls) == 2
        processor._sleep.assert_called_once_with(0.5)

    def test_read_gives_up(self, tmp_path: Path, processor) -> None:
        path = tmp_path / "T01_1_A_L.tif"
        path.write_bytes(b"")
        with patch.object(codec, "read_plate", side_effect=PermissionError("locked")):
            with pytest.raises(TransferError, match="4 attempts"):
                processor.process(path)

    def test_transient_read_error_retried(self, tmp_path: Path, processor, solid_plate) -> None:
        path = tmp_path / "T01_1_A_L.tif"
        codec.write_plate(solid_plate(), path, dpi=1200)
        real_open = codec.Image.open
        calls = []

        def flaky_open(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise OSError(errno.EIO, "Input/output error")
            return real_open(*args, **kwargs)

        with patch.object(codec.Image, "open", side_effect=flaky_open):
            assert processor.process(path) is not None
        assert len(calls) >= 2
        processor._sleep.assert_called_once_with(0.5)
