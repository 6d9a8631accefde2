"""Tests for the command-line entry points.

Scripts are called through ``main(argv)``; ``shutdown`` and the excepthook
are neutralised so the test session's logging stays intact.
"""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest
import yaml
from PIL import Image

from plate_fanout.errors import TransferError
from plate_fanout.raster import codec
from plate_fanout.raster.bitimage import BitImage
from plate_fanout.raster.glyphs import code39_mask
from plate_fanout.scripts import render_preview, run_conveyor, stamp_plate


@pytest.fixture(autouse=True)
def _keep_process_state(monkeypatch):
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(run_conveyor, "shutdown", lambda: None)


# ---------------------------------------------------------------------------
# run_conveyor
# ---------------------------------------------------------------------------


@pytest.fixture()
def plant_yaml(tmp_path: Path, geometry_file: Path) -> Path:
    marks = tmp_path / "marks"
    marks.mkdir()
    mark = BitImage.from_array(np.ones((2, 2), dtype=bool))
    codec.write_plate(mark, marks / "lead.tif")
    codec.write_plate(mark, marks / "trail.tif")
    for slot in ("intake", "processing", "delivery", "rejected", "log"):
        (tmp_path / "plant" / slot).mkdir(parents=True)

    data = {
        "paths": {
            "intake": "plant/intake",
            "processing": "plant/processing",
            "delivery": "plant/delivery",
            "rejected": "plant/rejected",
            "log": "plant/log",
            "marks": "marks",
        },
        "marks": {
            "lead": {"file": "lead.tif", "x": 0, "y": 0},
            "trail": {"file": "trail.tif", "x": 0, "y": 90},
        },
        "raster": {"dpi": 1200},
        "filename": {
            "tower": {"start": 1, "length": 3},
            "cylinder": {"start": 5, "length": 1},
            "section": {"start": 7, "length": 1},
            "half": {"start": 9, "length": 1},
        },
        "geometry": {"source": geometry_file.name},
        "polling": {"interval_s": 0.0, "settle_delay_s": 0.0},
        "logging": {"level": "INFO", "file_name": "fanout.log"},
    }
    path = tmp_path / "plant.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestRunConveyor:
    def test_missing_config(self, tmp_path: Path) -> None:
        assert run_conveyor.main(["--config", str(tmp_path / "nope.yaml"), "-n", "1"]) == 2

    def test_delivers_one_plate(self, plant_yaml: Path, tmp_path: Path) -> None:
        plate = BitImage.from_array(np.ones((100, 8), dtype=bool))
        codec.write_plate(plate, tmp_path / "plant" / "intake" / "T01_5_C_R.tif")

        assert run_conveyor.main(["-c", str(plant_yaml), "-n", "1", "--no-color"]) == 0

        assert (tmp_path / "plant" / "delivery" / "T01_5_C_R.tif").exists()
        log_text = (tmp_path / "plant" / "log" / "fanout.log").read_text(encoding="utf-8")
        assert "T01_5_C_R.tif delivered" in log_text

    def test_bad_mark_is_config_error(self, plant_yaml: Path, tmp_path: Path) -> None:
        (tmp_path / "marks" / "lead.tif").write_bytes(b"not a plate")
        assert run_conveyor.main(["-c", str(plant_yaml), "-n", "1"]) == 2

    def test_transfer_error_exit_code(self, plant_yaml: Path) -> None:
        with patch.object(
            run_conveyor.PlateConveyor, "run", side_effect=TransferError("share gone")
        ):
            assert run_conveyor.main(["-c", str(plant_yaml)]) == 1


# ---------------------------------------------------------------------------
# stamp_plate
# ---------------------------------------------------------------------------


class TestStampPlate:
    def test_barcode(self, tmp_path: Path) -> None:
        src = tmp_path / "plate.tif"
        out = tmp_path / "stamped.tif"
        codec.write_plate(BitImage.create(600, 700), src)

        assert stamp_plate.main([str(src), "--barcode", "*1*", "--at", "10", "20", "-o", str(out)]) == 0

        stamped = codec.read_plate(out, dpi=1200)
        assert stamped.count_on() == int(code39_mask("*1*").sum())
        assert stamped.get_pixel(11, 21)
        assert not stamped.get_pixel(10, 21)
        assert codec.read_plate(src).count_on() == 0

    def test_invalid_barcode(self, tmp_path: Path) -> None:
        src = tmp_path / "plate.tif"
        codec.write_plate(BitImage.create(600, 700), src)
        before = src.read_bytes()

        assert stamp_plate.main([str(src), "--barcode", "a#b"]) == 1
        assert src.read_bytes() == before

    def test_nothing_to_stamp(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit):
            stamp_plate.main([str(tmp_path / "plate.tif")])

    def test_missing_plate(self, tmp_path: Path) -> None:
        assert stamp_plate.main([str(tmp_path / "missing.tif"), "--text", "JOB"]) == 1


# ---------------------------------------------------------------------------
# render_preview
# ---------------------------------------------------------------------------


class TestRenderPreview:
    def test_writes_png(self, tmp_path: Path) -> None:
        paths = {}
        for colour in ("cyan", "magenta", "yellow", "black"):
            paths[colour] = tmp_path / f"{colour}.tif"
            pixels = np.ones((30, 30), dtype=bool) if colour == "cyan" else np.zeros((30, 30), dtype=bool)
            codec.write_plate(BitImage.from_array(pixels), paths[colour])
        out = tmp_path / "preview.png"

        argv = [arg for colour, path in paths.items() for arg in (f"--{colour}", str(path))]
        assert render_preview.main(argv + ["--out", str(out), "--sample", "1", "1", "10"]) == 0

        with Image.open(out) as img:
            assert img.size == (10, 10)
            assert img.getpixel((5, 5)) == (252 - 9 * 12, 252, 252)

    def test_unreadable_plate(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.tif"
        bad.write_bytes(b"garbage")
        argv = []
        for colour in ("cyan", "magenta", "yellow", "black"):
            argv += [f"--{colour}", str(bad)]
        assert render_preview.main(argv + ["--out", str(tmp_path / "p.png")]) == 1
        assert not (tmp_path / "p.png").exists()
