"""Shared fixtures: plate factories, a temporary plant and logging cleanup."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import pytest

from plate_fanout.configs.loader import (
    FieldSpan,
    FilenameConfig,
    PathsConfig,
    PollingConfig,
    RasterConfig,
)
from plate_fanout.raster.bitimage import BitImage
from plate_fanout.utils import logging_config

GEOMETRY_YAML = """\
schema: geometry.v1
towers:
  "T01":
    roll_position: "ABCD"
    fanout_mm: {C: 0.22, M: 0.15, Y: 0.10}
  "T02":
    roll_position: "ABC"
    fanout_mm: {C: 0.22}
  "T04":
    roll_position: "A"
    fanout_mm: {C: 0.0, M: 0.0, Y: 0.0}
"""


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drop handlers installed by setup_logging and clear context fields."""
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)
    for handler in list(logging_config._owned_handlers):
        root.removeHandler(handler)
        handler.close()
    logging_config._owned_handlers.clear()
    logging_config.pop_context()


@pytest.fixture()
def solid_plate():
    """Factory for an all-ink plate."""

    def make(width: int = 16, height: int = 200) -> BitImage:
        return BitImage.from_array(np.ones((height, width), dtype=bool))

    return make


@pytest.fixture()
def layout() -> FilenameConfig:
    """``T01_3_B_L...``: tower 1-3, cylinder 5, section 7, half 9."""
    return FilenameConfig(
        tower=FieldSpan(1, 3),
        cylinder=FieldSpan(5, 1),
        section=FieldSpan(7, 1),
        half=FieldSpan(9, 1),
    )


@pytest.fixture()
def geometry_file(tmp_path: Path) -> Path:
    path = tmp_path / "geometry.yaml"
    path.write_text(GEOMETRY_YAML, encoding="utf-8")
    return path


@pytest.fixture()
def plant_paths(tmp_path: Path) -> PathsConfig:
    """Slot directories under ``tmp_path/plant``, all created."""
    root = tmp_path / "plant"
    paths = PathsConfig(
        intake=root / "intake",
        processing=root / "processing",
        delivery=root / "delivery",
        rejected=root / "rejected",
        log=root / "log",
        marks=root / "marks",
    )
    for directory in (*paths.slots().values(), paths.marks):
        directory.mkdir(parents=True)
    return paths


@pytest.fixture()
def raster() -> RasterConfig:
    return RasterConfig(dpi=1200)


@pytest.fixture()
def polling() -> PollingConfig:
    return PollingConfig(interval_s=2.0, settle_delay_s=0.1, transfer_retries=3, transfer_delay_s=0.5)
