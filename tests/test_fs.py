"""Test atomic filesystem operations.

Tests for plate_fanout.utils.fs:
    - Atomic writes leave no temporary file behind
    - Atomic moves go through a ``.tmp`` name in the destination
    - Image saving through a temporary sibling
    - YAML loading errors
    - ensure_dir creates parents

Run:
    pytest tests/test_fs.py -v
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest
import yaml
from PIL import Image

from plate_fanout.utils import fs


def test_ensure_dir(tmp_path: Path) -> None:
    target = fs.ensure_dir(tmp_path / "a" / "b")
    assert target.is_dir()
    assert fs.ensure_dir(target) == target


def test_tmp_path_for() -> None:
    assert fs.tmp_path_for("/x/plate.tif") == Path("/x/plate.tif.tmp")
    assert fs.tmp_path_for("/x/plate.tif", ".part") == Path("/x/plate.tif.part")


def test_atomic_write_bytes(tmp_path: Path) -> None:
    path = tmp_path / "sub" / "plate.tif"
    fs.atomic_write_bytes(path, b"first")
    fs.atomic_write_bytes(path, b"second")

    assert path.read_bytes() == b"second"
    assert sorted(p.name for p in path.parent.iterdir()) == ["plate.tif"]


def test_atomic_write_bytes_cleans_up_on_failure(tmp_path: Path) -> None:
    path = tmp_path / "plate.tif"
    with patch.object(Path, "replace", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            fs.atomic_write_bytes(path, b"data")
    assert list(tmp_path.iterdir()) == []


def test_atomic_move(tmp_path: Path) -> None:
    src_dir = fs.ensure_dir(tmp_path / "processing")
    dest_dir = fs.ensure_dir(tmp_path / "delivery")
    src = src_dir / "plate.tif"
    src.write_bytes(b"plate")

    dest = fs.atomic_move(src, dest_dir / "plate.tif")

    assert dest == dest_dir / "plate.tif"
    assert dest.read_bytes() == b"plate"
    assert not src.exists()
    assert sorted(p.name for p in dest_dir.iterdir()) == ["plate.tif"]


def test_atomic_move_resumes_after_failed_rename(tmp_path: Path) -> None:
    src_dir = fs.ensure_dir(tmp_path / "processing")
    dest_dir = fs.ensure_dir(tmp_path / "delivery")
    src = src_dir / "plate.tif"
    src.write_bytes(b"plate")
    dest = dest_dir / "plate.tif"

    with patch.object(Path, "replace", side_effect=PermissionError("locked")):
        with pytest.raises(PermissionError):
            fs.atomic_move(src, dest)
    assert sorted(p.name for p in dest_dir.iterdir()) == ["plate.tif.tmp"]

    assert fs.atomic_move(src, dest) == dest
    assert dest.read_bytes() == b"plate"
    assert sorted(p.name for p in dest_dir.iterdir()) == ["plate.tif"]


def test_atomic_move_missing_source(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        fs.atomic_move(tmp_path / "nope.tif", tmp_path / "dest.tif")
    assert list(tmp_path.iterdir()) == []


def test_atomic_save_image(tmp_path: Path) -> None:
    rgb = np.zeros((4, 5, 3), dtype=np.uint8)
    rgb[..., 0] = 200
    path = tmp_path / "preview.png"

    fs.atomic_save_image(rgb, path)

    with Image.open(path) as img:
        assert img.size == (5, 4)
        assert img.getpixel((0, 0)) == (200, 0, 0)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["preview.png"]


def test_atomic_save_image_failure(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError, match="atomically"):
        fs.atomic_save_image(np.zeros((2, 2), dtype=np.uint8), tmp_path / "out.unknownext")
    assert list(tmp_path.iterdir()) == []


def test_load_yaml(tmp_path: Path) -> None:
    path = tmp_path / "doc.yaml"
    path.write_text("a: 1\nb: [x, y]\n", encoding="utf-8")
    assert fs.load_yaml(path) == {"a": 1, "b": ["x", "y"]}


def test_load_yaml_missing(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        fs.load_yaml(tmp_path / "missing.yaml")


def test_load_yaml_invalid(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("a: [1, 2\n", encoding="utf-8")
    with pytest.raises(yaml.YAMLError, match="bad.yaml"):
        fs.load_yaml(path)


def test_safe_remove(tmp_path: Path) -> None:
    path = tmp_path / "x"
    path.write_bytes(b"")
    assert fs.safe_remove(path) is True
    assert fs.safe_remove(path) is False
