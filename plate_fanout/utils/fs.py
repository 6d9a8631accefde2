"""Atomic filesystem operations for plate files, previews and YAML.

Provides:
    - Atomic writes: tmp file → fsync → rename (prevents partial reads)
    - Atomic moves between slot directories: move → ``.tmp`` → rename
    - YAML loading with safe_load
    - Directory creation with exist_ok semantics

Critical for the delivery slot:
    - The CTP watches the delivery directory and picks up any plate it sees
    - Plates arrive under a ``.tmp`` name and are renamed only once complete
    - The CTP never observes a partially written plate

All paths use pathlib.Path for cross-platform compatibility.

Usage:
    from plate_fanout.utils import fs
    fs.atomic_move(processing / name, delivery / name)
    fs.atomic_save_image(rgb, "preview.png")
    cfg = fs.load_yaml("plant.yaml")
"""

import os
import shutil
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import yaml
from PIL import Image


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory if it doesn't exist, return Path object.

    Parameters
    ----------
    p : Union[str, Path]
        Directory path

    Returns
    -------
    Path
        Path object (guaranteed to exist)
    """
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def tmp_path_for(path: Union[str, Path], tmp_suffix: str = ".tmp") -> Path:
    """Return the temporary sibling used while *path* is being written."""
    path = Path(path)
    return path.with_name(path.name + tmp_suffix)


def atomic_write_bytes(
    path: Union[str, Path],
    data: bytes,
    tmp_suffix: str = ".tmp"
) -> None:
    """Write bytes to file atomically (tmp → fsync → rename).

    Parameters
    ----------
    path : Union[str, Path]
        Target file path
    data : bytes
        Data to write
    tmp_suffix : str
        Temporary file suffix, default ".tmp"

    Notes
    -----
    Uses same directory for tmp file to ensure atomic rename on same filesystem.
    """
    path = Path(path)
    ensure_dir(path.parent)
    tmp_path = tmp_path_for(path, tmp_suffix)

    try:
        with open(tmp_path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        # Atomic rename (overwrites existing file on POSIX)
        tmp_path.replace(path)
    except OSError:
        safe_remove(tmp_path)
        raise


def atomic_move(
    src: Union[str, Path],
    dest: Union[str, Path],
    tmp_suffix: str = ".tmp"
) -> Path:
    """Move *src* to *dest* through a temporary name in the destination dir.

    Parameters
    ----------
    src : Union[str, Path]
        File to move
    dest : Union[str, Path]
        Final path of the file
    tmp_suffix : str
        Suffix of the intermediate name, default ".tmp"

    Returns
    -------
    Path
        The final destination path

    Notes
    -----
    The first step may cross filesystems (network-mounted delivery drives),
    so it goes through ``shutil.move``. The second step is a rename inside
    the destination directory and is atomic. A reader polling *dest*'s
    directory sees either nothing or the complete file.

    Safe to call again after a failed rename: when *src* is gone and the
    temporary file is already in place, only the rename is repeated.
    """
    src = Path(src)
    dest = Path(dest)
    tmp_path = tmp_path_for(dest, tmp_suffix)

    if src.exists() or not tmp_path.exists():
        shutil.move(str(src), str(tmp_path))
    tmp_path.replace(dest)
    return dest


def atomic_save_image(
    img: np.ndarray,
    path: Union[str, Path],
    pil_kwargs: Optional[Dict[str, Any]] = None
) -> None:
    """Save an image array atomically (prevents partial reads).

    Parameters
    ----------
    img : np.ndarray
        Image data: (H, W, 3) uint8 or (H, W) uint8
    path : Union[str, Path]
        Target file path (extension determines format)
    pil_kwargs : Optional[Dict[str, Any]]
        Additional kwargs for PIL.Image.save (e.g., dpi=(300, 300))
    """
    path = Path(path)
    pil_kwargs = pil_kwargs or {}

    if img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)

    if img.ndim == 3 and img.shape[2] == 1:
        img = img.squeeze(2)

    pil_img = Image.fromarray(img)

    # Create tmp file with same extension to preserve format detection
    tmp_path = path.with_name(path.stem + ".tmp" + path.suffix)
    try:
        pil_img.save(tmp_path, **pil_kwargs)
        tmp_path.replace(path)
    except Exception as e:
        safe_remove(tmp_path)
        raise RuntimeError(f"Failed to save image {path} atomically: {e}") from e


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Dict[str, Any]
        Parsed YAML content

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e


def safe_remove(path: Union[str, Path]) -> bool:
    """Remove file safely (no error if missing).

    Returns
    -------
    bool
        True if removed, False if it didn't exist
    """
    path = Path(path)
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
