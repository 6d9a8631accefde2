"""Bit-packed 1-bit-per-pixel raster used for printing plates.

A ``BitImage`` owns a single ``numpy.uint8`` array of shape
``(height, stride_bits // 8)``.  Every row is padded with zero bits up to
the next multiple of 8 pixels, the same layout a 1-bit TIFF strip uses, so
the codec can hand rows over without repacking.

Pixel addressing is **1-based**: pixel ``(x, y)`` with ``1 <= x <= width``
and ``1 <= y <= height`` lives in bit ``7 - ((x - 1) % 8)`` of byte
``(y - 1) * stride_bits / 8 + (x - 1) // 8``.  Reads outside the image
return ``False``; writes outside the image do nothing and return ``False``.

A set bit is an "on" pixel (ink on the plate).

Invariant after every operation::

    stride_bits >= width
    stride_bits % 8 == 0
    len(buffer) == stride_bits // 8 * height
"""

from __future__ import annotations

import numpy as np


def calculate_pad(width: int) -> int:
    """Padding bits needed to round *width* up to a whole byte."""
    return (8 - width % 8) % 8


class BitImage:
    """Monochrome raster with pixel access and row-level editing.

    Parameters
    ----------
    width : int
        Image width in pixels.
    height : int
        Image height in rows.
    rows : np.ndarray, optional
        Packed row data of shape ``(height, stride_bytes)``.  Zero-filled
        when omitted.  The array is taken over, not copied.

    Examples
    --------
    >>> img = BitImage.create(10, 4)
    >>> img.set_pixel(3, 2, True)
    True
    >>> img.get_pixel(3, 2)
    True
    >>> img.get_pixel(11, 2)
    False
    """

    def __init__(
        self,
        width: int,
        height: int,
        rows: np.ndarray | None = None,
    ) -> None:
        if width < 0 or height < 0:
            raise ValueError(
                f"Image dimensions must be >= 0, got {width} x {height}"
            )
        self.width = width
        stride_bytes = (width + calculate_pad(width)) // 8
        if rows is None:
            rows = np.zeros((height, stride_bytes), dtype=np.uint8)
        elif rows.shape != (height, stride_bytes) or rows.dtype != np.uint8:
            raise ValueError(
                f"Row data of shape {rows.shape} ({rows.dtype}) does not match "
                f"{height} rows of {stride_bytes} bytes"
            )
        self._rows = rows
        self._clear_padding()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def create(cls, width: int, height: int) -> BitImage:
        """Zero-filled image of *width* x *height* pixels."""
        return cls(width, height)

    @classmethod
    def from_bytes(cls, width: int, height: int, data: bytes) -> BitImage:
        """Build an image from row-major packed bytes (padded rows)."""
        stride_bytes = (width + calculate_pad(width)) // 8
        expected = stride_bytes * height
        if len(data) != expected:
            raise ValueError(
                f"Expected {expected} bytes for {width} x {height}, "
                f"got {len(data)}"
            )
        rows = np.frombuffer(data, dtype=np.uint8).reshape(height, stride_bytes)
        return cls(width, height, rows.copy())

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> BitImage:
        """Build an image from a boolean ``(height, width)`` array."""
        pixels = np.asarray(pixels, dtype=bool)
        if pixels.ndim != 2:
            raise ValueError(f"Expected a 2-D mask, got shape {pixels.shape}")
        height, width = pixels.shape
        return cls(width, height, np.packbits(pixels, axis=1))

    def copy(self) -> BitImage:
        return BitImage(self.width, self.height, self._rows.copy())

    # ------------------------------------------------------------------
    # Geometry / buffer accessors
    # ------------------------------------------------------------------

    @property
    def height(self) -> int:
        return int(self._rows.shape[0])

    @property
    def pad(self) -> int:
        return calculate_pad(self.width)

    @property
    def stride_bits(self) -> int:
        """Row length in bits, ``width`` rounded up to a multiple of 8."""
        return self.width + self.pad

    @property
    def stride_bytes(self) -> int:
        return self.stride_bits // 8

    @property
    def buffer(self) -> bytes:
        """Row-major packed pixel data, ``stride_bytes * height`` long."""
        return self._rows.tobytes()

    def row(self, y: int) -> bytes:
        """Packed bytes of 1-based row *y*."""
        if not 1 <= y <= self.height:
            raise IndexError(f"Row {y} outside 1..{self.height}")
        return self._rows[y - 1].tobytes()

    def to_array(self) -> np.ndarray:
        """Boolean ``(height, width)`` array of the pixels."""
        bits = np.unpackbits(self._rows, axis=1)
        return bits[:, : self.width].astype(bool)

    def count_on(self) -> int:
        """Number of "on" pixels."""
        return int(np.unpackbits(self._rows).sum())

    def _clear_padding(self) -> None:
        pad = self.pad
        if pad and self.height:
            self._rows[:, -1] &= np.uint8((0xFF << pad) & 0xFF)

    def _zero_rows(self, count: int) -> np.ndarray:
        return np.zeros((count, self.stride_bytes), dtype=np.uint8)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BitImage):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and np.array_equal(self._rows, other._rows)
        )

    def __repr__(self) -> str:
        return (
            f"BitImage(width={self.width}, height={self.height}, "
            f"stride_bits={self.stride_bits})"
        )

    # ------------------------------------------------------------------
    # Pixel access
    # ------------------------------------------------------------------

    def _in_range(self, x: int, y: int) -> bool:
        return 1 <= x <= self.width and 1 <= y <= self.height

    def get_pixel(self, x: int, y: int) -> bool:
        """Value of pixel ``(x, y)``; ``False`` outside the image."""
        if not self._in_range(x, y):
            return False
        byte = int(self._rows[y - 1, (x - 1) // 8])
        return bool((byte >> (7 - (x - 1) % 8)) & 1)

    def set_pixel(self, x: int, y: int, value: bool) -> bool:
        """Set pixel ``(x, y)``.  Returns ``False`` (and changes nothing)
        when the pixel lies outside the image."""
        if not self._in_range(x, y):
            return False
        col = (x - 1) // 8
        mask = 1 << (7 - (x - 1) % 8)
        byte = int(self._rows[y - 1, col])
        self._rows[y - 1, col] = (byte | mask) if value else (byte & ~mask & 0xFF)
        return True

    # ------------------------------------------------------------------
    # Row editing
    # ------------------------------------------------------------------

    def downsize_height(self, scale: int) -> None:
        """Shrink the image by removing every *scale*-th row.

        Rows whose 1-based index is a multiple of *scale* are removed.  The
        new height is ``int(height * (1 - 1/scale))``; when truncation makes
        that one row less than what remains, the trailing row is dropped
        as well so the buffer always matches the height.

        Parameters
        ----------
        scale : int
            Decimation factor.  ``0`` leaves the image untouched.
        """
        if scale == 0:
            return
        if scale < 0:
            raise ValueError(f"Scale must be >= 0, got {scale}")

        height = self.height
        indices = np.arange(1, height + 1)
        kept = self._rows[indices % scale != 0]

        new_height = int(height * (1.0 - 1.0 / scale))
        self._rows = kept[: min(new_height, kept.shape[0])]

    def pad_height(self, at_row: int, amount: int) -> None:
        """Insert *amount* zero rows so the first one becomes row *at_row*.

        ``at_row`` ranges from 1 (above the first row) to ``height + 1``
        (below the last row).
        """
        if amount < 0:
            raise ValueError(f"Padding amount must be >= 0, got {amount}")
        if not 1 <= at_row <= self.height + 1:
            raise ValueError(
                f"Padding row {at_row} outside 1..{self.height + 1}"
            )
        if amount == 0:
            return
        i = at_row - 1
        self._rows = np.concatenate(
            [self._rows[:i], self._zero_rows(amount), self._rows[i:]]
        )

    def move_image(self, direction: str, amount: int) -> None:
        """Shift the content up or down, keeping the height.

        ``"up"`` drops *amount* rows at the top and pads the bottom with
        zero rows; ``"down"`` drops rows at the bottom and pads the top.

        Raises
        ------
        ValueError
            If *direction* is not ``"up"``/``"down"`` or *amount* is
            negative or larger than the height.
        """
        if direction not in ("up", "down"):
            raise ValueError(
                f"Direction must be 'up' or 'down', got {direction!r}"
            )
        if not 0 <= amount <= self.height:
            raise ValueError(
                f"Cannot move {amount} rows in an image of height {self.height}"
            )
        if amount == 0:
            return
        if direction == "up":
            self._rows = np.concatenate(
                [self._rows[amount:], self._zero_rows(amount)]
            )
        else:
            self._rows = np.concatenate(
                [self._zero_rows(amount), self._rows[: self.height - amount]]
            )

    # ------------------------------------------------------------------
    # Compositing
    # ------------------------------------------------------------------

    def insert(self, other: BitImage, x: int, y: int) -> None:
        """Copy every pixel of *other* into this image at offset ``(x, y)``.

        Pixel ``(i, j)`` of *other* lands on ``(x + i, y + j)``.  Pixels
        falling outside this image are dropped.  Both on and off pixels are
        written, so inserting a blank image erases the covered area.
        """
        for j in range(1, other.height + 1):
            for i in range(1, other.width + 1):
                self.set_pixel(x + i, y + j, other.get_pixel(i, j))

    def draw_mask(self, mask: np.ndarray, x: int, y: int) -> None:
        """Write a 2-D boolean mask (rows first) at offset ``(x, y)``.

        Used to stamp glyphs produced by a rasterizer onto the plate.
        """
        mask = np.asarray(mask, dtype=bool)
        if mask.ndim != 2:
            raise ValueError(f"Expected a 2-D mask, got shape {mask.shape}")
        for r, c in np.ndindex(*mask.shape):
            self.set_pixel(x + c + 1, y + r + 1, bool(mask[r, c]))

    @classmethod
    def merge(cls, left: BitImage, right: BitImage) -> BitImage:
        """Place *left* and *right* side by side in a new image.

        The result is as wide as both images together and as tall as the
        taller one; each image is centred vertically.
        """
        height = max(left.height, right.height)
        merged = cls.create(left.width + right.width, height)
        merged.insert(left, 0, (height - left.height) // 2)
        merged.insert(right, left.width, (height - right.height) // 2)
        return merged

    def area_coverage(self, x: int, y: int) -> int:
        """Count on pixels in the 3x3 area around ``(x - 1, y - 1)``.

        The centre sits one pixel up and to the left of ``(x, y)``; the
        preview renderer samples with this offset.
        """
        x -= 1
        y -= 1
        return sum(
            self.get_pixel(x + dx, y + dy)
            for dy in (-1, 0, 1)
            for dx in (-1, 0, 1)
        )
