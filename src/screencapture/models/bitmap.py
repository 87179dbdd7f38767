"""
Bitmap Data Model
=================

Immutable raster produced once per capture.

Design Rules:
    - Pixels are a read-only (H, W, 3) uint8 BGR array
    - Never mutated after creation
    - Derivative bitmaps are produced by cropping rows, never columns
"""

from dataclasses import dataclass

import numpy as np

from screencapture.models.errors import InvalidBitmapError


@dataclass(frozen=True)
class Bitmap:
    """
    Rasterized pixel grid of a captured document region.

    Attributes:
        pixels: Read-only BGR image, shape (height, width, 3), dtype uint8
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 3:
            raise ValueError(f"Bitmap expects (H, W, 3) pixels, got {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"Bitmap expects uint8 pixels, got {self.pixels.dtype}")
        self.pixels.flags.writeable = False

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def crop_rows(self, y_offset: int, height: int) -> "Bitmap":
        """
        Crop a full-width horizontal band.

        Args:
            y_offset: First source row (inclusive)
            height: Number of rows

        Returns:
            New Bitmap holding a copy of the band

        Raises:
            InvalidBitmapError: If the band is empty or leaves the bitmap
        """
        if height <= 0 or y_offset < 0 or y_offset + height > self.height:
            raise InvalidBitmapError(
                f"Row band [{y_offset}, {y_offset + height}) outside bitmap height {self.height}"
            )
        band = np.ascontiguousarray(self.pixels[y_offset:y_offset + height, :, :])
        return Bitmap(band.copy())

    @classmethod
    def blank(cls, width: int, height: int, color: tuple = (255, 255, 255)) -> "Bitmap":
        """Create a solid-colour bitmap (BGR colour)."""
        pixels = np.empty((height, width, 3), dtype=np.uint8)
        pixels[:, :] = color
        return cls(pixels)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the pixel buffer."""
        return f"Bitmap(width={self.width}, height={self.height})"
