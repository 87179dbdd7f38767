"""
Capture Collaborators
=====================

Interfaces to the outside world used by the capture pipeline, plus the
image-backed implementations bundled with the package.

Protocols:
    - CaptureSource: The element being captured (selector + measured size)
    - Rasterizer: Turns a source into a Bitmap (async, one call per capture)
    - DiagramNormalizer: Best-effort vector-to-raster pre-pass and its undo

Bundled:
    - ImageSource: An already-rendered image (file or bytes) as the source
    - ImageRasterizer: Decodes an ImageSource, fills transparency with the
      background colour and clips/pads to the requested size
    - NoopDiagramNormalizer: Nothing to convert
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Tuple

import cv2
import numpy as np

from screencapture.document.encoder import ImageEncodeError, decode_image, parse_color
from screencapture.models.bitmap import Bitmap


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RasterizeOptions:
    """Options passed to the rasterizer."""

    background: Optional[str] = None
    width_px: Optional[int] = None
    height_px: Optional[int] = None
    letter_rendering: bool = False
    allow_taint: bool = False
    use_cors: bool = True
    logging: bool = False


@dataclass
class SoftStepResult:
    """
    Outcome of a best-effort step.

    Soft steps never abort a capture; a failed soft step is logged and
    the pipeline carries on.
    """

    ok: bool
    converted: int = 0
    error: Optional[str] = None


class CaptureSource(Protocol):
    """A capturable element."""

    selector: str

    def measure(self) -> Tuple[int, int]:
        """Current (width, height) of the element in pixels."""
        ...


class Rasterizer(Protocol):
    """Renders a source into a Bitmap."""

    async def rasterize(self, source: CaptureSource, options: RasterizeOptions) -> Bitmap:
        ...


class DiagramNormalizer(Protocol):
    """
    Replaces embedded vector diagrams with raster stand-ins before
    rasterization and puts the originals back afterwards.
    """

    def prepare(self, source: CaptureSource) -> int:
        """Convert diagrams; returns how many were converted."""
        ...

    def restore(self, source: CaptureSource) -> None:
        """Remove stand-ins and unhide the original diagrams."""
        ...


class NoopDiagramNormalizer:
    """Normalizer for sources without vector diagrams."""

    def prepare(self, source: CaptureSource) -> int:
        return 0

    def restore(self, source: CaptureSource) -> None:
        return None


class ImageSource:
    """
    Encoded image standing in for a rendered element.

    Attributes:
        data: Encoded image bytes (PNG, JPEG, ...)
        selector: Label used in logs
    """

    def __init__(self, data: bytes, selector: str = "body") -> None:
        self.data = data
        self.selector = selector
        self._size: Optional[Tuple[int, int]] = None

    @classmethod
    def from_path(cls, path: str, selector: Optional[str] = None) -> "ImageSource":
        file_path = Path(path)
        return cls(file_path.read_bytes(), selector=selector or file_path.name)

    @classmethod
    def from_b64(cls, data_b64: str, selector: str = "body") -> "ImageSource":
        if data_b64.startswith("data:"):
            data_b64 = data_b64[data_b64.find(",") + 1:]
        return cls(base64.b64decode(data_b64), selector=selector)

    def measure(self) -> Tuple[int, int]:
        """
        Decoded image size.

        Raises:
            ImageEncodeError: If the bytes are not an image
        """
        if self._size is None:
            image = cv2.imdecode(np.frombuffer(self.data, np.uint8), cv2.IMREAD_UNCHANGED)
            if image is None:
                raise ImageEncodeError(f"Source {self.selector!r} is not a decodable image")
            self._size = (int(image.shape[1]), int(image.shape[0]))
        return self._size

    def __repr__(self) -> str:
        return f"ImageSource(selector={self.selector!r}, size={len(self.data)}B)"


class ImageRasterizer:
    """
    Rasterizer for ImageSource inputs.

    The requested width/height select the top-left region of the image;
    areas beyond the image edge are filled with the background colour.
    """

    async def rasterize(self, source: ImageSource, options: RasterizeOptions) -> Bitmap:
        return await asyncio.to_thread(self._rasterize, source, options)

    def _rasterize(self, source: ImageSource, options: RasterizeOptions) -> Bitmap:
        bitmap = decode_image(source.data, options.background)
        width = options.width_px or bitmap.width
        height = options.height_px or bitmap.height

        if (width, height) == (bitmap.width, bitmap.height):
            return bitmap

        canvas = np.empty((height, width, 3), dtype=np.uint8)
        canvas[:, :] = parse_color(options.background)
        copy_h = min(height, bitmap.height)
        copy_w = min(width, bitmap.width)
        canvas[:copy_h, :copy_w] = bitmap.pixels[:copy_h, :copy_w]

        if options.logging:
            logger.info(
                f"Rasterized {source.selector!r}: {bitmap.width}x{bitmap.height}px "
                f"-> {width}x{height}px"
            )
        return Bitmap(canvas)
