"""
Image Encoder
=============

Dedicated module for converting between encoded images and Bitmaps.

Design Rules:
    - This is the ONLY place in the codebase that encodes or decodes images
    - Decoded images are normalised to (H, W, 3) uint8 BGR
    - Transparent pixels are composited onto a background colour
    - Fails fast on corrupt input
"""

import base64
import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from screencapture.models.bitmap import Bitmap
from screencapture.models.request import OutputKind


logger = logging.getLogger(__name__)


class ImageEncodeError(Exception):
    """Raised when image encoding or decoding fails."""
    pass


DEFAULT_BACKGROUND = (255, 255, 255)


def parse_color(value: Optional[str]) -> Tuple[int, int, int]:
    """
    Parse "#RRGGBB" / "#RGB" into a BGR tuple.

    None, blank and "transparent" yield white.

    Raises:
        ValueError: If the colour string is malformed
    """
    if value is None:
        return DEFAULT_BACKGROUND
    text = value.strip().lstrip("#")
    if not text or text.lower() == "transparent":
        return DEFAULT_BACKGROUND
    if len(text) == 3:
        text = "".join(ch * 2 for ch in text)
    if len(text) != 6:
        raise ValueError(f"Invalid colour: {value!r}")
    r, g, b = (int(text[i:i + 2], 16) for i in (0, 2, 4))
    return (b, g, r)


def decode_image(data: bytes, background: Optional[str] = None) -> Bitmap:
    """
    Decode PNG/JPEG/... bytes into a Bitmap.

    Args:
        data: Encoded image bytes
        background: Colour placed behind transparent pixels

    Returns:
        Bitmap with BGR pixels

    Raises:
        ImageEncodeError: If the bytes are not a decodable image
    """
    nparr = np.frombuffer(data, np.uint8)
    image = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ImageEncodeError("cv2.imdecode returned None")

    if image.dtype != np.uint8:
        image = cv2.convertScaleAbs(image, alpha=255.0 / max(float(image.max()), 1.0))

    if image.ndim == 2:
        return Bitmap(cv2.cvtColor(image, cv2.COLOR_GRAY2BGR))

    if image.shape[2] == 4:
        return Bitmap(_composite(image, parse_color(background)))

    if image.shape[2] != 3:
        raise ImageEncodeError(f"Unsupported channel count: {image.shape[2]}")

    return Bitmap(image)


def decode_image_b64(data_b64: str, background: Optional[str] = None) -> Bitmap:
    """Decode a base64 string (data URI prefix allowed) into a Bitmap."""
    if data_b64.startswith("data:"):
        data_b64 = data_b64[data_b64.find(",") + 1:]
    try:
        image_bytes = base64.b64decode(data_b64, validate=True)
    except base64.binascii.Error as e:
        raise ImageEncodeError(f"Base64 decode failed: {e}")
    return decode_image(image_bytes, background)


def _composite(bgra: np.ndarray, background: Tuple[int, int, int]) -> np.ndarray:
    alpha = bgra[:, :, 3:4].astype(np.float32) / 255.0
    color = bgra[:, :, :3].astype(np.float32)
    backdrop = np.empty_like(color)
    backdrop[:, :] = background
    blended = color * alpha + backdrop * (1.0 - alpha)
    return np.clip(blended + 0.5, 0, 255).astype(np.uint8)


def encode_jpeg(bitmap: Bitmap, quality: int = 90) -> bytes:
    """
    Encode a bitmap as JPEG.

    Args:
        bitmap: Source bitmap
        quality: JPEG quality 1-100

    Returns:
        JPEG bytes

    Raises:
        ImageEncodeError: If encoding fails
    """
    ok, buffer = cv2.imencode(".jpg", bitmap.pixels, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise ImageEncodeError(f"JPEG encoding failed for {bitmap!r}")
    return buffer.tobytes()


def encode_png(bitmap: Bitmap) -> bytes:
    """Encode a bitmap as lossless PNG."""
    ok, buffer = cv2.imencode(".png", bitmap.pixels)
    if not ok:
        raise ImageEncodeError(f"PNG encoding failed for {bitmap!r}")
    return buffer.tobytes()


def encode_raster(bitmap: Bitmap, output_kind: OutputKind, jpeg_quality: int = 90) -> bytes:
    """Encode a bitmap for a raster OutputKind (PNG or JPEG)."""
    if output_kind is OutputKind.JPEG:
        return encode_jpeg(bitmap, jpeg_quality)
    if output_kind is OutputKind.PNG:
        return encode_png(bitmap)
    raise ImageEncodeError(f"{output_kind.value} is not a raster output kind")
