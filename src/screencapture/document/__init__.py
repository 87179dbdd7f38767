"""
Document Module
===============

Image encoding and PDF assembly.

This module provides:
    - encoder: Bitmap <-> PNG/JPEG conversion (the only image codec seam)
    - Document: Append-only paginated document rendered with reportlab
    - DocumentBuilder: Geometry-driven document assembly
"""

from screencapture.document.builder import (
    Artifact,
    Document,
    DocumentBuilder,
    DocumentFinalizedError,
    DocumentPage,
    RasterArtifact,
)
from screencapture.document.encoder import (
    ImageEncodeError,
    decode_image,
    decode_image_b64,
    encode_jpeg,
    encode_png,
    encode_raster,
    parse_color,
)

__all__ = [
    "Artifact",
    "Document",
    "DocumentBuilder",
    "DocumentFinalizedError",
    "DocumentPage",
    "RasterArtifact",
    "ImageEncodeError",
    "decode_image",
    "decode_image_b64",
    "encode_jpeg",
    "encode_png",
    "encode_raster",
    "parse_color",
]
