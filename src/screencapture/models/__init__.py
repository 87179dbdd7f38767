"""
Data Models
===========

Data models for screencapture.

Models:
    Bitmap:
        - Bitmap: Immutable rasterized pixel grid

    Geometry:
        - Strategy: Page layout strategy (continuous, multi-page, single-fit)
        - Placement, SourceSlice, PageDescriptor: Per-page layout
        - PageGeometry: Complete validated layout for one artifact

    Request:
        - CaptureRequest: Host-supplied capture parameters
        - DeliveryMode, OutputKind: Delivery channel and artifact format

    Output:
        - CaptureStage: Pipeline states
        - DispatchOutcome, CaptureResult: Results reported to the caller

    Errors:
        - CaptureError and its subclasses
"""

from screencapture.models.bitmap import Bitmap
from screencapture.models.errors import (
    CaptureError,
    ConversionFailure,
    DispatchFailure,
    InvalidBitmapError,
    LayoutOverflowError,
    RasterizationFailure,
)
from screencapture.models.geometry import (
    PageDescriptor,
    PageGeometry,
    Placement,
    SourceSlice,
    Strategy,
)
from screencapture.models.output import CaptureResult, CaptureStage, DispatchOutcome
from screencapture.models.request import (
    CaptureRequest,
    DeliveryMode,
    OutputKind,
    sanitize_file_name,
)

__all__ = [
    # Bitmap
    "Bitmap",
    # Geometry
    "Strategy",
    "Placement",
    "SourceSlice",
    "PageDescriptor",
    "PageGeometry",
    # Request
    "CaptureRequest",
    "DeliveryMode",
    "OutputKind",
    "sanitize_file_name",
    # Output
    "CaptureStage",
    "DispatchOutcome",
    "CaptureResult",
    # Errors
    "CaptureError",
    "InvalidBitmapError",
    "LayoutOverflowError",
    "RasterizationFailure",
    "DispatchFailure",
    "ConversionFailure",
]
