"""
Capture Errors
==============

Exception taxonomy shared by every capture stage.

Hard errors abort the pipeline and move it to FAILED:
    - InvalidBitmapError: zero-area source bitmap
    - RasterizationFailure: the rasterizer collaborator failed
    - DispatchFailure: download, viewer or upload step failed
    - ConversionFailure: remote HTML-to-PDF conversion failed

LayoutOverflowError is internal to the layout engine and is always
resolved by falling back to multi-page layout.
"""


class CaptureError(Exception):
    """
    Base class for capture failures.

    Attributes:
        notified: True once an error notification was emitted for this
            failure, so the pipeline does not emit a second one.
    """

    def __init__(self, message: str, notified: bool = False) -> None:
        super().__init__(message)
        self.notified = notified


class InvalidBitmapError(CaptureError):
    """Raised when a bitmap has zero (or negative) width or height."""
    pass


class LayoutOverflowError(CaptureError):
    """Raised when a continuous page would exceed the maximum page length."""

    def __init__(self, page_height: float, max_height: float) -> None:
        super().__init__(
            f"Continuous page height {page_height:.1f} exceeds maximum {max_height:.1f}"
        )
        self.page_height = page_height
        self.max_height = max_height


class RasterizationFailure(CaptureError):
    """Raised when the rasterization collaborator fails."""
    pass


class DispatchFailure(CaptureError):
    """Raised when delivering an artifact fails."""
    pass


class ConversionFailure(CaptureError):
    """Raised when the remote conversion service rejects or fails a request."""
    pass
