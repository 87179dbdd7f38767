"""
screencapture
=============

Capture a rendered document region as a raster image or a paginated PDF and
deliver it: save to disk, open in a viewer, or upload in transport-sized chunks.

Components:
    - layout: Page geometry for continuous, multi-page and single-fit PDFs
    - document: Image encoding and PDF document assembly
    - transport: Chunk codec, upload and remote HTML conversion clients
    - delivery: Artifact dispatch to download / viewer / upload sinks
    - pipeline: LangGraph capture state machine with guaranteed cleanup

Example:
    from screencapture.pipeline import CapturePipeline, ImageSource
    from screencapture.models import CaptureRequest

    pipeline = CapturePipeline.from_settings()
    result = await pipeline.capture(
        CaptureRequest(output_kind="PDF", strategy_hint="MULTI_PAGE_A4"),
        ImageSource.from_path("page.png"),
    )
"""

__version__ = "0.1.0"
__author__ = "screencapture contributors"

__all__ = [
    "__version__",
]
