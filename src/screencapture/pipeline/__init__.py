"""
Pipeline Module
===============

Capture orchestration.

This module provides:
    - CapturePipeline: LangGraph state machine (prepare → rasterize →
      encode → dispatch)
    - Collaborator protocols and the bundled image-backed implementations
    - Busy indicator scoping
"""

from screencapture.pipeline.busy import BusyIndicator, InFlightCounter, busy_scope
from screencapture.pipeline.collaborators import (
    CaptureSource,
    DiagramNormalizer,
    ImageRasterizer,
    ImageSource,
    NoopDiagramNormalizer,
    Rasterizer,
    RasterizeOptions,
    SoftStepResult,
)
from screencapture.pipeline.graph import CaptureGraphState, CapturePipeline, create_initial_state

__all__ = [
    "CapturePipeline",
    "CaptureGraphState",
    "create_initial_state",
    "BusyIndicator",
    "InFlightCounter",
    "busy_scope",
    "CaptureSource",
    "Rasterizer",
    "RasterizeOptions",
    "DiagramNormalizer",
    "NoopDiagramNormalizer",
    "SoftStepResult",
    "ImageSource",
    "ImageRasterizer",
]
