"""
Delivery Module
===============

Getting finished artifacts to the user.

This module provides:
    - ArtifactDispatcher: One-branch delivery with exactly-once completion
    - DispatchMetadata: File naming for a delivery
    - Notifier, CaptureEvent: SAVED / ERROR notifications
    - FileDownloadSink, BrowserViewer, MemorySink: Local sinks
"""

from screencapture.delivery.dispatcher import ArtifactDispatcher, DispatchMetadata
from screencapture.delivery.notifier import CaptureEvent, Notifier
from screencapture.delivery.sinks import (
    BrowserViewer,
    DownloadSink,
    FileDownloadSink,
    MemorySink,
    ViewerSink,
)

__all__ = [
    "ArtifactDispatcher",
    "DispatchMetadata",
    "CaptureEvent",
    "Notifier",
    "DownloadSink",
    "ViewerSink",
    "FileDownloadSink",
    "BrowserViewer",
    "MemorySink",
]
