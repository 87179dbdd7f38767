"""
Test Configuration
==================

Pytest fixtures and test configuration for screencapture.
"""

from typing import List, Optional, Tuple

import cv2
import numpy as np
import pytest

from screencapture.delivery import ArtifactDispatcher, MemorySink, Notifier
from screencapture.models.bitmap import Bitmap
from screencapture.transport.upload import UploadPayload


def make_bitmap(width: int, height: int) -> Bitmap:
    """Bitmap whose blue channel encodes the row index (mod 256)."""
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[:, :, 0] = (np.arange(height) % 256)[:, None]
    pixels[:, :, 1] = 128
    return Bitmap(pixels)


def make_png(width: int, height: int, alpha: Optional[int] = None) -> bytes:
    """Encoded PNG; with alpha set, a BGRA image of that opacity."""
    channels = 3 if alpha is None else 4
    pixels = np.full((height, width, channels), 40, dtype=np.uint8)
    if alpha is not None:
        pixels[:, :, 3] = alpha
    ok, buffer = cv2.imencode(".png", pixels)
    assert ok
    return buffer.tobytes()


class FakeSource:
    """Capture source with a fixed measured size."""

    def __init__(self, width: int = 800, height: int = 600, selector: str = "#report") -> None:
        self.selector = selector
        self.size = (width, height)
        self.measure_calls = 0

    def measure(self) -> Tuple[int, int]:
        self.measure_calls += 1
        return self.size


class FakeRasterizer:
    """Returns a bitmap of the requested size, or raises a configured error."""

    def __init__(self, error: Optional[Exception] = None, empty: bool = False) -> None:
        self.error = error
        self.empty = empty
        self.calls: List[tuple] = []

    async def rasterize(self, source, options) -> Bitmap:
        self.calls.append((source, options))
        if self.error is not None:
            raise self.error
        if self.empty:
            return Bitmap(np.zeros((0, options.width_px, 3), dtype=np.uint8))
        return make_bitmap(options.width_px, options.height_px)


class FailingSink:
    """Download/viewer sink whose every delivery raises."""

    def __init__(self, error: Exception) -> None:
        self.error = error

    def save(self, file_name: str, data: bytes, content_type: str) -> Optional[str]:
        raise self.error

    def show(self, data: bytes, content_type: str) -> Optional[str]:
        raise self.error


class FakeUploader:
    """Uploader recording payloads and answering with a fixed result."""

    def __init__(self, result: bool = True, error: Optional[Exception] = None) -> None:
        self.result = result
        self.error = error
        self.payloads: List[UploadPayload] = []

    async def upload(self, payload: UploadPayload) -> bool:
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return self.result


class RecordingNormalizer:
    """Diagram normalizer recording calls; optionally failing in prepare."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.prepared = 0
        self.restored = 0

    def prepare(self, source) -> int:
        self.prepared += 1
        if self.fail:
            raise RuntimeError("diagram conversion unavailable")
        return 2

    def restore(self, source) -> None:
        self.restored += 1


class EventRecorder:
    """Notifier handler collecting (event, payload) pairs."""

    def __init__(self) -> None:
        self.events: List[tuple] = []

    def __call__(self, event, payload) -> None:
        self.events.append((event, payload))

    def names(self) -> List[str]:
        return [event.value for event, _ in self.events]


@pytest.fixture
def sink():
    """In-memory download/viewer sink."""
    return MemorySink()


@pytest.fixture
def notifier():
    """Notifier with a recorder subscribed to every event."""
    from screencapture.delivery import CaptureEvent

    notifier = Notifier()
    recorder = EventRecorder()
    for event in CaptureEvent:
        notifier.subscribe(event, recorder)
    notifier.recorder = recorder
    return notifier


@pytest.fixture
def uploader():
    """Uploader that confirms persistence."""
    return FakeUploader()


@pytest.fixture
def dispatcher(sink, uploader, notifier):
    """Dispatcher delivering into memory with a small chunk size."""
    return ArtifactDispatcher(
        download_sink=sink,
        viewer=sink,
        uploader=uploader,
        chunk_size=64,
        notifier=notifier,
    )
