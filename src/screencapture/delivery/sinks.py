"""
Delivery Sinks
==============

Local endpoints for finished artifacts.

    - DownloadSink: Saves an artifact under a file name
    - ViewerSink: Displays an artifact without naming it
    - FileDownloadSink: Writes downloads into a directory
    - BrowserViewer: Opens artifacts in the system web browser
    - MemorySink: Keeps the last artifact in memory (HTTP responses, tests)
"""

import html
import logging
import tempfile
import webbrowser
from pathlib import Path
from typing import Optional, Protocol

from screencapture.transport.chunks import to_data_uri


logger = logging.getLogger(__name__)


class DownloadSink(Protocol):
    """Saves artifacts; returns where the artifact ended up."""

    def save(self, file_name: str, data: bytes, content_type: str) -> Optional[str]:
        ...


class ViewerSink(Protocol):
    """Shows artifacts in a fresh viewing context."""

    def show(self, data: bytes, content_type: str) -> Optional[str]:
        ...


class FileDownloadSink:
    """
    Writes downloads into an output directory.

    Attributes:
        output_dir: Directory receiving files (created on first save)
    """

    def __init__(self, output_dir: str = "./captures") -> None:
        self.output_dir = Path(output_dir)

    def save(self, file_name: str, data: bytes, content_type: str) -> Optional[str]:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / Path(file_name).name
        path.write_bytes(data)
        logger.info(f"Saved {content_type} ({len(data)} bytes) to {path}")
        return str(path)


class BrowserViewer:
    """
    Opens artifacts in a new browser tab.

    PDFs are written to a temporary file and opened directly; images are
    wrapped in an HTML page embedding them as a data URI.
    """

    def __init__(self, temp_dir: Optional[str] = None, open_url=webbrowser.open) -> None:
        self.temp_dir = temp_dir
        self._open_url = open_url

    def show(self, data: bytes, content_type: str) -> Optional[str]:
        if content_type == "application/pdf":
            suffix, body = ".pdf", data
        else:
            uri = html.escape(to_data_uri(data, content_type), quote=True)
            suffix = ".html"
            body = f'<!DOCTYPE html>\n<html><body><img src="{uri}" /></body></html>\n'.encode("utf-8")

        with tempfile.NamedTemporaryFile(
            "wb", suffix=suffix, prefix="screencapture-", dir=self.temp_dir, delete=False
        ) as handle:
            handle.write(body)
            path = Path(handle.name)

        url = path.resolve().as_uri()
        if not self._open_url(url, new=2):
            raise OSError(f"No browser available to open {url}")
        logger.info(f"Opened {content_type} in viewer: {url}")
        return url


class MemorySink:
    """
    Keeps the last delivered artifact in memory.

    Serves as both DownloadSink and ViewerSink.
    """

    def __init__(self) -> None:
        self.file_name: Optional[str] = None
        self.data: Optional[bytes] = None
        self.content_type: Optional[str] = None
        self.deliveries: int = 0

    def save(self, file_name: str, data: bytes, content_type: str) -> Optional[str]:
        self.file_name = file_name
        return self._keep(data, content_type)

    def show(self, data: bytes, content_type: str) -> Optional[str]:
        self.file_name = None
        return self._keep(data, content_type)

    def _keep(self, data: bytes, content_type: str) -> Optional[str]:
        self.data = data
        self.content_type = content_type
        self.deliveries += 1
        return None

