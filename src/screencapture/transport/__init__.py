"""
Transport Module
================

Moving artifacts across size-limited or remote channels.

This module provides:
    - chunks: split/join codec plus data-URI helpers
    - Uploader, HttpUploader, UploadPayload: Remote persistence of chunk arrays
    - RemoteConversionClient, build_html_shell: HTML-to-PDF conversion service
"""

from screencapture.transport.chunks import (
    chunk_count,
    join,
    split,
    strip_data_uri_prefix,
    to_data_uri,
)
from screencapture.transport.conversion import RemoteConversionClient, build_html_shell
from screencapture.transport.upload import HttpUploader, UploadPayload, Uploader

__all__ = [
    "split",
    "join",
    "chunk_count",
    "to_data_uri",
    "strip_data_uri_prefix",
    "Uploader",
    "HttpUploader",
    "UploadPayload",
    "RemoteConversionClient",
    "build_html_shell",
]
