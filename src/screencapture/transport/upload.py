"""
Upload Collaborator
===================

Protocol and HTTP implementation for persisting chunked artifacts remotely.

Wire format (form-encoded POST):
    f01=<chunk 1>&f01=<chunk 2>&...&x01=<content type>

Design Rules:
    - upload() returns True only when the remote side confirmed persistence
    - Network errors and non-2xx statuses return False (logged), never raise
    - The blocking HTTP call runs in a worker thread so the event loop is
      free while the upload is in flight
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

import requests


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadPayload:
    """Ordered chunks of an encoded artifact plus its content type."""

    chunks: List[str] = field(default_factory=list)
    content_type: str = "application/octet-stream"

    @property
    def total_length(self) -> int:
        return sum(len(chunk) for chunk in self.chunks)

    def __repr__(self) -> str:
        return (
            f"UploadPayload(chunks={len(self.chunks)}, "
            f"length={self.total_length}, "
            f"content_type={self.content_type!r})"
        )


class Uploader(Protocol):
    """
    Protocol for upload backends.

    Implementations persist the payload and report whether it was saved.
    """

    async def upload(self, payload: UploadPayload) -> bool:
        ...


class HttpUploader:
    """
    Posts chunk arrays to an HTTP endpoint.

    Attributes:
        url: Endpoint receiving the form post
        timeout: Request timeout in seconds
        extra_fields: Additional form fields sent with every upload
    """

    def __init__(
        self,
        url: str,
        timeout: float = 60.0,
        extra_fields: Optional[dict] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.extra_fields = dict(extra_fields or {})
        self._session = session or requests.Session()
        self._upload_count: int = 0
        self._error_count: int = 0

    async def upload(self, payload: UploadPayload) -> bool:
        """
        Upload a payload.

        Returns:
            True if the endpoint answered with a 2xx status
        """
        self._upload_count += 1
        try:
            response = await asyncio.to_thread(self._post, payload)
        except requests.RequestException as e:
            self._error_count += 1
            logger.error(f"Upload to {self.url} failed: {e}")
            return False

        if not response.ok:
            self._error_count += 1
            logger.error(f"Upload to {self.url} rejected: HTTP {response.status_code}")
            return False

        logger.info(f"Uploaded {payload!r} to {self.url}")
        return True

    def _post(self, payload: UploadPayload) -> requests.Response:
        data = dict(self.extra_fields)
        data["f01"] = list(payload.chunks)
        data["x01"] = payload.content_type
        return self._session.post(self.url, data=data, timeout=self.timeout)

    def get_metrics(self) -> dict:
        return {
            "uploads": self._upload_count,
            "upload_errors": self._error_count,
        }
