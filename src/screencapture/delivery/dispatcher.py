"""
Artifact Dispatcher
===================

Delivers a finished artifact through exactly one channel.

Branches:
    DIRECT_DOWNLOAD:
        Hand the bytes and file name to the DownloadSink. Local only,
        completes without suspending.
    NEW_TAB:
        Hand the bytes to the ViewerSink. No file name involved.
    DB_DOWNLOAD (remote upload):
        bytes -> base64 data URI -> prefix stripped -> split into
        chunk_size pieces -> Uploader. Emits SAVED on confirmed
        persistence, ERROR otherwise.

Design Rules:
    - Side effects stay inside the chosen branch
    - on_complete fires exactly once per dispatch, success or failure
    - Failures raise DispatchFailure
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from screencapture.delivery.notifier import CaptureEvent, Notifier
from screencapture.delivery.sinks import DownloadSink, ViewerSink
from screencapture.document.builder import Artifact
from screencapture.models.errors import CaptureError, DispatchFailure
from screencapture.models.output import DispatchOutcome
from screencapture.models.request import DeliveryMode
from screencapture.transport.chunks import split, strip_data_uri_prefix, to_data_uri
from screencapture.transport.upload import Uploader, UploadPayload


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchMetadata:
    """Naming information travelling with an artifact."""

    file_name: str


class ArtifactDispatcher:
    """
    Routes artifacts to download, viewer or upload.

    Attributes:
        download_sink: Receives DIRECT_DOWNLOAD artifacts
        viewer: Receives NEW_TAB artifacts
        uploader: Receives DB_DOWNLOAD payloads (optional)
        chunk_size: Maximum characters per uploaded chunk
        notifier: Receives SAVED / ERROR events

    Example:
        dispatcher = ArtifactDispatcher(
            download_sink=FileDownloadSink("./captures"),
            viewer=BrowserViewer(),
            uploader=HttpUploader("https://example.com/upload"),
        )
        outcome = await dispatcher.dispatch(
            document, DeliveryMode.DB_DOWNLOAD, DispatchMetadata("report.pdf")
        )
    """

    def __init__(
        self,
        download_sink: DownloadSink,
        viewer: ViewerSink,
        uploader: Optional[Uploader] = None,
        chunk_size: int = 30000,
        notifier: Optional[Notifier] = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be >= 1")
        self.download_sink = download_sink
        self.viewer = viewer
        self.uploader = uploader
        self.chunk_size = chunk_size
        self.notifier = notifier or Notifier()

    async def dispatch(
        self,
        artifact: Artifact,
        mode: DeliveryMode,
        metadata: DispatchMetadata,
        on_complete: Optional[Callable[[], None]] = None,
    ) -> DispatchOutcome:
        """
        Deliver an artifact.

        Args:
            artifact: RasterArtifact or finalized Document
            mode: Delivery branch
            metadata: File naming
            on_complete: Called exactly once when the branch finishes,
                whether it succeeded or failed

        Returns:
            DispatchOutcome describing the delivery

        Raises:
            DispatchFailure: If the branch failed
        """
        try:
            if mode is DeliveryMode.DIRECT_DOWNLOAD:
                return self._download(artifact, metadata)
            if mode is DeliveryMode.NEW_TAB:
                return self._show(artifact)
            if mode is DeliveryMode.DB_DOWNLOAD:
                return await self._upload(artifact, metadata)
            raise DispatchFailure(f"Unsupported delivery mode: {mode!r}")
        finally:
            if on_complete is not None:
                on_complete()

    # -------------------------------------------------------------------------
    # Branches
    # -------------------------------------------------------------------------

    def _download(self, artifact: Artifact, metadata: DispatchMetadata) -> DispatchOutcome:
        data = artifact.to_bytes()
        try:
            location = self.download_sink.save(metadata.file_name, data, artifact.content_type)
        except CaptureError:
            raise
        except Exception as e:
            logger.error(f"Download of {metadata.file_name} failed: {e}")
            raise DispatchFailure(f"Download of {metadata.file_name} failed: {e}")

        return DispatchOutcome(
            mode=DeliveryMode.DIRECT_DOWNLOAD,
            file_name=metadata.file_name,
            content_type=artifact.content_type,
            size_bytes=len(data),
            location=location,
        )

    def _show(self, artifact: Artifact) -> DispatchOutcome:
        data = artifact.to_bytes()
        try:
            location = self.viewer.show(data, artifact.content_type)
        except CaptureError:
            raise
        except Exception as e:
            logger.error(f"Opening viewer failed: {e}")
            raise DispatchFailure(f"Opening viewer failed: {e}")

        return DispatchOutcome(
            mode=DeliveryMode.NEW_TAB,
            content_type=artifact.content_type,
            size_bytes=len(data),
            location=location,
        )

    async def _upload(self, artifact: Artifact, metadata: DispatchMetadata) -> DispatchOutcome:
        if self.uploader is None:
            self.notifier.emit(CaptureEvent.ERROR, {"error": "no uploader configured"})
            raise DispatchFailure("Remote upload requested but no uploader is configured", notified=True)

        data = artifact.to_bytes()
        encoded = strip_data_uri_prefix(to_data_uri(data, artifact.content_type))
        payload = UploadPayload(
            chunks=split(encoded, self.chunk_size),
            content_type=artifact.content_type,
        )
        logger.debug(f"Uploading {payload!r}")

        try:
            saved = await self.uploader.upload(payload)
        except Exception as e:
            logger.error(f"Uploader raised: {e}")
            saved = False

        if not saved:
            self.notifier.emit(
                CaptureEvent.ERROR,
                {"file_name": metadata.file_name, "error": "upload failed"},
            )
            raise DispatchFailure(f"Upload of {metadata.file_name} failed", notified=True)

        self.notifier.emit(
            CaptureEvent.SAVED,
            {"file_name": metadata.file_name, "chunks": len(payload.chunks)},
        )
        return DispatchOutcome(
            mode=DeliveryMode.DB_DOWNLOAD,
            file_name=metadata.file_name,
            content_type=artifact.content_type,
            size_bytes=len(data),
            chunks=len(payload.chunks),
        )
