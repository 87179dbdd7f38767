"""
screencapture Main Application
==============================

FastAPI entry point exposing the capture pipeline over HTTP.

The posted image stands in for the rendered element: it is decoded,
laid out and delivered exactly like a live capture.

Endpoints:
    GET  /         - Service information
    GET  /health   - Liveness probe
    GET  /metrics  - Capture counters and notification counts
    POST /capture  - Capture a base64 image
                     DIRECT_DOWNLOAD → attachment
                     NEW_TAB         → inline
                     DB_DOWNLOAD     → outcome JSON (upload via transport.upload_url)
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from urllib.parse import quote

from fastapi import FastAPI
from fastapi.responses import JSONResponse, Response
from pydantic import Field

from screencapture import __version__
from screencapture.config import settings
from screencapture.delivery import ArtifactDispatcher, CaptureEvent, MemorySink, Notifier
from screencapture.models import CaptureRequest, DeliveryMode
from screencapture.pipeline import CapturePipeline, ImageSource, InFlightCounter
from screencapture.transport import HttpUploader


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_notifier: Notifier = Notifier()
_busy: InFlightCounter = InFlightCounter()
_uploader: Optional[HttpUploader] = None
_captures_started: int = 0
_captures_succeeded: int = 0
_captures_failed: int = 0
_startup_time: float = 0.0


class CaptureBody(CaptureRequest):
    """Capture request carrying the source image."""

    image: str = Field(..., min_length=1, description="Base64 image or data URI")


def _content_disposition(disposition: str, file_name: str) -> str:
    """Content-Disposition value; non-ASCII names get an RFC 5987 filename*."""
    fallback = file_name.encode("ascii", "replace").decode("ascii").replace("?", "_").replace('"', "_")
    if fallback == file_name:
        return f'{disposition}; filename="{file_name}"'
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name, safe='')}"


def _build_pipeline(sink: MemorySink) -> CapturePipeline:
    """Pipeline delivering into a per-request memory sink."""
    dispatcher = ArtifactDispatcher(
        download_sink=sink,
        viewer=sink,
        uploader=_uploader,
        chunk_size=settings.transport.chunk_size,
        notifier=_notifier,
    )
    return CapturePipeline.from_settings(
        settings,
        dispatcher=dispatcher,
        busy_indicator=_busy,
    )


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    global _uploader, _startup_time

    _startup_time = time.time()
    logger.info(f"Starting screencapture {__version__}")

    if settings.transport.upload_url:
        _uploader = HttpUploader(
            settings.transport.upload_url,
            timeout=settings.transport.request_timeout_seconds,
        )
        logger.info(f"Remote upload enabled: {settings.transport.upload_url}")
    else:
        logger.info("Remote upload disabled (no transport.upload_url)")

    yield

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="screencapture",
    description="Capture rendered regions as images or paginated PDFs",
    version=__version__,
    lifespan=lifespan,
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "screencapture",
        "version": __version__,
        "status": "running",
        "upload_enabled": _uploader is not None,
        "delivery_modes": [mode.value for mode in DeliveryMode],
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Capture counters for observability."""
    upload_metrics = _uploader.get_metrics() if _uploader else {}

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "captures_started": _captures_started,
        "captures_succeeded": _captures_succeeded,
        "captures_failed": _captures_failed,
        **_busy.metrics(),
        **_notifier.metrics(),
        **upload_metrics,
    })


@app.post("/capture")
async def capture(body: CaptureBody) -> Response:
    """
    Capture the posted image.

    Returns the artifact for local delivery modes, the outcome for
    uploads, or 502 with the error event when the capture fails.
    """
    global _captures_started, _captures_succeeded, _captures_failed

    try:
        source = ImageSource.from_b64(body.image, selector=body.selector)
    except ValueError as e:
        return JSONResponse({"error": f"Invalid base64 image: {e}"}, status_code=400)

    request = CaptureRequest(**body.model_dump(exclude={"image"}))
    sink = MemorySink()
    pipeline = _build_pipeline(sink)

    _captures_started += 1
    result = await pipeline.capture(request, source)
    if result.succeeded:
        _captures_succeeded += 1
    else:
        _captures_failed += 1

    if not result.succeeded:
        return JSONResponse(
            {
                "event": CaptureEvent.ERROR.value,
                "error": result.error,
                "history": [stage.value for stage in result.history],
            },
            status_code=502,
        )

    if request.delivery_mode is DeliveryMode.DB_DOWNLOAD:
        return JSONResponse({
            "event": CaptureEvent.SAVED.value,
            **result.model_dump(mode="json"),
        })

    disposition = "inline" if request.delivery_mode is DeliveryMode.NEW_TAB else "attachment"
    return Response(
        content=sink.data,
        media_type=sink.content_type,
        headers={"Content-Disposition": _content_disposition(disposition, result.file_name)},
    )


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "screencapture.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
