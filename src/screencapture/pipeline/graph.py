"""
Capture Pipeline Graph
======================

LangGraph state machine driving one capture from request to delivery.

LangGraph is used for CONTROL FLOW only; every node is a plain coroutine.

Graph Structure:
    START → prepare → rasterize → encode → dispatch → done → END
              │           │          │          │
              └───────────┴──────────┴──────────┴──→ failed → END

Stages:
    prepare:   measure the source, apply width/height overrides, run the
               best-effort diagram normalization (never fatal)
    rasterize: await the rasterizer; normalization is restored whatever
               the outcome
    encode:    PDF → layout engine + document builder; PNG/JPEG → encoder
    dispatch:  hand the artifact to the dispatcher
    done / failed: terminal bookkeeping

Guarantees:
    - Stages run strictly in order; a stage starts only after its
      predecessor returned
    - The busy indicator is released on every exit
    - on_complete fires exactly once per capture, success or failure
    - A failed capture emits ERROR once and delivers nothing
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, TypedDict

from langgraph.graph import END, StateGraph

from screencapture.delivery.dispatcher import ArtifactDispatcher, DispatchMetadata
from screencapture.delivery.notifier import CaptureEvent, Notifier
from screencapture.delivery.sinks import BrowserViewer, FileDownloadSink
from screencapture.document.builder import Artifact, DocumentBuilder, RasterArtifact
from screencapture.document.encoder import encode_raster
from screencapture.layout.engine import LayoutConstants, PageLayoutEngine
from screencapture.models.bitmap import Bitmap
from screencapture.models.errors import (
    CaptureError,
    DispatchFailure,
    InvalidBitmapError,
    RasterizationFailure,
)
from screencapture.models.output import CaptureResult, CaptureStage, DispatchOutcome
from screencapture.models.request import CaptureRequest, DeliveryMode, OutputKind
from screencapture.pipeline.busy import BusyIndicator, InFlightCounter, busy_scope
from screencapture.pipeline.collaborators import (
    CaptureSource,
    DiagramNormalizer,
    ImageRasterizer,
    NoopDiagramNormalizer,
    Rasterizer,
    RasterizeOptions,
    SoftStepResult,
)
from screencapture.transport.conversion import RemoteConversionClient, build_html_shell
from screencapture.transport.upload import HttpUploader


logger = logging.getLogger(__name__)


CompletionCallback = Callable[[Optional[CaptureResult]], None]


class CaptureGraphState(TypedDict):
    """
    State passed through the capture graph.

    Attributes:
        request: Capture parameters
        source: Element being captured
        file_name: Sanitized output file name
        options: Resolved rasterizer options
        normalization: Result of the diagram pre-pass
        bitmap: Rasterized source
        artifact: Encoded image or finalized document
        outcome: Delivery result
        error: Hard failure that ended the capture
        history: Stages entered so far, in order
    """
    request: CaptureRequest
    source: CaptureSource
    file_name: str
    options: Optional[RasterizeOptions]
    normalization: Optional[SoftStepResult]
    bitmap: Optional[Bitmap]
    artifact: Optional[Artifact]
    outcome: Optional[DispatchOutcome]
    error: Optional[CaptureError]
    history: List[CaptureStage]


def create_initial_state(request: CaptureRequest, source: CaptureSource) -> CaptureGraphState:
    """Create the graph state for a new capture."""
    return {
        "request": request,
        "source": source,
        "file_name": request.sanitized_file_name,
        "options": None,
        "normalization": None,
        "bitmap": None,
        "artifact": None,
        "outcome": None,
        "error": None,
        "history": [CaptureStage.IDLE],
    }


def _enter(state: CaptureGraphState, stage: CaptureStage) -> List[CaptureStage]:
    return state["history"] + [stage]


class CapturePipeline:
    """
    Orchestrates capture → layout/encode → dispatch.

    Each call to capture() runs its own graph state; instances hold only
    collaborators and read-only configuration, so overlapping captures
    do not interfere.

    Example:
        pipeline = CapturePipeline.from_settings()
        result = await pipeline.capture(
            CaptureRequest(output_kind="PDF", strategy_hint="CONT_PAGE"),
            ImageSource.from_path("dashboard.png"),
        )
        print(result.stage, result.outcome)
    """

    def __init__(
        self,
        rasterizer: Rasterizer,
        dispatcher: ArtifactDispatcher,
        layout_engine: Optional[PageLayoutEngine] = None,
        document_builder: Optional[DocumentBuilder] = None,
        normalizer: Optional[DiagramNormalizer] = None,
        busy_indicator: Optional[BusyIndicator] = None,
        converter: Optional[RemoteConversionClient] = None,
        jpeg_quality: int = 90,
        default_strategy_hint: Optional[str] = None,
        default_background: Optional[str] = None,
        stylesheets: Tuple[str, ...] = (),
        base_href: Optional[str] = None,
    ) -> None:
        self.rasterizer = rasterizer
        self.dispatcher = dispatcher
        self.layout_engine = layout_engine or PageLayoutEngine()
        self.document_builder = document_builder or DocumentBuilder(jpeg_quality=jpeg_quality)
        self.normalizer = normalizer or NoopDiagramNormalizer()
        self.busy_indicator = busy_indicator or InFlightCounter()
        self.converter = converter
        self.jpeg_quality = jpeg_quality
        self.default_strategy_hint = default_strategy_hint
        self.default_background = default_background
        self.stylesheets = tuple(stylesheets)
        self.base_href = base_href

        self.captures_started = 0
        self.captures_succeeded = 0
        self.captures_failed = 0

        self._graph = self._build_graph()

        logger.info("CapturePipeline initialized")

    @property
    def notifier(self) -> Notifier:
        return self.dispatcher.notifier

    @classmethod
    def from_settings(cls, settings=None, **overrides: Any) -> "CapturePipeline":
        """
        Build a pipeline from configuration.

        Keyword overrides replace the corresponding constructor arguments
        (e.g. a custom rasterizer or dispatcher).
        """
        if settings is None:
            from screencapture.config import settings

        kwargs: Dict[str, Any] = {
            "layout_engine": PageLayoutEngine(LayoutConstants.from_config(settings.layout)),
            "jpeg_quality": settings.encoding.jpeg_quality,
            "default_strategy_hint": settings.capture.strategy_hint,
            "default_background": settings.capture.background,
            "stylesheets": tuple(settings.conversion.stylesheets),
            "base_href": settings.conversion.base_href,
        }
        if "rasterizer" not in overrides:
            kwargs["rasterizer"] = ImageRasterizer()
        if "dispatcher" not in overrides:
            uploader = None
            if settings.transport.upload_url:
                uploader = HttpUploader(
                    settings.transport.upload_url,
                    timeout=settings.transport.request_timeout_seconds,
                )
            kwargs["dispatcher"] = ArtifactDispatcher(
                download_sink=FileDownloadSink(settings.delivery.output_dir),
                viewer=BrowserViewer(),
                uploader=uploader,
                chunk_size=settings.transport.chunk_size,
            )
        if "converter" not in overrides and settings.conversion.api_key:
            kwargs["converter"] = RemoteConversionClient(
                api_url=settings.conversion.api_url,
                api_key=settings.conversion.api_key,
                sandbox=settings.conversion.sandbox,
                margin_mm=settings.conversion.margin_mm,
                timeout=settings.transport.request_timeout_seconds,
            )
        kwargs.update(overrides)
        return cls(**kwargs)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def capture(
        self,
        request: CaptureRequest,
        source: CaptureSource,
        on_complete: Optional[CompletionCallback] = None,
    ) -> CaptureResult:
        """
        Run one capture.

        Args:
            request: Capture parameters
            source: Element to capture
            on_complete: Called exactly once with the result, on every path

        Returns:
            CaptureResult in DONE or FAILED stage
        """
        self.captures_started += 1
        result: Optional[CaptureResult] = None
        try:
            async with busy_scope(self.busy_indicator):
                final_state = await self._graph.ainvoke(create_initial_state(request, source))
                result = self._to_result(final_state)
            return result
        finally:
            self._record(result)
            if on_complete is not None:
                on_complete(result)

    async def render_html(
        self,
        fragment_html: str,
        request: CaptureRequest,
        inline_css: str = "",
        on_complete: Optional[CompletionCallback] = None,
    ) -> CaptureResult:
        """
        Render an HTML fragment through the remote conversion service and
        download the resulting PDF.

        Skips local rasterization entirely. Same busy-indicator and
        completion guarantees as capture().
        """
        file_name = request.model_copy(update={"output_kind": OutputKind.PDF}).sanitized_file_name
        history = [CaptureStage.IDLE, CaptureStage.PREPARING]
        self.captures_started += 1
        result: Optional[CaptureResult] = None
        try:
            async with busy_scope(self.busy_indicator):
                try:
                    if self.converter is None:
                        raise CaptureError("No remote conversion client configured")
                    document_html = build_html_shell(
                        fragment_html,
                        stylesheets=self.stylesheets,
                        inline_css=inline_css,
                        base_href=self.base_href,
                    )
                    if request.logging:
                        logger.info(f"Converting {len(document_html)} chars of HTML for {file_name}")

                    history.append(CaptureStage.ENCODING)
                    pdf_bytes = await self.converter.convert(document_html)

                    history.append(CaptureStage.DISPATCHING)
                    outcome = await self.dispatcher.dispatch(
                        RasterArtifact(pdf_bytes, OutputKind.PDF.mime_type),
                        DeliveryMode.DIRECT_DOWNLOAD,
                        DispatchMetadata(file_name),
                    )
                    history.append(CaptureStage.DONE)
                    result = CaptureResult(
                        stage=CaptureStage.DONE,
                        history=history,
                        file_name=file_name,
                        outcome=outcome,
                    )
                except Exception as e:
                    error = e
                    if not isinstance(e, CaptureError):
                        logger.error(f"HTML conversion of {file_name} failed: {e}")
                        error = CaptureError(f"HTML conversion failed: {e}")
                    history.append(CaptureStage.FAILED)
                    self._notify_failure(error, file_name)
                    result = CaptureResult(
                        stage=CaptureStage.FAILED,
                        history=history,
                        file_name=file_name,
                        error=f"{type(error).__name__}: {error}",
                    )
            return result
        finally:
            self._record(result)
            if on_complete is not None:
                on_complete(result)

    # -------------------------------------------------------------------------
    # Graph
    # -------------------------------------------------------------------------

    def _build_graph(self):
        """Build the LangGraph workflow."""
        workflow = StateGraph(CaptureGraphState)

        workflow.add_node("prepare", self._prepare_node)
        workflow.add_node("rasterize", self._rasterize_node)
        workflow.add_node("encode", self._encode_node)
        workflow.add_node("dispatch", self._dispatch_node)
        workflow.add_node("done", self._done_node)
        workflow.add_node("failed", self._failed_node)

        workflow.set_entry_point("prepare")
        for stage, successor in (
            ("prepare", "rasterize"),
            ("rasterize", "encode"),
            ("encode", "dispatch"),
            ("dispatch", "done"),
        ):
            workflow.add_conditional_edges(
                stage,
                self._route_to(successor),
                {successor: successor, "failed": "failed"},
            )
        workflow.add_edge("done", END)
        workflow.add_edge("failed", END)

        return workflow.compile()

    @staticmethod
    def _route_to(successor: str) -> Callable[[CaptureGraphState], str]:
        def route(state: CaptureGraphState) -> str:
            return "failed" if state.get("error") is not None else successor
        return route

    async def _prepare_node(self, state: CaptureGraphState) -> Dict[str, Any]:
        """Resolve dimensions and run the diagram pre-pass."""
        history = _enter(state, CaptureStage.PREPARING)
        request = state["request"]
        source = state["source"]

        try:
            measured_w, measured_h = source.measure()
        except Exception as e:
            logger.error(f"Measuring {source.selector!r} failed: {e}")
            return {
                "history": history,
                "error": RasterizationFailure(f"Cannot measure {source.selector!r}: {e}"),
            }

        options = RasterizeOptions(
            background=request.background or self.default_background,
            width_px=request.width_px or measured_w,
            height_px=request.height_px or measured_h,
            letter_rendering=request.letter_rendering,
            allow_taint=request.allow_taint,
            logging=request.logging,
        )

        if request.logging:
            table = {
                "selector": source.selector,
                "delivery_mode": request.delivery_mode.value,
                "background": options.background,
                "width_px": options.width_px,
                "height_px": options.height_px,
                "letter_rendering": options.letter_rendering,
                "allow_taint": options.allow_taint,
                "mime_type": request.output_kind.mime_type,
                "file_name": request.file_name,
                "sanitized_file_name": state["file_name"],
                "strategy_hint": request.strategy_hint or self.default_strategy_hint,
            }
            for key, value in table.items():
                logger.info(f"  {key:<20} {value}")

        return {
            "history": history,
            "options": options,
            "normalization": self._normalize(source),
        }

    async def _rasterize_node(self, state: CaptureGraphState) -> Dict[str, Any]:
        """Rasterize the source; always undo the diagram pre-pass."""
        history = _enter(state, CaptureStage.RASTERIZING)
        source = state["source"]

        try:
            bitmap = await self.rasterizer.rasterize(source, state["options"])
        except Exception as e:
            logger.error(f"Rasterizing {source.selector!r} failed: {e}")
            return {
                "history": history,
                "error": RasterizationFailure(f"Rasterizing {source.selector!r} failed: {e}"),
            }
        finally:
            self._restore(source)

        if bitmap.is_empty:
            return {
                "history": history,
                "error": InvalidBitmapError(f"Rasterizer returned an empty bitmap: {bitmap!r}"),
            }

        return {"history": history, "bitmap": bitmap}

    async def _encode_node(self, state: CaptureGraphState) -> Dict[str, Any]:
        """Turn the bitmap into a document or an encoded image."""
        history = _enter(state, CaptureStage.ENCODING)
        request = state["request"]
        bitmap = state["bitmap"]

        try:
            if request.output_kind.is_document:
                geometry = self.layout_engine.compute_geometry(
                    bitmap.width,
                    bitmap.height,
                    request.strategy_hint or self.default_strategy_hint,
                )
                artifact = self.document_builder.build(bitmap, geometry)
            else:
                artifact = RasterArtifact(
                    encode_raster(bitmap, request.output_kind, self.jpeg_quality),
                    request.output_kind.mime_type,
                )
        except CaptureError as e:
            return {"history": history, "error": e}
        except Exception as e:
            logger.error(f"Encoding {bitmap!r} failed: {e}")
            return {"history": history, "error": CaptureError(f"Encoding failed: {e}")}

        return {"history": history, "artifact": artifact}

    async def _dispatch_node(self, state: CaptureGraphState) -> Dict[str, Any]:
        """Deliver the artifact."""
        history = _enter(state, CaptureStage.DISPATCHING)
        request = state["request"]

        try:
            outcome = await self.dispatcher.dispatch(
                state["artifact"],
                request.delivery_mode,
                DispatchMetadata(state["file_name"]),
            )
        except CaptureError as e:
            return {"history": history, "error": e}
        except Exception as e:
            logger.error(f"Dispatch of {state['file_name']} failed: {e}")
            return {"history": history, "error": DispatchFailure(f"Dispatch failed: {e}")}

        return {"history": history, "outcome": outcome}

    async def _done_node(self, state: CaptureGraphState) -> Dict[str, Any]:
        outcome = state["outcome"]
        logger.info(
            f"Capture of {state['source'].selector!r} delivered via {outcome.mode.value}: "
            f"{outcome.size_bytes} bytes"
        )
        return {"history": _enter(state, CaptureStage.DONE)}

    async def _failed_node(self, state: CaptureGraphState) -> Dict[str, Any]:
        error = state["error"]
        failed_at = state["history"][-1]
        logger.warning(f"Capture failed during {failed_at.value}: {type(error).__name__}: {error}")
        self._notify_failure(error, state["file_name"])
        return {
            "history": _enter(state, CaptureStage.FAILED),
            "artifact": None,
            "outcome": None,
        }

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _normalize(self, source: CaptureSource) -> SoftStepResult:
        try:
            converted = self.normalizer.prepare(source)
            return SoftStepResult(ok=True, converted=converted)
        except Exception as e:
            logger.warning(f"Diagram normalization skipped for {source.selector!r}: {e}")
            return SoftStepResult(ok=False, error=str(e))

    def _restore(self, source: CaptureSource) -> None:
        try:
            self.normalizer.restore(source)
        except Exception as e:
            logger.warning(f"Diagram restore failed for {source.selector!r}: {e}")

    def _record(self, result: Optional[CaptureResult]) -> None:
        if result is not None and result.succeeded:
            self.captures_succeeded += 1
        else:
            self.captures_failed += 1

    def get_metrics(self) -> dict:
        return {
            "captures_started": self.captures_started,
            "captures_succeeded": self.captures_succeeded,
            "captures_failed": self.captures_failed,
        }

    def _notify_failure(self, error: CaptureError, file_name: str) -> None:
        if error.notified:
            return
        self.notifier.emit(
            CaptureEvent.ERROR,
            {"file_name": file_name, "error": f"{type(error).__name__}: {error}"},
        )
        error.notified = True

    @staticmethod
    def _to_result(state: CaptureGraphState) -> CaptureResult:
        error = state.get("error")
        failed = error is not None
        return CaptureResult(
            stage=CaptureStage.FAILED if failed else CaptureStage.DONE,
            history=state["history"],
            file_name=state["file_name"],
            outcome=None if failed else state.get("outcome"),
            error=f"{type(error).__name__}: {error}" if failed else None,
        )
