"""
Pipeline Tests
==============

Tests for the capture state machine: stage order, cleanup guarantees,
soft vs hard failures and the remote HTML conversion variant.
"""

import asyncio

import pytest

from conftest import FailingSink, FakeRasterizer, FakeSource, FakeUploader, RecordingNormalizer, make_png
from screencapture.delivery import ArtifactDispatcher, CaptureEvent
from screencapture.document import decode_image
from screencapture.models import CaptureRequest, CaptureStage, ConversionFailure, DeliveryMode
from screencapture.pipeline import (
    CapturePipeline,
    ImageRasterizer,
    ImageSource,
    InFlightCounter,
    RasterizeOptions,
)


HAPPY_PATH = [
    CaptureStage.IDLE,
    CaptureStage.PREPARING,
    CaptureStage.RASTERIZING,
    CaptureStage.ENCODING,
    CaptureStage.DISPATCHING,
    CaptureStage.DONE,
]


class Completion:
    def __init__(self) -> None:
        self.results = []

    def __call__(self, result) -> None:
        self.results.append(result)


class FakeConverter:
    def __init__(self, error: Exception = None) -> None:
        self.error = error
        self.documents = []

    async def convert(self, html_document: str) -> bytes:
        self.documents.append(html_document)
        if self.error is not None:
            raise self.error
        return b"%PDF-1.4 remote"


def make_pipeline(dispatcher, rasterizer=None, **kwargs):
    return CapturePipeline(
        rasterizer=rasterizer or FakeRasterizer(),
        dispatcher=dispatcher,
        **kwargs,
    )


class TestCaptureSuccess:
    """Tests for successful captures."""

    @pytest.mark.asyncio
    async def test_stage_history(self, dispatcher):
        """Stages are entered in order and end in DONE."""
        pipeline = make_pipeline(dispatcher)

        result = await pipeline.capture(CaptureRequest(), FakeSource())

        assert result.succeeded
        assert result.history == HAPPY_PATH
        assert result.error is None

    @pytest.mark.asyncio
    async def test_png_download(self, dispatcher, sink):
        """PNG captures are delivered at the measured size."""
        pipeline = make_pipeline(dispatcher)

        result = await pipeline.capture(
            CaptureRequest(file_name="my:shot"), FakeSource(320, 240)
        )

        assert result.file_name == "my_shot.png"
        assert sink.file_name == "my_shot.png"
        assert sink.content_type == "image/png"
        bitmap = decode_image(sink.data)
        assert (bitmap.width, bitmap.height) == (320, 240)

    @pytest.mark.asyncio
    async def test_overrides_beat_measured_size(self, dispatcher):
        """Explicit width/height replace the measured element size."""
        rasterizer = FakeRasterizer()
        pipeline = make_pipeline(dispatcher, rasterizer)

        await pipeline.capture(CaptureRequest(width_px=100, height_px=50), FakeSource(800, 600))

        options = rasterizer.calls[0][1]
        assert (options.width_px, options.height_px) == (100, 50)

    @pytest.mark.asyncio
    async def test_default_background(self, dispatcher):
        """The configured background applies when the request has none."""
        rasterizer = FakeRasterizer()
        pipeline = make_pipeline(dispatcher, rasterizer, default_background="#eeeeee")

        await pipeline.capture(CaptureRequest(), FakeSource())

        assert rasterizer.calls[0][1].background == "#eeeeee"

    @pytest.mark.asyncio
    async def test_pdf_multi_page(self, dispatcher, sink):
        """PDF captures run layout and document assembly."""
        pipeline = make_pipeline(dispatcher)

        result = await pipeline.capture(
            CaptureRequest(output_kind="PDF", strategy_hint="MULTI_PAGE_A4", file_name="report"),
            FakeSource(1600, 8000),
        )

        assert result.succeeded
        assert sink.file_name == "report.pdf"
        assert sink.content_type == "application/pdf"
        assert sink.data.startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_default_strategy_hint(self, dispatcher):
        """The configured strategy hint applies when the request has none."""
        pipeline = make_pipeline(dispatcher, default_strategy_hint="MULTI_PAGE_A4")
        built = []
        original = pipeline.document_builder.build

        def spy(bitmap, geometry):
            built.append(geometry)
            return original(bitmap, geometry)

        pipeline.document_builder.build = spy
        await pipeline.capture(CaptureRequest(output_kind="PDF"), FakeSource(1600, 8000))

        assert built[0].page_count == 4

    @pytest.mark.asyncio
    async def test_upload_success(self, dispatcher, notifier, uploader):
        """Remote uploads emit SAVED and report chunks."""
        pipeline = make_pipeline(dispatcher)

        result = await pipeline.capture(
            CaptureRequest(delivery_mode="DB_DOWNLOAD", output_kind="JPEG"), FakeSource(64, 64)
        )

        assert result.succeeded
        assert result.outcome.chunks == len(uploader.payloads[0].chunks)
        assert notifier.recorder.names() == [CaptureEvent.SAVED.value]

    @pytest.mark.asyncio
    async def test_completion_and_busy(self, dispatcher):
        """Completion fires once with the result; the indicator is released."""
        busy = InFlightCounter()
        pipeline = make_pipeline(dispatcher, busy_indicator=busy)
        done = Completion()

        result = await pipeline.capture(CaptureRequest(), FakeSource(), on_complete=done)

        assert done.results == [result]
        assert busy.in_flight == 0
        assert busy.acquired_total == busy.released_total == 1
        assert pipeline.get_metrics()["captures_succeeded"] == 1


class TestCaptureFailure:
    """Tests for hard failures."""

    @pytest.mark.asyncio
    async def test_rasterizer_failure(self, dispatcher, sink, notifier):
        """A failing rasterizer ends in FAILED with one ERROR and no delivery."""
        busy = InFlightCounter()
        done = Completion()
        pipeline = make_pipeline(
            dispatcher, FakeRasterizer(error=RuntimeError("canvas tainted")), busy_indicator=busy
        )

        result = await pipeline.capture(CaptureRequest(), FakeSource(), on_complete=done)

        assert result.stage is CaptureStage.FAILED
        assert result.history == [
            CaptureStage.IDLE,
            CaptureStage.PREPARING,
            CaptureStage.RASTERIZING,
            CaptureStage.FAILED,
        ]
        assert result.error.startswith("RasterizationFailure")
        assert result.outcome is None
        assert sink.deliveries == 0
        assert notifier.recorder.names() == [CaptureEvent.ERROR.value]
        assert done.results == [result]
        assert busy.in_flight == 0

    @pytest.mark.asyncio
    async def test_empty_bitmap(self, dispatcher, sink):
        """A zero-height bitmap fails with InvalidBitmapError."""
        pipeline = make_pipeline(dispatcher, FakeRasterizer(empty=True))

        result = await pipeline.capture(CaptureRequest(output_kind="PDF"), FakeSource())

        assert result.stage is CaptureStage.FAILED
        assert result.error.startswith("InvalidBitmapError")
        assert sink.deliveries == 0

    @pytest.mark.asyncio
    async def test_upload_failure_single_error(self, sink, notifier):
        """A failed upload emits exactly one ERROR and no SAVED."""
        dispatcher = ArtifactDispatcher(
            download_sink=sink,
            viewer=sink,
            uploader=FakeUploader(result=False),
            notifier=notifier,
        )
        done = Completion()
        pipeline = make_pipeline(dispatcher)

        result = await pipeline.capture(
            CaptureRequest(delivery_mode=DeliveryMode.DB_DOWNLOAD), FakeSource(), on_complete=done
        )

        assert result.stage is CaptureStage.FAILED
        assert result.history[-2:] == [CaptureStage.DISPATCHING, CaptureStage.FAILED]
        assert notifier.count(CaptureEvent.ERROR) == 1
        assert notifier.count(CaptureEvent.SAVED) == 0
        assert len(done.results) == 1

    @pytest.mark.asyncio
    async def test_measure_failure(self, dispatcher):
        """An unmeasurable source fails during PREPARING."""
        pipeline = make_pipeline(dispatcher)

        result = await pipeline.capture(CaptureRequest(), ImageSource(b"garbage"))

        assert result.history[-2:] == [CaptureStage.PREPARING, CaptureStage.FAILED]
        assert pipeline.get_metrics()["captures_failed"] == 1


class TestDiagramNormalization:
    """Tests for the best-effort diagram pre-pass."""

    @pytest.mark.asyncio
    async def test_restored_after_success(self, dispatcher):
        """Normalization is prepared and restored once."""
        normalizer = RecordingNormalizer()
        pipeline = make_pipeline(dispatcher, normalizer=normalizer)

        await pipeline.capture(CaptureRequest(), FakeSource())

        assert (normalizer.prepared, normalizer.restored) == (1, 1)

    @pytest.mark.asyncio
    async def test_restored_after_rasterizer_failure(self, dispatcher):
        """Restore runs even when rasterization fails."""
        normalizer = RecordingNormalizer()
        pipeline = make_pipeline(
            dispatcher, FakeRasterizer(error=RuntimeError("boom")), normalizer=normalizer
        )

        await pipeline.capture(CaptureRequest(), FakeSource())

        assert normalizer.restored == 1

    @pytest.mark.asyncio
    async def test_failure_does_not_abort(self, dispatcher, sink):
        """A failing pre-pass is logged and the capture still succeeds."""
        pipeline = make_pipeline(dispatcher, normalizer=RecordingNormalizer(fail=True))

        result = await pipeline.capture(CaptureRequest(), FakeSource())

        assert result.succeeded
        assert sink.deliveries == 1


class TestImageCollaborators:
    """Tests for ImageSource and ImageRasterizer."""

    def test_measure(self):
        """ImageSource reports the decoded size."""
        assert ImageSource(make_png(30, 20)).measure() == (30, 20)

    @pytest.mark.asyncio
    async def test_rasterize_pads_with_background(self):
        """Requested areas beyond the image take the background colour."""
        source = ImageSource(make_png(10, 10))
        options = RasterizeOptions(background="#0000ff", width_px=20, height_px=5)

        bitmap = await ImageRasterizer().rasterize(source, options)

        assert (bitmap.width, bitmap.height) == (20, 5)
        assert tuple(bitmap.pixels[0, 0]) == (40, 40, 40)
        assert tuple(bitmap.pixels[0, 15]) == (255, 0, 0)

    @pytest.mark.asyncio
    async def test_end_to_end_image(self, dispatcher, sink):
        """A real image runs through the whole pipeline as a PDF."""
        pipeline = make_pipeline(dispatcher, ImageRasterizer())

        result = await pipeline.capture(
            CaptureRequest(output_kind="PDF", strategy_hint="CONT_PAGE"),
            ImageSource(make_png(200, 600)),
        )

        assert result.succeeded
        assert sink.data.startswith(b"%PDF")


class TestRenderHtml:
    """Tests for remote HTML conversion."""

    @pytest.mark.asyncio
    async def test_downloads_converted_pdf(self, dispatcher, sink):
        """The converted PDF is downloaded under a .pdf name."""
        converter = FakeConverter()
        pipeline = make_pipeline(
            dispatcher,
            converter=converter,
            stylesheets=("https://cdn.test/app.css?v=3",),
            base_href="https://app.test/",
        )
        done = Completion()

        result = await pipeline.render_html(
            "<div id='r'>Hi</div>", CaptureRequest(file_name="summary"), on_complete=done
        )

        assert result.succeeded
        assert result.history == [
            CaptureStage.IDLE,
            CaptureStage.PREPARING,
            CaptureStage.ENCODING,
            CaptureStage.DISPATCHING,
            CaptureStage.DONE,
        ]
        assert sink.file_name == "summary.pdf"
        assert sink.data == b"%PDF-1.4 remote"
        assert 'href="https://cdn.test/app.css"' in converter.documents[0]
        assert '<base href="https://app.test/">' in converter.documents[0]
        assert done.results == [result]

    @pytest.mark.asyncio
    async def test_conversion_failure(self, dispatcher, sink, notifier):
        """Conversion errors end in FAILED with one ERROR."""
        busy = InFlightCounter()
        pipeline = make_pipeline(
            dispatcher,
            converter=FakeConverter(error=ConversionFailure("HTTP 401")),
            busy_indicator=busy,
        )

        result = await pipeline.render_html("<p>x</p>", CaptureRequest())

        assert result.stage is CaptureStage.FAILED
        assert result.error == "ConversionFailure: HTTP 401"
        assert sink.deliveries == 0
        assert notifier.count(CaptureEvent.ERROR) == 1
        assert busy.in_flight == 0

    @pytest.mark.asyncio
    async def test_no_converter(self, dispatcher):
        """Without a conversion client the request fails cleanly."""
        result = await make_pipeline(dispatcher).render_html("<p>x</p>", CaptureRequest())

        assert result.stage is CaptureStage.FAILED

    @pytest.mark.asyncio
    async def test_sink_error(self, notifier):
        """A sink raising an unexpected error still ends in FAILED with one ERROR."""
        failing = FailingSink(RuntimeError("disk quota"))
        dispatcher = ArtifactDispatcher(download_sink=failing, viewer=failing, notifier=notifier)
        busy = InFlightCounter()
        pipeline = make_pipeline(dispatcher, converter=FakeConverter(), busy_indicator=busy)
        done = Completion()

        result = await pipeline.render_html("<p>x</p>", CaptureRequest(), on_complete=done)

        assert result.stage is CaptureStage.FAILED
        assert result.history[-2:] == [CaptureStage.DISPATCHING, CaptureStage.FAILED]
        assert "disk quota" in result.error
        assert notifier.count(CaptureEvent.ERROR) == 1
        assert done.results == [result]
        assert busy.in_flight == 0

    @pytest.mark.asyncio
    async def test_unexpected_converter_error(self, dispatcher, sink, notifier):
        """Errors outside the capture hierarchy are reported as CaptureError."""
        pipeline = make_pipeline(dispatcher, converter=FakeConverter(error=RuntimeError("boom")))
        done = Completion()

        result = await pipeline.render_html("<p>x</p>", CaptureRequest(), on_complete=done)

        assert result.stage is CaptureStage.FAILED
        assert result.error == "CaptureError: HTML conversion failed: boom"
        assert sink.deliveries == 0
        assert notifier.count(CaptureEvent.ERROR) == 1
        assert done.results == [result]
        assert pipeline.get_metrics()["captures_failed"] == 1


class TestConcurrentCaptures:
    """Tests for overlapping capture invocations on one pipeline."""

    @pytest.mark.asyncio
    async def test_overlapping_captures_independent(self, dispatcher, sink):
        """Each capture runs to DONE with its own acquire and release."""
        busy = InFlightCounter()
        pipeline = make_pipeline(dispatcher, busy_indicator=busy)
        done = Completion()
        requests = [
            CaptureRequest(file_name=f"shot-{i}", output_kind="PDF" if i % 2 else "PNG")
            for i in range(5)
        ]

        results = await asyncio.gather(
            *(pipeline.capture(request, FakeSource(), on_complete=done) for request in requests)
        )

        assert all(result.stage is CaptureStage.DONE for result in results)
        assert all(result.history == HAPPY_PATH for result in results)
        assert [result.file_name for result in results] == [
            "shot-0.png", "shot-1.pdf", "shot-2.png", "shot-3.pdf", "shot-4.png",
        ]
        assert len(done.results) == 5
        assert sink.deliveries == 5
        assert busy.in_flight == 0
        assert busy.acquired_total == busy.released_total == 5
        assert pipeline.get_metrics()["captures_succeeded"] == 5
