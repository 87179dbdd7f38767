"""
HTTP API Tests
==============

Tests for the FastAPI surface using TestClient.
"""

import base64

import pytest
from fastapi.testclient import TestClient

from conftest import FakeUploader, make_png
from screencapture import main
from screencapture.delivery import CaptureEvent


IMAGE_B64 = base64.b64encode(make_png(120, 90)).decode("ascii")


@pytest.fixture
def client():
    """Client with the application lifespan running."""
    with TestClient(main.app) as client:
        yield client


class TestServiceEndpoints:
    """Tests for info, health and metrics."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "screencapture"
        assert "DB_DOWNLOAD" in response.json()["delivery_modes"]

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_metrics_count_captures(self, client):
        """Capture counters and the in-flight count are reported."""
        before = client.get("/metrics").json()

        client.post("/capture", json={"image": IMAGE_B64})
        after = client.get("/metrics").json()

        assert after["captures_started"] == before["captures_started"] + 1
        assert after["captures_succeeded"] == before["captures_succeeded"] + 1
        assert after["in_flight"] == 0


class TestCaptureEndpoint:
    """Tests for POST /capture."""

    def test_direct_download_attachment(self, client):
        """DIRECT_DOWNLOAD returns the artifact as an attachment."""
        response = client.post(
            "/capture",
            json={"image": IMAGE_B64, "output_kind": "PDF", "file_name": "daily/report"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"] == 'attachment; filename="daily_report.pdf"'
        assert response.content.startswith(b"%PDF")

    def test_non_ascii_file_name(self, client):
        """Non-ASCII names are sent RFC 5987 encoded with an ASCII fallback."""
        response = client.post("/capture", json={"image": IMAGE_B64, "file_name": "报告"})

        assert response.status_code == 200
        assert response.headers["content-disposition"] == (
            "attachment; filename=\"__.png\"; filename*=UTF-8''%E6%8A%A5%E5%91%8A.png"
        )

    def test_new_tab_inline(self, client):
        """NEW_TAB returns the artifact inline."""
        response = client.post(
            "/capture",
            json={"image": IMAGE_B64, "output_kind": "JPEG", "delivery_mode": "NEW_TAB"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.headers["content-disposition"].startswith("inline")
        assert response.content[:2] == b"\xff\xd8"

    def test_data_uri_accepted(self, client):
        """Images may be posted as data URIs."""
        response = client.post("/capture", json={"image": "data:image/png;base64," + IMAGE_B64})

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"

    def test_upload_returns_outcome(self, client, monkeypatch):
        """DB_DOWNLOAD uploads and returns the outcome JSON."""
        uploader = FakeUploader()
        monkeypatch.setattr(main, "_uploader", uploader)

        response = client.post("/capture", json={"image": IMAGE_B64, "delivery_mode": "DB_DOWNLOAD"})
        body = response.json()

        assert response.status_code == 200
        assert body["event"] == CaptureEvent.SAVED.value
        assert body["stage"] == "DONE"
        assert body["outcome"]["chunks"] == len(uploader.payloads[0].chunks)

    def test_upload_without_uploader(self, client, monkeypatch):
        """Upload with no configured endpoint fails with 502."""
        monkeypatch.setattr(main, "_uploader", None)

        response = client.post("/capture", json={"image": IMAGE_B64, "delivery_mode": "DB_DOWNLOAD"})

        assert response.status_code == 502
        assert response.json()["event"] == CaptureEvent.ERROR.value
        assert response.json()["history"][-1] == "FAILED"

    def test_undecodable_image(self, client):
        """Bytes that are not an image fail with 502."""
        garbage = base64.b64encode(b"definitely not a png").decode("ascii")

        response = client.post("/capture", json={"image": garbage})

        assert response.status_code == 502
        assert "RasterizationFailure" in response.json()["error"]

    def test_invalid_base64(self, client):
        """Malformed base64 is a client error."""
        response = client.post("/capture", json={"image": "abc"})

        assert response.status_code == 400

    def test_missing_image(self, client):
        """The image field is required."""
        response = client.post("/capture", json={"output_kind": "PNG"})

        assert response.status_code == 422
