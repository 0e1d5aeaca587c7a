"""
HTTP API Tests
==============

Drives the FastAPI app with TestClient and a pipeline wired with fakes.
The lifespan is not entered, so no ffmpeg lookup or sweep task runs.
"""

import asyncio
import base64
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from conftest import VIDEO_URL, FakeFetcher
from frameshot import main
from frameshot.errors import SourceRejectedError, StalledDownloadError


@pytest.fixture
def pipeline(make_pipeline):
    return make_pipeline()


@pytest.fixture
def client(pipeline):
    main.app.dependency_overrides[main.get_pipeline] = lambda: pipeline
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


class TestScreenshotEndpoint:
    """Tests for /screenshot."""

    def test_post_returns_base64(self, client, jpeg_bytes):
        response = client.post(
            "/screenshot",
            json={"videoUrl": VIDEO_URL, "timestamp": 1, "returnBase64": True},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert base64.b64decode(data["image"]) == jpeg_bytes
        assert data["size"] == len(jpeg_bytes)
        assert data["mime_type"] == "image/jpeg"
        assert (data["width"], data["height"]) == (160, 120)
        assert data["server_stats"]["processed"] == 1
        assert datetime.fromisoformat(data["timestamp"]).tzinfo is not None

    def test_get_returns_jpeg(self, client, jpeg_bytes):
        response = client.get("/screenshot", params={"url": VIDEO_URL, "t": "1"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.content == jpeg_bytes
        assert response.headers["x-success"] == "true"
        assert response.headers["x-request-id"]

    def test_body_wins_over_query(self, client, pipeline):
        extractor = pipeline.extractor
        client.post(
            "/screenshot?timestamp=9",
            json={"url": VIDEO_URL, "timestamp": 2},
        )
        assert extractor.calls == [2.0]

    def test_no_cache_headers(self, client):
        response = client.get("/screenshot", params={"url": VIDEO_URL})
        assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
        assert response.headers["pragma"] == "no-cache"

    def test_missing_url(self, client):
        response = client.post("/screenshot", json={"timestamp": 1})

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["kind"] == "INVALID_INPUT"
        assert data["retryable"] is False
        assert datetime.fromisoformat(data["timestamp"]).tzinfo is not None

    def test_unparseable_url(self, client):
        """Verify a broken IPv6 host is a structured 400, not a crash."""
        response = client.post("/screenshot", json={"videoUrl": "http://[::1/clip.mp4"})

        assert response.status_code == 400
        assert response.json()["kind"] == "INVALID_INPUT"

    def test_malformed_body(self, client):
        response = client.post(
            "/screenshot",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_busy(self, client, pipeline):
        pipeline.admission.try_admit("blocker")

        response = client.post("/screenshot", json={"videoUrl": VIDEO_URL})

        assert response.status_code == 429
        assert response.headers["retry-after"] == "10"
        data = response.json()
        assert data["kind"] == "ADMISSION_REJECTED"
        assert data["retryable"] is True
        assert data["retry_after"] == 10

    def test_stalled_download(self, client, pipeline):
        pipeline.fetcher = FakeFetcher(error=StalledDownloadError("Download stalled"))

        response = client.post("/screenshot", json={"videoUrl": VIDEO_URL})

        assert response.status_code == 408
        data = response.json()
        assert data["kind"] == "DOWNLOAD_STALLED"
        assert data["stage"] == "DOWNLOADING"
        assert data["retryable"] is True

    def test_source_rejected(self, client, pipeline):
        pipeline.fetcher = FakeFetcher(error=SourceRejectedError("Source returned HTTP 404"))

        response = client.post("/screenshot", json={"videoUrl": VIDEO_URL})

        assert response.status_code == 502
        assert response.json()["kind"] == "SOURCE_REJECTED"


class TestServiceEndpoints:
    """Tests for /, /health, /ready and /test."""

    def test_root(self, client):
        data = client.get("/").json()
        assert data["status"] == "running"
        assert data["usage"]["path"] == "/screenshot"

    def test_health(self, client, pipeline, tiny_budget):
        data = client.get("/health").json()
        assert data["status"] == "OK"
        assert data["processing"]["max_load"] == 1
        assert data["timeouts"]["ffmpeg_s"] == tiny_budget.extraction

    def test_ready_without_ffmpeg(self, client, monkeypatch):
        monkeypatch.setattr(main, "_ffmpeg_location", None)
        response = client.get("/ready")
        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    def test_ready_with_ffmpeg(self, client, monkeypatch):
        monkeypatch.setattr(main, "_ffmpeg_location", "/usr/bin/ffmpeg")
        response = client.get("/ready")
        assert response.status_code == 200
        assert response.json()["ffmpeg"] == "/usr/bin/ffmpeg"

    def test_diagnostics(self, client, tiny_budget):
        response = client.get("/test")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "OK"
        assert datetime.fromisoformat(data["timestamp"]).tzinfo is not None
        assert data["stats"]["max_load"] == 1
        assert data["config"]["max_concurrent"] == 1
        assert data["config"]["download_timeout_s"] == tiny_budget.total_download
        assert data["config"]["ffmpeg_timeout_s"] == tiny_budget.extraction


class TestScratchSweep:
    """Tests for the background scratch sweeper."""

    @pytest.mark.asyncio
    async def test_survives_failing_sweep(self, pipeline, monkeypatch):
        """Verify an unexpected error in one sweep does not stop later sweeps."""
        calls = []

        def flaky_sweep(max_age_seconds):
            calls.append(max_age_seconds)
            if len(calls) == 1:
                raise RuntimeError("sweep exploded")
            return 0

        monkeypatch.setattr(pipeline.scratch, "sweep_stale", flaky_sweep)

        task = asyncio.create_task(
            main.sweep_scratch_files(pipeline, interval=0.01, max_age=60)
        )
        try:
            for _ in range(200):
                if len(calls) >= 3:
                    break
                await asyncio.sleep(0.01)

            assert len(calls) >= 3
            assert not task.done()
        finally:
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
