"""
Test Configuration
==================

Pytest fixtures and fakes for FrameShot.
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional

import cv2
import numpy as np
import pytest

from frameshot.models.budget import TimeoutBudget
from frameshot.pipeline.admission import AdmissionQueue
from frameshot.pipeline.extractor import FrameExtractor
from frameshot.pipeline.orchestrator import ScreenshotPipeline
from frameshot.pipeline.scratch import ScratchDirectory


VIDEO_URL = "https://videos.example.com/clip.mp4"


# =============================================================================
# Fakes
# =============================================================================

class FakeFetcher:
    """Stands in for BoundedFetcher: writes a payload, optionally fails."""

    def __init__(
        self,
        payload: bytes = b"\x00" * 4096,
        delay: float = 0.0,
        error: Optional[BaseException] = None,
        admission: Optional[AdmissionQueue] = None,
    ) -> None:
        self.payload = payload
        self.delay = delay
        self.error = error
        self.admission = admission
        self.calls: List[str] = []
        self.loads_seen: List[int] = []

    async def fetch(self, url, dest_path, budget, request_id="-") -> int:
        self.calls.append(url)
        if self.admission is not None:
            self.loads_seen.append(self.admission.current_load)
        Path(dest_path).write_bytes(self.payload)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return len(self.payload)


class FakeExtractor:
    """Stands in for FrameExtractor: writes a fixed output file."""

    def __init__(
        self,
        output: Optional[bytes] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self.output = output
        self.error = error
        self.calls: List[float] = []
        self.input_existed: List[bool] = []

    async def extract_frame(
        self, input_path, output_path, timestamp_seconds, timeout, request_id="-"
    ) -> None:
        self.calls.append(timestamp_seconds)
        self.input_existed.append(Path(input_path).exists())
        if self.output is not None:
            Path(output_path).write_bytes(self.output)
        if self.error is not None:
            raise self.error


class ScriptExtractor(FrameExtractor):
    """FrameExtractor that runs a Python snippet instead of ffmpeg.

    The snippet sees sys.argv == ["-c", input_path, output_path, timestamp].
    """

    def __init__(self, script: str) -> None:
        super().__init__()
        self.script = script

    def build_command(self, input_path, output_path, timestamp_seconds):
        return [
            sys.executable, "-c", self.script,
            os.fspath(input_path), os.fspath(output_path), str(timestamp_seconds),
        ]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def jpeg_bytes() -> bytes:
    """A decodable 160x120 JPEG, well above the minimum output size."""
    rng = np.random.default_rng(0)
    image = rng.integers(0, 256, size=(120, 160, 3), dtype=np.uint8)
    ok, encoded = cv2.imencode(".jpg", image)
    assert ok
    return encoded.tobytes()


@pytest.fixture
def tiny_budget() -> TimeoutBudget:
    """Small limits so failure paths finish quickly."""
    return TimeoutBudget(
        connect=0.5,
        inactivity=0.3,
        total_download=2.0,
        extraction=1.0,
        input_stability=0.5,
        output_stability=0.5,
    )


@pytest.fixture
def scratch(tmp_path) -> ScratchDirectory:
    return ScratchDirectory(tmp_path / "scratch")


@pytest.fixture
def make_pipeline(tiny_budget, scratch, jpeg_bytes):
    """Factory for pipelines wired with fakes."""

    def _make(
        fetcher=None,
        extractor=None,
        capacity: int = 1,
        budget: Optional[TimeoutBudget] = None,
    ) -> ScreenshotPipeline:
        return ScreenshotPipeline(
            budget=budget or tiny_budget,
            admission=AdmissionQueue(capacity=capacity),
            fetcher=fetcher if fetcher is not None else FakeFetcher(),
            extractor=extractor if extractor is not None else FakeExtractor(jpeg_bytes),
            scratch=scratch,
            retry_after_seconds=10,
            poll_interval=0.01,
            required_checks=2,
            min_output_bytes=500,
        )

    return _make


@pytest.fixture
def no_residue(scratch):
    """Assert helper: nothing left in the scratch directory."""

    def _check() -> None:
        leftover = sorted(p.name for p in scratch.root.iterdir())
        assert leftover == [], f"Residual scratch files: {leftover}"

    return _check
