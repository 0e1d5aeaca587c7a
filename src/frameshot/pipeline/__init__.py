"""
Pipeline Module
===============

Bounded-concurrency screenshot pipeline.

    - AdmissionQueue: Non-blocking gate on concurrent requests
    - BoundedFetcher: HTTP download with size and time limits
    - FrameExtractor: ffmpeg single-frame extraction with a kill watchdog
    - wait_stable / poll_until: File readiness polling
    - ScratchDirectory / cleanup_files: Request-scoped scratch files
    - ScreenshotPipeline: Runs the stages for one request

Example:
    from frameshot.config import settings
    from frameshot.pipeline import build_pipeline

    pipeline = build_pipeline(settings)
    result = await pipeline.capture(url, timestamp_seconds=1.0)
"""

from frameshot.pipeline.admission import AdmissionQueue
from frameshot.pipeline.extractor import FrameExtractor, ProcessOutcome, run_with_deadline
from frameshot.pipeline.fetcher import BoundedFetcher
from frameshot.pipeline.orchestrator import ScreenshotPipeline
from frameshot.pipeline.polling import poll_until, wait_stable
from frameshot.pipeline.scratch import ScratchDirectory, ScratchFiles, cleanup_files


def build_pipeline(settings) -> ScreenshotPipeline:
    """Wire a ScreenshotPipeline from Settings."""
    from frameshot.config import build_timeout_budget

    return ScreenshotPipeline(
        budget=build_timeout_budget(settings),
        admission=AdmissionQueue(capacity=settings.admission.capacity),
        fetcher=BoundedFetcher(
            max_bytes=settings.download.max_bytes,
            min_bytes=settings.download.min_bytes,
            max_redirects=settings.download.max_redirects,
            user_agent=settings.download.user_agent,
        ),
        extractor=FrameExtractor(
            ffmpeg_path=settings.extraction.ffmpeg_path,
            max_dimension=settings.extraction.max_dimension,
            jpeg_quality=settings.extraction.jpeg_quality,
        ),
        scratch=ScratchDirectory(settings.scratch.directory),
        retry_after_seconds=settings.admission.retry_after_seconds,
        poll_interval=settings.stability.poll_interval,
        required_checks=settings.stability.required_checks,
        min_output_bytes=settings.stability.min_output_bytes,
        default_timestamp=settings.extraction.default_timestamp,
    )


__all__ = [
    "AdmissionQueue",
    "BoundedFetcher",
    "FrameExtractor",
    "ProcessOutcome",
    "run_with_deadline",
    "ScreenshotPipeline",
    "poll_until",
    "wait_stable",
    "ScratchDirectory",
    "ScratchFiles",
    "cleanup_files",
    "build_pipeline",
]
