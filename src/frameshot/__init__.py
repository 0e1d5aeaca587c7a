"""
FrameShot
=========

Bounded-concurrency service that grabs a single still frame from a
remote video.

A request carries a video URL and a timestamp. The service downloads the
video under strict time and size limits, runs ffmpeg once to extract one
downscaled JPEG frame, and returns the image. At most a few requests are
processed at once; the rest are turned away with a retry hint.

Components:
    - pipeline.admission: Non-blocking admission gate
    - pipeline.fetcher: Bounded HTTP download
    - pipeline.extractor: ffmpeg invocation with a kill watchdog
    - pipeline.polling: File stability wait
    - pipeline.scratch: Scratch file naming and cleanup
    - pipeline.orchestrator: Sequences the stages per request

Example:
    from frameshot.pipeline import build_pipeline
    from frameshot.config import settings

    pipeline = build_pipeline(settings)
    result = await pipeline.capture("https://example.com/clip.mp4", 1.0)
"""

__version__ = "1.0.0"

__all__ = [
    "__version__",
]
